"""Rate-limit-aware async GitHub client for contributor activity ingestion."""

from __future__ import annotations

import asyncio
import logging
import re
import time
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncIterator, Awaitable, Callable, Optional

import httpx
from dateutil import parser as date_parser
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from leaderboard.config.settings import settings
from leaderboard.crawlers.contracts import (
    FetchResult,
    FetchState,
    IssueEventContract,
    PullRequestContract,
    ReviewContract,
    SearchContract,
)

logger = logging.getLogger(__name__)

_REDACTED_VALUE = "***REDACTED***"
_SENSITIVE_KEYS = (
    "authorization",
    "token",
    "api_key",
    "apikey",
    "secret",
    "password",
    "cookie",
)
_PAYLOAD_KEYS = ("body", "raw", "payload", "response")
_TOKEN_PATTERNS = (
    re.compile(r"(?i)(bearer\s+)[^\s,;]+"),
    re.compile(r"(?i)(token\s*[=:]\s*)[^\s,;]+"),
    re.compile(r"(?i)(access_token=)[^&\s]+"),
    re.compile(r"(?i)(gh[pousr]_)[A-Za-z0-9]+"),
)


def sanitize_for_log(value: Any, *, key: Optional[str] = None) -> Any:
    """Return a recursively sanitized copy of log payloads."""

    if isinstance(value, dict):
        sanitized: dict[str, Any] = {}
        for raw_key, raw_value in value.items():
            field = str(raw_key)
            if _contains_keyword(field, _SENSITIVE_KEYS):
                sanitized[field] = _REDACTED_VALUE
                continue
            if _contains_keyword(field, _PAYLOAD_KEYS) and isinstance(raw_value, str):
                sanitized[field] = _redact_payload(raw_value)
                continue
            sanitized[field] = sanitize_for_log(raw_value, key=field)
        return sanitized

    if isinstance(value, (list, tuple, set)):
        return [sanitize_for_log(item, key=key) for item in value]

    if isinstance(value, str):
        redacted = _redact_text(value)
        if key and _contains_keyword(key, _PAYLOAD_KEYS):
            return _redact_payload(redacted)
        return redacted

    return value


def sanitize_log_extra(**kwargs: Any) -> dict[str, Any]:
    """Helper for `extra=` payloads in structured logging."""

    return {
        key: _REDACTED_VALUE if _contains_keyword(key, _SENSITIVE_KEYS) else sanitize_for_log(value, key=key)
        for key, value in kwargs.items()
    }


def _contains_keyword(field_name: str, keywords: tuple[str, ...]) -> bool:
    lowered = field_name.lower()
    return any(keyword in lowered for keyword in keywords)


def _redact_payload(raw: str) -> str:
    trimmed = raw.strip()
    if not trimmed:
        return ""
    return f"<redacted payload ({len(raw)} chars)>"


def _redact_text(raw: str) -> str:
    redacted = raw
    for pattern in _TOKEN_PATTERNS:
        redacted = pattern.sub(rf"\1{_REDACTED_VALUE}", redacted)
    return redacted


def _format_search_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _parse_remaining(headers: httpx.Headers) -> Optional[int]:
    raw = headers.get("x-ratelimit-remaining")
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


class _RateLimitRetryableError(Exception):
    """Retryable rate-limit signal for tenacity."""


class GitHubActivityClient:
    """GitHub REST client with quota-aware pacing and date-windowed search."""

    BASE_URL = "https://api.github.com"
    API_VERSION = "2022-11-28"
    ACCEPT_JSON = "application/vnd.github+json"
    PAGE_SIZE = 100

    def __init__(
        self,
        *,
        token: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        max_retries: Optional[int] = None,
        backoff_base_seconds: Optional[float] = None,
        backoff_max_seconds: Optional[float] = None,
        rate_limit_buffer_seconds: Optional[int] = None,
        search_window_days: Optional[int] = None,
        search_min_interval_seconds: Optional[float] = None,
        base_url: Optional[str] = None,
        transport: Optional[Any] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._token = token or settings.GITHUB_TOKEN
        self._timeout_seconds = timeout_seconds or settings.GITHUB_TIMEOUT_SECONDS
        self._max_retries = max_retries or settings.GITHUB_MAX_RETRIES
        self._backoff_base_seconds = _first_set(backoff_base_seconds, settings.GITHUB_BACKOFF_BASE_SECONDS)
        self._backoff_max_seconds = _first_set(backoff_max_seconds, settings.GITHUB_BACKOFF_MAX_SECONDS)
        self._rate_limit_buffer_seconds = _first_set(rate_limit_buffer_seconds, settings.GITHUB_RATE_LIMIT_BUFFER_SECONDS)
        self._search_window_days = search_window_days or settings.LEADERBOARD_SEARCH_WINDOW_DAYS
        self._search_min_interval_seconds = _first_set(
            search_min_interval_seconds, settings.GITHUB_SEARCH_MIN_INTERVAL_SECONDS
        )
        self._base_url = base_url or self.BASE_URL
        self._transport = transport
        self._sleep = sleep
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "GitHubActivityClient":
        await self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def search_issues(
        self,
        query: str,
        *,
        page: int = 1,
        per_page: int = PAGE_SIZE,
    ) -> SearchContract:
        """Run one page of `/search/issues` (covers both issues and pull requests)."""

        response = await self._request(
            "/search/issues",
            params={"q": query, "page": page, "per_page": per_page, "sort": "created", "order": "asc"},
            search=True,
        )
        if response.state != FetchState.OK:
            return response

        payload = response.data if isinstance(response.data, dict) else {}
        items = payload.get("items") if isinstance(payload.get("items"), list) else []
        return FetchResult(
            state=FetchState.OK if items else FetchState.EMPTY,
            data=items,
            status_code=response.status_code,
            rate_limit_remaining=response.rate_limit_remaining,
        )

    async def iter_search_by_date_range(
        self,
        query: str,
        since: datetime,
        until: datetime,
        *,
        date_field: str = "created",
        window_days: Optional[int] = None,
    ) -> AsyncIterator[dict[str, Any]]:
        """Yield search results for `[since, until)` one day-window at a time.

        The search endpoint never returns more than 1000 results for a single
        query, so the range is split into fixed windows and each window is paged
        until a short page comes back. A failed page ends that window only.
        Window bounds are inclusive on both ends, so an item already yielded by
        the previous window is skipped.
        """

        step = timedelta(days=window_days or self._search_window_days)
        seen: set[Any] = set()
        window_start = since
        while window_start < until:
            window_end = min(window_start + step, until)
            window_query = (
                f"{query} {date_field}:"
                f"{_format_search_timestamp(window_start)}..{_format_search_timestamp(window_end)}"
            )
            page = 1
            while True:
                result = await self.search_issues(window_query, page=page)
                if result.is_failed:
                    logger.warning(
                        "Search page failed; moving to next window",
                        extra=sanitize_log_extra(query=window_query, page=page, error=result.error),
                    )
                    break
                items = result.data or []
                for item in items:
                    key = item.get("id") or item.get("html_url")
                    if key is not None:
                        if key in seen:
                            continue
                        seen.add(key)
                    yield item
                if len(items) < self.PAGE_SIZE:
                    break
                page += 1
            window_start = window_end

    async def list_pull_requests(
        self,
        owner: str,
        repo: str,
        *,
        since: Optional[datetime] = None,
    ) -> PullRequestContract:
        """List pull requests updated at or after `since`, newest first."""

        collected: list[dict[str, Any]] = []
        page = 1
        while True:
            response = await self._request(
                f"/repos/{owner}/{repo}/pulls",
                params={
                    "state": "all",
                    "sort": "updated",
                    "direction": "desc",
                    "per_page": self.PAGE_SIZE,
                    "page": page,
                },
            )
            if response.is_failed:
                if collected:
                    logger.warning(
                        "Stopping pull request listing after failed page",
                        extra=sanitize_log_extra(
                            owner=owner, repo=repo, page=page, error=response.error, collected=len(collected)
                        ),
                    )
                    break
                return response

            items = response.data if isinstance(response.data, list) else []
            reached_cursor = False
            for item in items:
                if since is not None and _is_before(item.get("updated_at"), since):
                    reached_cursor = True
                    break
                collected.append(item)

            if reached_cursor or len(items) < self.PAGE_SIZE:
                break
            page += 1

        return FetchResult(state=FetchState.OK if collected else FetchState.EMPTY, data=collected)

    async def list_reviews(self, owner: str, repo: str, pr_number: int) -> ReviewContract:
        return await self._fetch_all_pages(f"/repos/{owner}/{repo}/pulls/{pr_number}/reviews")

    async def list_issue_events(self, owner: str, repo: str, issue_number: int) -> IssueEventContract:
        return await self._fetch_all_pages(f"/repos/{owner}/{repo}/issues/{issue_number}/events")

    async def list_repositories(self, org: str) -> list[str]:
        """Return repository names for `org`.

        Failure stops discovery but keeps the names collected so far.
        """

        names: list[str] = []
        page = 1
        while True:
            response = await self._request(
                f"/orgs/{org}/repos",
                params={"type": "all", "per_page": self.PAGE_SIZE, "page": page},
            )
            if response.is_failed:
                logger.error(
                    "Failed to list organization repositories",
                    extra=sanitize_log_extra(org=org, page=page, error=response.error, collected=len(names)),
                )
                break

            items = response.data if isinstance(response.data, list) else []
            names.extend(str(item["name"]) for item in items if isinstance(item, dict) and item.get("name"))
            if len(items) < self.PAGE_SIZE:
                break
            page += 1
        return names

    async def _fetch_all_pages(self, path: str) -> FetchResult[list[dict[str, Any]]]:
        collected: list[dict[str, Any]] = []
        page = 1
        while True:
            response = await self._request(path, params={"per_page": self.PAGE_SIZE, "page": page})
            if response.is_failed:
                if collected:
                    logger.warning(
                        "Stopping pagination after failed page",
                        extra=sanitize_log_extra(path=path, page=page, error=response.error),
                    )
                    break
                return response

            items = response.data if isinstance(response.data, list) else []
            collected.extend(items)
            if len(items) < self.PAGE_SIZE:
                break
            page += 1

        return FetchResult(state=FetchState.OK if collected else FetchState.EMPTY, data=collected)

    async def _request(
        self,
        path: str,
        *,
        params: Optional[dict[str, Any]] = None,
        search: bool = False,
    ) -> FetchResult[Any]:
        client = await self._ensure_client()
        remaining: Optional[int] = None

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self._max_retries),
                wait=wait_exponential(multiplier=self._backoff_base_seconds, max=self._backoff_max_seconds),
                retry=retry_if_exception_type(_RateLimitRetryableError),
                sleep=self._sleep,
                reraise=True,
            ):
                with attempt:
                    response = await client.get(path, params=params)
                    remaining = _parse_remaining(response.headers)

                    if self._is_rate_limited(response):
                        wait_seconds = self._compute_rate_limit_wait(response.headers)
                        logger.warning(
                            "GitHub API rate limit encountered",
                            extra=sanitize_log_extra(
                                path=path,
                                params=params,
                                status_code=response.status_code,
                                retry_after_seconds=wait_seconds,
                            ),
                        )
                        if wait_seconds > 0:
                            await self._sleep(wait_seconds)
                        raise _RateLimitRetryableError(
                            f"GitHub rate limit encountered ({response.status_code})"
                        )

                    response.raise_for_status()
                    await self._pace(remaining, search=search)
                    return FetchResult(
                        state=FetchState.OK,
                        data=response.json(),
                        status_code=response.status_code,
                        rate_limit_remaining=remaining,
                    )
        except _RateLimitRetryableError as exc:
            logger.warning(
                "GitHub request failed after rate-limit retries",
                extra=sanitize_log_extra(path=path, params=params, error=str(exc), status_code=429),
            )
            return FetchResult(state=FetchState.FAILED, error=str(exc), status_code=429, rate_limit_remaining=remaining)
        except httpx.HTTPError as exc:
            status_code = getattr(getattr(exc, "response", None), "status_code", None)
            logger.warning(
                "GitHub request failed",
                extra=sanitize_log_extra(path=path, params=params, error=str(exc), status_code=status_code),
            )
            await self._pace(remaining, search=search)
            return FetchResult(
                state=FetchState.FAILED,
                error=str(exc),
                status_code=status_code,
                rate_limit_remaining=remaining,
            )

        return FetchResult(state=FetchState.FAILED, error="Unknown GitHub request failure")

    async def _ensure_client(self) -> httpx.AsyncClient:
        if self._client:
            return self._client

        headers = {
            "Accept": self.ACCEPT_JSON,
            "User-Agent": settings.USER_AGENT,
            "X-GitHub-Api-Version": self.API_VERSION,
        }
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"

        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers=headers,
            timeout=self._timeout_seconds,
            transport=self._transport,
        )
        return self._client

    async def _pace(self, remaining: Optional[int], *, search: bool) -> None:
        delay = self.pacing_delay(remaining)
        if search:
            delay = max(delay, self._search_min_interval_seconds)
        if delay > 0:
            await self._sleep(delay)

    @staticmethod
    def pacing_delay(remaining: Optional[int]) -> float:
        """Seconds to wait after a call given the remaining request quota."""

        if remaining is None:
            return settings.GITHUB_DELAY_DEFAULT_SECONDS
        if remaining > 500:
            return settings.GITHUB_DELAY_SHORT_SECONDS
        if remaining > 100:
            return settings.GITHUB_DELAY_MEDIUM_SECONDS
        return settings.GITHUB_DELAY_LONG_SECONDS

    @staticmethod
    def _is_rate_limited(response: httpx.Response) -> bool:
        if response.status_code == 429:
            return True
        if response.status_code != 403:
            return False
        return response.headers.get("x-ratelimit-remaining") == "0" or "retry-after" in response.headers

    def _compute_rate_limit_wait(self, headers: httpx.Headers) -> float:
        retry_after = headers.get("retry-after")
        if retry_after is not None:
            try:
                return max(float(retry_after), 0.0)
            except ValueError:
                pass

        reset_raw = headers.get("x-ratelimit-reset")
        if reset_raw is not None:
            try:
                reset_epoch = int(reset_raw)
                wait_seconds = reset_epoch - int(time.time()) + self._rate_limit_buffer_seconds
                return float(max(wait_seconds, 0))
            except ValueError:
                pass

        return self._backoff_base_seconds


def _first_set(value: Any, default: Any) -> Any:
    return default if value is None else value


def _is_before(raw: Any, cursor: datetime) -> bool:
    if not isinstance(raw, str) or not raw.strip():
        return False
    try:
        parsed = date_parser.isoparse(raw)
    except (TypeError, ValueError):
        return False
    if cursor.tzinfo is None:
        cursor = cursor.replace(tzinfo=timezone.utc)
    return parsed < cursor
