"""GitHub HTTP client with rate limit handling.

Async HTTP client for the GitHub API with retry logic and rate limit
waits. Every request is tallied in an ``APIUsage`` record so commands can
report what listing the account cost.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from typing import Any, Optional

import httpx
from pydantic import BaseModel

from gourcers import __version__
from gourcers.github.auth import GitHubAuth

logger = logging.getLogger(__name__)


class RateLimitInfo(BaseModel):
    """Primary rate limit as reported by the ``x-ratelimit-*`` headers."""

    limit: int
    remaining: int
    reset: datetime

    @classmethod
    def from_headers(cls, headers: httpx.Headers) -> Optional["RateLimitInfo"]:
        """Read the rate limit headers, or None when the response has none."""
        if "x-ratelimit-limit" not in headers:
            return None

        return cls(
            limit=int(headers["x-ratelimit-limit"]),
            remaining=int(headers.get("x-ratelimit-remaining", "0")),
            reset=datetime.fromtimestamp(int(headers.get("x-ratelimit-reset", "0")), tz=UTC),
        )


@dataclass
class GitHubResponse:
    """GitHub API response with parsed data."""

    status_code: int
    data: Any
    headers: httpx.Headers
    text: str = ""

    @property
    def is_success(self) -> bool:
        """Check if response was successful (2xx status code)."""
        return 200 <= self.status_code < 300


@dataclass
class APIUsage:
    """Requests made against the API and the time spent waiting on it."""

    requests: int = 0
    retries: int = 0
    rate_limit_waits: int = 0
    waited_seconds: float = 0.0
    rate_limit: RateLimitInfo | None = None

    def record_wait(self, seconds: float) -> None:
        """Count one rate limit wait."""
        self.rate_limit_waits += 1
        self.waited_seconds += seconds

    def summary(self) -> str:
        """One-line description for command output."""
        text = f"{self.requests} requests"
        if self.retries:
            text += f", {self.retries} retries"
        if self.rate_limit_waits:
            text += f", waited {self.waited_seconds:.0f}s on {self.rate_limit_waits} rate limits"
        if self.rate_limit is not None:
            text += f", {self.rate_limit.remaining}/{self.rate_limit.limit} remaining"
        return text


class GitHubHTTPError(Exception):
    """Base exception for GitHub HTTP errors."""


class RateLimitExceeded(GitHubHTTPError):
    """Raised when rate limit is exceeded."""

    def __init__(self, reset_at: datetime) -> None:
        self.reset_at = reset_at
        super().__init__(f"Rate limit exceeded. Resets at {reset_at.isoformat()}")


def parse_retry_after(value: str, now: datetime | None = None) -> float | None:
    """Seconds to wait from a ``Retry-After`` header.

    Accepts both delay-seconds and the HTTP-date form. Returns None when the
    value is neither.
    """
    value = value.strip()
    if value.isdigit():
        return float(value)

    try:
        retry_at = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if retry_at.tzinfo is None:
        retry_at = retry_at.replace(tzinfo=UTC)
    return max((retry_at - (now or datetime.now(UTC))).total_seconds(), 0.0)


class GitHubClient:
    """Async HTTP client for the GitHub API.

    Retries server errors, timeouts and network errors with exponential
    backoff, and waits out primary and secondary rate limits.
    """

    BASE_URL = "https://api.github.com"
    DEFAULT_TIMEOUT = 30.0
    DEFAULT_MAX_RETRIES = 3
    INITIAL_BACKOFF = 1.0
    BACKOFF_MULTIPLIER = 2.0

    def __init__(
        self,
        auth: GitHubAuth | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        base_url: str = BASE_URL,
        usage: APIUsage | None = None,
    ) -> None:
        """Initialize GitHub HTTP client.

        Args:
            auth: GitHubAuth instance. If None, creates from environment.
            timeout: Request timeout in seconds.
            max_retries: Maximum number of retries for failed requests.
            base_url: Base URL for GitHub API.
            usage: Usage record to update. A fresh one is created if None.
        """
        self._auth = auth or GitHubAuth()
        self._timeout = timeout
        self._max_retries = max_retries
        self._base_url = base_url.rstrip("/")
        self.usage = usage if usage is not None else APIUsage()

        self._client: httpx.AsyncClient | None = None

    def _get_headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": f"gourcers/{__version__}",
        }
        headers.update(self._auth.get_authorization_header())
        return headers

    async def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                headers=self._get_headers(),
                follow_redirects=True,
            )
        return self._client

    def _rate_limit_wait(self, response: httpx.Response, attempt: int) -> float | None:
        """Seconds to wait before retrying a rate limited response.

        Returns:
            Seconds to wait, or None if the response is not rate limited.

        Raises:
            RateLimitExceeded: If the primary limit is exhausted and retries
                are used up.
        """
        retry_after = response.headers.get("retry-after")
        if retry_after:
            wait_seconds = parse_retry_after(retry_after)
            if wait_seconds is None:
                wait_seconds = self._backoff(attempt)
                logger.warning(
                    "Unreadable Retry-After %r, backing off %.0f seconds", retry_after, wait_seconds
                )
            else:
                logger.warning("Secondary rate limit hit. Retry after %.0f seconds", wait_seconds)
            return wait_seconds

        rate_limit = RateLimitInfo.from_headers(response.headers)
        if rate_limit and rate_limit.remaining == 0:
            if attempt >= self._max_retries:
                raise RateLimitExceeded(reset_at=rate_limit.reset)

            wait_seconds = max(int((rate_limit.reset - datetime.now(UTC)).total_seconds()) + 1, 1)
            logger.warning(
                "Primary rate limit exhausted. Waiting %d seconds until %s",
                wait_seconds,
                rate_limit.reset.isoformat(),
            )
            return wait_seconds

        return None

    def _backoff(self, attempt: int) -> float:
        return self.INITIAL_BACKOFF * (self.BACKOFF_MULTIPLIER**attempt)

    async def _do_request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """Execute an HTTP request, retrying transient failures.

        Args:
            method: HTTP method.
            path: API path or absolute URL (pagination links).
            **kwargs: Additional arguments passed to httpx.

        Returns:
            HTTP response. 403 and 404 responses are returned to the caller.

        Raises:
            GitHubHTTPError: On request failure after retries.
            RateLimitExceeded: If rate limit exceeded.
        """
        client = await self._ensure_client()

        for attempt in range(self._max_retries + 1):
            logger.debug("%s %s (attempt %d)", method, path, attempt + 1)
            last_attempt = attempt >= self._max_retries
            if attempt:
                self.usage.retries += 1
            self.usage.requests += 1

            try:
                response = await client.request(method, path, **kwargs)
            except (httpx.TimeoutException, httpx.NetworkError) as e:
                logger.warning("%s for %s %s: %s", type(e).__name__, method, path, e)
                if last_attempt:
                    raise GitHubHTTPError(f"Request failed: {e}") from e
                await asyncio.sleep(self._backoff(attempt))
                continue

            rate_limit = RateLimitInfo.from_headers(response.headers)
            if rate_limit is not None:
                self.usage.rate_limit = rate_limit

            if response.status_code in (403, 429):
                wait_seconds = self._rate_limit_wait(response, attempt)
                if wait_seconds is not None and not last_attempt:
                    self.usage.record_wait(wait_seconds)
                    await asyncio.sleep(wait_seconds)
                    continue

            if 500 <= response.status_code < 600:
                logger.warning("Server error %d for %s %s", response.status_code, method, path)
                if last_attempt:
                    break
                await asyncio.sleep(self._backoff(attempt))
                continue

            if response.status_code == 401:
                raise GitHubHTTPError("GitHub rejected the token (401 Unauthorized)")

            if 400 <= response.status_code < 500 and response.status_code not in (403, 404):
                logger.error(
                    "Client error %d for %s %s: %s",
                    response.status_code,
                    method,
                    path,
                    response.text,
                )
                raise GitHubHTTPError(f"{method} {path} failed with status {response.status_code}")

            return response

        raise GitHubHTTPError(f"Max retries ({self._max_retries}) exceeded for {method} {path}")

    async def request(self, method: str, path: str, **kwargs: Any) -> GitHubResponse:
        """Make an HTTP request to the GitHub API.

        Args:
            method: HTTP method (GET, POST, etc.).
            path: API path (e.g., "/user/repos") or absolute URL.
            **kwargs: Additional arguments passed to httpx (params, json, etc.).

        Returns:
            GitHubResponse with parsed data.
        """
        response = await self._do_request(method, path, **kwargs)

        data = None
        if response.content:
            try:
                data = response.json()
            except ValueError as e:
                logger.warning("Failed to parse JSON response: %s", e)

        return GitHubResponse(
            status_code=response.status_code,
            data=data,
            headers=response.headers,
            text=response.text,
        )

    async def get(self, path: str, **kwargs: Any) -> GitHubResponse:
        """Make a GET request."""
        return await self.request("GET", path, **kwargs)

    async def close(self) -> None:
        """Close the HTTP client and cleanup resources."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "GitHubClient":
        await self._ensure_client()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
