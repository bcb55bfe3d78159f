"""Authenticated transport for the GitHub REST API."""

import logging
import os
import subprocess
from typing import Any

import httpx
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .errors import GitHubContentError, MalformedResponse, TransientServiceError

logger = logging.getLogger(__name__)

# Retry configuration
DEFAULT_MAX_RETRIES = 3
DEFAULT_MIN_WAIT = 1  # seconds
DEFAULT_MAX_WAIT = 10  # seconds

# Failures after which a request may have reached GitHub
RETRYABLE_EXCEPTIONS = (
    httpx.ConnectError,
    httpx.ConnectTimeout,
    httpx.ReadTimeout,
    httpx.WriteTimeout,
    httpx.PoolTimeout,
    httpx.NetworkError,
)

# Failures where the request never left the client, safe to resend for writes
UNSENT_EXCEPTIONS = (
    httpx.ConnectError,
    httpx.ConnectTimeout,
    httpx.PoolTimeout,
)

RETRYABLE_STATUSES = frozenset({429, 500, 502, 503, 504})
IDEMPOTENT_METHODS = frozenset({"GET", "HEAD"})


class _RetryableStatus(Exception):
    """Carries a retryable response out of a tenacity attempt."""

    def __init__(self, response: httpx.Response) -> None:
        self.response = response
        super().__init__(f"Retryable status {response.status_code}")


def _request_error(message: str, error: httpx.RequestError) -> GitHubContentError:
    """Classify an httpx request failure."""
    if isinstance(error, httpx.TransportError):
        return TransientServiceError(message)
    # Redirect loops and undecodable bodies: the server answered, but not usably
    return MalformedResponse(message)


def get_token_from_gh_cli() -> str | None:
    """
    Get GitHub token from gh cli.

    Returns:
        Token string or None if gh cli not available/authenticated
    """
    try:
        result = subprocess.run(
            ["gh", "auth", "token"],
            capture_output=True,
            text=True,
            timeout=5,
        )
        if result.returncode == 0 and result.stdout.strip():
            logger.info("Using token from gh cli")
            return result.stdout.strip()
    except (subprocess.TimeoutExpired, FileNotFoundError) as e:
        logger.debug("gh cli not available: %s", e)
    return None


def get_token(token: str | None = None, use_gh_cli: bool = False) -> str | None:
    """
    Get GitHub token from various sources.

    Priority:
    1. Explicitly provided token
    2. Environment variable GH_TOKEN / GITHUB_TOKEN
    3. gh cli (`gh auth token`) - only if use_gh_cli=True

    Args:
        token: Explicitly provided token
        use_gh_cli: Whether to use gh cli credentials (requires user consent)

    Returns:
        GitHub token or None
    """
    if token:
        logger.debug("Using explicitly provided token")
        return token

    env_token = os.environ.get("GH_TOKEN") or os.environ.get("GITHUB_TOKEN")
    if env_token:
        logger.info("Using token from environment variable")
        return env_token

    if use_gh_cli:
        return get_token_from_gh_cli()

    return None


def create_retry_decorator(
    max_retries: int = DEFAULT_MAX_RETRIES,
    retry_on: tuple[type[BaseException], ...] = RETRYABLE_EXCEPTIONS,
    min_wait: float = DEFAULT_MIN_WAIT,
    max_wait: float = DEFAULT_MAX_WAIT,
):
    """Create a retry decorator with specified max retries."""
    return retry(
        retry=retry_if_exception_type(retry_on),
        stop=stop_after_attempt(max_retries),
        wait=wait_exponential(multiplier=1, min=min_wait, max=max_wait),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )


class GitHubTransport:
    """Async GitHub REST transport with retry support.

    Responses are returned whatever their status code; interpreting them
    is up to the caller. Only transport failures raise.
    """

    BASE_URL = "https://api.github.com"

    def __init__(
        self,
        token: str | None = None,
        base_url: str | None = None,
        timeout: float = 30.0,
        max_retries: int = DEFAULT_MAX_RETRIES,
        min_wait: float = DEFAULT_MIN_WAIT,
        max_wait: float = DEFAULT_MAX_WAIT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize transport.

        Args:
            token: Resolved GitHub token, or None for anonymous access
            base_url: Custom base URL (defaults to GitHub API)
            timeout: Request timeout in seconds
            max_retries: Maximum number of attempts per request (default: 3)
            min_wait: Minimum backoff between attempts in seconds
            max_wait: Maximum backoff between attempts in seconds
            transport: httpx transport override (e.g. httpx.MockTransport)
        """
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.min_wait = min_wait
        self.max_wait = max_wait
        self._transport = transport
        self.headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "ghcontent-client",
        }

        if token:
            self.headers["Authorization"] = f"token {token}"
            logger.debug("GitHub transport initialized with token")
        else:
            logger.warning("GitHub transport initialized without token (rate limited, read only)")
        logger.info("GitHub transport ready, base_url=%s, max_retries=%d", self.base_url, max_retries)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            headers=self.headers,
            follow_redirects=True,
            transport=self._transport,
        )

    async def request(self, method: str, endpoint: str, **kwargs: Any) -> httpx.Response:
        """
        Make HTTP request to GitHub API with retry.

        GET requests are retried on network errors and on 429/5xx. Writes are
        only resent when the previous attempt never reached the server.

        Args:
            method: HTTP method
            endpoint: Path below the base URL
            **kwargs: Passed to httpx.AsyncClient.request (params, json, ...)

        Returns:
            The final response, of any status

        Raises:
            TransientServiceError: If the request failed at the transport level
            MalformedResponse: If redirects looped or the body could not be decoded
        """
        method = method.upper()
        url = f"{self.base_url}{endpoint}"
        idempotent = method in IDEMPOTENT_METHODS
        retry_on = (*RETRYABLE_EXCEPTIONS, _RetryableStatus) if idempotent else UNSENT_EXCEPTIONS

        @create_retry_decorator(self.max_retries, retry_on, self.min_wait, self.max_wait)
        async def do_request() -> httpx.Response:
            logger.debug("Request: %s %s", method, url)
            async with self._client() as client:
                response = await client.request(method, url, **kwargs)
            logger.debug(
                "Response: %s %s (status=%d)",
                method,
                endpoint,
                response.status_code,
            )
            if idempotent and response.status_code in RETRYABLE_STATUSES:
                logger.warning("Server error %d, will retry", response.status_code)
                raise _RetryableStatus(response)
            return response

        try:
            return await do_request()
        except _RetryableStatus as e:
            return e.response
        except httpx.RequestError as e:
            logger.error("Request failed: %s %s: %s", method, endpoint, e)
            raise _request_error(f"{method} {endpoint} failed: {e}", e) from e

    async def download(self, url: str) -> httpx.Response:
        """Download raw content from URL with retry, returning the response as is."""

        @create_retry_decorator(self.max_retries, min_wait=self.min_wait, max_wait=self.max_wait)
        async def do_download() -> httpx.Response:
            logger.debug("Downloading: %s", url)
            async with self._client() as client:
                return await client.get(url, headers={"Accept": "application/vnd.github.raw"})

        try:
            return await do_download()
        except httpx.RequestError as e:
            logger.error("Download failed: %s: %s", url, e)
            raise _request_error(f"Download of {url} failed: {e}", e) from e
