"""Error taxonomy for repository content operations."""

import logging
import re
import time
from enum import Enum

import httpx

logger = logging.getLogger(__name__)

_OBSERVED_SHA_RE = re.compile(r"is at ([0-9a-f]{40})")


class Operation(str, Enum):
    """Kind of request being classified."""

    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class GitHubContentError(Exception):
    """Base class for all ghcontent errors.

    Args:
        message: Human-readable error description
        path: Repository path involved in the error, if any
        status_code: HTTP status returned by GitHub, if any
    """

    def __init__(
        self,
        message: str = "",
        *,
        path: str | None = None,
        status_code: int | None = None,
    ) -> None:
        self.path = path
        self.status_code = status_code
        super().__init__(message)

    def __str__(self) -> str:
        parts = [super().__str__()]
        if self.path is not None:
            parts.append(f"path={self.path!r}")
        if self.status_code is not None:
            parts.append(f"status={self.status_code}")
        return " | ".join(parts)


class NotFound(GitHubContentError):
    """Raised when nothing exists at the queried path."""


class Conflict(GitHubContentError):
    """Raised when a create targets a path that already holds an object."""


class RaceDetected(GitHubContentError):
    """Raised when the SHA presented for an update or delete is stale.

    Somebody else mutated the object between the caller's read and this
    write. Re-fetch the SHA and decide whether to retry or abort.

    Args:
        supplied_sha: SHA sent with the rejected write
        observed_sha: Current SHA reported by GitHub, when it says so
    """

    def __init__(
        self,
        message: str = "",
        *,
        path: str | None = None,
        status_code: int | None = None,
        supplied_sha: str | None = None,
        observed_sha: str | None = None,
    ) -> None:
        self.supplied_sha = supplied_sha
        self.observed_sha = observed_sha
        super().__init__(message, path=path, status_code=status_code)

    def __str__(self) -> str:
        base = super().__str__()
        if self.supplied_sha:
            base = f"{base} | supplied_sha={self.supplied_sha}"
        if self.observed_sha:
            base = f"{base} | observed_sha={self.observed_sha}"
        return base


class AuthorizationDenied(GitHubContentError):
    """Raised when the credential is invalid or lacks permission."""


class UnexpectedShape(GitHubContentError):
    """Raised when a path resolves to a different kind of entry than required.

    Args:
        expected: Kind the operation needed ("file" or "dir")
        actual: Kind GitHub returned
    """

    def __init__(
        self,
        message: str = "",
        *,
        path: str | None = None,
        status_code: int | None = None,
        expected: str | None = None,
        actual: str | None = None,
    ) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(message, path=path, status_code=status_code)


class TransientServiceError(GitHubContentError):
    """Raised for rate limiting, 5xx responses and transport failures.

    Args:
        retry_after: Seconds GitHub asked the caller to wait, if known
    """

    def __init__(
        self,
        message: str = "",
        *,
        path: str | None = None,
        status_code: int | None = None,
        retry_after: float | None = None,
    ) -> None:
        self.retry_after = retry_after
        super().__init__(message, path=path, status_code=status_code)


class MalformedResponse(GitHubContentError):
    """Raised when a response does not fit the contents API contract."""


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text.strip() or response.reason_phrase
    if isinstance(data, dict) and isinstance(data.get("message"), str):
        return data["message"]
    return response.reason_phrase


def _retry_after(response: httpx.Response) -> float | None:
    header = response.headers.get("Retry-After")
    if header is not None:
        try:
            return float(header)
        except ValueError:
            return None
    reset = response.headers.get("X-RateLimit-Reset")
    if reset is not None:
        try:
            return max(0.0, float(reset) - time.time())
        except ValueError:
            return None
    return None


def _is_rate_limited(response: httpx.Response, message: str) -> bool:
    if response.headers.get("X-RateLimit-Remaining") == "0":
        return True
    return "rate limit" in message.lower()


def error_from_response(
    response: httpx.Response,
    *,
    path: str,
    operation: Operation,
    supplied_sha: str | None = None,
) -> GitHubContentError:
    """
    Classify a non-success response into exactly one error kind.

    409 and 422 depend on the operation: for a create they mean the path is
    already taken, for an update or delete they mean the supplied SHA was
    rejected.

    Args:
        response: Response with a 4xx/5xx status
        path: Repository path the request targeted
        operation: What the request was trying to do
        supplied_sha: SHA sent with an update or delete

    Returns:
        The error to raise
    """
    status = response.status_code
    message = _error_message(response)
    logger.debug("Classifying %s failure for %s: %d %s", operation.value, path, status, message)

    if status == 404:
        return NotFound(message, path=path, status_code=status)
    if status == 401:
        return AuthorizationDenied(message, path=path, status_code=status)
    if status == 403:
        if _is_rate_limited(response, message):
            return TransientServiceError(
                message, path=path, status_code=status, retry_after=_retry_after(response)
            )
        return AuthorizationDenied(message, path=path, status_code=status)
    if status == 429 or status >= 500:
        return TransientServiceError(
            message, path=path, status_code=status, retry_after=_retry_after(response)
        )

    if status in (409, 422):
        # GitHub reports an occupied path as a 422 asking for the sha
        if operation is Operation.CREATE and (status == 409 or "sha" in message.lower()):
            return Conflict(message, path=path, status_code=status)
        if operation in (Operation.UPDATE, Operation.DELETE) and (
            status == 409 or "sha" in message.lower()
        ):
            match = _OBSERVED_SHA_RE.search(message)
            return RaceDetected(
                message,
                path=path,
                status_code=status,
                supplied_sha=supplied_sha,
                observed_sha=match.group(1) if match else None,
            )

    return MalformedResponse(
        f"Unexpected response {status}: {message}", path=path, status_code=status
    )
