"""
Error types and the collaborator failure taxonomy.

Nothing in the personalization layer is fatal to page rendering: collaborator
failures are caught at the call site, classified, logged and turned into an
empty result. ``safe_fetch`` is the single place that does this.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Tuple, TypeVar

import httpx
from loguru import logger

T = TypeVar("T")


class ImpactConnectError(Exception):
    """Base exception for the personalization layer."""
    pass


class ContentstackError(ImpactConnectError):
    """Raised when the content delivery API returns an error response."""

    def __init__(self, message: str, status_code: int = 0):
        super().__init__(message)
        self.status_code = status_code


class PersonalizeError(ImpactConnectError):
    """Raised when the personalize edge API fails."""
    pass


class CollaboratorTimeout(ImpactConnectError):
    """Raised when a collaborator call exceeds its time budget."""
    pass


@dataclass
class CMSError:
    """Structured error for UI consumption."""
    type: str
    message: str
    retryable: bool
    status_code: Optional[int] = None


def is_transient(error: BaseException) -> bool:
    """Whether a failed CMS call is worth retrying."""
    if isinstance(error, ContentstackError):
        return error.status_code == 429 or error.status_code >= 500
    return isinstance(error, (httpx.TransportError, asyncio.TimeoutError))


def classify_error(error: BaseException) -> CMSError:
    """Classify an exception raised by a collaborator."""
    if isinstance(error, ContentstackError):
        if error.status_code == 404:
            return CMSError("not_found", "The requested content was not found.", False, 404)
        if error.status_code == 429:
            return CMSError("rate_limited", "Too many requests. Please try again in a moment.", True, 429)
        if error.status_code >= 500:
            return CMSError("server_error", "The content server is experiencing issues.", True, error.status_code)
        return CMSError(
            "unknown",
            str(error) or "An error occurred while fetching content.",
            True,
            error.status_code or None,
        )

    if isinstance(error, (CollaboratorTimeout, asyncio.TimeoutError, httpx.TimeoutException)):
        return CMSError("timeout", "The content server did not respond in time.", True)

    if isinstance(error, httpx.TransportError):
        return CMSError("network_error", "Unable to connect to the content server.", True)

    if isinstance(error, (ValueError, KeyError, TypeError)):
        return CMSError("invalid_response", f"Unexpected response shape: {error}", False)

    return CMSError("unknown", str(error) or "An unexpected error occurred.", True)


async def safe_fetch(
    fetch_fn: Callable[[], Awaitable[T]],
    fallback: Any = None,
    context: str = "",
    timeout: Optional[float] = None,
) -> Tuple[Optional[T], Optional[CMSError]]:
    """
    Await a collaborator call, returning ``(data, error)`` instead of raising.

    Args:
        fetch_fn: Zero-argument callable producing the awaitable
        fallback: Value returned as data when the call fails
        context: Tag used in the log line
        timeout: Seconds before the call is abandoned, None for no limit

    Returns:
        ``(data, None)`` on success, ``(fallback, CMSError)`` on failure
    """
    try:
        if timeout is None:
            data = await fetch_fn()
        else:
            try:
                data = await asyncio.wait_for(fetch_fn(), timeout=timeout)
            except asyncio.TimeoutError:
                raise CollaboratorTimeout(f"timed out after {timeout}s")
        return data, None
    except asyncio.CancelledError:
        raise
    except Exception as e:
        cms_error = classify_error(e)
        logger.error(
            f"[CMS Error]{f' {context}:' if context else ''} "
            f"type={cms_error.type} status={cms_error.status_code} message={cms_error.message} ({e!r})"
        )
        return fallback, cms_error
