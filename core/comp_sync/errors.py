"""
Error taxonomy for comp synchronization.

Service adapters raise ``CompServiceError`` subclasses; the engine turns
them into ``ErrorKind`` values and a single user-visible ``ErrorBanner``
per comp section. Cancellation is never surfaced.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from utils.logging_config import get_logger

logger = get_logger(__name__)


# =============================================================================
# Constants
# =============================================================================

DEFAULT_AUTO_CLEAR_SECONDS = 8.0

TRANSPORT_MESSAGE = "Unable to reach the comp search service. Check your connection and retry."
AUTHORIZATION_MESSAGE = "Your session has expired. Please refresh the page and sign in again."
SERVER_FALLBACK_MESSAGE = "The comp search could not be completed. Please try again."
TOGGLE_MESSAGE = "Could not update comp inclusion. Your change was reverted."


class ErrorKind(Enum):
    """Classification of a failed remote call."""
    CANCELLED = "cancelled"
    TRANSPORT = "transport"
    AUTHORIZATION = "authorization"
    SERVER = "server"
    TOGGLE = "toggle"


# =============================================================================
# Exceptions
# =============================================================================

class CompServiceError(Exception):
    """Base class for failures reported by a comp service adapter."""

    kind = ErrorKind.SERVER

    def __init__(self, message: str = "", status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class TransportError(CompServiceError):
    """Network unreachable, connection reset or timed out."""

    kind = ErrorKind.TRANSPORT


class AuthorizationError(CompServiceError):
    """Session expired or rejected (HTTP 401)."""

    kind = ErrorKind.AUTHORIZATION


class ServerError(CompServiceError):
    """Server-side validation or processing failure."""

    kind = ErrorKind.SERVER


def classify_exception(exc: BaseException) -> ErrorKind:
    """Map an exception raised by a remote call to an ``ErrorKind``."""
    if isinstance(exc, asyncio.CancelledError):
        return ErrorKind.CANCELLED
    if isinstance(exc, CompServiceError):
        return exc.kind
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError, ConnectionError, OSError)):
        return ErrorKind.TRANSPORT
    return ErrorKind.SERVER


def user_message(kind: ErrorKind, exc: Optional[BaseException] = None) -> str:
    """User-facing text for a failure."""
    if kind is ErrorKind.TRANSPORT:
        return TRANSPORT_MESSAGE
    if kind is ErrorKind.AUTHORIZATION:
        return AUTHORIZATION_MESSAGE
    if kind is ErrorKind.TOGGLE:
        return TOGGLE_MESSAGE
    if isinstance(exc, CompServiceError) and exc.message:
        return exc.message
    return SERVER_FALLBACK_MESSAGE


# =============================================================================
# Banner
# =============================================================================

@dataclass(frozen=True)
class ErrorBanner:
    """
    Inline error shown above a comp section.

    Authorization failures are never retryable: retrying with an expired
    session repeats the failure.
    """
    kind: ErrorKind
    message: str
    retryable: bool

    @classmethod
    def for_failure(cls, kind: ErrorKind, message: str) -> "ErrorBanner":
        return cls(
            kind=kind,
            message=message,
            retryable=kind in (ErrorKind.TRANSPORT, ErrorKind.SERVER),
        )


class BannerController:
    """
    Holds the current banner of one comp section.

    A shown banner clears itself after ``auto_clear_seconds``; ``dismiss``
    clears it immediately. Requires a running event loop for the timer.
    """

    def __init__(
        self,
        auto_clear_seconds: float = DEFAULT_AUTO_CLEAR_SECONDS,
        on_change: Optional[Callable[[Optional[ErrorBanner]], None]] = None,
    ):
        self._auto_clear_seconds = auto_clear_seconds
        self._on_change = on_change
        self._current: Optional[ErrorBanner] = None
        self._timer: Optional[asyncio.TimerHandle] = None

    @property
    def current(self) -> Optional[ErrorBanner]:
        return self._current

    def show(self, banner: ErrorBanner) -> None:
        """Replace the current banner and restart the auto-clear timer."""
        self._cancel_timer()
        self._current = banner
        logger.warning("Comp error surfaced (%s): %s", banner.kind.value, banner.message)
        if self._auto_clear_seconds > 0:
            loop = asyncio.get_running_loop()
            self._timer = loop.call_later(self._auto_clear_seconds, self._expire)
        self._notify()

    def dismiss(self) -> None:
        """Clear the banner now."""
        if self._current is None:
            return
        self._cancel_timer()
        self._current = None
        self._notify()

    def _expire(self) -> None:
        self._timer = None
        self._current = None
        logger.debug("Comp error banner auto-cleared")
        self._notify()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change(self._current)

    def close(self) -> None:
        self._cancel_timer()
