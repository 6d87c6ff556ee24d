"""Typed errors raised by the geocoding subsystem.

Every failure surfaced to callers is a ``BmltGeoError`` subclass carrying a
kind, a message, an optional HTTP status, the originating exception and an
optional context map. The set of subclasses is closed: transport, retry and
normalisation code only ever raise the variants defined here.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, Optional


class ErrorKind(str, Enum):
    TIMEOUT = "TimeoutError"
    NETWORK = "NetworkError"
    RATE_LIMIT = "RateLimitError"
    GEOCODING = "GeocodingError"
    VALIDATION = "ValidationError"
    CONFIGURATION = "ConfigurationError"


_RETRYABLE = frozenset({ErrorKind.TIMEOUT, ErrorKind.NETWORK, ErrorKind.RATE_LIMIT})

_USER_MESSAGES = {
    ErrorKind.TIMEOUT: "The request timed out. Please try again later.",
    ErrorKind.NETWORK: "Unable to reach the geocoding service. Please check your connection and try again.",
    ErrorKind.RATE_LIMIT: "Too many requests. Please wait a moment and try again.",
    ErrorKind.GEOCODING: "Unable to find the specified address. Please check the address and try again.",
    ErrorKind.VALIDATION: "Invalid input provided. Please check your parameters and try again.",
    ErrorKind.CONFIGURATION: "Invalid configuration. Please check your settings.",
}


@dataclass(eq=False)
class BmltGeoError(Exception):
    """Base error for the geocoding subsystem."""

    kind: ClassVar[ErrorKind]

    message: str
    status_code: Optional[int] = None
    cause: Optional[BaseException] = field(default=None, repr=False)
    context: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        super().__init__(self.message)
        if self.cause is not None:
            self.__cause__ = self.cause

    def __str__(self) -> str:
        return self.message

    def is_kind(self, kind: ErrorKind) -> bool:
        return self.kind is kind

    def is_retryable(self) -> bool:
        """Whether retrying the whole client call may succeed."""
        return self.kind in _RETRYABLE

    def is_client_error(self) -> bool:
        return self.status_code is not None and 400 <= self.status_code < 500

    def is_server_error(self) -> bool:
        return self.status_code is not None and self.status_code >= 500

    def user_message(self) -> str:
        return _USER_MESSAGES.get(self.kind, self.message or "An unexpected error occurred.")

    def to_dict(self) -> Dict[str, Any]:
        """Serialisable representation used for structured logs and CLI output."""
        payload: Dict[str, Any] = {
            "kind": self.kind.value,
            "message": self.message,
            "status_code": self.status_code,
            "context": dict(self.context),
        }
        if self.cause is not None:
            payload["cause"] = {"type": type(self.cause).__name__, "message": str(self.cause)}
        return payload


@dataclass(eq=False)
class RequestTimeoutError(BmltGeoError):
    """The caller-side deadline elapsed before the provider answered."""

    kind: ClassVar[ErrorKind] = ErrorKind.TIMEOUT


@dataclass(eq=False)
class NetworkError(BmltGeoError):
    """DNS, connection or other transport-level failure."""

    kind: ClassVar[ErrorKind] = ErrorKind.NETWORK


@dataclass(eq=False)
class RateLimitError(BmltGeoError):
    """The provider answered HTTP 429."""

    kind: ClassVar[ErrorKind] = ErrorKind.RATE_LIMIT


@dataclass(eq=False)
class GeocodingError(BmltGeoError):
    """HTTP error status, malformed payload, empty result set or bad coordinates."""

    kind: ClassVar[ErrorKind] = ErrorKind.GEOCODING


@dataclass(eq=False)
class ValidationError(BmltGeoError):
    """Invalid caller input."""

    kind: ClassVar[ErrorKind] = ErrorKind.VALIDATION


@dataclass(eq=False)
class ConfigurationError(BmltGeoError):
    kind: ClassVar[ErrorKind] = ErrorKind.CONFIGURATION


def wrap_error(error: BaseException, context: str, **extra: Any) -> BmltGeoError:
    """Prefix ``error`` with ``context``, keeping its kind when it is already typed."""
    message = f"{context}: {error}"
    if isinstance(error, BmltGeoError):
        return type(error)(
            message,
            status_code=error.status_code,
            cause=error.cause or error,
            context={**error.context, **extra},
        )
    return GeocodingError(message, cause=error, context=extra)
