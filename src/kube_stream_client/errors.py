"""Error taxonomy for reads, watch initiation, and watch stream termination."""

from __future__ import annotations

from enum import StrEnum


class TerminationReason(StrEnum):
    """Why a request or watch session ended without producing a result."""

    OPEN_FAILED = "open_failed"
    EXPIRED = "expired"
    TRANSPORT_TIMEOUT = "transport_timeout"
    STREAM_CLOSED = "stream_closed"
    MALFORMED_RECORD = "malformed_record"
    TRANSPORT_ERROR = "transport_error"
    STOPPED = "stopped"


class KubeClientError(Exception):
    """Base class for every error raised by this package.

    ``recoverable`` tells a watch caller whether re-opening the watch from the
    last observed resource version is a sensible next step.
    """

    reason: TerminationReason | None = None
    recoverable: bool = False


class ApiError(KubeClientError):
    """The API server answered a plain read with a non-success status."""

    def __init__(self, status: int, body: str, message: str | None = None) -> None:
        self.status = status
        self.body = body
        super().__init__(message or f"API request failed with status {status}: {body[:200]}")

    @property
    def expired(self) -> bool:
        """True when the server reports the requested resource version is gone (HTTP 410)."""
        return self.status == 410


class InvalidResponse(ApiError):
    """The server answered with a success status but the body is not the expected object."""

    def __init__(self, status: int, body: str, expected: str) -> None:
        self.expected = expected
        super().__init__(status, body, f"Invalid {expected} response (status {status}): {body[:200]}")


class OpenError(ApiError):
    """Watch initiation was rejected by the server, or its pre-read failed."""

    def __init__(self, status: int, body: str, path: str | None = None) -> None:
        self.path = path
        where = f" for {path}" if path else ""
        super().__init__(status, body, f"Failed to open watch{where}: status {status}: {body[:200]}")
        self.reason = TerminationReason.EXPIRED if self.expired else TerminationReason.OPEN_FAILED


class TransportError(KubeClientError):
    """Connection, TLS, DNS, or read failure below the HTTP layer."""

    reason = TerminationReason.TRANSPORT_ERROR
    recoverable = True

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        self.cause = cause
        super().__init__(message)


class TransportTimeout(TransportError):
    """The transport gave up waiting for the server."""

    reason = TerminationReason.TRANSPORT_TIMEOUT
    recoverable = True


class StreamClosed(KubeClientError):
    """The server ended the watch stream cleanly, or the session is already closed."""

    reason = TerminationReason.STREAM_CLOSED
    recoverable = True

    def __init__(self, message: str = "Stream closed") -> None:
        super().__init__(message)


class MalformedRecord(KubeClientError):
    """A record was read but could not be decoded into a watch event."""

    reason = TerminationReason.MALFORMED_RECORD
    recoverable = True

    def __init__(self, raw: str, cause: BaseException | str) -> None:
        self.raw = raw
        self.cause = cause
        super().__init__(f"Failed to parse event: {cause}\n{raw}")


class Stopped(KubeClientError):
    """The watch session was stopped by its owner."""

    reason = TerminationReason.STOPPED

    def __init__(self, message: str = "Watcher has been stopped") -> None:
        super().__init__(message)
