"""A live watch stream and its single reader."""

from __future__ import annotations

import threading
from types import TracebackType
from typing import Generic

import httpx
import structlog

from kube_stream_client.errors import KubeClientError, StreamClosed, Stopped
from kube_stream_client.models import ResourceT, WatchEvent, scrub_sensitive_values
from kube_stream_client.transport import iter_body
from kube_stream_client.watch.decoder import MAX_RECORD_BYTES, LineReader, WatchEventDecoder

log = structlog.get_logger()


class WatchSession(Generic[ResourceT]):
    """Owns one streaming response and yields its events in server order.

    ``next`` must only be called by the task that owns the session. ``stop``
    may be called from any thread. Once ``next`` raises, the session is closed:
    later calls raise :class:`StreamClosed` (or :class:`Stopped` after ``stop``)
    without touching the network, and the caller re-opens the watch.
    """

    def __init__(
        self,
        response: httpx.Response,
        decoder: WatchEventDecoder[ResourceT],
        *,
        path: str,
        resource_version: str | None = None,
        max_record_bytes: int = MAX_RECORD_BYTES,
    ) -> None:
        self._response = response
        self._reader = LineReader(iter_body(response), max_record_bytes)
        self._decoder = decoder
        self._path = path
        self._resource_version = resource_version
        self._lock = threading.Lock()
        self._stopped = False
        self._closed = False

    @property
    def path(self) -> str:
        return self._path

    @property
    def resource_version(self) -> str | None:
        """The resource version this session started from."""
        return self._resource_version

    @property
    def stopped(self) -> bool:
        with self._lock:
            return self._stopped

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    def next(self) -> WatchEvent[ResourceT]:
        """Block until the next event arrives.

        Raises:
            Stopped: ``stop`` was called before or during this call.
            StreamClosed: The server ended the stream, or the session is already closed.
            TransportTimeout: The read timed out.
            TransportError: Any other read failure.
            MalformedRecord: A record could not be decoded.
        """
        with self._lock:
            if self._stopped:
                raise Stopped()
            if self._closed:
                raise StreamClosed("Watch session is closed; re-open the watch")

        try:
            line = self._read_record()
            if line is None:
                raise StreamClosed()
            event = self._decoder.decode(line)
        except KubeClientError as exc:
            self._close()
            if self.stopped:
                raise Stopped() from exc
            log.info(
                "watch_session_ended",
                path=self._path,
                reason=str(exc.reason),
                error=scrub_sensitive_values(str(exc))[:300],
            )
            raise

        if self.stopped:
            raise Stopped()
        return event

    def _read_record(self) -> bytes | None:
        # Blank lines are keep-alives, not records.
        while True:
            line = self._reader.read_line()
            if line is None or line.strip():
                return line

    def stop(self) -> None:
        """Stop the session. Idempotent; safe to call from another thread."""
        with self._lock:
            if self._stopped:
                return
            self._stopped = True
        log.info("watch_session_stopped", path=self._path)
        self._close()

    def close(self) -> None:
        self.stop()

    def _close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        try:
            self._response.close()
        except (httpx.HTTPError, httpx.StreamError, OSError) as exc:
            # Interrupting a read from another thread can fail inside httpx; the session is closed regardless.
            log.debug("watch_response_close_failed", path=self._path, error=str(exc))

    def __enter__(self) -> WatchSession[ResourceT]:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.stop()
