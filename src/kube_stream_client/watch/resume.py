"""Deciding where and whether to resume a watch after it ends."""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

import structlog

from kube_stream_client.config import WatchSettings
from kube_stream_client.errors import (
    ApiError,
    MalformedRecord,
    StreamClosed,
    Stopped,
    TransportError,
    TransportTimeout,
)
from kube_stream_client.models import WatchEvent

log = structlog.get_logger()


class ResumeAction(StrEnum):
    RESUME = "resume"
    RELIST = "relist"
    STOP = "stop"


@dataclass(frozen=True)
class ResumeDecision:
    """What the caller should do next.

    RESUME: wait ``delay`` seconds, then open a watch at ``resource_version``
    (None means let the watch read the current version first).
    RELIST: the history is gone; do a full read before watching again.
    STOP: stop following. ``resource_version`` is set when the cursor is
    still valid, e.g. after too many transport errors in a row.
    """

    action: ResumeAction
    resource_version: str | None = None
    delay: float = 0.0


class ResumptionPolicy:
    """Tracks the resumption cursor for one watch target and classifies terminations.

    Resource versions are opaque, so "older" is judged only by delivery order:
    a BOOKMARK carrying a version that was already superseded by a later event
    never moves the cursor back. Performs no I/O.
    """

    def __init__(
        self,
        resource_version: str | None = None,
        *,
        backoff_base: float = 1.0,
        backoff_max: float = 30.0,
        max_consecutive_failures: int | None = None,
        history_size: int = 1024,
    ) -> None:
        self._backoff_base = backoff_base
        self._backoff_max = backoff_max
        self._max_consecutive_failures = max_consecutive_failures
        self._history_size = history_size
        self._history: OrderedDict[str, None] = OrderedDict()
        self._cursor: str | None = None
        self._consecutive_failures = 0
        if resource_version is not None:
            self._advance(resource_version)

    @classmethod
    def from_settings(cls, settings: WatchSettings, resource_version: str | None = None) -> ResumptionPolicy:
        return cls(
            resource_version,
            backoff_base=settings.backoff_base,
            backoff_max=settings.backoff_max,
            max_consecutive_failures=settings.max_consecutive_failures,
        )

    @property
    def resource_version(self) -> str | None:
        return self._cursor

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    def observe(self, event: WatchEvent[Any]) -> bool:
        """Record a successfully decoded event. Returns True when the cursor moved."""
        if event.is_error:
            return False
        resource_version = event.resource_version
        if not resource_version:
            return False
        self._consecutive_failures = 0
        if event.is_bookmark and resource_version in self._history and resource_version != self._cursor:
            log.debug("stale_bookmark_ignored", resource_version=resource_version, cursor=self._cursor)
            return False
        self._advance(resource_version)
        return True

    def decide(self, error: BaseException) -> ResumeDecision:
        """Classify a termination raised by opening or reading a watch."""
        if isinstance(error, Stopped):
            return ResumeDecision(ResumeAction.STOP)
        if isinstance(error, ApiError):
            # Covers OpenError from the pre-read and from the watch request itself.
            if error.expired:
                return self._relist("expired")
            return ResumeDecision(ResumeAction.STOP)
        if isinstance(error, (TransportTimeout, StreamClosed, MalformedRecord)):
            return self._resume()
        if isinstance(error, TransportError):
            # The cursor is still valid; only a 410 means history is gone.
            limit = self._max_consecutive_failures
            if limit is not None and self._consecutive_failures + 1 >= limit:
                log.error(
                    "watch_retries_exhausted",
                    failures=self._consecutive_failures + 1,
                    cursor=self._cursor,
                )
                return ResumeDecision(ResumeAction.STOP, self._cursor)
            return self._resume()
        return ResumeDecision(ResumeAction.STOP)

    def decide_for_event(self, event: WatchEvent[Any]) -> ResumeDecision | None:
        """Classify an ERROR event delivered in-band. Returns None for any other event."""
        status = event.status
        if status is None:
            return None
        if status.is_expired:
            return self._relist("expired")
        return self._resume()

    def reset(self, resource_version: str | None) -> None:
        """Restart tracking from the version returned by a full read."""
        self._history.clear()
        self._cursor = None
        self._consecutive_failures = 0
        if resource_version is not None:
            self._advance(resource_version)

    def _advance(self, resource_version: str) -> None:
        self._cursor = resource_version
        self._history[resource_version] = None
        self._history.move_to_end(resource_version)
        while len(self._history) > self._history_size:
            self._history.popitem(last=False)

    def _resume(self) -> ResumeDecision:
        self._consecutive_failures += 1
        delay = min(self._backoff_base * (2 ** (self._consecutive_failures - 1)), self._backoff_max)
        return ResumeDecision(ResumeAction.RESUME, self._cursor, delay)

    def _relist(self, reason: str) -> ResumeDecision:
        log.warning("watch_relist_required", reason=reason, cursor=self._cursor)
        self._history.clear()
        self._cursor = None
        self._consecutive_failures = 0
        return ResumeDecision(ResumeAction.RELIST)
