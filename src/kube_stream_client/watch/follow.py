"""Following a watch target across disconnects."""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterator
from typing import Generic

import structlog

from kube_stream_client.clients.resources import ResourceClient
from kube_stream_client.errors import KubeClientError, Stopped
from kube_stream_client.models import ObjectList, ResourceT, WatchEvent, scrub_sensitive_values
from kube_stream_client.watch.resume import ResumeAction, ResumeDecision, ResumptionPolicy
from kube_stream_client.watch.session import WatchSession

log = structlog.get_logger()


class WatchFollower(Generic[ResourceT]):
    """Yields events for one object or collection, re-opening the watch as the policy directs.

    Iterate from one thread; ``stop`` may be called from any other. ERROR events
    are consumed here and turned into a resume or relist. Events missed while
    the history was gone are never replayed, so after a relist the optional
    ``on_relist`` callback receives the full read (the object, or the
    ``ObjectList`` for a collection) and the caller rebuilds its state from it
    before events continue.
    """

    def __init__(
        self,
        client: ResourceClient[ResourceT],
        name: str | None = None,
        *,
        resource_version: str | None = None,
        policy: ResumptionPolicy | None = None,
        label_selector: str | None = None,
        field_selector: str | None = None,
        on_relist: Callable[[ResourceT | ObjectList[ResourceT]], None] | None = None,
    ) -> None:
        self._client = client
        self._name = name
        self._policy = policy or ResumptionPolicy.from_settings(client.settings, resource_version)
        self._label_selector = label_selector
        self._field_selector = field_selector
        self._on_relist = on_relist
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._session: WatchSession[ResourceT] | None = None
        self._relist_pending = False

    @property
    def policy(self) -> ResumptionPolicy:
        return self._policy

    def stop(self) -> None:
        """End iteration and interrupt the active session, if any."""
        self._stop_event.set()
        with self._lock:
            session = self._session
        if session is not None:
            session.stop()

    def __iter__(self) -> Iterator[WatchEvent[ResourceT]]:
        while not self._stop_event.is_set():
            try:
                if self._relist_pending:
                    self._relist()
                session = self._open()
            except KubeClientError as exc:
                if not self._handle_failure(exc):
                    return
                continue

            with self._lock:
                self._session = session
            try:
                # stop() may have run before the session was published.
                if self._stop_event.is_set():
                    return
                yield from self._consume(session)
            except KubeClientError as exc:
                if not self._handle_failure(exc):
                    return
            finally:
                with self._lock:
                    self._session = None
                session.stop()

    def _open(self) -> WatchSession[ResourceT]:
        resource_version = self._policy.resource_version
        if self._name is not None:
            return self._client.watch(self._name, resource_version)
        return self._client.watch_list(resource_version, self._label_selector, self._field_selector)

    def _consume(self, session: WatchSession[ResourceT]) -> Iterator[WatchEvent[ResourceT]]:
        while True:
            event = session.next()
            decision = self._policy.decide_for_event(event)
            if decision is not None:
                status = event.status
                log.warning(
                    "watch_error_event",
                    path=session.path,
                    code=status.code if status else None,
                    reason=status.reason if status else None,
                    message=scrub_sensitive_values(status.message or "") if status else None,
                )
                self._apply(decision)
                return
            self._policy.observe(event)
            yield event

    def _handle_failure(self, error: KubeClientError) -> bool:
        """Apply the policy to a failure. Returns False when following must end."""
        decision = self._policy.decide(error)
        if decision.action is ResumeAction.STOP:
            if isinstance(error, Stopped) or self._stop_event.is_set():
                return False
            log.error("watch_follow_failed", reason=str(error.reason), error=scrub_sensitive_values(str(error)))
            raise error
        self._apply(decision)
        return True

    def _apply(self, decision: ResumeDecision) -> None:
        if decision.action is ResumeAction.RELIST:
            self._relist_pending = True
            return
        if decision.delay > 0:
            log.info(
                "watch_resume_scheduled",
                resource_version=decision.resource_version,
                delay=decision.delay,
            )
            self._stop_event.wait(decision.delay)

    def _relist(self) -> None:
        snapshot = self._client.snapshot(self._name, self._label_selector, self._field_selector)
        resource_version = snapshot.resource_version
        if resource_version is None:
            log.warning("resource_version_missing", path=self._client.collection_path(), name=self._name)
        self._policy.reset(resource_version)
        self._relist_pending = False
        log.info("watch_relisted", resource_version=resource_version)
        if self._on_relist is not None:
            self._on_relist(snapshot)

