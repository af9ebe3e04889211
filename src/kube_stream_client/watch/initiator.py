"""Opening watch sessions."""

from __future__ import annotations

from typing import Any

import structlog

from kube_stream_client.clients.rest import RestClient
from kube_stream_client.config import WatchSettings, get_watch_settings
from kube_stream_client.errors import ApiError, OpenError
from kube_stream_client.models import KubeObject, ObjectList, ResourceT, scrub_sensitive_values
from kube_stream_client.transport import read_body
from kube_stream_client.validation import validate_resource_version
from kube_stream_client.watch.decoder import WatchEventDecoder
from kube_stream_client.watch.session import WatchSession

log = structlog.get_logger()


def discover_resource_version(
    rest: RestClient,
    path: str,
    name: str | None,
    params: dict[str, Any] | None = None,
) -> str | None:
    """Read the object (or the collection when ``name`` is None) and return its resource version.

    Raises:
        OpenError: The read was rejected, e.g. the object does not exist.
        TransportError: The read never completed.
    """
    target = f"{path}/{name}" if name else path
    try:
        if name:
            resource_version = rest.get_model(target, KubeObject).resource_version
        else:
            resource_version = rest.get_model(target, ObjectList[KubeObject], params).resource_version
    except ApiError as exc:
        raise OpenError(exc.status, exc.body, target) from exc

    if resource_version is None:
        log.warning("resource_version_missing", path=target)
    return resource_version


def watch_params(
    resource_version: str | None,
    settings: WatchSettings,
    name: str | None = None,
    label_selector: str | None = None,
    field_selector: str | None = None,
) -> dict[str, Any]:
    """Query parameters for a streaming watch request."""
    selectors = [s for s in (field_selector, f"metadata.name={name}" if name else None) if s]
    return {
        "watch": "true",
        "resourceVersion": resource_version,
        "allowWatchBookmarks": "true" if settings.allow_bookmarks else None,
        "timeoutSeconds": settings.watch_timeout_seconds,
        "labelSelector": label_selector,
        "fieldSelector": ",".join(selectors) or None,
    }


def open_watch(
    rest: RestClient,
    path: str,
    name: str | None = None,
    resource_version: str | None = None,
    *,
    resource_type: type[ResourceT],
    settings: WatchSettings | None = None,
    label_selector: str | None = None,
    field_selector: str | None = None,
) -> WatchSession[ResourceT]:
    """Open a watch on ``path`` (a collection path) for one named object or the whole collection.

    When ``resource_version`` is None the object (or collection) is read first
    and the watch starts from the version that read returned. A failed read
    means no streaming request is made.

    Raises:
        OpenError: The pre-read or the watch request was rejected. ``expired``
            is True when the requested resource version is no longer available.
        TransportError: A request never completed.
    """
    validate_resource_version(resource_version)
    settings = settings or get_watch_settings()

    if resource_version is None:
        list_params = {"labelSelector": label_selector, "fieldSelector": field_selector}
        resource_version = discover_resource_version(rest, path, name, list_params)

    params = watch_params(resource_version, settings, name, label_selector, field_selector)
    response = rest.stream(path, params)
    if not response.is_success:
        body = read_body(response).decode("utf-8", errors="replace")
        log.error(
            "watch_open_failed",
            path=path,
            name=name,
            status=response.status_code,
            resource_version=resource_version,
            body=scrub_sensitive_values(body[:200]),
        )
        raise OpenError(response.status_code, body, path)

    log.info("watch_opened", path=path, name=name, resource_version=resource_version)
    return WatchSession(
        response,
        WatchEventDecoder(resource_type),
        path=path,
        resource_version=resource_version,
        max_record_bytes=settings.max_record_bytes,
    )
