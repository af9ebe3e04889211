"""Typed resource clients: kind metadata, request paths, get/list/watch."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic

import structlog

from kube_stream_client.clients.rest import RestClient
from kube_stream_client.config import WatchSettings, get_watch_settings
from kube_stream_client.models import (
    ConfigMap,
    Event,
    Namespace,
    Node,
    ObjectList,
    Pod,
    ResourceT,
    Secret,
    Service,
)
from kube_stream_client.validation import validate_namespace, validate_resource_name
from kube_stream_client.watch.initiator import open_watch
from kube_stream_client.watch.session import WatchSession

log = structlog.get_logger()


@dataclass(frozen=True)
class ResourceKind(Generic[ResourceT]):
    """Static metadata for one resource kind."""

    kind: str
    plural: str
    namespaced: bool
    model: type[ResourceT]
    api_prefix: str = "/api/v1"
    short_names: tuple[str, ...] = ()


PODS = ResourceKind("Pod", "pods", True, Pod, short_names=("po",))
SERVICES = ResourceKind("Service", "services", True, Service, short_names=("svc",))
CONFIG_MAPS = ResourceKind("ConfigMap", "configmaps", True, ConfigMap, short_names=("cm",))
SECRETS = ResourceKind("Secret", "secrets", True, Secret)
EVENTS = ResourceKind("Event", "events", True, Event, short_names=("ev",))
NAMESPACES = ResourceKind("Namespace", "namespaces", False, Namespace, short_names=("ns",))
NODES = ResourceKind("Node", "nodes", False, Node, short_names=("no",))

CORE_V1_KINDS: dict[str, ResourceKind[Any]] = {
    k.plural: k for k in (PODS, SERVICES, CONFIG_MAPS, SECRETS, EVENTS, NAMESPACES, NODES)
}


def lookup_kind(name: str) -> ResourceKind[Any]:
    """Find a kind by plural, kind, singular, or short name (case-insensitive)."""
    wanted = name.lower()
    for kind in CORE_V1_KINDS.values():
        if wanted in (kind.plural, kind.kind.lower(), *kind.short_names):
            return kind
    valid = ", ".join(sorted(CORE_V1_KINDS))
    msg = f"Unknown resource kind {name!r}. Valid kinds: {valid}"
    raise ValueError(msg)


class ResourceClient(Generic[ResourceT]):
    """Reads and watches one resource kind, optionally scoped to a namespace.

    A namespaced kind without a namespace addresses every namespace; that is
    only valid for collection operations (``list`` and ``watch_list``).
    """

    def __init__(
        self,
        rest: RestClient,
        kind: ResourceKind[ResourceT],
        namespace: str | None = None,
        settings: WatchSettings | None = None,
    ) -> None:
        validate_namespace(namespace)
        if namespace is not None and not kind.namespaced:
            msg = f"{kind.kind} is cluster-scoped and cannot be used with namespace {namespace!r}."
            raise ValueError(msg)
        self._rest = rest
        self._kind = kind
        self._namespace = namespace
        self._settings = settings or get_watch_settings()

    @property
    def kind(self) -> ResourceKind[ResourceT]:
        return self._kind

    @property
    def namespace(self) -> str | None:
        return self._namespace

    @property
    def settings(self) -> WatchSettings:
        return self._settings

    def collection_path(self) -> str:
        if self._namespace:
            return f"{self._kind.api_prefix}/namespaces/{self._namespace}/{self._kind.plural}"
        return f"{self._kind.api_prefix}/{self._kind.plural}"

    def object_path(self, name: str) -> str:
        self._check_name(name)
        return f"{self.collection_path()}/{name}"

    def _check_name(self, name: str) -> None:
        validate_resource_name(name)
        if self._kind.namespaced and self._namespace is None:
            msg = f"{self._kind.kind} {name!r} requires a namespace."
            raise ValueError(msg)

    def get(self, name: str) -> ResourceT:
        """Read one object."""
        path = self.object_path(name)
        try:
            return self._rest.get_model(path, self._kind.model)
        except Exception:
            log.error("failed_to_get_resource", kind=self._kind.kind, namespace=self._namespace, name=name)
            raise

    def list(
        self,
        label_selector: str | None = None,
        field_selector: str | None = None,
        limit: int | None = None,
    ) -> ObjectList[ResourceT]:
        """Read the collection. ``metadata.resourceVersion`` of the result is a valid watch start."""
        params = {"labelSelector": label_selector, "fieldSelector": field_selector, "limit": limit}
        try:
            return self._rest.get_model(self.collection_path(), ObjectList[self._kind.model], params)
        except Exception:
            log.error("failed_to_list_resources", kind=self._kind.kind, namespace=self._namespace)
            raise

    def snapshot(
        self,
        name: str | None = None,
        label_selector: str | None = None,
        field_selector: str | None = None,
    ) -> ResourceT | ObjectList[ResourceT]:
        """Full read of the object, or of the collection when ``name`` is None.

        The result's ``resource_version`` is where a watch on the same target resumes.
        """
        if name is not None:
            return self.get(name)
        return self.list(label_selector, field_selector)

    def watch(self, name: str, resource_version: str | None = None) -> WatchSession[ResourceT]:
        """Watch one named object, starting at ``resource_version`` or at its current version."""
        self._check_name(name)
        return open_watch(
            self._rest,
            self.collection_path(),
            name,
            resource_version,
            resource_type=self._kind.model,
            settings=self._settings,
        )

    def watch_list(
        self,
        resource_version: str | None = None,
        label_selector: str | None = None,
        field_selector: str | None = None,
    ) -> WatchSession[ResourceT]:
        """Watch the whole collection, starting at ``resource_version`` or at the list's version."""
        return open_watch(
            self._rest,
            self.collection_path(),
            None,
            resource_version,
            resource_type=self._kind.model,
            settings=self._settings,
            label_selector=label_selector,
            field_selector=field_selector,
        )


class CoreV1Client:
    """Entry point for core/v1 resources sharing one RestClient."""

    def __init__(self, rest: RestClient, settings: WatchSettings | None = None) -> None:
        self._rest = rest
        self._settings = settings

    @property
    def rest_client(self) -> RestClient:
        return self._rest

    def resource(self, kind: str | ResourceKind[Any], namespace: str | None = None) -> ResourceClient[Any]:
        resolved = lookup_kind(kind) if isinstance(kind, str) else kind
        return ResourceClient(self._rest, resolved, namespace, self._settings)

    def pods(self, namespace: str | None = None) -> ResourceClient[Pod]:
        return ResourceClient(self._rest, PODS, namespace, self._settings)

    def services(self, namespace: str | None = None) -> ResourceClient[Service]:
        return ResourceClient(self._rest, SERVICES, namespace, self._settings)

    def config_maps(self, namespace: str | None = None) -> ResourceClient[ConfigMap]:
        return ResourceClient(self._rest, CONFIG_MAPS, namespace, self._settings)

    def secrets(self, namespace: str | None = None) -> ResourceClient[Secret]:
        return ResourceClient(self._rest, SECRETS, namespace, self._settings)

    def events(self, namespace: str | None = None) -> ResourceClient[Event]:
        return ResourceClient(self._rest, EVENTS, namespace, self._settings)

    def namespaces(self) -> ResourceClient[Namespace]:
        return ResourceClient(self._rest, NAMESPACES, None, self._settings)

    def nodes(self) -> ResourceClient[Node]:
        return ResourceClient(self._rest, NODES, None, self._settings)
