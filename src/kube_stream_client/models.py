"""Pydantic v2 models for API objects, list responses, Status errors, and watch events."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

# --- Object metadata ---


class ObjectMeta(BaseModel):
    """Standard object metadata. Only the fields this client reads are declared."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    name: str | None = None
    namespace: str | None = None
    uid: str | None = None
    # Opaque server cursor; never parsed or compared by value.
    resource_version: str | None = Field(default=None, alias="resourceVersion")
    generation: int | None = None
    creation_timestamp: str | None = Field(default=None, alias="creationTimestamp")
    deletion_timestamp: str | None = Field(default=None, alias="deletionTimestamp")
    labels: dict[str, str] | None = None
    annotations: dict[str, str] | None = None


class ListMeta(BaseModel):
    """Metadata carried by list responses."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    resource_version: str | None = Field(default=None, alias="resourceVersion")
    continue_token: str | None = Field(default=None, alias="continue")


# --- Resource kinds ---


class KubeObject(BaseModel):
    """Base for every watched or retrieved resource.

    All fields other than ``metadata`` are optional so a BOOKMARK payload, which
    carries only ``metadata.resourceVersion``, still validates as the watched type.
    Unknown fields are preserved.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    api_version: str | None = Field(default=None, alias="apiVersion")
    kind: str | None = None
    metadata: ObjectMeta = Field(default_factory=ObjectMeta)

    @property
    def resource_version(self) -> str | None:
        return self.metadata.resource_version


class Pod(KubeObject):
    spec: dict[str, Any] | None = None
    status: dict[str, Any] | None = None


class Service(KubeObject):
    spec: dict[str, Any] | None = None
    status: dict[str, Any] | None = None


class ConfigMap(KubeObject):
    data: dict[str, str] | None = None
    binary_data: dict[str, str] | None = Field(default=None, alias="binaryData")


class Secret(KubeObject):
    data: dict[str, str] | None = None
    type: str | None = None


class Namespace(KubeObject):
    spec: dict[str, Any] | None = None
    status: dict[str, Any] | None = None


class Node(KubeObject):
    spec: dict[str, Any] | None = None
    status: dict[str, Any] | None = None


class Event(KubeObject):
    involved_object: dict[str, Any] | None = Field(default=None, alias="involvedObject")
    reason: str | None = None
    message: str | None = None
    type: str | None = None
    count: int | None = None


ResourceT = TypeVar("ResourceT", bound=KubeObject)


class ObjectList(BaseModel, Generic[ResourceT]):
    """A collection read; ``metadata.resourceVersion`` is the watch starting point."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    api_version: str | None = Field(default=None, alias="apiVersion")
    kind: str | None = None
    metadata: ListMeta = Field(default_factory=ListMeta)
    items: list[ResourceT] = Field(default_factory=list)

    @property
    def resource_version(self) -> str | None:
        return self.metadata.resource_version


# --- Errors reported by the server ---


class Status(BaseModel):
    """API Status object, returned on failed requests and as the payload of ERROR watch events."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    api_version: str | None = Field(default=None, alias="apiVersion")
    kind: str | None = None
    status: str | None = None
    message: str | None = None
    reason: str | None = None
    code: int | None = None
    details: dict[str, Any] | None = None

    @property
    def is_expired(self) -> bool:
        """The requested resource version is no longer in the server's history."""
        return self.code == 410 or self.reason in ("Expired", "Gone")


# --- Watch events ---


class EventType(StrEnum):
    ADDED = "ADDED"
    MODIFIED = "MODIFIED"
    DELETED = "DELETED"
    BOOKMARK = "BOOKMARK"
    ERROR = "ERROR"


class WatchEnvelope(BaseModel):
    """Wire shape of one JSON Lines record: ``{"type": ..., "object": {...}}``."""

    type: EventType
    object: dict[str, Any]


@dataclass(frozen=True)
class WatchEvent(Generic[ResourceT]):
    """One decoded watch event.

    * ADDED / MODIFIED: the new state of the object.
    * DELETED: the state of the object immediately before deletion.
    * BOOKMARK: an instance of the watched type where only the resource version
      is set. It is not a state update.
    * ERROR: ``object`` is a :class:`Status`, not the watched type.
    """

    type: EventType
    object: ResourceT | Status
    raw: dict[str, Any] = field(repr=False, compare=False)

    @property
    def is_bookmark(self) -> bool:
        return self.type is EventType.BOOKMARK

    @property
    def is_error(self) -> bool:
        return self.type is EventType.ERROR

    @property
    def resource_version(self) -> str | None:
        if isinstance(self.object, KubeObject):
            return self.object.resource_version
        return None

    @property
    def status(self) -> Status | None:
        return self.object if isinstance(self.object, Status) else None


# --- Output scrubbing ---

_BEARER_PATTERN = re.compile(r"(?i)\bbearer\s+[A-Za-z0-9\-._~+/]+=*")
_TOKEN_FIELD_PATTERN = re.compile(r"(?i)(\"?(?:token|password|bearer_token)\"?\s*[:=]\s*\"?)[^\s\",&]+")


def scrub_sensitive_values(text: str) -> str:
    """Remove bearer credentials and token-like fields from text before it is logged or printed."""
    if not text:
        return text
    result = _BEARER_PATTERN.sub("Bearer [REDACTED]", text)
    result = _TOKEN_FIELD_PATTERN.sub(r"\1[REDACTED]", result)
    return result
