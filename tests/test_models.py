"""Tests for models.py: object and list models, Status, watch events, output scrubbing."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from kube_stream_client.models import (
    ConfigMap,
    EventType,
    KubeObject,
    ObjectList,
    Pod,
    Status,
    WatchEnvelope,
    WatchEvent,
    scrub_sensitive_values,
)


class TestKubeObject:
    def test_metadata_aliases(self) -> None:
        pod = Pod.model_validate(
            {
                "apiVersion": "v1",
                "kind": "Pod",
                "metadata": {
                    "name": "web",
                    "namespace": "default",
                    "resourceVersion": "42",
                    "creationTimestamp": "2026-01-01T00:00:00Z",
                },
                "spec": {"nodeName": "node-1"},
            }
        )
        assert pod.api_version == "v1"
        assert pod.metadata.name == "web"
        assert pod.metadata.creation_timestamp == "2026-01-01T00:00:00Z"
        assert pod.resource_version == "42"
        assert pod.spec == {"nodeName": "node-1"}

    def test_bookmark_payload_validates_as_watched_type(self) -> None:
        pod = Pod.model_validate({"kind": "Pod", "metadata": {"resourceVersion": "100"}})
        assert pod.resource_version == "100"
        assert pod.metadata.name is None
        assert pod.spec is None

    def test_unknown_fields_preserved(self) -> None:
        obj = KubeObject.model_validate({"metadata": {"name": "x", "finalizers": ["f"]}, "extra": {"a": 1}})
        dumped = obj.model_dump(by_alias=True, exclude_none=True)
        assert dumped["extra"] == {"a": 1}
        assert dumped["metadata"]["finalizers"] == ["f"]

    def test_resource_version_kept_opaque(self) -> None:
        pod = Pod.model_validate({"metadata": {"resourceVersion": "0010"}})
        assert pod.resource_version == "0010"

    def test_dump_round_trips_aliases(self) -> None:
        cm = ConfigMap.model_validate({"metadata": {"resourceVersion": "7"}, "binaryData": {"k": "dg=="}})
        dumped = cm.model_dump(by_alias=True, exclude_none=True)
        assert dumped["metadata"]["resourceVersion"] == "7"
        assert dumped["binaryData"] == {"k": "dg=="}


class TestObjectList:
    def test_typed_items_and_resource_version(self) -> None:
        pods = ObjectList[Pod].model_validate(
            {
                "kind": "PodList",
                "metadata": {"resourceVersion": "500", "continue": "abc"},
                "items": [{"metadata": {"name": "a"}}, {"metadata": {"name": "b"}}],
            }
        )
        assert pods.resource_version == "500"
        assert pods.metadata.continue_token == "abc"
        assert [p.metadata.name for p in pods.items] == ["a", "b"]
        assert all(isinstance(p, Pod) for p in pods.items)

    def test_empty_list(self) -> None:
        pods = ObjectList[Pod].model_validate({"metadata": {}})
        assert pods.items == []
        assert pods.resource_version is None


class TestStatus:
    @pytest.mark.parametrize(
        "payload,expected",
        [
            ({"code": 410, "reason": "Expired"}, True),
            ({"code": 410}, True),
            ({"reason": "Gone"}, True),
            ({"code": 500, "reason": "InternalError"}, False),
            ({}, False),
        ],
    )
    def test_is_expired(self, payload: dict, expected: bool) -> None:
        assert Status.model_validate(payload).is_expired is expected


class TestWatchEnvelope:
    def test_rejects_unknown_type(self) -> None:
        with pytest.raises(ValidationError):
            WatchEnvelope.model_validate_json(b'{"type":"RENAMED","object":{}}')

    def test_requires_object(self) -> None:
        with pytest.raises(ValidationError):
            WatchEnvelope.model_validate_json(b'{"type":"ADDED"}')


class TestWatchEvent:
    def test_object_event(self) -> None:
        pod = Pod.model_validate({"metadata": {"name": "web", "resourceVersion": "10"}})
        event = WatchEvent(type=EventType.ADDED, object=pod, raw={})
        assert event.resource_version == "10"
        assert event.is_bookmark is False
        assert event.is_error is False
        assert event.status is None

    def test_bookmark_event(self) -> None:
        pod = Pod.model_validate({"metadata": {"resourceVersion": "11"}})
        event = WatchEvent(type=EventType.BOOKMARK, object=pod, raw={})
        assert event.is_bookmark is True
        assert event.resource_version == "11"

    def test_error_event(self) -> None:
        status = Status.model_validate({"code": 410, "reason": "Expired"})
        event = WatchEvent(type=EventType.ERROR, object=status, raw={})
        assert event.is_error is True
        assert event.status is status
        assert event.resource_version is None

    def test_raw_excluded_from_equality(self) -> None:
        pod = Pod.model_validate({"metadata": {"resourceVersion": "1"}})
        assert WatchEvent(EventType.ADDED, pod, {"a": 1}) == WatchEvent(EventType.ADDED, pod, {"b": 2})


class TestScrubSensitiveValues:
    def test_bearer_token(self) -> None:
        assert scrub_sensitive_values("Authorization: Bearer abc.def-ghi") == "Authorization: Bearer [REDACTED]"

    def test_token_fields(self) -> None:
        result = scrub_sensitive_values('{"token": "abc123", "password": "hunter2"}')
        assert "abc123" not in result
        assert "hunter2" not in result
        assert "[REDACTED]" in result

    def test_plain_text_untouched(self) -> None:
        assert scrub_sensitive_values("pods is forbidden") == "pods is forbidden"

    def test_empty(self) -> None:
        assert scrub_sensitive_values("") == ""
