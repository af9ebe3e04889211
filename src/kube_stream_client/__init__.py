"""Typed Kubernetes REST client with composable transports and resumable watch streams."""

from kube_stream_client.clients import RestClient, rest_client_for
from kube_stream_client.clients.resources import CoreV1Client, ResourceClient, ResourceKind
from kube_stream_client.config import ClusterConfig, WatchSettings
from kube_stream_client.errors import (
    ApiError,
    InvalidResponse,
    KubeClientError,
    MalformedRecord,
    OpenError,
    StreamClosed,
    Stopped,
    TerminationReason,
    TransportError,
    TransportTimeout,
)
from kube_stream_client.models import EventType, Status, WatchEvent
from kube_stream_client.watch import ResumeAction, ResumeDecision, ResumptionPolicy, WatchSession, open_watch
from kube_stream_client.watch.follow import WatchFollower

__version__ = "0.1.0"

__all__ = [
    "ApiError",
    "InvalidResponse",
    "ClusterConfig",
    "CoreV1Client",
    "EventType",
    "KubeClientError",
    "MalformedRecord",
    "OpenError",
    "ResourceClient",
    "ResourceKind",
    "RestClient",
    "ResumeAction",
    "ResumeDecision",
    "ResumptionPolicy",
    "Status",
    "Stopped",
    "StreamClosed",
    "TerminationReason",
    "TransportError",
    "TransportTimeout",
    "WatchEvent",
    "WatchFollower",
    "WatchSession",
    "WatchSettings",
    "open_watch",
    "rest_client_for",
]
