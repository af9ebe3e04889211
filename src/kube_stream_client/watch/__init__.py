"""Watch streams: opening, decoding, stopping, and resuming."""

from kube_stream_client.watch.decoder import LineReader, WatchEventDecoder
from kube_stream_client.watch.initiator import discover_resource_version, open_watch
from kube_stream_client.watch.resume import ResumeAction, ResumeDecision, ResumptionPolicy
from kube_stream_client.watch.session import WatchSession

__all__ = [
    "LineReader",
    "ResumeAction",
    "ResumeDecision",
    "ResumptionPolicy",
    "WatchEventDecoder",
    "WatchSession",
    "discover_resource_version",
    "open_watch",
]
