"""Shared test fixtures: a fake API server behind httpx.MockTransport and clients wired to it."""

from __future__ import annotations

from collections.abc import Iterable, Iterator

import httpx
import pytest

from kube_stream_client.clients import RestClient, rest_client_for
from kube_stream_client.clients.resources import CoreV1Client
from kube_stream_client.config import ClusterConfig, WatchSettings
from kube_stream_client.transport import HTTPTransport

BASE_URL = "https://kube.example.test"


def _body(chunks: Iterable[bytes], error: Exception | None) -> Iterator[bytes]:
    yield from chunks
    if error is not None:
        raise error


class FakeApiServer:
    """MockTransport handler that records requests and replays queued responses.

    Plain reads and watch requests (``watch=true``) have separate queues so a
    test can script the pre-read and the stream independently. A request with
    nothing queued fails the test.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self._reads: list[httpx.Response | Exception] = []
        self._watches: list[httpx.Response | Exception] = []

    def queue_read(self, status: int = 200, json: object | None = None) -> None:
        self._reads.append(httpx.Response(status, json=json if json is not None else {}))

    def queue_read_content(self, content: bytes, status: int = 200, content_type: str = "text/html") -> None:
        """Queue a read whose body is not JSON, such as a proxy error page."""
        self._reads.append(httpx.Response(status, content=content, headers={"Content-Type": content_type}))

    def queue_read_error(self, error: Exception) -> None:
        self._reads.append(error)

    def queue_watch(
        self,
        *chunks: bytes,
        status: int = 200,
        error: Exception | None = None,
    ) -> None:
        """Queue a watch response whose body is delivered chunk by chunk, optionally ending in ``error``."""
        if status >= 300:
            self._watches.append(httpx.Response(status, content=b"".join(chunks)))
            return
        self._watches.append(httpx.Response(status, content=_body(chunks, error)))

    def queue_watch_error(self, error: Exception) -> None:
        self._watches.append(error)

    @property
    def read_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.params.get("watch") != "true"]

    @property
    def watch_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.params.get("watch") == "true"]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self._watches if request.url.params.get("watch") == "true" else self._reads
        if not queue:
            msg = f"Unexpected request: {request.method} {request.url}"
            raise AssertionError(msg)
        item = queue.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


@pytest.fixture
def fake_api() -> FakeApiServer:
    return FakeApiServer()


@pytest.fixture
def cluster_config() -> ClusterConfig:
    return ClusterConfig(cluster_id="test", base_url=BASE_URL, bearer_token="test-token")


@pytest.fixture
def watch_settings() -> WatchSettings:
    """Settings with zero backoff so resumption tests never sleep."""
    return WatchSettings(
        connect_timeout=1.0,
        read_timeout=5.0,
        watch_timeout_seconds=None,
        allow_bookmarks=True,
        backoff_base=0.0,
        backoff_max=0.0,
        max_consecutive_failures=None,
    )


@pytest.fixture
def rest_client(fake_api: FakeApiServer, cluster_config: ClusterConfig, watch_settings: WatchSettings) -> RestClient:
    base = HTTPTransport(httpx.Client(transport=httpx.MockTransport(fake_api)))
    return rest_client_for(cluster_config, watch_settings, base=base)


@pytest.fixture
def core_client(rest_client: RestClient, watch_settings: WatchSettings) -> CoreV1Client:
    return CoreV1Client(rest_client, watch_settings)
