"""Composable request transports ("round-trippers").

A transport chain is a sequence of links, each setting one concern on the
outgoing request (credentials, client identification, extra headers) before
delegating to the link it wraps. The chain ends in :class:`HTTPTransport`,
which executes the request with ``httpx`` and translates transport failures
into :class:`TransportTimeout` and :class:`TransportError`.

Links are frozen and hold no per-request state, so one chain is built at
startup and shared by every client and watch session.
"""

from __future__ import annotations

import functools
import ssl
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Protocol

import httpx
import structlog

from kube_stream_client.config import DEFAULT_USER_AGENT, ClusterConfig, WatchSettings, get_watch_settings
from kube_stream_client.errors import TransportError, TransportTimeout

log = structlog.get_logger()


class RoundTripper(Protocol):
    """Executes one request and returns the response unread."""

    def round_trip(self, request: httpx.Request) -> httpx.Response: ...


Wrapper = Callable[[RoundTripper], RoundTripper]


@contextmanager
def translate_transport_errors(what: str) -> Iterator[None]:
    """Map httpx transport exceptions onto this package's error types."""
    try:
        yield
    except httpx.TimeoutException as exc:
        raise TransportTimeout(f"Request timed out: {what}", cause=exc) from exc
    except httpx.TransportError as exc:
        raise TransportError(f"Transport failure: {what}: {exc}", cause=exc) from exc
    except httpx.StreamError as exc:
        # Raised when the response was closed underneath a reader.
        raise TransportError(f"Stream unavailable: {what}: {exc}", cause=exc) from exc


def read_body(response: httpx.Response) -> bytes:
    """Read a whole response body and release the connection."""
    try:
        with translate_transport_errors(f"reading {response.request.url.path}"):
            return response.read()
    finally:
        response.close()


def iter_body(response: httpx.Response) -> Iterator[bytes]:
    """Yield body chunks as the server delivers them."""
    with translate_transport_errors(f"streaming {response.request.url.path}"):
        yield from response.iter_bytes()


class HTTPTransport:
    """Base link: sends the request with an ``httpx.Client``."""

    def __init__(self, client: httpx.Client) -> None:
        self._client = client

    @classmethod
    def from_config(cls, cluster_config: ClusterConfig, settings: WatchSettings | None = None) -> HTTPTransport:
        settings = settings or get_watch_settings()
        if not cluster_config.verify_tls and cluster_config.base_url.startswith("https"):
            log.warning("tls_verification_disabled", cluster=cluster_config.cluster_id)
        client = httpx.Client(
            verify=_ssl_context(cluster_config),
            timeout=httpx.Timeout(settings.connect_timeout, read=settings.read_timeout),
            follow_redirects=False,
        )
        return cls(client)

    def round_trip(self, request: httpx.Request) -> httpx.Response:
        with translate_transport_errors(f"{request.method} {request.url.path}"):
            return self._client.send(request, stream=True)

    def close(self) -> None:
        self._client.close()


def _ssl_context(cluster_config: ClusterConfig) -> ssl.SSLContext:
    if cluster_config.verify_tls:
        context = ssl.create_default_context(cafile=cluster_config.ca_cert_file)
    else:
        context = ssl.create_default_context()
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    if cluster_config.client_cert_file and cluster_config.client_key_file:
        context.load_cert_chain(cluster_config.client_cert_file, cluster_config.client_key_file)
    return context


@dataclass(frozen=True)
class BearerTokenAuth:
    """Injects ``Authorization: Bearer <token>``."""

    inner: RoundTripper
    token: str = field(repr=False)

    def round_trip(self, request: httpx.Request) -> httpx.Response:
        request.headers["Authorization"] = f"Bearer {self.token}"
        return self.inner.round_trip(request)


@dataclass(frozen=True)
class UserAgent:
    """Sets the client identification header."""

    inner: RoundTripper
    user_agent: str = DEFAULT_USER_AGENT

    def round_trip(self, request: httpx.Request) -> httpx.Response:
        request.headers["User-Agent"] = self.user_agent
        return self.inner.round_trip(request)


@dataclass(frozen=True)
class StaticHeaders:
    """Sets a fixed set of extra headers."""

    inner: RoundTripper
    headers: tuple[tuple[str, str], ...] = ()

    def round_trip(self, request: httpx.Request) -> httpx.Response:
        for name, value in self.headers:
            request.headers[name] = value
        return self.inner.round_trip(request)


def chain(base: RoundTripper, *wrappers: Wrapper) -> RoundTripper:
    """Wrap ``base`` with each wrapper. The first wrapper becomes the outermost link."""
    transport = base
    for wrap in reversed(wrappers):
        transport = wrap(transport)
    return transport


def wrappers_for(cluster_config: ClusterConfig) -> list[Wrapper]:
    """Ordered link factories for a cluster: user agent, extra headers, then credentials."""
    wrappers: list[Wrapper] = [
        functools.partial(UserAgent, user_agent=cluster_config.user_agent or DEFAULT_USER_AGENT)
    ]
    if cluster_config.extra_headers:
        wrappers.append(functools.partial(StaticHeaders, headers=_header_pairs(cluster_config.extra_headers)))
    if cluster_config.bearer_token:
        wrappers.append(functools.partial(BearerTokenAuth, token=cluster_config.bearer_token))
    return wrappers


def _header_pairs(headers: Mapping[str, str]) -> tuple[tuple[str, str], ...]:
    return tuple(sorted(headers.items()))


def build_transport(
    cluster_config: ClusterConfig,
    settings: WatchSettings | None = None,
    base: RoundTripper | None = None,
) -> RoundTripper:
    """Build the transport chain for one cluster.

    ``base`` replaces the httpx-backed transport, e.g. with one built on
    ``httpx.MockTransport`` in tests.
    """
    if base is None:
        base = HTTPTransport.from_config(cluster_config, settings)
    return chain(base, *wrappers_for(cluster_config))
