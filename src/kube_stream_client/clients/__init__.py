"""Resource clients and the factory that wires them to a transport chain."""

from __future__ import annotations

import structlog

from kube_stream_client.clients.rest import RestClient
from kube_stream_client.config import ClusterConfig, WatchSettings
from kube_stream_client.transport import RoundTripper, build_transport

log = structlog.get_logger()


def rest_client_for(
    cluster_config: ClusterConfig,
    settings: WatchSettings | None = None,
    base: RoundTripper | None = None,
) -> RestClient:
    """Create a RestClient bound to one cluster.

    The transport chain is built once here and shared by every resource client
    and watch session created from the returned RestClient.
    """
    transport = build_transport(cluster_config, settings, base=base)
    log.debug(
        "rest_client_created",
        cluster=cluster_config.cluster_id,
        base_url=cluster_config.base_url,
        authenticated=cluster_config.bearer_token is not None,
    )
    return RestClient(transport, cluster_config.base_url)


__all__ = ["RestClient", "rest_client_for"]
