"""``kube-stream`` command line: get, list, and watch core/v1 resources."""

from __future__ import annotations

import dataclasses
import json
import logging
import sys
from typing import Any

import click
import structlog
from kubernetes.config import ConfigException

from kube_stream_client.clients import rest_client_for
from kube_stream_client.clients.resources import CoreV1Client, ResourceClient
from kube_stream_client.config import (
    DEFAULT_USER_AGENT,
    ClusterConfig,
    cluster_from_kubeconfig,
    get_watch_settings,
    load_cluster_map,
    resolve_cluster,
    validate_cluster_config,
)
from kube_stream_client.errors import KubeClientError
from kube_stream_client.models import ObjectList, WatchEvent, scrub_sensitive_values
from kube_stream_client.watch.follow import WatchFollower

log = structlog.get_logger()


def configure_logging(level: str = "info") -> None:
    """Configure structlog for console output on a TTY and JSON otherwise, both to stderr."""
    log_level = getattr(logging, level.upper(), logging.INFO)
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer() if sys.stderr.isatty() else structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )


def _resolve_cluster_config(
    cluster_url: str | None,
    token: str | None,
    cluster_id: str | None,
    kubeconfig: str | None,
    kubeconfig_context: str | None,
    verify_tls: bool | None,
    user_agent: str | None,
) -> ClusterConfig:
    if cluster_url:
        config = ClusterConfig(cluster_id="cli", base_url=cluster_url.rstrip("/"))
    elif cluster_id:
        load_cluster_map()
        validate_cluster_config()
        config = resolve_cluster(cluster_id)
    else:
        config = cluster_from_kubeconfig(kubeconfig_context, kubeconfig)

    overrides: dict[str, Any] = {}
    if token:
        overrides["bearer_token"] = token
    if verify_tls is not None:
        overrides["verify_tls"] = verify_tls
    if user_agent:
        overrides["user_agent"] = user_agent
    if not overrides:
        return config
    return dataclasses.replace(config, **overrides)


def _dump(model: Any) -> str:
    return model.model_dump_json(by_alias=True, exclude_none=True)


def _event_line(event: WatchEvent[Any]) -> str:
    payload = event.object.model_dump(mode="json", by_alias=True, exclude_none=True)
    return json.dumps({"type": str(event.type), "object": payload}, separators=(",", ":"))


def _log_resync(snapshot: Any) -> None:
    items = snapshot.items if isinstance(snapshot, ObjectList) else [snapshot]
    log.warning("watch_state_resynchronised", resource_version=snapshot.resource_version, objects=len(items))


@click.group()
@click.option("--cluster-url", envvar="KUBE_CLUSTER_URL", help="API server base URL.")
@click.option("--token", envvar="KUBE_TOKEN", help="Bearer token.")
@click.option("--cluster", "cluster_id", help="Cluster ID from the clusters YAML file.")
@click.option("--kubeconfig", type=click.Path(dir_okay=False), help="Path to a kubeconfig file.")
@click.option("--kubeconfig-context", help="Kubeconfig context to use.")
@click.option("--verify-tls/--insecure", default=None, help="Verify the API server certificate.")
@click.option("--user-agent", default=None, help=f"User-Agent header (default {DEFAULT_USER_AGENT}).")
@click.option("--log-level", default="info", show_default=True)
@click.pass_context
def cli(
    ctx: click.Context,
    cluster_url: str | None,
    token: str | None,
    cluster_id: str | None,
    kubeconfig: str | None,
    kubeconfig_context: str | None,
    verify_tls: bool | None,
    user_agent: str | None,
    log_level: str,
) -> None:
    """Read and watch Kubernetes core/v1 resources."""
    configure_logging(log_level)
    ctx.obj = {
        "cluster_url": cluster_url,
        "token": token,
        "cluster_id": cluster_id,
        "kubeconfig": kubeconfig,
        "kubeconfig_context": kubeconfig_context,
        "verify_tls": verify_tls,
        "user_agent": user_agent,
    }


def _resource_client(ctx: click.Context, kind: str, namespace: str | None) -> ResourceClient[Any]:
    try:
        cluster_config = _resolve_cluster_config(**ctx.obj)
        rest = rest_client_for(cluster_config, get_watch_settings())
        return CoreV1Client(rest).resource(kind, namespace)
    except (ValueError, FileNotFoundError, RuntimeError, ConfigException) as exc:
        raise click.UsageError(str(exc)) from exc


def _fail(exc: KubeClientError) -> click.ClickException:
    return click.ClickException(scrub_sensitive_values(str(exc)))


@cli.command()
@click.argument("kind")
@click.argument("name")
@click.option("-n", "--namespace", default=None)
@click.pass_context
def get(ctx: click.Context, kind: str, name: str, namespace: str | None) -> None:
    """Print one object as JSON."""
    client = _resource_client(ctx, kind, namespace)
    try:
        obj = client.get(name)
    except KubeClientError as exc:
        raise _fail(exc) from exc
    except ValueError as exc:
        raise click.UsageError(str(exc)) from exc
    click.echo(_dump(obj))


@cli.command(name="list")
@click.argument("kind")
@click.option("-n", "--namespace", default=None)
@click.option("-l", "--selector", "label_selector", default=None)
@click.option("--field-selector", default=None)
@click.pass_context
def list_(
    ctx: click.Context,
    kind: str,
    namespace: str | None,
    label_selector: str | None,
    field_selector: str | None,
) -> None:
    """Print a collection as JSON."""
    client = _resource_client(ctx, kind, namespace)
    try:
        objects = client.list(label_selector=label_selector, field_selector=field_selector)
    except KubeClientError as exc:
        raise _fail(exc) from exc
    click.echo(_dump(objects))


@cli.command()
@click.argument("kind")
@click.argument("name", required=False)
@click.option("-n", "--namespace", default=None)
@click.option("-l", "--selector", "label_selector", default=None)
@click.option("--field-selector", default=None)
@click.option("--resource-version", default=None, help="Start from this resource version.")
@click.option("--max-events", type=int, default=None, help="Exit after this many events.")
@click.pass_context
def watch(
    ctx: click.Context,
    kind: str,
    name: str | None,
    namespace: str | None,
    label_selector: str | None,
    field_selector: str | None,
    resource_version: str | None,
    max_events: int | None,
) -> None:
    """Print one JSON line per watch event, resuming across disconnects."""
    client = _resource_client(ctx, kind, namespace)
    follower = WatchFollower(
        client,
        name,
        resource_version=resource_version,
        label_selector=label_selector,
        field_selector=field_selector,
        on_relist=_log_resync,
    )
    seen = 0
    try:
        for event in follower:
            click.echo(_event_line(event))
            seen += 1
            if max_events is not None and seen >= max_events:
                break
    except KubeClientError as exc:
        raise _fail(exc) from exc
    except ValueError as exc:
        raise click.UsageError(str(exc)) from exc
    except KeyboardInterrupt:
        log.info("watch_interrupted")
    finally:
        follower.stop()
