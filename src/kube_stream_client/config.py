"""Cluster connection configuration, watch settings, and environment variable overrides."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

import structlog
import yaml
from kubernetes import client as k8s_client
from kubernetes import config as k8s_config

log = structlog.get_logger()

DEFAULT_USER_AGENT = "kube-stream-client"


def _env_bool(name: str, default: str) -> bool:
    return os.environ.get(name, default).strip().lower() in ("1", "true", "yes", "on")


def _env_optional_float(name: str, default: str) -> float | None:
    raw = os.environ.get(name, default).strip()
    if not raw or float(raw) <= 0:
        return None
    return float(raw)


def _env_optional_int(name: str, default: str) -> int | None:
    raw = os.environ.get(name, default).strip()
    if not raw or int(raw) <= 0:
        return None
    return int(raw)


@dataclass(frozen=True)
class ClusterConfig:
    """Connection settings for a single API server."""

    cluster_id: str
    base_url: str
    bearer_token: str | None = field(default=None, repr=False)
    user_agent: str | None = None
    # Known issue: verification is off unless explicitly enabled. Needs review before production use.
    verify_tls: bool = False
    ca_cert_file: str | None = None
    client_cert_file: str | None = None
    client_key_file: str | None = None
    extra_headers: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class WatchSettings:
    """Transport timeouts and watch resumption tuning with environment variable overrides."""

    connect_timeout: float = field(default_factory=lambda: float(os.environ.get("KUBE_STREAM_CONNECT_TIMEOUT", "10")))
    # None disables the read timeout. Keep it longer than the server's bookmark interval.
    read_timeout: float | None = field(
        default_factory=lambda: _env_optional_float("KUBE_STREAM_READ_TIMEOUT", "300")
    )
    watch_timeout_seconds: int | None = field(
        default_factory=lambda: _env_optional_int("KUBE_STREAM_WATCH_TIMEOUT_SECONDS", "")
    )
    allow_bookmarks: bool = field(default_factory=lambda: _env_bool("KUBE_STREAM_ALLOW_BOOKMARKS", "true"))
    backoff_base: float = field(default_factory=lambda: float(os.environ.get("KUBE_STREAM_BACKOFF_BASE", "1")))
    backoff_max: float = field(default_factory=lambda: float(os.environ.get("KUBE_STREAM_BACKOFF_MAX", "30")))
    max_record_bytes: int = field(
        default_factory=lambda: int(os.environ.get("KUBE_STREAM_MAX_RECORD_BYTES", str(16 * 1024 * 1024)))
    )
    # None retries transport errors indefinitely; a number gives up after that many in a row.
    max_consecutive_failures: int | None = field(
        default_factory=lambda: _env_optional_int("KUBE_STREAM_MAX_CONSECUTIVE_FAILURES", "")
    )


_REQUIRED_FIELDS = ("base_url",)


def _cluster_from_entry(cluster_id: str, entry: dict[str, Any]) -> ClusterConfig:
    token = entry.get("bearer_token")
    token_env = entry.get("bearer_token_env")
    if token is None and token_env:
        token = os.environ.get(str(token_env))
        if token is None:
            log.warning("bearer_token_env_unset", cluster=cluster_id, variable=token_env)

    headers = entry.get("extra_headers") or {}
    if not isinstance(headers, dict):
        msg = f"Cluster '{cluster_id}' extra_headers must be a mapping, got {type(headers).__name__}."
        raise ValueError(msg)

    def _optional(key: str) -> str | None:
        value = entry.get(key)
        return str(value) if value is not None else None

    return ClusterConfig(
        cluster_id=cluster_id,
        base_url=str(entry["base_url"]).rstrip("/"),
        bearer_token=str(token) if token is not None else None,
        user_agent=_optional("user_agent"),
        verify_tls=bool(entry.get("verify_tls", False)),
        ca_cert_file=_optional("ca_cert_file"),
        client_cert_file=_optional("client_cert_file"),
        client_key_file=_optional("client_key_file"),
        extra_headers={str(k): str(v) for k, v in headers.items()},
    )


def _load_cluster_map(path: Path) -> dict[str, ClusterConfig]:
    """Parse a YAML cluster configuration file and return a mapping of cluster ID to ClusterConfig.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        A dict mapping cluster IDs to ClusterConfig objects.

    Raises:
        FileNotFoundError: If the configuration file does not exist.
        ValueError: If the file content is malformed or missing required fields.
    """
    if not path.exists():
        msg = (
            f"Cluster configuration file not found: {path}. "
            "Copy clusters.example.yaml to clusters.yaml and fill in your API server URLs, "
            "or set KUBE_STREAM_CLUSTERS to point to your config file."
        )
        raise FileNotFoundError(msg)

    raw = yaml.safe_load(path.read_text())

    if not isinstance(raw, dict) or "clusters" not in raw:
        msg = f"Cluster config file {path} must contain a top-level 'clusters' key."
        raise ValueError(msg)

    clusters_raw: Any = raw["clusters"]
    if not isinstance(clusters_raw, dict) or len(clusters_raw) == 0:
        msg = f"Cluster config file {path} has an empty or invalid 'clusters' section."
        raise ValueError(msg)

    cluster_map: dict[str, ClusterConfig] = {}
    for cluster_id, entry in clusters_raw.items():
        if not isinstance(entry, dict):
            msg = f"Cluster '{cluster_id}' must be a mapping, got {type(entry).__name__}."
            raise ValueError(msg)

        missing = [f for f in _REQUIRED_FIELDS if f not in entry]
        if missing:
            msg = f"Cluster '{cluster_id}' is missing required fields: {', '.join(missing)}."
            raise ValueError(msg)

        cluster_map[str(cluster_id)] = _cluster_from_entry(str(cluster_id), entry)

    return cluster_map


CLUSTER_MAP: dict[str, ClusterConfig] = {}


def load_cluster_map(path: Path | None = None) -> dict[str, ClusterConfig]:
    """Load cluster configuration from YAML and populate CLUSTER_MAP.

    Reads the file path from the ``KUBE_STREAM_CLUSTERS`` environment variable,
    defaulting to ``clusters.yaml`` in the current working directory.
    """
    if path is None:
        path = Path(os.environ.get("KUBE_STREAM_CLUSTERS", "clusters.yaml"))
    loaded = _load_cluster_map(path)
    CLUSTER_MAP.clear()
    CLUSTER_MAP.update(loaded)
    return CLUSTER_MAP


def resolve_cluster(cluster_id: str) -> ClusterConfig:
    """Resolve a cluster ID to its connection settings.

    Raises:
        ValueError: If the cluster_id is not found in CLUSTER_MAP.
    """
    if cluster_id not in CLUSTER_MAP:
        valid = ", ".join(sorted(CLUSTER_MAP.keys()))
        msg = f"Unknown cluster '{cluster_id}'. Valid clusters: {valid}"
        raise ValueError(msg)
    return CLUSTER_MAP[cluster_id]


def validate_cluster_config() -> None:
    """Validate all loaded cluster configurations.

    Raises RuntimeError for unusable base URLs or incomplete client certificate
    pairs. Disabled TLS verification is only logged.
    """
    errors: list[str] = []
    for cluster_id, config in CLUSTER_MAP.items():
        parsed = urlparse(config.base_url)
        if parsed.scheme not in ("http", "https"):
            errors.append(f"{cluster_id}: base_url must use http or https")
        elif not parsed.netloc:
            errors.append(f"{cluster_id}: base_url has no host")

        if bool(config.client_cert_file) != bool(config.client_key_file):
            errors.append(f"{cluster_id}: client_cert_file and client_key_file must be set together")

        if parsed.scheme == "https" and not config.verify_tls:
            log.warning("tls_verification_disabled", cluster=cluster_id)

    if errors:
        detail = "; ".join(errors)
        msg = f"Cluster configuration errors: {detail}."
        raise RuntimeError(msg)


def cluster_from_kubeconfig(context: str | None = None, config_file: str | None = None) -> ClusterConfig:
    """Build a ClusterConfig from a kubeconfig context.

    Loads into a private Configuration object so the kubernetes SDK's global
    default configuration is never touched.
    """
    configuration = k8s_client.Configuration()
    k8s_config.load_kube_config(
        config_file=config_file,
        context=context,
        client_configuration=configuration,
        persist_config=False,
    )

    token: str | None = None
    authorization = (configuration.api_key or {}).get("authorization")
    if authorization:
        token = authorization.removeprefix("Bearer ").strip()

    return ClusterConfig(
        cluster_id=context or "kubeconfig",
        base_url=configuration.host.rstrip("/"),
        bearer_token=token,
        verify_tls=bool(configuration.verify_ssl),
        ca_cert_file=configuration.ssl_ca_cert,
        client_cert_file=configuration.cert_file,
        client_key_file=configuration.key_file,
    )


def get_watch_settings() -> WatchSettings:
    """Return watch settings with environment variable overrides applied."""
    return WatchSettings()
