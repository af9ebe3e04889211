"""Tests for cli.py: cluster resolution, get/list/watch commands, error reporting."""

from __future__ import annotations

import json
import os
from collections.abc import Iterator
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
import structlog
from click.testing import CliRunner

from kube_stream_client.cli import _resolve_cluster_config, cli, configure_logging
from kube_stream_client.clients import RestClient
from kube_stream_client.config import CLUSTER_MAP, ClusterConfig

_BASE_ARGS = ["--cluster-url", "https://kube.example.test", "--token", "cli-token", "--log-level", "error"]


def _make_pod(name: str, resource_version: str) -> dict:
    return {"kind": "Pod", "metadata": {"name": name, "namespace": "default", "resourceVersion": resource_version}}


def _line(event_type: str, resource_version: str) -> bytes:
    return json.dumps({"type": event_type, "object": _make_pod("web", resource_version)}).encode() + b"\n"


@pytest.fixture(autouse=True)
def _reset_structlog() -> Iterator[None]:
    yield
    structlog.reset_defaults()


@pytest.fixture
def patched_rest(rest_client: RestClient) -> Iterator[MagicMock]:
    with patch("kube_stream_client.cli.rest_client_for", return_value=rest_client) as factory:
        yield factory


class TestResolveClusterConfig:
    def test_cluster_url(self) -> None:
        config = _resolve_cluster_config("https://x/", "tok", None, None, None, None, None)
        assert config.base_url == "https://x"
        assert config.bearer_token == "tok"
        assert config.verify_tls is False

    def test_overrides_applied_to_kubeconfig(self) -> None:
        loaded = ClusterConfig(cluster_id="ctx", base_url="https://k", bearer_token="from-kubeconfig")
        with patch("kube_stream_client.cli.cluster_from_kubeconfig", return_value=loaded) as load:
            config = _resolve_cluster_config(None, None, None, "/tmp/kc", "ctx", True, "ua/1")
        load.assert_called_once_with("ctx", "/tmp/kc")
        assert config.bearer_token == "from-kubeconfig"
        assert config.verify_tls is True
        assert config.user_agent == "ua/1"

    def test_no_overrides_returns_loaded_config(self) -> None:
        loaded = ClusterConfig(cluster_id="ctx", base_url="https://k")
        with patch("kube_stream_client.cli.cluster_from_kubeconfig", return_value=loaded):
            assert _resolve_cluster_config(None, None, None, None, None, None, None) is loaded

    def test_cluster_from_file(self, tmp_path: Path) -> None:
        path = tmp_path / "clusters.yaml"
        path.write_text("clusters:\n  dev:\n    base_url: https://dev.example.test\n    bearer_token: t\n")
        with patch.dict(CLUSTER_MAP, clear=True), patch.dict(os.environ, {"KUBE_STREAM_CLUSTERS": str(path)}):
            config = _resolve_cluster_config(None, None, "dev", None, None, None, None)
        assert config.cluster_id == "dev"
        assert config.base_url == "https://dev.example.test"


class TestGetCommand:
    def test_prints_object(self, fake_api, patched_rest: MagicMock) -> None:
        fake_api.queue_read(json=_make_pod("web", "15"))
        result = CliRunner().invoke(cli, [*_BASE_ARGS, "get", "pod", "web", "-n", "default"])

        assert result.exit_code == 0, result.output
        body = json.loads(result.stdout.strip().splitlines()[-1])
        assert body["metadata"]["name"] == "web"
        assert body["metadata"]["resourceVersion"] == "15"

        cluster_config = patched_rest.call_args.args[0]
        assert cluster_config.base_url == "https://kube.example.test"
        assert cluster_config.bearer_token == "cli-token"

    def test_token_from_environment(self, fake_api, patched_rest: MagicMock) -> None:
        fake_api.queue_read(json=_make_pod("web", "15"))
        args = ["--cluster-url", "https://kube.example.test", "--log-level", "error", "get", "po", "web", "-n", "a"]
        result = CliRunner().invoke(cli, args, env={"KUBE_TOKEN": "env-token"})
        assert result.exit_code == 0, result.output
        assert patched_rest.call_args.args[0].bearer_token == "env-token"

    def test_api_error_is_reported_without_credentials(self, fake_api, patched_rest: MagicMock) -> None:
        fake_api.queue_read(status=401, json={"kind": "Status", "message": "bad Authorization: Bearer abcdef"})
        result = CliRunner().invoke(cli, [*_BASE_ARGS, "get", "pod", "web", "-n", "default"])
        assert result.exit_code == 1
        assert "401" in result.output
        assert "abcdef" not in result.output

    def test_non_json_response_fails(self, fake_api, patched_rest: MagicMock) -> None:
        fake_api.queue_read_content(b"<html>proxy</html>")
        result = CliRunner().invoke(cli, [*_BASE_ARGS, "get", "pod", "web", "-n", "default"])
        assert result.exit_code == 1
        assert "Invalid Pod response (status 200)" in result.output

    def test_unknown_kind_is_usage_error(self, patched_rest: MagicMock) -> None:
        result = CliRunner().invoke(cli, [*_BASE_ARGS, "get", "deployment", "web", "-n", "default"])
        assert result.exit_code == 2
        assert "Unknown resource kind" in result.output

    def test_missing_namespace_is_usage_error(self, fake_api, patched_rest: MagicMock) -> None:
        result = CliRunner().invoke(cli, [*_BASE_ARGS, "get", "pod", "web"])
        assert result.exit_code == 2
        assert "requires a namespace" in result.output
        assert fake_api.requests == []


class TestListCommand:
    def test_prints_collection(self, fake_api, patched_rest: MagicMock) -> None:
        fake_api.queue_read(json={"kind": "PodList", "metadata": {"resourceVersion": "30"}, "items": [_make_pod("a", "29")]})
        result = CliRunner().invoke(cli, [*_BASE_ARGS, "list", "pods", "-n", "default", "-l", "app=web"])

        assert result.exit_code == 0, result.output
        body = json.loads(result.stdout.strip().splitlines()[-1])
        assert body["metadata"]["resourceVersion"] == "30"
        assert body["items"][0]["metadata"]["name"] == "a"
        assert fake_api.requests[0].url.params["labelSelector"] == "app=web"


class TestWatchCommand:
    def test_prints_event_lines(self, fake_api, patched_rest: MagicMock) -> None:
        fake_api.queue_watch(_line("ADDED", "10"), _line("MODIFIED", "11"))
        args = [*_BASE_ARGS, "watch", "pod", "web", "-n", "default", "--resource-version", "9", "--max-events", "2"]
        result = CliRunner().invoke(cli, args)

        assert result.exit_code == 0, result.output
        lines = [json.loads(line) for line in result.stdout.strip().splitlines() if line.startswith('{"type"')]
        assert [line["type"] for line in lines] == ["ADDED", "MODIFIED"]
        assert lines[1]["object"]["metadata"]["resourceVersion"] == "11"
        assert fake_api.watch_requests[0].url.params["resourceVersion"] == "9"

    def test_forbidden_watch_fails(self, fake_api, patched_rest: MagicMock) -> None:
        fake_api.queue_watch(b'{"kind":"Status","code":403,"reason":"Forbidden"}', status=403)
        args = [*_BASE_ARGS, "watch", "pod", "web", "-n", "default", "--resource-version", "9"]
        result = CliRunner().invoke(cli, args)
        assert result.exit_code == 1
        assert "403" in result.output

    def test_non_json_pre_read_fails(self, fake_api, patched_rest: MagicMock) -> None:
        fake_api.queue_read_content(b"<html>proxy</html>")
        result = CliRunner().invoke(cli, [*_BASE_ARGS, "watch", "pod", "web", "-n", "default"])
        assert result.exit_code == 1
        assert "Failed to open watch" in result.output
        assert fake_api.watch_requests == []

    def test_relist_is_logged(self, fake_api, patched_rest: MagicMock) -> None:
        expired = b'{"type":"ERROR","object":{"kind":"Status","code":410,"reason":"Expired"}}\n'
        fake_api.queue_watch(_line("ADDED", "10"), expired)
        fake_api.queue_read(json=_make_pod("web", "50"))
        fake_api.queue_watch(_line("MODIFIED", "51"))
        args = [*_BASE_ARGS, "watch", "pod", "web", "-n", "default", "--resource-version", "9", "--max-events", "2"]

        with patch("kube_stream_client.cli.log") as mock_log:
            result = CliRunner().invoke(cli, args)

        assert result.exit_code == 0, result.output
        mock_log.warning.assert_any_call("watch_state_resynchronised", resource_version="50", objects=1)

    def test_invalid_resource_version(self, fake_api, patched_rest: MagicMock) -> None:
        args = [*_BASE_ARGS, "watch", "pods", "-n", "default", "--resource-version", "1 2"]
        result = CliRunner().invoke(cli, args)
        assert result.exit_code == 2
        assert "Invalid resource version" in result.output


class TestConfigureLogging:
    def test_configures_structlog(self) -> None:
        configure_logging("debug")
        assert structlog.is_configured()

    def test_unknown_level_falls_back_to_info(self) -> None:
        configure_logging("chatty")
        assert structlog.is_configured()
