"""Entry point for `python -m kube_stream_client`."""

from kube_stream_client.cli import cli

cli()
