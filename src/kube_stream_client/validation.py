"""Input validation helpers for resource names, namespaces, and resource versions."""

from __future__ import annotations

import re

# RFC 1123 label: lowercase alphanumeric and hyphens, 1-63 chars, starts/ends with alphanumeric
_NAMESPACE_RE = re.compile(r"^[a-z0-9]([a-z0-9\-]{0,61}[a-z0-9])?$")

# RFC 1123 subdomain: dot-separated labels, at most 253 chars
_NAME_RE = re.compile(r"^[a-z0-9]([a-z0-9\-.]{0,251}[a-z0-9])?$")

_MAX_NAME_LENGTH = 253


def validate_namespace(namespace: str | None) -> None:
    """Validate a Kubernetes namespace name against RFC 1123."""
    if namespace is None:
        return
    if not _NAMESPACE_RE.match(namespace):
        msg = f"Invalid namespace: {namespace!r}. Must be a valid RFC 1123 label."
        raise ValueError(msg)


def validate_resource_name(name: str) -> None:
    """Validate an object name against the RFC 1123 subdomain rules most kinds use."""
    if len(name) > _MAX_NAME_LENGTH or not _NAME_RE.match(name) or ".." in name:
        msg = f"Invalid resource name: {name!r}. Must be a valid RFC 1123 subdomain."
        raise ValueError(msg)


def validate_resource_version(resource_version: str | None) -> None:
    """Reject resource versions that cannot be sent as a query parameter.

    The value is otherwise opaque: no numeric or format checks are applied.
    """
    if resource_version is None:
        return
    if not resource_version or any(ch.isspace() for ch in resource_version):
        msg = f"Invalid resource version: {resource_version!r}. Must be a non-empty token without whitespace."
        raise ValueError(msg)
