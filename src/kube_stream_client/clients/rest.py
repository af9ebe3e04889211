"""REST client: base URL plus request building over a transport chain."""

from __future__ import annotations

from typing import Any, TypeVar

import httpx
import structlog
from pydantic import BaseModel, ValidationError

from kube_stream_client.errors import ApiError, InvalidResponse
from kube_stream_client.models import scrub_sensitive_values
from kube_stream_client.transport import RoundTripper, read_body

log = structlog.get_logger()

ModelT = TypeVar("ModelT", bound=BaseModel)


class RestClient:
    """Issues GET requests against one API server through a shared transport chain."""

    def __init__(self, transport: RoundTripper, base_url: str) -> None:
        self._transport = transport
        self._base_url = base_url.rstrip("/")

    @property
    def transport(self) -> RoundTripper:
        return self._transport

    @property
    def base_url(self) -> str:
        return self._base_url

    def build_request(self, path: str, params: dict[str, Any] | None = None) -> httpx.Request:
        query = {k: v for k, v in (params or {}).items() if v is not None}
        return httpx.Request(
            "GET",
            f"{self._base_url}{path}",
            params=query,
            headers={"Accept": "application/json"},
        )

    def stream(self, path: str, params: dict[str, Any] | None = None) -> httpx.Response:
        """Send a GET and return the response with its body unread."""
        return self._transport.round_trip(self.build_request(path, params))

    def _read(self, path: str, params: dict[str, Any] | None) -> tuple[int, bytes]:
        response = self.stream(path, params)
        body = read_body(response)
        if not response.is_success:
            text = body.decode("utf-8", errors="replace")
            log.error(
                "api_request_failed",
                path=path,
                status=response.status_code,
                body=scrub_sensitive_values(text[:200]),
            )
            raise ApiError(response.status_code, text)
        return response.status_code, body

    def get(self, path: str, params: dict[str, Any] | None = None) -> bytes:
        """Send a GET and return the body of a successful response.

        Raises:
            ApiError: The server answered with a non-success status.
            TransportError: The request never completed.
        """
        return self._read(path, params)[1]

    def get_model(self, path: str, model: type[ModelT], params: dict[str, Any] | None = None) -> ModelT:
        """GET ``path`` and validate the JSON body as ``model``.

        Raises:
            InvalidResponse: The body is not JSON or does not match ``model``,
                e.g. an HTML page from a proxy in front of the API server.
            ApiError: The server answered with a non-success status.
            TransportError: The request never completed.
        """
        status, body = self._read(path, params)
        try:
            return model.model_validate_json(body)
        except ValidationError as exc:
            text = scrub_sensitive_values(body.decode("utf-8", errors="replace"))
            log.error(
                "api_response_invalid",
                path=path,
                model=model.__name__,
                status=status,
                body=text[:200],
                errors=exc.error_count(),
            )
            raise InvalidResponse(status, text, model.__name__) from exc
