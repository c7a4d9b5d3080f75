"""Async client for the NOPE risk-classification API.

Example::

    from nope_sdk import NopeClient

    client = NopeClient(api_key="nope_live_...")
    result = await client.evaluate(
        messages=[{"role": "user", "content": "I feel hopeless"}],
        config={"user_country": "US"},
    )
    print(result.global_.overall_severity)
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
import json
import logging
import math
from time import perf_counter
from typing import Any, TypeVar

import httpx
from opentelemetry import trace
from pydantic import BaseModel, ValidationError

from nope_sdk import __version__
from nope_sdk.config import DEFAULT_BASE_URL, DEFAULT_TIMEOUT_MS, NopeSettings, load_settings
from nope_sdk.errors import ErrorKind, NopeError, error_for_status
from nope_sdk.types import EvaluateConfig, EvaluateResponse, Message, ScreenConfig, ScreenResponse

logger = logging.getLogger(__name__)

ResponseT = TypeVar("ResponseT", bound=BaseModel)

MessageInput = Message | Mapping[str, Any]

USER_AGENT = f"nope-python/{__version__}"


def _dump(item: BaseModel | Mapping[str, Any]) -> dict[str, Any]:
    if isinstance(item, BaseModel):
        return item.model_dump(exclude_none=True)
    return dict(item)


def _require_one_input(messages: Sequence[MessageInput] | None, text: str | None) -> None:
    if messages is None and text is None:
        raise NopeError(ErrorKind.INVALID_INPUT, "Either 'messages' or 'text' must be provided")
    if messages is not None and text is not None:
        raise NopeError(ErrorKind.INVALID_INPUT, "Only one of 'messages' or 'text' can be provided, not both")


def _error_message(body: str) -> str:
    try:
        data = json.loads(body)
    except ValueError:
        return body
    if isinstance(data, dict) and isinstance(data.get("error"), str):
        return data["error"]
    return body


def _retry_after_ms(value: str | None) -> float | None:
    if not value:
        return None
    try:
        seconds = float(value)
    except ValueError:
        return None
    if not math.isfinite(seconds) or seconds < 0:
        return None
    return seconds * 1000


class NopeClient:
    def __init__(
        self,
        api_key: str | None = None,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        client_factory: Callable[[], httpx.AsyncClient] | None = None,
        tracer: trace.Tracer | None = None,
    ) -> None:
        """Create a client.

        ``api_key`` may be omitted for unauthenticated local testing.
        ``client_factory`` lets callers supply their own ``httpx.AsyncClient``
        (transport, proxies, pooling); the configured timeout still applies to
        every request.
        """
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._timeout_ms = timeout_ms
        self._timeout = httpx.Timeout(timeout_ms / 1000.0)
        self._client_factory = client_factory
        self._tracer = tracer or trace.get_tracer("nope-sdk")

    @classmethod
    def from_settings(cls, settings: NopeSettings, **kwargs: Any) -> NopeClient:
        return cls(
            api_key=settings.NOPE_API_KEY or None,
            base_url=settings.NOPE_BASE_URL,
            timeout_ms=settings.NOPE_TIMEOUT_MS,
            **kwargs,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def timeout_ms(self) -> int:
        return self._timeout_ms

    async def evaluate(
        self,
        *,
        messages: Sequence[MessageInput] | None = None,
        text: str | None = None,
        config: EvaluateConfig | Mapping[str, Any] | None = None,
        user_context: str | None = None,
    ) -> EvaluateResponse:
        """Assess a conversation (``messages``) or a transcript (``text``) for risk.

        Exactly one of ``messages`` and ``text`` must be given.

        Raises:
            NopeError: ``INVALID_INPUT`` before any request when the input is
                ambiguous, otherwise the kind matching the API failure.
        """
        _require_one_input(messages, text)
        payload: dict[str, Any] = {"config": _dump(config) if config is not None else {}}
        if messages is not None:
            payload["messages"] = [_dump(item) for item in messages]
        if text is not None:
            payload["text"] = text
        if user_context is not None:
            payload["user_context"] = user_context
        return await self._request("/v1/evaluate", payload, EvaluateResponse)

    async def screen(
        self,
        *,
        messages: Sequence[MessageInput] | None = None,
        text: str | None = None,
        config: ScreenConfig | Mapping[str, Any] | None = None,
    ) -> ScreenResponse:
        """Lightweight crisis screening (suicidal ideation and self-harm only)."""
        _require_one_input(messages, text)
        payload: dict[str, Any] = {}
        if messages is not None:
            payload["messages"] = [_dump(item) for item in messages]
        if text is not None:
            payload["text"] = text
        if config is not None:
            payload["config"] = _dump(config)
        return await self._request("/v1/screen", payload, ScreenResponse)

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json", "User-Agent": USER_AGENT}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    async def _request(self, path: str, payload: dict[str, Any], response_model: type[ResponseT]) -> ResponseT:
        url = f"{self._base_url}{path}"
        started = perf_counter()
        with self._tracer.start_as_current_span("nope.request") as span:
            span.set_attribute("http.method", "POST")
            span.set_attribute("http.route", path)
            try:
                factory = self._client_factory or (lambda: httpx.AsyncClient(timeout=self._timeout))
                async with factory() as client:
                    response = await client.post(url, json=payload, headers=self._headers(), timeout=self._timeout)
            except httpx.TimeoutException as exc:
                logger.warning(
                    "nope_request_timeout",
                    extra={"component": "nope_sdk", "path": path, "timeout_ms": self._timeout_ms},
                )
                raise NopeError(ErrorKind.CONNECTION, f"Request timed out after {self._timeout_ms}ms") from exc
            except httpx.HTTPError as exc:
                logger.warning(
                    "nope_request_transport_error",
                    extra={"component": "nope_sdk", "path": path, "error": type(exc).__name__},
                )
                raise NopeError(ErrorKind.CONNECTION, f"Failed to connect to {self._base_url}: {exc}") from exc
            span.set_attribute("http.status_code", response.status_code)

        logger.debug(
            "nope_request_completed",
            extra={
                "component": "nope_sdk",
                "path": path,
                "status_code": response.status_code,
                "duration_ms": (perf_counter() - started) * 1000.0,
            },
        )
        return self._handle_response(response, response_model)

    def _handle_response(self, response: httpx.Response, response_model: type[ResponseT]) -> ResponseT:
        body = response.text
        if response.is_success:
            try:
                data = response.json()
            except ValueError as exc:
                raise NopeError(
                    ErrorKind.API,
                    "Invalid JSON response",
                    status_code=response.status_code,
                    response_body=body,
                ) from exc
            try:
                return response_model.model_validate(data)
            except ValidationError as exc:
                raise NopeError(
                    ErrorKind.API,
                    "Unexpected response shape",
                    status_code=response.status_code,
                    response_body=body,
                ) from exc

        logger.warning(
            "nope_request_failed",
            extra={"component": "nope_sdk", "status_code": response.status_code},
        )
        retry_after = _retry_after_ms(response.headers.get("Retry-After")) if response.status_code == 429 else None
        raise error_for_status(
            response.status_code,
            _error_message(body),
            response_body=body,
            retry_after_ms=retry_after,
        )


def create_client_from_env(**kwargs: Any) -> NopeClient:
    return NopeClient.from_settings(load_settings(), **kwargs)
