"""Chat completions transport over httpx."""

from __future__ import annotations

import json
from collections.abc import Iterable
from typing import Any

import httpx
from pydantic import SecretStr, ValidationError

from ...core.config import DEFAULT_API_URL
from ...core.exceptions import (
    ProtocolViolationError,
    RateLimitExceeded,
    RemoteServiceError,
    TransportFailureError,
    UnrecoverableRemoteError,
    UnresponsiveApiError,
)
from ...core.http_client import async_http_client, build_timeout
from ...core.logging_config import get_logger
from ..schemas.chat import Message
from ..schemas.completion import Choice, CompletionResponse, CompletionUsage
from ..schemas.options import CompletionParameters
from .aggregator import StreamCallback, aggregate
from .stream_parser import iter_frames

logger = get_logger(__name__)


def mask_secret(secret: str) -> str:
    if len(secret) <= 8:
        return "***"
    return f"{secret[:4]}***{secret[-4:]}"


class CompletionsClient:
    """Issue one chat completion request and classify its outcome."""

    def __init__(
        self,
        api_key: SecretStr | str,
        api_url: str | None = None,
        *,
        unresponsive_api_timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key if isinstance(api_key, SecretStr) else SecretStr(api_key)
        self.api_url = api_url or DEFAULT_API_URL
        self._timeout = build_timeout(unresponsive_api_timeout)
        self._transport = transport
        logger.debug(
            "completions_client_init",
            api_url=self.api_url,
            api_key_masked=mask_secret(self._api_key.get_secret_value()),
            unresponsive_api_timeout=unresponsive_api_timeout,
        )

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key.get_secret_value()}",
            "Content-Type": "application/json",
        }

    def build_payload(
        self,
        messages: Iterable[Message],
        parameters: CompletionParameters,
        *,
        functions: list[dict[str, Any]] | None = None,
        stream: bool = False,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "messages": [message.to_wire() for message in messages],
            **parameters.to_wire(with_functions=bool(functions)),
        }
        if functions:
            payload["functions"] = functions
        if stream:
            payload["stream"] = True
        return payload

    async def create(
        self,
        messages: Iterable[Message],
        parameters: CompletionParameters,
        *,
        functions: list[dict[str, Any]] | None = None,
        on_message: StreamCallback | None = None,
    ) -> CompletionResponse:
        """Send the request; stream through ``on_message`` when it is given."""

        stream = on_message is not None
        payload = self.build_payload(
            messages, parameters, functions=functions, stream=stream
        )
        logger.info(
            "completion_request",
            model=parameters.model,
            message_count=len(payload["messages"]),
            function_count=len(functions or []),
            stream=stream,
        )

        try:
            async with async_http_client(
                headers=self._headers(), timeout=self._timeout, transport=self._transport
            ) as client:
                if stream:
                    return await self._create_streamed(client, payload, on_message)
                return await self._create_buffered(client, payload)
        except httpx.TimeoutException as exc:
            raise UnresponsiveApiError(f"Completion API stopped responding: {exc}") from exc
        except httpx.TransportError as exc:
            raise TransportFailureError(f"Completion request failed: {exc}") from exc

    async def _create_streamed(
        self,
        client: httpx.AsyncClient,
        payload: dict[str, Any],
        on_message: StreamCallback | None,
    ) -> CompletionResponse:
        async with client.stream("POST", self.api_url, json=payload) as response:
            if response.is_error:
                await response.aread()
                raise_for_remote_status(response)
            if response.headers.get("content-type", "").startswith("application/json"):
                await response.aread()
                raise UnrecoverableRemoteError(response.text, response.status_code)

            choices = await aggregate(iter_frames(response.aiter_text()), on_message)

        logger.info("completion_streamed", choices=len(choices))
        return CompletionResponse(choices=choices)

    async def _create_buffered(
        self, client: httpx.AsyncClient, payload: dict[str, Any]
    ) -> CompletionResponse:
        response = await client.post(self.api_url, json=payload)
        if response.is_error:
            raise_for_remote_status(response)

        try:
            body = response.json()
        except json.JSONDecodeError as exc:
            raise ProtocolViolationError(
                f"Expected a JSON completion body, got: {response.text[:200]}"
            ) from exc

        if isinstance(body, dict) and "error" in body:
            raise UnrecoverableRemoteError(response.text, response.status_code)

        result = parse_buffered_response(body)
        logger.info(
            "completion_received",
            choices=len(result.choices),
            tokens_total=result.usage.total_tokens if result.usage else None,
        )
        return result


def raise_for_remote_status(response: httpx.Response) -> None:
    """Map an error status onto the failure taxonomy."""

    status = response.status_code
    if status == httpx.codes.TOO_MANY_REQUESTS:
        raise RateLimitExceeded(response.text, status)
    if response.is_client_error:
        logger.error("completion_rejected", status_code=status, body=response.text[:500])
        raise UnrecoverableRemoteError(response.text, status)
    raise RemoteServiceError(
        f"Completion API responded with {status}: {response.text[:200]}", status
    )


def parse_buffered_response(body: Any) -> CompletionResponse:
    """Project ``choices[].message`` of a buffered body onto ``Choice``."""

    if not isinstance(body, dict) or not isinstance(body.get("choices"), list):
        raise ProtocolViolationError(f"Completion body has no choices: {str(body)[:200]}")

    try:
        choices = [
            Choice(
                role=(entry.get("message") or {}).get("role") or "assistant",
                content=(entry.get("message") or {}).get("content"),
                finish_reason=entry.get("finish_reason"),
                function_call=(entry.get("message") or {}).get("function_call"),
            )
            for entry in body["choices"]
        ]
        usage = CompletionUsage.model_validate(body["usage"]) if body.get("usage") else None
    except (AttributeError, ValidationError) as exc:
        raise ProtocolViolationError(f"Malformed completion body: {exc}") from exc

    return CompletionResponse(choices=choices, usage=usage)
