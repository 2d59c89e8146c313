import json
from collections.abc import Callable
from typing import Any

import httpx
import pytest

from chatcompletions.core.retry import RetryPolicy


def _chunk(
    delta: dict[str, Any],
    *,
    index: int = 0,
    finish_reason: str | None = None,
) -> dict[str, Any]:
    return {
        "id": "chatcmpl-123",
        "object": "chat.completion.chunk",
        "created": 1694268190,
        "model": "gpt-3.5-turbo-0613",
        "choices": [{"index": index, "finish_reason": finish_reason, "delta": delta}],
    }


def _sse_body(*chunks: dict[str, Any], done: bool = True) -> str:
    lines = [f"data: {json.dumps(chunk)}" for chunk in chunks]
    if done:
        lines.append("data: [DONE]")
    return "\n\n".join(lines) + "\n\n"


def _completion_body(*messages: dict[str, Any], finish_reason: str = "stop") -> dict[str, Any]:
    return {
        "id": "chatcmpl-123",
        "object": "chat.completion",
        "created": 1694268190,
        "model": "gpt-3.5-turbo-0613",
        "choices": [
            {"index": index, "message": message, "finish_reason": finish_reason}
            for index, message in enumerate(messages)
        ],
        "usage": {"prompt_tokens": 9, "completion_tokens": 12, "total_tokens": 21},
    }


@pytest.fixture
def make_chunk() -> Callable[..., dict[str, Any]]:
    return _chunk


@pytest.fixture
def sse_body() -> Callable[..., str]:
    return _sse_body


@pytest.fixture
def completion_body() -> Callable[..., dict[str, Any]]:
    return _completion_body


@pytest.fixture
def pong_stream() -> str:
    return _sse_body(
        _chunk({"role": "assistant", "content": ""}),
        _chunk({"content": "Pong"}),
        _chunk({}, finish_reason="stop"),
    )


class FakeCompletionsServer:
    """Replays queued responses and records every request body."""

    def __init__(self) -> None:
        self.responses: list[httpx.Response | Exception] = []
        self.requests: list[httpx.Request] = []

    @property
    def bodies(self) -> list[dict[str, Any]]:
        return [json.loads(request.content) for request in self.requests]

    def stream(self, body: str) -> None:
        self.responses.append(
            httpx.Response(200, text=body, headers={"content-type": "text/event-stream"})
        )

    def json(self, payload: dict[str, Any], status_code: int = 200) -> None:
        self.responses.append(httpx.Response(status_code, json=payload))

    def fail(self, exc: Exception) -> None:
        self.responses.append(exc)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.responses:
            raise AssertionError("No queued response for request")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def server() -> FakeCompletionsServer:
    return FakeCompletionsServer()


@pytest.fixture
def no_delay_retry() -> RetryPolicy:
    return RetryPolicy(max_retries=3, delay=0)

