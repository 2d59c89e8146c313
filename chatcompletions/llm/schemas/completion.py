"""Pydantic schemas for completion requests, streamed chunks and choices."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from .chat import FunctionCall, Message, RoleLiteral


# ---------------------------------------------------------------------------
# Streamed frames
# ---------------------------------------------------------------------------

class FunctionCallDelta(BaseModel):
    name: str | None = None
    arguments: str | None = None


class ChoiceDelta(BaseModel):
    role: RoleLiteral | None = None
    content: str | None = None
    function_call: FunctionCallDelta | None = None


class ChunkChoice(BaseModel):
    index: int
    finish_reason: str | None = None
    delta: ChoiceDelta


class ResponseChunk(BaseModel):
    """One ``data:`` frame of a streamed completion.

    Providers add fields over time (``system_fingerprint``, ``logprobs``),
    so unknown keys are ignored while the known ones are enforced.
    """

    model_config = ConfigDict(extra="ignore")

    id: str
    object: Literal["chat.completion.chunk"]
    created: int
    model: str
    choices: list[ChunkChoice]


# ---------------------------------------------------------------------------
# Aggregated results
# ---------------------------------------------------------------------------

class Choice(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    role: RoleLiteral
    content: str | None = None
    finish_reason: str
    function_call: FunctionCall | None = None

    def to_message(self) -> Message:
        return Message(
            role=self.role,
            content=self.content,
            function_call=self.function_call,
        )


class StructuredChoice(BaseModel):
    """A choice whose content was parsed and validated as JSON."""

    model_config = ConfigDict(frozen=True)

    role: RoleLiteral
    content: Any
    finish_reason: str
    function_call: FunctionCall | None = None


class CompletionUsage(BaseModel):
    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    total_tokens: int | None = None


class CompletionResponse(BaseModel):
    choices: list[Choice]
    usage: CompletionUsage | None = Field(None, description="Reported by buffered responses only")


@dataclass(slots=True)
class PartialFunctionCall:
    name: str = ""
    arguments: str = ""


@dataclass(slots=True)
class PartialChoice:
    """In-progress state of one streamed choice."""

    role: str | None = None
    content: str | None = None
    finish_reason: str | None = None
    function_call: PartialFunctionCall | None = None

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "role": self.role,
            "content": self.content,
            "finish_reason": self.finish_reason,
        }
        if self.function_call is not None:
            payload["function_call"] = {
                "name": self.function_call.name,
                "arguments": self.function_call.arguments,
            }
        return payload


# ---------------------------------------------------------------------------
# Structured output
# ---------------------------------------------------------------------------

class Expectation(BaseModel):
    """Contract the next assistant reply must satisfy."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    json_schema: dict[str, Any] = Field(..., alias="schema")
    examples: list[Any] = Field(default_factory=list)

