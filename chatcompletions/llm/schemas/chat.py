"""Pydantic schema for conversation messages."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


RoleLiteral = Literal["system", "user", "assistant", "function"]


class FunctionCall(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., min_length=1)
    arguments: str = Field("", description="Raw JSON text as emitted by the model")


class Message(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    role: RoleLiteral
    content: str | None = None
    name: str | None = Field(None, description="Function name for function messages")
    function_call: FunctionCall | None = Field(
        None, description="Assistant-emitted function call"
    )

    def to_wire(self) -> dict[str, Any]:
        payload = self.model_dump(exclude_none=True)
        payload.setdefault("content", None)
        return payload
