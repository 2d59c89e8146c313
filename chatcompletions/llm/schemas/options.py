"""Layered completion options: conversation defaults plus per-call overrides.

Override table (conversation default -> per-call override):

==========================  ============  ========  =====================
field                       conversation  per call  wire
==========================  ============  ========  =====================
model                       yes           yes       ``model``
function_call               yes           yes       ``function_call``
temperature .. user         yes           yes       same name
api_key                     yes           no        bearer header
api_url                     yes           no        request URL
functions                   yes           no        ``functions``
unresponsive_api_timeout    yes           no        httpx read timeout
on_message                  no            yes       ``stream``
expect                      no            yes       prompt augmentation
function_name               no            yes       message role
==========================  ============  ========  =====================

A per-call field replaces the default only when it is set to a value other
than ``None``.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator

from ...functions.registry import UserFunction
from .completion import Expectation

FunctionCallOption = Literal["auto", "none"] | dict[str, str]


class CompletionParameters(BaseModel):
    """Sampling and routing parameters sent with every completion request."""

    model: str
    function_call: FunctionCallOption | None = None
    temperature: float | None = Field(None, ge=0, le=2)
    top_p: float | None = Field(None, ge=0, le=1)
    n: int | None = Field(None, ge=1)
    stop: str | list[str] | None = None
    frequency_penalty: float | None = Field(None, ge=-2, le=2)
    presence_penalty: float | None = Field(None, ge=-2, le=2)
    logit_bias: dict[str, float] | None = None
    max_tokens: int | None = Field(None, ge=1)
    user: str | None = None

    @property
    def forced_function_name(self) -> str | None:
        if isinstance(self.function_call, dict):
            return self.function_call.get("name")
        return None

    def to_wire(self, *, with_functions: bool) -> dict[str, Any]:
        payload = self.model_dump(exclude_none=True)
        if not with_functions:
            payload.pop("function_call", None)
        return payload


_PARAMETER_FIELDS = frozenset(CompletionParameters.model_fields)


class ChatOptions(CompletionParameters):
    """Conversation-level defaults fixed when the conversation is created."""

    api_key: SecretStr | None = None
    api_url: str | None = None
    functions: list[UserFunction] = Field(default_factory=list)
    unresponsive_api_timeout: float | None = Field(
        None, gt=0, description="Seconds of silence tolerated while reading"
    )

    model_config = ConfigDict(arbitrary_types_allowed=True, extra="forbid")

    @field_validator("functions", mode="before")
    @classmethod
    def _coerce_functions(cls, value: Any) -> list[UserFunction]:
        return [
            item if isinstance(item, UserFunction) else UserFunction.from_mapping(item)
            for item in value or []
        ]

    def parameters(self) -> CompletionParameters:
        return CompletionParameters(
            **{name: getattr(self, name) for name in _PARAMETER_FIELDS}
        )


class MessageOptions(BaseModel):
    """Per-call overrides for a single ``send_message`` turn."""

    model: str | None = None
    function_call: FunctionCallOption | None = None
    temperature: float | None = Field(None, ge=0, le=2)
    top_p: float | None = Field(None, ge=0, le=1)
    n: int | None = Field(None, ge=1)
    stop: str | list[str] | None = None
    frequency_penalty: float | None = Field(None, ge=-2, le=2)
    presence_penalty: float | None = Field(None, ge=-2, le=2)
    logit_bias: dict[str, float] | None = None
    max_tokens: int | None = Field(None, ge=1)
    user: str | None = None

    on_message: Callable[..., Any] | None = None
    expect: Expectation | None = None
    function_name: str | None = Field(
        None, description="Append the prompt as the result of this function"
    )

    model_config = ConfigDict(extra="forbid")


def resolve_parameters(
    defaults: CompletionParameters,
    overrides: MessageOptions | None,
) -> CompletionParameters:
    """Layer per-call overrides over conversation defaults."""

    if overrides is None:
        return defaults
    updates = {
        name: value
        for name in _PARAMETER_FIELDS
        if (value := getattr(overrides, name)) is not None
    }
    return defaults.model_copy(update=updates)


def coerce_message_options(
    options: MessageOptions | Mapping[str, Any] | None,
) -> MessageOptions | None:
    if options is None or isinstance(options, MessageOptions):
        return options
    return MessageOptions.model_validate(dict(options))
