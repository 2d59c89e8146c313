"""Conversation state machine: message log, turns and function round-trips."""

from __future__ import annotations

import asyncio
import enum
import json
from collections.abc import Mapping
from typing import Any

import httpx

from ...core.config import get_settings
from ...core.exceptions import (
    ConfigurationError,
    ContractViolationError,
    StructuredOutputError,
)
from ...core.logging_config import get_logger
from ...core.retry import RetryPolicy
from ...functions.registry import FunctionRegistry, compile_schema, schema_errors
from ..schemas.chat import FunctionCall, Message
from ..schemas.completion import Choice, Expectation, StructuredChoice
from ..schemas.options import (
    ChatOptions,
    CompletionParameters,
    MessageOptions,
    coerce_message_options,
    resolve_parameters,
)
from .completions_client import CompletionsClient

logger = get_logger(__name__)


class ConversationState(enum.Enum):
    IDLE = "idle"
    AWAITING_COMPLETION = "awaiting_completion"
    FUNCTION_REQUESTED = "function_requested"
    AWAITING_FOLLOWUP_COMPLETION = "awaiting_followup_completion"


def extend_prompt(prompt: str, expect: Expectation) -> str:
    """Append the schema and examples a structured reply must follow."""

    examples = "\n\n".join(json.dumps(example, indent=2) for example in expect.examples)
    return (
        f"{prompt}\n\n"
        "Respond ONLY with a JSON object that satisfies the following schema:\n\n"
        f"{json.dumps(expect.json_schema, indent=2)}\n\n"
        "Examples:\n\n"
        f"{examples}"
    )


def parse_structured_choice(choice: Choice, expect: Expectation) -> StructuredChoice:
    try:
        parsed = json.loads(choice.content or "")
    except json.JSONDecodeError as exc:
        raise StructuredOutputError("Response is not valid JSON", [str(exc)]) from exc

    validator = compile_schema(expect.json_schema, owner="expected response")
    errors = schema_errors(validator, parsed)
    if errors:
        raise StructuredOutputError("Invalid response", errors)

    return StructuredChoice(
        role=choice.role,
        content=parsed,
        finish_reason=choice.finish_reason,
        function_call=choice.function_call,
    )


class Chat:
    """One conversation with the completions service.

    Owns the ordered message log and the function registry. Turns on one
    instance are serialised by a lock spanning the user message append to
    the final choice append.
    """

    def __init__(
        self,
        options: ChatOptions,
        *,
        retry_policy: RetryPolicy | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = get_settings()
        api_key = options.api_key or settings.openai_api_key
        if api_key is None:
            raise ConfigurationError(
                "An API key is required: pass api_key or set OPENAI_API_KEY"
            )

        self._defaults: CompletionParameters = options.parameters()
        self._registry = FunctionRegistry(options.functions)
        self._client = CompletionsClient(
            api_key,
            options.api_url or str(settings.openai_api_url),
            unresponsive_api_timeout=options.unresponsive_api_timeout,
            transport=transport,
        )
        self._retry = retry_policy or RetryPolicy.from_settings()
        self._messages: list[Message] = []
        self._lock = asyncio.Lock()
        self.state = ConversationState.IDLE

    def get_messages(self) -> list[Message]:
        """Return a snapshot of the log; messages themselves are immutable."""

        return list(self._messages)

    def add_message(self, message: Message | Mapping[str, Any]) -> None:
        """Append a message without requesting a completion."""

        if not isinstance(message, Message):
            message = Message.model_validate(dict(message))
        self._messages.append(message)

    async def send_message(
        self,
        prompt: str,
        options: MessageOptions | Mapping[str, Any] | None = None,
    ) -> Choice | StructuredChoice:
        """Run one turn and return the final choice."""

        message_options = coerce_message_options(options)
        expect = message_options.expect if message_options else None
        parameters = resolve_parameters(self._defaults, message_options)

        async with self._lock:
            try:
                self._messages.append(self._prompt_message(prompt, message_options))

                self.state = ConversationState.AWAITING_COMPLETION
                choice = await self._complete(parameters, message_options)
                self._messages.append(choice.to_message())

                if choice.function_call is not None:
                    self.state = ConversationState.FUNCTION_REQUESTED
                    await self._run_function(choice.function_call, parameters)

                    self.state = ConversationState.AWAITING_FOLLOWUP_COMPLETION
                    choice = await self._complete(parameters, message_options)
                    self._messages.append(choice.to_message())
                    if choice.function_call is not None:
                        logger.info(
                            "function_chain_not_followed",
                            name=choice.function_call.name,
                        )
            finally:
                self.state = ConversationState.IDLE

        if expect is not None:
            return parse_structured_choice(choice, expect)
        return choice

    def _prompt_message(self, prompt: str, options: MessageOptions | None) -> Message:
        if options is not None and options.expect is not None:
            # The augmented text is what the model sees, so it is what the log keeps.
            prompt = extend_prompt(prompt, options.expect)
        if options is not None and options.function_name:
            return Message(role="function", name=options.function_name, content=prompt)
        return Message(role="user", content=prompt)

    async def _complete(
        self,
        parameters: CompletionParameters,
        options: MessageOptions | None,
    ) -> Choice:
        on_message = options.on_message if options else None
        functions = self._registry.declarations() or None

        response = await self._retry.attempt(
            lambda: self._client.create(
                self._messages,
                parameters,
                functions=functions,
                on_message=on_message,
            )
        )

        if not response.choices:
            raise ContractViolationError("No choices returned")
        if len(response.choices) > 1:
            raise ContractViolationError(
                f"Expected only one choice, got {len(response.choices)}"
            )
        return response.choices[0]

    async def _run_function(
        self, function_call: FunctionCall, parameters: CompletionParameters
    ) -> None:
        name = parameters.forced_function_name or function_call.name

        invocation = await self._registry.call(name, function_call.arguments)
        self._messages.append(
            Message(
                role="function",
                name=name,
                content=json.dumps(invocation.result, default=str),
            )
        )


def create_chat(**options: Any) -> Chat:
    """Create a conversation from keyword options (see ``ChatOptions``).

    ``retry_policy`` and ``transport`` are passed to ``Chat`` directly.
    """

    retry_policy = options.pop("retry_policy", None)
    transport = options.pop("transport", None)
    return Chat(ChatOptions(**options), retry_policy=retry_policy, transport=transport)
