"""Multi-turn chat completions client with streaming and function calling."""

from .core.exceptions import (
    CancelledCompletionError,
    ChatCompletionsError,
    ConfigurationError,
    ContractViolationError,
    ErrorKind,
    FunctionArgumentsError,
    FunctionNotFoundError,
    ProtocolViolationError,
    StructuredOutputError,
    TransientError,
    UnrecoverableRemoteError,
)
from .functions.registry import UserFunction
from .llm.schemas.chat import FunctionCall, Message
from .llm.schemas.completion import Choice, Expectation, StructuredChoice
from .llm.schemas.options import ChatOptions, MessageOptions
from .llm.services.aggregator import StreamEvent
from .llm.services.conversation import Chat, create_chat

__all__ = [
    "CancelledCompletionError",
    "Chat",
    "ChatCompletionsError",
    "ChatOptions",
    "Choice",
    "ConfigurationError",
    "ContractViolationError",
    "create_chat",
    "ErrorKind",
    "Expectation",
    "FunctionArgumentsError",
    "FunctionCall",
    "FunctionNotFoundError",
    "Message",
    "MessageOptions",
    "ProtocolViolationError",
    "StreamEvent",
    "StructuredChoice",
    "StructuredOutputError",
    "TransientError",
    "UnrecoverableRemoteError",
    "UserFunction",
]
