"""Service layer exports."""

from .aggregator import ResponseAggregator, StreamEvent, aggregate
from .completions_client import CompletionsClient
from .conversation import Chat, ConversationState, create_chat
from .stream_parser import StreamFrameParser, iter_frames

__all__ = [
    "aggregate",
    "Chat",
    "CompletionsClient",
    "ConversationState",
    "create_chat",
    "iter_frames",
    "ResponseAggregator",
    "StreamEvent",
    "StreamFrameParser",
]
