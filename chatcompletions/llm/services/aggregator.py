"""Fold streamed deltas into completed choices."""

from __future__ import annotations

import inspect
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from ...core.exceptions import CancelledCompletionError, ProtocolViolationError
from ...core.logging_config import get_logger
from ..schemas.completion import (
    Choice,
    PartialChoice,
    PartialFunctionCall,
    ResponseChunk,
)

logger = get_logger(__name__)

DEFAULT_ROLE = "assistant"


@dataclass
class StreamEvent:
    """What a streaming callback receives for every frame."""

    message: ResponseChunk
    _cancel: Callable[[], None] = field(repr=False)

    def cancel(self) -> None:
        """Stop reading the stream; the completion then raises CancelledCompletionError."""

        self._cancel()


StreamCallback = Callable[[StreamEvent], Any]


class ResponseAggregator:
    """Accumulate per-index choices from response chunks."""

    def __init__(self) -> None:
        self._choices: dict[int, PartialChoice] = {}
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True

    def feed(self, chunk: ResponseChunk) -> None:
        for chunk_choice in chunk.choices:
            choice = self._choices.setdefault(chunk_choice.index, PartialChoice())
            delta = chunk_choice.delta

            if chunk_choice.finish_reason is not None:
                choice.finish_reason = chunk_choice.finish_reason

            if delta.role is not None and choice.role is None:
                choice.role = delta.role

            if delta.content is not None:
                choice.content = (choice.content or "") + delta.content

            if delta.function_call is not None:
                if choice.function_call is None:
                    choice.function_call = PartialFunctionCall()
                choice.function_call.name += delta.function_call.name or ""
                choice.function_call.arguments += delta.function_call.arguments or ""

    def partial_choices(self) -> list[PartialChoice]:
        return [self._choices[index] for index in sorted(self._choices)]

    def finalize(self) -> list[Choice]:
        """Validate buffered choices once the stream has ended."""

        if self.cancelled:
            raise CancelledCompletionError(self.partial_choices())

        choices: list[Choice] = []
        for partial in self.partial_choices():
            # The role is omitted on continuations after a function result.
            if partial.role is None:
                partial.role = DEFAULT_ROLE
            try:
                choices.append(Choice.model_validate(partial.as_dict()))
            except ValidationError as exc:
                raise ProtocolViolationError(
                    f"Stream ended with an incomplete choice: {partial.as_dict()}"
                ) from exc
        return choices


async def aggregate(
    frames: AsyncIterator[ResponseChunk],
    on_message: StreamCallback | None = None,
) -> list[Choice]:
    """Consume frames, notifying ``on_message`` for each, and return the choices."""

    aggregator = ResponseAggregator()
    frame_count = 0

    async for chunk in frames:
        frame_count += 1
        if on_message is not None:
            outcome = on_message(StreamEvent(message=chunk, _cancel=aggregator.cancel))
            if inspect.isawaitable(outcome):
                await outcome
        aggregator.feed(chunk)
        if aggregator.cancelled:
            logger.info("stream_cancelled", frames=frame_count)
            break

    if aggregator.cancelled and hasattr(frames, "aclose"):
        await frames.aclose()

    return aggregator.finalize()
