"""Server-sent-event frame decoding for streamed completions."""

from __future__ import annotations

import json
from collections.abc import AsyncIterable, AsyncIterator

from pydantic import ValidationError

from ...core.exceptions import ProtocolViolationError, UnrecoverableRemoteError
from ...core.logging_config import get_logger
from ..schemas.completion import ResponseChunk

logger = get_logger(__name__)

DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"


class StreamFrameParser:
    """Incremental decoder turning text fragments into response chunks.

    Fragments may carry several lines or end mid-line; the unterminated tail
    is held back until its newline arrives or the transport closes.

    States:
      init   - nothing but whitespace seen yet
      frames - reading ``data:`` frames
      done   - the ``[DONE]`` sentinel was seen
    """

    def __init__(self) -> None:
        self._pending = ""
        self.state = "init"

    @property
    def done(self) -> bool:
        return self.state == "done"

    def feed(self, fragment: str) -> list[ResponseChunk]:
        """Feed one fragment and return the frames it completed."""

        if self.done:
            return []

        self._pending += fragment
        if self.state == "init":
            stripped = self._pending.lstrip()
            if not stripped:
                return []
            if stripped.startswith("{"):
                # The service answered with a JSON error object, not a stream.
                raise UnrecoverableRemoteError(stripped)
            self.state = "frames"

        *lines, self._pending = self._pending.split("\n")
        return self._parse_lines(lines)

    def finish(self) -> list[ResponseChunk]:
        """Flush the final unterminated line once the transport closes."""

        if self.done:
            return []
        tail, self._pending = self._pending, ""
        return self._parse_lines([tail])

    def _parse_lines(self, lines: list[str]) -> list[ResponseChunk]:
        frames: list[ResponseChunk] = []
        for raw_line in lines:
            line = raw_line.strip()
            if not line:
                continue

            if not line.startswith(DATA_PREFIX):
                raise ProtocolViolationError(f"Unexpected message: {line}")

            data = line[len(DATA_PREFIX):].strip()
            if data == DONE_SENTINEL:
                self.state = "done"
                break

            frames.append(parse_frame(data))
        return frames


def parse_frame(data: str) -> ResponseChunk:
    try:
        return ResponseChunk.model_validate(json.loads(data))
    except (json.JSONDecodeError, ValidationError) as exc:
        raise ProtocolViolationError(f"Malformed stream frame: {data[:200]}") from exc


async def iter_frames(fragments: AsyncIterable[str]) -> AsyncIterator[ResponseChunk]:
    """Yield response chunks until ``[DONE]`` or the end of the transport."""

    parser = StreamFrameParser()
    async for fragment in fragments:
        for frame in parser.feed(fragment):
            yield frame
        if parser.done:
            return

    for frame in parser.finish():
        yield frame
    if not parser.done:
        logger.debug("stream_closed_without_sentinel")
