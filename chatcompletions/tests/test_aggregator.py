import pytest

from chatcompletions.core.exceptions import CancelledCompletionError, ProtocolViolationError
from chatcompletions.llm.schemas.completion import ResponseChunk
from chatcompletions.llm.services.aggregator import ResponseAggregator, aggregate


def _frames(*chunks):
    return [ResponseChunk.model_validate(chunk) for chunk in chunks]


async def _iterate(frames):
    for frame in frames:
        yield frame


@pytest.mark.asyncio
async def test_aggregate_builds_pong_choice(make_chunk):
    frames = _frames(
        make_chunk({"role": "assistant"}),
        make_chunk({"content": "Pong"}),
        make_chunk({}, finish_reason="stop"),
    )

    choices = await aggregate(_iterate(frames))

    assert len(choices) == 1
    assert choices[0].role == "assistant"
    assert choices[0].content == "Pong"
    assert choices[0].finish_reason == "stop"
    assert choices[0].function_call is None


def test_content_accumulates_and_role_is_set_once(make_chunk):
    aggregator = ResponseAggregator()
    for chunk in _frames(
        make_chunk({"role": "assistant", "content": ""}),
        make_chunk({"role": "user", "content": "Hello"}),
        make_chunk({"content": ", world"}, finish_reason="stop"),
    ):
        aggregator.feed(chunk)

    (choice,) = aggregator.finalize()

    assert choice.role == "assistant"
    assert choice.content == "Hello, world"


def test_function_call_fragments_are_concatenated(make_chunk):
    aggregator = ResponseAggregator()
    for chunk in _frames(
        make_chunk({"role": "assistant", "content": None, "function_call": {"name": "get_current", "arguments": ""}}),
        make_chunk({"function_call": {"name": "_weather"}}),
        make_chunk({"function_call": {"arguments": '{"location":'}}),
        make_chunk({"function_call": {"arguments": ' "Albuquerque"}'}}),
        make_chunk({}, finish_reason="function_call"),
    ):
        aggregator.feed(chunk)

    (choice,) = aggregator.finalize()

    assert choice.content is None
    assert choice.finish_reason == "function_call"
    assert choice.function_call.name == "get_current_weather"
    assert choice.function_call.arguments == '{"location": "Albuquerque"}'


def test_parallel_choices_are_kept_by_index(make_chunk):
    aggregator = ResponseAggregator()
    for chunk in _frames(
        make_chunk({"role": "assistant", "content": "B"}, index=1),
        make_chunk({"role": "assistant", "content": "A"}, index=0),
        make_chunk({}, index=0, finish_reason="stop"),
        make_chunk({}, index=1, finish_reason="length"),
    ):
        aggregator.feed(chunk)

    choices = aggregator.finalize()

    assert [choice.content for choice in choices] == ["A", "B"]
    assert [choice.finish_reason for choice in choices] == ["stop", "length"]


def test_missing_role_defaults_to_assistant(make_chunk):
    aggregator = ResponseAggregator()
    aggregator.feed(_frames(make_chunk({"content": "It is sunny."}, finish_reason="stop"))[0])

    (choice,) = aggregator.finalize()

    assert choice.role == "assistant"


def test_stream_without_finish_reason_is_a_protocol_violation(make_chunk):
    aggregator = ResponseAggregator()
    aggregator.feed(_frames(make_chunk({"role": "assistant", "content": "cut"}))[0])

    with pytest.raises(ProtocolViolationError):
        aggregator.finalize()


@pytest.mark.asyncio
async def test_cancel_before_content_raises_with_partial_choices(make_chunk):
    frames = _frames(
        make_chunk({"role": "assistant"}),
        make_chunk({"content": "never seen"}),
        make_chunk({}, finish_reason="stop"),
    )
    seen = []

    def on_message(event):
        seen.append(event.message)
        event.cancel()

    with pytest.raises(CancelledCompletionError) as exc_info:
        await aggregate(_iterate(frames), on_message)

    assert len(seen) == 1
    (partial,) = exc_info.value.choices
    assert partial.role == "assistant"
    assert partial.content is None


@pytest.mark.asyncio
async def test_async_callback_can_cancel_mid_stream(make_chunk):
    frames = _frames(
        make_chunk({"role": "assistant"}),
        make_chunk({"content": "a b"}),
        make_chunk({"content": " c d"}),
        make_chunk({}, finish_reason="stop"),
    )

    async def on_message(event):
        if event.message.choices[0].delta.content:
            event.cancel()

    with pytest.raises(CancelledCompletionError) as exc_info:
        await aggregate(_iterate(frames), on_message)

    assert exc_info.value.choices[0].content == "a b"


@pytest.mark.asyncio
async def test_callback_sees_every_frame(make_chunk):
    frames = _frames(
        make_chunk({"role": "assistant"}),
        make_chunk({"content": "Pong"}),
        make_chunk({}, finish_reason="stop"),
    )
    seen = []

    await aggregate(_iterate(frames), seen.append)

    assert len(seen) == 3
