import json

import pytest

from chatcompletions.core.exceptions import (
    ConfigurationError,
    FunctionArgumentsError,
    FunctionNotFoundError,
)
from chatcompletions.functions.registry import FunctionRegistry, UserFunction

WEATHER_PARAMETERS = {
    "type": "object",
    "properties": {
        "location": {
            "type": "string",
            "description": "The city and state, e.g. San Francisco, CA",
        },
        "unit": {"type": "string", "enum": ["celsius", "fahrenheit"]},
    },
    "required": ["location"],
}


def _weather_function(calls, description="Get the current weather in a given location"):
    def get_current_weather(arguments):
        unit = arguments.get("unit", "fahrenheit")
        calls.append({"location": arguments["location"], "unit": unit})
        return {"location": arguments["location"], "temperature": "72", "unit": unit}

    return UserFunction(
        name="get_current_weather",
        description=description,
        parameters=WEATHER_PARAMETERS,
        function=get_current_weather,
    )


@pytest.mark.asyncio
async def test_call_executes_function_with_parsed_arguments():
    calls = []
    registry = FunctionRegistry([_weather_function(calls)])

    invocation = await registry.call(
        "get_current_weather", json.dumps({"location": "Albuquerque"})
    )

    assert calls == [{"location": "Albuquerque", "unit": "fahrenheit"}]
    assert invocation.name == "get_current_weather"
    assert invocation.arguments == {"location": "Albuquerque"}
    assert invocation.result["temperature"] == "72"
    assert invocation.latency_ms >= 0


@pytest.mark.asyncio
async def test_call_passes_the_whole_argument_object():
    received = []
    registry = FunctionRegistry(
        [
            UserFunction(
                name="book_trip",
                parameters={
                    "type": "object",
                    "properties": {"start-date": {"type": "string"}},
                    "required": ["start-date"],
                },
                function=received.append,
            )
        ]
    )
    raw = '{"start-date": "2023-07-01", "travellers": 2}'

    invocation = await registry.call("book_trip", raw)

    assert received == [{"start-date": "2023-07-01", "travellers": 2}]
    assert invocation.raw_arguments == raw
    assert invocation.arguments == {"start-date": "2023-07-01", "travellers": 2}


@pytest.mark.asyncio
async def test_extra_properties_reach_the_callable():
    calls = []
    registry = FunctionRegistry([_weather_function(calls)])

    await registry.call(
        "get_current_weather",
        json.dumps({"location": "Albuquerque", "unit": "celsius", "detail": "hourly"}),
    )

    assert calls == [{"location": "Albuquerque", "unit": "celsius"}]


@pytest.mark.asyncio
async def test_call_repairs_mildly_malformed_json():
    calls = []
    registry = FunctionRegistry([_weather_function(calls)])

    await registry.call("get_current_weather", '{"location": "Albuquerque", "unit": "celsius",}')

    assert calls == [{"location": "Albuquerque", "unit": "celsius"}]


@pytest.mark.asyncio
async def test_call_rejects_arguments_that_violate_the_schema():
    registry = FunctionRegistry([_weather_function([])])

    with pytest.raises(FunctionArgumentsError) as exc_info:
        await registry.call("get_current_weather", json.dumps({"unit": "kelvin"}))

    errors = exc_info.value.errors
    assert any("'location' is a required property" in error for error in errors)
    assert any(error.startswith("unit:") for error in errors)


@pytest.mark.asyncio
async def test_call_unknown_function_raises_not_found():
    registry = FunctionRegistry()

    with pytest.raises(FunctionNotFoundError, match="get_current_weather"):
        await registry.call("get_current_weather", "{}")


@pytest.mark.asyncio
async def test_async_functions_are_awaited():
    async def lookup(arguments):
        return [arguments["query"].upper()]

    registry = FunctionRegistry(
        [
            UserFunction(
                name="lookup",
                parameters={"type": "object", "properties": {"query": {"type": "string"}}},
                function=lookup,
            )
        ]
    )

    invocation = await registry.call("lookup", '{"query": "abc"}')

    assert invocation.result == ["ABC"]


@pytest.mark.asyncio
async def test_repeated_calls_are_not_deduplicated():
    calls = []
    registry = FunctionRegistry([_weather_function(calls)])

    for _ in range(2):
        await registry.call("get_current_weather", '{"location": "Boston"}')

    assert len(calls) == 2


def test_duplicate_names_last_registration_wins():
    first, second = _weather_function([], "first"), _weather_function([], "second")

    registry = FunctionRegistry([first, second])

    assert len(registry) == 1
    assert registry.get("get_current_weather") is second


def test_declarations_render_wire_functions():
    registry = FunctionRegistry(
        [
            _weather_function([]),
            UserFunction(name="ping", parameters={"type": "object"}, function=lambda arguments: "pong"),
        ]
    )

    declarations = registry.declarations()

    assert declarations[0] == {
        "name": "get_current_weather",
        "description": "Get the current weather in a given location",
        "parameters": WEATHER_PARAMETERS,
    }
    assert declarations[1] == {"name": "ping", "parameters": {"type": "object"}}


def test_invalid_schema_is_rejected_at_registration():
    with pytest.raises(ConfigurationError):
        UserFunction(name="broken", parameters={"type": 12}, function=lambda: None)


def test_from_mapping_requires_parameters():
    with pytest.raises(ConfigurationError, match="parameters"):
        UserFunction.from_mapping({"name": "x", "function": lambda: None})
