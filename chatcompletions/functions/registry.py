"""User function registration, argument validation and dispatch."""

from __future__ import annotations

import inspect
import time
from collections.abc import Callable, Mapping
from datetime import datetime, timezone
from typing import Any

import json_repair
from jsonschema import SchemaError
from jsonschema.validators import validator_for

from ..core.exceptions import (
    ConfigurationError,
    FunctionArgumentsError,
    FunctionNotFoundError,
)
from ..core.logging_config import get_logger
from ..core.types import FunctionInvocationResult

logger = get_logger(__name__)


def schema_errors(validator: Any, instance: Any) -> list[str]:
    """Render every schema violation as ``path: message``."""

    errors = sorted(validator.iter_errors(instance), key=lambda err: list(err.absolute_path))
    rendered: list[str] = []
    for error in errors:
        location = "/".join(str(part) for part in error.absolute_path) or "<root>"
        rendered.append(f"{location}: {error.message}")
    return rendered


def compile_schema(schema: Mapping[str, Any], *, owner: str) -> Any:
    """Check a JSON schema and return a validator for it."""

    validator_cls = validator_for(schema)
    try:
        validator_cls.check_schema(schema)
    except SchemaError as exc:
        raise ConfigurationError(f"Invalid JSON schema for {owner}: {exc.message}") from exc
    return validator_cls(schema)


class UserFunction:
    """A local callable the model may request, guarded by a JSON schema."""

    def __init__(
        self,
        name: str,
        parameters: Mapping[str, Any],
        function: Callable[..., Any],
        description: str | None = None,
    ) -> None:
        if not name:
            raise ConfigurationError("User functions need a non-empty name")
        if not callable(function):
            raise ConfigurationError(f'User function "{name}" is not callable')
        self.name = name
        self.description = description
        self.parameters = dict(parameters)
        self.function = function
        self._validator = compile_schema(self.parameters, owner=f'function "{name}"')

    @classmethod
    def from_mapping(cls, definition: Mapping[str, Any]) -> UserFunction:
        try:
            return cls(
                name=definition["name"],
                parameters=definition["parameters"],
                function=definition["function"],
                description=definition.get("description"),
            )
        except KeyError as exc:
            raise ConfigurationError(f"User function definition is missing {exc}") from exc

    def parse_arguments(self, raw_arguments: str) -> Any:
        """Repair, decode and validate the model's raw JSON arguments."""

        # Models occasionally emit trailing commas or unterminated objects.
        arguments = json_repair.loads(raw_arguments or "{}")
        errors = schema_errors(self._validator, arguments)
        if errors:
            raise FunctionArgumentsError(
                f'Invalid arguments for function "{self.name}"', errors
            )
        return arguments

    def declaration(self) -> dict[str, Any]:
        declaration: dict[str, Any] = {"name": self.name, "parameters": self.parameters}
        if self.description:
            declaration["description"] = self.description
        return declaration

    def __repr__(self) -> str:
        return f"UserFunction(name={self.name!r})"


class FunctionRegistry:
    """Name-keyed registry of user functions for one conversation."""

    def __init__(self, functions: list[UserFunction] | None = None) -> None:
        self._functions: dict[str, UserFunction] = {}
        for function in functions or []:
            self.register(function)

    def register(self, function: UserFunction) -> None:
        if function.name in self._functions:
            logger.warning("user_function_overwritten", name=function.name)
        self._functions[function.name] = function

    def get(self, name: str) -> UserFunction:
        try:
            return self._functions[name]
        except KeyError:
            raise FunctionNotFoundError(name) from None

    def __len__(self) -> int:
        return len(self._functions)

    def declarations(self) -> list[dict[str, Any]]:
        """Expose function declarations for the completion request."""

        return [function.declaration() for function in self._functions.values()]

    async def call(self, name: str, raw_arguments: str) -> FunctionInvocationResult:
        """Execute a function by name with the model's raw JSON arguments."""

        function = self.get(name)
        arguments = function.parse_arguments(raw_arguments)

        logger.debug("user_function_call", name=name, arguments=arguments)
        started = time.perf_counter()
        result = function.function(arguments)
        if inspect.isawaitable(result):
            result = await result
        latency_ms = (time.perf_counter() - started) * 1000

        logger.info(
            "function_call_executed",
            name=name,
            latency_ms=round(latency_ms, 2),
            result_summary=str(result)[:200],
        )
        return FunctionInvocationResult(
            name=name,
            raw_arguments=raw_arguments,
            arguments=arguments,
            result=result,
            latency_ms=latency_ms,
            timestamp=datetime.now(tz=timezone.utc),
        )
