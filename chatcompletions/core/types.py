"""Shared type definitions."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any


@dataclass(slots=True)
class FunctionInvocationResult:
    """One executed user function call.

    ``raw_arguments`` is the text the model emitted; ``arguments`` is the
    repaired and validated value the callable received.
    """

    name: str
    raw_arguments: str
    arguments: Any
    result: Any
    latency_ms: float
    timestamp: datetime
