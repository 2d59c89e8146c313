"""User function registry exports."""

from .registry import FunctionRegistry, UserFunction

__all__ = [
    "FunctionRegistry",
    "UserFunction",
]
