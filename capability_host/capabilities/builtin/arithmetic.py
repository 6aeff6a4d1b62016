"""Arithmetic capabilities."""

from __future__ import annotations

from typing import Annotated, List, Union

from ..registry import CapabilityRegistry
from ..schema_builder import describe_callable

PLUGIN_NAME = "math"

Number = Union[int, float]


def add(a: Annotated[float, "First addend"], b: Annotated[float, "Second addend"]) -> Number:
    """Add two numbers and return their sum."""
    return a + b


def multiply(a: Annotated[float, "First factor"], b: Annotated[float, "Second factor"]) -> Number:
    """Multiply two numbers and return their product."""
    return a * b


def total(values: Annotated[List[float], "Numbers to sum"]) -> Number:
    """Sum a list of numbers."""
    return sum(values)


def register(registry: CapabilityRegistry) -> None:
    for fn in (add, multiply, total):
        registry.register(describe_callable(fn, plugin_name=PLUGIN_NAME), fn)
