from __future__ import annotations

from pathlib import Path
from typing import Annotated, Any, Dict, List

import pytest

# Load dotenv files early so settings pick up test overrides
try:  # pragma: no cover
    from dotenv import load_dotenv

    TEST_ROOT = Path(__file__).resolve().parent
    # Load test/.env first, then fallback to test/.env.example for defaults
    load_dotenv(TEST_ROOT / ".env", override=False)
    load_dotenv(TEST_ROOT / ".env.example", override=False)
except ImportError:
    pass

from capability_host.capabilities.registry import CapabilityRegistry
from capability_host.capabilities.schema_builder import describe_callable
from capability_host.dispatch.executor import DispatchExecutor
from capability_host.streaming.bridge import StreamingBridge


def _add(a: Annotated[float, "First addend"], b: Annotated[float, "Second addend"]) -> float:
    """Add two numbers."""
    return a + b


def _echo(text: str, times: int = 1) -> str:
    """Repeat text."""
    return text * times


async def _lookup_user(user_id: int) -> Dict[str, Any]:
    """Return a structured user record."""
    return {"id": user_id, "name": f"user-{user_id}", "tags": ["a", "b"]}


def _scores(values: List[int]) -> List[int]:
    return sorted(values)


@pytest.fixture
def registry() -> CapabilityRegistry:
    """Registry with a few sample capabilities (add, echo, lookup_user, scores)."""
    reg = CapabilityRegistry()
    reg.register(describe_callable(_add, name="add"), _add)
    reg.register(describe_callable(_echo, name="echo"), _echo)
    reg.register(describe_callable(_lookup_user, name="lookup_user"), _lookup_user)
    reg.register(describe_callable(_scores, name="scores"), _scores)
    return reg


@pytest.fixture
def dispatcher(registry: CapabilityRegistry) -> DispatchExecutor:
    return DispatchExecutor(registry)


@pytest.fixture
def bridge() -> StreamingBridge:
    return StreamingBridge()

