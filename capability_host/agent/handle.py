"""Agent handle abstraction.

An ``AgentHandle`` wraps a conversational agent implemented outside this
package. The host creates it with the registry's function schemas, feeds it
messages, relays permission answers, and destroys it exactly once.

Implementations handle engine-specific details while exposing this API:

- create(): build the agent with configuration and capability schemas
- send(): run one message, reporting events through a callback (blocking)
- push_event(): deliver an out-of-band response (permission or filter answer)
- destroy(): release the agent
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional

from pydantic import Field, model_validator

from ..schemas.base import BaseSchema

EventCallback = Callable[[Optional[str]], None]


class PermissionChoice(str, Enum):
    """How long a permission answer should stick."""

    ask = "ask"
    always_allow = "always_allow"
    always_deny = "always_deny"


class AgentConfig(BaseSchema):
    """Configuration for creating an agent.

    Attributes:
        name: Identifier for the agent instance
        model: The model identifier (e.g., 'gpt-4o')
        provider: Model provider name (e.g., 'openai')
        instructions: System instructions for the agent
        metadata: Additional engine-specific configuration
    """

    name: str = Field(..., min_length=1, description="Identifier for the agent instance")
    model: Optional[str] = Field(None, description="The model identifier")
    provider: Optional[str] = Field(None, description="Model provider name")
    instructions: Optional[str] = Field(None, description="System instructions for the agent")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Additional engine-specific configuration")


class PermissionResponse(BaseSchema):
    """Answer to a permission request raised by the agent."""

    permission_id: str = Field(..., min_length=1, description="Id of the permission request being answered")
    source_name: str = Field(default="capability_host", description="Who answered the request")
    approved: bool = Field(..., description="Whether the call may proceed")
    reason: Optional[str] = Field(None, description="Denial reason shown to the agent")
    choice: PermissionChoice = Field(default=PermissionChoice.ask, description="Whether to remember the answer")

    @model_validator(mode="after")
    def _default_denial_reason(self) -> "PermissionResponse":
        if not self.approved and self.reason is None:
            self.reason = "Permission denied by user"
        return self


class AgentHandle(ABC):
    """Abstract base class for externally implemented agents.

    Every method may be called from a worker thread; ``send`` blocks until
    the agent finishes the turn.
    """

    @abstractmethod
    def create(self, config: AgentConfig, capabilities: List[Dict[str, Any]]) -> None:
        """Create the agent.

        Args:
            config: Agent configuration
            capabilities: Function schemas of every registered capability
        """

    @abstractmethod
    def send(self, message: str, on_event: EventCallback) -> None:
        """Run one message through the agent.

        Each event is reported as JSON text through ``on_event``; a final
        ``None`` signals the end of the turn.

        Raises:
            Exception: Any failure of the turn; the host reports it to the consumer.
        """

    @abstractmethod
    def push_event(self, event_id: str, event: Mapping[str, Any]) -> None:
        """Deliver an out-of-band response event to the agent."""

    @abstractmethod
    def destroy(self) -> None:
        """Release the agent and its resources."""
