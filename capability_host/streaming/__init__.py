"""Push-to-async streaming bridge."""

from .bridge import StreamingBridge, StreamSequence, StreamSession

__all__ = ["StreamSequence", "StreamSession", "StreamingBridge"]
