# observer.py
# Presentation-only streaming observer for agent loops.
#
# Observers see events; they never steer. Nothing an observer does (or
# raises) can change tool execution or loop termination.

import logging
from collections.abc import Callable
from typing import Any, Literal

from pydantic import BaseModel

logger = logging.getLogger(__name__)

EventType = Literal["state", "token", "tool_call_detected", "final"]


class Event(BaseModel):
    type: EventType
    text: str | None = None
    name: str | None = None
    state: str | None = None
    data: Any = None


class StreamingObserver:
    def __init__(self, callback: Callable[[Event], None] | None = None) -> None:
        self._callback = callback

    def emit(
        self,
        type: EventType,
        text: str | None = None,
        name: str | None = None,
        state: str | None = None,
        data: Any = None,
    ) -> None:
        if self._callback is None:
            return
        try:
            self._callback(Event(type=type, text=text, name=name, state=state, data=data))
        except Exception:
            logger.exception("Streaming observer raised on %s event; ignoring", type)

    def emit_frame(self, frame: dict[str, Any]) -> None:
        """Translate one /api/chat stream frame into token and tool_call_detected events."""
        message = frame.get("message") or {}
        delta = message.get("content")
        if delta:
            self.emit("token", text=str(delta))
        for call in message.get("tool_calls") or []:
            name = (call.get("function") or {}).get("name") or call.get("name")
            if name:
                self.emit("tool_call_detected", name=name, data=call)
