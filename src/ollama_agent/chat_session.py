# chat_session.py
# Stateful chat for human-facing use.
#
# Kept apart from Executor and Planner: history accumulates here and
# streaming is only ever forwarded to an observer.

from typing import Any

from ollama_agent.models import ChatMessage
from ollama_agent.observer import StreamingObserver
from ollama_agent.options import Options


class ChatSession:
    """
    Example:
        session = ChatSession(client, system="You are helpful.")
        session.say("Hello")
        session.say("Explain Python generators")
    """

    def __init__(self, client: Any, system: str | None = None, observer: StreamingObserver | None = None) -> None:
        self._client = client
        self._observer = observer
        self.messages: list[dict[str, Any]] = []
        if system:
            self.messages.append(ChatMessage.system(system).to_dict())

    def say(
        self,
        text: str,
        model: str | None = None,
        format: dict[str, Any] | str | None = None,
        tools: Any = None,
        options: Options | dict[str, Any] | None = None,
    ) -> str:
        """Send a user turn and return the assistant content ("" for tool-only turns)."""
        self.messages.append(ChatMessage.user(text).to_dict())

        response = self._client.chat_raw(
            messages=self.messages,
            model=model,
            format=format,
            tools=tools,
            options=options,
            allow_chat=True,
            stream=self._observer is not None,
            on_chunk=self._on_chunk if self._observer is not None else None,
        )

        message = response.raw.get("message") or {}
        content = message.get("content") or ""
        tool_calls = message.get("tool_calls")
        if content or tool_calls:
            self.messages.append(ChatMessage.assistant(content, tool_calls=tool_calls).to_dict())
        return content

    def clear(self) -> None:
        """Drop history, keeping the system message if there is one."""
        self.messages = [m for m in self.messages[:1] if m.get("role") == "system"]

    def _on_chunk(self, frame: dict[str, Any]) -> None:
        self._observer.emit_frame(frame)
        if frame.get("done") is True:
            self._observer.emit("final")
