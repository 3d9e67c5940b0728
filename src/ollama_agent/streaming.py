# streaming.py
# NDJSON stream framing and reassembly.
#
# Aggregation rules:
#   content / thinking: ordered concatenation of every frame's delta
#   tool_calls / role: taken from the last frame that carries them
#   metadata: from the done: true frame (else the last frame)
#
# Chunk boundaries are invisible here: frames arrive as whole lines.

import json
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass
from typing import Any, Literal

from ollama_agent.errors import InvalidJSONError, StreamError

# SSE field prefixes that never carry a payload
_SKIPPED_PREFIXES = (":", "event:", "id:", "retry:")


@dataclass
class StreamHooks:
    """Per-call streaming callbacks. Setting any of them enables streaming."""

    on_token: Callable[[str], None] | None = None
    on_error: Callable[[Exception], None] | None = None
    on_complete: Callable[[], None] | None = None

    @property
    def enabled(self) -> bool:
        return any((self.on_token, self.on_error, self.on_complete))


def iter_frames(lines: Iterable[str]) -> Iterator[dict[str, Any]]:
    """
    Decode stream lines into frames.

    Blank lines, SSE comments and non-data SSE fields are skipped and a
    "data:" prefix is stripped. A line that is not a JSON object raises
    InvalidJSONError; a frame carrying "error" raises StreamError.
    """
    for raw in lines:
        line = raw.strip()
        if not line or line.startswith(_SKIPPED_PREFIXES):
            continue
        if line.startswith("data:"):
            line = line[len("data:") :].strip()
        if not line or line == "[DONE]":
            continue

        try:
            frame = json.loads(line)
        except json.JSONDecodeError as exc:
            raise InvalidJSONError(f"Failed to parse streaming frame: {exc}. Line: {line[:200]}") from exc
        if not isinstance(frame, dict):
            raise InvalidJSONError(f"Streaming frame is not an object: {line[:200]}")
        if frame.get("error"):
            raise StreamError(str(frame["error"]))
        yield frame


class StreamAccumulator:
    """Folds frames from /api/chat ("chat") or /api/generate ("generate") into one body."""

    def __init__(self, kind: Literal["chat", "generate"] = "chat") -> None:
        self.kind = kind
        self._content: list[str] = []
        self._thinking: list[str] = []
        self._logprobs: list[Any] = []
        self._tool_calls: list[Any] | None = None
        self._role: str | None = None
        self._last: dict[str, Any] | None = None
        self._final: dict[str, Any] | None = None

    @property
    def content(self) -> str:
        return "".join(self._content)

    @property
    def done(self) -> bool:
        return self._final is not None

    def feed(self, frame: dict[str, Any]) -> str | None:
        """Absorb one frame. Returns the content delta it carried, if any."""
        token = None
        if self.kind == "chat":
            message = frame.get("message")
            if isinstance(message, dict):
                token = message.get("content") or None
                if message.get("thinking"):
                    self._thinking.append(message["thinking"])
                if message.get("tool_calls"):
                    self._tool_calls = message["tool_calls"]
                if message.get("role"):
                    self._role = message["role"]
        else:
            token = frame.get("response") or None
            if frame.get("thinking"):
                self._thinking.append(frame["thinking"])

        if token:
            self._content.append(token)
        if frame.get("logprobs"):
            self._logprobs.extend(frame["logprobs"])

        self._last = frame
        if frame.get("done") is True:
            self._final = frame
        return token

    def result(self) -> dict[str, Any]:
        body = dict(self._final or self._last or {})
        thinking = "".join(self._thinking)

        if self.kind == "chat":
            message = dict(body.get("message") or {})
            message["role"] = self._role or message.get("role") or "assistant"
            message["content"] = self.content
            if thinking:
                message["thinking"] = thinking
            if self._tool_calls is not None:
                message["tool_calls"] = self._tool_calls
            else:
                message.pop("tool_calls", None)
            body["message"] = message
        else:
            body["response"] = self.content
            if thinking:
                body["thinking"] = thinking

        if self._logprobs:
            body["logprobs"] = self._logprobs
        return body
