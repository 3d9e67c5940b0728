# response.py
# Typed read view over a model server payload.
#
# Payload keys are normalized to str exactly once, in from_payload(). Past
# that boundary only typed fields are used; `raw` is the single escape
# hatch back to the normalized dict.

import json
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, field_validator


def _normalize_keys(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {_key_to_str(k): _normalize_keys(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_normalize_keys(v) for v in value]
    return value


def _key_to_str(key: Any) -> str:
    if isinstance(key, bytes):
        return key.decode("utf-8")
    # Enum members (the closest thing to symbol keys) contribute their value.
    return str(getattr(key, "value", key))


class FunctionCall(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str | None = None
    arguments: dict[str, Any] = Field(default_factory=dict)

    @field_validator("arguments", mode="before")
    @classmethod
    def _decode_arguments(cls, value: Any) -> dict[str, Any]:
        if value is None or value == "":
            return {}
        if isinstance(value, str):
            try:
                decoded = json.loads(value)
            except json.JSONDecodeError:
                return {}
            return decoded if isinstance(decoded, dict) else {}
        return value if isinstance(value, dict) else {}


class ToolCall(BaseModel):
    """A model-issued request to invoke one named function."""

    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    function: FunctionCall | None = None

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "ToolCall":
        data = _normalize_keys(data)
        call_id = data.get("id") or data.get("tool_call_id")
        function = data.get("function")
        if function is None and "name" in data:
            # Some servers flatten name/arguments onto the call itself.
            function = {"name": data.get("name"), "arguments": data.get("arguments")}
        return cls(id=call_id, function=function)

    @property
    def name(self) -> str | None:
        return self.function.name if self.function else None

    @property
    def arguments(self) -> dict[str, Any]:
        return self.function.arguments if self.function else {}


class Message(BaseModel):
    model_config = ConfigDict(extra="ignore")

    role: str | None = None
    content: str | None = None
    thinking: str | None = None
    tool_calls: list[ToolCall] = Field(default_factory=list)
    images: list[str] | None = None

    @field_validator("tool_calls", mode="before")
    @classmethod
    def _parse_tool_calls(cls, value: Any) -> list[Any]:
        if not value:
            return []
        return [ToolCall.from_payload(c) if isinstance(c, Mapping) else c for c in value]


class Response(BaseModel):
    """
    Projection of a /api/chat or /api/generate body.

    Durations are nanoseconds as reported by the server.
    """

    model_config = ConfigDict(extra="ignore")

    model: str | None = None
    created_at: str | None = None
    message: Message | None = None
    response: str | None = None
    thinking: str | None = None
    done: bool = False
    done_reason: str | None = None
    total_duration: int | None = None
    load_duration: int | None = None
    prompt_eval_count: int | None = None
    prompt_eval_duration: int | None = None
    eval_count: int | None = None
    eval_duration: int | None = None
    logprobs: list[Any] | None = None

    _raw: dict[str, Any] = PrivateAttr(default_factory=dict)

    @field_validator("done", mode="before")
    @classmethod
    def _coerce_done(cls, value: Any) -> bool:
        return bool(value)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any] | None) -> "Response":
        data = _normalize_keys(payload or {})
        instance = cls.model_validate(data)
        instance._raw = data
        return instance

    @property
    def content(self) -> str | None:
        """Assistant content for chat bodies, generated text for generate bodies."""
        if self.message is not None:
            return self.message.content
        return self.response

    @property
    def tool_calls(self) -> list[ToolCall]:
        return self.message.tool_calls if self.message else []

    @property
    def raw(self) -> dict[str, Any]:
        """The key-normalized payload this view was built from."""
        return self._raw
