# models.py
# Chat message contracts.
#
# A Conversation is the list of wire dicts these produce. No business logic
# lives here.

from typing import Any, Literal

from pydantic import BaseModel, Field


class ChatMessage(BaseModel):
    """One turn of a conversation as sent to /api/chat."""

    role: Literal["system", "user", "assistant", "tool"]
    content: str = ""
    tool_calls: list[dict[str, Any]] | None = Field(default=None, description="Assistant turns only.")
    tool_call_id: str | None = Field(default=None, description="Tool turns only: the call being answered.")
    name: str | None = Field(default=None, description="Tool turns only: the tool that produced content.")

    @classmethod
    def system(cls, content: Any) -> "ChatMessage":
        return cls(role="system", content=str(content))

    @classmethod
    def user(cls, content: Any) -> "ChatMessage":
        return cls(role="user", content=str(content))

    @classmethod
    def assistant(cls, content: Any, tool_calls: list[dict[str, Any]] | None = None) -> "ChatMessage":
        return cls(role="assistant", content="" if content is None else str(content), tool_calls=tool_calls)

    @classmethod
    def tool(cls, content: Any, name: str | None = None, tool_call_id: str | None = None) -> "ChatMessage":
        return cls(role="tool", content=str(content), name=name, tool_call_id=tool_call_id)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)
