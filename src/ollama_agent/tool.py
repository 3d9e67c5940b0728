# tool.py
# Tool definitions for function calling.
#
# Tool -> Function -> Parameters -> Property is one composite contract.
# It is built from a nested mapping, serialized back to the same mapping
# and compared by that canonical serialization. JSON-Schema keywords the
# composite has no field for are carried through untouched so that schemas
# discovered over MCP survive a round trip verbatim.

import json
from collections.abc import Mapping
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class Property(BaseModel):
    """One named parameter of a function."""

    model_config = ConfigDict(extra="allow", frozen=True)

    type: str | list[str] | None = None
    description: str | None = None
    enum: list[Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class Parameters(BaseModel):
    """JSON-Schema object describing a function's arguments."""

    model_config = ConfigDict(extra="allow", frozen=True)

    type: str = "object"
    properties: dict[str, Property] = Field(default_factory=dict)
    required: list[str] = Field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data = self.model_dump(exclude_none=True)
        data["properties"] = {name: prop.to_dict() for name, prop in self.properties.items()}
        # Empty collections are only emitted when the source spelled them out.
        for key in ("properties", "required"):
            if not data[key] and key not in self.model_fields_set:
                del data[key]
        return data


class Function(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    parameters: Parameters = Field(default_factory=Parameters)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters.to_dict(),
        }


class Tool(BaseModel):
    """
    A callable tool's contract as sent in a chat request's "tools" array.

    Example:
        tool = Tool.build(
            "fetch_weather",
            "Get the forecast for a city",
            properties={"city": {"type": "string", "description": "City name"}},
            required=["city"],
        )
    """

    model_config = ConfigDict(frozen=True)

    type: Literal["function"] = "function"
    function: Function

    @property
    def name(self) -> str:
        return self.function.name

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Tool":
        return cls.model_validate(dict(data))

    @classmethod
    def build(
        cls,
        name: str,
        description: str,
        properties: dict[str, Any] | None = None,
        required: list[str] | None = None,
    ) -> "Tool":
        params: dict[str, Any] = {"type": "object"}
        if properties is not None:
            params["properties"] = properties
        if required is not None:
            params["required"] = required
        return cls.from_dict({"function": {"name": name, "description": description, "parameters": params}})

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "function": self.function.to_dict()}

    def canonical(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True, ensure_ascii=False)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Tool):
            return NotImplemented
        return self.canonical() == other.canonical()

    def __hash__(self) -> int:
        return hash(self.canonical())
