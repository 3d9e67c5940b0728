# config.py
# Client configuration value.
#
# There is no global default instance. Callers build a Config and each
# Client takes its own copy, so mutating one never leaks into another.

import json
import os
from collections.abc import Callable
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ollama_agent.errors import OllamaError

# Environment variable -> field name
_ENV_FIELDS = {
    "OLLAMA_BASE_URL": "base_url",
    "OLLAMA_MODEL": "model",
    "OLLAMA_TIMEOUT": "timeout",
    "OLLAMA_RETRIES": "retries",
    "OLLAMA_STRICT_JSON": "strict_json",
    "OLLAMA_TEMPERATURE": "temperature",
    "OLLAMA_TOP_P": "top_p",
    "OLLAMA_NUM_CTX": "num_ctx",
}


class Config(BaseModel):
    """Connection, retry and sampling defaults for one Client."""

    model_config = ConfigDict(validate_assignment=True, arbitrary_types_allowed=True)

    base_url: str = "http://localhost:11434"
    model: str = "llama3.1:8b"
    timeout: float = Field(default=30, gt=0, description="Per-request timeout in seconds.")
    retries: int = Field(default=2, ge=0, description="Extra attempts after the first.")
    strict_json: bool = False
    allow_chat: bool = False
    temperature: float = 0.2
    top_p: float = 0.9
    num_ctx: int = 8192
    on_response: Callable[[str, dict[str, Any]], None] | None = Field(
        default=None,
        description="Observability hook called as on_response(raw_body, meta) after each attempt.",
    )

    @classmethod
    def from_env(cls, dotenv_path: str | os.PathLike | None = None) -> "Config":
        """Build a Config from OLLAMA_* variables, loading a .env file first."""
        load_dotenv(dotenv_path)
        values = {field: os.environ[var] for var, field in _ENV_FIELDS.items() if os.environ.get(var)}
        try:
            return cls.model_validate(values)
        except ValidationError as exc:
            raise OllamaError(f"Invalid configuration in environment: {exc}") from exc

    @classmethod
    def from_json(cls, path: str | os.PathLike) -> "Config":
        """
        Load configuration from a JSON file.

        Only keys that are Config fields are read; others are ignored.
        """
        try:
            data = json.loads(Path(path).read_text(encoding="utf-8"))
        except FileNotFoundError as exc:
            raise OllamaError(f"Config file not found: {path}") from exc
        except json.JSONDecodeError as exc:
            raise OllamaError(f"Failed to parse config JSON: {exc}") from exc

        known = {k: v for k, v in data.items() if k in cls.model_fields and k != "on_response"}
        try:
            return cls.model_validate(known)
        except ValidationError as exc:
            raise OllamaError(f"Invalid configuration in {path}: {exc}") from exc
