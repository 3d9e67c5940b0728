# options.py
# Runtime sampling options sent under the "options" key of a request.

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class Options(BaseModel):
    """Type-checked model runtime options. Unknown keys are rejected."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    temperature: float | None = Field(default=None, ge=0.0, le=2.0)
    top_p: float | None = Field(default=None, ge=0.0, le=1.0)
    top_k: int | None = Field(default=None, ge=1)
    num_ctx: int | None = Field(default=None, ge=1)
    repeat_penalty: float | None = Field(default=None, ge=0.0, le=2.0)
    seed: int | None = None
    num_predict: int | None = None
    stop: list[str] | None = None
    tfs_z: float | None = Field(default=None, ge=0.0)
    mirostat: Literal[0, 1, 2] | None = None
    mirostat_tau: float | None = Field(default=None, ge=0.0)
    mirostat_eta: float | None = Field(default=None, ge=0.0)
    num_gpu: int | None = None
    num_thread: int | None = Field(default=None, ge=1)
    num_keep: int | None = None
    typical_p: float | None = Field(default=None, ge=0.0, le=1.0)
    presence_penalty: float | None = Field(default=None, ge=-2.0, le=2.0)
    frequency_penalty: float | None = Field(default=None, ge=-2.0, le=2.0)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


def merge_options(defaults: dict[str, Any], options: "Options | dict[str, Any] | None") -> dict[str, Any]:
    """Overlay caller options on config defaults. None values never override."""
    merged = dict(defaults)
    if options is None:
        return merged
    if isinstance(options, Options):
        overrides = options.to_dict()
    else:
        overrides = {k: v for k, v in options.items() if v is not None}
    merged.update(overrides)
    return merged
