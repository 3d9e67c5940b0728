# planner.py
# Stateless planner over /api/generate.
#
# For planning, classification and routing: one strict, schema-validated
# generate() call per run(), no conversation state.

import json
from typing import Any

# Accepts any JSON value. The object branch is left open on purpose so that
# schema closing does not forbid arbitrary keys.
ANY_JSON_SCHEMA: dict[str, Any] = {
    "anyOf": [
        {"type": "object", "additionalProperties": True},
        {"type": "array"},
        {"type": "string"},
        {"type": "number"},
        {"type": "integer"},
        {"type": "boolean"},
        {"type": "null"},
    ]
}


class Planner:
    def __init__(self, client: Any, system_prompt: str | None = None) -> None:
        self._client = client
        self._system_prompt = system_prompt

    def run(
        self,
        prompt: str,
        schema: dict[str, Any] | None = None,
        context: dict[str, Any] | None = None,
        system_prompt: str | None = None,
    ) -> Any:
        """
        Return the decoded JSON value for *prompt*.

        system_prompt overrides the instance default for this call only.
        Context, when given, is appended as pretty-printed JSON.
        """
        system = system_prompt or self._system_prompt
        full_prompt = str(prompt)
        if system:
            full_prompt = f"{system}\n\n{full_prompt}"
        if context:
            full_prompt = f"{full_prompt}\n\nContext (JSON):\n{json.dumps(context, indent=2)}"

        return self._client.generate(full_prompt, schema=schema or ANY_JSON_SCHEMA, strict=True)
