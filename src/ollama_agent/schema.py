# schema.py
# Schema contract enforcement.
#
# A model can satisfy an open schema by inventing extra keys. Before any
# validation the schema is closed: every object-shaped node that does not
# say otherwise gets additionalProperties: false, all the way down.

import copy
from typing import Any

from jsonschema import SchemaError, ValidationError
from jsonschema.validators import validator_for

from ollama_agent.errors import SchemaViolationError

# Keywords whose value is a single subschema
_SUBSCHEMA_KEYS = ("additionalItems", "not")

# Keywords whose value is a list of subschemas
_SUBSCHEMA_LIST_KEYS = ("anyOf", "oneOf", "allOf", "prefixItems")

# Keywords whose value is a name -> subschema map
_SUBSCHEMA_MAP_KEYS = ("properties", "patternProperties", "definitions", "$defs")


def _is_object_shaped(node: dict[str, Any]) -> bool:
    node_type = node.get("type")
    if node_type == "object" or (isinstance(node_type, list) and "object" in node_type):
        return True
    return "properties" in node or "patternProperties" in node


def _close(node: Any) -> Any:
    if isinstance(node, list):
        return [_close(item) for item in node]
    if not isinstance(node, dict):
        return node

    if _is_object_shaped(node) and "additionalProperties" not in node:
        node["additionalProperties"] = False

    for key in _SUBSCHEMA_MAP_KEYS:
        children = node.get(key)
        if isinstance(children, dict):
            for name, child in children.items():
                children[name] = _close(child)

    for key in _SUBSCHEMA_LIST_KEYS:
        if isinstance(node.get(key), list):
            node[key] = [_close(child) for child in node[key]]

    for key in _SUBSCHEMA_KEYS:
        if isinstance(node.get(key), dict):
            node[key] = _close(node[key])

    # items may be one schema or a tuple of schemas
    if isinstance(node.get("items"), (dict, list)):
        node["items"] = _close(node["items"])

    if isinstance(node.get("additionalProperties"), dict):
        node["additionalProperties"] = _close(node["additionalProperties"])

    return node


def enforce_closed(schema: dict[str, Any]) -> dict[str, Any]:
    """
    Return a closed copy of *schema*. The input is never mutated.

    Explicit additionalProperties values (true, false or a subschema) are
    kept as written. Applying this twice yields the same result as once.
    """
    return _close(copy.deepcopy(schema))


def validate(data: Any, schema: dict[str, Any]) -> None:
    """
    Validate *data* against the closed form of *schema*.

    Raises SchemaViolationError carrying the validator's message, both for
    data that fails and for a schema that is itself invalid.
    """
    closed = enforce_closed(schema)
    validator_cls = validator_for(closed)
    try:
        validator_cls.check_schema(closed)
        validator_cls(closed).validate(data)
    except ValidationError as exc:
        location = ".".join(str(p) for p in exc.absolute_path)
        suffix = f" at '{location}'" if location else ""
        raise SchemaViolationError(f"{exc.message}{suffix}") from exc
    except SchemaError as exc:
        raise SchemaViolationError(f"Invalid schema: {exc.message}") from exc
