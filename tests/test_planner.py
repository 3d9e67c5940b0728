from unittest.mock import MagicMock

import httpx
import pytest

from ollama_agent.errors import SchemaViolationError
from ollama_agent.planner import ANY_JSON_SCHEMA, Planner

ROUTE_SCHEMA = {"type": "object", "required": ["route"], "properties": {"route": {"type": "string"}}}


def test_single_strict_generate_call():
    client = MagicMock()
    client.generate.return_value = {"route": "billing"}

    planner = Planner(client, system_prompt="You route tickets.")
    assert planner.run("Refund my order", schema=ROUTE_SCHEMA) == {"route": "billing"}

    client.generate.assert_called_once_with(
        "You route tickets.\n\nRefund my order", schema=ROUTE_SCHEMA, strict=True
    )


def test_context_is_appended_as_pretty_json():
    client = MagicMock()
    Planner(client).run("Decide", context={"user": "ana", "tier": 2})

    prompt = client.generate.call_args.args[0]
    assert prompt == 'Decide\n\nContext (JSON):\n{\n  "user": "ana",\n  "tier": 2\n}'
    assert client.generate.call_args.kwargs["schema"] is ANY_JSON_SCHEMA


def test_per_call_system_prompt_overrides_default():
    client = MagicMock()
    Planner(client, system_prompt="default").run("x", system_prompt="override")
    assert client.generate.call_args.args[0] == "override\n\nx"


def test_any_json_schema_accepts_open_objects(make_client):
    client = make_client(lambda request: httpx.Response(200, json={"response": '{"anything": [1, 2]}'}))
    assert Planner(client).run("Plan") == {"anything": [1, 2]}


def test_violations_surface_from_engine(make_client):
    client = make_client(lambda request: httpx.Response(200, json={"response": '{"route": 5}'}))
    with pytest.raises(SchemaViolationError):
        Planner(client).run("Route", schema=ROUTE_SCHEMA)
