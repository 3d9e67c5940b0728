from ollama_agent.tool import Tool

WEATHER = {
    "type": "function",
    "function": {
        "name": "fetch_weather",
        "description": "Get the forecast for a city",
        "parameters": {
            "type": "object",
            "properties": {
                "city": {"type": "string", "description": "City name"},
                "unit": {"type": "string", "enum": ["c", "f"]},
            },
            "required": ["city"],
        },
    },
}


def test_from_dict_to_dict_round_trip():
    assert Tool.from_dict(WEATHER).to_dict() == WEATHER


def test_unknown_schema_keywords_survive():
    data = {
        "type": "function",
        "function": {
            "name": "search",
            "description": "",
            "parameters": {
                "type": "object",
                "properties": {"limit": {"type": "integer", "minimum": 1, "default": 10}},
                "additionalProperties": False,
                "$schema": "http://json-schema.org/draft-07/schema#",
            },
        },
    }
    assert Tool.from_dict(data).to_dict() == data


def test_minimal_parameters_stay_minimal():
    data = {"type": "function", "function": {"name": "ping", "description": "", "parameters": {"type": "object"}}}
    assert Tool.from_dict(data).to_dict() == data


def test_build_matches_from_dict():
    built = Tool.build(
        "fetch_weather",
        "Get the forecast for a city",
        properties={
            "city": {"type": "string", "description": "City name"},
            "unit": {"type": "string", "enum": ["c", "f"]},
        },
        required=["city"],
    )
    assert built == Tool.from_dict(WEATHER)
    assert built.name == "fetch_weather"


def test_equality_ignores_key_order():
    reordered = {
        "function": {
            "parameters": {
                "required": ["city"],
                "properties": {
                    "unit": {"enum": ["c", "f"], "type": "string"},
                    "city": {"description": "City name", "type": "string"},
                },
                "type": "object",
            },
            "description": "Get the forecast for a city",
            "name": "fetch_weather",
        },
        "type": "function",
    }
    assert Tool.from_dict(reordered) == Tool.from_dict(WEATHER)
    assert len({Tool.from_dict(reordered), Tool.from_dict(WEATHER)}) == 1


def test_different_tools_are_not_equal():
    assert Tool.build("a", "x") != Tool.build("b", "x")
