from unittest.mock import patch

import pytest
from rich.console import Console

from ollama_agent import display
from ollama_agent.observer import Event


@pytest.fixture
def recorded():
    console = Console(record=True, width=100, color_system=None)
    with patch.object(display, "console", console):
        yield console


def test_render_state(recorded):
    display.render_event(Event(type="state", state="tool_executing", name="fetch_weather"))
    text = recorded.export_text()
    assert "Executing tool" in text
    assert "fetch_weather" in text


def test_render_tool_call(recorded):
    display.render_event(
        Event(type="tool_call_detected", name="fetch_weather", data={"function": {"arguments": {"city": "Paris"}}})
    )
    assert '{"city": "Paris"}' in recorded.export_text()


def test_render_tokens_inline(recorded):
    display.render_event(Event(type="token", text="Hel"))
    display.render_event(Event(type="token", text="lo"))
    assert "Hello" in recorded.export_text()


def test_render_final(recorded):
    display.render_event(Event(type="final", text="Paris will be sunny."))
    text = recorded.export_text()
    assert "RESULT" in text
    assert "Paris will be sunny." in text


def test_tools_table(recorded):
    display.tools_table(
        [{"type": "function", "function": {"name": "clock", "description": "Current time",
                                           "parameters": {"type": "object", "properties": {"tz": {}}}}}]
    )
    text = recorded.export_text()
    assert "clock" in text
    assert "tz" in text


def test_console_observer_routes_events(recorded):
    observer = display.console_observer()
    observer.emit("final", text="done")
    assert "done" in recorded.export_text()
