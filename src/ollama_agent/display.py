# display.py
# All terminal output for the agent demo.
#
# This module owns presentation entirely. Executor and ChatSession never
# format strings; they emit observer events and console_observer() routes
# them to the named functions here.
#
# Colour language:
#   cyan: scaffolding / state transitions
#   blue: streamed model tokens
#   magenta: tool calls
#   green: final answers
#   red: failures and halts

import json
from typing import Any

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from ollama_agent.observer import Event, StreamingObserver

console = Console()

_STATE_TEXT = {
    "assistant_streaming": "→ Waiting for assistant turn…",
    "tool_executing": "→ Executing tool",
    "tool_result_injected": "✓ Tool result added to conversation",
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _label(tag: str, color: str) -> Text:
    t = Text()
    t.append(f" {tag} ", style=f"bold white on {color}")
    return t


def _mono(value: str, max_len: int = 120) -> str:
    if len(value) > max_len:
        return value[:max_len] + "…"
    return value


# ---------------------------------------------------------------------------
# Session entry
# ---------------------------------------------------------------------------


def banner(model: str, base_url: str) -> None:
    console.print()
    console.print(
        Panel.fit(
            "[bold cyan]Ollama Agent[/bold cyan]\n"
            "[dim]Tool-calling executor over a local Ollama server[/dim]\n\n"
            f"[dim]Model  :[/dim] [white]{model}[/white]\n"
            f"[dim]Server :[/dim] [white]{base_url}[/white]",
            border_style="cyan",
            padding=(1, 4),
        )
    )


def prompt_received(prompt: str) -> None:
    console.print()
    console.print(Rule("[cyan]NEW REQUEST[/cyan]", style="cyan"))
    console.print(
        Panel(
            f"[white]{prompt}[/white]",
            title=_label("USER PROMPT", "cyan"),
            border_style="cyan",
            padding=(0, 2),
        )
    )


def tools_table(definitions: list[dict[str, Any]]) -> None:
    table = Table(
        box=box.SIMPLE_HEAVY,
        border_style="magenta",
        show_header=True,
        header_style="bold magenta",
        padding=(0, 1),
    )
    table.add_column("Tool", style="bold white", width=18)
    table.add_column("Parameters", style="dim white", width=36)
    table.add_column("Description", style="white")

    for definition in definitions:
        function = definition.get("function", {})
        params = function.get("parameters", {}).get("properties", {})
        table.add_row(function.get("name", "?"), _mono(", ".join(params) or "-", 34), function.get("description", ""))

    console.print(Panel(table, title=_label("TOOLS", "magenta"), border_style="magenta", padding=(0, 1)))


# ---------------------------------------------------------------------------
# Observer events
# ---------------------------------------------------------------------------


def state_changed(state: str | None, name: str | None = None) -> None:
    text = _STATE_TEXT.get(state or "", state or "")
    suffix = f" [bold white]{name}[/bold white]" if name else ""
    console.print()
    console.print(_label("STATE", "cyan"), f"[cyan] {text}[/cyan]{suffix}")


def token(text: str | None) -> None:
    if text:
        console.print(text, style="blue", end="", highlight=False, markup=False)


def tool_call_detected(name: str | None, data: Any = None) -> None:
    arguments = (data or {}).get("function", {}).get("arguments") if isinstance(data, dict) else None
    rendered = arguments if isinstance(arguments, str) else json.dumps(arguments or {})
    console.print()
    console.print(
        f"  [magenta]Tool call[/magenta]  [bold white]{name}[/bold white]  [dim]{_mono(rendered, 100)}[/dim]"
    )


def final_result(result: str | None) -> None:
    console.print()
    console.print(
        Panel(
            f"[white]{result or ''}[/white]",
            title=_label("RESULT", "green"),
            border_style="green",
            padding=(1, 2),
        )
    )
    console.print()


def halt(reason: str) -> None:
    console.print()
    console.print(
        Panel(
            f"[bold white]{reason}[/bold white]",
            title=_label("HALT", "red"),
            border_style="red",
            padding=(0, 2),
        )
    )
    console.print()


def render_event(event: Event) -> None:
    if event.type == "state":
        state_changed(event.state, event.name)
    elif event.type == "token":
        token(event.text)
    elif event.type == "tool_call_detected":
        tool_call_detected(event.name, event.data)
    elif event.type == "final":
        final_result(event.text)


def console_observer() -> StreamingObserver:
    """A StreamingObserver that renders every event to the console."""
    return StreamingObserver(render_event)
