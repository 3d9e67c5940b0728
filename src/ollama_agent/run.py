# run.py
# Demo entry point. Wiring only.
#
# Settings come from OLLAMA_* environment variables (or a .env file);
# see Config.from_env().

import logging
from datetime import datetime, timezone

from ollama_agent import display
from ollama_agent.client import Client
from ollama_agent.config import Config
from ollama_agent.errors import OllamaError
from ollama_agent.executor import Executor
from ollama_agent.tool import Tool

SYSTEM_PROMPT = "You are a helpful assistant. Use tools when they help answer the question."

PROMPTS = [
    # Tool use: needs the clock
    "What is the current UTC time? Answer in one sentence.",
    # Direct answer, no tool needed
    "In one sentence, what is a JSON Schema?",
]

CLOCK_TOOL = Tool.build(
    "current_time",
    "Return the current time as an ISO-8601 string",
    properties={"timezone": {"type": "string", "description": "Only 'UTC' is supported", "enum": ["UTC"]}},
)


def current_time(timezone_name: str = "UTC") -> dict:
    return {"timezone": timezone_name, "time": datetime.now(timezone.utc).isoformat()}


def main() -> None:
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")
    config = Config.from_env()
    display.banner(config.model, config.base_url)

    with Client(config) as client:
        executor = Executor(
            client,
            tools={"current_time": {"tool": CLOCK_TOOL, "callable": lambda args: current_time(args.get("timezone", "UTC"))}},
            max_steps=5,
            observer=display.console_observer(),
        )
        display.tools_table(executor.tool_definitions())

        for prompt in PROMPTS:
            display.prompt_received(prompt)
            try:
                executor.run(system=SYSTEM_PROMPT, user=prompt)
            except OllamaError as exc:
                display.halt(str(exc))


if __name__ == "__main__":
    main()
