from unittest.mock import MagicMock, patch

from ollama_agent import run
from ollama_agent.config import Config
from ollama_agent.errors import ConnectionFailed


def test_current_time_is_utc_iso():
    result = run.current_time()
    assert result["timezone"] == "UTC"
    assert result["time"].endswith("+00:00")


@patch("ollama_agent.run.display")
@patch("ollama_agent.run.Executor")
@patch("ollama_agent.run.Client")
@patch("ollama_agent.run.Config.from_env", return_value=Config())
def test_main_runs_every_prompt(from_env, client_cls, executor_cls, display):
    executor = executor_cls.return_value
    executor.run.side_effect = ["12:00", ConnectionFailed("server down")]

    run.main()

    assert executor.run.call_count == len(run.PROMPTS)
    display.halt.assert_called_once_with("server down")
    tools = executor_cls.call_args.kwargs["tools"]
    assert tools["current_time"]["tool"] == run.CLOCK_TOOL
    assert tools["current_time"]["callable"]({})["timezone"] == "UTC"
