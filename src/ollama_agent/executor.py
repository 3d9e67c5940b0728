# executor.py
# Tool-calling agent loop over /api/chat.
#
# The model never executes anything. It can only request tool calls; this
# class owns control flow, state and invocation.
#
# Control flow per step:
#   send conversation + tool schemas → buffer the whole assistant message
#   → no tool_calls? done
#   → else run each call in listed order, appending one tool message each
#
# Streaming is presentation only. chat_raw() returns after the final frame,
# so a callable never runs before its complete tool call has arrived.

import inspect
import json
import logging
from collections.abc import Callable, Mapping
from typing import Any, Literal, get_origin

from ollama_agent.errors import StepLimitExceeded, ToolInvocationError, ToolNotFoundError
from ollama_agent.models import ChatMessage
from ollama_agent.observer import StreamingObserver
from ollama_agent.response import ToolCall
from ollama_agent.tool import Tool

logger = logging.getLogger(__name__)

ToolErrorPolicy = Literal["report", "raise"]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


# Parameter names that mark a single-argument callable as taking the whole
# argument dict, e.g. ``def search(args: dict)``.
_ARGUMENT_DICT_NAMES = frozenset({"args", "arguments", "params"})

# Names models commonly send for a parameter declared as ``path``.
_PATH_ALIASES = ("directory", "file", "filename")


def _takes_argument_dict(signature: inspect.Signature) -> bool:
    positional = [
        p for p in signature.parameters.values() if p.kind in (p.POSITIONAL_ONLY, p.POSITIONAL_OR_KEYWORD)
    ]
    if len(positional) != 1 or len(signature.parameters) != 1:
        return False
    param = positional[0]
    annotation = param.annotation
    if isinstance(annotation, str):
        return param.name in _ARGUMENT_DICT_NAMES or annotation.split("[")[0] in ("dict", "Dict", "Mapping")
    origin = get_origin(annotation) or annotation
    return param.name in _ARGUMENT_DICT_NAMES or origin in (dict, Mapping)


def _binds(signature: inspect.Signature, arguments: dict[str, Any]) -> bool:
    try:
        signature.bind(**arguments)
    except TypeError:
        return False
    return True


def _with_path_alias(signature: inspect.Signature, arguments: dict[str, Any]) -> dict[str, Any] | None:
    if "path" not in signature.parameters or "path" in arguments:
        return None
    for alias in _PATH_ALIASES:
        if alias in arguments:
            aliased = dict(arguments)
            aliased["path"] = aliased.pop(alias)
            return aliased
    return None


def infer_parameters(callable_: Callable[..., Any]) -> dict[str, Any]:
    """JSON-Schema parameters for a bare callable: every named parameter is a string."""
    try:
        signature = inspect.signature(callable_)
    except (TypeError, ValueError):
        return {"type": "object", "additionalProperties": True}
    if _takes_argument_dict(signature):
        return {"type": "object", "additionalProperties": True}

    properties: dict[str, Any] = {}
    required: list[str] = []
    for name, param in signature.parameters.items():
        if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
            continue
        properties[name] = {"type": "string", "description": f"Parameter: {name}"}
        if param.default is param.empty:
            required.append(name)

    if not properties:
        return {"type": "object", "additionalProperties": True}

    schema: dict[str, Any] = {"type": "object", "properties": properties, "additionalProperties": False}
    if required:
        schema["required"] = required
    return schema


def invoke_tool(callable_: Callable[..., Any], arguments: dict[str, Any]) -> Any:
    """
    Call a tool with decoded arguments.

    Arguments are passed as keywords. A callable taking a single argument
    dict (named args/arguments/params, or annotated as a dict) receives
    them positionally when none of the keys name its parameter. Arguments
    that fit neither way, even after the directory/file/filename -> path
    aliases, raise TypeError so the executor's failure policy sees it.
    """
    try:
        signature = inspect.signature(callable_)
    except ValueError:
        # No introspectable signature (some builtins); try keywords.
        return callable_(**arguments)

    if _binds(signature, arguments):
        return callable_(**arguments)
    if _takes_argument_dict(signature) and not any(key in signature.parameters for key in arguments):
        return callable_(arguments)

    aliased = _with_path_alias(signature, arguments)
    if aliased is not None and _binds(signature, aliased):
        return callable_(**aliased)

    raise TypeError(
        f"Tool invocation failed: arguments do not match {getattr(callable_, '__name__', 'tool')}{signature}. "
        f"Arguments provided: {arguments!r}. Ensure the tool call includes all required parameters."
    )


def encode_tool_result(result: Any) -> str:
    if isinstance(result, str):
        return result
    try:
        return json.dumps(result, ensure_ascii=False)
    except (TypeError, ValueError):
        return str(result)


# ---------------------------------------------------------------------------
# Executor
# ---------------------------------------------------------------------------


class Executor:
    """
    Multi-step agent: chat → tool calls → tool results → chat ... → answer.

    tools maps a name to one of:
        Tool                                  schema only; calling it is an error
        {"tool": Tool, "callable": fn}        explicit schema plus implementation
        fn                                    schema inferred from fn's signature

    on_tool_error decides what happens when a callable raises: "report"
    sends {"error": ..., "tool": ...} back to the model as the tool result,
    "raise" aborts the run with ToolInvocationError.

    Example:
        executor = Executor(client, tools={"fetch_weather": fetch_weather})
        answer = executor.run(system="You are helpful.", user="Weather in Paris?")
    """

    def __init__(
        self,
        client: Any,
        tools: Mapping[str, Any] | None = None,
        max_steps: int = 20,
        observer: StreamingObserver | None = None,
        on_tool_error: ToolErrorPolicy = "report",
    ) -> None:
        if on_tool_error not in ("report", "raise"):
            raise ValueError(f"on_tool_error must be 'report' or 'raise', got {on_tool_error!r}")
        self._client = client
        self._tools = dict(tools or {})
        self._max_steps = max_steps
        self._observer = observer
        self._on_tool_error = on_tool_error
        self.messages: list[dict[str, Any]] = []

    # ------------------------------------------------------------------
    # Tool table
    # ------------------------------------------------------------------

    def tool_definitions(self) -> list[dict[str, Any]]:
        """Schemas for every registered tool, sorted by name."""
        definitions = []
        for name in sorted(self._tools):
            entry = self._tools[name]
            if isinstance(entry, Tool):
                definitions.append(entry.to_dict())
            elif isinstance(entry, Mapping) and isinstance(entry.get("tool"), Tool):
                definitions.append(entry["tool"].to_dict())
            else:
                fn = entry.get("callable") if isinstance(entry, Mapping) else entry
                definitions.append(
                    {
                        "type": "function",
                        "function": {
                            "name": name,
                            "description": f"Tool: {name}",
                            "parameters": infer_parameters(fn),
                        },
                    }
                )
        return definitions

    def _callable_for(self, name: str) -> Callable[..., Any]:
        if name not in self._tools:
            available = ", ".join(sorted(self._tools))
            raise ToolNotFoundError(f"Tool '{name}' not found. Available: {available}")
        entry = self._tools[name]
        fn = entry.get("callable") if isinstance(entry, Mapping) else entry
        if not callable(fn) or isinstance(fn, Tool):
            raise ToolNotFoundError(f"Tool '{name}' has no associated callable")
        return fn

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    def run(self, system: str, user: str) -> str:
        """
        Drive the loop to completion.

        Returns the content of the first assistant turn without tool calls.
        If max_steps runs out first, the last non-empty assistant content is
        returned; StepLimitExceeded is raised only when there is none.
        """
        self.messages = [ChatMessage.system(system).to_dict(), ChatMessage.user(user).to_dict()]
        definitions = self.tool_definitions()
        last_content: str | None = None

        for step in range(1, self._max_steps + 1):
            self._emit("state", state="assistant_streaming")
            logger.debug("Executor step %d/%d", step, self._max_steps)

            response = self._client.chat_raw(
                messages=self.messages,
                tools=definitions,
                allow_chat=True,
                stream=self._observer is not None,
                on_chunk=self._observer.emit_frame if self._observer is not None else None,
            )

            message = response.message
            content = message.content if message else None
            raw_calls = (response.raw.get("message") or {}).get("tool_calls")

            if content or raw_calls:
                self.messages.append(ChatMessage.assistant(content, tool_calls=raw_calls).to_dict())
            if content:
                last_content = content

            calls = message.tool_calls if message else []
            if not calls:
                final = content or last_content or ""
                self._emit("final", text=final)
                return final

            for call in calls:
                self._execute_call(call)

        if last_content is None:
            raise StepLimitExceeded(f"Executor exceeded max_steps={self._max_steps} (possible infinite tool loop)")
        logger.warning("Executor hit max_steps=%d; returning last assistant content", self._max_steps)
        self._emit("final", text=last_content)
        return last_content

    def _execute_call(self, call: ToolCall) -> None:
        name = call.name
        if not name:
            raise ToolNotFoundError(f"Tool call missing function name: {call.model_dump()}")
        fn = self._callable_for(name)

        self._emit("state", state="tool_executing", name=name)
        try:
            result = invoke_tool(fn, call.arguments)
        except Exception as exc:
            if self._on_tool_error == "raise":
                raise ToolInvocationError(f"Tool '{name}' failed: {exc}") from exc
            logger.warning("Tool %s raised %s; reporting to model", name, exc)
            result = {"error": str(exc), "tool": name}

        self.messages.append(
            ChatMessage.tool(encode_tool_result(result), name=name, tool_call_id=call.id).to_dict()
        )
        self._emit("state", state="tool_result_injected", name=name)

    # ------------------------------------------------------------------
    # Observer plumbing
    # ------------------------------------------------------------------

    def _emit(self, type: str, **fields: Any) -> None:
        if self._observer is not None:
            self._observer.emit(type, **fields)
