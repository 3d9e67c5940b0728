# client.py
# Resilient request engine for a local Ollama server.
#
# generate() is the path for automated pipelines: stateless, schema-first,
# no gate. chat() and chat_raw() are gated behind an explicit opt-in.
#
# Every call runs through _run_attempts(), a bounded loop that delegates
# each failure to retry.decide(). httpx exceptions are translated into the
# errors.py taxonomy in _request() / _stream_frames() and nowhere else.

import json
import logging
import time
from collections.abc import Callable, Iterable
from typing import Any

import httpx

from ollama_agent.config import Config
from ollama_agent.errors import (
    ChatNotAllowedError,
    ConnectionFailed,
    HTTPError,
    InvalidJSONError,
    NotFoundError,
    OllamaError,
    RequestTimeout,
    RetryExhaustedError,
    SchemaViolationError,
    StreamError,
)
from ollama_agent.management import ModelManagementMixin
from ollama_agent.options import Options, merge_options
from ollama_agent.parsing import parse_json
from ollama_agent.response import Response
from ollama_agent.retry import Decision, backoff_delay, decide, repair_instruction
from ollama_agent.schema import validate
from ollama_agent.streaming import StreamAccumulator, StreamHooks, iter_frames
from ollama_agent.tool import Tool

logger = logging.getLogger(__name__)

EMPTY_STRUCTURED = "Empty or nil response when schema is required"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def summarize_schema(schema: Any) -> str:
    """Describe a schema's required fields with a skeleton example for the prompt."""
    if not isinstance(schema, dict):
        return "object"
    required = schema.get("required") or []
    properties = schema.get("properties") or {}
    if not required and not properties:
        return "object"

    placeholders = {"string": "string_value", "number": 0, "integer": 0, "boolean": True, "array": []}
    example = {key: placeholders.get((properties.get(key) or {}).get("type"), {}) for key in required}
    required_list = ", ".join(f'"{key}"' for key in required)
    return f"Required fields: [{required_list}]. Example structure:\n{json.dumps(example, indent=2)}"


def enhance_prompt_for_json(prompt: str, schema: Any) -> str:
    """Append a JSON-only instruction unless the prompt already talks about JSON."""
    if "json" in prompt.lower():
        return prompt
    instruction = (
        "CRITICAL: Respond with ONLY valid JSON (no markdown code blocks, no explanations). "
        f"The JSON must include these exact required fields: {summarize_schema(schema)}"
    )
    return f"{prompt}\n\n{instruction}"


def normalize_tools(tools: Tool | Iterable[Tool | dict[str, Any]] | None) -> list[dict[str, Any]] | None:
    if tools is None:
        return None
    if isinstance(tools, Tool):
        return [tools.to_dict()]
    return [t.to_dict() if isinstance(t, Tool) else dict(t) for t in tools]


def decode_structured(text: str | None, schema: dict[str, Any]) -> Any:
    """Parse model text as JSON and hold it to *schema*. Empty output is a violation."""
    if text is None or not text.strip():
        raise SchemaViolationError(EMPTY_STRUCTURED)
    parsed = parse_json(text)
    if parsed is None or parsed in ({}, [], ""):
        raise SchemaViolationError(EMPTY_STRUCTURED)
    validate(parsed, schema)
    return parsed


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class Client(ModelManagementMixin):
    """
    Synchronous client. One instance owns one httpx.Client and one Config copy.

    Example:
        client = Client(Config(model="llama3.1:8b"))
        decision = client.generate(
            "Classify: 'refund my order'",
            schema={"type": "object", "required": ["intent"],
                    "properties": {"intent": {"type": "string"}}},
        )
    """

    def __init__(self, config: Config | None = None, http_client: httpx.Client | None = None) -> None:
        self.config = (config or Config()).model_copy()
        self._http = http_client or httpx.Client(timeout=self.config.timeout)

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "Client":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def generate(
        self,
        prompt: str,
        schema: dict[str, Any] | None = None,
        model: str | None = None,
        strict: bool | None = None,
        options: Options | dict[str, Any] | None = None,
        hooks: StreamHooks | None = None,
        return_meta: bool = False,
        system: str | None = None,
        images: list[str] | None = None,
        think: bool | str | None = None,
        keep_alive: str | None = None,
        suffix: str | None = None,
        raw: bool | None = None,
    ) -> Any:
        """
        Single-shot completion via /api/generate.

        With a schema the decoded, validated JSON value is returned; without
        one, the generated text. Streaming is used when any hook is set.
        """
        if prompt is None:
            raise ValueError("prompt is required")
        strict = self.config.strict_json if strict is None else strict
        target = model or self.config.model
        hooks = hooks or StreamHooks()
        current = {"prompt": prompt}

        def attempt(number: int) -> Any:
            body: dict[str, Any] = {
                "model": target,
                "prompt": current["prompt"],
                "stream": hooks.enabled,
                "options": self._options(options),
            }
            if schema is not None:
                body["format"] = schema
                body["prompt"] = enhance_prompt_for_json(current["prompt"], schema)
            extras = {"system": system, "images": images, "think": think,
                      "keep_alive": keep_alive, "suffix": suffix, "raw": raw}
            body.update({k: v for k, v in extras.items() if v is not None})

            text = self._call_generate(body, target, hooks, number)
            return decode_structured(text, schema) if schema is not None else text

        def repair(error: Exception) -> None:
            current["prompt"] = f"{current['prompt']}\n\n{repair_instruction(error)}"

        return self._run_attempts(attempt, target, strict, repair, "/api/generate", return_meta)

    def chat(
        self,
        messages: list[dict[str, Any]],
        model: str | None = None,
        format: dict[str, Any] | str | None = None,
        tools: Tool | Iterable[Tool | dict[str, Any]] | None = None,
        options: Options | dict[str, Any] | None = None,
        strict: bool = False,
        allow_chat: bool = False,
        return_meta: bool = False,
        think: bool | str | None = None,
        keep_alive: str | None = None,
    ) -> Any:
        """
        Gated /api/chat call returning the assistant content.

        With a schema format the content is decoded and validated; otherwise
        the content string is returned ("" when the turn was tool calls only).
        """
        self._ensure_chat_allowed(allow_chat, strict, "chat")
        target = model or self.config.model
        working = list(messages)

        def attempt(number: int) -> Any:
            body = self._chat_body(working, target, format, tools, options, think, keep_alive, stream=False)
            payload = self._call_chat(body, target, number)
            content = (payload.get("message") or {}).get("content")
            if isinstance(format, dict):
                return decode_structured(content, format)
            if format == "json":
                return parse_json(content)
            return content or ""

        def repair(error: Exception) -> None:
            working.append({"role": "user", "content": repair_instruction(error)})

        return self._run_attempts(attempt, target, strict, repair, "/api/chat", return_meta)

    def chat_raw(
        self,
        messages: list[dict[str, Any]],
        model: str | None = None,
        format: dict[str, Any] | str | None = None,
        tools: Tool | Iterable[Tool | dict[str, Any]] | None = None,
        options: Options | dict[str, Any] | None = None,
        strict: bool = False,
        allow_chat: bool = False,
        stream: bool = False,
        on_chunk: Callable[[dict[str, Any]], None] | None = None,
        return_meta: bool = False,
        think: bool | str | None = None,
        keep_alive: str | None = None,
        logprobs: bool | None = None,
        top_logprobs: int | None = None,
    ) -> Any:
        """
        Gated /api/chat call returning the whole body as a Response.

        When streaming, on_chunk sees every frame as it arrives, but the
        Response is only built after the final frame: content is the joined
        deltas and tool_calls come from the last frame that carried them.
        """
        self._ensure_chat_allowed(allow_chat, strict, "chat_raw")
        target = model or self.config.model
        working = list(messages)

        def attempt(number: int) -> Response:
            body = self._chat_body(working, target, format, tools, options, think, keep_alive, stream=stream)
            if logprobs is not None:
                body["logprobs"] = logprobs
            if top_logprobs is not None:
                body["top_logprobs"] = top_logprobs

            if stream:
                payload = self._call_chat_stream(body, target, number, on_chunk)
            else:
                payload = self._call_chat(body, target, number)

            if isinstance(format, dict):
                decode_structured((payload.get("message") or {}).get("content"), format)
            return Response.from_payload(payload)

        def repair(error: Exception) -> None:
            working.append({"role": "user", "content": repair_instruction(error)})

        return self._run_attempts(attempt, target, strict, repair, "/api/chat", return_meta)

    # ------------------------------------------------------------------
    # Attempt loop
    # ------------------------------------------------------------------

    def _run_attempts(
        self,
        call: Callable[[int], Any],
        model: str,
        strict: bool,
        repair: Callable[[Exception], None],
        endpoint: str,
        return_meta: bool,
    ) -> Any:
        started = time.monotonic()
        pulled: set[str] = set()
        attempt = 0

        while True:
            attempt += 1
            try:
                data = call(attempt)
            except OllamaError as exc:
                decision = decide(exc, attempt, self.config.retries, strict, pulled)
                logger.debug("%s attempt %d failed (%s): %s", endpoint, attempt, decision.value, exc)

                if decision is Decision.RAISE:
                    if isinstance(exc, NotFoundError):
                        raise self._enrich_not_found(exc) from exc
                    raise
                if decision is Decision.EXHAUSTED:
                    raise RetryExhaustedError(f"Failed after {attempt} attempts: {exc}") from exc
                if decision is Decision.PULL:
                    self.pull(model)
                    pulled.add(model)
                    # The pull is not charged against the attempt budget.
                    attempt -= 1
                elif decision is Decision.REPAIR:
                    logger.warning("Invalid structured output, retrying with repair prompt: %s", exc)
                    repair(exc)
                elif isinstance(exc, RequestTimeout):
                    delay = backoff_delay(attempt)
                    logger.warning("Request timed out, retrying in %.0fs", delay)
                    time.sleep(delay)
                else:
                    logger.warning("Retrying after %s", exc)
                continue

            if not return_meta:
                return data
            return {
                "data": data,
                "meta": {
                    "endpoint": endpoint,
                    "model": model,
                    "attempts": attempt,
                    "latency_ms": self._elapsed_ms(started),
                },
            }

    # ------------------------------------------------------------------
    # Endpoint calls (one HTTP exchange each)
    # ------------------------------------------------------------------

    def _call_generate(self, body: dict[str, Any], model: str, hooks: StreamHooks, attempt: int) -> str | None:
        started = time.monotonic()
        try:
            if not hooks.enabled:
                response = self._request("POST", "/api/generate", body, requested_model=model)
                payload = self._json(response, "generate")
                text = payload.get("response")
                raw_body = response.text
            else:
                acc = StreamAccumulator("generate")
                for frame in self._stream_frames("/api/generate", body, model):
                    token = acc.feed(frame)
                    if token and hooks.on_token:
                        hooks.on_token(token)
                    if frame.get("done") is True and hooks.on_complete:
                        hooks.on_complete()
                if not acc.done:
                    raise StreamError("Stream ended before the final frame")
                text = acc.content
                raw_body = json.dumps(acc.result())
        except OllamaError as exc:
            if hooks.on_error:
                hooks.on_error(exc)
            raise

        self._emit_response(raw_body, {"endpoint": "/api/generate", "model": model, "attempt": attempt,
                                       "attempt_latency_ms": self._elapsed_ms(started)})
        return text

    def _call_chat(self, body: dict[str, Any], model: str, attempt: int) -> dict[str, Any]:
        started = time.monotonic()
        response = self._request("POST", "/api/chat", body, requested_model=model)
        payload = self._json(response, "chat")
        self._emit_response(response.text, {"endpoint": "/api/chat", "model": model, "attempt": attempt,
                                            "attempt_latency_ms": self._elapsed_ms(started)})
        return payload

    def _call_chat_stream(
        self,
        body: dict[str, Any],
        model: str,
        attempt: int,
        on_chunk: Callable[[dict[str, Any]], None] | None,
    ) -> dict[str, Any]:
        started = time.monotonic()
        acc = StreamAccumulator("chat")
        for frame in self._stream_frames("/api/chat", body, model):
            acc.feed(frame)
            if on_chunk:
                on_chunk(frame)
        if not acc.done:
            raise StreamError("Stream ended before the final frame")
        payload = acc.result()
        self._emit_response(json.dumps(payload), {"endpoint": "/api/chat", "model": model, "attempt": attempt,
                                                  "attempt_latency_ms": self._elapsed_ms(started)})
        return payload

    def _chat_body(
        self,
        messages: list[dict[str, Any]],
        model: str,
        format: dict[str, Any] | str | None,
        tools: Any,
        options: Options | dict[str, Any] | None,
        think: bool | str | None,
        keep_alive: str | None,
        stream: bool,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {
            "model": model,
            "messages": list(messages),
            "stream": stream,
            "options": self._options(options),
        }
        if format is not None:
            body["format"] = format
        normalized = normalize_tools(tools)
        if normalized is not None:
            body["tools"] = normalized
        if think is not None:
            body["think"] = think
        if keep_alive is not None:
            body["keep_alive"] = keep_alive
        return body

    # ------------------------------------------------------------------
    # HTTP plumbing
    # ------------------------------------------------------------------

    def _url(self, path: str) -> str:
        return f"{self.config.base_url.rstrip('/')}{path}"

    def _request(
        self,
        method: str,
        path: str,
        body: dict[str, Any] | None = None,
        timeout: float | None = None,
        requested_model: str | None = None,
    ) -> httpx.Response:
        timeout = timeout or self.config.timeout
        try:
            response = self._http.request(method, self._url(path), json=body, timeout=timeout)
        except httpx.TimeoutException as exc:
            raise RequestTimeout(f"Request timed out after {timeout}s") from exc
        except httpx.TransportError as exc:
            raise ConnectionFailed(f"Connection failed: {exc}") from exc
        self._raise_for_status(response, requested_model)
        return response

    def _stream_frames(self, path: str, body: dict[str, Any], model: str) -> Iterable[dict[str, Any]]:
        try:
            with self._http.stream("POST", self._url(path), json=body, timeout=self.config.timeout) as response:
                self._raise_for_status(response, model)
                yield from iter_frames(response.iter_lines())
        except httpx.TimeoutException as exc:
            raise RequestTimeout(f"Request timed out after {self.config.timeout}s") from exc
        except httpx.TransportError as exc:
            raise ConnectionFailed(f"Connection failed: {exc}") from exc

    @staticmethod
    def _raise_for_status(response: httpx.Response, requested_model: str | None) -> None:
        if response.is_success:
            return
        reason = response.reason_phrase or "error"
        if response.status_code == 404:
            raise NotFoundError(reason, requested_model=requested_model)
        raise HTTPError(f"HTTP {response.status_code}: {reason}", response.status_code)

    @staticmethod
    def _json(response: httpx.Response, what: str) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise InvalidJSONError(f"Failed to parse {what} response: {exc}") from exc

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _ensure_chat_allowed(self, allow_chat: bool, strict: bool, method_name: str) -> None:
        if allow_chat or strict or self.config.allow_chat:
            return
        raise ChatNotAllowedError(
            f"{method_name}() is intentionally gated because it is easy to misuse inside agents. "
            f"Prefer generate(). If you really want {method_name}(), pass allow_chat=True (or strict=True)."
        )

    def _options(self, options: Options | dict[str, Any] | None) -> dict[str, Any]:
        defaults = {
            "temperature": self.config.temperature,
            "top_p": self.config.top_p,
            "num_ctx": self.config.num_ctx,
        }
        return merge_options(defaults, options)

    def _emit_response(self, raw: str, meta: dict[str, Any]) -> None:
        hook = self.config.on_response
        if hook is None:
            return
        try:
            hook(raw, meta)
        except Exception:
            logger.exception("on_response hook raised; ignoring")

    @staticmethod
    def _elapsed_ms(started: float) -> float:
        return round((time.monotonic() - started) * 1000.0, 1)
