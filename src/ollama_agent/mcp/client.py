# client.py
# JSON-RPC 2.0 clients for Model Context Protocol servers.
#
# Lifecycle (both transports):
#   NEW → initialize → notifications/initialized → READY → close
#
# start() runs automatically on first use. Exactly one request is in
# flight per client; replies are matched to requests by id.

import json
import logging
from collections.abc import Mapping, Sequence
from importlib.metadata import PackageNotFoundError, version
from typing import Any

import httpx

from ollama_agent.errors import ConnectionFailed, MCPError, RequestTimeout
from ollama_agent.mcp.transport import StdioTransport
from ollama_agent.tool import Tool

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "2025-11-25"


def _client_version() -> str:
    try:
        return version("ollama-agent")
    except PackageNotFoundError:
        return "0.0.0"


def content_to_text(content: Any) -> str:
    """Join the text parts of a tools/call result, one per line."""
    if not isinstance(content, list):
        return ""
    parts = [str(item["text"]) for item in content if isinstance(item, Mapping) and item.get("text") is not None]
    return "\n".join(parts)


# ---------------------------------------------------------------------------
# Base client
# ---------------------------------------------------------------------------


class BaseMCPClient:
    """Protocol logic shared by transports. Subclasses implement _open, _exchange, _notify and _shutdown."""

    def __init__(self, timeout: float = 30) -> None:
        self.timeout = timeout
        self.server_info: dict[str, Any] = {}
        self._request_id = 0
        self._initialized = False

    # -- transport hooks ------------------------------------------------

    def _open(self) -> None:
        pass

    def _exchange(self, message: dict[str, Any]) -> dict[str, Any]:
        raise NotImplementedError

    def _notify(self, message: dict[str, Any]) -> None:
        raise NotImplementedError

    def _shutdown(self) -> None:
        pass

    # -- lifecycle ------------------------------------------------------

    def start(self) -> None:
        if self._initialized:
            return
        self._open()
        result = self._request(
            "initialize",
            {
                "protocolVersion": PROTOCOL_VERSION,
                "capabilities": {},
                "clientInfo": {"name": "ollama-agent", "version": _client_version()},
            },
        )
        self.server_info = result if isinstance(result, dict) else {}
        self._notify({"jsonrpc": "2.0", "method": "notifications/initialized", "params": {}})
        self._initialized = True
        logger.info("MCP session initialized: %s", self.server_info.get("serverInfo", {}).get("name", "unknown"))

    def close(self) -> None:
        self._shutdown()
        self._initialized = False

    def __enter__(self) -> "BaseMCPClient":
        self.start()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # -- operations -----------------------------------------------------

    def list_tools(self) -> list[Tool]:
        self.start()
        result = self._request("tools/list", {})
        listed = result.get("tools") if isinstance(result, dict) else None
        if not isinstance(listed, list):
            return []

        tools = []
        for entry in listed:
            name = str(entry.get("name") or "")
            if not name:
                continue
            tools.append(
                Tool.from_dict(
                    {
                        "type": "function",
                        "function": {
                            "name": name,
                            "description": str(entry.get("description") or f"MCP tool: {name}"),
                            "parameters": entry.get("inputSchema") or {"type": "object"},
                        },
                    }
                )
            )
        return tools

    def call_tool(self, name: str, arguments: Mapping[str, Any] | None = None) -> str:
        self.start()
        params = {"name": str(name), "arguments": {str(k): v for k, v in (arguments or {}).items()}}
        result = self._request("tools/call", params)
        if not isinstance(result, dict):
            raise MCPError(f"tools/call {name!r} returned no result")
        return content_to_text(result.get("content"))

    # -- JSON-RPC -------------------------------------------------------

    def _next_id(self) -> int:
        self._request_id += 1
        return self._request_id

    def _request(self, method: str, params: dict[str, Any]) -> Any:
        message = {"jsonrpc": "2.0", "id": self._next_id(), "method": method, "params": params}
        reply = self._exchange(message)
        if reply.get("error") is not None:
            error = reply["error"]
            detail = error.get("message", error) if isinstance(error, Mapping) else error
            raise MCPError(f"{method} failed: {detail}")
        return reply.get("result")


# ---------------------------------------------------------------------------
# stdio
# ---------------------------------------------------------------------------


class StdioClient(BaseMCPClient):
    """
    MCP server spawned as a subprocess, one JSON message per line.

    Example:
        with StdioClient("npx", ["-y", "@modelcontextprotocol/server-filesystem", "/tmp"]) as mcp:
            print([tool.name for tool in mcp.list_tools()])
    """

    def __init__(
        self,
        command: str,
        args: Sequence[str] | None = None,
        env: Mapping[str, str] | None = None,
        timeout: float = 30,
        transport: StdioTransport | None = None,
    ) -> None:
        super().__init__(timeout)
        self._transport = transport or StdioTransport(command, args, env)

    def _open(self) -> None:
        self._transport.start()

    def _notify(self, message: dict[str, Any]) -> None:
        self._transport.write_line(json.dumps(message))

    def _exchange(self, message: dict[str, Any]) -> dict[str, Any]:
        self._transport.write_line(json.dumps(message))
        expected = message["id"]
        while True:
            line = self._transport.read_line(self.timeout).strip()
            if not line.startswith("{"):
                continue
            try:
                reply = json.loads(line)
            except json.JSONDecodeError:
                logger.debug("Skipping non-JSON line from MCP server: %.200s", line)
                continue
            if "method" in reply:
                # Server-initiated notification or request.
                continue
            if reply.get("id") == expected:
                return reply

    def _shutdown(self) -> None:
        self._transport.close()


# ---------------------------------------------------------------------------
# Streamable HTTP
# ---------------------------------------------------------------------------


def parse_sse_messages(body: str) -> list[dict[str, Any]]:
    """Decode each data: event of an SSE body. Non-JSON payloads are skipped."""
    messages: list[dict[str, Any]] = []
    data: list[str] = []

    def flush() -> None:
        payload = "\n".join(data).strip()
        data.clear()
        if not payload or payload == "[DONE]":
            return
        try:
            parsed = json.loads(payload)
        except json.JSONDecodeError:
            logger.debug("Skipping non-JSON SSE event: %.200s", payload)
            return
        if isinstance(parsed, dict):
            messages.append(parsed)

    for line in body.splitlines():
        if line.startswith("data:"):
            data.append(line[5:].strip())
        elif not line.strip() and data:
            flush()
    if data:
        flush()
    return messages


class HttpClient(BaseMCPClient):
    """
    Remote MCP server over streamable HTTP (POST per message).

    Example:
        mcp = HttpClient("https://gitmcp.io/owner/repo")
        print(mcp.call_tool("search", {"query": "README"}))
    """

    def __init__(
        self,
        url: str,
        timeout: float = 30,
        headers: Mapping[str, str] | None = None,
        http_client: httpx.Client | None = None,
    ) -> None:
        super().__init__(timeout)
        self.url = url
        self.session_id: str | None = None
        self._headers = {str(k): str(v) for k, v in (headers or {}).items()}
        self._http = http_client or httpx.Client(timeout=timeout)

    def _notify(self, message: dict[str, Any]) -> None:
        self._post(message)

    def _exchange(self, message: dict[str, Any]) -> dict[str, Any]:
        return self._post(message)

    def _shutdown(self) -> None:
        self.session_id = None

    def _post(self, message: dict[str, Any]) -> dict[str, Any]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json, text/event-stream",
            "MCP-Protocol-Version": PROTOCOL_VERSION,
        }
        if self.session_id:
            headers["MCP-Session-Id"] = self.session_id
        headers.update(self._headers)

        try:
            response = self._http.post(self.url, content=json.dumps(message), headers=headers)
        except httpx.TimeoutException as exc:
            raise RequestTimeout(f"MCP server did not respond within {self.timeout}s") from exc
        except httpx.TransportError as exc:
            raise ConnectionFailed(f"MCP connection failed: {exc}") from exc

        if message.get("method") == "initialize":
            session = (response.headers.get("MCP-Session-Id") or "").strip()
            self.session_id = session or None

        if response.status_code == 202:
            return {}
        if not response.is_success:
            raise MCPError(f"MCP HTTP error: {response.status_code} {response.reason_phrase}")

        content_type = response.headers.get("Content-Type", "").split(";")[0].strip()
        if content_type == "text/event-stream":
            return self._match_sse(response.text, message.get("id"))
        try:
            return response.json()
        except ValueError as exc:
            raise MCPError(f"MCP server returned invalid JSON: {exc}") from exc

    @staticmethod
    def _match_sse(body: str, expected_id: Any) -> dict[str, Any]:
        messages = parse_sse_messages(body)
        if expected_id is None:
            return messages[0] if messages else {}
        for reply in messages:
            if "method" not in reply and reply.get("id") == expected_id:
                return reply
        raise MCPError(f"MCP SSE response had no JSON-RPC reply for id {expected_id!r}")
