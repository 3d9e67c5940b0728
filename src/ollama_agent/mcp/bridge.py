# bridge.py
# Exposes an MCP server's tools to Executor.

from collections.abc import Callable
from typing import Any

from ollama_agent.mcp.client import BaseMCPClient
from ollama_agent.tool import Tool


class ToolsBridge:
    """
    Example:
        bridge = ToolsBridge(StdioClient("my-mcp-server"))
        executor = Executor(client, tools=bridge.tools_for_executor())
    """

    def __init__(self, client: BaseMCPClient) -> None:
        if client is None:
            raise ValueError("ToolsBridge needs an MCP client")
        self._client = client
        self._cache: dict[str, Tool] | None = None

    def tools_for_executor(self) -> dict[str, dict[str, Any]]:
        """{name: {"tool": Tool, "callable": fn}} from a cached tools/list."""
        if self._cache is None:
            self._cache = {tool.name: tool for tool in self._client.list_tools()}
        return {name: {"tool": tool, "callable": self._callable(name)} for name, tool in self._cache.items()}

    def list_tools(self) -> list[Tool]:
        return self._client.list_tools()

    def _callable(self, name: str) -> Callable[..., str]:
        client = self._client

        def call(**kwargs: Any) -> str:
            return client.call_tool(name, {str(k): v for k, v in kwargs.items()})

        call.__name__ = name
        return call
