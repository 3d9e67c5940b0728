# transport.py
# Line-oriented stdio transport to a spawned MCP server.
#
# Reads go through a selector on the raw stdout pipe with an overall
# deadline, so a silent server surfaces as RequestTimeout instead of a hang.

import logging
import os
import selectors
import subprocess
import time
from collections.abc import Mapping, Sequence

from ollama_agent.errors import ConnectionFailed, MCPError, RequestTimeout

logger = logging.getLogger(__name__)

_READ_CHUNK = 65536


class StdioTransport:
    def __init__(
        self,
        command: str,
        args: Sequence[str] | None = None,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self.command = command
        self.args = list(args or [])
        self.env = {str(k): str(v) for k, v in (env or {}).items()}
        self._process: subprocess.Popen | None = None
        self._selector: selectors.BaseSelector | None = None
        self._buffer = b""

    @property
    def running(self) -> bool:
        return self._process is not None and self._process.poll() is None

    def start(self) -> None:
        if self._process is not None:
            return
        try:
            self._process = subprocess.Popen(
                [self.command, *self.args],
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                env={**os.environ, **self.env},
            )
        except OSError as exc:
            raise ConnectionFailed(f"Failed to start MCP server {self.command!r}: {exc}") from exc
        self._selector = selectors.DefaultSelector()
        self._selector.register(self._process.stdout, selectors.EVENT_READ)
        self._buffer = b""
        logger.debug("Started MCP server pid=%s: %s", self._process.pid, self.command)

    def write_line(self, line: str) -> None:
        if self._process is None or self._process.stdin is None:
            raise MCPError("Transport is not started")
        try:
            self._process.stdin.write(line.encode("utf-8") + b"\n")
            self._process.stdin.flush()
        except (BrokenPipeError, OSError) as exc:
            raise ConnectionFailed(f"MCP server closed its input: {exc}") from exc

    def read_line(self, timeout: float) -> str:
        """Return the next line without its newline."""
        if self._process is None or self._selector is None:
            raise MCPError("Transport is not started")

        deadline = time.monotonic() + timeout
        fd = self._process.stdout.fileno()
        while b"\n" not in self._buffer:
            remaining = deadline - time.monotonic()
            if remaining <= 0 or not self._selector.select(remaining):
                raise RequestTimeout(f"MCP server did not respond within {timeout}s")
            chunk = os.read(fd, _READ_CHUNK)
            if not chunk:
                raise ConnectionFailed("MCP server closed its output")
            self._buffer += chunk

        line, _, self._buffer = self._buffer.partition(b"\n")
        return line.decode("utf-8", errors="replace").rstrip("\r")

    def close(self) -> None:
        process, self._process = self._process, None
        if process is None:
            return
        if self._selector is not None:
            self._selector.close()
            self._selector = None
        if process.stdin is not None:
            try:
                process.stdin.close()
            except OSError:
                logger.debug("stdin already closed for pid=%s", process.pid)
        try:
            process.wait(timeout=5)
        except subprocess.TimeoutExpired:
            process.kill()
            process.wait()
        if process.stdout is not None:
            process.stdout.close()
        self._buffer = b""
