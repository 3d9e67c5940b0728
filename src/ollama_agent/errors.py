# errors.py
# Exception taxonomy for the client runtime and the agent layer.
#
# Every public call either returns a value or raises exactly one of these.
# httpx exceptions never escape the package; client.py and mcp/ translate
# them at the boundary.


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------


class OllamaError(Exception):
    """Root of every error raised by ollama_agent."""


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------


class ConnectionFailed(OllamaError):
    """Server refused, unreachable, or DNS failure. Never retried."""


class RequestTimeout(OllamaError):
    """A read or connect exceeded the configured timeout."""


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------

RETRYABLE_STATUSES = frozenset({408, 429, 500, 502, 503})


class HTTPError(OllamaError):
    """Non-2xx response from the model server."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        # Unknown status is treated as transient.
        if self.status_code is None:
            return True
        return self.status_code in RETRYABLE_STATUSES


class NotFoundError(HTTPError):
    """HTTP 404, usually a model that is not installed locally."""

    def __init__(
        self,
        message: str = "Resource not found",
        requested_model: str | None = None,
        suggestions: list[str] | None = None,
    ) -> None:
        super().__init__(message if message.startswith("HTTP 404") else f"HTTP 404: {message}", 404)
        self.requested_model = requested_model
        self.suggestions = list(suggestions or [])

    @property
    def retryable(self) -> bool:
        return False

    def __str__(self) -> str:
        msg = super().__str__()
        if not (self.requested_model and self.suggestions):
            return msg
        lines = "\n".join(f"  - {name}" for name in self.suggestions)
        return f"{msg}\n\nModel '{self.requested_model}' not found. Did you mean one of these?\n{lines}"


# ---------------------------------------------------------------------------
# Content
# ---------------------------------------------------------------------------


class InvalidJSONError(OllamaError):
    """The model (or server) produced text that is not parseable JSON."""


class SchemaViolationError(OllamaError):
    """Parsed output does not satisfy the enforced schema contract."""


class StreamError(OllamaError):
    """The server emitted an ``error`` frame mid-stream, or the stream ended without its final frame."""


class EmbeddingError(OllamaError):
    """/api/embeddings answered without a usable embedding vector."""


# ---------------------------------------------------------------------------
# Exhaustion / gating
# ---------------------------------------------------------------------------


class RetryExhaustedError(OllamaError):
    """All attempts failed. The last cause is chained as __cause__."""


class ChatNotAllowedError(OllamaError):
    """chat()/chat_raw() called without an explicit opt-in."""


# ---------------------------------------------------------------------------
# Agent
# ---------------------------------------------------------------------------


class ToolNotFoundError(OllamaError):
    """The model requested a tool absent from the executor's tool table."""


class ToolInvocationError(OllamaError):
    """A tool callable raised while the executor runs with on_tool_error='raise'."""


class StepLimitExceeded(OllamaError):
    """max_steps elapsed without the model producing any assistant content."""


# ---------------------------------------------------------------------------
# MCP
# ---------------------------------------------------------------------------


class MCPError(OllamaError):
    """JSON-RPC error object or malformed reply from an MCP peer."""
