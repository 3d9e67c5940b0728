import pytest

from ollama_agent.errors import (
    ChatNotAllowedError,
    ConnectionFailed,
    HTTPError,
    InvalidJSONError,
    NotFoundError,
    RequestTimeout,
    SchemaViolationError,
    StreamError,
)
from ollama_agent.retry import REPAIR_TEMPLATE, Decision, backoff_delay, decide, repair_instruction


@pytest.mark.parametrize("error", [RequestTimeout("t"), StreamError("s"), HTTPError("x", 503), HTTPError("x", None)])
def test_transient_errors_retry_until_budget_spent(error):
    assert decide(error, attempt=1, retries=2, strict=False) is Decision.RETRY
    assert decide(error, attempt=2, retries=2, strict=False) is Decision.RETRY
    assert decide(error, attempt=3, retries=2, strict=False) is Decision.EXHAUSTED


@pytest.mark.parametrize("status", [400, 401, 403, 422])
def test_non_retryable_status_raises(status):
    assert decide(HTTPError("x", status), attempt=1, retries=5, strict=False) is Decision.RAISE


@pytest.mark.parametrize("status", [408, 429, 500, 502, 503])
def test_retryable_statuses(status):
    assert HTTPError("x", status).retryable is True


def test_connection_failure_and_gating_raise():
    assert decide(ConnectionFailed("down"), 1, 3, False) is Decision.RAISE
    assert decide(ChatNotAllowedError("no"), 1, 3, False) is Decision.RAISE


@pytest.mark.parametrize("error", [InvalidJSONError("bad"), SchemaViolationError("bad")])
def test_content_errors_repair_unless_strict(error):
    assert decide(error, 1, 2, strict=False) is Decision.REPAIR
    assert decide(error, 3, 2, strict=False) is Decision.EXHAUSTED
    assert decide(error, 1, 2, strict=True) is Decision.RAISE


def test_not_found_pulls_once_per_model():
    error = NotFoundError("Not Found", requested_model="llama3")
    assert decide(error, 1, 2, False) is Decision.PULL
    assert decide(error, 1, 2, False, pulled={"llama3"}) is Decision.RAISE
    assert decide(NotFoundError("Not Found"), 1, 2, False) is Decision.RAISE


def test_backoff_doubles():
    assert [backoff_delay(n) for n in (1, 2, 3)] == [2.0, 4.0, 8.0]


def test_repair_instruction_carries_error():
    text = repair_instruction(SchemaViolationError("'status' is a required property"))
    assert text == REPAIR_TEMPLATE.format(error="'status' is a required property")
    assert "Return ONLY valid JSON" in text


def test_not_found_message_lists_suggestions():
    error = NotFoundError("Not Found", requested_model="llama3", suggestions=["llama3.1:8b"])
    assert str(error).startswith("HTTP 404: Not Found")
    assert "Did you mean" in str(error)
    assert "  - llama3.1:8b" in str(error)
    assert error.retryable is False
