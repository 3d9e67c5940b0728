# retry.py
# Retry policy for the request engine.
#
# The attempt loop in client.py never inspects exceptions itself; it asks
# decide() what to do with the failure it just saw.

from collections.abc import Collection
from enum import Enum

from ollama_agent.errors import (
    HTTPError,
    InvalidJSONError,
    NotFoundError,
    RequestTimeout,
    SchemaViolationError,
    StreamError,
)

REPAIR_TEMPLATE = (
    "CRITICAL FIX: Your last response was invalid or violated the schema. "
    "Error: {error}. Return ONLY valid JSON."
)


class Decision(Enum):
    RETRY = "retry"          # resend the same request
    REPAIR = "repair"        # resend with a repair instruction appended
    PULL = "pull"            # pull the model, then resend without spending an attempt
    RAISE = "raise"          # surface the error as-is
    EXHAUSTED = "exhausted"  # wrap in RetryExhaustedError


def decide(
    error: Exception,
    attempt: int,
    retries: int,
    strict: bool,
    pulled: Collection[str] = (),
) -> Decision:
    """
    Classify a failed attempt.

    attempt is the 1-based number of the attempt that just failed; at most
    retries + 1 attempts are made.
    """
    if isinstance(error, NotFoundError):
        model = error.requested_model
        if model is None or model in pulled:
            return Decision.RAISE
        return Decision.PULL

    out_of_attempts = attempt > retries

    if isinstance(error, (RequestTimeout, StreamError)):
        return Decision.EXHAUSTED if out_of_attempts else Decision.RETRY

    if isinstance(error, HTTPError):
        if not error.retryable:
            return Decision.RAISE
        return Decision.EXHAUSTED if out_of_attempts else Decision.RETRY

    if isinstance(error, (InvalidJSONError, SchemaViolationError)):
        if strict:
            return Decision.RAISE
        return Decision.EXHAUSTED if out_of_attempts else Decision.REPAIR

    # ConnectionFailed, gating and anything unclassified
    return Decision.RAISE


def backoff_delay(attempt: int) -> float:
    """Seconds to wait after the given failed attempt: 2, 4, 8, ..."""
    return float(2**attempt)


def repair_instruction(error: Exception) -> str:
    return REPAIR_TEMPLATE.format(error=error)
