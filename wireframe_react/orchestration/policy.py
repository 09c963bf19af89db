"""
Retry and model-fallback policy for a single generation request.

``plan_retry`` is a pure function: given the bookkeeping after an attempt and
the error it produced (if any), it picks the next transition of the retry
state machine.
"""

from typing import Optional

from wireframe_react.models import ErrorKind, RetryDecision, RetryState, RetryStep


# Failures that move on to another model, or back off on the last one
SWITCHABLE_KINDS = {
    ErrorKind.RATE_LIMITED,
    ErrorKind.MALFORMED_RESPONSE,
    ErrorKind.TRANSPORT_ERROR,
}

# Failures surfaced to the caller without another attempt
FATAL_KINDS = {
    ErrorKind.AUTH_ERROR,
    ErrorKind.EMPTY_RESULT,
    ErrorKind.CANCELLED,
}

MAX_BAD_REQUEST_RETRIES = 1


def attempt_budget(model_count: int, max_retries: int) -> int:
    """Total number of attempts allowed across all models."""
    return max(model_count, 1) + max(max_retries, 0)


def backoff_delay(attempt_count: int, backoff_cap: float) -> float:
    """Exponential delay (base 2, seconds) capped at ``backoff_cap``."""
    return float(min(2 ** attempt_count, backoff_cap))


def plan_retry(
    state: RetryState,
    error_kind: Optional[ErrorKind],
    model_count: int,
    max_retries: int = 2,
    backoff_cap: float = 30.0,
) -> RetryDecision:
    """
    Decide what happens after an attempt.

    Args:
        state: Bookkeeping including the attempt that just finished.
        error_kind: Kind of the failure, or None when the attempt succeeded.
        model_count: Number of candidate models.
        max_retries: Attempts allowed beyond one per model.
        backoff_cap: Upper bound for backoff delays, in seconds.

    Returns:
        RetryDecision with the next step and, for BACKOFF, the delay.
    """
    if error_kind is None:
        return RetryDecision(step=RetryStep.SUCCESS)

    if error_kind in FATAL_KINDS:
        return RetryDecision(step=RetryStep.FAIL)

    if state.attempt_count >= attempt_budget(model_count, max_retries):
        return RetryDecision(step=RetryStep.EXHAUSTED)

    if error_kind == ErrorKind.BAD_REQUEST:
        if state.bad_request_count <= MAX_BAD_REQUEST_RETRIES:
            return RetryDecision(step=RetryStep.RETRY)
        return RetryDecision(step=RetryStep.FAIL)

    if error_kind in SWITCHABLE_KINDS:
        if state.current_model_index + 1 < model_count:
            return RetryDecision(step=RetryStep.SWITCH_MODEL)
        return RetryDecision(
            step=RetryStep.BACKOFF,
            delay=backoff_delay(state.attempt_count, backoff_cap),
        )

    return RetryDecision(step=RetryStep.FAIL)


def record_attempt(state: RetryState, error_kind: Optional[ErrorKind]) -> RetryState:
    """Return new bookkeeping after one more attempt on the current model."""
    return state.model_copy(update={
        "attempt_count": state.attempt_count + 1,
        "last_error": error_kind,
        "bad_request_count": state.bad_request_count + (1 if error_kind == ErrorKind.BAD_REQUEST else 0),
    })


def switch_model(state: RetryState) -> RetryState:
    """Return new bookkeeping pointing at the next candidate model."""
    return state.model_copy(update={"current_model_index": state.current_model_index + 1})
