"""
Tests for the retry policy and the retry graph.
"""

import asyncio

import pytest

from wireframe_react.errors import AuthError, BadRequest, MalformedResponse, RateLimited
from wireframe_react.models import ErrorKind, RetryState, RetryStep
from wireframe_react.orchestration import (
    attempt_budget,
    backoff_delay,
    create_retry_graph,
    initial_state,
    plan_retry,
    recursion_limit,
)
from wireframe_react.orchestration.policy import record_attempt, switch_model


def test_success_without_error():
    decision = plan_retry(RetryState(attempt_count=1), None, model_count=3)
    assert decision.step == RetryStep.SUCCESS


@pytest.mark.parametrize("kind", [ErrorKind.AUTH_ERROR, ErrorKind.EMPTY_RESULT, ErrorKind.CANCELLED])
def test_fatal_errors_fail_immediately(kind):
    decision = plan_retry(RetryState(attempt_count=1), kind, model_count=3)
    assert decision.step == RetryStep.FAIL


@pytest.mark.parametrize(
    "kind", [ErrorKind.RATE_LIMITED, ErrorKind.MALFORMED_RESPONSE, ErrorKind.TRANSPORT_ERROR]
)
def test_switchable_errors_switch_model(kind):
    decision = plan_retry(RetryState(attempt_count=1), kind, model_count=3)
    assert decision.step == RetryStep.SWITCH_MODEL


def test_last_model_backs_off():
    """Test exponential backoff on the last model."""
    state = RetryState(attempt_count=3, current_model_index=2)
    decision = plan_retry(state, ErrorKind.RATE_LIMITED, model_count=3, max_retries=2)
    assert decision.step == RetryStep.BACKOFF
    assert decision.delay == 8.0


def test_backoff_is_capped():
    assert backoff_delay(3, 30.0) == 8.0
    assert backoff_delay(10, 30.0) == 30.0


def test_budget_exhausted():
    state = RetryState(attempt_count=3, current_model_index=2)
    decision = plan_retry(state, ErrorKind.RATE_LIMITED, model_count=3, max_retries=0)
    assert decision.step == RetryStep.EXHAUSTED


def test_bad_request_retried_once():
    """Test that a 400 is retried once on the same model, then fails."""
    state = record_attempt(RetryState(), ErrorKind.BAD_REQUEST)
    assert plan_retry(state, ErrorKind.BAD_REQUEST, model_count=3).step == RetryStep.RETRY

    state = record_attempt(state, ErrorKind.BAD_REQUEST)
    assert state.bad_request_count == 2
    assert plan_retry(state, ErrorKind.BAD_REQUEST, model_count=3).step == RetryStep.FAIL


def test_record_attempt_and_switch_model_are_pure():
    state = RetryState()
    after = switch_model(record_attempt(state, ErrorKind.RATE_LIMITED))

    assert state.attempt_count == 0
    assert after.attempt_count == 1
    assert after.current_model_index == 1
    assert after.last_error == ErrorKind.RATE_LIMITED


def test_attempt_budget():
    assert attempt_budget(3, 2) == 5
    assert attempt_budget(0, 0) == 1
    assert recursion_limit(3, 2) == 15


def _run_graph(outcomes, models, max_retries=0):
    """Drive the retry graph with scripted attempt outcomes."""
    calls = []
    delays = []

    async def attempt(model, attempt_number):
        calls.append((model, attempt_number))
        outcome = outcomes[len(calls) - 1]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def sleep(delay):
        delays.append(delay)

    async def run():
        app = create_retry_graph(attempt, sleep, max_retries=max_retries)
        return await app.ainvoke(
            initial_state(models),
            config={"recursion_limit": recursion_limit(len(models), max_retries)},
        )

    return asyncio.run(run()), calls, delays


def test_graph_falls_back_to_next_model():
    """Test that a malformed response moves on to the next model."""
    final_state, calls, delays = _run_graph([MalformedResponse(), "ok"], ["model/a", "model/b"])

    assert calls == [("model/a", 1), ("model/b", 2)]
    assert delays == []
    assert final_state["decision"].step == RetryStep.SUCCESS
    assert final_state["result"] == "ok"
    assert final_state["retry"].current_model_index == 1
    assert [t["step"] for t in final_state["transitions"]] == ["SWITCH_MODEL"]


def test_graph_backs_off_on_last_model():
    outcomes = [RateLimited(), RateLimited(), RateLimited(), "ok"]
    final_state, calls, delays = _run_graph(outcomes, ["model/a", "model/b"], max_retries=2)

    assert [model for model, _ in calls] == ["model/a", "model/b", "model/b", "model/b"]
    assert delays == [4.0, 8.0]
    assert final_state["decision"].step == RetryStep.SUCCESS
    assert final_state["retry"].attempt_count == 4


def test_graph_stops_on_auth_error():
    final_state, calls, _ = _run_graph([AuthError()], ["model/a", "model/b"])

    assert len(calls) == 1
    assert final_state["decision"].step == RetryStep.FAIL
    assert isinstance(final_state["error"], AuthError)


def test_graph_bad_request_retries_same_model():
    final_state, calls, _ = _run_graph([BadRequest(), BadRequest()], ["model/a", "model/b"], max_retries=2)

    assert calls == [("model/a", 1), ("model/a", 2)]
    assert final_state["decision"].step == RetryStep.FAIL
    assert isinstance(final_state["error"], BadRequest)


def test_graph_cancelled_before_attempt():
    calls = []

    async def attempt(model, attempt_number):
        calls.append(model)
        return "ok"

    async def sleep(delay):
        pass

    async def run():
        app = create_retry_graph(attempt, sleep, is_cancelled=lambda: True)
        return await app.ainvoke(initial_state(["model/a"]), config={"recursion_limit": 10})

    final_state = asyncio.run(run())
    assert calls == []
    assert final_state["decision"].step == RetryStep.FAIL
    assert final_state["error"].kind == ErrorKind.CANCELLED
