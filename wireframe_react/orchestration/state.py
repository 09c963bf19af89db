"""
State management for the retry state machine.

Defines RetryGraphState as a TypedDict carried through the LangGraph nodes of
one generation request.
"""

from typing import Any, Dict, List, Optional, TypedDict

from wireframe_react.errors import GenerationError
from wireframe_react.models import RetryDecision, RetryState


class RetryGraphState(TypedDict, total=False):
    """
    State for one generation request's retry loop.

    All fields are optional (total=False) to allow incremental state updates.
    """

    # Candidate models, user selection first
    models: List[str]

    # Bookkeeping and the policy's latest decision
    retry: RetryState
    decision: Optional[RetryDecision]

    # Outcome of the latest attempt
    result: Optional[Any]
    error: Optional[GenerationError]

    # One entry per transition, for diagnostics
    transitions: List[Dict[str, Any]]


def initial_state(models: List[str]) -> RetryGraphState:
    """Fresh state for a new request."""
    return {
        "models": list(models),
        "retry": RetryState(),
        "decision": None,
        "result": None,
        "error": None,
        "transitions": [],
    }


def current_model(state: RetryGraphState) -> str:
    return state["models"][state["retry"].current_model_index]
