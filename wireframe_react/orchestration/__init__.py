"""
Retry and model-fallback state machine for generation requests.

The policy is a pure decision function; the LangGraph graph executes it with
one node per transition (attempt, switch_model, backoff).
"""

from wireframe_react.orchestration.graph import create_retry_graph, recursion_limit
from wireframe_react.orchestration.policy import attempt_budget, backoff_delay, plan_retry
from wireframe_react.orchestration.state import RetryGraphState, initial_state

__all__ = [
    "create_retry_graph",
    "recursion_limit",
    "attempt_budget",
    "backoff_delay",
    "plan_retry",
    "RetryGraphState",
    "initial_state",
]
