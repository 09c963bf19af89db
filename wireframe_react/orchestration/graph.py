"""
LangGraph construction for the generation retry state machine.

    attempt --SUCCESS/FAIL/EXHAUSTED--> END
    attempt --SWITCH_MODEL--> switch_model --> attempt
    attempt --BACKOFF--> backoff --> attempt
    attempt --RETRY--> attempt
"""

from typing import Any, Awaitable, Callable, Dict, Literal, Optional

from langgraph.graph import END, StateGraph

from wireframe_react.errors import GenerationCancelled, GenerationError
from wireframe_react.models import RetryDecision, RetryStep
from wireframe_react.orchestration.policy import attempt_budget, plan_retry, record_attempt, switch_model
from wireframe_react.orchestration.state import RetryGraphState, current_model
from wireframe_react.utils.llm_logger import get_logger


AttemptFn = Callable[[str, int], Awaitable[Any]]
SleepFn = Callable[[float], Awaitable[None]]


def route_attempt(state: RetryGraphState) -> Literal["switch_model", "backoff", "attempt", END]:
    """
    Route function for the attempt node's conditional edges.

    Terminal decisions (SUCCESS, FAIL, EXHAUSTED) end the graph.
    """
    decision = state.get("decision")
    step = decision.step if decision else RetryStep.FAIL

    if step == RetryStep.SWITCH_MODEL:
        return "switch_model"
    elif step == RetryStep.BACKOFF:
        return "backoff"
    elif step == RetryStep.RETRY:
        return "attempt"
    else:
        return END


def route_backoff(state: RetryGraphState) -> Literal["attempt", END]:
    """Continue after a backoff unless it was cancelled."""
    decision = state.get("decision")
    if decision and decision.step == RetryStep.FAIL:
        return END
    return "attempt"


def create_retry_graph(
    attempt: AttemptFn,
    sleep: SleepFn,
    max_retries: int = 2,
    backoff_cap: float = 30.0,
    is_cancelled: Optional[Callable[[], bool]] = None,
    component: str = "generation",
    request_id: Optional[str] = None,
):
    """
    Create and compile the retry LangGraph for one request.

    Args:
        attempt: Coroutine ``attempt(model, attempt_number)`` performing one call.
            It raises GenerationError on failure.
        sleep: Coroutine used to wait out backoff delays.
        max_retries: Attempts allowed beyond one per model.
        backoff_cap: Upper bound for backoff delays, in seconds.
        is_cancelled: Abort-token check run before every attempt and after backoff.
        component: Component name for logging.
        request_id: Request identifier for log files.

    Returns:
        Compiled LangGraph application
    """
    logger = get_logger()
    cancelled = is_cancelled or (lambda: False)

    async def attempt_node(state: RetryGraphState) -> Dict[str, Any]:
        retry = state["retry"]
        model = current_model(state)

        result = None
        error: Optional[GenerationError] = None
        if cancelled():
            error = GenerationCancelled(model=model)
        else:
            try:
                result = await attempt(model, retry.attempt_count + 1)
            except GenerationError as e:
                error = e
                logger.log_error(component, model, e, request_id=request_id)

        error_kind = error.kind if error else None
        retry = record_attempt(retry, error_kind)
        decision = plan_retry(
            retry,
            error_kind,
            model_count=len(state["models"]),
            max_retries=max_retries,
            backoff_cap=backoff_cap,
        )

        transitions = list(state.get("transitions", []))
        if error is not None:
            to_model = model
            if decision.step == RetryStep.SWITCH_MODEL:
                to_model = state["models"][retry.current_model_index + 1]
            logger.log_transition(
                component,
                decision.step.value,
                from_model=model,
                to_model=to_model,
                attempt=retry.attempt_count,
                delay=decision.delay,
                reason=error_kind.value,
                request_id=request_id,
            )
            transitions.append({
                "step": decision.step.value,
                "model": model,
                "attempt": retry.attempt_count,
                "error": error_kind.value,
                "delay": decision.delay,
            })

        return {
            "retry": retry,
            "decision": decision,
            "result": result,
            "error": error,
            "transitions": transitions,
        }

    def switch_model_node(state: RetryGraphState) -> Dict[str, Any]:
        return {"retry": switch_model(state["retry"])}

    async def backoff_node(state: RetryGraphState) -> Dict[str, Any]:
        decision = state["decision"]
        await sleep(decision.delay)
        if cancelled():
            return {
                "decision": RetryDecision(step=RetryStep.FAIL),
                "error": GenerationCancelled(model=current_model(state)),
            }
        return {}

    graph = StateGraph(RetryGraphState)

    graph.add_node("attempt", attempt_node)
    graph.add_node("switch_model", switch_model_node)
    graph.add_node("backoff", backoff_node)

    graph.set_entry_point("attempt")

    graph.add_conditional_edges(
        "attempt",
        route_attempt,
        {
            "switch_model": "switch_model",
            "backoff": "backoff",
            "attempt": "attempt",
            END: END,
        }
    )
    graph.add_edge("switch_model", "attempt")
    graph.add_conditional_edges(
        "backoff",
        route_backoff,
        {
            "attempt": "attempt",
            END: END,
        }
    )

    return graph.compile()


def recursion_limit(model_count: int, max_retries: int) -> int:
    """Super-step limit that comfortably covers the attempt budget."""
    return 2 * attempt_budget(model_count, max_retries) + 5
