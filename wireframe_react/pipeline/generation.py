"""
Generation client: wireframe image + description -> sanitized React component.

Talks to any OpenAI-compatible chat-completions endpoint (OpenRouter by
default), whole-response or streamed, and runs every call through the retry
state machine in ``wireframe_react.orchestration``.
"""

import asyncio
import json
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage

from wireframe_react.config import GenerationSettings
from wireframe_react.errors import (
    AuthError,
    BadRequest,
    EmptyResult,
    GenerationCancelled,
    GenerationError,
    MalformedResponse,
    RateLimited,
    TransportError,
)
from wireframe_react.io.artifacts import ArtifactManager
from wireframe_react.models import GeneratedComponent, GenerationRequest, ModelCandidates, RetryStep
from wireframe_react.orchestration import create_retry_graph, initial_state, recursion_limit
from wireframe_react.pipeline.sanitizer import ResponseSanitizer
from wireframe_react.pipeline.stream import StreamDecoder
from wireframe_react.utils.llm_logger import get_logger


PLACEHOLDER_IMAGE_URL = "https://www.svgrepo.com/show/508699/landscape-placeholder.svg"

SYSTEM_PROMPT = f"""You are a professional React developer and UI/UX designer who turns wireframes into code.

Based on the provided wireframe image and the user's description, write a single React component
styled with Tailwind CSS that reproduces the page as closely as possible.

Rules:
1. Return ONLY code. No explanations, no prose, no markdown headings.
2. The main component MUST be a function named App.
3. Use React.useState (and other hooks through the React namespace); there is no module bundler.
4. Style exclusively with Tailwind CSS utility classes.
5. Include a header and a footer with options matching the wireframe, or the description if the wireframe has none.
6. For image placeholders use '{PLACEHOLDER_IMAGE_URL}'.
7. Do not use any third-party library.
8. Keep one consistent color scheme across the page and make the layout responsive."""

USER_PROMPT_TEMPLATE = """Convert this wireframe into a React component using Tailwind CSS. The component should be responsive and match the design as closely as possible. Here's the description of what I need: {description}"""

# LangChain message types -> chat-completions roles
WIRE_ROLES = {
    "system": "system",
    "human": "user",
    "ai": "assistant",
}

ChunkCallback = Callable[[str, str], None]


def message_to_wire(message: BaseMessage) -> Dict[str, Any]:
    """Convert a LangChain message to a chat-completions message dict."""
    return {"role": WIRE_ROLES.get(message.type, message.type), "content": message.content}


def looks_like_html(text: str) -> bool:
    head = text.lstrip()[:64].lower()
    return head.startswith("<!doctype html") or head.startswith("<html")


def _error_message(body: str) -> Optional[str]:
    """Pull ``error.message`` out of a JSON error body, if there is one."""
    try:
        data = json.loads(body)
    except (json.JSONDecodeError, TypeError):
        return None
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict):
            return error.get("message")
        if isinstance(error, str):
            return error
    return None


def _retry_after(headers: Optional[httpx.Headers]) -> Optional[float]:
    if not headers or "retry-after" not in headers:
        return None
    try:
        return float(headers["retry-after"])
    except ValueError:
        return None


def classify_http_error(
    status_code: int,
    body: str = "",
    model: Optional[str] = None,
    headers: Optional[httpx.Headers] = None,
) -> GenerationError:
    """
    Map a failed HTTP response to the error taxonomy.

    Args:
        status_code: HTTP status of the response.
        body: Response body text.
        model: Model the request was sent to.
        headers: Response headers (for ``Retry-After``).

    Returns:
        The GenerationError to raise.
    """
    message = _error_message(body)
    if status_code == 429:
        return RateLimited(message, model=model, retry_after=_retry_after(headers))
    if status_code == 400:
        return BadRequest(message, model=model, status_code=status_code)
    if status_code in (401, 402, 403):
        return AuthError(message, model=model, status_code=status_code)
    if looks_like_html(body):
        return MalformedResponse("Received an HTML page instead of JSON.", model=model, status_code=status_code)
    return TransportError(message or f"HTTP {status_code}", model=model, status_code=status_code)


def classify_error_event(error: Any, model: Optional[str] = None) -> GenerationError:
    """Map an ``{"error": ...}`` object found in a response body or stream."""
    if isinstance(error, dict):
        code = error.get("code")
        message = error.get("message")
        if isinstance(code, str) and code.isdigit():
            code = int(code)
        if isinstance(code, int):
            return classify_http_error(code, json.dumps({"error": {"message": message}}), model=model)
        return TransportError(message, model=model)
    return TransportError(str(error), model=model)


def _content_text(content: Any) -> Optional[str]:
    """Message content as text; list contents are joined text parts."""
    if content is None:
        return None
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and part.get("type") == "text":
                parts.append(part.get("text") or "")
        return "".join(parts)
    return None


def parse_completion(body: str, model: Optional[str] = None) -> Tuple[str, Optional[Dict[str, Any]]]:
    """
    Extract message content and usage from a non-streaming response body.

    An undecodable body that nonetheless contains component markers is
    salvaged as raw content.

    Returns:
        Tuple of (content, usage).
    """
    if looks_like_html(body):
        raise MalformedResponse("Received an HTML page instead of JSON.", model=model)

    try:
        data = json.loads(body)
    except json.JSONDecodeError:
        if ResponseSanitizer.has_component_markers(body):
            return body, None
        raise MalformedResponse("Response body is not valid JSON.", model=model)

    if not isinstance(data, dict):
        raise MalformedResponse("Response body is not a JSON object.", model=model)
    if data.get("error"):
        raise classify_error_event(data["error"], model=model)

    try:
        message = data["choices"][0]["message"]
    except (KeyError, IndexError, TypeError):
        raise MalformedResponse("Response has no choices[0].message.", model=model)

    content = _content_text(message.get("content") if isinstance(message, dict) else None)
    if content is None:
        raise MalformedResponse("Response message has no content.", model=model)
    return content, data.get("usage")


class GenerationClient:
    """Generates React component source from wireframe requests."""

    component = "generation"

    def __init__(
        self,
        settings: Optional[GenerationSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Optional[Callable[[float], Any]] = None,
    ):
        """
        Initialize the client.

        Args:
            settings: Endpoint/retry settings (read from the environment if omitted).
            transport: httpx transport override (tests use ``httpx.MockTransport``).
            sleep: Coroutine used for backoff delays (defaults to an abortable wait).
        """
        self.settings = settings or GenerationSettings.from_env()
        self._transport = transport
        self._sleep = sleep
        self.logger = get_logger()

    @property
    def endpoint(self) -> str:
        return self.settings.base_url.rstrip("/") + "/chat/completions"

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.settings.api_key}",
            "HTTP-Referer": self.settings.referer,
            "X-Title": self.settings.app_title,
        }

    def build_messages(self, request: GenerationRequest) -> List[BaseMessage]:
        """
        Create prompt messages for the model.

        Args:
            request: The generation request.

        Returns:
            System persona message and a multimodal user message.
        """
        content = [
            {
                "type": "text",
                "text": USER_PROMPT_TEMPLATE.format(description=request.description_text.strip()),
            },
            {
                "type": "image_url",
                "image_url": {"url": request.image_payload},
            },
        ]
        return [
            SystemMessage(content=SYSTEM_PROMPT),
            HumanMessage(content=content),
        ]

    def build_payload(self, request: GenerationRequest, model: str, stream: bool = False) -> Dict[str, Any]:
        """Wire body for the chat-completions endpoint."""
        return {
            "model": model,
            "messages": [message_to_wire(message) for message in self.build_messages(request)],
            "max_tokens": self.settings.max_tokens,
            "temperature": self.settings.temperature,
            "stream": stream,
        }

    def candidates(self, request: GenerationRequest) -> ModelCandidates:
        return ModelCandidates.for_selection(request.model_id, self.settings.fallback_models)

    async def _wait(self, delay: float, cancel_event: Optional[asyncio.Event]):
        if self._sleep is not None:
            await self._sleep(delay)
        elif cancel_event is None:
            await asyncio.sleep(delay)
        else:
            try:
                await asyncio.wait_for(cancel_event.wait(), timeout=delay)
            except asyncio.TimeoutError:
                pass

    async def _complete(self, client: httpx.AsyncClient, payload: Dict[str, Any], model: str):
        response = await client.post(self.endpoint, json=payload, headers=self.headers)
        if response.status_code >= 400:
            raise classify_http_error(response.status_code, response.text, model=model, headers=response.headers)
        return parse_completion(response.text, model=model)

    async def _stream(
        self,
        client: httpx.AsyncClient,
        payload: Dict[str, Any],
        model: str,
        on_chunk: Optional[ChunkCallback],
        cancel_event: Optional[asyncio.Event],
    ):
        async with client.stream("POST", self.endpoint, json=payload, headers=self.headers) as response:
            if response.status_code >= 400:
                body = (await response.aread()).decode("utf-8", errors="replace")
                raise classify_http_error(response.status_code, body, model=model, headers=response.headers)

            content_type = response.headers.get("content-type", "").lower()
            if "application/json" in content_type or "text/html" in content_type:
                # Endpoint ignored stream=true (or a proxy answered)
                body = (await response.aread()).decode("utf-8", errors="replace")
                return parse_completion(body, model=model)

            decoder = StreamDecoder(component=self.component)
            accumulated = ""
            usage = None
            async for event in decoder.decode(response.aiter_text()):
                if cancel_event is not None and cancel_event.is_set():
                    raise GenerationCancelled(model=model)
                if event.get("error"):
                    raise classify_error_event(event["error"], model=model)
                if event.get("usage"):
                    usage = event["usage"]

                choices = event.get("choices") or []
                if not choices or not isinstance(choices[0], dict):
                    continue
                delta = _content_text((choices[0].get("delta") or {}).get("content"))
                if delta:
                    accumulated += delta
                    if on_chunk is not None:
                        on_chunk(delta, accumulated)

            return accumulated, usage

    async def _attempt(
        self,
        client: httpx.AsyncClient,
        request: GenerationRequest,
        model: str,
        attempt: int,
        stream: bool,
        on_chunk: Optional[ChunkCallback],
        cancel_event: Optional[asyncio.Event],
    ) -> Dict[str, Any]:
        payload = self.build_payload(request, model, stream=stream)
        invocation_id = self.logger.log_invocation(self.component, model, request.request_id, attempt)
        self.logger.log_request(invocation_id, self.component, model, payload, request.request_id)

        start_time = time.time()
        try:
            if stream:
                content, usage = await self._stream(client, payload, model, on_chunk, cancel_event)
            else:
                content, usage = await self._complete(client, payload, model)
        except httpx.HTTPError as e:
            raise TransportError(str(e) or type(e).__name__, model=model)
        end_time = time.time()

        self.logger.log_response(
            invocation_id, self.component, model, content, start_time, end_time, usage, request.request_id
        )

        if not content.strip():
            raise EmptyResult(model=model)
        source = ResponseSanitizer.sanitize(content)
        if not source:
            raise EmptyResult(model=model)

        return {
            "content": content,
            "source": source,
            "css": ResponseSanitizer.extract_css(content),
            "usage": usage or {},
        }

    async def generate(
        self,
        request: GenerationRequest,
        *,
        stream: bool = False,
        on_chunk: Optional[ChunkCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> GeneratedComponent:
        """
        Generate component source for a request.

        Args:
            request: The generation request.
            stream: Read the response incrementally.
            on_chunk: Called with ``(delta, accumulated)`` for each streamed delta.
            cancel_event: Abort token; when set the call raises GenerationCancelled.

        Returns:
            GeneratedComponent with the sanitized source.

        Raises:
            GenerationError: The terminal failure once retries are exhausted or
                a non-retryable error occurred.
        """
        if not self.settings.api_key:
            raise AuthError("OPENROUTER_API_KEY environment variable not set")

        candidates = self.candidates(request)

        async with httpx.AsyncClient(transport=self._transport, timeout=self.settings.timeout) as client:

            async def attempt(model: str, attempt_number: int) -> Dict[str, Any]:
                return await self._attempt(
                    client, request, model, attempt_number, stream, on_chunk, cancel_event
                )

            app = create_retry_graph(
                attempt,
                sleep=lambda delay: self._wait(delay, cancel_event),
                max_retries=self.settings.max_retries,
                backoff_cap=self.settings.backoff_cap,
                is_cancelled=(lambda: cancel_event.is_set()) if cancel_event is not None else None,
                component=self.component,
                request_id=request.request_id,
            )
            final_state = await app.ainvoke(
                initial_state(candidates.models),
                config={"recursion_limit": recursion_limit(len(candidates), self.settings.max_retries)},
            )

        decision = final_state.get("decision")
        if decision is None or decision.step != RetryStep.SUCCESS:
            raise final_state.get("error") or GenerationError("Generation ended without a result.")

        result = final_state["result"]
        retry = final_state["retry"]
        return GeneratedComponent(
            request_id=request.request_id,
            source=result["source"],
            raw_content=result["content"],
            css_content=result["css"],
            model_name=candidates.models[retry.current_model_index],
            attempts=retry.attempt_count,
            prompt_tokens=result["usage"].get("prompt_tokens"),
            completion_tokens=result["usage"].get("completion_tokens"),
            generation_metadata={
                "requested_model": request.model_id,
                "temperature": self.settings.temperature,
                "max_tokens": self.settings.max_tokens,
                "stream": stream,
                "transitions": final_state.get("transitions", []),
            },
        )

    def generate_sync(self, request: GenerationRequest, **kwargs) -> GeneratedComponent:
        """Blocking wrapper around ``generate``."""
        return asyncio.run(self.generate(request, **kwargs))

    def generate_and_save(
        self,
        request: GenerationRequest,
        output_dir: Path = Path("outputs"),
        **kwargs,
    ) -> Tuple[GeneratedComponent, Path]:
        """
        Generate component source and save it to disk.

        Returns:
            Tuple of (GeneratedComponent, source_file_path).
        """
        generated = self.generate_sync(request, **kwargs)

        artifact_manager = ArtifactManager(output_dir)
        source_path = artifact_manager.save_source(request.request_id, generated.source)
        artifact_manager.save_generation_log(generated)

        return generated, source_path
