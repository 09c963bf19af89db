"""
Tests for the generation client, against a mocked chat-completions endpoint.
"""

import asyncio
import json

import httpx
import pytest

from wireframe_react.errors import (
    AuthError,
    BadRequest,
    EmptyResult,
    GenerationCancelled,
    MalformedResponse,
    RateLimited,
    TransportError,
)
from wireframe_react.models import GenerationRequest
from wireframe_react.pipeline.generation import (
    GenerationClient,
    SYSTEM_PROMPT,
    classify_http_error,
    parse_completion,
)


APP_RESPONSE = "```jsx\nfunction App() {\n  return <div>Hi</div>;\n}\n```"


def _completion(content, usage=None):
    body = {"choices": [{"message": {"role": "assistant", "content": content}}]}
    if usage:
        body["usage"] = usage
    return body


def _sse(*events):
    lines = []
    for event in events:
        data = event if isinstance(event, str) else json.dumps(event)
        lines.append(f"data: {data}\n\n")
    return "".join(lines).encode("utf-8")


class FakeEndpoint:
    """Scripted chat-completions endpoint recording every request."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses[min(len(self.requests), len(self.responses)) - 1]
        if isinstance(response, Exception):
            raise response
        # Fresh response per request; scripted ones may be served repeatedly
        return httpx.Response(response.status_code, headers=response.headers, content=response.content)

    @property
    def models(self):
        return [json.loads(request.content)["model"] for request in self.requests]


@pytest.fixture
def request_():
    return GenerationRequest(
        model_id="model/a",
        image_payload="data:image/png;base64,AAAA",
        description_text="A pricing page with three plans",
        request_id="test-request",
    )


def _client(settings, endpoint, delays=None):
    async def fake_sleep(delay):
        if delays is not None:
            delays.append(delay)

    return GenerationClient(settings, transport=httpx.MockTransport(endpoint), sleep=fake_sleep)


def test_generate_success(settings, request_):
    """Test a successful whole-response generation."""
    endpoint = FakeEndpoint(
        httpx.Response(200, json=_completion(APP_RESPONSE, {"prompt_tokens": 120, "completion_tokens": 40}))
    )

    generated = _client(settings, endpoint).generate_sync(request_)

    assert generated.source == "function App() {\n  return <div>Hi</div>;\n}"
    assert generated.raw_content == APP_RESPONSE
    assert generated.model_name == "model/a"
    assert generated.attempts == 1
    assert generated.prompt_tokens == 120
    assert generated.completion_tokens == 40
    assert generated.request_id == "test-request"
    assert len(endpoint.requests) == 1


def test_request_payload(settings, request_):
    """Test the wire format of the request."""
    endpoint = FakeEndpoint(httpx.Response(200, json=_completion(APP_RESPONSE)))
    _client(settings, endpoint).generate_sync(request_)

    request = endpoint.requests[0]
    assert str(request.url) == "https://llm.test/api/v1/chat/completions"
    assert request.headers["Authorization"] == "Bearer test-key"
    assert request.headers["X-Title"] == settings.app_title

    payload = json.loads(request.content)
    assert payload["model"] == "model/a"
    assert payload["stream"] is False
    assert payload["max_tokens"] == settings.max_tokens
    assert payload["temperature"] == settings.temperature

    system, user = payload["messages"]
    assert system == {"role": "system", "content": SYSTEM_PROMPT}
    assert user["role"] == "user"
    text_part, image_part = user["content"]
    assert text_part["type"] == "text"
    assert "A pricing page with three plans" in text_part["text"]
    assert image_part == {"type": "image_url", "image_url": {"url": "data:image/png;base64,AAAA"}}


def test_rate_limited_on_every_model(settings, request_):
    """Test that 429 on all three models makes three requests, then fails."""
    endpoint = FakeEndpoint(httpx.Response(429, json={"error": {"message": "Too many requests"}}))

    with pytest.raises(RateLimited) as exc_info:
        _client(settings, endpoint).generate_sync(request_)

    assert len(endpoint.requests) == 3
    assert endpoint.models == ["model/a", "model/b", "model/c"]
    assert exc_info.value.message == "Too many requests"


def test_backoff_on_last_model(settings, request_):
    """Test backoff delays once every model has been tried."""
    settings.max_retries = 2
    delays = []
    endpoint = FakeEndpoint(httpx.Response(429))

    with pytest.raises(RateLimited):
        _client(settings, endpoint, delays).generate_sync(request_)

    assert len(endpoint.requests) == 5
    assert endpoint.models == ["model/a", "model/b", "model/c", "model/c", "model/c"]
    assert delays == [8.0, 16.0]


def test_auth_error_is_not_retried(settings, request_):
    endpoint = FakeEndpoint(httpx.Response(401, json={"error": {"message": "No auth credentials found"}}))

    with pytest.raises(AuthError):
        _client(settings, endpoint).generate_sync(request_)

    assert len(endpoint.requests) == 1


def test_bad_request_is_retried_once(settings, request_):
    """Test that a 400 is retried once on the same model."""
    endpoint = FakeEndpoint(httpx.Response(400, json={"error": {"message": "Invalid image"}}))

    with pytest.raises(BadRequest):
        _client(settings, endpoint).generate_sync(request_)

    assert endpoint.models == ["model/a", "model/a"]


def test_html_response_switches_model(settings, request_):
    """Test that an HTML page instead of JSON falls back to the next model."""
    endpoint = FakeEndpoint(
        httpx.Response(200, text="<!DOCTYPE html><html><body>Gateway</body></html>"),
        httpx.Response(200, json=_completion(APP_RESPONSE)),
    )

    generated = _client(settings, endpoint).generate_sync(request_)

    assert endpoint.models == ["model/a", "model/b"]
    assert generated.model_name == "model/b"
    assert generated.attempts == 2
    assert generated.generation_metadata["transitions"][0]["error"] == "malformed_response"


def test_transport_error_switches_model(settings, request_):
    endpoint = FakeEndpoint(
        httpx.ConnectError("connection refused"),
        httpx.Response(200, json=_completion(APP_RESPONSE)),
    )

    generated = _client(settings, endpoint).generate_sync(request_)

    assert generated.model_name == "model/b"


def test_unreadable_body_with_code_is_salvaged(settings, request_):
    endpoint = FakeEndpoint(httpx.Response(200, text="function App() { return <div/>; }"))

    generated = _client(settings, endpoint).generate_sync(request_)

    assert generated.source == "function App() { return <div/>; }"
    assert generated.prompt_tokens is None


def test_empty_content_is_rejected(settings, request_):
    """Test that an empty response fails without trying other models."""
    endpoint = FakeEndpoint(httpx.Response(200, json=_completion("")))

    with pytest.raises(EmptyResult):
        _client(settings, endpoint).generate_sync(request_)

    assert len(endpoint.requests) == 1


def test_missing_api_key(settings, request_):
    settings.api_key = None
    endpoint = FakeEndpoint(httpx.Response(200, json=_completion(APP_RESPONSE)))

    with pytest.raises(AuthError):
        _client(settings, endpoint).generate_sync(request_)

    assert endpoint.requests == []


def test_streaming_reports_chunks(settings, request_):
    """Test streamed deltas reach the callback with the accumulated text."""
    body = _sse(
        {"choices": [{"delta": {"role": "assistant", "content": "```jsx\nfunction App() {"}}]},
        {"choices": [{"delta": {"content": " return <div>Hi</div>; }"}}]},
        {"choices": [{"delta": {"content": "\n```"}}]},
        {"choices": [], "usage": {"prompt_tokens": 10, "completion_tokens": 5}},
        "[DONE]",
    )
    endpoint = FakeEndpoint(httpx.Response(200, headers={"content-type": "text/event-stream"}, content=body))
    chunks = []

    generated = _client(settings, endpoint).generate_sync(
        request_, stream=True, on_chunk=lambda delta, accumulated: chunks.append((delta, accumulated))
    )

    assert [delta for delta, _ in chunks] == ["```jsx\nfunction App() {", " return <div>Hi</div>; }", "\n```"]
    assert chunks[-1][1] == "```jsx\nfunction App() { return <div>Hi</div>; }\n```"
    assert generated.source == "function App() { return <div>Hi</div>; }"
    assert generated.completion_tokens == 5
    assert json.loads(endpoint.requests[0].content)["stream"] is True


def test_streaming_error_event_switches_model(settings, request_):
    endpoint = FakeEndpoint(
        httpx.Response(
            200,
            headers={"content-type": "text/event-stream"},
            content=_sse({"error": {"code": 429, "message": "Rate limit exceeded"}}),
        ),
        httpx.Response(
            200,
            headers={"content-type": "text/event-stream"},
            content=_sse({"choices": [{"delta": {"content": APP_RESPONSE}}]}, "[DONE]"),
        ),
    )

    generated = _client(settings, endpoint).generate_sync(request_, stream=True)

    assert endpoint.models == ["model/a", "model/b"]
    assert generated.source == "function App() {\n  return <div>Hi</div>;\n}"


def test_streaming_request_answered_with_json(settings, request_):
    endpoint = FakeEndpoint(httpx.Response(200, json=_completion(APP_RESPONSE)))

    generated = _client(settings, endpoint).generate_sync(request_, stream=True)

    assert generated.source == "function App() {\n  return <div>Hi</div>;\n}"


def test_cancelled_before_first_attempt(settings, request_):
    """Test that a set cancel event stops the call without a request."""
    endpoint = FakeEndpoint(httpx.Response(200, json=_completion(APP_RESPONSE)))

    async def run():
        cancel_event = asyncio.Event()
        cancel_event.set()
        return await _client(settings, endpoint).generate(request_, cancel_event=cancel_event)

    with pytest.raises(GenerationCancelled):
        asyncio.run(run())

    assert endpoint.requests == []


def test_cancelled_between_stream_events(settings, request_):
    """Test that setting the cancel event mid-stream stops reading and retrying."""
    body = _sse(
        {"choices": [{"delta": {"content": "```jsx\nfunction App() {"}}]},
        {"choices": [{"delta": {"content": " return <div>Hi</div>; }"}}]},
        {"choices": [{"delta": {"content": "\n```"}}]},
        "[DONE]",
    )
    endpoint = FakeEndpoint(httpx.Response(200, headers={"content-type": "text/event-stream"}, content=body))
    chunks = []

    async def run():
        cancel_event = asyncio.Event()

        def on_chunk(delta, accumulated):
            chunks.append(delta)
            cancel_event.set()

        return await _client(settings, endpoint).generate(
            request_, stream=True, on_chunk=on_chunk, cancel_event=cancel_event
        )

    with pytest.raises(GenerationCancelled):
        asyncio.run(run())

    assert chunks == ["```jsx\nfunction App() {"]
    assert len(endpoint.requests) == 1


def test_cancelled_during_backoff(settings, request_):
    """Test that a cancel during a backoff wait prevents the retry."""
    settings.max_retries = 2
    endpoint = FakeEndpoint(httpx.Response(429))
    delays = []

    async def run():
        cancel_event = asyncio.Event()

        async def sleep(delay):
            delays.append(delay)
            cancel_event.set()

        client = GenerationClient(settings, transport=httpx.MockTransport(endpoint), sleep=sleep)
        return await client.generate(request_, cancel_event=cancel_event)

    with pytest.raises(GenerationCancelled):
        asyncio.run(run())

    assert delays == [8.0]
    assert endpoint.models == ["model/a", "model/b", "model/c"]


def test_backoff_wait_ends_when_cancelled(settings, request_):
    """Test that the default backoff wait returns as soon as the event is set."""
    settings.max_retries = 2
    endpoint = FakeEndpoint(httpx.Response(429))

    async def run():
        cancel_event = asyncio.Event()
        asyncio.get_running_loop().call_later(0.05, cancel_event.set)
        started = asyncio.get_running_loop().time()
        with pytest.raises(GenerationCancelled):
            await GenerationClient(settings, transport=httpx.MockTransport(endpoint)).generate(
                request_, cancel_event=cancel_event
            )
        return asyncio.get_running_loop().time() - started

    elapsed = asyncio.run(run())

    assert elapsed < 5
    assert len(endpoint.requests) == 3


def test_generate_and_save(settings, request_, tmp_path):
    endpoint = FakeEndpoint(httpx.Response(200, json=_completion(APP_RESPONSE)))

    generated, source_path = _client(settings, endpoint).generate_and_save(request_, output_dir=tmp_path)

    assert source_path == tmp_path / "test-request" / "App.jsx"
    assert source_path.read_text(encoding="utf-8") == generated.source
    log = json.loads((tmp_path / "test-request" / "generation_log.json").read_text(encoding="utf-8"))
    assert log["model"] == "model/a"
    assert log["attempts"] == 1


def test_classify_http_error():
    assert isinstance(classify_http_error(429), RateLimited)
    assert isinstance(classify_http_error(400), BadRequest)
    assert isinstance(classify_http_error(402), AuthError)
    assert isinstance(classify_http_error(403), AuthError)
    assert isinstance(classify_http_error(502, "<html><body>Bad gateway</body></html>"), MalformedResponse)
    assert isinstance(classify_http_error(500, '{"error": {"message": "boom"}}'), TransportError)

    limited = classify_http_error(429, headers=httpx.Headers({"retry-after": "12"}))
    assert limited.retry_after == 12.0


def test_parse_completion_errors():
    with pytest.raises(MalformedResponse):
        parse_completion("not json and not code")
    with pytest.raises(MalformedResponse):
        parse_completion('{"choices": []}')
    with pytest.raises(RateLimited):
        parse_completion('{"error": {"code": 429, "message": "slow down"}}')


def test_parse_completion_list_content():
    body = json.dumps(_completion([{"type": "text", "text": "function App() "}, {"type": "text", "text": "{}"}]))
    content, usage = parse_completion(body)
    assert content == "function App() {}"
    assert usage is None
