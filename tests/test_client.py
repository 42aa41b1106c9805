import json
import time

import httpx
import pytest

from http_helpers import RecordingHandler, generate_stream
from ollama_compressor.client import OllamaClient, call_with_retries
from ollama_compressor.errors import (
    EndpointStatusError,
    ResponseParseError,
    TransportError,
)
from ollama_compressor.models import EndpointMode, RunConfig
from text_chunker.byte_chunker import Chunk


def test_retries_stop_at_first_success():
    calls = []
    sleeps = []

    def flaky(text):
        calls.append(text)
        if len(calls) < 2:
            raise ResponseParseError("bad line")
        return text.upper()

    result, error, attempts = call_with_retries(
        flaky, "abc", max_retries=3, retry_delay=2.0, sleep=sleeps.append
    )

    assert (result, error, attempts) == ("ABC", None, 2)
    assert sleeps == [2.0]


def test_retries_exhausted_returns_last_error():
    errors = [TransportError("first"), EndpointStatusError(503, "busy")]
    sleeps = []

    def failing(text):
        raise errors.pop(0)

    result, error, attempts = call_with_retries(
        failing, "abc", max_retries=2, retry_delay=0.5, sleep=sleeps.append
    )

    assert result is None
    assert isinstance(error, EndpointStatusError)
    assert attempts == 2
    # no delay before the first attempt
    assert sleeps == [0.5]


def test_unexpected_exceptions_are_not_retried():
    calls = []

    def buggy(text):
        calls.append(text)
        raise KeyError("bug")

    with pytest.raises(KeyError):
        call_with_retries(buggy, "abc", max_retries=3, retry_delay=0, sleep=lambda s: None)
    assert len(calls) == 1


def test_generate_request_and_stream(make_client):
    handler = RecordingHandler(
        lambda request: httpx.Response(200, content=generate_stream("short", "er"))
    )
    client = make_client(handler, model="tiny", base_url="http://ollama:11434/api/")

    result = client.process_chunk(Chunk(index=4, content=b"a long text"))

    assert result.ok
    assert result.index == 4
    assert result.content == "shorter"
    assert result.attempts == 1
    request = handler.requests[0]
    assert request.method == "POST"
    assert str(request.url) == "http://ollama:11434/api/generate"
    assert request.headers["content-type"] == "application/json"
    assert json.loads(request.content)["model"] == "tiny"
    assert handler.prompts()[0].endswith(" a long text")


def test_chat_request(make_client):
    handler = RecordingHandler(
        lambda request: httpx.Response(
            200, json={"message": {"role": "assistant", "content": "hi"}}
        )
    )
    client = make_client(handler, mode=EndpointMode.CHAT)

    result = client.process_chunk(Chunk(index=0, content=b"hello there"))

    assert result.content == "hi"
    assert handler.requests[0].url.path.endswith("/chat")
    body = json.loads(handler.requests[0].content)
    assert body["messages"][0]["role"] == "user"


def test_non_200_falls_back_to_original_after_all_attempts(make_client):
    handler = RecordingHandler(
        lambda request: httpx.Response(500, text="model is loading")
    )
    client = make_client(handler, max_retries=3)
    sleeps = []

    result = client.process_chunk(Chunk(index=1, content=b"keep me"), sleep=sleeps.append)

    assert not result.ok
    assert result.content == "keep me"
    assert result.attempts == 3
    assert len(handler.requests) == 3
    assert len(sleeps) == 2
    assert isinstance(result.error, EndpointStatusError)
    assert result.error.status_code == 500
    assert result.error.body == "model is loading"


def test_transport_failure_is_wrapped(make_client):
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = make_client(RecordingHandler(refuse), max_retries=1)

    with pytest.raises(TransportError):
        client.request("text")


def test_malformed_stream_is_retried(make_client):
    bodies = [b"{broken\n", generate_stream("ok")]
    handler = RecordingHandler(lambda request: httpx.Response(200, content=bodies.pop(0)))
    client = make_client(handler, max_retries=3)

    result = client.process_chunk(Chunk(index=0, content=b"x"))

    assert result.content == "ok"
    assert result.attempts == 2


def test_owned_http_client_is_closed():
    client = OllamaClient(RunConfig())
    with client:
        pass
    assert client._http.is_closed


def test_borrowed_http_client_is_left_open(make_client):
    client = make_client(RecordingHandler(lambda r: httpx.Response(200)))
    client.close()
    assert not client._http.is_closed


class StepClock:
    """Fake monotonic clock that advances ``step`` seconds per reading."""

    def __init__(self, step):
        self.now = 0.0
        self.step = step

    def __call__(self):
        value = self.now
        self.now += self.step
        return value


def _endless_stream():
    while True:
        yield b'{"response":"more","done":false}\n'


def test_trickling_stream_is_cut_off_at_timeout(make_client):
    handler = RecordingHandler(
        lambda request: httpx.Response(200, content=_endless_stream())
    )
    client = make_client(handler, clock=StepClock(0.4), timeout=1.0, max_retries=1)

    with pytest.raises(TransportError, match="timeout"):
        client.request("text")


def test_timed_out_chunk_falls_back_to_original(make_client):
    handler = RecordingHandler(
        lambda request: httpx.Response(200, content=_endless_stream())
    )
    client = make_client(handler, clock=StepClock(0.4), timeout=1.0, max_retries=2)

    result = client.process_chunk(Chunk(index=3, content=b"slow one"))

    assert result.content == "slow one"
    assert isinstance(result.error, TransportError)
    assert result.attempts == 2
    assert len(handler.requests) == 2


def test_chat_body_is_bounded_by_timeout(make_client):
    def slow_body():
        yield b'{"message":'
        yield b'{"role":"assistant",'
        yield b'"content":"late"}}'

    handler = RecordingHandler(lambda request: httpx.Response(200, content=slow_body()))
    client = make_client(
        handler, clock=StepClock(0.5), mode=EndpointMode.CHAT, timeout=1.0
    )

    with pytest.raises(TransportError):
        client.request("text")


def test_stream_within_timeout_completes(make_client):
    handler = RecordingHandler(
        lambda request: httpx.Response(200, content=generate_stream("a", "b"))
    )
    client = make_client(handler, clock=StepClock(0.1), timeout=1.0)

    assert client.request("text") == "ab"


def test_wall_clock_deadline_with_slow_server(make_client):
    def trickle():
        for _ in range(20):
            time.sleep(0.1)
            yield b'{"response":"x","done":false}\n'

    handler = RecordingHandler(lambda request: httpx.Response(200, content=trickle()))
    client = make_client(handler, timeout=0.3, max_retries=1)

    started = time.monotonic()
    result = client.process_chunk(Chunk(index=0, content=b"orig"))
    elapsed = time.monotonic() - started

    assert not result.ok
    assert isinstance(result.error, TransportError)
    assert result.content == "orig"
    # the full stream would take about 2s
    assert elapsed < 1.5
