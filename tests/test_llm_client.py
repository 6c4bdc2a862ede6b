import asyncio
import json
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import httpx
import pytest

from limsrag.core import llm_client as llm_client_module
from limsrag.core.generator import GenerationError, GeneratorUnavailableError
from limsrag.core.llm_client import LLMClient
from limsrag.core.pipeline import RAGPipeline
from limsrag.retrieval import NO_INFO_MESSAGE


@pytest.fixture
def no_backoff(monkeypatch):
    async def instant(_seconds):
        return None

    monkeypatch.setattr(llm_client_module.asyncio, "sleep", instant)


def make_client(handler, **kwargs):
    calls = []

    def recording(request):
        calls.append(request)
        return handler(request)

    client = LLMClient(
        endpoint="http://llm.test",
        api_key="secret",
        model="test-model",
        transport=httpx.MockTransport(recording),
        **kwargs
    )
    return client, calls


def run(client, coro):
    async def main():
        try:
            return await coro
        finally:
            await client.aclose()

    return asyncio.run(main())


def test_generate_posts_prompt():
    def handler(request):
        body = json.loads(request.content)
        assert request.url.path == "/v1/inference"
        assert request.headers["X-API-Key"] == "secret"
        assert body["model"] == "test-model"
        assert "User Question: What causes low signal?" in body["prompt"]
        assert "Dirty detector." in body["prompt"]
        return httpx.Response(200, json={"result": "Clean the detector.", "model": "test-model", "tokens_generated": 4})

    client, calls = make_client(handler)
    answer = run(client, client.generate("What causes low signal?", ["Dirty detector."]))

    assert answer == "Clean the detector."
    assert len(calls) == 1
    stats = client.get_client_stats()
    assert stats["requests_successful"] == 1
    assert stats["success_rate_percent"] == 100.0


def test_no_contexts_skips_backend():
    def handler(request):
        raise AssertionError("backend must not be called")

    client, calls = make_client(handler)

    assert run(client, client.generate("centrifuge repair", [])) == NO_INFO_MESSAGE
    assert calls == []


def test_overloaded_backend_is_unavailable_and_trips_breaker():
    client, calls = make_client(lambda request: httpx.Response(503, json={"error": "busy"}))

    async def twice():
        with pytest.raises(GeneratorUnavailableError):
            await client.generate("q", ["ctx"])
        # Cooldown: second call fails without touching the backend
        with pytest.raises(GeneratorUnavailableError):
            await client.generate("q", ["ctx"])

    run(client, twice())

    assert len(calls) == 1
    assert client.get_client_stats()["requests_failed"] == 1


def test_auth_failure_is_generation_error():
    client, calls = make_client(lambda request: httpx.Response(403, json={"detail": "nope"}))

    with pytest.raises(GenerationError):
        run(client, client.generate("q", ["ctx"]))
    assert len(calls) == 1


def test_missing_result_is_generation_error():
    client, _ = make_client(lambda request: httpx.Response(200, json={"model": "m"}))

    with pytest.raises(GenerationError):
        run(client, client.generate("q", ["ctx"]))


def test_connection_errors_are_retried(no_backoff):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client, calls = make_client(handler, max_retries=2)

    with pytest.raises(GeneratorUnavailableError):
        run(client, client.generate("q", ["ctx"]))
    assert len(calls) == 3


def test_retry_then_success(no_backoff):
    attempts = []

    def handler(request):
        attempts.append(1)
        if len(attempts) == 1:
            raise httpx.ReadTimeout("slow", request=request)
        return httpx.Response(200, json={"result": "ok"})

    client, calls = make_client(handler, max_retries=1)

    assert run(client, client.generate("q", ["ctx"])) == "ok"
    assert len(calls) == 2


def test_health_check_never_raises():
    def handler(request):
        raise httpx.ConnectError("down", request=request)

    client, _ = make_client(handler)
    health = run(client, client.check_health())

    assert health["available"] is False
    assert "down" in health["error"]


def test_pipeline_with_remote_generator(corpus):
    client, calls = make_client(lambda request: httpx.Response(200, json={"result": "Calibrate daily."}))
    pipeline = RAGPipeline(corpus=corpus, generator=client)

    assert run(client, pipeline.aanswer("How do I calibrate the pH meter?")) == "Calibrate daily."
    assert len(calls) == 1
    assert "SOP-001" in json.loads(calls[0].content)["prompt"]


class InferenceHandler(BaseHTTPRequestHandler):
    # HTTP/1.1 so httpx keeps the connection alive between calls
    protocol_version = "HTTP/1.1"

    def do_POST(self):
        self.rfile.read(int(self.headers.get("Content-Length", 0)))
        body = json.dumps({"result": "ok", "tokens_generated": 1}).encode()
        self.send_response(200)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, *args):
        pass


@pytest.fixture
def inference_server(monkeypatch):
    for var in ("HTTP_PROXY", "HTTPS_PROXY", "ALL_PROXY", "http_proxy", "https_proxy", "all_proxy"):
        monkeypatch.delenv(var, raising=False)

    server = ThreadingHTTPServer(("127.0.0.1", 0), InferenceHandler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{server.server_address[1]}"
    server.shutdown()
    server.server_close()


def test_blocking_answer_reuses_client_across_calls(inference_server, corpus):
    client = LLMClient(endpoint=inference_server, api_key="secret")
    pipeline = RAGPipeline(corpus=corpus, generator=client)

    assert pipeline.answer("pH meter") == "ok"
    assert pipeline.answer("pH meter") == "ok"
    assert client.get_client_stats()["requests_successful"] == 2
    assert pipeline.get_stats()["failures"] == 0


def slow_backend(seconds):
    async def handler(request):
        await asyncio.sleep(seconds)
        return httpx.Response(200, json={"result": "late"})

    return handler


def test_pipeline_timeout_counts_failure_and_trips_breaker(corpus):
    client, calls = make_client(slow_backend(0.3))
    pipeline = RAGPipeline(corpus=corpus, generator=client, generation_timeout=0.1)

    for _ in range(2):
        with pytest.raises(GeneratorUnavailableError):
            pipeline.answer("pH meter")

    # Second call is refused by the breaker without reaching the backend
    assert len(calls) == 1
    stats = client.get_client_stats()
    assert stats["requests_sent"] == 1
    assert stats["requests_failed"] == 1
    assert pipeline.get_stats()["failures"] == 2


def test_pipeline_timeout_bounds_client_budget(corpus):
    client, _ = make_client(lambda request: httpx.Response(200, json={"result": "ok"}))
    RAGPipeline(corpus=corpus, generator=client, generation_timeout=10)

    assert client.total_timeout == pytest.approx(8.0)


def test_cancelled_inference_is_recorded():
    client, calls = make_client(slow_backend(1.0))

    with pytest.raises(asyncio.TimeoutError):
        run(client, asyncio.wait_for(client.inference("prompt"), timeout=0.05))

    assert client.get_client_stats()["requests_failed"] == 1
    with pytest.raises(GeneratorUnavailableError):
        run(client, client.inference("prompt"))
    assert len(calls) == 1


def test_no_retry_when_backoff_exceeds_budget():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client, calls = make_client(handler, max_retries=2, total_timeout=0.5)

    with pytest.raises(GeneratorUnavailableError):
        run(client, client.generate("q", ["ctx"]))
    # First backoff is 1s, longer than the whole budget
    assert len(calls) == 1
