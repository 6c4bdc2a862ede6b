# limsrag/core/llm_client.py

"""
LLM Backend Client
==================

Sends assembled prompts to a remote inference backend.
Retries transient failures within a time budget and stops calling
a backend that failed recently.

File: limsrag/core/llm_client.py
"""

import os
import time
import logging
import asyncio
from typing import Optional, Dict, Any, Sequence
import httpx
from dotenv import load_dotenv

from limsrag.core.generator import GeneratorError, GeneratorUnavailableError, GenerationError
from limsrag.retrieval.assembler import NO_INFO_MESSAGE, assemble_prompt, get_assembly_stats

load_dotenv()
logger = logging.getLogger('LimsRAGLLM')

# Share of the caller's deadline the client may spend, the rest is
# left for the failure path to finish before the caller gives up
DEADLINE_HEADROOM = 0.8


class LLMClient:
    """
    Generator backed by a remote inference server.

    The httpx client and the concurrency semaphore belong to one event
    loop; they are rebuilt when the client is used from a new loop.
    """

    name = "remote"

    def __init__(
        self,
        endpoint: Optional[str] = None,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout: float = 60.0,
        max_retries: int = 2,
        max_tokens: int = 512,
        temperature: float = 0.2,
        max_concurrency: int = 2,
        total_timeout: Optional[float] = None,
        no_info_message: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize LLM client.

        Args:
            endpoint: Backend URL (e.g., http://127.0.0.1:9000)
            api_key: API key sent as X-API-Key
            model: Model name requested from the backend
            timeout: Read timeout of one request, in seconds
            max_retries: Number of retry attempts
            max_tokens: Maximum tokens to generate
            temperature: Sampling temperature
            max_concurrency: Requests allowed in flight at once
            total_timeout: Budget for all attempts and backoff, None for unlimited
            no_info_message: Answer used when nothing was retrieved
            transport: Optional httpx transport (tests)
        """
        self.endpoint = (endpoint or os.getenv(
            "LLM_ENDPOINT",
            "http://127.0.0.1:9000"
        )).rstrip("/")
        self.api_key = api_key or os.getenv("LLM_API_KEY", "")
        self.model = model or os.getenv("LLM_MODEL", "qwen_7b")
        self.timeout = timeout
        self.max_retries = max_retries
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.max_concurrency = max_concurrency
        self.total_timeout = total_timeout
        self.no_info_message = (
            no_info_message or os.getenv("LIMSRAG_NO_INFO_MESSAGE") or NO_INFO_MESSAGE
        )
        self._transport = transport

        # Created on first use inside a running loop
        self._client: Optional[httpx.AsyncClient] = None
        self._semaphore: Optional[asyncio.Semaphore] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

        # Statistics
        self.requests_sent = 0
        self.requests_successful = 0
        self.requests_failed = 0
        self.total_inference_time = 0.0

        # Circuit breaker
        self._last_failure_time = 0.0
        self._cooldown_seconds = 10

        logger.info(f"LLM client initialized: {self.endpoint} ({self.model})")

    def fit_deadline(self, seconds: float) -> None:
        """
        Keep retries inside a caller's deadline.

        Args:
            seconds: Time the caller waits for generate()
        """
        self.total_timeout = seconds * DEADLINE_HEADROOM

    def _bind_loop(self) -> httpx.AsyncClient:
        loop = asyncio.get_running_loop()
        if self._client is None or self._loop is not loop:
            # Connections of a previous loop cannot be reused once it closed
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(
                    connect=5.0,
                    read=self.timeout,
                    write=5.0,
                    pool=5.0,
                ),
                transport=self._transport
            )
            self._semaphore = asyncio.Semaphore(self.max_concurrency)
            self._loop = loop
        return self._client

    async def check_health(self) -> Dict[str, Any]:
        """
        Check backend health.

        Returns:
            Health status dict, never raises
        """
        try:
            response = await self._bind_loop().get(
                f"{self.endpoint}/health",
                timeout=5.0
            )
            response.raise_for_status()
            return response.json()
        except Exception as e:
            logger.warning(f"LLM health check failed: {e}")
            return {
                "status": "unavailable",
                "available": False,
                "error": str(e)
            }

    async def generate(self, query: str, contexts: Sequence[str]) -> str:
        """
        Answer the query from the retrieved contexts.

        Nothing is sent to the backend when there is no context.

        Raises:
            GeneratorUnavailableError: If the backend is unavailable
            GenerationError: If inference fails
        """
        if not contexts:
            return self.no_info_message

        prompt = assemble_prompt(query, contexts)
        stats = get_assembly_stats(query, contexts, prompt)
        logger.info(
            f"Prompt assembled: {stats['contexts_used']} contexts, "
            f"{stats['prompt_chars']} chars"
        )

        result = await self.inference(prompt)
        return result["result"]

    async def _post_inference(self, payload: Dict[str, Any], limit: Optional[float]) -> Dict[str, Any]:
        """One request; maps backend answers onto generator errors"""
        request = self._bind_loop().post(
            f"{self.endpoint}/v1/inference",
            json=payload,
            headers={"X-API-Key": self.api_key, "Content-Type": "application/json"}
        )
        response = await (asyncio.wait_for(request, timeout=limit) if limit else request)

        if response.status_code == 503:
            raise GeneratorUnavailableError("LLM backend overloaded")
        if response.status_code in (401, 403):
            raise GenerationError("Authentication failed - check LLM_API_KEY")
        if response.status_code != 200:
            raise GenerationError(
                f"LLM backend returned status {response.status_code}: {response.text}"
            )

        result = response.json()
        if "result" not in result:
            raise GenerationError("LLM backend response has no 'result'")
        return result

    def _record_failure(self, error: BaseException) -> None:
        self.requests_failed += 1
        self._last_failure_time = time.time()
        logger.error(f"LLM inference failed: {error!r}")

    async def inference(self, prompt: str) -> Dict[str, Any]:
        """
        Run inference on the backend.

        Args:
            prompt: Input prompt

        Returns:
            Inference result dict

        Raises:
            GeneratorUnavailableError: If the backend is unavailable, slow or in cooldown
            GenerationError: If inference fails
        """
        since_failure = time.time() - self._last_failure_time
        if since_failure < self._cooldown_seconds:
            raise GeneratorUnavailableError(
                f"LLM backend in cooldown (failed recently, retry in "
                f"{self._cooldown_seconds - since_failure:.0f}s)"
            )

        self.requests_sent += 1
        start_time = time.time()
        deadline = start_time + self.total_timeout if self.total_timeout else None

        payload = {
            "prompt": prompt,
            "model": self.model,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "stop": []
        }

        self._bind_loop()
        try:
            async with self._semaphore:
                result = await self._attempts(payload, deadline)
        except asyncio.CancelledError as e:
            # Caller gave up (e.g. its own timeout); the backend still counts as failing
            self._record_failure(e)
            raise
        except GeneratorError as e:
            self._record_failure(e)
            raise

        elapsed = time.time() - start_time
        self.requests_successful += 1
        self.total_inference_time += elapsed
        logger.info(
            f"LLM inference successful: {self.model} "
            f"({result.get('tokens_generated', 0)} tokens in {elapsed:.2f}s)"
        )
        return result

    async def _attempts(self, payload: Dict[str, Any], deadline: Optional[float]) -> Dict[str, Any]:
        """Retry timeouts and connection errors until retries or time run out"""
        last_error: GeneratorError = GeneratorUnavailableError("LLM backend time budget exhausted")

        for attempt in range(self.max_retries + 1):
            remaining = deadline - time.time() if deadline else None
            if remaining is not None and remaining <= 0:
                break

            try:
                return await self._post_inference(payload, remaining)
            except (httpx.TimeoutException, asyncio.TimeoutError) as e:
                last_error = GeneratorUnavailableError(f"LLM backend timeout: {e!r}")
            except httpx.ConnectError as e:
                last_error = GeneratorUnavailableError(f"Cannot connect to LLM backend: {e}")
            except httpx.HTTPError as e:
                last_error = GenerationError(f"Unexpected HTTP error: {e}")

            if attempt == self.max_retries:
                break

            delay = min(2 ** attempt, 5)
            if deadline and time.time() + delay >= deadline:
                break
            logger.warning(f"{last_error}, retrying ({attempt + 1}/{self.max_retries})...")
            await asyncio.sleep(delay)

        raise last_error

    def get_client_stats(self) -> Dict[str, Any]:
        """
        Get client-side statistics.

        Returns:
            Client stats dict
        """
        avg_time = (
            self.total_inference_time / self.requests_successful
            if self.requests_successful > 0
            else 0.0
        )

        success_rate = (
            (self.requests_successful / self.requests_sent * 100)
            if self.requests_sent > 0
            else 0.0
        )

        return {
            "endpoint": self.endpoint,
            "model": self.model,
            "total_timeout_seconds": self.total_timeout,
            "requests_sent": self.requests_sent,
            "requests_successful": self.requests_successful,
            "requests_failed": self.requests_failed,
            "success_rate_percent": round(success_rate, 2),
            "avg_inference_time_seconds": round(avg_time, 3),
            "total_inference_time_seconds": round(self.total_inference_time, 2)
        }

    async def aclose(self) -> None:
        """Close the HTTP client if it belongs to the running loop"""
        if self._client is not None and self._loop is asyncio.get_running_loop():
            await self._client.aclose()
        self._client = None
        self._loop = None
