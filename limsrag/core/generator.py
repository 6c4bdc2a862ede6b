# limsrag/core/generator.py

"""
Answer Generation
=================

Interface for the text generation step plus the built-in echo
generator, which concatenates retrieved records instead of
calling a model.

File: limsrag/core/generator.py
"""

import os
import asyncio
import logging
from typing import Optional, Protocol, Sequence
from dotenv import load_dotenv

from limsrag.retrieval.assembler import compose_answer

load_dotenv()
logger = logging.getLogger('LimsRAG')


class Generator(Protocol):
    """Turns a query plus retrieved contexts into an answer"""

    name: str

    async def generate(self, query: str, contexts: Sequence[str]) -> str:
        ...


class EchoGenerator:
    """
    Stand-in for a real model.

    Returns the query and contexts stitched together, after a short
    sleep that emulates network latency.
    """

    name = "echo"

    def __init__(
        self,
        delay: Optional[float] = None,
        no_info_message: Optional[str] = None
    ):
        """
        Args:
            delay: Simulated latency in seconds
            no_info_message: Answer used when nothing was retrieved
        """
        self.delay = delay if delay is not None else float(
            os.getenv("LIMSRAG_ECHO_DELAY", "0.5")
        )
        self.no_info_message = no_info_message or os.getenv("LIMSRAG_NO_INFO_MESSAGE")

    async def generate(self, query: str, contexts: Sequence[str]) -> str:
        answer = compose_answer(query, contexts, self.no_info_message)

        # Only the "model call" path is slow
        if contexts and self.delay > 0:
            await asyncio.sleep(self.delay)

        return answer

    async def check_health(self) -> dict:
        return {"status": "healthy", "available": True}


# Custom exceptions
class GeneratorError(Exception):
    """Base class for generation failures"""
    pass


class GeneratorUnavailableError(GeneratorError):
    """Generation backend is unreachable, overloaded or timed out"""
    pass


class GenerationError(GeneratorError):
    """Generation backend answered but the request failed"""
    pass


# Singleton instance
_generator: Optional[Generator] = None


def get_generator() -> Generator:
    """
    Get singleton generator instance.

    LIMSRAG_GENERATOR selects "echo" (default) or "remote".

    Returns:
        Generator instance
    """
    global _generator
    if _generator is None:
        kind = os.getenv("LIMSRAG_GENERATOR", "echo").lower()
        if kind == "remote":
            from limsrag.core.llm_client import LLMClient
            _generator = LLMClient()
        elif kind == "echo":
            _generator = EchoGenerator()
        else:
            raise ValueError(f"Unknown LIMSRAG_GENERATOR: {kind}")
        logger.info(f"Generator selected: {_generator.name}")
    return _generator
