# limsrag/core/pipeline.py

"""
RAG Orchestrator
================

Runs one query through retrieval (corpus -> scorer -> ranker)
and generation. Queries share nothing but the read-only corpus.

File: limsrag/core/pipeline.py
"""

import os
import time
import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Dict, Any, List
from dotenv import load_dotenv

from limsrag.core.generator import Generator, GeneratorError, GeneratorUnavailableError, get_generator
from limsrag.retrieval import (
    CorpusStore,
    KeywordScorer,
    Scorer,
    ScoredRecord,
    get_corpus,
    rank,
    select_top_records
)

load_dotenv()
logger = logging.getLogger('LimsRAG')


@dataclass
class RAGResult:
    """Outcome of one query"""
    query: str
    answer: str
    contexts: List[str]
    generator: str
    elapsed_seconds: float


class RAGPipeline:
    """
    Retrieval-then-generation pipeline.
    """

    def __init__(
        self,
        corpus: Optional[CorpusStore] = None,
        scorer: Optional[Scorer] = None,
        generator: Optional[Generator] = None,
        top_k: Optional[int] = None,
        generation_timeout: Optional[float] = None
    ):
        """
        Initialize pipeline.

        Args:
            corpus: Records to search (default: process-wide corpus)
            scorer: Relevance scorer (default: keyword overlap)
            generator: Answer generator (default: from LIMSRAG_GENERATOR)
            top_k: Default number of records handed to the generator
            generation_timeout: Seconds to wait for the generator, 0 disables
        """
        self.corpus = corpus if corpus is not None else get_corpus()
        self.scorer = scorer or KeywordScorer()
        self.generator = generator or get_generator()
        self.top_k = top_k if top_k is not None else int(os.getenv("LIMSRAG_TOP_K", "2"))
        self.generation_timeout = (
            generation_timeout if generation_timeout is not None
            else float(os.getenv("LIMSRAG_GENERATION_TIMEOUT", "30"))
        )

        # Remote generators must give up (and count the failure) before we do
        fit_deadline = getattr(self.generator, "fit_deadline", None)
        if fit_deadline and self.generation_timeout > 0:
            fit_deadline(self.generation_timeout)

        # Statistics
        self.queries = 0
        self.empty_retrievals = 0
        self.failures = 0
        self.total_time = 0.0

    def top_records(self, query_text: str, k: Optional[int] = None) -> List[ScoredRecord]:
        """Top-k scored records, ids and scores included"""
        scored = self.scorer.score(query_text, self.corpus.get_all())
        return select_top_records(scored, self.top_k if k is None else k)

    def retrieve(self, query_text: str, k: Optional[int] = None) -> List[str]:
        """
        Retrieve the texts of the k most relevant records.

        Args:
            query_text: User query
            k: Number of records (default: pipeline top_k)

        Returns:
            Record texts, best first (possibly empty)
        """
        scored = self.scorer.score(query_text, self.corpus.get_all())
        retrieved = rank(scored, self.top_k if k is None else k)

        logger.info(
            f"Retrieval: {len(scored)} matching records, {len(retrieved)} selected"
        )
        return retrieved

    async def run(self, query_text: str, k: Optional[int] = None) -> RAGResult:
        """
        Answer a query, keeping the retrieved contexts.

        Args:
            query_text: User query
            k: Number of records to retrieve (default: pipeline top_k)

        Returns:
            RAGResult with the answer (the no-information message when
            nothing matched) and the contexts it was built from

        Raises:
            GeneratorUnavailableError: If generation timed out or the backend is down
            GenerationError: If the backend failed to generate
        """
        start_time = time.time()

        retrieved = self.retrieve(query_text, k)
        self.queries += 1
        if not retrieved:
            self.empty_retrievals += 1
            logger.info("No relevant context found")

        try:
            if self.generation_timeout > 0:
                answer = await asyncio.wait_for(
                    self.generator.generate(query_text, retrieved),
                    timeout=self.generation_timeout
                )
            else:
                answer = await self.generator.generate(query_text, retrieved)

        except asyncio.TimeoutError:
            self.failures += 1
            logger.error(f"Generation timed out after {self.generation_timeout}s")
            raise GeneratorUnavailableError(
                f"Generator '{self.generator.name}' timed out after {self.generation_timeout}s"
            )

        except GeneratorError as e:
            self.failures += 1
            logger.error(f"Generation failed: {e}")
            raise

        elapsed = time.time() - start_time
        self.total_time += elapsed
        logger.info(f"Answered in {elapsed:.2f}s ({len(retrieved)} contexts)")

        return RAGResult(
            query=query_text,
            answer=answer,
            contexts=retrieved,
            generator=self.generator.name,
            elapsed_seconds=elapsed
        )

    async def aanswer(self, query_text: str, k: Optional[int] = None) -> str:
        """Answer a query (see run)"""
        result = await self.run(query_text, k)
        return result.answer

    def answer(self, query_text: str, k: Optional[int] = None) -> str:
        """
        Blocking version of aanswer.

        Must not be called from inside a running event loop.
        """
        return asyncio.run(self.aanswer(query_text, k))

    def get_stats(self) -> Dict[str, Any]:
        """
        Get pipeline statistics.

        Returns:
            Stats dict
        """
        answered = self.queries - self.failures
        avg_time = self.total_time / answered if answered > 0 else 0.0

        return {
            "corpus_records": len(self.corpus),
            "top_k": self.top_k,
            "scorer": getattr(self.scorer, "name", type(self.scorer).__name__),
            "generator": self.generator.name,
            "queries": self.queries,
            "empty_retrievals": self.empty_retrievals,
            "failures": self.failures,
            "avg_answer_time_seconds": round(avg_time, 3)
        }


# Singleton instance
_pipeline: Optional[RAGPipeline] = None


def get_pipeline() -> RAGPipeline:
    """
    Get singleton pipeline instance.

    Returns:
        RAGPipeline instance
    """
    global _pipeline
    if _pipeline is None:
        _pipeline = RAGPipeline()
    return _pipeline


def answer(query_text: str, k: int = 2) -> str:
    """Answer a query with the default pipeline"""
    return get_pipeline().answer(query_text, k)
