# limsrag/api/routes/ask.py

"""Question answering routes"""
from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field
from datetime import datetime
from typing import List
import logging
from limsrag.core.generator import GeneratorUnavailableError, GenerationError
from limsrag.core.pipeline import get_pipeline

router = APIRouter(tags=["ask"])
logger = logging.getLogger('LimsRAG')

MAX_QUERY_CHARS = 4000


class AskRequest(BaseModel):
    """Question for the knowledge base"""
    query: str = Field(..., description="Free-text question")
    k: int = Field(2, ge=1, description="Number of records to retrieve")

    class Config:
        json_schema_extra = {
            "example": {
                "query": "How do I calibrate the pH meter?",
                "k": 2
            }
        }


class AskResponse(BaseModel):
    """Answer with the contexts it was built from"""
    answer: str
    query: str
    contexts: List[str]
    retrieved_count: int
    generator: str
    inference_time_seconds: float
    timestamp: str


class RetrievedRecord(BaseModel):
    id: str
    score: int
    text: str


class RetrieveResponse(BaseModel):
    """Ranked records for a query, no generation"""
    query: str
    results: List[RetrievedRecord]


def _check_query_size(query: str):
    if len(query) > MAX_QUERY_CHARS:
        raise HTTPException(413, f"Query exceeds {MAX_QUERY_CHARS} character limit")


@router.post("/v1/ask", response_model=AskResponse)
async def ask(request: AskRequest):
    """Retrieve relevant records and generate an answer"""
    _check_query_size(request.query)

    logger.info(f"Ask request: k={request.k} ({len(request.query)} chars)")
    pipeline = get_pipeline()

    try:
        result = await pipeline.run(request.query, request.k)

    except GeneratorUnavailableError as e:
        logger.warning(f"Generator unavailable: {e}")
        raise HTTPException(
            status_code=503,
            detail={
                "error": "Generation backend unavailable",
                "message": str(e),
                "suggestion": "Backend may be overloaded or offline"
            }
        )

    except GenerationError as e:
        logger.error(f"Generation error: {e}")
        raise HTTPException(
            status_code=500,
            detail={
                "error": "Generation failed",
                "message": str(e)
            }
        )

    return AskResponse(
        answer=result.answer,
        query=result.query,
        contexts=result.contexts,
        retrieved_count=len(result.contexts),
        generator=result.generator,
        inference_time_seconds=round(result.elapsed_seconds, 3),
        timestamp=datetime.now().isoformat()
    )


@router.post("/v1/retrieve", response_model=RetrieveResponse)
async def retrieve(request: AskRequest):
    """Show which records a query would retrieve, with scores"""
    _check_query_size(request.query)

    pipeline = get_pipeline()
    top = pipeline.top_records(request.query, request.k)

    return RetrieveResponse(
        query=request.query,
        results=[
            RetrievedRecord(id=s.record_id, score=s.score, text=s.record.text)
            for s in top
        ]
    )
