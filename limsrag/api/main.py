"""
LIMS RAG Assistant API Server
=============================

FastAPI server answering lab questions from the LIMS knowledge base.

File: limsrag/api/main.py

Run: uvicorn limsrag.api.main:app --host 0.0.0.0 --port 7000
"""

import os
import time
import logging
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv

from limsrag.api.middleware import (
    RequestIDMiddleware,
    LogContextMiddleware,
    LoadSheddingMiddleware
)

from limsrag.api.routes import ask, health, stats
from limsrag.core.pipeline import get_pipeline

load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger('LimsRAG')

app = FastAPI(
    title="LIMS RAG Assistant",
    description="Retrieval-augmented answers from the lab knowledge base",
    version="0.1.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Last added runs first: the request id must exist before logging
app.add_middleware(LogContextMiddleware)
app.add_middleware(
    LoadSheddingMiddleware,
    max_inflight=int(os.getenv("LIMSRAG_MAX_INFLIGHT", "8"))
)
app.add_middleware(RequestIDMiddleware)

app.include_router(health.router)
app.include_router(ask.router)
app.include_router(stats.router)

startup_time = time.time()


@app.on_event("startup")
async def startup_event():
    """Initialize on startup"""
    global startup_time
    startup_time = time.time()

    health.set_startup_time(startup_time)
    stats.set_startup_time(startup_time)

    pipeline = get_pipeline()
    logger.info(
        f"LIMS RAG Assistant starting: {len(pipeline.corpus)} records, "
        f"top_k={pipeline.top_k}, generator={pipeline.generator.name}, "
        f"timeout={pipeline.generation_timeout}s"
    )

    check = getattr(pipeline.generator, "check_health", None)
    if check:
        generator_health = await check()
        if generator_health.get("available"):
            logger.info("Generator is available")
        else:
            logger.warning(
                f"Generator '{pipeline.generator.name}' is not available: "
                f"{generator_health.get('error', 'unknown')} - /v1/ask will return 503"
            )


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown"""
    logger.info("LIMS RAG Assistant shutting down...")

    close = getattr(get_pipeline().generator, "aclose", None)
    if close:
        await close()


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "service": "LIMS RAG Assistant",
        "version": "0.1.0",
        "status": "operational",
        "endpoints": {
            "health": "/health",
            "ask": "/v1/ask",
            "retrieve": "/v1/retrieve",
            "stats": "/v1/stats"
        }
    }


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler"""
    logger.error(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "message": str(exc),
            "path": str(request.url)
        }
    )


if __name__ == "__main__":
    import uvicorn

    host = os.getenv("LIMSRAG_HOST", "0.0.0.0")
    port = int(os.getenv("LIMSRAG_PORT", "7000"))

    logger.info(f"Starting LIMS RAG Assistant on {host}:{port}")

    uvicorn.run(
        app,
        host=host,
        port=port,
        log_level="info"
    )
