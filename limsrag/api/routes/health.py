# limsrag/api/routes/health.py

"""Health check routes"""
from fastapi import APIRouter
from pydantic import BaseModel
import time
from limsrag.core.pipeline import get_pipeline

router = APIRouter(tags=["health"])

# Track startup time (will be set by main.py)
startup_time = None

def set_startup_time(t: float):
    global startup_time
    startup_time = t

class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    generator: str
    generator_available: bool
    corpus_records: int
    uptime_seconds: float

@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Check pipeline status and generator availability"""
    pipeline = get_pipeline()

    check = getattr(pipeline.generator, "check_health", None)
    generator_health = await check() if check else {"available": True}
    generator_available = generator_health.get("available", False)

    return HealthResponse(
        status="healthy" if generator_available else "degraded",
        generator=pipeline.generator.name,
        generator_available=generator_available,
        corpus_records=len(pipeline.corpus),
        uptime_seconds=max(0.0, time.time() - (startup_time if startup_time is not None else time.time()))
    )
