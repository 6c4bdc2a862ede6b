# limsrag/api/routes/stats.py

"""Statistics routes"""
from fastapi import APIRouter
import time
from limsrag.core.pipeline import get_pipeline

router = APIRouter(tags=["stats"])

# Track startup time (will be set by main.py)
startup_time = None

def set_startup_time(t: float):
    global startup_time
    startup_time = t

@router.get("/v1/stats")
async def get_stats():
    """Get pipeline and generator statistics"""
    pipeline = get_pipeline()

    stats = {
        "uptime_seconds": time.time() - (startup_time or time.time()),
        "pipeline": pipeline.get_stats()
    }

    # Only the remote generator keeps client counters
    client_stats = getattr(pipeline.generator, "get_client_stats", None)
    if client_stats:
        stats["llm_client"] = client_stats()

    return stats
