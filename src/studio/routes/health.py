"""
Health Check Routes

Endpoints for service health monitoring.
"""
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from datetime import datetime

from ..services.engine_service import EngineService
from .deps import get_engine

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
@router.get("/")
async def health_check():
    """Basic health check endpoint"""
    return {
        "status": "healthy",
        "service": "studio-api",
        "timestamp": datetime.utcnow().isoformat()
    }


@router.get("/ready")
async def readiness_check(engine: EngineService = Depends(get_engine)):
    """
    Readiness check - the storages are connected and background tasks started.
    Returns 503 until startup has finished.
    """
    body = {
        "ready": engine.is_initialized,
        "scheduler_running": engine.pipeline_scheduler.is_running,
        "llm_configured": engine.agent_executor.is_configured,
        "timestamp": datetime.utcnow().isoformat()
    }
    return JSONResponse(status_code=200 if engine.is_initialized else 503, content=body)


@router.get("/live")
async def liveness_check():
    """Liveness check - indicates if service is running."""
    return {
        "alive": True,
        "timestamp": datetime.utcnow().isoformat()
    }
