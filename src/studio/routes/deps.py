"""
Route Dependencies

Shared dependencies and helpers for route handlers: the engine,
rate limiting and service-error translation.
"""
import logging

from fastapi import HTTPException, Request

from ..agents.executor import LLMNotConfigured
from ..models.audit import AuditAction
from ..security.sanitize import get_client_id
from ..services.engine_service import EngineService, get_engine_service
from ..services.errors import ConflictError, ForbiddenError, NotFoundError

logger = logging.getLogger("studio.routes.deps")


def get_engine() -> EngineService:
    return get_engine_service()


async def enforce_rate_limit(request: Request, engine: EngineService, key: str, kind: str = "default") -> int:
    """
    Count a request against key.

    Returns:
        Remaining requests in the window (also stored on request.state)

    Raises:
        HTTPException 429 with Retry-After when the limit is hit
    """
    result = engine.rate_limiter.check(key, kind)
    if not result.allowed:
        await engine.audit_log.log_security_incident(
            AuditAction.SECURITY_RATE_LIMIT,
            ip_address=get_client_id(request),
            details={"key": key, "kind": kind},
            user_agent=request.headers.get("user-agent"),
        )
        raise HTTPException(
            status_code=429,
            detail="Too many requests. Please try again later.",
            headers={
                "Retry-After": str(result.retry_after),
                "X-RateLimit-Reset": str(result.retry_after),
                "X-RateLimit-Remaining": "0",
            },
        )
    request.state.rate_limit_remaining = result.remaining
    return result.remaining


def http_error(error: Exception) -> HTTPException:
    """Map a service error onto an HTTP status"""
    if isinstance(error, NotFoundError):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, ForbiddenError):
        return HTTPException(status_code=403, detail=str(error))
    if isinstance(error, ConflictError):
        return HTTPException(status_code=409, detail=str(error))
    if isinstance(error, LLMNotConfigured):
        return HTTPException(status_code=500, detail="ANTHROPIC_API_KEY is not configured")
    if isinstance(error, ValueError):
        return HTTPException(status_code=400, detail=str(error))
    logger.error(f"Unexpected error: {error}")
    return HTTPException(status_code=500, detail=str(error) or "Internal server error")
