"""
Studio API Application

FastAPI application for the executive advisor, Bitcoin risk dashboard
and fitness apps.
"""
import logging
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import Config
from .security import SECURITY_HEADERS
from .services.engine_service import get_engine_service, init_engine_service
from .routes import (
    health_router,
    auth_router,
    advisor_router,
    risk_router,
    fitness_router,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger("studio.app")

# Suppress noisy loggers
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("asyncpg").setLevel(logging.WARNING)

# Create FastAPI application
app = FastAPI(
    title="Studio API",
    description="Executive advisor, Bitcoin risk management and fitness tracking",
    version="0.1.0"
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=Config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def security_headers(request: Request, call_next):
    """Attach security headers and the remaining rate-limit budget"""
    response = await call_next(request)
    for name, value in SECURITY_HEADERS.items():
        response.headers.setdefault(name, value)
    remaining = getattr(request.state, "rate_limit_remaining", None)
    if remaining is not None and "X-RateLimit-Remaining" not in response.headers:
        response.headers["X-RateLimit-Remaining"] = str(remaining)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Body and query validation failures are plain 400s"""
    errors = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        errors.append(f"{location}: {error.get('msg')}" if location else error.get("msg"))
    return JSONResponse(status_code=400, content={"detail": "; ".join(errors) or "Invalid request"})


@app.on_event("startup")
async def startup_event():
    """Initialize services on startup"""
    logger.info("Starting Studio API...")

    try:
        await init_engine_service()
        logger.info("Studio API started successfully")
    except Exception as e:
        logger.error(f"Failed to start Studio API: {e}")
        raise


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown"""
    logger.info("Shutting down Studio API...")

    try:
        engine = get_engine_service()
        await engine.close()
        logger.info("Studio API shutdown complete")
    except Exception as e:
        logger.error(f"Error during shutdown: {e}")


# Include routers
app.include_router(health_router, prefix="/api/v1")
app.include_router(auth_router, prefix="/api/v1")
app.include_router(advisor_router, prefix="/api/v1")
app.include_router(risk_router, prefix="/api/v1")
app.include_router(fitness_router, prefix="/api/v1")


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "service": "Studio API",
        "version": "0.1.0",
        "status": "running"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        app,
        host=Config.API_HOST,
        port=Config.API_PORT
    )
