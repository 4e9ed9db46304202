"""
Studio API Routes

FastAPI route handlers for the advisor, risk and fitness apps.
"""
from .health import router as health_router
from .auth import router as auth_router
from .advisor import router as advisor_router
from .risk import router as risk_router
from .fitness import router as fitness_router

__all__ = [
    'health_router',
    'auth_router',
    'advisor_router',
    'risk_router',
    'fitness_router',
]
