"""
Authentication Routes

Endpoints for user authentication.
"""
import jwt
import logging
from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, HTTPException, Depends, Header, Request
from pydantic import BaseModel, EmailStr

from ..config import Config
from ..models.audit import AuditAction
from ..models.user import User
from ..security.sanitize import get_client_id
from ..services.engine_service import EngineService
from .deps import enforce_rate_limit, get_engine, http_error

logger = logging.getLogger("studio.routes.auth")
router = APIRouter(prefix="/auth", tags=["auth"])


# ============================================
# Request/Response Models
# ============================================

class LoginRequest(BaseModel):
    """Login request body"""
    email: EmailStr
    password: str


class RegisterRequest(BaseModel):
    """Registration request body"""
    email: EmailStr
    username: str
    display_name: str
    password: str


class TokenResponse(BaseModel):
    """Login/registration response"""
    token: str
    user_id: str
    email: str
    username: str
    display_name: str
    is_admin: bool = False


# ============================================
# Helpers
# ============================================

def create_token(user_id: UUID, email: str = None, name: str = None, is_admin: bool = False) -> str:
    """Create JWT token for user"""
    expiration = datetime.utcnow() + timedelta(hours=Config.JWT_EXPIRATION_HOURS)
    payload = {
        "user_id": str(user_id),
        "email": email,
        "name": name,
        "is_admin": is_admin,
        "exp": expiration
    }
    return jwt.encode(payload, Config.JWT_SECRET, algorithm=Config.JWT_ALGORITHM)


def verify_token(token: str) -> Optional[dict]:
    """Verify and decode JWT token"""
    try:
        payload = jwt.decode(token, Config.JWT_SECRET, algorithms=[Config.JWT_ALGORITHM])
        return payload
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError:
        return None


def _user_from_token(authorization: Optional[str]) -> Optional[dict]:
    if not authorization:
        return None
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    payload = verify_token(parts[1])
    if not payload or not payload.get("user_id"):
        return None
    try:
        user_id = UUID(payload["user_id"])
    except ValueError:
        return None
    return {
        "user_id": user_id,
        "email": payload.get("email"),
        "name": payload.get("name") or "",
        "is_admin": bool(payload.get("is_admin")) or Config.is_admin_id(user_id),
        "exp": payload.get("exp"),
    }


def _token_response(user: User) -> TokenResponse:
    is_admin = user.is_admin or Config.is_admin_id(user.id)
    return TokenResponse(
        token=create_token(user.id, user.email, user.display_name, is_admin),
        user_id=str(user.id),
        email=user.email,
        username=user.username,
        display_name=user.display_name,
        is_admin=is_admin,
    )


async def get_current_user(
    request: Request,
    authorization: str = Header(None),
    engine: EngineService = Depends(get_engine),
) -> dict:
    """Dependency to get current authenticated user"""
    user = _user_from_token(authorization)
    if user:
        return user

    await engine.audit_log.log_security_incident(
        AuditAction.SECURITY_UNAUTHORIZED,
        ip_address=get_client_id(request),
        details={"type": "auth_failure", "path": request.url.path},
        user_agent=request.headers.get("user-agent"),
    )
    detail = "Authorization header required" if not authorization else "Invalid or expired token"
    raise HTTPException(status_code=401, detail=detail, headers={"WWW-Authenticate": "Bearer"})


async def get_optional_user(authorization: str = Header(None)) -> Optional[dict]:
    """Like get_current_user, but anonymous requests get None"""
    return _user_from_token(authorization)


async def require_admin(current_user: dict = Depends(get_current_user)) -> dict:
    if not current_user["is_admin"]:
        raise HTTPException(status_code=403, detail="Admin access required")
    return current_user


# ============================================
# Routes
# ============================================

@router.post("/register", response_model=TokenResponse, status_code=201)
async def register(
    body: RegisterRequest,
    request: Request,
    engine: EngineService = Depends(get_engine),
):
    """
    Register a new user.

    Returns JWT token on success.
    """
    await enforce_rate_limit(request, engine, f"register:{get_client_id(request)}", "auth")
    try:
        user = await engine.users_service.register(
            email=body.email,
            username=body.username,
            display_name=body.display_name,
            password=body.password,
        )
    except ValueError as e:
        logger.info(f"Registration failed: {e}")
        raise http_error(e)

    await engine.audit_log.log_auth_event(
        AuditAction.AUTH_REGISTER,
        user_id=user.id,
        email=user.email,
        ip_address=get_client_id(request),
        user_agent=request.headers.get("user-agent"),
    )
    logger.info(f"User registered: {user.email}")
    return _token_response(user)


@router.post("/login", response_model=TokenResponse)
async def login(
    body: LoginRequest,
    request: Request,
    engine: EngineService = Depends(get_engine),
):
    """
    Authenticate user with email and password.

    Returns JWT token on success.
    """
    client_id = get_client_id(request)
    await enforce_rate_limit(request, engine, f"auth:{client_id}", "auth")

    user = await engine.users_service.authenticate(body.email, body.password)
    if not user:
        logger.info(f"Login failed for {body.email}")
        await engine.audit_log.log_auth_event(
            AuditAction.AUTH_LOGIN_FAILED,
            email=body.email,
            ip_address=client_id,
            user_agent=request.headers.get("user-agent"),
            success=False,
            error_message="Invalid email or password",
        )
        raise HTTPException(
            status_code=401,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    await engine.audit_log.log_auth_event(
        AuditAction.AUTH_LOGIN,
        user_id=user.id,
        email=user.email,
        ip_address=client_id,
        user_agent=request.headers.get("user-agent"),
    )
    logger.info(f"User logged in: {user.email}")
    return _token_response(user)


@router.get("/me")
async def get_current_user_info(
    current_user: dict = Depends(get_current_user),
    engine: EngineService = Depends(get_engine),
):
    """Get current authenticated user's information"""
    user = await engine.users_service.get_user(current_user["user_id"])
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    data = user.to_dict()
    data["is_admin"] = current_user["is_admin"]
    return data


@router.post("/refresh")
async def refresh_token(
    request: Request,
    current_user: dict = Depends(get_current_user),
    engine: EngineService = Depends(get_engine),
):
    """Refresh JWT token"""
    token = create_token(
        current_user["user_id"], current_user["email"], current_user["name"], current_user["is_admin"]
    )
    await engine.audit_log.log_auth_event(
        AuditAction.AUTH_TOKEN_REFRESH,
        user_id=current_user["user_id"],
        ip_address=get_client_id(request),
    )
    return {"token": token}
