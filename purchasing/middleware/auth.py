import uuid

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError
import structlog

from purchasing.services.auth_service import verify_access_token
from purchasing.services.guards import Actor

logger = structlog.get_logger()

security = HTTPBearer()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> Actor:
    """FastAPI dependency: extract and verify JWT, return the acting user."""
    token = credentials.credentials
    try:
        payload = verify_access_token(token)
        actor = Actor(
            id=uuid.UUID(payload["sub"]),
            role=payload["role"],
            email=payload.get("email"),
        )
    except (JWTError, ValueError) as e:
        logger.warning("auth_token_invalid", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "error": {
                    "code": "AUTH_TOKEN_INVALID",
                    "message": "Invalid or expired token",
                }
            },
            headers={"WWW-Authenticate": "Bearer"},
        )
    structlog.contextvars.bind_contextvars(actor_id=str(actor.id), actor_role=actor.role)
    return actor
