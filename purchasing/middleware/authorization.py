from fastapi import Depends, HTTPException, status

from purchasing.dependencies import get_oracle
from purchasing.middleware.auth import get_current_user
from purchasing.services.authorization_service import RoleAuthorizationOracle
from purchasing.services.guards import Actor


def require_roles(action: str, resource_type: str):
    """
    FastAPI dependency factory for role-based access control, backed by the
    authorization oracle's permission table.

    Usage:
        @router.get("/audit-logs")
        async def list_audit_logs(
            current_user: Actor = Depends(get_current_user),
            _auth: None = Depends(require_roles("read", "audit_log")),
        ):
    """
    async def check_role(
        current_user: Actor = Depends(get_current_user),
        oracle: RoleAuthorizationOracle = Depends(get_oracle),
    ):
        if not oracle.can(current_user.role, action, resource_type):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={
                    "error": {
                        "code": "FORBIDDEN",
                        "message": (
                            f"Role '{current_user.role}' cannot perform this action. "
                            f"Required: {oracle.roles_for(action, resource_type)}"
                        ),
                    }
                },
            )
        return None

    return check_role
