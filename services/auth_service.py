"""
Authentication and role-based permissions.

Callers authenticate with a Supabase access token (Authorization: Bearer).
The role comes from user_metadata.role and maps to a fixed permission set.

Usage in a router:

    @router.get("", dependencies=[Depends(require_permissions("finance.read"))])

or, when the handler needs the caller:

    async def handler(user: UserContext = Depends(require_permissions("orders.read"))):
"""

from typing import Iterable, Optional
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
import structlog

from config import get_supabase_client, settings
from exceptions import UnauthorizedError, ForbiddenError
from models.user import UserContext, UserRole

logger = structlog.get_logger(__name__)

security = HTTPBearer(auto_error=False)


# ===================
# ROLE -> PERMISSION MATRIX
# ===================

_CONTRACTOR = [
    "customers.read", "orders.read", "products.read", "projects.read",
    "production.read", "design.read", "reports.read",
]

_EMPLOYEE = [
    "customers.read", "customers.update",
    "finance.read", "finance.create",
    "orders.create", "orders.read", "orders.update",
    "products.read", "products.update",
    "projects.read", "projects.update",
    "production.read", "production.update",
    "design.create", "design.read", "design.update",
    "reports.read",
]

_LEAD = [
    "users.read",
    "customers.read", "customers.update",
    "finance.read", "finance.create", "finance.update",
    "orders.create", "orders.read", "orders.update", "orders.ship",
    "products.read", "products.update", "inventory.manage",
    "projects.create", "projects.read", "projects.update",
    "production.read", "production.update",
    "design.create", "design.read", "design.update",
    "reports.read", "reports.create",
]

_MANAGER = [
    "users.read", "users.update",
    "customers.create", "customers.read", "customers.update", "customers.write", "customers.export",
    "finance.read", "finance.create", "finance.update", "finance.view_sensitive",
    "orders.create", "orders.read", "orders.update", "orders.write", "orders.approve", "orders.ship",
    "products.create", "products.read", "products.update", "products.write", "inventory.manage",
    "projects.create", "projects.read", "projects.update", "projects.write", "projects.manage",
    "production.read", "production.update", "production.write", "production.manage",
    "shop_drawings.approve",
    "design.create", "design.read", "design.update", "design.approve",
    "reports.read", "reports.create", "reports.export", "analytics.view_all",
    "portal.read",
]

_ADMIN = _MANAGER + [
    "users.create", "users.manage_roles",
    "customers.delete",
    "finance.approve_payments",
    "orders.delete",
    "products.delete",
    "projects.delete",
    "portal.create", "portal.update",
    "system.configure", "system.integrations",
]

_SUPER_ADMIN = _ADMIN + [
    "users.delete",
    "finance.delete",
    "portal.delete",
    "system.backup", "system.audit",
]

ROLE_PERMISSIONS: dict[UserRole, frozenset[str]] = {
    UserRole.SUPER_ADMIN: frozenset(_SUPER_ADMIN),
    UserRole.ADMIN: frozenset(_ADMIN),
    UserRole.MANAGER: frozenset(_MANAGER),
    UserRole.LEAD: frozenset(_LEAD),
    UserRole.EMPLOYEE: frozenset(_EMPLOYEE),
    UserRole.CONTRACTOR: frozenset(_CONTRACTOR),
    UserRole.CLIENT: frozenset(["orders.read", "projects.read", "reports.read"]),
    UserRole.VIEWER: frozenset([
        "customers.read", "orders.read", "products.read", "projects.read", "reports.read",
    ]),
}


def has_permission(role: UserRole, permission: str) -> bool:
    return permission in ROLE_PERMISSIONS.get(role, frozenset())


def has_any_permission(role: UserRole, permissions: Iterable[str]) -> bool:
    return any(has_permission(role, p) for p in permissions)


def has_all_permissions(role: UserRole, permissions: Iterable[str]) -> bool:
    return all(has_permission(role, p) for p in permissions)


# ===================
# USER RESOLUTION
# ===================

def resolve_role(email: str, metadata: dict) -> UserRole:
    """user_metadata.role, defaulting to viewer; configured owners are super_admin."""
    if email and email.lower() in {e.lower() for e in settings.super_admin_emails}:
        return UserRole.SUPER_ADMIN

    try:
        return UserRole(metadata.get("role") or UserRole.VIEWER.value)
    except ValueError:
        logger.warning("unknown_user_role", role=metadata.get("role"))
        return UserRole.VIEWER


def get_user_context(token: str) -> Optional[UserContext]:
    """
    Resolve a bearer token to the caller.

    Returns:
        UserContext, or None if the token is missing, invalid or expired
    """
    if not token:
        return None

    try:
        response = get_supabase_client().auth.get_user(token)
    except Exception as e:
        logger.warning("token_verification_failed", error=str(e))
        return None

    user = getattr(response, "user", None)
    if user is None:
        return None

    metadata = getattr(user, "user_metadata", None) or {}
    email = getattr(user, "email", None) or ""
    role = resolve_role(email, metadata)

    return UserContext(
        id=str(user.id),
        email=email,
        full_name=metadata.get("full_name"),
        role=role,
        permissions=sorted(ROLE_PERMISSIONS[role]),
        department_id=metadata.get("department_id"),
        is_active=metadata.get("is_active") is not False,
    )


def check_permissions(
    user: Optional[UserContext],
    permissions: Iterable[str],
    require_all: bool = False,
    allowed_roles: Optional[Iterable[UserRole]] = None,
    enforce_active: bool = True,
) -> UserContext:
    """
    Apply the permission rules to an already-resolved caller.

    Raises:
        UnauthorizedError: No caller
        ForbiddenError: Disabled account, disallowed role, or missing permission
    """
    if user is None:
        raise UnauthorizedError()

    if enforce_active and not user.is_active:
        raise ForbiddenError("Account is disabled")

    if allowed_roles is not None and user.role not in set(allowed_roles):
        raise ForbiddenError(
            "Insufficient role privileges",
            details={"role": user.role.value}
        )

    permissions = list(permissions)
    if permissions:
        granted = (
            has_all_permissions(user.role, permissions)
            if require_all
            else has_any_permission(user.role, permissions)
        )
        if not granted:
            raise ForbiddenError(details={"required": permissions})

    return user


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> UserContext:
    """Dependency: any authenticated caller."""
    token = credentials.credentials if credentials else None
    user = get_user_context(token)
    if user is None:
        raise UnauthorizedError()
    return user


def require_permissions(
    *permissions: str,
    require_all: bool = False,
    allowed_roles: Optional[Iterable[UserRole]] = None,
    enforce_active: bool = True,
):
    """
    Build a dependency that admits callers holding the given permissions.

    Any one permission suffices unless require_all is set.
    """
    def dependency(
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    ) -> UserContext:
        token = credentials.credentials if credentials else None
        user = get_user_context(token)
        return check_permissions(
            user,
            permissions,
            require_all=require_all,
            allowed_roles=allowed_roles,
            enforce_active=enforce_active,
        )

    return dependency
