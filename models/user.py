"""
User, role and permission models.

Roles map to a fixed permission matrix (see services/auth_service.py).
"""

from enum import Enum
from typing import Optional
from pydantic import Field

from models.base import BaseSchema


class UserRole(str, Enum):
    """User roles, broadest first."""

    SUPER_ADMIN = "super_admin"  # Full system access
    ADMIN = "admin"              # Company administration
    MANAGER = "manager"          # Department management
    LEAD = "lead"                # Team leadership
    EMPLOYEE = "employee"        # General employee access
    CONTRACTOR = "contractor"    # Limited contractor access
    CLIENT = "client"            # Client portal access
    VIEWER = "viewer"            # Read-only access


class UserContext(BaseSchema):
    """Authenticated caller resolved from a bearer token."""

    id: str
    email: str = ""
    full_name: Optional[str] = None
    role: UserRole = UserRole.VIEWER
    permissions: list[str] = Field(default_factory=list)
    department_id: Optional[str] = None
    is_active: bool = True
