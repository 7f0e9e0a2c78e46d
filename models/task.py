"""
Task models.

Accepts the dashboard's camelCase inputs; rows are stored snake_case.
"""

from datetime import date
from typing import Optional
from pydantic import Field

from models.base import BaseSchema


class TaskCreate(BaseSchema):
    """Create a new task."""

    title: str = Field(..., min_length=1, max_length=300)
    description: Optional[str] = None
    status: str = Field(default="todo", max_length=50)
    priority: str = Field(default="medium", max_length=50)
    assignedTo: Optional[str] = Field(None, description="Defaults to the caller")
    dueDate: Optional[date] = None
    projectId: Optional[str] = None
    department: str = Field(default="admin", max_length=50)
    visibility: str = Field(default="company", max_length=50)
    mentioned_users: list[str] = Field(default_factory=list)


class TaskUpdate(BaseSchema):
    """Update a task. Only provided fields are written."""

    id: str = Field(..., min_length=1)
    title: Optional[str] = Field(None, min_length=1, max_length=300)
    description: Optional[str] = None
    status: Optional[str] = None
    priority: Optional[str] = None
    assignedTo: Optional[str] = None
    dueDate: Optional[date] = None
    projectId: Optional[str] = None
    department: Optional[str] = None
    visibility: Optional[str] = None
    mentioned_users: Optional[list[str]] = None


class TaskFilters(BaseSchema):
    """List filters. The literal "all" means no filter."""

    status: Optional[str] = None
    assigned_to: Optional[str] = None
    priority: Optional[str] = None
