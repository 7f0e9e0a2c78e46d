"""
Base schemas shared by all models.
"""

from pydantic import BaseModel, ConfigDict
from typing import Any


class BaseSchema(BaseModel):
    """
    Base for all schemas.

    Features:
        - Auto-trim whitespace from strings
        - Validate on attribute assignment
        - Allow ORM objects (from_attributes)
    """
    model_config = ConfigDict(
        from_attributes=True,
        str_strip_whitespace=True,
        validate_assignment=True
    )


class ExportRequest(BaseSchema):
    """Body of every export endpoint."""
    type: str
    filters: dict[str, Any] = {}
