"""
Product collection models.

The designer is stored in collections.metadata.designer and surfaced as a
top-level field.
"""

from datetime import datetime
from typing import Optional
from pydantic import Field

from models.base import BaseSchema


class CollectionCreate(BaseSchema):
    """Create a collection. The designer defaults to the caller's email."""

    name: str = Field(..., min_length=1, max_length=200)
    prefix: str = Field(default="", max_length=20, description="SKU prefix")
    description: str = ""
    image_url: str = ""
    display_order: int = Field(default=1, ge=1)
    is_active: bool = True
    designer: Optional[str] = Field(None, max_length=200)


class CollectionUpdate(BaseSchema):
    """Only provided fields are written."""

    name: Optional[str] = Field(None, min_length=1, max_length=200)
    prefix: Optional[str] = Field(None, max_length=20)
    description: Optional[str] = None
    image_url: Optional[str] = None
    display_order: Optional[int] = Field(None, ge=1)
    is_active: Optional[bool] = None
    designer: Optional[str] = Field(None, max_length=200)


class CollectionResponse(BaseSchema):
    id: str
    name: Optional[str] = None
    prefix: str = ""
    description: str = ""
    image_url: str = ""
    display_order: int = 1
    is_active: bool = True
    designer: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
