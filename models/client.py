"""
Client models.

The frontend speaks camelCase (name, contactName, creditTerms); the
clients table stores client_name, contact_name, credit_terms. The mapping
lives in services/client_service.py.
"""

from datetime import datetime
from typing import Optional
from pydantic import Field

from models.base import BaseSchema


class ClientCreate(BaseSchema):
    """Create a new client."""

    name: str = Field(..., min_length=1, max_length=200, description="Client name")
    email: str = Field(..., min_length=3, max_length=255, description="Primary email")
    contactName: Optional[str] = Field(None, max_length=200)
    phone: Optional[str] = Field(None, max_length=50)
    status: str = Field(default="active", max_length=50)
    creditTerms: Optional[str] = Field(None, max_length=100)


class ClientUpdate(BaseSchema):
    """Update a client. `id` identifies the row; other fields are optional."""

    id: str = Field(..., min_length=1)
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    email: Optional[str] = Field(None, max_length=255)
    contactName: Optional[str] = Field(None, max_length=200)
    phone: Optional[str] = Field(None, max_length=50)
    status: Optional[str] = Field(None, max_length=50)
    creditTerms: Optional[str] = Field(None, max_length=100)


class ClientResponse(BaseSchema):
    """Client as the dashboard sees it."""

    id: str
    name: Optional[str] = None
    contactName: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    status: Optional[str] = None
    creditTerms: Optional[str] = None
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None
