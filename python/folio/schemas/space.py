"""Space-related Pydantic schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class CreateSpaceRequest(BaseModel):
    """Request body for creating a space."""

    name: str = Field(..., min_length=1, max_length=100, description="Space name (1-100 chars)")
    slug: str = Field(..., description="Globally unique slug")
    description: str | None = Field(default=None, max_length=1000)
    is_public: bool = False


class SpaceOut(BaseModel):
    """Response schema for a space."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    slug: str
    description: str | None = None
    is_public: bool
    created_at: datetime
    updated_at: datetime


class UpdateSpaceRequest(BaseModel):
    """Request body for a partial space update.

    Only fields present in the body are changed.
    """

    name: str | None = Field(default=None, min_length=1, max_length=100)
    slug: str | None = None
    description: str | None = Field(default=None, max_length=1000)
    is_public: bool | None = None


class SlugAvailabilityOut(BaseModel):
    """Whether a slug is free, with a free variant when it is not."""

    slug: str
    available: bool
    suggestion: str | None = None
