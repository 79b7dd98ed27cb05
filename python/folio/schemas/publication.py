"""Publication-related Pydantic schemas.

PublicationOut and PublicationDocumentOut are the boundary serialization of
the snapshot records; presentation fields are assembled by callers.
"""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

PublicationThemeValue = Literal["default", "dark", "minimal"]

__all__ = [
    "PublicationThemeValue",
    "PublishOptions",
    "RepublishRequest",
    "UpdatePublicationRequest",
    "PublicationOut",
    "PublicationDetailOut",
    "PublicationDocumentOut",
    "PublicationTreeNodeOut",
]

# =============================================================================
# Request Schemas
# =============================================================================


class PublishOptions(BaseModel):
    """Options for publishing a space.

    Stored on the resulting publication so a republish reproduces the same
    selection.
    """

    slug: str
    title: str = Field(..., max_length=255)
    description: str | None = Field(default=None, max_length=2000)
    include_private: bool = False
    root_document_id: UUID | None = None
    theme: PublicationThemeValue = "default"


class RepublishRequest(BaseModel):
    """Request body for republishing a publication."""

    change_summary: str | None = Field(default=None, max_length=2000)


class UpdatePublicationRequest(BaseModel):
    """Request body for editing publication metadata.

    Never changes the snapshot, version, or active flag.
    """

    title: str | None = Field(default=None, max_length=255)
    description: str | None = Field(default=None, max_length=2000)
    theme: PublicationThemeValue | None = None


# =============================================================================
# Response Schemas
# =============================================================================


class PublicationOut(BaseModel):
    """Response schema for a publication."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    space_id: UUID
    slug: str
    version: int
    title: str
    description: str | None
    is_active: bool
    document_count: int
    total_views: int
    published_at: datetime
    updated_at: datetime


class PublicationDetailOut(PublicationOut):
    """Publication with its stored publish options (authoring/preview view)."""

    theme: PublicationThemeValue
    include_private: bool
    root_document_id: UUID | None
    change_summary: str | None


class PublicationDocumentOut(BaseModel):
    """Response schema for one snapshot document."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    publication_id: UUID
    original_doc_id: UUID
    parent_id: UUID | None
    title: str
    slug: str
    content: str
    excerpt: str | None
    order_index: int
    word_count: int
    reading_time: int
    created_at: datetime


class PublicationTreeNodeOut(BaseModel):
    """One node of a snapshot's document forest."""

    id: UUID
    title: str
    slug: str
    excerpt: str | None = None
    order_index: int
    children: list["PublicationTreeNodeOut"] = Field(default_factory=list)
