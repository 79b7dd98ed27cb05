"""Document-related Pydantic schemas.

Contains request and response models for the live document tree.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

__all__ = [
    "CreateDocumentRequest",
    "UpdateDocumentRequest",
    "MoveDocumentRequest",
    "SetVisibilityRequest",
    "DuplicateDocumentRequest",
    "BatchDeleteRequest",
    "BatchVisibilityRequest",
    "DocumentOut",
    "DocumentTreeNodeOut",
    "DraftStatusOut",
]

# =============================================================================
# Request Schemas
# =============================================================================


class CreateDocumentRequest(BaseModel):
    """Request body for creating a document.

    New documents are always leaves appended after their last sibling.
    """

    title: str = Field(..., max_length=255)
    slug: str
    content: str = ""
    excerpt: str | None = None
    parent_id: UUID | None = None
    is_public: bool = True


class UpdateDocumentRequest(BaseModel):
    """Request body for a partial document update.

    Only fields present in the body are changed. When expected_revision is
    given the update fails with E_REVISION_MISMATCH if another edit landed
    first.
    """

    title: str | None = Field(default=None, max_length=255)
    slug: str | None = None
    content: str | None = None
    excerpt: str | None = None
    is_public: bool | None = None
    expected_revision: int | None = Field(default=None, ge=1)


class MoveDocumentRequest(BaseModel):
    """Request body for moving a document.

    parent_id null moves the document to the space root. order_index null
    appends after the last sibling at the destination.
    """

    parent_id: UUID | None = None
    order_index: int | None = Field(default=None, ge=0)


class SetVisibilityRequest(BaseModel):
    """Request body for toggling the public flag."""

    is_public: bool


MAX_BATCH_SIZE = 200


class BatchDeleteRequest(BaseModel):
    """Request body for tombstoning several documents of a space at once."""

    document_ids: list[UUID] = Field(..., min_length=1, max_length=MAX_BATCH_SIZE)


class BatchVisibilityRequest(BaseModel):
    """Request body for setting the public flag of several documents."""

    document_ids: list[UUID] = Field(..., min_length=1, max_length=MAX_BATCH_SIZE)
    is_public: bool


class DuplicateDocumentRequest(BaseModel):
    """Request body for duplicating a document."""

    new_title: str | None = Field(default=None, max_length=255)
    new_slug: str | None = None


# =============================================================================
# Response Schemas
# =============================================================================


class DocumentOut(BaseModel):
    """Response schema for a live document."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    space_id: UUID
    parent_id: UUID | None
    title: str
    slug: str
    content: str
    excerpt: str | None
    order_index: int
    is_public: bool
    is_deleted: bool
    word_count: int
    revision: int
    created_at: datetime
    updated_at: datetime


class DocumentTreeNodeOut(BaseModel):
    """One node of the derived document forest.

    dangling is set on nodes whose parent_id does not resolve to a live
    document of the space; such nodes are surfaced at the forest root.
    """

    id: UUID
    parent_id: UUID | None
    title: str
    slug: str
    is_public: bool
    order_index: int
    dangling: bool = False
    children: list["DocumentTreeNodeOut"] = Field(default_factory=list)


class DraftStatusOut(BaseModel):
    """State of a document's coalesced autosave entry."""

    document_id: UUID
    dirty: bool
    pending_fields: list[str] = Field(default_factory=list)
    staged_at: datetime | None = None
    document: DocumentOut | None = None
