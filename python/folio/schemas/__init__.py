"""Pydantic schemas for request/response models.

All schemas are re-exported here for convenient imports.
"""

from folio.schemas.document import (
    BatchDeleteRequest,
    BatchVisibilityRequest,
    CreateDocumentRequest,
    DocumentOut,
    DocumentTreeNodeOut,
    DraftStatusOut,
    DuplicateDocumentRequest,
    MoveDocumentRequest,
    SetVisibilityRequest,
    UpdateDocumentRequest,
)
from folio.schemas.publication import (
    PublicationDetailOut,
    PublicationDocumentOut,
    PublicationOut,
    PublicationTreeNodeOut,
    PublishOptions,
    RepublishRequest,
    UpdatePublicationRequest,
)
from folio.schemas.space import (
    CreateSpaceRequest,
    SlugAvailabilityOut,
    SpaceOut,
    UpdateSpaceRequest,
)

__all__ = [
    # Space schemas
    "CreateSpaceRequest",
    "UpdateSpaceRequest",
    "SpaceOut",
    "SlugAvailabilityOut",
    # Document schemas
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
    # Publication schemas
    "PublishOptions",
    "RepublishRequest",
    "UpdatePublicationRequest",
    "PublicationOut",
    "PublicationDetailOut",
    "PublicationDocumentOut",
    "PublicationTreeNodeOut",
]
