"""Space routes.

Routes are transport-only:
- Call exactly one service function
- Return success(...) or raise ApiError

No domain logic or raw DB access in routes.

IMPORTANT: Static routes (/spaces/by-slug/..., /spaces/check-slug) must be registered BEFORE
dynamic routes (/spaces/{space_id}) to prevent UUID path capture.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from folio.api.deps import get_db, get_publish_locks
from folio.responses import success_response
from folio.schemas.document import BatchDeleteRequest, BatchVisibilityRequest, CreateDocumentRequest
from folio.schemas.publication import PublishOptions
from folio.schemas.space import CreateSpaceRequest, UpdateSpaceRequest
from folio.services import documents as documents_service
from folio.services import publications as publications_service
from folio.services import spaces as spaces_service
from folio.services import tree as tree_service
from folio.services.documents import DeletePolicy
from folio.services.locks import PublishLockRegistry

router = APIRouter()


# =============================================================================
# Static routes (MUST be before /spaces/{space_id} routes)
# =============================================================================


@router.get("/spaces/by-slug/{slug}")
def get_space_by_slug(slug: str, db: Annotated[Session, Depends(get_db)]) -> dict:
    """Get a space by its slug."""
    result = spaces_service.get_space_by_slug(db, slug)
    return success_response(result.model_dump(mode="json"))


@router.get("/spaces/check-slug")
def check_space_slug(
    db: Annotated[Session, Depends(get_db)],
    slug: str = Query(..., description="Slug candidate"),
) -> dict:
    """Report whether a space slug is free, with a suggestion when it is not."""
    result = spaces_service.check_slug_availability(db, slug)
    return success_response(result.model_dump(mode="json"))


# =============================================================================
# Standard space routes
# =============================================================================


@router.get("/spaces")
def list_spaces(
    db: Annotated[Session, Depends(get_db)],
    limit: int = Query(default=50, ge=1, description="Maximum results (clamped to 200)"),
) -> dict:
    """List spaces, newest first."""
    result = spaces_service.list_spaces(db, limit=limit)
    return success_response([space.model_dump(mode="json") for space in result])


@router.post("/spaces", status_code=201)
def create_space(body: CreateSpaceRequest, db: Annotated[Session, Depends(get_db)]) -> dict:
    """Create a space."""
    result = spaces_service.create_space(
        db, body.name, body.slug, description=body.description, is_public=body.is_public
    )
    return success_response(result.model_dump(mode="json"))


@router.get("/spaces/{space_id}")
def get_space(space_id: UUID, db: Annotated[Session, Depends(get_db)]) -> dict:
    """Get a space by id."""
    result = spaces_service.get_space(db, space_id)
    return success_response(result.model_dump(mode="json"))


@router.patch("/spaces/{space_id}")
def update_space(
    space_id: UUID, body: UpdateSpaceRequest, db: Annotated[Session, Depends(get_db)]
) -> dict:
    """Partially update a space (name, slug, description, visibility)."""
    result = spaces_service.update_space(db, space_id, body.model_dump(exclude_unset=True))
    return success_response(result.model_dump(mode="json"))


@router.get("/spaces/{space_id}/tree")
def get_document_tree(space_id: UUID, db: Annotated[Session, Depends(get_db)]) -> dict:
    """Get the live document forest of a space.

    Children are ordered by order_index. Nodes with an unresolvable parent
    are returned at the root with dangling=true.
    """
    result = tree_service.build_tree(db, space_id)
    return success_response([node.model_dump(mode="json") for node in result])


# =============================================================================
# Space documents
# =============================================================================


@router.post("/spaces/{space_id}/documents", status_code=201)
def create_document(
    space_id: UUID,
    body: CreateDocumentRequest,
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Create a document as the last child of its parent.

    A taken slug fails with E_SLUG_TAKEN and a suggested alternative.
    """
    result = documents_service.create_document(
        db,
        space_id,
        body.title,
        body.slug,
        content=body.content,
        parent_id=body.parent_id,
        excerpt=body.excerpt,
        is_public=body.is_public,
    )
    return success_response(result.model_dump(mode="json"))


@router.get("/spaces/{space_id}/documents")
def list_documents(
    space_id: UUID,
    db: Annotated[Session, Depends(get_db)],
    parent_id: Annotated[UUID | None, Query(description="Parent id; omit for root documents")] = None,
) -> dict:
    """List the children of a parent (or the root documents) in order."""
    result = documents_service.list_children(db, space_id, parent_id)
    return success_response([doc.model_dump(mode="json") for doc in result])


@router.get("/spaces/{space_id}/documents/by-slug/{slug}")
def get_document_by_slug(
    space_id: UUID, slug: str, db: Annotated[Session, Depends(get_db)]
) -> dict:
    """Get a live document by slug within a space."""
    result = documents_service.get_document_by_slug(db, space_id, slug)
    return success_response(result.model_dump(mode="json"))


@router.get("/spaces/{space_id}/documents/check-slug")
def check_document_slug(
    space_id: UUID,
    db: Annotated[Session, Depends(get_db)],
    slug: str = Query(..., description="Slug candidate"),
) -> dict:
    """Report whether a document slug is free in the space."""
    result = documents_service.check_slug_availability(db, space_id, slug)
    return success_response(result.model_dump(mode="json"))


@router.post("/spaces/{space_id}/documents/batch-delete")
def batch_delete_documents(
    space_id: UUID,
    body: BatchDeleteRequest,
    db: Annotated[Session, Depends(get_db)],
    policy: Annotated[DeletePolicy, Query(description="Descendant handling")] = DeletePolicy.CASCADE,
) -> dict:
    """Soft-delete several documents and their subtrees. All-or-nothing."""
    deleted_ids = documents_service.batch_delete_documents(db, space_id, body.document_ids, policy)
    return success_response({"deleted_ids": [str(doc_id) for doc_id in deleted_ids]})


@router.post("/spaces/{space_id}/documents/batch-visibility")
def batch_set_visibility(
    space_id: UUID,
    body: BatchVisibilityRequest,
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Set the public flag of several documents. All-or-nothing."""
    result = documents_service.batch_set_visibility(db, space_id, body.document_ids, body.is_public)
    return success_response([doc.model_dump(mode="json") for doc in result])


# =============================================================================
# Space publications
# =============================================================================


@router.post("/spaces/{space_id}/publish", status_code=201)
def publish_space(
    space_id: UUID,
    body: PublishOptions,
    db: Annotated[Session, Depends(get_db)],
    locks: Annotated[PublishLockRegistry, Depends(get_publish_locks)],
) -> dict:
    """Publish the space (or one subtree) as a new snapshot version."""
    result = publications_service.publish_space(db, space_id, body, locks=locks)
    return success_response(result.model_dump(mode="json"))


@router.get("/spaces/{space_id}/publications")
def list_publications(
    space_id: UUID,
    db: Annotated[Session, Depends(get_db)],
    include_inactive: bool = Query(default=False, description="Include unpublished versions"),
) -> dict:
    """List the publications of a space, newest first."""
    result = publications_service.list_publications(db, space_id, include_inactive=include_inactive)
    return success_response([pub.model_dump(mode="json") for pub in result])
