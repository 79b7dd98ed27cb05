"""Document routes.

Routes are transport-only:
- Call exactly one service function
- Return success(...) or raise ApiError

Draft routes go through the process-local autosave queue; nothing is
written until POST /documents/{id}/save.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from folio.api.deps import get_autosave_queue, get_db
from folio.responses import success_response
from folio.schemas.document import (
    DraftStatusOut,
    DuplicateDocumentRequest,
    MoveDocumentRequest,
    SetVisibilityRequest,
    UpdateDocumentRequest,
)
from folio.services import documents as documents_service
from folio.services import tree as tree_service
from folio.services.autosave import AutosaveQueue, DraftStatus
from folio.services.documents import DeletePolicy

router = APIRouter()


def _draft_out(status: DraftStatus) -> dict:
    return DraftStatusOut(
        document_id=status.document_id,
        dirty=status.dirty,
        pending_fields=status.pending_fields,
        staged_at=status.staged_at,
        document=status.document,
    ).model_dump(mode="json")


@router.get("/documents/{document_id}")
def get_document(document_id: UUID, db: Annotated[Session, Depends(get_db)]) -> dict:
    """Get a live document."""
    result = documents_service.get_document(db, document_id)
    return success_response(result.model_dump(mode="json"))


@router.patch("/documents/{document_id}")
def update_document(
    document_id: UUID,
    body: UpdateDocumentRequest,
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Partially update a document.

    Only fields present in the body change. With expected_revision the
    update fails with E_REVISION_MISMATCH if another edit landed first.
    """
    changes = body.model_dump(exclude_unset=True, exclude={"expected_revision"})
    result = documents_service.update_document(
        db, document_id, changes, expected_revision=body.expected_revision
    )
    return success_response(result.model_dump(mode="json"))


@router.delete("/documents/{document_id}")
def delete_document(
    document_id: UUID,
    db: Annotated[Session, Depends(get_db)],
    policy: Annotated[DeletePolicy, Query(description="Descendant handling")] = DeletePolicy.CASCADE,
) -> dict:
    """Soft-delete a document and its whole subtree."""
    deleted_ids = documents_service.soft_delete_document(db, document_id, policy)
    return success_response({"deleted_ids": [str(doc_id) for doc_id in deleted_ids]})


@router.post("/documents/{document_id}/move")
def move_document(
    document_id: UUID,
    body: MoveDocumentRequest,
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Move a document to a new parent and/or sibling position.

    Fails with E_CYCLE if the new parent is the document or a descendant.
    """
    result = documents_service.move_document(db, document_id, body.parent_id, body.order_index)
    return success_response(result.model_dump(mode="json"))


@router.get("/documents/{document_id}/children")
def list_children(document_id: UUID, db: Annotated[Session, Depends(get_db)]) -> dict:
    """List the children of a document in order."""
    result = documents_service.list_document_children(db, document_id)
    return success_response([doc.model_dump(mode="json") for doc in result])


@router.get("/documents/{document_id}/breadcrumbs")
def get_breadcrumbs(document_id: UUID, db: Annotated[Session, Depends(get_db)]) -> dict:
    """Get the ancestor chain of a document, root first."""
    result = tree_service.breadcrumbs(db, document_id)
    return success_response([doc.model_dump(mode="json") for doc in result])


@router.get("/documents/{document_id}/subtree")
def list_subtree(document_id: UUID, db: Annotated[Session, Depends(get_db)]) -> dict:
    """List a document and its descendants in pre-order."""
    result = documents_service.list_subtree(db, document_id)
    return success_response([doc.model_dump(mode="json") for doc in result])


@router.post("/documents/{document_id}/visibility")
def set_visibility(
    document_id: UUID,
    body: SetVisibilityRequest,
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Toggle the public flag of a document."""
    result = documents_service.set_visibility(db, document_id, body.is_public)
    return success_response(result.model_dump(mode="json"))


@router.post("/documents/{document_id}/duplicate", status_code=201)
def duplicate_document(
    document_id: UUID,
    db: Annotated[Session, Depends(get_db)],
    body: DuplicateDocumentRequest | None = None,
) -> dict:
    """Copy a document as its next sibling."""
    body = body or DuplicateDocumentRequest()
    result = documents_service.duplicate_document(
        db, document_id, new_title=body.new_title, new_slug=body.new_slug
    )
    return success_response(result.model_dump(mode="json"))


# =============================================================================
# Drafts (coalesced autosave)
# =============================================================================


@router.put("/documents/{document_id}/draft")
def stage_draft(
    document_id: UUID,
    body: UpdateDocumentRequest,
    db: Annotated[Session, Depends(get_db)],
    queue: Annotated[AutosaveQueue, Depends(get_autosave_queue)],
) -> dict:
    """Stage edits for a live document without writing them."""
    changes = body.model_dump(exclude_unset=True, exclude={"expected_revision"})
    status = queue.stage(db, document_id, changes, expected_revision=body.expected_revision)
    return success_response(_draft_out(status))


@router.get("/documents/{document_id}/draft")
def get_draft_status(
    document_id: UUID,
    queue: Annotated[AutosaveQueue, Depends(get_autosave_queue)],
) -> dict:
    """Report whether a document has staged, unsaved edits."""
    return success_response(_draft_out(queue.status(document_id)))


@router.delete("/documents/{document_id}/draft", status_code=204)
def discard_draft(
    document_id: UUID,
    queue: Annotated[AutosaveQueue, Depends(get_autosave_queue)],
) -> Response:
    """Drop staged edits. Idempotent."""
    queue.discard(document_id)
    return Response(status_code=204)


@router.post("/documents/{document_id}/save")
def save_draft(
    document_id: UUID,
    db: Annotated[Session, Depends(get_db)],
    queue: Annotated[AutosaveQueue, Depends(get_autosave_queue)],
) -> dict:
    """Write staged edits as one update. Saving a clean document is a no-op."""
    return success_response(_draft_out(queue.flush(db, document_id)))
