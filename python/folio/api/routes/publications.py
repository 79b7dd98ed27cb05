"""Publication routes (authoring surface).

Reads here address a publication by id, active or not, and never count
views. Public reads live in folio.api.routes.public.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from folio.api.deps import get_db, get_publish_locks
from folio.responses import success_response
from folio.schemas.publication import RepublishRequest, UpdatePublicationRequest
from folio.services import publications as publications_service
from folio.services.locks import PublishLockRegistry

router = APIRouter()


@router.get("/publications/{publication_id}")
def get_publication(publication_id: UUID, db: Annotated[Session, Depends(get_db)]) -> dict:
    """Get a publication by id (preview, no view counting)."""
    result = publications_service.get_publication(db, publication_id)
    return success_response(result.model_dump(mode="json"))


@router.patch("/publications/{publication_id}")
def update_publication(
    publication_id: UUID,
    body: UpdatePublicationRequest,
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Edit publication metadata. The snapshot itself is immutable."""
    result = publications_service.update_publication(
        db,
        publication_id,
        title=body.title,
        description=body.description,
        theme=body.theme,
    )
    return success_response(result.model_dump(mode="json"))


@router.delete("/publications/{publication_id}", status_code=204)
def delete_publication(
    publication_id: UUID,
    db: Annotated[Session, Depends(get_db)],
    locks: Annotated[PublishLockRegistry, Depends(get_publish_locks)],
) -> Response:
    """Irreversibly delete a publication and its documents."""
    publications_service.delete_publication(db, publication_id, locks=locks)
    return Response(status_code=204)


@router.post("/publications/{publication_id}/republish", status_code=201)
def republish_publication(
    publication_id: UUID,
    db: Annotated[Session, Depends(get_db)],
    locks: Annotated[PublishLockRegistry, Depends(get_publish_locks)],
    body: RepublishRequest | None = None,
) -> dict:
    """Publish the next version with the stored options."""
    change_summary = body.change_summary if body else None
    result = publications_service.republish(db, publication_id, change_summary, locks=locks)
    return success_response(result.model_dump(mode="json"))


@router.post("/publications/{publication_id}/unpublish")
def unpublish_publication(publication_id: UUID, db: Annotated[Session, Depends(get_db)]) -> dict:
    """Take a publication offline. Reversible with restore."""
    result = publications_service.unpublish(db, publication_id)
    return success_response(result.model_dump(mode="json"))


@router.post("/publications/{publication_id}/restore")
def restore_publication(
    publication_id: UUID,
    db: Annotated[Session, Depends(get_db)],
    locks: Annotated[PublishLockRegistry, Depends(get_publish_locks)],
) -> dict:
    """Bring an unpublished publication back online.

    Fails with E_PUBLICATION_ACTIVE if another version of the slug is live.
    """
    result = publications_service.restore(db, publication_id, locks=locks)
    return success_response(result.model_dump(mode="json"))


@router.get("/publications/{publication_id}/tree")
def get_publication_tree(publication_id: UUID, db: Annotated[Session, Depends(get_db)]) -> dict:
    """Get the document forest of a publication by id."""
    result = publications_service.get_publication_tree(db, publication_id)
    return success_response([node.model_dump(mode="json") for node in result])


@router.get("/publications/{publication_id}/docs/{doc_slug}")
def get_publication_document(
    publication_id: UUID, doc_slug: str, db: Annotated[Session, Depends(get_db)]
) -> dict:
    """Get one document of a publication by id."""
    result = publications_service.get_publication_document(db, publication_id, doc_slug)
    return success_response(result.model_dump(mode="json"))
