"""Public read routes.

Anonymous, served without the internal header. Only the active publication
of a slug is visible; every successful read counts a view.
"""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from folio.api.deps import get_db
from folio.responses import success_response
from folio.services import public_access

router = APIRouter()


@router.get("/p/{slug}")
def get_public_publication(slug: str, db: Annotated[Session, Depends(get_db)]) -> dict:
    """Get the active publication of a slug."""
    result = public_access.resolve_publication(db, slug)
    return success_response(result.model_dump(mode="json"))


@router.get("/p/{slug}/tree")
def get_public_tree(slug: str, db: Annotated[Session, Depends(get_db)]) -> dict:
    """Get the ordered document forest of the active publication."""
    result = public_access.resolve_tree(db, slug)
    return success_response([node.model_dump(mode="json") for node in result])


@router.get("/p/{slug}/docs/{doc_slug}")
def get_public_document(slug: str, doc_slug: str, db: Annotated[Session, Depends(get_db)]) -> dict:
    """Get one document of the active publication."""
    result = public_access.resolve_document(db, slug, doc_slug)
    return success_response(result.model_dump(mode="json"))
