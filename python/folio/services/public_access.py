"""Public access gateway.

Resolves anonymous reads against the active publication of a slug only.
An inactive or deleted publication is indistinguishable from a missing one.

Each successful resolve bumps total_views with a single atomic UPDATE;
resolve_document also bumps the snapshot document's view_count. Those
counters are the only columns this module writes.
"""

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from folio.db.models import Publication, PublicationDocument
from folio.db.session import transaction
from folio.errors import ApiErrorCode, NotFoundError
from folio.logging import get_logger
from folio.schemas.publication import PublicationDocumentOut, PublicationOut, PublicationTreeNodeOut
from folio.services.publications import snapshot_document, snapshot_documents, snapshot_tree

logger = get_logger(__name__)


def _active_publication(db: Session, slug: str) -> Publication:
    publication = db.scalar(
        select(Publication).where(
            Publication.slug == slug.strip().lower(),
            Publication.is_active.is_(True),
        )
    )
    if publication is None:
        raise NotFoundError(ApiErrorCode.E_PUBLICATION_NOT_FOUND, "Publication not found")
    return publication


def _count_view(db: Session, publication: Publication) -> None:
    db.execute(
        update(Publication)
        .where(Publication.id == publication.id)
        .values(total_views=Publication.total_views + 1)
        .execution_options(synchronize_session=False)
    )
    db.refresh(publication)


def _count_document_view(db: Session, doc: PublicationDocument) -> None:
    db.execute(
        update(PublicationDocument)
        .where(PublicationDocument.id == doc.id)
        .values(view_count=PublicationDocument.view_count + 1)
        .execution_options(synchronize_session=False)
    )


def resolve_publication(db: Session, slug: str) -> PublicationOut:
    """Resolve the active publication of a slug.

    Raises:
        NotFoundError: If no publication of the slug is active.
    """
    with transaction(db):
        publication = _active_publication(db, slug)
        _count_view(db, publication)

    return PublicationOut.model_validate(publication)


def resolve_tree(db: Session, slug: str) -> list[PublicationTreeNodeOut]:
    """Resolve the ordered document forest of the active publication."""
    with transaction(db):
        publication = _active_publication(db, slug)
        docs = snapshot_documents(db, publication.id)
        _count_view(db, publication)

    return snapshot_tree(docs)


def resolve_document(db: Session, slug: str, doc_slug: str) -> PublicationDocumentOut:
    """Resolve one document of the active publication.

    Raises:
        NotFoundError: If no publication of the slug is active, or the
            snapshot has no document with doc_slug.
    """
    with transaction(db):
        publication = _active_publication(db, slug)
        doc = snapshot_document(db, publication.id, doc_slug)
        _count_view(db, publication)
        _count_document_view(db, doc)

    logger.debug(
        "public_document_viewed",
        publication_id=str(publication.id),
        document_id=str(doc.id),
    )
    return PublicationDocumentOut.model_validate(doc)

