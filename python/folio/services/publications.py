"""Publication service.

Turns a selected subtree of a space into an immutable, versioned snapshot
and runs the lifecycle of those snapshots:

    (no slug) -> active v1 -> active v2 ... (republish)
    active <-> inactive (unpublish / restore)
    any -> deleted (terminal, tombstoned)

Publishing a slug is serialized by the process-local PublishLockRegistry and
the FOR UPDATE lock on its publication_slots row. The slot also carries the
version counter, so two publishes can never compute the same version.

The snapshot is staged fully in memory before the commit step. The commit
step (deactivate the previous version, insert the new publication and all
its documents, reserve snapshot slugs) is one transaction: readers see the
old snapshot or the new one, never a mix.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from folio.config import get_settings
from folio.db.models import (
    GLOBAL_SCOPE_ID,
    Document,
    Publication,
    PublicationDocument,
    PublicationSlot,
    PublicationTheme,
    PublicationTombstone,
    SlugScope,
    utcnow,
)
from folio.db.session import transaction
from folio.errors import (
    ApiErrorCode,
    ConflictError,
    InvalidRequestError,
    NotFoundError,
    StateError,
)
from folio.logging import get_logger
from folio.schemas.publication import (
    PublicationDetailOut,
    PublicationDocumentOut,
    PublicationTreeNodeOut,
    PublishOptions,
)
from folio.services import slugs, tree
from folio.services.content_stats import reading_time_minutes
from folio.services.locks import PublishLockRegistry, publish_locks
from folio.services.spaces import get_space_or_404

logger = get_logger(__name__)

MAX_TITLE_LENGTH = 255


@dataclass(frozen=True)
class StagedDocument:
    """A snapshot document prepared in memory before the commit step."""

    id: UUID
    original_doc_id: UUID
    parent_id: UUID | None
    title: str
    slug: str
    content: str
    excerpt: str | None
    order_index: int
    word_count: int
    reading_time: int


# =============================================================================
# Staging
# =============================================================================


def stage_snapshot(
    nodes: Sequence[Document], include_private: bool, chars_per_minute: int
) -> list[StagedDocument]:
    """Copy a pre-ordered list of live documents into snapshot records.

    Every included node gets a fresh id. Its parent is remapped to the
    snapshot id of its included parent; a node whose parent was filtered out
    (or lies outside the selection) becomes a snapshot root. Sibling
    positions are renumbered densely in pre-order.

    Args:
        nodes: Live documents in pre-order, parents before children.
        include_private: Keep documents with is_public=False.
        chars_per_minute: Reading speed for reading_time.

    Returns:
        The staged snapshot, in the same pre-order.
    """
    id_map: dict[UUID, UUID] = {}
    next_index: dict[UUID | None, int] = {}
    staged: list[StagedDocument] = []

    for node in nodes:
        if not node.is_public and not include_private:
            continue

        parent_id = id_map.get(node.parent_id) if node.parent_id is not None else None
        order_index = next_index.get(parent_id, 0)
        next_index[parent_id] = order_index + 1

        snapshot_id = uuid4()
        id_map[node.id] = snapshot_id
        staged.append(
            StagedDocument(
                id=snapshot_id,
                original_doc_id=node.id,
                parent_id=parent_id,
                title=node.title,
                slug=node.slug,
                content=node.content,
                excerpt=node.excerpt,
                order_index=order_index,
                word_count=node.word_count,
                reading_time=reading_time_minutes(node.word_count, chars_per_minute),
            )
        )

    return staged


def _snapshot_row(publication_id: UUID, staged: StagedDocument) -> PublicationDocument:
    return PublicationDocument(
        id=staged.id,
        publication_id=publication_id,
        original_doc_id=staged.original_doc_id,
        parent_id=staged.parent_id,
        title=staged.title,
        slug=staged.slug,
        content=staged.content,
        excerpt=staged.excerpt,
        order_index=staged.order_index,
        word_count=staged.word_count,
        reading_time=staged.reading_time,
    )


def _insert_snapshot(db: Session, publication_id: UUID, staged: Sequence[StagedDocument]) -> None:
    for item in staged:
        db.add(_snapshot_row(publication_id, item))


# =============================================================================
# Loading helpers
# =============================================================================


def _load_publication(db: Session, publication_id: UUID, *, for_update: bool = False) -> Publication:
    stmt = select(Publication).where(Publication.id == publication_id)
    if for_update:
        stmt = stmt.with_for_update()
    publication = db.scalar(stmt)
    if publication is None:
        raise NotFoundError(ApiErrorCode.E_PUBLICATION_NOT_FOUND, "Publication not found")
    return publication


def _require_publication(db: Session, publication_id: UUID, *, for_update: bool = False) -> Publication:
    """Load a publication for a lifecycle call; deleted ids are a StateError."""
    if db.get(PublicationTombstone, publication_id) is not None:
        raise StateError("Publication has been deleted")
    return _load_publication(db, publication_id, for_update=for_update)


def _lock_slot(db: Session, slug: str) -> PublicationSlot | None:
    return db.scalar(
        select(PublicationSlot).where(PublicationSlot.slug == slug).with_for_update()
    )


def _validate_title(title: str) -> str:
    title = (title or "").strip()
    if not title or len(title) > MAX_TITLE_LENGTH:
        raise InvalidRequestError(
            ApiErrorCode.E_OPTIONS_INVALID, f"Title must be 1-{MAX_TITLE_LENGTH} characters"
        )
    return title


def _validate_theme(theme: str) -> str:
    try:
        return PublicationTheme(theme).value
    except ValueError as exc:
        raise InvalidRequestError(ApiErrorCode.E_OPTIONS_INVALID, f"Unknown theme: {theme}") from exc


def snapshot_documents(db: Session, publication_id: UUID) -> list[PublicationDocument]:
    """All documents of one snapshot."""
    return list(
        db.scalars(
            select(PublicationDocument).where(PublicationDocument.publication_id == publication_id)
        )
    )


def snapshot_document(db: Session, publication_id: UUID, doc_slug: str) -> PublicationDocument:
    """One snapshot document by slug (case-insensitive)."""
    doc = db.scalar(
        select(PublicationDocument).where(
            PublicationDocument.publication_id == publication_id,
            PublicationDocument.slug == doc_slug.strip().lower(),
        )
    )
    if doc is None:
        raise NotFoundError(ApiErrorCode.E_DOCUMENT_NOT_FOUND, "Document not found")
    return doc


def snapshot_tree(docs: Sequence[PublicationDocument]) -> list[PublicationTreeNodeOut]:
    """Derive the ordered forest of a snapshot."""

    def convert(item: Any) -> PublicationTreeNodeOut:
        doc = item.node
        return PublicationTreeNodeOut(
            id=doc.id,
            title=doc.title,
            slug=doc.slug,
            excerpt=doc.excerpt,
            order_index=doc.order_index,
            children=[convert(child) for child in item.children],
        )

    return [convert(item) for item in tree.build_forest(docs)]


# =============================================================================
# Publish
# =============================================================================


def _claim_global_slug(db: Session, space_id: UUID, slug: str) -> None:
    """Reserve a brand-new public slug for a space."""
    owner = slugs.get_owner(db, SlugScope.global_, GLOBAL_SCOPE_ID, slug)
    if owner == space_id:
        return
    if owner is not None:
        raise ConflictError(
            ApiErrorCode.E_SLUG_TAKEN,
            f"Publication slug '{slug}' is already taken",
            suggestion=slugs.suggest_slug(db, SlugScope.global_, GLOBAL_SCOPE_ID, slug),
        )
    try:
        slugs.reserve(db, SlugScope.global_, GLOBAL_SCOPE_ID, slug, owner_id=space_id)
    except ConflictError as exc:
        raise ConflictError(
            ApiErrorCode.E_PUBLISH_CONFLICT, f"Concurrent publish of '{slug}', retry"
        ) from exc


def _select_nodes(db: Session, space_id: UUID, root_document_id: UUID | None) -> list[Document]:
    if root_document_id is None:
        return tree.space_documents_preorder(db, space_id)
    root = db.get(Document, root_document_id)
    if root is None or root.is_deleted or root.space_id != space_id:
        raise NotFoundError(ApiErrorCode.E_DOCUMENT_NOT_FOUND, "Root document not found in space")
    return tree.subtree_documents(db, root_document_id)


def _publish_locked(
    db: Session,
    space_id: UUID,
    slug: str,
    title: str,
    options: PublishOptions,
    change_summary: str | None,
    source_publication_id: UUID | None,
) -> Publication:
    """Stage and commit one publish. Runs with the (space, slug) lock held."""
    get_space_or_404(db, space_id)
    if source_publication_id is not None:
        _require_publication(db, source_publication_id)

    slot = _lock_slot(db, slug)
    if slot is None:
        _claim_global_slug(db, space_id, slug)
        slot = PublicationSlot(space_id=space_id, slug=slug, last_version=0)
        db.add(slot)
        try:
            db.flush()
        except IntegrityError as exc:
            raise ConflictError(
                ApiErrorCode.E_PUBLISH_CONFLICT, f"Concurrent publish of '{slug}', retry"
            ) from exc
    elif slot.space_id != space_id:
        raise ConflictError(
            ApiErrorCode.E_SLUG_TAKEN,
            f"Publication slug '{slug}' is already taken",
            suggestion=slugs.suggest_slug(db, SlugScope.global_, GLOBAL_SCOPE_ID, slug),
        )

    nodes = _select_nodes(db, space_id, options.root_document_id)
    staged = stage_snapshot(
        nodes, options.include_private, get_settings().reading_chars_per_minute
    )

    now = utcnow()
    db.execute(
        update(Publication)
        .where(Publication.slug == slug, Publication.is_active.is_(True))
        .values(is_active=False, updated_at=now)
    )

    slot.last_version += 1
    slot.updated_at = now
    publication = Publication(
        id=uuid4(),
        space_id=space_id,
        slug=slug,
        version=slot.last_version,
        title=title,
        description=options.description,
        theme=options.theme,
        include_private=options.include_private,
        root_document_id=options.root_document_id,
        change_summary=change_summary,
        is_active=True,
        document_count=len(staged),
        total_views=0,
        published_at=now,
        updated_at=now,
    )
    db.add(publication)
    _insert_snapshot(db, publication.id, staged)
    slugs.reserve_many(
        db, SlugScope.publication, publication.id, [(item.slug, item.id) for item in staged]
    )

    try:
        db.flush()
    except IntegrityError as exc:
        raise ConflictError(
            ApiErrorCode.E_PUBLISH_CONFLICT, f"Concurrent publish of '{slug}', retry"
        ) from exc

    return publication


def publish_space(
    db: Session,
    space_id: UUID,
    options: PublishOptions,
    *,
    change_summary: str | None = None,
    locks: PublishLockRegistry | None = None,
    source_publication_id: UUID | None = None,
) -> PublicationDetailOut:
    """Publish a space (or one subtree of it) under a public slug.

    A brand-new slug starts at version 1. Publishing an existing slug of the
    same space creates the next version and deactivates the previous one.

    Args:
        db: Database session. Must not hold an open write transaction.
        space_id: Space to publish.
        options: Slug, title and selection options; stored on the result.
        change_summary: Optional note recorded on the new version.
        locks: Lock registry (defaults to the process-wide one).
        source_publication_id: Publication being republished, if any.

    Returns:
        The new active publication.

    Raises:
        InvalidRequestError: If the options are malformed.
        NotFoundError: If the space or root document does not exist.
        ConflictError: If the slug belongs to another space, or a concurrent
            publish from another process won the race.
    """
    slug = slugs.normalize_slug(options.slug)
    title = _validate_title(options.title)
    _validate_theme(options.theme)

    settings = get_settings()
    locks = locks or publish_locks

    with locks.hold((space_id, slug), timeout=settings.publish_lock_timeout_s):
        try:
            with transaction(db):
                publication = _publish_locked(
                    db, space_id, slug, title, options, change_summary, source_publication_id
                )
        except BaseException as exc:
            logger.info(
                "publish_rolled_back",
                space_id=str(space_id),
                slug=slug,
                error=type(exc).__name__,
            )
            raise

    logger.info(
        "publication_published",
        publication_id=str(publication.id),
        space_id=str(space_id),
        slug=slug,
        version=publication.version,
        document_count=publication.document_count,
    )
    return PublicationDetailOut.model_validate(publication)


def republish(
    db: Session,
    publication_id: UUID,
    change_summary: str | None = None,
    *,
    locks: PublishLockRegistry | None = None,
) -> PublicationDetailOut:
    """Publish a new version using the options stored on an existing one.

    The source version stays readable by id but is no longer active.

    Raises:
        NotFoundError: If the publication does not exist.
        StateError: If the publication was deleted.
    """
    with transaction(db):
        source = _require_publication(db, publication_id)
        space_id = source.space_id
        options = PublishOptions(
            slug=source.slug,
            title=source.title,
            description=source.description,
            include_private=source.include_private,
            root_document_id=source.root_document_id,
            theme=source.theme,
        )

    return publish_space(
        db,
        space_id,
        options,
        change_summary=change_summary,
        locks=locks,
        source_publication_id=publication_id,
    )


# =============================================================================
# Lifecycle
# =============================================================================


def unpublish(db: Session, publication_id: UUID) -> PublicationDetailOut:
    """Deactivate a publication. Its rows are kept; unpublishing twice is a no-op."""
    with transaction(db):
        publication = _require_publication(db, publication_id, for_update=True)
        was_active = publication.is_active
        if was_active:
            publication.is_active = False
            publication.updated_at = utcnow()

    if was_active:
        logger.info(
            "publication_unpublished",
            publication_id=str(publication_id),
            slug=publication.slug,
            version=publication.version,
        )
    return PublicationDetailOut.model_validate(publication)


def restore(
    db: Session, publication_id: UUID, *, locks: PublishLockRegistry | None = None
) -> PublicationDetailOut:
    """Re-activate an unpublished publication.

    Raises:
        NotFoundError: If the publication does not exist.
        StateError: If the publication was deleted.
        ConflictError: If another publication of the slug is active.
    """
    with transaction(db):
        key = _publication_lock_key(_require_publication(db, publication_id))

    locks = locks or publish_locks
    with locks.hold(key, timeout=get_settings().publish_lock_timeout_s):
        with transaction(db):
            publication = _require_publication(db, publication_id, for_update=True)
            if publication.is_active:
                return PublicationDetailOut.model_validate(publication)

            _lock_slot(db, publication.slug)
            active_id = db.scalar(
                select(Publication.id).where(
                    Publication.slug == publication.slug,
                    Publication.is_active.is_(True),
                    Publication.id != publication.id,
                )
            )
            if active_id is not None:
                raise ConflictError(
                    ApiErrorCode.E_PUBLICATION_ACTIVE,
                    f"Another version of '{publication.slug}' is active",
                )

            publication.is_active = True
            publication.updated_at = utcnow()
            try:
                db.flush()
            except IntegrityError as exc:
                raise ConflictError(
                    ApiErrorCode.E_PUBLICATION_ACTIVE,
                    f"Another version of '{publication.slug}' is active",
                ) from exc

    logger.info(
        "publication_restored",
        publication_id=str(publication_id),
        slug=publication.slug,
        version=publication.version,
    )
    return PublicationDetailOut.model_validate(publication)


def delete_publication(
    db: Session, publication_id: UUID, *, locks: PublishLockRegistry | None = None
) -> None:
    """Irreversibly delete a publication and its snapshot documents.

    Deleting the last remaining version of a slug also frees the slug, so a
    later publish under it starts again at version 1.

    Raises:
        NotFoundError: If the publication does not exist.
        StateError: If the publication was already deleted.
    """
    with transaction(db):
        key = _publication_lock_key(_require_publication(db, publication_id))

    locks = locks or publish_locks
    with locks.hold(key, timeout=get_settings().publish_lock_timeout_s):
        with transaction(db):
            publication = _require_publication(db, publication_id, for_update=True)
            slot = _lock_slot(db, publication.slug)
            slug = publication.slug
            version = publication.version

            slugs.release_scope(db, SlugScope.publication, publication.id)
            db.execute(
                delete(PublicationDocument).where(
                    PublicationDocument.publication_id == publication.id
                )
            )
            db.add(
                PublicationTombstone(
                    publication_id=publication.id,
                    space_id=publication.space_id,
                    slug=slug,
                    version=version,
                )
            )
            db.delete(publication)
            db.flush()

            remaining = db.scalar(
                select(func.count()).select_from(Publication).where(Publication.slug == slug)
            )
            if remaining == 0:
                if slot is not None:
                    db.delete(slot)
                slugs.release(db, SlugScope.global_, GLOBAL_SCOPE_ID, slug)

    logger.info(
        "publication_deleted",
        publication_id=str(publication_id),
        slug=slug,
        version=version,
        slug_released=remaining == 0,
    )


def _publication_lock_key(publication: Publication) -> tuple[UUID, str]:
    return (publication.space_id, publication.slug)


def update_publication(
    db: Session,
    publication_id: UUID,
    *,
    title: str | None = None,
    description: str | None = None,
    theme: str | None = None,
) -> PublicationDetailOut:
    """Edit publication metadata. Never touches the snapshot, version or active flag."""
    if title is not None:
        title = _validate_title(title)
    if theme is not None:
        theme = _validate_theme(theme)

    with transaction(db):
        publication = _require_publication(db, publication_id, for_update=True)
        if title is not None:
            publication.title = title
        if description is not None:
            publication.description = description
        if theme is not None:
            publication.theme = theme
        publication.updated_at = utcnow()

    return PublicationDetailOut.model_validate(publication)


# =============================================================================
# Reads (authoring preview, no view accounting)
# =============================================================================


def list_publications(
    db: Session, space_id: UUID, include_inactive: bool = False
) -> list[PublicationDetailOut]:
    """List the publications of a space, newest first."""
    get_space_or_404(db, space_id)
    stmt = select(Publication).where(Publication.space_id == space_id)
    if not include_inactive:
        stmt = stmt.where(Publication.is_active.is_(True))
    stmt = stmt.order_by(Publication.published_at.desc(), Publication.version.desc())
    return [PublicationDetailOut.model_validate(p) for p in db.scalars(stmt)]


def get_publication(db: Session, publication_id: UUID) -> PublicationDetailOut:
    """Get any publication by id, active or not."""
    return PublicationDetailOut.model_validate(_load_publication(db, publication_id))


def get_publication_tree(db: Session, publication_id: UUID) -> list[PublicationTreeNodeOut]:
    """Get the document forest of any publication by id."""
    _load_publication(db, publication_id)
    return snapshot_tree(snapshot_documents(db, publication_id))


def get_publication_document(
    db: Session, publication_id: UUID, doc_slug: str
) -> PublicationDocumentOut:
    """Get one snapshot document of any publication by id."""
    _load_publication(db, publication_id)
    return PublicationDocumentOut.model_validate(snapshot_document(db, publication_id, doc_slug))
