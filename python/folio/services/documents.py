"""Document store.

Owns CRUD and tree-edge storage for the live documents of a space. All
domain rules of the live hierarchy live here; routes only call these
functions.

Tree mutations (create, move, soft delete, duplicate) lock the owning space
row first and only then load the rows they change, refreshed from the
database, so sibling reindexing within a space is serialized. Validation
always runs before the first write, and each operation is a single
transaction.
"""

from collections.abc import Mapping
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from folio.config import get_settings
from folio.db.models import Document, SlugScope, Space, utcnow
from folio.db.session import transaction
from folio.errors import (
    ApiErrorCode,
    ConflictError,
    CycleError,
    InvalidRequestError,
    NotFoundError,
)
from folio.logging import get_logger
from folio.schemas.document import MAX_BATCH_SIZE, DocumentOut
from folio.schemas.space import SlugAvailabilityOut
from folio.services import slugs
from folio.services.content_stats import count_words, derive_excerpt
from folio.services.spaces import get_space_or_404
from folio.services.tree import (
    ancestor_chain,
    index_children,
    load_live_documents,
    preorder,
    sibling_sort_key,
    subtree_documents,
)

logger = get_logger(__name__)

MAX_TITLE_LENGTH = 255

# Fields an update may change. Everything else is derived or structural.
EDITABLE_FIELDS = frozenset({"title", "slug", "content", "excerpt", "is_public"})


class DeletePolicy(str, Enum):
    """What happens to the descendants of a soft-deleted document."""

    CASCADE = "cascade"


# =============================================================================
# Helpers
# =============================================================================


def _validate_title(title: str) -> str:
    title = (title or "").strip()
    if not title or len(title) > MAX_TITLE_LENGTH:
        raise InvalidRequestError(
            ApiErrorCode.E_TITLE_INVALID, f"Title must be 1-{MAX_TITLE_LENGTH} characters"
        )
    return title


def get_live_document_or_404(db: Session, document_id: UUID, *, for_update: bool = False) -> Document:
    """Load a non-deleted document or raise NotFoundError.

    With for_update the row is locked and the cached instance is refreshed
    from it.
    """
    stmt = select(Document).where(Document.id == document_id, Document.is_deleted.is_(False))
    if for_update:
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
    doc = db.scalar(stmt)
    if doc is None:
        raise NotFoundError(ApiErrorCode.E_DOCUMENT_NOT_FOUND, "Document not found")
    return doc


def _lock_document(db: Session, document_id: UUID) -> tuple[Space, Document]:
    """Lock the owning space, then load the live document under that lock."""
    space_id = db.scalar(select(Document.space_id).where(Document.id == document_id))
    if space_id is None:
        raise NotFoundError(ApiErrorCode.E_DOCUMENT_NOT_FOUND, "Document not found")
    space = get_space_or_404(db, space_id, for_update=True)
    return space, get_live_document_or_404(db, document_id, for_update=True)


def _get_parent_in_space(db: Session, space_id: UUID, parent_id: UUID) -> Document:
    parent = db.scalar(
        select(Document).where(Document.id == parent_id, Document.is_deleted.is_(False))
        .execution_options(populate_existing=True)
    )
    if parent is None or parent.space_id != space_id:
        raise NotFoundError(ApiErrorCode.E_DOCUMENT_NOT_FOUND, "Parent document not found in space")
    return parent


def _siblings(
    db: Session, space_id: UUID, parent_id: UUID | None, exclude_id: UUID | None = None
) -> list[Document]:
    """Live documents sharing a parent, in sibling order."""
    stmt = select(Document).where(Document.space_id == space_id, Document.is_deleted.is_(False))
    if parent_id is None:
        stmt = stmt.where(Document.parent_id.is_(None))
    else:
        stmt = stmt.where(Document.parent_id == parent_id)
    if exclude_id is not None:
        stmt = stmt.where(Document.id != exclude_id)
    stmt = stmt.execution_options(populate_existing=True)
    return sorted(db.scalars(stmt), key=sibling_sort_key)


def _reindex(siblings: list[Document]) -> None:
    """Rewrite order_index to 0..n-1 following list order."""
    for index, doc in enumerate(siblings):
        if doc.order_index != index:
            doc.order_index = index


def _next_order_index(db: Session, space_id: UUID, parent_id: UUID | None) -> int:
    siblings = _siblings(db, space_id, parent_id)
    if not siblings:
        return 0
    return max(doc.order_index for doc in siblings) + 1


def _delete_policy(policy: DeletePolicy | str) -> DeletePolicy:
    try:
        return DeletePolicy(policy)
    except ValueError as exc:
        raise InvalidRequestError(
            ApiErrorCode.E_INVALID_REQUEST, f"Unsupported delete policy: {policy}"
        ) from exc


def _tombstone(db: Session, space_id: UUID, document_ids: list[UUID]) -> None:
    """Mark documents deleted and release their space-scope slugs."""
    now = utcnow()
    db.execute(
        update(Document)
        .where(Document.id.in_(document_ids))
        .values(is_deleted=True, deleted_at=now, updated_at=now)
        .execution_options(synchronize_session="fetch")
    )
    slugs.release_owned(db, SlugScope.space, space_id, document_ids)


def _batch_ids(document_ids: list[UUID]) -> list[UUID]:
    """Deduplicate a batch of ids, keeping first-seen order."""
    ids = list(dict.fromkeys(document_ids))
    if not ids or len(ids) > MAX_BATCH_SIZE:
        raise InvalidRequestError(
            ApiErrorCode.E_INVALID_REQUEST, f"A batch must name 1-{MAX_BATCH_SIZE} documents"
        )
    return ids


def _lock_batch(db: Session, space_id: UUID, ids: list[UUID]) -> list[Document]:
    """Lock the space, then load every named live document of it.

    Raises:
        NotFoundError: If the space is missing, or any id is not a live
            document of the space.
    """
    get_space_or_404(db, space_id, for_update=True)
    docs = db.scalars(
        select(Document)
        .where(
            Document.id.in_(ids),
            Document.space_id == space_id,
            Document.is_deleted.is_(False),
        )
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    by_id = {doc.id: doc for doc in docs}
    missing = [str(doc_id) for doc_id in ids if doc_id not in by_id]
    if missing:
        raise NotFoundError(
            ApiErrorCode.E_DOCUMENT_NOT_FOUND,
            f"Documents not found in space: {', '.join(missing)}",
        )
    return [by_id[doc_id] for doc_id in ids]


def _flush(db: Session, slug: str) -> None:
    """Flush pending rows, mapping a live-slug constraint hit to ConflictError."""
    try:
        db.flush()
    except IntegrityError as exc:
        raise ConflictError(ApiErrorCode.E_SLUG_TAKEN, f"Slug '{slug}' is already taken") from exc


def _insert_document(
    db: Session,
    space: Space,
    *,
    title: str,
    slug: str,
    content: str,
    excerpt: str | None,
    parent_id: UUID | None,
    is_public: bool,
) -> Document:
    """Reserve the slug and insert a new leaf after its last sibling."""
    document_id = uuid4()
    slug = slugs.reserve(db, SlugScope.space, space.id, slug, owner_id=document_id)
    doc = Document(
        id=document_id,
        space_id=space.id,
        parent_id=parent_id,
        title=title,
        slug=slug,
        content=content,
        excerpt=excerpt if excerpt is not None else derive_excerpt(content, get_settings().excerpt_length),
        order_index=_next_order_index(db, space.id, parent_id),
        is_public=is_public,
        word_count=count_words(content),
    )
    db.add(doc)
    _flush(db, slug)
    return doc


# =============================================================================
# Reads
# =============================================================================


def get_document(db: Session, document_id: UUID) -> DocumentOut:
    """Get a live document by id."""
    return DocumentOut.model_validate(get_live_document_or_404(db, document_id))


def get_document_by_slug(db: Session, space_id: UUID, slug: str) -> DocumentOut:
    """Get a live document by its slug within a space (case-insensitive)."""
    get_space_or_404(db, space_id)
    doc = db.scalar(
        select(Document).where(
            Document.space_id == space_id,
            Document.slug == slug.strip().lower(),
            Document.is_deleted.is_(False),
        )
    )
    if doc is None:
        raise NotFoundError(ApiErrorCode.E_DOCUMENT_NOT_FOUND, "Document not found")
    return DocumentOut.model_validate(doc)


def list_children(db: Session, space_id: UUID, parent_id: UUID | None = None) -> list[DocumentOut]:
    """List the live children of a parent in sibling order.

    parent_id None lists the root documents of the space.
    """
    get_space_or_404(db, space_id)
    if parent_id is not None:
        _get_parent_in_space(db, space_id, parent_id)
    return [DocumentOut.model_validate(doc) for doc in _siblings(db, space_id, parent_id)]


def list_document_children(db: Session, document_id: UUID) -> list[DocumentOut]:
    """List the live children of a document in sibling order."""
    parent = get_live_document_or_404(db, document_id)
    return [DocumentOut.model_validate(doc) for doc in _siblings(db, parent.space_id, parent.id)]


def list_subtree(db: Session, root_id: UUID) -> list[DocumentOut]:
    """List a document and its live descendants in pre-order."""
    return [DocumentOut.model_validate(doc) for doc in subtree_documents(db, root_id)]


def check_slug_availability(db: Session, space_id: UUID, slug: str) -> SlugAvailabilityOut:
    """Report whether a document slug is free in a space.

    Raises:
        InvalidRequestError: If the slug is malformed.
        NotFoundError: If the space does not exist.
    """
    slug = slugs.normalize_slug(slug)
    get_space_or_404(db, space_id)
    if slugs.is_available(db, SlugScope.space, space_id, slug):
        return SlugAvailabilityOut(slug=slug, available=True)
    return SlugAvailabilityOut(
        slug=slug,
        available=False,
        suggestion=slugs.suggest_slug(db, SlugScope.space, space_id, slug),
    )


# =============================================================================
# Mutations
# =============================================================================


def create_document(
    db: Session,
    space_id: UUID,
    title: str,
    slug: str,
    content: str = "",
    parent_id: UUID | None = None,
    excerpt: str | None = None,
    is_public: bool = True,
) -> DocumentOut:
    """Create a document as the last child of its parent.

    Args:
        db: Database session.
        space_id: Owning space.
        title: Title (trimmed, 1-255 characters).
        slug: Slug, unique among live documents of the space.
        content: Document body.
        parent_id: Parent document, or None for a root document.
        excerpt: Explicit excerpt; derived from content when omitted.
        is_public: Whether the document is included in default publishes.

    Raises:
        InvalidRequestError: If the title or slug is malformed.
        NotFoundError: If the space or parent does not exist.
        ConflictError: If the slug is taken; carries a suggested alternative.
    """
    title = _validate_title(title)
    slug = slugs.normalize_slug(slug)

    with transaction(db):
        space = get_space_or_404(db, space_id, for_update=True)
        if parent_id is not None:
            _get_parent_in_space(db, space_id, parent_id)
        doc = _insert_document(
            db,
            space,
            title=title,
            slug=slug,
            content=content,
            excerpt=excerpt,
            parent_id=parent_id,
            is_public=is_public,
        )

    logger.info(
        "document_created",
        document_id=str(doc.id),
        space_id=str(space_id),
        parent_id=str(parent_id) if parent_id else None,
        order_index=doc.order_index,
    )
    return DocumentOut.model_validate(doc)


def update_document(
    db: Session,
    document_id: UUID,
    changes: Mapping[str, Any],
    expected_revision: int | None = None,
) -> DocumentOut:
    """Apply a partial update to a live document.

    Content changes refresh word_count, and refresh the excerpt too unless it
    was set explicitly (an excerpt that differs from the derived one is kept).
    Passing excerpt=None re-derives it. Every update with changes bumps the
    revision.

    Args:
        db: Database session.
        document_id: Document to update.
        changes: Subset of title, slug, content, excerpt, is_public.
        expected_revision: When given, the update fails unless the document is
            still at this revision.

    Raises:
        InvalidRequestError: For unknown fields or malformed title/slug.
        NotFoundError: If the document is missing or deleted.
        ConflictError: On slug collision or revision mismatch.
    """
    unknown = set(changes) - EDITABLE_FIELDS
    if unknown:
        raise InvalidRequestError(
            ApiErrorCode.E_INVALID_REQUEST, f"Unknown fields: {', '.join(sorted(unknown))}"
        )
    changes = dict(changes)
    if "title" in changes:
        changes["title"] = _validate_title(changes["title"])
    if "slug" in changes:
        changes["slug"] = slugs.normalize_slug(changes["slug"])
    if "content" in changes and changes["content"] is None:
        raise InvalidRequestError(ApiErrorCode.E_INVALID_REQUEST, "Content cannot be null")
    if "is_public" in changes and changes["is_public"] is None:
        raise InvalidRequestError(ApiErrorCode.E_INVALID_REQUEST, "is_public cannot be null")

    excerpt_length = get_settings().excerpt_length

    with transaction(db):
        doc = get_live_document_or_404(db, document_id, for_update=True)

        if expected_revision is not None and doc.revision != expected_revision:
            raise ConflictError(
                ApiErrorCode.E_REVISION_MISMATCH,
                f"Document is at revision {doc.revision}, expected {expected_revision}",
            )

        if not changes:
            return DocumentOut.model_validate(doc)

        new_slug = changes.get("slug")
        if new_slug is not None and new_slug != doc.slug:
            slugs.reserve(db, SlugScope.space, doc.space_id, new_slug, owner_id=doc.id)
            slugs.release(db, SlugScope.space, doc.space_id, doc.slug)
            doc.slug = new_slug

        if "title" in changes:
            doc.title = changes["title"]
        if "is_public" in changes:
            doc.is_public = changes["is_public"]

        if "content" in changes:
            excerpt_was_derived = doc.excerpt == derive_excerpt(doc.content, excerpt_length)
            doc.content = changes["content"]
            doc.word_count = count_words(doc.content)
            if "excerpt" not in changes and excerpt_was_derived:
                doc.excerpt = derive_excerpt(doc.content, excerpt_length)

        if "excerpt" in changes:
            excerpt = changes["excerpt"]
            doc.excerpt = excerpt if excerpt is not None else derive_excerpt(doc.content, excerpt_length)

        doc.revision += 1
        doc.updated_at = utcnow()
        _flush(db, doc.slug)

    logger.info(
        "document_updated",
        document_id=str(doc.id),
        fields=sorted(changes),
        revision=doc.revision,
    )
    return DocumentOut.model_validate(doc)


def set_visibility(db: Session, document_id: UUID, is_public: bool) -> DocumentOut:
    """Toggle the public flag of a document."""
    return update_document(db, document_id, {"is_public": is_public})


def move_document(
    db: Session,
    document_id: UUID,
    new_parent_id: UUID | None,
    new_order_index: int | None = None,
) -> DocumentOut:
    """Move a document under a new parent and/or to a new sibling position.

    The destination siblings are rewritten to 0..n-1 with the moved document
    at new_order_index (clamped to the group size; None appends). When the
    parent changes, the old sibling group is compacted too.

    Raises:
        InvalidRequestError: If new_order_index is negative.
        NotFoundError: If the document or the new parent is missing, deleted,
            or in another space.
        CycleError: If the new parent is the document or one of its
            descendants.
    """
    if new_order_index is not None and new_order_index < 0:
        raise InvalidRequestError(ApiErrorCode.E_INVALID_REQUEST, "order_index must be >= 0")

    with transaction(db):
        _, doc = _lock_document(db, document_id)

        if new_parent_id is not None:
            if new_parent_id == doc.id:
                raise CycleError("Document cannot be its own parent")
            parent = _get_parent_in_space(db, doc.space_id, new_parent_id)
            live = load_live_documents(db, doc.space_id, refresh=True)
            by_id = {node.id: node for node in live}
            if any(ancestor.id == doc.id for ancestor in ancestor_chain(parent, by_id)):
                raise CycleError()

        old_parent_id = doc.parent_id
        destination = _siblings(db, doc.space_id, new_parent_id, exclude_id=doc.id)
        position = len(destination) if new_order_index is None else min(new_order_index, len(destination))
        destination.insert(position, doc)

        if old_parent_id != new_parent_id:
            _reindex(_siblings(db, doc.space_id, old_parent_id, exclude_id=doc.id))
            doc.parent_id = new_parent_id
        _reindex(destination)
        doc.updated_at = utcnow()

    logger.info(
        "document_moved",
        document_id=str(doc.id),
        old_parent_id=str(old_parent_id) if old_parent_id else None,
        new_parent_id=str(new_parent_id) if new_parent_id else None,
        order_index=doc.order_index,
    )
    return DocumentOut.model_validate(doc)


def soft_delete_document(
    db: Session, document_id: UUID, policy: DeletePolicy | str = DeletePolicy.CASCADE
) -> list[UUID]:
    """Tombstone a document together with its whole subtree.

    The space-scope slugs of every tombstoned document are released and the
    remaining siblings of the deleted document are compacted.

    Returns:
        Ids of the tombstoned documents, in pre-order.

    Raises:
        InvalidRequestError: If the policy is not supported.
        NotFoundError: If the document is missing or already deleted.
    """
    policy = _delete_policy(policy)

    with transaction(db):
        _, doc = _lock_document(db, document_id)

        deleted_ids = [node.id for node in subtree_documents(db, doc.id, refresh=True)]
        _tombstone(db, doc.space_id, deleted_ids)
        _reindex(_siblings(db, doc.space_id, doc.parent_id, exclude_id=doc.id))

    logger.info(
        "document_deleted",
        document_id=str(document_id),
        policy=policy.value,
        tombstoned=len(deleted_ids),
    )
    return deleted_ids


def duplicate_document(
    db: Session,
    document_id: UUID,
    new_title: str | None = None,
    new_slug: str | None = None,
) -> DocumentOut:
    """Copy a single document as its next sibling.

    Children are not copied. The slug defaults to the first free numbered
    variant of the source slug.

    Raises:
        NotFoundError: If the source is missing or deleted.
        InvalidRequestError: If new_title or new_slug is malformed.
        ConflictError: If new_slug is taken.
    """
    if new_title is not None:
        new_title = _validate_title(new_title)
    if new_slug is not None:
        new_slug = slugs.normalize_slug(new_slug)

    with transaction(db):
        space, source = _lock_document(db, document_id)

        slug = new_slug or slugs.suggest_slug(db, SlugScope.space, space.id, source.slug)
        if slug is None:
            raise ConflictError(ApiErrorCode.E_SLUG_TAKEN, "No free slug variant available")
        title = new_title or _validate_title(f"{source.title} (copy)"[:MAX_TITLE_LENGTH])

        copy = _insert_document(
            db,
            space,
            title=title,
            slug=slug,
            content=source.content,
            excerpt=source.excerpt,
            parent_id=source.parent_id,
            is_public=source.is_public,
        )

        siblings = _siblings(db, space.id, source.parent_id, exclude_id=copy.id)
        siblings.insert(siblings.index(source) + 1, copy)
        _reindex(siblings)

    logger.info("document_duplicated", source_id=str(document_id), document_id=str(copy.id))
    return DocumentOut.model_validate(copy)


def batch_delete_documents(
    db: Session,
    space_id: UUID,
    document_ids: list[UUID],
    policy: DeletePolicy | str = DeletePolicy.CASCADE,
) -> list[UUID]:
    """Tombstone several documents of a space, with their subtrees, at once.

    All-or-nothing: if any id is not a live document of the space nothing is
    deleted. Ids inside another named document's subtree are covered by it.

    Returns:
        Ids of every tombstoned document, in pre-order per named root.

    Raises:
        InvalidRequestError: If the batch is empty, too large, or the policy
            is not supported.
        NotFoundError: If the space or any named document is missing.
    """
    ids = _batch_ids(document_ids)
    policy = _delete_policy(policy)

    with transaction(db):
        requested = _lock_batch(db, space_id, ids)

        live = load_live_documents(db, space_id, refresh=True)
        by_id = {node.id: node for node in live}
        named = set(ids)
        roots = [
            doc
            for doc in requested
            if not any(ancestor.id in named for ancestor in ancestor_chain(doc, by_id)[:-1])
        ]
        deleted_ids = [node.id for node in preorder(roots, index_children(live))]
        _tombstone(db, space_id, deleted_ids)

        for parent_id in dict.fromkeys(root.parent_id for root in roots):
            _reindex(_siblings(db, space_id, parent_id))

    logger.info(
        "documents_batch_deleted",
        space_id=str(space_id),
        policy=policy.value,
        requested=len(ids),
        tombstoned=len(deleted_ids),
    )
    return deleted_ids


def batch_set_visibility(
    db: Session, space_id: UUID, document_ids: list[UUID], is_public: bool
) -> list[DocumentOut]:
    """Set the public flag of several documents of a space at once.

    All-or-nothing like batch_delete_documents. Documents whose flag already
    matches are left untouched; the others get a new revision.

    Raises:
        InvalidRequestError: If the batch is empty or too large.
        NotFoundError: If the space or any named document is missing.
    """
    ids = _batch_ids(document_ids)

    with transaction(db):
        docs = _lock_batch(db, space_id, ids)
        now = utcnow()
        changed = 0
        for doc in docs:
            if doc.is_public != is_public:
                doc.is_public = is_public
                doc.revision += 1
                doc.updated_at = now
                changed += 1

    logger.info(
        "documents_batch_visibility",
        space_id=str(space_id),
        is_public=is_public,
        requested=len(ids),
        changed=changed,
    )
    return [DocumentOut.model_validate(doc) for doc in docs]
