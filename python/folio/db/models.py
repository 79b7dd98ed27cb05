"""SQLAlchemy ORM models for Folio.

Defines all database tables using SQLAlchemy 2.x declarative patterns.
Column types are the portable generic ones (Uuid, DateTime) so the same
metadata runs on PostgreSQL in deployments and SQLite in the test-suite.

The uniqueness rules of the document hierarchy and publication engine are
enforced here as constraints, independently of the service-level checks:
- live document slugs are unique per space
- at most one active publication per slug
- publication versions are unique per slug
- snapshot document slugs are unique per publication
"""

from datetime import UTC, datetime
from enum import Enum as PyEnum
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Text,
    UniqueConstraint,
    Uuid,
    false,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
    """Timezone-aware current time used for all timestamp defaults."""
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# =============================================================================
# Enums
# =============================================================================


class SlugScope(str, PyEnum):
    """Uniqueness scopes handled by the slug registry.

    space: live documents, scope_id is the space id
    publication: snapshot documents, scope_id is the publication id
    global_: public publication slugs, scope_id is GLOBAL_SCOPE_ID
    """

    space = "space"
    publication = "publication"
    global_ = "global"


class PublicationTheme(str, PyEnum):
    """Presentation themes a publication may request."""

    default = "default"
    dark = "dark"
    minimal = "minimal"


# Scope id shared by every global reservation.
GLOBAL_SCOPE_ID = UUID(int=0)


# =============================================================================
# Live tree
# =============================================================================


class Space(Base):
    """Space model - top-level workspace owning a tree of documents."""

    __tablename__ = "spaces"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    slug: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_public: Mapped[bool] = mapped_column(Boolean, server_default=false(), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    __table_args__ = (UniqueConstraint("slug", name="uix_spaces_slug"),)


class Document(Base):
    """Document model - one node of the live, mutable tree of a space.

    Children are never stored on the parent; they are derived from parent_id.
    Deletion is a tombstone (is_deleted) so published snapshots keep a
    traceable original_doc_id.
    """

    __tablename__ = "documents"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    space_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("spaces.id", ondelete="CASCADE"), nullable=False
    )
    parent_id: Mapped[UUID | None] = mapped_column(
        Uuid, ForeignKey("documents.id", ondelete="CASCADE"), nullable=True
    )
    title: Mapped[str] = mapped_column(Text, nullable=False)
    slug: Mapped[str] = mapped_column(Text, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    excerpt: Mapped[str | None] = mapped_column(Text, nullable=True)
    order_index: Mapped[int] = mapped_column(Integer, nullable=False)
    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_deleted: Mapped[bool] = mapped_column(
        Boolean, server_default=false(), default=False, nullable=False
    )
    word_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    revision: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint("order_index >= 0", name="ck_documents_order_index_nonneg"),
        CheckConstraint(
            "parent_id IS NULL OR parent_id <> id", name="ck_documents_parent_nonself"
        ),
        Index(
            "uix_documents_space_slug_live",
            "space_id",
            "slug",
            unique=True,
            postgresql_where=text("is_deleted = false"),
            sqlite_where=text("is_deleted = false"),
        ),
        Index("idx_documents_space_parent", "space_id", "parent_id"),
    )


# =============================================================================
# Slug registry
# =============================================================================


class SlugReservation(Base):
    """A slug held within a scope.

    Inserting a row is the atomic check-and-reserve; the unique constraint
    decides races between concurrent reservations.
    """

    __tablename__ = "slug_reservations"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    scope: Mapped[str] = mapped_column(Text, nullable=False)
    scope_id: Mapped[UUID] = mapped_column(Uuid, nullable=False)
    slug: Mapped[str] = mapped_column(Text, nullable=False)
    owner_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    __table_args__ = (
        CheckConstraint(
            "scope IN ('space', 'publication', 'global')", name="ck_slug_reservations_scope"
        ),
        UniqueConstraint("scope", "scope_id", "slug", name="uix_slug_reservations_scope_slug"),
    )


# =============================================================================
# Publications
# =============================================================================


class PublicationSlot(Base):
    """Per-(space, slug) lock row and version counter.

    last_version only ever grows while the slot exists, so a version number
    is never handed out twice for the same slug.
    """

    __tablename__ = "publication_slots"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    space_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("spaces.id", ondelete="CASCADE"), nullable=False
    )
    slug: Mapped[str] = mapped_column(Text, nullable=False)
    last_version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    __table_args__ = (
        UniqueConstraint("slug", name="uix_publication_slots_slug"),
        CheckConstraint("last_version >= 0", name="ck_publication_slots_version_nonneg"),
    )


class Publication(Base):
    """Publication model - one immutable, versioned snapshot of a subtree."""

    __tablename__ = "publications"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    space_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("spaces.id", ondelete="CASCADE"), nullable=False
    )
    slug: Mapped[str] = mapped_column(Text, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    theme: Mapped[str] = mapped_column(Text, nullable=False, default=PublicationTheme.default.value)
    include_private: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    root_document_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)
    change_summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    document_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_views: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    published_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    __table_args__ = (
        CheckConstraint("version >= 1", name="ck_publications_version_positive"),
        CheckConstraint("total_views >= 0", name="ck_publications_total_views_nonneg"),
        CheckConstraint(
            "theme IN ('default', 'dark', 'minimal')", name="ck_publications_theme"
        ),
        UniqueConstraint("slug", "version", name="uix_publications_slug_version"),
        Index(
            "uix_publications_slug_active",
            "slug",
            unique=True,
            postgresql_where=text("is_active = true"),
            sqlite_where=text("is_active = true"),
        ),
        Index("idx_publications_space", "space_id", "published_at"),
    )


class PublicationDocument(Base):
    """One document as copied into a specific publication version.

    parent_id points at another row of the same publication. original_doc_id
    is a traceability link only; the live document may change or vanish.
    """

    __tablename__ = "publication_documents"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    publication_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("publications.id", ondelete="CASCADE"), nullable=False
    )
    original_doc_id: Mapped[UUID] = mapped_column(Uuid, nullable=False)
    parent_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    slug: Mapped[str] = mapped_column(Text, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    excerpt: Mapped[str | None] = mapped_column(Text, nullable=True)
    order_index: Mapped[int] = mapped_column(Integer, nullable=False)
    word_count: Mapped[int] = mapped_column(Integer, nullable=False)
    reading_time: Mapped[int] = mapped_column(Integer, nullable=False)
    view_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    __table_args__ = (
        UniqueConstraint("publication_id", "slug", name="uix_publication_documents_slug"),
        Index("idx_publication_documents_parent", "publication_id", "parent_id"),
    )


class PublicationTombstone(Base):
    """Record of a deleted publication.

    Lets lifecycle calls on a deleted id fail as an invalid state rather than
    an unknown id.
    """

    __tablename__ = "publication_tombstones"

    publication_id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    space_id: Mapped[UUID] = mapped_column(Uuid, nullable=False)
    slug: Mapped[str] = mapped_column(Text, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    deleted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
