"""Folio schema - spaces, documents, slug registry, publications

Revision ID: 0001
Revises:
Create Date: 2026-10-19

Creates the live document tree, the scoped slug registry and the
versioned publication snapshots. Mirrors folio.db.models.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # ==========================================================================
    # spaces table
    # ==========================================================================
    op.create_table(
        "spaces",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("slug", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_public", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("slug", name="uix_spaces_slug"),
    )

    # ==========================================================================
    # documents table (live tree)
    # ==========================================================================
    op.create_table(
        "documents",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("space_id", sa.Uuid(), nullable=False),
        sa.Column("parent_id", sa.Uuid(), nullable=True),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("slug", sa.Text(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("excerpt", sa.Text(), nullable=True),
        sa.Column("order_index", sa.Integer(), nullable=False),
        sa.Column("is_public", sa.Boolean(), nullable=False),
        sa.Column("is_deleted", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("word_count", sa.Integer(), nullable=False),
        sa.Column("revision", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["space_id"], ["spaces.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["parent_id"], ["documents.id"], ondelete="CASCADE"),
        sa.CheckConstraint("order_index >= 0", name="ck_documents_order_index_nonneg"),
        sa.CheckConstraint(
            "parent_id IS NULL OR parent_id <> id", name="ck_documents_parent_nonself"
        ),
    )

    # Partial unique index: live slugs are unique per space, tombstones free them
    op.create_index(
        "uix_documents_space_slug_live",
        "documents",
        ["space_id", "slug"],
        unique=True,
        postgresql_where=sa.text("is_deleted = false"),
        sqlite_where=sa.text("is_deleted = false"),
    )
    op.create_index("idx_documents_space_parent", "documents", ["space_id", "parent_id"])

    # ==========================================================================
    # slug_reservations table
    # ==========================================================================
    op.create_table(
        "slug_reservations",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("scope", sa.Text(), nullable=False),
        sa.Column("scope_id", sa.Uuid(), nullable=False),
        sa.Column("slug", sa.Text(), nullable=False),
        sa.Column("owner_id", sa.Uuid(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "scope IN ('space', 'publication', 'global')", name="ck_slug_reservations_scope"
        ),
        sa.UniqueConstraint("scope", "scope_id", "slug", name="uix_slug_reservations_scope_slug"),
    )

    # ==========================================================================
    # publication_slots table (per-slug lock row and version counter)
    # ==========================================================================
    op.create_table(
        "publication_slots",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("space_id", sa.Uuid(), nullable=False),
        sa.Column("slug", sa.Text(), nullable=False),
        sa.Column("last_version", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["space_id"], ["spaces.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("slug", name="uix_publication_slots_slug"),
        sa.CheckConstraint("last_version >= 0", name="ck_publication_slots_version_nonneg"),
    )

    # ==========================================================================
    # publications table
    # ==========================================================================
    op.create_table(
        "publications",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("space_id", sa.Uuid(), nullable=False),
        sa.Column("slug", sa.Text(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("theme", sa.Text(), nullable=False),
        sa.Column("include_private", sa.Boolean(), nullable=False),
        sa.Column("root_document_id", sa.Uuid(), nullable=True),
        sa.Column("change_summary", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("document_count", sa.Integer(), nullable=False),
        sa.Column("total_views", sa.Integer(), nullable=False),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["space_id"], ["spaces.id"], ondelete="CASCADE"),
        sa.CheckConstraint("version >= 1", name="ck_publications_version_positive"),
        sa.CheckConstraint("total_views >= 0", name="ck_publications_total_views_nonneg"),
        sa.CheckConstraint(
            "theme IN ('default', 'dark', 'minimal')", name="ck_publications_theme"
        ),
        sa.UniqueConstraint("slug", "version", name="uix_publications_slug_version"),
    )

    # Partial unique index: at most one active publication per slug
    op.create_index(
        "uix_publications_slug_active",
        "publications",
        ["slug"],
        unique=True,
        postgresql_where=sa.text("is_active = true"),
        sqlite_where=sa.text("is_active = true"),
    )
    op.create_index("idx_publications_space", "publications", ["space_id", "published_at"])

    # ==========================================================================
    # publication_documents table (immutable snapshot rows)
    # ==========================================================================
    op.create_table(
        "publication_documents",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("publication_id", sa.Uuid(), nullable=False),
        sa.Column("original_doc_id", sa.Uuid(), nullable=False),
        sa.Column("parent_id", sa.Uuid(), nullable=True),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("slug", sa.Text(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("excerpt", sa.Text(), nullable=True),
        sa.Column("order_index", sa.Integer(), nullable=False),
        sa.Column("word_count", sa.Integer(), nullable=False),
        sa.Column("reading_time", sa.Integer(), nullable=False),
        sa.Column("view_count", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["publication_id"], ["publications.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("publication_id", "slug", name="uix_publication_documents_slug"),
    )
    op.create_index(
        "idx_publication_documents_parent",
        "publication_documents",
        ["publication_id", "parent_id"],
    )

    # ==========================================================================
    # publication_tombstones table
    # ==========================================================================
    op.create_table(
        "publication_tombstones",
        sa.Column("publication_id", sa.Uuid(), nullable=False),
        sa.Column("space_id", sa.Uuid(), nullable=False),
        sa.Column("slug", sa.Text(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("publication_id"),
    )


def downgrade() -> None:
    # Drop tables in reverse order (respecting foreign key dependencies)
    op.drop_table("publication_tombstones")
    op.drop_index("idx_publication_documents_parent", table_name="publication_documents")
    op.drop_table("publication_documents")
    op.drop_index("idx_publications_space", table_name="publications")
    op.drop_index("uix_publications_slug_active", table_name="publications")
    op.drop_table("publications")
    op.drop_table("publication_slots")
    op.drop_table("slug_reservations")
    op.drop_index("idx_documents_space_parent", table_name="documents")
    op.drop_index("uix_documents_space_slug_live", table_name="documents")
    op.drop_table("documents")
    op.drop_table("spaces")
