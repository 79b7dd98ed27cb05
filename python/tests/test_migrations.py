"""Tests for the Alembic migrations.

Runs against a throwaway SQLite file of its own so upgrade/downgrade never
touch the shared test database.
"""

from pathlib import Path

import pytest
from alembic import command
from alembic.config import Config
from sqlalchemy import inspect

from folio.config import clear_settings_cache
from folio.db.engine import create_db_engine
from folio.db.models import Base

REPO_ROOT = Path(__file__).parent.parent.parent


@pytest.fixture
def migration_db(tmp_path, monkeypatch) -> str:
    url = f"sqlite:///{tmp_path / 'migrations.sqlite3'}"
    monkeypatch.setenv("DATABASE_URL", url)
    clear_settings_cache()
    return url


def _alembic_config() -> Config:
    cfg = Config(str(REPO_ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(REPO_ROOT / "migrations" / "alembic"))
    cfg.attributes["configure_logger"] = False
    return cfg


def _table_names(url: str) -> set[str]:
    engine = create_db_engine(url)
    try:
        return set(inspect(engine).get_table_names())
    finally:
        engine.dispose()


def test_upgrade_head_creates_model_tables(migration_db):
    command.upgrade(_alembic_config(), "head")

    tables = _table_names(migration_db)
    assert set(Base.metadata.tables) <= tables


def test_upgrade_creates_partial_unique_indexes(migration_db):
    command.upgrade(_alembic_config(), "head")

    engine = create_db_engine(migration_db)
    try:
        inspector = inspect(engine)
        document_indexes = {ix["name"]: ix for ix in inspector.get_indexes("documents")}
        publication_indexes = {ix["name"]: ix for ix in inspector.get_indexes("publications")}
    finally:
        engine.dispose()

    assert document_indexes["uix_documents_space_slug_live"]["unique"]
    assert publication_indexes["uix_publications_slug_active"]["unique"]


def test_downgrade_base_drops_everything(migration_db):
    cfg = _alembic_config()
    command.upgrade(cfg, "head")
    command.downgrade(cfg, "base")

    tables = _table_names(migration_db)
    assert not (set(Base.metadata.tables) & tables)


def test_upgrade_is_repeatable_after_downgrade(migration_db):
    cfg = _alembic_config()
    command.upgrade(cfg, "head")
    command.downgrade(cfg, "base")
    command.upgrade(cfg, "head")

    assert set(Base.metadata.tables) <= _table_names(migration_db)
