#!/usr/bin/env python
"""Seed development database with a demo space.

Creates a "demo" space with a small document tree and publishes it under
the slug "demo-guide", for local UI testing.

Constraints:
- Refuses to run in staging or prod (FOLIO_ENV check)
- Idempotent: does nothing if the demo space already exists
- Never runs automatically (manual invocation only)

Usage:
    DATABASE_URL=... python scripts/seed_dev.py
"""

import os
import sys

DEMO_SPACE_SLUG = "demo"
DEMO_PUBLICATION_SLUG = "demo-guide"


def main():
    # 1. Environment check (hard fail in staging/prod)
    folio_env = os.getenv("FOLIO_ENV", "local")
    if folio_env not in ("local", "test"):
        print(f"ERROR: seed_dev.py refuses to run in FOLIO_ENV={folio_env}")
        sys.exit(1)

    # 2. Check DATABASE_URL
    if not os.getenv("DATABASE_URL"):
        print("ERROR: DATABASE_URL environment variable must be set")
        sys.exit(1)

    from folio.db.session import get_session_factory
    from folio.errors import NotFoundError
    from folio.schemas.publication import PublishOptions
    from folio.services import documents, publications, spaces

    session_factory = get_session_factory()
    with session_factory() as db:
        # 3. Idempotency check
        try:
            existing = spaces.get_space_by_slug(db, DEMO_SPACE_SLUG)
        except NotFoundError:
            existing = None
        if existing is not None:
            print(f"Demo space already exists: {existing.id}")
            return

        # 4. Live tree
        space = spaces.create_space(db, "Demo", DEMO_SPACE_SLUG, description="Seed data")
        intro = documents.create_document(
            db, space.id, "Introduction", "intro", content="Welcome to the demo space."
        )
        documents.create_document(
            db,
            space.id,
            "Getting started",
            "getting-started",
            content="Create a document, then publish the space.",
            parent_id=intro.id,
        )
        documents.create_document(
            db,
            space.id,
            "Internal notes",
            "internal-notes",
            content="Not part of the public snapshot.",
            parent_id=intro.id,
            is_public=False,
        )
        documents.create_document(
            db, space.id, "FAQ", "faq", content="Questions and answers."
        )

        # 5. Publication
        publication = publications.publish_space(
            db,
            space.id,
            PublishOptions(slug=DEMO_PUBLICATION_SLUG, title="Demo guide"),
        )

    print("Seed complete:")
    print(f"  Space: {space.id} ({DEMO_SPACE_SLUG})")
    print(
        f"  Publication: {publication.id} "
        f"(/p/{DEMO_PUBLICATION_SLUG}, version {publication.version})"
    )


if __name__ == "__main__":
    main()
