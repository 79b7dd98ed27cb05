"""End-to-end route tests through the HTTP surface.

Walks the authoring and publishing flow against api_client:
build a tree, publish, edit, republish, reject a cyclic move, keep versions
distinct, and hide unpublished snapshots from public readers.
"""

import pytest
from fastapi.testclient import TestClient


def _data(response, status: int = 200):
    assert response.status_code == status, response.text
    return response.json()["data"]


def _error(response, status: int) -> dict:
    assert response.status_code == status, response.text
    return response.json()["error"]


@pytest.fixture
def demo(api_client: TestClient) -> dict:
    """A "demo" space with intro -> details."""
    space = _data(api_client.post("/spaces", json={"name": "Demo", "slug": "demo"}), 201)
    intro = _data(
        api_client.post(
            f"/spaces/{space['id']}/documents",
            json={"title": "Intro", "slug": "intro", "content": "Hello readers"},
        ),
        201,
    )
    details = _data(
        api_client.post(
            f"/spaces/{space['id']}/documents",
            json={"title": "Details", "slug": "details", "parent_id": intro["id"]},
        ),
        201,
    )
    return {"space": space, "intro": intro, "details": details}


class TestPublishingFlow:
    """The canonical authoring and publishing scenarios."""

    def test_tree_has_one_root_with_one_child(self, api_client: TestClient, demo: dict):
        tree = _data(api_client.get(f"/spaces/{demo['space']['id']}/tree"))

        assert len(tree) == 1
        assert tree[0]["slug"] == "intro"
        assert tree[0]["dangling"] is False
        assert [child["slug"] for child in tree[0]["children"]] == ["details"]

    def test_publish_then_republish(self, api_client: TestClient, demo: dict):
        space_id = demo["space"]["id"]

        v1 = _data(
            api_client.post(f"/spaces/{space_id}/publish", json={"slug": "guide", "title": "Guide"}),
            201,
        )
        assert (v1["slug"], v1["version"], v1["is_active"], v1["document_count"]) == (
            "guide",
            1,
            True,
            2,
        )

        _data(api_client.patch(f"/documents/{demo['intro']['id']}", json={"content": "Updated text"}))
        v2 = _data(
            api_client.post(
                f"/publications/{v1['id']}/republish", json={"change_summary": "Rewrote intro"}
            ),
            201,
        )
        assert (v2["slug"], v2["version"], v2["is_active"]) == ("guide", 2, True)

        old = _data(api_client.get(f"/publications/{v1['id']}"))
        assert old["is_active"] is False
        old_intro = _data(api_client.get(f"/publications/{v1['id']}/docs/intro"))
        new_intro = _data(api_client.get(f"/publications/{v2['id']}/docs/intro"))
        assert old_intro["content"] == "Hello readers"
        assert new_intro["content"] == "Updated text"

    def test_move_under_own_child_rejected(self, api_client: TestClient, demo: dict):
        response = api_client.post(
            f"/documents/{demo['intro']['id']}/move", json={"parent_id": demo["details"]["id"]}
        )

        assert _error(response, 409)["code"] == "E_CYCLE"
        tree = _data(api_client.get(f"/spaces/{demo['space']['id']}/tree"))
        assert [node["slug"] for node in tree] == ["intro"]
        assert [child["slug"] for child in tree[0]["children"]] == ["details"]

    def test_successive_publishes_get_distinct_versions(self, api_client: TestClient, demo: dict):
        space_id = demo["space"]["id"]
        body = {"slug": "guide", "title": "Guide"}

        versions = [
            _data(api_client.post(f"/spaces/{space_id}/publish", json=body), 201)["version"]
            for _ in range(4)
        ]

        assert versions == [1, 2, 3, 4]
        listed = _data(
            api_client.get(f"/spaces/{space_id}/publications", params={"include_inactive": True})
        )
        assert sorted(pub["version"] for pub in listed) == [1, 2, 3, 4]
        assert sum(pub["is_active"] for pub in listed) == 1

    def test_unpublished_snapshot_is_invisible(self, api_client: TestClient, demo: dict):
        space_id = demo["space"]["id"]
        body = {"slug": "guide", "title": "Guide"}
        _data(api_client.post(f"/spaces/{space_id}/publish", json=body), 201)
        v2 = _data(api_client.post(f"/spaces/{space_id}/publish", json=body), 201)

        assert _data(api_client.get("/p/guide/docs/intro"))["title"] == "Intro"

        _data(api_client.post(f"/publications/{v2['id']}/unpublish"))

        assert _error(api_client.get("/p/guide/docs/intro"), 404)["code"] == "E_PUBLICATION_NOT_FOUND"
        assert _error(api_client.get("/p/guide/tree"), 404)["code"] == "E_PUBLICATION_NOT_FOUND"
        # Still reachable by id for the author
        assert _data(api_client.get(f"/publications/{v2['id']}/docs/intro"))["slug"] == "intro"


class TestSpaceRoutes:
    def test_create_and_fetch(self, api_client: TestClient):
        space = _data(api_client.post("/spaces", json={"name": "Handbook", "slug": "Handbook"}), 201)

        assert space["slug"] == "handbook"
        assert _data(api_client.get(f"/spaces/{space['id']}"))["name"] == "Handbook"
        assert _data(api_client.get("/spaces/by-slug/handbook"))["id"] == space["id"]
        assert space["id"] in [s["id"] for s in _data(api_client.get("/spaces"))]

    def test_duplicate_space_slug(self, api_client: TestClient):
        _data(api_client.post("/spaces", json={"name": "One", "slug": "handbook"}), 201)

        error = _error(api_client.post("/spaces", json={"name": "Two", "slug": "handbook"}), 409)
        assert error["code"] == "E_SLUG_TAKEN"

    def test_invalid_body(self, api_client: TestClient):
        error = _error(api_client.post("/spaces", json={"slug": "handbook"}), 400)
        assert error["code"] == "E_INVALID_REQUEST"

    def test_unknown_space(self, api_client: TestClient):
        response = api_client.get("/spaces/00000000-0000-0000-0000-000000000000/tree")
        assert _error(response, 404)["code"] == "E_SPACE_NOT_FOUND"

    def test_update_space(self, api_client: TestClient, demo: dict):
        space_id = demo["space"]["id"]

        updated = _data(
            api_client.patch(f"/spaces/{space_id}", json={"name": "Demo docs", "is_public": True})
        )

        assert (updated["name"], updated["slug"], updated["is_public"]) == ("Demo docs", "demo", True)
        assert _data(api_client.get(f"/spaces/{space_id}"))["name"] == "Demo docs"

    def test_update_space_slug_conflict(self, api_client: TestClient, demo: dict):
        _data(api_client.post("/spaces", json={"name": "Other", "slug": "other"}), 201)

        response = api_client.patch(f"/spaces/{demo['space']['id']}", json={"slug": "other"})

        assert _error(response, 409)["code"] == "E_SLUG_TAKEN"

    def test_check_space_slug(self, api_client: TestClient, demo: dict):
        taken = _data(api_client.get("/spaces/check-slug", params={"slug": "demo"}))
        free = _data(api_client.get("/spaces/check-slug", params={"slug": "fresh"}))

        assert (taken["available"], taken["suggestion"]) == (False, "demo-2")
        assert (free["available"], free["suggestion"]) == (True, None)


class TestDocumentRoutes:
    def test_slug_conflict_returns_suggestion(self, api_client: TestClient, demo: dict):
        response = api_client.post(
            f"/spaces/{demo['space']['id']}/documents", json={"title": "Again", "slug": "intro"}
        )

        error = _error(response, 409)
        assert error["code"] == "E_SLUG_TAKEN"
        assert error["suggestion"] == "intro-2"

    def test_listing_and_navigation(self, api_client: TestClient, demo: dict):
        space_id = demo["space"]["id"]
        intro_id, details_id = demo["intro"]["id"], demo["details"]["id"]

        roots = _data(api_client.get(f"/spaces/{space_id}/documents"))
        children = _data(api_client.get(f"/spaces/{space_id}/documents", params={"parent_id": intro_id}))
        by_slug = _data(api_client.get(f"/spaces/{space_id}/documents/by-slug/details"))
        crumbs = _data(api_client.get(f"/documents/{details_id}/breadcrumbs"))
        subtree = _data(api_client.get(f"/documents/{intro_id}/subtree"))

        assert [d["slug"] for d in roots] == ["intro"]
        assert [d["slug"] for d in children] == ["details"]
        assert _data(api_client.get(f"/documents/{intro_id}/children")) == children
        assert by_slug["id"] == details_id
        assert [d["slug"] for d in crumbs] == ["intro", "details"]
        assert [d["slug"] for d in subtree] == ["intro", "details"]

    def test_patch_with_stale_revision(self, api_client: TestClient, demo: dict):
        doc_id = demo["intro"]["id"]
        _data(api_client.patch(f"/documents/{doc_id}", json={"title": "First", "expected_revision": 1}))

        response = api_client.patch(
            f"/documents/{doc_id}", json={"title": "Stale", "expected_revision": 1}
        )

        assert _error(response, 409)["code"] == "E_REVISION_MISMATCH"

    def test_move_and_reorder(self, api_client: TestClient, demo: dict):
        space_id = demo["space"]["id"]
        moved = _data(
            api_client.post(
                f"/documents/{demo['details']['id']}/move", json={"parent_id": None, "order_index": 0}
            )
        )

        assert moved["parent_id"] is None
        roots = _data(api_client.get(f"/spaces/{space_id}/documents"))
        assert [(d["slug"], d["order_index"]) for d in roots] == [("details", 0), ("intro", 1)]

    def test_delete_cascades(self, api_client: TestClient, demo: dict):
        deleted = _data(api_client.delete(f"/documents/{demo['intro']['id']}"))

        assert deleted["deleted_ids"] == [demo["intro"]["id"], demo["details"]["id"]]
        assert _error(api_client.get(f"/documents/{demo['details']['id']}"), 404)["code"] == (
            "E_DOCUMENT_NOT_FOUND"
        )
        assert _data(api_client.get(f"/spaces/{demo['space']['id']}/tree")) == []

    def test_delete_with_unknown_policy(self, api_client: TestClient, demo: dict):
        response = api_client.delete(f"/documents/{demo['intro']['id']}", params={"policy": "promote"})
        assert _error(response, 400)["code"] == "E_INVALID_REQUEST"

    def test_visibility_and_duplicate(self, api_client: TestClient, demo: dict):
        doc_id = demo["details"]["id"]

        hidden = _data(api_client.post(f"/documents/{doc_id}/visibility", json={"is_public": False}))
        copy = _data(api_client.post(f"/documents/{doc_id}/duplicate"), 201)

        assert hidden["is_public"] is False
        assert (copy["slug"], copy["parent_id"], copy["order_index"]) == (
            "details-2",
            demo["intro"]["id"],
            1,
        )
        assert copy["is_public"] is False

    def test_draft_stage_and_save(self, api_client: TestClient, demo: dict):
        doc_id = demo["intro"]["id"]

        _data(api_client.put(f"/documents/{doc_id}/draft", json={"content": "Dra"}))
        staged = _data(api_client.put(f"/documents/{doc_id}/draft", json={"content": "Draft"}))
        assert staged["dirty"] is True
        assert staged["pending_fields"] == ["content"]
        assert _data(api_client.get(f"/documents/{doc_id}"))["content"] == "Hello readers"

        saved = _data(api_client.post(f"/documents/{doc_id}/save"))
        assert saved["dirty"] is False
        assert saved["document"]["content"] == "Draft"
        assert saved["document"]["revision"] == 2
        assert _data(api_client.get(f"/documents/{doc_id}/draft"))["dirty"] is False

    def test_draft_discard(self, api_client: TestClient, demo: dict):
        doc_id = demo["intro"]["id"]
        _data(api_client.put(f"/documents/{doc_id}/draft", json={"title": "Never saved"}))

        assert api_client.delete(f"/documents/{doc_id}/draft").status_code == 204
        assert _data(api_client.get(f"/documents/{doc_id}/draft"))["dirty"] is False

    def test_check_document_slug(self, api_client: TestClient, demo: dict):
        space_id = demo["space"]["id"]

        result = _data(
            api_client.get(f"/spaces/{space_id}/documents/check-slug", params={"slug": "Intro"})
        )

        assert (result["slug"], result["available"], result["suggestion"]) == (
            "intro",
            False,
            "intro-2",
        )

    def test_batch_delete(self, api_client: TestClient, demo: dict):
        space_id = demo["space"]["id"]
        ids = [demo["details"]["id"], demo["intro"]["id"]]

        deleted = _data(
            api_client.post(f"/spaces/{space_id}/documents/batch-delete", json={"document_ids": ids})
        )

        assert deleted["deleted_ids"] == [demo["intro"]["id"], demo["details"]["id"]]
        assert _data(api_client.get(f"/spaces/{space_id}/tree")) == []

    def test_batch_delete_is_all_or_nothing(self, api_client: TestClient, demo: dict):
        space_id = demo["space"]["id"]
        ids = [demo["details"]["id"], "00000000-0000-0000-0000-000000000001"]

        response = api_client.post(
            f"/spaces/{space_id}/documents/batch-delete", json={"document_ids": ids}
        )

        assert _error(response, 404)["code"] == "E_DOCUMENT_NOT_FOUND"
        assert _data(api_client.get(f"/documents/{demo['details']['id']}"))["slug"] == "details"

    def test_batch_delete_empty_body(self, api_client: TestClient, demo: dict):
        response = api_client.post(
            f"/spaces/{demo['space']['id']}/documents/batch-delete", json={"document_ids": []}
        )
        assert _error(response, 400)["code"] == "E_INVALID_REQUEST"

    def test_batch_visibility(self, api_client: TestClient, demo: dict):
        space_id = demo["space"]["id"]
        ids = [demo["intro"]["id"], demo["details"]["id"]]

        result = _data(
            api_client.post(
                f"/spaces/{space_id}/documents/batch-visibility",
                json={"document_ids": ids, "is_public": False},
            )
        )

        assert [(doc["id"], doc["is_public"], doc["revision"]) for doc in result] == [
            (demo["intro"]["id"], False, 2),
            (demo["details"]["id"], False, 2),
        ]

    def test_draft_for_unknown_document(self, api_client: TestClient):
        missing = "00000000-0000-0000-0000-000000000001"

        response = api_client.put(f"/documents/{missing}/draft", json={"title": "Ghost"})

        assert _error(response, 404)["code"] == "E_DOCUMENT_NOT_FOUND"
        assert _data(api_client.get(f"/documents/{missing}/draft"))["dirty"] is False


class TestPublicationRoutes:
    @pytest.fixture
    def published(self, api_client: TestClient, demo: dict) -> dict:
        return _data(
            api_client.post(
                f"/spaces/{demo['space']['id']}/publish",
                json={"slug": "guide", "title": "Guide", "theme": "minimal"},
            ),
            201,
        )

    def test_public_reads_count_views(self, api_client: TestClient, published: dict):
        first = _data(api_client.get("/p/guide"))
        tree = _data(api_client.get("/p/guide/tree"))
        doc = _data(api_client.get("/p/guide/docs/details"))
        preview = _data(api_client.get(f"/publications/{published['id']}"))

        assert first["total_views"] == 1
        assert [node["slug"] for node in tree] == ["intro"]
        assert doc["reading_time"] == 1
        assert preview["total_views"] == 3
        assert preview["theme"] == "minimal"
        assert "theme" not in first

    def test_publication_tree_by_id(self, api_client: TestClient, published: dict):
        tree = _data(api_client.get(f"/publications/{published['id']}/tree"))

        assert [(n["slug"], [c["slug"] for c in n["children"]]) for n in tree] == [
            ("intro", ["details"])
        ]

    def test_update_metadata(self, api_client: TestClient, published: dict):
        updated = _data(
            api_client.patch(f"/publications/{published['id']}", json={"title": "Handbook"})
        )

        assert updated["title"] == "Handbook"
        assert updated["version"] == 1

    def test_invalid_theme(self, api_client: TestClient, published: dict):
        response = api_client.patch(f"/publications/{published['id']}", json={"theme": "neon"})
        assert _error(response, 400)["code"] == "E_INVALID_REQUEST"

    def test_restore_and_delete(self, api_client: TestClient, published: dict):
        pub_id = published["id"]

        assert _data(api_client.post(f"/publications/{pub_id}/unpublish"))["is_active"] is False
        assert _data(api_client.post(f"/publications/{pub_id}/restore"))["is_active"] is True
        assert api_client.delete(f"/publications/{pub_id}").status_code == 204

        error = _error(api_client.post(f"/publications/{pub_id}/restore"), 409)
        assert error["code"] == "E_INVALID_STATE"
        assert _error(api_client.get("/p/guide"), 404)["code"] == "E_PUBLICATION_NOT_FOUND"

    def test_slug_taken_by_other_space(self, api_client: TestClient, published: dict):
        other = _data(api_client.post("/spaces", json={"name": "Other", "slug": "other"}), 201)

        response = api_client.post(
            f"/spaces/{other['id']}/publish", json={"slug": "guide", "title": "Mine"}
        )

        error = _error(response, 409)
        assert error["code"] == "E_SLUG_TAKEN"
        assert error["suggestion"] == "guide-2"
