"""HTTP tests for the review session endpoints."""

import pytest

from tests.factories import (
    CatalogItemFactory,
    DoneProgressFactory,
    HLDQuestionFactory,
    LLDItemFactory,
    create_async,
    create_batch_async,
)

pytestmark = pytest.mark.integration


async def _seed_done(db_session, user_id: str, factory_class, count: int):
    items = await create_batch_async(factory_class, db_session, count)
    for item in items:
        await create_async(
            DoneProgressFactory, db_session, user_id=user_id, item_id=item.id
        )
    return items


@pytest.fixture()
async def done_pool(db_session, test_user_id):
    """Enough completed items for one default session."""
    await _seed_done(db_session, test_user_id, CatalogItemFactory, 2)
    await _seed_done(db_session, test_user_id, LLDItemFactory, 1)
    await _seed_done(db_session, test_user_id, HLDQuestionFactory, 1)
    await db_session.commit()


class TestEligibility:
    async def test_not_eligible_without_done_items(self, authenticated_client):
        response = await authenticated_client.get("/api/reviews/eligibility")

        assert response.status_code == 200
        assert response.json()["can_create"] is False

    async def test_eligible_with_pool(self, authenticated_client, done_pool):
        response = await authenticated_client.get("/api/reviews/eligibility")

        assert response.json()["can_create"] is True


class TestCreateSession:
    async def test_requires_identity(self, client):
        assert (await client.post("/api/reviews")).status_code == 401

    async def test_creates_default_composition(self, authenticated_client, done_pool):
        response = await authenticated_client.post("/api/reviews")

        assert response.status_code == 201
        body = response.json()
        categories = sorted(entry["item"]["category"] for entry in body["items"])
        assert categories == ["dsa", "dsa", "hld", "lld"]
        assert {entry["status"] for entry in body["items"]} == {"pending"}
        assert body["is_closed"] is False

    async def test_second_session_conflicts(self, authenticated_client, done_pool):
        await authenticated_client.post("/api/reviews")

        response = await authenticated_client.post("/api/reviews")

        assert response.status_code == 409

    async def test_insufficient_pool_detail(
        self, authenticated_client, db_session, test_user_id
    ):
        await _seed_done(db_session, test_user_id, CatalogItemFactory, 1)
        await db_session.commit()

        response = await authenticated_client.post("/api/reviews")

        assert response.status_code == 422
        detail = response.json()["detail"]
        assert detail["required"] >= 1
        assert detail["available"] < detail["required"]
        assert detail["category"] in {"dsa", "lld", "hld"}
        assert detail["message"].startswith("Not enough completed")


class TestSessionLifecycle:
    async def test_active_session(self, authenticated_client, done_pool):
        assert (await authenticated_client.get("/api/reviews/active")).json() == {
            "session": None
        }

        created = (await authenticated_client.post("/api/reviews")).json()
        active = (await authenticated_client.get("/api/reviews/active")).json()

        assert active["session"]["session_id"] == created["session_id"]

    async def test_complete_and_abandon_items(self, authenticated_client, done_pool):
        session = (await authenticated_client.post("/api/reviews")).json()
        sid = session["session_id"]
        first, second = (entry["item"]["id"] for entry in session["items"][:2])

        completed = await authenticated_client.post(
            f"/api/reviews/{sid}/items/{first}/complete"
        )
        abandoned = await authenticated_client.post(
            f"/api/reviews/{sid}/items/{second}/abandon"
        )
        again = await authenticated_client.post(
            f"/api/reviews/{sid}/items/{first}/abandon"
        )

        assert completed.status_code == 200
        assert completed.json()["status"] == "completed"
        assert completed.json()["item"]["status"] == "done"
        assert abandoned.json()["status"] == "abandoned"
        assert again.status_code == 409

    async def test_completing_review_counts_for_streak(
        self, authenticated_client, done_pool
    ):
        session = (await authenticated_client.post("/api/reviews")).json()
        item_id = session["items"][0]["item"]["id"]

        await authenticated_client.post(
            f"/api/reviews/{session['session_id']}/items/{item_id}/complete"
        )
        streak = await authenticated_client.get("/api/stats/streak")

        assert streak.json()["current_streak"] == 1

    async def test_finished_session_is_closed(self, authenticated_client, done_pool):
        session = (await authenticated_client.post("/api/reviews")).json()
        sid = session["session_id"]

        for entry in session["items"]:
            await authenticated_client.post(
                f"/api/reviews/{sid}/items/{entry['item']['id']}/complete"
            )

        fetched = await authenticated_client.get(f"/api/reviews/{sid}")
        assert fetched.json()["is_closed"] is True
        assert (await authenticated_client.get("/api/reviews/active")).json() == {
            "session": None
        }

    async def test_unknown_session_item(self, authenticated_client, done_pool):
        session = (await authenticated_client.post("/api/reviews")).json()

        response = await authenticated_client.post(
            f"/api/reviews/{session['session_id']}/items/999999/complete"
        )

        assert response.status_code == 404

    async def test_delete_session(self, authenticated_client, done_pool):
        sid = (await authenticated_client.post("/api/reviews")).json()["session_id"]

        deleted = await authenticated_client.delete(f"/api/reviews/{sid}")
        missing = await authenticated_client.get(f"/api/reviews/{sid}")

        assert deleted.status_code == 204
        assert missing.status_code == 404

    async def test_delete_unknown_session(self, authenticated_client):
        response = await authenticated_client.delete("/api/reviews/not-a-session")

        assert response.status_code == 404

    async def test_session_not_visible_to_other_users(
        self, authenticated_client, client, done_pool
    ):
        sid = (await authenticated_client.post("/api/reviews")).json()["session_id"]

        response = await client.get(
            f"/api/reviews/{sid}", headers={"X-User-Id": "someone_else"}
        )

        assert response.status_code == 404
