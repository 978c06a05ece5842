"""HTTP tests for the catalog reference endpoint."""

import pytest

from models import Category
from services.catalog_service import CATEGORY_SUBCATEGORIES
from tests.factories import CatalogItemFactory, create_async

pytestmark = pytest.mark.integration


class TestSubcategories:
    async def test_allowed_and_in_use(self, authenticated_client, db_session):
        await create_async(CatalogItemFactory, db_session, subcategory="heaps")
        await db_session.commit()

        response = await authenticated_client.get(
            "/api/catalog/categories/dsa/subcategories"
        )

        assert response.status_code == 200
        body = response.json()
        assert body["category"] == "dsa"
        assert body["allowed"] == list(CATEGORY_SUBCATEGORIES[Category.DSA])
        assert body["in_use"] == ["heaps"]

    async def test_revision_marker_listed(self, authenticated_client):
        response = await authenticated_client.get(
            "/api/catalog/categories/miscellaneous/subcategories"
        )

        assert "test_n_revise" in response.json()["allowed"]
        assert response.json()["in_use"] == []

    async def test_unknown_category(self, authenticated_client):
        response = await authenticated_client.get(
            "/api/catalog/categories/frontend/subcategories"
        )

        assert response.status_code == 422
        assert response.json()["detail"][0]["loc"] == ["path", "category"]
