"""
Product catalog endpoint tests.
"""
from unittest.mock import AsyncMock, patch

import pytest

from neuraslide.services.product_service import ProductService


async def create_product(client, headers, payload):
    response = await client.post("/crystal/products", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


class TestProductCrud:

    @pytest.mark.asyncio
    async def test_create_normalizes_codes(self, client, auth_headers, sample_product):
        product = await create_product(client, auth_headers, {**sample_product, "availability": "pre_order"})
        assert product["currency"] == "USD"
        assert product["availability"] == "PRE_ORDER"
        assert product["searchCount"] == 0

    @pytest.mark.asyncio
    async def test_validation_errors(self, client, auth_headers):
        response = await client.post("/crystal/products", json={"name": "X"}, headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["errors"] == [
            "Product name must be between 2 and 100 characters",
            "Product description is required",
            "Product category is required",
            "Product price is required",
        ]

    @pytest.mark.asyncio
    async def test_update_and_delete(self, client, auth_headers, sample_product):
        product = await create_product(client, auth_headers, sample_product)
        url = f"/crystal/products/{product['id']}"

        response = await client.put(url, json={"price": 59.5, "availability": "out_of_stock"}, headers=auth_headers)
        assert response.json()["data"]["price"] == 59.5
        assert response.json()["data"]["availability"] == "OUT_OF_STOCK"

        assert (await client.delete(url, headers=auth_headers)).status_code == 200
        assert (await client.get(url, headers=auth_headers)).status_code == 404

    @pytest.mark.asyncio
    async def test_other_user_cannot_touch_product(self, client, auth_headers, other_headers, sample_product):
        product = await create_product(client, auth_headers, sample_product)
        url = f"/crystal/products/{product['id']}"
        assert (await client.get(url, headers=other_headers)).status_code == 404
        assert (await client.delete(url, headers=other_headers)).status_code == 404

    @pytest.mark.asyncio
    async def test_list_filters(self, client, auth_headers, sample_product):
        await create_product(client, auth_headers, sample_product)
        await create_product(client, auth_headers, {**sample_product, "name": "Sun Hat", "category": "Accessories"})

        response = await client.get("/crystal/products", params={"category": "accessories"}, headers=auth_headers)
        data = response.json()["data"]
        assert [p["name"] for p in data["products"]] == ["Sun Hat"]
        assert data["pagination"]["total"] == 1

    @pytest.mark.asyncio
    async def test_product_limit(self, client, auth_headers, sample_product):
        for i in range(5):
            await create_product(client, auth_headers, {**sample_product, "name": f"Item {i}"})
        response = await client.post("/crystal/products", json=sample_product, headers=auth_headers)
        assert response.status_code == 403


class TestProductSearch:

    @pytest.mark.asyncio
    async def test_name_match_ranks_first(self, client, database, auth_headers, sample_product):
        from sqlalchemy import update
        from neuraslide.db.models import ProductModel

        shoe = await create_product(client, auth_headers, {**sample_product, "name": "Running Shoe"})
        hat = await create_product(
            client, auth_headers,
            {**sample_product, "name": "Hat", "description": "Comes in a red shoe box", "category": "Hats", "tags": []},
        )
        async with database.session() as session:
            await session.execute(update(ProductModel).where(ProductModel.id == shoe["id"]).values(search_count=5))
            await session.execute(update(ProductModel).where(ProductModel.id == hat["id"]).values(search_count=100))

        response = await client.post("/crystal/products/search", json={"query": "shoe"}, headers=auth_headers)
        assert response.status_code == 200
        data = response.json()["data"]
        assert [r["product"]["id"] for r in data["results"]] == [shoe["id"], hat["id"]]
        assert data["results"][0]["matchedFields"] == ["name"]
        assert data["results"][0]["highlights"]["name"] == "Running **Shoe**"
        assert data["totalFound"] == 2

    @pytest.mark.asyncio
    async def test_search_increments_counts(self, client, auth_headers, sample_product):
        product = await create_product(client, auth_headers, sample_product)
        await client.post("/crystal/products/search", json={"query": "running"}, headers=auth_headers)
        await client.post("/crystal/products/search", json={"query": "running"}, headers=auth_headers)

        response = await client.get(f"/crystal/products/{product['id']}", headers=auth_headers)
        assert response.json()["data"]["searchCount"] == 2

    @pytest.mark.asyncio
    async def test_search_filters(self, client, auth_headers, sample_product):
        await create_product(client, auth_headers, {**sample_product, "name": "Cheap Shoe", "price": 10})
        await create_product(client, auth_headers, {**sample_product, "name": "Fancy Shoe", "price": 300})

        response = await client.post(
            "/crystal/products/search",
            json={"query": "shoe", "filters": {"price_min": 50, "price_max": 500}},
            headers=auth_headers,
        )
        assert [r["product"]["name"] for r in response.json()["data"]["results"]] == ["Fancy Shoe"]

    @pytest.mark.asyncio
    async def test_search_is_literal(self, client, auth_headers, sample_product):
        await create_product(client, auth_headers, sample_product)
        response = await client.post("/crystal/products/search", json={"query": "R.n"}, headers=auth_headers)
        assert response.json()["data"]["results"] == []


class TestCategoriesAndAnalytics:

    @pytest.mark.asyncio
    async def test_categories(self, client, auth_headers, sample_product):
        await create_product(client, auth_headers, sample_product)
        response = await client.post(
            "/crystal/products/categories", json={"name": "Gifts", "description": "Seasonal"}, headers=auth_headers
        )
        assert response.status_code == 201

        duplicate = await client.post("/crystal/products/categories", json={"name": "gifts"}, headers=auth_headers)
        assert duplicate.status_code == 409

        response = await client.get("/crystal/products/categories", headers=auth_headers)
        counts = {c["name"]: c["productCount"] for c in response.json()["data"]["categories"]}
        assert counts == {"Footwear": 1, "Gifts": 0}

    @pytest.mark.asyncio
    async def test_category_unique_constraint_conflicts(self, client, auth_headers):
        url = "/crystal/products/categories"
        assert (await client.post(url, json={"name": "Gifts"}, headers=auth_headers)).status_code == 201
        with patch.object(ProductService, "_find_category", AsyncMock(return_value=None)):
            response = await client.post(url, json={"name": "Gifts"}, headers=auth_headers)
        assert response.status_code == 409
        assert response.json()["message"] == "Category already exists"

    @pytest.mark.asyncio
    async def test_analytics(self, client, auth_headers, sample_product):
        await create_product(client, auth_headers, sample_product)
        await create_product(client, auth_headers, {**sample_product, "availability": "discontinued"})

        data = (await client.get("/crystal/products/analytics", headers=auth_headers)).json()["data"]
        assert data["totalProducts"] == 2
        assert data["availability"]["inStock"] == 1
        assert data["availability"]["discontinued"] == 1
        assert data["categories"][0]["name"] == "Footwear"
        assert data["categories"][0]["percentage"] == 100.0


class TestBulkImport:

    @pytest.mark.asyncio
    async def test_rows_validated_individually(self, client, auth_headers, sample_product):
        response = await client.post(
            "/crystal/products/bulk-import",
            json={
                "products": [
                    {**sample_product, "category": "shoes"},
                    {**sample_product, "price": -5},
                    {**sample_product, "name": "Trail Shoe"},
                ],
                "categoryMapping": {"shoes": "Footwear"},
            },
            headers=auth_headers,
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["totalProcessed"] == 3
        assert data["successful"] == 2
        assert data["failed"] == 1
        assert data["errors"][0]["row"] == 2

        listing = (await client.get("/crystal/products", headers=auth_headers)).json()["data"]
        assert {p["category"] for p in listing["products"]} == {"Footwear"}

    @pytest.mark.asyncio
    async def test_empty_import_rejected(self, client, auth_headers):
        response = await client.post("/crystal/products/bulk-import", json={"products": []}, headers=auth_headers)
        assert response.status_code == 400
