"""
Tests for API endpoints.
"""

import asyncio
import json

import pytest
from fastapi import status

from api.main import app, get_store


def seed(store, count):
    async def go():
        for i in range(count):
            await store.add_rental({
                'listing_url': f'quick-rent.html#apt-{i:02d}',
                'source': 'quickRent',
                'title': f'Apt {i:02d}',
                'price': f'${1000 + i}',
                'location': 'Downtown' if i % 2 == 0 else 'Midtown',
            })
    asyncio.run(go())


class TestRootEndpoints:

    def test_root_returns_json(self, client):
        response = client.get("/")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["message"] == "Rental Finder API"
        assert "version" in data

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"status": "ok"}


class TestSourcesEndpoint:

    def test_lists_configured_sources(self, client):
        response = client.get("/api/sources")

        assert response.status_code == status.HTTP_200_OK
        keys = {s['key'] for s in response.json()}
        assert {'quickRent', 'luxeStay', 'realtyHub', 'apartmentFinder'} <= keys


class TestRentalsEndpoint:

    def test_empty_database(self, client):
        response = client.get("/api/rentals")

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {
            "results": [], "total": 0, "page": 1, "page_size": 20, "total_pages": 0,
        }

    def test_pagination_fields(self, client, store):
        seed(store, 45)

        data = client.get("/api/rentals", params={"page": 3, "page_size": 20}).json()

        assert data["total"] == 45
        assert data["total_pages"] == 3
        assert data["page"] == 3
        assert len(data["results"]) == 5

    def test_page_beyond_range(self, client, store):
        seed(store, 3)

        data = client.get("/api/rentals", params={"page": 9}).json()

        assert data["results"] == []
        assert data["total"] == 3

    def test_filters_and_sort(self, client, store):
        seed(store, 6)

        response = client.get("/api/rentals", params={
            "filters": json.dumps({"location": "Midtown"}),
            "sort": json.dumps({"price": -1}),
        })

        data = response.json()
        assert data["total"] == 3
        assert [r["title"] for r in data["results"]] == ["Apt 05", "Apt 03", "Apt 01"]

    @pytest.mark.parametrize("params", [{"page": 0}, {"page_size": 0}, {"page": "abc"}])
    def test_invalid_pagination(self, client, params):
        response = client.get("/api/rentals", params=params)

        assert response.status_code == 422

    def test_invalid_filter_json(self, client):
        response = client.get("/api/rentals", params={"filters": "{not json"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_unknown_filter_field(self, client):
        response = client.get("/api/rentals", params={"filters": json.dumps({"bedrooms": 2})})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "bedrooms" in response.json()["detail"]

    def test_persistence_failure_is_a_server_error(self, client):
        class BrokenStore:
            async def get_rentals_page(self, *args, **kwargs):
                raise RuntimeError("database is unreachable")

        app.dependency_overrides[get_store] = lambda: BrokenStore()

        response = client.get("/api/rentals")

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert response.json()["detail"] == "database is unreachable"


class TestDeleteEndpoint:

    def test_soft_delete(self, client, store):
        seed(store, 2)

        response = client.delete("/api/rentals", params={"listing_url": "quick-rent.html#apt-00"})

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["is_deleted"] is True
        assert client.get("/api/rentals").json()["total"] == 1

    def test_hard_delete(self, client, store):
        seed(store, 1)

        response = client.delete("/api/rentals", params={"listing_url": "quick-rent.html#apt-00", "hard": True})

        assert response.status_code == status.HTTP_200_OK
        filters = json.dumps({"is_deleted": {"$in": [True, False]}})
        assert client.get("/api/rentals", params={"filters": filters}).json()["total"] == 0

    def test_delete_missing(self, client):
        response = client.delete("/api/rentals", params={"listing_url": "nowhere.html#x"})

        assert response.status_code == status.HTTP_404_NOT_FOUND


class TestScrapeEndpoint:

    def test_scrape_bundled_pages(self, client):
        response = client.post("/api/scrape")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["scraped"] == 16
        assert data["processed"] == 16
        assert client.get("/api/rentals").json()["total"] == 16

    def test_second_scrape_changes_nothing(self, client):
        client.post("/api/scrape")

        data = client.post("/api/scrape").json()

        assert data["processed"] == 0
