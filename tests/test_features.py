"""Tests for the feature catalog API."""

from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from tests.conftest import auth_header


class TestCreateFeature:
    """Tests for creating catalog features."""

    async def test_create_feature(self, client: AsyncClient, superadmin_token: str):
        response = await client.post(
            "/api/v1/features",
            headers=auth_header(superadmin_token),
            json={
                "key": "attendance",
                "name": "Attendance",
                "price": 50000,
                "pricing_type": "per_student",
                "menu_links": [{"name": "Attendance", "href": "/attendance"}],
            },
        )

        assert response.status_code == 201
        data = response.json()
        assert data["key"] == "attendance"
        assert data["price"] == 50000
        assert data["is_active"] is True
        assert data["menu_links"] == [
            {"name": "Attendance", "href": "/attendance", "icon": "fas fa-home", "enabled": True}
        ]

    async def test_key_derived_from_name(self, client: AsyncClient, superadmin_token: str):
        response = await client.post(
            "/api/v1/features",
            headers=auth_header(superadmin_token),
            json={"name": "Result Checker"},
        )

        assert response.status_code == 201
        assert response.json()["key"] == "result_checker"

    async def test_duplicate_key_conflict(self, client: AsyncClient, superadmin_token: str):
        payload = {"key": "attendance", "name": "Attendance"}
        first = await client.post(
            "/api/v1/features", headers=auth_header(superadmin_token), json=payload
        )
        second = await client.post(
            "/api/v1/features", headers=auth_header(superadmin_token), json=payload
        )

        assert first.status_code == 201
        assert second.status_code == 409

    async def test_invalid_key_rejected(self, client: AsyncClient, superadmin_token: str):
        response = await client.post(
            "/api/v1/features",
            headers=auth_header(superadmin_token),
            json={"key": "Result-Checker", "name": "Result Checker"},
        )

        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "key"

    async def test_negative_price_rejected(self, client: AsyncClient, superadmin_token: str):
        response = await client.post(
            "/api/v1/features",
            headers=auth_header(superadmin_token),
            json={"name": "Attendance", "price": -1},
        )

        assert response.status_code == 400

    async def test_school_admin_cannot_create(
        self, client: AsyncClient, school_admin_token: str
    ):
        response = await client.post(
            "/api/v1/features",
            headers=auth_header(school_admin_token),
            json={"name": "Attendance"},
        )

        assert response.status_code == 403


class TestListFeatures:
    async def test_list_hides_inactive(
        self, client: AsyncClient, db: AsyncSession, superadmin_token: str, features
    ):
        features["sms_alerts"].is_active = False
        await db.commit()

        response = await client.get("/api/v1/features", headers=auth_header(superadmin_token))
        assert response.status_code == 200
        assert [f["key"] for f in response.json()] == ["attendance", "result_checker"]

        response = await client.get(
            "/api/v1/features",
            headers=auth_header(superadmin_token),
            params={"include_inactive": True},
        )
        assert len(response.json()) == 3

    async def test_school_admin_never_sees_inactive(
        self, client: AsyncClient, db: AsyncSession, school_admin_token: str, features
    ):
        features["sms_alerts"].is_active = False
        await db.commit()

        response = await client.get(
            "/api/v1/features",
            headers=auth_header(school_admin_token),
            params={"include_inactive": True},
        )

        assert response.status_code == 200
        assert len(response.json()) == 2


class TestUpdateFeature:
    async def test_update_price(self, client: AsyncClient, superadmin_token: str, features):
        feature = features["attendance"]
        response = await client.patch(
            f"/api/v1/features/{feature.id}",
            headers=auth_header(superadmin_token),
            json={"price": 60000},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["price"] == 60000
        assert data["name"] == "Attendance"

    async def test_key_is_immutable(self, client: AsyncClient, superadmin_token: str, features):
        feature = features["attendance"]
        response = await client.patch(
            f"/api/v1/features/{feature.id}",
            headers=auth_header(superadmin_token),
            json={"key": "roll_call"},
        )

        assert response.status_code == 400

    async def test_replace_menu_links(
        self, client: AsyncClient, superadmin_token: str, features
    ):
        feature = features["result_checker"]
        response = await client.put(
            f"/api/v1/features/{feature.id}/menu-links",
            headers=auth_header(superadmin_token),
            json={
                "menu_links": [
                    {"name": "Results", "href": "/results", "icon": "fas fa-poll"},
                    {"name": "Scratch Cards", "href": "/results/cards", "enabled": False},
                ]
            },
        )

        assert response.status_code == 200
        links = response.json()["menu_links"]
        assert [link["name"] for link in links] == ["Results", "Scratch Cards"]
        assert links[1]["enabled"] is False

    async def test_deactivate(self, client: AsyncClient, superadmin_token: str, features):
        feature = features["attendance"]
        response = await client.delete(
            f"/api/v1/features/{feature.id}",
            headers=auth_header(superadmin_token),
        )

        assert response.status_code == 200
        assert response.json()["is_active"] is False

    async def test_get_unknown_feature(self, client: AsyncClient, superadmin_token: str):
        response = await client.get(
            "/api/v1/features/00000000-0000-0000-0000-000000000000",
            headers=auth_header(superadmin_token),
        )

        assert response.status_code == 404
