"""Tests for schools API."""

from uuid import uuid4

from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.permissions import Role
from app.models.school import Branch, School
from app.models.user import User
from app.services import entitlement as entitlement_service
from tests.conftest import auth_header


class TestListSchools:
    """Tests for listing schools."""

    async def test_superadmin_can_list_all_schools(
        self, client: AsyncClient, superadmin_token: str, school, other_school
    ):
        response = await client.get("/api/v1/schools", headers=auth_header(superadmin_token))

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        assert len(data["items"]) == 2

    async def test_list_schools_search(
        self, client: AsyncClient, superadmin_token: str, school, other_school
    ):
        response = await client.get(
            "/api/v1/schools",
            headers=auth_header(superadmin_token),
            params={"search": "Hill"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["items"][0]["short_name"] == "hilltop"

    async def test_list_schools_pagination(
        self, client: AsyncClient, db: AsyncSession, superadmin_token: str
    ):
        for i in range(5):
            db.add(School(name=f"School {i}", short_name=f"school-{i}"))
        await db.commit()

        response = await client.get(
            "/api/v1/schools",
            headers=auth_header(superadmin_token),
            params={"skip": 0, "limit": 2},
        )

        data = response.json()
        assert data["total"] == 5
        assert len(data["items"]) == 2

    async def test_school_admin_sees_only_own_school(
        self, client: AsyncClient, school_admin_token: str, school, other_school
    ):
        response = await client.get("/api/v1/schools", headers=auth_header(school_admin_token))

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["items"][0]["id"] == str(school.id)


class TestCreateSchool:
    """Tests for provisioning schools."""

    async def test_create_school_minimal(self, client: AsyncClient, superadmin_token: str):
        response = await client.post(
            "/api/v1/schools",
            headers=auth_header(superadmin_token),
            json={"name": "Riverside School", "short_name": "Riverside"},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["short_name"] == "riverside"
        assert data["status"] == "ACTIVE"
        assert data["payment_status"] == "PENDING"
        assert data["type"] == "K12"
        assert data["main_branch_id"] is not None

    async def test_create_school_with_admin_and_features(
        self, client: AsyncClient, db: AsyncSession, superadmin_token: str, features
    ):
        response = await client.post(
            "/api/v1/schools",
            headers=auth_header(superadmin_token),
            json={
                "name": "Riverside School",
                "short_name": "riverside",
                "phones": ["0801 234 5678"],
                "admin_name": "Ada Obi",
                "admin_email": "Ada@Riverside.test",
                "initial_features": ["attendance", "result_checker"],
            },
        )

        assert response.status_code == 201
        data = response.json()
        assert data["phones"] == ["+2348012345678"]

        admin = (
            await db.execute(select(User).where(User.email == "ada@riverside.test"))
        ).scalar_one()
        assert admin.role == Role.SCHOOL_ADMIN
        assert str(admin.school_id) == data["id"]
        assert admin.force_password_change is True

        branch = (
            await db.execute(select(Branch).where(Branch.id == admin.branch_id))
        ).scalar_one()
        assert branch.is_main is True
        assert str(branch.id) == data["main_branch_id"]

        enabled = await entitlement_service.get_enabled_feature_ids(db, admin.school_id)
        assert enabled == {features["attendance"].id, features["result_checker"].id}

    async def test_new_admin_can_log_in_with_default_password(
        self, client: AsyncClient, superadmin_token: str
    ):
        await client.post(
            "/api/v1/schools",
            headers=auth_header(superadmin_token),
            json={
                "name": "Riverside School",
                "short_name": "riverside",
                "admin_name": "Ada Obi",
                "admin_email": "ada@riverside.test",
            },
        )

        response = await client.post(
            "/api/v1/auth/login",
            json={"email": "ada@riverside.test", "password": "123456"},
        )

        assert response.status_code == 200

    async def test_duplicate_short_name(
        self, client: AsyncClient, superadmin_token: str, school
    ):
        response = await client.post(
            "/api/v1/schools",
            headers=auth_header(superadmin_token),
            json={"name": "Another Greenfield", "short_name": "greenfield"},
        )

        assert response.status_code == 409

    async def test_unknown_initial_feature(self, client: AsyncClient, superadmin_token: str):
        response = await client.post(
            "/api/v1/schools",
            headers=auth_header(superadmin_token),
            json={
                "name": "Riverside School",
                "short_name": "riverside",
                "initial_features": ["teleportation"],
            },
        )

        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "initial_features"

    async def test_admin_name_without_email(self, client: AsyncClient, superadmin_token: str):
        response = await client.post(
            "/api/v1/schools",
            headers=auth_header(superadmin_token),
            json={"name": "Riverside School", "short_name": "riverside", "admin_name": "Ada"},
        )

        assert response.status_code == 400

    async def test_school_admin_cannot_create(
        self, client: AsyncClient, school_admin_token: str
    ):
        response = await client.post(
            "/api/v1/schools",
            headers=auth_header(school_admin_token),
            json={"name": "Riverside School", "short_name": "riverside"},
        )

        assert response.status_code == 403


class TestGetSchool:
    async def test_get_school_success(self, client: AsyncClient, superadmin_token: str, school):
        response = await client.get(
            f"/api/v1/schools/{school.id}", headers=auth_header(superadmin_token)
        )

        assert response.status_code == 200
        assert response.json()["name"] == "Greenfield Academy"

    async def test_get_school_not_found(self, client: AsyncClient, superadmin_token: str):
        response = await client.get(
            f"/api/v1/schools/{uuid4()}", headers=auth_header(superadmin_token)
        )

        assert response.status_code == 404

    async def test_other_tenant_is_hidden(
        self, client: AsyncClient, school_admin_token: str, other_school
    ):
        response = await client.get(
            f"/api/v1/schools/{other_school.id}", headers=auth_header(school_admin_token)
        )

        assert response.status_code == 404


class TestUpdateSchool:
    async def test_update_school_partial(
        self, client: AsyncClient, superadmin_token: str, school
    ):
        response = await client.patch(
            f"/api/v1/schools/{school.id}",
            headers=auth_header(superadmin_token),
            json={"motto": "Knowledge is light"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["motto"] == "Knowledge is light"
        assert data["name"] == "Greenfield Academy"

    async def test_set_payment_status(
        self, client: AsyncClient, superadmin_token: str, school
    ):
        response = await client.patch(
            f"/api/v1/schools/{school.id}/payment-status",
            headers=auth_header(superadmin_token),
            json={"payment_status": "UNPAID"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["payment_status"] == "UNPAID"
        assert data["access_blocked_at"] is not None

        response = await client.patch(
            f"/api/v1/schools/{school.id}/payment-status",
            headers=auth_header(superadmin_token),
            json={"payment_status": "PAID"},
        )

        data = response.json()
        assert data["payment_status"] == "PAID"
        assert data["access_blocked_at"] is None


class TestLogoUpload:
    async def test_upload_logo(
        self, client: AsyncClient, superadmin_token: str, school, storage
    ):
        response = await client.post(
            f"/api/v1/schools/{school.id}/logo",
            headers=auth_header(superadmin_token),
            files={"file": ("crest.png", b"\x89PNG fake", "image/png")},
        )

        assert response.status_code == 200
        assert response.json()["logo_url"] == "https://cdn.test/logos/crest.png"
        assert storage.files["logos/crest.png"] == b"\x89PNG fake"

    async def test_upload_rejects_non_image(
        self, client: AsyncClient, superadmin_token: str, school
    ):
        response = await client.post(
            f"/api/v1/schools/{school.id}/logo",
            headers=auth_header(superadmin_token),
            files={"file": ("notes.txt", b"hello", "text/plain")},
        )

        assert response.status_code == 400


class TestDeleteSchool:
    async def test_delete_school_disables_it(
        self, client: AsyncClient, superadmin_token: str, school
    ):
        response = await client.delete(
            f"/api/v1/schools/{school.id}", headers=auth_header(superadmin_token)
        )
        assert response.status_code == 204

        response = await client.get(
            f"/api/v1/schools/{school.id}", headers=auth_header(superadmin_token)
        )
        assert response.json()["status"] == "DISABLED"

    async def test_delete_school_not_found(self, client: AsyncClient, superadmin_token: str):
        response = await client.delete(
            f"/api/v1/schools/{uuid4()}", headers=auth_header(superadmin_token)
        )

        assert response.status_code == 404


async def add_branch(client: AsyncClient, token: str, school_id, name: str):
    return await client.post(
        f"/api/v1/schools/{school_id}/branches",
        headers=auth_header(token),
        json={"name": name},
    )


class TestBranches:
    """Tests for branch management."""

    async def test_list_branches_main_first(
        self, client: AsyncClient, superadmin_token: str, school
    ):
        await add_branch(client, superadmin_token, school.id, "Annex")

        response = await client.get(
            f"/api/v1/schools/{school.id}/branches", headers=auth_header(superadmin_token)
        )

        assert response.status_code == 200
        data = response.json()
        assert [b["name"] for b in data] == ["Main Branch", "Annex"]
        assert data[0]["is_main"] is True

    async def test_create_branch(self, client: AsyncClient, superadmin_token: str, school):
        response = await add_branch(client, superadmin_token, school.id, "Lekki Campus")

        assert response.status_code == 201
        data = response.json()
        assert data["school_id"] == str(school.id)
        assert data["is_main"] is False
        assert data["status"] == "active"

    async def test_create_branch_requires_name(
        self, client: AsyncClient, superadmin_token: str, school
    ):
        response = await add_branch(client, superadmin_token, school.id, "")

        assert response.status_code == 400

    async def test_create_branch_unknown_school(
        self, client: AsyncClient, superadmin_token: str
    ):
        response = await add_branch(client, superadmin_token, uuid4(), "Annex")

        assert response.status_code == 404

    async def test_rename_branch(self, client: AsyncClient, superadmin_token: str, school):
        branch = await add_branch(client, superadmin_token, school.id, "Annex")

        response = await client.put(
            f"/api/v1/schools/{school.id}/branches/{branch.json()['id']}",
            headers=auth_header(superadmin_token),
            json={"name": "North Annex"},
        )

        assert response.status_code == 200
        assert response.json()["name"] == "North Annex"

    async def test_branch_of_other_school_not_found(
        self, client: AsyncClient, superadmin_token: str, school, other_school
    ):
        branch = await add_branch(client, superadmin_token, school.id, "Annex")

        response = await client.put(
            f"/api/v1/schools/{other_school.id}/branches/{branch.json()['id']}",
            headers=auth_header(superadmin_token),
            json={"name": "Stolen"},
        )

        assert response.status_code == 404

    async def test_deleted_branch_hidden(
        self, client: AsyncClient, superadmin_token: str, school
    ):
        branch = await add_branch(client, superadmin_token, school.id, "Annex")

        response = await client.patch(
            f"/api/v1/schools/{school.id}/branches/{branch.json()['id']}/status",
            headers=auth_header(superadmin_token),
            json={"status": "deleted"},
        )
        assert response.status_code == 200
        assert response.json()["status"] == "deleted"

        response = await client.get(
            f"/api/v1/schools/{school.id}/branches", headers=auth_header(superadmin_token)
        )
        assert [b["name"] for b in response.json()] == ["Main Branch"]

        response = await client.get(
            f"/api/v1/schools/{school.id}/branches",
            headers=auth_header(superadmin_token),
            params={"include_deleted": True},
        )
        assert len(response.json()) == 2

    async def test_invalid_branch_status(
        self, client: AsyncClient, superadmin_token: str, school
    ):
        branch = await add_branch(client, superadmin_token, school.id, "Annex")

        response = await client.patch(
            f"/api/v1/schools/{school.id}/branches/{branch.json()['id']}/status",
            headers=auth_header(superadmin_token),
            json={"status": "archived"},
        )

        assert response.status_code == 400

    async def test_main_branch_cannot_be_suspended(
        self, client: AsyncClient, superadmin_token: str, school
    ):
        response = await client.patch(
            f"/api/v1/schools/{school.id}/branches/{school.main_branch_id}/status",
            headers=auth_header(superadmin_token),
            json={"status": "suspended"},
        )

        assert response.status_code == 409

    async def test_school_admin_reads_own_branches_only(
        self, client: AsyncClient, school_admin_token: str, school, other_school
    ):
        response = await client.get(
            f"/api/v1/schools/{school.id}/branches", headers=auth_header(school_admin_token)
        )
        assert response.status_code == 200

        response = await client.get(
            f"/api/v1/schools/{other_school.id}/branches",
            headers=auth_header(school_admin_token),
        )
        assert response.status_code == 404

    async def test_school_admin_cannot_create_branch(
        self, client: AsyncClient, school_admin_token: str, school
    ):
        response = await add_branch(client, school_admin_token, school.id, "Annex")

        assert response.status_code == 403


class TestCommunicationSettings:
    async def test_all_channels_available(
        self, client: AsyncClient, superadmin_token: str, school
    ):
        response = await client.get(
            f"/api/v1/schools/{school.id}/communication-settings",
            headers=auth_header(superadmin_token),
        )

        assert response.status_code == 200
        assert response.json() == {
            "email": {"available": True, "address": "bursar@greenfield.test", "phones": []},
            "whatsapp": {"available": True, "address": None, "phones": ["+2348012345678"]},
            "sms": {"available": True, "address": None, "phones": ["+2348012345678"]},
        }

    async def test_school_without_contacts(
        self, client: AsyncClient, superadmin_token: str, other_school
    ):
        response = await client.get(
            f"/api/v1/schools/{other_school.id}/communication-settings",
            headers=auth_header(superadmin_token),
        )

        data = response.json()
        assert data["email"]["available"] is False
        assert data["whatsapp"]["available"] is False
        assert data["sms"]["available"] is False

    async def test_superadmin_only(
        self, client: AsyncClient, school_admin_token: str, school
    ):
        response = await client.get(
            f"/api/v1/schools/{school.id}/communication-settings",
            headers=auth_header(school_admin_token),
        )

        assert response.status_code == 403
