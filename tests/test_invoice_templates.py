"""Tests for invoice templates."""

from uuid import uuid4

from httpx import AsyncClient

from tests.conftest import auth_header


async def create_template(client: AsyncClient, token: str, **payload):
    payload.setdefault("name", "Classic")
    return await client.post(
        "/api/v1/invoice-templates", headers=auth_header(token), json=payload
    )


class TestTemplates:
    async def test_create_global_template(self, client: AsyncClient, superadmin_token: str):
        response = await create_template(client, superadmin_token, primary_color="#112233")

        assert response.status_code == 201
        data = response.json()
        assert data["school_id"] is None
        assert data["primary_color"] == "#112233"
        assert data["template_type"] == "modern"

    async def test_invalid_color(self, client: AsyncClient, superadmin_token: str):
        response = await create_template(client, superadmin_token, primary_color="blue")

        assert response.status_code == 400

    async def test_unknown_school(self, client: AsyncClient, superadmin_token: str):
        response = await create_template(client, superadmin_token, school_id=str(uuid4()))

        assert response.status_code == 404

    async def test_school_admin_sees_global_and_own(
        self,
        client: AsyncClient,
        superadmin_token: str,
        school_admin_token: str,
        school,
        other_school,
    ):
        await create_template(client, superadmin_token, name="Global")
        await create_template(client, superadmin_token, name="Greenfield", school_id=str(school.id))
        hidden = await create_template(
            client, superadmin_token, name="Hilltop", school_id=str(other_school.id)
        )

        response = await client.get(
            "/api/v1/invoice-templates", headers=auth_header(school_admin_token)
        )
        assert response.status_code == 200
        assert {t["name"] for t in response.json()} == {"Global", "Greenfield"}

        response = await client.get(
            f"/api/v1/invoice-templates/{hidden.json()['id']}",
            headers=auth_header(school_admin_token),
        )
        assert response.status_code == 404

    async def test_invoice_rejects_other_schools_template(
        self,
        client: AsyncClient,
        superadmin_token: str,
        entitled_school,
        other_school,
        features,
    ):
        template = await create_template(
            client, superadmin_token, name="Hilltop", school_id=str(other_school.id)
        )

        response = await client.post(
            "/api/v1/invoices",
            headers=auth_header(superadmin_token),
            json={
                "school_id": str(entitled_school.id),
                "lines": [{"feature_id": str(features["attendance"].id)}],
                "due_date": "2030-01-31",
                "template_id": template.json()["id"],
            },
        )

        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "template_id"

    async def test_invoice_with_global_template(
        self, client: AsyncClient, superadmin_token: str, entitled_school, features
    ):
        template = await create_template(client, superadmin_token, name="Global")

        response = await client.post(
            "/api/v1/invoices",
            headers=auth_header(superadmin_token),
            json={
                "school_id": str(entitled_school.id),
                "lines": [{"feature_id": str(features["attendance"].id)}],
                "due_date": "2030-01-31",
                "template_id": template.json()["id"],
            },
        )

        assert response.status_code == 201
        assert response.json()["template_id"] == template.json()["id"]


class TestUpdateTemplate:
    async def test_update_template(self, client: AsyncClient, superadmin_token: str):
        template = await create_template(client, superadmin_token)

        response = await client.put(
            f"/api/v1/invoice-templates/{template.json()['id']}",
            headers=auth_header(superadmin_token),
            json={"name": "Classic Blue", "primary_color": "#0000ff"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "Classic Blue"
        assert data["primary_color"] == "#0000ff"
        assert data["accent_color"] == "#64748b"

    async def test_owner_cannot_change(
        self, client: AsyncClient, superadmin_token: str, school
    ):
        template = await create_template(client, superadmin_token)

        response = await client.put(
            f"/api/v1/invoice-templates/{template.json()['id']}",
            headers=auth_header(superadmin_token),
            json={"school_id": str(school.id)},
        )

        assert response.status_code == 400

    async def test_update_not_found(self, client: AsyncClient, superadmin_token: str):
        response = await client.put(
            f"/api/v1/invoice-templates/{uuid4()}",
            headers=auth_header(superadmin_token),
            json={"name": "Ghost"},
        )

        assert response.status_code == 404

    async def test_school_admin_cannot_update(
        self, client: AsyncClient, superadmin_token: str, school_admin_token: str, school
    ):
        template = await create_template(
            client, superadmin_token, school_id=str(school.id)
        )

        response = await client.put(
            f"/api/v1/invoice-templates/{template.json()['id']}",
            headers=auth_header(school_admin_token),
            json={"name": "Mine"},
        )

        assert response.status_code == 403


class TestDeleteTemplate:
    async def test_delete_template(self, client: AsyncClient, superadmin_token: str):
        template = await create_template(client, superadmin_token)
        template_id = template.json()["id"]

        response = await client.delete(
            f"/api/v1/invoice-templates/{template_id}", headers=auth_header(superadmin_token)
        )
        assert response.status_code == 204

        response = await client.get(
            f"/api/v1/invoice-templates/{template_id}", headers=auth_header(superadmin_token)
        )
        assert response.status_code == 404

    async def test_invoices_keep_their_data(
        self, client: AsyncClient, superadmin_token: str, entitled_school, features
    ):
        template = await create_template(client, superadmin_token)
        invoice = await client.post(
            "/api/v1/invoices",
            headers=auth_header(superadmin_token),
            json={
                "school_id": str(entitled_school.id),
                "lines": [{"feature_id": str(features["attendance"].id)}],
                "due_date": "2030-01-31",
                "template_id": template.json()["id"],
            },
        )

        response = await client.delete(
            f"/api/v1/invoice-templates/{template.json()['id']}",
            headers=auth_header(superadmin_token),
        )
        assert response.status_code == 204

        response = await client.get(
            f"/api/v1/invoices/{invoice.json()['id']}", headers=auth_header(superadmin_token)
        )
        assert response.status_code == 200
        assert response.json()["template_id"] is None
        assert response.json()["total_amount"] == invoice.json()["total_amount"]


class TestInvoiceAssets:
    async def test_register_hosted_asset(self, client: AsyncClient, superadmin_token: str):
        response = await client.post(
            "/api/v1/invoice-assets",
            headers=auth_header(superadmin_token),
            json={
                "name": "Platform logo",
                "url": "https://cdn.test/logo.png",
                "mime_type": "image/png",
            },
        )

        assert response.status_code == 201
        data = response.json()
        assert data["type"] == "logo"
        assert data["school_id"] is None

    async def test_register_rejects_bad_url(self, client: AsyncClient, superadmin_token: str):
        response = await client.post(
            "/api/v1/invoice-assets",
            headers=auth_header(superadmin_token),
            json={"name": "Logo", "url": "not-a-url"},
        )

        assert response.status_code == 400

    async def test_upload_signature(
        self, client: AsyncClient, superadmin_token: str, storage, school
    ):
        response = await client.post(
            "/api/v1/invoice-assets/upload",
            headers=auth_header(superadmin_token),
            files={"file": ("bursar.png", b"\x89PNG fake", "image/png")},
            data={"type": "signature", "school_id": str(school.id)},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["type"] == "signature"
        assert data["school_id"] == str(school.id)
        assert data["size"] == len(b"\x89PNG fake")
        assert data["url"] == "https://cdn.test/invoice-assets/bursar.png"
        assert "invoice-assets/bursar.png" in storage.files

    async def test_upload_rejects_non_image(
        self, client: AsyncClient, superadmin_token: str, storage
    ):
        response = await client.post(
            "/api/v1/invoice-assets/upload",
            headers=auth_header(superadmin_token),
            files={"file": ("notes.txt", b"hello", "text/plain")},
        )

        assert response.status_code == 400
        assert storage.files == {}

    async def test_upload_unknown_school(self, client: AsyncClient, superadmin_token: str):
        response = await client.post(
            "/api/v1/invoice-assets/upload",
            headers=auth_header(superadmin_token),
            files={"file": ("logo.png", b"\x89PNG", "image/png")},
            data={"school_id": str(uuid4())},
        )

        assert response.status_code == 404

    async def test_school_admin_sees_global_and_own(
        self,
        client: AsyncClient,
        superadmin_token: str,
        school_admin_token: str,
        school,
        other_school,
    ):
        for name, school_id in [
            ("Global", None),
            ("Greenfield", str(school.id)),
            ("Hilltop", str(other_school.id)),
        ]:
            await client.post(
                "/api/v1/invoice-assets",
                headers=auth_header(superadmin_token),
                json={"name": name, "url": "https://cdn.test/a.png", "school_id": school_id},
            )

        response = await client.get(
            "/api/v1/invoice-assets", headers=auth_header(school_admin_token)
        )

        assert response.status_code == 200
        assert {a["name"] for a in response.json()} == {"Global", "Greenfield"}

    async def test_other_schools_asset_hidden(
        self, client: AsyncClient, superadmin_token: str, school_admin_token: str, other_school
    ):
        created = await client.post(
            "/api/v1/invoice-assets",
            headers=auth_header(superadmin_token),
            json={
                "name": "Hilltop",
                "url": "https://cdn.test/h.png",
                "school_id": str(other_school.id),
            },
        )

        response = await client.get(
            f"/api/v1/invoice-assets/{created.json()['id']}",
            headers=auth_header(school_admin_token),
        )

        assert response.status_code == 404

    async def test_filter_by_type(self, client: AsyncClient, superadmin_token: str):
        for name, asset_type in [("Logo", "logo"), ("Stamp", "signature")]:
            await client.post(
                "/api/v1/invoice-assets",
                headers=auth_header(superadmin_token),
                json={"name": name, "type": asset_type, "url": "https://cdn.test/x.png"},
            )

        response = await client.get(
            "/api/v1/invoice-assets",
            headers=auth_header(superadmin_token),
            params={"type": "signature"},
        )

        assert [a["name"] for a in response.json()] == ["Stamp"]

    async def test_update_and_delete(self, client: AsyncClient, superadmin_token: str):
        created = await client.post(
            "/api/v1/invoice-assets",
            headers=auth_header(superadmin_token),
            json={"name": "Logo", "url": "https://cdn.test/x.png"},
        )
        asset_id = created.json()["id"]

        response = await client.put(
            f"/api/v1/invoice-assets/{asset_id}",
            headers=auth_header(superadmin_token),
            json={"name": "Watermark", "type": "watermark"},
        )
        assert response.status_code == 200
        assert response.json()["name"] == "Watermark"
        assert response.json()["type"] == "watermark"
        assert response.json()["url"] == "https://cdn.test/x.png"

        response = await client.delete(
            f"/api/v1/invoice-assets/{asset_id}", headers=auth_header(superadmin_token)
        )
        assert response.status_code == 204

        response = await client.get(
            f"/api/v1/invoice-assets/{asset_id}", headers=auth_header(superadmin_token)
        )
        assert response.status_code == 404
