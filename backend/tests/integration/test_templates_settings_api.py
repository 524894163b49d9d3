"""Integration tests for the Templates and Settings API endpoints

Tests cover:
- Template create / list / get / update / delete with owner scoping
- Template validation errors
- Owner settings defaults and partial updates
- Preferences applied to newly created documents
"""

from datetime import datetime, timezone
from uuid import uuid4

import pytest

YEAR = datetime.now(timezone.utc).year

TEMPLATE_PAYLOAD = {
    "name": "Classic",
    "kind": "quotation",
    "sections": [
        {"type": "header", "position": 1},
        {"type": "items_table", "position": 2, "settings": {"columns": ["index", "description", "total"]}},
        {"type": "totals", "position": 3},
    ],
    "settings": {"page_size": "Letter"},
}

DOCUMENT_PAYLOAD = {
    "kind": "invoice",
    "client": {"name": "Sara Al-Harbi", "company": "Nakheel Trading"},
    "items": [{"description": "Design", "quantity": "2", "unit_price": "100"}],
}


@pytest.fixture
def template(client, auth_headers) -> dict:
    response = client.post("/api/v1/templates", json=TEMPLATE_PAYLOAD, headers=auth_headers)
    assert response.status_code == 201
    return response.json()


class TestTemplatesApi:
    """Test /templates CRUD"""

    def test_create_template(self, template, owner_id):
        assert template["owner_id"] == str(owner_id)
        assert template["kind"] == "quotation"
        assert [s["type"] for s in template["sections"]] == ["header", "items_table", "totals"]
        assert template["usage_count"] == 0

    def test_unknown_section_type(self, client, auth_headers):
        payload = {**TEMPLATE_PAYLOAD, "sections": [{"type": "gallery"}]}

        response = client.post("/api/v1/templates", json=payload, headers=auth_headers)

        assert response.status_code == 422
        assert response.json()["error"] == "invalid_template"

    def test_list_templates(self, client, auth_headers, template):
        client.post(
            "/api/v1/templates", json={**TEMPLATE_PAYLOAD, "name": "Billing", "kind": "invoice"},
            headers=auth_headers,
        )

        everything = client.get("/api/v1/templates", headers=auth_headers).json()
        invoices = client.get("/api/v1/templates", params={"kind": "invoice"}, headers=auth_headers).json()

        assert {t["name"] for t in everything} == {"Classic", "Billing"}
        assert [t["name"] for t in invoices] == ["Billing"]

    def test_private_template_forbidden(self, client, template):
        response = client.get(f"/api/v1/templates/{template['id']}", headers={"X-User-ID": str(uuid4())})

        assert response.status_code == 403
        assert response.json()["error"] == "access_denied"

    def test_update_template(self, client, auth_headers, template):
        response = client.put(
            f"/api/v1/templates/{template['id']}", json={"is_public": True}, headers=auth_headers
        )

        assert response.status_code == 200
        assert response.json()["is_public"] is True
        assert response.json()["name"] == "Classic"
        other = client.get(f"/api/v1/templates/{template['id']}", headers={"X-User-ID": str(uuid4())})
        assert other.status_code == 200

    def test_null_name_rejected(self, client, auth_headers, template):
        response = client.put(f"/api/v1/templates/{template['id']}", json={"name": None}, headers=auth_headers)

        assert response.status_code == 422
        assert response.json()["error"] == "validation_error"

    def test_delete_template(self, client, auth_headers, template):
        response = client.delete(f"/api/v1/templates/{template['id']}", headers=auth_headers)

        assert response.status_code == 204
        missing = client.get(f"/api/v1/templates/{template['id']}", headers=auth_headers)
        assert missing.status_code == 404
        assert missing.json()["error"] == "not_found"

    def test_document_renders_with_template(self, client, auth_headers, template):
        document = client.post(
            "/api/v1/documents",
            json={**DOCUMENT_PAYLOAD, "kind": "quotation", "template_id": template["id"]},
            headers=auth_headers,
        ).json()

        rendered = client.get(f"/api/v1/documents/{document['id']}/render", headers=auth_headers).json()

        sections = [c["attrs"].get("type") for c in rendered["artifact"]["children"] if c["tag"] == "section"]
        assert sections == ["header", "items_table", "totals"]


class TestSettingsApi:
    """Test /settings read and partial updates"""

    def test_defaults(self, client, auth_headers, owner_id):
        response = client.get("/api/v1/settings", headers=auth_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["owner_id"] == str(owner_id)
        assert body["preferences"]["currency"] == "SAR"
        assert body["company"]["name"] is None

    def test_company_update_is_partial(self, client, auth_headers):
        client.put("/api/v1/settings/company", json={"name": "Nakheel Trading", "city": "Riyadh"}, headers=auth_headers)

        response = client.put("/api/v1/settings/company", json={"city": "Jeddah"}, headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["company"]["name"] == "Nakheel Trading"
        assert response.json()["company"]["city"] == "Jeddah"

    def test_prefix_applies_to_new_documents(self, client, auth_headers):
        response = client.put(
            "/api/v1/settings/preferences",
            json={"numbering_prefixes": {"invoice": "FAC"}, "currency": "USD"},
            headers=auth_headers,
        )
        assert response.status_code == 200

        document = client.post("/api/v1/documents", json=DOCUMENT_PAYLOAD, headers=auth_headers).json()

        assert document["document_number"] == f"FAC-{YEAR}-001"
        assert document["currency"] == "USD"

    def test_null_currency_rejected(self, client, auth_headers):
        response = client.put("/api/v1/settings/preferences", json={"currency": None}, headers=auth_headers)

        assert response.status_code == 422
        assert response.json()["error"] == "validation_error"
        assert client.get("/api/v1/settings", headers=auth_headers).json()["preferences"]["currency"] == "SAR"

    @pytest.mark.parametrize("payload", [
        {"primary_color": "teal"},
        {"logo_position": "top"},
    ])
    def test_invalid_branding(self, client, auth_headers, payload):
        response = client.put("/api/v1/settings/branding", json=payload, headers=auth_headers)

        assert response.status_code == 422
        assert response.json()["error"] == "validation_error"
