# Overview: Pytest coverage for the document, running number, template and audit API routes.

import io
import zipfile

from procurement.models import AuditLog, Document
from procurement.services.conversion_client import ConversionClient, ConversionError, KIND_TIMEOUT

from conftest import PACK_ID, FakeConverter, auth_headers


GENERATE_BODY = {"packId": PACK_ID, "inputs": {"title": "Cleaning", "amount": 15000}}


def post_generate(client, case, role="Admin", body=None, org=None):
    return client.post(
        f"/api/cases/{case.id}/documents/generate",
        json=GENERATE_BODY if body is None else body,
        headers=auth_headers(org or case.organization, role=role),
    )


class TestGenerateRoute:
    def test_generate(self, client, db_session, registry, fake_converter, case_a):
        response = post_generate(client, case_a)

        assert response.status_code == 201
        data = response.get_json()
        assert data["running_number"] == "HIRE-2567-0001"
        assert len(data["documents"]) == 2
        assert data["zip"]["file_name"] == "hire_general-HIRE-2567-0001.zip"
        assert len(fake_converter.calls) == 1

    def test_viewer_cannot_generate(self, client, db_session, registry, fake_converter, case_a):
        response = post_generate(client, case_a, role="Viewer")

        assert response.status_code == 403
        assert response.get_json()["error"] == "Permission denied"
        assert fake_converter.calls == []

    def test_missing_identity(self, client, db_session, registry, case_a):
        response = client.post(f"/api/cases/{case_a.id}/documents/generate", json=GENERATE_BODY)
        assert response.status_code == 401

    def test_unknown_role(self, client, db_session, registry, case_a):
        headers = auth_headers(case_a.organization, role="Janitor")
        response = client.post(f"/api/cases/{case_a.id}/documents/generate", json=GENERATE_BODY, headers=headers)
        assert response.status_code == 401

    def test_missing_pack_id(self, client, db_session, registry, fake_converter, case_a):
        response = post_generate(client, case_a, body={"inputs": {}})
        assert response.status_code == 400

    def test_bad_pdf_mode(self, client, db_session, registry, fake_converter, case_a):
        response = post_generate(client, case_a, body={"packId": PACK_ID, "pdfMode": "everyPage"})
        assert response.status_code == 400

    def test_inactive_pack(self, client, db_session, registry, fake_converter, case_a):
        client.patch(
            f"/api/templates/{PACK_ID}",
            json={"isActive": False},
            headers=auth_headers(case_a.organization),
        )

        response = post_generate(client, case_a)
        assert response.status_code == 400
        assert "inactive" in response.get_json()["error"]

    def test_unknown_pack(self, client, db_session, registry, fake_converter, case_a):
        response = post_generate(client, case_a, body={"packId": "ghost"})
        assert response.status_code == 404

    def test_conversion_timeout(self, client, db_session, registry, case_a, monkeypatch):
        failing = FakeConverter(error=ConversionError("Converter did not respond within 120s", kind=KIND_TIMEOUT))
        monkeypatch.setattr(ConversionClient, "from_config", classmethod(lambda cls: failing))

        response = post_generate(client, case_a)

        assert response.status_code == 504
        assert response.get_json()["kind"] == "timeout"
        assert db_session.query(Document).count() == 0

    def test_conversion_service_error(self, client, db_session, registry, case_a, monkeypatch):
        failing = FakeConverter(error=ConversionError(
            "Converter failed: soffice failed with code 1",
            kind="service",
            status_code=500,
            diagnostics={"logs": {"soffice": {"returncode": 1}}},
        ))
        monkeypatch.setattr(ConversionClient, "from_config", classmethod(lambda cls: failing))

        response = post_generate(client, case_a)

        assert response.status_code == 502
        data = response.get_json()
        assert data["status_code"] == 500
        assert data["diagnostics"]["logs"]["soffice"]["returncode"] == 1


class TestDocumentRoutes:
    def test_list(self, client, db_session, registry, fake_converter, case_a):
        post_generate(client, case_a)

        response = client.get(
            f"/api/cases/{case_a.id}/documents",
            headers=auth_headers(case_a.organization, role="Viewer"),
        )
        assert response.status_code == 200
        assert response.get_json()["count"] == 3

    def test_download_zip(self, client, db_session, registry, fake_converter, case_a):
        post_generate(client, case_a)

        response = client.get(
            f"/api/cases/{case_a.id}/documents/download-zip",
            headers=auth_headers(case_a.organization, role="Approver"),
        )
        assert response.status_code == 200
        assert response.mimetype == "application/zip"
        with zipfile.ZipFile(io.BytesIO(response.data)) as zf:
            assert sorted(zf.namelist()) == ["Approval.pdf", "Request.pdf"]

    def test_download_zip_before_generation(self, client, db_session, registry, case_a):
        response = client.get(
            f"/api/cases/{case_a.id}/documents/download-zip",
            headers=auth_headers(case_a.organization),
        )
        assert response.status_code == 404

    def test_download_document(self, client, db_session, registry, fake_converter, case_a):
        doc_id = post_generate(client, case_a).get_json()["documents"][0]["id"]

        response = client.get(f"/api/documents/{doc_id}/download", headers=auth_headers(case_a.organization))
        assert response.status_code == 200
        assert response.mimetype == "application/pdf"
        assert response.data.startswith(b"%PDF")

    def test_override(self, client, db_session, registry, fake_converter, backdated_case_a):
        doc_id = post_generate(client, backdated_case_a).get_json()["documents"][0]["id"]

        response = client.post(
            f"/api/cases/{backdated_case_a.id}/documents/override-number",
            json={"documentId": doc_id, "number": "OLD-12", "reason": "issued on paper", "documentDate": "2024-01-15"},
            headers=auth_headers(backdated_case_a.organization, role="ProcurementOfficer"),
        )

        assert response.status_code == 200
        doc = response.get_json()["document"]
        assert doc["manual_number"] == "OLD-12"
        assert doc["effective_number"] == "OLD-12"
        assert doc["document_date"] == "2024-01-15"

    def test_override_requires_reason(self, client, db_session, registry, fake_converter, backdated_case_a):
        doc_id = post_generate(client, backdated_case_a).get_json()["documents"][0]["id"]

        response = client.post(
            f"/api/cases/{backdated_case_a.id}/documents/override-number",
            json={"documentId": doc_id, "number": "OLD-12"},
            headers=auth_headers(backdated_case_a.organization),
        )
        assert response.status_code == 400

    def test_override_regular_case(self, client, db_session, registry, fake_converter, case_a):
        doc_id = post_generate(client, case_a).get_json()["documents"][0]["id"]

        response = client.post(
            f"/api/cases/{case_a.id}/documents/override-number",
            json={"documentId": doc_id, "number": "OLD-12", "reason": "nope"},
            headers=auth_headers(case_a.organization),
        )
        assert response.status_code == 400
        assert db_session.query(AuditLog).filter_by(action="OVERRIDE").count() == 0

    def test_override_document_from_other_case(self, client, db_session, registry, fake_converter,
                                               case_a, backdated_case_a):
        doc_id = post_generate(client, case_a).get_json()["documents"][0]["id"]

        response = client.post(
            f"/api/cases/{backdated_case_a.id}/documents/override-number",
            json={"documentId": doc_id, "number": "OLD-12", "reason": "wrong case"},
            headers=auth_headers(backdated_case_a.organization),
        )
        assert response.status_code == 404


class TestRunningNumberRoute:
    def test_next(self, client, db_session, org_a):
        headers = auth_headers(org_a)
        body = {"fiscalYear": 2567, "documentType": "hire"}

        first = client.post("/api/running-numbers/next", json=body, headers=headers)
        second = client.post("/api/running-numbers/next", json=body, headers=headers)

        assert first.status_code == 201
        assert first.get_json()["running_number"] == "HIRE-2567-0001"
        assert second.get_json()["running_number"] == "HIRE-2567-0002"

    def test_admin_only(self, client, db_session, org_a):
        response = client.post(
            "/api/running-numbers/next",
            json={"fiscalYear": 2567, "documentType": "HIRE"},
            headers=auth_headers(org_a, role="ProcurementOfficer"),
        )
        assert response.status_code == 403

    def test_invalid_body(self, client, db_session, org_a):
        response = client.post(
            "/api/running-numbers/next",
            json={"fiscalYear": "twenty", "documentType": "HIRE"},
            headers=auth_headers(org_a),
        )
        assert response.status_code == 400


class TestTemplateRoutes:
    def test_list(self, client, db_session, registry, org_a):
        response = client.get("/api/templates", headers=auth_headers(org_a, role="Viewer"))

        assert response.status_code == 200
        items = response.get_json()["items"]
        assert [p["id"] for p in items] == [PACK_ID]
        assert items[0]["isActive"] is True
        assert items[0]["name_th"] == "ชุดเอกสารจ้าง"

    def test_toggle(self, client, db_session, registry, org_a):
        response = client.patch(f"/api/templates/{PACK_ID}", json={"isActive": False}, headers=auth_headers(org_a))

        assert response.status_code == 200
        assert response.get_json()["template_pack"]["is_active"] is False

        listed = client.get("/api/templates", headers=auth_headers(org_a)).get_json()["items"]
        assert listed[0]["isActive"] is False

    def test_toggle_requires_bool(self, client, db_session, registry, org_a):
        response = client.patch(f"/api/templates/{PACK_ID}", json={"isActive": "no"}, headers=auth_headers(org_a))
        assert response.status_code == 400

    def test_toggle_admin_only(self, client, db_session, registry, org_a):
        response = client.patch(
            f"/api/templates/{PACK_ID}",
            json={"isActive": False},
            headers=auth_headers(org_a, role="Approver"),
        )
        assert response.status_code == 403

    def test_toggle_unknown_pack(self, client, db_session, registry, org_a):
        response = client.patch("/api/templates/ghost", json={"isActive": False}, headers=auth_headers(org_a))
        assert response.status_code == 404


class TestAuditRoute:
    def test_filters_and_order(self, client, db_session, registry, fake_converter, case_a):
        post_generate(client, case_a)
        client.patch(f"/api/templates/{PACK_ID}", json={"isActive": False}, headers=auth_headers(case_a.organization))

        headers = auth_headers(case_a.organization, role="Approver")
        everything = client.get("/api/audit", headers=headers).get_json()["items"]
        assert [row["action"] for row in everything] == ["CREATE", "GENERATE", "CREATE"]
        assert everything[0]["entity"] == "template-pack"

        by_case = client.get(f"/api/audit?caseId={case_a.id}", headers=headers).get_json()["items"]
        assert [row["action"] for row in by_case] == ["GENERATE"]

        by_entity = client.get("/api/audit?entity=document-running-number", headers=headers).get_json()["items"]
        assert len(by_entity) == 1

    def test_viewer_cannot_read_audit(self, client, db_session, org_a):
        response = client.get("/api/audit", headers=auth_headers(org_a, role="Viewer"))
        assert response.status_code == 403


class TestHealth:
    def test_health(self, client, db_session, registry):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.get_json()["checks"]["database"]["status"] == "healthy"

    def test_cors_allows_identity_headers(self, client, db_session, registry):
        response = client.get("/health", headers={"Origin": "http://localhost:3000"})

        allowed = response.headers["Access-Control-Allow-Headers"]
        assert "X-Org-Id" in allowed
        assert "X-User-Role" in allowed
        assert "Authorization" not in allowed
