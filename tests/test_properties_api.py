"""
Tests for listing submission, public listing reads and authentication.
"""

from __future__ import annotations

import json

import pytest

from app.models.property import VerificationStatus, Visibility
from app.routers.auth import issue_token
from scripts.create_admin import create_user

AGENT_PASSWORD = "agent-password"
ADMIN_PASSWORD = "admin-password"

CREATE_URL = "/api/v1/properties"


@pytest.fixture
def form():
    return {
        "title": "Lakeside Cabin",
        "property_type": "HOUSE",
        "transaction_type": "SALE",
        "latitude": "4.05",
        "longitude": "9.7",
        "gps_timestamp": "2025-03-01T09:30:00.000Z",
        "city": "Douala",
        "country": "Cameroon",
    }


@pytest.fixture
def evidence(jpeg_bytes, pdf_bytes):
    return [
        ("images", ("front.jpg", jpeg_bytes, "image/jpeg")),
        ("documents", ("deed.pdf", pdf_bytes, "application/pdf")),
    ]


# =============================================================================
# Submission
# =============================================================================


class TestCreateProperty:
    def test_created_with_backend_defaults(self, client, agent_headers, form, evidence, agent):
        response = client.post(CREATE_URL, data=form, files=evidence, headers=agent_headers)
        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True

        data = body["data"]
        assert data["title"] == "Lakeside Cabin"
        assert data["agent_id"] == str(agent.id)
        assert data["agent_email"] == "agent@example.com"
        assert data["verification_status"] in {s.value for s in VerificationStatus}
        assert data["visibility"] in {v.value for v in Visibility}
        assert data["created_at"] == data["updated_at"]

        location = data["locations"][0]
        assert location["latitude"] == pytest.approx(4.05)
        assert location["longitude"] == pytest.approx(9.7)
        assert location["city"] == "Douala"
        assert location["gps_timestamp"].startswith("2025-03-01T09:30:00")

    def test_evidence_is_stored(self, client, agent_headers, form, evidence, media_root, jpeg_bytes):
        data = client.post(CREATE_URL, data=form, files=evidence, headers=agent_headers).json()["data"]

        [media] = data["media"]
        assert media["file_type"] == "image"
        assert media["mime_type"] == "image/jpeg"
        assert media["file_size"] == len(jpeg_bytes)
        assert "/media/properties/" in media["file_path"]

        [document] = data["documents"]
        assert document["file_name"] == "deed.pdf"
        assert document["document_type"] == "SUPPORTING_DOCUMENT"
        assert document["mime_type"] == "application/pdf"

        stored = media_root / "properties" / media["file_path"].rsplit("/", 1)[-1]
        assert stored.read_bytes() == jpeg_bytes

    def test_document_types_align_with_documents(self, client, agent_headers, form, jpeg_bytes, pdf_bytes):
        files = [
            ("images", ("front.jpg", jpeg_bytes, "image/jpeg")),
            ("documents", ("deed.pdf", pdf_bytes, "application/pdf")),
            ("documents", ("tax.pdf", pdf_bytes, "application/pdf")),
        ]
        form["document_types"] = json.dumps(["TITLE_DEED", None])
        data = client.post(CREATE_URL, data=form, files=files, headers=agent_headers).json()["data"]
        assert sorted(d["document_type"] for d in data["documents"]) == ["SUPPORTING_DOCUMENT", "TITLE_DEED"]

    def test_octet_stream_falls_back_to_extension(self, client, agent_headers, form, jpeg_bytes, pdf_bytes):
        files = [
            ("images", ("front.jpg", jpeg_bytes, "application/octet-stream")),
            ("documents", ("deed.pdf", pdf_bytes, "application/pdf")),
        ]
        response = client.post(CREATE_URL, data=form, files=files, headers=agent_headers)
        assert response.status_code == 201
        assert response.json()["data"]["media"][0]["mime_type"] == "image/jpeg"

    def test_blank_title_is_rejected(self, client, agent_headers, form, evidence):
        form["title"] = "   "
        response = client.post(CREATE_URL, data=form, files=evidence, headers=agent_headers)
        assert response.status_code == 400
        assert response.json()["error"] == "bad_request"

    def test_out_of_range_latitude_is_rejected(self, client, agent_headers, form, evidence):
        form["latitude"] = "91"
        response = client.post(CREATE_URL, data=form, files=evidence, headers=agent_headers)
        assert response.status_code == 400

    def test_missing_documents_is_rejected(self, client, agent_headers, form, jpeg_bytes):
        files = [("images", ("front.jpg", jpeg_bytes, "image/jpeg"))]
        response = client.post(CREATE_URL, data=form, files=files, headers=agent_headers)
        assert response.status_code == 422
        assert any(item["field"] == "documents" for item in response.json()["data"])

    def test_content_must_match_declared_type(self, client, agent_headers, form, pdf_bytes, media_root):
        files = [
            ("images", ("front.jpg", pdf_bytes, "image/jpeg")),
            ("documents", ("deed.pdf", pdf_bytes, "application/pdf")),
        ]
        response = client.post(CREATE_URL, data=form, files=files, headers=agent_headers)
        assert response.status_code == 400
        assert "declared as 'image/jpeg'" in response.json()["message"]
        assert not list(media_root.glob("**/*.jpg"))

    def test_stored_images_are_removed_when_a_document_fails(self, client, agent_headers, form, jpeg_bytes, media_root):
        files = [
            ("images", ("front.jpg", jpeg_bytes, "image/jpeg")),
            ("documents", ("deed.txt", b"plain text", "text/plain")),
        ]
        response = client.post(CREATE_URL, data=form, files=files, headers=agent_headers)
        assert response.status_code == 400
        assert not list((media_root / "properties").glob("*"))

    def test_earlier_images_are_removed_when_a_later_image_fails(
        self, client, agent_headers, form, jpeg_bytes, pdf_bytes, media_root
    ):
        files = [
            ("images", ("front.jpg", jpeg_bytes, "image/jpeg")),
            ("images", ("back.jpg", pdf_bytes, "image/jpeg")),
            ("documents", ("deed.pdf", pdf_bytes, "application/pdf")),
        ]
        response = client.post(CREATE_URL, data=form, files=files, headers=agent_headers)
        assert response.status_code == 400
        assert not list(media_root.glob("**/*.*"))

    def test_earlier_documents_are_removed_when_a_later_document_fails(
        self, client, agent_headers, form, jpeg_bytes, pdf_bytes, media_root
    ):
        files = [
            ("images", ("front.jpg", jpeg_bytes, "image/jpeg")),
            ("documents", ("deed.pdf", pdf_bytes, "application/pdf")),
            ("documents", ("tax.pdf", jpeg_bytes, "application/pdf")),
        ]
        response = client.post(CREATE_URL, data=form, files=files, headers=agent_headers)
        assert response.status_code == 400
        assert not list(media_root.glob("**/*.*"))

    def test_requires_authentication(self, client, form, evidence):
        response = client.post(CREATE_URL, data=form, files=evidence)
        assert response.status_code == 401


# =============================================================================
# Reads
# =============================================================================


class TestReadProperties:
    def test_public_list_only_shows_approved_public(self, client, make_property):
        shown = make_property(verification_status=VerificationStatus.GREEN, visibility=Visibility.PUBLIC)
        make_property(verification_status=VerificationStatus.GREEN, visibility=Visibility.PRIVATE)
        make_property(verification_status=VerificationStatus.YELLOW, visibility=Visibility.PUBLIC)

        body = client.get(CREATE_URL).json()
        assert [item["id"] for item in body["data"]] == [str(shown.id)]
        assert body["meta"]["total"] == 1

    def test_mine_lists_every_status(self, client, agent_headers, make_property, other_agent):
        make_property(verification_status=VerificationStatus.RED)
        make_property(verification_status=VerificationStatus.GREEN)
        make_property(agent_id=other_agent.id)
        body = client.get(f"{CREATE_URL}/mine", headers=agent_headers).json()
        assert body["meta"]["total"] == 2

    def test_private_listing_visible_to_owner_and_admin(self, client, agent_headers, admin_headers, make_property):
        prop = make_property()
        assert client.get(f"{CREATE_URL}/{prop.id}", headers=agent_headers).status_code == 200
        assert client.get(f"{CREATE_URL}/{prop.id}", headers=admin_headers).status_code == 200

    def test_private_listing_hidden_from_others(self, client, make_property, other_agent):
        prop = make_property()
        headers = {"Authorization": f"Bearer {issue_token(other_agent)}"}
        assert client.get(f"{CREATE_URL}/{prop.id}", headers=headers).status_code == 404
        assert client.get(f"{CREATE_URL}/{prop.id}").status_code == 404

    def test_public_listing_visible_anonymously(self, client, make_property):
        prop = make_property(verification_status=VerificationStatus.GREEN, visibility=Visibility.PUBLIC)
        response = client.get(f"{CREATE_URL}/{prop.id}")
        assert response.status_code == 200
        assert response.json()["data"]["id"] == str(prop.id)


# =============================================================================
# Authentication
# =============================================================================


class TestAuthentication:
    def test_login_and_me(self, client, agent):
        response = client.post(
            "/api/v1/auth/login", json={"email": "agent@example.com", "password": AGENT_PASSWORD}
        )
        assert response.status_code == 200
        token = response.json()["data"]["access_token"]

        me = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"}).json()
        assert me["data"]["email"] == "agent@example.com"
        assert me["data"]["capabilities"] == ["create_listing"]

    def test_wrong_password(self, client, agent):
        response = client.post(
            "/api/v1/auth/login", json={"email": "agent@example.com", "password": "wrong-password"}
        )
        assert response.status_code == 401
        assert response.json()["success"] is False

    def test_admin_token_endpoint_accepts_admins(self, client, admin):
        response = client.post(
            "/api/v1/admin/auth/token", data={"username": "admin@example.com", "password": ADMIN_PASSWORD}
        )
        assert response.status_code == 200
        assert "admin_access" in response.json()["data"]["user"]["capabilities"]

    def test_admin_token_endpoint_rejects_agents(self, client, agent):
        response = client.post(
            "/api/v1/admin/auth/token", data={"username": "agent@example.com", "password": AGENT_PASSWORD}
        )
        assert response.status_code == 401

    def test_login_ignores_email_case(self, client, db_session):
        create_user(db_session, "Mixed Case", "Reviewer@Example.com", ADMIN_PASSWORD)
        response = client.post(
            "/api/v1/auth/login", json={"email": "Reviewer@Example.com", "password": ADMIN_PASSWORD}
        )
        assert response.status_code == 200
        assert response.json()["data"]["user"]["email"] == "reviewer@example.com"

    def test_admin_capabilities(self, admin):
        assert admin.capabilities == ["create_listing", "admin_access"]
