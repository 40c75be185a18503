"""Tests for the REST API."""

import json

import pytest
from fastapi.testclient import TestClient

from pdf_editor_server import server


@pytest.fixture
def client():
    with TestClient(server.app) as test_client:
        yield test_client


def pdf_upload(data, name="sample.pdf"):
    return {"file": (name, data, "application/pdf")}


class TestHealth:
    def test_health(self, client):
        """Test the liveness endpoint."""
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}


class TestParseEndpoint:
    """Tests for POST /api/v1/pdf/parse."""

    def test_parse_returns_camel_case_document(self, client, sample_pdf_bytes):
        """Test that a valid PDF comes back as the editor JSON model."""
        response = client.post("/api/v1/pdf/parse", files=pdf_upload(sample_pdf_bytes))
        assert response.status_code == 200
        body = response.json()
        assert body["metadata"]["pageCount"] == 2
        assert body["metadata"]["title"] == "sample"
        assert "originalPdfBytes" not in body["metadata"]
        first_block = body["pages"][0]["blocks"][0]
        assert first_block["type"] == "heading"
        assert first_block["style"]["headingLevel"] == 1

    def test_rejects_non_pdf_name(self, client):
        """Test that only .pdf uploads are accepted."""
        response = client.post(
            "/api/v1/pdf/parse", files={"file": ("notes.txt", b"hello", "text/plain")}
        )
        assert response.status_code == 400
        assert response.json()["code"] == "UNSUPPORTED_FILE"

    def test_rejects_bad_signature(self, client):
        """Test that a .pdf without the %PDF header is rejected."""
        response = client.post("/api/v1/pdf/parse", files=pdf_upload(b"hello world"))
        assert response.status_code == 422
        assert response.json()["code"] == "INVALID_PDF"

    def test_rejects_large_upload(self, client, sample_pdf_bytes, monkeypatch):
        """Test the upload size limit."""
        monkeypatch.setattr(server, "MAX_UPLOAD_SIZE", 10)
        response = client.post("/api/v1/pdf/parse", files=pdf_upload(sample_pdf_bytes))
        assert response.status_code == 413
        assert response.json()["code"] == "FILE_TOO_LARGE"

    def test_unreadable_pdf(self, client):
        """Test that a PDF header on garbage reports a parse failure."""
        response = client.post("/api/v1/pdf/parse", files=pdf_upload(b"%PDF-1.7 garbage"))
        assert response.status_code == 422
        assert response.json()["code"] == "PARSE_FAILED"


class TestExportEndpoint:
    """Tests for POST /api/v1/pdf/export."""

    def test_export_round_trip(self, client, sample_pdf_bytes):
        """Test that an edited document JSON yields a new PDF."""
        document = client.post(
            "/api/v1/pdf/parse", files=pdf_upload(sample_pdf_bytes)
        ).json()
        paragraph = next(
            b for b in document["pages"][0]["blocks"] if b["type"] == "paragraph"
        )
        paragraph["content"] = "Goodbye"
        paragraph["metadata"]["isEdited"] = True

        response = client.post(
            "/api/v1/pdf/export",
            files=pdf_upload(sample_pdf_bytes),
            data={"document": json.dumps(document)},
        )
        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert 'filename="sample_edited.pdf"' in response.headers["content-disposition"]
        assert response.content.startswith(b"%PDF")

    def test_reordered_pages_rejected(self, client, sample_pdf_bytes):
        """Test that pages sent out of order are refused rather than drawn on the wrong page."""
        document = client.post(
            "/api/v1/pdf/parse", files=pdf_upload(sample_pdf_bytes)
        ).json()
        document["pages"].reverse()
        response = client.post(
            "/api/v1/pdf/export",
            files=pdf_upload(sample_pdf_bytes),
            data={"document": json.dumps(document)},
        )
        assert response.status_code == 422
        assert response.json()["code"] == "INVALID_DOCUMENT"

    def test_invalid_document_json(self, client, sample_pdf_bytes):
        """Test that malformed document JSON is rejected."""
        response = client.post(
            "/api/v1/pdf/export",
            files=pdf_upload(sample_pdf_bytes),
            data={"document": "{not json"},
        )
        assert response.status_code == 422
        assert response.json()["code"] == "INVALID_DOCUMENT"

    def test_document_with_mismatched_content(self, client, sample_pdf_bytes):
        """Test that a table block with text content is rejected."""
        document = client.post(
            "/api/v1/pdf/parse", files=pdf_upload(sample_pdf_bytes)
        ).json()
        document["pages"][0]["blocks"][0]["type"] = "table"
        response = client.post(
            "/api/v1/pdf/export",
            files=pdf_upload(sample_pdf_bytes),
            data={"document": json.dumps(document)},
        )
        assert response.status_code == 422
        assert response.json()["code"] == "INVALID_DOCUMENT"


class TestRenderEndpoint:
    """Tests for POST /api/v1/pdf/render/{page_number}."""

    def test_render_first_page(self, client, sample_pdf_bytes):
        """Test that a page comes back as PNG."""
        response = client.post("/api/v1/pdf/render/1", files=pdf_upload(sample_pdf_bytes))
        assert response.status_code == 200
        assert response.headers["content-type"] == "image/png"
        assert response.content.startswith(b"\x89PNG")

    def test_render_missing_page(self, client, sample_pdf_bytes):
        """Test that an out of range page is a 404."""
        response = client.post("/api/v1/pdf/render/5", files=pdf_upload(sample_pdf_bytes))
        assert response.status_code == 404
        assert response.json()["code"] == "PAGE_NOT_FOUND"

    def test_render_scale_limit(self, client, sample_pdf_bytes):
        """Test that the preview scale is bounded."""
        response = client.post(
            "/api/v1/pdf/render/1?scale=10", files=pdf_upload(sample_pdf_bytes)
        )
        assert response.status_code == 422
