import io

import docx

from resume_optimizer.core.config import settings
from tests.conftest import RESUME_TEXT


def _upload(client, headers, filename, data, mime):
    return client.post("/api/uploaded-resumes", headers=headers, files={"file": (filename, data, mime)})


def test_upload_text_resume(client, auth_headers, user):
    response = _upload(client, auth_headers, "john_doe.txt", RESUME_TEXT.encode("utf-8"), "text/plain")

    assert response.status_code == 201
    data = response.json()
    assert data["userId"] == user.id
    assert data["content"] == RESUME_TEXT.strip()
    assert data["metadata"]["filename"] == "john_doe.txt"
    assert data["metadata"]["fileType"] == "text/plain"

    listing = client.get("/api/uploaded-resumes", headers=auth_headers)
    assert [item["id"] for item in listing.json()] == [data["id"]]


def test_upload_docx_resume(client, auth_headers):
    document = docx.Document()
    document.add_paragraph("Jane Roe")
    document.add_paragraph("jane.roe@example.com")
    buffer = io.BytesIO()
    document.save(buffer)

    response = _upload(
        client, auth_headers, "jane.docx", buffer.getvalue(),
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    )
    assert response.status_code == 201
    assert response.json()["content"] == "Jane Roe\njane.roe@example.com"


def test_unsupported_type_is_rejected(client, auth_headers):
    response = _upload(client, auth_headers, "photo.png", b"\x89PNG\r\n", "image/png")
    assert response.status_code == 400
    assert response.json()["errors"][0]["code"] == "INVALID_INPUT"


def test_empty_document_is_rejected(client, auth_headers):
    response = _upload(client, auth_headers, "empty.txt", b"   \n", "text/plain")
    assert response.status_code == 400


def test_oversized_upload_is_rejected(client, auth_headers, monkeypatch):
    monkeypatch.setattr(settings, "max_upload_bytes", 16)
    response = _upload(client, auth_headers, "john_doe.txt", RESUME_TEXT.encode("utf-8"), "text/plain")
    assert response.status_code == 400


def test_deleting_upload_keeps_optimized_resumes(client, auth_headers, user, uploaded_resume, make_optimized_resume):
    optimized = make_optimized_resume(user, uploaded_resume_id=uploaded_resume.id)

    response = client.delete(f"/api/uploaded-resumes/{uploaded_resume.id}", headers=auth_headers)
    assert response.status_code == 200

    assert client.get("/api/uploaded-resumes", headers=auth_headers).json() == []
    response = client.get(f"/api/optimized-resumes/{optimized.id}", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["uploadedResumeId"] == uploaded_resume.id


def test_deleting_foreign_upload_is_forbidden(client, other_user, get_token, uploaded_resume):
    headers = {"Authorization": f"Bearer {get_token(other_user)}"}
    response = client.delete(f"/api/uploaded-resumes/{uploaded_resume.id}", headers=headers)
    assert response.status_code == 403
