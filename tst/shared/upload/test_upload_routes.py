import logging
from datetime import timedelta

import pytest
from jose import jwt

from school_gateway.shared.dependencies import get_object_store
from school_gateway.shared.upload.buckets import IMAGE_TYPES, MB, BucketConfig
from school_gateway.shared.upload.storage import StorageError

from conftest import ADMIN_USER_ID, TEACHER_USER_ID

URL = "/api/uploads"

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64
JPEG = b"\xFF\xD8\xFF\xE0\x00\x10JFIF\x00" + b"\x00" * 64
PDF = b"%PDF-1.4\n%\xE2\xE3\xCF\xD3\n" + b"\x00" * 64


def _upload(client, token=None, bucket="gallery-images", data=PNG, content_type="image/png", filename="photo.png"):
    headers = {"Authorization": f"Bearer {token}"} if token else {}
    form = {"bucket": bucket} if bucket is not None else {}
    files = {"file": (filename, data, content_type)} if data is not None else None
    return client.post(URL, headers=headers, data=form, files=files)


def _stored_files(upload_root):
    if not upload_root.exists():
        return []
    return [path for path in upload_root.rglob("*") if path.is_file()]


@pytest.fixture()
def admin_token(admin_user, make_token):
    return make_token(ADMIN_USER_ID)


@pytest.fixture()
def teacher_token(admin_user, make_token):
    return make_token(TEACHER_USER_ID)


def test_admin_upload_is_stored_and_audited(client, admin_token, upload_root, caplog):
    caplog.set_level(logging.INFO, logger="school_gateway.audit")

    resp = _upload(client, admin_token)

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["bucket"] == "gallery-images"
    assert body["fileName"].endswith(".png")
    assert body["publicUrl"] == f"/uploads/gallery-images/{body['fileName']}"

    stored = _stored_files(upload_root)
    assert [path.name for path in stored] == [body["fileName"]]
    assert stored[0].read_bytes() == PNG

    audit_lines = [r.getMessage() for r in caplog.records if r.name == "school_gateway.audit"]
    assert len(audit_lines) == 1
    assert ADMIN_USER_ID in audit_lines[0]
    assert body["fileName"] in audit_lines[0]


def test_client_filename_is_ignored(client, admin_token, upload_root):
    resp = _upload(client, admin_token, filename="../../etc/passwd.png")

    assert resp.status_code == 200
    assert "passwd" not in resp.json()["fileName"]
    assert all(upload_root in path.parents for path in _stored_files(upload_root))


def test_pdf_upload_uses_pdf_extension(client, admin_token):
    resp = _upload(client, admin_token, bucket="library-pdfs", data=PDF, content_type="application/pdf",
                   filename="handbook.pdf")

    assert resp.status_code == 200
    assert resp.json()["fileName"].endswith(".pdf")


def test_jpeg_bytes_declared_as_png_are_rejected(client, admin_token, upload_root, caplog):
    caplog.set_level(logging.INFO, logger="school_gateway.audit")

    resp = _upload(client, admin_token, data=JPEG, content_type="image/png")

    assert resp.status_code == 400
    assert resp.json() == {
        "error": "File content does not match declared type. Possible security risk detected."
    }
    assert _stored_files(upload_root) == []
    assert not [r for r in caplog.records if r.name == "school_gateway.audit"]


def test_non_admin_is_forbidden(client, teacher_token, upload_root, caplog):
    caplog.set_level(logging.INFO, logger="school_gateway.audit")

    resp = _upload(client, teacher_token)

    assert resp.status_code == 403
    assert resp.json() == {"error": "Admin privileges required for this bucket"}
    assert _stored_files(upload_root) == []
    assert not [r for r in caplog.records if r.name == "school_gateway.audit"]


def test_user_without_any_role_is_forbidden(client, admin_user, make_token):
    resp = _upload(client, make_token("33333333-3333-3333-3333-333333333333"))
    assert resp.status_code == 403


def test_missing_token_is_unauthorized(client, upload_root):
    resp = _upload(client)

    assert resp.status_code == 401
    assert resp.json() == {"error": "Unauthorized"}
    assert resp.headers["WWW-Authenticate"] == "Bearer"
    assert _stored_files(upload_root) == []


@pytest.mark.parametrize("token", [
    "not-a-jwt",
    jwt.encode({"sub": ADMIN_USER_ID, "aud": "authenticated"}, "some-other-secret", algorithm="HS256"),
])
def test_invalid_token_is_unauthorized(client, admin_user, token):
    resp = _upload(client, token)

    assert resp.status_code == 401
    assert resp.json() == {"error": "Authentication required"}


def test_expired_token_is_unauthorized(client, admin_user, make_token):
    resp = _upload(client, make_token(ADMIN_USER_ID, expires_in=timedelta(minutes=-5)))
    assert resp.status_code == 401


def test_token_for_wrong_audience_is_unauthorized(client, admin_user, make_token):
    resp = _upload(client, make_token(ADMIN_USER_ID, aud="service_role"))
    assert resp.status_code == 401


def test_missing_file_or_bucket(client, admin_token):
    resp = _upload(client, admin_token, data=None)
    assert resp.status_code == 400
    assert resp.json() == {"error": "File and bucket are required"}

    resp = _upload(client, admin_token, bucket=None)
    assert resp.status_code == 400
    assert resp.json() == {"error": "File and bucket are required"}


@pytest.mark.parametrize("bucket", ["secret-bucket", "Gallery-Images", "../gallery-images"])
def test_unknown_bucket_is_rejected(client, admin_token, bucket):
    resp = _upload(client, admin_token, bucket=bucket)
    assert resp.status_code == 400
    assert resp.json() == {"error": "Invalid bucket specified"}


def test_wrong_mime_type_for_bucket(client, admin_token):
    resp = _upload(client, admin_token, data=PDF, content_type="application/pdf", filename="menu.pdf")

    assert resp.status_code == 400
    assert resp.json() == {
        "error": "Invalid file type. Allowed types: image/gif, image/jpeg, image/png, image/webp"
    }


def test_oversized_file_is_rejected(app, client, admin_token, upload_root):
    app.state.buckets = {"tiny": BucketConfig(max_size_bytes=MB, allowed_mime_types=IMAGE_TYPES)}

    resp = _upload(client, admin_token, bucket="tiny", data=PNG + b"\x00" * MB)

    assert resp.status_code == 400
    assert resp.json() == {"error": "File too large. Maximum size is 1MB"}
    assert _stored_files(upload_root) == []


def test_file_at_size_limit_is_accepted(app, client, admin_token):
    app.state.buckets = {"tiny": BucketConfig(max_size_bytes=MB, allowed_mime_types=IMAGE_TYPES)}

    resp = _upload(client, admin_token, bucket="tiny", data=PNG + b"\x00" * (MB - len(PNG)))
    assert resp.status_code == 200


def test_public_bucket_skips_role_check(app, client, admin_user, make_token):
    app.state.buckets = {
        "open": BucketConfig(max_size_bytes=MB, allowed_mime_types=IMAGE_TYPES, requires_admin=False),
    }

    resp = _upload(client, make_token(TEACHER_USER_ID), bucket="open")
    assert resp.status_code == 200


def test_storage_failure_returns_generic_error(app, client, admin_token):
    class BrokenStore:
        def upload(self, bucket, name, data, content_type):
            raise StorageError("disk quota exceeded on /srv/uploads")

        def get_public_url(self, bucket, name):
            return f"/uploads/{bucket}/{name}"

    app.dependency_overrides[get_object_store] = lambda: BrokenStore()

    resp = _upload(client, admin_token)

    assert resp.status_code == 500
    assert resp.json() == {"error": "Failed to upload file"}
    assert "quota" not in resp.text


def test_audit_failure_does_not_fail_the_upload(client, admin_token, monkeypatch):
    class BrokenLogger:
        def info(self, message):
            raise OSError("audit sink unavailable")

    monkeypatch.setattr("school_gateway.shared.audit.audit_logger", BrokenLogger())

    resp = _upload(client, admin_token)
    assert resp.status_code == 200


def test_uploaded_file_is_served_back(client, admin_token):
    public_url = _upload(client, admin_token).json()["publicUrl"]

    resp = client.get(public_url)

    assert resp.status_code == 200
    assert resp.content == PNG
    assert resp.headers["content-type"] == "image/png"


def test_serving_rejects_unsafe_or_missing_names(client):
    assert client.get("/uploads/gallery-images/.env").status_code == 403
    assert client.get("/uploads/gallery-images/missing.png").status_code == 404
    assert client.get("/uploads/not-a-bucket/missing.png").status_code == 404


def test_preflight(client):
    resp = client.options(URL)
    assert resp.status_code == 200
    assert resp.headers["Access-Control-Allow-Methods"] == "POST, OPTIONS"
