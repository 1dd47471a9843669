"""
S3 storage adapter tests against a stubbed boto3 client.
"""

from __future__ import annotations

import hashlib
from io import BytesIO
from urllib.parse import parse_qs, urlparse

import boto3
import pytest
from botocore.response import StreamingBody
from botocore.stub import ANY, Stubber

from src.adapters.s3_storage import S3Storage, content_disposition
from src.core.ports.storage import IntegrityError, KeyExistsError, KeyNotFoundError, StorageError

BUCKET = "private_files"


@pytest.fixture
def client():
    return boto3.client(
        "s3",
        region_name="us-east-1",
        aws_access_key_id="test",
        aws_secret_access_key="test",
    )


@pytest.fixture
def stubber(client):
    with Stubber(client) as stub:
        yield stub
        stub.assert_no_pending_responses()


@pytest.fixture
def storage(client) -> S3Storage:
    return S3Storage(client=client)


def body(data: bytes) -> StreamingBody:
    return StreamingBody(BytesIO(data), len(data))


def not_found(stubber: Stubber, key: str) -> None:
    stubber.add_client_error(
        "head_object",
        service_error_code="404",
        http_status_code=404,
        expected_params={"Bucket": BUCKET, "Key": key},
    )


class TestPut:
    def test_put_new_key(self, storage: S3Storage, stubber: Stubber) -> None:
        not_found(stubber, "orders/o1/a.png")
        stubber.add_response(
            "put_object",
            {"ETag": '"abc"'},
            {
                "Bucket": BUCKET,
                "Key": "orders/o1/a.png",
                "Body": ANY,
                "ContentType": "image/png",
                "Metadata": {"sha256": hashlib.sha256(b"png").hexdigest()},
            },
        )

        stored = storage.put(BUCKET, "orders/o1/a.png", b"png", "image/png")

        assert stored.size_bytes == 3
        assert stored.etag == '"abc"'

    def test_existing_key_refused(self, storage: S3Storage, stubber: Stubber) -> None:
        stubber.add_response("head_object", {}, {"Bucket": BUCKET, "Key": "a.png"})

        with pytest.raises(KeyExistsError):
            storage.put(BUCKET, "a.png", b"png", "image/png")

    def test_service_failure(self, storage: S3Storage, stubber: Stubber) -> None:
        not_found(stubber, "a.png")
        stubber.add_client_error("put_object", service_error_code="SlowDown", http_status_code=503)

        with pytest.raises(StorageError):
            storage.put(BUCKET, "a.png", b"png", "image/png")


class TestGet:
    def test_get_verifies_sha(self, storage: S3Storage, stubber: Stubber) -> None:
        stubber.add_response(
            "get_object",
            {
                "Body": body(b"data"),
                "ContentType": "image/png",
                "Metadata": {"sha256": hashlib.sha256(b"data").hexdigest()},
            },
            {"Bucket": BUCKET, "Key": "a.png"},
        )

        data, meta = storage.get(BUCKET, "a.png")

        assert data == b"data"
        assert meta.content_type == "image/png"

    def test_get_integrity_mismatch(self, storage: S3Storage, stubber: Stubber) -> None:
        stubber.add_response(
            "get_object",
            {"Body": body(b"data"), "Metadata": {"sha256": "0" * 64}},
            {"Bucket": BUCKET, "Key": "a.png"},
        )

        with pytest.raises(IntegrityError):
            storage.get(BUCKET, "a.png")

    def test_get_missing(self, storage: S3Storage, stubber: Stubber) -> None:
        stubber.add_client_error("get_object", service_error_code="NoSuchKey", http_status_code=404)

        with pytest.raises(KeyNotFoundError):
            storage.get(BUCKET, "a.png")


class TestDelete:
    def test_delete_existing(self, storage: S3Storage, stubber: Stubber) -> None:
        stubber.add_response("head_object", {}, {"Bucket": BUCKET, "Key": "a.png"})
        stubber.add_response("delete_object", {}, {"Bucket": BUCKET, "Key": "a.png"})

        assert storage.delete(BUCKET, "a.png") is True

    def test_delete_missing(self, storage: S3Storage, stubber: Stubber) -> None:
        not_found(stubber, "a.png")
        assert storage.delete(BUCKET, "a.png") is False

    def test_stat_failure_is_storage_error(self, storage: S3Storage, stubber: Stubber) -> None:
        stubber.add_client_error("head_object", service_error_code="AccessDenied", http_status_code=403)
        with pytest.raises(StorageError):
            storage.exists(BUCKET, "a.png")


class TestUrls:
    def test_presigned_url(self, storage: S3Storage) -> None:
        url = storage.signed_url(BUCKET, "orders/o1/a.pdf", 600, download_filename="PO 7.pdf")

        query = parse_qs(urlparse(url).query)
        # SigV4 carries the lifetime directly, SigV2 an absolute epoch
        assert query.get("X-Amz-Expires") == ["600"] or "Expires" in query
        assert "attachment" in query["response-content-disposition"][0]

    def test_public_url_forms(self, client) -> None:
        assert S3Storage(client=client).public_url("uploads", "a b.png") == (
            "https://uploads.s3.us-east-1.amazonaws.com/a%20b.png"
        )
        assert S3Storage(client=client, endpoint_url="http://minio:9000").public_url(
            "uploads", "a.png"
        ) == "http://minio:9000/uploads/a.png"
        assert S3Storage(client=client, public_base_url="https://cdn.test/").public_url(
            "uploads", "a.png"
        ) == "https://cdn.test/uploads/a.png"


def test_content_disposition_non_ascii() -> None:
    value = content_disposition("épreuve.pdf")
    assert value.startswith('attachment; filename="preuve.pdf"')
    assert "filename*=UTF-8''%C3%A9preuve.pdf" in value


def test_deadline_passed_to_client() -> None:
    storage = S3Storage(access_key="test", secret_key="test", timeout_seconds=2.5)

    config = storage._client.meta.config
    assert config.connect_timeout == 2.5
    assert config.read_timeout == 2.5
