import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from packages.legal_dms.storage import ObjectStorageClient, ObjectStorageConfig


class _Body:
    def __init__(self, data: bytes):
        self._data = data

    def read(self) -> bytes:
        return self._data


class FakeS3:
    def __init__(self):
        self.objects = {}
        self.buckets = set()
        self.head_bucket_error = None

    def put_object(self, Bucket, Key, Body, **extra):
        self.objects[(Bucket, Key)] = (Body, extra)
        return {"ETag": '"etag-1"'}

    def get_object(self, Bucket, Key):
        if (Bucket, Key) not in self.objects:
            raise ClientError({"Error": {"Code": "NoSuchKey"}}, "GetObject")
        return {"Body": _Body(self.objects[(Bucket, Key)][0])}

    def delete_object(self, Bucket, Key):
        self.objects.pop((Bucket, Key), None)

    def head_object(self, Bucket, Key):
        if (Bucket, Key) not in self.objects:
            raise ClientError({"Error": {"Code": "404"}}, "HeadObject")

    def head_bucket(self, Bucket):
        if self.head_bucket_error is not None:
            raise self.head_bucket_error
        if Bucket not in self.buckets:
            raise ClientError({"Error": {"Code": "404"}}, "HeadBucket")

    def create_bucket(self, Bucket):
        self.buckets.add(Bucket)

    def generate_presigned_url(self, operation, Params, ExpiresIn):
        return f"https://s3.test/{Params['Bucket']}/{Params['Key']}?op={operation}&ttl={ExpiresIn}"


@pytest.fixture()
def fake_s3(monkeypatch):
    fake = FakeS3()
    captured = {}

    def fake_client(service, **kwargs):
        captured["service"] = service
        captured.update(kwargs)
        return fake

    monkeypatch.setattr("packages.legal_dms.storage.s3_client.boto3.client", fake_client)
    fake.captured = captured
    return fake


def _client(max_file_size: int = 1024) -> ObjectStorageClient:
    return ObjectStorageClient(
        ObjectStorageConfig(
            endpoint_url="http://minio.test:9000",
            access_key_id="key",
            secret_access_key="secret",
            bucket_name="documents",
            max_file_size=max_file_size,
            presigned_url_expiry=600,
        )
    )


def test_config_from_env(monkeypatch):
    monkeypatch.setenv("DMS_STORAGE_ENDPOINT", "http://storage:9000")
    monkeypatch.setenv("DMS_STORAGE_BUCKET", "legal-docs")
    config = ObjectStorageConfig.from_env()
    assert config.endpoint_url == "http://storage:9000"
    assert config.bucket_name == "legal-docs"
    assert config.region_name == "us-east-1"


def test_client_uses_path_style_addressing(fake_s3):
    _client()
    assert fake_s3.captured["service"] == "s3"
    assert fake_s3.captured["endpoint_url"] == "http://minio.test:9000"
    assert fake_s3.captured["config"].s3 == {"addressing_style": "path"}


def test_upload_download_delete(fake_s3):
    client = _client()
    stored = client.upload_file(b"hello", "documents/a.txt", content_type="text/plain")

    assert stored.size == 5
    assert stored.etag == "etag-1"
    assert len(stored.checksum) == 64
    assert fake_s3.objects[("documents", "documents/a.txt")][1]["ContentType"] == "text/plain"
    assert client.download_file("documents/a.txt") == b"hello"
    assert client.file_exists("documents/a.txt") is True

    client.delete_file("documents/a.txt")
    assert client.file_exists("documents/a.txt") is False


def test_upload_rejects_oversized_payload(fake_s3):
    with pytest.raises(ValueError):
        _client(max_file_size=3).upload_file(b"too large", "documents/b.txt")


def test_download_missing_object_propagates(fake_s3):
    with pytest.raises(ClientError):
        _client().download_file("documents/missing.txt")


def test_presigned_url_uses_configured_expiry(fake_s3):
    url = _client().generate_presigned_download_url("documents/a.txt", filename="a.txt")
    assert url.endswith("ttl=600")


def test_ensure_bucket_and_health(fake_s3):
    client = _client()
    assert client.health_check() is False
    assert client.ensure_bucket() is True
    assert client.ensure_bucket() is False
    assert client.health_check() is True

    fake_s3.head_bucket_error = EndpointConnectionError(endpoint_url="http://minio.test:9000")
    assert client.health_check() is False
