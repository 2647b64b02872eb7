"""Tests for storage layer."""

from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from kpi_spine.config import get_settings
from kpi_spine.storage import LocalStorage, S3Storage, get_storage


class TestLocalStorage:
    """Tests for LocalStorage."""

    def test_write_and_read(self, tmp_path):
        """Test writing and reading a file."""
        storage = LocalStorage(tmp_path)

        content = b'{"applications": []}'
        file_info = storage.write("metrics.json", content)

        assert file_info.path == "metrics.json"
        assert file_info.size_bytes == len(content)
        assert file_info.content_type == "application/json"
        assert file_info.checksum is not None
        assert storage.read("metrics.json") == content

    def test_write_replaces_whole_document(self, tmp_path):
        storage = LocalStorage(tmp_path)

        storage.write_text("metrics.json", "a much longer first version")
        storage.write_text("metrics.json", "short")

        assert storage.read_text("metrics.json") == "short"
        assert [path.name for path in tmp_path.iterdir()] == ["metrics.json"]

    def test_read_missing_raises(self, tmp_path):
        storage = LocalStorage(tmp_path)

        with pytest.raises(FileNotFoundError):
            storage.read("nope.json")

    def test_exists(self, tmp_path):
        storage = LocalStorage(tmp_path)

        assert storage.exists("queries.json") is False
        storage.write("queries.json", b"[]")
        assert storage.exists("queries.json") is True

    def test_rejects_paths_outside_base(self, tmp_path):
        storage = LocalStorage(tmp_path / "base")

        with pytest.raises(ValueError):
            storage.read("../outside.json")


def _client_error(code):
    return ClientError({"Error": {"Code": code, "Message": code}}, "GetObject")


class TestS3Storage:
    """Tests for S3Storage against a mocked boto3 client."""

    def test_write_puts_single_object_under_prefix(self):
        client = MagicMock()
        storage = S3Storage(bucket="kpi", prefix="/prod/", client=client)

        info = storage.write("metrics.json", "{}", content_type="application/json")

        client.put_object.assert_called_once_with(
            Bucket="kpi",
            Key="prod/metrics.json",
            Body=b"{}",
            ContentType="application/json",
        )
        assert info.size_bytes == 2

    def test_read(self):
        client = MagicMock()
        client.get_object.return_value = {"Body": MagicMock(read=MagicMock(return_value=b"[]"))}
        storage = S3Storage(bucket="kpi", client=client)

        assert storage.read("queries.json") == b"[]"
        client.get_object.assert_called_once_with(Bucket="kpi", Key="queries.json")

    def test_read_missing_raises_file_not_found(self):
        client = MagicMock()
        client.get_object.side_effect = _client_error("NoSuchKey")
        storage = S3Storage(bucket="kpi", client=client)

        with pytest.raises(FileNotFoundError):
            storage.read("metrics.json")

    def test_read_other_errors_become_os_error(self):
        client = MagicMock()
        client.get_object.side_effect = _client_error("AccessDenied")
        storage = S3Storage(bucket="kpi", client=client)

        with pytest.raises(OSError) as exc_info:
            storage.read("metrics.json")

        assert isinstance(exc_info.value.__cause__, ClientError)

    def test_read_connection_failure_becomes_os_error(self):
        client = MagicMock()
        client.get_object.side_effect = EndpointConnectionError(endpoint_url="http://s3.local")
        storage = S3Storage(bucket="kpi", client=client)

        with pytest.raises(OSError):
            storage.read("metrics.json")

    def test_exists(self):
        client = MagicMock()
        client.head_object.side_effect = _client_error("404")
        storage = S3Storage(bucket="kpi", client=client)

        assert storage.exists("metrics.json") is False


class TestGetStorage:
    """Tests for get_storage."""

    def test_local_from_settings(self, tmp_path, monkeypatch):
        monkeypatch.setenv("KPI_STORAGE_TYPE", "local")
        monkeypatch.setenv("KPI_STORAGE_LOCAL_PATH", str(tmp_path))

        storage = get_storage()

        assert isinstance(storage, LocalStorage)
        assert storage.base_path == tmp_path.resolve()
        assert get_storage() is storage
        assert get_settings().storage_local_path == str(tmp_path)
