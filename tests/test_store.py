from unittest.mock import MagicMock

import boto3
import pytest
from boto3.exceptions import S3UploadFailedError
from botocore.stub import Stubber

from common.errors import ListError, UploadError
from media.store import MemoryObjectStore, S3ObjectStore, build_store


@pytest.fixture
def s3_client():
    return boto3.client("s3", region_name="us-east-1",
                        aws_access_key_id="test", aws_secret_access_key="test")


async def test_s3_listing_follows_continuation(s3_client):
    store = S3ObjectStore("media-bucket", client=s3_client, max_keys=2)
    with Stubber(s3_client) as stub:
        stub.add_response("list_objects_v2",
                          {"Contents": [{"Key": "p/a.jpg", "Size": 1}, {"Key": "p/b.jpg", "Size": 2}],
                           "IsTruncated": True, "NextContinuationToken": "t1"},
                          {"Bucket": "media-bucket", "Prefix": "p/", "MaxKeys": 2})
        stub.add_response("list_objects_v2",
                          {"Contents": [{"Key": "p/c.png", "Size": 3}], "IsTruncated": False},
                          {"Bucket": "media-bucket", "Prefix": "p/", "MaxKeys": 2, "ContinuationToken": "t1"})
        entries = await store.list_objects("p/")
    assert [e.key for e in entries] == ["p/a.jpg", "p/b.jpg", "p/c.png"]


async def test_s3_list_error(s3_client):
    store = S3ObjectStore("media-bucket", client=s3_client)
    with Stubber(s3_client) as stub:
        stub.add_client_error("list_objects_v2", service_error_code="AccessDenied", http_status_code=403)
        with pytest.raises(ListError):
            await store.list_objects("p/")


async def test_s3_delete_and_put(s3_client):
    store = S3ObjectStore("media-bucket", client=s3_client)
    with Stubber(s3_client) as stub:
        stub.add_response("delete_object", {}, {"Bucket": "media-bucket", "Key": "p/a.jpg"})
        stub.add_client_error("delete_object", service_error_code="AccessDenied", http_status_code=403)
        stub.add_client_error("put_object", service_error_code="AccessDenied", http_status_code=403)
        assert await store.delete_object("p/a.jpg") is True
        assert await store.delete_object("p/b.jpg") is False
        with pytest.raises(UploadError):
            await store.put_object("p/c.jpg", b"x", "image/jpeg")


def test_s3_url():
    assert S3ObjectStore("b", client=object()).url_for("k/x.jpg") == "https://b.s3.amazonaws.com/k/x.jpg"
    store = S3ObjectStore("b", public_base_url="https://cdn.test/", client=object())
    assert store.url_for("k/x.jpg") == "https://cdn.test/k/x.jpg"


async def test_memory_store_lists_sorted_by_prefix():
    store = MemoryObjectStore()
    for key in ["b/2.jpg", "a/1.jpg", "b/1.jpg"]:
        await store.put_object(key, b"x", "image/jpeg")
    assert [e.key for e in await store.list_objects("b/")] == ["b/1.jpg", "b/2.jpg"]
    assert await store.delete_object("b/1.jpg") is True
    assert await store.delete_object("b/1.jpg") is False


def test_build_store():
    assert isinstance(build_store({}), MemoryObjectStore)
    assert isinstance(build_store({"store": {"backend": "s3", "bucket": "b"}}), S3ObjectStore)
    with pytest.raises(ValueError):
        build_store({"store": {"backend": "gcs"}})


async def test_s3_put_file_uses_managed_upload(tmp_path):
    video = tmp_path / "clip.mp4"
    video.write_bytes(b"\x00" * 64)
    client = MagicMock()
    store = S3ObjectStore("media-bucket", client=client)
    await store.put_file("v/clip.mp4", video, "video/mp4")
    client.upload_file.assert_called_once_with(
        str(video), "media-bucket", "v/clip.mp4",
        ExtraArgs={"ContentType": "video/mp4"}, Config=store.transfer_config)
    client.put_object.assert_not_called()


async def test_s3_put_file_failure(tmp_path):
    video = tmp_path / "clip.mp4"
    video.write_bytes(b"\x00")
    client = MagicMock()
    client.upload_file.side_effect = S3UploadFailedError("Failed to upload: AccessDenied")
    with pytest.raises(UploadError) as ei:
        await S3ObjectStore("media-bucket", client=client).put_file("v/clip.mp4", video, "video/mp4")
    assert ei.value.key == "v/clip.mp4"


async def test_memory_put_file(tmp_path):
    video = tmp_path / "clip.mp4"
    video.write_bytes(b"abc")
    store = MemoryObjectStore()
    await store.put_file("v/clip.mp4", video, "video/mp4")
    assert store.objects["v/clip.mp4"] == b"abc"
    assert store.content_types["v/clip.mp4"] == "video/mp4"
