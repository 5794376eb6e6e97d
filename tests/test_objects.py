import re

from botocore.exceptions import ClientError
import pytest

from gamecatalog.stores.objects import ObjectStore, UploadFile, build_object_key
from gamecatalog.stores.redis import RedisStore
from tests.fakes import FakeRedisClient


@pytest.fixture
def store(s3, settings) -> ObjectStore:
    return ObjectStore(s3, settings)


def test_build_object_key():
    key = build_object_key("game-images", "Cover Art.PNG")
    assert re.fullmatch(r"game-images/\d{13}-[0-9a-f-]{36}\.PNG", key)

    assert build_object_key("/uploads/", "README").endswith(".bin")
    assert build_object_key("uploads", "README").startswith("uploads/")


@pytest.mark.asyncio
async def test_upload_then_download(store, s3):
    result = await store.upload("game-images/a.png", b"bytes", "image/png", metadata={"owner": "u1"})

    assert result.key == "game-images/a.png"
    assert result.location == "s3://test-bucket/game-images/a.png"

    obj = await store.download("game-images/a.png")
    assert obj.body == b"bytes"
    assert obj.content_type == "image/png"
    assert obj.metadata == {"owner": "u1"}


@pytest.mark.asyncio
async def test_upload_without_metadata_sends_none(store, s3):
    await store.upload("x.txt", b"x", "text/plain")

    assert s3.put_calls[0]["Metadata"] is None


@pytest.mark.asyncio
async def test_head_missing_object_returns_none(store):
    assert await store.head("nope.png") is None


@pytest.mark.asyncio
async def test_head_propagates_other_errors(store, s3, monkeypatch: pytest.MonkeyPatch):
    async def denied(**kwargs):
        raise ClientError({"Error": {"Code": "403", "Message": "Forbidden"}}, "HeadObject")

    monkeypatch.setattr(s3, "head_object", denied)

    with pytest.raises(ClientError):
        await store.head("secret.png")


@pytest.mark.asyncio
async def test_delete_is_idempotent(store, s3):
    await store.upload("a.png", b"a", "image/png")

    await store.delete("a.png")
    await store.delete("a.png")

    assert await store.head("a.png") is None


@pytest.mark.asyncio
async def test_upload_many_keeps_order(store, s3):
    files = [UploadFile(file_name=f"shot{i}.jpg", content_type="image/jpeg", body=b"x") for i in range(3)]

    keys = await store.upload_many(files, "screenshots")

    assert len(keys) == 3
    assert all(k.startswith("screenshots/") and k.endswith(".jpg") for k in keys)
    assert set(keys) == set(s3.objects)


def test_public_url(s3, settings):
    assert ObjectStore(s3, settings).public_url("a/b.png") == "https://test-bucket.s3.us-east-1.amazonaws.com/a/b.png"

    settings.s3_public_base_url = "https://cdn.example.com/"
    assert ObjectStore(s3, settings).public_url("a/b.png") == "https://cdn.example.com/a/b.png"


@pytest.mark.asyncio
async def test_signed_url_without_cache(store, s3):
    first = await store.signed_url("a.png")
    second = await store.signed_url("a.png")

    assert "expires=3600" in first
    assert first != second
    assert s3.presign_calls == 2


@pytest.mark.asyncio
async def test_signed_url_is_cached_in_redis(s3, settings):
    redis_client = FakeRedisClient()
    store = ObjectStore(s3, settings, cache=RedisStore(redis_client))

    first = await store.signed_url("a.png", expires_in=600)
    second = await store.signed_url("a.png", expires_in=600)

    assert first == second
    assert s3.presign_calls == 1
    assert redis_client.ttls["signed_url:600:a.png"] == 540


@pytest.mark.asyncio
async def test_signed_url_survives_redis_outage(s3, settings):
    cache = RedisStore(FakeRedisClient())
    await cache.close()
    store = ObjectStore(s3, settings, cache=cache)

    url = await store.signed_url("a.png")

    assert url.startswith("https://test-bucket.s3.test/a.png")
