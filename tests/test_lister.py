import pytest

from common.errors import ListError
from common.schemas import MediaAsset
from conftest import StubListingStore
from media.lister import MediaLister, bare_filename, dedupe_assets
from media.store import MemoryObjectStore

PREFIX = "events/shared/e1/images"


def k(name: str) -> str:
    return f"{PREFIX}/{name}"


async def test_keeps_photos_and_drops_repeats():
    store = StubListingStore([k("p1.jpg"), k("p2.png"), k("note.txt"), k("p1.jpg")])
    out = await MediaLister(store).list_media(PREFIX)
    assert [a.remote_key for a in out] == [k("p1.jpg"), k("p2.png")]
    assert out[0].url == f"https://media.test/{k('p1.jpg')}"
    assert store.calls == 1


async def test_first_occurrence_order():
    store = StubListingStore([k("A.jpg"), k("B.jpg"), k("A.jpg"), k("C.jpg")])
    out = await MediaLister(store).list_media(PREFIX)
    assert [a.filename for a in out] == ["A.jpg", "B.jpg", "C.jpg"]


async def test_extensions_case_insensitive():
    store = StubListingStore([k("a.JPG"), k("b.Jpeg"), k("c.PNG"), k("d.gif"), k("e.heic")])
    out = await MediaLister(store).list_media(PREFIX)
    assert [a.filename for a in out] == ["a.JPG", "b.Jpeg", "c.PNG"]


async def test_same_filename_different_keys_both_kept():
    store = StubListingStore([k("x/photo.jpg"), k("y/photo.jpg"), k("photo.png")])
    out = await MediaLister(store).list_media(PREFIX)
    assert len(out) == 3


async def test_empty_listing():
    assert await MediaLister(StubListingStore([])).list_media(PREFIX) == []


async def test_list_failure_is_list_error():
    store = StubListingStore(error=ListError(PREFIX, "AccessDenied"))
    with pytest.raises(ListError) as ei:
        await MediaLister(store).list_media(PREFIX)
    assert ei.value.prefix == PREFIX


async def test_unexpected_store_failure_wrapped():
    store = StubListingStore(error=ConnectionError("reset"))
    with pytest.raises(ListError):
        await MediaLister(store).list_media(PREFIX)


def test_dedupe_is_idempotent_and_unique():
    assets = [MediaAsset(remote_key=k(n), url=n) for n in ["a.jpg", "b.jpg", "a.jpg", "c.png", "b.jpg"]]
    once = dedupe_assets(assets)
    assert dedupe_assets(once) == once
    keys = [a.remote_key for a in once]
    assert len(keys) == len(set(keys))
    assert keys == [k("a.jpg"), k("b.jpg"), k("c.png")]


def test_bare_filename():
    assert bare_filename("events/shared/e/images/IMG_01.JPEG") == "IMG_01"
    assert bare_filename("a/b/c.png") == "c"
    assert bare_filename("a/b/") == "a/b/"


async def test_list_videos_groups_folders():
    v = "events/shared/e1/videos"
    store = MemoryObjectStore(base_url="https://media.test")
    for key in [
        f"{v}/v1/party.mp4", f"{v}/v1/thumbnail.jpg",
        f"{v}/v1/frames/frame_1.jpg", f"{v}/v1/frames/frame_2.jpg",
        f"{v}/v2/clip.MOV",
        f"{v}/v3/frames/frame_1.jpg",  # no video file
        f"{v}/stray.txt",
    ]:
        await store.put_object(key, b"x", "application/octet-stream")

    out = {a.video_id: a for a in await MediaLister(store).list_videos(v)}
    assert set(out) == {"v1", "v2"}
    assert out["v1"].name == "party.mp4"
    assert out["v1"].thumbnail_url == f"https://media.test/{v}/v1/thumbnail.jpg"
    assert out["v1"].frame_count == 2
    assert out["v2"].thumbnail_key is None
    assert out["v2"].frame_count == 0


async def test_delete_returns_only_confirmed():
    store = StubListingStore([k("a.jpg"), k("b.jpg"), k("c.jpg")])
    store.undeletable.add(k("b.jpg"))
    deleted = await MediaLister(store).delete_media([k("a.jpg"), k("b.jpg"), k("missing.jpg"), k("a.jpg")])
    assert deleted == [k("a.jpg")]
    assert store.keys == [k("b.jpg"), k("c.jpg")]
