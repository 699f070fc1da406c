import pytest
from fastapi.testclient import TestClient

from common.errors import ListError
from conftest import StubListingStore
from media.store import MemoryObjectStore
from services.gallery_api.main import create_app

PREFIX = "events/shared/e1/images"


@pytest.fixture
def store():
    return StubListingStore([f"{PREFIX}/p{i:02d}.jpg" for i in range(45)] + [f"{PREFIX}/notes.txt"])


@pytest.fixture
def client(store):
    with TestClient(create_app({"gallery": {"window_size": 20}}, store=store)) as c:
        yield c


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_photo_pages(client):
    r = client.get("/events/e1/photos")
    assert r.status_code == 200
    body = r.json()
    assert len(body["items"]) == 20 and body["total"] == 45 and body["has_more"]
    assert body["items"][0]["remote_key"] == f"{PREFIX}/p00.jpg"
    assert body["items"][0]["url"] == f"https://media.test/{PREFIX}/p00.jpg"

    assert len(client.get("/events/e1/photos/next").json()["items"]) == 20
    last = client.get("/events/e1/photos/next").json()
    assert len(last["items"]) == 5
    assert last["state"] == "exhausted" and last["visible_count"] == 45
    assert client.get("/events/e1/photos/next").json()["items"] == []


def test_first_page_resets(client):
    client.get("/events/e1/photos")
    client.get("/events/e1/photos/next")
    body = client.get("/events/e1/photos").json()
    assert body["page"] == 1 and body["loaded_count"] == 20


def test_list_error_maps_to_502():
    store = StubListingStore(error=ListError(PREFIX, "AccessDenied"))
    with TestClient(create_app({}, store=store)) as c:
        r = c.get("/events/e1/photos")
    assert r.status_code == 502
    assert r.json()["prefix"] == PREFIX


def test_delete_updates_window(client, store):
    client.get("/events/e1/photos")
    store.undeletable.add(f"{PREFIX}/p01.jpg")
    r = client.request("DELETE", "/events/e1/photos",
                       json={"keys": [f"{PREFIX}/p00.jpg", f"{PREFIX}/p01.jpg"]})
    assert r.json() == {"deleted": [f"{PREFIX}/p00.jpg"], "failed": [f"{PREFIX}/p01.jpg"]}
    body = client.get("/events/e1/photos/next").json()
    assert body["total"] == 44


def test_videos_endpoint():
    ms = MemoryObjectStore(base_url="https://media.test")
    ms.objects["events/shared/e1/videos/v1/a.mp4"] = b"x"
    ms.objects["events/shared/e1/videos/v1/thumbnail.jpg"] = b"x"
    with TestClient(create_app({}, store=ms)) as c:
        body = c.get("/events/e1/videos").json()
    assert body["total"] == 1
    assert body["items"][0]["thumbnail_url"] == "https://media.test/events/shared/e1/videos/v1/thumbnail.jpg"


def test_face_crop_endpoint(client):
    r = client.post("/faces/crop", json={"bounding_box": {"Left": 0.4, "Top": 0.2, "Width": 0.2, "Height": 0.4}})
    body = r.json()
    assert body["scale"] == 2.0 and body["container_size"] == 96
    assert body["css"] == "translate(-48px, -28.8px) scale(2)"

    assert client.post("/faces/crop", json={}).json()["css"] == "translate(0px, 0px) scale(1)"


def test_face_crop_clamps_edge_box(client):
    r = client.post("/faces/crop", json={"bounding_box": {"Left": -0.05, "Top": 0.3, "Width": 0.25, "Height": 0.25}})
    assert r.status_code == 200
    assert r.json()["scale"] == 2.0


def test_face_crop_rejects_non_numeric_box(client):
    r = client.post("/faces/crop", json={"bounding_box": {"left": "edge", "top": 0, "width": 0.1, "height": 0.1}})
    assert r.status_code == 422
