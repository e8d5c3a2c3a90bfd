"""End-to-end tests for the HTTP and WebSocket surface."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Iterator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import delete

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///./test_eclipse.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("SIGNIN_PROFILE_RETRY_SECONDS", "0")
os.environ.setdefault("REFETCH_DEBOUNCE_SECONDS", "0")

from eclipse.database import Base, SessionLocal, engine  # noqa: E402
from eclipse.main import app  # noqa: E402
from eclipse.models import Account, CommunityPost, Profile, Video, VideoComment  # noqa: E402
from eclipse.schemas import VideoDraft  # noqa: E402
from eclipse.services import ServiceContainer  # noqa: E402


class FakeStorage:
    def __init__(self) -> None:
        self.objects: dict[tuple[str, str], bytes] = {}

    async def upload(self, bucket: str, key: str, content: bytes, content_type: str | None = None) -> str:
        self.objects[(bucket, key)] = content
        return key

    def public_url(self, bucket: str, key: str) -> str:
        return f"https://cdn.test/{bucket}/{key}"

    async def remove(self, bucket: str, key: str) -> None:
        self.objects.pop((bucket, key), None)


@pytest.fixture(scope="module", autouse=True)
def _create_schema() -> Iterator[None]:
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def _clean_database() -> Iterator[None]:
    with SessionLocal() as session:
        session.execute(delete(VideoComment))
        session.execute(delete(Video))
        session.execute(delete(CommunityPost))
        session.execute(delete(Profile))
        session.execute(delete(Account))
        session.commit()
    yield


@pytest.fixture
def services(tmp_path: Path) -> ServiceContainer:
    return ServiceContainer(
        storage=FakeStorage(),
        blob_root=tmp_path / "blobs",
        subscriber_counts_path=tmp_path / "counts.json",
    )


@pytest.fixture
def client(services: ServiceContainer) -> Iterator[TestClient]:
    app.state.services = services
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.state.services = None


def _register(client: TestClient, email: str = "ann@example.com", name: str = "Ann", handle: str = "ann") -> dict:
    response = client.post(
        "/auth/register",
        json={"email": email, "name": name, "handle": handle, "password": "secret-pass"},
    )
    assert response.status_code == 201, response.text
    return response.json()


def _auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def test_health_reports_started_services(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "services_started": True}


def test_register_returns_token_and_fresh_profile(client: TestClient) -> None:
    body = _register(client)

    assert body["token_type"] == "bearer"
    profile = body["profile"]
    assert profile["name"] == "Ann"
    assert profile["handle"] == "@ann"
    assert profile["email"] == "ann@example.com"
    assert profile["subscriptions"] == []
    assert profile["history"] == []
    assert profile["playlists"] == []

    me = client.get("/profiles/me", headers=_auth(body["access_token"]))
    assert me.status_code == 200
    assert me.json()["id"] == profile["id"]


def test_register_duplicate_and_login_errors(client: TestClient) -> None:
    _register(client)

    duplicate = client.post(
        "/auth/register",
        json={"email": "ann@example.com", "name": "Ann", "handle": "ann", "password": "secret-pass"},
    )
    assert duplicate.status_code == 400

    missing_password = client.post("/auth/login", json={"email": "ann@example.com"})
    assert missing_password.status_code == 401
    assert missing_password.json()["detail"] == "Password required."

    wrong = client.post("/auth/login", json={"email": "ann@example.com", "password": "nope-nope"})
    assert wrong.status_code == 401

    ok = client.post("/auth/login", json={"email": "ann@example.com", "password": "secret-pass"})
    assert ok.status_code == 200
    assert ok.json()["profile"]["name"] == "Ann"


def test_profile_routes_require_a_valid_token(client: TestClient) -> None:
    assert client.get("/profiles/me").status_code == 401
    assert client.get("/profiles/me", headers=_auth("not-a-token")).status_code == 401


def test_profile_collections_round_trip(client: TestClient) -> None:
    headers = _auth(_register(client)["access_token"])

    client.post("/profiles/me/history/v1", headers=headers)
    history = client.post("/profiles/me/history/v2", headers=headers).json()["history"]
    assert history == ["v2", "v1"]

    cleared = client.delete("/profiles/me/history", headers=headers).json()
    assert cleared["history"] == []

    subscribed = client.post("/profiles/me/subscriptions/Bob", headers=headers).json()
    assert subscribed["subscriptions"] == ["Bob"]
    unsubscribed = client.post("/profiles/me/subscriptions/Bob", headers=headers).json()
    assert unsubscribed["subscriptions"] == []

    created = client.post("/profiles/me/playlists", headers=headers, json={"title": "Faves"})
    assert created.status_code == 201
    playlist_id = created.json()["id"]

    client.put(f"/profiles/me/playlists/{playlist_id}/videos/v1", headers=headers)
    profile = client.put(f"/profiles/me/playlists/{playlist_id}/videos/v1", headers=headers).json()
    assert profile["playlists"][0]["video_ids"] == ["v1"]

    profile = client.delete(f"/profiles/me/playlists/{playlist_id}/videos/v1", headers=headers).json()
    assert profile["playlists"][0]["video_ids"] == []

    profile = client.delete(f"/profiles/me/playlists/{playlist_id}", headers=headers).json()
    assert profile["playlists"] == []

    patched = client.patch("/profiles/me", headers=headers, json={"description": "Hello there"}).json()
    assert patched["description"] == "Hello there"
    assert patched["name"] == "Ann"


def test_profile_patch_only_edits_identity_fields(client: TestClient) -> None:
    headers = _auth(_register(client)["access_token"])
    client.post("/profiles/me/history/v1", headers=headers)

    flood = ["v1", "v1", "v2", *(f"extra-{index}" for index in range(60))]
    response = client.patch(
        "/profiles/me",
        headers=headers,
        json={"name": "Annie", "history": flood, "subscriptions": ["Bob"], "playlists": []},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["name"] == "Annie"
    assert body["history"] == ["v1"]
    assert body["subscriptions"] == []
    assert client.get("/profiles/me", headers=headers).json()["history"] == ["v1"]


def test_publish_video_and_comment_thread(client: TestClient, services: ServiceContainer) -> None:
    headers = _auth(_register(client)["access_token"])

    published = client.post(
        "/videos",
        headers=headers,
        data={"title": "My clip", "description": "desc", "duration": "2:10"},
        files={"file": ("clip.mp4", b"\x00" * 16, "video/mp4")},
    )
    assert published.status_code == 201, published.text
    video = published.json()
    assert video["author"] == "Ann"
    assert video["video_url"].startswith("https://cdn.test/videos/")
    assert video["thumbnail"].startswith("https://picsum.photos/seed/")
    video_id = video["id"]

    client.portal.call(services.catalog.refresh)
    listing = client.get("/videos", params={"author": "Ann"}).json()["items"]
    assert [item["id"] for item in listing] == [video_id]

    commented = client.post(f"/videos/{video_id}/comments", headers=headers, json={"content": "First!"})
    assert commented.status_code == 201
    comment_id = commented.json()["comments"][0]["id"]

    replied = client.post(
        f"/videos/{video_id}/comments/{comment_id}/replies",
        headers=headers,
        json={"content": "Reply"},
    ).json()
    assert replied["comments"][0]["replies"][0]["content"] == "Reply"

    liked = client.post(f"/videos/{video_id}/comments/{comment_id}/like", headers=headers).json()
    assert liked["comments"][0]["likes"] == 1

    pinned = client.post(f"/videos/{video_id}/comments/{comment_id}/pin", headers=headers).json()
    assert pinned["comments"][0]["is_pinned"] is True
    unpinned = client.delete(f"/videos/{video_id}/comments/{comment_id}/pin", headers=headers).json()
    assert unpinned["comments"][0]["is_pinned"] is False


def test_publish_video_formats_duration_seconds(client: TestClient) -> None:
    headers = _auth(_register(client)["access_token"])

    published = client.post(
        "/videos",
        headers=headers,
        data={"title": "Timed", "duration_seconds": "3725"},
        files={"file": ("clip.mp4", b"\x00" * 16, "video/mp4")},
    )

    assert published.status_code == 201, published.text
    assert published.json()["duration"] == "1:02:05"


def test_video_counters_and_history(client: TestClient, services: ServiceContainer) -> None:
    headers = _auth(_register(client)["access_token"])
    video_id = client.portal.call(_add_video, services)

    assert client.post(f"/videos/{video_id}/like").status_code == 401
    assert client.post(f"/videos/{video_id}/like", headers=headers).json()["likes"] == 1

    assert client.post(f"/videos/{video_id}/view").json()["views"] == 1
    assert client.post(f"/videos/{video_id}/view", headers=headers).json()["views"] == 2
    assert client.get("/profiles/me", headers=headers).json()["history"] == [video_id]

    assert client.post("/videos/missing/view").status_code == 404
    assert client.get("/videos/missing").status_code == 404

    assert client.delete(f"/videos/{video_id}", headers=headers).status_code == 204
    assert client.delete(f"/videos/{video_id}", headers=headers).status_code == 404


async def _add_video(services: ServiceContainer) -> str:
    return await services.catalog.add_video(
        VideoDraft(title="Seeded", author="Bob", video_url="https://cdn.test/videos/seeded.mp4")
    )


def test_posts_repost_and_nested_comments(client: TestClient) -> None:
    ann = _auth(_register(client)["access_token"])
    bob = _auth(_register(client, email="bob@example.com", name="Bob", handle="bob")["access_token"])

    assert client.post("/posts", headers=ann, data={"content": "   "}).status_code == 400

    created = client.post("/posts", headers=ann, data={"content": "Hello feed"})
    assert created.status_code == 201, created.text
    post_id = created.json()["id"]

    with_image = client.post(
        "/posts",
        headers=ann,
        data={"content": "Look"},
        files={"image": ("pic.png", b"\x89PNG", "image/png")},
    ).json()
    assert with_image["has_image"] is True
    assert with_image["image_url"].startswith("https://cdn.test/posts_images/")

    assert client.post(f"/posts/{post_id}/like", headers=bob).json()["likes"] == 1

    repost = client.post(f"/posts/{post_id}/repost", headers=bob)
    assert repost.status_code == 201
    assert repost.json()["content"] == "Reposted from @Ann: Hello feed"
    assert repost.json()["author"] == "Bob"
    assert client.post("/posts/missing/repost", headers=bob).status_code == 404

    post = client.post(f"/posts/{post_id}/comments", headers=bob, json={"content": "Nice"}).json()
    comment_id = post["comments"][0]["id"]
    post = client.post(
        f"/posts/{post_id}/comments/{comment_id}/replies",
        headers=ann,
        json={"content": "Thanks"},
    ).json()
    assert post["comments"][0]["replies"][0]["author"] == "Ann"

    post = client.post(f"/posts/{post_id}/comments/{comment_id}/like", headers=ann).json()
    assert post["comments"][0]["likes"] == 1
    post = client.post(f"/posts/{post_id}/comments/{comment_id}/pin", headers=ann).json()
    assert post["comments"][0]["is_pinned"] is True

    mine = client.get("/posts", params={"author": "Bob"}).json()["items"]
    assert [item["id"] for item in mine] == [repost.json()["id"]]

    assert client.delete(f"/posts/{post_id}", headers=ann).status_code == 204
    assert client.post(f"/posts/{post_id}/comments", headers=ann, json={"content": "x"}).status_code == 404


def test_pinned_post_comment_is_listed_first(client: TestClient) -> None:
    headers = _auth(_register(client)["access_token"])
    post_id = client.post("/posts", headers=headers, data={"content": "Read [this](https://a.test)"}).json()["id"]

    client.post(f"/posts/{post_id}/comments", headers=headers, json={"content": "first"})
    post = client.post(f"/posts/{post_id}/comments", headers=headers, json={"content": "second"}).json()
    second_id = post["comments"][1]["id"]

    pinned = client.post(f"/posts/{post_id}/comments/{second_id}/pin", headers=headers).json()
    assert [(c["content"], c["is_pinned"]) for c in pinned["comments"]] == [("second", True), ("first", False)]

    listed = client.get("/posts").json()["items"][0]
    assert [(c["content"], c["is_pinned"]) for c in listed["comments"]] == [("second", True), ("first", False)]
    assert listed["content_parts"] == [
        {"text": "Read ", "url": None},
        {"text": "this", "url": "https://a.test"},
    ]


def test_post_image_route(client: TestClient) -> None:
    headers = _auth(_register(client)["access_token"])
    plain = client.post("/posts", headers=headers, data={"content": "text only"}).json()
    pictured = client.post(
        "/posts",
        headers=headers,
        data={"content": "Look"},
        files={"image": ("pic.png", b"\x89PNG", "image/png")},
    ).json()

    redirect = client.get(f"/posts/{pictured['id']}/image", follow_redirects=False)
    assert redirect.status_code == 307
    assert redirect.headers["location"] == pictured["image_url"]

    assert client.get(f"/posts/{plain['id']}/image").status_code == 404
    assert client.get("/posts/missing/image").status_code == 404


def test_channel_view_and_subscription(client: TestClient) -> None:
    ann = _auth(_register(client)["access_token"])

    client.post("/posts", headers=ann, data={"content": "channel news"})

    own = client.get("/channels/Ann", headers=ann).json()
    assert own["is_owner"] is True
    assert own["handle"] == "@ann"
    assert own["post_count"] == 1
    posts = client.get("/channels/Ann/posts").json()["items"]
    assert [post["content"] for post in posts] == ["channel news"]
    assert client.get("/channels/Bob/posts").json()["items"] == []
    assert client.get("/channels/Ann", headers=_auth("not-a-token")).json()["is_owner"] is False

    other = client.get("/channels/Cool Channel").json()
    assert other["is_owner"] is False
    assert other["handle"] == "@coolchannel"

    toggled = client.post("/channels/Bob/subscribe", headers=ann).json()
    assert toggled == {"channel": "Bob", "subscribed": True, "subscriber_count": 1}
    bob = client.get("/channels/Bob").json()
    assert (bob["subscriber_count"], bob["subscriber_count_label"]) == (1, "1")

    self_sub = client.post("/channels/Ann/subscribe", headers=ann)
    assert self_sub.status_code == 400
    assert self_sub.json()["detail"] == "You cannot subscribe to yourself"
    assert client.post("/channels/Bob/subscribe").status_code == 401


def test_change_socket_answers_ping_and_relays_changes(client: TestClient, services: ServiceContainer) -> None:
    with client.websocket_connect("/ws/changes") as websocket:
        websocket.send_text('{"type": "ping"}')
        assert websocket.receive_json() == {"type": "pong"}

        websocket.send_text("hello")
        assert websocket.receive_json() == {"type": "ready"}

        client.portal.call(_add_video, services)
        message = websocket.receive_json()
        assert message["type"] == "record_changed"
        assert message["table"] == "videos"
        assert message["event"] == "INSERT"


def test_logout_returns_no_content(client: TestClient) -> None:
    headers = _auth(_register(client)["access_token"])

    assert client.post("/auth/logout", headers=headers).status_code == 204
    assert client.post("/auth/logout").status_code == 401
