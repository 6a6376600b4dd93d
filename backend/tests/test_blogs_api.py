import io

import pytest
from PIL import Image

from cyberwhisper import schemas, services
from cyberwhisper.errors import SlugConflict
from cyberwhisper.utils.slugs import SlugSuffixer, to_base36


def _make_png() -> bytes:
    img = Image.new("RGB", (40, 40), "orange")
    bio = io.BytesIO()
    img.save(bio, format="PNG")
    return bio.getvalue()


def _blog(**overrides):
    body = {"title": "Intro to C++ & Go!", "category_id": 1, "author_id": 1, "content": "Body text"}
    body.update(overrides)
    return body


def test_slug_derived_from_title_and_suffixed_on_collision(client):
    first = client.post("/api/blogs", json=_blog())
    assert first.status_code == 201
    assert first.json()["data"]["slug"] == "intro-to-c-go"

    second = client.post("/api/blogs", json=_blog()).json()["data"]
    assert second["slug"].startswith("intro-to-c-go-")
    assert second["slug"] != "intro-to-c-go"


def test_title_without_slug_characters_falls_back(client):
    r = client.post("/api/blogs", json=_blog(title="!!!"))
    assert r.json()["data"]["slug"] == "post"


def test_explicit_slug_is_normalised_and_must_be_free(client):
    r = client.post("/api/blogs", json=_blog(slug="My Custom Slug"))
    assert r.status_code == 201
    assert r.json()["data"]["slug"] == "my-custom-slug"

    r = client.post("/api/blogs", json=_blog(slug="my-custom-slug"))
    assert r.status_code == 409
    assert r.json()["success"] is False

    assert client.post("/api/blogs", json=_blog(slug="???")).status_code == 400


def test_insert_collision_retries_with_fresh_suffix(settings, record_store, object_store, monkeypatch):
    svc = services.BlogService(record_store, object_store, settings, suffixer=SlugSuffixer(clock=lambda: 1.0))
    svc.create(schemas.BlogIn(**_blog(title="Race")))

    real = svc.repo.get_by_slug
    checks = {"n": 0}

    def stale_first_check(slug):
        # the first lookup misses the row a concurrent request just wrote
        checks["n"] += 1
        return None if checks["n"] == 1 else real(slug)

    monkeypatch.setattr(svc.repo, "get_by_slug", stale_first_check)
    blog = svc.create(schemas.BlogIn(**_blog(title="Race")))
    assert blog.slug == "race-" + to_base36(1000)


def test_explicit_slug_race_is_a_conflict(settings, record_store, object_store, monkeypatch):
    svc = services.BlogService(record_store, object_store, settings)
    svc.create(schemas.BlogIn(**_blog(slug="taken")))
    real = svc.repo.get_by_slug
    checks = {"n": 0}

    def stale_first_check(slug):
        checks["n"] += 1
        return None if checks["n"] == 1 else real(slug)

    monkeypatch.setattr(svc.repo, "get_by_slug", stale_first_check)
    with pytest.raises(SlugConflict):
        svc.create(schemas.BlogIn(**_blog(slug="taken")))


def test_get_by_id_slug_and_popular(client):
    blog = client.post("/api/blogs", json=_blog(is_popular=True, status="PUBLISHED")).json()["data"]
    client.post("/api/blogs", json=_blog(title="Draft", is_popular=True))

    assert client.get(f"/api/blogs/{blog['id']}").json()["data"]["title"] == blog["title"]
    assert client.get(f"/api/blogs/slug/{blog['slug']}").json()["data"]["id"] == blog["id"]
    assert client.get("/api/blogs/slug/nope").status_code == 404

    popular = client.get("/api/blogs/popular").json()["data"]
    assert [b["id"] for b in popular] == [blog["id"]]


def test_list_filters(client):
    client.post("/api/blogs", json=_blog(title="Python tips", keywords="python", status="PUBLISHED"))
    client.post("/api/blogs", json=_blog(title="Go tips", category_id=2))

    published = client.get("/api/blogs", params={"status": "PUBLISHED"}).json()
    assert published["pagination"]["total"] == 1
    assert client.get("/api/blogs", params={"category_id": 2}).json()["data"][0]["title"] == "Go tips"
    assert client.get("/api/blogs", params={"search": "PYTHON"}).json()["pagination"]["total"] == 1
    assert client.get("/api/blogs", params={"status": "ARCHIVED"}).status_code == 422


def test_update_slug_rules(client):
    a = client.post("/api/blogs", json=_blog(title="First")).json()["data"]
    b = client.post("/api/blogs", json=_blog(title="Second")).json()["data"]

    r = client.put(f"/api/blogs/{b['id']}", json={"title": "Renamed"})
    assert r.status_code == 200
    assert r.json()["data"]["slug"] == "second"

    assert client.put(f"/api/blogs/{b['id']}", json={"slug": a["slug"]}).status_code == 409
    assert client.put(f"/api/blogs/{b['id']}", json={"slug": "second"}).status_code == 200

    r = client.put(f"/api/blogs/{b['id']}", json={"slug": "Brand New"})
    assert r.json()["data"]["slug"] == "brand-new"

    assert client.put("/api/blogs/999", json={"title": "x"}).status_code == 404


def test_empty_update_returns_current_record(client):
    blog = client.post("/api/blogs", json=_blog()).json()["data"]
    r = client.put(f"/api/blogs/{blog['id']}", json={})
    assert r.status_code == 200
    assert r.json()["data"] == blog


def test_thumbnail_banner_and_delete(client, object_store):
    blog = client.post("/api/blogs", json=_blog()).json()["data"]
    files = {"image": ("t.png", _make_png(), "image/png")}

    thumb = client.post(f"/api/blogs/{blog['id']}/thumbnail", files=files).json()["data"]
    banner = client.post(f"/api/blogs/{blog['id']}/banner", files=files).json()["data"]
    assert object_store.handles("blogs/thumbnails") == (thumb["thumbnail_public_id"],)
    assert object_store.handles("blogs/banners") == (banner["banner_public_id"],)
    assert banner["thumbnail_public_id"] == thumb["thumbnail_public_id"]

    r = client.delete(f"/api/blogs/{blog['id']}")
    assert r.status_code == 200
    assert object_store.handles() == ()
    assert client.get(f"/api/blogs/{blog['id']}").status_code == 404


def test_delete_can_keep_media(client, object_store):
    blog = client.post("/api/blogs", json=_blog()).json()["data"]
    client.post(f"/api/blogs/{blog['id']}/thumbnail", files={"image": ("t.png", _make_png(), "image/png")})
    r = client.delete(f"/api/blogs/{blog['id']}", params={"delete_media": "false"})
    assert r.status_code == 200
    assert len(r.json()["data"]["retained_handles"]) == 1
    assert len(object_store.handles("blogs/thumbnails")) == 1


def test_sticky_homepage_and_category_routes(client):
    pinned = client.post("/api/blogs", json=_blog(title="Pinned", is_sticky=True, status="PUBLISHED")).json()["data"]
    client.post("/api/blogs", json=_blog(title="Pinned draft", is_sticky=True))
    hidden = client.post("/api/blogs", json=_blog(title="Off homepage", category_id=2, show_on_homepage=False,
                                                  status="PUBLISHED")).json()["data"]

    assert [b["id"] for b in client.get("/api/blogs/sticky").json()["data"]] == [pinned["id"]]
    assert [b["id"] for b in client.get("/api/blogs/homepage").json()["data"]] == [pinned["id"]]

    by_category = client.get("/api/blogs/category/2").json()
    assert [b["id"] for b in by_category["data"]] == [hidden["id"]]
    assert client.get("/api/blogs/category/1").json()["pagination"]["total"] == 1
