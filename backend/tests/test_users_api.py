import io

from PIL import Image

from cyberwhisper import repositories, services

MB = 1024 * 1024


def _make_image(fmt="PNG", pad_to=0) -> bytes:
    img = Image.new("RGB", (32, 32), "teal")
    bio = io.BytesIO()
    img.save(bio, format=fmt)
    data = bio.getvalue()
    return data + b"\0" * max(0, pad_to - len(data))


def _user(**overrides):
    body = {
        "first_name": "Ada",
        "last_name": "Lovelace",
        "email": "ada@example.com",
        "phone": "+94770000001",
        "password": "s3cret-pass",
    }
    body.update(overrides)
    return body


def test_create_user_hides_password(client, settings, record_store, object_store):
    r = client.post("/api/users", json=_user(email="Ada@Example.com"))
    assert r.status_code == 201
    data = r.json()["data"]
    assert data["email"] == "ada@example.com"
    assert data["role"] == "STUDENT"
    assert "password" not in data
    assert "password_hash" not in data

    svc = services.UserService(record_store, object_store, settings)
    stored = svc.get(data["id"])
    assert stored.password_hash != "s3cret-pass"
    assert services.PWD_CTX.verify("s3cret-pass", stored.password_hash)
    assert not services.PWD_CTX.verify("wrong", stored.password_hash)


def test_duplicate_email_and_phone(client):
    assert client.post("/api/users", json=_user()).status_code == 201
    r = client.post("/api/users", json=_user(phone="+94770000002"))
    assert r.status_code == 409
    assert "email" in r.json()["error"]
    r = client.post("/api/users", json=_user(email="other@example.com"))
    assert r.status_code == 409
    assert "phone" in r.json()["error"]


def test_validation(client):
    assert client.post("/api/users", json=_user(email="not-an-email")).status_code == 422
    assert client.post("/api/users", json=_user(role="ROOT")).status_code == 422
    assert client.post("/api/users", json=_user(password="123")).status_code == 422


def test_update_user(client):
    ada = client.post("/api/users", json=_user()).json()["data"]
    bob = client.post("/api/users", json=_user(first_name="Bob", email="bob@example.com", phone="+94770000003")).json()["data"]

    r = client.post(f"/api/users/{bob['id']}/update", json={"email": ada["email"]})
    assert r.status_code == 409

    r = client.post(f"/api/users/{bob['id']}/update", json={"title": "Instructor", "first_name": None, "role": "INSTRUCTOR"})
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["title"] == "Instructor"
    assert data["first_name"] == "Bob"
    assert data["role"] == "INSTRUCTOR"

    assert client.post("/api/users/999/update", json={"title": "x"}).status_code == 404
    assert client.post(f"/api/users/{bob['id']}/update", json={"password_hash": "x"}).status_code == 422


def test_list_users(client):
    client.post("/api/users", json=_user())
    client.post("/api/users", json=_user(first_name="Grace", email="grace@example.com", phone="+94770000004", role="INSTRUCTOR"))

    instructors = client.get("/api/users", params={"role": "INSTRUCTOR"}).json()
    assert [u["first_name"] for u in instructors["data"]] == ["Grace"]
    found = client.get("/api/users", params={"search": "lovelace"}).json()
    assert found["pagination"]["total"] == 2
    assert all("password_hash" not in u for u in found["data"])


def test_profile_image_rules(client, object_store):
    user = client.post("/api/users", json=_user()).json()["data"]
    url = f"/api/users/{user['id']}/profile-image"

    r = client.post(url, files={"image": ("me.png", _make_image(), "image/png")})
    assert r.status_code == 200
    first = r.json()["data"]["profile_image_url"]
    assert first.startswith("memory://cyberwhisper/users/profiles/")

    r = client.post(url, files={"image": ("me.gif", _make_image("GIF"), "image/gif")})
    assert r.status_code == 400

    r = client.post(url, files={"image": ("big.jpg", _make_image("JPEG", pad_to=5 * MB + 1), "image/jpeg")})
    assert r.status_code == 400

    r = client.post(url, files={"image": ("me2.png", _make_image(), "image/png")})
    assert r.status_code == 200
    assert len(object_store.handles("users/profiles")) == 1
    assert r.json()["data"]["profile_image_url"] != first


def test_delete_user_removes_profile_image(client, object_store):
    user = client.post("/api/users", json=_user()).json()["data"]
    client.post(f"/api/users/{user['id']}/profile-image", files={"image": ("me.png", _make_image(), "image/png")})
    assert len(object_store.handles("users/profiles")) == 1

    r = client.delete(f"/api/users/{user['id']}")
    assert r.status_code == 200
    assert object_store.handles() == ()
    assert client.get(f"/api/users/{user['id']}").status_code == 404
    assert client.delete(f"/api/users/{user['id']}").status_code == 404


def test_instructors_route(client):
    client.post("/api/users", json=_user())
    grace = client.post("/api/users", json=_user(first_name="Grace", email="grace@example.com",
                                                 phone="+94770000004", role="INSTRUCTOR")).json()["data"]
    retired = client.post("/api/users", json=_user(first_name="Alan", email="alan@example.com",
                                                   phone="+94770000005", role="INSTRUCTOR")).json()["data"]
    client.post(f"/api/users/{retired['id']}/update", json={"status": "INACTIVE"})

    body = client.get("/api/users/instructors").json()
    assert [u["id"] for u in body["data"]] == [grace["id"]]
    assert "password_hash" not in body["data"][0]


def test_create_with_skills_and_delete_removes_them(client, record_store):
    user = client.post("/api/users", json=_user(skills=["Python", " python ", "", "Networking"])).json()["data"]
    skills = client.get(f"/api/skills/user/{user['id']}").json()["data"]
    assert sorted(s["skill"] for s in skills) == ["Networking", "Python"]

    assert client.delete(f"/api/users/{user['id']}").status_code == 200
    assert repositories.SkillRepository(record_store).for_user(user["id"]) == []
    assert client.get("/api/skills/all-unique").json()["data"] == []
