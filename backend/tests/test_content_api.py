from datetime import date, timedelta

import pytest

from cyberwhisper import repositories


@pytest.fixture
def course(record_store):
    courses = repositories.CourseRepository(record_store)
    courses.create({"title": "Ethical Hacking", "short_description": "Intro", "level": "beginner",
                    "category_id": 3, "status": "active", "date_added": 1700000000})
    return courses.create({"title": "Cloud Security", "short_description": "AWS and Azure", "level": "advanced",
                           "category_id": 4, "status": "active", "date_added": 1710000000})


def _batch(course_id, **overrides):
    body = {
        "course_id": course_id,
        "program_name": "Weekend Cohort",
        "program_type": "Online",
        "start_date": "2026-11-01",
        "end_date": "2027-01-31",
        "start_time": "09:00",
        "end_time": "12:00",
        "schedule_type": "WEEKEND",
        "instructor_id": 1,
        "price": 150.0,
    }
    body.update(overrides)
    return body


def test_home_and_health(client):
    assert "CyberWhisper API" in client.get("/").text
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


def test_courses_are_read_only_and_filterable(client, course):
    r = client.get("/api/courses")
    assert r.status_code == 200
    titles = [c["title"] for c in r.json()["data"]]
    assert titles == ["Cloud Security", "Ethical Hacking"]

    assert client.get("/api/courses", params={"level": "beginner"}).json()["pagination"]["total"] == 1
    assert client.get("/api/courses", params={"search": "azure"}).json()["data"][0]["id"] == course.id
    assert client.get(f"/api/courses/{course.id}").json()["data"]["title"] == "Cloud Security"
    assert client.get("/api/courses/999").status_code == 404
    assert client.post("/api/courses", json={"title": "x"}).status_code == 405


def test_batch_crud(client, course):
    r = client.post("/api/batches", json=_batch(course.id))
    assert r.status_code == 201
    batch = r.json()["data"]
    assert batch["start_date"] == "2026-11-01"
    assert batch["status"] == "ACTIVE"

    assert client.get("/api/batches", params={"course_id": course.id}).json()["pagination"]["total"] == 1
    assert client.get("/api/batches", params={"status": "COMPLETED"}).json()["pagination"]["total"] == 0

    r = client.put(f"/api/batches/{batch['id']}", json={"status": "UPCOMING", "price": 120})
    assert r.status_code == 200
    assert r.json()["data"]["status"] == "UPCOMING"
    assert r.json()["data"]["price"] == 120

    assert client.delete(f"/api/batches/{batch['id']}").status_code == 200
    assert client.get(f"/api/batches/{batch['id']}").status_code == 404
    assert client.delete(f"/api/batches/{batch['id']}").status_code == 404


def test_batch_validation(client, course):
    assert client.post("/api/batches", json=_batch(999)).status_code == 404
    assert client.post("/api/batches", json=_batch(course.id, end_date="2026-10-01")).status_code == 400
    assert client.post("/api/batches", json=_batch(course.id, status="PAUSED")).status_code == 422


def test_quotes(client):
    r = client.post("/api/quotes", json={"name": "Nimal", "email": "nimal@example.com", "phone": "0771234567",
                                         "message": "Corporate training for 20 staff"})
    assert r.status_code == 201
    quote = r.json()["data"]

    listing = client.get("/api/quotes", params={"search": "corporate"}).json()
    assert listing["pagination"]["total"] == 1
    assert client.get(f"/api/quotes/{quote['id']}").json()["data"]["name"] == "Nimal"
    assert client.delete(f"/api/quotes/{quote['id']}").status_code == 200
    assert client.get(f"/api/quotes/{quote['id']}").status_code == 404
    assert client.post("/api/quotes", json={"name": "x", "email": "bad", "phone": "123"}).status_code == 422


def test_newsletter(client):
    first = client.post("/api/newsletter/subscribe", json={"email": "Reader@Example.com"})
    assert first.status_code == 201
    assert first.json()["data"]["email"] == "reader@example.com"
    again = client.post("/api/newsletter/subscribe", json={"email": "reader@example.com"})
    assert again.status_code == 200
    assert again.json()["message"] == "email already subscribed"
    client.post("/api/newsletter/subscribe", json={"email": "second@example.com"})

    assert client.get("/api/newsletter/count").json()["data"]["count"] == 2
    assert client.get("/api/newsletter/subscribers").json()["pagination"]["total"] == 2
    check = client.get("/api/newsletter/check/Reader@Example.com").json()["data"]
    assert check["subscribed"] is True
    assert check["subscribed_at"] is not None
    assert client.get("/api/newsletter/check/nobody@example.com").json()["data"]["subscribed"] is False

    r = client.request("DELETE", "/api/newsletter/unsubscribe", json={"email": "reader@example.com"})
    assert r.status_code == 200
    r = client.request("DELETE", "/api/newsletter/unsubscribe", json={"email": "reader@example.com"})
    assert r.status_code == 404
    assert client.get("/api/newsletter/count").json()["data"]["count"] == 1


def test_delete_subscriber_by_id(client):
    sub = client.post("/api/newsletter/subscribe", json={"email": "gone@example.com"}).json()["data"]
    assert client.delete(f"/api/newsletter/subscribers/{sub['id']}").status_code == 200
    assert client.delete(f"/api/newsletter/subscribers/{sub['id']}").status_code == 404
    assert client.get("/api/newsletter/count").json()["data"]["count"] == 0


def test_course_shortcut_routes(client, record_store, course):
    courses = repositories.CourseRepository(record_store)
    courses.create({"title": "Linux Basics", "level": "beginner", "category_id": 4, "creator": 9,
                    "status": "published", "is_free_course": 1, "is_top_course": 1, "date_added": 1720000000})

    assert [c["title"] for c in client.get("/api/courses/top/featured").json()["data"]] == ["Linux Basics"]
    free = client.get("/api/courses/free/list").json()
    assert free["pagination"]["total"] == 1
    assert free["data"][0]["title"] == "Linux Basics"
    assert client.get("/api/courses/published/list").json()["pagination"]["total"] == 1
    assert client.get("/api/courses/level/beginner").json()["pagination"]["total"] == 2
    by_category = client.get("/api/courses/category/4").json()["data"]
    assert [c["title"] for c in by_category] == ["Linux Basics", "Cloud Security"]
    assert client.get("/api/courses/creator/9").json()["pagination"]["total"] == 1


def test_batch_shortcut_routes(client, course):
    today = date.today()
    upcoming = _batch(course.id, start_date=str(today + timedelta(days=30)), end_date=None, instructor_id=5)
    started = _batch(course.id, start_date=str(today - timedelta(days=30)), end_date=None)
    paused = _batch(course.id, start_date=str(today + timedelta(days=10)), end_date=None, status="INACTIVE")
    ids = [client.post("/api/batches", json=b).json()["data"]["id"] for b in (upcoming, started, paused)]

    active = client.get("/api/batches/active").json()["data"]
    assert [b["id"] for b in active] == [ids[0]]
    assert client.get(f"/api/batches/course/{course.id}").json()["pagination"]["total"] == 3
    assert [b["id"] for b in client.get("/api/batches/instructor/5").json()["data"]] == [ids[0]]
    assert client.get("/api/batches/course/999").json()["pagination"]["total"] == 0


def test_quotes_by_email_ignore_case(client):
    for message in ("first", "second"):
        client.post("/api/quotes", json={"name": "Kamal", "email": "Kamal@Example.com", "phone": "0770000000",
                                         "message": message})
    client.post("/api/quotes", json={"name": "Other", "email": "other@example.com", "phone": "0770000001"})

    body = client.get("/api/quotes/email/kamal@example.com").json()
    assert body["count"] == 2
    assert {q["message"] for q in body["data"]} == {"first", "second"}
    assert client.get("/api/quotes/email/none@example.com").json()["count"] == 0
