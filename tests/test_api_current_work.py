import json

import pytest
from bson import ObjectId

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16


@pytest.fixture
def work(client, auth_headers):
    res = client.post(
        "/api/current-work",
        json={"title": "Portfolio rewrite", "description": "Moving to a new stack", "progress": 40},
        headers=auth_headers,
    )
    assert res.status_code == 201, res.text
    return res.json()["data"]


@pytest.mark.parametrize("value,expected", [(150, 100), (-20, 0), (55, 55), ("75", 75), (150.5, 100), (-0.5, 0), ("42.9", 42)])
def test_update_progress_clamps(client, auth_headers, db, work, value, expected):
    res = client.put(f"/api/current-work/{work['id']}/progress", json={"progress": value}, headers=auth_headers)
    assert res.status_code == 200
    assert res.json()["data"]["progress"] == expected
    assert db.currentwork.find_one({"_id": ObjectId(work["id"])})["progress"] == expected


def test_update_progress_requires_number(client, auth_headers, work):
    assert client.put(f"/api/current-work/{work['id']}/progress", json={}, headers=auth_headers).status_code == 400
    res = client.put(f"/api/current-work/{work['id']}/progress", json={"progress": "lots"}, headers=auth_headers)
    assert res.status_code == 400


def test_update_progress_missing_record(client, auth_headers):
    res = client.put(f"/api/current-work/{ObjectId()}/progress", json={"progress": 10}, headers=auth_headers)
    assert res.status_code == 404


def test_create_and_update_clamp_progress(client, auth_headers, work):
    res = client.post(
        "/api/current-work",
        json={"title": "Overachiever", "description": "x", "progress": 300},
        headers=auth_headers,
    )
    assert res.json()["data"]["progress"] == 100
    res = client.put(f"/api/current-work/{work['id']}", json={"progress": -5}, headers=auth_headers)
    assert res.json()["data"]["progress"] == 0


def test_merge_update_keeps_omitted_fields(client, auth_headers, work):
    res = client.put(f"/api/current-work/{work['id']}", json={"status": "testing"}, headers=auth_headers)
    data = res.json()["data"]
    assert data["status"] == "testing"
    assert data["title"] == "Portfolio rewrite"
    assert data["progress"] == 40


def test_form_values_are_coerced(client, auth_headers):
    res = client.post(
        "/api/current-work",
        data={
            "title": "Learning Rust",
            "description": "Evenings and weekends",
            "type": "learning",
            "progress": "30",
            "isFeatured": "true",
            "isActive": "false",
            "technologies": json.dumps(["rust", "tokio"]),
            "links": json.dumps([{"title": "Repo", "url": "https://example.com/repo"}]),
        },
        files={"image": ("shot.png", PNG, "image/png")},
        headers=auth_headers,
    )
    assert res.status_code == 201, res.text
    data = res.json()["data"]
    assert data["progress"] == 30
    assert data["isFeatured"] is True
    assert data["isActive"] is False
    assert data["technologies"] == ["rust", "tokio"]
    assert data["links"] == [{"title": "Repo", "url": "https://example.com/repo"}]
    assert data["image"].startswith("/uploads/image-")


def test_invalid_status_rejected(client, auth_headers, work):
    res = client.put(f"/api/current-work/{work['id']}", json={"status": "done-ish"}, headers=auth_headers)
    assert res.status_code == 400
    assert client.get(f"/api/current-work/{work['id']}").json()["data"]["status"] == "in-progress"


def test_list_sort_and_filters(client, auth_headers):
    def create(title, **fields):
        payload = {"title": title, "description": "x", **fields}
        assert client.post("/api/current-work", json=payload, headers=auth_headers).status_code == 201

    create("Second", order=2)
    create("First", order=1)
    create("Pinned", order=5, isFeatured=True)
    create("Paused", order=0, isActive=False, status="planning")

    titles = [w["title"] for w in client.get("/api/current-work").json()["data"]]
    assert titles == ["Pinned", "Paused", "First", "Second"]

    active = [w["title"] for w in client.get("/api/current-work", params={"active": "true"}).json()["data"]]
    assert active == ["Pinned", "First", "Second"]
    featured = client.get("/api/current-work", params={"featured": "true"}).json()
    assert [w["title"] for w in featured["data"]] == ["Pinned"]
    planning = client.get("/api/current-work", params={"status": "planning"}).json()
    assert [w["title"] for w in planning["data"]] == ["Paused"]
    assert client.get("/api/current-work", params={"status": "finished"}).json()["count"] == 0


def test_featured_toggle(client, auth_headers, work):
    res = client.put(f"/api/current-work/{work['id']}/featured", headers=auth_headers)
    assert res.json()["data"]["isFeatured"] is True


def test_progress_requires_admin(client, work):
    res = client.put(f"/api/current-work/{work['id']}/progress", json={"progress": 10})
    assert res.status_code == 401
