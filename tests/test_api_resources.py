from pathlib import Path

import pytest
from bson import ObjectId

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16


def png(name="shot.png"):
    return (name, PNG, "image/png")


def test_root(client):
    assert client.get("/").json()["status"] == "ok"


# Projects

def create_project(client, headers, files=None, **fields):
    data = {"title": "Portfolio", "description": "This site", **fields}
    res = client.post("/api/projects", data=data, files=files, headers=headers)
    assert res.status_code == 201, res.text
    return res.json()["data"]


def test_project_defaults_and_tech_stack(client, auth_headers):
    project = create_project(client, auth_headers, techStack="react, fastapi, mongodb", featured="true")
    assert project["techStack"] == ["react", "fastapi", "mongodb"]
    assert project["featured"] is True
    assert project["images"] == []
    assert project["category"] == "web"
    assert project["status"] == "completed"


def test_project_gallery_thumbnail_and_replace(client, auth_headers, assets):
    project = create_project(
        client, auth_headers,
        files=[("images", png("a.png")), ("images", png("b.png"))],
    )
    assert len(project["images"]) == 2
    assert project["thumbnail"] == project["images"][0]

    res = client.put(
        f"/api/projects/{project['id']}",
        data={"appendImages": "true"},
        files=[("images", png("c.png"))],
        headers=auth_headers,
    )
    appended = res.json()["data"]["images"]
    assert appended[:2] == project["images"]
    assert len(appended) == 3

    res = client.put(f"/api/projects/{project['id']}", files=[("images", png("d.png"))], headers=auth_headers)
    replaced = res.json()["data"]
    assert len(replaced["images"]) == 1
    assert replaced["thumbnail"] == replaced["images"][0]
    for path in appended:
        assert not assets.resolve(path).exists()
    assert assets.resolve(replaced["images"][0]).exists()


def test_project_images_list_can_drop_owned_only(client, auth_headers, assets):
    project = create_project(
        client, auth_headers,
        files=[("images", png("a.png")), ("images", png("b.png"))],
    )
    first, second = project["images"]
    res = client.put(
        f"/api/projects/{project['id']}",
        json={"images": [second, "/uploads/someone-else.png"]},
        headers=auth_headers,
    )
    data = res.json()["data"]
    assert data["images"] == [second]
    assert data["thumbnail"] == second
    assert not assets.resolve(first).exists()
    assert assets.resolve(second).exists()


def test_project_filters_and_sort(client, auth_headers):
    create_project(client, auth_headers, title="Later", order="2", category="mobile")
    create_project(client, auth_headers, title="Sooner", order="1", featured="true")
    titles = [p["title"] for p in client.get("/api/projects").json()["data"]]
    assert titles == ["Sooner", "Later"]
    assert [p["title"] for p in client.get("/api/projects", params={"featured": "false"}).json()["data"]] == ["Later"]
    assert [p["title"] for p in client.get("/api/projects", params={"category": "mobile"}).json()["data"]] == ["Later"]


def test_project_delete_frees_gallery(client, auth_headers, assets):
    project = create_project(client, auth_headers, files=[("images", png())])
    client.delete(f"/api/projects/{project['id']}", headers=auth_headers)
    assert not assets.resolve(project["images"][0]).exists()
    assert client.get(f"/api/projects/{project['id']}").status_code == 404


def test_get_unknown_id(client):
    assert client.get(f"/api/projects/{ObjectId()}").json() == {
        "success": False,
        "error": "Not Found",
        "message": "Project not found",
    }
    assert client.get("/api/projects/garbage").status_code == 404


# Skills

def test_skill_name_unique(client, auth_headers):
    assert client.post("/api/skills", json={"name": "Python", "proficiency": "90"}, headers=auth_headers).status_code == 201
    res = client.post("/api/skills", json={"name": "Python"}, headers=auth_headers)
    assert res.status_code == 400
    assert res.json()["error"] == "Conflict"


def test_skill_proficiency_bounds(client, auth_headers):
    res = client.post("/api/skills", json={"name": "Go", "proficiency": 120}, headers=auth_headers)
    assert res.status_code == 400


def test_skills_bulk(client, auth_headers, db):
    res = client.post(
        "/api/skills/bulk",
        json={"skills": [{"name": "Python", "category": "languages"}, {"name": "React", "category": "frontend"}]},
        headers=auth_headers,
    )
    assert res.status_code == 201
    assert res.json()["count"] == 2

    res = client.post(
        "/api/skills/bulk",
        json={"skills": [{"name": "Docker"}, {"name": "React"}]},
        headers=auth_headers,
    )
    assert res.status_code == 400
    assert db.skills.count_documents({}) == 2

    assert client.post("/api/skills/bulk", json={"skills": []}, headers=auth_headers).status_code == 400


def test_skills_sorted_by_category_order_name(client, auth_headers):
    for name, category, order in [("Vue", "frontend", 1), ("React", "frontend", 1), ("Node", "backend", 3)]:
        client.post("/api/skills", json={"name": name, "category": category, "order": order}, headers=auth_headers)
    names = [s["name"] for s in client.get("/api/skills").json()["data"]]
    assert names == ["Node", "React", "Vue"]


# Research, achievements and interests

def test_research_lists_and_toggles(client, auth_headers):
    res = client.post(
        "/api/research",
        json={"title": "Paper", "abstract": "About things", "authors": "A. One, B. Two", "publicationDate": "2023-05-01"},
        headers=auth_headers,
    )
    assert res.status_code == 201, res.text
    paper = res.json()["data"]
    assert paper["authors"] == ["A. One", "B. Two"]

    client.put(f"/api/research/{paper['id']}/featured", headers=auth_headers)
    assert client.get("/api/research", params={"featured": "true"}).json()["count"] == 1
    assert client.get("/api/research", params={"type": "thesis"}).json()["count"] == 0


def test_achievement_image_lifecycle(client, auth_headers, assets):
    res = client.post(
        "/api/achievements",
        data={"title": "Winner", "description": "First place", "category": "hackathon"},
        files={"image": png()},
        headers=auth_headers,
    )
    achievement = res.json()["data"]
    res = client.put(f"/api/achievements/{achievement['id']}", files={"image": png("new.png")}, headers=auth_headers)
    updated = res.json()["data"]
    assert updated["title"] == "Winner"
    assert not assets.resolve(achievement["image"]).exists()
    assert assets.resolve(updated["image"]).exists()


def create_achievement(client, headers):
    res = client.post(
        "/api/achievements",
        data={"title": "Winner", "description": "First place"},
        files={"image": png()},
        headers=headers,
    )
    assert res.status_code == 201, res.text
    return res.json()["data"]


def locked_unlink(monkeypatch):
    def unlink(self, missing_ok=False):
        raise PermissionError(f"locked: {self}")

    monkeypatch.setattr(Path, "unlink", unlink)


def test_delete_survives_asset_delete_failure(client, auth_headers, assets, monkeypatch):
    achievement = create_achievement(client, auth_headers)
    locked_unlink(monkeypatch)

    res = client.delete(f"/api/achievements/{achievement['id']}", headers=auth_headers)
    assert res.status_code == 200
    assert res.json() == {"success": True, "data": {}, "message": "Achievement deleted successfully"}
    assert client.get(f"/api/achievements/{achievement['id']}").status_code == 404
    assert assets.resolve(achievement["image"]).exists()


def test_update_survives_asset_delete_failure(client, auth_headers, assets, monkeypatch):
    achievement = create_achievement(client, auth_headers)
    locked_unlink(monkeypatch)

    res = client.put(f"/api/achievements/{achievement['id']}", files={"image": png("new.png")}, headers=auth_headers)
    assert res.status_code == 200
    updated = res.json()["data"]
    assert updated["image"] != achievement["image"]
    assert assets.resolve(updated["image"]).exists()
    assert client.get(f"/api/achievements/{achievement['id']}").json()["data"]["image"] == updated["image"]


def test_interest_links_and_toggle(client, auth_headers):
    res = client.post(
        "/api/interests",
        json={"title": "Chess", "description": "Blitz", "links": [{"title": "Lichess", "url": "https://lichess.org"}]},
        headers=auth_headers,
    )
    interest = res.json()["data"]
    assert interest["links"][0]["title"] == "Lichess"
    toggled = client.put(f"/api/interests/{interest['id']}/toggle", headers=auth_headers).json()["data"]
    assert toggled["isActive"] is False
    assert client.get("/api/interests", params={"active": "true"}).json()["count"] == 0


@pytest.mark.parametrize("path", ["/api/projects", "/api/skills", "/api/research", "/api/achievements", "/api/interests"])
def test_writes_require_token(client, path):
    assert client.post(path, json={}).status_code == 401
    assert client.delete(f"{path}/{ObjectId()}").status_code == 401


# Settings

def test_settings_created_on_first_read(client, db):
    data = client.get("/api/settings").json()["data"]
    assert data["name"] == "Your Name"
    assert data["profileImage"] == ""
    client.get("/api/settings")
    assert db.settings.count_documents({}) == 1


def test_settings_update_merges(client, auth_headers):
    client.put("/api/settings", json={"socialLinks": {"github": "https://github.com/me"}}, headers=auth_headers)
    res = client.put(
        "/api/settings",
        json={"location": "Dhaka", "socialLinks": {"linkedin": "https://linkedin.com/in/me"}, "isAvailableForHire": "false"},
        headers=auth_headers,
    )
    data = res.json()["data"]
    assert data["location"] == "Dhaka"
    assert data["isAvailableForHire"] is False
    assert data["socialLinks"]["github"] == "https://github.com/me"
    assert data["socialLinks"]["linkedin"] == "https://linkedin.com/in/me"
    assert data["name"] == "Your Name"


def test_profile_image_replacement(client, auth_headers, assets):
    first = client.put("/api/settings/profile-image", files={"profileImage": png()}, headers=auth_headers).json()
    assert first["profileImage"] == first["data"]["profileImage"]
    second = client.put("/api/settings/profile-image", files={"profileImage": png("new.png")}, headers=auth_headers).json()
    assert not assets.resolve(first["profileImage"]).exists()
    assert assets.resolve(second["profileImage"]).exists()


def test_profile_image_required(client, auth_headers):
    res = client.put("/api/settings/profile-image", data={"x": "y"}, headers=auth_headers)
    assert res.status_code == 400
