"""
Tests for the projects router.

Uses the api_client fixture: a real service on a temp database with a
scripted generation client, installed as the API singleton.
"""

import json

import pytest


OUTLINE = [
    "A clockmaker's apprentice hears the town clock counting backwards.",
    "The apprentice climbs the tower and finds a second, hidden dial.",
]


def create_project(api_client, **overrides) -> dict:
    body = {
        "title": "The Backwards Clock",
        "premise": "A town clock starts counting down to something.",
        "genre": "fantasy",
        "subgenre": "urban",
        "chapter_count": 2,
        "target_word_count": 1000,
    }
    body.update(overrides)
    response = api_client.post("/projects", json=body)
    assert response.status_code == 201
    return response.json()


class TestCreateProject:
    """Tests for POST /projects."""

    def test_create_returns_project_in_setup(self, api_client):
        project = create_project(api_client)

        assert project["project_id"]
        assert project["status"] == "setup"
        assert project["outline"] == []
        assert project["chapters"] == []
        assert project["current_chapter"] == 0

    def test_default_target_word_count(self, api_client):
        response = api_client.post("/projects", json={
            "title": "Untitled",
            "premise": "Something happens.",
            "genre": "mystery",
            "subgenre": "cozy",
            "chapter_count": 5,
        })

        assert response.status_code == 201
        assert response.json()["target_word_count"] == 1600

    @pytest.mark.parametrize("chapter_count", [0, 101])
    def test_chapter_count_out_of_range(self, api_client, chapter_count):
        response = api_client.post("/projects", json={
            "title": "Untitled",
            "premise": "Something happens.",
            "genre": "mystery",
            "subgenre": "cozy",
            "chapter_count": chapter_count,
        })

        assert response.status_code == 422


class TestGetProject:
    """Tests for GET /projects and GET /projects/{id}."""

    def test_get_project(self, api_client):
        created = create_project(api_client)

        response = api_client.get(f"/projects/{created['project_id']}")

        assert response.status_code == 200
        assert response.json()["title"] == "The Backwards Clock"

    def test_unknown_project_is_404(self, api_client):
        response = api_client.get("/projects/does-not-exist")

        assert response.status_code == 404

    def test_list_projects(self, api_client):
        create_project(api_client, title="One")
        create_project(api_client, title="Two")

        response = api_client.get("/projects")

        assert response.status_code == 200
        assert response.json()["total"] == 2

    def test_genres(self, api_client):
        response = api_client.get("/projects/genres")

        assert response.status_code == 200
        genres = response.json()["genres"]
        assert "FANTASY" in genres
        assert "URBAN_FANTASY" in genres["FANTASY"]


class TestOutlineAndChapters:
    """Queueing outline and chapter jobs through the API."""

    def test_outline_job_is_queued(self, api_client):
        project = create_project(api_client)

        response = api_client.post(f"/projects/{project['project_id']}/outline")

        assert response.status_code == 202
        data = response.json()
        assert data["job_type"] == "outline_generation"
        assert data["status"] == "queued"

        job = api_client.get(f"/jobs/{data['job_id']}").json()
        assert job["status"] == "queued"
        assert job["project_id"] == project["project_id"]

    def test_outline_for_unknown_project_is_404(self, api_client):
        response = api_client.post("/projects/does-not-exist/outline")

        assert response.status_code == 404

    def test_next_chapter_without_outline_is_409(self, api_client):
        project = create_project(api_client)

        response = api_client.post(f"/projects/{project['project_id']}/chapters/next")

        assert response.status_code == 409

    def test_next_chapter_for_unknown_project_is_404(self, api_client):
        response = api_client.post("/projects/does-not-exist/chapters/next")

        assert response.status_code == 404

    def test_outline_then_chapter(self, api_client, fake_client):
        project = create_project(api_client)
        project_id = project["project_id"]
        fake_client.queue(json.dumps(OUTLINE), " ".join(["word"] * 1000))

        api_client.post(f"/projects/{project_id}/outline")
        assert api_client.post("/jobs/process-next").json()["error"] is None

        outlined = api_client.get(f"/projects/{project_id}").json()
        assert outlined["outline"] == OUTLINE

        response = api_client.post(f"/projects/{project_id}/chapters/next")
        assert response.status_code == 202
        assert response.json()["job_type"] == "chapter_generation"

        # Only one active job per project
        assert api_client.post(f"/projects/{project_id}/chapters/next").status_code == 409

        api_client.post("/jobs/process-next")

        drafted = api_client.get(f"/projects/{project_id}").json()
        assert drafted["current_chapter"] == 1
        assert drafted["chapters"][0]["word_count"] == 1000

        jobs = api_client.get(f"/projects/{project_id}/jobs").json()
        assert jobs["total"] == 2
        assert {job["status"] for job in jobs["jobs"]} == {"completed"}

    def test_outline_after_first_chapter_is_409(self, api_client, fake_client):
        project = create_project(api_client)
        project_id = project["project_id"]
        fake_client.queue(json.dumps(OUTLINE), " ".join(["word"] * 1000))
        api_client.post(f"/projects/{project_id}/outline")
        api_client.post("/jobs/process-next")
        api_client.post(f"/projects/{project_id}/chapters/next")
        api_client.post("/jobs/process-next")

        response = api_client.post(
            f"/projects/{project_id}/outline", json={"chapter_count": 5}
        )

        assert response.status_code == 409
        assert api_client.get(f"/projects/{project_id}").json()["chapter_count"] == 2

    def test_outline_chapter_count_override(self, api_client, fake_client):
        project = create_project(api_client, chapter_count=4)
        project_id = project["project_id"]
        fake_client.queue(json.dumps(OUTLINE))

        api_client.post(f"/projects/{project_id}/outline", json={"chapter_count": 2})
        api_client.post("/jobs/process-next")

        stored = api_client.get(f"/projects/{project_id}").json()
        assert stored["outline"] == OUTLINE
        assert stored["chapter_count"] == 2
