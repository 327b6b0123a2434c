"""Integration tests for news and video management."""

import pytest
from fastapi.testclient import TestClient

from newsadmin import app as app_module

ARTICLE = {
    "title": "Election results announced",
    "summary": "The final tally is in after a long night.",
    "content": "Officials confirmed the results early this morning after counting every ballot.",
    "category": "Politics",
    "status": "draft",
    "tags": ["election"],
}

VIDEO = {
    "title": "Budget explained",
    "youtubeUrl": "https://www.youtube.com/watch?v=dQw4w9WgXcQ",
    "category": "Analysis",
    "description": "A short walkthrough of the budget.",
}


@pytest.fixture
def client():
    return TestClient(app_module.app)


@pytest.fixture
def admin_headers(client):
    response = client.post(
        "/api/auth/register",
        json={"name": "Editor", "email": "editor@example.com", "password": "secret1"},
    )
    return {"Authorization": f"Bearer {response.json()['data']['token']}"}


def _create_article(client, headers, **overrides):
    response = client.post("/api/news", json={**ARTICLE, **overrides}, headers=headers)
    assert response.status_code == 201, response.json()
    return response.json()["data"]["article"]


class TestNews:
    def test_requires_token(self, client):
        assert client.get("/api/news").status_code == 401

    def test_draft_appears_in_admin_list(self, client, admin_headers):
        created = _create_article(client, admin_headers)

        response = client.get("/api/news", headers=admin_headers)

        assert response.status_code == 200
        data = response.json()["data"]
        assert [a["id"] for a in data["articles"]] == [created["id"]]
        assert data["articles"][0]["status"] == "draft"
        assert data["pagination"] == {
            "current_page": 1,
            "total_pages": 1,
            "total_count": 1,
            "limit": 20,
        }

    def test_author_is_populated(self, client, admin_headers):
        article = _create_article(client, admin_headers)

        assert article["created_by"]["email"] == "editor@example.com"
        assert set(article["created_by"]) == {"id", "name", "email"}

    def test_create_validates_fields(self, client, admin_headers):
        response = client.post(
            "/api/news",
            json={**ARTICLE, "title": "Hi", "category": "Gossip"},
            headers=admin_headers,
        )

        assert response.status_code == 400
        fields = {error["field"] for error in response.json()["errors"]}
        assert fields == {"title", "category"}

    def test_filters_and_pagination(self, client, admin_headers):
        for i in range(3):
            _create_article(client, admin_headers, title=f"Sports story {i}", category="Sports")
        _create_article(client, admin_headers, status="published")

        response = client.get(
            "/api/news",
            params={"category": "Sports", "limit": 2, "page": 2},
            headers=admin_headers,
        )
        data = response.json()["data"]

        assert len(data["articles"]) == 1
        assert data["pagination"]["total_count"] == 3
        assert data["pagination"]["total_pages"] == 2

    def test_invalid_sort(self, client, admin_headers):
        response = client.get("/api/news", params={"sort": "secret"}, headers=admin_headers)
        assert response.status_code == 400

    def test_get_update_and_delete(self, client, admin_headers):
        article = _create_article(client, admin_headers)
        url = f"/api/news/{article['id']}"

        assert client.get(url, headers=admin_headers).json()["data"]["article"]["title"] == ARTICLE["title"]

        updated = client.put(
            url, json={**ARTICLE, "title": "Updated election results"}, headers=admin_headers
        )
        assert updated.status_code == 200
        assert updated.json()["data"]["article"]["title"] == "Updated election results"

        deleted = client.delete(url, headers=admin_headers)
        assert deleted.json()["data"] == {"deleted_id": article["id"]}
        assert client.get(url, headers=admin_headers).status_code == 404

    def test_missing_article(self, client, admin_headers):
        response = client.get("/api/news/does-not-exist", headers=admin_headers)

        assert response.status_code == 404
        assert response.json()["message"] == "Article not found"

    def test_status_and_featured(self, client, admin_headers):
        article = _create_article(client, admin_headers)
        url = f"/api/news/{article['id']}"

        published = client.patch(f"{url}/status", json={"status": "published"}, headers=admin_headers)
        featured = client.patch(f"{url}/featured", headers=admin_headers)
        unfeatured = client.patch(f"{url}/featured", headers=admin_headers)

        assert published.json()["data"]["article"]["status"] == "published"
        assert featured.json()["data"]["article"]["featured"] is True
        assert unfeatured.json()["data"]["article"]["featured"] is False

    def test_bad_status(self, client, admin_headers):
        article = _create_article(client, admin_headers)

        response = client.patch(
            f"/api/news/{article['id']}/status", json={"status": "archived"}, headers=admin_headers
        )

        assert response.status_code == 400

    def test_bulk_delete(self, client, admin_headers):
        ids = [_create_article(client, admin_headers)["id"] for _ in range(3)]

        response = client.post(
            "/api/news/bulk-delete", json={"ids": ids[:2] + ["missing"]}, headers=admin_headers
        )

        assert response.json()["data"] == {"deleted_count": 2}
        remaining = client.get("/api/news", headers=admin_headers).json()["data"]["articles"]
        assert [a["id"] for a in remaining] == [ids[2]]


class TestVideos:
    def test_create_derives_youtube_id_and_thumbnail(self, client, admin_headers):
        response = client.post("/api/videos", json=VIDEO, headers=admin_headers)

        assert response.status_code == 201
        video = response.json()["data"]["video"]
        assert video["youtube_id"] == "dQw4w9WgXcQ"
        assert video["thumbnail_url"] == "https://img.youtube.com/vi/dQw4w9WgXcQ/maxresdefault.jpg"
        assert video["status"] == "draft"

    def test_duplicate_youtube_video(self, client, admin_headers):
        client.post("/api/videos", json=VIDEO, headers=admin_headers)

        response = client.post(
            "/api/videos",
            json={**VIDEO, "youtubeUrl": "https://youtu.be/dQw4w9WgXcQ"},
            headers=admin_headers,
        )

        assert response.status_code == 409

    def test_non_youtube_url(self, client, admin_headers):
        response = client.post(
            "/api/videos",
            json={**VIDEO, "youtubeUrl": "https://vimeo.com/12345"},
            headers=admin_headers,
        )

        assert response.status_code == 400

    def test_update_to_other_videos_id_conflicts(self, client, admin_headers):
        client.post("/api/videos", json=VIDEO, headers=admin_headers)
        other = client.post(
            "/api/videos",
            json={**VIDEO, "youtubeUrl": "https://youtu.be/aaaaaaaaaaa"},
            headers=admin_headers,
        ).json()["data"]["video"]

        response = client.put(f"/api/videos/{other['id']}", json=VIDEO, headers=admin_headers)

        assert response.status_code == 409

    def test_fetch_youtube_data(self, client, admin_headers):
        response = client.post(
            "/api/videos/fetch-youtube-data",
            json={"youtubeUrl": "https://youtu.be/dQw4w9WgXcQ"},
            headers=admin_headers,
        )

        data = response.json()["data"]
        assert data["youtube_id"] == "dQw4w9WgXcQ"
        assert data["title"]

    def test_list_filters_by_status(self, client, admin_headers):
        client.post("/api/videos", json=VIDEO, headers=admin_headers)
        client.post(
            "/api/videos",
            json={**VIDEO, "youtubeUrl": "https://youtu.be/bbbbbbbbbbb", "status": "published"},
            headers=admin_headers,
        )

        response = client.get("/api/videos", params={"status": "published"}, headers=admin_headers)

        videos = response.json()["data"]["videos"]
        assert [v["youtube_id"] for v in videos] == ["bbbbbbbbbbb"]
