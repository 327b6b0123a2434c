"""Integration tests for admin reports, user management and feedback review."""

import pytest
from fastapi.testclient import TestClient

from newsadmin import app as app_module
from newsadmin.service.runtime import get_runtime
from newsadmin.storage.common import FEEDBACK
from newsadmin.storage.models import Feedback, new_id


@pytest.fixture
def client():
    return TestClient(app_module.app)


@pytest.fixture
def admin(client):
    response = client.post(
        "/api/auth/register",
        json={"name": "Admin", "email": "admin@example.com", "password": "secret1"},
    )
    data = response.json()["data"]
    return {"id": data["user"]["id"], "headers": {"Authorization": f"Bearer {data['token']}"}}


def _seed_feedback(text, rating=None):
    record = Feedback(id=new_id(), feedback=text, rating=rating)
    return get_runtime().store.insert(FEEDBACK, record.to_document())


@pytest.fixture
def feedback_items():
    return [
        _seed_feedback("Love the app", rating=5),
        _seed_feedback("Pretty good", rating=4),
        _seed_feedback("Could be faster", rating=4),
        _seed_feedback("No rating given"),
    ]


class TestDashboard:
    def test_dashboard_overview(self, client, admin):
        runtime = get_runtime()
        runtime.news.create(
            {"title": "Story one", "summary": "s", "content": "c", "category": "Sports", "views": 12},
            created_by=admin["id"],
        )
        runtime.store.create_user("Reader", "reader@example.com", role="user")

        response = client.get("/api/admin/dashboard", headers=admin["headers"])

        assert response.status_code == 200
        overview = response.json()["data"]["overview"]
        assert overview["total_news"] == 1
        assert overview["total_users"] == 1
        assert overview["total_views"] == 12

    def test_analytics_rejects_unknown_period(self, client, admin):
        response = client.get(
            "/api/admin/analytics", params={"period": "14"}, headers=admin["headers"]
        )
        assert response.status_code == 400

    def test_analytics_by_type(self, client, admin):
        response = client.get(
            "/api/admin/analytics",
            params={"period": "7", "type": "users"},
            headers=admin["headers"],
        )

        data = response.json()["data"]
        assert data["period"] == 7
        assert set(data["analytics"]) == {"users"}
        assert data["analytics"]["users"]["total_stats"]["total"] == 1

    def test_content_stats(self, client, admin):
        response = client.get("/api/admin/content-stats", headers=admin["headers"])

        data = response.json()["data"]
        assert data["period"] == 30
        assert data["top_performing"] == {"news": [], "videos": []}

    def test_content_stats_rejects_huge_period(self, client, admin):
        response = client.get(
            "/api/admin/content-stats", params={"period": "100000000"}, headers=admin["headers"]
        )

        assert response.status_code == 400
        assert response.json()["errors"] == [{"field": "period", "message": "Invalid period"}]

    def test_profile(self, client, admin):
        response = client.get("/api/admin/profile", headers=admin["headers"])

        assert response.json()["data"]["email"] == "admin@example.com"


class TestUserManagement:
    def test_list_users_with_filters(self, client, admin):
        store = get_runtime().store
        store.create_user("Reader One", "one@example.com", role="user")
        store.create_user("Reader Two", "two@example.com", role="user", status="suspended")

        response = client.get(
            "/api/admin/users",
            params={"role": "user", "status": "active"},
            headers=admin["headers"],
        )

        data = response.json()["data"]
        assert [u["email"] for u in data["users"]] == ["one@example.com"]
        assert data["pagination"]["total_count"] == 1

    def test_search_users(self, client, admin):
        get_runtime().store.create_user("Zed", "zed@example.com", role="user")

        response = client.get(
            "/api/admin/users", params={"search": "ZED"}, headers=admin["headers"]
        )

        assert [u["name"] for u in response.json()["data"]["users"]] == ["Zed"]

    def test_update_status(self, client, admin):
        user = get_runtime().store.create_user("Reader", "reader@example.com", role="user")

        response = client.put(
            f"/api/admin/users/{user.id}/status",
            json={"status": "suspended"},
            headers=admin["headers"],
        )

        assert response.status_code == 200
        assert response.json()["data"]["user"]["status"] == "suspended"

    def test_update_status_unknown_user(self, client, admin):
        response = client.put(
            "/api/admin/users/missing/status",
            json={"status": "active"},
            headers=admin["headers"],
        )
        assert response.status_code == 404


class TestFeedback:
    def test_list_includes_stats(self, client, admin, feedback_items):
        response = client.get("/api/feedback", headers=admin["headers"])

        data = response.json()["data"]
        assert len(data["feedbacks"]) == 4
        assert data["stats"]["total_feedback"] == 4
        assert data["stats"]["average_rating"] == 4.33
        assert data["stats"]["rating_distribution"] == {"1": 0, "2": 0, "3": 0, "4": 2, "5": 1}

    def test_rating_filter(self, client, admin, feedback_items):
        response = client.get("/api/feedback", params={"rating": "4"}, headers=admin["headers"])

        feedbacks = response.json()["data"]["feedbacks"]
        assert sorted(f["feedback"] for f in feedbacks) == ["Could be faster", "Pretty good"]

    def test_invalid_rating_filter(self, client, admin):
        response = client.get("/api/feedback", params={"rating": "9"}, headers=admin["headers"])
        assert response.status_code == 400

    def test_summary(self, client, admin, feedback_items):
        response = client.get(
            "/api/feedback/stats/summary", params={"days": "7"}, headers=admin["headers"]
        )

        data = response.json()["data"]
        assert data["period"] == "Last 7 days"
        assert data["recent"]["count"] == 4
        assert data["overall"]["total_count"] == 4
        assert len(data["trend"]) == 1

    def test_summary_rejects_huge_days(self, client, admin):
        response = client.get(
            "/api/feedback/stats/summary", params={"days": "100000000"}, headers=admin["headers"]
        )

        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "days"

    def test_get_and_delete(self, client, admin, feedback_items):
        item_id = feedback_items[0]["id"]

        got = client.get(f"/api/feedback/{item_id}", headers=admin["headers"])
        deleted = client.delete(f"/api/feedback/{item_id}", headers=admin["headers"])
        missing = client.get(f"/api/feedback/{item_id}", headers=admin["headers"])

        assert got.json()["data"]["feedback"]["feedback"] == "Love the app"
        assert deleted.json()["data"] == {"deleted_id": item_id}
        assert missing.status_code == 404
        assert missing.json()["message"] == "Feedback not found"
