"""HTTP route tests against the full application with an in-memory store."""

import json

import pytest
from dependency_injector import providers
from fastapi.testclient import TestClient

from adcraft.core.container import container


@pytest.fixture
def client(settings):
    container.settings.override(providers.Object(settings))
    container.reset_singletons()
    from adcraft.main import create_app

    with TestClient(create_app()) as test_client:
        yield test_client

    container.settings.reset_override()
    container.reset_singletons()


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["checks"]["store"] is True
    assert body["features"] == {"store_backend": "memory", "maintenance": False}


class TestPerformanceRoutes:

    def test_track_api_call_and_stats(self, client):
        response = client.post("/api/performance/track/api-call", json={
            "endpoint": "analyzeProductImage",
            "cacheHit": False,
            "cost": 0.003,
            "status": "success",
            "duration": 1200,
        })
        assert response.json()["success"] is True
        assert response.json()["id"].startswith("metric_")

        client.post("/api/performance/track/api-call",
                    json={"endpoint": "analyzeProductImage", "cacheHit": True, "cost": 0})

        stats = client.get("/api/performance/stats", params={"hours": 24}).json()["stats"]
        assert stats["totalMetrics"] == 2
        assert stats["apiCalls"]["total"] == 2
        assert stats["cache"]["hitRate"] == pytest.approx(50)
        assert stats["cache"]["costSaved"] == pytest.approx(0.003)
        assert stats["apiCalls"]["totalCost"] == pytest.approx(0.003)

    def test_other_tracking_routes(self, client):
        assert client.post("/api/performance/track/image-optimization", json={
            "originalSize": 1000, "optimizedSize": 250, "compressionRatio": 0.25,
            "processingTime": 40,
        }).json()["success"]
        assert client.post("/api/performance/track/video-generation", json={
            "duration": 30_000, "success": False, "errorMessage": "render failed",
        }).json()["success"]
        assert client.post("/api/performance/track/user-action", json={
            "action": "export", "duration": 5000, "data": {"format": "mp4"},
        }).json()["success"]

        stats = client.get("/api/performance/stats").json()["stats"]
        assert stats["imageOptimizations"]["totalSavings"] == 750
        assert stats["videoGeneration"]["averageDuration"] == pytest.approx(30)
        assert stats["videoGeneration"]["successRate"] == 0
        assert stats["userEngagement"]["totalActions"] == 1

        metrics = client.get("/api/performance/metrics",
                             params={"type": "user_action"}).json()["metrics"]
        assert len(metrics) == 1
        assert metrics[0]["data"] == {"action": "export", "format": "mp4"}

    def test_video_generation_error_message_is_stored(self, client):
        client.post("/api/performance/track/video-generation", json={
            "duration": 1000, "success": False, "errorMessage": "render failed",
        })
        client.post("/api/performance/track/video-generation", json={
            "duration": 1000, "success": False, "error_message": "quota exceeded",
        })

        metrics = client.get("/api/performance/metrics",
                             params={"type": "video_generation"}).json()["metrics"]
        messages = sorted(m["data"]["errorMessage"] for m in metrics)
        assert messages == ["quota exceeded", "render failed"]

    def test_user_action_data_may_repeat_top_level_fields(self, client):
        response = client.post("/api/performance/track/user-action", json={
            "action": "click", "duration": 250,
            "data": {"action": "nested", "duration": 9, "button": "export"},
        })
        assert response.status_code == 200
        assert response.json()["success"] is True

        (metric,) = client.get("/api/performance/metrics",
                               params={"type": "user_action"}).json()["metrics"]
        assert metric["duration"] == 250
        assert metric["data"] == {"action": "click", "duration": 9, "button": "export"}

    def test_invalid_payload_rejected(self, client):
        response = client.post("/api/performance/track/api-call", json={"cacheHit": True})
        assert response.status_code == 422

    def test_metrics_filters(self, client):
        client.post("/api/performance/track/user-action", json={"action": "upload"})

        assert len(client.get("/api/performance/metrics").json()["metrics"]) == 1
        assert client.get("/api/performance/metrics",
                          params={"type": "cache_hit"}).json()["metrics"] == []
        assert client.get("/api/performance/metrics",
                          params={"start": 0, "end": 1}).json()["metrics"] == []
        assert client.get("/api/performance/metrics", params={"type": "page_view"}).status_code == 422

    def test_trend(self, client):
        trend = client.get("/api/performance/trend", params={"days": 3}).json()["trend"]
        assert len(trend) == 3
        assert set(trend[0]) == {"date", "optimizations", "apiCalls", "cacheHitRate", "videos"}

    def test_export(self, client):
        client.post("/api/performance/track/user-action", json={"action": "upload"})
        response = client.get("/api/performance/export")

        assert response.status_code == 200
        assert "attachment" in response.headers["content-disposition"]
        exported = json.loads(response.content)
        assert exported[0]["type"] == "user_action"

    def test_clear_and_cleanup(self, client):
        client.post("/api/performance/track/user-action", json={"action": "upload"})

        assert client.post("/api/performance/cleanup",
                           params={"retention_days": 30}).json() == {"success": True, "removed": 0}
        assert client.delete("/api/performance/metrics").json() == {"success": True}
        assert client.get("/api/performance/metrics").json()["metrics"] == []


class TestCacheRoutes:

    def test_stats_clear_cleanup(self, client):
        cache = container.result_cache()
        client.portal.call(cache.cache_video, ("img-1", "prompt"), "https://cdn.example/v.mp4")
        client.portal.call(cache.cache_generation_result, "req", {"scene": 1})

        stats = client.get("/api/cache/stats").json()["stats"]
        assert stats == {"image_analysis": 0, "videos": 1, "generations": 1, "total": 2}

        assert client.post("/api/cache/cleanup").json() == {"success": True, "removed": 0}
        assert client.delete("/api/cache").json() == {"success": True}
        assert client.get("/api/cache/stats").json()["stats"]["total"] == 0
