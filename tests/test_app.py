"""
Tests for the FastAPI application and cache admin routes.

The TestClient context manager runs the lifespan, so every test gets a
fresh CacheRegistry and PruneScheduler on ``app.state``.
"""

from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from jobloom_cache.config import Settings
from jobloom_cache.main import create_app
from jobloom_cache.registry import CacheRegistry


@pytest.fixture
def client() -> Iterator[TestClient]:
    app = create_app(Settings(cache_prune_interval=3600, log_level="DEBUG"))
    with TestClient(app) as test_client:
        yield test_client


def _caches(client: TestClient) -> CacheRegistry:
    return client.app.state.caches


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


def test_health(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "service": "jobloom-cache"}


def test_lifespan_builds_registry_and_starts_scheduler(client: TestClient) -> None:
    assert _caches(client).names() == ["api", "user", "compute", "reference"]
    assert client.app.state.scheduler.running is True


def test_shutdown_stops_scheduler_and_clears_caches() -> None:
    app = create_app(Settings(cache_prune_interval=3600))
    with TestClient(app):
        app.state.caches.get("api").set("k", "v")

    assert app.state.scheduler.running is False
    assert app.state.caches.get("api").get_stats().size == 0


# ---------------------------------------------------------------------------
# Stats
# ---------------------------------------------------------------------------


def test_all_stats(client: TestClient) -> None:
    api = _caches(client).get("api")
    api.set("jobs:u1", [1, 2])
    api.get("jobs:u1")
    api.get("jobs:u2")

    response = client.get("/api/cache/stats")
    assert response.status_code == 200

    body = response.json()
    assert set(body) == {"api", "user", "compute", "reference"}
    assert body["api"]["hits"] == 1
    assert body["api"]["misses"] == 1
    assert body["api"]["hit_rate"] == 0.5
    assert body["api"]["size"] == 1
    assert body["api"]["max_size"] == 500


def test_single_cache_stats(client: TestClient) -> None:
    response = client.get("/api/cache/user/stats")
    assert response.status_code == 200
    assert response.json()["max_size"] == 200


def test_unknown_cache_returns_404(client: TestClient) -> None:
    response = client.get("/api/cache/sessions/stats")
    assert response.status_code == 404
    assert "sessions" in response.json()["detail"]


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------


def test_prune_endpoint(client: TestClient) -> None:
    compute = _caches(client).get("compute")
    compute.set("expired", 1, ttl=-1.0)
    compute.set("live", 2)

    response = client.post("/api/cache/compute/prune")
    assert response.status_code == 200
    assert response.json() == {"cache": "compute", "pruned": 1}
    assert compute.has("live")


def test_invalidate_by_prefix_endpoint(client: TestClient) -> None:
    user = _caches(client).get("user")
    user.set("user:1:profile", {})
    user.set("user:1:settings", {})
    user.set("user:2:profile", {})

    response = client.delete("/api/cache/user/keys", params={"prefix": "user:1:"})
    assert response.status_code == 200
    assert response.json() == {"cache": "user", "prefix": "user:1:", "invalidated": 2}
    assert user.keys() == ["user:2:profile"]


def test_invalidate_requires_prefix(client: TestClient) -> None:
    assert client.delete("/api/cache/user/keys").status_code == 422
    assert client.delete("/api/cache/user/keys", params={"prefix": ""}).status_code == 422


def test_clear_endpoint(client: TestClient) -> None:
    reference = _caches(client).get("reference")
    reference.set("soc:2136", "Programmers")
    reference.get("soc:2136")

    response = client.delete("/api/cache/reference")
    assert response.status_code == 200
    assert response.json() == {"cache": "reference", "cleared": True}

    stats = client.get("/api/cache/reference/stats").json()
    assert stats["size"] == 0
    assert stats["hits"] == 1


def test_clear_unknown_cache_returns_404(client: TestClient) -> None:
    assert client.delete("/api/cache/nope").status_code == 404
