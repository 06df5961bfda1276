"""
Unit tests for the Clips HTTP service.
"""

import pytest
from fastapi.testclient import TestClient

from shared.config import get_config
from service_clips.app.main import ClipsService, create_app


class TestClipsService:
    """Test cases for ClipsService."""

    @pytest.fixture
    def config(self):
        """Memory-only service configuration."""
        return get_config("clips", 8000, redis_url=None, upstash_redis_url=None)

    @pytest.fixture
    def service(self, config, store):
        """ClipsService instance."""
        return ClipsService(config=config, store=store)

    @pytest.fixture
    def client(self, service):
        """Test client running the app lifespan."""
        with TestClient(service.app) as client:
            yield client

    def _create(self, client, **body):
        payload = {"content": "hello world"}
        payload.update(body)
        response = client.post("/api/clip", json=payload)
        assert response.status_code == 201, response.text
        return response.json()

    def test_root_endpoint(self, client):
        """Root endpoint."""
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["service"] == "clips"

    def test_health_endpoint(self, client):
        """Health reports the durable tier state."""
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["dependencies"]["redis"] == "ok"

    def test_create_clip(self, client):
        """Create returns token, URL and expiry."""
        data = self._create(client, expirationMinutes=5)

        assert data["success"] is True
        assert len(data["token"]) == 32
        assert data["url"].endswith(f"/api/clip/{data['token']}")
        assert data["expiresAt"] == "2024-01-01T12:05:00Z"
        assert data["expiresIn"] == "5 minutes"

    def test_read_clip(self, client):
        """Read returns content and metadata."""
        token = self._create(client, contentType="code")["token"]

        response = client.get(f"/api/clip/{token}")

        assert response.status_code == 200
        body = response.json()
        assert body["data"]["content"] == "hello world"
        assert body["data"]["contentType"] == "code"
        assert body["data"]["accessCount"] == 1
        assert body["metadata"]["timeRemaining"] == 60 * 60 * 1000

    def test_wrong_password_is_not_found(self, client):
        """Password failures are indistinguishable from missing clips."""
        token = self._create(client, password="s3cret!")["token"]

        missing = client.get(f"/api/clip/{'0' * 32}")
        wrong = client.get(f"/api/clip/{token}", params={"password": "nope"})
        right = client.get(f"/api/clip/{token}", params={"password": "s3cret!"})

        assert wrong.status_code == 404
        assert wrong.json() == missing.json()
        assert right.status_code == 200

    def test_not_found_body(self, client):
        """404s carry a generic error plus a longer explanation."""
        response = client.get(f"/api/clip/{'0' * 32}")

        body = response.json()
        assert response.status_code == 404
        assert body["error"] == "Clip not found"
        assert body["code"] == "CLIP_NOT_FOUND"
        assert "expired" in body["message"]

    def test_burn_after_reading(self, client):
        """Second read of a burned clip is a 404."""
        token = self._create(client, burnAfterReading=True)["token"]

        assert client.get(f"/api/clip/{token}").status_code == 200
        assert client.get(f"/api/clip/{token}").status_code == 404

    def test_expired_clip(self, client, clock):
        """Reads after expiry are 404."""
        token = self._create(client, expirationMinutes=1)["token"]
        clock.advance(seconds=61)

        assert client.get(f"/api/clip/{token}").status_code == 404

    def test_clip_info(self, client):
        """Info does not count an access."""
        token = self._create(client, password="s3cret!")["token"]

        response = client.get(f"/api/clip/{token}/info")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["accessCount"] == 0
        assert data["contentType"] == "text"
        assert "content" not in data

    def test_delete_clip(self, client):
        """Delete then delete again."""
        token = self._create(client)["token"]

        assert client.delete(f"/api/clip/{token}").status_code == 200
        assert client.delete(f"/api/clip/{token}").status_code == 404

    def test_stats(self, client, clock):
        """Stats endpoint renders timestamps as ISO strings."""
        token = self._create(client)["token"]
        client.get(f"/api/clip/{token}")

        response = client.get("/api/stats")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["totalClips"] == 1
        assert data["activeClips"] == 1
        assert data["totalAccesses"] == 1
        assert data["oldestClip"] == "2024-01-01T12:00:00Z"
        assert data["redisConnected"] is True
        assert data["redisClips"] == 1

    def test_invalid_token_format(self, client):
        """Malformed tokens are rejected before reaching the store."""
        response = client.get("/api/clip/not-a-token")

        assert response.status_code == 400
        assert response.json()["error"] == "Validation failed"

    @pytest.mark.parametrize("body", [
        {"content": ""},
        {"content": "x" * 100_001},
        {"content": "ok", "contentType": "image"},
        {"content": "ok", "expirationMinutes": 0},
        {"content": "ok", "expirationMinutes": 10081},
        {"content": "ok", "password": "abc"},
        {"content": "ok", "maxAccess": 1001},
    ])
    def test_create_validation(self, client, body):
        """Out-of-range input is a 400."""
        response = client.post("/api/clip", json=body)

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_multibyte_content_limit_counts_bytes(self, client):
        """The 100KB limit applies to encoded size."""
        response = client.post("/api/clip", json={"content": "é" * 50_001})

        assert response.status_code == 400

    def test_lifespan_closes_store(self, service, durable):
        """Shutting the app down closes the durable tier."""
        with TestClient(service.app):
            assert service.store.sweeper.running

        assert durable.closed
        assert not service.store.sweeper.running

    def test_metrics_endpoint(self, client):
        """Prometheus exposition includes clip metrics."""
        self._create(client)

        response = client.get("/metrics")

        assert response.status_code == 200
        assert "http_requests_total" in response.text

    def test_create_app_memory_only(self, config):
        """Factory builds a working memory-only app."""
        with TestClient(create_app(config)) as client:
            token = client.post("/api/clip", json={"content": "hi"}).json()["token"]
            assert client.get(f"/api/clip/{token}").json()["data"]["content"] == "hi"
            assert client.get("/api/stats").json()["data"]["redisConnected"] is False
