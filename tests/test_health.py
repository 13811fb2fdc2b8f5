"""Health, queue inspection and notification endpoint tests."""

import pytest

from coursewatch import __version__
from coursewatch.workers.runner import NotificationWorker
from factories import ALLOCATION, FACILITATOR


@pytest.fixture
async def worker(app, db_engine, test_settings):
    worker = NotificationWorker(test_settings, engine=db_engine)
    await worker.initialize()
    app.state.worker = worker
    yield worker
    await worker.stop()


@pytest.mark.asyncio
async def test_health_check(client):
    response = await client.get("/api/v1/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["service"] == "coursewatch"
    assert data["version"] == __version__


@pytest.mark.asyncio
async def test_liveness(client):
    response = await client.get("/api/v1/health/live")
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_not_ready_without_worker(client):
    response = await client.get("/api/v1/health/ready")
    assert response.status_code == 503
    data = response.json()
    assert data["status"] == "not_ready"
    assert data["checks"]["database"] == "ok"
    assert data["checks"]["queues"] == "not_configured"
    assert data["checks"]["notification_service"] == "not_ready"


@pytest.mark.asyncio
async def test_queue_stats_without_worker(client):
    response = await client.get("/api/v1/health/queues")
    assert response.status_code == 503
    assert response.headers["Retry-After"] == "5"
    assert response.json()["error"]["code"] == "NOT_INITIALIZED"


@pytest.mark.asyncio
async def test_ready_with_worker(client, worker):
    response = await client.get("/api/v1/health/ready")
    assert response.status_code == 200
    assert response.json()["status"] == "ready"


@pytest.mark.asyncio
async def test_queue_stats(client, worker):
    response = await client.get("/api/v1/health/queues")
    assert response.status_code == 200
    queues = response.json()["queues"]
    assert set(queues) == {"facilitatorReminders", "managerAlerts", "deadlineWarnings"}
    assert queues["managerAlerts"]["waiting"] == 0


@pytest.mark.asyncio
async def test_scheduler_status_disabled(client, worker):
    response = await client.get("/api/v1/health/scheduler")
    assert response.status_code == 200
    assert response.json() == {"running": False, "jobs": []}


class TestNotificationRoutes:
    @pytest.mark.asyncio
    async def test_list_get_and_stats(self, client, service):
        queued = await service.queue_facilitator_reminder(FACILITATOR, ALLOCATION, 2)
        notification_id = queued.notification.notification_id

        response = await client.get("/api/v1/notifications", params={"recipient_id": FACILITATOR})
        assert response.status_code == 200
        [item] = response.json()
        assert item["notification_id"] == notification_id
        assert item["type"] == "facilitator_reminder"
        assert item["metadata"]["courseInfo"]["moduleName"] == "Web Development"

        response = await client.get(f"/api/v1/notifications/{notification_id}")
        assert response.status_code == 200
        assert response.json()["status"] == "pending"

        response = await client.get("/api/v1/notifications/stats")
        assert response.json() == {"pending": 1, "sent": 0, "failed": 0}

    @pytest.mark.asyncio
    async def test_unknown_notification(self, client):
        response = await client.get("/api/v1/notifications/notif_missing")
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_recipient_required(self, client):
        response = await client.get("/api/v1/notifications")
        assert response.status_code == 422
