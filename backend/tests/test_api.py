import asyncio
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from cardsync.main import app
from cardsync.services.pricing import get_pricing_service
from cardsync.services.scheduler import PricingQueue, get_pricing_queue

from conftest import SPIDER_MAN, T0, VENOM, WOLVERINE, make_listing


@pytest.fixture
def queue(service, catalog, clock):
    return PricingQueue(service, catalog, clock=clock, inter_job_delay=0.0)


@pytest.fixture
def client(service, queue):
    app.dependency_overrides[get_pricing_service] = lambda: service
    app.dependency_overrides[get_pricing_queue] = lambda: queue
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_get_cached_price(client, store):
    store.seed(SPIDER_MAN.id, "9.99", 4, T0 - timedelta(hours=2))

    resp = client.get(f"/api/v1/card-pricing/{SPIDER_MAN.id}")

    assert resp.status_code == 200
    body = resp.json()
    assert body["card_id"] == SPIDER_MAN.id
    assert body["price"] == "9.99"
    assert body["sales_count"] == 4
    assert body["status"] == "ok"


def test_get_unknown_card_is_404(client):
    resp = client.get("/api/v1/card-pricing/404")

    assert resp.status_code == 404


def test_error_sentinel_is_never_shown_as_a_price(client, store):
    store.seed(SPIDER_MAN.id, "0.02", -1, T0 - timedelta(hours=1))

    body = client.get(f"/api/v1/card-pricing/{SPIDER_MAN.id}").json()

    assert body["status"] == "error"
    assert body["price"] is None


def test_zero_sales_is_reported_as_no_sales(client, store):
    store.seed(SPIDER_MAN.id, "0.00", 0, T0 - timedelta(hours=1))

    body = client.get(f"/api/v1/card-pricing/{SPIDER_MAN.id}").json()

    assert body["status"] == "no_sales"
    assert body["price"] == "0.00"


def test_batch_pricing(client, store):
    store.seed(SPIDER_MAN.id, "9.99", 4, T0 - timedelta(hours=2))
    store.seed(WOLVERINE.id, "3.00", 1, T0 - timedelta(hours=2))

    resp = client.post("/api/v1/card-pricing/batch", json={"card_ids": [1, 2, 404]})

    assert resp.status_code == 200
    prices = resp.json()["prices"]
    assert prices["1"]["price"] == "9.99"
    assert prices["2"]["price"] == "3.00"
    assert prices["404"] is None


def test_batch_pricing_rejects_empty_list(client):
    resp = client.post("/api/v1/card-pricing/batch", json={"card_ids": []})

    assert resp.status_code == 422


def test_force_refresh(client, store, search):
    store.seed(SPIDER_MAN.id, "9.99", 4, T0 - timedelta(hours=1))
    search.respond_with([make_listing("1992 Marvel Masterpieces Spider-Man card", "18.00")])

    resp = client.post(f"/api/v1/card-pricing/{SPIDER_MAN.id}/refresh")

    assert resp.status_code == 200
    assert resp.json()["price"] == "18.00"


def test_queue_and_drain(client, search):
    search.respond_with([make_listing("Marvel Masterpieces Venom Wolverine card", "6.00")])

    resp = client.post("/api/v1/pricing/queue", json={"card_ids": [VENOM.id, WOLVERINE.id, VENOM.id]})
    assert resp.status_code == 202
    assert resp.json() == {"queued": 2, "queue_length": 2}

    resp = client.post("/api/v1/pricing/drain")
    assert resp.status_code == 200
    assert resp.json() == {"processed": 2, "succeeded": 2, "failed": 0, "deferred": 0}


def test_retry_failed(client, service, search):
    search.respond_with([make_listing("Marvel Masterpieces Venom card", "6.00")])
    service.mark_failed(VENOM.id)

    resp = client.post("/api/v1/pricing/retry-failed")

    assert resp.json()["processed"] == 1
    assert service.failed_card_ids == set()


def test_sweep(client):
    resp = client.post("/api/v1/pricing/sweep")

    assert resp.status_code == 202
    assert resp.json() == {"queued": 3, "queue_length": 3}


def test_status(client, service, budget):
    budget.record_request()
    service.mark_failed(VENOM.id)

    body = client.get("/api/v1/pricing/status").json()

    assert body["request_count"] == 1
    assert body["budget_max"] == 70
    assert body["pending_failed_count"] == 1
    assert body["can_proceed"] is True
    assert body["queue_length"] == 0
    assert body["is_draining"] is False


def test_migrate_runs_alembic_off_the_event_loop(client, monkeypatch):
    revisions = []

    def fake_upgrade(config, revision):
        async def migrate():
            revisions.append(revision)

        # alembic/env.py drives its own loop with asyncio.run
        asyncio.run(migrate())

    monkeypatch.setattr("alembic.command.upgrade", fake_upgrade)

    resp = client.post("/migrate")

    assert resp.status_code == 200
    assert resp.json()["success"] is True
    assert revisions == ["head"]
