"""
Tests for the reconcile_stale_purchases Celery task (called synchronously, DB and gateway patched).
"""
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from app.core.errors import GatewayError
from app.models.purchase import Purchase
from app.services.payment_gateway.base import PaymentNotification
from app.workers.tasks.reconcile_purchases import reconcile_stale_purchases


def _age(db_session, order_id: str, delta: timedelta) -> None:
    db_session.query(Purchase).filter_by(order_id=order_id).update(
        {"created_at": datetime.now(timezone.utc) - delta}
    )
    db_session.commit()


@pytest.fixture
def run_task(session_factory, fake_gateway):
    def run():
        with patch("app.workers.tasks.reconcile_purchases.SessionLocal", session_factory), patch(
            "app.workers.tasks.reconcile_purchases.MidtransGateway", return_value=fake_gateway
        ):
            return reconcile_stale_purchases()

    return run


def _status(db_session, order_id: str) -> str:
    db_session.expire_all()
    return db_session.query(Purchase).filter_by(order_id=order_id).one().status


def test_nothing_stale(run_task, store):
    store.create_pending("u1", "story-S1", 50000)  # fresh, below the threshold

    assert run_task() == {"ok": True, "checked": 0, "resolved": 0}


def test_resolves_from_gateway_status(run_task, store, db_session, fake_gateway):
    settled = store.create_pending("u1", "story-S1", 50000)
    expired = store.create_pending("u1", "story-S2", 50000)
    waiting = store.create_pending("u1", "story-S3", 50000)
    for order_id in (settled, expired, waiting):
        _age(db_session, order_id, timedelta(hours=2))
    fake_gateway.statuses[settled] = PaymentNotification(settled, "settlement", "accept")
    fake_gateway.statuses[expired] = PaymentNotification(expired, "expire")
    fake_gateway.statuses[waiting] = PaymentNotification(waiting, "pending")

    result = run_task()

    assert result == {"ok": True, "checked": 3, "resolved": 2}
    assert _status(db_session, settled) == "SUCCESS"
    assert _status(db_session, expired) == "FAILED"
    assert _status(db_session, waiting) == "PENDING"


def test_gateway_client_closed_after_run(run_task, store, db_session, fake_gateway):
    order_id = store.create_pending("u1", "story-S1", 50000)
    _age(db_session, order_id, timedelta(hours=2))

    run_task()

    assert fake_gateway.close_calls == 1


def test_gateway_closed_when_batch_fails(run_task, store, db_session, fake_gateway):
    order_id = store.create_pending("u1", "story-S1", 50000)
    _age(db_session, order_id, timedelta(hours=2))

    with patch(
        "app.workers.tasks.reconcile_purchases.PurchaseService.reconcile",
        side_effect=RuntimeError("boom"),
    ):
        assert run_task() == {"ok": False}
    assert fake_gateway.close_calls == 1


def test_abandoned_checkout_is_failed(run_task, store, db_session):
    order_id = store.create_pending("u1", "story-S1", 50000)
    _age(db_session, order_id, timedelta(hours=25))

    assert run_task()["resolved"] == 1
    assert _status(db_session, order_id) == "FAILED"
    # the user may try again
    store.create_pending("u1", "story-S1", 50000)


def test_gateway_error_on_one_purchase_does_not_stop_the_batch(run_task, store, db_session, fake_gateway):
    broken = store.create_pending("u1", "story-S1", 50000)
    settled = store.create_pending("u1", "story-S2", 50000)
    _age(db_session, broken, timedelta(hours=2))
    _age(db_session, settled, timedelta(hours=1))
    fake_gateway.statuses[settled] = PaymentNotification(settled, "settlement", "accept")

    original = fake_gateway.get_transaction_status

    def flaky(order_id):
        if order_id == broken:
            raise GatewayError(detail={"order_id": order_id})
        return original(order_id)

    fake_gateway.get_transaction_status = flaky

    assert run_task() == {"ok": True, "checked": 2, "resolved": 1}
    assert _status(db_session, broken) == "PENDING"
    assert _status(db_session, settled) == "SUCCESS"


def test_unexpected_error_reports_failure(run_task):
    with patch(
        "app.workers.tasks.reconcile_purchases.EntitlementStore.list_stale_pending",
        side_effect=RuntimeError("boom"),
    ):
        assert run_task() == {"ok": False}
