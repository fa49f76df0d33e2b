from datetime import datetime, timezone

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import services.billing_queue as billing_queue
from database import Base
from models.subscription import Subscription


@pytest_asyncio.fixture
async def session_maker(tmp_path):
    db_path = tmp_path / "billing_queue.db"
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}")
    maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield maker

    await engine.dispose()


class _FakeQueue:
    def __init__(self):
        self.calls = []

    def enqueue(self, func_path, *args, **kwargs):
        self.calls.append((func_path, args, kwargs))
        return kwargs.get("job_id")


def test_job_id_is_keyed_by_subscription_and_period():
    assert billing_queue.billing_transition_job_id("sub-1") == "billing-transition:sub-1:initial"
    assert (
        billing_queue.billing_transition_job_id("sub-1", "20260201T000000")
        == "billing-transition:sub-1:20260201T000000"
    )


def test_enqueue_uses_retry_policy_and_timeouts(monkeypatch):
    queue = _FakeQueue()
    monkeypatch.setattr(billing_queue, "get_billing_queue", lambda: queue)

    job_id = billing_queue.enqueue_billing_period_transition_job("sub-1", "20260201T000000")

    assert job_id == "billing-transition:sub-1:20260201T000000"
    func_path, args, kwargs = queue.calls[0]
    assert func_path == "services.billing_queue.process_billing_period_transition_job"
    assert args == ("sub-1",)
    assert kwargs["retry"].max == 3
    assert kwargs["job_timeout"] == billing_queue.settings.BILLING_TRANSITION_JOB_TIMEOUT_SECONDS


@pytest.mark.asyncio
async def test_due_subscriptions_are_enqueued_once_per_period(session_maker, monkeypatch):
    async with session_maker() as session:
        session.add_all(
            [
                Subscription(
                    id="sub-due",
                    organization_id="org-queue",
                    current_billing_period_end=datetime(2026, 2, 1, tzinfo=timezone.utc),
                ),
                Subscription(
                    id="sub-not-due",
                    organization_id="org-queue",
                    current_billing_period_end=datetime(2026, 3, 1, tzinfo=timezone.utc),
                ),
            ]
        )
        await session.commit()

    enqueued = []
    monkeypatch.setattr(billing_queue, "async_session_maker", session_maker)
    monkeypatch.setattr(
        billing_queue,
        "enqueue_billing_period_transition_job",
        lambda subscription_id, period_end_key=None: enqueued.append((subscription_id, period_end_key)),
    )

    queued = await billing_queue.enqueue_due_billing_period_transitions(
        now=datetime(2026, 2, 15, tzinfo=timezone.utc)
    )

    assert queued == ["sub-due"]
    assert enqueued == [("sub-due", "20260201T000000")]


@pytest.mark.asyncio
async def test_failed_job_is_reraised(session_maker, monkeypatch):
    async def failing_transition(db, subscription_id):
        raise RuntimeError(f"transition failed for {subscription_id}")

    monkeypatch.setattr(billing_queue, "async_session_maker", session_maker)
    monkeypatch.setattr(billing_queue, "run_billing_period_transition", failing_transition)

    with pytest.raises(RuntimeError, match="sub-broken"):
        await billing_queue.process_billing_period_transition_job_async("sub-broken")


@pytest.mark.asyncio
async def test_job_returns_transition_summary(session_maker, monkeypatch):
    async def fake_transition(db, subscription_id):
        return {"subscription_id": subscription_id, "credits_expired": 1, "credits_granted": 2}

    monkeypatch.setattr(billing_queue, "async_session_maker", session_maker)
    monkeypatch.setattr(billing_queue, "run_billing_period_transition", fake_transition)

    summary = await billing_queue.process_billing_period_transition_job_async("sub-ok")

    assert summary == {"subscription_id": "sub-ok", "credits_expired": 1, "credits_granted": 2}
