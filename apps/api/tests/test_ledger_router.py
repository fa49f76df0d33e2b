import uuid
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import routers.ledger as ledger_router
from database import Base, get_db
from main import app
from models.ledger_account import LedgerAccount
from models.ledger_entry import LedgerEntry
from models.ledger_transaction import LedgerTransaction
from models.subscription import Subscription
from models.subscription_item_feature import SubscriptionItemFeature
from models.usage_meter import UsageMeter
from services.session_token import create_session_token


TEST_ORG_ID = "ledger-router-org"
TEST_AUTH_HEADER = {"Authorization": f"Bearer {create_session_token(TEST_ORG_ID)['token']}"}
OTHER_AUTH_HEADER = {"Authorization": f"Bearer {create_session_token('another-org')['token']}"}
TESTMODE_AUTH_HEADER = {"Authorization": f"Bearer {create_session_token(TEST_ORG_ID, livemode=False)['token']}"}


@pytest_asyncio.fixture
async def ledger_api(tmp_path):
    db_path = tmp_path / "ledger_router.db"
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}")
    session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client, session_maker

    app.dependency_overrides.pop(get_db, None)
    await engine.dispose()


async def _seed_subscription(session_maker):
    subscription_id = f"sub-{uuid.uuid4()}"
    async with session_maker() as session:
        session.add(
            Subscription(
                id=subscription_id,
                organization_id=TEST_ORG_ID,
                current_billing_period_start=datetime.now(timezone.utc) - timedelta(minutes=5),
            )
        )
        session.add(UsageMeter(id=f"meter-{subscription_id}", organization_id=TEST_ORG_ID, name="API calls"))
        session.add(
            SubscriptionItemFeature(
                subscription_id=subscription_id,
                usage_meter_id=f"meter-{subscription_id}",
                amount=250,
                renewal_frequency="every_billing_period",
            )
        )
        await session.commit()
    return subscription_id


async def _seed_account_with_entries(session_maker):
    subscription_id = await _seed_subscription(session_maker)
    account_id = str(uuid.uuid4())
    async with session_maker() as session:
        transaction = LedgerTransaction(
            id=str(uuid.uuid4()),
            organization_id=TEST_ORG_ID,
            subscription_id=subscription_id,
            type="usage_event_processed",
        )
        session.add_all(
            [
                LedgerAccount(
                    id=account_id,
                    organization_id=TEST_ORG_ID,
                    subscription_id=subscription_id,
                    usage_meter_id=f"meter-{subscription_id}",
                ),
                transaction,
            ]
        )
        await session.flush()
        for direction, amount, status in (("credit", 900, "posted"), ("debit", 150, "posted"), ("debit", 50, "pending")):
            session.add(
                LedgerEntry(
                    ledger_transaction_id=transaction.id,
                    ledger_account_id=account_id,
                    subscription_id=subscription_id,
                    organization_id=TEST_ORG_ID,
                    entry_type="usage_cost" if direction == "debit" else "payment_initiated",
                    direction=direction,
                    amount=amount,
                    status=status,
                    entry_timestamp=datetime.now(timezone.utc),
                )
            )
        await session.commit()
    return account_id


@pytest.mark.asyncio
async def test_ledger_routes_require_session_token(ledger_api):
    client, _ = ledger_api

    response = await client.get("/ledger/accounts/anything/balance")

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_account_balance_by_type(ledger_api):
    client, session_maker = ledger_api
    account_id = await _seed_account_with_entries(session_maker)

    available = await client.get(f"/ledger/accounts/{account_id}/balance", headers=TEST_AUTH_HEADER)
    assert available.status_code == 200
    assert available.json()["balance_type"] == "available"
    assert available.json()["balance"] == 700

    posted = await client.get(
        f"/ledger/accounts/{account_id}/balance",
        params={"balance_type": "posted"},
        headers=TEST_AUTH_HEADER,
    )
    assert posted.json()["balance"] == 750

    invalid = await client.get(
        f"/ledger/accounts/{account_id}/balance",
        params={"balance_type": "projected"},
        headers=TEST_AUTH_HEADER,
    )
    assert invalid.status_code == 422


@pytest.mark.asyncio
async def test_foreign_records_are_reported_missing(ledger_api):
    client, session_maker = ledger_api
    account_id = await _seed_account_with_entries(session_maker)

    other_org = await client.get(f"/ledger/accounts/{account_id}/balance", headers=OTHER_AUTH_HEADER)
    assert other_org.status_code == 404

    testmode = await client.get(f"/ledger/accounts/{account_id}/balance", headers=TESTMODE_AUTH_HEADER)
    assert testmode.status_code == 404

    missing = await client.get("/ledger/subscriptions/sub-missing/usage-credit-balances", headers=TEST_AUTH_HEADER)
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_transition_grants_credits_visible_in_balances_and_entries(ledger_api):
    client, session_maker = ledger_api
    subscription_id = await _seed_subscription(session_maker)

    transition = await client.post(
        f"/ledger/subscriptions/{subscription_id}/billing-period-transitions",
        json={"billing_run_id": "run-router"},
        headers=TEST_AUTH_HEADER,
    )
    assert transition.status_code == 200
    summary = transition.json()
    assert summary["status"] == "completed"
    assert summary["payload_type"] == "standard"
    assert summary["credits_granted"] == 1

    balances = await client.get(
        f"/ledger/subscriptions/{subscription_id}/usage-credit-balances",
        headers=TEST_AUTH_HEADER,
    )
    assert balances.status_code == 200
    payload = balances.json()
    assert payload["total_available"] == 250
    assert [item["balance"] for item in payload["balances"]] == [250]
    assert payload["balances"][0]["usage_meter_id"] == f"meter-{subscription_id}"

    entries = await client.get(
        f"/ledger/transactions/{summary['ledger_transaction_id']}/entries",
        headers=TEST_AUTH_HEADER,
    )
    assert entries.status_code == 200
    entry_payload = entries.json()
    assert entry_payload["type"] == "billing_period_transition"
    assert [(item["entry_type"], item["amount"]) for item in entry_payload["entries"]] == [
        ("credit_grant_recognized", 250)
    ]

    too_early = await client.post(
        f"/ledger/subscriptions/{subscription_id}/billing-period-transitions",
        headers=TEST_AUTH_HEADER,
    )
    assert too_early.status_code == 409

    foreign = await client.get(
        f"/ledger/transactions/{summary['ledger_transaction_id']}/entries",
        headers=OTHER_AUTH_HEADER,
    )
    assert foreign.status_code == 404


@pytest.mark.asyncio
async def test_transition_can_be_queued(ledger_api, monkeypatch):
    client, session_maker = ledger_api
    subscription_id = await _seed_subscription(session_maker)
    queued = []

    class _Job:
        def __init__(self, job_id):
            self.id = job_id

    def fake_enqueue(target_subscription_id, period_end_key=None):
        queued.append((target_subscription_id, period_end_key))
        return _Job(f"billing-transition:{target_subscription_id}:{period_end_key or 'initial'}")

    monkeypatch.setattr(ledger_router, "enqueue_billing_period_transition_job", fake_enqueue)

    response = await client.post(
        f"/ledger/subscriptions/{subscription_id}/billing-period-transitions",
        json={"enqueue": True},
        headers=TEST_AUTH_HEADER,
    )

    assert response.status_code == 200
    assert response.json() == {
        "subscription_id": subscription_id,
        "status": "queued",
        "job_id": f"billing-transition:{subscription_id}:initial",
    }
    assert queued == [(subscription_id, None)]


@pytest.mark.asyncio
async def test_transition_queue_unavailable_returns_503(ledger_api, monkeypatch):
    client, session_maker = ledger_api
    subscription_id = await _seed_subscription(session_maker)

    def broken_enqueue(*args, **kwargs):
        raise ConnectionError("redis unreachable")

    monkeypatch.setattr(ledger_router, "enqueue_billing_period_transition_job", broken_enqueue)

    response = await client.post(
        f"/ledger/subscriptions/{subscription_id}/billing-period-transitions",
        json={"enqueue": True},
        headers=TEST_AUTH_HEADER,
    )

    assert response.status_code == 503


@pytest.mark.asyncio
async def test_liveness_probe(ledger_api):
    client, _ = ledger_api

    response = await client.get("/health/live")

    assert response.status_code == 200
    assert response.json() == {"alive": True}
