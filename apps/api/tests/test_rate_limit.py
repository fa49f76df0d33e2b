import pytest
from fastapi import FastAPI, HTTPException
from starlette.requests import Request

from routers import rate_limit


def _request(app, client_host, forwarded_for=None):
    headers = []
    if forwarded_for:
        headers.append((b"x-forwarded-for", forwarded_for.encode()))
    return Request(
        {
            "type": "http",
            "method": "POST",
            "path": "/ledger/subscriptions/sub-1/billing-period-transitions",
            "headers": headers,
            "client": (client_host, 52000),
            "app": app,
        }
    )


@pytest.fixture
def redis_unavailable(monkeypatch):
    async def unreachable(key, limit, window_seconds):
        raise ConnectionError("redis unreachable")

    monkeypatch.setattr(rate_limit, "_consume_redis_quota", unreachable)


@pytest.mark.asyncio
async def test_rotating_forwarded_header_does_not_reset_client_quota(redis_unavailable):
    app = FastAPI()
    dependency = rate_limit.rate_limit("ledger_billing_transition", limit=1, window_seconds=3600)

    allowed = 0
    rejected = 0
    for i in range(5):
        try:
            await dependency(_request(app, "10.0.0.1", forwarded_for=f"1.2.3.{i}"))
            allowed += 1
        except HTTPException as exc:
            assert exc.status_code == 429
            assert exc.headers["Retry-After"] == "3600"
            rejected += 1

    assert allowed == 1
    assert rejected == 4


@pytest.mark.asyncio
async def test_separate_peers_have_separate_quotas(redis_unavailable):
    app = FastAPI()
    dependency = rate_limit.rate_limit("ledger_billing_transition", limit=1, window_seconds=3600)

    await dependency(_request(app, "10.0.0.1"))
    await dependency(_request(app, "10.0.0.2"))

    with pytest.raises(HTTPException) as exc_info:
        await dependency(_request(app, "10.0.0.1"))
    assert exc_info.value.status_code == 429


@pytest.mark.asyncio
async def test_disabled_rate_limits_allow_every_request(redis_unavailable):
    app = FastAPI()
    app.state.disable_rate_limits = True
    dependency = rate_limit.rate_limit("ledger_billing_transition", limit=1, window_seconds=3600)

    for _ in range(3):
        await dependency(_request(app, "10.0.0.1"))

    assert rate_limit._local_counters == {}
