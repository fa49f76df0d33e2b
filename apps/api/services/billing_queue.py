"""Durable billing-period transition job queue helpers (Redis/RQ)."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from redis import Redis
from rq import Queue, Retry
from rq.job import Job

from config import settings
from database import async_session_maker
from services.billing_period_transition import (
    find_subscriptions_due_for_transition,
    run_billing_period_transition,
)

logger = logging.getLogger(__name__)


def get_redis_connection() -> Redis:
    """Build Redis connection used by RQ."""
    return Redis.from_url(settings.REDIS_URL)


def get_billing_queue() -> Queue:
    """Return the configured billing-period transition queue."""
    return Queue(
        name=settings.BILLING_QUEUE_NAME,
        connection=get_redis_connection(),
        default_timeout=settings.BILLING_TRANSITION_JOB_TIMEOUT_SECONDS,
    )


def billing_transition_job_id(subscription_id: str, period_end_key: Optional[str] = None) -> str:
    # One job per subscription and period boundary keeps re-enqueues idempotent.
    return f"billing-transition:{subscription_id}:{period_end_key or 'initial'}"


def enqueue_billing_period_transition_job(subscription_id: str, period_end_key: Optional[str] = None) -> Job:
    """Enqueue a billing-period transition with retry/timeouts for durability."""
    queue = get_billing_queue()
    return queue.enqueue(
        "services.billing_queue.process_billing_period_transition_job",
        subscription_id,
        job_id=billing_transition_job_id(subscription_id, period_end_key),
        retry=Retry(max=3, interval=[30, 120, 600]),
        job_timeout=settings.BILLING_TRANSITION_JOB_TIMEOUT_SECONDS,
        result_ttl=86400,
        failure_ttl=86400,
    )


async def process_billing_period_transition_job_async(subscription_id: str) -> Dict[str, Any]:
    """Run one billing-period transition in its own session."""
    async with async_session_maker() as db:
        try:
            summary = await run_billing_period_transition(db, subscription_id)
        except Exception as exc:
            await db.rollback()
            logger.exception("Billing period transition for subscription %s failed: %s", subscription_id, exc)
            raise
    logger.info(
        "Billing period transition for subscription %s completed: expired=%s granted=%s",
        subscription_id,
        summary.get("credits_expired", 0),
        summary.get("credits_granted", 0),
    )
    return summary


def process_billing_period_transition_job(subscription_id: str) -> Dict[str, Any]:
    """RQ worker entrypoint for billing-period transition jobs."""
    return asyncio.run(process_billing_period_transition_job_async(subscription_id))


async def enqueue_due_billing_period_transitions(now: Optional[datetime] = None) -> List[str]:
    """Queue a transition for every subscription whose billing period has ended."""
    current_time = now or datetime.now(timezone.utc)
    async with async_session_maker() as db:
        due = await find_subscriptions_due_for_transition(db, now=current_time)

    for subscription_id, period_end in due:
        enqueue_billing_period_transition_job(subscription_id, period_end.strftime("%Y%m%dT%H%M%S"))
    return [subscription_id for subscription_id, _ in due]
