"""Billing-period transition ledger command and the scheduled transition it belongs to."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from dateutil.relativedelta import relativedelta
from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.billing_period import BillingPeriod
from models.enums import BillingPeriodStatus, IntervalUnit, LedgerEntryType
from models.ledger_entry import LedgerEntry
from models.ledger_transaction import LedgerTransaction
from models.subscription import Subscription
from models.subscription_item_feature import SubscriptionItemFeature
from services.credit_expiration import expire_credits_at_end_of_billing_period
from services.entitlement_grants import grant_entitlement_usage_credits
from services.ledger_entries import bulk_insert_ledger_entries, select_ledger_accounts
from services.ledger_types import (
    BillingPeriodSnapshot,
    BillingPeriodTransitionLedgerCommand,
    LedgerEntryInsert,
    NonRenewingBillingPeriodTransitionPayload,
    StandardBillingPeriodTransitionPayload,
    SubscriptionFeatureItem,
    SubscriptionSnapshot,
)

logger = logging.getLogger(__name__)


@dataclass
class LedgerCommandResult:
    ledger_transaction: LedgerTransaction
    ledger_entries: List[LedgerEntry] = field(default_factory=list)


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def _initiating_source_id(command: BillingPeriodTransitionLedgerCommand) -> str:
    payload = command.payload
    if isinstance(payload, StandardBillingPeriodTransitionPayload) and payload.billing_run_id:
        return payload.billing_run_id
    return payload.subscription.id


async def process_billing_period_transition_ledger_command(
    db: AsyncSession,
    command: BillingPeriodTransitionLedgerCommand,
) -> LedgerCommandResult:
    """Record a billing-period transition on the ledger.

    Creates the container transaction, expires credits left over from the
    previous period (standard payloads only) and grants the new period's
    entitlements. The session is flushed but not committed.
    """
    ledger_transaction = LedgerTransaction(
        id=str(uuid.uuid4()),
        organization_id=command.organization_id,
        subscription_id=command.payload.subscription.id,
        livemode=command.livemode,
        type=command.type.value,
        description=command.transaction_description,
        transaction_metadata=command.transaction_metadata,
        initiating_source_type=command.type.value,
        initiating_source_id=_initiating_source_id(command),
    )
    db.add(ledger_transaction)
    await db.flush()

    ledger_accounts = await select_ledger_accounts(
        db,
        organization_id=command.organization_id,
        livemode=command.livemode,
        subscription_id=command.payload.subscription.id,
    )

    inserts: List[LedgerEntryInsert] = []
    payload = command.payload
    if isinstance(payload, StandardBillingPeriodTransitionPayload) and payload.previous_billing_period is not None:
        expiration = await expire_credits_at_end_of_billing_period(
            ledger_accounts,
            ledger_transaction,
            command,
            db,
        )
        inserts.extend(expiration.ledger_entries)

    ledger_accounts_by_usage_meter_id = {
        account.usage_meter_id: account for account in ledger_accounts if account.usage_meter_id is not None
    }
    grants = await grant_entitlement_usage_credits(
        db,
        ledger_accounts_by_usage_meter_id=ledger_accounts_by_usage_meter_id,
        ledger_transaction=ledger_transaction,
        command=command,
    )
    inserts.extend(grants.ledger_entries)

    ledger_entries = await bulk_insert_ledger_entries(db, inserts)
    logger.info(
        "Billing period transition recorded subscription=%s transaction=%s entries=%s",
        command.subscription_id,
        ledger_transaction.id,
        len(ledger_entries),
    )
    return LedgerCommandResult(ledger_transaction=ledger_transaction, ledger_entries=ledger_entries)


def next_period_end(start: datetime, interval_unit: str, interval_count: int) -> datetime:
    count = max(int(interval_count or 1), 1)
    unit = IntervalUnit(interval_unit)
    if unit == IntervalUnit.DAY:
        return start + relativedelta(days=count)
    if unit == IntervalUnit.WEEK:
        return start + relativedelta(weeks=count)
    if unit == IntervalUnit.YEAR:
        return start + relativedelta(years=count)
    return start + relativedelta(months=count)


def subscription_for_transition_query(subscription_id: str):
    """Select a subscription row locked until the transition commits."""
    return (
        select(Subscription)
        .where(Subscription.id == subscription_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )


async def _get_subscription(db: AsyncSession, subscription_id: str) -> Subscription:
    # Concurrent transitions of one subscription queue up here; the period
    # check below then sees the winner's committed period.
    result = await db.execute(subscription_for_transition_query(subscription_id))
    subscription = result.scalar_one_or_none()
    if not subscription:
        raise HTTPException(status_code=404, detail="Subscription not found.")
    return subscription


async def _current_billing_period(db: AsyncSession, subscription_id: str) -> Optional[BillingPeriod]:
    result = await db.execute(
        select(BillingPeriod)
        .where(BillingPeriod.subscription_id == subscription_id)
        .order_by(BillingPeriod.end_date.desc())
        .limit(1)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _feature_items(db: AsyncSession, subscription_id: str) -> List[SubscriptionFeatureItem]:
    result = await db.execute(
        select(SubscriptionItemFeature)
        .where(
            SubscriptionItemFeature.subscription_id == subscription_id,
            SubscriptionItemFeature.expired_at.is_(None),
        )
        .order_by(SubscriptionItemFeature.created_at, SubscriptionItemFeature.id)
    )
    return [SubscriptionFeatureItem.model_validate(row) for row in result.scalars().all()]


async def run_billing_period_transition(
    db: AsyncSession,
    subscription_id: str,
    now: Optional[datetime] = None,
    billing_run_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Advance a subscription to its next billing period and record the ledger transition.

    Renewing subscriptions must have reached the end of their current
    period. The first period of a subscription is opened without a previous
    period, which grants every entitlement and expires nothing.
    """
    current_time = _as_utc(now or datetime.now(timezone.utc))
    subscription = await _get_subscription(db, subscription_id)
    feature_items = await _feature_items(db, subscription.id)
    subscription_snapshot = SubscriptionSnapshot.model_validate(subscription)

    new_period: Optional[BillingPeriod] = None
    if subscription.renews:
        previous_period = await _current_billing_period(db, subscription.id)
        if previous_period is not None and _as_utc(previous_period.end_date) > current_time:
            raise HTTPException(status_code=409, detail="Current billing period has not ended yet.")

        if previous_period is not None:
            start = _as_utc(previous_period.end_date)
            previous_period.status = BillingPeriodStatus.COMPLETED.value
        else:
            start = _as_utc(subscription.current_billing_period_start or current_time)
        new_period = BillingPeriod(
            id=str(uuid.uuid4()),
            subscription_id=subscription.id,
            start_date=start,
            end_date=next_period_end(start, subscription.interval_unit, subscription.interval_count),
            status=BillingPeriodStatus.ACTIVE.value,
            livemode=subscription.livemode,
        )
        db.add(new_period)
        subscription.current_billing_period_start = new_period.start_date
        subscription.current_billing_period_end = new_period.end_date
        await db.flush()

        payload = StandardBillingPeriodTransitionPayload(
            billing_run_id=billing_run_id,
            subscription=subscription_snapshot,
            previous_billing_period=(
                BillingPeriodSnapshot.model_validate(previous_period) if previous_period is not None else None
            ),
            new_billing_period=BillingPeriodSnapshot.model_validate(new_period),
            subscription_feature_items=feature_items,
        )
    else:
        payload = NonRenewingBillingPeriodTransitionPayload(
            subscription=subscription_snapshot,
            subscription_feature_items=feature_items,
        )

    command = BillingPeriodTransitionLedgerCommand(
        organization_id=subscription.organization_id,
        subscription_id=subscription.id,
        livemode=subscription.livemode,
        payload=payload,
    )
    result = await process_billing_period_transition_ledger_command(db, command)
    await db.commit()

    return {
        "subscription_id": subscription.id,
        "payload_type": payload.type,
        "ledger_transaction_id": result.ledger_transaction.id,
        "billing_period_id": new_period.id if new_period is not None else None,
        "billing_period_end": new_period.end_date.isoformat() if new_period is not None else None,
        "entries_created": len(result.ledger_entries),
        "credits_expired": sum(1 for entry in result.ledger_entries if entry.entry_type == LedgerEntryType.CREDIT_GRANT_EXPIRED.value),
        "credits_granted": sum(1 for entry in result.ledger_entries if entry.entry_type == LedgerEntryType.CREDIT_GRANT_RECOGNIZED.value),
    }


async def find_subscriptions_due_for_transition(
    db: AsyncSession,
    now: Optional[datetime] = None,
) -> List[Tuple[str, datetime]]:
    """Return (subscription id, period end) of renewing subscriptions whose current period has ended."""
    current_time = now or datetime.now(timezone.utc)
    result = await db.execute(
        select(Subscription.id, Subscription.current_billing_period_end)
        .where(
            Subscription.renews.is_(True),
            Subscription.status == "active",
            Subscription.current_billing_period_end.is_not(None),
            Subscription.current_billing_period_end <= current_time,
        )
        .order_by(Subscription.current_billing_period_end, Subscription.id)
    )
    return [(subscription_id, _as_utc(period_end)) for subscription_id, period_end in result.all()]
