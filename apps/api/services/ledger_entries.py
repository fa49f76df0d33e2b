"""Ledger entry persistence and balance aggregation queries."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, List, Optional, Sequence

from sqlalchemy import and_, case, func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.enums import LedgerEntryDirection, LedgerEntryStatus, LedgerEntryType
from models.ledger_account import LedgerAccount
from models.ledger_entry import LedgerEntry
from models.usage_credit import UsageCredit
from services.ledger_types import LedgerEntryInsert, UsageCreditBalance


BALANCE_TYPES = ("posted", "pending", "available")


def _signed_amount():
    return case(
        (LedgerEntry.direction == LedgerEntryDirection.CREDIT.value, LedgerEntry.amount),
        else_=-LedgerEntry.amount,
    )


def _not_discarded(now: datetime):
    return or_(LedgerEntry.discarded_at.is_(None), LedgerEntry.discarded_at > now)


def _posted():
    return LedgerEntry.status == LedgerEntryStatus.POSTED.value


def _pending_debit():
    return and_(
        LedgerEntry.status == LedgerEntryStatus.PENDING.value,
        LedgerEntry.direction == LedgerEntryDirection.DEBIT.value,
    )


async def aggregate_available_balance_for_usage_credit(
    db: AsyncSession,
    ledger_account: LedgerAccount,
) -> List[UsageCreditBalance]:
    """Return the remaining balance of every usage credit posted to a ledger account.

    Balance is credits minus debits over posted entries and pending debits.
    Credit-towards-usage-cost entries only mirror a debit and are ignored.
    """
    now = datetime.now(timezone.utc)
    balance = func.coalesce(func.sum(_signed_amount()), 0)
    result = await db.execute(
        select(
            LedgerEntry.source_usage_credit_id,
            UsageCredit.usage_meter_id,
            UsageCredit.expires_at,
            balance,
        )
        .join(UsageCredit, UsageCredit.id == LedgerEntry.source_usage_credit_id)
        .where(
            LedgerEntry.ledger_account_id == ledger_account.id,
            LedgerEntry.source_usage_credit_id.is_not(None),
            LedgerEntry.entry_type != LedgerEntryType.USAGE_CREDIT_APPLICATION_CREDIT_TOWARDS_USAGE_COST.value,
            or_(_posted(), _pending_debit()),
            _not_discarded(now),
        )
        .group_by(LedgerEntry.source_usage_credit_id, UsageCredit.usage_meter_id, UsageCredit.expires_at)
        .order_by(func.min(LedgerEntry.entry_timestamp), LedgerEntry.source_usage_credit_id)
    )
    return [
        UsageCreditBalance(
            ledger_account_id=ledger_account.id,
            usage_credit_id=usage_credit_id,
            usage_meter_id=usage_meter_id,
            balance=int(amount or 0),
            expires_at=expires_at,
        )
        for usage_credit_id, usage_meter_id, expires_at, amount in result.all()
    ]


async def aggregate_balance_for_ledger_account_from_entries(
    db: AsyncSession,
    ledger_account_id: str,
    balance_type: str = "available",
) -> int:
    """Sum a ledger account's entries as a posted, pending or available balance."""
    now = datetime.now(timezone.utc)
    if balance_type == "posted":
        counted = _posted()
    elif balance_type == "pending":
        counted = LedgerEntry.status.in_((LedgerEntryStatus.POSTED.value, LedgerEntryStatus.PENDING.value))
    elif balance_type == "available":
        counted = or_(_posted(), _pending_debit())
    else:
        raise ValueError(f"Unknown balance type: {balance_type}")

    result = await db.execute(
        select(func.coalesce(func.sum(_signed_amount()), 0)).where(
            LedgerEntry.ledger_account_id == ledger_account_id,
            counted,
            _not_discarded(now),
        )
    )
    return int(result.scalar() or 0)


def ledger_entry_from_insert(insert: LedgerEntryInsert) -> LedgerEntry:
    return LedgerEntry(
        ledger_transaction_id=insert.ledger_transaction_id,
        ledger_account_id=insert.ledger_account_id,
        subscription_id=insert.subscription_id,
        organization_id=insert.organization_id,
        usage_meter_id=insert.usage_meter_id,
        billing_period_id=insert.billing_period_id,
        entry_type=insert.entry_type.value,
        direction=insert.direction.value,
        amount=int(insert.amount),
        status=insert.status.value,
        entry_timestamp=insert.entry_timestamp,
        description=insert.description,
        entry_metadata=dict(insert.metadata),
        livemode=insert.livemode,
        discarded_at=insert.discarded_at,
        expired_at=insert.expired_at,
        source_usage_credit_id=insert.source_usage_credit_id,
        source_usage_event_id=insert.source_usage_event_id,
        source_credit_application_id=insert.source_credit_application_id,
    )


async def bulk_insert_ledger_entries(
    db: AsyncSession,
    inserts: Iterable[LedgerEntryInsert],
) -> List[LedgerEntry]:
    """Add ledger entries to the session and flush them in one round trip."""
    entries = [ledger_entry_from_insert(insert) for insert in inserts]
    if not entries:
        return []
    db.add_all(entries)
    await db.flush()
    return entries


async def select_ledger_accounts(
    db: AsyncSession,
    *,
    organization_id: str,
    livemode: bool,
    subscription_id: str,
    usage_meter_ids: Optional[Sequence[str]] = None,
) -> List[LedgerAccount]:
    query = select(LedgerAccount).where(
        LedgerAccount.organization_id == organization_id,
        LedgerAccount.livemode == livemode,
        LedgerAccount.subscription_id == subscription_id,
    )
    if usage_meter_ids is not None:
        query = query.where(LedgerAccount.usage_meter_id.in_(list(usage_meter_ids)))
    result = await db.execute(query.order_by(LedgerAccount.created_at, LedgerAccount.id))
    return list(result.scalars().all())


async def select_ledger_entries_for_transaction(db: AsyncSession, ledger_transaction_id: str) -> List[LedgerEntry]:
    result = await db.execute(
        select(LedgerEntry)
        .where(LedgerEntry.ledger_transaction_id == ledger_transaction_id)
        .order_by(LedgerEntry.entry_timestamp, LedgerEntry.id)
    )
    return list(result.scalars().all())
