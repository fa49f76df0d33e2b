"""Expiration of outstanding usage credits at the end of a billing period."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable, Iterable, List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from models.enums import LedgerEntryDirection, LedgerEntryStatus, LedgerEntryType
from models.ledger_account import LedgerAccount
from models.ledger_transaction import LedgerTransaction
from services.ledger_entries import aggregate_available_balance_for_usage_credit
from services.ledger_types import (
    BillingPeriodTransitionLedgerCommand,
    LedgerEntryInsert,
    UsageCreditBalance,
)

logger = logging.getLogger(__name__)

BalanceAggregator = Callable[[AsyncSession, LedgerAccount], Awaitable[List[UsageCreditBalance]]]


@dataclass(frozen=True)
class CreditExpirationResult:
    ledger_transaction: LedgerTransaction
    ledger_entries: List[LedgerEntryInsert] = field(default_factory=list)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; every stored instant is UTC.
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def credit_grant_has_expired(expires_at: Optional[datetime], cutoff: datetime) -> bool:
    """A grant expires when its expiry is at or before the cutoff. Null never expires."""
    if expires_at is None:
        return False
    return _as_utc(expires_at) <= _as_utc(cutoff)


def credit_grant_expired_description(usage_credit_id: str) -> str:
    return f"Credit grant expired for usage credit {usage_credit_id}"


def build_credit_grant_expired_entries(
    balances: Iterable[UsageCreditBalance],
    *,
    cutoff: datetime,
    ledger_transaction: LedgerTransaction,
    command: BillingPeriodTransitionLedgerCommand,
    now: Optional[datetime] = None,
) -> List[LedgerEntryInsert]:
    """Turn per-grant balances into expiration debits for the grants due by ``cutoff``.

    Grants that never expire, expire after the cutoff, or have nothing left
    are skipped. Negative balances are skipped as well; they indicate an
    upstream integrity problem and are not corrected here.
    """
    entry_timestamp = now or datetime.now(timezone.utc)
    entries: List[LedgerEntryInsert] = []
    for balance in balances:
        if not credit_grant_has_expired(balance.expires_at, cutoff):
            continue
        if balance.balance <= 0:
            continue
        entries.append(
            LedgerEntryInsert(
                ledger_transaction_id=ledger_transaction.id,
                ledger_account_id=balance.ledger_account_id,
                subscription_id=command.subscription_id,
                organization_id=command.organization_id,
                usage_meter_id=balance.usage_meter_id,
                entry_type=LedgerEntryType.CREDIT_GRANT_EXPIRED,
                direction=LedgerEntryDirection.DEBIT,
                amount=balance.balance,
                status=LedgerEntryStatus.POSTED,
                entry_timestamp=entry_timestamp,
                description=credit_grant_expired_description(balance.usage_credit_id),
                metadata={},
                livemode=command.livemode,
                source_usage_credit_id=balance.usage_credit_id,
            )
        )
    return entries


async def expire_credits_at_end_of_billing_period(
    ledger_accounts_for_subscription: Sequence[LedgerAccount],
    ledger_transaction: LedgerTransaction,
    command: BillingPeriodTransitionLedgerCommand,
    db: AsyncSession,
    aggregate_balances: BalanceAggregator = aggregate_available_balance_for_usage_credit,
) -> CreditExpirationResult:
    """Build expiration debits for the subscription's usage credits due by the previous period's end.

    ``command.payload`` must be a standard payload with a previous billing
    period. Nothing is written; the caller persists the returned entries in
    the same database transaction as the rest of the billing-period
    transition. Errors raised by ``aggregate_balances`` propagate.
    """
    if not ledger_accounts_for_subscription:
        return CreditExpirationResult(ledger_transaction=ledger_transaction, ledger_entries=[])

    cutoff = command.payload.previous_billing_period.end_date

    balances: List[UsageCreditBalance] = []
    for ledger_account in ledger_accounts_for_subscription:
        balances.extend(await aggregate_balances(db, ledger_account))

    if not balances:
        return CreditExpirationResult(ledger_transaction=ledger_transaction, ledger_entries=[])

    ledger_entries = build_credit_grant_expired_entries(
        balances,
        cutoff=cutoff,
        ledger_transaction=ledger_transaction,
        command=command,
    )
    if ledger_entries:
        logger.info(
            "Expiring %s usage credit grant(s) for subscription %s at %s",
            len(ledger_entries),
            command.subscription_id,
            cutoff.isoformat(),
        )
    return CreditExpirationResult(ledger_transaction=ledger_transaction, ledger_entries=ledger_entries)
