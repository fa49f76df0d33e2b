"""Usage credit grants for a subscription's entitlements at a billing-period transition."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Set, Tuple

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.enums import (
    FeatureUsageGrantFrequency,
    LedgerEntryDirection,
    LedgerEntryStatus,
    LedgerEntryType,
    UsageCreditSourceReferenceType,
    UsageCreditStatus,
    UsageCreditType,
)
from models.ledger_account import LedgerAccount
from models.ledger_transaction import LedgerTransaction
from models.usage_credit import UsageCredit
from services.ledger_types import (
    BillingPeriodTransitionLedgerCommand,
    LedgerEntryInsert,
    StandardBillingPeriodTransitionPayload,
    SubscriptionFeatureItem,
)

logger = logging.getLogger(__name__)


@dataclass
class EntitlementGrantResult:
    usage_credits: List[UsageCredit] = field(default_factory=list)
    ledger_entries: List[LedgerEntryInsert] = field(default_factory=list)


async def _usage_meters_with_transition_grants(db: AsyncSession, subscription_id: str) -> Set[str]:
    result = await db.execute(
        select(UsageCredit.usage_meter_id).where(
            UsageCredit.subscription_id == subscription_id,
            UsageCredit.source_reference_type == UsageCreditSourceReferenceType.BILLING_PERIOD_TRANSITION.value,
        )
    )
    return {usage_meter_id for usage_meter_id in result.scalars().all()}


async def _grantable_items(
    db: AsyncSession,
    command: BillingPeriodTransitionLedgerCommand,
) -> List[SubscriptionFeatureItem]:
    payload = command.payload
    items = [item for item in payload.subscription_feature_items if item.usage_meter_id]

    if isinstance(payload, StandardBillingPeriodTransitionPayload):
        if payload.previous_billing_period is None:
            return items
        return [
            item for item in items
            if item.renewal_frequency == FeatureUsageGrantFrequency.EVERY_BILLING_PERIOD
        ]

    # Non-renewing subscriptions receive each entitlement once.
    already_granted = await _usage_meters_with_transition_grants(db, command.subscription_id)
    return [item for item in items if item.usage_meter_id not in already_granted]


def _grant_window(
    command: BillingPeriodTransitionLedgerCommand,
    item: SubscriptionFeatureItem,
) -> Tuple[Optional[str], Optional[datetime]]:
    """Return (billing_period_id, expires_at) for a granted item."""
    payload = command.payload
    if not isinstance(payload, StandardBillingPeriodTransitionPayload):
        return None, None
    expires_at = None
    if item.renewal_frequency == FeatureUsageGrantFrequency.EVERY_BILLING_PERIOD:
        expires_at = payload.new_billing_period.end_date
    return payload.new_billing_period.id, expires_at


async def grant_entitlement_usage_credits(
    db: AsyncSession,
    *,
    ledger_accounts_by_usage_meter_id: Dict[str, LedgerAccount],
    ledger_transaction: LedgerTransaction,
    command: BillingPeriodTransitionLedgerCommand,
) -> EntitlementGrantResult:
    """Issue usage credits for the subscription's entitlements and recognise them on the ledger.

    Ledger accounts missing for a granted usage meter are created. The
    returned ledger entries are not yet persisted.
    """
    items = await _grantable_items(db, command)
    if not items:
        return EntitlementGrantResult()

    accounts = dict(ledger_accounts_by_usage_meter_id)
    for item in items:
        if item.usage_meter_id in accounts:
            continue
        account = LedgerAccount(
            id=str(uuid.uuid4()),
            organization_id=command.organization_id,
            subscription_id=command.subscription_id,
            usage_meter_id=item.usage_meter_id,
            livemode=command.livemode,
        )
        db.add(account)
        accounts[item.usage_meter_id] = account
        logger.info(
            "Created ledger account %s for subscription %s usage meter %s",
            account.id,
            command.subscription_id,
            item.usage_meter_id,
        )

    now = datetime.now(timezone.utc)
    result = EntitlementGrantResult()
    for item in items:
        billing_period_id, expires_at = _grant_window(command, item)
        usage_credit = UsageCredit(
            id=str(uuid.uuid4()),
            organization_id=command.organization_id,
            subscription_id=command.subscription_id,
            usage_meter_id=item.usage_meter_id,
            billing_period_id=billing_period_id,
            credit_type=UsageCreditType.GRANT.value,
            status=UsageCreditStatus.POSTED.value,
            source_reference_type=UsageCreditSourceReferenceType.BILLING_PERIOD_TRANSITION.value,
            issued_amount=int(item.amount),
            issued_at=now,
            expires_at=expires_at,
            livemode=command.livemode,
        )
        db.add(usage_credit)
        result.usage_credits.append(usage_credit)
        result.ledger_entries.append(
            LedgerEntryInsert(
                ledger_transaction_id=ledger_transaction.id,
                ledger_account_id=accounts[item.usage_meter_id].id,
                subscription_id=command.subscription_id,
                organization_id=command.organization_id,
                usage_meter_id=item.usage_meter_id,
                billing_period_id=billing_period_id,
                entry_type=LedgerEntryType.CREDIT_GRANT_RECOGNIZED,
                direction=LedgerEntryDirection.CREDIT,
                amount=int(item.amount),
                status=LedgerEntryStatus.POSTED,
                entry_timestamp=now,
                description=f"Entitlement usage credit granted: {usage_credit.id}",
                metadata={},
                livemode=command.livemode,
                source_usage_credit_id=usage_credit.id,
            )
        )

    await db.flush()
    return result
