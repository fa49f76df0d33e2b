"""Typed ledger commands, snapshots and insert objects."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from models.enums import (
    FeatureUsageGrantFrequency,
    LedgerEntryDirection,
    LedgerEntryStatus,
    LedgerEntryType,
    LedgerTransactionType,
)


class _Snapshot(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)


class SubscriptionSnapshot(_Snapshot):
    id: str
    organization_id: str
    livemode: bool = True
    renews: bool = True


class BillingPeriodSnapshot(_Snapshot):
    id: str
    subscription_id: str
    start_date: datetime
    end_date: datetime


class SubscriptionFeatureItem(_Snapshot):
    """Usage-credit-grant entitlement carried on a transition command."""
    id: str
    usage_meter_id: Optional[str] = None
    amount: int = Field(ge=0)
    renewal_frequency: FeatureUsageGrantFrequency = FeatureUsageGrantFrequency.EVERY_BILLING_PERIOD


class StandardBillingPeriodTransitionPayload(_Snapshot):
    type: Literal["standard"] = "standard"
    billing_run_id: Optional[str] = None
    subscription: SubscriptionSnapshot
    # None on the first billing period of a subscription
    previous_billing_period: Optional[BillingPeriodSnapshot] = None
    new_billing_period: BillingPeriodSnapshot
    subscription_feature_items: List[SubscriptionFeatureItem] = []


class NonRenewingBillingPeriodTransitionPayload(_Snapshot):
    type: Literal["non_renewing"] = "non_renewing"
    subscription: SubscriptionSnapshot
    subscription_feature_items: List[SubscriptionFeatureItem] = []


BillingPeriodTransitionPayload = Annotated[
    Union[StandardBillingPeriodTransitionPayload, NonRenewingBillingPeriodTransitionPayload],
    Field(discriminator="type"),
]


class BillingPeriodTransitionLedgerCommand(_Snapshot):
    type: LedgerTransactionType = LedgerTransactionType.BILLING_PERIOD_TRANSITION
    organization_id: str
    subscription_id: str
    livemode: bool
    payload: BillingPeriodTransitionPayload
    transaction_description: Optional[str] = None
    transaction_metadata: Optional[Dict[str, Any]] = None


class UsageCreditBalance(_Snapshot):
    """Remaining balance of one usage credit within one ledger account."""
    ledger_account_id: str
    usage_credit_id: str
    usage_meter_id: Optional[str] = None
    balance: int
    expires_at: Optional[datetime] = None


class LedgerEntryInsert(_Snapshot):
    """Unpersisted ledger entry produced by a ledger command."""
    ledger_transaction_id: str
    ledger_account_id: str
    subscription_id: Optional[str] = None
    organization_id: str
    usage_meter_id: Optional[str] = None
    billing_period_id: Optional[str] = None
    entry_type: LedgerEntryType
    direction: LedgerEntryDirection
    amount: int
    status: LedgerEntryStatus
    entry_timestamp: datetime
    description: Optional[str] = None
    metadata: Dict[str, Any] = {}
    livemode: bool
    discarded_at: Optional[datetime] = None
    expired_at: Optional[datetime] = None
    source_usage_credit_id: Optional[str] = None
    source_usage_event_id: Optional[str] = None
    source_credit_application_id: Optional[str] = None
