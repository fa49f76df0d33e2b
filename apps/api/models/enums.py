"""
Ledger and billing enumerations shared by models and services.
"""

from enum import Enum


class LedgerEntryType(str, Enum):
    USAGE_COST = "usage_cost"
    PAYMENT_INITIATED = "payment_initiated"
    PAYMENT_FAILED = "payment_failed"
    CREDIT_GRANT_RECOGNIZED = "credit_grant_recognized"
    CREDIT_BALANCE_ADJUSTED = "credit_balance_adjusted"
    CREDIT_GRANT_EXPIRED = "credit_grant_expired"
    PAYMENT_REFUNDED = "payment_refunded"
    BILLING_ADJUSTMENT = "billing_adjustment"
    USAGE_CREDIT_APPLICATION_DEBIT_FROM_CREDIT_BALANCE = "usage_credit_application_debit_from_credit_balance"
    # Bookkeeping mirror of a debit; never reduces a grant's remaining balance
    USAGE_CREDIT_APPLICATION_CREDIT_TOWARDS_USAGE_COST = "usage_credit_application_credit_towards_usage_cost"


class LedgerEntryDirection(str, Enum):
    DEBIT = "debit"
    CREDIT = "credit"


class LedgerEntryStatus(str, Enum):
    PENDING = "pending"
    POSTED = "posted"


class LedgerTransactionType(str, Enum):
    USAGE_EVENT_PROCESSED = "usage_event_processed"
    CREDIT_GRANT_RECOGNIZED = "credit_grant_recognized"
    BILLING_PERIOD_TRANSITION = "billing_period_transition"
    ADMIN_CREDIT_ADJUSTED = "admin_credit_adjusted"
    CREDIT_GRANT_EXPIRED = "credit_grant_expired"
    PAYMENT_REFUNDED = "payment_refunded"
    BILLING_RECALCULATED = "billing_recalculated"
    SETTLE_INVOICE_USAGE_COSTS = "settle_invoice_usage_costs"


class UsageCreditType(str, Enum):
    GRANT = "grant"      # Subscription lifecycle events
    PAYMENT = "payment"  # Unlocked by a payment


class UsageCreditStatus(str, Enum):
    PENDING = "pending"
    POSTED = "posted"


class UsageCreditSourceReferenceType(str, Enum):
    INVOICE_SETTLEMENT = "invoice_settlement"
    MANUAL_ADJUSTMENT = "manual_adjustment"
    BILLING_PERIOD_TRANSITION = "billing_period_transition"


class FeatureUsageGrantFrequency(str, Enum):
    ONCE = "once"
    EVERY_BILLING_PERIOD = "every_billing_period"


class BillingPeriodStatus(str, Enum):
    UPCOMING = "upcoming"
    ACTIVE = "active"
    COMPLETED = "completed"


class IntervalUnit(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"
