"""Models package."""

from .subscription import Subscription
from .billing_period import BillingPeriod
from .usage_meter import UsageMeter
from .subscription_item_feature import SubscriptionItemFeature
from .ledger_account import LedgerAccount
from .ledger_transaction import LedgerTransaction
from .usage_credit import UsageCredit
from .ledger_entry import LedgerEntry
