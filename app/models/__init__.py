from app.models.organization import Organization
from app.models.group import Group
from app.models.individual import Individual
from app.models.subscription import Subscription, SubscriptionStatus, SubscriptionInterval, PaymentProvider
from app.models.transaction import Transaction, TransactionStatus
from app.models.processed_event import ProcessedEvent
from app.models.report_share import ReportShare

__all__ = [
    "Organization", "Group", "Individual",
    "Subscription", "SubscriptionStatus", "SubscriptionInterval", "PaymentProvider",
    "Transaction", "TransactionStatus", "ProcessedEvent", "ReportShare",
]
