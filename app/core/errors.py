"""
Payment error taxonomy.

Every error carries the HTTP status it maps to and a message that is safe to show
to a sponsor. The API layer turns PaymentError into {"error": message}.
"""
from typing import Any, Optional


class PaymentError(Exception):
    status_code = 400
    message = "Payment could not be processed"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.message
        super().__init__(self.message)


# Validation errors (4xx, never retried)

class CheckoutValidationError(PaymentError):
    status_code = 400
    message = "Invalid checkout request"


class MissingRequiredField(CheckoutValidationError):
    message = "A required field is missing"


class InvalidRecipient(CheckoutValidationError):
    message = "Recipient not found"


# Capability errors (4xx, sponsor should pick another provider)

class CapabilityError(PaymentError):
    status_code = 400


class OrgNotAcceptingPayments(CapabilityError):
    message = "This organization does not accept payments with the selected method"


class UnsupportedIntervalForProvider(CapabilityError):
    message = "Vipps only supports monthly payments. Choose card for a one-time payment."


class OrganizationNotFound(PaymentError):
    status_code = 404
    message = "Organization not found"


# Provider errors (transient from our point of view)

class ProviderError(PaymentError):
    status_code = 502
    provider = "unknown"

    def __init__(self, message: Optional[str] = None, status: Optional[int] = None, payload: Any = None):
        super().__init__(message)
        self.status = status
        self.payload = payload

    def __str__(self):
        if self.status is not None:
            return f"{self.provider} error ({self.status}): {self.message}"
        return f"{self.provider} error: {self.message}"


class StripeGatewayError(ProviderError):
    provider = "stripe"
    message = "Card payment provider request failed"


class VippsError(ProviderError):
    provider = "vipps"
    message = "Vipps request failed"


# Reconciliation anomalies

class SubscriptionNotFound(Exception):
    """A payment arrived for a subscription we have no row for. Answered with 500 so the provider retries."""
