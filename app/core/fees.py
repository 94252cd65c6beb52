"""
Platform fee arithmetic. Amounts are integer øre.
"""
from app.core.config import settings


def platform_fee_percent() -> int:
    return settings.PLATFORM_FEE_PERCENT


def calculate_platform_fee(amount: int) -> int:
    return round(amount * platform_fee_percent() / 100)


def calculate_total_with_fee(amount: int) -> int:
    return amount + calculate_platform_fee(amount)


def calculate_donation_from_total(total_amount: int) -> int:
    """Reverse of calculate_total_with_fee: total = donation * (1 + fee%)."""
    return round(total_amount / (1 + platform_fee_percent() / 100))
