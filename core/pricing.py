"""
Pricing calculator for reservations.

Prices are computed once, when the reservation is created, and stamped onto
it. Later edits to the equipment's rate never touch existing reservations.
"""

from dataclasses import dataclass
from decimal import Decimal

from .time_range import TimeRange, duration_in_whole_days

CENTS = Decimal('0.01')


@dataclass(frozen=True)
class Quote:
    days: int
    total_due: Decimal
    deposit_amount: Decimal


def price(time_range: TimeRange, daily_rate, deposit=Decimal('0.00')) -> Quote:
    """
    Price a rental period.

    Args:
        time_range: Rental period
        daily_rate: Equipment rate per calendar day
        deposit: Equipment deposit, copied verbatim

    Returns:
        Quote: Number of billed days, total due and deposit
    """
    days = duration_in_whole_days(time_range)
    rate = Decimal(str(daily_rate))
    deposit_amount = Decimal(str(deposit or 0))

    return Quote(
        days=days,
        total_due=(rate * days).quantize(CENTS),
        deposit_amount=deposit_amount.quantize(CENTS),
    )
