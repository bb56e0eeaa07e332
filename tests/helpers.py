"""
Test helpers: organization and reservation builders, fake dispatchers.
"""

from datetime import timedelta
from decimal import Decimal

from django.utils import timezone
from rest_framework_simplejwt.tokens import RefreshToken

from core.models import LocalAccount, Reservation

PASSWORD = 'TestPass123!'


class RecordingDispatcher:
    """Collects emitted events instead of delivering them."""

    def __init__(self):
        self.events = []

    def emit(self, event_kind, payload):
        self.events.append((event_kind, payload))

    def kinds(self):
        return [kind for kind, _ in self.events]


class FailingDispatcher:
    """Dispatcher whose delivery always fails."""

    def __init__(self):
        self.calls = 0

    def emit(self, event_kind, payload):
        self.calls += 1
        raise ConnectionError('notification service unreachable')


def future(days=1, hours=0):
    """Midnight of the day `days` from today, plus `hours`. Stable within a test."""
    today = timezone.now().replace(hour=0, minute=0, second=0, microsecond=0)
    return today + timedelta(days=days, hours=hours)


def make_organization(email, **extra):
    return LocalAccount.objects.create_account(email, PASSWORD, **extra)


def make_reservation(equipment, renter, start, end, status=Reservation.PENDING, total_due=None):
    """Insert a reservation directly, bypassing the engine."""
    return Reservation.objects.create(
        equipment=equipment,
        renter=renter,
        start_at=start,
        end_at=end,
        status=status,
        total_due=total_due if total_due is not None else Decimal('100.00'),
    )


def token_for(user):
    return str(RefreshToken.for_user(user).access_token)
