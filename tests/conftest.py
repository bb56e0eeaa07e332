"""
Shared fixtures for the equipment rental test suite.
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from django.core.cache import cache
from django.utils import timezone
from rest_framework.test import APIClient

from core.engine import BookingEngine
from core.models import Category, Equipment, Reservation
from helpers import RecordingDispatcher, make_organization, make_reservation, token_for


@pytest.fixture(autouse=True)
def clear_throttle_cache():
    """Throttle counters live in the cache; start every test with none."""
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def api_client():
    """Return API client for testing."""
    return APIClient()


@pytest.fixture
def owner(db):
    """Organization listing equipment."""
    return make_organization('owner@test.com', name='Owner Rentals')


@pytest.fixture
def renter(db):
    """Organization renting equipment."""
    return make_organization('renter@test.com', name='Renter Builders')


@pytest.fixture
def other_renter(db):
    return make_organization('other@test.com', name='Other Builders')


@pytest.fixture
def staff(db):
    return make_organization('staff@test.com', name='Platform Staff', is_staff=True)


@pytest.fixture
def category(db):
    return Category.objects.create(name='Earthmoving', description='Excavators and loaders')


@pytest.fixture
def equipment(owner):
    """Equipment rented at 50.00 per day with a 200.00 deposit."""
    return Equipment.objects.create(
        owner=owner,
        name='Mini Excavator',
        description='1.5t mini excavator',
        daily_rate=Decimal('50.00'),
        deposit_amount=Decimal('200.00'),
        location='Depot A',
    )


@pytest.fixture
def other_equipment(owner):
    return Equipment.objects.create(
        owner=owner,
        name='Scissor Lift',
        daily_rate=Decimal('80.00'),
    )


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def engine(dispatcher):
    """Booking engine recording its notifications."""
    return BookingEngine(dispatcher=dispatcher)


@pytest.fixture
def completed_reservation(equipment, renter):
    return make_reservation(
        equipment, renter,
        timezone.now() - timedelta(days=5),
        timezone.now() - timedelta(days=3),
        status=Reservation.COMPLETED,
    )


@pytest.fixture
def authenticate(api_client):
    """Authenticate api_client as the given organization with a JWT."""
    def _authenticate(user):
        api_client.credentials(HTTP_AUTHORIZATION=f'Bearer {token_for(user)}')
        return api_client
    return _authenticate
