"""
Tests for the review gate.

Tests cover:
- Review submission for completed reservations
- Eligibility checks and their order
- Duplicate reviews
- Owner responses
- Rating summary
"""

from decimal import Decimal

import pytest

from core.exceptions import (
    DuplicateReview,
    EquipmentNotFound,
    InvalidInput,
    InvalidRating,
    NotAuthorized,
    ReservationNotEligible,
    ReservationNotFound,
    ReviewNotFound,
)
from core.models import Reservation, Review
from core.notifications import REVIEW_CREATED
from helpers import future, make_reservation


@pytest.mark.django_db
class TestSubmit:

    def test_submit_review(self, engine, dispatcher, equipment, renter, completed_reservation):
        review = engine.reviews.submit(completed_reservation.pk, renter.id, 5, '  Great machine  ')

        assert review.rating == 5
        assert review.comment == 'Great machine'
        assert review.author_id == renter.id
        assert review.equipment_id == equipment.id
        assert review.is_verified is True
        assert dispatcher.kinds() == [REVIEW_CREATED]
        assert dispatcher.events[0][1]['rating'] == 5

    def test_submit_updates_rating(self, engine, equipment, renter, completed_reservation):
        engine.reviews.submit(completed_reservation.pk, renter.id, 4)

        equipment.refresh_from_db()
        assert equipment.rating_average == Decimal('4.0')
        assert equipment.review_count == 1

    def test_unknown_reservation(self, engine, renter):
        with pytest.raises(ReservationNotFound):
            engine.reviews.submit(99999, renter.id, 5)

    def test_only_renter_can_review(self, engine, owner, completed_reservation):
        with pytest.raises(NotAuthorized):
            engine.reviews.submit(completed_reservation.pk, owner.id, 5)

    @pytest.mark.parametrize('open_status', [
        Reservation.PENDING, Reservation.CONFIRMED, Reservation.ACTIVE, Reservation.CANCELLED,
    ])
    def test_only_completed_reservations(self, engine, equipment, renter, open_status):
        reservation = make_reservation(
            equipment, renter, future(days=2), future(days=3), status=open_status
        )

        with pytest.raises(ReservationNotEligible):
            engine.reviews.submit(reservation.pk, renter.id, 5)

    @pytest.mark.parametrize('rating', [0, 6, -1, 4.5, '5', None, True])
    def test_invalid_rating(self, engine, renter, completed_reservation, rating):
        with pytest.raises(InvalidRating):
            engine.reviews.submit(completed_reservation.pk, renter.id, rating)

        assert not Review.objects.exists()

    def test_duplicate_review(self, engine, renter, completed_reservation):
        engine.reviews.submit(completed_reservation.pk, renter.id, 5)

        with pytest.raises(DuplicateReview):
            engine.reviews.submit(completed_reservation.pk, renter.id, 3)

        assert Review.objects.count() == 1

    def test_comment_too_long(self, engine, renter, completed_reservation):
        with pytest.raises(InvalidInput):
            engine.reviews.submit(completed_reservation.pk, renter.id, 5, 'x' * 1001)

    def test_comment_at_limit(self, engine, renter, completed_reservation):
        review = engine.reviews.submit(completed_reservation.pk, renter.id, 5, 'x' * 1000)

        assert len(review.comment) == 1000


@pytest.mark.django_db
class TestSubmitCheckOrder:
    """When several checks fail, the first in order is reported."""

    def test_author_checked_before_status(self, engine, equipment, renter, owner):
        reservation = make_reservation(equipment, renter, future(days=2), future(days=3))

        with pytest.raises(NotAuthorized):
            engine.reviews.submit(reservation.pk, owner.id, 9)

    def test_status_checked_before_rating(self, engine, equipment, renter):
        reservation = make_reservation(equipment, renter, future(days=2), future(days=3))

        with pytest.raises(ReservationNotEligible):
            engine.reviews.submit(reservation.pk, renter.id, 9)

    def test_rating_checked_before_duplicate(self, engine, renter, completed_reservation):
        engine.reviews.submit(completed_reservation.pk, renter.id, 5)

        with pytest.raises(InvalidRating):
            engine.reviews.submit(completed_reservation.pk, renter.id, 9)


@pytest.mark.django_db
class TestRespond:

    def test_owner_responds(self, engine, owner, renter, completed_reservation):
        review = engine.reviews.submit(completed_reservation.pk, renter.id, 4)

        updated = engine.reviews.respond(review.pk, owner.id, 'Thanks for renting!')

        assert updated.owner_response == 'Thanks for renting!'
        assert updated.owner_response_at is not None

    def test_only_owner_responds(self, engine, renter, completed_reservation):
        review = engine.reviews.submit(completed_reservation.pk, renter.id, 4)

        with pytest.raises(NotAuthorized):
            engine.reviews.respond(review.pk, renter.id, 'Replying to myself')

    def test_blank_response(self, engine, owner, renter, completed_reservation):
        review = engine.reviews.submit(completed_reservation.pk, renter.id, 4)

        with pytest.raises(InvalidInput):
            engine.reviews.respond(review.pk, owner.id, '   ')

    def test_unknown_review(self, engine, owner):
        with pytest.raises(ReviewNotFound):
            engine.reviews.respond(99999, owner.id, 'Hello')


@pytest.mark.django_db
class TestSummary:

    def test_summary(self, engine, equipment, renter):
        for rating in (5, 5, 3):
            reservation = make_reservation(
                equipment, renter, future(days=-10), future(days=-9), status=Reservation.COMPLETED
            )
            engine.reviews.submit(reservation.pk, renter.id, rating)

        summary = engine.reviews.summary(equipment.id)

        assert summary['average'] == Decimal('4.3')
        assert summary['count'] == 3
        assert summary['distribution'] == {1: 0, 2: 0, 3: 1, 4: 0, 5: 2}

    def test_summary_without_reviews(self, engine, equipment):
        summary = engine.reviews.summary(equipment.id)

        assert summary['average'] == Decimal('0.0')
        assert summary['count'] == 0

    def test_summary_unknown_equipment(self, engine, db):
        with pytest.raises(EquipmentNotFound):
            engine.reviews.summary(99999)
