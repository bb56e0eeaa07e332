"""
Tests for the reservation lifecycle state machine.

Tests cover:
- Valid transitions and their timestamps
- Invalid transitions from every status
- Cancellation reasons
- Notifications per transition
- Payment status updates
- Administrative hard delete
"""

from unittest import mock

import pytest

from core.exceptions import (
    AggregateUpdateFailed,
    InvalidInput,
    InvalidTransition,
    ReservationNotFound,
)
from core.lifecycle import ReservationLifecycle
from core.models import Equipment, Reservation, Review
from core.notifications import (
    RESERVATION_CANCELLED,
    RESERVATION_COMPLETED,
    RESERVATION_CONFIRMED,
    RESERVATION_CREATED,
)
from helpers import future, make_reservation


@pytest.fixture
def reservation(engine, equipment, renter):
    return engine.availability.reserve(equipment.id, (future(days=2), future(days=4)), renter.id)


@pytest.mark.django_db
class TestTransitions:

    def test_full_lifecycle(self, engine, reservation, equipment):
        confirmed = engine.lifecycle.confirm(reservation.pk)
        assert confirmed.status == Reservation.CONFIRMED
        assert confirmed.confirmed_at is not None

        active = engine.lifecycle.activate(reservation.pk)
        assert active.status == Reservation.ACTIVE

        completed = engine.lifecycle.complete(reservation.pk)
        assert completed.status == Reservation.COMPLETED

        reservation.refresh_from_db()
        assert reservation.status == Reservation.COMPLETED

    @pytest.mark.parametrize('steps', [[], ['confirm'], ['confirm', 'activate']])
    def test_cancel_from_open_statuses(self, engine, reservation, steps):
        for step in steps:
            getattr(engine.lifecycle, step)(reservation.pk)

        cancelled = engine.lifecycle.cancel(reservation.pk, '  Project postponed  ')

        assert cancelled.status == Reservation.CANCELLED
        assert cancelled.cancelled_at is not None
        assert cancelled.cancellation_reason == 'Project postponed'

    def test_cancel_requires_reason(self, engine, reservation):
        with pytest.raises(InvalidInput):
            engine.lifecycle.cancel(reservation.pk, '   ')

        reservation.refresh_from_db()
        assert reservation.status == Reservation.PENDING

    def test_pending_cannot_activate(self, engine, reservation):
        with pytest.raises(InvalidTransition):
            engine.lifecycle.activate(reservation.pk)

    def test_pending_cannot_complete(self, engine, reservation):
        with pytest.raises(InvalidTransition):
            engine.lifecycle.complete(reservation.pk)

    def test_confirmed_cannot_complete(self, engine, reservation):
        engine.lifecycle.confirm(reservation.pk)

        with pytest.raises(InvalidTransition):
            engine.lifecycle.complete(reservation.pk)

    def test_same_status_rejected(self, engine, reservation):
        engine.lifecycle.confirm(reservation.pk)

        with pytest.raises(InvalidTransition):
            engine.lifecycle.confirm(reservation.pk)

    @pytest.mark.parametrize('terminal', [Reservation.COMPLETED, Reservation.CANCELLED])
    @pytest.mark.parametrize('action', ['confirm', 'activate', 'complete'])
    def test_terminal_statuses_are_final(self, engine, equipment, renter, terminal, action):
        reservation = make_reservation(
            equipment, renter, future(days=2), future(days=3), status=terminal
        )

        with pytest.raises(InvalidTransition):
            getattr(engine.lifecycle, action)(reservation.pk)

    def test_cancelled_cannot_be_cancelled_again(self, engine, reservation):
        engine.lifecycle.cancel(reservation.pk, 'Not needed')

        with pytest.raises(InvalidTransition):
            engine.lifecycle.cancel(reservation.pk, 'Still not needed')

    def test_unknown_reservation(self, engine, db):
        with pytest.raises(ReservationNotFound):
            engine.lifecycle.confirm(99999)

    def test_generic_transition(self, engine, reservation):
        engine.lifecycle.transition(reservation.pk, Reservation.CONFIRMED)
        active = engine.lifecycle.transition(reservation.pk, Reservation.ACTIVE)

        assert active.status == Reservation.ACTIVE

    def test_generic_transition_unknown_status(self, engine, reservation):
        with pytest.raises(InvalidInput):
            engine.lifecycle.transition(reservation.pk, 'archived')

    def test_generic_transition_back_to_pending(self, engine, reservation):
        engine.lifecycle.confirm(reservation.pk)

        with pytest.raises(InvalidTransition):
            engine.lifecycle.transition(reservation.pk, Reservation.PENDING)

    def test_transition_keeps_amounts(self, engine, reservation):
        total_due = reservation.total_due

        engine.lifecycle.confirm(reservation.pk)
        engine.lifecycle.cancel(reservation.pk, 'Weather')

        reservation.refresh_from_db()
        assert reservation.total_due == total_due


@pytest.mark.django_db
class TestLifecycleAvailability:

    def test_confirm_marks_equipment_reserved(self, engine, reservation, equipment):
        engine.lifecycle.confirm(reservation.pk)

        equipment.refresh_from_db()
        assert equipment.availability == Equipment.RESERVED

    def test_cancel_releases_equipment(self, engine, reservation, equipment):
        engine.lifecycle.confirm(reservation.pk)
        engine.lifecycle.cancel(reservation.pk, 'Plans changed')

        equipment.refresh_from_db()
        assert equipment.availability == Equipment.AVAILABLE

    def test_complete_releases_equipment(self, engine, reservation, equipment):
        engine.lifecycle.confirm(reservation.pk)
        engine.lifecycle.activate(reservation.pk)
        equipment.refresh_from_db()
        assert equipment.availability == Equipment.RESERVED

        engine.lifecycle.complete(reservation.pk)

        equipment.refresh_from_db()
        assert equipment.availability == Equipment.AVAILABLE

    def test_equipment_stays_reserved_while_another_reservation_holds(
        self, engine, equipment, renter, other_renter
    ):
        first = engine.availability.reserve(equipment.id, (future(days=2), future(days=3)), renter.id)
        second = engine.availability.reserve(
            equipment.id, (future(days=5), future(days=6)), other_renter.id
        )
        engine.lifecycle.confirm(first.pk)
        engine.lifecycle.confirm(second.pk)

        engine.lifecycle.cancel(first.pk, 'No longer needed')

        equipment.refresh_from_db()
        assert equipment.availability == Equipment.RESERVED

    def test_cancelled_period_can_be_booked_again(self, engine, reservation, equipment, other_renter):
        engine.lifecycle.cancel(reservation.pk, 'Plans changed')

        again = engine.availability.reserve(
            equipment.id, (reservation.start_at, reservation.end_at), other_renter.id
        )

        assert again.status == Reservation.PENDING

    def test_aggregate_failure_after_commit(self, reservation):
        maintainer = mock.Mock()
        maintainer.refresh_availability.side_effect = RuntimeError('database unavailable')
        lifecycle = ReservationLifecycle(maintainer=maintainer)

        with pytest.raises(AggregateUpdateFailed) as exc_info:
            lifecycle.confirm(reservation.pk)

        assert exc_info.value.instance.pk == reservation.pk
        reservation.refresh_from_db()
        assert reservation.status == Reservation.CONFIRMED


@pytest.mark.django_db
class TestLifecycleNotifications:

    def test_events_per_transition(self, engine, dispatcher, reservation):
        engine.lifecycle.confirm(reservation.pk)
        engine.lifecycle.activate(reservation.pk)
        engine.lifecycle.complete(reservation.pk)

        assert dispatcher.kinds() == [
            RESERVATION_CREATED,
            RESERVATION_CONFIRMED,
            RESERVATION_COMPLETED,
        ]

    def test_cancel_event(self, engine, dispatcher, reservation):
        engine.lifecycle.cancel(reservation.pk, 'Budget cut')

        kind, payload = dispatcher.events[-1]
        assert kind == RESERVATION_CANCELLED
        assert payload['reservation_id'] == reservation.pk
        assert payload['status'] == Reservation.CANCELLED

    def test_rejected_transition_emits_nothing(self, engine, dispatcher, reservation):
        with pytest.raises(InvalidTransition):
            engine.lifecycle.complete(reservation.pk)

        assert dispatcher.kinds() == [RESERVATION_CREATED]


@pytest.mark.django_db
class TestPaymentStatus:

    def test_update_payment_status(self, engine, reservation):
        updated = engine.lifecycle.update_payment_status(reservation.pk, 'paid', deposit_paid=True)

        assert updated.payment_status == 'paid'
        assert updated.deposit_paid is True
        assert updated.status == Reservation.PENDING

    def test_deposit_flag_left_alone_when_omitted(self, engine, reservation):
        engine.lifecycle.update_payment_status(reservation.pk, 'paid', deposit_paid=True)
        engine.lifecycle.update_payment_status(reservation.pk, 'refunded')

        reservation.refresh_from_db()
        assert reservation.payment_status == 'refunded'
        assert reservation.deposit_paid is True

    def test_unknown_payment_status(self, engine, reservation):
        with pytest.raises(InvalidInput):
            engine.lifecycle.update_payment_status(reservation.pk, 'stolen')

    def test_unknown_reservation(self, engine, db):
        with pytest.raises(ReservationNotFound):
            engine.lifecycle.update_payment_status(99999, 'paid')


@pytest.mark.django_db
class TestHardDelete:

    def test_open_reservation_cannot_be_deleted(self, engine, reservation):
        with pytest.raises(InvalidTransition):
            engine.lifecycle.hard_delete(reservation.pk)

        assert Reservation.objects.filter(pk=reservation.pk).exists()

    def test_cancelled_reservation_deleted(self, engine, reservation):
        engine.lifecycle.cancel(reservation.pk, 'Duplicate request')

        deleted_id = engine.lifecycle.hard_delete(reservation.pk)

        assert deleted_id == reservation.pk
        assert not Reservation.objects.filter(pk=reservation.pk).exists()

    def test_deleting_reviewed_reservation_updates_rating(
        self, engine, equipment, renter, completed_reservation
    ):
        engine.reviews.submit(completed_reservation.pk, renter.id, 4)
        equipment.refresh_from_db()
        assert equipment.review_count == 1

        engine.lifecycle.hard_delete(completed_reservation.pk)

        equipment.refresh_from_db()
        assert equipment.review_count == 0
        assert equipment.rating_average == 0
        assert not Review.objects.filter(equipment=equipment).exists()

    def test_unknown_reservation(self, engine, db):
        with pytest.raises(ReservationNotFound):
            engine.lifecycle.hard_delete(99999)
