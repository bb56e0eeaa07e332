"""
Reservation lifecycle state machine.

    [pending] --confirm--> confirmed --activate--> active --complete--> completed
    pending | confirmed | active --cancel(reason)--> cancelled

completed and cancelled are terminal. Every successful transition recomputes
the equipment availability before returning; if that fails after the
transition committed, AggregateUpdateFailed is raised with the reservation.
"""

import logging

from django.db import transaction
from django.utils import timezone

from .aggregates import AggregateMaintainer
from .exceptions import AggregateUpdateFailed, InvalidInput, InvalidTransition, ReservationNotFound
from .locks import equipment_lock
from .models import Reservation, Review
from .notifications import (
    RESERVATION_CANCELLED,
    RESERVATION_COMPLETED,
    RESERVATION_CONFIRMED,
    SignalDispatcher,
    notify,
    reservation_payload,
)

logger = logging.getLogger(__name__)

EVENTS = {
    Reservation.CONFIRMED: RESERVATION_CONFIRMED,
    Reservation.CANCELLED: RESERVATION_CANCELLED,
    Reservation.COMPLETED: RESERVATION_COMPLETED,
}


def _pk(reservation):
    return getattr(reservation, 'pk', reservation)


class ReservationLifecycle:
    """
    Drives reservations through their statuses.

    Args:
        maintainer: Aggregate maintainer run after each transition
        dispatcher: Notification dispatcher (anything with emit(event_kind, payload))
        clock: Callable returning the current time
    """

    def __init__(self, maintainer=None, dispatcher=None, clock=None):
        self.maintainer = maintainer or AggregateMaintainer()
        self.dispatcher = dispatcher if dispatcher is not None else SignalDispatcher()
        self.clock = clock or timezone.now

    def get(self, reservation_id):
        try:
            return Reservation.objects.select_related('equipment', 'renter').get(pk=_pk(reservation_id))
        except (Reservation.DoesNotExist, ValueError, TypeError):
            raise ReservationNotFound(f"Reservation {reservation_id} not found.")

    def _refresh_availability(self, reservation):
        try:
            self.maintainer.refresh_availability(reservation.equipment_id)
        except Exception as e:
            logger.error(
                f"Availability update failed after reservation {reservation.pk} "
                f"moved to {reservation.status}: {e}",
                exc_info=True
            )
            raise AggregateUpdateFailed(instance=reservation) from e

    def _apply(self, reservation_id, new_status, reason=None):
        equipment_id = self.get(reservation_id).equipment_id

        with equipment_lock(equipment_id):
            with transaction.atomic():
                reservation = Reservation.objects.select_for_update().get(pk=_pk(reservation_id))
                old_status = reservation.status

                is_valid, error_message = reservation.can_transition_to(new_status)
                if not is_valid:
                    logger.warning(
                        f"Rejected transition of reservation {reservation.pk}: {error_message}"
                    )
                    raise InvalidTransition(error_message)

                now = self.clock()
                reservation.status = new_status

                if new_status == Reservation.CONFIRMED:
                    reservation.confirmed_at = now
                elif new_status == Reservation.CANCELLED:
                    if not reason or not str(reason).strip():
                        raise InvalidInput("A cancellation reason is required.")
                    reservation.cancelled_at = now
                    reservation.cancellation_reason = str(reason).strip()

                reservation.save()

            logger.info(f"Reservation {reservation.pk}: {old_status} -> {new_status}")

            self._refresh_availability(reservation)

        event_kind = EVENTS.get(new_status)
        if event_kind:
            notify(self.dispatcher, event_kind, reservation_payload(reservation))

        return reservation

    def confirm(self, reservation_id):
        """pending -> confirmed; stamps confirmed_at."""
        return self._apply(reservation_id, Reservation.CONFIRMED)

    def activate(self, reservation_id):
        """confirmed -> active; set by an operator when usage begins."""
        return self._apply(reservation_id, Reservation.ACTIVE)

    def complete(self, reservation_id):
        """active -> completed."""
        return self._apply(reservation_id, Reservation.COMPLETED)

    def cancel(self, reservation_id, reason):
        """
        pending | confirmed | active -> cancelled.

        Raises:
            InvalidTransition: If the reservation is already completed or cancelled
            InvalidInput: If reason is blank
        """
        return self._apply(reservation_id, Reservation.CANCELLED, reason=reason)

    def transition(self, reservation_id, new_status, reason=None):
        """
        Generic status write, guarded by the same transition table.

        Raises:
            InvalidInput: If new_status is not a reservation status
        """
        if new_status not in dict(Reservation.STATUS_CHOICES):
            raise InvalidInput(f"Unknown status: {new_status}.")

        if new_status == Reservation.PENDING:
            raise InvalidTransition("Reservations cannot go back to pending.")

        return self._apply(reservation_id, new_status, reason=reason)

    def update_payment_status(self, reservation_id, payment_status, deposit_paid=None):
        """
        Update payment progress. Independent of the reservation status.

        Raises:
            InvalidInput: If payment_status is not a known value
        """
        if payment_status not in dict(Reservation.PAYMENT_STATUS_CHOICES):
            raise InvalidInput(f"Unknown payment status: {payment_status}.")

        with transaction.atomic():
            try:
                reservation = Reservation.objects.select_for_update().get(pk=_pk(reservation_id))
            except (Reservation.DoesNotExist, ValueError, TypeError):
                raise ReservationNotFound(f"Reservation {reservation_id} not found.")

            reservation.payment_status = payment_status
            update_fields = ['payment_status', 'updated_at']
            if deposit_paid is not None:
                reservation.deposit_paid = bool(deposit_paid)
                update_fields.append('deposit_paid')
            reservation.save(update_fields=update_fields)

        logger.info(f"Reservation {reservation.pk} payment status set to {payment_status}")
        return reservation

    def hard_delete(self, reservation_id):
        """
        Administrative removal of a completed or cancelled reservation.

        The reservation's review goes with it. Availability is recomputed,
        and the rating too when a review was removed.

        Raises:
            InvalidTransition: If the reservation is not in a terminal status
        """
        reservation = self.get(reservation_id)
        equipment_id = reservation.equipment_id
        deleted_id = reservation.pk

        with equipment_lock(equipment_id):
            with transaction.atomic():
                reservation = Reservation.objects.select_for_update().get(pk=deleted_id)
                if not reservation.is_terminal():
                    logger.warning(
                        f"Refused to delete reservation {deleted_id} in status {reservation.status}"
                    )
                    raise InvalidTransition(
                        f"Only completed or cancelled reservations can be deleted; "
                        f"cancel reservation {deleted_id} first."
                    )

                deleted_reviews, _ = Review.objects.filter(reservation_id=deleted_id).delete()
                reservation.delete()

            logger.info(f"Reservation {deleted_id} deleted ({deleted_reviews} review(s) removed)")

            try:
                self.maintainer.refresh_availability(equipment_id)
                if deleted_reviews:
                    self.maintainer.refresh_rating(equipment_id)
            except Exception as e:
                logger.error(
                    f"Aggregate update failed after deleting reservation {deleted_id}: {e}",
                    exc_info=True
                )
                raise AggregateUpdateFailed(
                    f"Reservation {deleted_id} was deleted but equipment aggregates "
                    f"could not be updated."
                ) from e

        return deleted_id
