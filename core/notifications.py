"""
Notification dispatch.

The engine announces reservation and review events through a dispatcher with
a single method, emit(event_kind, payload). Delivery is fire-and-forget: a
failing dispatcher or receiver is logged and never undoes the change that
triggered it.
"""

import logging

from django.dispatch import Signal

logger = logging.getLogger(__name__)

RESERVATION_CREATED = 'reservation.created'
RESERVATION_CONFIRMED = 'reservation.confirmed'
RESERVATION_CANCELLED = 'reservation.cancelled'
RESERVATION_COMPLETED = 'reservation.completed'
REVIEW_CREATED = 'review.created'

EVENT_KINDS = (
    RESERVATION_CREATED,
    RESERVATION_CONFIRMED,
    RESERVATION_CANCELLED,
    RESERVATION_COMPLETED,
    REVIEW_CREATED,
)

# Receivers get event_kind and payload keyword arguments
booking_event = Signal()


class SignalDispatcher:
    """Default dispatcher: forwards events to receivers of booking_event."""

    def __init__(self, signal=booking_event):
        self.signal = signal

    def emit(self, event_kind, payload):
        responses = self.signal.send_robust(
            sender=self.__class__,
            event_kind=event_kind,
            payload=payload,
        )
        for receiver, response in responses:
            if isinstance(response, Exception):
                logger.error(
                    f"Receiver {receiver!r} failed for {event_kind}: {response}",
                    exc_info=(type(response), response, response.__traceback__)
                )


def notify(dispatcher, event_kind, payload):
    """
    Emit an event without letting dispatcher failures propagate.

    Returns:
        bool: True if the dispatcher accepted the event
    """
    if dispatcher is None:
        return False

    try:
        dispatcher.emit(event_kind, payload)
    except Exception as e:
        logger.error(f"Failed to dispatch {event_kind} {payload}: {e}", exc_info=True)
        return False

    return True


def reservation_payload(reservation):
    return {
        'reservation_id': reservation.pk,
        'equipment_id': reservation.equipment_id,
        'renter_id': reservation.renter_id,
        'status': reservation.status,
        'start_at': reservation.start_at.isoformat(),
        'end_at': reservation.end_at.isoformat(),
    }


def review_payload(review):
    return {
        'review_id': review.pk,
        'reservation_id': review.reservation_id,
        'equipment_id': review.equipment_id,
        'author_id': review.author_id,
        'rating': review.rating,
    }
