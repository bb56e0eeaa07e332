"""
Error taxonomy for the booking engine.

Every error carries the HTTP status code the API layer answers with, so views
can translate an exception into a response without a lookup table.
"""

from rest_framework import status


class BookingError(Exception):
    """Base class for all errors raised by the booking engine."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_code = 'booking_error'
    default_detail = 'The request could not be processed.'

    def __init__(self, detail=None, code=None):
        self.detail = detail or self.default_detail
        self.code = code or self.default_code
        super().__init__(self.detail)

    def as_dict(self):
        return {'detail': self.detail, 'code': self.code}


# Not found

class NotFound(BookingError):
    status_code = status.HTTP_404_NOT_FOUND
    default_code = 'not_found'
    default_detail = 'Resource not found.'


class EquipmentNotFound(NotFound):
    default_code = 'equipment_not_found'
    default_detail = 'Equipment not found.'


class RenterNotFound(NotFound):
    default_code = 'renter_not_found'
    default_detail = 'Renter organization not found.'


class AccountNotFound(NotFound):
    default_code = 'account_not_found'
    default_detail = 'Organization not found.'


class ReservationNotFound(NotFound):
    default_code = 'reservation_not_found'
    default_detail = 'Reservation not found.'


class ReviewNotFound(NotFound):
    default_code = 'review_not_found'
    default_detail = 'Review not found.'


# Invalid input

class InvalidInput(BookingError):
    default_code = 'invalid_input'
    default_detail = 'Invalid input.'


class InvalidRange(InvalidInput):
    default_code = 'invalid_range'
    default_detail = 'Invalid time range.'


class InvalidRating(InvalidInput):
    default_code = 'invalid_rating'
    default_detail = 'Rating must be an integer between 1 and 5.'


# Lifecycle

class InvalidTransition(BookingError):
    default_code = 'invalid_transition'
    default_detail = 'This status transition is not allowed.'


class ReservationNotEligible(BookingError):
    default_code = 'reservation_not_eligible'
    default_detail = 'Only completed reservations can be reviewed.'


# Conflicts

class BookingConflict(BookingError):
    status_code = status.HTTP_409_CONFLICT
    default_code = 'booking_conflict'
    default_detail = 'This equipment is already reserved for the requested period.'

    def __init__(self, detail=None, code=None, conflicting_reservation_id=None):
        super().__init__(detail, code)
        self.conflicting_reservation_id = conflicting_reservation_id

    def as_dict(self):
        data = super().as_dict()
        if self.conflicting_reservation_id is not None:
            data['conflicting_reservation'] = self.conflicting_reservation_id
        return data


class EquipmentBusy(BookingConflict):
    default_code = 'equipment_busy'
    default_detail = 'Another request for this equipment is in progress. Please try again.'


class DuplicateReview(BookingError):
    status_code = status.HTTP_409_CONFLICT
    default_code = 'duplicate_review'
    default_detail = 'This reservation has already been reviewed.'


# Authorization

class NotAuthorized(BookingError):
    status_code = status.HTTP_403_FORBIDDEN
    default_code = 'not_authorized'
    default_detail = 'You do not have permission to perform this action.'


# Derived state

class AggregateUpdateFailed(BookingError):
    """
    The state change was committed but the derived equipment fields could not
    be recomputed. The caller decides whether to retry or reconcile.
    """

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_code = 'aggregate_update_failed'
    default_detail = 'The change was saved but equipment aggregates could not be updated.'

    def __init__(self, detail=None, code=None, instance=None):
        super().__init__(detail, code)
        self.instance = instance

    def as_dict(self):
        data = super().as_dict()
        if self.instance is not None:
            data['id'] = self.instance.pk
        return data
