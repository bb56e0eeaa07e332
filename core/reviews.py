"""
Review gate.

Only the renter of a completed reservation may review it, once. Creating,
removing or deactivating a review recomputes the equipment rating.
"""

import logging

from django.db import IntegrityError, transaction
from django.db.models import Count
from django.utils import timezone

from .aggregates import AggregateMaintainer, compute_rating
from .exceptions import (
    AggregateUpdateFailed,
    DuplicateReview,
    EquipmentNotFound,
    InvalidInput,
    InvalidRating,
    NotAuthorized,
    ReservationNotEligible,
    ReservationNotFound,
    ReviewNotFound,
)
from .locks import equipment_lock
from .models import Equipment, Reservation, Review
from .notifications import REVIEW_CREATED, SignalDispatcher, notify, review_payload

logger = logging.getLogger(__name__)

MAX_COMMENT_LENGTH = 1000


def _is_valid_rating(rating):
    # bool is an int subclass; True is not a rating
    return isinstance(rating, int) and not isinstance(rating, bool) and 1 <= rating <= 5


class ReviewGate:
    """
    Args:
        maintainer: Aggregate maintainer run after each review change
        dispatcher: Notification dispatcher (anything with emit(event_kind, payload))
        clock: Callable returning the current time
    """

    def __init__(self, maintainer=None, dispatcher=None, clock=None):
        self.maintainer = maintainer or AggregateMaintainer()
        self.dispatcher = dispatcher if dispatcher is not None else SignalDispatcher()
        self.clock = clock or timezone.now

    def _get_review(self, review_id):
        try:
            return Review.objects.select_related('equipment').get(pk=review_id)
        except (Review.DoesNotExist, ValueError, TypeError):
            raise ReviewNotFound(f"Review {review_id} not found.")

    def _refresh_rating(self, equipment_id, instance=None):
        try:
            self.maintainer.refresh_rating(equipment_id)
        except Exception as e:
            logger.error(
                f"Rating update failed for equipment {equipment_id}: {e}",
                exc_info=True
            )
            raise AggregateUpdateFailed(instance=instance) from e

    def submit(self, reservation_id, author_id, rating, comment=''):
        """
        Create the review of a completed reservation.

        Checks, first failure wins:
        - ReservationNotFound: reservation does not exist
        - NotAuthorized: author is not the reservation's renter
        - ReservationNotEligible: reservation is not completed
        - InvalidRating: rating is not an integer from 1 to 5
        - DuplicateReview: the reservation already has a review

        Returns:
            Review: The created review

        Raises:
            InvalidInput: If the comment is longer than 1000 characters
            AggregateUpdateFailed: If the rating could not be recomputed
        """
        try:
            reservation = Reservation.objects.get(pk=reservation_id)
        except (Reservation.DoesNotExist, ValueError, TypeError):
            raise ReservationNotFound(f"Reservation {reservation_id} not found.")

        if str(reservation.renter_id) != str(author_id):
            logger.warning(
                f"Organization {author_id} tried to review reservation {reservation.pk} "
                f"rented by {reservation.renter_id}"
            )
            raise NotAuthorized("Only the renter of this reservation can review it.")

        if reservation.status != Reservation.COMPLETED:
            raise ReservationNotEligible(
                f"Reservation is {reservation.status}; only completed reservations can be reviewed."
            )

        if not _is_valid_rating(rating):
            raise InvalidRating()

        if Review.objects.filter(reservation_id=reservation.pk).exists():
            raise DuplicateReview()

        comment = (comment or '').strip()
        if len(comment) > MAX_COMMENT_LENGTH:
            raise InvalidInput(f"Comment cannot exceed {MAX_COMMENT_LENGTH} characters.")

        with equipment_lock(reservation.equipment_id):
            try:
                with transaction.atomic():
                    review = Review(
                        equipment_id=reservation.equipment_id,
                        author_id=reservation.renter_id,
                        reservation=reservation,
                        rating=rating,
                        comment=comment,
                        is_verified=True,
                    )
                    review.save()
            except IntegrityError:
                # Another request reviewed the same reservation first
                raise DuplicateReview()

            logger.info(
                f"Review {review.pk} created for reservation {reservation.pk}: rating={rating}"
            )

            self._refresh_rating(reservation.equipment_id, instance=review)

        notify(self.dispatcher, REVIEW_CREATED, review_payload(review))
        return review

    def respond(self, review_id, owner_id, text):
        """
        Set the equipment owner's public response to a review.

        Raises:
            ReviewNotFound, NotAuthorized (not the equipment owner), InvalidInput (blank text)
        """
        review = self._get_review(review_id)

        if str(review.equipment.owner_id) != str(owner_id):
            raise NotAuthorized("Only the equipment owner can respond to this review.")

        text = (text or '').strip()
        if not text:
            raise InvalidInput("Response text is required.")
        if len(text) > MAX_COMMENT_LENGTH:
            raise InvalidInput(f"Response cannot exceed {MAX_COMMENT_LENGTH} characters.")

        review.owner_response = text
        review.owner_response_at = self.clock()
        review.save(update_fields=['owner_response', 'owner_response_at', 'updated_at'])

        logger.info(f"Owner {owner_id} responded to review {review.pk}")
        return review

    def remove(self, review_id):
        """Delete a review and recompute the equipment rating."""
        review = self._get_review(review_id)
        equipment_id = review.equipment_id
        removed_id = review.pk

        with equipment_lock(equipment_id):
            review.delete()
            logger.info(f"Review {removed_id} removed from equipment {equipment_id}")
            self._refresh_rating(equipment_id)

        return removed_id

    def deactivate(self, review_id):
        """Hide a review from listings and ratings without deleting it."""
        review = self._get_review(review_id)

        with equipment_lock(review.equipment_id):
            if review.is_active:
                review.is_active = False
                review.save(update_fields=['is_active', 'updated_at'])
                logger.info(f"Review {review.pk} deactivated")
            self._refresh_rating(review.equipment_id, instance=review)

        return review

    def summary(self, equipment_id):
        """
        Rating statistics over the active reviews of one equipment.

        Returns:
            dict: average, count and distribution (rating -> number of reviews, 1 to 5)
        """
        try:
            exists = Equipment.objects.filter(pk=equipment_id).exists()
        except (ValueError, TypeError):
            exists = False
        if not exists:
            raise EquipmentNotFound(f"Equipment {equipment_id} not found.")

        rows = (
            Review.objects.filter(equipment_id=equipment_id, is_active=True)
            .order_by()
            .values('rating')
            .annotate(n=Count('id'))
        )
        distribution = {rating: 0 for rating in range(1, 6)}
        for row in rows:
            distribution[row['rating']] = row['n']

        count = sum(distribution.values())
        total = sum(rating * n for rating, n in distribution.items())
        average, count = compute_rating(total, count)

        return {
            'average': average,
            'count': count,
            'distribution': distribution,
        }
