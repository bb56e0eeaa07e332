"""
Derived equipment state.

Equipment.availability, rating_average and review_count are caches over the
equipment's reservations and reviews. They are recomputed here, synchronously,
by the operations that change reservations and reviews. Each recomputation
reads the aggregate and writes the result while holding the equipment lock
and the equipment row lock, so concurrent updates cannot overwrite each other
with stale values.
"""

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from django.db import transaction
from django.db.models import Count, Sum

from .exceptions import EquipmentNotFound, InvalidInput
from .locks import equipment_lock
from .models import Equipment, Reservation, Review

logger = logging.getLogger(__name__)

ONE_DECIMAL = Decimal('0.1')


def derive_availability(current, has_holding_reservation):
    """
    Availability rule.

    A confirmed or active reservation always yields 'reserved'. Otherwise
    'reserved' falls back to 'available' and manual overrides
    ('unavailable', 'under_maintenance') are left alone.
    """
    if has_holding_reservation:
        return Equipment.RESERVED
    if current == Equipment.RESERVED:
        return Equipment.AVAILABLE
    return current


def compute_rating(total, count):
    """
    Rating rule: mean rounded half-up to one decimal, 0 when there are no reviews.

    Returns:
        tuple: (rating_average: Decimal, review_count: int)
    """
    if not count:
        return Decimal('0.0'), 0

    average = (Decimal(total) / Decimal(count)).quantize(ONE_DECIMAL, rounding=ROUND_HALF_UP)
    return average, count


@dataclass(frozen=True)
class Aggregates:
    availability: str
    rating_average: Decimal
    review_count: int


class AggregateMaintainer:
    """Recomputes and stores the derived fields of one equipment at a time."""

    def _locked_equipment(self, equipment_id):
        try:
            return Equipment.objects.select_for_update().get(pk=equipment_id)
        except (Equipment.DoesNotExist, ValueError, TypeError):
            raise EquipmentNotFound(f"Equipment {equipment_id} not found.")

    def _has_holding_reservation(self, equipment_id):
        return Reservation.objects.filter(
            equipment_id=equipment_id,
            status__in=Reservation.HOLDING_STATUSES,
        ).exists()

    def _rating_stats(self, equipment_id):
        stats = Review.objects.filter(
            equipment_id=equipment_id,
            is_active=True,
        ).aggregate(total=Sum('rating'), count=Count('id'))
        return compute_rating(stats['total'] or 0, stats['count'] or 0)

    def compute(self, equipment):
        """
        Expected derived values for equipment, without writing anything.

        Returns:
            Aggregates: availability, rating_average and review_count
        """
        availability = derive_availability(
            equipment.availability,
            self._has_holding_reservation(equipment.pk),
        )
        rating_average, review_count = self._rating_stats(equipment.pk)
        return Aggregates(availability, rating_average, review_count)

    def refresh_availability(self, equipment_id):
        """
        Apply the availability rule to one equipment.

        Returns:
            Equipment: The refreshed equipment

        Raises:
            EquipmentNotFound: If the equipment does not exist
            EquipmentBusy: If the equipment lock could not be acquired
        """
        with equipment_lock(equipment_id):
            with transaction.atomic():
                equipment = self._locked_equipment(equipment_id)
                new_availability = derive_availability(
                    equipment.availability,
                    self._has_holding_reservation(equipment.pk),
                )

                if new_availability != equipment.availability:
                    old_availability = equipment.availability
                    equipment.availability = new_availability
                    equipment.save(update_fields=['availability', 'updated_at'])
                    logger.info(
                        f"Equipment {equipment.pk} availability: "
                        f"{old_availability} -> {new_availability}"
                    )

        return equipment

    def refresh_rating(self, equipment_id):
        """
        Apply the rating rule to one equipment.

        Returns:
            Equipment: The refreshed equipment

        Raises:
            EquipmentNotFound: If the equipment does not exist
            EquipmentBusy: If the equipment lock could not be acquired
        """
        with equipment_lock(equipment_id):
            with transaction.atomic():
                equipment = self._locked_equipment(equipment_id)
                rating_average, review_count = self._rating_stats(equipment.pk)

                equipment.rating_average = rating_average
                equipment.review_count = review_count
                equipment.save(update_fields=['rating_average', 'review_count', 'updated_at'])

                logger.info(
                    f"Updated rating for equipment {equipment.pk}: "
                    f"average={rating_average}, count={review_count}"
                )

        return equipment

    def apply_manual_availability(self, equipment_id, value):
        """
        Owner override of the availability flag.

        'reserved' cannot be set by hand. The availability rule runs right
        after the override, so a confirmed or active reservation still wins.

        Raises:
            InvalidInput: If value is not a manual availability
            EquipmentNotFound: If the equipment does not exist
        """
        if value not in Equipment.MANUAL_AVAILABILITY:
            raise InvalidInput(
                f"Availability must be one of: {', '.join(Equipment.MANUAL_AVAILABILITY)}."
            )

        with equipment_lock(equipment_id):
            with transaction.atomic():
                equipment = self._locked_equipment(equipment_id)
                equipment.availability = derive_availability(
                    value,
                    self._has_holding_reservation(equipment.pk),
                )
                equipment.save(update_fields=['availability', 'updated_at'])

        logger.info(
            f"Equipment {equipment.pk} availability set to {value} "
            f"(stored {equipment.availability})"
        )
        return equipment

    def reconcile(self, equipment_id, commit=True):
        """
        Recompute every derived field of one equipment.

        Args:
            equipment_id: Primary key of the equipment
            commit: Write the corrected values when True

        Returns:
            dict: Field name -> (stored value, expected value) for fields that differed
        """
        with equipment_lock(equipment_id):
            with transaction.atomic():
                equipment = self._locked_equipment(equipment_id)
                expected = self.compute(equipment)

                changes = {}
                for field in ('availability', 'rating_average', 'review_count'):
                    stored = getattr(equipment, field)
                    wanted = getattr(expected, field)
                    if stored != wanted:
                        changes[field] = (stored, wanted)
                        setattr(equipment, field, wanted)

                if changes and commit:
                    equipment.save(update_fields=list(changes) + ['updated_at'])
                    logger.info(f"Reconciled equipment {equipment.pk}: {changes}")

        return changes
