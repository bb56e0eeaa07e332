"""
Availability index: overlap detection and atomic reservation.

A reservation blocks its equipment for [start_at, end_at) while it is
pending, confirmed or active. No two blocking reservations of one equipment
may overlap. reserve() checks and inserts under the equipment lock and the
equipment row lock, so concurrent requests for the same equipment are
serialized and the second overlapping request fails with BookingConflict.
"""

import logging

from django.db import transaction
from django.utils import timezone

from .accounts import AccountStore
from .aggregates import AggregateMaintainer
from .exceptions import (
    AggregateUpdateFailed,
    BookingConflict,
    EquipmentNotFound,
    InvalidRange,
    NotAuthorized,
    RenterNotFound,
)
from .locks import equipment_lock
from .models import Equipment, Reservation
from .notifications import RESERVATION_CREATED, SignalDispatcher, notify, reservation_payload
from .pricing import price
from .time_range import TimeRange

logger = logging.getLogger(__name__)


def to_time_range(value):
    """
    Build a TimeRange from a TimeRange or a (start, end) pair.

    Naive datetimes are taken in the current time zone.

    Raises:
        InvalidRange: If a bound is missing or end is not after start
    """
    if isinstance(value, TimeRange):
        return value

    try:
        start, end = value
    except (TypeError, ValueError):
        raise InvalidRange("A time range needs a start and an end.")

    if start is None or end is None:
        raise InvalidRange("A time range needs a start and an end.")

    if timezone.is_naive(start):
        start = timezone.make_aware(start)
    if timezone.is_naive(end):
        end = timezone.make_aware(end)

    try:
        return TimeRange(start, end)
    except ValueError as e:
        raise InvalidRange(str(e))


class AvailabilityIndex:
    """
    Answers whether a period is free for an equipment and grants reservations.

    Args:
        accounts: Account store used to validate renters
        maintainer: Aggregate maintainer run after each reservation
        dispatcher: Notification dispatcher (anything with emit(event_kind, payload))
        clock: Callable returning the current time
    """

    def __init__(self, accounts=None, maintainer=None, dispatcher=None, clock=None):
        self.accounts = accounts or AccountStore()
        self.maintainer = maintainer or AggregateMaintainer()
        self.dispatcher = dispatcher if dispatcher is not None else SignalDispatcher()
        self.clock = clock or timezone.now

    def _get_equipment(self, equipment_id, for_update=False):
        queryset = Equipment.objects.filter(is_active=True)
        if for_update:
            queryset = queryset.select_for_update()
        try:
            return queryset.get(pk=equipment_id)
        except (Equipment.DoesNotExist, ValueError, TypeError):
            raise EquipmentNotFound(f"Equipment {equipment_id} not found.")

    def find_conflict(self, equipment_id, time_range, exclude_reservation_id=None):
        """
        First blocking reservation of the equipment overlapping time_range.

        Half-open overlap: existing.start_at < range.end and range.start < existing.end_at.

        Returns:
            Reservation or None
        """
        queryset = Reservation.objects.filter(
            equipment_id=equipment_id,
            status__in=Reservation.BLOCKING_STATUSES,
            start_at__lt=time_range.end,
            end_at__gt=time_range.start,
        )
        if exclude_reservation_id is not None:
            queryset = queryset.exclude(pk=exclude_reservation_id)
        return queryset.order_by('start_at').first()

    def is_free(self, equipment_id, time_range, exclude_reservation_id=None):
        """
        Check whether no blocking reservation overlaps time_range.

        Raises:
            EquipmentNotFound: If the equipment does not exist or is inactive
            InvalidRange: If time_range is malformed
        """
        equipment = self._get_equipment(equipment_id)
        time_range = to_time_range(time_range)
        return self.find_conflict(equipment.pk, time_range, exclude_reservation_id) is None

    def blocked_ranges(self, equipment_id, window=None):
        """
        Blocking reservations of the equipment, oldest start first.

        Args:
            equipment_id: Primary key of the equipment
            window: Optional TimeRange (or (start, end) pair) to restrict the listing to

        Returns:
            QuerySet: Pending, confirmed and active reservations
        """
        equipment = self._get_equipment(equipment_id)
        queryset = Reservation.objects.filter(
            equipment=equipment,
            status__in=Reservation.BLOCKING_STATUSES,
        )
        if window is not None:
            window = to_time_range(window)
            queryset = queryset.filter(start_at__lt=window.end, end_at__gt=window.start)
        return queryset.order_by('start_at')

    def reserve(self, equipment_id, time_range, renter_id, **details):
        """
        Grant a pending reservation if the period is free.

        Checks, first failure wins: equipment exists, renter exists, range is
        valid and not in the past, renter is not the owner, no overlap.

        Args:
            equipment_id: Primary key of the equipment
            time_range: TimeRange or (start, end) pair
            renter_id: Primary key of the renting organization
            **details: delivery_address, notes, special_conditions

        Returns:
            Reservation: The new pending reservation, priced

        Raises:
            EquipmentNotFound, RenterNotFound, InvalidRange, NotAuthorized,
            BookingConflict (EquipmentBusy when the lock wait times out),
            AggregateUpdateFailed
        """
        with equipment_lock(equipment_id):
            with transaction.atomic():
                equipment = self._get_equipment(equipment_id, for_update=True)

                if not self.accounts.exists(renter_id):
                    raise RenterNotFound(f"Organization {renter_id} not found.")
                renter = self.accounts.get(renter_id)

                time_range = to_time_range(time_range)
                if time_range.start < self.clock():
                    raise InvalidRange("Reservations cannot start in the past.")

                if equipment.owner_id == renter.id:
                    logger.warning(
                        f"Organization {renter_id} tried to book its own equipment {equipment.pk}"
                    )
                    raise NotAuthorized("You cannot reserve your own equipment.")

                conflict = self.find_conflict(equipment.pk, time_range)
                if conflict is not None:
                    logger.warning(
                        f"Booking conflict on equipment {equipment.pk}: "
                        f"{time_range} overlaps reservation {conflict.pk}"
                    )
                    raise BookingConflict(conflicting_reservation_id=conflict.pk)

                quote = price(time_range, equipment.daily_rate, equipment.deposit_amount)

                reservation = Reservation(
                    equipment=equipment,
                    renter_id=renter.id,
                    start_at=time_range.start,
                    end_at=time_range.end,
                    status=Reservation.PENDING,
                    total_due=quote.total_due,
                    deposit_amount=quote.deposit_amount,
                    delivery_address=details.get('delivery_address', '') or '',
                    notes=details.get('notes', '') or '',
                    special_conditions=details.get('special_conditions', '') or '',
                )
                reservation.save()

            logger.info(
                f"Reservation {reservation.pk} created: equipment={equipment.pk}, "
                f"renter={renter_id}, {time_range}, total_due={quote.total_due}"
            )

            try:
                self.maintainer.refresh_availability(equipment.pk)
            except Exception as e:
                logger.error(
                    f"Availability update failed after creating reservation {reservation.pk}: {e}",
                    exc_info=True
                )
                raise AggregateUpdateFailed(instance=reservation) from e

        payload = reservation_payload(reservation)
        payload['renter_name'] = renter.display_name
        notify(self.dispatcher, RESERVATION_CREATED, payload)

        return reservation

    def withdraw(self, equipment_id):
        """
        Take an equipment off the platform (soft delete).

        The open-reservation check and the write run under the equipment lock
        and row lock, so no reservation can be granted in between.

        Returns:
            Equipment: The deactivated equipment

        Raises:
            EquipmentNotFound: If the equipment does not exist or is inactive
            BookingConflict: If a pending, confirmed or active reservation remains
        """
        with equipment_lock(equipment_id):
            with transaction.atomic():
                equipment = self._get_equipment(equipment_id, for_update=True)

                has_open_reservations = Reservation.objects.filter(
                    equipment_id=equipment.pk,
                    status__in=Reservation.BLOCKING_STATUSES,
                ).exists()
                if has_open_reservations:
                    raise BookingConflict(
                        "Equipment has open reservations; cancel or complete them first.",
                        code='equipment_in_use'
                    )

                equipment.is_active = False
                equipment.save(update_fields=['is_active', 'updated_at'])

        logger.info(f"Equipment {equipment.pk} withdrawn")
        return equipment
