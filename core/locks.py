"""
Per-equipment locks.

Bookings and aggregate updates on the same equipment are serialized; work on
different equipment runs in parallel. Lock waits are bounded by
settings.BOOKING_LOCK_TIMEOUT and fail with EquipmentBusy.

These locks serialize requests inside one process. Across processes the
equipment row lock taken with select_for_update() does the same job.
"""

import logging
from contextlib import contextmanager
from threading import Lock, RLock
from weakref import WeakValueDictionary

from django.conf import settings

from .exceptions import EquipmentBusy

logger = logging.getLogger(__name__)

_registry_lock = Lock()
# Entries live while some thread holds or waits on the lock
_equipment_locks = WeakValueDictionary()


def _lock_for(equipment_id):
    with _registry_lock:
        lock = _equipment_locks.get(equipment_id)
        if lock is None:
            # Reentrant: reserving and recomputing availability nest on one thread
            lock = RLock()
            _equipment_locks[equipment_id] = lock
        return lock


@contextmanager
def equipment_lock(equipment_id, timeout=None):
    """
    Hold the lock for one equipment.

    Args:
        equipment_id: Primary key of the equipment
        timeout: Seconds to wait, defaults to settings.BOOKING_LOCK_TIMEOUT

    Raises:
        EquipmentBusy: If the lock could not be acquired in time
    """
    if timeout is None:
        timeout = getattr(settings, 'BOOKING_LOCK_TIMEOUT', 5)

    lock = _lock_for(str(equipment_id))
    if not lock.acquire(timeout=timeout):
        logger.warning(f"Timed out after {timeout}s waiting for equipment {equipment_id}")
        raise EquipmentBusy()

    try:
        yield
    finally:
        lock.release()
