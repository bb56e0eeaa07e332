"""
Permission classes for the equipment rental API.
"""

from rest_framework import permissions

from .models import Reservation


class IsStaffUser(permissions.BasePermission):
    """
    Allows only staff organizations.

    Usage:
        class MyView(APIView):
            permission_classes = [IsAuthenticated, IsStaffUser]
    """

    message = 'You do not have permission to perform this action. Staff privileges required.'

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False

        return request.user.is_staff


class IsEquipmentOwnerOrReadOnly(permissions.BasePermission):
    """
    Read access for everyone, write access for the equipment owner only.
    """

    message = 'Only the owner of this equipment can modify it.'

    def has_object_permission(self, request, view, obj):
        if request.method in permissions.SAFE_METHODS:
            return True

        return bool(request.user and request.user.is_authenticated and obj.owner_id == request.user.id)


class IsReservationParty(permissions.BasePermission):
    """
    Allows the renter and the equipment owner of a reservation, and staff.
    """

    message = 'You do not have permission to access this reservation.'

    def has_object_permission(self, request, view, obj):
        user = request.user
        if not user or not user.is_authenticated:
            return False

        if user.is_staff:
            return True

        return obj.renter_id == user.id or obj.equipment.owner_id == user.id


class CanUpdateReservationStatus(permissions.BasePermission):
    """
    Checks who may move a reservation to a status.

    - confirmed, active, completed: equipment owner only
    - cancelled: renter or equipment owner

    Other statuses are let through so the state machine reports them as
    invalid transitions (400) rather than 403.
    """

    message = 'You do not have permission to modify this reservation.'

    OWNER_ONLY = (Reservation.CONFIRMED, Reservation.ACTIVE, Reservation.COMPLETED)

    def check(self, user, reservation, new_status):
        if not user or not user.is_authenticated:
            return False

        is_renter = reservation.renter_id == user.id
        is_owner = reservation.equipment.owner_id == user.id

        if not is_renter and not is_owner:
            self.message = 'You do not have permission to modify this reservation.'
            return False

        if new_status in self.OWNER_ONLY and not is_owner:
            self.message = f'Only the equipment owner can mark a reservation as {new_status}.'
            return False

        return True

    def has_object_permission(self, request, view, obj):
        return self.check(request.user, obj, request.data.get('status'))


class IsStaffOrReadOnly(permissions.BasePermission):
    """
    Read access for everyone, write access for staff only.
    """

    message = 'You do not have permission to perform this action. Staff privileges required.'

    def has_permission(self, request, view):
        if request.method in permissions.SAFE_METHODS:
            return True

        return bool(request.user and request.user.is_authenticated and request.user.is_staff)
