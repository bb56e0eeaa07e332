"""
API views for the equipment rental platform.

Views validate request shape with serializers, check who is asking, and hand
the work to the booking engine. Engine errors carry their own status code and
are turned into responses by engine_error_response().
"""

import logging
from decimal import Decimal, InvalidOperation

from django.contrib.auth import get_user_model
from django.db import IntegrityError
from django.db.models import Q
from django.shortcuts import get_object_or_404
from rest_framework import generics, status
from rest_framework.exceptions import ValidationError
from rest_framework.pagination import PageNumberPagination
from rest_framework.permissions import AllowAny, IsAuthenticated, IsAuthenticatedOrReadOnly
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView
from rest_framework_simplejwt.views import TokenObtainPairView

from .engine import BookingEngine
from .exceptions import BookingError
from .models import Category, Equipment, Reservation, Review
from .permissions import (
    CanUpdateReservationStatus,
    IsEquipmentOwnerOrReadOnly,
    IsReservationParty,
    IsStaffOrReadOnly,
    IsStaffUser,
)
from .serializers import (
    AvailabilityUpdateSerializer,
    CalendarEntrySerializer,
    CalendarWindowSerializer,
    CategorySerializer,
    EmailTokenObtainPairSerializer,
    EquipmentSerializer,
    OrganizationRegistrationSerializer,
    OwnerResponseSerializer,
    PaymentStatusSerializer,
    ReservationCancelSerializer,
    ReservationCreateSerializer,
    ReservationSerializer,
    ReservationStatusSerializer,
    ReviewCreateSerializer,
    ReviewSerializer,
)

User = get_user_model()
logger = logging.getLogger(__name__)


def get_client_ip(request):
    """
    Get client IP address from request.
    Handles proxy headers for accurate IP detection.
    """
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        return x_forwarded_for.split(',')[0]
    return request.META.get('REMOTE_ADDR')


def engine_error_response(exc, request):
    """Turn a BookingError into a response, logging it at the right level."""
    if exc.status_code >= 500:
        logger.error(
            f"{exc.__class__.__name__}: {exc.detail}, "
            f"User: {getattr(request.user, 'email', None)}, IP: {get_client_ip(request)}",
            exc_info=True
        )
    else:
        logger.warning(
            f"{exc.__class__.__name__}: {exc.detail}, "
            f"User: {getattr(request.user, 'email', None)}, IP: {get_client_ip(request)}"
        )
    return Response(exc.as_dict(), status=exc.status_code)


class EngineMixin:
    """Gives a view its booking engine."""

    engine_class = BookingEngine

    def get_engine(self):
        engine = getattr(self, '_engine', None)
        if engine is None:
            engine = self._engine = self.engine_class()
        return engine


# ============================================================================
# Accounts
# ============================================================================

class EmailTokenObtainPairView(TokenObtainPairView):
    """
    Obtain a JWT pair with email and password.
    """
    serializer_class = EmailTokenObtainPairSerializer


class OrganizationRegistrationView(generics.CreateAPIView):
    """
    Register a local (password) or federated (external id) organization.

    POST /api/auth/register/
    """
    serializer_class = OrganizationRegistrationSerializer
    permission_classes = [AllowAny]
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = 'registration'

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            self.perform_create(serializer)
        except IntegrityError as e:
            # Concurrent registrations with the same email or external id
            if 'unique' in str(e).lower() or 'duplicate' in str(e).lower():
                return Response(
                    {'email': ['An organization with that email already exists.']},
                    status=status.HTTP_400_BAD_REQUEST
                )
            raise

        logger.info(
            f"Organization registered: {serializer.instance.email} "
            f"({serializer.instance.account_kind}), IP: {get_client_ip(request)}"
        )
        headers = self.get_success_headers(serializer.data)
        return Response(serializer.data, status=status.HTTP_201_CREATED, headers=headers)


# ============================================================================
# Categories
# ============================================================================

class CategoryListCreateView(generics.ListCreateAPIView):
    """
    GET  /api/categories/  list active categories (public)
    POST /api/categories/  create a category (staff)

    Staff may pass ?include_inactive=true to list every category.
    """
    serializer_class = CategorySerializer
    permission_classes = [IsStaffOrReadOnly]

    def get_queryset(self):
        queryset = Category.objects.all()

        include_inactive = self.request.query_params.get('include_inactive') == 'true'
        if not (include_inactive and self.request.user.is_staff):
            queryset = queryset.filter(is_active=True)

        return queryset

    def perform_create(self, serializer):
        category = serializer.save()
        logger.info(f"Category {category.pk} created by {self.request.user.email}: {category.name}")


class CategoryDetailView(generics.RetrieveUpdateDestroyAPIView):
    """
    GET    /api/categories/<id>/  category detail (public)
    PATCH  /api/categories/<id>/  edit, including is_active (staff)
    DELETE /api/categories/<id>/  remove an unused category (staff)
    """
    serializer_class = CategorySerializer
    permission_classes = [IsStaffOrReadOnly]

    def get_queryset(self):
        if self.request.user.is_staff:
            return Category.objects.all()
        return Category.objects.filter(is_active=True)

    def perform_update(self, serializer):
        category = serializer.save()
        logger.info(f"Category {category.pk} updated by {self.request.user.email}")

    def destroy(self, request, *args, **kwargs):
        category = self.get_object()

        if category.equipment.exists():
            logger.warning(
                f"Refused to delete category {category.pk} still used by equipment, "
                f"User: {request.user.email}"
            )
            return Response(
                {
                    'detail': 'Category is used by equipment; deactivate it instead.',
                    'code': 'category_in_use',
                },
                status=status.HTTP_409_CONFLICT
            )

        category.delete()
        logger.info(f"Category {kwargs.get('pk')} deleted by {request.user.email}")
        return Response(status=status.HTTP_204_NO_CONTENT)


# ============================================================================
# Equipment
# ============================================================================

def parse_rate(params, name):
    """Read an optional non-negative decimal query parameter."""
    raw = params.get(name)
    if raw in (None, ''):
        return None

    try:
        value = Decimal(raw)
    except InvalidOperation:
        raise ValidationError({name: 'Enter a valid number.'})

    if not value.is_finite() or value < 0:
        raise ValidationError({name: 'Enter a non-negative number.'})
    return value


class EquipmentListCreateView(generics.ListCreateAPIView):
    """
    GET  /api/equipment/  list active equipment (public)
    POST /api/equipment/  list a new equipment owned by the caller

    Query parameters:
    - availability: available, reserved, unavailable, under_maintenance
    - owner: owner organization id
    - category: category id
    - min_rate, max_rate: bounds on the daily rate
    - location: case-insensitive match on the location
    - search: case-insensitive match on the name
    """
    serializer_class = EquipmentSerializer
    permission_classes = [IsAuthenticatedOrReadOnly]

    def get_queryset(self):
        params = self.request.query_params
        queryset = Equipment.objects.filter(is_active=True).select_related('owner', 'category')

        availability = params.get('availability')
        if availability:
            queryset = queryset.filter(availability=availability)

        owner = params.get('owner')
        if owner and owner.isdigit():
            queryset = queryset.filter(owner_id=int(owner))

        category = params.get('category')
        if category and category.isdigit():
            queryset = queryset.filter(category_id=int(category))

        min_rate = parse_rate(params, 'min_rate')
        if min_rate is not None:
            queryset = queryset.filter(daily_rate__gte=min_rate)

        max_rate = parse_rate(params, 'max_rate')
        if max_rate is not None:
            queryset = queryset.filter(daily_rate__lte=max_rate)

        location = params.get('location')
        if location:
            queryset = queryset.filter(location__icontains=location.strip())

        search = params.get('search')
        if search:
            queryset = queryset.filter(name__icontains=search.strip())

        return queryset

    def perform_create(self, serializer):
        equipment = serializer.save(owner=self.request.user)
        logger.info(
            f"Equipment {equipment.pk} listed by {self.request.user.email}: "
            f"{equipment.name}, daily_rate={equipment.daily_rate}"
        )


class EquipmentDetailView(EngineMixin, generics.RetrieveUpdateDestroyAPIView):
    """
    GET    /api/equipment/<id>/  equipment detail (public)
    PATCH  /api/equipment/<id>/  owner edit (price, description, ...)
    DELETE /api/equipment/<id>/  owner soft delete

    Rate edits never change existing reservations.
    """
    serializer_class = EquipmentSerializer
    permission_classes = [IsAuthenticatedOrReadOnly, IsEquipmentOwnerOrReadOnly]
    queryset = Equipment.objects.filter(is_active=True).select_related('owner', 'category')

    def perform_update(self, serializer):
        equipment = serializer.save()
        logger.info(f"Equipment {equipment.pk} updated by {self.request.user.email}")

    def destroy(self, request, *args, **kwargs):
        equipment = self.get_object()

        try:
            equipment = self.get_engine().availability.withdraw(equipment.pk)
        except BookingError as e:
            return engine_error_response(e, request)

        logger.info(f"Equipment {equipment.pk} deactivated by {request.user.email}")
        return Response(status=status.HTTP_204_NO_CONTENT)


class EquipmentAvailabilityView(EngineMixin, APIView):
    """
    PUT /api/equipment/<id>/availability/

    Owner override: {"availability": "under_maintenance"}. A confirmed or
    active reservation still makes the stored value 'reserved'.
    """
    permission_classes = [IsAuthenticated]

    def put(self, request, pk, *args, **kwargs):
        equipment = get_object_or_404(Equipment, pk=pk, is_active=True)

        if equipment.owner_id != request.user.id:
            logger.warning(
                f"Unauthorized availability change on equipment {pk} "
                f"by {request.user.email}, IP: {get_client_ip(request)}"
            )
            return Response(
                {'detail': 'Only the owner of this equipment can change its availability.'},
                status=status.HTTP_403_FORBIDDEN
            )

        serializer = AvailabilityUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            equipment = self.get_engine().maintainer.apply_manual_availability(
                equipment.pk, serializer.validated_data['availability']
            )
        except BookingError as e:
            return engine_error_response(e, request)

        return Response(EquipmentSerializer(equipment).data, status=status.HTTP_200_OK)


class EquipmentCalendarView(EngineMixin, APIView):
    """
    GET /api/equipment/<id>/calendar/?start=...&end=...

    Pending, confirmed and active reservations of the equipment, optionally
    restricted to the [start, end) window.
    """
    permission_classes = [AllowAny]

    def get(self, request, pk, *args, **kwargs):
        serializer = CalendarWindowSerializer(data=request.query_params)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        start = serializer.validated_data.get('start')
        end = serializer.validated_data.get('end')
        window = (start, end) if start or end else None

        try:
            blocked = self.get_engine().availability.blocked_ranges(pk, window=window)
        except BookingError as e:
            return engine_error_response(e, request)

        return Response({
            'equipment': int(pk),
            'blocked': CalendarEntrySerializer(blocked, many=True).data,
        })


class EquipmentReviewsView(EngineMixin, generics.ListAPIView):
    """
    GET /api/equipment/<id>/reviews/?sort=recent|rating_high|rating_low

    Active reviews of the equipment with a rating summary.
    """
    serializer_class = ReviewSerializer
    permission_classes = [AllowAny]

    SORTS = {
        'recent': ['-created_at'],
        'rating_high': ['-rating', '-created_at'],
        'rating_low': ['rating', '-created_at'],
    }

    def get_queryset(self):
        ordering = self.SORTS.get(self.request.query_params.get('sort'), self.SORTS['recent'])
        return (
            Review.objects.filter(equipment_id=self.kwargs['pk'], is_active=True)
            .select_related('author')
            .order_by(*ordering)
        )

    def list(self, request, *args, **kwargs):
        try:
            summary = self.get_engine().reviews.summary(self.kwargs['pk'])
        except BookingError as e:
            return engine_error_response(e, request)

        response = super().list(request, *args, **kwargs)
        response.data = {
            'summary': {
                'average': str(summary['average']),
                'count': summary['count'],
                'distribution': {str(k): v for k, v in summary['distribution'].items()},
            },
            'reviews': response.data,
        }
        return response


class OrganizationReviewsView(generics.ListAPIView):
    """
    Active reviews linked to one organization, newest first.

    GET /api/organizations/<id>/reviews/received/  reviews of its equipment
    GET /api/organizations/<id>/reviews/given/     reviews it wrote as a renter
    """
    serializer_class = ReviewSerializer
    permission_classes = [AllowAny]
    direction = None

    def get_queryset(self):
        organization = get_object_or_404(User, pk=self.kwargs['pk'])

        queryset = Review.objects.filter(is_active=True)
        if self.direction == 'received':
            queryset = queryset.filter(equipment__owner=organization)
        else:
            queryset = queryset.filter(author=organization)

        return queryset.select_related('author', 'equipment').order_by('-created_at', '-pk')


# ============================================================================
# Reservations
# ============================================================================

class ReservationListCreateView(EngineMixin, APIView):
    """
    GET  /api/reservations/?role=renter|owner&status=...
    POST /api/reservations/

    Error responses:
    - 400: Invalid data or period (end before start, start in the past)
    - 403: Booking your own equipment
    - 404: Equipment not found
    - 409: Period overlaps a pending, confirmed or active reservation
    """
    permission_classes = [IsAuthenticated]
    throttle_scope = 'booking'

    def get_throttles(self):
        if self.request.method == 'POST':
            return [ScopedRateThrottle()]
        return []

    def get(self, request, *args, **kwargs):
        role = request.query_params.get('role')
        if role == 'renter':
            queryset = Reservation.objects.filter(renter=request.user)
        elif role == 'owner':
            queryset = Reservation.objects.filter(equipment__owner=request.user)
        else:
            queryset = Reservation.objects.filter(
                Q(renter=request.user) | Q(equipment__owner=request.user)
            )

        status_filter = request.query_params.get('status')
        if status_filter:
            queryset = queryset.filter(status=status_filter)

        queryset = queryset.select_related('equipment', 'renter').order_by('-created_at')

        paginator = PageNumberPagination()
        page = paginator.paginate_queryset(queryset, request, view=self)
        serializer = ReservationSerializer(page, many=True)
        return paginator.get_paginated_response(serializer.data)

    def post(self, request, *args, **kwargs):
        serializer = ReservationCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        data = serializer.validated_data
        try:
            reservation = self.get_engine().availability.reserve(
                data['equipment'],
                (data['start_at'], data['end_at']),
                request.user.id,
                delivery_address=data.get('delivery_address', ''),
                notes=data.get('notes', ''),
                special_conditions=data.get('special_conditions', ''),
            )
        except BookingError as e:
            return engine_error_response(e, request)

        logger.info(
            f"Reservation {reservation.pk} created by {request.user.email}, "
            f"IP: {get_client_ip(request)}"
        )
        return Response(ReservationSerializer(reservation).data, status=status.HTTP_201_CREATED)


class ReservationDetailView(EngineMixin, APIView):
    """
    GET    /api/reservations/<id>/  detail (renter, owner or staff)
    DELETE /api/reservations/<id>/  administrative removal (staff, terminal statuses only)
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, pk, *args, **kwargs):
        try:
            reservation = self.get_engine().lifecycle.get(pk)
        except BookingError as e:
            return engine_error_response(e, request)

        permission = IsReservationParty()
        if not permission.has_object_permission(request, self, reservation):
            return Response({'detail': permission.message}, status=status.HTTP_403_FORBIDDEN)

        return Response(ReservationSerializer(reservation).data)

    def delete(self, request, pk, *args, **kwargs):
        permission = IsStaffUser()
        if not permission.has_permission(request, self):
            logger.warning(
                f"Non-staff reservation delete attempt. Reservation ID: {pk}, "
                f"User: {request.user.email}, IP: {get_client_ip(request)}"
            )
            return Response({'detail': permission.message}, status=status.HTTP_403_FORBIDDEN)

        try:
            self.get_engine().lifecycle.hard_delete(pk)
        except BookingError as e:
            return engine_error_response(e, request)

        logger.info(f"Reservation {pk} deleted by staff {request.user.email}")
        return Response(status=status.HTTP_204_NO_CONTENT)


class ReservationTransitionView(EngineMixin, APIView):
    """
    Base view for PATCH /api/reservations/<id>/<action>/.

    Subclasses set target_status.
    """
    permission_classes = [IsAuthenticated]
    target_status = None

    def get_reason(self, request):
        return None

    def patch(self, request, pk, *args, **kwargs):
        engine = self.get_engine()
        try:
            reservation = engine.lifecycle.get(pk)
        except BookingError as e:
            return engine_error_response(e, request)

        permission = CanUpdateReservationStatus()
        if not permission.check(request.user, reservation, self.target_status):
            logger.warning(
                f"Unauthorized reservation status update attempt. "
                f"Reservation ID: {pk}, Target: {self.target_status}, "
                f"User: {request.user.email} (ID: {request.user.id}), "
                f"IP: {get_client_ip(request)}"
            )
            return Response({'detail': permission.message}, status=status.HTTP_403_FORBIDDEN)

        reason = self.get_reason(request)
        if isinstance(reason, Response):
            return reason

        try:
            reservation = engine.lifecycle.transition(reservation.pk, self.target_status, reason=reason)
        except BookingError as e:
            return engine_error_response(e, request)

        return Response(ReservationSerializer(reservation).data, status=status.HTTP_200_OK)


class ReservationConfirmView(ReservationTransitionView):
    target_status = Reservation.CONFIRMED


class ReservationCompleteView(ReservationTransitionView):
    target_status = Reservation.COMPLETED


class ReservationCancelView(ReservationTransitionView):
    """PATCH /api/reservations/<id>/cancel/ with {"reason": "..."}."""
    target_status = Reservation.CANCELLED

    def get_reason(self, request):
        serializer = ReservationCancelSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        return serializer.validated_data['reason']


class ReservationStatusView(EngineMixin, APIView):
    """
    PUT /api/reservations/<id>/status/ with {"status": "...", "reason": "..."}

    Generic status write, including confirmed -> active. Guarded by the same
    transition table as the dedicated actions.
    """
    permission_classes = [IsAuthenticated]

    def put(self, request, pk, *args, **kwargs):
        engine = self.get_engine()
        try:
            reservation = engine.lifecycle.get(pk)
        except BookingError as e:
            return engine_error_response(e, request)

        serializer = ReservationStatusSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        new_status = serializer.validated_data['status']
        permission = CanUpdateReservationStatus()
        if not permission.check(request.user, reservation, new_status):
            logger.warning(
                f"Unauthorized reservation status update attempt. "
                f"Reservation ID: {pk}, Target: {new_status}, "
                f"User: {request.user.email} (ID: {request.user.id}), "
                f"IP: {get_client_ip(request)}"
            )
            return Response({'detail': permission.message}, status=status.HTTP_403_FORBIDDEN)

        try:
            reservation = engine.lifecycle.transition(
                reservation.pk,
                new_status,
                reason=serializer.validated_data.get('reason'),
            )
        except BookingError as e:
            return engine_error_response(e, request)

        return Response(ReservationSerializer(reservation).data, status=status.HTTP_200_OK)


class ReservationPaymentView(EngineMixin, APIView):
    """
    PATCH /api/reservations/<id>/payment/ with {"payment_status": "paid", "deposit_paid": true}

    Equipment owner or staff only.
    """
    permission_classes = [IsAuthenticated]

    def patch(self, request, pk, *args, **kwargs):
        engine = self.get_engine()
        try:
            reservation = engine.lifecycle.get(pk)
        except BookingError as e:
            return engine_error_response(e, request)

        if not request.user.is_staff and reservation.equipment.owner_id != request.user.id:
            return Response(
                {'detail': 'Only the equipment owner can update payment status.'},
                status=status.HTTP_403_FORBIDDEN
            )

        serializer = PaymentStatusSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        try:
            reservation = engine.lifecycle.update_payment_status(
                reservation.pk,
                serializer.validated_data['payment_status'],
                deposit_paid=serializer.validated_data.get('deposit_paid'),
            )
        except BookingError as e:
            return engine_error_response(e, request)

        return Response(ReservationSerializer(reservation).data, status=status.HTTP_200_OK)


# ============================================================================
# Reviews
# ============================================================================

class ReviewCreateView(EngineMixin, APIView):
    """
    POST /api/reviews/ with {"reservation": 1, "rating": 5, "comment": "..."}

    Error responses:
    - 400: Reservation not completed, rating out of range, comment too long
    - 403: Caller is not the renter of the reservation
    - 404: Reservation not found
    - 409: Reservation already reviewed
    """
    permission_classes = [IsAuthenticated]

    def post(self, request, *args, **kwargs):
        serializer = ReviewCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        data = serializer.validated_data
        try:
            review = self.get_engine().reviews.submit(
                data['reservation'],
                request.user.id,
                data['rating'],
                data.get('comment', ''),
            )
        except BookingError as e:
            return engine_error_response(e, request)

        return Response(ReviewSerializer(review).data, status=status.HTTP_201_CREATED)


class ReviewDetailView(EngineMixin, APIView):
    """
    GET    /api/reviews/<id>/  public detail of an active review
    DELETE /api/reviews/<id>/  remove (author or staff)
    """

    def get_permissions(self):
        if self.request.method == 'GET':
            return [AllowAny()]
        return [IsAuthenticated()]

    def get(self, request, pk, *args, **kwargs):
        review = get_object_or_404(Review.objects.select_related('author'), pk=pk, is_active=True)
        return Response(ReviewSerializer(review).data)

    def delete(self, request, pk, *args, **kwargs):
        review = get_object_or_404(Review, pk=pk)

        if not request.user.is_staff and review.author_id != request.user.id:
            return Response(
                {'detail': 'You can only delete your own reviews.'},
                status=status.HTTP_403_FORBIDDEN
            )

        try:
            self.get_engine().reviews.remove(review.pk)
        except BookingError as e:
            return engine_error_response(e, request)

        return Response(status=status.HTTP_204_NO_CONTENT)


class ReviewResponseView(EngineMixin, APIView):
    """
    POST /api/reviews/<id>/response/ with {"text": "..."}; equipment owner only.
    """
    permission_classes = [IsAuthenticated]

    def post(self, request, pk, *args, **kwargs):
        serializer = OwnerResponseSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        try:
            review = self.get_engine().reviews.respond(
                pk, request.user.id, serializer.validated_data['text']
            )
        except BookingError as e:
            return engine_error_response(e, request)

        return Response(ReviewSerializer(review).data, status=status.HTTP_200_OK)
