"""
Serializers for accounts, equipment, reservations and reviews.

Serializers validate request shape only. Booking rules (overlap, lifecycle,
review eligibility) are enforced by the engine and reported as BookingError.
"""

from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import serializers
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer

from .models import (
    Category,
    Equipment,
    FederatedAccount,
    LocalAccount,
    Organization,
    Reservation,
    Review,
)

User = get_user_model()


class EmailTokenObtainPairSerializer(TokenObtainPairSerializer):
    """
    Obtain a JWT pair with email and password instead of username.
    """
    username_field = 'email'

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        if 'username' in self.fields:
            del self.fields['username']
        if 'email' not in self.fields:
            self.fields['email'] = serializers.EmailField()


class OrganizationRegistrationSerializer(serializers.ModelSerializer):
    """
    Registration of a local or federated organization.

    Fields:
    - email: Required, unique
    - account_kind: 'local' (default) or 'federated'
    - password, confirm_password: Required for local accounts only
    - external_id: Required for federated accounts only
    """

    password = serializers.CharField(
        write_only=True,
        required=False,
        allow_blank=True,
        style={'input_type': 'password'}
    )
    confirm_password = serializers.CharField(
        write_only=True,
        required=False,
        allow_blank=True,
        style={'input_type': 'password'}
    )
    external_id = serializers.CharField(
        required=False,
        allow_blank=True,
        max_length=255
    )

    class Meta:
        model = User
        fields = ['id', 'email', 'name', 'phone_number', 'description', 'account_kind',
                  'external_id', 'password', 'confirm_password', 'is_verified', 'created_at']
        read_only_fields = ['id', 'is_verified', 'created_at']
        extra_kwargs = {
            'email': {'required': True},
        }

    def validate_email(self, value):
        value = value.strip().lower()

        if User.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError(
                "An organization with that email already exists."
            )

        return value

    def validate_external_id(self, value):
        value = value.strip()
        if value and User.objects.filter(external_id=value).exists():
            raise serializers.ValidationError(
                "An organization with that external id already exists."
            )
        return value

    def validate(self, attrs):
        kind = attrs.get('account_kind', Organization.LOCAL)
        password = attrs.get('password')
        external_id = attrs.get('external_id')

        if kind == Organization.FEDERATED:
            if not external_id:
                raise serializers.ValidationError({
                    'external_id': 'Federated accounts require an external id.'
                })
            if password:
                raise serializers.ValidationError({
                    'password': 'Federated accounts sign in through their identity provider.'
                })
            return attrs

        if external_id:
            raise serializers.ValidationError({
                'external_id': 'Local accounts cannot have an external id.'
            })
        if not password:
            raise serializers.ValidationError({
                'password': 'This field is required.'
            })
        if password != attrs.get('confirm_password'):
            raise serializers.ValidationError({
                'confirm_password': 'Password confirmation does not match.'
            })

        try:
            validate_password(password)
        except DjangoValidationError as e:
            raise serializers.ValidationError({'password': list(e.messages)})

        return attrs

    def create(self, validated_data):
        validated_data.pop('confirm_password', None)
        kind = validated_data.pop('account_kind', Organization.LOCAL)
        email = validated_data.pop('email')

        if kind == Organization.FEDERATED:
            validated_data.pop('password', None)
            external_id = validated_data.pop('external_id')
            return FederatedAccount.objects.create_account(email, external_id, **validated_data)

        validated_data.pop('external_id', None)
        password = validated_data.pop('password')
        return LocalAccount.objects.create_account(email, password, **validated_data)


class OrganizationSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ['id', 'email', 'name', 'is_verified']
        read_only_fields = fields


# ============================================================================
# Equipment
# ============================================================================

class CategorySerializer(serializers.ModelSerializer):
    """
    Equipment category. Names are unique regardless of case.
    """

    equipment_count = serializers.SerializerMethodField()

    class Meta:
        model = Category
        fields = ['id', 'name', 'description', 'icon', 'is_active', 'equipment_count',
                  'created_at', 'updated_at']
        read_only_fields = ['id', 'equipment_count', 'created_at', 'updated_at']

    def get_equipment_count(self, obj):
        return obj.equipment.filter(is_active=True).count()

    def validate_name(self, value):
        value = value.strip()
        if len(value) < 2:
            raise serializers.ValidationError("Category name must be at least 2 characters.")

        duplicate = Category.objects.filter(name__iexact=value)
        if self.instance is not None:
            duplicate = duplicate.exclude(pk=self.instance.pk)
        if duplicate.exists():
            raise serializers.ValidationError("A category with that name already exists.")

        return value


class EquipmentSerializer(serializers.ModelSerializer):
    """
    Equipment listing.

    availability, rating_average and review_count are derived and read-only;
    owners change availability through the availability endpoint.
    """

    owner = OrganizationSummarySerializer(read_only=True)
    category = serializers.PrimaryKeyRelatedField(
        queryset=Category.objects.filter(is_active=True),
        required=False,
        allow_null=True
    )
    category_name = serializers.CharField(source='category.name', read_only=True, default=None)

    class Meta:
        model = Equipment
        fields = ['id', 'owner', 'category', 'category_name', 'name', 'description', 'daily_rate',
                  'deposit_amount', 'availability', 'rating_average', 'review_count', 'location',
                  'usage_conditions', 'is_active', 'created_at', 'updated_at']
        read_only_fields = ['id', 'owner', 'availability', 'rating_average', 'review_count',
                            'is_active', 'created_at', 'updated_at']

    def validate_name(self, value):
        if not value or not value.strip():
            raise serializers.ValidationError("Name cannot be empty.")
        return value.strip()

    def validate_daily_rate(self, value):
        if value < 0:
            raise serializers.ValidationError("Daily rate cannot be negative.")
        return value

    def validate_deposit_amount(self, value):
        if value < 0:
            raise serializers.ValidationError("Deposit amount cannot be negative.")
        return value


class AvailabilityUpdateSerializer(serializers.Serializer):
    availability = serializers.ChoiceField(choices=Equipment.MANUAL_AVAILABILITY)


# ============================================================================
# Reservations
# ============================================================================

class ReservationSerializer(serializers.ModelSerializer):
    renter = OrganizationSummarySerializer(read_only=True)
    equipment_name = serializers.CharField(source='equipment.name', read_only=True)
    has_review = serializers.SerializerMethodField()

    class Meta:
        model = Reservation
        fields = ['id', 'equipment', 'equipment_name', 'renter', 'start_at', 'end_at',
                  'status', 'total_due', 'deposit_amount', 'payment_status', 'deposit_paid',
                  'delivery_address', 'notes', 'special_conditions', 'confirmed_at',
                  'cancelled_at', 'cancellation_reason', 'has_review', 'created_at', 'updated_at']
        read_only_fields = fields

    def get_has_review(self, obj):
        return Review.objects.filter(reservation_id=obj.pk).exists()


class ReservationCreateSerializer(serializers.Serializer):
    """
    Reservation request.

    Request body: {
        "equipment": 1,
        "start_at": "2025-01-10T18:00:00Z",
        "end_at": "2025-01-12T09:00:00Z",
        "delivery_address": "...", "notes": "...", "special_conditions": "..."
    }
    """

    equipment = serializers.IntegerField(min_value=1)
    start_at = serializers.DateTimeField()
    end_at = serializers.DateTimeField()
    delivery_address = serializers.CharField(required=False, allow_blank=True, max_length=300)
    notes = serializers.CharField(required=False, allow_blank=True)
    special_conditions = serializers.CharField(required=False, allow_blank=True)


class ReservationCancelSerializer(serializers.Serializer):
    reason = serializers.CharField(
        allow_blank=False,
        trim_whitespace=True,
        error_messages={'blank': 'A cancellation reason is required.'}
    )


class ReservationStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Reservation.STATUS_CHOICES)
    reason = serializers.CharField(required=False, allow_blank=True)


class PaymentStatusSerializer(serializers.Serializer):
    payment_status = serializers.ChoiceField(choices=Reservation.PAYMENT_STATUS_CHOICES)
    deposit_paid = serializers.BooleanField(required=False)


class CalendarWindowSerializer(serializers.Serializer):
    """Optional [start, end) window of the calendar query string."""

    start = serializers.DateTimeField(required=False)
    end = serializers.DateTimeField(required=False)


class CalendarEntrySerializer(serializers.ModelSerializer):
    class Meta:
        model = Reservation
        fields = ['id', 'start_at', 'end_at', 'status']
        read_only_fields = fields


# ============================================================================
# Reviews
# ============================================================================

class ReviewSerializer(serializers.ModelSerializer):
    author = OrganizationSummarySerializer(read_only=True)
    equipment_name = serializers.CharField(source='equipment.name', read_only=True)

    class Meta:
        model = Review
        fields = ['id', 'equipment', 'equipment_name', 'reservation', 'author', 'rating', 'comment',
                  'owner_response', 'owner_response_at', 'is_verified', 'is_active',
                  'created_at', 'updated_at']
        read_only_fields = fields


class RatingField(serializers.Field):
    """
    Passes the rating through to the review gate.

    Digit strings from form posts become integers; anything else (4.5,
    "excellent") is left as sent and rejected by the gate as InvalidRating.
    """

    def to_internal_value(self, data):
        if isinstance(data, str) and data.strip().isdigit():
            return int(data.strip())
        return data

    def to_representation(self, value):
        return value


class ReviewCreateSerializer(serializers.Serializer):
    """
    Review request. The rating is checked by the review gate, after the
    reservation checks.
    """

    reservation = serializers.IntegerField(min_value=1)
    rating = RatingField()
    comment = serializers.CharField(required=False, allow_blank=True, trim_whitespace=True)


class OwnerResponseSerializer(serializers.Serializer):
    text = serializers.CharField(
        allow_blank=False,
        max_length=1000,
        error_messages={'blank': 'Response text is required.'}
    )
