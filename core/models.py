"""
Models for the equipment rental platform.

Organizations list equipment, book each other's equipment through
reservations and review the reservations once they are completed.
"""

from decimal import Decimal

from django.contrib.auth.models import AbstractUser, UserManager
from django.core.exceptions import ValidationError
from django.core.validators import MaxLengthValidator, MaxValueValidator, MinValueValidator
from django.db import models
from django.utils.translation import gettext_lazy as _

from .time_range import TimeRange
from .validators import validate_external_id, validate_non_negative_amount, validate_phone_number


# ============================================================================
# Organizations
# ============================================================================

class Organization(AbstractUser):
    """
    Platform account. Every participant (owner or renter) is an organization.

    Accounts come in two kinds:
    - local: signs in with email and password
    - federated: signs in through an identity provider, identified by external_id

    The kind decides which credential rules apply; see LocalAccount and
    FederatedAccount.
    """

    LOCAL = 'local'
    FEDERATED = 'federated'

    ACCOUNT_KIND_CHOICES = [
        (LOCAL, 'Local'),
        (FEDERATED, 'Federated'),
    ]

    email = models.EmailField(
        _('email address'),
        unique=True,
        blank=False,
        null=False,
        error_messages={
            'unique': _('An organization with that email already exists.'),
        },
        help_text=_('Required. Used as the login identifier.')
    )

    name = models.CharField(
        _('name'),
        max_length=200,
        blank=True,
        default='',
        help_text=_('Display name of the organization.')
    )

    phone_number = models.CharField(
        _('phone number'),
        max_length=20,
        blank=True,
        default='',
        validators=[validate_phone_number],
        help_text=_('Optional. Enter phone number in international format.')
    )

    description = models.TextField(
        _('description'),
        blank=True,
        default='',
        help_text=_('Short presentation of the organization.')
    )

    account_kind = models.CharField(
        _('account kind'),
        max_length=10,
        choices=ACCOUNT_KIND_CHOICES,
        default=LOCAL,
        help_text=_('How the organization authenticates.')
    )

    external_id = models.CharField(
        _('external id'),
        max_length=255,
        unique=True,
        blank=True,
        null=True,
        validators=[validate_external_id],
        help_text=_('Subject identifier at the identity provider (federated accounts only).')
    )

    is_verified = models.BooleanField(
        _('verified status'),
        default=False,
        help_text=_('Indicates whether the organization has been verified.')
    )

    created_at = models.DateTimeField(
        _('created at'),
        auto_now_add=True,
        help_text=_('Timestamp when the account was created.')
    )

    updated_at = models.DateTimeField(
        _('updated at'),
        auto_now=True,
        help_text=_('Timestamp when the account was last updated.')
    )

    class Meta:
        verbose_name = _('organization')
        verbose_name_plural = _('organizations')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['account_kind'], name='org_account_kind_idx'),
        ]

    def __str__(self):
        return self.email or self.username

    @property
    def display_name(self):
        return self.name or self.email or self.username

    def is_local(self):
        return self.account_kind == self.LOCAL

    def is_federated(self):
        return self.account_kind == self.FEDERATED

    def clean(self):
        """
        Validate credential rules for the account kind.

        Raises:
            ValidationError: If the credentials do not match the account kind
        """
        super().clean()

        if self.email:
            self.email = self.email.lower()

        if not self.email:
            raise ValidationError({
                'email': _('Email address is required.')
            })

        if self.external_id == '':
            self.external_id = None

        if self.is_federated():
            if not self.external_id:
                raise ValidationError({
                    'external_id': _('Federated accounts require an external id.')
                })
            if self.has_usable_password():
                raise ValidationError({
                    'password': _('Federated accounts cannot have a password.')
                })
        else:
            if self.external_id:
                raise ValidationError({
                    'external_id': _('Local accounts cannot have an external id.')
                })
            if not self.has_usable_password():
                raise ValidationError({
                    'password': _('Local accounts require a password.')
                })

    def save(self, *args, **kwargs):
        if self.email:
            self.email = self.email.lower()

        if self.external_id == '':
            self.external_id = None

        # Creation skips full_clean so duplicate emails surface as IntegrityError
        if self.pk is not None:
            self.full_clean()

        super().save(*args, **kwargs)


class LocalAccountManager(UserManager):
    """Manager for organizations that sign in with a password."""

    def get_queryset(self):
        return super().get_queryset().filter(account_kind=Organization.LOCAL)

    def create_account(self, email, password, **extra_fields):
        if not password:
            raise ValidationError({
                'password': _('Local accounts require a password.')
            })

        username = extra_fields.pop('username', None) or email
        extra_fields['account_kind'] = Organization.LOCAL
        extra_fields['external_id'] = None
        return self.create_user(username, email=email, password=password, **extra_fields)


class FederatedAccountManager(UserManager):
    """Manager for organizations authenticated by an identity provider."""

    def get_queryset(self):
        return super().get_queryset().filter(account_kind=Organization.FEDERATED)

    def create_account(self, email, external_id, **extra_fields):
        if not external_id or not str(external_id).strip():
            raise ValidationError({
                'external_id': _('Federated accounts require an external id.')
            })

        validate_external_id(external_id)
        extra_fields.pop('password', None)
        username = extra_fields.pop('username', None) or email
        extra_fields['account_kind'] = Organization.FEDERATED
        extra_fields['external_id'] = external_id
        # password=None leaves an unusable password
        return self.create_user(username, email=email, password=None, **extra_fields)


class LocalAccount(Organization):
    objects = LocalAccountManager()

    class Meta:
        proxy = True
        verbose_name = _('local account')
        verbose_name_plural = _('local accounts')


class FederatedAccount(Organization):
    objects = FederatedAccountManager()

    class Meta:
        proxy = True
        verbose_name = _('federated account')
        verbose_name_plural = _('federated accounts')


# ============================================================================
# Equipment
# ============================================================================

class Category(models.Model):
    """
    Kind of equipment (excavators, lifts, generators, ...).
    """

    name = models.CharField(
        _('name'),
        max_length=100,
        unique=True,
        error_messages={
            'unique': _('A category with that name already exists.'),
        },
        help_text=_('Category name, at least 2 characters')
    )

    description = models.TextField(
        _('description'),
        blank=True,
        default='',
        help_text=_('What the category covers')
    )

    icon = models.CharField(
        _('icon'),
        max_length=20,
        blank=True,
        default='',
        help_text=_('Short icon shown next to the category name')
    )

    is_active = models.BooleanField(
        _('active'),
        default=True,
        help_text=_('Inactive categories are hidden from the category list')
    )

    created_at = models.DateTimeField(
        _('created at'),
        auto_now_add=True,
        help_text=_('Timestamp when the category was created')
    )

    updated_at = models.DateTimeField(
        _('updated at'),
        auto_now=True,
        help_text=_('Timestamp when the category was last updated')
    )

    class Meta:
        verbose_name = _('category')
        verbose_name_plural = _('categories')
        ordering = ['name']

    def __str__(self):
        return self.name

    def clean(self):
        super().clean()

        name = (self.name or '').strip()
        if len(name) < 2:
            raise ValidationError({
                'name': _('Category name must be at least 2 characters.')
            })

        duplicate = Category.objects.filter(name__iexact=name).exclude(pk=self.pk)
        if duplicate.exists():
            raise ValidationError({
                'name': _('A category with that name already exists.')
            })
        self.name = name

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)


class Equipment(models.Model):
    """
    A rentable piece of equipment owned by an organization.

    availability, rating_average and review_count are derived from the
    equipment's reservations and reviews and are written by the aggregate
    maintainer only.
    """

    AVAILABLE = 'available'
    RESERVED = 'reserved'
    UNAVAILABLE = 'unavailable'
    UNDER_MAINTENANCE = 'under_maintenance'

    AVAILABILITY_CHOICES = [
        (AVAILABLE, 'Available'),
        (RESERVED, 'Reserved'),
        (UNAVAILABLE, 'Unavailable'),
        (UNDER_MAINTENANCE, 'Under maintenance'),
    ]

    # Values an owner may set by hand
    MANUAL_AVAILABILITY = (AVAILABLE, UNAVAILABLE, UNDER_MAINTENANCE)

    owner = models.ForeignKey(
        Organization,
        on_delete=models.CASCADE,
        related_name='equipment',
        help_text=_('Organization listing the equipment')
    )

    category = models.ForeignKey(
        Category,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='equipment',
        help_text=_('Kind of equipment')
    )

    name = models.CharField(
        _('name'),
        max_length=200,
        help_text=_('Name of the equipment')
    )

    description = models.TextField(
        _('description'),
        blank=True,
        default='',
        help_text=_('Detailed description of the equipment')
    )

    daily_rate = models.DecimalField(
        _('daily rate'),
        max_digits=10,
        decimal_places=2,
        validators=[validate_non_negative_amount],
        help_text=_('Price per calendar day')
    )

    deposit_amount = models.DecimalField(
        _('deposit amount'),
        max_digits=10,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[validate_non_negative_amount],
        help_text=_('Security deposit asked for each reservation')
    )

    availability = models.CharField(
        _('availability'),
        max_length=20,
        choices=AVAILABILITY_CHOICES,
        default=AVAILABLE,
        help_text=_('Current availability, derived from reservations')
    )

    rating_average = models.DecimalField(
        _('rating average'),
        max_digits=2,
        decimal_places=1,
        default=Decimal('0.0'),
        validators=[
            MinValueValidator(Decimal('0.0'), message=_('Rating cannot be negative.')),
            MaxValueValidator(Decimal('5.0'), message=_('Rating cannot exceed 5.0.'))
        ],
        help_text=_('Average rating from 0.0 to 5.0')
    )

    review_count = models.PositiveIntegerField(
        _('review count'),
        default=0,
        help_text=_('Number of active reviews')
    )

    location = models.CharField(
        _('location'),
        max_length=300,
        blank=True,
        default='',
        help_text=_('Where the equipment is kept')
    )

    usage_conditions = models.TextField(
        _('usage conditions'),
        blank=True,
        default='',
        help_text=_('Conditions the renter agrees to')
    )

    is_active = models.BooleanField(
        _('active'),
        default=True,
        help_text=_('Inactive equipment is hidden and cannot be booked')
    )

    created_at = models.DateTimeField(
        _('created at'),
        auto_now_add=True,
        help_text=_('Timestamp when the equipment was listed')
    )

    updated_at = models.DateTimeField(
        _('updated at'),
        auto_now=True,
        help_text=_('Timestamp when the equipment was last updated')
    )

    class Meta:
        verbose_name = _('equipment')
        verbose_name_plural = _('equipment')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['availability'], name='equipment_availability_idx'),
            models.Index(fields=['is_active'], name='equipment_active_idx'),
            models.Index(fields=['rating_average'], name='equipment_rating_idx'),
            models.Index(fields=['category', 'availability'], name='equipment_category_idx'),
        ]

    def __str__(self):
        return self.name

    def clean(self):
        """
        Validate model fields.

        Raises:
            ValidationError: If validation fails
        """
        super().clean()

        if not self.name or not self.name.strip():
            raise ValidationError({
                'name': _('Name cannot be empty.')
            })

        if self.rating_average is not None:
            if self.rating_average < 0 or self.rating_average > 5:
                raise ValidationError({
                    'rating_average': _('Rating average must be between 0.0 and 5.0.')
                })

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)


# ============================================================================
# Reservations
# ============================================================================

class Reservation(models.Model):
    """
    Time-bounded booking of one equipment by a renter organization.

    The period is half-open: [start_at, end_at). total_due and deposit_amount
    are stamped at creation and never change afterwards.
    """

    PENDING = 'pending'
    CONFIRMED = 'confirmed'
    ACTIVE = 'active'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'

    STATUS_CHOICES = [
        (PENDING, 'Pending'),
        (CONFIRMED, 'Confirmed'),
        (ACTIVE, 'Active'),
        (COMPLETED, 'Completed'),
        (CANCELLED, 'Cancelled'),
    ]

    # Valid state transitions
    TRANSITIONS = {
        PENDING: [CONFIRMED, CANCELLED],
        CONFIRMED: [ACTIVE, CANCELLED],
        ACTIVE: [COMPLETED, CANCELLED],
        COMPLETED: [],  # Terminal state
        CANCELLED: [],  # Terminal state
    }

    # Statuses whose period cannot overlap another reservation's
    BLOCKING_STATUSES = (PENDING, CONFIRMED, ACTIVE)

    # Statuses that mark the equipment as reserved
    HOLDING_STATUSES = (CONFIRMED, ACTIVE)

    TERMINAL_STATUSES = (COMPLETED, CANCELLED)

    PAYMENT_STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('paid', 'Paid'),
        ('refunded', 'Refunded'),
        ('partial', 'Partial'),
    ]

    equipment = models.ForeignKey(
        Equipment,
        on_delete=models.PROTECT,
        related_name='reservations',
        help_text=_('Equipment being reserved')
    )

    renter = models.ForeignKey(
        Organization,
        on_delete=models.PROTECT,
        related_name='reservations',
        help_text=_('Organization renting the equipment')
    )

    start_at = models.DateTimeField(
        _('start'),
        help_text=_('Start of the rental period (inclusive)')
    )

    end_at = models.DateTimeField(
        _('end'),
        help_text=_('End of the rental period (exclusive)')
    )

    status = models.CharField(
        _('status'),
        max_length=20,
        choices=STATUS_CHOICES,
        default=PENDING,
        help_text=_('Current reservation status')
    )

    total_due = models.DecimalField(
        _('total due'),
        max_digits=12,
        decimal_places=2,
        validators=[validate_non_negative_amount],
        help_text=_('Rental price computed at creation')
    )

    deposit_amount = models.DecimalField(
        _('deposit amount'),
        max_digits=10,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[validate_non_negative_amount],
        help_text=_('Deposit copied from the equipment at creation')
    )

    payment_status = models.CharField(
        _('payment status'),
        max_length=20,
        choices=PAYMENT_STATUS_CHOICES,
        default='pending',
        help_text=_('Payment progress, independent of the reservation status')
    )

    deposit_paid = models.BooleanField(
        _('deposit paid'),
        default=False,
        help_text=_('Whether the deposit has been received')
    )

    delivery_address = models.CharField(
        _('delivery address'),
        max_length=300,
        blank=True,
        default='',
        help_text=_('Where the equipment should be delivered')
    )

    notes = models.TextField(
        _('notes'),
        blank=True,
        default='',
        help_text=_('Free-form notes from the renter')
    )

    special_conditions = models.TextField(
        _('special conditions'),
        blank=True,
        default='',
        help_text=_('Conditions agreed for this reservation')
    )

    confirmed_at = models.DateTimeField(
        _('confirmed at'),
        null=True,
        blank=True,
        help_text=_('Timestamp when the owner confirmed the reservation')
    )

    cancelled_at = models.DateTimeField(
        _('cancelled at'),
        null=True,
        blank=True,
        help_text=_('Timestamp when the reservation was cancelled')
    )

    cancellation_reason = models.TextField(
        _('cancellation reason'),
        blank=True,
        default='',
        help_text=_('Why the reservation was cancelled')
    )

    created_at = models.DateTimeField(
        _('created at'),
        auto_now_add=True,
        help_text=_('Timestamp when the reservation was created')
    )

    updated_at = models.DateTimeField(
        _('updated at'),
        auto_now=True,
        help_text=_('Timestamp when the reservation was last updated')
    )

    class Meta:
        verbose_name = _('reservation')
        verbose_name_plural = _('reservations')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['equipment', 'status'], name='reservation_equip_status_idx'),
            models.Index(fields=['start_at', 'end_at'], name='reservation_period_idx'),
        ]

    def __str__(self):
        return f"Reservation #{self.pk} - {self.equipment} ({self.status})"

    @property
    def time_range(self):
        return TimeRange(self.start_at, self.end_at)

    def is_blocking(self):
        return self.status in self.BLOCKING_STATUSES

    def is_terminal(self):
        return self.status in self.TERMINAL_STATUSES

    def clean(self):
        """
        Validate the period, the stamped amounts and status transitions.

        Raises:
            ValidationError: If validation fails
        """
        super().clean()

        if self.start_at and self.end_at and self.end_at <= self.start_at:
            raise ValidationError({
                'end_at': _('End must be after start.')
            })

        if self.pk is not None:
            try:
                old_instance = Reservation.objects.get(pk=self.pk)
            except Reservation.DoesNotExist:
                return

            if (old_instance.total_due != self.total_due
                    or old_instance.deposit_amount != self.deposit_amount):
                raise ValidationError({
                    'total_due': _('Amounts are fixed when the reservation is created.')
                })

            if old_instance.status != self.status:
                if self.status not in self.TRANSITIONS.get(old_instance.status, []):
                    raise ValidationError({
                        'status': f'Cannot transition from {old_instance.status} to {self.status}.'
                    })

    def can_transition_to(self, new_status):
        """
        Check if the reservation can move to new_status.

        Valid transitions:
        - pending -> confirmed, cancelled
        - confirmed -> active, cancelled
        - active -> completed, cancelled
        - completed, cancelled -> (terminal)

        Returns:
            tuple: (is_valid: bool, error_message: str or None)
        """
        current_status = self.status

        if new_status not in dict(self.STATUS_CHOICES):
            return False, f'Unknown status: {new_status}.'

        if current_status == new_status:
            return False, f'Reservation is already {current_status}.'

        if current_status in self.TERMINAL_STATUSES:
            return False, f'Cannot modify a {current_status} reservation.'

        if new_status not in self.TRANSITIONS.get(current_status, []):
            return False, f'Invalid status transition from {current_status} to {new_status}.'

        return True, None

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)


# ============================================================================
# Reviews
# ============================================================================

class Review(models.Model):
    """
    Renter's review of a completed reservation. One review per reservation.

    Inactive (moderated) reviews are kept but do not count towards the
    equipment's rating.
    """

    equipment = models.ForeignKey(
        Equipment,
        on_delete=models.CASCADE,
        related_name='reviews',
        help_text=_('Equipment being reviewed')
    )

    author = models.ForeignKey(
        Organization,
        on_delete=models.PROTECT,
        related_name='reviews_written',
        help_text=_('Renter writing the review')
    )

    reservation = models.OneToOneField(
        Reservation,
        on_delete=models.CASCADE,
        related_name='review',
        help_text=_('Reservation being reviewed (one review per reservation)')
    )

    rating = models.PositiveSmallIntegerField(
        _('rating'),
        validators=[
            MinValueValidator(1, message=_('Rating must be at least 1.')),
            MaxValueValidator(5, message=_('Rating must be at most 5.'))
        ],
        help_text=_('Rating from 1 to 5 stars')
    )

    comment = models.TextField(
        _('comment'),
        blank=True,
        default='',
        validators=[MaxLengthValidator(1000)],
        help_text=_('Written feedback, up to 1000 characters')
    )

    owner_response = models.TextField(
        _('owner response'),
        blank=True,
        default='',
        validators=[MaxLengthValidator(1000)],
        help_text=_('Reply from the equipment owner')
    )

    owner_response_at = models.DateTimeField(
        _('owner response at'),
        null=True,
        blank=True,
        help_text=_('Timestamp of the owner reply')
    )

    is_verified = models.BooleanField(
        _('verified'),
        default=False,
        help_text=_('Review backed by a completed reservation')
    )

    is_active = models.BooleanField(
        _('active'),
        default=True,
        help_text=_('Inactive reviews are hidden and excluded from ratings')
    )

    created_at = models.DateTimeField(
        _('created at'),
        auto_now_add=True,
        help_text=_('Timestamp when the review was created')
    )

    updated_at = models.DateTimeField(
        _('updated at'),
        auto_now=True,
        help_text=_('Timestamp when the review was last updated')
    )

    class Meta:
        verbose_name = _('review')
        verbose_name_plural = _('reviews')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['equipment', 'is_active'], name='review_equip_active_idx'),
            models.Index(fields=['rating'], name='review_rating_idx'),
        ]

    def __str__(self):
        return f"Review by {self.author.email} for {self.equipment.name} - {self.rating}★"

    def clean(self):
        """
        Validate that the review matches its reservation.

        Raises:
            ValidationError: If validation fails
        """
        super().clean()

        if self.reservation_id and self.reservation:
            if self.reservation.status != Reservation.COMPLETED:
                raise ValidationError({
                    'reservation': _('Only completed reservations can be reviewed.')
                })

            if self.author_id and self.author_id != self.reservation.renter_id:
                raise ValidationError({
                    'author': _('Only the renter of the reservation can review it.')
                })

            if self.equipment_id and self.equipment_id != self.reservation.equipment_id:
                raise ValidationError({
                    'equipment': _('Review equipment must match the reservation.')
                })

    def save(self, *args, **kwargs):
        """
        Validate and save.

        Uniqueness is left to the database so that a concurrent duplicate
        surfaces as IntegrityError.
        """
        self.full_clean(validate_unique=False)
        super().save(*args, **kwargs)
