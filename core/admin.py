"""
Django admin configuration for organizations, equipment, reservations and reviews.

Derived equipment fields are read-only here; admin actions that change
reservations or reviews go through the booking engine so aggregates stay
consistent.
"""

from django.contrib import admin, messages
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.utils.translation import gettext_lazy as _

from .engine import BookingEngine
from .exceptions import BookingError
from .models import Category, Equipment, Organization, Reservation, Review


@admin.register(Organization)
class OrganizationAdmin(BaseUserAdmin):
    list_display = [
        'email',
        'name',
        'account_kind',
        'is_verified',
        'is_staff',
        'is_active',
        'created_at',
    ]

    list_filter = [
        'account_kind',
        'is_verified',
        'is_staff',
        'is_active',
    ]

    search_fields = ['email', 'username', 'name', 'external_id']

    ordering = ['-created_at']

    fieldsets = (
        (None, {
            'fields': ('username', 'password')
        }),
        (_('Organization'), {
            'fields': ('email', 'name', 'phone_number', 'description', 'is_verified')
        }),
        (_('Authentication'), {
            'fields': ('account_kind', 'external_id')
        }),
        (_('Permissions'), {
            'fields': ('is_active', 'is_staff', 'is_superuser', 'groups', 'user_permissions'),
            'classes': ('collapse',),
        }),
        (_('Important Dates'), {
            'fields': ('last_login', 'date_joined', 'created_at', 'updated_at'),
            'classes': ('collapse',),
        }),
    )

    add_fieldsets = (
        (None, {
            'classes': ('wide',),
            'fields': ('username', 'email', 'name', 'password1', 'password2'),
        }),
    )

    readonly_fields = ['account_kind', 'created_at', 'updated_at', 'last_login', 'date_joined']

    list_per_page = 25


@admin.register(Equipment)
class EquipmentAdmin(admin.ModelAdmin):
    list_display = [
        'name',
        'owner',
        'daily_rate',
        'availability',
        'rating_average',
        'review_count',
        'is_active',
    ]
    list_filter = ['availability', 'is_active', 'category']
    search_fields = ['name', 'owner__email', 'location']
    readonly_fields = [
        'availability', 'rating_average', 'review_count', 'is_active', 'created_at', 'updated_at',
    ]
    actions = ['reconcile_aggregates', 'withdraw_equipment']

    @admin.action(description=_('Recompute availability and rating'))
    def reconcile_aggregates(self, request, queryset):
        maintainer = BookingEngine().maintainer
        fixed = 0
        for equipment in queryset:
            if maintainer.reconcile(equipment.pk):
                fixed += 1
        self.message_user(request, f"{fixed} equipment record(s) corrected.")

    @admin.action(description=_('Withdraw selected equipment'))
    def withdraw_equipment(self, request, queryset):
        availability = BookingEngine().availability
        withdrawn = 0
        for equipment in queryset.filter(is_active=True):
            try:
                availability.withdraw(equipment.pk)
                withdrawn += 1
            except BookingError as e:
                self.message_user(request, f"{equipment}: {e.detail}", level=messages.ERROR)
        self.message_user(request, f"{withdrawn} equipment record(s) withdrawn.")


@admin.register(Reservation)
class ReservationAdmin(admin.ModelAdmin):
    list_display = [
        'id',
        'equipment',
        'renter',
        'start_at',
        'end_at',
        'status',
        'payment_status',
        'total_due',
    ]
    list_filter = ['status', 'payment_status']
    search_fields = ['equipment__name', 'renter__email']
    date_hierarchy = 'start_at'
    readonly_fields = [
        'equipment', 'renter', 'start_at', 'end_at', 'status', 'total_due', 'deposit_amount',
        'confirmed_at', 'cancelled_at', 'cancellation_reason', 'created_at', 'updated_at',
    ]

    def has_add_permission(self, request):
        return False

    def delete_model(self, request, obj):
        try:
            BookingEngine().lifecycle.hard_delete(obj.pk)
        except BookingError as e:
            self.message_user(request, e.detail, level=messages.ERROR)

    def delete_queryset(self, request, queryset):
        lifecycle = BookingEngine().lifecycle
        for reservation in queryset:
            try:
                lifecycle.hard_delete(reservation.pk)
            except BookingError as e:
                self.message_user(request, f"#{reservation.pk}: {e.detail}", level=messages.ERROR)


@admin.register(Review)
class ReviewAdmin(admin.ModelAdmin):
    list_display = ['id', 'equipment', 'author', 'rating', 'is_verified', 'is_active', 'created_at']
    list_filter = ['rating', 'is_active', 'is_verified']
    search_fields = ['equipment__name', 'author__email', 'comment']
    # Moderation goes through the deactivate action so the rating is recomputed
    readonly_fields = [
        'equipment', 'author', 'reservation', 'rating', 'is_active', 'created_at', 'updated_at',
    ]
    actions = ['deactivate_reviews']

    def has_add_permission(self, request):
        return False

    @admin.action(description=_('Deactivate selected reviews'))
    def deactivate_reviews(self, request, queryset):
        reviews = BookingEngine().reviews
        for review in queryset:
            reviews.deactivate(review.pk)
        self.message_user(request, f"{queryset.count()} review(s) deactivated.")

    def delete_model(self, request, obj):
        BookingEngine().reviews.remove(obj.pk)

    def delete_queryset(self, request, queryset):
        reviews = BookingEngine().reviews
        for review in queryset:
            reviews.remove(review.pk)


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ['name', 'icon', 'is_active', 'created_at']
    list_filter = ['is_active']
    search_fields = ['name', 'description']
    readonly_fields = ['created_at', 'updated_at']
