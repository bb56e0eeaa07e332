"""
URL configuration for the equipment_rental project.
"""
from django.contrib import admin
from django.urls import path
from rest_framework_simplejwt.views import TokenRefreshView, TokenVerifyView

from core.views import (
    CategoryDetailView,
    CategoryListCreateView,
    EmailTokenObtainPairView,
    EquipmentAvailabilityView,
    EquipmentCalendarView,
    EquipmentDetailView,
    EquipmentListCreateView,
    EquipmentReviewsView,
    OrganizationRegistrationView,
    OrganizationReviewsView,
    ReservationCancelView,
    ReservationCompleteView,
    ReservationConfirmView,
    ReservationDetailView,
    ReservationListCreateView,
    ReservationPaymentView,
    ReservationStatusView,
    ReviewCreateView,
    ReviewDetailView,
    ReviewResponseView,
)


urlpatterns = [
    path('admin/', admin.site.urls),

    # Authentication endpoints
    path('api/auth/register/', OrganizationRegistrationView.as_view(), name='organization_register'),

    # JWT Authentication endpoints
    path('api/token/', EmailTokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('api/token/refresh/', TokenRefreshView.as_view(), name='token_refresh'),
    path('api/token/verify/', TokenVerifyView.as_view(), name='token_verify'),

    # Category endpoints
    path('api/categories/', CategoryListCreateView.as_view(), name='category_list'),
    path('api/categories/<int:pk>/', CategoryDetailView.as_view(), name='category_detail'),

    # Equipment endpoints
    path('api/equipment/', EquipmentListCreateView.as_view(), name='equipment_list'),
    path('api/equipment/<int:pk>/', EquipmentDetailView.as_view(), name='equipment_detail'),
    path('api/equipment/<int:pk>/availability/', EquipmentAvailabilityView.as_view(),
         name='equipment_availability'),
    path('api/equipment/<int:pk>/calendar/', EquipmentCalendarView.as_view(), name='equipment_calendar'),
    path('api/equipment/<int:pk>/reviews/', EquipmentReviewsView.as_view(), name='equipment_reviews'),

    # Reservation endpoints
    path('api/reservations/', ReservationListCreateView.as_view(), name='reservation_list'),
    path('api/reservations/<int:pk>/', ReservationDetailView.as_view(), name='reservation_detail'),
    path('api/reservations/<int:pk>/confirm/', ReservationConfirmView.as_view(), name='reservation_confirm'),
    path('api/reservations/<int:pk>/cancel/', ReservationCancelView.as_view(), name='reservation_cancel'),
    path('api/reservations/<int:pk>/complete/', ReservationCompleteView.as_view(), name='reservation_complete'),
    path('api/reservations/<int:pk>/status/', ReservationStatusView.as_view(), name='reservation_status'),
    path('api/reservations/<int:pk>/payment/', ReservationPaymentView.as_view(), name='reservation_payment'),

    # Review endpoints
    path('api/reviews/', ReviewCreateView.as_view(), name='review_create'),
    path('api/reviews/<int:pk>/', ReviewDetailView.as_view(), name='review_detail'),
    path('api/reviews/<int:pk>/response/', ReviewResponseView.as_view(), name='review_response'),

    # Organization review endpoints
    path('api/organizations/<int:pk>/reviews/received/',
         OrganizationReviewsView.as_view(direction='received'), name='organization_reviews_received'),
    path('api/organizations/<int:pk>/reviews/given/',
         OrganizationReviewsView.as_view(direction='given'), name='organization_reviews_given'),
]
