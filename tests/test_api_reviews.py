"""
Test suite for the review endpoints.

Tests cover:
- Review submission and its error responses
- Equipment review listing with rating summary and sorting
- Owner responses
- Review deletion
- Reviews received and given by an organization
"""

from decimal import Decimal

import pytest
from rest_framework import status

from core.engine import BookingEngine
from core.models import Reservation, Review
from helpers import future, make_reservation

REVIEWS_URL = '/api/reviews/'


def review_url(pk, action=None):
    url = f'{REVIEWS_URL}{pk}/'
    return f'{url}{action}/' if action else url


def past_completed(equipment, renter, days_ago):
    return make_reservation(
        equipment, renter, future(days=-days_ago - 1), future(days=-days_ago),
        status=Reservation.COMPLETED,
    )


@pytest.fixture
def review(completed_reservation, renter):
    return BookingEngine(dispatcher=None).reviews.submit(
        completed_reservation.pk, renter.id, 4, 'Solid machine'
    )


@pytest.mark.django_db
class TestReviewSubmission:

    def test_submit_review(self, authenticate, completed_reservation, renter, equipment):
        response = authenticate(renter).post(REVIEWS_URL, {
            'reservation': completed_reservation.pk,
            'rating': 5,
            'comment': 'Arrived clean and on time.',
        }, format='json')

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['rating'] == 5
        assert response.data['is_verified'] is True
        assert response.data['author']['id'] == renter.id

        equipment.refresh_from_db()
        assert equipment.rating_average == Decimal('5.0')
        assert equipment.review_count == 1

    def test_rating_out_of_range(self, authenticate, completed_reservation, renter):
        response = authenticate(renter).post(REVIEWS_URL, {
            'reservation': completed_reservation.pk,
            'rating': 6,
        }, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['code'] == 'invalid_rating'

    def test_rating_not_a_number(self, authenticate, completed_reservation, renter):
        response = authenticate(renter).post(REVIEWS_URL, {
            'reservation': completed_reservation.pk,
            'rating': 'excellent',
        }, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['code'] == 'invalid_rating'

    def test_fractional_rating(self, authenticate, completed_reservation, renter):
        response = authenticate(renter).post(REVIEWS_URL, {
            'reservation': completed_reservation.pk,
            'rating': 4.5,
        }, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['code'] == 'invalid_rating'
        assert not Review.objects.exists()

    def test_rating_as_form_string(self, authenticate, completed_reservation, renter):
        response = authenticate(renter).post(REVIEWS_URL, {
            'reservation': completed_reservation.pk,
            'rating': '4',
        })

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['rating'] == 4

    def test_reservation_checked_before_rating(self, authenticate, equipment, renter):
        reservation = make_reservation(equipment, renter, future(days=2), future(days=3))

        response = authenticate(renter).post(REVIEWS_URL, {
            'reservation': reservation.pk,
            'rating': 4.5,
        }, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['code'] == 'reservation_not_eligible'

    def test_reservation_not_completed(self, authenticate, equipment, renter):
        reservation = make_reservation(equipment, renter, future(days=2), future(days=3))

        response = authenticate(renter).post(REVIEWS_URL, {
            'reservation': reservation.pk,
            'rating': 5,
        }, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['code'] == 'reservation_not_eligible'

    def test_only_renter_can_review(self, authenticate, completed_reservation, other_renter):
        response = authenticate(other_renter).post(REVIEWS_URL, {
            'reservation': completed_reservation.pk,
            'rating': 1,
        }, format='json')

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert not Review.objects.exists()

    def test_duplicate_review(self, authenticate, review, completed_reservation, renter):
        response = authenticate(renter).post(REVIEWS_URL, {
            'reservation': completed_reservation.pk,
            'rating': 2,
        }, format='json')

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data['code'] == 'duplicate_review'

    def test_unknown_reservation(self, authenticate, renter):
        response = authenticate(renter).post(REVIEWS_URL, {
            'reservation': 99999,
            'rating': 5,
        }, format='json')

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_requires_authentication(self, api_client, completed_reservation):
        response = api_client.post(REVIEWS_URL, {
            'reservation': completed_reservation.pk,
            'rating': 5,
        }, format='json')

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_reservation_shows_review(self, authenticate, review, completed_reservation, renter):
        response = authenticate(renter).get(f'/api/reservations/{completed_reservation.pk}/')

        assert response.data['has_review'] is True


@pytest.mark.django_db
class TestEquipmentReviews:

    def test_listing_with_summary(self, api_client, equipment, renter):
        engine = BookingEngine(dispatcher=None)
        for days_ago, rating in ((20, 5), (15, 2), (10, 4)):
            reservation = past_completed(equipment, renter, days_ago)
            engine.reviews.submit(reservation.pk, renter.id, rating)

        response = api_client.get(f'/api/equipment/{equipment.id}/reviews/', {'sort': 'rating_high'})

        assert response.status_code == status.HTTP_200_OK
        assert response.data['summary']['average'] == '3.7'
        assert response.data['summary']['count'] == 3
        assert response.data['summary']['distribution']['5'] == 1
        assert response.data['summary']['distribution']['3'] == 0
        ratings = [r['rating'] for r in response.data['reviews']['results']]
        assert ratings == [5, 4, 2]

    def test_inactive_reviews_hidden(self, api_client, equipment, review):
        BookingEngine(dispatcher=None).reviews.deactivate(review.pk)

        response = api_client.get(f'/api/equipment/{equipment.id}/reviews/')

        assert response.data['summary']['count'] == 0
        assert response.data['reviews']['results'] == []

    def test_unknown_equipment(self, api_client, db):
        response = api_client.get('/api/equipment/99999/reviews/')

        assert response.status_code == status.HTTP_404_NOT_FOUND


@pytest.mark.django_db
class TestReviewDetail:

    def test_public_detail(self, api_client, review):
        response = api_client.get(review_url(review.pk))

        assert response.status_code == status.HTTP_200_OK
        assert response.data['comment'] == 'Solid machine'

    def test_owner_responds(self, authenticate, review, owner):
        response = authenticate(owner).post(
            review_url(review.pk, 'response'), {'text': 'Thanks, come back soon!'}, format='json'
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data['owner_response'] == 'Thanks, come back soon!'
        assert response.data['owner_response_at'] is not None

    def test_renter_cannot_respond(self, authenticate, review, renter):
        response = authenticate(renter).post(
            review_url(review.pk, 'response'), {'text': 'Me again'}, format='json'
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_author_deletes_review(self, authenticate, review, renter, equipment):
        response = authenticate(renter).delete(review_url(review.pk))

        assert response.status_code == status.HTTP_204_NO_CONTENT
        assert not Review.objects.filter(pk=review.pk).exists()
        equipment.refresh_from_db()
        assert equipment.review_count == 0
        assert equipment.rating_average == Decimal('0.0')

    def test_other_organization_cannot_delete(self, authenticate, review, owner):
        response = authenticate(owner).delete(review_url(review.pk))

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert Review.objects.filter(pk=review.pk).exists()

    def test_staff_deletes_review(self, authenticate, review, staff):
        response = authenticate(staff).delete(review_url(review.pk))

        assert response.status_code == status.HTTP_204_NO_CONTENT


@pytest.mark.django_db
class TestOrganizationReviews:

    @pytest.fixture
    def reviews(self, equipment, other_equipment, renter, other_renter):
        engine = BookingEngine(dispatcher=None)
        first = engine.reviews.submit(past_completed(equipment, renter, 20).pk, renter.id, 5)
        second = engine.reviews.submit(
            past_completed(other_equipment, other_renter, 10).pk, other_renter.id, 3
        )
        hidden = engine.reviews.submit(past_completed(equipment, renter, 5).pk, renter.id, 1)
        engine.reviews.deactivate(hidden.pk)
        return first, second

    def test_received_reviews(self, api_client, owner, reviews):
        first, second = reviews

        response = api_client.get(f'/api/organizations/{owner.id}/reviews/received/')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['count'] == 2
        assert [r['id'] for r in response.data['results']] == [second.pk, first.pk]
        assert response.data['results'][0]['equipment_name'] == 'Scissor Lift'

    def test_given_reviews(self, api_client, renter, reviews):
        first, _ = reviews

        response = api_client.get(f'/api/organizations/{renter.id}/reviews/given/')

        assert response.status_code == status.HTTP_200_OK
        assert [r['id'] for r in response.data['results']] == [first.pk]

    def test_owner_has_given_none(self, api_client, owner, reviews):
        response = api_client.get(f'/api/organizations/{owner.id}/reviews/given/')

        assert response.data['count'] == 0

    def test_unknown_organization(self, api_client, db):
        response = api_client.get('/api/organizations/99999/reviews/received/')

        assert response.status_code == status.HTTP_404_NOT_FOUND
