import json
from datetime import timedelta
from decimal import Decimal

from django.contrib.auth.models import User
from django.core.cache import cache
from django.test import TestCase, Client
from django.utils import timezone

from bookings.models import Booking
from bookings.services import BookingService, CancellationService
from movies.models import Movie
from movies.services import MovieService

class AdminAccessTests(TestCase):

    def setUp(self):
        cache.clear()
        User.objects.create_user(username='alice', password='testpass123')
        self.client = Client()

    def test_anonymous_redirected_to_login(self):

        response = self.client.get('/custom-admin/api/stats/')

        self.assertEqual(response.status_code, 302)

    def test_regular_user_forbidden(self):

        self.client.login(username='alice', password='testpass123')

        response = self.client.get('/custom-admin/api/stats/')

        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()['error'], 'FORBIDDEN')

    def test_regular_user_cannot_add_movie(self):

        self.client.login(username='alice', password='testpass123')

        response = self.client.post(
            '/custom-admin/api/movies/',
            data=json.dumps({'movie_name': 'Avengers', 'theatre_name': 'PVR', 'total_tickets': 10}),
            content_type='application/json',
        )

        self.assertEqual(response.status_code, 403)
        self.assertFalse(Movie.objects.exists())

class AdminAPITests(TestCase):

    def setUp(self):
        cache.clear()
        self.alice = User.objects.create_user(username='alice', password='testpass123')
        User.objects.create_user(username='boxoffice', password='testpass123', is_staff=True)

        self.client = Client()
        self.client.login(username='boxoffice', password='testpass123')

        MovieService.add_movie('Avengers', 'PVR', 10, ticket_price=Decimal('150.00'))
        self.booking = BookingService.book_tickets('Avengers', 'PVR', 2, ['A1', 'A2'], self.alice)

    def send_json(self, method, url, data=None):
        return getattr(self.client, method)(url, data=json.dumps(data or {}), content_type='application/json')

    def test_stats(self):

        response = self.client.get('/custom-admin/api/stats/')

        data = response.json()['data']
        self.assertEqual(response.status_code, 200)
        self.assertEqual(data['by_movie'][0]['tickets_sold'], 2)
        self.assertEqual(data['by_user'][0]['user_login_id'], 'alice')
        self.assertEqual(len(data['top_movies']), 1)

    def test_movie_stats(self):

        response = self.client.get('/custom-admin/api/stats/movies/')

        self.assertEqual(response.json()['data'][0]['booked_tickets'], 2)

    def test_user_summary(self):

        response = self.client.get('/custom-admin/api/stats/users/alice/')

        self.assertEqual(response.json()['data']['total_tickets'], 2)

    def test_user_summary_unknown_user(self):

        response = self.client.get('/custom-admin/api/stats/users/ghost/')

        self.assertEqual(response.status_code, 404)

    def test_recent_bookings(self):

        response = self.client.get('/custom-admin/api/bookings/recent/', {'days': 1})

        self.assertEqual(response.json()['count'], 1)

    def test_recent_bookings_bad_days(self):

        response = self.client.get('/custom-admin/api/bookings/recent/', {'days': 'week'})

        self.assertEqual(response.status_code, 400)

    def test_bookings_for_pair(self):

        response = self.client.get('/custom-admin/api/bookings/Avengers/PVR/')

        data = response.json()
        self.assertEqual(data['count'], 1)
        self.assertEqual(data['booked_tickets'], 2)
        self.assertEqual(data['data'][0]['booking_reference'], self.booking.booking_reference)

    def test_recalculate_pair(self):

        Movie.objects.filter(movie_name='Avengers').update(available_tickets=1)

        response = self.send_json('post', '/custom-admin/api/recalculate/', {
            'movie_name': 'Avengers',
            'theatre_name': 'PVR',
        })

        self.assertEqual(response.json()['data']['available_tickets'], 8)

    def test_recalculate_requires_both_names(self):

        response = self.send_json('post', '/custom-admin/api/recalculate/', {'movie_name': 'Avengers'})

        self.assertEqual(response.status_code, 400)

    def test_recalculate_all(self):

        Movie.objects.filter(movie_name='Avengers').update(available_tickets=1)

        response = self.send_json('post', '/custom-admin/api/recalculate/')

        self.assertEqual(response.json()['data']['records_corrected'], 1)

    def test_purge_cancelled(self):

        CancellationService.cancel_booking(self.booking.booking_reference, self.alice)
        Booking.objects.filter(pk=self.booking.pk).update(booked_at=timezone.now() - timedelta(days=3))

        response = self.send_json('post', '/custom-admin/api/purge-cancelled/', {'days': 2})

        self.assertEqual(response.json()['data']['purged'], 1)
        self.assertFalse(Booking.objects.exists())

    def test_purge_rejects_negative_days(self):

        response = self.send_json('post', '/custom-admin/api/purge-cancelled/', {'days': -1})

        self.assertEqual(response.status_code, 400)

    def test_add_movie(self):

        response = self.send_json('post', '/custom-admin/api/movies/', {
            'movie_name': 'Dune',
            'theatre_name': 'INOX',
            'total_tickets': 40,
            'genre': 'Sci-Fi',
            'show_times': [{'show_date': '2025-03-01', 'show_time': '21:00'}],
        })

        self.assertEqual(response.status_code, 201)
        data = response.json()['data']
        self.assertEqual(data['available_tickets'], 40)
        self.assertEqual(len(data['show_times']), 1)

    def test_add_movie_missing_fields(self):

        response = self.send_json('post', '/custom-admin/api/movies/', {'movie_name': 'Dune'})

        self.assertEqual(response.status_code, 400)
        self.assertIn('total_tickets', response.json()['message'])

    def test_add_duplicate_movie(self):

        response = self.send_json('post', '/custom-admin/api/movies/', {
            'movie_name': 'Avengers',
            'theatre_name': 'PVR',
            'total_tickets': 40,
        })

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()['error'], 'CONFLICT')

    def test_update_total_tickets(self):

        response = self.send_json('put', '/custom-admin/api/movies/Avengers/PVR/tickets/', {'total_tickets': 20})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['data']['available_tickets'], 18)

    def test_delete_movie_with_bookings_refused(self):

        response = self.client.delete('/custom-admin/api/movies/Avengers/PVR/')

        self.assertEqual(response.status_code, 409)
        self.assertTrue(Movie.objects.filter(movie_name='Avengers').exists())

    def test_delete_movie(self):

        CancellationService.cancel_booking(self.booking.booking_reference, self.alice)

        response = self.client.delete('/custom-admin/api/movies/Avengers/PVR/')

        self.assertEqual(response.status_code, 200)
        self.assertFalse(Movie.objects.exists())
