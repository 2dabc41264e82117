from datetime import date, time
from decimal import Decimal
from unittest import mock

from django.contrib import admin
from django.contrib.auth.models import User
from django.db import IntegrityError, transaction
from django.db.models import F
from django.test import TestCase, Client, RequestFactory

from bookings.models import Booking
from bookings.services import BookingService
from moviebooking.exceptions import Conflict, InvalidState, NotFound, ValidationFailed
from .admin import MovieAdmin
from .inventory import InventoryStore
from .models import Movie, ShowTime
from .services import MovieService

def confirmed_booking(user, movie, seats, status=Booking.CONFIRMED):
    return Booking.objects.create(
        movie_name=movie.movie_name,
        theatre_name=movie.theatre_name,
        number_of_tickets=len(seats),
        seat_numbers=seats,
        user=user,
        user_login_id=user.username,
        status=status,
        total_price=Decimal('200.00') * len(seats),
    )

class MovieModelTests(TestCase):

    def test_new_movie_starts_fully_available(self):

        movie = Movie.objects.create(movie_name='Avengers', theatre_name='PVR', total_tickets=100)

        self.assertEqual(movie.available_tickets, 100)
        self.assertEqual(movie.status, Movie.BOOKABLE)
        self.assertEqual(movie.booked_tickets, 0)

    def test_status_follows_availability_on_save(self):

        movie = Movie.objects.create(movie_name='Avengers', theatre_name='PVR', total_tickets=10)
        movie.available_tickets = 0
        movie.save()

        self.assertEqual(movie.status, Movie.SOLD_OUT)
        self.assertTrue(movie.is_sold_out)

    def test_movie_theatre_pair_is_unique(self):

        Movie.objects.create(movie_name='Avengers', theatre_name='PVR', total_tickets=10)

        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                Movie.objects.create(movie_name='Avengers', theatre_name='PVR', total_tickets=20)

    def test_available_cannot_exceed_total(self):

        movie = Movie.objects.create(movie_name='Avengers', theatre_name='PVR', total_tickets=10)

        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                Movie.objects.filter(pk=movie.pk).update(available_tickets=F('total_tickets') + 1)

    def test_occupancy_percentage(self):

        movie = Movie.objects.create(movie_name='Avengers', theatre_name='PVR', total_tickets=8, available_tickets=6)

        self.assertEqual(movie.get_occupancy_percentage(), 25.0)

    def test_to_dict_with_show_times(self):

        movie = Movie.objects.create(movie_name='Avengers', theatre_name='PVR', total_tickets=10)
        ShowTime.objects.create(movie=movie, show_date=date(2025, 1, 1), show_time=time(18, 30), screen_number='2')

        data = movie.to_dict(include_show_times=True)

        self.assertEqual(data['available_tickets'], 10)
        self.assertEqual(data['show_times'][0]['show_time'], '18:30:00')

class InventoryStoreTests(TestCase):

    def setUp(self):
        self.user = User.objects.create_user(username='alice', password='testpass123')
        self.movie = Movie.objects.create(movie_name='Avengers', theatre_name='PVR', total_tickets=10)

    def test_get_unknown_pair(self):

        with self.assertRaises(NotFound):
            InventoryStore.get('Avengers', 'INOX')

    def test_lock_missing_ok(self):

        self.assertIsNone(InventoryStore.lock('Avengers', 'INOX', missing_ok=True))
        with self.assertRaises(NotFound):
            InventoryStore.lock('Avengers', 'INOX')

    def test_try_decrement(self):

        self.assertTrue(InventoryStore.try_decrement(self.movie, 4))

        self.assertEqual(self.movie.available_tickets, 6)
        self.assertEqual(self.movie.status, Movie.BOOKABLE)

    def test_try_decrement_to_zero_marks_sold_out(self):

        self.assertTrue(InventoryStore.try_decrement(self.movie, 10))

        self.movie.refresh_from_db()
        self.assertEqual(self.movie.available_tickets, 0)
        self.assertEqual(self.movie.status, Movie.SOLD_OUT)

    def test_try_decrement_refuses_overdraw(self):

        self.assertFalse(InventoryStore.try_decrement(self.movie, 11))

        self.movie.refresh_from_db()
        self.assertEqual(self.movie.available_tickets, 10)

    def test_recalculate_from_ledger(self):

        confirmed_booking(self.user, self.movie, ['A1', 'A2', 'A3'])
        confirmed_booking(self.user, self.movie, ['A4'], status=Booking.CANCELLED)

        movie = InventoryStore.recalculate('Avengers', 'PVR')

        self.assertEqual(movie.available_tickets, 7)
        self.assertEqual(InventoryStore.confirmed_ticket_total('Avengers', 'PVR'), 3)

    def test_recalculate_is_idempotent(self):

        confirmed_booking(self.user, self.movie, ['A1'])

        first = InventoryStore.recalculate('Avengers', 'PVR')
        second = InventoryStore.recalculate('Avengers', 'PVR')

        self.assertEqual(first.available_tickets, second.available_tickets)
        self.assertEqual(second.status, Movie.BOOKABLE)

    def test_recalculate_clamps_oversold_pair(self):

        for start in range(0, 12, 4):
            confirmed_booking(self.user, self.movie, [f'A{i}' for i in range(start, start + 4)])

        with self.assertLogs('movies.inventory', level='WARNING'):
            movie = InventoryStore.recalculate('Avengers', 'PVR')

        self.assertEqual(movie.available_tickets, 0)
        self.assertEqual(movie.status, Movie.SOLD_OUT)

    def test_recalculate_all_counts_changes(self):

        Movie.objects.create(movie_name='Dune', theatre_name='INOX', total_tickets=5)
        confirmed_booking(self.user, self.movie, ['A1', 'A2'])

        self.assertEqual(InventoryStore.recalculate_all(), 1)
        self.assertEqual(InventoryStore.recalculate_all(), 0)
        self.movie.refresh_from_db()
        self.assertEqual(self.movie.available_tickets, 8)

class MovieServiceTests(TestCase):

    def setUp(self):
        self.user = User.objects.create_user(username='alice', password='testpass123')

    def test_add_movie(self):

        movie = MovieService.add_movie(
            'Avengers', 'PVR', 120,
            show_times=[{'show_date': '2025-01-01', 'show_time': '18:30', 'screen_number': '1'}],
            genre='Action',
            ticket_price='250.00',
        )

        self.assertEqual(movie.available_tickets, 120)
        self.assertEqual(movie.ticket_price, Decimal('250.00'))
        self.assertEqual(movie.show_times.count(), 1)

    def test_add_duplicate_movie(self):

        MovieService.add_movie('Avengers', 'PVR', 100)

        with self.assertRaises(Conflict):
            MovieService.add_movie('Avengers', 'PVR', 50)

    def test_add_movie_requires_positive_capacity(self):

        with self.assertRaises(ValidationFailed):
            MovieService.add_movie('Avengers', 'PVR', 0)
        with self.assertRaises(ValidationFailed):
            MovieService.add_movie('Avengers', 'PVR', 'lots')

    def test_add_movie_requires_names(self):

        with self.assertRaises(ValidationFailed):
            MovieService.add_movie(' ', 'PVR', 10)

    def test_add_movie_with_bad_show_time(self):

        with self.assertRaises(ValidationFailed):
            MovieService.add_movie('Avengers', 'PVR', 10, show_times=[{'show_date': '2025-01-01'}])

        self.assertFalse(Movie.objects.exists())

    def test_search_and_listings(self):

        MovieService.add_movie('Avengers', 'PVR', 10)
        MovieService.add_movie('Avengers', 'INOX', 10)
        sold_out = MovieService.add_movie('Dune', 'PVR', 1)
        InventoryStore.try_decrement(sold_out, 1)

        self.assertEqual(MovieService.search_movies('aven').count(), 2)
        self.assertEqual(MovieService.search_movies('pvr').count(), 2)
        self.assertEqual(MovieService.search_movies('').count(), 0)
        self.assertEqual(MovieService.get_available_movies().count(), 2)
        self.assertEqual(list(MovieService.get_sold_out_movies()), [Movie.objects.get(movie_name='Dune')])
        self.assertEqual(MovieService.get_distinct_movie_names(), ['Avengers', 'Dune'])
        self.assertEqual(MovieService.get_movies_by_name('avengers').count(), 2)

    def test_movies_by_unknown_name(self):

        with self.assertRaises(NotFound):
            MovieService.get_movies_by_name('Nothing')

    def test_update_total_tickets_rebuilds_availability(self):

        movie = MovieService.add_movie('Avengers', 'PVR', 10)
        confirmed_booking(self.user, movie, ['A1', 'A2', 'A3'])
        InventoryStore.recalculate('Avengers', 'PVR')

        movie = MovieService.update_total_tickets('Avengers', 'PVR', 20)

        self.assertEqual(movie.total_tickets, 20)
        self.assertEqual(movie.available_tickets, 17)

    def test_shrinking_below_booked_clamps_to_zero(self):

        movie = MovieService.add_movie('Avengers', 'PVR', 10)
        confirmed_booking(self.user, movie, ['A1', 'A2', 'A3'])
        InventoryStore.recalculate('Avengers', 'PVR')

        movie = MovieService.update_total_tickets('Avengers', 'PVR', 2)

        self.assertEqual(movie.available_tickets, 0)
        self.assertEqual(movie.status, Movie.SOLD_OUT)

    def test_update_total_tickets_rejects_zero(self):

        MovieService.add_movie('Avengers', 'PVR', 10)

        with self.assertRaises(ValidationFailed):
            MovieService.update_total_tickets('Avengers', 'PVR', 0)

    def test_delete_movie_with_confirmed_bookings(self):

        movie = MovieService.add_movie('Avengers', 'PVR', 10)
        confirmed_booking(self.user, movie, ['A1'])

        with self.assertRaises(InvalidState):
            MovieService.delete_movie('Avengers', 'PVR')

    def test_delete_movie(self):

        MovieService.add_movie('Avengers', 'PVR', 10)

        MovieService.delete_movie('Avengers', 'PVR')

        self.assertFalse(Movie.objects.exists())

    def test_movie_statistics(self):

        first = MovieService.add_movie('Avengers', 'PVR', 10)
        MovieService.add_movie('Avengers', 'INOX', 20)
        InventoryStore.try_decrement(first, 4)

        stats = MovieService.get_movie_statistics()

        self.assertEqual(stats, [{
            'movie_name': 'Avengers',
            'total_theatres': 2,
            'total_tickets': 30,
            'available_tickets': 26,
            'booked_tickets': 4,
        }])

class MovieAPITests(TestCase):

    def setUp(self):
        self.client = Client()
        MovieService.add_movie('Avengers', 'PVR', 10)
        MovieService.add_movie('Dune', 'INOX', 5)

    def test_movie_list(self):

        response = self.client.get('/api/movies/')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['count'], 2)

    def test_movie_search(self):

        response = self.client.get('/api/movies/', {'q': 'dune'})

        self.assertEqual([m['movie_name'] for m in response.json()['data']], ['Dune'])

    def test_movie_names(self):

        response = self.client.get('/api/movies/names/')

        self.assertEqual(response.json()['data'], ['Avengers', 'Dune'])

    def test_movie_detail(self):

        response = self.client.get('/api/movies/Avengers/PVR/')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['data']['available_tickets'], 10)
        self.assertEqual(response.json()['data']['show_times'], [])

    def test_unknown_movie_returns_json_404(self):

        response = self.client.get('/api/movies/Avengers/Nowhere/')

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()['error'], 'NOT_FOUND')

    def test_post_not_allowed(self):

        response = self.client.post('/api/movies/')

        self.assertEqual(response.status_code, 405)

class MovieAdminTests(TestCase):

    def setUp(self):
        self.user = User.objects.create_user(username='alice', password='testpass123')
        self.staff = User.objects.create_superuser(username='root', email='root@example.com', password='testpass123')
        Movie.objects.create(movie_name='Avengers', theatre_name='PVR', total_tickets=100)

        self.model_admin = MovieAdmin(Movie, admin.site)
        self.request = RequestFactory().post('/admin/movies/movie/')
        self.request.user = self.staff

    def save_from_admin(self, movie, changed_data):
        form = mock.Mock(changed_data=changed_data)
        self.model_admin.save_model(self.request, movie, form, True)

    def test_detail_edit_keeps_bookings_made_since_load(self):

        loaded = Movie.objects.get(movie_name='Avengers', theatre_name='PVR')
        BookingService.book_tickets('Avengers', 'PVR', 2, ['A1', 'A2'], self.user)

        loaded.ticket_price = Decimal('300.00')
        self.save_from_admin(loaded, ['ticket_price'])

        movie = Movie.objects.get(pk=loaded.pk)
        self.assertEqual(movie.ticket_price, Decimal('300.00'))
        self.assertEqual(movie.available_tickets, 98)
        self.assertEqual(loaded.available_tickets, 98)

    def test_detail_edit_repairs_drifted_counter(self):

        confirmed_booking(self.user, Movie.objects.get(movie_name='Avengers'), ['A1', 'A2', 'A3'])
        loaded = Movie.objects.get(movie_name='Avengers', theatre_name='PVR')

        loaded.genre = 'Action'
        self.save_from_admin(loaded, ['genre'])

        self.assertEqual(Movie.objects.get(pk=loaded.pk).available_tickets, 97)

    def test_capacity_edit_uses_ledger(self):

        loaded = Movie.objects.get(movie_name='Avengers', theatre_name='PVR')
        BookingService.book_tickets('Avengers', 'PVR', 2, ['A1', 'A2'], self.user)

        loaded.total_tickets = 120
        self.save_from_admin(loaded, ['total_tickets'])

        movie = Movie.objects.get(pk=loaded.pk)
        self.assertEqual(movie.total_tickets, 120)
        self.assertEqual(movie.available_tickets, 118)

    def test_capacity_below_booked_sells_out(self):

        BookingService.book_tickets('Avengers', 'PVR', 3, ['A1', 'A2', 'A3'], self.user)
        loaded = Movie.objects.get(movie_name='Avengers', theatre_name='PVR')

        loaded.total_tickets = 2
        self.save_from_admin(loaded, ['total_tickets'])

        movie = Movie.objects.get(pk=loaded.pk)
        self.assertEqual(movie.available_tickets, 0)
        self.assertEqual(movie.status, Movie.SOLD_OUT)

    def test_pair_names_read_only_on_change(self):

        movie = Movie.objects.get(movie_name='Avengers')

        self.assertIn('movie_name', self.model_admin.get_readonly_fields(self.request, movie))
        self.assertNotIn('movie_name', self.model_admin.get_readonly_fields(self.request))
