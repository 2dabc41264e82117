import json
import threading
from datetime import timedelta
from decimal import Decimal
from io import StringIO
from unittest import mock

from django.conf import settings
from django.contrib import admin
from django.contrib.auth.models import User
from django.core.cache import cache
from django.core.management import call_command
from django.core.management.base import CommandError
from django.db import DatabaseError, OperationalError, connection
from django.test import TestCase, TransactionTestCase, Client, RequestFactory
from django.utils import timezone

from moviebooking.exceptions import (
    BookingRejected, Forbidden, InvalidState, MovieBookingError, NotFound, ValidationFailed,
)
from movies.inventory import InventoryStore
from movies.models import Movie
from .admin import BookingAdmin
from .models import Booking, BookedSeat
from .services import BookingService, CancellationService
from .statistics import BookingStatistics
from .tasks import purge_cancelled_bookings, reconcile_inventory
from .utils import PriceCalculator, SeatManager

def seed_confirmed(user, movie, seats):
    booking = Booking.objects.create(
        movie_name=movie.movie_name,
        theatre_name=movie.theatre_name,
        number_of_tickets=len(seats),
        seat_numbers=seats,
        user=user,
        user_login_id=user.username,
        total_price=Decimal('250.00') * len(seats),
    )
    BookedSeat.objects.bulk_create([
        BookedSeat(booking=booking, movie_name=movie.movie_name, theatre_name=movie.theatre_name, seat_number=seat)
        for seat in seats
    ])
    return booking

def seed_sold(user, movie, count, prefix='S'):
    seats = [f"{prefix}{i}" for i in range(1, count + 1)]
    for start in range(0, count, 10):
        seed_confirmed(user, movie, seats[start:start + 10])
    return InventoryStore.recalculate(movie.movie_name, movie.theatre_name)

class BookingTestMixin:

    def setUp(self):
        cache.clear()

        self.alice = User.objects.create_user(username='alice', email='alice@example.com', password='testpass123')
        self.bob = User.objects.create_user(username='bob', email='bob@example.com', password='testpass123')
        self.admin = User.objects.create_user(
            username='boxoffice', email='admin@example.com', password='testpass123', is_staff=True
        )
        self.seeder = User.objects.create_user(username='seeder', password='testpass123')

        self.movie = Movie.objects.create(
            movie_name='Avengers',
            theatre_name='PVR',
            total_tickets=100,
            ticket_price=Decimal('250.00'),
        )
        self.movie = seed_sold(self.seeder, self.movie, 50)

    def book(self, seats, user=None, movie_name='Avengers', theatre_name='PVR'):
        return BookingService.book_tickets(movie_name, theatre_name, len(seats), seats, user or self.alice)

    def refresh_movie(self):
        self.movie.refresh_from_db()
        return self.movie

class BookingValidationTests(BookingTestMixin, TestCase):

    def assert_nothing_changed(self):
        self.assertEqual(Booking.objects.count(), 5)
        self.assertEqual(self.refresh_movie().available_tickets, 50)

    def test_seat_count_must_match_number_of_tickets(self):

        with self.assertRaises(ValidationFailed):
            BookingService.book_tickets('Avengers', 'PVR', 3, ['A1', 'A2'], self.alice)

        self.assert_nothing_changed()

    def test_duplicate_seat_in_request_rejected(self):

        with self.assertRaises(ValidationFailed) as ctx:
            BookingService.book_tickets('Avengers', 'PVR', 2, ['A1', 'A1'], self.alice)

        self.assertIn('A1', ctx.exception.message)
        self.assert_nothing_changed()

    def test_zero_tickets_rejected(self):

        with self.assertRaises(ValidationFailed):
            BookingService.book_tickets('Avengers', 'PVR', 0, [], self.alice)

        self.assert_nothing_changed()

    def test_more_than_ten_tickets_rejected(self):

        seats = [f"B{i}" for i in range(1, 12)]
        with self.assertRaises(ValidationFailed):
            BookingService.book_tickets('Avengers', 'PVR', 11, seats, self.alice)

        self.assert_nothing_changed()

    def test_ten_tickets_is_allowed(self):

        seats = [f"B{i}" for i in range(1, 11)]
        booking = BookingService.book_tickets('Avengers', 'PVR', 10, seats, self.alice)

        self.assertEqual(booking.number_of_tickets, 10)
        self.assertEqual(self.refresh_movie().available_tickets, 40)

    def test_blank_seat_identifier_rejected(self):

        with self.assertRaises(ValidationFailed):
            BookingService.book_tickets('Avengers', 'PVR', 2, ['A1', '  '], self.alice)

        self.assert_nothing_changed()

    def test_seats_must_be_a_list(self):

        with self.assertRaises(ValidationFailed):
            BookingService.book_tickets('Avengers', 'PVR', 1, 'A1', self.alice)

    def test_blank_movie_name_rejected(self):

        with self.assertRaises(ValidationFailed):
            BookingService.book_tickets('', 'PVR', 1, ['A1'], self.alice)

    def test_boolean_ticket_count_rejected(self):

        with self.assertRaises(ValidationFailed):
            BookingService.book_tickets('Avengers', 'PVR', True, ['A1'], self.alice)

    def test_validation_runs_before_identity_lookup(self):

        with self.assertRaises(ValidationFailed):
            BookingService.book_tickets('Avengers', 'PVR', 2, ['A1'], 'nobody')

class BookingEngineTests(BookingTestMixin, TestCase):

    def test_successful_booking_decrements_inventory(self):

        booking = self.book(['A1', 'A2'])

        self.assertEqual(self.refresh_movie().available_tickets, 48)
        self.assertEqual(self.movie.status, Movie.BOOKABLE)
        self.assertEqual(booking.status, Booking.CONFIRMED)
        self.assertEqual(set(booking.seat_numbers), {'A1', 'A2'})
        self.assertEqual(booking.user_login_id, 'alice')
        self.assertEqual(booking.user, self.alice)

    def test_booking_records_price_and_reference(self):

        booking = self.book(['A1', 'A2'])

        self.assertEqual(booking.total_price, Decimal('500.00'))
        self.assertRegex(booking.booking_reference, r'^MB-\d{14}-[0-9A-F]{10}$')

    def test_booking_references_are_unique(self):

        first = self.book(['A1'])
        second = self.book(['A2'])

        self.assertNotEqual(first.booking_reference, second.booking_reference)

    def test_booking_creates_seat_claims(self):

        booking = self.book(['A1', 'A2'])

        claims = BookedSeat.objects.filter(booking=booking).values_list('seat_number', flat=True)
        self.assertEqual(sorted(claims), ['A1', 'A2'])

    def test_seat_already_taken_rejected(self):

        self.book(['A1', 'A2'])

        with self.assertRaises(BookingRejected) as ctx:
            self.book(['A1', 'A3'], user=self.bob)

        self.assertIn('already taken', ctx.exception.message)
        self.assertEqual(self.refresh_movie().available_tickets, 48)
        self.assertEqual(Booking.objects.filter(user=self.bob).count(), 0)
        self.assertFalse(BookedSeat.objects.filter(seat_number='A3').exists())

    def test_insufficient_capacity_rejected(self):

        small = Movie.objects.create(movie_name='Dune', theatre_name='INOX', total_tickets=10)
        seed_sold(self.seeder, small, 9)

        with self.assertRaises(BookingRejected) as ctx:
            BookingService.book_tickets('Dune', 'INOX', 2, ['X1', 'X2'], self.alice)

        self.assertIn('Insufficient capacity', ctx.exception.message)
        small.refresh_from_db()
        self.assertEqual(small.available_tickets, 1)
        self.assertEqual(Booking.objects.filter(movie_name='Dune', user=self.alice).count(), 0)

    def test_last_ticket_marks_sold_out(self):

        small = Movie.objects.create(movie_name='Dune', theatre_name='INOX', total_tickets=10)
        seed_sold(self.seeder, small, 9)

        BookingService.book_tickets('Dune', 'INOX', 1, ['X1'], self.alice)

        small.refresh_from_db()
        self.assertEqual(small.available_tickets, 0)
        self.assertEqual(small.status, Movie.SOLD_OUT)

    def test_sold_out_movie_rejects_booking(self):

        small = Movie.objects.create(movie_name='Dune', theatre_name='INOX', total_tickets=10)
        seed_sold(self.seeder, small, 10)

        with self.assertRaises(BookingRejected):
            BookingService.book_tickets('Dune', 'INOX', 1, ['X1'], self.alice)

    def test_unknown_movie_not_found(self):

        with self.assertRaises(NotFound):
            BookingService.book_tickets('Avengers', 'IMAX', 1, ['A1'], self.alice)

    def test_unknown_user_not_found(self):

        with self.assertRaises(NotFound):
            BookingService.book_tickets('Avengers', 'PVR', 1, ['A1'], 'ghost')

        self.assertEqual(self.refresh_movie().available_tickets, 50)

    def test_booking_by_login_name(self):

        booking = BookingService.book_tickets('Avengers', 'PVR', 1, ['A1'], 'bob')

        self.assertEqual(booking.user, self.bob)

    def test_same_seat_allowed_for_other_theatre(self):

        Movie.objects.create(movie_name='Avengers', theatre_name='INOX', total_tickets=20)

        self.book(['A1'])
        booking = self.book(['A1'], user=self.bob, theatre_name='INOX')

        self.assertEqual(booking.theatre_name, 'INOX')

    def test_inventory_update_failure_rolls_back_booking(self):

        with mock.patch.object(InventoryStore, 'try_decrement', side_effect=DatabaseError('disk I/O error')):
            with self.assertRaises(BookingRejected) as ctx:
                self.book(['A1', 'A2'])

        self.assertIn('disk I/O error', ctx.exception.message)
        self.assertEqual(Booking.objects.filter(user=self.alice).count(), 0)
        self.assertFalse(BookedSeat.objects.filter(seat_number__in=['A1', 'A2']).exists())
        self.assertEqual(self.refresh_movie().available_tickets, 50)

    def test_inventory_update_failure_runs_compensation(self):

        with mock.patch.object(InventoryStore, 'try_decrement', return_value=False), \
                mock.patch.object(BookingService, 'compensate', wraps=BookingService.compensate) as compensate:
            with self.assertRaises(BookingRejected):
                self.book(['A1'])

        compensate.assert_called_once()
        self.assertEqual(Booking.objects.filter(user=self.alice).count(), 0)

    def test_failed_compensation_is_logged(self):

        booking = seed_confirmed(self.alice, self.movie, ['Z1'])

        with mock.patch.object(Booking.objects, 'filter', side_effect=DatabaseError('gone')), \
                self.assertLogs('bookings.services', level='ERROR') as logs:
            self.assertFalse(BookingService.compensate(booking))

        self.assertTrue(any('Compensation failed' in line for line in logs.output))

    def test_compensation_is_idempotent(self):

        booking = seed_confirmed(self.alice, self.movie, ['Z1'])

        self.assertTrue(BookingService.compensate(booking))
        self.assertTrue(BookingService.compensate(booking))
        self.assertFalse(Booking.objects.filter(pk=booking.pk).exists())

    def test_seat_claim_collision_reported_as_taken(self):

        seed_confirmed(self.bob, self.movie, ['A1'])

        with mock.patch.object(SeatManager, 'conflicting_seats', side_effect=[[], ['A1']]):
            with self.assertRaises(BookingRejected) as ctx:
                self.book(['A1'])

        self.assertIn('already taken', ctx.exception.message)
        self.assertEqual(Booking.objects.filter(user=self.alice).count(), 0)

    @mock.patch('bookings.services.time.sleep')
    def test_transient_storage_error_is_retried(self, sleep):

        real_lock = InventoryStore.lock
        calls = []

        def flaky_lock(*args, **kwargs):
            calls.append(args)
            if len(calls) == 1:
                raise OperationalError('database is locked')
            return real_lock(*args, **kwargs)

        with mock.patch.object(InventoryStore, 'lock', side_effect=flaky_lock):
            booking = self.book(['A1'])

        self.assertEqual(len(calls), 2)
        self.assertEqual(booking.status, Booking.CONFIRMED)
        self.assertEqual(self.refresh_movie().available_tickets, 49)
        sleep.assert_called_once()

    @mock.patch('bookings.services.time.sleep')
    def test_retries_are_bounded(self, sleep):

        with mock.patch.object(InventoryStore, 'lock', side_effect=OperationalError('database is locked')) as lock:
            with self.assertRaises(BookingRejected):
                self.book(['A1'])

        self.assertEqual(lock.call_count, settings.BOOKING_MAX_RETRIES)
        self.assertEqual(sleep.call_count, settings.BOOKING_MAX_RETRIES - 1)
        self.assertEqual(self.refresh_movie().available_tickets, 50)

class CancellationTests(BookingTestMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.booking = self.book(['A1', 'A2'])

    def test_owner_can_cancel(self):

        cancelled = CancellationService.cancel_booking(self.booking.booking_reference, self.alice)

        self.assertEqual(cancelled.status, Booking.CANCELLED)
        self.assertIsNotNone(cancelled.cancelled_at)
        self.assertEqual(self.refresh_movie().available_tickets, 50)

    def test_cancel_releases_seats(self):

        CancellationService.cancel_booking(self.booking.booking_reference, self.alice)

        self.assertFalse(BookedSeat.objects.filter(booking=self.booking).exists())
        rebooked = self.book(['A1'], user=self.bob)
        self.assertEqual(rebooked.seat_numbers, ['A1'])

    def test_cancelled_booking_is_kept_in_ledger(self):

        CancellationService.cancel_booking(self.booking.booking_reference, self.alice)

        self.assertTrue(Booking.objects.filter(pk=self.booking.pk, status=Booking.CANCELLED).exists())

    def test_other_user_cannot_cancel(self):

        with self.assertRaises(Forbidden):
            CancellationService.cancel_booking(self.booking.booking_reference, self.bob)

        self.booking.refresh_from_db()
        self.assertEqual(self.booking.status, Booking.CONFIRMED)
        self.assertEqual(self.refresh_movie().available_tickets, 48)

    def test_admin_can_cancel_any_booking(self):

        cancelled = CancellationService.cancel_booking(self.booking.booking_reference, self.admin)

        self.assertEqual(cancelled.status, Booking.CANCELLED)
        self.assertEqual(self.refresh_movie().available_tickets, 50)

    def test_superuser_counts_as_admin(self):

        root = User.objects.create_superuser(username='root', email='root@example.com', password='testpass123')

        cancelled = CancellationService.cancel_booking(self.booking.booking_reference, root)

        self.assertEqual(cancelled.status, Booking.CANCELLED)

    def test_already_cancelled_rejected(self):

        CancellationService.cancel_booking(self.booking.booking_reference, self.alice)

        with self.assertRaises(InvalidState):
            CancellationService.cancel_booking(self.booking.booking_reference, self.alice)

        self.assertEqual(self.refresh_movie().available_tickets, 50)

    def test_expired_booking_cannot_be_cancelled(self):

        Booking.objects.filter(pk=self.booking.pk).update(status=Booking.EXPIRED)

        with self.assertRaises(InvalidState):
            CancellationService.cancel_booking(self.booking.booking_reference, self.alice)

    def test_unknown_reference_not_found(self):

        with self.assertRaises(NotFound):
            CancellationService.cancel_booking('MB-00000000000000-0000000000', self.alice)

    def test_forbidden_checked_before_state(self):

        CancellationService.cancel_booking(self.booking.booking_reference, self.alice)

        with self.assertRaises(Forbidden):
            CancellationService.cancel_booking(self.booking.booking_reference, self.bob)

    def test_cancel_without_inventory_record(self):

        Movie.objects.filter(pk=self.movie.pk).delete()

        cancelled = CancellationService.cancel_booking(self.booking.booking_reference, self.alice)

        self.assertEqual(cancelled.status, Booking.CANCELLED)

    def test_cancel_then_recalculate_matches_never_booking(self):

        CancellationService.cancel_booking(self.booking.booking_reference, self.alice)
        movie = InventoryStore.recalculate('Avengers', 'PVR')

        self.assertEqual(movie.available_tickets, 50)
        self.assertEqual(movie.status, Movie.BOOKABLE)

    def test_cancel_reopens_sold_out_movie(self):

        small = Movie.objects.create(movie_name='Dune', theatre_name='INOX', total_tickets=10)
        seed_sold(self.seeder, small, 8)
        booking = BookingService.book_tickets('Dune', 'INOX', 2, ['X1', 'X2'], self.alice)
        small.refresh_from_db()
        self.assertEqual(small.status, Movie.SOLD_OUT)

        CancellationService.cancel_booking(booking.booking_reference, self.alice)

        small.refresh_from_db()
        self.assertEqual(small.available_tickets, 2)
        self.assertEqual(small.status, Movie.BOOKABLE)

class LedgerConsistencyTests(BookingTestMixin, TestCase):

    def assert_counter_matches_ledger(self):
        movie = self.refresh_movie()
        confirmed = sum(
            Booking.objects.filter(
                movie_name='Avengers', theatre_name='PVR', status=Booking.CONFIRMED
            ).values_list('number_of_tickets', flat=True)
        )
        self.assertEqual(movie.available_tickets, movie.total_tickets - confirmed)

    def test_counter_matches_ledger_after_mixed_operations(self):

        first = self.book(['A1', 'A2', 'A3'])
        self.assert_counter_matches_ledger()

        second = self.book(['B1'], user=self.bob)
        self.assert_counter_matches_ledger()

        with self.assertRaises(BookingRejected):
            self.book(['B1', 'B2'])
        self.assert_counter_matches_ledger()

        CancellationService.cancel_booking(first.booking_reference, self.alice)
        self.assert_counter_matches_ledger()

        self.book(['A1'], user=self.bob)
        CancellationService.cancel_booking(second.booking_reference, self.admin)
        self.assert_counter_matches_ledger()

    def test_confirmed_bookings_have_disjoint_seats(self):

        self.book(['A1', 'A2'])
        self.book(['A3'], user=self.bob)
        with self.assertRaises(BookingRejected):
            self.book(['A2', 'A4'], user=self.bob)

        seen = []
        for seats in Booking.objects.filter(status=Booking.CONFIRMED).values_list('seat_numbers', flat=True):
            seen.extend(seats)
        self.assertEqual(len(seen), len(set(seen)))

    def test_recalculate_repairs_drifted_counter(self):

        Movie.objects.filter(pk=self.movie.pk).update(available_tickets=7, status=Movie.BOOKABLE)

        movie = InventoryStore.recalculate('Avengers', 'PVR')

        self.assertEqual(movie.available_tickets, 50)

class SeatManagerTests(BookingTestMixin, TestCase):

    def test_held_seats_only_counts_confirmed(self):

        booking = self.book(['A1', 'A2'])
        self.book(['A3'], user=self.bob)
        CancellationService.cancel_booking(booking.booking_reference, self.alice)

        held = SeatManager.held_seats('Avengers', 'PVR')

        self.assertIn('A3', held)
        self.assertNotIn('A1', held)
        self.assertEqual(len(held), 51)

    def test_conflicting_seats_keeps_request_order(self):

        self.book(['A5', 'A1'])

        conflicts = SeatManager.conflicting_seats('Avengers', 'PVR', ['A9', 'A5', 'A1'])

        self.assertEqual(conflicts, ['A5', 'A1'])

    def test_seat_status(self):

        self.book(['A1'])

        status = SeatManager.get_seat_status('Avengers', 'PVR', ['A1', 'A2'])

        self.assertEqual(status['seats'], {'A1': 'booked', 'A2': 'available'})
        self.assertIn('S1', status['booked_seats'])

    def test_validate_request_strips_whitespace(self):

        cleaned = SeatManager.validate_request(' Avengers ', 'PVR', '2', [' A1', 'A2 '])

        self.assertEqual(cleaned, ('Avengers', 'PVR', 2, ['A1', 'A2']))

    def test_price_calculation(self):

        self.assertEqual(PriceCalculator.calculate_total(Decimal('250.00'), 3), Decimal('750.00'))
        self.assertEqual(PriceCalculator.calculate_total('199.995', 1), Decimal('200.00'))

class BookingQueryTests(BookingTestMixin, TestCase):

    def test_ticket_by_reference(self):

        booking = self.book(['A1'])

        self.assertEqual(BookingService.get_ticket_by_reference(booking.booking_reference), booking)

    def test_ticket_by_unknown_reference(self):

        with self.assertRaises(NotFound):
            BookingService.get_ticket_by_reference('missing')

    def test_ticket_visible_to_owner_and_admin_only(self):

        booking = self.book(['A1'])

        self.assertEqual(BookingService.get_ticket_for_user(booking.booking_reference, self.alice), booking)
        self.assertEqual(BookingService.get_ticket_for_user(booking.booking_reference, self.admin), booking)
        with self.assertRaises(Forbidden):
            BookingService.get_ticket_for_user(booking.booking_reference, self.bob)

    def test_user_history_by_id_or_login(self):

        first = self.book(['A1'])
        second = self.book(['A2'])
        Booking.objects.filter(pk=first.pk).update(booked_at=timezone.now() - timedelta(hours=1))

        by_login = list(BookingService.get_user_booking_history('alice'))
        by_id = list(BookingService.get_user_booking_history(str(self.alice.pk)))

        self.assertEqual(by_login, [second, first])
        self.assertEqual(by_id, by_login)

    def test_booked_tickets_exclude_cancelled(self):

        booking = self.book(['A1'])
        CancellationService.cancel_booking(booking.booking_reference, self.alice)

        booked = BookingService.get_booked_tickets('Avengers', 'PVR')

        self.assertNotIn(booking, booked)
        self.assertEqual(booked.count(), 5)

    def test_tickets_by_user(self):

        self.book(['A1'])
        self.book(['A2'], user=self.bob)

        self.assertEqual(BookingService.get_tickets_by_user('alice').count(), 1)
        self.assertEqual(BookingService.get_confirmed_tickets().count(), 7)
        self.assertEqual(BookingService.get_all_tickets().count(), 7)

class StatisticsTests(BookingTestMixin, TestCase):

    def setUp(self):
        super().setUp()
        Movie.objects.create(movie_name='Dune', theatre_name='PVR', total_tickets=20, ticket_price=Decimal('100.00'))
        self.book(['A1', 'A2'])
        self.book(['D1', 'D2', 'D3'], user=self.bob, movie_name='Dune')
        cancelled = self.book(['D4'], movie_name='Dune')
        CancellationService.cancel_booking(cancelled.booking_reference, self.alice)

    def test_by_movie(self):

        rows = {row['movie_name']: row for row in BookingStatistics.by_movie()}

        self.assertEqual(rows['Avengers']['tickets_sold'], 52)
        self.assertEqual(rows['Avengers']['booking_count'], 6)
        self.assertEqual(rows['Dune']['tickets_sold'], 3)
        self.assertEqual(rows['Dune']['revenue'], Decimal('300.00'))
        self.assertEqual(rows['Dune']['average_tickets'], 3.0)

    def test_by_theatre(self):

        rows = BookingStatistics.by_theatre()

        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]['theatre_name'], 'PVR')
        self.assertEqual(rows[0]['tickets_sold'], 55)

    def test_by_user(self):

        rows = {row['user_login_id']: row for row in BookingStatistics.by_user()}

        self.assertEqual(rows['alice']['tickets_sold'], 2)
        self.assertEqual(rows['bob']['tickets_sold'], 3)
        self.assertEqual(rows['seeder']['booking_count'], 5)

    def test_user_summary(self):

        summary = BookingStatistics.user_summary('alice')

        self.assertEqual(summary['total_bookings'], 2)
        self.assertEqual(summary['confirmed_bookings'], 1)
        self.assertEqual(summary['cancelled_bookings'], 1)
        self.assertEqual(summary['total_tickets'], 2)
        self.assertEqual(summary['total_spent'], Decimal('500.00'))

    def test_count_booked_tickets(self):

        self.assertEqual(BookingStatistics.count_booked_tickets('Dune', 'PVR'), 3)
        self.assertEqual(BookingStatistics.count_bookings('Dune', 'PVR'), 1)
        self.assertEqual(BookingStatistics.count_booked_tickets('Dune', 'INOX'), 0)

    def test_top_movies(self):

        top = BookingStatistics.top_movies(limit=1)

        self.assertEqual([row['movie_name'] for row in top], ['Avengers'])

    def test_recent_bookings(self):

        Booking.objects.filter(user=self.seeder).update(booked_at=timezone.now() - timedelta(days=10))

        recent = BookingStatistics.recent_bookings(timezone.now() - timedelta(days=1))

        self.assertEqual(recent.count(), 2)

    def test_purge_cancelled_only_removes_old_cancelled(self):

        old = self.book(['A9'])
        CancellationService.cancel_booking(old.booking_reference, self.alice)
        Booking.objects.filter(pk=old.pk).update(booked_at=timezone.now() - timedelta(days=40))
        Booking.objects.filter(user=self.seeder).update(booked_at=timezone.now() - timedelta(days=40))

        purged = BookingStatistics.purge_cancelled(timezone.now() - timedelta(days=30))

        self.assertEqual(purged, 1)
        self.assertFalse(Booking.objects.filter(pk=old.pk).exists())
        self.assertEqual(Booking.objects.filter(status=Booking.CANCELLED).count(), 1)
        self.assertEqual(Booking.objects.filter(user=self.seeder).count(), 5)

class BookingTasksTests(BookingTestMixin, TestCase):

    def test_purge_task_uses_retention_setting(self):

        booking = self.book(['A1'])
        CancellationService.cancel_booking(booking.booking_reference, self.alice)
        Booking.objects.filter(pk=booking.pk).update(
            booked_at=timezone.now() - timedelta(days=settings.CANCELLED_BOOKING_RETENTION_DAYS + 1)
        )

        result = purge_cancelled_bookings()

        self.assertIn('Purged 1', result)
        self.assertFalse(Booking.objects.filter(pk=booking.pk).exists())

    def test_purge_task_keeps_recent_cancellations(self):

        booking = self.book(['A1'])
        CancellationService.cancel_booking(booking.booking_reference, self.alice)

        purge_cancelled_bookings(days=30)

        self.assertTrue(Booking.objects.filter(pk=booking.pk).exists())

    def test_reconcile_task_repairs_inventory(self):

        Movie.objects.filter(pk=self.movie.pk).update(available_tickets=0, status=Movie.SOLD_OUT)

        result = reconcile_inventory()

        self.assertIn('1 records corrected', result)
        self.assertEqual(self.refresh_movie().available_tickets, 50)
        self.assertEqual(self.movie.status, Movie.BOOKABLE)

    def test_task_skips_when_lock_held(self):

        cache.add('celery_lock:reconcile_inventory', 'locked', timeout=60)

        result = reconcile_inventory()

        self.assertIn('Skipped', result)
        cache.delete('celery_lock:reconcile_inventory')

class BookingCommandTests(BookingTestMixin, TestCase):

    def test_recalculate_single_pair(self):

        Movie.objects.filter(pk=self.movie.pk).update(available_tickets=3)
        out = StringIO()

        call_command('recalculate_inventory', movie='Avengers', theatre='PVR', stdout=out)

        self.assertIn('50/100', out.getvalue())
        self.assertEqual(self.refresh_movie().available_tickets, 50)

    def test_recalculate_all(self):

        Movie.objects.filter(pk=self.movie.pk).update(available_tickets=3)
        out = StringIO()

        call_command('recalculate_inventory', stdout=out)

        self.assertIn('1 records corrected', out.getvalue())

    def test_recalculate_requires_both_names(self):

        with self.assertRaises(CommandError):
            call_command('recalculate_inventory', movie='Avengers', stdout=StringIO())

    def test_recalculate_unknown_pair(self):

        with self.assertRaises(CommandError):
            call_command('recalculate_inventory', movie='Avengers', theatre='Nowhere', stdout=StringIO())

    def test_purge_command_dry_run(self):

        booking = self.book(['A1'])
        CancellationService.cancel_booking(booking.booking_reference, self.alice)
        Booking.objects.filter(pk=booking.pk).update(booked_at=timezone.now() - timedelta(days=5))
        out = StringIO()

        call_command('purge_cancelled_bookings', days=1, dry_run=True, stdout=out)

        self.assertIn('would be deleted', out.getvalue())
        self.assertTrue(Booking.objects.filter(pk=booking.pk).exists())

    def test_purge_command(self):

        booking = self.book(['A1'])
        CancellationService.cancel_booking(booking.booking_reference, self.alice)
        Booking.objects.filter(pk=booking.pk).update(booked_at=timezone.now() - timedelta(days=5))
        out = StringIO()

        call_command('purge_cancelled_bookings', days=1, stdout=out)

        self.assertIn('Purged 1', out.getvalue())
        self.assertFalse(Booking.objects.filter(pk=booking.pk).exists())

class BookingAdminTests(BookingTestMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.model_admin = BookingAdmin(Booking, admin.site)
        self.request = RequestFactory().post('/admin/bookings/booking/')
        self.request.user = self.admin

    def test_export_as_csv(self):

        booking = self.book(['A1', 'A2'])

        response = self.model_admin.export_as_csv(self.request, Booking.objects.filter(pk=booking.pk))

        lines = response.content.decode('utf-8').splitlines()
        self.assertEqual(response['Content-Type'], 'text/csv')
        self.assertEqual(len(lines), 2)
        self.assertTrue(lines[0].startswith('Reference,User,Movie'))
        self.assertIn(booking.booking_reference, lines[1])
        self.assertIn('₹500.00', lines[1])
        self.assertIn('A1, A2', lines[1])

class BookingAPITests(BookingTestMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.client = Client()
        self.client.login(username='alice', password='testpass123')

    def post_json(self, url, data=None):
        return self.client.post(url, data=json.dumps(data or {}), content_type='application/json')

    def test_book_tickets_api(self):

        response = self.post_json('/api/tickets/Avengers/book/', {
            'theatre_name': 'PVR',
            'number_of_tickets': 2,
            'seat_numbers': ['A1', 'A2'],
        })

        self.assertEqual(response.status_code, 201)
        data = response.json()
        self.assertTrue(data['success'])
        self.assertEqual(data['data']['seat_numbers'], ['A1', 'A2'])
        self.assertEqual(self.refresh_movie().available_tickets, 48)

    def test_book_taken_seat_returns_conflict(self):

        seed_confirmed(self.bob, self.movie, ['A1'])

        response = self.post_json('/api/tickets/Avengers/book/', {
            'theatre_name': 'PVR',
            'number_of_tickets': 1,
            'seat_numbers': ['A1'],
        })

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()['error'], 'BOOKING_REJECTED')

    def test_book_invalid_request_returns_400(self):

        response = self.post_json('/api/tickets/Avengers/book/', {
            'theatre_name': 'PVR',
            'number_of_tickets': 3,
            'seat_numbers': ['A1'],
        })

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['error'], 'VALIDATION_FAILED')

    def test_book_unknown_movie_returns_404(self):

        response = self.post_json('/api/tickets/Unknown/book/', {
            'theatre_name': 'PVR',
            'number_of_tickets': 1,
            'seat_numbers': ['A1'],
        })

        self.assertEqual(response.status_code, 404)

    def test_malformed_json_returns_400(self):

        response = self.client.post('/api/tickets/Avengers/book/', data='{not json', content_type='application/json')

        self.assertEqual(response.status_code, 400)

    def test_anonymous_user_redirected(self):

        response = Client().post('/api/tickets/Avengers/book/', data='{}', content_type='application/json')

        self.assertEqual(response.status_code, 302)
        self.assertIn('/api/accounts/login/', response.url)

    def test_my_tickets(self):

        self.book(['A1'])
        self.book(['A2'], user=self.bob)

        response = self.client.get('/api/tickets/mine/')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['count'], 1)

    def test_my_summary(self):

        self.book(['A1', 'A2'])

        response = self.client.get('/api/tickets/mine/summary/')

        self.assertEqual(response.json()['data']['total_tickets'], 2)

    def test_ticket_detail_of_other_user_forbidden(self):

        booking = self.book(['A1'], user=self.bob)

        response = self.client.get(f'/api/tickets/ticket/{booking.booking_reference}/')

        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()['error'], 'FORBIDDEN')

    def test_cancel_ticket_api(self):

        booking = self.book(['A1'])

        response = self.post_json(f'/api/tickets/ticket/{booking.booking_reference}/cancel/')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['data']['status'], 'CANCELLED')
        self.assertEqual(self.refresh_movie().available_tickets, 50)

    def test_cancel_twice_returns_409(self):

        booking = self.book(['A1'])
        self.post_json(f'/api/tickets/ticket/{booking.booking_reference}/cancel/')

        response = self.post_json(f'/api/tickets/ticket/{booking.booking_reference}/cancel/')

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()['error'], 'INVALID_STATE')

    def test_seat_status_api(self):

        self.book(['A1'])

        response = Client().get('/api/tickets/Avengers/seats/', {'theatre_name': 'PVR', 'seats': 'A1,A2'})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['data']['seats'], {'A1': 'booked', 'A2': 'available'})

    def test_seat_status_requires_theatre(self):

        response = Client().get('/api/tickets/Avengers/seats/')

        self.assertEqual(response.status_code, 400)

class ConcurrentBookingTests(TransactionTestCase):

    THREADS = 8

    def setUp(self):
        cache.clear()
        self.users = [
            User.objects.create_user(username=f'user{i}', password='testpass123')
            for i in range(self.THREADS)
        ]

    def run_calls(self, calls):
        barrier = threading.Barrier(len(calls))
        successes = []
        failures = []
        lock = threading.Lock()

        def worker(call):
            try:
                barrier.wait()
                result = call()
                with lock:
                    successes.append(result)
            except MovieBookingError as e:
                with lock:
                    failures.append(e)
            finally:
                connection.close()

        threads = [threading.Thread(target=worker, args=(call,)) for call in calls]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        return successes, failures

    def run_concurrently(self, requests):
        return self.run_calls([
            lambda movie_name=movie_name, theatre_name=theatre_name, seats=seats, user=user:
                BookingService.book_tickets(movie_name, theatre_name, len(seats), seats, user.username)
            for movie_name, theatre_name, seats, user in requests
        ])

    def test_same_seat_is_sold_once(self):

        Movie.objects.create(movie_name='Avengers', theatre_name='PVR', total_tickets=50)

        successes, failures = self.run_concurrently([
            ('Avengers', 'PVR', ['A1'], user) for user in self.users
        ])

        self.assertEqual(len(successes), 1)
        self.assertEqual(len(failures), self.THREADS - 1)
        self.assertEqual(Booking.objects.filter(status=Booking.CONFIRMED).count(), 1)
        self.assertEqual(Movie.objects.get(movie_name='Avengers').available_tickets, 49)

    def test_capacity_is_never_exceeded(self):

        Movie.objects.create(movie_name='Avengers', theatre_name='PVR', total_tickets=5)

        successes, failures = self.run_concurrently([
            ('Avengers', 'PVR', [f'A{i}'], user) for i, user in enumerate(self.users)
        ])

        movie = Movie.objects.get(movie_name='Avengers')
        confirmed = Booking.objects.filter(status=Booking.CONFIRMED)
        seats = [seat for booking in confirmed for seat in booking.seat_numbers]

        self.assertEqual(len(successes), 5)
        self.assertLessEqual(len(seats), movie.total_tickets)
        self.assertEqual(len(seats), len(set(seats)))
        self.assertEqual(movie.available_tickets, movie.total_tickets - len(seats))
        self.assertEqual(movie.status, Movie.SOLD_OUT)

    def test_different_pairs_do_not_interfere(self):

        Movie.objects.create(movie_name='Avengers', theatre_name='PVR', total_tickets=10)
        Movie.objects.create(movie_name='Dune', theatre_name='INOX', total_tickets=10)

        requests = []
        for i, user in enumerate(self.users):
            movie_name, theatre_name = ('Avengers', 'PVR') if i % 2 else ('Dune', 'INOX')
            requests.append((movie_name, theatre_name, [f'A{i}'], user))

        successes, failures = self.run_concurrently(requests)

        self.assertEqual(len(successes), self.THREADS)
        self.assertEqual(failures, [])
        self.assertEqual(Movie.objects.get(movie_name='Avengers').available_tickets, 6)
        self.assertEqual(Movie.objects.get(movie_name='Dune').available_tickets, 6)

    def test_cancel_and_rebook_race_keeps_ledger_consistent(self):

        movie = Movie.objects.create(movie_name='Avengers', theatre_name='PVR', total_tickets=10)
        owners, bookers = self.users[:4], self.users[4:]
        seats = ['C0', 'C1', 'C2', 'C3']
        held = [
            BookingService.book_tickets('Avengers', 'PVR', 1, [seat], owner.username)
            for seat, owner in zip(seats, owners)
        ]

        calls = []
        for booking, owner, seat, booker in zip(held, owners, seats, bookers):
            calls.append(lambda ref=booking.booking_reference, owner=owner:
                         CancellationService.cancel_booking(ref, owner.username))
            calls.append(lambda seat=seat, booker=booker:
                         BookingService.book_tickets('Avengers', 'PVR', 1, [seat], booker.username))

        successes, failures = self.run_calls(calls)

        movie.refresh_from_db()
        confirmed = Booking.objects.filter(movie_name='Avengers', theatre_name='PVR', status=Booking.CONFIRMED)
        confirmed_seats = [seat for booking in confirmed for seat in booking.seat_numbers]
        ledger_seats = list(BookedSeat.objects.values_list('seat_number', flat=True))

        self.assertEqual(len(successes) + len(failures), len(calls))
        self.assertFalse(Booking.objects.filter(
            booking_reference__in=[b.booking_reference for b in held], status=Booking.CONFIRMED,
        ).exists())
        self.assertEqual(movie.available_tickets, movie.total_tickets - sum(b.number_of_tickets for b in confirmed))
        self.assertEqual(len(confirmed_seats), len(set(confirmed_seats)))
        self.assertEqual(sorted(confirmed_seats), sorted(ledger_seats))
        self.assertEqual(movie.status, Movie.BOOKABLE)
