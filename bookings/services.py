from django.db import DatabaseError, IntegrityError, OperationalError, transaction
from django.utils import timezone
from django.conf import settings
import logging
import time

from accounts.identity import IdentityResolver
from moviebooking.exceptions import BookingRejected, Forbidden, InvalidState, NotFound
from movies.inventory import InventoryStore
from .models import Booking, BookedSeat
from .utils import SeatManager, PriceCalculator

logger = logging.getLogger(__name__)

class InventoryUpdateFailed(Exception):

    def __init__(self, booking, cause):
        self.booking = booking
        self.cause = cause
        super().__init__(str(cause))

def run_with_retries(operation, description, error_class=BookingRejected):
    """
    Run ``operation`` and retry it on transient storage errors.

    Lock timeouts, deadlocks and lost connections surface as
    ``OperationalError``. After ``BOOKING_MAX_RETRIES`` attempts the error is
    raised as ``error_class``, or re-raised as is when ``error_class`` is None.
    """

    max_retries = getattr(settings, 'BOOKING_MAX_RETRIES', 3)
    backoff = getattr(settings, 'BOOKING_RETRY_BACKOFF', 0.05)

    for attempt in range(1, max_retries + 1):
        try:
            return operation()
        except OperationalError as e:
            if attempt >= max_retries:
                logger.error(f"{description} failed after {attempt} attempts: {e}")
                if error_class is None:
                    raise
                raise error_class(f"Storage unavailable, please try again: {e}") from e

            wait = backoff * (2 ** (attempt - 1))
            logger.warning(
                f"{description}: storage error on attempt {attempt}/{max_retries}, "
                f"retrying in {wait:.2f}s: {e}"
            )
            time.sleep(wait)

class BookingService:

    @staticmethod
    def book_tickets(movie_name, theatre_name, number_of_tickets, seat_numbers, acting_user):
        """
        Reserve ``seat_numbers`` for ``acting_user``.

        Either every seat is confirmed and the inventory is decremented, or
        nothing is persisted and a ``MovieBookingError`` is raised.
        """

        movie_name, theatre_name, number_of_tickets, seat_numbers = SeatManager.validate_request(
            movie_name, theatre_name, number_of_tickets, seat_numbers
        )
        identity = IdentityResolver.resolve(acting_user)

        booking = run_with_retries(
            lambda: BookingService._book_once(identity, movie_name, theatre_name, number_of_tickets, seat_numbers),
            f"Booking {seat_numbers} for {movie_name} @ {theatre_name}",
        )

        logger.info(
            f"Booking confirmed: {booking.booking_reference} for user {identity.login_name}, "
            f"{movie_name} @ {theatre_name}, seats {seat_numbers}"
        )
        return booking

    @staticmethod
    def _book_once(identity, movie_name, theatre_name, number_of_tickets, seat_numbers):

        try:
            with transaction.atomic():
                movie = InventoryStore.lock(movie_name, theatre_name)

                if movie.is_sold_out or movie.available_tickets < number_of_tickets:
                    logger.warning(
                        f"Insufficient capacity for {movie}: {movie.available_tickets} available, "
                        f"{number_of_tickets} requested by {identity.login_name}"
                    )
                    raise BookingRejected(
                        f"Insufficient capacity: only {movie.available_tickets} tickets available"
                    )

                taken = SeatManager.conflicting_seats(movie_name, theatre_name, seat_numbers)
                if taken:
                    logger.warning(f"Seats {taken} already taken for {movie}, requested by {identity.login_name}")
                    raise BookingRejected(f"Seat already taken: {', '.join(taken)}")

                booking = BookingService._record_booking(identity, movie, number_of_tickets, seat_numbers)

                try:
                    decremented = InventoryStore.try_decrement(movie, number_of_tickets)
                except Exception as e:
                    raise InventoryUpdateFailed(booking, e) from e
                if not decremented:
                    raise InventoryUpdateFailed(booking, "insufficient capacity")

        except InventoryUpdateFailed as failure:
            BookingService.compensate(failure.booking)
            raise BookingRejected(f"Booking failed while updating inventory: {failure.cause}") from failure

        except IntegrityError as e:
            taken = SeatManager.conflicting_seats(movie_name, theatre_name, seat_numbers)
            if taken:
                logger.warning(f"Seat claim collision on {taken} for {movie_name} @ {theatre_name}")
                raise BookingRejected(f"Seat already taken: {', '.join(taken)}") from e
            logger.error(f"Booking for {movie_name} @ {theatre_name} could not be recorded: {e}")
            raise BookingRejected(f"Booking could not be recorded: {e}") from e

        return booking

    @staticmethod
    def _record_booking(identity, movie, number_of_tickets, seat_numbers):

        booking = Booking.objects.create(
            movie_name=movie.movie_name,
            theatre_name=movie.theatre_name,
            number_of_tickets=number_of_tickets,
            seat_numbers=seat_numbers,
            user_id=identity.id,
            user_login_id=identity.login_name,
            status=Booking.CONFIRMED,
            total_price=PriceCalculator.calculate_total(movie.ticket_price, number_of_tickets),
        )
        BookedSeat.objects.bulk_create([
            BookedSeat(
                booking=booking,
                movie_name=movie.movie_name,
                theatre_name=movie.theatre_name,
                seat_number=seat,
            )
            for seat in seat_numbers
        ])
        return booking

    @staticmethod
    def compensate(booking):
        """
        Remove a booking whose inventory update failed.

        Idempotent: deleting a row that the rollback already removed is a
        no-op. Returns False when the delete itself failed; the ledger is then
        repaired by ``recalculate_inventory``.
        """

        try:
            deleted, _ = Booking.objects.filter(pk=booking.pk).delete()
        except DatabaseError as e:
            logger.error(
                f"Compensation failed for booking {booking.booking_reference} "
                f"({booking.movie_name} @ {booking.theatre_name}): {e}. "
                f"Inventory must be recalculated for this pair."
            )
            return False

        logger.error(
            f"Booking {booking.booking_reference} rolled back after inventory update failure "
            f"({deleted} rows removed)"
        )
        return True

    @staticmethod
    def get_ticket_by_reference(booking_reference):
        try:
            return Booking.objects.get(booking_reference=booking_reference)
        except Booking.DoesNotExist:
            raise NotFound(f"Ticket '{booking_reference}' not found")

    @staticmethod
    def get_ticket_for_user(booking_reference, acting_user):

        identity = IdentityResolver.resolve(acting_user)
        booking = BookingService.get_ticket_by_reference(booking_reference)
        ensure_owner_or_admin(identity, booking)
        return booking

    @staticmethod
    def get_tickets_by_user(login_id):
        return Booking.objects.filter(user_login_id=login_id)

    @staticmethod
    def get_user_booking_history(identifier):
        """``identifier`` may be a numeric user id or a login id; newest first."""

        identity = IdentityResolver.resolve(identifier)
        return Booking.objects.filter(user_id=identity.id).order_by('-booked_at')

    @staticmethod
    def get_booked_tickets(movie_name, theatre_name):
        return Booking.objects.filter(
            movie_name=movie_name,
            theatre_name=theatre_name,
            status=Booking.CONFIRMED,
        )

    @staticmethod
    def get_all_tickets():
        return Booking.objects.all()

    @staticmethod
    def get_confirmed_tickets():
        return Booking.objects.filter(status=Booking.CONFIRMED)

def ensure_owner_or_admin(identity, booking):
    if identity.is_admin or identity.login_name == booking.user_login_id:
        return
    logger.warning(f"User {identity.login_name} denied access to booking {booking.booking_reference}")
    raise Forbidden("You can only manage your own bookings")

class CancellationService:

    @staticmethod
    def cancel_booking(booking_reference, acting_user):

        identity = IdentityResolver.resolve(acting_user)

        booking = run_with_retries(
            lambda: CancellationService._cancel_once(identity, booking_reference),
            f"Cancelling booking {booking_reference}",
            error_class=None,
        )

        logger.info(
            f"Booking {booking.booking_reference} cancelled by {identity.login_name}. "
            f"Seats released: {booking.seat_numbers}"
        )
        return booking

    @staticmethod
    def _cancel_once(identity, booking_reference):

        booking = BookingService.get_ticket_by_reference(booking_reference)
        ensure_owner_or_admin(identity, booking)

        # inventory row first, then the booking row: same order as book_tickets
        with transaction.atomic():
            movie = InventoryStore.lock(booking.movie_name, booking.theatre_name, missing_ok=True)
            booking = Booking.objects.select_for_update().get(pk=booking.pk)

            if booking.status == Booking.CANCELLED:
                raise InvalidState(f"Booking {booking.booking_reference} is already cancelled")
            if not booking.is_confirmed:
                raise InvalidState(f"Cannot cancel booking with status: {booking.status}")

            booking.status = Booking.CANCELLED
            booking.cancelled_at = timezone.now()
            booking.save(update_fields=['status', 'cancelled_at', 'updated_at'])
            BookedSeat.objects.filter(booking=booking).delete()

            if movie is None:
                logger.warning(
                    f"Booking {booking.booking_reference} cancelled but "
                    f"{booking.movie_name} @ {booking.theatre_name} has no inventory record"
                )
            else:
                InventoryStore.recalculate_locked(movie)

        return booking
