import logging

from django.db import transaction
from django.db.models import Case, F, Sum, Value, When
from django.utils import timezone

from moviebooking.exceptions import NotFound
from .models import Movie

logger = logging.getLogger(__name__)


class InventoryStore:
    """
    Row-level access to the per (movie, theatre) seat counter.

    Every write goes through a locked row or a conditional UPDATE so that
    concurrent bookings on the same pair are serialized by the database.
    Different pairs lock different rows and never wait on each other.
    """

    @staticmethod
    def get(movie_name, theatre_name):
        try:
            return Movie.objects.get(movie_name=movie_name, theatre_name=theatre_name)
        except Movie.DoesNotExist:
            raise NotFound(f"Movie '{movie_name}' is not playing at '{theatre_name}'")

    @staticmethod
    def lock(movie_name, theatre_name, missing_ok=False):
        """Must be called inside transaction.atomic; holds the row until commit."""

        movie = Movie.objects.select_for_update().filter(
            movie_name=movie_name,
            theatre_name=theatre_name,
        ).first()
        if movie is None and not missing_ok:
            raise NotFound(f"Movie '{movie_name}' is not playing at '{theatre_name}'")
        return movie

    @staticmethod
    def try_decrement(movie, number_of_tickets):
        """
        Atomically take ``number_of_tickets`` seats off the counter.

        The UPDATE only matches while enough seats remain, and the status is
        computed from the pre-update value in the same statement. Returns
        False when nothing was updated.
        """

        updated = Movie.objects.filter(
            pk=movie.pk,
            available_tickets__gte=number_of_tickets,
        ).update(
            available_tickets=F('available_tickets') - number_of_tickets,
            status=Case(
                When(available_tickets__lte=number_of_tickets, then=Value(Movie.SOLD_OUT)),
                default=Value(Movie.BOOKABLE),
            ),
            updated_at=timezone.now(),
        )
        if updated:
            movie.refresh_from_db(fields=['available_tickets', 'status', 'updated_at'])
        return bool(updated)

    @staticmethod
    def confirmed_ticket_total(movie_name, theatre_name):
        from bookings.models import Booking

        total = Booking.objects.filter(
            movie_name=movie_name,
            theatre_name=theatre_name,
            status=Booking.CONFIRMED,
        ).aggregate(total=Sum('number_of_tickets'))['total']
        return total or 0

    @staticmethod
    def recalculate(movie_name, theatre_name):
        """Rebuild available_tickets and status for a pair from the booking ledger."""

        with transaction.atomic():
            movie = InventoryStore.lock(movie_name, theatre_name)
            InventoryStore._apply_ledger(movie)
        return movie

    @staticmethod
    def recalculate_locked(movie):
        """Same as recalculate() for a row the caller already holds locked."""

        InventoryStore._apply_ledger(movie)
        return movie

    @staticmethod
    def recalculate_all():

        changed = 0
        pairs = list(Movie.objects.values_list('movie_name', 'theatre_name'))
        for movie_name, theatre_name in pairs:
            with transaction.atomic():
                movie = InventoryStore.lock(movie_name, theatre_name, missing_ok=True)
                if movie is None:
                    continue
                if InventoryStore._apply_ledger(movie):
                    changed += 1

        logger.info(f"Inventory reconciliation complete: {changed} of {len(pairs)} records corrected")
        return changed

    @staticmethod
    def _apply_ledger(movie):
        booked = InventoryStore.confirmed_ticket_total(movie.movie_name, movie.theatre_name)
        available = movie.total_tickets - booked

        if available < 0:
            logger.warning(
                f"{movie} has {booked} confirmed tickets but only {movie.total_tickets} in total. "
                f"Clamping availability to 0"
            )
            available = 0

        status = Movie.derive_status(available)
        changed = available != movie.available_tickets or status != movie.status

        if changed:
            logger.info(
                f"Recalculated {movie}: available {movie.available_tickets} -> {available}, "
                f"status {movie.status} -> {status}"
            )
            movie.available_tickets = available
            movie.status = status
            movie.save(update_fields=['available_tickets', 'status', 'updated_at'])

        return changed
