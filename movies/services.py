import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction
from django.db.models import Count, Q, Sum

from moviebooking.exceptions import Conflict, InvalidState, NotFound, ValidationFailed
from .inventory import InventoryStore
from .models import Movie, ShowTime

logger = logging.getLogger(__name__)


class MovieService:

    @staticmethod
    @transaction.atomic
    def add_movie(movie_name, theatre_name, total_tickets, show_times=None, **details):
        """
        Register a movie at a theatre with a fresh seat inventory.

        ``show_times`` is an iterable of dicts with ``show_date``,
        ``show_time`` and optional ``screen_number``.
        """

        movie_name = (movie_name or '').strip()
        theatre_name = (theatre_name or '').strip()
        if not movie_name or not theatre_name:
            raise ValidationFailed("Movie name and theatre name are required")

        try:
            total_tickets = int(total_tickets)
        except (TypeError, ValueError):
            raise ValidationFailed("Total tickets must be a whole number")
        if total_tickets < 1:
            raise ValidationFailed("Total tickets must be at least 1")

        if Movie.objects.filter(movie_name=movie_name, theatre_name=theatre_name).exists():
            raise Conflict(f"Movie '{movie_name}' already exists at theatre '{theatre_name}'")

        try:
            with transaction.atomic():
                movie = Movie.objects.create(
                    movie_name=movie_name,
                    theatre_name=theatre_name,
                    total_tickets=total_tickets,
                    available_tickets=total_tickets,
                    **details
                )
        except IntegrityError:
            raise Conflict(f"Movie '{movie_name}' already exists at theatre '{theatre_name}'")
        except (DjangoValidationError, TypeError, ValueError) as e:
            raise ValidationFailed(f"Invalid movie details: {e}")

        for show in show_times or []:
            try:
                ShowTime.objects.create(
                    movie=movie,
                    show_date=show['show_date'],
                    show_time=show['show_time'],
                    screen_number=show.get('screen_number', ''),
                )
            except (KeyError, IntegrityError, DjangoValidationError, TypeError, ValueError) as e:
                raise ValidationFailed(f"Invalid show time {show}: {e}")

        movie.refresh_from_db()

        logger.info(f"Movie added: {movie} with {total_tickets} tickets")
        return movie

    @staticmethod
    def get_movie(movie_name, theatre_name):
        return InventoryStore.get(movie_name, theatre_name)

    @staticmethod
    def get_all_movies():
        return Movie.objects.prefetch_related('show_times')

    @staticmethod
    def search_movies(query):

        query = (query or '').strip()
        if not query:
            return Movie.objects.none()
        return Movie.objects.filter(
            Q(movie_name__icontains=query) | Q(theatre_name__icontains=query)
        ).prefetch_related('show_times')

    @staticmethod
    def get_movies_by_name(movie_name):
        movies = Movie.objects.filter(movie_name__iexact=movie_name)
        if not movies.exists():
            raise NotFound(f"No theatres are showing '{movie_name}'")
        return movies

    @staticmethod
    def get_available_movies():
        return Movie.objects.filter(status=Movie.BOOKABLE, available_tickets__gt=0)

    @staticmethod
    def get_sold_out_movies():
        return Movie.objects.filter(status=Movie.SOLD_OUT)

    @staticmethod
    def get_distinct_movie_names():
        return list(Movie.objects.order_by('movie_name').values_list('movie_name', flat=True).distinct())

    @staticmethod
    def update_total_tickets(movie_name, theatre_name, total_tickets):
        """Admin edit of capacity; availability is rebuilt from the ledger."""

        try:
            total_tickets = int(total_tickets)
        except (TypeError, ValueError):
            raise ValidationFailed("Total tickets must be a whole number")
        if total_tickets < 1:
            raise ValidationFailed("Total tickets must be at least 1")

        with transaction.atomic():
            movie = InventoryStore.lock(movie_name, theatre_name)
            previous = movie.total_tickets
            movie.total_tickets = total_tickets
            # available is re-derived below; keep the check constraint satisfied meanwhile
            movie.available_tickets = min(movie.available_tickets, total_tickets)
            movie.save(update_fields=['total_tickets', 'available_tickets', 'status', 'updated_at'])
            InventoryStore.recalculate_locked(movie)

        logger.info(f"Total tickets for {movie} changed {previous} -> {total_tickets}")
        return movie

    @staticmethod
    def delete_movie(movie_name, theatre_name):
        from bookings.models import Booking

        with transaction.atomic():
            movie = InventoryStore.lock(movie_name, theatre_name)
            has_confirmed = Booking.objects.filter(
                movie_name=movie_name,
                theatre_name=theatre_name,
                status=Booking.CONFIRMED,
            ).exists()
            if has_confirmed:
                raise InvalidState(f"{movie} still has confirmed bookings")
            movie.delete()

        logger.info(f"Movie deleted: {movie_name} @ {theatre_name}")

    @staticmethod
    def get_movie_statistics():
        """Per movie: number of theatres and total / available tickets across them."""

        rows = Movie.objects.values('movie_name').annotate(
            total_theatres=Count('id'),
            tickets=Sum('total_tickets'),
            available=Sum('available_tickets'),
        ).order_by('movie_name')

        return [
            {
                'movie_name': row['movie_name'],
                'total_theatres': row['total_theatres'],
                'total_tickets': row['tickets'] or 0,
                'available_tickets': row['available'] or 0,
                'booked_tickets': (row['tickets'] or 0) - (row['available'] or 0),
            }
            for row in rows
        ]
