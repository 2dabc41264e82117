import logging

from django.db.models import Avg, Count, Sum
from django.utils import timezone

from accounts.identity import IdentityResolver
from .models import Booking

logger = logging.getLogger(__name__)


def _confirmed():
    return Booking.objects.filter(status=Booking.CONFIRMED)


def _grouped(field):
    rows = _confirmed().values(field).annotate(
        booking_count=Count('id'),
        tickets_sold=Sum('number_of_tickets'),
        revenue=Sum('total_price'),
        average_tickets=Avg('number_of_tickets'),
    ).order_by(field)

    return [
        {
            field: row[field],
            'booking_count': row['booking_count'],
            'tickets_sold': row['tickets_sold'] or 0,
            'revenue': row['revenue'] or 0,
            'average_tickets': round(float(row['average_tickets'] or 0), 2),
        }
        for row in rows
    ]


class BookingStatistics:
    """Read-only aggregations over CONFIRMED bookings."""

    @staticmethod
    def by_movie():
        return _grouped('movie_name')

    @staticmethod
    def by_theatre():
        return _grouped('theatre_name')

    @staticmethod
    def by_user():
        return _grouped('user_login_id')

    @staticmethod
    def user_summary(identifier):

        identity = IdentityResolver.resolve(identifier)
        bookings = Booking.objects.filter(user_id=identity.id)
        confirmed = bookings.filter(status=Booking.CONFIRMED).aggregate(
            tickets=Sum('number_of_tickets'),
            spent=Sum('total_price'),
        )

        return {
            'user_login_id': identity.login_name,
            'total_bookings': bookings.count(),
            'confirmed_bookings': bookings.filter(status=Booking.CONFIRMED).count(),
            'cancelled_bookings': bookings.filter(status=Booking.CANCELLED).count(),
            'total_tickets': confirmed['tickets'] or 0,
            'total_spent': confirmed['spent'] or 0,
        }

    @staticmethod
    def count_bookings(movie_name, theatre_name):
        return _confirmed().filter(movie_name=movie_name, theatre_name=theatre_name).count()

    @staticmethod
    def count_booked_tickets(movie_name, theatre_name):
        total = _confirmed().filter(
            movie_name=movie_name,
            theatre_name=theatre_name,
        ).aggregate(total=Sum('number_of_tickets'))['total']
        return total or 0

    @staticmethod
    def top_movies(limit=5):
        rows = _grouped('movie_name')
        rows.sort(key=lambda row: (-row['tickets_sold'], row['movie_name']))
        return rows[:limit]

    @staticmethod
    def recent_bookings(since):
        return _confirmed().filter(booked_at__gte=since).order_by('-booked_at')

    @staticmethod
    def purge_cancelled(older_than):
        """Delete CANCELLED bookings booked before ``older_than``; returns how many went."""

        if timezone.is_naive(older_than):
            older_than = timezone.make_aware(older_than)

        deleted, per_model = Booking.objects.filter(
            status=Booking.CANCELLED,
            booked_at__lt=older_than,
        ).delete()

        count = per_model.get(Booking._meta.label, 0)
        logger.info(f"Purged {count} cancelled bookings booked before {older_than:%Y-%m-%d %H:%M}")
        return count
