from django.db import models
from django.db.models import Q
from django.contrib.auth.models import User
from django.core.validators import MaxValueValidator, MinValueValidator
from django.utils import timezone
import uuid

MAX_TICKETS_PER_BOOKING = 10

class Booking(models.Model):
    CONFIRMED = 'CONFIRMED'
    CANCELLED = 'CANCELLED'
    EXPIRED = 'EXPIRED'
    BOOKING_STATUS = (
        (CONFIRMED, 'Confirmed'),
        (CANCELLED, 'Cancelled'),
        (EXPIRED, 'Expired'),
    )

    booking_reference = models.CharField(max_length=32, unique=True, editable=False)

    movie_name = models.CharField(max_length=200)
    theatre_name = models.CharField(max_length=200)

    number_of_tickets = models.PositiveSmallIntegerField(
        validators=[MinValueValidator(1), MaxValueValidator(MAX_TICKETS_PER_BOOKING)]
    )
    seat_numbers = models.JSONField(default=list)

    user = models.ForeignKey(User, on_delete=models.PROTECT, related_name='bookings')
    user_login_id = models.CharField(max_length=150, db_index=True)

    status = models.CharField(max_length=20, choices=BOOKING_STATUS, default=CONFIRMED, db_index=True)
    total_price = models.DecimalField(max_digits=10, decimal_places=2, default=0.00)

    booked_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['-booked_at']
        indexes = [
            models.Index(fields=['movie_name', 'theatre_name', 'status'], name='booking_pair_status_idx'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(number_of_tickets__gte=1) & Q(number_of_tickets__lte=MAX_TICKETS_PER_BOOKING),
                name='booking_ticket_count_range',
            ),
        ]

    def __str__(self):
        return f"{self.booking_reference} - {self.user_login_id}"

    def save(self, *args, **kwargs):
        if not self.booking_reference:
            self.booking_reference = Booking.generate_reference()
        super().save(*args, **kwargs)

    @staticmethod
    def generate_reference():
        """Timestamp plus 40 random bits, e.g. ``MB-20250101093000-1A2B3C4D5E``."""

        date_str = timezone.now().strftime('%Y%m%d%H%M%S')
        random_str = uuid.uuid4().hex[:10].upper()
        return f"MB-{date_str}-{random_str}"

    def get_seats_display(self):

        if isinstance(self.seat_numbers, list):
            return ", ".join(self.seat_numbers)
        return str(self.seat_numbers)

    def get_formatted_total(self):
        return f"₹{self.total_price:.2f}"

    @property
    def is_confirmed(self):
        return self.status == self.CONFIRMED

    def to_dict(self):
        return {
            'id': self.id,
            'booking_reference': self.booking_reference,
            'movie_name': self.movie_name,
            'theatre_name': self.theatre_name,
            'number_of_tickets': self.number_of_tickets,
            'seat_numbers': list(self.seat_numbers),
            'user_login_id': self.user_login_id,
            'status': self.status,
            'total_price': str(self.total_price),
            'booked_at': self.booked_at.isoformat() if self.booked_at else None,
            'cancelled_at': self.cancelled_at.isoformat() if self.cancelled_at else None,
        }

class BookedSeat(models.Model):
    """
    One row per seat held by a CONFIRMED booking.

    The unique constraint makes the database refuse a second claim on the
    same seat for the same movie and theatre.
    """

    booking = models.ForeignKey(Booking, on_delete=models.CASCADE, related_name='seat_claims')
    movie_name = models.CharField(max_length=200)
    theatre_name = models.CharField(max_length=200)
    seat_number = models.CharField(max_length=10)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=['movie_name', 'theatre_name', 'seat_number'],
                name='uk_booked_seat_per_showing',
            ),
        ]

    def __str__(self):
        return f"{self.seat_number} ({self.movie_name} @ {self.theatre_name})"
