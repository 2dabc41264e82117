from django.db import models
from django.db.models import F, Q
from django.core.validators import MaxValueValidator, MinValueValidator

from .theater_models import ShowTime  # noqa: F401


class Movie(models.Model):
    """Seat inventory for one movie playing at one theatre."""

    BOOKABLE = 'BOOKABLE'
    SOLD_OUT = 'SOLD_OUT'
    TICKET_STATUS = (
        (BOOKABLE, 'Bookable'),
        (SOLD_OUT, 'Sold Out'),
    )

    movie_name = models.CharField(max_length=200, db_index=True)
    theatre_name = models.CharField(max_length=200, db_index=True)

    total_tickets = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    available_tickets = models.PositiveIntegerField()
    status = models.CharField(max_length=20, choices=TICKET_STATUS, default=BOOKABLE, db_index=True)

    ticket_price = models.DecimalField(max_digits=8, decimal_places=2, default=200.00)

    description = models.TextField(blank=True)
    genre = models.CharField(max_length=100, blank=True)
    language = models.CharField(max_length=50, blank=True)
    duration = models.PositiveIntegerField(null=True, blank=True, help_text="Duration in minutes")
    rating = models.DecimalField(
        max_digits=3, decimal_places=1, null=True, blank=True,
        validators=[MinValueValidator(0), MaxValueValidator(10)]
    )
    release_date = models.DateField(null=True, blank=True)
    poster_url = models.URLField(max_length=500, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['movie_name', 'theatre_name']
        constraints = [
            models.UniqueConstraint(fields=['movie_name', 'theatre_name'], name='uk_movie_theatre'),
            models.CheckConstraint(condition=Q(total_tickets__gte=1), name='movie_total_tickets_positive'),
            models.CheckConstraint(
                condition=Q(available_tickets__gte=0) & Q(available_tickets__lte=F('total_tickets')),
                name='movie_available_within_total',
            ),
        ]

    def __str__(self):
        return f"{self.movie_name} @ {self.theatre_name}"

    def save(self, *args, **kwargs):
        if self.available_tickets is None:
            self.available_tickets = self.total_tickets
        self.status = self.derive_status(self.available_tickets)
        super().save(*args, **kwargs)

    @staticmethod
    def derive_status(available_tickets):
        return Movie.BOOKABLE if available_tickets > 0 else Movie.SOLD_OUT

    @property
    def is_sold_out(self):
        return self.status == self.SOLD_OUT

    @property
    def booked_tickets(self):
        return self.total_tickets - self.available_tickets

    def get_occupancy_percentage(self):

        if not self.total_tickets:
            return 0
        return round(self.booked_tickets / self.total_tickets * 100, 2)

    def to_dict(self, include_show_times=False):
        data = {
            'id': self.id,
            'movie_name': self.movie_name,
            'theatre_name': self.theatre_name,
            'total_tickets': self.total_tickets,
            'available_tickets': self.available_tickets,
            'status': self.status,
            'ticket_price': str(self.ticket_price),
            'description': self.description,
            'genre': self.genre,
            'language': self.language,
            'duration': self.duration,
            'rating': str(self.rating) if self.rating is not None else None,
            'release_date': self.release_date.isoformat() if self.release_date else None,
            'poster_url': self.poster_url,
        }
        if include_show_times:
            data['show_times'] = [show.to_dict() for show in self.show_times.all()]
        return data
