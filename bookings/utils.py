from decimal import Decimal, ROUND_HALF_UP
from django.conf import settings

from moviebooking.exceptions import ValidationFailed

SEAT_NUMBER_MAX_LENGTH = 10

class SeatManager:

    @staticmethod
    def validate_request(movie_name, theatre_name, number_of_tickets, seat_numbers):
        """
        Check a booking request before anything is read or written.

        Returns the cleaned ``(movie_name, theatre_name, number_of_tickets,
        seat_numbers)``; raises ``ValidationFailed`` otherwise.
        """

        if not isinstance(movie_name, str) or not movie_name.strip():
            raise ValidationFailed("Movie name is required")
        if not isinstance(theatre_name, str) or not theatre_name.strip():
            raise ValidationFailed("Theatre name is required")

        max_tickets = getattr(settings, 'MAX_TICKETS_PER_BOOKING', 10)
        if isinstance(number_of_tickets, bool):
            raise ValidationFailed("Number of tickets must be a whole number")
        try:
            number_of_tickets = int(number_of_tickets)
        except (TypeError, ValueError):
            raise ValidationFailed("Number of tickets must be a whole number")
        if number_of_tickets < 1:
            raise ValidationFailed("At least 1 ticket must be booked")
        if number_of_tickets > max_tickets:
            raise ValidationFailed(f"Maximum {max_tickets} tickets can be booked at once")

        if not isinstance(seat_numbers, (list, tuple)):
            raise ValidationFailed("Seat numbers must be a list")

        cleaned_seats = []
        for seat in seat_numbers:
            if not isinstance(seat, str) or not seat.strip():
                raise ValidationFailed("Seat numbers must be non-empty strings")
            seat = seat.strip()
            if len(seat) > SEAT_NUMBER_MAX_LENGTH:
                raise ValidationFailed(f"Seat number '{seat}' is too long")
            cleaned_seats.append(seat)

        if len(cleaned_seats) != number_of_tickets:
            raise ValidationFailed("Number of seat numbers must match number of tickets")

        duplicates = sorted({seat for seat in cleaned_seats if cleaned_seats.count(seat) > 1})
        if duplicates:
            raise ValidationFailed(f"Duplicate seat numbers in request: {', '.join(duplicates)}")

        return movie_name.strip(), theatre_name.strip(), number_of_tickets, cleaned_seats

    @staticmethod
    def held_seats(movie_name, theatre_name):

        from .models import Booking

        booked_seats_query = Booking.objects.filter(
            movie_name=movie_name,
            theatre_name=theatre_name,
            status=Booking.CONFIRMED,
        ).values_list('seat_numbers', flat=True)

        held = set()
        for seats_list in booked_seats_query:
            held.update(seats_list)
        return held

    @staticmethod
    def conflicting_seats(movie_name, theatre_name, seat_numbers):
        """Requested seats already held by a CONFIRMED booking, in request order."""

        held = SeatManager.held_seats(movie_name, theatre_name)
        return [seat for seat in seat_numbers if seat in held]

    @staticmethod
    def get_seat_status(movie_name, theatre_name, seat_numbers=None):

        held = SeatManager.held_seats(movie_name, theatre_name)
        status = {
            'movie_name': movie_name,
            'theatre_name': theatre_name,
            'booked_seats': sorted(held),
        }
        if seat_numbers:
            status['seats'] = {seat: ('booked' if seat in held else 'available') for seat in seat_numbers}
        return status

class PriceCalculator:

    @staticmethod
    def calculate_total(ticket_price, seat_count):

        total = Decimal(str(ticket_price)) * seat_count
        return total.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)
