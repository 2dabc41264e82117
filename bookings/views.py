from django.contrib.auth.decorators import login_required
from django.http import JsonResponse
from django.views.decorators.http import require_GET, require_POST
import logging

from accounts.views import parse_json_body
from moviebooking.exceptions import ValidationFailed
from .services import BookingService, CancellationService
from .statistics import BookingStatistics
from .utils import SeatManager

logger = logging.getLogger(__name__)

@login_required
@require_POST
def book_tickets(request, movie_name):

    data = parse_json_body(request)

    booking = BookingService.book_tickets(
        movie_name=movie_name,
        theatre_name=data.get('theatre_name'),
        number_of_tickets=data.get('number_of_tickets'),
        seat_numbers=data.get('seat_numbers'),
        acting_user=request.user,
    )

    return JsonResponse({
        'success': True,
        'message': 'Tickets booked successfully',
        'data': booking.to_dict(),
    }, status=201)

@login_required
@require_GET
def my_tickets(request):

    bookings = BookingService.get_user_booking_history(request.user)
    return JsonResponse({
        'success': True,
        'message': 'Your tickets',
        'count': len(bookings),
        'data': [booking.to_dict() for booking in bookings],
    })

@login_required
@require_GET
def my_summary(request):
    return JsonResponse({
        'success': True,
        'message': 'Your booking summary',
        'data': BookingStatistics.user_summary(request.user),
    })

@login_required
@require_GET
def ticket_detail(request, booking_reference):

    booking = BookingService.get_ticket_for_user(booking_reference, request.user)
    return JsonResponse({
        'success': True,
        'message': 'Ticket details',
        'data': booking.to_dict(),
    })

@login_required
@require_POST
def cancel_ticket(request, booking_reference):

    booking = CancellationService.cancel_booking(booking_reference, request.user)

    return JsonResponse({
        'success': True,
        'message': 'Booking cancelled and seats released',
        'data': booking.to_dict(),
    })

@require_GET
def seat_status(request, movie_name):

    theatre_name = request.GET.get('theatre_name', '').strip()
    if not theatre_name:
        raise ValidationFailed('theatre_name query parameter is required')

    seats = [seat for seat in request.GET.get('seats', '').split(',') if seat.strip()]
    return JsonResponse({
        'success': True,
        'message': 'Seat status',
        'data': SeatManager.get_seat_status(movie_name, theatre_name, [seat.strip() for seat in seats]),
    })
