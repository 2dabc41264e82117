from django.conf import settings
from django.http import JsonResponse
from django.utils import timezone
from django.views.decorators.http import require_GET, require_http_methods, require_POST
from datetime import timedelta
import logging

from accounts.decorators import admin_required
from accounts.views import parse_json_body
from bookings.services import BookingService
from bookings.statistics import BookingStatistics
from movies.inventory import InventoryStore
from movies.services import MovieService
from moviebooking.exceptions import ValidationFailed

logger = logging.getLogger(__name__)

def _require(data, *fields):
    missing = [field for field in fields if data.get(field) in (None, '')]
    if missing:
        raise ValidationFailed(f"Missing required fields: {', '.join(missing)}")

def _int_param(value, name, default):
    if value in (None, ''):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationFailed(f"{name} must be a whole number")

@admin_required
@require_GET
def api_stats(request):

    return JsonResponse({
        'success': True,
        'message': 'Booking statistics',
        'data': {
            'by_movie': BookingStatistics.by_movie(),
            'by_theatre': BookingStatistics.by_theatre(),
            'by_user': BookingStatistics.by_user(),
            'top_movies': BookingStatistics.top_movies(_int_param(request.GET.get('limit'), 'limit', 5)),
        },
    })

@admin_required
@require_GET
def api_movie_stats(request):
    return JsonResponse({
        'success': True,
        'message': 'Movie inventory statistics',
        'data': MovieService.get_movie_statistics(),
    })

@admin_required
@require_GET
def api_user_summary(request, login_id):
    return JsonResponse({
        'success': True,
        'message': f'Booking summary for {login_id}',
        'data': BookingStatistics.user_summary(login_id),
    })

@admin_required
@require_GET
def api_recent_bookings(request):

    days = _int_param(request.GET.get('days'), 'days', 7)
    since = timezone.now() - timedelta(days=days)
    bookings = BookingStatistics.recent_bookings(since)

    return JsonResponse({
        'success': True,
        'message': f'Bookings in the last {days} days',
        'count': len(bookings),
        'data': [booking.to_dict() for booking in bookings],
    })

@admin_required
@require_GET
def api_bookings(request, movie_name, theatre_name):

    bookings = BookingService.get_booked_tickets(movie_name, theatre_name)

    return JsonResponse({
        'success': True,
        'message': f'Booked tickets for {movie_name} @ {theatre_name}',
        'count': len(bookings),
        'booked_tickets': BookingStatistics.count_booked_tickets(movie_name, theatre_name),
        'data': [booking.to_dict() for booking in bookings],
    })

@admin_required
@require_POST
def api_recalculate(request):

    data = parse_json_body(request)
    movie_name = data.get('movie_name')
    theatre_name = data.get('theatre_name')

    if movie_name or theatre_name:
        _require(data, 'movie_name', 'theatre_name')
        movie = InventoryStore.recalculate(movie_name, theatre_name)
        logger.info(f"Manual recalculation of {movie} by {request.user.username}")
        return JsonResponse({
            'success': True,
            'message': 'Inventory recalculated',
            'data': movie.to_dict(),
        })

    changed = InventoryStore.recalculate_all()
    return JsonResponse({
        'success': True,
        'message': 'Inventory reconciled',
        'data': {'records_corrected': changed},
    })

@admin_required
@require_POST
def api_purge_cancelled(request):

    data = parse_json_body(request)
    days = _int_param(data.get('days'), 'days', getattr(settings, 'CANCELLED_BOOKING_RETENTION_DAYS', 30))
    if days < 0:
        raise ValidationFailed('days must not be negative')

    purged = BookingStatistics.purge_cancelled(timezone.now() - timedelta(days=days))
    return JsonResponse({
        'success': True,
        'message': f'Purged cancelled bookings older than {days} days',
        'data': {'purged': purged},
    })

@admin_required
@require_POST
def api_add_movie(request):

    data = parse_json_body(request)
    _require(data, 'movie_name', 'theatre_name', 'total_tickets')

    details = {
        field: data[field]
        for field in ('ticket_price', 'description', 'genre', 'language', 'duration', 'rating', 'release_date', 'poster_url')
        if field in data
    }
    movie = MovieService.add_movie(
        data['movie_name'],
        data['theatre_name'],
        data['total_tickets'],
        show_times=data.get('show_times') or [],
        **details
    )

    return JsonResponse({
        'success': True,
        'message': 'Movie added successfully',
        'data': movie.to_dict(include_show_times=True),
    }, status=201)

@admin_required
@require_http_methods(['PUT', 'POST'])
def api_update_total_tickets(request, movie_name, theatre_name):

    data = parse_json_body(request)
    _require(data, 'total_tickets')
    movie = MovieService.update_total_tickets(movie_name, theatre_name, data['total_tickets'])

    return JsonResponse({
        'success': True,
        'message': 'Total tickets updated',
        'data': movie.to_dict(),
    })

@admin_required
@require_http_methods(['DELETE'])
def api_delete_movie(request, movie_name, theatre_name):

    MovieService.delete_movie(movie_name, theatre_name)
    return JsonResponse({
        'success': True,
        'message': f'{movie_name} @ {theatre_name} deleted',
    })
