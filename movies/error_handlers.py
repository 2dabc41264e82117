import logging
from django.http import JsonResponse
from django.core.exceptions import PermissionDenied
from django.db import DatabaseError

from moviebooking.exceptions import MovieBookingError

logger = logging.getLogger(__name__)

def handler400(request, exception):

    logger.warning(f'400 Error: {exception}')

    return JsonResponse({
        'success': False,
        'error': 'BAD_REQUEST',
        'message': 'The request could not be understood.'
    }, status=400)

def handler403(request, exception):

    logger.warning(f'403 Error: {exception}')

    return JsonResponse({
        'success': False,
        'error': 'FORBIDDEN',
        'message': 'You do not have permission to access this resource.'
    }, status=403)

def handler404(request, exception):

    logger.warning(f'404 Error: {exception}')

    return JsonResponse({
        'success': False,
        'error': 'NOT_FOUND',
        'message': 'The requested resource was not found.'
    }, status=404)

def handler500(request):

    logger.error('500 Internal Server Error')

    return JsonResponse({
        'success': False,
        'error': 'INTERNAL_ERROR',
        'message': 'An unexpected error occurred.'
    }, status=500)

def handler503(request, exception=None):

    logger.error('503 Service Unavailable')

    return JsonResponse({
        'success': False,
        'error': 'SERVICE_UNAVAILABLE',
        'message': 'The service is temporarily unavailable.'
    }, status=503)

def domain_error_response(exception):
    return JsonResponse(exception.to_dict(), status=exception.status_code)

class GlobalExceptionMiddleware:

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        response = self.get_response(request)
        return response

    def process_exception(self, request, exception):

        if isinstance(exception, MovieBookingError):
            logger.warning(f'{exception.code} on {request.path}: {exception.message}')
            return domain_error_response(exception)

        if isinstance(exception, DatabaseError):
            logger.error(f'Database error on {request.path}: {exception}', exc_info=True)
            return handler503(request, exception)
        elif isinstance(exception, PermissionDenied):
            return handler403(request, exception)

        logger.error(f'Unhandled exception: {exception}', exc_info=True)
        return None
