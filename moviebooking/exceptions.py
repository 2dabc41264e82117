
class MovieBookingError(Exception):
    code = 'ERROR'
    status_code = 400
    default_message = 'Request could not be completed'

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self):
        return {
            'success': False,
            'error': self.code,
            'message': self.message,
        }


class NotFound(MovieBookingError):
    code = 'NOT_FOUND'
    status_code = 404
    default_message = 'Resource not found'


class ValidationFailed(MovieBookingError):
    code = 'VALIDATION_FAILED'
    status_code = 400
    default_message = 'Invalid request'


class BookingRejected(MovieBookingError):
    code = 'BOOKING_REJECTED'
    status_code = 409
    default_message = 'Booking could not be completed'


class Forbidden(MovieBookingError):
    code = 'FORBIDDEN'
    status_code = 403
    default_message = 'You are not allowed to perform this action'


class InvalidState(MovieBookingError):
    code = 'INVALID_STATE'
    status_code = 409
    default_message = 'Operation not allowed in the current state'


class Conflict(MovieBookingError):
    code = 'CONFLICT'
    status_code = 409
    default_message = 'Resource already exists'
