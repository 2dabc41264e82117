from functools import wraps
from django.contrib.auth.decorators import login_required

from moviebooking.exceptions import Forbidden
from .identity import IdentityResolver


def admin_required(view_func):
    @wraps(view_func)
    @login_required
    def wrapper(request, *args, **kwargs):
        identity = IdentityResolver.resolve(request.user)
        if not identity.is_admin:
            raise Forbidden('Administrator access required.')

        return view_func(request, *args, **kwargs)

    return wrapper
