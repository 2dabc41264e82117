import json
import logging

from django.contrib.auth import authenticate, login, logout, update_session_auth_hash
from django.contrib.auth.decorators import login_required
from django.http import JsonResponse
from django.views.decorators.http import require_GET, require_POST

from moviebooking.exceptions import ValidationFailed
from .forms import PasswordResetForm
from .identity import IdentityResolver
from .services import UserService

logger = logging.getLogger(__name__)

def parse_json_body(request):

    if not request.body:
        return {}
    try:
        data = json.loads(request.body)
    except json.JSONDecodeError:
        raise ValidationFailed('Request body must be valid JSON.')
    if not isinstance(data, dict):
        raise ValidationFailed('Request body must be a JSON object.')
    return data

def user_payload(user):
    identity = IdentityResolver.from_user(user)
    return {
        'id': identity.id,
        'login_id': identity.login_name,
        'email': user.email,
        'first_name': user.first_name,
        'last_name': user.last_name,
        'contact_number': user.profile.contact_number if hasattr(user, 'profile') else '',
        'is_admin': identity.is_admin,
    }

@require_POST
def register(request):

    user = UserService.register_user(parse_json_body(request))

    return JsonResponse({
        'success': True,
        'message': 'User registered successfully',
        'data': user_payload(user),
    }, status=201)

@require_POST
def login_view(request):

    data = parse_json_body(request)
    username = data.get('login_id') or data.get('email')
    password = data.get('password')

    if not username or not password:
        raise ValidationFailed('Login ID and password are required.')

    user = authenticate(request, username=username, password=password)
    if user is None:
        logger.warning(f"Failed login attempt for '{username}'")
        return JsonResponse({
            'success': False,
            'error': 'INVALID_CREDENTIALS',
            'message': 'Invalid login ID or password.',
        }, status=401)

    login(request, user)
    logger.info(f"User {user.username} logged in")

    return JsonResponse({
        'success': True,
        'message': 'Login successful',
        'data': user_payload(user),
    })

@require_POST
def logout_view(request):

    if request.user.is_authenticated:
        logger.info(f"User {request.user.username} logged out")
    logout(request)
    return JsonResponse({'success': True, 'message': 'Logged out'})

@login_required
@require_GET
def profile(request):
    return JsonResponse({
        'success': True,
        'message': 'Profile',
        'data': user_payload(request.user),
    })

@login_required
@require_POST
def change_password(request):

    data = parse_json_body(request)
    user = UserService.update_password(
        request.user.username,
        data.get('current_password', ''),
        data.get('new_password', ''),
    )
    update_session_auth_hash(request, user)

    return JsonResponse({'success': True, 'message': 'Password updated successfully'})

@require_POST
def forgot_password(request):

    data = parse_json_body(request)
    login_or_email = data.get('login_id') or data.get('email')
    if not login_or_email:
        raise ValidationFailed('Login ID or email is required.')

    reset_token = UserService.create_password_reset_token(login_or_email)

    # no mail transport is configured; the token is handed back to the caller
    return JsonResponse({
        'success': True,
        'message': 'Password reset token generated',
        'data': {
            'token': reset_token.token,
            'expires_at': reset_token.expires_at.isoformat(),
        },
    })

@require_POST
def reset_password(request):

    form = PasswordResetForm(parse_json_body(request))
    if not form.is_valid():
        for errors in form.errors.values():
            raise ValidationFailed(errors[0])

    UserService.reset_password_with_token(
        form.cleaned_data['token'],
        form.cleaned_data['new_password'],
    )
    return JsonResponse({'success': True, 'message': 'Password reset successfully'})
