import logging

from django.contrib.auth.models import User
from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Q

from moviebooking.exceptions import Conflict, NotFound, ValidationFailed
from .forms import RegistrationForm
from .identity import IdentityResolver
from .models import PasswordResetToken, UserProfile

logger = logging.getLogger(__name__)


class UserService:

    @staticmethod
    @transaction.atomic
    def register_user(data):
        """
        Create a regular (non-admin) user from registration data.

        Expects the ``RegistrationForm`` fields. The password is stored with
        Django's configured hasher, never in clear text.
        """

        form = RegistrationForm(data)
        if not form.is_valid():
            raise ValidationFailed(form.first_error())

        cleaned = form.cleaned_data
        if User.objects.filter(username=cleaned['login_id']).exists():
            raise Conflict(f"User with login ID '{cleaned['login_id']}' already exists")
        if User.objects.filter(email__iexact=cleaned['email']).exists():
            raise Conflict(f"User with email '{cleaned['email']}' already exists")

        user = User.objects.create_user(
            username=cleaned['login_id'],
            email=cleaned['email'],
            password=cleaned['password'],
            first_name=cleaned['first_name'],
            last_name=cleaned['last_name'],
        )
        profile, _ = UserProfile.objects.get_or_create(user=user)
        profile.contact_number = cleaned.get('contact_number') or ''
        profile.save(update_fields=['contact_number', 'updated_at'])
        user.profile = profile

        logger.info(f"User registered: {user.username}")
        return user

    @staticmethod
    def find_user(login_or_email):
        user = User.objects.filter(
            Q(username=login_or_email) | Q(email__iexact=login_or_email)
        ).order_by('-date_joined').first()
        if user is None:
            raise NotFound(f"User '{login_or_email}' not found")
        return user

    @staticmethod
    def update_password(login_id, current_password, new_password):

        user = IdentityResolver.get_user(login_id)
        if not user.check_password(current_password):
            raise ValidationFailed("Current password is incorrect")

        UserService._set_password(user, new_password)
        logger.info(f"Password updated for {user.username}")
        return user

    @staticmethod
    @transaction.atomic
    def create_password_reset_token(login_or_email):

        user = UserService.find_user(login_or_email)

        PasswordResetToken.objects.filter(user=user, used=False).update(used=True)
        reset_token = PasswordResetToken.objects.create(user=user)

        logger.info(f"Password reset token issued for {user.username}, expires {reset_token.expires_at}")
        return reset_token

    @staticmethod
    @transaction.atomic
    def reset_password_with_token(token, new_password):

        reset_token = PasswordResetToken.objects.select_for_update().filter(token=token).first()
        if reset_token is None:
            raise ValidationFailed("Invalid password reset token")
        if reset_token.used:
            raise ValidationFailed("Password reset token has already been used")
        if reset_token.is_expired():
            raise ValidationFailed("Password reset token has expired")

        UserService._set_password(reset_token.user, new_password)
        reset_token.used = True
        reset_token.save(update_fields=['used'])

        logger.info(f"Password reset completed for {reset_token.user.username}")
        return reset_token.user

    @staticmethod
    def _set_password(user, new_password):
        try:
            validate_password(new_password, user)
        except ValidationError as e:
            raise ValidationFailed(' '.join(e.messages))

        user.set_password(new_password)
        user.save(update_fields=['password'])
