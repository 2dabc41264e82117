from django.contrib.auth.backends import ModelBackend
from django.contrib.auth.models import User
from django.db.models import Q


class EmailBackend(ModelBackend):
    """Authenticate with either the login ID or the email address."""

    def authenticate(self, request, username=None, password=None, **kwargs):
        if username is None:
            username = kwargs.get('email')

        if username is None or password is None:
            return None

        user = User.objects.filter(
            Q(email__iexact=username) | Q(username__iexact=username)
        ).order_by('-date_joined').first()

        if user is None:
            # run the hasher anyway so unknown users take as long as wrong passwords
            User().set_password(password)
            return None

        if user.check_password(password) and self.user_can_authenticate(user):
            return user

        return None
