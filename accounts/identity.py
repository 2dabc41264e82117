import logging
from collections import namedtuple

from django.conf import settings
from django.contrib.auth.models import User
from django.core.cache import cache

from moviebooking.exceptions import NotFound

logger = logging.getLogger(__name__)

Identity = namedtuple('Identity', ['id', 'login_name', 'is_admin'])

GENERATION_KEY = 'identity:generation'


class IdentityResolver:
    """
    Turns whatever the caller authenticated as into an ``Identity``.

    Lookups are cached. Any write to a ``User`` bumps the cache generation
    (see ``accounts.signals``), which retires every cached entry at once.
    """

    @staticmethod
    def resolve(identifier):

        if isinstance(identifier, User):
            if not identifier.pk:
                raise NotFound("User is not registered")
            return IdentityResolver.from_user(identifier)

        if identifier is None or str(identifier).strip() == '':
            raise NotFound("No user given")

        key = IdentityResolver._cache_key(identifier)
        cached = cache.get(key)
        if cached is not None:
            return Identity(*cached)

        user = IdentityResolver._lookup(str(identifier).strip())
        identity = IdentityResolver.from_user(user)
        cache.set(key, tuple(identity), timeout=getattr(settings, 'IDENTITY_CACHE_TIMEOUT', 300))
        return identity

    @staticmethod
    def from_user(user):
        return Identity(
            id=user.pk,
            login_name=user.username,
            is_admin=user.is_staff or user.is_superuser,
        )

    @staticmethod
    def get_user(identifier):
        """Resolve and return the ``User`` row itself."""

        identity = IdentityResolver.resolve(identifier)
        try:
            return User.objects.get(pk=identity.id)
        except User.DoesNotExist:
            IdentityResolver.invalidate()
            raise NotFound(f"User '{identity.login_name}' not found")

    @staticmethod
    def invalidate():
        try:
            cache.incr(GENERATION_KEY)
        except ValueError:
            cache.set(GENERATION_KEY, 1, timeout=None)

    @staticmethod
    def _generation():
        generation = cache.get(GENERATION_KEY)
        if generation is None:
            cache.add(GENERATION_KEY, 0, timeout=None)
            generation = cache.get(GENERATION_KEY, 0)
        return generation

    @staticmethod
    def _cache_key(identifier):
        return f"identity:{IdentityResolver._generation()}:{str(identifier).strip()}"

    @staticmethod
    def _lookup(identifier):
        user = User.objects.filter(username=identifier).first()
        if user is None:
            user = User.objects.filter(email__iexact=identifier).order_by('-date_joined').first()
        if user is None and identifier.isdigit():
            user = User.objects.filter(pk=int(identifier)).first()

        if user is None:
            logger.warning(f"Identity lookup failed for '{identifier}'")
            raise NotFound(f"User '{identifier}' not found")
        return user
