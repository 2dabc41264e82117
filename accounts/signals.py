from django.contrib.auth.models import User
from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from .identity import IdentityResolver
from .models import UserProfile


@receiver(post_save, sender=User)
def user_saved(sender, instance, created, **kwargs):
    IdentityResolver.invalidate()
    if created:
        UserProfile.objects.get_or_create(user=instance)


@receiver(post_delete, sender=User)
def user_deleted(sender, instance, **kwargs):
    IdentityResolver.invalidate()
