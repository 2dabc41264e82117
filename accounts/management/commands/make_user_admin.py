from django.core.management.base import BaseCommand, CommandError
from django.contrib.auth.models import User
from accounts.models import UserProfile


class Command(BaseCommand):
    help = 'Make an existing user an administrator who may manage any booking'

    def add_arguments(self, parser):
        parser.add_argument('username', type=str, help='Login ID of the user to promote')
        parser.add_argument('--revoke', action='store_true', help='Remove administrator rights instead')

    def handle(self, *args, **options):
        username = options['username']
        grant = not options['revoke']

        try:
            user = User.objects.get(username=username)
        except User.DoesNotExist:
            raise CommandError(f'User "{username}" not found')

        user.is_staff = grant
        user.is_superuser = grant
        user.save(update_fields=['is_staff', 'is_superuser'])

        UserProfile.objects.get_or_create(user=user)

        state = 'now an admin' if grant else 'no longer an admin'
        self.stdout.write(self.style.SUCCESS(
            f'✅ {username} is {state}\n'
            f'   Staff: {user.is_staff}\n'
            f'   Superuser: {user.is_superuser}'
        ))
