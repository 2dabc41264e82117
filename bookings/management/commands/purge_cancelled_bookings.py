from django.conf import settings
from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone
from datetime import timedelta
from bookings.models import Booking
from bookings.statistics import BookingStatistics


class Command(BaseCommand):
    help = 'Delete CANCELLED bookings older than the retention period'

    def add_arguments(self, parser):
        parser.add_argument(
            '--days',
            type=int,
            default=None,
            help='Retention period in days (defaults to CANCELLED_BOOKING_RETENTION_DAYS)',
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Only report how many bookings would be deleted',
        )

    def handle(self, *args, **options):
        days = options['days']
        if days is None:
            days = getattr(settings, 'CANCELLED_BOOKING_RETENTION_DAYS', 30)
        if days < 0:
            raise CommandError('--days must not be negative')

        cutoff = timezone.now() - timedelta(days=days)

        candidates = Booking.objects.filter(status=Booking.CANCELLED, booked_at__lt=cutoff)
        count = candidates.count()

        if count == 0:
            self.stdout.write(
                self.style.SUCCESS(f'✅ No cancelled bookings older than {days} days')
            )
            return

        if options['dry_run']:
            self.stdout.write(
                self.style.WARNING(f'⏰ {count} cancelled bookings older than {days} days would be deleted')
            )
            return

        purged = BookingStatistics.purge_cancelled(cutoff)

        self.stdout.write(
            self.style.SUCCESS(f'✅ Purged {purged} cancelled bookings older than {days} days')
        )
