from django.core.management.base import BaseCommand, CommandError
from movies.inventory import InventoryStore
from moviebooking.exceptions import NotFound


class Command(BaseCommand):
    help = 'Rebuild available tickets and status from confirmed bookings'

    def add_arguments(self, parser):
        parser.add_argument('--movie', type=str, help='Movie name (requires --theatre)')
        parser.add_argument('--theatre', type=str, help='Theatre name (requires --movie)')

    def handle(self, *args, **options):
        movie_name = options.get('movie')
        theatre_name = options.get('theatre')

        if bool(movie_name) != bool(theatre_name):
            raise CommandError('--movie and --theatre must be given together')

        if movie_name:
            try:
                movie = InventoryStore.recalculate(movie_name, theatre_name)
            except NotFound as e:
                raise CommandError(str(e))

            self.stdout.write(self.style.SUCCESS(
                f'✅ {movie}: {movie.available_tickets}/{movie.total_tickets} available ({movie.status})'
            ))
            return

        changed = InventoryStore.recalculate_all()
        self.stdout.write(
            self.style.SUCCESS(f'✅ Reconciliation complete. {changed} records corrected.')
        )
