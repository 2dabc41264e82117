from django.contrib import admin
from django.db import transaction
from django.utils.html import format_html

from .inventory import InventoryStore
from .models import Movie
from .theater_models import ShowTime


class ShowTimeInline(admin.TabularInline):
    model = ShowTime
    extra = 1
    fields = ['show_date', 'show_time', 'screen_number']


@admin.register(Movie)
class MovieAdmin(admin.ModelAdmin):
    list_display = ['movie_name', 'theatre_name', 'total_tickets', 'available_tickets', 'ticket_price', 'status_badge']

    list_filter = ['status', 'theatre_name', 'genre', 'language']

    search_fields = ['movie_name', 'theatre_name']

    readonly_fields = ['available_tickets', 'status', 'created_at', 'updated_at']

    inlines = [ShowTimeInline]

    actions = ['recalculate_inventory']

    fieldsets = [
        ('Showing', {
            'fields': ['movie_name', 'theatre_name', 'ticket_price']
        }),
        ('Inventory', {
            'fields': ['total_tickets', 'available_tickets', 'status']
        }),
        ('Details', {
            'fields': ['description', 'genre', 'language', 'duration', 'rating', 'release_date', 'poster_url']
        }),
        ('Timestamps', {
            'fields': ['created_at', 'updated_at']
        }),
    ]

    def status_badge(self, obj):
        color = 'success' if obj.status == Movie.BOOKABLE else 'danger'
        return format_html('<span class="badge bg-{}">{}</span>', color, obj.get_status_display())
    status_badge.short_description = 'Status'

    def get_readonly_fields(self, request, obj=None):
        # pair names key the booking ledger
        if obj is not None:
            return self.readonly_fields + ['movie_name', 'theatre_name']
        return self.readonly_fields

    def save_model(self, request, obj, form, change):
        if not change:
            super().save_model(request, obj, form, change)
            return

        with transaction.atomic():
            current = InventoryStore.lock(obj.movie_name, obj.theatre_name)

            # counter values come from the locked row, not the form
            obj.available_tickets = current.available_tickets
            obj.status = current.status

            fields = [name for name in form.changed_data if name not in ('available_tickets', 'status')]
            if 'total_tickets' in fields:
                obj.available_tickets = min(obj.available_tickets, obj.total_tickets)
                fields += ['available_tickets', 'status']

            obj.save(update_fields=fields + ['updated_at'])
            InventoryStore.recalculate_locked(obj)

    @admin.action(description="Recalculate availability from bookings")
    def recalculate_inventory(self, request, queryset):
        for movie in queryset:
            InventoryStore.recalculate(movie.movie_name, movie.theatre_name)
        self.message_user(request, f"{queryset.count()} movies recalculated.")


@admin.register(ShowTime)
class ShowTimeAdmin(admin.ModelAdmin):
    list_display = ['movie', 'show_date', 'show_time', 'screen_number']
    list_filter = ['show_date']
    search_fields = ['movie__movie_name', 'movie__theatre_name']
