from django.contrib import admin
from django.utils.html import format_html

from moviebooking.exceptions import MovieBookingError
from .models import Booking, BookedSeat
from .services import CancellationService

class BookedSeatInline(admin.TabularInline):
    model = BookedSeat
    extra = 0
    can_delete = False
    readonly_fields = ['seat_number', 'movie_name', 'theatre_name']

    def has_add_permission(self, request, obj=None):
        return False

@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = ['booking_reference', 'user_login_id', 'movie_name', 'theatre_name', 'number_of_tickets', 'total_price', 'status_badge', 'booked_at']
    list_filter = ['status', 'booked_at', 'movie_name', 'theatre_name']
    search_fields = ['booking_reference', 'user_login_id', 'movie_name', 'theatre_name']
    actions = ['cancel_bookings', 'export_as_csv']

    readonly_fields = [
        'booking_reference', 'movie_name', 'theatre_name', 'number_of_tickets', 'seat_numbers',
        'user', 'user_login_id', 'status', 'total_price', 'booked_at', 'updated_at', 'cancelled_at',
    ]
    inlines = [BookedSeatInline]

    fieldsets = [
        ('Booking Information', {
            'fields': ['booking_reference', 'user', 'user_login_id', 'movie_name', 'theatre_name', 'seat_numbers', 'number_of_tickets']
        }),
        ('Status', {
            'fields': ['status', 'total_price']
        }),
        ('Timestamps', {
            'fields': ['booked_at', 'updated_at', 'cancelled_at']
        }),
    ]

    def has_add_permission(self, request):
        return False

    def status_badge(self, obj):
        colors = {
            'CONFIRMED': 'success',
            'CANCELLED': 'danger',
            'EXPIRED': 'secondary',
        }
        color = colors.get(obj.status, 'secondary')

        return format_html('<span class="badge bg-{}">{}</span>', color, obj.status)
    status_badge.short_description = 'Status'

    @admin.action(description="Cancel selected bookings")
    def cancel_bookings(self, request, queryset):

        cancelled = 0
        failed = []
        for booking in queryset.filter(status=Booking.CONFIRMED):
            try:
                CancellationService.cancel_booking(booking.booking_reference, request.user)
                cancelled += 1
            except MovieBookingError as e:
                failed.append(f"{booking.booking_reference}: {e.message}")

        self.message_user(request, f'{cancelled} bookings cancelled successfully.')
        if failed:
            self.message_user(request, 'Not cancelled: ' + '; '.join(failed), level='warning')

    @admin.action(description="Export selected bookings to CSV")
    def export_as_csv(self, request, queryset):
        import csv
        from django.http import HttpResponse
        response = HttpResponse(content_type='text/csv')
        response['Content-Disposition'] = 'attachment; filename="selected_bookings.csv"'
        writer = csv.writer(response)
        writer.writerow(['Reference', 'User', 'Movie', 'Theatre', 'Seats', 'Amount', 'Status', 'Date'])

        for booking in queryset:
            writer.writerow([
                booking.booking_reference,
                booking.user_login_id,
                booking.movie_name,
                booking.theatre_name,
                booking.get_seats_display(),
                booking.get_formatted_total(),
                booking.status,
                booking.booked_at.strftime('%Y-%m-%d %H:%M')
            ])
        return response
