from django.contrib import admin
from django.urls import path, include

handler400 = 'movies.error_handlers.handler400'
handler403 = 'movies.error_handlers.handler403'
handler404 = 'movies.error_handlers.handler404'
handler500 = 'movies.error_handlers.handler500'

urlpatterns = [
    path('custom-admin/', include('custom_admin.urls')),
    path('admin/', admin.site.urls),
    path('api/accounts/', include('accounts.urls')),
    path('api/tickets/', include('bookings.urls')),
    path('api/movies/', include('movies.urls')),
]
