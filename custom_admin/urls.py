from django.urls import path
from . import views

app_name = 'custom_admin'

urlpatterns = [
    path('api/stats/', views.api_stats, name='api_stats'),
    path('api/stats/movies/', views.api_movie_stats, name='api_movie_stats'),
    path('api/stats/users/<str:login_id>/', views.api_user_summary, name='api_user_summary'),
    path('api/bookings/recent/', views.api_recent_bookings, name='api_recent_bookings'),
    path('api/bookings/<str:movie_name>/<str:theatre_name>/', views.api_bookings, name='api_bookings'),

    path('api/recalculate/', views.api_recalculate, name='api_recalculate'),
    path('api/purge-cancelled/', views.api_purge_cancelled, name='api_purge_cancelled'),

    path('api/movies/', views.api_add_movie, name='api_add_movie'),
    path('api/movies/<str:movie_name>/<str:theatre_name>/tickets/', views.api_update_total_tickets, name='api_update_total_tickets'),
    path('api/movies/<str:movie_name>/<str:theatre_name>/', views.api_delete_movie, name='api_delete_movie'),
]
