from django.urls import path
from . import views

urlpatterns = [
    path('mine/', views.my_tickets, name='my_tickets'),
    path('mine/summary/', views.my_summary, name='my_summary'),

    path('ticket/<str:booking_reference>/', views.ticket_detail, name='ticket_detail'),
    path('ticket/<str:booking_reference>/cancel/', views.cancel_ticket, name='cancel_ticket'),

    path('<str:movie_name>/book/', views.book_tickets, name='book_tickets'),
    path('<str:movie_name>/seats/', views.seat_status, name='seat_status'),
]
