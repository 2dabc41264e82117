from django.urls import path
from . import views

urlpatterns = [
    path('', views.movie_list, name='movie_list'),
    path('available/', views.available_movies, name='available_movies'),
    path('sold-out/', views.sold_out_movies, name='sold_out_movies'),
    path('names/', views.movie_names, name='movie_names'),

    path('<str:movie_name>/', views.movie_by_name, name='movie_by_name'),
    path('<str:movie_name>/<str:theatre_name>/', views.movie_detail, name='movie_detail'),
]
