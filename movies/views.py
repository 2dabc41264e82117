from django.http import JsonResponse
from django.views.decorators.http import require_GET

from .services import MovieService


def _movie_list_response(movies, message):
    data = [movie.to_dict() for movie in movies]
    return JsonResponse({
        'success': True,
        'message': message,
        'count': len(data),
        'data': data,
    })

@require_GET
def movie_list(request):

    query = request.GET.get('q', '')

    if query:
        movies = MovieService.search_movies(query)
        return _movie_list_response(movies, f"Movies matching '{query}'")

    return _movie_list_response(MovieService.get_all_movies(), 'All movies')

@require_GET
def available_movies(request):
    return _movie_list_response(MovieService.get_available_movies(), 'Movies with tickets available')

@require_GET
def sold_out_movies(request):
    return _movie_list_response(MovieService.get_sold_out_movies(), 'Sold out movies')

@require_GET
def movie_names(request):

    names = MovieService.get_distinct_movie_names()
    return JsonResponse({
        'success': True,
        'message': 'Movie names',
        'data': names,
    })

@require_GET
def movie_by_name(request, movie_name):
    return _movie_list_response(MovieService.get_movies_by_name(movie_name), f"Theatres showing '{movie_name}'")

@require_GET
def movie_detail(request, movie_name, theatre_name):

    movie = MovieService.get_movie(movie_name, theatre_name)
    return JsonResponse({
        'success': True,
        'message': 'Movie details',
        'data': movie.to_dict(include_show_times=True),
    })
