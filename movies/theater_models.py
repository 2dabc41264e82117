from django.db import models


class ShowTime(models.Model):
    movie = models.ForeignKey('movies.Movie', on_delete=models.CASCADE, related_name='show_times')

    show_date = models.DateField()
    show_time = models.TimeField()
    screen_number = models.CharField(max_length=20, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.movie.movie_name} - {self.show_date} {self.show_time}"

    def get_formatted_time(self):

        return self.show_time.strftime("%I:%M %p")

    def get_formatted_date(self):

        return self.show_date.strftime("%d %b, %Y")

    def to_dict(self):
        return {
            'show_date': self.show_date.isoformat(),
            'show_time': self.show_time.strftime('%H:%M:%S'),
            'screen_number': self.screen_number,
        }

    class Meta:
        ordering = ['show_date', 'show_time']
        constraints = [
            models.UniqueConstraint(
                fields=['movie', 'show_date', 'show_time', 'screen_number'],
                name='uk_showtime_slot',
            ),
        ]
