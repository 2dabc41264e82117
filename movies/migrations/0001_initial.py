import django.core.validators
import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Movie',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('movie_name', models.CharField(db_index=True, max_length=200)),
                ('theatre_name', models.CharField(db_index=True, max_length=200)),
                ('total_tickets', models.PositiveIntegerField(validators=[django.core.validators.MinValueValidator(1)])),
                ('available_tickets', models.PositiveIntegerField()),
                ('status', models.CharField(choices=[('BOOKABLE', 'Bookable'), ('SOLD_OUT', 'Sold Out')], db_index=True, default='BOOKABLE', max_length=20)),
                ('ticket_price', models.DecimalField(decimal_places=2, default=200.0, max_digits=8)),
                ('description', models.TextField(blank=True)),
                ('genre', models.CharField(blank=True, max_length=100)),
                ('language', models.CharField(blank=True, max_length=50)),
                ('duration', models.PositiveIntegerField(blank=True, help_text='Duration in minutes', null=True)),
                ('rating', models.DecimalField(blank=True, decimal_places=1, max_digits=3, null=True, validators=[django.core.validators.MinValueValidator(0), django.core.validators.MaxValueValidator(10)])),
                ('release_date', models.DateField(blank=True, null=True)),
                ('poster_url', models.URLField(blank=True, max_length=500)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'ordering': ['movie_name', 'theatre_name'],
                'constraints': [
                    models.UniqueConstraint(fields=('movie_name', 'theatre_name'), name='uk_movie_theatre'),
                    models.CheckConstraint(condition=models.Q(('total_tickets__gte', 1)), name='movie_total_tickets_positive'),
                    models.CheckConstraint(condition=models.Q(('available_tickets__gte', 0), ('available_tickets__lte', models.F('total_tickets'))), name='movie_available_within_total'),
                ],
            },
        ),
        migrations.CreateModel(
            name='ShowTime',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('show_date', models.DateField()),
                ('show_time', models.TimeField()),
                ('screen_number', models.CharField(blank=True, max_length=20)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('movie', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='show_times', to='movies.movie')),
            ],
            options={
                'ordering': ['show_date', 'show_time'],
                'constraints': [
                    models.UniqueConstraint(fields=('movie', 'show_date', 'show_time', 'screen_number'), name='uk_showtime_slot'),
                ],
            },
        ),
    ]
