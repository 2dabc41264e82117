import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Booking',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('booking_reference', models.CharField(editable=False, max_length=32, unique=True)),
                ('movie_name', models.CharField(max_length=200)),
                ('theatre_name', models.CharField(max_length=200)),
                ('number_of_tickets', models.PositiveSmallIntegerField(validators=[django.core.validators.MinValueValidator(1), django.core.validators.MaxValueValidator(10)])),
                ('seat_numbers', models.JSONField(default=list)),
                ('user_login_id', models.CharField(db_index=True, max_length=150)),
                ('status', models.CharField(choices=[('CONFIRMED', 'Confirmed'), ('CANCELLED', 'Cancelled'), ('EXPIRED', 'Expired')], db_index=True, default='CONFIRMED', max_length=20)),
                ('total_price', models.DecimalField(decimal_places=2, default=0.0, max_digits=10)),
                ('booked_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('cancelled_at', models.DateTimeField(blank=True, null=True)),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='bookings', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['-booked_at'],
                'indexes': [models.Index(fields=['movie_name', 'theatre_name', 'status'], name='booking_pair_status_idx')],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('number_of_tickets__gte', 1), ('number_of_tickets__lte', 10)), name='booking_ticket_count_range'),
                ],
            },
        ),
        migrations.CreateModel(
            name='BookedSeat',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('movie_name', models.CharField(max_length=200)),
                ('theatre_name', models.CharField(max_length=200)),
                ('seat_number', models.CharField(max_length=10)),
                ('booking', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='seat_claims', to='bookings.booking')),
            ],
            options={
                'constraints': [
                    models.UniqueConstraint(fields=('movie_name', 'theatre_name', 'seat_number'), name='uk_booked_seat_per_showing'),
                ],
            },
        ),
    ]
