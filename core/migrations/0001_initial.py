import core.validators
import django.contrib.auth.models
import django.contrib.auth.validators
import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from decimal import Decimal
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('auth', '0012_alter_user_first_name_max_length'),
    ]

    operations = [
        migrations.CreateModel(
            name='Organization',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('password', models.CharField(max_length=128, verbose_name='password')),
                ('last_login', models.DateTimeField(blank=True, null=True, verbose_name='last login')),
                ('is_superuser', models.BooleanField(default=False, help_text='Designates that this user has all permissions without explicitly assigning them.', verbose_name='superuser status')),
                ('username', models.CharField(error_messages={'unique': 'A user with that username already exists.'}, help_text='Required. 150 characters or fewer. Letters, digits and @/./+/-/_ only.', max_length=150, unique=True, validators=[django.contrib.auth.validators.UnicodeUsernameValidator()], verbose_name='username')),
                ('first_name', models.CharField(blank=True, max_length=150, verbose_name='first name')),
                ('last_name', models.CharField(blank=True, max_length=150, verbose_name='last name')),
                ('is_staff', models.BooleanField(default=False, help_text='Designates whether the user can log into this admin site.', verbose_name='staff status')),
                ('is_active', models.BooleanField(default=True, help_text='Designates whether this user should be treated as active. Unselect this instead of deleting accounts.', verbose_name='active')),
                ('date_joined', models.DateTimeField(default=django.utils.timezone.now, verbose_name='date joined')),
                ('email', models.EmailField(error_messages={'unique': 'An organization with that email already exists.'}, help_text='Required. Used as the login identifier.', max_length=254, unique=True, verbose_name='email address')),
                ('name', models.CharField(blank=True, default='', help_text='Display name of the organization.', max_length=200, verbose_name='name')),
                ('phone_number', models.CharField(blank=True, default='', help_text='Optional. Enter phone number in international format.', max_length=20, validators=[core.validators.validate_phone_number], verbose_name='phone number')),
                ('description', models.TextField(blank=True, default='', help_text='Short presentation of the organization.', verbose_name='description')),
                ('account_kind', models.CharField(choices=[('local', 'Local'), ('federated', 'Federated')], default='local', help_text='How the organization authenticates.', max_length=10, verbose_name='account kind')),
                ('external_id', models.CharField(blank=True, help_text='Subject identifier at the identity provider (federated accounts only).', max_length=255, null=True, unique=True, validators=[core.validators.validate_external_id], verbose_name='external id')),
                ('is_verified', models.BooleanField(default=False, help_text='Indicates whether the organization has been verified.', verbose_name='verified status')),
                ('created_at', models.DateTimeField(auto_now_add=True, help_text='Timestamp when the account was created.', verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, help_text='Timestamp when the account was last updated.', verbose_name='updated at')),
                ('groups', models.ManyToManyField(blank=True, help_text='The groups this user belongs to. A user will get all permissions granted to each of their groups.', related_name='user_set', related_query_name='user', to='auth.group', verbose_name='groups')),
                ('user_permissions', models.ManyToManyField(blank=True, help_text='Specific permissions for this user.', related_name='user_set', related_query_name='user', to='auth.permission', verbose_name='user permissions')),
            ],
            options={
                'verbose_name': 'organization',
                'verbose_name_plural': 'organizations',
                'ordering': ['-created_at'],
                'indexes': [models.Index(fields=['account_kind'], name='org_account_kind_idx')],
            },
            managers=[
                ('objects', django.contrib.auth.models.UserManager()),
            ],
        ),
        migrations.CreateModel(
            name='Equipment',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(help_text='Name of the equipment', max_length=200, verbose_name='name')),
                ('description', models.TextField(blank=True, default='', help_text='Detailed description of the equipment', verbose_name='description')),
                ('daily_rate', models.DecimalField(decimal_places=2, help_text='Price per calendar day', max_digits=10, validators=[core.validators.validate_non_negative_amount], verbose_name='daily rate')),
                ('deposit_amount', models.DecimalField(decimal_places=2, default=Decimal('0.00'), help_text='Security deposit asked for each reservation', max_digits=10, validators=[core.validators.validate_non_negative_amount], verbose_name='deposit amount')),
                ('availability', models.CharField(choices=[('available', 'Available'), ('reserved', 'Reserved'), ('unavailable', 'Unavailable'), ('under_maintenance', 'Under maintenance')], default='available', help_text='Current availability, derived from reservations', max_length=20, verbose_name='availability')),
                ('rating_average', models.DecimalField(decimal_places=1, default=Decimal('0.0'), help_text='Average rating from 0.0 to 5.0', max_digits=2, validators=[django.core.validators.MinValueValidator(Decimal('0.0'), message='Rating cannot be negative.'), django.core.validators.MaxValueValidator(Decimal('5.0'), message='Rating cannot exceed 5.0.')], verbose_name='rating average')),
                ('review_count', models.PositiveIntegerField(default=0, help_text='Number of active reviews', verbose_name='review count')),
                ('location', models.CharField(blank=True, default='', help_text='Where the equipment is kept', max_length=300, verbose_name='location')),
                ('usage_conditions', models.TextField(blank=True, default='', help_text='Conditions the renter agrees to', verbose_name='usage conditions')),
                ('is_active', models.BooleanField(default=True, help_text='Inactive equipment is hidden and cannot be booked', verbose_name='active')),
                ('created_at', models.DateTimeField(auto_now_add=True, help_text='Timestamp when the equipment was listed', verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, help_text='Timestamp when the equipment was last updated', verbose_name='updated at')),
                ('owner', models.ForeignKey(help_text='Organization listing the equipment', on_delete=django.db.models.deletion.CASCADE, related_name='equipment', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'equipment',
                'verbose_name_plural': 'equipment',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['availability'], name='equipment_availability_idx'),
                    models.Index(fields=['is_active'], name='equipment_active_idx'),
                    models.Index(fields=['rating_average'], name='equipment_rating_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Reservation',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('start_at', models.DateTimeField(help_text='Start of the rental period (inclusive)', verbose_name='start')),
                ('end_at', models.DateTimeField(help_text='End of the rental period (exclusive)', verbose_name='end')),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('confirmed', 'Confirmed'), ('active', 'Active'), ('completed', 'Completed'), ('cancelled', 'Cancelled')], default='pending', help_text='Current reservation status', max_length=20, verbose_name='status')),
                ('total_due', models.DecimalField(decimal_places=2, help_text='Rental price computed at creation', max_digits=12, validators=[core.validators.validate_non_negative_amount], verbose_name='total due')),
                ('deposit_amount', models.DecimalField(decimal_places=2, default=Decimal('0.00'), help_text='Deposit copied from the equipment at creation', max_digits=10, validators=[core.validators.validate_non_negative_amount], verbose_name='deposit amount')),
                ('payment_status', models.CharField(choices=[('pending', 'Pending'), ('paid', 'Paid'), ('refunded', 'Refunded'), ('partial', 'Partial')], default='pending', help_text='Payment progress, independent of the reservation status', max_length=20, verbose_name='payment status')),
                ('deposit_paid', models.BooleanField(default=False, help_text='Whether the deposit has been received', verbose_name='deposit paid')),
                ('delivery_address', models.CharField(blank=True, default='', help_text='Where the equipment should be delivered', max_length=300, verbose_name='delivery address')),
                ('notes', models.TextField(blank=True, default='', help_text='Free-form notes from the renter', verbose_name='notes')),
                ('special_conditions', models.TextField(blank=True, default='', help_text='Conditions agreed for this reservation', verbose_name='special conditions')),
                ('confirmed_at', models.DateTimeField(blank=True, help_text='Timestamp when the owner confirmed the reservation', null=True, verbose_name='confirmed at')),
                ('cancelled_at', models.DateTimeField(blank=True, help_text='Timestamp when the reservation was cancelled', null=True, verbose_name='cancelled at')),
                ('cancellation_reason', models.TextField(blank=True, default='', help_text='Why the reservation was cancelled', verbose_name='cancellation reason')),
                ('created_at', models.DateTimeField(auto_now_add=True, help_text='Timestamp when the reservation was created', verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, help_text='Timestamp when the reservation was last updated', verbose_name='updated at')),
                ('equipment', models.ForeignKey(help_text='Equipment being reserved', on_delete=django.db.models.deletion.PROTECT, related_name='reservations', to='core.equipment')),
                ('renter', models.ForeignKey(help_text='Organization renting the equipment', on_delete=django.db.models.deletion.CASCADE, related_name='reservations', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'reservation',
                'verbose_name_plural': 'reservations',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['equipment', 'status'], name='reservation_equip_status_idx'),
                    models.Index(fields=['start_at', 'end_at'], name='reservation_period_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Review',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('rating', models.PositiveSmallIntegerField(help_text='Rating from 1 to 5 stars', validators=[django.core.validators.MinValueValidator(1, message='Rating must be at least 1.'), django.core.validators.MaxValueValidator(5, message='Rating must be at most 5.')], verbose_name='rating')),
                ('comment', models.TextField(blank=True, default='', help_text='Written feedback, up to 1000 characters', validators=[django.core.validators.MaxLengthValidator(1000)], verbose_name='comment')),
                ('owner_response', models.TextField(blank=True, default='', help_text='Reply from the equipment owner', validators=[django.core.validators.MaxLengthValidator(1000)], verbose_name='owner response')),
                ('owner_response_at', models.DateTimeField(blank=True, help_text='Timestamp of the owner reply', null=True, verbose_name='owner response at')),
                ('is_verified', models.BooleanField(default=False, help_text='Review backed by a completed reservation', verbose_name='verified')),
                ('is_active', models.BooleanField(default=True, help_text='Inactive reviews are hidden and excluded from ratings', verbose_name='active')),
                ('created_at', models.DateTimeField(auto_now_add=True, help_text='Timestamp when the review was created', verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, help_text='Timestamp when the review was last updated', verbose_name='updated at')),
                ('author', models.ForeignKey(help_text='Renter writing the review', on_delete=django.db.models.deletion.CASCADE, related_name='reviews_written', to=settings.AUTH_USER_MODEL)),
                ('equipment', models.ForeignKey(help_text='Equipment being reviewed', on_delete=django.db.models.deletion.CASCADE, related_name='reviews', to='core.equipment')),
                ('reservation', models.OneToOneField(help_text='Reservation being reviewed (one review per reservation)', on_delete=django.db.models.deletion.CASCADE, related_name='review', to='core.reservation')),
            ],
            options={
                'verbose_name': 'review',
                'verbose_name_plural': 'reviews',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['equipment', 'is_active'], name='review_equip_active_idx'),
                    models.Index(fields=['rating'], name='review_rating_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='FederatedAccount',
            fields=[],
            options={
                'verbose_name': 'federated account',
                'verbose_name_plural': 'federated accounts',
                'proxy': True,
                'indexes': [],
                'constraints': [],
            },
            bases=('core.organization',),
            managers=[
                ('objects', django.contrib.auth.models.UserManager()),
            ],
        ),
        migrations.CreateModel(
            name='LocalAccount',
            fields=[],
            options={
                'verbose_name': 'local account',
                'verbose_name_plural': 'local accounts',
                'proxy': True,
                'indexes': [],
                'constraints': [],
            },
            bases=('core.organization',),
            managers=[
                ('objects', django.contrib.auth.models.UserManager()),
            ],
        ),
    ]
