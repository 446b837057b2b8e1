import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Donor',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('first_name', models.CharField(blank=True, max_length=100)),
                ('last_name', models.CharField(blank=True, max_length=100)),
                ('phone_number', models.CharField(db_index=True, help_text='Mobile number in format 91XXXXXXXXXX', max_length=12, unique=True, validators=[django.core.validators.RegexValidator(message='Phone number must be in format 91XXXXXXXXXX', regex='^91[6-9]\\d{9}$')])),
                ('email', models.EmailField(blank=True, help_text='Receipt delivery address', max_length=254, null=True, validators=[django.core.validators.EmailValidator()])),
                ('country', models.CharField(default='India', max_length=100)),
                ('donor_number', models.CharField(db_index=True, help_text='Public donor reference printed on receipts', max_length=20, unique=True)),
                ('is_guest', models.BooleanField(default=False, help_text='Created by an operator for an offline donation')),
                ('user', models.OneToOneField(help_text='Authenticated identity this profile belongs to', on_delete=django.db.models.deletion.CASCADE, related_name='donor', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Donor',
                'verbose_name_plural': 'Donors',
                'ordering': ['last_name', 'first_name'],
                'indexes': [models.Index(fields=['is_guest', '-created_at'], name='donor_guest_created_idx')],
            },
        ),
        migrations.CreateModel(
            name='UserRole',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('role', models.CharField(choices=[('admin', 'Admin'), ('operations', 'Operations'), ('finance', 'Finance'), ('donor', 'Donor')], help_text="User's role in the system", max_length=20)),
                ('is_active', models.BooleanField(default=True, help_text='Whether this role assignment is active')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='roles', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'User Role',
                'verbose_name_plural': 'User Roles',
                'indexes': [models.Index(fields=['user', 'is_active'], name='user_role_active_idx')],
                'constraints': [models.UniqueConstraint(fields=('user', 'role'), name='unique_user_role')],
            },
        ),
    ]
