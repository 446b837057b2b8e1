"""
Management command to create a default superuser if one doesn't exist.
The account is also given the admin role so it can run batch and payment
operations through the API.
"""

from django.core.management.base import BaseCommand
from django.contrib.auth.models import User
from decouple import config

from donors.roles import RoleType, UserRole


class Command(BaseCommand):
    help = 'Creates a default superuser with the admin role if one does not exist'

    def handle(self, *args, **options):
        username = config('DJANGO_SUPERUSER_USERNAME', default='admin')
        email = config('DJANGO_SUPERUSER_EMAIL', default='admin@example.com')
        password = config('DJANGO_SUPERUSER_PASSWORD', default='changeme123')

        user = User.objects.filter(username=username).first()
        if user:
            self.stdout.write(self.style.WARNING(f'Superuser "{username}" already exists'))
        else:
            user = User.objects.create_superuser(username=username, email=email, password=password)
            self.stdout.write(self.style.SUCCESS(f'Created superuser: {username} ({email})'))

        _, created = UserRole.objects.get_or_create(user=user, role=RoleType.ADMIN.value)
        if created:
            self.stdout.write(self.style.SUCCESS(f'Granted admin role to {username}'))
