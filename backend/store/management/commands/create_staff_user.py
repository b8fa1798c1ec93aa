"""
Create a POS staff login.

Usage:
    python manage.py create_staff_user cashier1 "Nimal Perera" --password secret
    python manage.py create_staff_user admin "Shop Owner" --role admin
"""
import getpass

from django.core.management.base import BaseCommand, CommandError

from store.auth import DatabaseUserRepository
from store.models import StaffUser


class Command(BaseCommand):
    help = 'Create a staff user for the POS login'

    def add_arguments(self, parser):
        parser.add_argument('username')
        parser.add_argument('name')
        parser.add_argument(
            '--role',
            choices=StaffUser.Role.values,
            default=StaffUser.Role.CASHIER,
        )
        parser.add_argument('--password', help='Prompted for when omitted')

    def handle(self, *args, **options):
        username = options['username'].strip().lower()
        if StaffUser.objects.filter(username=username).exists():
            raise CommandError(f'Staff user "{username}" already exists')

        password = options['password'] or getpass.getpass('Password: ')
        if not password:
            raise CommandError('Password cannot be empty')

        user = DatabaseUserRepository().create_user(
            username=username,
            password=password,
            name=options['name'],
            role=options['role'],
        )
        self.stdout.write(self.style.SUCCESS(f'Created {user.role} "{user.username}"'))
