"""
Management command to seed portal roles and medical specialties.

Usage:
    python manage.py seed_reference_data

This command is idempotent and safe to run multiple times.
Specialties are created from the keys of the SPECIALTY_PRICE_CENTS setting.
"""
from django.conf import settings
from django.core.management.base import BaseCommand
from apps.authz.models import Role, RoleChoices, Specialty


class Command(BaseCommand):
    help = 'Ensure portal roles and priced specialties exist'

    def handle(self, *args, **options):
        self.stdout.write("Ensuring roles exist...")
        for role_choice in RoleChoices:
            role, created = Role.objects.get_or_create(name=role_choice)
            if created:
                self.stdout.write(self.style.SUCCESS(f'  Created role: {role.name}'))
            else:
                self.stdout.write(f'  - Role exists: {role.name}')

        self.stdout.write("\nEnsuring specialties exist...")
        for name in sorted(settings.SPECIALTY_PRICE_CENTS):
            specialty, created = Specialty.objects.get_or_create(name=name)
            if created:
                self.stdout.write(self.style.SUCCESS(f'  Created specialty: {specialty.name}'))
            else:
                self.stdout.write(f'  - Specialty exists: {specialty.name}')
