"""
Management command to seed the achievement catalog.

Usage: python manage.py seed_achievements

Safe to run on every deploy: definitions are upserted by name and unlock
history is never touched.
"""

from django.core.management.base import BaseCommand

from forum.achievements import seed_achievement_catalog


class Command(BaseCommand):
    help = 'Create or update achievement definitions from the catalog'

    def handle(self, *args, **options):
        created, updated = seed_achievement_catalog()
        self.stdout.write(self.style.SUCCESS(
            f'Achievement catalog seeded: {created} created, {updated} updated'
        ))
