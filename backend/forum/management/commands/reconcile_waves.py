"""
Management command to recount wave counters from wave rows.

Usage: python manage.py reconcile_waves
"""

from django.core.management.base import BaseCommand

from forum.services import reconcile_wave_counters


class Command(BaseCommand):
    help = 'Recompute Post.wave_count and Profile.total_waves_received from live waves'

    def handle(self, *args, **options):
        corrected = reconcile_wave_counters()
        if corrected:
            self.stdout.write(self.style.WARNING(f'Corrected {corrected} counter(s)'))
        else:
            self.stdout.write(self.style.SUCCESS('All wave counters consistent'))
