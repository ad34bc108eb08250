"""
Management command to rebuild the cached streak fields on every profile.

The StudyDay rows are the source of truth; current_streak and
longest_streak on UserProfile are only a cache. Run this after importing
study history or changing STREAK_DAY_BOUNDARY:
    python manage.py recompute_streaks [--dry-run]
"""

import logging

from django.core.management.base import BaseCommand
from django.utils import timezone

from flashgarden.models import UserProfile

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Recompute cached current/longest streaks from study days'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Report which profiles would change without saving',
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run']
        now = timezone.now()
        checked = 0
        changed = 0

        for profile in UserProfile.objects.select_related('user'):
            checked += 1
            view = profile.streak_view(now)
            if (view.current_streak, view.longest_streak) == (profile.current_streak, profile.longest_streak):
                continue

            changed += 1
            message = (
                f"{profile.user.username}: {profile.current_streak}/{profile.longest_streak}"
                f" -> {view.current_streak}/{view.longest_streak}"
            )
            if dry_run:
                self.stdout.write(f"[DRY RUN] Would update {message}")
            else:
                profile.refresh_streak(now)
                self.stdout.write(f"Updated {message}")

        logger.info("Streak recompute: %s checked, %s changed (dry_run=%s)", checked, changed, dry_run)
        verb = 'Would update' if dry_run else 'Updated'
        self.stdout.write(self.style.SUCCESS(f"{verb} {changed} of {checked} profiles"))
