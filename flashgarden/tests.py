"""
Unit tests for the flashgarden application.

Test organization:
- SRS*Tests: Pure function tests for the bucket scheduler
- Streak*Tests / Garden*Tests: Pure function tests for streaks and garden stages
- *ModelTests: Django model tests
- *ViewTests: JSON API tests through the test client
- RecomputeStreaksCommandTests: management command
"""

import json
import zoneinfo
from datetime import date, datetime, timedelta, timezone as dt_timezone
from io import StringIO
from types import SimpleNamespace
from unittest.mock import patch

from django.contrib.auth.models import User
from django.core.exceptions import ImproperlyConfigured
from django.core.management import call_command
from django.test import Client, TestCase, override_settings
from django.urls import reverse
from django.utils import timezone

from . import garden, srs, streaks
from .models import (
    SHARE_CODE_ALPHABET,
    Announcement,
    Card,
    Deck,
    DirectMessage,
    Folder,
    Friendship,
    ReviewLog,
    StudyDay,
    StudySession,
    Tag,
    UserProfile,
)

FIXED_NOW = datetime(2024, 6, 15, 18, 0, tzinfo=dt_timezone.utc)


# =============================================================================
# SRS Scheduler Tests
# =============================================================================

class SRSScheduleReviewTests(TestCase):
    """Tests for the bucket scheduler."""

    def test_correct_moves_up_one_bucket(self):
        """A correct answer moves the card up one bucket, capped at 5."""
        for difficulty in range(6):
            result = srs.schedule_review(difficulty, True, FIXED_NOW)
            self.assertEqual(result.difficulty, min(5, difficulty + 1))

    def test_incorrect_moves_down_one_bucket(self):
        """An incorrect answer moves the card down one bucket, floored at 0."""
        for difficulty in range(6):
            result = srs.schedule_review(difficulty, False, FIXED_NOW)
            self.assertEqual(result.difficulty, max(0, difficulty - 1))

    def test_result_always_in_range(self):
        for difficulty in range(6):
            for was_correct in (True, False):
                result = srs.schedule_review(difficulty, was_correct, FIXED_NOW)
                self.assertGreaterEqual(result.difficulty, srs.MIN_DIFFICULTY)
                self.assertLessEqual(result.difficulty, srs.MAX_DIFFICULTY)

    def test_top_bucket_interval_is_60_days(self):
        result = srs.schedule_review(5, True, FIXED_NOW)
        self.assertEqual(result.next_review - FIXED_NOW, timedelta(days=60))
        self.assertEqual(result.interval, 60)

    def test_bottom_bucket_interval_is_1_day(self):
        result = srs.schedule_review(0, False, FIXED_NOW)
        self.assertEqual(result.next_review - FIXED_NOW, timedelta(days=1))
        self.assertEqual(result.interval, 1)

    def test_interval_table(self):
        self.assertEqual(srs.INTERVAL_DAYS, (1, 3, 7, 14, 30, 60))
        for difficulty, days in enumerate(srs.INTERVAL_DAYS):
            self.assertEqual(srs.interval_for(difficulty), days)

    def test_next_review_always_in_future(self):
        for difficulty in range(6):
            for was_correct in (True, False):
                result = srs.schedule_review(difficulty, was_correct, FIXED_NOW)
                self.assertGreaterEqual(result.next_review - FIXED_NOW, timedelta(days=1))

    def test_same_arguments_give_same_result(self):
        first = srs.schedule_review(2, True, FIXED_NOW)
        second = srs.schedule_review(2, True, FIXED_NOW)
        self.assertEqual(first, second)

    def test_out_of_range_difficulty_is_clamped(self):
        """Corrupt stored buckets are clamped instead of raising."""
        self.assertEqual(srs.schedule_review(9, True, FIXED_NOW).difficulty, 5)
        self.assertEqual(srs.schedule_review(9, False, FIXED_NOW).difficulty, 4)
        self.assertEqual(srs.schedule_review(-3, False, FIXED_NOW).difficulty, 0)
        self.assertEqual(srs.schedule_review(-3, True, FIXED_NOW).difficulty, 1)

    def test_clamp_difficulty_handles_garbage(self):
        self.assertEqual(srs.clamp_difficulty(None), 0)
        self.assertEqual(srs.clamp_difficulty('abc'), 0)
        self.assertEqual(srs.clamp_difficulty('4'), 4)
        self.assertEqual(srs.clamp_difficulty(42), 5)

    def test_now_defaults_to_current_time(self):
        before = datetime.now()
        result = srs.schedule_review(0, True)
        self.assertGreaterEqual(result.next_review, before + timedelta(days=3))


class SRSCardsDueTests(TestCase):
    """Tests for get_cards_due."""

    def test_filters_and_orders_due_cards(self):
        new = SimpleNamespace(name='new', next_review=None)
        old = SimpleNamespace(name='old', next_review=FIXED_NOW - timedelta(days=3))
        recent = SimpleNamespace(name='recent', next_review=FIXED_NOW - timedelta(hours=1))
        future = SimpleNamespace(name='future', next_review=FIXED_NOW + timedelta(days=1))

        due = srs.get_cards_due([future, recent, new, old], FIXED_NOW)
        self.assertEqual([c.name for c in due], ['new', 'old', 'recent'])

    def test_card_due_exactly_now_is_included(self):
        card = SimpleNamespace(next_review=FIXED_NOW)
        self.assertEqual(srs.get_cards_due([card], FIXED_NOW), [card])


class SRSMasteryTests(TestCase):

    def test_mastery_levels(self):
        self.assertEqual(srs.mastery_level(0, 0), srs.MASTERY_NEW)
        self.assertEqual(srs.mastery_level(3, 1), srs.MASTERY_LEARNING)
        self.assertEqual(srs.mastery_level(4, 2), srs.MASTERY_FAMILIAR)
        self.assertEqual(srs.mastery_level(9, 4), srs.MASTERY_FAMILIAR)
        self.assertEqual(srs.mastery_level(7, 5), srs.MASTERY_MASTERED)


# =============================================================================
# Streak Engine Tests
# =============================================================================

def days_ago(n, now=FIXED_NOW):
    return streaks.date_key(now - timedelta(days=n))


class StreakComputeTests(TestCase):
    """Tests for compute_streak."""

    def test_empty_history_is_broken(self):
        view = streaks.compute_streak(set(), FIXED_NOW)
        self.assertEqual(view.current_streak, 0)
        self.assertEqual(view.longest_streak, 0)
        self.assertFalse(view.studied_today)
        self.assertEqual(view.status, streaks.STATUS_BROKEN)
        self.assertEqual(view.hours_remaining, 0)

    def test_studied_today_is_active(self):
        view = streaks.compute_streak({days_ago(0)}, FIXED_NOW)
        self.assertTrue(view.studied_today)
        self.assertEqual(view.current_streak, 1)
        self.assertEqual(view.status, streaks.STATUS_ACTIVE)
        self.assertEqual(view.hours_remaining, 6.0)

    def test_run_ending_yesterday_is_at_risk(self):
        """Today not studied yet, but the run ending yesterday still counts."""
        view = streaks.compute_streak({days_ago(1), days_ago(2), days_ago(3)}, FIXED_NOW)
        self.assertFalse(view.studied_today)
        self.assertEqual(view.current_streak, 3)
        self.assertEqual(view.status, streaks.STATUS_AT_RISK)
        self.assertGreater(view.hours_remaining, 0)
        self.assertLessEqual(view.hours_remaining, 24)

    def test_lapsed_run_resets_current_but_keeps_longest(self):
        view = streaks.compute_streak({days_ago(5), days_ago(4), days_ago(3)}, FIXED_NOW)
        self.assertEqual(view.current_streak, 0)
        self.assertGreaterEqual(view.longest_streak, 3)
        self.assertEqual(view.status, streaks.STATUS_BROKEN)

    def test_single_missed_day_breaks_streak(self):
        """No grace day once yesterday has passed without study."""
        view = streaks.compute_streak({days_ago(2), days_ago(3)}, FIXED_NOW)
        self.assertEqual(view.current_streak, 0)
        self.assertEqual(view.longest_streak, 2)

    def test_longest_streak_across_gaps(self):
        dates = {days_ago(n) for n in (20, 19, 18, 17, 10, 9, 0)}
        view = streaks.compute_streak(dates, FIXED_NOW)
        self.assertEqual(view.current_streak, 1)
        self.assertEqual(view.longest_streak, 4)

    def test_longest_never_below_current(self):
        dates = {days_ago(n) for n in range(5)}
        view = streaks.compute_streak(dates, FIXED_NOW)
        self.assertEqual(view.current_streak, 5)
        self.assertEqual(view.longest_streak, 5)

    def test_malformed_keys_are_skipped(self):
        dates = [days_ago(0), 'garbage', None, 42, '2024-13-45', days_ago(1)]
        view = streaks.compute_streak(dates, FIXED_NOW)
        self.assertEqual(view.current_streak, 2)
        self.assertEqual(view.longest_streak, 2)

    def test_accepts_date_and_datetime_objects(self):
        dates = [FIXED_NOW.date(), FIXED_NOW - timedelta(days=1)]
        view = streaks.compute_streak(dates, FIXED_NOW)
        self.assertEqual(view.current_streak, 2)

    def test_duplicate_keys_count_once(self):
        view = streaks.compute_streak([days_ago(0), days_ago(0)], FIXED_NOW)
        self.assertEqual(view.current_streak, 1)

    def test_naive_now(self):
        now = datetime(2024, 6, 15, 21, 0)
        view = streaks.compute_streak({'2024-06-15'}, now)
        self.assertEqual(view.status, streaks.STATUS_ACTIVE)
        self.assertEqual(view.hours_remaining, 3.0)

    def test_today_follows_timezone_of_now(self):
        """The same instant can be a different calendar day elsewhere."""
        tokyo = FIXED_NOW.astimezone(zoneinfo.ZoneInfo('Asia/Tokyo'))  # 2024-06-16 03:00
        view = streaks.compute_streak({'2024-06-15'}, tokyo)
        self.assertFalse(view.studied_today)
        self.assertEqual(view.status, streaks.STATUS_AT_RISK)

    def test_as_dict(self):
        data = streaks.compute_streak({days_ago(0)}, FIXED_NOW).as_dict()
        self.assertEqual(set(data), {
            'current_streak', 'longest_streak', 'studied_today', 'status', 'hours_remaining'
        })


class StreakHelperTests(TestCase):

    def test_hours_until_midnight_utc(self):
        self.assertEqual(streaks.hours_until_midnight(FIXED_NOW), 6.0)

    def test_hours_until_midnight_on_dst_change(self):
        """Spring-forward day in New York has 23 real hours."""
        ny = zoneinfo.ZoneInfo('America/New_York')
        now = datetime(2024, 3, 10, 0, 30, tzinfo=ny)
        self.assertEqual(streaks.hours_until_midnight(now), 22.5)

    def test_parse_date_key(self):
        self.assertEqual(streaks.parse_date_key('2024-06-15'), date(2024, 6, 15))
        self.assertEqual(streaks.parse_date_key('2024-06-15T10:00:00Z'), date(2024, 6, 15))
        self.assertEqual(streaks.parse_date_key(' 2024-06-15 '), date(2024, 6, 15))
        self.assertIsNone(streaks.parse_date_key('not a date'))
        self.assertIsNone(streaks.parse_date_key(None))
        self.assertIsNone(streaks.parse_date_key(20240615))


class PastStreakTests(TestCase):
    """Tests for streak_runs and past_streaks."""

    today = date(2024, 6, 15)

    def days(self, *offsets):
        return {self.today - timedelta(days=n) for n in offsets}

    def test_runs_are_split_on_gaps(self):
        runs = streaks.streak_runs(self.days(0, 1, 3, 9, 10, 11))
        self.assertEqual(runs, [
            (date(2024, 6, 4), date(2024, 6, 6)),
            (date(2024, 6, 12), date(2024, 6, 12)),
            (date(2024, 6, 14), date(2024, 6, 15)),
        ])
        self.assertEqual(streaks.streak_runs(set()), [])
        self.assertEqual(streaks.longest_streak(self.days(0, 1, 3, 9, 10, 11)), 3)

    def test_live_run_is_excluded(self):
        # Yesterday's run can still be continued today
        past = streaks.past_streaks(self.days(1, 2, 5), self.today)
        self.assertEqual(past, [streaks.PastStreak(1, date(2024, 6, 10), date(2024, 6, 10))])

        past = streaks.past_streaks(self.days(2, 3), self.today)
        self.assertEqual(past[0].as_dict(), {'streak': 2, 'start': '2024-06-12', 'end': '2024-06-13'})

    def test_most_recent_first_and_limited(self):
        offsets = range(2, 60, 2)
        past = streaks.past_streaks(self.days(*offsets), self.today)
        self.assertEqual(len(past), streaks.PAST_STREAK_LIMIT)
        self.assertEqual(past[0].end_date, date(2024, 6, 13))
        self.assertEqual(past[-1].end_date, date(2024, 5, 26))
        self.assertEqual(len(streaks.past_streaks(self.days(*offsets), self.today, limit=3)), 3)


# =============================================================================
# Garden Stage Tests
# =============================================================================

class GardenStageTests(TestCase):
    """Tests for garden stage thresholds."""

    def test_threshold_examples(self):
        self.assertEqual(garden.garden_stage(0), 0)
        self.assertEqual(garden.garden_stage(1), 1)
        self.assertEqual(garden.garden_stage(2), 1)
        self.assertEqual(garden.garden_stage(6), 2)
        self.assertEqual(garden.garden_stage(7), 3)
        self.assertEqual(garden.garden_stage(365), 9)
        self.assertEqual(garden.garden_stage(1000), 10)

    def test_caps_at_top_tier(self):
        self.assertEqual(garden.garden_stage(1_000_000), 10)

    def test_negative_streak_is_first_tier(self):
        self.assertEqual(garden.garden_stage(-5), 0)

    def test_monotonic(self):
        previous = 0
        for streak in range(0, 1100):
            stage = garden.garden_stage(streak)
            self.assertGreaterEqual(stage, previous)
            previous = stage

    def test_stage_table(self):
        self.assertEqual(len(garden.GARDEN_STAGES), 11)
        self.assertEqual(garden.GARDEN_THRESHOLDS, (0, 1, 3, 7, 14, 30, 60, 100, 200, 365, 1000))
        self.assertEqual(garden.get_garden_stage(6).name, 'Young Seedlings')

    def test_next_stage(self):
        self.assertEqual(garden.next_stage(0).min_days, 1)
        self.assertEqual(garden.next_stage(6).min_days, 7)
        self.assertIsNone(garden.next_stage(5000))


class GardenOverrideTests(TestCase):

    def test_override_applies_when_allowed(self):
        self.assertEqual(garden.display_stage(2, override=8, can_override=True), 8)

    def test_override_ignored_when_not_allowed(self):
        self.assertEqual(garden.display_stage(2, override=8, can_override=False), 1)

    def test_invalid_override_ignored(self):
        for override in (11, -1, True, '5', None):
            self.assertEqual(garden.display_stage(7, override=override, can_override=True), 3)


# =============================================================================
# Model Tests
# =============================================================================

class CardModelTests(TestCase):
    """Tests for Card review state."""

    def setUp(self):
        self.user = User.objects.create_user(username='testuser', password='testpass123')
        self.deck = Deck.objects.create(title='Test Deck', owner=self.user)
        self.card = Card.objects.create(deck=self.deck, front='Q', back='A')

    def test_new_card_defaults(self):
        self.assertEqual(self.card.difficulty, 0)
        self.assertEqual(self.card.times_reviewed, 0)
        self.assertEqual(self.card.times_correct, 0)
        self.assertIsNone(self.card.next_review)
        self.assertTrue(self.card.is_due())
        self.assertEqual(self.card.mastery, srs.MASTERY_NEW)

    def test_three_correct_then_one_incorrect(self):
        """Walk a card up three buckets and back down one."""
        times = [FIXED_NOW + timedelta(days=n) for n in range(4)]

        for moment in times[:3]:
            self.card.review(True, now=moment)
        self.card.refresh_from_db()
        self.assertEqual(self.card.difficulty, 3)
        self.assertEqual(self.card.times_reviewed, 3)
        self.assertEqual(self.card.times_correct, 3)
        self.assertEqual(self.card.last_reviewed, times[2])
        self.assertEqual(self.card.next_review, times[2] + timedelta(days=14))

        self.card.review(False, now=times[3])
        self.card.refresh_from_db()
        self.assertEqual(self.card.difficulty, 2)
        self.assertEqual(self.card.times_reviewed, 4)
        self.assertEqual(self.card.times_correct, 3)
        self.assertEqual(self.card.next_review, times[3] + timedelta(days=7))

    def test_review_writes_log(self):
        log = self.card.review(True, now=FIXED_NOW)
        self.assertEqual(ReviewLog.objects.count(), 1)
        self.assertTrue(log.was_correct)
        self.assertEqual(log.difficulty_before, 0)
        self.assertEqual(log.difficulty_after, 1)
        self.assertEqual(log.interval_after, 3)

    def test_review_clamps_corrupt_difficulty(self):
        Card.objects.filter(pk=self.card.pk).update(difficulty=40)
        self.card.refresh_from_db()
        self.card.review(True, now=FIXED_NOW)
        self.card.refresh_from_db()
        self.assertEqual(self.card.difficulty, 5)
        self.assertEqual(self.card.next_review, FIXED_NOW + timedelta(days=60))

    def test_review_uses_stored_counters(self):
        """Counters are incremented from the database row, not a stale instance."""
        stale = Card.objects.get(pk=self.card.pk)
        self.card.review(True, now=FIXED_NOW)
        stale.review(True, now=FIXED_NOW + timedelta(days=3))
        stale.refresh_from_db()
        self.assertEqual(stale.times_reviewed, 2)
        self.assertEqual(stale.difficulty, 2)

    def test_is_due(self):
        self.card.next_review = FIXED_NOW
        self.assertTrue(self.card.is_due(FIXED_NOW))
        self.assertFalse(self.card.is_due(FIXED_NOW - timedelta(seconds=1)))


class DeckModelTests(TestCase):
    """Tests for Deck helpers."""

    def setUp(self):
        self.user = User.objects.create_user(username='testuser', password='testpass123')
        self.other = User.objects.create_user(username='other', password='testpass123')
        self.folder = Folder.objects.create(owner=self.user, name='Languages')
        self.tag = Tag.objects.create(owner=self.user, name='Spanish', color='#f00')
        self.deck = Deck.objects.create(title='Verbs', owner=self.user, folder=self.folder)
        self.deck.tags.add(self.tag)

    def test_due_and_new_counts(self):
        now = timezone.now()
        Card.objects.create(deck=self.deck, front='new', back='a')
        Card.objects.create(deck=self.deck, front='due', back='a', times_reviewed=1,
                            next_review=now - timedelta(hours=1))
        Card.objects.create(deck=self.deck, front='later', back='a', times_reviewed=1,
                            next_review=now + timedelta(days=1))
        self.assertEqual(self.deck.cards_due_count(now), 2)
        self.assertEqual(self.deck.cards_new_count(), 1)

    def test_next_position(self):
        self.assertEqual(self.deck.next_position(), 0)
        Card.objects.create(deck=self.deck, front='a', back='b', position=4)
        self.assertEqual(self.deck.next_position(), 5)

    def test_copy_to_other_user_starts_fresh(self):
        Card.objects.create(deck=self.deck, front='hablar', back='to speak', difficulty=4,
                            times_reviewed=8, times_correct=6, next_review=timezone.now())
        copy = self.deck.copy_to(self.other)

        self.assertEqual(copy.owner, self.other)
        self.assertIsNone(copy.folder)
        self.assertEqual(copy.tags.count(), 0)
        card = copy.cards.get()
        self.assertEqual(card.front, 'hablar')
        self.assertEqual(card.difficulty, 0)
        self.assertEqual(card.times_reviewed, 0)
        self.assertIsNone(card.next_review)

    def test_copy_to_same_owner_keeps_folder_and_tags(self):
        copy = self.deck.copy_to(self.user, title='Verbs (Copy)')
        self.assertEqual(copy.title, 'Verbs (Copy)')
        self.assertEqual(copy.folder, self.folder)
        self.assertEqual(list(copy.tags.all()), [self.tag])


class UserProfileModelTests(TestCase):
    """Tests for study-day recording and the cached streak."""

    def setUp(self):
        self.user = User.objects.create_user(username='testuser', password='testpass123')
        self.profile = UserProfile.objects.create(user=self.user)

    def test_share_code_format(self):
        self.assertEqual(len(self.profile.share_code), 8)
        self.assertTrue(all(c in SHARE_CODE_ALPHABET for c in self.profile.share_code))

    def test_record_study_day_is_idempotent(self):
        self.profile.record_study_day(FIXED_NOW)
        self.profile.record_study_day(FIXED_NOW + timedelta(hours=2))
        self.assertEqual(StudyDay.objects.filter(user=self.user).count(), 1)
        self.profile.refresh_from_db()
        self.assertEqual(self.profile.current_streak, 1)

    def test_consecutive_days_extend_streak(self):
        self.profile.record_study_day(FIXED_NOW - timedelta(days=1))
        view = self.profile.record_study_day(FIXED_NOW)
        self.assertEqual(view.current_streak, 2)
        self.profile.refresh_from_db()
        self.assertEqual(self.profile.current_streak, 2)
        self.assertEqual(self.profile.longest_streak, 2)

    def test_refresh_streak_rewrites_stale_cache(self):
        for n in (10, 9, 8):
            StudyDay.objects.create(user=self.user, date=(FIXED_NOW - timedelta(days=n)).date())
        UserProfile.objects.filter(pk=self.profile.pk).update(current_streak=99, longest_streak=99)
        self.profile.refresh_from_db()

        self.profile.refresh_streak(FIXED_NOW)
        self.profile.refresh_from_db()
        self.assertEqual(self.profile.current_streak, 0)
        self.assertEqual(self.profile.longest_streak, 3)

    def test_local_day_boundary_uses_user_timezone(self):
        self.profile.user_timezone = 'America/Los_Angeles'
        now = datetime(2024, 6, 15, 3, 0, tzinfo=dt_timezone.utc)
        self.assertEqual(self.profile.get_local_date(now), date(2024, 6, 14))

    @override_settings(STREAK_DAY_BOUNDARY='utc')
    def test_utc_day_boundary_ignores_user_timezone(self):
        self.profile.user_timezone = 'America/Los_Angeles'
        now = datetime(2024, 6, 15, 3, 0, tzinfo=dt_timezone.utc)
        self.assertEqual(self.profile.get_local_date(now), date(2024, 6, 15))

    @override_settings(STREAK_DAY_BOUNDARY='sometimes')
    def test_invalid_day_boundary_raises(self):
        with self.assertRaises(ImproperlyConfigured):
            self.profile.local_now(FIXED_NOW)

    def test_unknown_timezone_falls_back_to_utc(self):
        self.profile.user_timezone = 'Mars/Olympus_Mons'
        self.assertEqual(self.profile.get_timezone(), dt_timezone.utc)

    def test_records_local_date(self):
        self.profile.user_timezone = 'Asia/Tokyo'
        self.profile.save()
        self.profile.record_study_day(FIXED_NOW)  # 03:00 on the 16th in Tokyo
        self.assertEqual(StudyDay.objects.get(user=self.user).date, date(2024, 6, 16))

    def test_roles(self):
        self.assertFalse(self.profile.is_admin)
        self.profile.role = UserProfile.Role.ADMIN
        self.assertTrue(self.profile.is_admin)
        self.assertFalse(self.profile.is_owner)
        self.profile.role = UserProfile.Role.OWNER
        self.assertTrue(self.profile.is_admin)
        self.assertTrue(self.profile.is_owner)


class SocialModelTests(TestCase):

    def setUp(self):
        self.alice = User.objects.create_user(username='alice', password='testpass123')
        self.bob = User.objects.create_user(username='bob', password='testpass123')

    def test_friendship_between_either_direction(self):
        friendship = Friendship.objects.create(requester=self.alice, addressee=self.bob)
        self.assertEqual(Friendship.between(self.bob, self.alice), friendship)
        self.assertEqual(friendship.other_user(self.alice), self.bob)
        self.assertEqual(friendship.other_user(self.bob), self.alice)

    def test_announcement_visibility(self):
        now = timezone.now()
        visible = Announcement.objects.create(title='Hi', content='Welcome')
        Announcement.objects.create(title='Old', content='x', expires_at=now - timedelta(days=1))
        Announcement.objects.create(title='Off', content='x', is_active=False)
        dismissed = Announcement.objects.create(title='Seen', content='x')
        dismissed.dismissed_by.add(self.alice)

        self.assertEqual(list(Announcement.visible_to(self.alice, now)), [visible])
        self.assertEqual(set(Announcement.visible_to(self.bob, now)), {visible, dismissed})


# =============================================================================
# View Tests
# =============================================================================

class ApiTestCase(TestCase):
    """Signed-in client plus JSON helpers."""

    def setUp(self):
        self.client = Client()
        self.user = User.objects.create_user(
            username='testuser', email='test@example.com', password='testpass123'
        )
        self.profile = UserProfile.objects.create(user=self.user)
        self.client.login(username='testuser', password='testpass123')

    def post_json(self, url, data=None):
        return self.client.post(url, data=json.dumps(data or {}), content_type='application/json')

    def put_json(self, url, data=None):
        return self.client.put(url, data=json.dumps(data or {}), content_type='application/json')

    def delete_json(self, url, data=None):
        return self.client.delete(url, data=json.dumps(data or {}), content_type='application/json')

    def make_user(self, username, role=UserProfile.Role.USER):
        user = User.objects.create_user(username=username, email=f'{username}@example.com',
                                        password='testpass123')
        UserProfile.objects.create(user=user, role=role)
        return user


class AuthViewTests(ApiTestCase):
    """Tests for registration, login and account management."""

    def test_register_creates_user_and_logs_in(self):
        self.client.logout()
        response = self.post_json(reverse('register'), {
            'username': 'new_user',
            'email': 'new@example.com',
            'password': 'secret1',
        })
        self.assertEqual(response.status_code, 201)
        data = json.loads(response.content)
        self.assertEqual(data['user']['username'], 'new_user')
        self.assertEqual(len(data['user']['share_code']), 8)

        response = self.client.get(reverse('me'))
        self.assertEqual(json.loads(response.content)['user']['username'], 'new_user')

    def test_register_seeds_preset_tags(self):
        self.client.logout()
        self.post_json(reverse('register'), {
            'username': 'new_user',
            'email': 'new@example.com',
            'password': 'secret1',
        })
        tags = json.loads(self.client.get(reverse('tag_list')).content)['tags']
        self.assertEqual(
            sorted(tag['name'] for tag in tags),
            ['Art', 'Business', 'History', 'Language', 'Math', 'Medical', 'Programming', 'Science'],
        )
        self.assertTrue(all(tag['is_preset'] for tag in tags))

    def test_register_rejects_taken_username_any_case(self):
        response = self.post_json(reverse('register'), {
            'username': 'TestUser', 'email': 'x@example.com', 'password': 'secret1',
        })
        self.assertEqual(response.status_code, 400)
        self.assertEqual(json.loads(response.content)['error'], 'Username already taken.')

    def test_register_validation(self):
        cases = [
            {'username': 'a', 'email': 'a@example.com', 'password': 'secret1'},
            {'username': 'bad name!', 'email': 'a@example.com', 'password': 'secret1'},
            {'username': 'gooduser', 'email': 'test@example.com', 'password': 'secret1'},
            {'username': 'gooduser', 'email': 'a@example.com', 'password': '123'},
            {'username': 'gooduser', 'email': 'not-an-email', 'password': 'secret1'},
        ]
        for payload in cases:
            response = self.post_json(reverse('register'), payload)
            self.assertEqual(response.status_code, 400, payload)
            self.assertIn('errors', json.loads(response.content))

    def test_login_with_email(self):
        self.client.logout()
        response = self.post_json(reverse('login'), {
            'username': 'TEST@example.com', 'password': 'testpass123',
        })
        self.assertEqual(response.status_code, 200)
        self.assertEqual(json.loads(response.content)['user']['username'], 'testuser')

    def test_login_failure(self):
        self.client.logout()
        response = self.post_json(reverse('login'), {
            'username': 'testuser', 'password': 'wrongpassword',
        })
        self.assertEqual(response.status_code, 401)

    def test_logout(self):
        self.post_json(reverse('logout'))
        response = self.client.get(reverse('me'))
        self.assertEqual(response.status_code, 401)

    def test_protected_endpoints_require_login(self):
        self.client.logout()
        for name in ('me', 'deck_list', 'streak', 'friend_list', 'conversations'):
            response = self.client.get(reverse(name))
            self.assertEqual(response.status_code, 401, name)

    def test_invalid_json(self):
        response = self.client.put(reverse('profile_update'), data='not json',
                                   content_type='application/json')
        self.assertEqual(response.status_code, 400)
        self.assertEqual(json.loads(response.content)['error'], 'Invalid JSON')

    def test_profile_update(self):
        response = self.put_json(reverse('profile_update'), {
            'bio': 'Learning Spanish', 'user_timezone': 'Europe/Madrid',
        })
        self.assertEqual(response.status_code, 200)
        self.profile.refresh_from_db()
        self.assertEqual(self.profile.bio, 'Learning Spanish')
        self.assertEqual(self.profile.user_timezone, 'Europe/Madrid')
        self.user.refresh_from_db()
        self.assertEqual(self.user.username, 'testuser')

    def test_profile_update_rejects_unknown_timezone(self):
        response = self.put_json(reverse('profile_update'), {'user_timezone': 'Nowhere/City'})
        self.assertEqual(response.status_code, 400)

    def test_password_change(self):
        response = self.put_json(reverse('password_change'), {
            'current_password': 'wrong', 'new_password': 'newpass123',
        })
        self.assertEqual(response.status_code, 400)

        response = self.put_json(reverse('password_change'), {
            'current_password': 'testpass123', 'new_password': 'newpass123',
        })
        self.assertEqual(response.status_code, 200)
        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password('newpass123'))
        # Session survives the password change
        self.assertEqual(self.client.get(reverse('me')).status_code, 200)

    def test_account_delete_requires_password(self):
        response = self.delete_json(reverse('account_delete'), {'password': 'nope'})
        self.assertEqual(response.status_code, 403)
        self.assertTrue(User.objects.filter(pk=self.user.pk).exists())

    def test_account_delete(self):
        Deck.objects.create(title='Mine', owner=self.user)
        response = self.delete_json(reverse('account_delete'), {'password': 'testpass123'})
        self.assertEqual(response.status_code, 200)
        self.assertFalse(User.objects.filter(pk=self.user.pk).exists())
        self.assertFalse(Deck.objects.exists())

    def test_migrate_guest_data(self):
        Tag.objects.create(owner=self.user, name='Spanish', color='#f00')
        payload = {
            'folders': [{'id': 'f1', 'name': 'Languages'}],
            'tags': [
                {'id': 't1', 'name': 'Verbs', 'color': '#0f0'},
                {'id': 't2', 'name': 'spanish', 'color': '#00f'},
                {'id': 't3', 'name': 'Important', 'color': '#000', 'is_preset': True},
            ],
            'decks': [{'id': 'd1', 'title': 'Spanish Verbs', 'folder_id': 'f1'}],
            'cards': [
                {'deck_id': 'd1', 'front': 'hablar', 'back': 'to speak', 'difficulty': 9,
                 'times_reviewed': 3, 'times_correct': 2},
                {'deck_id': 'missing', 'front': 'orphan', 'back': 'x'},
            ],
            'deck_tags': [
                {'deck_id': 'd1', 'tag_id': 't1'},
                {'deck_id': 'd1', 'tag_id': 't2'},
            ],
            'study_sessions': [
                {'deck_id': 'd1', 'cards_studied': 5, 'cards_correct': 4,
                 'created_at': '2024-06-01T10:00:00Z'},
            ],
        }
        response = self.post_json(reverse('migrate_guest_data'), payload)
        self.assertEqual(response.status_code, 200)
        imported = json.loads(response.content)['imported']
        self.assertEqual(imported, {
            'folders': 1, 'tags': 1, 'decks': 1, 'cards': 1, 'study_sessions': 1,
        })

        deck = Deck.objects.get(owner=self.user, title='Spanish Verbs')
        self.assertEqual(deck.folder.name, 'Languages')
        self.assertEqual([t.name for t in deck.tags.all()], ['Verbs'])
        card = deck.cards.get()
        self.assertEqual(card.difficulty, 5)
        self.assertEqual(card.times_reviewed, 3)
        session = deck.study_sessions.get()
        self.assertEqual(session.created_at, datetime(2024, 6, 1, 10, 0, tzinfo=dt_timezone.utc))

    def test_migrate_records_without_ids(self):
        """Records without an id are imported but nothing can point at them."""
        payload = {
            'folders': [{'name': 'NoId'}, {'id': ['f1'], 'name': 'ListId'}],
            'decks': [
                {'id': 1, 'title': 'Loose'},
                {'id': 2, 'title': 'Nested', 'folder_id': {'id': 'f1'}},
            ],
            'cards': [{'deck_id': [1], 'front': 'x', 'back': 'y'}],
        }
        response = self.post_json(reverse('migrate_guest_data'), payload)
        self.assertEqual(response.status_code, 200)
        imported = json.loads(response.content)['imported']
        self.assertEqual(imported['folders'], 2)
        self.assertEqual(imported['decks'], 2)
        self.assertEqual(imported['cards'], 0)
        self.assertIsNone(Deck.objects.get(owner=self.user, title='Loose').folder)
        self.assertIsNone(Deck.objects.get(owner=self.user, title='Nested').folder)


class CsrfViewTests(TestCase):
    """Writes from a client that enforces CSRF checks."""

    def setUp(self):
        self.client = Client(enforce_csrf_checks=True)
        self.payload = json.dumps({
            'username': 'new_user',
            'email': 'new@example.com',
            'password': 'secret1',
        })

    def test_write_without_token_is_rejected(self):
        response = self.client.post(reverse('register'), data=self.payload, content_type='application/json')
        self.assertEqual(response.status_code, 403)
        self.assertFalse(User.objects.filter(username='new_user').exists())

    def test_token_from_csrf_endpoint(self):
        response = self.client.get(reverse('csrf_token'))
        self.assertEqual(response.status_code, 200)
        token = self.client.cookies['csrftoken'].value
        self.assertTrue(json.loads(response.content)['csrf_token'])

        response = self.client.post(reverse('register'), data=self.payload,
                                    content_type='application/json', HTTP_X_CSRFTOKEN=token)
        self.assertEqual(response.status_code, 201)

        # Logging in rotates the token
        token = self.client.cookies['csrftoken'].value
        response = self.client.post(reverse('logout'), HTTP_X_CSRFTOKEN=token)
        self.assertEqual(response.status_code, 200)


class LibraryViewTests(ApiTestCase):
    """Tests for folders and tags."""

    def test_create_and_list_folders(self):
        response = self.post_json(reverse('folder_list'), {'name': 'Languages'})
        self.assertEqual(response.status_code, 201)
        folder = json.loads(response.content)['folder']
        self.assertEqual(folder['color'], '#6366f1')
        self.assertEqual(folder['icon'], 'folder')

        response = self.client.get(reverse('folder_list'))
        self.assertEqual(len(json.loads(response.content)['folders']), 1)

    def test_update_folder_keeps_omitted_fields(self):
        folder = Folder.objects.create(owner=self.user, name='Old', color='#123456')
        response = self.put_json(reverse('folder_detail', kwargs={'pk': folder.pk}), {'name': 'New'})
        self.assertEqual(response.status_code, 200)
        folder.refresh_from_db()
        self.assertEqual(folder.name, 'New')
        self.assertEqual(folder.color, '#123456')

    def test_delete_folder_keeps_decks(self):
        folder = Folder.objects.create(owner=self.user, name='Languages')
        deck = Deck.objects.create(owner=self.user, title='Verbs', folder=folder)
        response = self.client.delete(reverse('folder_detail', kwargs={'pk': folder.pk}))
        self.assertEqual(response.status_code, 200)
        deck.refresh_from_db()
        self.assertIsNone(deck.folder)

    def test_other_users_folder_is_not_found(self):
        other = self.make_user('other')
        folder = Folder.objects.create(owner=other, name='Theirs')
        response = self.client.delete(reverse('folder_detail', kwargs={'pk': folder.pk}))
        self.assertEqual(response.status_code, 404)

    def test_duplicate_tag_rejected(self):
        self.post_json(reverse('tag_list'), {'name': 'Verbs', 'color': '#f00'})
        response = self.post_json(reverse('tag_list'), {'name': 'verbs', 'color': '#0f0'})
        self.assertEqual(response.status_code, 400)

    def test_preset_tag_cannot_be_deleted(self):
        tag = Tag.objects.create(owner=self.user, name='Important', color='#f00', is_preset=True)
        response = self.client.delete(reverse('tag_delete', kwargs={'pk': tag.pk}))
        self.assertEqual(response.status_code, 400)
        self.assertTrue(Tag.objects.filter(pk=tag.pk).exists())


class DeckViewTests(ApiTestCase):
    """Tests for deck CRUD views."""

    def setUp(self):
        super().setUp()
        self.deck = Deck.objects.create(title='Test Deck', description='Desc', owner=self.user)
        self.card = Card.objects.create(deck=self.deck, front='Q', back='A')

    def test_list_includes_counts(self):
        Card.objects.create(deck=self.deck, front='later', back='A', times_reviewed=1,
                            next_review=timezone.now() + timedelta(days=2))
        Deck.objects.create(title='Empty', owner=self.user)
        response = self.client.get(reverse('deck_list'))
        decks = {d['title']: d for d in json.loads(response.content)['decks']}
        self.assertEqual(decks['Test Deck']['card_count'], 2)
        self.assertEqual(decks['Test Deck']['due_count'], 1)
        self.assertEqual(decks['Empty']['card_count'], 0)
        self.assertEqual(decks['Empty']['due_count'], 0)

    def test_list_only_own_decks(self):
        other = self.make_user('other')
        Deck.objects.create(title='Theirs', owner=other)
        response = self.client.get(reverse('deck_list'))
        titles = [d['title'] for d in json.loads(response.content)['decks']]
        self.assertEqual(titles, ['Test Deck'])

    def test_create_deck_with_folder_and_tags(self):
        folder = Folder.objects.create(owner=self.user, name='Languages')
        tag = Tag.objects.create(owner=self.user, name='Spanish', color='#f00')
        response = self.post_json(reverse('deck_list'), {
            'title': 'Verbs', 'folder_id': folder.pk, 'tag_ids': [tag.pk],
        })
        self.assertEqual(response.status_code, 201)
        deck = Deck.objects.get(title='Verbs')
        self.assertEqual(deck.owner, self.user)
        self.assertEqual(deck.folder, folder)
        self.assertEqual(list(deck.tags.all()), [tag])

    def test_create_deck_rejects_foreign_folder(self):
        other = self.make_user('other')
        folder = Folder.objects.create(owner=other, name='Theirs')
        response = self.post_json(reverse('deck_list'), {'title': 'Verbs', 'folder_id': folder.pk})
        self.assertEqual(response.status_code, 400)

    def test_create_deck_requires_title(self):
        response = self.post_json(reverse('deck_list'), {'title': '   '})
        self.assertEqual(response.status_code, 400)

    def test_detail_includes_cards(self):
        response = self.client.get(reverse('deck_detail', kwargs={'pk': self.deck.pk}))
        data = json.loads(response.content)['deck']
        self.assertEqual([c['front'] for c in data['cards']], ['Q'])

    def test_update_keeps_omitted_fields(self):
        response = self.put_json(reverse('deck_detail', kwargs={'pk': self.deck.pk}), {'title': 'Renamed'})
        self.assertEqual(response.status_code, 200)
        self.deck.refresh_from_db()
        self.assertEqual(self.deck.title, 'Renamed')
        self.assertEqual(self.deck.description, 'Desc')

    def test_other_users_deck_is_not_found(self):
        other = self.make_user('other')
        deck = Deck.objects.create(title='Theirs', owner=other)
        for method in (self.client.get, self.client.delete):
            response = method(reverse('deck_detail', kwargs={'pk': deck.pk}))
            self.assertEqual(response.status_code, 404)

    def test_delete_deck(self):
        response = self.client.delete(reverse('deck_detail', kwargs={'pk': self.deck.pk}))
        self.assertEqual(response.status_code, 200)
        self.assertFalse(Deck.objects.filter(pk=self.deck.pk).exists())
        self.assertFalse(Card.objects.filter(pk=self.card.pk).exists())

    def test_move_in_and_out_of_folder(self):
        folder = Folder.objects.create(owner=self.user, name='Languages')
        url = reverse('deck_move', kwargs={'pk': self.deck.pk})
        self.put_json(url, {'folder_id': folder.pk})
        self.deck.refresh_from_db()
        self.assertEqual(self.deck.folder, folder)

        self.put_json(url, {'folder_id': None})
        self.deck.refresh_from_db()
        self.assertIsNone(self.deck.folder)

    def test_malformed_folder_id(self):
        response = self.client.get(reverse('deck_list'), {'folder_id': 'abc'})
        self.assertEqual(response.status_code, 400)
        response = self.put_json(reverse('deck_move', kwargs={'pk': self.deck.pk}), {'folder_id': 'abc'})
        self.assertEqual(response.status_code, 400)
        self.deck.refresh_from_db()
        self.assertIsNone(self.deck.folder)

    def test_duplicate(self):
        self.card.review(True)
        response = self.post_json(reverse('deck_duplicate', kwargs={'pk': self.deck.pk}))
        self.assertEqual(response.status_code, 201)
        copy = Deck.objects.get(title='Test Deck (Copy)')
        card = copy.cards.get()
        self.assertEqual(card.front, 'Q')
        self.assertEqual(card.difficulty, 0)
        self.assertIsNone(card.next_review)

    def test_export(self):
        response = self.client.get(reverse('deck_export', kwargs={'pk': self.deck.pk}))
        self.assertEqual(response.status_code, 200)
        self.assertIn('attachment; filename="Test Deck.json"', response['Content-Disposition'])
        data = json.loads(response.content)
        self.assertEqual(data['title'], 'Test Deck')
        self.assertEqual(data['cards'][0]['front'], 'Q')

    def test_import_suffixes_duplicate_title(self):
        response = self.post_json(reverse('deck_import'), {
            'title': 'Test Deck',
            'cards': [
                {'front': 'one', 'back': '1'},
                {'back': 'no front'},
                {'front': 'two', 'back': '2'},
            ],
        })
        self.assertEqual(response.status_code, 201)
        data = json.loads(response.content)
        self.assertEqual(data['deck']['title'], 'Test Deck (1)')
        self.assertEqual(data['cards_imported'], 2)
        deck = Deck.objects.get(title='Test Deck (1)')
        self.assertEqual([c.front for c in deck.cards.all()], ['one', 'two'])

    def test_import_rejects_missing_cards(self):
        response = self.post_json(reverse('deck_import'), {'title': 'Broken'})
        self.assertEqual(response.status_code, 400)

    def test_reset_requires_matching_title(self):
        self.card.review(True)
        url = reverse('deck_reset', kwargs={'pk': self.deck.pk})
        response = self.post_json(url, {'confirm_title': 'wrong'})
        self.assertEqual(response.status_code, 400)

        response = self.post_json(url, {'confirm_title': 'Test Deck'})
        self.assertEqual(response.status_code, 200)
        self.card.refresh_from_db()
        self.assertEqual(self.card.difficulty, 0)
        self.assertEqual(self.card.times_reviewed, 0)
        self.assertIsNone(self.card.next_review)
        self.assertFalse(ReviewLog.objects.filter(card=self.card).exists())


class CardViewTests(ApiTestCase):
    """Tests for card views."""

    def setUp(self):
        super().setUp()
        self.deck = Deck.objects.create(title='Test Deck', owner=self.user)

    def test_create_appends_to_deck(self):
        url = reverse('card_create', kwargs={'deck_pk': self.deck.pk})
        first = json.loads(self.post_json(url, {'front': 'Q1', 'back': 'A1'}).content)['card']
        second = json.loads(self.post_json(url, {'front': 'Q2', 'back': 'A2'}).content)['card']
        self.assertEqual(first['position'], 0)
        self.assertEqual(second['position'], 1)
        self.assertEqual(second['difficulty'], 0)

    def test_create_accepts_image_instead_of_text(self):
        url = reverse('card_create', kwargs={'deck_pk': self.deck.pk})
        response = self.post_json(url, {'front_image': '/img/cat.png', 'back': 'cat'})
        self.assertEqual(response.status_code, 201)

    def test_create_requires_both_sides(self):
        url = reverse('card_create', kwargs={'deck_pk': self.deck.pk})
        response = self.post_json(url, {'front': 'Q'})
        self.assertEqual(response.status_code, 400)
        self.assertIn('back', json.loads(response.content)['errors'])

    def test_create_in_other_users_deck(self):
        other = self.make_user('other')
        deck = Deck.objects.create(title='Theirs', owner=other)
        response = self.post_json(reverse('card_create', kwargs={'deck_pk': deck.pk}),
                                  {'front': 'Q', 'back': 'A'})
        self.assertEqual(response.status_code, 404)

    def test_update_keeps_review_state(self):
        card = Card.objects.create(deck=self.deck, front='Q', back='A')
        card.review(True)
        response = self.put_json(reverse('card_detail', kwargs={'pk': card.pk}), {'front': 'New Q'})
        self.assertEqual(response.status_code, 200)
        card.refresh_from_db()
        self.assertEqual(card.front, 'New Q')
        self.assertEqual(card.back, 'A')
        self.assertEqual(card.difficulty, 1)

    def test_delete(self):
        card = Card.objects.create(deck=self.deck, front='Q', back='A')
        response = self.client.delete(reverse('card_detail', kwargs={'pk': card.pk}))
        self.assertEqual(response.status_code, 200)
        self.assertFalse(Card.objects.filter(pk=card.pk).exists())

    def test_reorder(self):
        a = Card.objects.create(deck=self.deck, front='a', back='1', position=0)
        b = Card.objects.create(deck=self.deck, front='b', back='2', position=1)
        c = Card.objects.create(deck=self.deck, front='c', back='3', position=2)
        url = reverse('card_reorder', kwargs={'deck_pk': self.deck.pk})
        response = self.put_json(url, {'card_ids': [c.pk, a.pk, b.pk]})
        self.assertEqual(response.status_code, 200)
        self.assertEqual([card.front for card in self.deck.cards.all()], ['c', 'a', 'b'])

    def test_reorder_rejects_foreign_cards(self):
        other_deck = Deck.objects.create(title='Other', owner=self.user)
        foreign = Card.objects.create(deck=other_deck, front='x', back='y')
        url = reverse('card_reorder', kwargs={'deck_pk': self.deck.pk})
        response = self.put_json(url, {'card_ids': [foreign.pk]})
        self.assertEqual(response.status_code, 400)

    def test_reorder_requires_every_card_once(self):
        a = Card.objects.create(deck=self.deck, front='a', back='1', position=0)
        b = Card.objects.create(deck=self.deck, front='b', back='2', position=1)
        url = reverse('card_reorder', kwargs={'deck_pk': self.deck.pk})
        self.assertEqual(self.put_json(url, {'card_ids': [b.pk, b.pk]}).status_code, 400)
        self.assertEqual(self.put_json(url, {'card_ids': [b.pk, a.pk, b.pk]}).status_code, 400)
        self.assertEqual(self.put_json(url, {'card_ids': [b.pk]}).status_code, 400)
        self.assertEqual([card.front for card in self.deck.cards.all()], ['a', 'b'])


class ReviewViewTests(ApiTestCase):
    """Tests for the review endpoint and due cards."""

    def setUp(self):
        super().setUp()
        self.deck = Deck.objects.create(title='Test Deck', owner=self.user)
        self.card = Card.objects.create(deck=self.deck, front='Test Question', back='Test Answer')

    def test_review_card_api(self):
        """Review card API should reschedule the card and return it."""
        response = self.put_json(reverse('review_card', kwargs={'pk': self.card.pk}), {'correct': True})
        self.assertEqual(response.status_code, 200)
        data = json.loads(response.content)
        self.assertEqual(data['card']['difficulty'], 1)
        self.assertEqual(data['card']['times_reviewed'], 1)
        self.assertEqual(data['card']['times_correct'], 1)
        self.assertEqual(data['interval'], 3)
        self.assertIsNotNone(data['card']['next_review'])

    def test_review_accepts_post(self):
        response = self.post_json(reverse('review_card', kwargs={'pk': self.card.pk}), {'correct': False})
        self.assertEqual(response.status_code, 200)
        self.card.refresh_from_db()
        self.assertEqual(self.card.difficulty, 0)
        self.assertEqual(self.card.times_correct, 0)

    def test_review_requires_boolean(self):
        for payload in ({}, {'correct': 'yes'}, {'correct': 1}):
            response = self.put_json(reverse('review_card', kwargs={'pk': self.card.pk}), payload)
            self.assertEqual(response.status_code, 400, payload)
        self.card.refresh_from_db()
        self.assertEqual(self.card.times_reviewed, 0)

    def test_review_card_api_invalid_json(self):
        response = self.client.put(
            reverse('review_card', kwargs={'pk': self.card.pk}),
            data='not json',
            content_type='application/json'
        )
        self.assertEqual(response.status_code, 400)

    def test_review_wrong_method(self):
        response = self.client.get(reverse('review_card', kwargs={'pk': self.card.pk}))
        self.assertEqual(response.status_code, 405)

    def test_review_other_users_card(self):
        other = self.make_user('other')
        deck = Deck.objects.create(title='Theirs', owner=other)
        card = Card.objects.create(deck=deck, front='Q', back='A')
        response = self.put_json(reverse('review_card', kwargs={'pk': card.pk}), {'correct': True})
        self.assertEqual(response.status_code, 404)

    def test_due_cards(self):
        now = timezone.now()
        overdue = Card.objects.create(deck=self.deck, front='overdue', back='A', times_reviewed=1,
                                      next_review=now - timedelta(days=2))
        Card.objects.create(deck=self.deck, front='later', back='A', times_reviewed=1,
                            next_review=now + timedelta(days=2))
        response = self.client.get(reverse('deck_due', kwargs={'deck_pk': self.deck.pk}))
        data = json.loads(response.content)
        self.assertEqual(data['due_count'], 2)
        self.assertEqual([c['id'] for c in data['cards']], [self.card.pk, overdue.pk])


class StudySessionViewTests(ApiTestCase):
    """Tests for study session recording and the streak it feeds."""

    def setUp(self):
        super().setUp()
        self.deck = Deck.objects.create(title='Test Deck', owner=self.user)

    def record(self, **extra):
        payload = {'deck_id': self.deck.pk, 'cards_studied': 10, 'cards_correct': 8,
                   'duration_seconds': 120}
        payload.update(extra)
        return self.post_json(reverse('study_sessions'), payload)

    def test_record_session_marks_study_day(self):
        with patch('django.utils.timezone.now', return_value=FIXED_NOW):
            response = self.record()
        self.assertEqual(response.status_code, 201)
        data = json.loads(response.content)
        self.assertEqual(data['session']['cards_correct'], 8)
        self.assertEqual(data['session']['session_type'], 'study')
        self.assertEqual(data['streak']['current_streak'], 1)
        self.assertEqual(data['streak']['status'], 'active')
        self.assertEqual(data['streak']['stage'], 1)

        self.deck.refresh_from_db()
        self.assertEqual(self.deck.last_studied, FIXED_NOW)
        self.assertEqual(list(StudyDay.objects.values_list('date', flat=True)), [date(2024, 6, 15)])
        self.profile.refresh_from_db()
        self.assertEqual(self.profile.current_streak, 1)

    def test_second_session_same_day_adds_no_study_day(self):
        with patch('django.utils.timezone.now', return_value=FIXED_NOW):
            self.record()
            self.record(session_type='test')
        self.assertEqual(StudySession.objects.count(), 2)
        self.assertEqual(StudyDay.objects.count(), 1)

    def test_sessions_on_consecutive_days_build_streak(self):
        with patch('django.utils.timezone.now', return_value=FIXED_NOW - timedelta(days=1)):
            self.record()
        with patch('django.utils.timezone.now', return_value=FIXED_NOW):
            response = self.record()
        self.assertEqual(json.loads(response.content)['streak']['current_streak'], 2)

    def test_rejects_more_correct_than_studied(self):
        response = self.record(cards_studied=2, cards_correct=3)
        self.assertEqual(response.status_code, 400)
        self.assertFalse(StudyDay.objects.exists())

    def test_rejects_other_users_deck(self):
        other = self.make_user('other')
        deck = Deck.objects.create(title='Theirs', owner=other)
        response = self.record(deck_id=deck.pk)
        self.assertEqual(response.status_code, 400)
        self.assertFalse(StudySession.objects.exists())

    def test_list_sessions(self):
        for _ in range(3):
            self.record()
        response = self.client.get(reverse('study_sessions'), {'deck_id': self.deck.pk, 'limit': 2})
        self.assertEqual(len(json.loads(response.content)['sessions']), 2)

    def test_list_sessions_malformed_deck_id(self):
        response = self.client.get(reverse('study_sessions'), {'deck_id': 'abc'})
        self.assertEqual(response.status_code, 400)

    def test_deck_stats(self):
        self.record(cards_studied=10, cards_correct=8, duration_seconds=60)
        self.record(cards_studied=10, cards_correct=6, duration_seconds=90)
        Card.objects.create(deck=self.deck, front='new', back='a')
        Card.objects.create(deck=self.deck, front='learning', back='a', times_reviewed=2, times_correct=1)
        Card.objects.create(deck=self.deck, front='mastered', back='a', times_reviewed=6, times_correct=6)

        response = self.client.get(reverse('deck_stats', kwargs={'deck_pk': self.deck.pk}))
        data = json.loads(response.content)
        self.assertEqual(data['session_count'], 2)
        self.assertEqual(data['cards_studied'], 20)
        self.assertEqual(data['accuracy'], 70)
        self.assertEqual(data['total_seconds'], 150)
        self.assertEqual(data['mastery'], {'new': 1, 'learning': 1, 'familiar': 0, 'mastered': 1})
        self.assertEqual(len(data['recent_sessions']), 2)


class StreakViewTests(ApiTestCase):
    """Tests for the streak and garden endpoints."""

    def add_days(self, *offsets):
        for n in offsets:
            StudyDay.objects.create(user=self.user, date=(FIXED_NOW - timedelta(days=n)).date())

    def get_streak(self):
        with patch('django.utils.timezone.now', return_value=FIXED_NOW):
            return json.loads(self.client.get(reverse('streak')).content)

    def test_streak_with_no_study_days(self):
        data = self.get_streak()
        self.assertEqual(data['current_streak'], 0)
        self.assertEqual(data['status'], 'broken')
        self.assertEqual(data['hours_remaining'], 0)
        self.assertEqual(data['stage'], 0)

    def test_at_risk_streak(self):
        self.add_days(1, 2, 3, 4, 5, 6)
        data = self.get_streak()
        self.assertEqual(data['current_streak'], 6)
        self.assertEqual(data['status'], 'at-risk')
        self.assertEqual(data['hours_remaining'], 6.0)
        self.assertEqual(data['stage'], 2)
        self.assertEqual(data['next_stage']['min_days'], 7)
        self.assertEqual(data['days_to_next_stage'], 1)

    def test_streak_is_recomputed_not_read_from_cache(self):
        self.add_days(0)
        UserProfile.objects.filter(pk=self.profile.pk).update(current_streak=50)
        data = self.get_streak()
        self.assertEqual(data['current_streak'], 1)

    def test_past_streaks(self):
        self.add_days(0, 1, 5, 6, 7, 20)
        data = self.get_streak()
        self.assertEqual(data['current_streak'], 2)
        self.assertEqual(data['past_streaks'], [
            {'streak': 3, 'start': '2024-06-08', 'end': '2024-06-10'},
            {'streak': 1, 'start': '2024-05-26', 'end': '2024-05-26'},
        ])

    def test_garden_theme_update(self):
        response = self.put_json(reverse('garden'), {'garden_theme': 'zen'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(json.loads(response.content)['garden_theme'], 'zen')

        response = self.put_json(reverse('garden'), {'garden_theme': 'lunar'})
        self.assertEqual(response.status_code, 400)

    def test_stage_override_forbidden_for_non_owner(self):
        response = self.put_json(reverse('garden'), {'stage_override': 5})
        self.assertEqual(response.status_code, 403)
        self.profile.refresh_from_db()
        self.assertIsNone(self.profile.stage_override)

    def test_owner_stage_override(self):
        self.profile.role = UserProfile.Role.OWNER
        self.profile.save()
        self.add_days(0)

        response = self.put_json(reverse('garden'), {'stage_override': 7})
        self.assertEqual(response.status_code, 200)
        data = self.get_streak()
        self.assertEqual(data['current_streak'], 1)
        self.assertEqual(data['stage'], 1)
        self.assertEqual(data['display_stage'], 7)
        self.assertEqual(data['stage_info']['name'], 'Enchanted Grove')

        self.put_json(reverse('garden'), {'stage_override': None})
        self.assertEqual(self.get_streak()['display_stage'], 1)

    def test_override_out_of_range(self):
        self.profile.role = UserProfile.Role.OWNER
        self.profile.save()
        response = self.put_json(reverse('garden'), {'stage_override': 11})
        self.assertEqual(response.status_code, 400)

    def test_stage_list(self):
        response = self.client.get(reverse('garden_stages'))
        stages = json.loads(response.content)['stages']
        self.assertEqual(len(stages), 11)
        self.assertEqual(stages[-1]['name'], 'Celestial Eden')


class SocialViewTests(ApiTestCase):
    """Tests for search and friendships."""

    def setUp(self):
        super().setUp()
        self.friend = self.make_user('friendly')

    def test_search(self):
        response = self.client.get(reverse('user_search'), {'q': 'friend'})
        self.assertEqual([u['username'] for u in json.loads(response.content)['users']], ['friendly'])

    def test_search_by_share_code(self):
        code = self.friend.profile.share_code
        response = self.client.get(reverse('user_search'), {'q': code.lower()})
        self.assertEqual([u['id'] for u in json.loads(response.content)['users']], [self.friend.pk])

    def test_search_needs_two_characters_and_excludes_self(self):
        response = self.client.get(reverse('user_search'), {'q': 'f'})
        self.assertEqual(json.loads(response.content)['users'], [])
        response = self.client.get(reverse('user_search'), {'q': 'testuser'})
        self.assertEqual(json.loads(response.content)['users'], [])

    def test_friend_request_flow(self):
        response = self.post_json(reverse('friend_request'), {'user_id': self.friend.pk})
        self.assertEqual(response.status_code, 201)

        response = self.post_json(reverse('friend_request'), {'user_id': self.friend.pk})
        self.assertEqual(response.status_code, 400)

        profile = json.loads(self.client.get(reverse('user_profile', kwargs={'pk': self.friend.pk})).content)
        self.assertEqual(profile['user']['friendship_status'], 'pending')
        self.assertEqual(profile['user']['friendship_direction'], 'outgoing')

        # The requester can't accept their own request
        response = self.post_json(reverse('friend_accept'), {'user_id': self.friend.pk})
        self.assertEqual(response.status_code, 404)

        self.client.login(username='friendly', password='testpass123')
        response = self.post_json(reverse('friend_accept'), {'user_id': self.user.pk})
        self.assertEqual(response.status_code, 200)
        friends = json.loads(self.client.get(reverse('friend_list')).content)['friends']
        self.assertEqual(friends[0]['username'], 'testuser')
        self.assertEqual(friends[0]['status'], 'accepted')
        self.assertFalse(friends[0]['is_outgoing'])

    def test_cannot_friend_self(self):
        response = self.post_json(reverse('friend_request'), {'user_id': self.user.pk})
        self.assertEqual(response.status_code, 400)

    def test_remove_friend(self):
        Friendship.objects.create(requester=self.friend, addressee=self.user,
                                  status=Friendship.Status.ACCEPTED)
        response = self.client.delete(reverse('friend_remove', kwargs={'user_id': self.friend.pk}))
        self.assertEqual(response.status_code, 200)
        self.assertFalse(Friendship.objects.exists())

    def test_user_profile(self):
        Deck.objects.create(title='Theirs', owner=self.friend)
        response = self.client.get(reverse('user_profile', kwargs={'pk': self.friend.pk}))
        data = json.loads(response.content)['user']
        self.assertEqual(data['deck_count'], 1)
        self.assertIsNone(data['friendship_status'])
        self.assertNotIn('email', data)

    def test_lapsed_streak_reads_zero_everywhere(self):
        """A streak that lapsed since the last session isn't reported from the cached columns."""
        for day in range(10, 15):
            StudyDay.objects.create(user=self.friend, date=date(2024, 6, day))
        UserProfile.objects.filter(user=self.friend).update(current_streak=5, longest_streak=5)

        later = datetime(2024, 6, 18, 12, 0, tzinfo=dt_timezone.utc)
        with patch('django.utils.timezone.now', return_value=later):
            response = self.client.get(reverse('user_profile', kwargs={'pk': self.friend.pk}))
            data = json.loads(response.content)['user']
            self.assertEqual(data['current_streak'], 0)
            self.assertEqual(data['longest_streak'], 5)

            self.client.force_login(self.friend)
            data = json.loads(self.client.get(reverse('me')).content)['user']
            self.assertEqual(data['current_streak'], 0)
            self.assertEqual(data['longest_streak'], 5)


class MessageViewTests(ApiTestCase):
    """Tests for direct messages and deck sharing."""

    def setUp(self):
        super().setUp()
        self.friend = self.make_user('friendly')
        self.deck = Deck.objects.create(title='Shared', owner=self.user)
        Card.objects.create(deck=self.deck, front='Q', back='A', difficulty=3, times_reviewed=4)

    def send(self, **data):
        payload = {'receiver_id': self.friend.pk}
        payload.update(data)
        return self.post_json(reverse('send_message'), payload)

    def test_send_text(self):
        response = self.send(content='Hola')
        self.assertEqual(response.status_code, 201)
        message = json.loads(response.content)['message']
        self.assertEqual(message['content'], 'Hola')
        self.assertTrue(message['is_mine'])

    def test_empty_text_rejected(self):
        response = self.send(content='  ')
        self.assertEqual(response.status_code, 400)

    def test_deck_message_snapshot(self):
        response = self.send(message_type='deck', deck_id=self.deck.pk)
        self.assertEqual(response.status_code, 201)
        deck_data = json.loads(response.content)['message']['deck_data']
        self.assertEqual(deck_data, {'id': self.deck.pk, 'title': 'Shared', 'card_count': 1})

    def test_cannot_share_someone_elses_deck(self):
        deck = Deck.objects.create(title='Theirs', owner=self.friend)
        response = self.send(message_type='deck', deck_id=deck.pk)
        self.assertEqual(response.status_code, 404)

    def test_thread_marks_read(self):
        DirectMessage.objects.create(sender=self.friend, receiver=self.user, content='one')
        DirectMessage.objects.create(sender=self.friend, receiver=self.user, content='two')
        self.send(content='reply')

        self.assertEqual(json.loads(self.client.get(reverse('unread_count')).content)['count'], 2)
        conversations = json.loads(self.client.get(reverse('conversations')).content)['conversations']
        self.assertEqual(len(conversations), 1)
        self.assertEqual(conversations[0]['unread_count'], 2)
        self.assertEqual(conversations[0]['last_message'], 'reply')
        self.assertTrue(conversations[0]['is_own_message'])

        response = self.client.get(reverse('thread', kwargs={'user_id': self.friend.pk}))
        messages = json.loads(response.content)['messages']
        self.assertEqual([m['content'] for m in messages], ['one', 'two', 'reply'])
        self.assertEqual(json.loads(self.client.get(reverse('unread_count')).content)['count'], 0)

    def test_thread_limit_returns_latest(self):
        for n in range(5):
            DirectMessage.objects.create(sender=self.friend, receiver=self.user, content=str(n))
        response = self.client.get(reverse('thread', kwargs={'user_id': self.friend.pk}), {'limit': 2})
        self.assertEqual([m['content'] for m in json.loads(response.content)['messages']], ['3', '4'])

    def test_edit_and_delete_own_message(self):
        message = DirectMessage.objects.create(sender=self.user, receiver=self.friend, content='tpyo')
        url = reverse('message_detail', kwargs={'pk': message.pk})
        response = self.put_json(url, {'content': 'typo'})
        self.assertEqual(response.status_code, 200)
        message.refresh_from_db()
        self.assertEqual(message.content, 'typo')
        self.assertTrue(message.is_edited)

        self.assertEqual(self.client.delete(url).status_code, 200)
        self.assertFalse(DirectMessage.objects.filter(pk=message.pk).exists())

    def test_cannot_edit_received_message(self):
        message = DirectMessage.objects.create(sender=self.friend, receiver=self.user, content='hi')
        response = self.put_json(reverse('message_detail', kwargs={'pk': message.pk}), {'content': 'x'})
        self.assertEqual(response.status_code, 404)

    def test_accept_deck(self):
        message_id = json.loads(self.send(message_type='deck', deck_id=self.deck.pk).content)['message']['id']
        url = reverse('accept_deck', kwargs={'pk': message_id})

        # Only the receiver can accept
        self.assertEqual(self.post_json(url).status_code, 404)

        self.client.login(username='friendly', password='testpass123')
        response = self.post_json(url)
        self.assertEqual(response.status_code, 201)
        copy = Deck.objects.get(owner=self.friend)
        self.assertEqual(copy.title, 'Shared')
        card = copy.cards.get()
        self.assertEqual(card.difficulty, 0)
        self.assertEqual(card.times_reviewed, 0)
        message = DirectMessage.objects.get(pk=message_id)
        self.assertEqual(message.deck_data['accepted_deck_id'], copy.pk)

        response = self.post_json(url)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(Deck.objects.filter(owner=self.friend).count(), 1)


class AnnouncementViewTests(ApiTestCase):

    def setUp(self):
        super().setUp()
        self.admin = self.make_user('admin_user', role=UserProfile.Role.ADMIN)

    def test_only_admins_can_post(self):
        response = self.post_json(reverse('admin_announcement_list'), {'title': 'Hi', 'content': 'x'})
        self.assertEqual(response.status_code, 403)

    def test_post_list_and_dismiss(self):
        self.client.login(username='admin_user', password='testpass123')
        response = self.post_json(reverse('admin_announcement_list'), {
            'title': 'Maintenance', 'content': 'Down at noon', 'kind': 'warning',
        })
        self.assertEqual(response.status_code, 201)
        announcement = Announcement.objects.get()
        self.assertTrue(announcement.is_active)
        self.assertEqual(announcement.created_by, self.admin)

        self.client.login(username='testuser', password='testpass123')
        listed = json.loads(self.client.get(reverse('announcement_list')).content)['announcements']
        self.assertEqual([a['title'] for a in listed], ['Maintenance'])

        self.post_json(reverse('announcement_dismiss', kwargs={'pk': announcement.pk}))
        listed = json.loads(self.client.get(reverse('announcement_list')).content)['announcements']
        self.assertEqual(listed, [])

    def test_update_announcement(self):
        announcement = Announcement.objects.create(title='Hi', content='x', created_by=self.admin)
        self.client.login(username='admin_user', password='testpass123')
        url = reverse('admin_announcement_detail', kwargs={'pk': announcement.pk})
        response = self.put_json(url, {'is_active': False})
        self.assertEqual(response.status_code, 200)
        announcement.refresh_from_db()
        self.assertFalse(announcement.is_active)
        self.assertEqual(announcement.title, 'Hi')


class StaffViewTests(ApiTestCase):
    """Tests for user administration."""

    def setUp(self):
        super().setUp()
        self.owner = self.make_user('owner_user', role=UserProfile.Role.OWNER)
        self.admin = self.make_user('admin_user', role=UserProfile.Role.ADMIN)

    def test_regular_user_forbidden(self):
        self.assertEqual(self.client.get(reverse('admin_user_list')).status_code, 403)

    def test_admin_lists_users(self):
        self.client.login(username='admin_user', password='testpass123')
        response = self.client.get(reverse('admin_user_list'))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(json.loads(response.content)['users']), 3)

    def test_owner_changes_role(self):
        self.client.login(username='owner_user', password='testpass123')
        response = self.put_json(reverse('admin_user_role', kwargs={'pk': self.user.pk}), {'role': 'admin'})
        self.assertEqual(response.status_code, 200)
        self.profile.refresh_from_db()
        self.assertEqual(self.profile.role, UserProfile.Role.ADMIN)

    def test_role_cannot_be_set_to_owner(self):
        self.client.login(username='owner_user', password='testpass123')
        response = self.put_json(reverse('admin_user_role', kwargs={'pk': self.user.pk}), {'role': 'owner'})
        self.assertEqual(response.status_code, 400)

    def test_admin_cannot_change_roles(self):
        self.client.login(username='admin_user', password='testpass123')
        response = self.put_json(reverse('admin_user_role', kwargs={'pk': self.user.pk}), {'role': 'admin'})
        self.assertEqual(response.status_code, 403)

    def test_admin_deletes_user(self):
        self.client.login(username='admin_user', password='testpass123')
        response = self.client.delete(reverse('admin_user_detail', kwargs={'pk': self.user.pk}))
        self.assertEqual(response.status_code, 200)
        self.assertFalse(User.objects.filter(pk=self.user.pk).exists())

    def test_owner_and_admins_protected(self):
        other_admin = self.make_user('admin_two', role=UserProfile.Role.ADMIN)
        self.client.login(username='admin_user', password='testpass123')
        response = self.client.delete(reverse('admin_user_detail', kwargs={'pk': self.owner.pk}))
        self.assertEqual(response.status_code, 400)
        response = self.client.delete(reverse('admin_user_detail', kwargs={'pk': other_admin.pk}))
        self.assertEqual(response.status_code, 403)
        response = self.client.delete(reverse('admin_user_detail', kwargs={'pk': self.admin.pk}))
        self.assertEqual(response.status_code, 400)

    def test_admin_edits_user(self):
        self.client.login(username='admin_user', password='testpass123')
        url = reverse('admin_user_detail', kwargs={'pk': self.user.pk})
        response = self.put_json(url, {'username': 'renamed', 'email': 'New@Example.com', 'bio': 'Hi'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(json.loads(response.content)['user']['username'], 'renamed')
        self.user.refresh_from_db()
        self.assertEqual(self.user.email, 'new@example.com')
        self.assertEqual(self.user.profile.bio, 'Hi')

        response = self.put_json(url, {'bio': 'Still here'})
        self.assertEqual(response.status_code, 200)
        self.user.refresh_from_db()
        self.assertEqual(self.user.username, 'renamed')

    def test_edit_rejects_taken_username_and_email(self):
        self.client.login(username='admin_user', password='testpass123')
        url = reverse('admin_user_detail', kwargs={'pk': self.user.pk})
        self.assertEqual(self.put_json(url, {'username': 'OWNER_USER'}).status_code, 400)
        self.assertEqual(self.put_json(url, {'email': 'admin_user@example.com'}).status_code, 400)

    def test_edit_permissions(self):
        other_admin = self.make_user('admin_two', role=UserProfile.Role.ADMIN)
        response = self.put_json(reverse('admin_user_detail', kwargs={'pk': other_admin.pk}), {'bio': 'x'})
        self.assertEqual(response.status_code, 403)

        self.client.login(username='admin_user', password='testpass123')
        response = self.put_json(reverse('admin_user_detail', kwargs={'pk': other_admin.pk}), {'bio': 'x'})
        self.assertEqual(response.status_code, 403)
        response = self.put_json(reverse('admin_user_detail', kwargs={'pk': self.owner.pk}), {'bio': 'x'})
        self.assertEqual(response.status_code, 403)

        self.client.login(username='owner_user', password='testpass123')
        response = self.put_json(reverse('admin_user_detail', kwargs={'pk': other_admin.pk}), {'bio': 'x'})
        self.assertEqual(response.status_code, 200)

    def test_stats_forbidden_for_regular_user(self):
        self.assertEqual(self.client.get(reverse('admin_stats')).status_code, 403)

    def test_stats(self):
        popular = Deck.objects.create(title='Popular', owner=self.user)
        quiet = Deck.objects.create(title='Quiet', owner=self.admin)
        Card.objects.create(deck=popular, front='Q', back='A')
        for when in (FIXED_NOW, FIXED_NOW, FIXED_NOW - timedelta(days=2)):
            StudySession.objects.create(deck=popular, created_at=when)
        StudySession.objects.create(deck=quiet, created_at=FIXED_NOW - timedelta(days=1))
        StudySession.objects.create(deck=quiet, created_at=FIXED_NOW - timedelta(days=45))
        DirectMessage.objects.create(sender=self.user, receiver=self.admin, message_type='deck',
                                     deck_data={'title': 'Popular', 'cards': []})
        Announcement.objects.create(title='Live', content='x')
        Announcement.objects.create(title='Old', content='x', is_active=False)
        User.objects.filter(pk=self.owner.pk).update(date_joined=FIXED_NOW - timedelta(days=60))

        self.client.login(username='admin_user', password='testpass123')
        with patch('django.utils.timezone.now', return_value=FIXED_NOW):
            response = self.client.get(reverse('admin_stats'))
        self.assertEqual(response.status_code, 200)
        data = json.loads(response.content)

        self.assertEqual(data['users'], 3)
        self.assertEqual(data['decks'], 2)
        self.assertEqual(data['cards'], 1)
        self.assertEqual(data['shared_decks'], 1)
        self.assertEqual(data['active_announcements'], 1)
        self.assertEqual(data['recent_signups'], 2)
        self.assertEqual(data['recent_sessions'], 4)

        activity = data['daily_activity']
        self.assertEqual(len(activity), 30)
        self.assertEqual(activity[-1], {'date': '2024-06-15', 'count': 2})
        self.assertEqual(activity[-2], {'date': '2024-06-14', 'count': 1})
        self.assertEqual(activity[-3], {'date': '2024-06-13', 'count': 1})
        self.assertEqual(activity[0], {'date': '2024-05-17', 'count': 0})

        self.assertEqual(data['top_decks'], [
            {'title': 'Popular', 'creator': 'testuser', 'sessions': 3},
            {'title': 'Quiet', 'creator': 'admin_user', 'sessions': 1},
        ])


class HealthViewTests(TestCase):

    def test_health_check(self):
        response = self.client.get(reverse('health_check'))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(json.loads(response.content), {'status': 'healthy'})


# =============================================================================
# Recompute Streaks Command Tests
# =============================================================================

class RecomputeStreaksCommandTests(TestCase):
    """Tests for the recompute_streaks management command."""

    def setUp(self):
        self.user = User.objects.create_user(username='testuser', password='testpass123')
        self.profile = UserProfile.objects.create(user=self.user, current_streak=9, longest_streak=9)
        today = timezone.now().date()
        for n in range(3):
            StudyDay.objects.create(user=self.user, date=today - timedelta(days=n))

    def test_dry_run_does_not_save(self):
        out = StringIO()
        call_command('recompute_streaks', '--dry-run', stdout=out)
        self.assertIn('[DRY RUN]', out.getvalue())
        self.profile.refresh_from_db()
        self.assertEqual(self.profile.current_streak, 9)

    def test_rewrites_cached_streak(self):
        out = StringIO()
        call_command('recompute_streaks', stdout=out)
        self.assertIn('Updated 1 of 1 profiles', out.getvalue())
        self.profile.refresh_from_db()
        self.assertEqual(self.profile.current_streak, 3)
        self.assertEqual(self.profile.longest_streak, 3)
