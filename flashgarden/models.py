import logging
import secrets
import zoneinfo
from datetime import timezone as dt_timezone

from django.conf import settings
from django.contrib.auth.models import User
from django.core.exceptions import ImproperlyConfigured
from django.db import models, transaction
from django.utils import timezone

from . import srs
from . import streaks
from .garden import DEFAULT_GARDEN_THEME

logger = logging.getLogger(__name__)

SHARE_CODE_ALPHABET = 'ABCDEFGHJKLMNPQRSTUVWXYZ23456789'
SHARE_CODE_LENGTH = 8

PRESET_TAGS = (
    ('Language', '#3b82f6'),
    ('Science', '#22c55e'),
    ('Math', '#f59e0b'),
    ('History', '#8b5cf6'),
    ('Programming', '#06b6d4'),
    ('Medical', '#ef4444'),
    ('Business', '#ec4899'),
    ('Art', '#f97316'),
)

DAY_BOUNDARY_LOCAL = 'local'
DAY_BOUNDARY_UTC = 'utc'


def generate_share_code():
    """Random code friends can use to find a user."""
    return ''.join(secrets.choice(SHARE_CODE_ALPHABET) for _ in range(SHARE_CODE_LENGTH))


def get_day_boundary():
    """Which clock decides when a study day starts (see STREAK_DAY_BOUNDARY)."""
    boundary = getattr(settings, 'STREAK_DAY_BOUNDARY', DAY_BOUNDARY_LOCAL)
    if boundary not in (DAY_BOUNDARY_LOCAL, DAY_BOUNDARY_UTC):
        raise ImproperlyConfigured(
            f"STREAK_DAY_BOUNDARY must be '{DAY_BOUNDARY_LOCAL}' or '{DAY_BOUNDARY_UTC}', got {boundary!r}"
        )
    return boundary


class UserProfile(models.Model):
    """Per-user profile: social identity, role, garden settings and cached streak."""

    class Role(models.TextChoices):
        USER = 'user', 'User'
        ADMIN = 'admin', 'Admin'
        OWNER = 'owner', 'Owner'

    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='profile')
    share_code = models.CharField(max_length=SHARE_CODE_LENGTH, unique=True, default=generate_share_code)
    avatar = models.CharField(max_length=200, blank=True)
    bio = models.TextField(blank=True, max_length=500)
    role = models.CharField(max_length=10, choices=Role.choices, default=Role.USER)
    user_timezone = models.CharField(max_length=64, default='UTC')

    # Garden customization
    garden_theme = models.CharField(max_length=30, default=DEFAULT_GARDEN_THEME)
    stage_override = models.PositiveSmallIntegerField(null=True, blank=True)

    # Cached projection of the StudyDay rows, rewritten by refresh_streak()
    current_streak = models.IntegerField(default=0)
    longest_streak = models.IntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Profile for {self.user.username}"

    @property
    def is_admin(self):
        return self.role in (self.Role.ADMIN, self.Role.OWNER)

    @property
    def is_owner(self):
        return self.role == self.Role.OWNER

    def get_timezone(self):
        """The user's timezone, falling back to UTC for unknown names."""
        try:
            return zoneinfo.ZoneInfo(self.user_timezone)
        except (zoneinfo.ZoneInfoNotFoundError, ValueError):
            return dt_timezone.utc

    def local_now(self, now=None):
        """Current moment on the clock that defines this user's study day."""
        if now is None:
            now = timezone.now()
        if get_day_boundary() == DAY_BOUNDARY_UTC:
            return now.astimezone(dt_timezone.utc)
        return now.astimezone(self.get_timezone())

    def get_local_date(self, now=None):
        return self.local_now(now).date()

    def studied_date_keys(self):
        """The canonical set of days this user has studied."""
        return {
            streaks.date_key(day)
            for day in self.user.study_days.values_list('date', flat=True)
        }

    def streak_view(self, now=None):
        return streaks.compute_streak(self.studied_date_keys(), self.local_now(now))

    def past_streaks(self, now=None):
        """Finished streaks, most recent first."""
        days = streaks.parse_studied_dates(self.studied_date_keys())
        return streaks.past_streaks(days, self.get_local_date(now))

    def refresh_streak(self, now=None):
        """Recompute the cached streak fields from the StudyDay rows."""
        view = self.streak_view(now)
        self.current_streak = view.current_streak
        self.longest_streak = view.longest_streak
        self.save(update_fields=['current_streak', 'longest_streak', 'updated_at'])
        return view

    def record_study_day(self, now=None):
        """
        Mark today as studied and refresh the cached streak.

        The insert is a single INSERT ... ON CONFLICT DO NOTHING so that two
        sessions finishing at the same time can't lose or duplicate the day.
        """
        today = self.get_local_date(now)
        StudyDay.objects.bulk_create(
            [StudyDay(user=self.user, date=today)],
            ignore_conflicts=True
        )
        view = self.refresh_streak(now)
        logger.info(
            "Recorded study day %s for %s (streak %s)",
            today, self.user.username, view.current_streak
        )
        return view


class StudyDay(models.Model):
    """A calendar day on which a user finished at least one study session."""
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='study_days')
    date = models.DateField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['date']
        unique_together = ['user', 'date']

    def __str__(self):
        return f"{self.user.username} studied on {self.date}"


class Folder(models.Model):
    """A named group of decks."""
    owner = models.ForeignKey(User, on_delete=models.CASCADE, related_name='folders')
    name = models.CharField(max_length=100)
    color = models.CharField(max_length=20, default='#6366f1')
    icon = models.CharField(max_length=50, default='folder')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return self.name


class Tag(models.Model):
    """A colored label that can be attached to decks."""
    owner = models.ForeignKey(User, on_delete=models.CASCADE, related_name='tags')
    name = models.CharField(max_length=50)
    color = models.CharField(max_length=20)
    is_preset = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-is_preset', 'name']
        unique_together = ['name', 'owner']

    def __str__(self):
        return self.name

    @classmethod
    def create_presets(cls, owner):
        """Give a new account the default tag set."""
        cls.objects.bulk_create(
            [cls(owner=owner, name=name, color=color, is_preset=True) for name, color in PRESET_TAGS],
            ignore_conflicts=True
        )


class Deck(models.Model):
    """A collection of flashcards."""
    owner = models.ForeignKey(User, on_delete=models.CASCADE, related_name='decks')
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    folder = models.ForeignKey(
        Folder, on_delete=models.SET_NULL, null=True, blank=True, related_name='decks'
    )
    tags = models.ManyToManyField(Tag, blank=True, related_name='decks')
    last_studied = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return self.title

    def due_cards_filter(self, now=None):
        if now is None:
            now = timezone.now()
        return models.Q(next_review__isnull=True) | models.Q(next_review__lte=now)

    def cards_due_count(self, now=None):
        """Return count of cards due for review (new cards are always due)."""
        return self.cards.filter(self.due_cards_filter(now)).count()

    def cards_new_count(self):
        """Return count of new cards (never reviewed)."""
        return self.cards.filter(times_reviewed=0).count()

    def next_position(self):
        highest = self.cards.aggregate(highest=models.Max('position'))['highest']
        return 0 if highest is None else highest + 1

    @transaction.atomic
    def copy_to(self, owner, title=None):
        """
        Copy this deck and its cards into owner's library.

        Copies start with fresh review state. Tags are only carried over when
        the copy stays with the same owner, since tags are per-user.
        """
        deck = Deck.objects.create(
            owner=owner,
            title=title or self.title,
            description=self.description,
            folder=self.folder if owner == self.owner else None,
        )
        Card.objects.bulk_create([
            Card(
                deck=deck,
                front=card.front,
                back=card.back,
                front_image=card.front_image,
                back_image=card.back_image,
                position=card.position,
            )
            for card in self.cards.all()
        ])
        if owner == self.owner:
            deck.tags.set(self.tags.all())
        return deck


class Card(models.Model):
    """A flashcard with spaced repetition tracking."""
    deck = models.ForeignKey(Deck, on_delete=models.CASCADE, related_name='cards')
    front = models.TextField(blank=True)
    back = models.TextField(blank=True)
    front_image = models.CharField(max_length=500, blank=True)
    back_image = models.CharField(max_length=500, blank=True)
    position = models.IntegerField(default=0)

    # Spaced repetition fields (see srs.py)
    difficulty = models.PositiveSmallIntegerField(default=0)  # Bucket 0-5
    times_reviewed = models.PositiveIntegerField(default=0)
    times_correct = models.PositiveIntegerField(default=0)
    last_reviewed = models.DateTimeField(null=True, blank=True)
    next_review = models.DateTimeField(null=True, blank=True)  # None until first review

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['position', 'pk']

    def __str__(self):
        text = self.front or self.front_image
        return f"{text[:50]}..."

    def is_due(self, now=None):
        """Check if card is due for review."""
        if self.next_review is None:
            return True
        if now is None:
            now = timezone.now()
        return self.next_review <= now

    @property
    def mastery(self):
        return srs.mastery_level(self.times_reviewed, self.times_correct)

    def review(self, was_correct, now=None):
        """
        Record a review and reschedule the card.

        The card row is locked for the read-modify-write so concurrent
        reviews of the same card are applied one after the other.

        Returns the ReviewLog entry created.
        """
        if now is None:
            now = timezone.now()

        with transaction.atomic():
            locked = Card.objects.select_for_update().get(pk=self.pk)
            difficulty_before = locked.difficulty
            result = srs.schedule_review(locked.difficulty, was_correct, now)

            self.difficulty = result.difficulty
            self.times_reviewed = locked.times_reviewed + 1
            self.times_correct = locked.times_correct + (1 if was_correct else 0)
            self.last_reviewed = now
            self.next_review = result.next_review
            self.save(update_fields=[
                'difficulty', 'times_reviewed', 'times_correct',
                'last_reviewed', 'next_review', 'updated_at',
            ])

            return ReviewLog.objects.create(
                card=self,
                was_correct=was_correct,
                difficulty_before=difficulty_before,
                difficulty_after=result.difficulty,
                interval_after=result.interval,
            )


class ReviewLog(models.Model):
    """Log of card reviews for analytics."""
    card = models.ForeignKey(Card, on_delete=models.CASCADE, related_name='review_logs')
    was_correct = models.BooleanField()
    difficulty_before = models.PositiveSmallIntegerField()
    difficulty_after = models.PositiveSmallIntegerField()
    interval_after = models.IntegerField()
    reviewed_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-reviewed_at']


class StudySession(models.Model):
    """A finished study or test run through a deck."""

    class SessionType(models.TextChoices):
        STUDY = 'study', 'Study'
        TEST = 'test', 'Test'

    deck = models.ForeignKey(Deck, on_delete=models.CASCADE, related_name='study_sessions')
    session_type = models.CharField(
        max_length=10,
        choices=SessionType.choices,
        default=SessionType.STUDY
    )
    cards_studied = models.PositiveIntegerField(default=0)
    cards_correct = models.PositiveIntegerField(default=0)
    duration_seconds = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.session_type} of {self.deck} at {self.created_at}"


class Friendship(models.Model):
    """A friend request from requester to addressee."""

    class Status(models.TextChoices):
        PENDING = 'pending', 'Pending'
        ACCEPTED = 'accepted', 'Accepted'

    requester = models.ForeignKey(User, on_delete=models.CASCADE, related_name='friendships_sent')
    addressee = models.ForeignKey(User, on_delete=models.CASCADE, related_name='friendships_received')
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.PENDING)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']
        unique_together = ['requester', 'addressee']

    def __str__(self):
        return f"{self.requester.username} -> {self.addressee.username} ({self.status})"

    @classmethod
    def between(cls, user, other):
        """The friendship linking two users in either direction, if any."""
        return cls.objects.filter(
            models.Q(requester=user, addressee=other) |
            models.Q(requester=other, addressee=user)
        ).first()

    @classmethod
    def involving(cls, user):
        return cls.objects.filter(
            models.Q(requester=user) | models.Q(addressee=user)
        ).select_related('requester__profile', 'addressee__profile')

    def other_user(self, user):
        return self.addressee if self.requester_id == user.pk else self.requester


class DirectMessage(models.Model):
    """A private message between two users, optionally carrying a shared deck."""

    class MessageType(models.TextChoices):
        TEXT = 'text', 'Text'
        DECK = 'deck', 'Deck'
        IMAGE = 'image', 'Image'

    sender = models.ForeignKey(User, on_delete=models.CASCADE, related_name='messages_sent')
    receiver = models.ForeignKey(User, on_delete=models.CASCADE, related_name='messages_received')
    content = models.TextField(blank=True)
    message_type = models.CharField(
        max_length=10,
        choices=MessageType.choices,
        default=MessageType.TEXT
    )
    deck_data = models.JSONField(null=True, blank=True)
    image_url = models.CharField(max_length=500, blank=True)
    is_edited = models.BooleanField(default=False)
    is_read = models.BooleanField(default=False)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['created_at', 'pk']
        indexes = [
            models.Index(fields=['sender', 'receiver', 'created_at'], name='flashgarden_dm_thread_idx'),
        ]

    def __str__(self):
        return f"{self.message_type} from {self.sender.username} to {self.receiver.username}"

    @classmethod
    def thread(cls, user, other):
        return cls.objects.filter(
            models.Q(sender=user, receiver=other) |
            models.Q(sender=other, receiver=user)
        )


class Announcement(models.Model):
    """A site-wide message broadcast by an admin."""

    class Kind(models.TextChoices):
        INFO = 'info', 'Info'
        WARNING = 'warning', 'Warning'
        SUCCESS = 'success', 'Success'

    title = models.CharField(max_length=200)
    content = models.TextField()
    kind = models.CharField(max_length=10, choices=Kind.choices, default=Kind.INFO)
    is_active = models.BooleanField(default=True)
    created_by = models.ForeignKey(
        User, on_delete=models.SET_NULL, null=True, blank=True, related_name='announcements'
    )
    dismissed_by = models.ManyToManyField(User, blank=True, related_name='dismissed_announcements')
    created_at = models.DateTimeField(auto_now_add=True)
    expires_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return self.title

    @classmethod
    def visible_to(cls, user, now=None):
        """Active, unexpired announcements the user hasn't dismissed."""
        if now is None:
            now = timezone.now()
        return cls.objects.filter(is_active=True).filter(
            models.Q(expires_at__isnull=True) | models.Q(expires_at__gt=now)
        ).exclude(dismissed_by=user)
