"""
Spaced Repetition System (SRS) scheduling.

Cards move through six difficulty buckets (0-5). A correct answer moves a
card up one bucket, an incorrect answer moves it down one, and each bucket
maps to a fixed review interval. Higher buckets mean the card is known better
and comes back less often.

This is deliberately simpler than SM-2 style schedulers: there is no ease
factor, so the schedule for a given answer history is fully predictable.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta


# Difficulty bucket bounds
MIN_DIFFICULTY = 0
MAX_DIFFICULTY = 5

# Review interval in days, indexed by difficulty bucket
INTERVAL_DAYS = (1, 3, 7, 14, 30, 60)

# Mastery buckets reported in deck statistics
MASTERY_NEW = 'new'
MASTERY_LEARNING = 'learning'
MASTERY_FAMILIAR = 'familiar'
MASTERY_MASTERED = 'mastered'
MASTERY_LEVELS = (MASTERY_NEW, MASTERY_LEARNING, MASTERY_FAMILIAR, MASTERY_MASTERED)

FAMILIAR_CORRECT = 2       # Correct answers needed to count as familiar
MASTERED_CORRECT = 5       # Correct answers needed to count as mastered


@dataclass(frozen=True)
class ReviewResult:
    """Immutable result of a review calculation."""
    difficulty: int
    interval: int  # days
    next_review: datetime


def clamp_difficulty(value) -> int:
    """
    Force a stored difficulty back into the valid bucket range.

    Anything that cannot be read as an integer is treated as a new card.
    """
    try:
        value = int(value)
    except (TypeError, ValueError):
        return MIN_DIFFICULTY
    return max(MIN_DIFFICULTY, min(MAX_DIFFICULTY, value))


def next_difficulty(current_difficulty: int, was_correct: bool) -> int:
    """Move one bucket up on a correct answer, one down otherwise."""
    current = clamp_difficulty(current_difficulty)
    if was_correct:
        return min(MAX_DIFFICULTY, current + 1)
    return max(MIN_DIFFICULTY, current - 1)


def interval_for(difficulty: int) -> int:
    """Days until the next review for a card in the given bucket."""
    return INTERVAL_DAYS[clamp_difficulty(difficulty)]


def schedule_review(
    current_difficulty: int,
    was_correct: bool,
    now: datetime | None = None
) -> ReviewResult:
    """
    Calculate the new bucket and due date for a reviewed card.

    This is the main entry point of the scheduler. It has no side effects:
    the caller is responsible for bumping the review counters and saving.

    Args:
        current_difficulty: Card's current bucket (clamped to 0-5)
        was_correct: Whether the card was answered correctly
        now: Time of review (defaults to now)

    Returns:
        ReviewResult with the new bucket, interval and next review time
    """
    if now is None:
        now = datetime.now()

    difficulty = next_difficulty(current_difficulty, was_correct)
    interval = INTERVAL_DAYS[difficulty]

    return ReviewResult(
        difficulty=difficulty,
        interval=interval,
        next_review=now + timedelta(days=interval)
    )


def get_cards_due(cards, now: datetime | None = None):
    """
    Filter cards that are due for review.

    Cards that were never scheduled (next_review is None) are always due.

    Args:
        cards: Iterable of card objects with next_review attribute
        now: Current time (defaults to now)

    Returns:
        List of due cards, unscheduled first, then oldest next_review first
    """
    if now is None:
        now = datetime.now()

    due_cards = [
        card for card in cards
        if card.next_review is None or card.next_review <= now
    ]
    return sorted(
        due_cards,
        key=lambda c: (c.next_review is not None, c.next_review or now)
    )


def mastery_level(times_reviewed: int, times_correct: int) -> str:
    """Classify a card by how often it has been answered correctly."""
    if not times_reviewed and not times_correct:
        return MASTERY_NEW
    if times_correct >= MASTERED_CORRECT:
        return MASTERY_MASTERED
    if times_correct >= FAMILIAR_CORRECT:
        return MASTERY_FAMILIAR
    return MASTERY_LEARNING
