"""Shared helper functions for views."""

import json
import logging
from datetime import timezone as dt_timezone
from functools import wraps

from django.db.models import Count, Q
from django.http import JsonResponse
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from .. import garden
from ..models import Deck, UserProfile

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 10
MAX_LIMIT = 100


def json_error(message, status=400, **extra):
    return JsonResponse({'error': message, **extra}, status=status)


def invalid_json():
    return json_error('Invalid JSON')


def form_error_response(form, status=400):
    """400 response carrying the first validation message plus all field errors."""
    errors = form.errors.get_json_data()
    first = next(iter(errors.values()))[0]['message'] if errors else 'Invalid request'
    return JsonResponse({
        'error': first,
        'errors': {field: [e['message'] for e in items] for field, items in errors.items()},
    }, status=status)


def parse_json_body(request):
    """
    Decode a JSON object from the request body.

    An empty body is treated as an empty object. Returns None when the body
    is not valid JSON or is not an object.
    """
    if not request.body:
        return {}
    try:
        data = json.loads(request.body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    if not isinstance(data, dict):
        return None
    return data


def without_nulls(data):
    """Drop keys whose value is null so form fields fall back to their defaults."""
    return {key: value for key, value in data.items() if value is not None}


def parse_timestamp(value):
    """Parse an ISO timestamp, reading naive values as UTC. None if unparseable."""
    if not isinstance(value, str):
        return None
    try:
        parsed = parse_datetime(value)
    except ValueError:
        return None
    if parsed is not None and timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed, dt_timezone.utc)
    return parsed


def parse_id(value):
    """Read a primary key from a query string or JSON value; None if it isn't one."""
    if isinstance(value, bool):
        return None
    try:
        pk = int(value)
    except (TypeError, ValueError):
        return None
    return pk if pk > 0 else None


def parse_limit(value, default=DEFAULT_LIMIT, maximum=MAX_LIMIT):
    try:
        limit = int(value)
    except (TypeError, ValueError):
        return default
    return max(1, min(maximum, limit))


def get_or_create_profile(user):
    """Get or create the user's profile."""
    profile, _ = UserProfile.objects.get_or_create(user=user)
    return profile


def api_login_required(view_func):
    """Like login_required, but answers 401 JSON instead of redirecting."""
    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        if not request.user.is_authenticated:
            return json_error('Authentication required', status=401)
        return view_func(request, *args, **kwargs)
    return wrapper


def admin_required(view_func):
    """Restrict a view to users with the admin or owner role."""
    @wraps(view_func)
    @api_login_required
    def wrapper(request, *args, **kwargs):
        if not get_or_create_profile(request.user).is_admin:
            logger.warning("Admin access denied for %s", request.user.username)
            return json_error('Admin access required', status=403)
        return view_func(request, *args, **kwargs)
    return wrapper


def owner_required(view_func):
    """Restrict a view to the owner role."""
    @wraps(view_func)
    @api_login_required
    def wrapper(request, *args, **kwargs):
        if not get_or_create_profile(request.user).is_owner:
            logger.warning("Owner access denied for %s", request.user.username)
            return json_error('Owner access required', status=403)
        return view_func(request, *args, **kwargs)
    return wrapper


def isoformat(value):
    return value.isoformat() if value else None


# ============================================================================
# Serializers
# ============================================================================

def serialize_user(user):
    """Public view of a user, safe to show to anyone."""
    profile = get_or_create_profile(user)
    return {
        'id': user.pk,
        'username': user.username,
        'avatar': profile.avatar,
        'bio': profile.bio,
        'share_code': profile.share_code,
        'role': profile.role,
        'is_admin': profile.is_admin,
        'is_owner': profile.is_owner,
    }


def streak_fields(profile):
    """Current and longest streak recomputed from study days, not the cached columns."""
    view = profile.streak_view()
    return {
        'current_streak': view.current_streak,
        'longest_streak': view.longest_streak,
    }


def serialize_profile(profile):
    """The signed-in user's own profile."""
    user = profile.user
    data = serialize_user(user)
    data.update({
        'email': user.email,
        'user_timezone': profile.user_timezone,
        'garden_theme': profile.garden_theme,
        'stage_override': profile.stage_override,
        'created_at': isoformat(profile.created_at),
    })
    data.update(streak_fields(profile))
    return data


def serialize_folder(folder):
    return {
        'id': folder.pk,
        'name': folder.name,
        'color': folder.color,
        'icon': folder.icon,
        'deck_count': getattr(folder, 'deck_count', None),
        'created_at': isoformat(folder.created_at),
    }


def serialize_tag(tag):
    return {
        'id': tag.pk,
        'name': tag.name,
        'color': tag.color,
        'is_preset': tag.is_preset,
    }


def serialize_card(card):
    return {
        'id': card.pk,
        'deck_id': card.deck_id,
        'front': card.front,
        'back': card.back,
        'front_image': card.front_image,
        'back_image': card.back_image,
        'position': card.position,
        'difficulty': card.difficulty,
        'times_reviewed': card.times_reviewed,
        'times_correct': card.times_correct,
        'last_reviewed': isoformat(card.last_reviewed),
        'next_review': isoformat(card.next_review),
        'mastery': card.mastery,
    }


def serialize_deck(deck, now=None, include_cards=False):
    """Deck summary; uses annotated counts when the queryset provides them."""
    card_count = getattr(deck, 'card_count', None)
    if card_count is None:
        card_count = deck.cards.count()
    due_count = getattr(deck, 'due_count', None)
    if due_count is None:
        due_count = deck.cards_due_count(now)

    data = {
        'id': deck.pk,
        'title': deck.title,
        'description': deck.description,
        'folder_id': deck.folder_id,
        'tags': [serialize_tag(tag) for tag in deck.tags.all()],
        'card_count': card_count,
        'due_count': due_count,
        'last_studied': isoformat(deck.last_studied),
        'created_at': isoformat(deck.created_at),
        'updated_at': isoformat(deck.updated_at),
    }
    if include_cards:
        data['cards'] = [serialize_card(card) for card in deck.cards.all()]
    return data


def serialize_session(session):
    return {
        'id': session.pk,
        'deck_id': session.deck_id,
        'deck_title': session.deck.title,
        'session_type': session.session_type,
        'cards_studied': session.cards_studied,
        'cards_correct': session.cards_correct,
        'duration_seconds': session.duration_seconds,
        'created_at': isoformat(session.created_at),
    }


def serialize_message(message):
    return {
        'id': message.pk,
        'sender_id': message.sender_id,
        'receiver_id': message.receiver_id,
        'content': message.content,
        'message_type': message.message_type,
        'deck_data': message.deck_data,
        'image_url': message.image_url,
        'is_edited': message.is_edited,
        'is_read': message.is_read,
        'created_at': isoformat(message.created_at),
    }


def serialize_announcement(announcement):
    return {
        'id': announcement.pk,
        'title': announcement.title,
        'content': announcement.content,
        'kind': announcement.kind,
        'is_active': announcement.is_active,
        'created_by': announcement.created_by.username if announcement.created_by else None,
        'created_at': isoformat(announcement.created_at),
        'expires_at': isoformat(announcement.expires_at),
    }


def serialize_stage(stage):
    return stage.as_dict() if stage else None


def decks_with_counts(owner, now=None):
    """The owner's decks annotated with card and due counts."""
    if now is None:
        now = timezone.now()
    due = Q(cards__next_review__isnull=True) | Q(cards__next_review__lte=now)
    return Deck.objects.filter(owner=owner).annotate(
        card_count=Count('cards', distinct=True),
        due_count=Count('cards', filter=due, distinct=True),
    ).prefetch_related('tags')


def garden_info(profile, streak):
    """Stage details for a streak, with the owner override applied for display."""
    stage_index = garden.garden_stage(streak)
    shown = garden.display_stage(streak, profile.stage_override, can_override=profile.is_owner)
    upcoming = garden.next_stage(streak)
    return {
        'stage': stage_index,
        'display_stage': shown,
        'stage_info': serialize_stage(garden.GARDEN_STAGES[shown]),
        'next_stage': serialize_stage(upcoming),
        'days_to_next_stage': upcoming.min_days - streak if upcoming else None,
    }
