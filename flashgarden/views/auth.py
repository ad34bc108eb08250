"""Authentication and account views."""

import logging

from django.contrib.auth import authenticate, login, logout, update_session_auth_hash
from django.contrib.auth.models import User
from django.db import transaction
from django.http import JsonResponse
from django.middleware.csrf import get_token
from django.views.decorators.csrf import ensure_csrf_cookie
from django.views.decorators.http import require_http_methods, require_POST

from .. import srs
from ..forms import LoginForm, PasswordChangeForm, ProfileForm, RegisterForm
from ..models import Card, Deck, Folder, StudySession, Tag
from .helpers import (
    api_login_required,
    form_error_response,
    get_or_create_profile,
    invalid_json,
    json_error,
    parse_json_body,
    parse_timestamp,
    serialize_profile,
)

logger = logging.getLogger(__name__)


@ensure_csrf_cookie
@require_http_methods(['GET'])
def csrf_token(request):
    """
    Hand out the CSRF cookie.

    Clients call this before their first write and send the token back in
    the X-CSRFToken header. Logging in rotates the token, so read the
    cookie again afterwards.
    """
    return JsonResponse({'csrf_token': get_token(request)})


@require_POST
def register(request):
    """Create an account and sign it in."""
    data = parse_json_body(request)
    if data is None:
        return invalid_json()

    form = RegisterForm(data)
    if not form.is_valid():
        return form_error_response(form)

    with transaction.atomic():
        user = User.objects.create_user(
            username=form.cleaned_data['username'],
            email=form.cleaned_data['email'],
            password=form.cleaned_data['password'],
        )
        profile = get_or_create_profile(user)
        Tag.create_presets(user)
    login(request, user)
    logger.info("Registered user %s", user.username)
    return JsonResponse({'user': serialize_profile(profile)}, status=201)


@require_POST
def login_view(request):
    """Sign in with a username or email address."""
    data = parse_json_body(request)
    if data is None:
        return invalid_json()

    form = LoginForm(data)
    if not form.is_valid():
        return form_error_response(form)

    identifier = form.cleaned_data['username'].strip()
    username = identifier
    if '@' in identifier:
        match = User.objects.filter(email__iexact=identifier).first()
        if match:
            username = match.username
    else:
        match = User.objects.filter(username__iexact=identifier).first()
        if match:
            username = match.username

    user = authenticate(request, username=username, password=form.cleaned_data['password'])
    if user is None:
        logger.warning("Failed login for %s", identifier)
        return json_error('Invalid credentials', status=401)

    login(request, user)
    return JsonResponse({'user': serialize_profile(get_or_create_profile(user))})


@require_POST
def logout_view(request):
    logout(request)
    return JsonResponse({'success': True})


@api_login_required
@require_http_methods(['GET'])
def me(request):
    return JsonResponse({'user': serialize_profile(get_or_create_profile(request.user))})


@api_login_required
@require_http_methods(['PUT'])
def profile_update(request):
    """Update username, bio, avatar or timezone; omitted fields are left alone."""
    data = parse_json_body(request)
    if data is None:
        return invalid_json()

    form = ProfileForm(data, user=request.user)
    if not form.is_valid():
        return form_error_response(form)

    user = request.user
    profile = get_or_create_profile(user)

    if form.cleaned_data['username']:
        user.username = form.cleaned_data['username']
        user.save(update_fields=['username'])
    for field in ('bio', 'avatar'):
        if field in data:
            setattr(profile, field, form.cleaned_data[field])
    if form.cleaned_data['user_timezone']:
        profile.user_timezone = form.cleaned_data['user_timezone']
    profile.save()

    return JsonResponse({'user': serialize_profile(profile)})


@api_login_required
@require_http_methods(['PUT'])
def password_change(request):
    data = parse_json_body(request)
    if data is None:
        return invalid_json()

    form = PasswordChangeForm(data, user=request.user)
    if not form.is_valid():
        return form_error_response(form)

    request.user.set_password(form.cleaned_data['new_password'])
    request.user.save()
    # Keep the current session signed in
    update_session_auth_hash(request, request.user)
    logger.info("Password changed for %s", request.user.username)
    return JsonResponse({'success': True})


@api_login_required
@require_http_methods(['DELETE'])
def account_delete(request):
    """Delete the account and everything it owns. Requires the password."""
    data = parse_json_body(request)
    if data is None:
        return invalid_json()

    password = data.get('password') or ''
    if not request.user.check_password(password):
        logger.warning("Account deletion refused for %s: wrong password", request.user.username)
        return json_error('Password is incorrect', status=403)

    user = request.user
    username = user.username
    logout(request)
    user.delete()
    logger.info("Deleted account %s", username)
    return JsonResponse({'success': True})


def _as_list(value):
    return value if isinstance(value, list) else []


def _as_text(value, default=''):
    return value if isinstance(value, str) else default


def _guest_key(value):
    """A guest-side id usable as a lookup key, or None for missing or malformed ids."""
    if isinstance(value, bool) or not isinstance(value, (int, str)) or value == '':
        return None
    return value


def _as_int(value, default=0):
    try:
        return max(0, int(value))
    except (TypeError, ValueError):
        return default


@api_login_required
@require_POST
def migrate_guest_data(request):
    """
    Import the data a guest built up offline into this account.

    Guest ids are local to the device, so every record is re-created and
    references are remapped. Preset tags and tags whose name the account
    already has are skipped, and anything pointing at a skipped or unknown
    parent is dropped. Records without a usable id are imported but can't
    be referenced.
    """
    data = parse_json_body(request)
    if data is None:
        return invalid_json()

    user = request.user
    folder_ids = {}
    tag_ids = {}
    deck_ids = {}
    imported = dict.fromkeys(('folders', 'tags', 'decks', 'cards', 'study_sessions'), 0)

    with transaction.atomic():
        for item in _as_list(data.get('folders')):
            if not isinstance(item, dict) or not _as_text(item.get('name')):
                continue
            folder = Folder.objects.create(
                owner=user,
                name=item['name'][:100],
                color=_as_text(item.get('color')) or '#6366f1',
                icon=_as_text(item.get('icon')) or 'folder',
            )
            imported['folders'] += 1
            key = _guest_key(item.get('id'))
            if key is not None:
                folder_ids[key] = folder

        existing_names = {name.lower() for name in user.tags.values_list('name', flat=True)}
        for item in _as_list(data.get('tags')):
            if not isinstance(item, dict) or item.get('is_preset') or not _as_text(item.get('name')):
                continue
            name = item['name'][:50]
            if name.lower() in existing_names:
                continue
            tag = Tag.objects.create(owner=user, name=name, color=_as_text(item.get('color')))
            existing_names.add(name.lower())
            imported['tags'] += 1
            key = _guest_key(item.get('id'))
            if key is not None:
                tag_ids[key] = tag

        for item in _as_list(data.get('decks')):
            if not isinstance(item, dict) or not _as_text(item.get('title')):
                continue
            deck = Deck.objects.create(
                owner=user,
                title=item['title'][:200],
                description=_as_text(item.get('description')),
                folder=folder_ids.get(_guest_key(item.get('folder_id'))),
                last_studied=parse_timestamp(item.get('last_studied')),
            )
            imported['decks'] += 1
            key = _guest_key(item.get('id'))
            if key is not None:
                deck_ids[key] = deck

        cards = []
        for item in _as_list(data.get('cards')):
            if not isinstance(item, dict):
                continue
            deck = deck_ids.get(_guest_key(item.get('deck_id')))
            if deck is None:
                continue
            cards.append(Card(
                deck=deck,
                front=_as_text(item.get('front')),
                back=_as_text(item.get('back')),
                front_image=_as_text(item.get('front_image')),
                back_image=_as_text(item.get('back_image')),
                position=_as_int(item.get('position')),
                difficulty=srs.clamp_difficulty(item.get('difficulty')),
                times_reviewed=_as_int(item.get('times_reviewed')),
                times_correct=_as_int(item.get('times_correct')),
                last_reviewed=parse_timestamp(item.get('last_reviewed')),
                next_review=parse_timestamp(item.get('next_review')),
            ))
        imported['cards'] = len(Card.objects.bulk_create(cards))

        for item in _as_list(data.get('deck_tags')):
            if not isinstance(item, dict):
                continue
            deck = deck_ids.get(_guest_key(item.get('deck_id')))
            tag = tag_ids.get(_guest_key(item.get('tag_id')))
            if deck is not None and tag is not None:
                deck.tags.add(tag)

        sessions = []
        for item in _as_list(data.get('study_sessions')):
            if not isinstance(item, dict):
                continue
            deck = deck_ids.get(_guest_key(item.get('deck_id')))
            if deck is None:
                continue
            session_type = _as_text(item.get('session_type'))
            if session_type not in StudySession.SessionType.values:
                session_type = StudySession.SessionType.STUDY
            session = StudySession(
                deck=deck,
                session_type=session_type,
                cards_studied=_as_int(item.get('cards_studied')),
                cards_correct=_as_int(item.get('cards_correct')),
                duration_seconds=_as_int(item.get('duration_seconds')),
            )
            created_at = parse_timestamp(item.get('created_at'))
            if created_at is not None:
                session.created_at = created_at
            sessions.append(session)
        imported['study_sessions'] = len(StudySession.objects.bulk_create(sessions))

    logger.info("Migrated guest data for %s: %s", user.username, imported)
    return JsonResponse({'message': 'Guest data migrated successfully', 'imported': imported})
