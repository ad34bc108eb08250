"""Administration views for the admin and owner roles."""

import logging
from datetime import timedelta

from django.contrib.auth.models import User
from django.db.models import Count
from django.db.models.functions import TruncDate
from django.forms.models import model_to_dict
from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.utils import timezone
from django.views.decorators.http import require_http_methods

from ..forms import AdminUserForm, AnnouncementForm, RoleForm
from ..models import Announcement, Card, Deck, DirectMessage, StudySession, UserProfile
from .helpers import (
    admin_required,
    form_error_response,
    get_or_create_profile,
    invalid_json,
    isoformat,
    json_error,
    owner_required,
    parse_json_body,
    serialize_announcement,
    serialize_profile,
    without_nulls,
)

logger = logging.getLogger(__name__)

ANNOUNCEMENT_FIELDS = ['title', 'content', 'kind', 'is_active', 'expires_at']
STATS_WINDOW_DAYS = 30
TOP_DECKS = 5


def can_manage(actor_profile, target_profile):
    """Admins manage regular users; admin and owner accounts need the owner."""
    return actor_profile.is_owner or not target_profile.is_admin


@admin_required
@require_http_methods(['GET'])
def user_list(request):
    users = User.objects.select_related('profile').order_by('-date_joined')
    return JsonResponse({'users': [
        dict(serialize_profile(get_or_create_profile(user)), date_joined=isoformat(user.date_joined))
        for user in users
    ]})


@admin_required
@require_http_methods(['PUT', 'DELETE'])
def user_detail(request, pk):
    """
    Edit or delete an account.

    The owner account can't be deleted, and only the owner touches admin
    accounts.
    """
    target = get_object_or_404(User, pk=pk)
    target_profile = get_or_create_profile(target)
    actor_profile = get_or_create_profile(request.user)

    if request.method == 'DELETE':
        if target.pk == request.user.pk:
            return json_error('Cannot delete your own account')
        if target_profile.is_owner:
            return json_error('Cannot delete the owner account')
        if not can_manage(actor_profile, target_profile):
            return json_error('Only the owner can delete admin accounts', status=403)

        username = target.username
        target.delete()
        logger.info("%s deleted user %s", request.user.username, username)
        return JsonResponse({'success': True})

    if target.pk != request.user.pk and not can_manage(actor_profile, target_profile):
        return json_error('Only the owner can edit admin accounts', status=403)

    data = parse_json_body(request)
    if data is None:
        return invalid_json()

    form = AdminUserForm(data, user=target)
    if not form.is_valid():
        return form_error_response(form)

    for field in ('username', 'email'):
        if form.cleaned_data[field]:
            setattr(target, field, form.cleaned_data[field])
    target.save(update_fields=['username', 'email'])
    if 'bio' in data:
        target_profile.bio = form.cleaned_data['bio']
        target_profile.save(update_fields=['bio', 'updated_at'])

    logger.info("%s edited user %s", request.user.username, target.username)
    return JsonResponse({'user': serialize_profile(target_profile)})


@admin_required
@require_http_methods(['GET'])
def admin_stats(request):
    """Site totals plus activity over the last 30 days."""
    now = timezone.now()
    since = now - timedelta(days=STATS_WINDOW_DAYS)
    recent_sessions = StudySession.objects.filter(created_at__gte=since)

    per_day = {
        row['day']: row['count']
        for row in recent_sessions.order_by().annotate(day=TruncDate('created_at'))
        .values('day').annotate(count=Count('pk'))
    }
    today = now.date()
    daily_activity = []
    for offset in range(STATS_WINDOW_DAYS - 1, -1, -1):
        day = today - timedelta(days=offset)
        daily_activity.append({'date': day.isoformat(), 'count': per_day.get(day, 0)})

    top_decks = Deck.objects.filter(study_sessions__created_at__gte=since).annotate(
        session_count=Count('study_sessions')
    ).select_related('owner').order_by('-session_count', 'title')[:TOP_DECKS]

    return JsonResponse({
        'users': User.objects.count(),
        'decks': Deck.objects.count(),
        'cards': Card.objects.count(),
        'shared_decks': DirectMessage.objects.filter(message_type=DirectMessage.MessageType.DECK).count(),
        'active_announcements': Announcement.objects.filter(is_active=True).count(),
        'recent_signups': User.objects.filter(date_joined__gte=since).count(),
        'recent_sessions': recent_sessions.count(),
        'daily_activity': daily_activity,
        'top_decks': [
            {'title': deck.title, 'creator': deck.owner.username, 'sessions': deck.session_count}
            for deck in top_decks
        ],
    })


@owner_required
@require_http_methods(['PUT'])
def user_role(request, pk):
    """Promote a user to admin or demote an admin to user."""
    target = get_object_or_404(User, pk=pk)

    data = parse_json_body(request)
    if data is None:
        return invalid_json()

    form = RoleForm(data)
    if not form.is_valid():
        return form_error_response(form)

    profile = get_or_create_profile(target)
    if target.pk == request.user.pk:
        return json_error('Cannot change your own role')
    if profile.role == UserProfile.Role.OWNER:
        return json_error("Cannot change the owner's role")

    profile.role = form.cleaned_data['role']
    profile.save(update_fields=['role', 'updated_at'])
    logger.info("%s set role of %s to %s", request.user.username, target.username, profile.role)
    return JsonResponse({'user': serialize_profile(profile)})


@admin_required
@require_http_methods(['GET', 'POST'])
def announcement_admin_list(request):
    """All announcements, including inactive and expired ones, or create one."""
    if request.method == 'GET':
        announcements = Announcement.objects.select_related('created_by')
        return JsonResponse({'announcements': [serialize_announcement(a) for a in announcements]})

    data = parse_json_body(request)
    if data is None:
        return invalid_json()

    form_data = without_nulls(data)
    form_data.setdefault('is_active', True)
    form = AnnouncementForm(form_data)
    if not form.is_valid():
        return form_error_response(form)

    announcement = form.save(commit=False)
    announcement.created_by = request.user
    announcement.save()
    logger.info("%s posted announcement %r", request.user.username, announcement.title)
    return JsonResponse({'announcement': serialize_announcement(announcement)}, status=201)


@admin_required
@require_http_methods(['PUT', 'DELETE'])
def announcement_admin_detail(request, pk):
    announcement = get_object_or_404(Announcement, pk=pk)

    if request.method == 'DELETE':
        announcement.delete()
        return JsonResponse({'success': True})

    data = parse_json_body(request)
    if data is None:
        return invalid_json()

    form_data = model_to_dict(announcement, fields=ANNOUNCEMENT_FIELDS)
    form_data.update({key: value for key, value in data.items() if key in ANNOUNCEMENT_FIELDS})
    form = AnnouncementForm(form_data, instance=announcement)
    if not form.is_valid():
        return form_error_response(form)

    form.save()
    return JsonResponse({'announcement': serialize_announcement(announcement)})
