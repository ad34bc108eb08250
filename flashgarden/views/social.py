"""User search and friendship views."""

import logging

from django.contrib.auth.models import User
from django.db.models import Q
from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.http import require_http_methods, require_POST

from ..models import Friendship
from .helpers import (
    api_login_required,
    get_or_create_profile,
    invalid_json,
    isoformat,
    json_error,
    parse_id,
    parse_json_body,
    serialize_user,
    streak_fields,
)

logger = logging.getLogger(__name__)

MIN_QUERY_LENGTH = 2
MAX_SEARCH_RESULTS = 20


def friendship_fields(friendship, user):
    if friendship is None:
        return {'friendship_status': None, 'friendship_direction': None}
    return {
        'friendship_status': friendship.status,
        'friendship_direction': 'outgoing' if friendship.requester_id == user.pk else 'incoming',
    }


def target_user_id(data):
    return parse_id(data.get('user_id'))


@api_login_required
@require_http_methods(['GET'])
def user_search(request):
    """Find users by username substring or exact share code."""
    query = request.GET.get('q', '').strip()
    if len(query) < MIN_QUERY_LENGTH:
        return JsonResponse({'users': []})

    users = User.objects.filter(
        Q(username__icontains=query) | Q(profile__share_code__iexact=query)
    ).exclude(pk=request.user.pk).order_by('username')[:MAX_SEARCH_RESULTS]
    return JsonResponse({'users': [serialize_user(user) for user in users]})


@api_login_required
@require_http_methods(['GET'])
def user_profile(request, pk):
    """Public profile of another user."""
    user = get_object_or_404(User, pk=pk)
    profile = get_or_create_profile(user)

    data = serialize_user(user)
    data.update({
        'created_at': isoformat(profile.created_at),
        'deck_count': user.decks.count(),
    })
    data.update(streak_fields(profile))
    data.update(friendship_fields(Friendship.between(request.user, user), request.user))
    return JsonResponse({'user': data})


@api_login_required
@require_http_methods(['GET'])
def friend_list(request):
    """Accepted friends plus pending requests in both directions."""
    friends = []
    for friendship in Friendship.involving(request.user):
        other = friendship.other_user(request.user)
        data = serialize_user(other)
        data.update({
            'status': friendship.status,
            'is_outgoing': friendship.requester_id == request.user.pk,
            'created_at': isoformat(friendship.created_at),
        })
        friends.append(data)
    return JsonResponse({'friends': friends})


@api_login_required
@require_POST
def friend_request(request):
    data = parse_json_body(request)
    if data is None:
        return invalid_json()

    user_id = target_user_id(data)
    if user_id is None:
        return json_error('User ID is required')
    if user_id == request.user.pk:
        return json_error('Cannot friend yourself')

    target = get_object_or_404(User, pk=user_id)
    existing = Friendship.between(request.user, target)
    if existing is not None:
        if existing.status == Friendship.Status.ACCEPTED:
            return json_error('Already friends')
        return json_error('Friend request already pending')

    Friendship.objects.create(requester=request.user, addressee=target)
    logger.info("Friend request %s -> %s", request.user.username, target.username)
    return JsonResponse({'message': 'Friend request sent', 'username': target.username}, status=201)


@api_login_required
@require_POST
def friend_accept(request):
    """Accept a pending request the given user sent to the current user."""
    data = parse_json_body(request)
    if data is None:
        return invalid_json()

    user_id = target_user_id(data)
    if user_id is None:
        return json_error('User ID is required')

    friendship = Friendship.objects.filter(
        requester_id=user_id,
        addressee=request.user,
        status=Friendship.Status.PENDING,
    ).first()
    if friendship is None:
        return json_error('No pending request found', status=404)

    friendship.status = Friendship.Status.ACCEPTED
    friendship.save(update_fields=['status'])
    return JsonResponse({'message': 'Friend request accepted'})


@api_login_required
@require_http_methods(['DELETE'])
def friend_remove(request, user_id):
    """Remove a friend, or decline or cancel a pending request."""
    Friendship.objects.filter(
        Q(requester=request.user, addressee_id=user_id) |
        Q(requester_id=user_id, addressee=request.user)
    ).delete()
    return JsonResponse({'message': 'Friend removed'})
