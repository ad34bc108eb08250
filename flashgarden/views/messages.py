"""Direct messages and deck sharing."""

import logging

from django.contrib.auth.models import User
from django.db import transaction
from django.db.models import Count, Q
from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.http import require_http_methods, require_POST

from ..forms import MessageEditForm, MessageForm
from ..models import Deck, DirectMessage
from .helpers import (
    api_login_required,
    form_error_response,
    invalid_json,
    isoformat,
    json_error,
    parse_json_body,
    parse_limit,
    parse_timestamp,
    serialize_deck,
    serialize_message,
    serialize_user,
)

logger = logging.getLogger(__name__)

THREAD_LIMIT = 50


def unread_counts(user):
    """Unread message count per sender for messages sent to user."""
    rows = DirectMessage.objects.filter(receiver=user, is_read=False).values('sender').annotate(
        count=Count('pk')
    )
    return {row['sender']: row['count'] for row in rows}


@api_login_required
@require_http_methods(['GET'])
def conversations(request):
    """One entry per conversation partner, most recent conversation first."""
    user = request.user
    unread = unread_counts(user)
    latest = {}
    messages = DirectMessage.objects.filter(
        Q(sender=user) | Q(receiver=user)
    ).select_related('sender', 'receiver').order_by('-created_at', '-pk')
    for message in messages:
        other = message.receiver if message.sender_id == user.pk else message.sender
        if other.pk not in latest:
            latest[other.pk] = (other, message)

    result = []
    for other, message in latest.values():
        data = serialize_user(other)
        data.update({
            'last_message': message.content,
            'last_message_type': message.message_type,
            'last_message_at': isoformat(message.created_at),
            'is_own_message': message.sender_id == user.pk,
            'unread_count': unread.get(other.pk, 0),
        })
        result.append(data)
    return JsonResponse({'conversations': result})


@api_login_required
@require_http_methods(['GET'])
def unread_count(request):
    count = DirectMessage.objects.filter(receiver=request.user, is_read=False).count()
    return JsonResponse({'count': count})


@api_login_required
@require_http_methods(['GET'])
def thread(request, user_id):
    """
    Messages exchanged with another user, oldest first.

    ``limit`` caps the page size and ``before`` (an ISO timestamp) pages
    backwards. Reading a thread marks the other user's messages as read.
    """
    other = get_object_or_404(User, pk=user_id)
    messages = DirectMessage.thread(request.user, other)

    before = request.GET.get('before')
    if before:
        before_at = parse_timestamp(before)
        if before_at is None:
            return json_error('Invalid "before" timestamp')
        messages = messages.filter(created_at__lt=before_at)

    limit = parse_limit(request.GET.get('limit'), default=THREAD_LIMIT)
    page = list(messages.order_by('-created_at', '-pk')[:limit])
    page.reverse()

    DirectMessage.objects.filter(sender=other, receiver=request.user, is_read=False).update(is_read=True)

    return JsonResponse({
        'user': serialize_user(other),
        'messages': [
            dict(serialize_message(message), is_mine=message.sender_id == request.user.pk)
            for message in page
        ],
    })


@api_login_required
@require_POST
def send_message(request):
    data = parse_json_body(request)
    if data is None:
        return invalid_json()

    form = MessageForm(data)
    if not form.is_valid():
        return form_error_response(form)

    receiver = get_object_or_404(User, pk=form.cleaned_data['receiver_id'])
    if receiver.pk == request.user.pk:
        return json_error('Cannot message yourself')

    message = DirectMessage(
        sender=request.user,
        receiver=receiver,
        content=form.cleaned_data['content'],
        message_type=form.cleaned_data['message_type'],
        image_url=form.cleaned_data['image_url'],
    )
    if message.message_type == DirectMessage.MessageType.DECK:
        deck = get_object_or_404(Deck, pk=form.cleaned_data['deck_id'], owner=request.user)
        # Snapshot so the message still reads sensibly if the deck changes
        message.deck_data = {
            'id': deck.pk,
            'title': deck.title,
            'card_count': deck.cards.count(),
        }
    message.save()
    return JsonResponse({'message': dict(serialize_message(message), is_mine=True)}, status=201)


@api_login_required
@require_http_methods(['PUT', 'DELETE'])
def message_detail(request, pk):
    """Edit or delete one of your own messages."""
    message = get_object_or_404(DirectMessage, pk=pk, sender=request.user)

    if request.method == 'DELETE':
        message.delete()
        return JsonResponse({'success': True})

    data = parse_json_body(request)
    if data is None:
        return invalid_json()

    form = MessageEditForm(data)
    if not form.is_valid():
        return form_error_response(form)

    message.content = form.cleaned_data['content']
    message.is_edited = True
    message.save(update_fields=['content', 'is_edited'])
    return JsonResponse({'message': dict(serialize_message(message), is_mine=True)})


@api_login_required
@require_POST
def accept_deck(request, pk):
    """Copy a deck shared in a message into the receiver's library, once."""
    with transaction.atomic():
        message = get_object_or_404(
            DirectMessage.objects.select_for_update(), pk=pk, receiver=request.user
        )
        if message.message_type != DirectMessage.MessageType.DECK:
            return json_error('Not a deck message')

        deck_data = message.deck_data or {}
        if not deck_data.get('id'):
            return json_error('Invalid deck data in message')
        if deck_data.get('accepted_deck_id'):
            return json_error('Deck already accepted')

        original = Deck.objects.filter(pk=deck_data['id']).first()
        if original is None:
            return json_error('Original deck no longer exists', status=404)

        deck = original.copy_to(request.user)
        message.deck_data = dict(deck_data, accepted_deck_id=deck.pk)
        message.save(update_fields=['deck_data'])

    logger.info("%s accepted shared deck %s as %s", request.user.username, original.pk, deck.pk)
    return JsonResponse({'deck': serialize_deck(deck), 'message_id': message.pk}, status=201)
