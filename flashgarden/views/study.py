"""Study session recording and deck statistics."""

import logging

from django.db import transaction
from django.db.models import Count, Sum
from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.utils import timezone
from django.views.decorators.http import require_http_methods

from .. import srs
from ..forms import StudySessionForm
from ..models import Deck, ReviewLog, StudySession
from .helpers import (
    api_login_required,
    form_error_response,
    garden_info,
    get_or_create_profile,
    invalid_json,
    json_error,
    parse_id,
    parse_json_body,
    parse_limit,
    serialize_session,
    without_nulls,
)

logger = logging.getLogger(__name__)

RECENT_SESSIONS = 10


@api_login_required
@require_http_methods(['GET', 'POST'])
def study_sessions(request):
    """
    List recent sessions, or record a finished one.

    Recording a session stamps the deck as studied and marks today as a
    study day, which is what keeps the streak alive.
    """
    if request.method == 'GET':
        sessions = StudySession.objects.filter(deck__owner=request.user).select_related('deck')
        deck_id = request.GET.get('deck_id')
        if deck_id:
            if parse_id(deck_id) is None:
                return json_error('Invalid deck_id')
            sessions = sessions.filter(deck_id=parse_id(deck_id))
        limit = parse_limit(request.GET.get('limit'))
        return JsonResponse({'sessions': [serialize_session(s) for s in sessions[:limit]]})

    data = parse_json_body(request)
    if data is None:
        return invalid_json()

    form_data = without_nulls(data)
    if 'deck_id' in form_data:
        form_data['deck'] = form_data.pop('deck_id')
    form = StudySessionForm(form_data, owner=request.user)
    if not form.is_valid():
        return form_error_response(form)

    now = timezone.now()
    profile = get_or_create_profile(request.user)
    with transaction.atomic():
        session = form.save(commit=False)
        session.created_at = now
        session.save()

        deck = session.deck
        deck.last_studied = now
        deck.save(update_fields=['last_studied', 'updated_at'])

        streak = profile.record_study_day(now)

    response = streak.as_dict()
    response.update(garden_info(profile, streak.current_streak))
    return JsonResponse({
        'session': serialize_session(session),
        'streak': response,
    }, status=201)


@api_login_required
@require_http_methods(['GET'])
def deck_stats(request, deck_pk):
    """Totals, accuracy and card mastery for one deck."""
    deck = get_object_or_404(Deck, pk=deck_pk, owner=request.user)

    totals = deck.study_sessions.aggregate(
        session_count=Count('pk'),
        cards_studied=Sum('cards_studied'),
        cards_correct=Sum('cards_correct'),
        total_seconds=Sum('duration_seconds'),
    )
    cards_studied = totals['cards_studied'] or 0
    cards_correct = totals['cards_correct'] or 0
    accuracy = round(cards_correct * 100 / cards_studied) if cards_studied else 0

    mastery = {level: 0 for level in srs.MASTERY_LEVELS}
    for times_reviewed, times_correct in deck.cards.values_list('times_reviewed', 'times_correct'):
        mastery[srs.mastery_level(times_reviewed, times_correct)] += 1

    recent = deck.study_sessions.select_related('deck')[:RECENT_SESSIONS]

    return JsonResponse({
        'deck_id': deck.pk,
        'card_count': sum(mastery.values()),
        'due_count': deck.cards_due_count(),
        'session_count': totals['session_count'],
        'cards_studied': cards_studied,
        'cards_correct': cards_correct,
        'accuracy': accuracy,
        'total_seconds': totals['total_seconds'] or 0,
        'review_count': ReviewLog.objects.filter(card__deck=deck).count(),
        'mastery': mastery,
        'recent_sessions': [serialize_session(s) for s in recent],
    })
