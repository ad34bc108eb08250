"""Review views."""

import logging

from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.utils import timezone
from django.views.decorators.http import require_http_methods

from .. import srs
from ..models import Card, Deck
from .helpers import (
    api_login_required,
    invalid_json,
    json_error,
    parse_json_body,
    serialize_card,
)

logger = logging.getLogger(__name__)


@api_login_required
@require_http_methods(['GET'])
def deck_due(request, deck_pk):
    """Cards due now: never-scheduled cards first, then oldest due date first."""
    deck = get_object_or_404(Deck, pk=deck_pk, owner=request.user)
    now = timezone.now()
    cards = srs.get_cards_due(deck.cards.filter(deck.due_cards_filter(now)), now)
    return JsonResponse({
        'deck_id': deck.pk,
        'due_count': len(cards),
        'cards': [serialize_card(card) for card in cards],
    })


@api_login_required
@require_http_methods(['PUT', 'POST'])
def review_card(request, pk):
    """Submit a review for a card."""
    card = get_object_or_404(Card, pk=pk, deck__owner=request.user)

    data = parse_json_body(request)
    if data is None:
        return invalid_json()

    correct = data.get('correct')
    if not isinstance(correct, bool):
        return json_error('"correct" must be true or false')

    log = card.review(correct)
    logger.info(
        "Card %s reviewed by %s: correct=%s difficulty %s -> %s",
        card.pk, request.user.username, correct, log.difficulty_before, log.difficulty_after
    )

    return JsonResponse({
        'card': serialize_card(card),
        'interval': log.interval_after,
    })
