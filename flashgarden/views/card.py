"""Card CRUD views."""

from django.db import transaction
from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.http import require_http_methods, require_POST

from ..forms import CardForm
from ..models import Card, Deck
from .helpers import (
    api_login_required,
    form_error_response,
    invalid_json,
    json_error,
    parse_json_body,
    serialize_card,
    without_nulls,
)

CARD_FIELDS = ('front', 'back', 'front_image', 'back_image')


@api_login_required
@require_POST
def card_create(request, deck_pk):
    """Add a card to the end of a deck."""
    deck = get_object_or_404(Deck, pk=deck_pk, owner=request.user)

    data = parse_json_body(request)
    if data is None:
        return invalid_json()

    form = CardForm(without_nulls(data))
    if not form.is_valid():
        return form_error_response(form)

    card = form.save(commit=False)
    card.deck = deck
    card.position = deck.next_position()
    card.save()
    return JsonResponse({'card': serialize_card(card)}, status=201)


@api_login_required
@require_http_methods(['PUT', 'DELETE'])
def card_detail(request, pk):
    """Edit or delete a card. Editing never touches its review state."""
    card = get_object_or_404(Card, pk=pk, deck__owner=request.user)

    if request.method == 'DELETE':
        card.delete()
        return JsonResponse({'success': True})

    data = parse_json_body(request)
    if data is None:
        return invalid_json()

    current = {field: getattr(card, field) for field in CARD_FIELDS}
    current.update({key: value for key, value in without_nulls(data).items() if key in CARD_FIELDS})
    form = CardForm(current, instance=card)
    if not form.is_valid():
        return form_error_response(form)

    form.save()
    return JsonResponse({'card': serialize_card(card)})


@api_login_required
@require_http_methods(['PUT'])
def card_reorder(request, deck_pk):
    """Rewrite card positions to follow the submitted id order."""
    deck = get_object_or_404(Deck, pk=deck_pk, owner=request.user)

    data = parse_json_body(request)
    if data is None:
        return invalid_json()

    card_ids = data.get('card_ids')
    if not isinstance(card_ids, list):
        return json_error('card_ids must be a list')

    cards = {card.pk: card for card in deck.cards.all()}
    try:
        ordered = [cards[int(card_id)] for card_id in card_ids]
    except (KeyError, TypeError, ValueError):
        return json_error('card_ids must only contain cards from this deck')
    if len(set(map(id, ordered))) != len(ordered) or len(ordered) != len(cards):
        return json_error('card_ids must list every card in this deck exactly once')

    with transaction.atomic():
        for position, card in enumerate(ordered):
            card.position = position
        Card.objects.bulk_update(ordered, ['position'])

    return JsonResponse({'cards': [serialize_card(card) for card in deck.cards.all()]})
