"""Deck CRUD views."""

import json
import logging

from django.db import transaction
from django.http import HttpResponse, JsonResponse
from django.shortcuts import get_object_or_404
from django.utils import timezone
from django.views.decorators.http import require_http_methods, require_POST

from ..forms import DeckForm
from ..models import Card, Deck, Folder, ReviewLog
from .helpers import (
    api_login_required,
    decks_with_counts,
    form_error_response,
    invalid_json,
    json_error,
    parse_id,
    parse_json_body,
    serialize_deck,
)

logger = logging.getLogger(__name__)


def deck_form_data(data, deck=None):
    """Map the JSON body onto DeckForm fields, keeping current values for omitted keys."""
    if deck is not None:
        form_data = {
            'title': deck.title,
            'description': deck.description,
            'folder': deck.folder_id,
            'tags': list(deck.tags.values_list('pk', flat=True)),
        }
    else:
        form_data = {'tags': []}
    for key in ('title', 'description'):
        if key in data:
            form_data[key] = data[key] if data[key] is not None else ''
    if 'folder_id' in data:
        form_data['folder'] = data['folder_id']
    if 'tag_ids' in data:
        form_data['tags'] = data['tag_ids'] or []
    return form_data


def unique_title(owner, title):
    """Append " (n)" to a title the owner already uses."""
    if not Deck.objects.filter(owner=owner, title=title).exists():
        return title
    counter = 1
    while Deck.objects.filter(owner=owner, title=f"{title} ({counter})").exists():
        counter += 1
    return f"{title} ({counter})"


@api_login_required
@require_http_methods(['GET', 'POST'])
def deck_list(request):
    """List the user's decks or create a new one."""
    if request.method == 'GET':
        decks = decks_with_counts(request.user)
        folder_id = request.GET.get('folder_id')
        if folder_id == 'none':
            decks = decks.filter(folder__isnull=True)
        elif folder_id:
            if parse_id(folder_id) is None:
                return json_error('Invalid folder_id')
            decks = decks.filter(folder_id=parse_id(folder_id))
        return JsonResponse({'decks': [serialize_deck(deck) for deck in decks]})

    data = parse_json_body(request)
    if data is None:
        return invalid_json()

    form = DeckForm(deck_form_data(data), owner=request.user)
    if not form.is_valid():
        return form_error_response(form)

    deck = form.save(commit=False)
    deck.owner = request.user
    deck.save()
    form.save_m2m()
    return JsonResponse({'deck': serialize_deck(deck)}, status=201)


@api_login_required
@require_http_methods(['GET', 'PUT', 'DELETE'])
def deck_detail(request, pk):
    """View, update or delete a deck."""
    deck = get_object_or_404(Deck, pk=pk, owner=request.user)

    if request.method == 'GET':
        return JsonResponse({'deck': serialize_deck(deck, include_cards=True)})

    if request.method == 'DELETE':
        deck.delete()
        return JsonResponse({'success': True})

    data = parse_json_body(request)
    if data is None:
        return invalid_json()

    form = DeckForm(deck_form_data(data, deck), instance=deck, owner=request.user)
    if not form.is_valid():
        return form_error_response(form)

    deck = form.save()
    return JsonResponse({'deck': serialize_deck(deck)})


@api_login_required
@require_http_methods(['PUT'])
def deck_move(request, pk):
    """Move a deck into a folder, or out of any folder with a null folder_id."""
    deck = get_object_or_404(Deck, pk=pk, owner=request.user)

    data = parse_json_body(request)
    if data is None:
        return invalid_json()

    folder_id = data.get('folder_id')
    if folder_id is None:
        deck.folder = None
    elif parse_id(folder_id) is None:
        return json_error('Invalid folder_id')
    else:
        deck.folder = get_object_or_404(Folder, pk=parse_id(folder_id), owner=request.user)
    deck.save(update_fields=['folder', 'updated_at'])
    return JsonResponse({'deck': serialize_deck(deck)})


@api_login_required
@require_POST
def deck_duplicate(request, pk):
    """Copy a deck and its cards; the copy starts with fresh review state."""
    deck = get_object_or_404(Deck, pk=pk, owner=request.user)
    copy = deck.copy_to(request.user, title=unique_title(request.user, f"{deck.title} (Copy)"))
    return JsonResponse({'deck': serialize_deck(copy)}, status=201)


@api_login_required
@require_http_methods(['GET'])
def deck_export(request, pk):
    """Export a deck as JSON file."""
    deck = get_object_or_404(Deck, pk=pk, owner=request.user)

    export_data = {
        'title': deck.title,
        'description': deck.description,
        'exported_at': timezone.now().isoformat(),
        'cards': [
            {
                'front': card.front,
                'back': card.back,
                'front_image': card.front_image,
                'back_image': card.back_image,
            }
            for card in deck.cards.all()
        ]
    }

    response = HttpResponse(
        json.dumps(export_data, indent=2, ensure_ascii=False),
        content_type='application/json'
    )
    # Sanitize filename
    safe_name = "".join(c for c in deck.title if c.isalnum() or c in (' ', '-', '_')).strip()
    response['Content-Disposition'] = f'attachment; filename="{safe_name or "deck"}.json"'
    return response


def read_import_payload(request):
    """The deck document from an uploaded file or the JSON body, or None."""
    uploaded_file = request.FILES.get('deck_file')
    if uploaded_file is None:
        return parse_json_body(request)
    try:
        data = json.loads(uploaded_file.read().decode('utf-8'))
    except (UnicodeDecodeError, json.JSONDecodeError):
        return None
    return data if isinstance(data, dict) else None


@api_login_required
@require_POST
def deck_import(request):
    """Import a deck from an exported JSON document."""
    data = read_import_payload(request)
    if data is None:
        return json_error('Invalid JSON file')

    # Exports from older clients used "name" for the title
    title = data.get('title') or data.get('name')
    if not isinstance(title, str) or not title.strip():
        return json_error('Invalid deck file: missing "title" field')

    cards_data = data.get('cards')
    if not isinstance(cards_data, list):
        return json_error('Invalid deck file: missing or invalid "cards" field')

    with transaction.atomic():
        deck = Deck.objects.create(
            title=unique_title(request.user, title.strip()[:200]),
            description=data.get('description') or '',
            owner=request.user
        )
        cards = []
        for card_data in cards_data:
            if not isinstance(card_data, dict):
                continue
            front = card_data.get('front') or ''
            front_image = card_data.get('front_image') or ''
            if not (front or front_image):
                continue  # Skip invalid cards
            cards.append(Card(
                deck=deck,
                front=front,
                back=card_data.get('back') or '',
                front_image=front_image,
                back_image=card_data.get('back_image') or '',
                position=len(cards),
            ))
        Card.objects.bulk_create(cards)

    logger.info("Imported deck %r with %s cards for %s", deck.title, len(cards), request.user.username)
    return JsonResponse({
        'deck': serialize_deck(deck),
        'cards_imported': len(cards),
    }, status=201)


@api_login_required
@require_POST
def deck_reset(request, pk):
    """Reset all cards in a deck to their initial state."""
    deck = get_object_or_404(Deck, pk=pk, owner=request.user)

    data = parse_json_body(request)
    if data is None:
        return invalid_json()

    # Verify deck title matches for confirmation
    confirm_title = str(data.get('confirm_title') or '').strip()
    if confirm_title != deck.title:
        return json_error('Deck title does not match')

    with transaction.atomic():
        card_count = deck.cards.update(
            difficulty=0,
            times_reviewed=0,
            times_correct=0,
            last_reviewed=None,
            next_review=None,
        )
        ReviewLog.objects.filter(card__deck=deck).delete()

    logger.info("Reset %s cards in deck %s", card_count, deck.pk)
    return JsonResponse({
        'success': True,
        'message': f'Reset {card_count} cards in "{deck.title}"',
        'card_count': card_count
    })
