"""Folder and tag views."""

from django.db.models import Count
from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.http import require_http_methods

from ..forms import FolderForm, TagForm
from ..models import Folder, Tag
from .helpers import (
    api_login_required,
    form_error_response,
    invalid_json,
    json_error,
    parse_json_body,
    serialize_folder,
    serialize_tag,
    without_nulls,
)


@api_login_required
@require_http_methods(['GET', 'POST'])
def folder_list(request):
    if request.method == 'GET':
        folders = Folder.objects.filter(owner=request.user).annotate(deck_count=Count('decks'))
        return JsonResponse({'folders': [serialize_folder(f) for f in folders]})

    data = parse_json_body(request)
    if data is None:
        return invalid_json()

    form = FolderForm(without_nulls(data))
    if not form.is_valid():
        return form_error_response(form)

    folder = form.save(commit=False)
    folder.owner = request.user
    folder.save()
    return JsonResponse({'folder': serialize_folder(folder)}, status=201)


@api_login_required
@require_http_methods(['PUT', 'DELETE'])
def folder_detail(request, pk):
    folder = get_object_or_404(Folder, pk=pk, owner=request.user)

    if request.method == 'DELETE':
        # Decks in the folder are kept and become unfiled (SET_NULL)
        folder.delete()
        return JsonResponse({'success': True})

    data = parse_json_body(request)
    if data is None:
        return invalid_json()

    current = {'name': folder.name, 'color': folder.color, 'icon': folder.icon}
    current.update(without_nulls(data))
    form = FolderForm(current, instance=folder)
    if not form.is_valid():
        return form_error_response(form)

    form.save()
    return JsonResponse({'folder': serialize_folder(folder)})


@api_login_required
@require_http_methods(['GET', 'POST'])
def tag_list(request):
    if request.method == 'GET':
        tags = Tag.objects.filter(owner=request.user)
        return JsonResponse({'tags': [serialize_tag(t) for t in tags]})

    data = parse_json_body(request)
    if data is None:
        return invalid_json()

    form = TagForm(without_nulls(data), owner=request.user)
    if not form.is_valid():
        return form_error_response(form)

    tag = form.save(commit=False)
    tag.owner = request.user
    tag.save()
    return JsonResponse({'tag': serialize_tag(tag)}, status=201)


@api_login_required
@require_http_methods(['DELETE'])
def tag_delete(request, pk):
    tag = get_object_or_404(Tag, pk=pk, owner=request.user)
    if tag.is_preset:
        return json_error('Preset tags cannot be deleted')
    tag.delete()
    return JsonResponse({'success': True})
