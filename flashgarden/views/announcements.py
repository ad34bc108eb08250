"""Site-wide announcements shown to signed-in users."""

from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.http import require_http_methods, require_POST

from ..models import Announcement
from .helpers import api_login_required, serialize_announcement


@api_login_required
@require_http_methods(['GET'])
def announcement_list(request):
    announcements = Announcement.visible_to(request.user).select_related('created_by')
    return JsonResponse({'announcements': [serialize_announcement(a) for a in announcements]})


@api_login_required
@require_POST
def announcement_dismiss(request, pk):
    announcement = get_object_or_404(Announcement, pk=pk)
    announcement.dismissed_by.add(request.user)
    return JsonResponse({'success': True})
