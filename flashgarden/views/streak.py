"""Streak and garden views."""

import logging

from django.http import JsonResponse
from django.views.decorators.http import require_http_methods

from .. import garden
from ..forms import GardenForm
from .helpers import (
    api_login_required,
    form_error_response,
    garden_info,
    get_or_create_profile,
    invalid_json,
    json_error,
    parse_json_body,
)

logger = logging.getLogger(__name__)


@api_login_required
@require_http_methods(['GET'])
def streak_view(request):
    """The user's streak, recomputed from their study days."""
    profile = get_or_create_profile(request.user)
    view = profile.streak_view()
    data = view.as_dict()
    data.update(garden_info(profile, view.current_streak))
    data['past_streaks'] = [run.as_dict() for run in profile.past_streaks()]
    return JsonResponse(data)


def garden_payload(profile, streak):
    data = {
        'garden_theme': profile.garden_theme,
        'stage_override': profile.stage_override,
        'can_override': profile.is_owner,
        'current_streak': streak,
    }
    data.update(garden_info(profile, streak))
    return data


@api_login_required
@require_http_methods(['GET', 'PUT'])
def garden_settings(request):
    """
    Read or update garden customization.

    Anyone may pick a theme. Only the owner may pin the displayed stage;
    sending a null stage_override clears the pin.
    """
    profile = get_or_create_profile(request.user)

    if request.method == 'PUT':
        data = parse_json_body(request)
        if data is None:
            return invalid_json()

        form = GardenForm(data)
        if not form.is_valid():
            return form_error_response(form)

        if 'stage_override' in data:
            if not profile.is_owner:
                logger.warning("Stage override refused for %s", request.user.username)
                return json_error('Only the owner can override the garden stage', status=403)
            profile.stage_override = form.cleaned_data['stage_override']
        if form.cleaned_data['garden_theme']:
            profile.garden_theme = form.cleaned_data['garden_theme']
        profile.save(update_fields=['garden_theme', 'stage_override', 'updated_at'])

    streak = profile.streak_view().current_streak
    return JsonResponse(garden_payload(profile, streak))


@require_http_methods(['GET'])
def garden_stages(request):
    return JsonResponse({'stages': [stage.as_dict() for stage in garden.GARDEN_STAGES]})
