"""Views package for the flashgarden app."""

from .auth import (
    csrf_token,
    register,
    login_view,
    logout_view,
    me,
    profile_update,
    password_change,
    account_delete,
    migrate_guest_data,
)
from .library import folder_list, folder_detail, tag_list, tag_delete
from .deck import (
    deck_list,
    deck_detail,
    deck_move,
    deck_duplicate,
    deck_export,
    deck_import,
    deck_reset,
)
from .card import card_create, card_detail, card_reorder
from .review import deck_due, review_card
from .study import study_sessions, deck_stats
from .streak import streak_view, garden_settings, garden_stages
from .social import (
    user_search,
    user_profile,
    friend_list,
    friend_request,
    friend_accept,
    friend_remove,
)
from .messages import (
    conversations,
    unread_count,
    thread,
    send_message,
    message_detail,
    accept_deck,
)
from .announcements import announcement_list, announcement_dismiss
from .staff import (
    user_list,
    user_detail,
    admin_stats,
    user_role,
    announcement_admin_list,
    announcement_admin_detail,
)
from .health import health_check

__all__ = [
    # Auth
    'csrf_token',
    'register',
    'login_view',
    'logout_view',
    'me',
    'profile_update',
    'password_change',
    'account_delete',
    'migrate_guest_data',
    # Library
    'folder_list',
    'folder_detail',
    'tag_list',
    'tag_delete',
    # Deck
    'deck_list',
    'deck_detail',
    'deck_move',
    'deck_duplicate',
    'deck_export',
    'deck_import',
    'deck_reset',
    # Card
    'card_create',
    'card_detail',
    'card_reorder',
    # Review & study
    'deck_due',
    'review_card',
    'study_sessions',
    'deck_stats',
    # Streak & garden
    'streak_view',
    'garden_settings',
    'garden_stages',
    # Social
    'user_search',
    'user_profile',
    'friend_list',
    'friend_request',
    'friend_accept',
    'friend_remove',
    # Messages
    'conversations',
    'unread_count',
    'thread',
    'send_message',
    'message_detail',
    'accept_deck',
    # Announcements
    'announcement_list',
    'announcement_dismiss',
    # Administration
    'user_list',
    'user_detail',
    'admin_stats',
    'user_role',
    'announcement_admin_list',
    'announcement_admin_detail',
    # Health
    'health_check',
]
