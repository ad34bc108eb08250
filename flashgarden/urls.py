from django.urls import path
from . import views

urlpatterns = [
    # Authentication & account
    path('auth/csrf/', views.csrf_token, name='csrf_token'),
    path('auth/register/', views.register, name='register'),
    path('auth/login/', views.login_view, name='login'),
    path('auth/logout/', views.logout_view, name='logout'),
    path('auth/me/', views.me, name='me'),
    path('auth/profile/', views.profile_update, name='profile_update'),
    path('auth/password/', views.password_change, name='password_change'),
    path('auth/account/', views.account_delete, name='account_delete'),
    path('auth/migrate-guest-data/', views.migrate_guest_data, name='migrate_guest_data'),

    # Folders & tags
    path('folders/', views.folder_list, name='folder_list'),
    path('folders/<int:pk>/', views.folder_detail, name='folder_detail'),
    path('tags/', views.tag_list, name='tag_list'),
    path('tags/<int:pk>/', views.tag_delete, name='tag_delete'),

    # Decks
    path('decks/', views.deck_list, name='deck_list'),
    path('decks/import/', views.deck_import, name='deck_import'),
    path('decks/<int:pk>/', views.deck_detail, name='deck_detail'),
    path('decks/<int:pk>/move/', views.deck_move, name='deck_move'),
    path('decks/<int:pk>/duplicate/', views.deck_duplicate, name='deck_duplicate'),
    path('decks/<int:pk>/export/', views.deck_export, name='deck_export'),
    path('decks/<int:pk>/reset/', views.deck_reset, name='deck_reset'),
    path('decks/<int:deck_pk>/due/', views.deck_due, name='deck_due'),
    path('decks/<int:deck_pk>/stats/', views.deck_stats, name='deck_stats'),

    # Cards
    path('decks/<int:deck_pk>/cards/', views.card_create, name='card_create'),
    path('decks/<int:deck_pk>/cards/reorder/', views.card_reorder, name='card_reorder'),
    path('cards/<int:pk>/', views.card_detail, name='card_detail'),

    # Review & study
    path('cards/<int:pk>/review/', views.review_card, name='review_card'),
    path('study-sessions/', views.study_sessions, name='study_sessions'),

    # Streak & garden
    path('streak/', views.streak_view, name='streak'),
    path('garden/', views.garden_settings, name='garden'),
    path('garden/stages/', views.garden_stages, name='garden_stages'),

    # Social
    path('users/search/', views.user_search, name='user_search'),
    path('users/<int:pk>/', views.user_profile, name='user_profile'),
    path('friends/', views.friend_list, name='friend_list'),
    path('friends/request/', views.friend_request, name='friend_request'),
    path('friends/accept/', views.friend_accept, name='friend_accept'),
    path('friends/<int:user_id>/', views.friend_remove, name='friend_remove'),

    # Direct messages
    path('messages/', views.send_message, name='send_message'),
    path('messages/conversations/', views.conversations, name='conversations'),
    path('messages/unread-count/', views.unread_count, name='unread_count'),
    path('messages/with/<int:user_id>/', views.thread, name='thread'),
    path('messages/<int:pk>/', views.message_detail, name='message_detail'),
    path('messages/<int:pk>/accept-deck/', views.accept_deck, name='accept_deck'),

    # Announcements
    path('announcements/', views.announcement_list, name='announcement_list'),
    path('announcements/<int:pk>/dismiss/', views.announcement_dismiss, name='announcement_dismiss'),

    # Administration
    path('admin/users/', views.user_list, name='admin_user_list'),
    path('admin/users/<int:pk>/', views.user_detail, name='admin_user_detail'),
    path('admin/stats/', views.admin_stats, name='admin_stats'),
    path('admin/users/<int:pk>/role/', views.user_role, name='admin_user_role'),
    path('admin/announcements/', views.announcement_admin_list, name='admin_announcement_list'),
    path('admin/announcements/<int:pk>/', views.announcement_admin_detail, name='admin_announcement_detail'),

    # Health check
    path('health/', views.health_check, name='health_check'),
]
