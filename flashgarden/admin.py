from django.contrib import admin
from .models import (
    Announcement,
    Card,
    Deck,
    DirectMessage,
    Folder,
    Friendship,
    ReviewLog,
    StudyDay,
    StudySession,
    Tag,
    UserProfile,
)


class CardInline(admin.TabularInline):
    model = Card
    extra = 1
    fields = ['position', 'front', 'back', 'difficulty', 'next_review']
    readonly_fields = ['difficulty', 'next_review']


@admin.register(Deck)
class DeckAdmin(admin.ModelAdmin):
    list_display = ['title', 'owner', 'folder', 'card_count', 'cards_due_count', 'last_studied', 'created_at']
    list_filter = ['owner', 'created_at']
    search_fields = ['title', 'description']
    inlines = [CardInline]

    def card_count(self, obj):
        return obj.cards.count()
    card_count.short_description = 'Cards'


@admin.register(Card)
class CardAdmin(admin.ModelAdmin):
    list_display = ['front_preview', 'deck', 'difficulty', 'times_reviewed', 'times_correct', 'next_review']
    list_filter = ['deck', 'difficulty', 'next_review']
    search_fields = ['front', 'back']
    readonly_fields = ['difficulty', 'times_reviewed', 'times_correct', 'last_reviewed', 'next_review']

    def front_preview(self, obj):
        return obj.front[:50] + '...' if len(obj.front) > 50 else obj.front
    front_preview.short_description = 'Front'


@admin.register(ReviewLog)
class ReviewLogAdmin(admin.ModelAdmin):
    list_display = ['card', 'was_correct', 'difficulty_before', 'difficulty_after', 'interval_after', 'reviewed_at']
    list_filter = ['was_correct', 'reviewed_at']
    readonly_fields = ['card', 'was_correct', 'difficulty_before', 'difficulty_after',
                       'interval_after', 'reviewed_at']


@admin.register(StudySession)
class StudySessionAdmin(admin.ModelAdmin):
    list_display = ['deck', 'session_type', 'cards_studied', 'cards_correct', 'duration_seconds', 'created_at']
    list_filter = ['session_type', 'created_at']


@admin.register(StudyDay)
class StudyDayAdmin(admin.ModelAdmin):
    list_display = ['user', 'date', 'created_at']
    list_filter = ['date']
    search_fields = ['user__username']


@admin.register(UserProfile)
class UserProfileAdmin(admin.ModelAdmin):
    list_display = ['user', 'role', 'share_code', 'current_streak', 'longest_streak', 'garden_theme']
    list_filter = ['role', 'garden_theme']
    search_fields = ['user__username', 'share_code']
    # Derived from StudyDay rows; see refresh_streak()
    readonly_fields = ['current_streak', 'longest_streak']


@admin.register(Folder)
class FolderAdmin(admin.ModelAdmin):
    list_display = ['name', 'owner', 'color', 'created_at']


@admin.register(Tag)
class TagAdmin(admin.ModelAdmin):
    list_display = ['name', 'owner', 'color', 'is_preset']
    list_filter = ['is_preset']


@admin.register(Friendship)
class FriendshipAdmin(admin.ModelAdmin):
    list_display = ['requester', 'addressee', 'status', 'created_at']
    list_filter = ['status']


@admin.register(DirectMessage)
class DirectMessageAdmin(admin.ModelAdmin):
    list_display = ['sender', 'receiver', 'message_type', 'is_read', 'is_edited', 'created_at']
    list_filter = ['message_type', 'is_read']


@admin.register(Announcement)
class AnnouncementAdmin(admin.ModelAdmin):
    list_display = ['title', 'kind', 'is_active', 'created_by', 'created_at', 'expires_at']
    list_filter = ['kind', 'is_active']
    filter_horizontal = ['dismissed_by']
