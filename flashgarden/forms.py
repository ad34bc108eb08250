import re
import zoneinfo

from django import forms
from django.contrib.auth.models import User

from .garden import GARDEN_THEMES, MAX_STAGE
from .models import Announcement, Card, Deck, DirectMessage, Folder, StudySession, Tag, UserProfile

USERNAME_RE = re.compile(r'^[A-Za-z0-9_]{2,30}$')
MIN_PASSWORD_LENGTH = 6


def validate_username(value, exclude_user=None):
    """Check format and case-insensitive uniqueness of a username."""
    if not USERNAME_RE.match(value):
        raise forms.ValidationError(
            'Username must be 2-30 characters: letters, numbers and underscores only.'
        )
    taken = User.objects.filter(username__iexact=value)
    if exclude_user is not None:
        taken = taken.exclude(pk=exclude_user.pk)
    if taken.exists():
        raise forms.ValidationError('Username already taken.')
    return value


class RegisterForm(forms.Form):
    """User registration form."""
    username = forms.CharField(max_length=30)
    email = forms.EmailField()
    password = forms.CharField(min_length=MIN_PASSWORD_LENGTH)

    def clean_username(self):
        return validate_username(self.cleaned_data['username'].strip())

    def clean_email(self):
        email = self.cleaned_data['email'].strip().lower()
        if User.objects.filter(email__iexact=email).exists():
            raise forms.ValidationError('Email already registered.')
        return email


class LoginForm(forms.Form):
    """Login with a username or an email address."""
    username = forms.CharField()
    password = forms.CharField()


class ProfileForm(forms.Form):
    """Partial profile update; only submitted fields are applied."""
    username = forms.CharField(max_length=30, required=False)
    bio = forms.CharField(max_length=500, required=False)
    avatar = forms.CharField(max_length=200, required=False)
    user_timezone = forms.CharField(max_length=64, required=False)

    def __init__(self, *args, user=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.user = user

    def clean_username(self):
        username = self.cleaned_data['username'].strip()
        if not username:
            return username
        return validate_username(username, exclude_user=self.user)

    def clean_user_timezone(self):
        name = self.cleaned_data['user_timezone'].strip()
        if not name:
            return name
        try:
            zoneinfo.ZoneInfo(name)
        except (zoneinfo.ZoneInfoNotFoundError, ValueError):
            raise forms.ValidationError(f'Unknown timezone: {name}')
        return name


class AdminUserForm(forms.Form):
    """Admin edit of another account; blank fields are left unchanged."""
    username = forms.CharField(max_length=30, required=False)
    email = forms.EmailField(required=False)
    bio = forms.CharField(max_length=500, required=False)

    def __init__(self, *args, user=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.user = user

    def clean_username(self):
        username = self.cleaned_data['username'].strip()
        if not username:
            return username
        return validate_username(username, exclude_user=self.user)

    def clean_email(self):
        email = self.cleaned_data['email'].strip().lower()
        if email and User.objects.filter(email__iexact=email).exclude(pk=self.user.pk).exists():
            raise forms.ValidationError('Email already registered.')
        return email


class PasswordChangeForm(forms.Form):
    current_password = forms.CharField()
    new_password = forms.CharField(min_length=MIN_PASSWORD_LENGTH)

    def __init__(self, *args, user=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.user = user

    def clean_current_password(self):
        password = self.cleaned_data['current_password']
        if not self.user.check_password(password):
            raise forms.ValidationError('Current password is incorrect.')
        return password


class FolderForm(forms.ModelForm):
    """Form for creating and editing folders."""

    class Meta:
        model = Folder
        fields = ['name', 'color', 'icon']

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        # Omitted values fall back to the model defaults
        self.fields['color'].required = False
        self.fields['icon'].required = False


class TagForm(forms.ModelForm):
    """Form for creating tags. Names are unique per owner."""

    class Meta:
        model = Tag
        fields = ['name', 'color']

    def __init__(self, *args, owner=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.owner = owner

    def clean_name(self):
        name = self.cleaned_data['name'].strip()
        if Tag.objects.filter(owner=self.owner, name__iexact=name).exists():
            raise forms.ValidationError('Tag already exists.')
        return name


class DeckForm(forms.ModelForm):
    """Form for creating and editing decks, limited to the owner's folders and tags."""
    folder = forms.ModelChoiceField(queryset=Folder.objects.none(), required=False)
    tags = forms.ModelMultipleChoiceField(queryset=Tag.objects.none(), required=False)

    class Meta:
        model = Deck
        fields = ['title', 'description', 'folder', 'tags']

    def __init__(self, *args, owner=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields['folder'].queryset = Folder.objects.filter(owner=owner)
        self.fields['tags'].queryset = Tag.objects.filter(owner=owner)

    def clean_title(self):
        title = self.cleaned_data['title'].strip()
        if not title:
            raise forms.ValidationError('Title is required.')
        return title


class CardForm(forms.ModelForm):
    """Form for creating and editing cards. Each side needs text or an image."""

    class Meta:
        model = Card
        fields = ['front', 'back', 'front_image', 'back_image']

    def clean(self):
        cleaned_data = super().clean()
        if not (cleaned_data.get('front') or cleaned_data.get('front_image')):
            self.add_error('front', 'Front text or image is required.')
        if not (cleaned_data.get('back') or cleaned_data.get('back_image')):
            self.add_error('back', 'Back text or image is required.')
        return cleaned_data


class StudySessionForm(forms.ModelForm):
    deck = forms.ModelChoiceField(queryset=Deck.objects.none())

    class Meta:
        model = StudySession
        fields = ['deck', 'session_type', 'cards_studied', 'cards_correct', 'duration_seconds']

    def __init__(self, *args, owner=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields['deck'].queryset = Deck.objects.filter(owner=owner)
        for name in ('session_type', 'cards_studied', 'cards_correct', 'duration_seconds'):
            self.fields[name].required = False

    def clean(self):
        cleaned_data = super().clean()
        studied = cleaned_data.get('cards_studied') or 0
        correct = cleaned_data.get('cards_correct') or 0
        if correct > studied:
            self.add_error('cards_correct', 'Cannot have more correct cards than cards studied.')
        return cleaned_data


class MessageForm(forms.Form):
    """A direct message. Deck and image messages need their payload."""
    receiver_id = forms.IntegerField()
    content = forms.CharField(max_length=5000, required=False)
    message_type = forms.ChoiceField(choices=DirectMessage.MessageType.choices, required=False)
    deck_id = forms.IntegerField(required=False)
    image_url = forms.CharField(max_length=500, required=False)

    def clean(self):
        cleaned_data = super().clean()
        message_type = cleaned_data.get('message_type') or DirectMessage.MessageType.TEXT
        cleaned_data['message_type'] = message_type

        if message_type == DirectMessage.MessageType.TEXT and not cleaned_data.get('content', '').strip():
            self.add_error('content', 'Message content is required.')
        elif message_type == DirectMessage.MessageType.DECK and not cleaned_data.get('deck_id'):
            self.add_error('deck_id', 'A deck is required for deck messages.')
        elif message_type == DirectMessage.MessageType.IMAGE and not cleaned_data.get('image_url'):
            self.add_error('image_url', 'An image is required for image messages.')
        return cleaned_data


class MessageEditForm(forms.Form):
    content = forms.CharField(max_length=5000)


class GardenForm(forms.Form):
    garden_theme = forms.ChoiceField(choices=[(t, t) for t in GARDEN_THEMES], required=False)
    stage_override = forms.IntegerField(min_value=0, max_value=MAX_STAGE, required=False)


class AnnouncementForm(forms.ModelForm):
    """Form for site-wide announcements."""

    class Meta:
        model = Announcement
        fields = ['title', 'content', 'kind', 'is_active', 'expires_at']

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields['kind'].required = False


class RoleForm(forms.Form):
    role = forms.ChoiceField(choices=[
        (UserProfile.Role.USER, 'User'),
        (UserProfile.Role.ADMIN, 'Admin'),
    ])
