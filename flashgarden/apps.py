from django.apps import AppConfig


class FlashgardenConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'flashgarden'
    verbose_name = 'Flashgarden'
