from django.apps import AppConfig


class ChangewatchConfig(AppConfig):
    name = 'changewatch'
    verbose_name = 'Change watching'
