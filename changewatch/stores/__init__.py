from django.conf import settings
from django.utils.module_loading import import_string

from .base import BaseStore


def get_store() -> BaseStore:
    """Build the store named by ``CHANGEWATCH_STORE_CLASS``."""
    store_class = import_string(settings.CHANGEWATCH_STORE_CLASS)
    return store_class()
