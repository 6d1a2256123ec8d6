from django.conf import settings
from django.utils.module_loading import import_string

from .base import BaseChannel, Subscription

_channel = None


def get_channel() -> BaseChannel:
    """Process-wide change channel, built from ``CHANGEWATCH_CHANNEL_CLASS`` on first use."""
    global _channel
    if _channel is None:
        _channel = import_string(settings.CHANGEWATCH_CHANNEL_CLASS)()
    return _channel


def notify_change(resource_name, timestamp=None):
    """Announce that ``resource_name`` was written. Returns the number of listeners reached."""
    channel = get_channel()
    publish = getattr(channel, 'publish', None)
    if publish is None:
        return 0
    return publish(resource_name, timestamp=timestamp)


__all__ = ['BaseChannel', 'Subscription', 'get_channel', 'notify_change']
