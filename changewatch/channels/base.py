from abc import ABC, abstractmethod
from typing import Callable

from changewatch.resources import ChangeNotification

Listener = Callable[[ChangeNotification], None]


class Subscription:
    def __init__(self, channel, resource_name: str, listener: Listener):
        self.channel = channel
        self.resource_name = resource_name
        self.listener = listener
        self.active = True

    def unsubscribe(self):
        if not self.active:
            return
        self.active = False
        self.channel.unsubscribe(self)

    def __repr__(self):
        state = 'active' if self.active else 'closed'
        return f"<Subscription {self.resource_name} ({state})>"


class BaseChannel(ABC):
    @abstractmethod
    def subscribe(self, resource_name: str, listener: Listener) -> Subscription:
        """Call ``listener`` with a ChangeNotification whenever a row of ``resource_name`` changes."""

    @abstractmethod
    def unsubscribe(self, subscription: Subscription):
        """Detach a subscription. Use ``Subscription.unsubscribe()`` rather than calling this directly."""

    async def close(self):
        """Release any connection held by the channel."""
