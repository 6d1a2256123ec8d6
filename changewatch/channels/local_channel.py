import logging
import threading
from collections import defaultdict

from changewatch.resources import ChangeNotification

from .base import BaseChannel, Subscription

logger = logging.getLogger(__name__)


class LocalChannel(BaseChannel):
    """In-process publish/subscribe keyed by resource name.

    Code that writes to a table calls ``publish('sales')`` after the write;
    every watcher of ``sales`` in this process hears about it.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._subscriptions = defaultdict(list)

    def subscribe(self, resource_name, listener):
        subscription = Subscription(self, resource_name, listener)
        with self._lock:
            self._subscriptions[resource_name].append(subscription)
        logger.debug("Subscribed to %s changes", resource_name)
        return subscription

    def unsubscribe(self, subscription):
        with self._lock:
            subscriptions = self._subscriptions.get(subscription.resource_name, [])
            if subscription in subscriptions:
                subscriptions.remove(subscription)
            if not subscriptions:
                self._subscriptions.pop(subscription.resource_name, None)

    def subscriber_count(self, resource_name):
        with self._lock:
            return len(self._subscriptions.get(resource_name, []))

    def publish(self, resource_name, timestamp=None):
        notification = ChangeNotification(resource=resource_name, timestamp=timestamp)
        with self._lock:
            subscriptions = list(self._subscriptions.get(resource_name, []))

        delivered = 0
        for subscription in subscriptions:
            if not subscription.active:
                continue
            try:
                subscription.listener(notification)
                delivered += 1
            except Exception:
                logger.exception("Change listener for %s failed", resource_name)
        return delivered
