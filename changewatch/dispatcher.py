import asyncio
import logging
import time

from django.conf import settings

from changewatch.debounce import Debouncer
from changewatch.resources import SyncEvent

logger = logging.getLogger(__name__)

TRIGGER_DEBOUNCE = getattr(settings, 'CHANGEWATCH_TRIGGER_DEBOUNCE', 1.0)
TRIGGER_MAX_WAIT = getattr(settings, 'CHANGEWATCH_TRIGGER_MAX_WAIT', 5.0)


class SyncDispatcher:
    """Fans a manual "re-check now" request out to every registered watcher.

    Bursts of ``trigger_sync()`` calls are collapsed: listeners hear one
    SyncEvent, ``debounce`` seconds after the last call of the burst, or
    ``max_wait`` seconds after its first call if the burst never settles.
    """

    def __init__(self, debounce=None, max_wait=None):
        self.debounce = TRIGGER_DEBOUNCE if debounce is None else debounce
        self.max_wait = TRIGGER_MAX_WAIT if max_wait is None else max_wait
        self.last_event = None
        self._listeners = []
        self._loop = None
        self._debouncer = None
        self._pending_event = None

    @property
    def listener_count(self):
        return len(self._listeners)

    def register(self, listener):
        """Add ``listener(event)``; returns a callable that removes it again.

        Must be called from a running event loop. The dispatcher delivers on
        the loop of its first registration.
        """
        loop = asyncio.get_running_loop()
        if self._loop is not loop and (not self._listeners or self._loop.is_closed()):
            self._bind(loop)
        self._listeners.append(listener)

        def unregister():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unregister

    def _bind(self, loop):
        if self._debouncer is not None:
            self._debouncer.cancel()
        self._loop = loop
        self._debouncer = Debouncer(self._deliver, self.debounce, loop=loop, max_wait=self.max_wait)

    def trigger_sync(self):
        if not self._listeners:
            logger.debug("Manual sync requested with no active watchers")
            return None

        event = SyncEvent(timestamp=int(time.time() * 1000))
        self._pending_event = event
        self._debouncer.call_threadsafe()
        return event

    def _deliver(self):
        event, self._pending_event = self._pending_event, None
        if event is None:
            return
        self.last_event = event

        listeners = list(self._listeners)
        logger.info("Manual sync: re-checking %d watcher(s)", len(listeners))
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                logger.exception("Sync listener %r failed", listener)


_dispatcher = None


def get_dispatcher() -> SyncDispatcher:
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = SyncDispatcher()
    return _dispatcher


def trigger_sync():
    """Ask every running watcher in this process to re-check its resources now."""
    return get_dispatcher().trigger_sync()
