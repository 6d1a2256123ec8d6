import asyncio
import inspect
import logging

from django.conf import settings
from django.utils import timezone

from changewatch.channels import get_channel
from changewatch.debounce import Debouncer, running_loop
from changewatch.dispatcher import get_dispatcher
from changewatch.resources import normalize_resources
from changewatch.stores import get_store

logger = logging.getLogger(__name__)

POLL_INTERVAL = getattr(settings, 'CHANGEWATCH_POLL_INTERVAL', 5.0)
FETCH_TIMEOUT = getattr(settings, 'CHANGEWATCH_FETCH_TIMEOUT', 5.0)
PUSH_DEBOUNCE = getattr(settings, 'CHANGEWATCH_PUSH_DEBOUNCE', 0.1)

_FAILED = object()


class WatchHandle:
    """Returned by ``ChangeWatcher.start()``. ``stop()`` tears the watcher down."""

    def __init__(self, watcher):
        self.watcher = watcher

    @property
    def running(self):
        return self.watcher.running

    def stop(self):
        self.watcher._teardown()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stop()

    def __repr__(self):
        names = ', '.join(str(r) for r in self.watcher.resources)
        return f"<WatchHandle [{names}] {'running' if self.running else 'stopped'}>"


class ChangeWatcher:
    """Polls a set of resources for their newest modification marker.

    ``on_change`` (no arguments, plain or async) is called once per poll
    cycle in which at least one resource advanced, once per burst of push
    notifications, and after a manual sync that found changes.

    The first successful fetch of each resource only records a baseline;
    it never counts as a change.
    """

    def __init__(self, resources, on_change, interval=None, *, store=None, channel=None,
                 dispatcher=None, push_debounce=None, fetch_timeout=None):
        self.resources = normalize_resources(resources)
        self.on_change = on_change
        self.interval = POLL_INTERVAL if interval is None else interval
        if self.interval <= 0:
            raise ValueError("Poll interval must be positive")
        self.store = store if store is not None else get_store()
        self.channel = channel
        self.dispatcher = dispatcher
        self.push_debounce = PUSH_DEBOUNCE if push_debounce is None else push_debounce
        self.fetch_timeout = FETCH_TIMEOUT if fetch_timeout is None else fetch_timeout

        self.last_checked_at = None
        self.last_change_at = None

        self._last_seen = {}
        self._generations = {}
        self._started = False
        self._alive = False
        self._loop = None
        self._lock = asyncio.Lock()
        self._timer = None
        self._tasks = set()
        self._subscriptions = []
        self._unregister = None
        self._push_debouncer = None

    @property
    def running(self):
        return self._alive

    @property
    def last_seen(self):
        return dict(self._last_seen)

    @property
    def resource_names(self):
        return [r.name for r in self.resources]

    async def start(self) -> WatchHandle:
        if self._started:
            raise RuntimeError("Watcher was already started")
        self._started = True
        handle = WatchHandle(self)

        if not self.store.is_configured():
            logger.warning("Backend not configured - skipping auto-sync for %s",
                           ', '.join(self.resource_names))
            return handle

        self._alive = True
        self._loop = asyncio.get_running_loop()
        self._push_debouncer = Debouncer(self._push_burst_settled, self.push_debounce, loop=self._loop)
        self._subscribe()
        self._register()

        await self.check_for_updates()

        if self._alive:
            self._timer = self._loop.create_task(self._run())
        logger.debug("Watching %s every %.1fs", ', '.join(self.resource_names), self.interval)
        return handle

    async def _run(self):
        while self._alive:
            await asyncio.sleep(self.interval)
            await self.check_for_updates()

    def _subscribe(self):
        if self.channel is None:
            self.channel = get_channel()
        for resource in self.resources:
            try:
                self._subscriptions.append(self.channel.subscribe(resource.name, self._on_notification))
            except Exception as exc:
                logger.warning("Failed to subscribe to %s changes: %s", resource.name, exc)

    def _register(self):
        if self.dispatcher is None:
            self.dispatcher = get_dispatcher()
        try:
            self._unregister = self.dispatcher.register(self._on_sync_event)
        except Exception as exc:
            logger.warning("Failed to register for manual sync: %s", exc)

    async def check_for_updates(self):
        """Run one poll step. Returns the names of resources that changed."""
        if not self._alive:
            return []

        async with self._lock:
            if not self._alive:
                return []
            try:
                changed = await self._poll()
            except Exception:
                logger.exception("Error checking for updates")
                return []

        if changed and self._alive:
            logger.info("Data changed in %s", ', '.join(changed))
            self.last_change_at = timezone.now()
            await self._invoke_on_change()
        elif self._alive:
            logger.debug("No changes in %s", ', '.join(self.resource_names))
        return changed

    async def _poll(self):
        try:
            reachable = await self._call_store(self.store.is_reachable)
        except asyncio.TimeoutError:
            reachable = False
        if not reachable:
            logger.warning("Backend unreachable - skipping auto-sync")
            return []

        changed = []
        for resource in self.resources:
            generation = self._generations.get(resource.name, 0)
            value = await self._fetch(resource)
            if not self._alive:
                return []
            if value is _FAILED:
                continue
            if self._generations.get(resource.name, 0) != generation:
                # a pushed marker landed while this fetch was in flight
                logger.debug("Discarding stale poll result for %s", resource.name)
                continue
            if self._record(resource.name, value):
                changed.append(resource.name)

        self.last_checked_at = timezone.now()
        return changed

    async def _call_store(self, method, *args):
        return await asyncio.wait_for(asyncio.to_thread(method, *args), self.fetch_timeout)

    async def _fetch(self, resource):
        try:
            return await self._call_store(self.store.latest_timestamp, resource)
        except asyncio.TimeoutError:
            logger.warning("Timeout checking updates for %s - skipping", resource.name)
        except Exception as exc:
            logger.warning("Error checking updates for %s: %s", resource.name, exc)
        return _FAILED

    def _record(self, name, value):
        if name not in self._last_seen:
            self._last_seen[name] = value
            logger.debug("Baseline for %s: %s", name, value)
            return False
        if value is None or value == self._last_seen[name]:
            return False
        self._last_seen[name] = value
        return True

    def _on_notification(self, notification):
        if not self._alive:
            return
        if running_loop() is not self._loop:
            self._loop.call_soon_threadsafe(self._on_notification, notification)
            return

        logger.debug("Real-time update in %s", notification.resource)
        if notification.timestamp is not None and notification.resource in self.resource_names:
            self._last_seen[notification.resource] = notification.timestamp
            self._generations[notification.resource] = self._generations.get(notification.resource, 0) + 1
        self._push_debouncer.call()

    async def _push_burst_settled(self):
        if not self._alive:
            return
        self.last_change_at = timezone.now()
        await self._invoke_on_change()

    def _on_sync_event(self, event):
        if not self._alive:
            return
        if running_loop() is not self._loop:
            self._loop.call_soon_threadsafe(self._on_sync_event, event)
            return

        task = self._loop.create_task(self.check_for_updates())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _invoke_on_change(self):
        if not self._alive:
            return
        try:
            result = self.on_change()
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Change callback %r failed", self.on_change)

    def _teardown(self):
        if not self._alive:
            return
        self._alive = False

        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()
        if self._push_debouncer is not None:
            self._push_debouncer.cancel()

        for subscription in self._subscriptions:
            try:
                subscription.unsubscribe()
            except Exception as exc:
                logger.warning("Error cleaning up subscription %r: %s", subscription, exc)
        self._subscriptions = []

        if self._unregister is not None:
            self._unregister()
            self._unregister = None

        self._last_seen.clear()
        self._generations.clear()
        logger.debug("Stopped watching %s", ', '.join(self.resource_names))


async def watch(resources, on_change, interval=None, **kwargs) -> WatchHandle:
    """Build a ChangeWatcher and start it."""
    return await ChangeWatcher(resources, on_change, interval, **kwargs).start()
