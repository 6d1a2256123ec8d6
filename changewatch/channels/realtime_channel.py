import asyncio
import logging

from django.conf import settings
from realtime import AsyncRealtimeClient

from changewatch.debounce import running_loop

from .local_channel import LocalChannel

logger = logging.getLogger(__name__)

SUPABASE_URL = getattr(settings, 'SUPABASE_URL', '')
SUPABASE_ANON_KEY = getattr(settings, 'SUPABASE_ANON_KEY', '')
REALTIME_SCHEMA = getattr(settings, 'CHANGEWATCH_REALTIME_SCHEMA', 'public')


def realtime_url(base_url):
    base_url = base_url.rstrip('/')
    if base_url.startswith('https://'):
        base_url = 'wss://' + base_url[len('https://'):]
    elif base_url.startswith('http://'):
        base_url = 'ws://' + base_url[len('http://'):]
    return f"{base_url}/realtime/v1"


class RealtimeChannel(LocalChannel):
    """LocalChannel that also relays row changes pushed by the hosted backend.

    A backend channel is opened for a table with its first subscriber and
    removed with its last one. Subscribing must happen on a running event
    loop for the backend feed to be attached; in-process ``publish()`` works
    regardless.
    """

    def __init__(self, base_url=None, api_key=None, schema=None):
        super().__init__()
        self.base_url = SUPABASE_URL if base_url is None else base_url
        self.api_key = SUPABASE_ANON_KEY if api_key is None else api_key
        self.schema = schema or REALTIME_SCHEMA
        self._client = None
        self._connect_lock = None
        self._loop = None
        self._remote = {}
        self._tasks = set()

    def is_configured(self):
        return bool(self.base_url and self.api_key)

    def subscribe(self, resource_name, listener):
        subscription = super().subscribe(resource_name, listener)
        if not self.is_configured() or resource_name in self._remote:
            return subscription

        loop = running_loop()
        if loop is None:
            logger.warning("No event loop running - %s changes are only relayed in-process", resource_name)
            return subscription

        self._loop = loop
        self._remote[resource_name] = self._spawn(self._open(resource_name))
        return subscription

    def unsubscribe(self, subscription):
        super().unsubscribe(subscription)
        name = subscription.resource_name
        if self.subscriber_count(name) or name not in self._remote:
            return

        opening = self._remote.pop(name)
        removal = self._remove(name, opening)
        if running_loop() is self._loop:
            self._spawn(removal)
        elif not self._loop.is_closed():
            asyncio.run_coroutine_threadsafe(removal, self._loop)
        else:
            removal.close()

    def _spawn(self, coro):
        task = self._loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _connect(self):
        if self._connect_lock is None:
            self._connect_lock = asyncio.Lock()
        async with self._connect_lock:
            if self._client is None:
                client = AsyncRealtimeClient(realtime_url(self.base_url), self.api_key)
                await client.connect()
                self._client = client
        return self._client

    async def _open(self, table):
        try:
            client = await self._connect()
            channel = client.channel(f"{table}_changes")
            channel.on_postgres_changes(
                '*',
                schema=self.schema,
                table=table,
                callback=lambda payload: self._relay(table, payload),
            )
            await channel.subscribe()
        except Exception as exc:
            logger.warning("Failed to subscribe to %s changes: %s", table, exc)
            return None

        logger.debug("Listening for backend changes in %s", table)
        return channel

    def _relay(self, table, payload):
        data = payload.get('data') if isinstance(payload, dict) else None
        kind = data.get('type') if isinstance(data, dict) else None
        logger.debug("Real-time update in %s (%s)", table, kind or 'change')
        self.publish(table)

    async def _remove(self, table, opening):
        channel = await opening
        if channel is None or self._client is None:
            return
        try:
            await self._client.remove_channel(channel)
        except Exception as exc:
            logger.warning("Error cleaning up %s subscription: %s", table, exc)

    async def close(self):
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        self._remote.clear()

        client, self._client = self._client, None
        if client is None:
            return
        try:
            await client.close()
        except Exception as exc:
            logger.warning("Error closing realtime connection: %s", exc)
