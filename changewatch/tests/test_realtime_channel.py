import asyncio
from unittest.mock import AsyncMock, MagicMock, Mock, patch

from django.test import SimpleTestCase

from changewatch.channels.realtime_channel import RealtimeChannel, realtime_url
from changewatch.dispatcher import SyncDispatcher
from changewatch.resources import ChangeNotification
from changewatch.tests.fakes import FakeStore
from changewatch.watcher import ChangeWatcher

CLIENT_PATH = 'changewatch.channels.realtime_channel.AsyncRealtimeClient'


def _mock_client():
    client = MagicMock()
    client.connect = AsyncMock()
    client.remove_channel = AsyncMock()
    client.close = AsyncMock()

    remote_channels = {}

    def make_channel(topic):
        remote = MagicMock()
        remote.subscribe = AsyncMock()
        remote_channels[topic] = remote
        return remote

    client.channel.side_effect = make_channel
    client.remote_channels = remote_channels
    return client


def _callback(remote):
    return remote.on_postgres_changes.call_args.kwargs['callback']


class TestRealtimeUrl(SimpleTestCase):
    def test_https_becomes_wss(self):
        self.assertEqual(
            realtime_url('https://test-project.supabase.co/'),
            'wss://test-project.supabase.co/realtime/v1',
        )

    def test_http_becomes_ws(self):
        self.assertEqual(realtime_url('http://localhost:54321'), 'ws://localhost:54321/realtime/v1')


class TestRealtimeChannel(SimpleTestCase):
    async def test_one_backend_channel_per_table(self):
        client = _mock_client()
        with patch(CLIENT_PATH, return_value=client) as client_class:
            channel = RealtimeChannel()
            channel.subscribe('sales', Mock())
            channel.subscribe('sales', Mock())
            channel.subscribe('products', Mock())
            await asyncio.sleep(0.05)

        client_class.assert_called_once_with('wss://test-project.supabase.co/realtime/v1', 'test-anon-key')
        client.connect.assert_awaited_once()
        self.assertEqual(sorted(client.remote_channels), ['products_changes', 'sales_changes'])
        sales = client.remote_channels['sales_changes']
        self.assertEqual(sales.on_postgres_changes.call_args.args, ('*',))
        self.assertEqual(sales.on_postgres_changes.call_args.kwargs['table'], 'sales')
        self.assertEqual(sales.on_postgres_changes.call_args.kwargs['schema'], 'public')
        sales.subscribe.assert_awaited_once()

    async def test_backend_change_reaches_listeners(self):
        client = _mock_client()
        listener = Mock()
        with patch(CLIENT_PATH, return_value=client):
            channel = RealtimeChannel()
            channel.subscribe('sales', listener)
            await asyncio.sleep(0.05)

        _callback(client.remote_channels['sales_changes'])({
            'data': {'table': 'sales', 'type': 'UPDATE', 'record': {'id': 7}},
            'ids': [1],
        })

        listener.assert_called_once_with(ChangeNotification('sales'))

    async def test_last_unsubscribe_removes_backend_channel(self):
        client = _mock_client()
        with patch(CLIENT_PATH, return_value=client):
            channel = RealtimeChannel()
            first = channel.subscribe('sales', Mock())
            second = channel.subscribe('sales', Mock())
            await asyncio.sleep(0.05)

            first.unsubscribe()
            await asyncio.sleep(0.05)
            client.remove_channel.assert_not_awaited()

            second.unsubscribe()
            await asyncio.sleep(0.05)

        client.remove_channel.assert_awaited_once_with(client.remote_channels['sales_changes'])

    async def test_connection_failure_keeps_local_delivery(self):
        client = _mock_client()
        client.connect.side_effect = OSError("connection refused")
        listener = Mock()

        with patch(CLIENT_PATH, return_value=client):
            channel = RealtimeChannel()
            with self.assertLogs('changewatch.channels.realtime_channel', level='WARNING') as logs:
                channel.subscribe('sales', listener)
                await asyncio.sleep(0.05)

        self.assertIn("connection refused", logs.output[0])
        self.assertEqual(channel.publish('sales'), 1)
        listener.assert_called_once()

    async def test_close_disconnects(self):
        client = _mock_client()
        with patch(CLIENT_PATH, return_value=client):
            channel = RealtimeChannel()
            channel.subscribe('sales', Mock())
            await asyncio.sleep(0.05)
            await channel.close()

        client.close.assert_awaited_once()

    async def test_not_configured_stays_in_process(self):
        with patch(CLIENT_PATH) as client_class:
            channel = RealtimeChannel(base_url='', api_key='')
            channel.subscribe('sales', Mock())
            await asyncio.sleep(0.02)
            await channel.close()

        client_class.assert_not_called()

    def test_subscribe_without_event_loop(self):
        with patch(CLIENT_PATH) as client_class:
            channel = RealtimeChannel()
            with self.assertLogs('changewatch.channels.realtime_channel', level='WARNING'):
                channel.subscribe('sales', Mock())

        client_class.assert_not_called()
        self.assertEqual(channel.subscriber_count('sales'), 1)


class TestWatcherOverRealtime(SimpleTestCase):
    async def test_backend_push_fires_on_change(self):
        client = _mock_client()
        on_change = Mock(return_value=None)
        store = FakeStore({'sales': 'T1', 'products': 'P1'})

        with patch(CLIENT_PATH, return_value=client):
            channel = RealtimeChannel()
            watcher = ChangeWatcher(['sales', 'products'], on_change, 60, store=store, channel=channel,
                                    dispatcher=SyncDispatcher(), push_debounce=0.02)
            with await watcher.start():
                await asyncio.sleep(0.05)
                callback = _callback(client.remote_channels['products_changes'])
                for _ in range(3):
                    callback({'data': {'table': 'products', 'type': 'INSERT'}})
                await asyncio.sleep(0.1)
            await asyncio.sleep(0.05)
            await channel.close()

        on_change.assert_called_once_with()
        self.assertEqual(client.remove_channel.await_count, 2)
