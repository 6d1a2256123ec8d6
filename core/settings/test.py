from .base import *  # noqa: F401,F403

SUPABASE_URL = 'https://test-project.supabase.co'
SUPABASE_ANON_KEY = 'test-anon-key'

CHANGEWATCH_POLL_INTERVAL = 5.0
CHANGEWATCH_FETCH_TIMEOUT = 5.0
CHANGEWATCH_PUSH_DEBOUNCE = 0.1
CHANGEWATCH_TRIGGER_DEBOUNCE = 1.0
CHANGEWATCH_TRIGGER_MAX_WAIT = 5.0
CHANGEWATCH_CHANNEL_CLASS = 'changewatch.channels.local_channel.LocalChannel'
