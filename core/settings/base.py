from pathlib import Path

from environs import Env

env = Env()
env.read_env(recurse=False)

BASE_DIR = Path(__file__).resolve().parent.parent.parent

SECRET_KEY = env.str('SECRET_KEY', 'django-insecure-0c3u!d7w8n#x4q2l9r+k6v1m$z5t^p0s8a@j7h3f&e2g1b')

DEBUG = env.bool('DEBUG', False)

ALLOWED_HOSTS = env.list('ALLOWED_HOSTS', [])

INSTALLED_APPS = [
    'changewatch',
]

LANGUAGE_CODE = 'es-mx'
TIME_ZONE = 'UTC'
USE_I18N = True
USE_TZ = True

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'simple': {
            'format': '%(asctime)s %(levelname)s %(name)s: %(message)s',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'simple',
        },
    },
    'loggers': {
        'changewatch': {
            'handlers': ['console'],
            'level': env.str('CHANGEWATCH_LOG_LEVEL', 'INFO'),
        },
    },
}

# Hosted backend (PostgREST). Leaving either value empty disables watching.
SUPABASE_URL = env.str('SUPABASE_URL', '')
SUPABASE_ANON_KEY = env.str('SUPABASE_ANON_KEY', '')

# Change watching
CHANGEWATCH_POLL_INTERVAL = env.float('CHANGEWATCH_POLL_INTERVAL', 5.0)
CHANGEWATCH_FETCH_TIMEOUT = env.float('CHANGEWATCH_FETCH_TIMEOUT', 5.0)
CHANGEWATCH_PUSH_DEBOUNCE = env.float('CHANGEWATCH_PUSH_DEBOUNCE', 0.1)
CHANGEWATCH_TRIGGER_DEBOUNCE = env.float('CHANGEWATCH_TRIGGER_DEBOUNCE', 1.0)
CHANGEWATCH_TRIGGER_MAX_WAIT = env.float('CHANGEWATCH_TRIGGER_MAX_WAIT', 5.0)
CHANGEWATCH_DEFAULT_TIMESTAMP_FIELD = env.str('CHANGEWATCH_DEFAULT_TIMESTAMP_FIELD', 'updated_at')
CHANGEWATCH_PROBE_TABLE = env.str('CHANGEWATCH_PROBE_TABLE', 'users')

# Collaborators: swap via env or override in prod.py/test.py
CHANGEWATCH_STORE_CLASS = env.str('CHANGEWATCH_STORE_CLASS', 'changewatch.stores.postgrest_store.PostgrestStore')
CHANGEWATCH_CHANNEL_CLASS = env.str('CHANGEWATCH_CHANNEL_CLASS', 'changewatch.channels.realtime_channel.RealtimeChannel')
CHANGEWATCH_REALTIME_SCHEMA = env.str('CHANGEWATCH_REALTIME_SCHEMA', 'public')

# Watch profiles: which tables each screen refreshes on, and how often (seconds)
CHANGEWATCH_PROFILES = {
    'pos': {
        'interval': 5.0,
        'resources': ['sales', 'products', 'clients'],
    },
    'pos_header': {
        'interval': 2.0,
        'resources': ['sales', {'name': 'sale_items', 'timestamp_field': 'created_at'}],
    },
    'header': {
        'interval': 15.0,
        'resources': ['products', 'sales'],
    },
    'cash_report': {
        'interval': 3.0,
        'resources': [{'name': 'cash_registers', 'timestamp_field': 'created_at'}, 'sales'],
    },
    'sales_report': {
        'interval': 3.0,
        'resources': ['sales', {'name': 'sale_items', 'timestamp_field': 'created_at'}],
    },
    'cash_movements': {
        'interval': 5.0,
        'resources': [{'name': 'cash_movements', 'timestamp_field': 'created_at'}],
    },
    'auth': {
        'interval': 10.0,
        'resources': ['users'],
    },
}
