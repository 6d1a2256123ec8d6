from .base import *  # noqa: F401,F403
from .base import env

DEBUG = False

SECRET_KEY = env.str('SECRET_KEY')  # required, no default

ALLOWED_HOSTS = env.list('ALLOWED_HOSTS')

# required in production
SUPABASE_URL = env.str('SUPABASE_URL')
SUPABASE_ANON_KEY = env.str('SUPABASE_ANON_KEY')

CHANGEWATCH_POLL_INTERVAL = env.float('CHANGEWATCH_POLL_INTERVAL', 10.0)
