import logging

import requests
from django.conf import settings

from changewatch.exceptions import NotConfigured, StoreError
from changewatch.resources import WatchedResource

from .base import BaseStore

logger = logging.getLogger(__name__)

SUPABASE_URL = getattr(settings, 'SUPABASE_URL', '')
SUPABASE_ANON_KEY = getattr(settings, 'SUPABASE_ANON_KEY', '')
FETCH_TIMEOUT = getattr(settings, 'CHANGEWATCH_FETCH_TIMEOUT', 5.0)
PROBE_TABLE = getattr(settings, 'CHANGEWATCH_PROBE_TABLE', 'users')


class PostgrestStore(BaseStore):
    """Reads modification markers from the hosted backend's REST endpoint."""

    def __init__(self, base_url=None, api_key=None, timeout=None, probe_table=None):
        self.base_url = (SUPABASE_URL if base_url is None else base_url).rstrip('/')
        self.api_key = SUPABASE_ANON_KEY if api_key is None else api_key
        self.timeout = FETCH_TIMEOUT if timeout is None else timeout
        self.probe_table = probe_table or PROBE_TABLE
        self._session = None

    @property
    def session(self) -> requests.Session:
        if self._session is None:
            self._session = self.make_session()
        return self._session

    def make_session(self) -> requests.Session:
        session = requests.Session()
        session.headers.update({
            'apikey': self.api_key,
            'Authorization': f"Bearer {self.api_key}",
            'Accept': 'application/json',
        })
        return session

    def is_configured(self) -> bool:
        return bool(self.base_url and self.api_key)

    def table_url(self, name):
        return f"{self.base_url}/rest/v1/{name}"

    def is_reachable(self) -> bool:
        if not self.is_configured():
            return False
        try:
            response = self.session.get(
                self.table_url(self.probe_table),
                params={'select': 'id', 'limit': 1},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.warning("Backend connection test failed: %s", exc)
            return False

        if not response.ok:
            logger.warning("Backend connection test failed: HTTP %d %s",
                           response.status_code, _error_message(response))
            return False
        return True

    def latest_timestamp(self, resource: WatchedResource):
        if not self.is_configured():
            raise NotConfigured("SUPABASE_URL and SUPABASE_ANON_KEY must be set")

        field = resource.timestamp_field
        response = self.session.get(
            self.table_url(resource.name),
            params={
                'select': field,
                'order': f"{field}.desc.nullslast",
                'limit': 1,
            },
            timeout=self.timeout,
        )

        if not response.ok:
            raise StoreError(resource.name, _error_message(response), status_code=response.status_code)

        rows = response.json()
        if not rows:
            return None
        return rows[0].get(field)


def _error_message(response):
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict):
        return body.get('message') or body.get('hint') or str(body)
    return str(body)
