from dataclasses import dataclass

from django.conf import settings

from changewatch.exceptions import UnknownProfile
from changewatch.resources import WatchedResource, normalize_resources


@dataclass(frozen=True)
class WatchProfile:
    name: str
    resources: tuple[WatchedResource, ...]
    interval: float


def available_profiles():
    return sorted(getattr(settings, 'CHANGEWATCH_PROFILES', {}))


def get_profile(name) -> WatchProfile:
    profiles = getattr(settings, 'CHANGEWATCH_PROFILES', {})
    try:
        config = profiles[name]
    except KeyError:
        raise UnknownProfile(name) from None

    interval = config.get('interval', settings.CHANGEWATCH_POLL_INTERVAL)
    return WatchProfile(
        name=name,
        resources=normalize_resources(config['resources']),
        interval=float(interval),
    )
