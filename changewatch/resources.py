from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional, Union

from django.conf import settings

DEFAULT_TIMESTAMP_FIELD = getattr(settings, 'CHANGEWATCH_DEFAULT_TIMESTAMP_FIELD', 'updated_at')


@dataclass(frozen=True)
class WatchedResource:
    name: str
    timestamp_field: str = DEFAULT_TIMESTAMP_FIELD

    def __str__(self):
        if self.timestamp_field == DEFAULT_TIMESTAMP_FIELD:
            return self.name
        return f"{self.name}:{self.timestamp_field}"


@dataclass(frozen=True)
class SyncEvent:
    """Broadcast request to re-check every watched resource now."""
    timestamp: Optional[int] = None  # epoch milliseconds


@dataclass(frozen=True)
class ChangeNotification:
    """A row in ``resource`` changed. ``timestamp`` is the row's new marker, when known."""
    resource: str
    timestamp: Any = field(default=None, compare=False)


ResourceSpec = Union[WatchedResource, str, Mapping[str, str]]


def as_resource(spec: ResourceSpec) -> WatchedResource:
    if isinstance(spec, WatchedResource):
        resource = spec
    elif isinstance(spec, str):
        resource = WatchedResource(name=spec.strip())
    elif isinstance(spec, Mapping):
        resource = WatchedResource(
            name=(spec.get('name') or '').strip(),
            timestamp_field=spec.get('timestamp_field') or DEFAULT_TIMESTAMP_FIELD,
        )
    else:
        raise TypeError(f"Cannot watch {spec!r}: expected a name, mapping or WatchedResource")

    if not resource.name:
        raise ValueError("Resource name must not be empty")
    return resource


def normalize_resources(specs: Iterable[ResourceSpec]) -> tuple[WatchedResource, ...]:
    resources = tuple(as_resource(s) for s in specs)
    if not resources:
        raise ValueError("At least one resource must be watched")

    seen = set()
    for resource in resources:
        if resource.name in seen:
            raise ValueError(f"Resource {resource.name!r} is listed more than once")
        seen.add(resource.name)
    return resources
