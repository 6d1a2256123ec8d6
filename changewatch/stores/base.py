from abc import ABC, abstractmethod

from changewatch.resources import WatchedResource


class BaseStore(ABC):
    @abstractmethod
    def is_configured(self) -> bool:
        """Whether a backend is configured at all. Must not touch the network."""

    @abstractmethod
    def is_reachable(self) -> bool:
        """Cheap connection probe. Returns False instead of raising when offline."""

    @abstractmethod
    def latest_timestamp(self, resource: WatchedResource):
        """Return the greatest ``resource.timestamp_field`` value, or None for an empty collection."""
