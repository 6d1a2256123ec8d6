class ChangeWatchError(Exception):
    """Base class for errors raised by changewatch."""


class StoreError(ChangeWatchError):
    """The store could not answer for a resource (missing table, bad column, HTTP error)."""

    def __init__(self, resource_name, message, status_code=None):
        self.resource_name = resource_name
        self.status_code = status_code
        super().__init__(f"{resource_name}: {message}")


class NotConfigured(ChangeWatchError):
    """No backend URL/key is configured."""


class UnknownProfile(ChangeWatchError, KeyError):
    def __str__(self):
        return f"Unknown watch profile: {self.args[0]!r}"
