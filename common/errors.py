"""Transport exceptions for stream-testkit."""


class TransportConstructionError(Exception):
    """Raised when a transport cannot be opened, connected or prepared."""

    pass


class TransportIOError(Exception):
    """Raised when a read or write fails for a reason other than a read timeout."""

    pass
