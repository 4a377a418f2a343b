"""Store exception hierarchy."""


class StoreError(Exception):
    """Base exception for all key/value store errors."""


class StoreUnavailableError(StoreError):
    """The backing store rejected or could not serve an operation."""

    def __init__(self, namespace: str, operation: str, message: str):
        self.namespace = namespace
        self.operation = operation
        super().__init__(f"[{namespace}] {operation} failed: {message}")


class CorruptEntryError(StoreError):
    """A stored document could not be decoded into the expected record."""

    def __init__(self, key: str, message: str):
        self.key = key
        super().__init__(f"Corrupt entry {key}: {message}")
