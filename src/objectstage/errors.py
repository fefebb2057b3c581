"""
Error taxonomy for the staging layer.

Every error raised by objectstage derives from StagingError, so callers can
catch the whole family at once. Where an error corresponds to a builtin
category (type misuse, runtime inconsistency) it also subclasses that builtin.
"""
from typing import Any, Optional, Tuple


class StagingError(Exception):
    """Base class for all staging layer errors."""


class ConstructionError(StagingError, TypeError):
    """A staging view was requested over a value that is not object-shaped."""


class AttachmentError(StagingError, RuntimeError):
    """A view was used after its node left the staging tree.

    Happens when a key is reassigned (the old node is replaced) or a committed
    deletion evicts the node. Indicates a bug in the caller, not a recoverable
    condition.
    """


class ImmutablePropertyError(StagingError, TypeError):
    """Delete attempted on a property whose descriptor is non-configurable."""

    def __init__(self, key: Any, message: Optional[str] = None):
        self.key = key
        super().__init__(message or f"Property {key!r} is not configurable and cannot be deleted")


class CommitError(StagingError):
    """The live principal rejected a set or delete while committing.

    Attributes:
        key: The offending property name
        operation: "set" or "delete"
        path: Key path from the node commit() was called on down to the key
    """

    def __init__(self, key: Any, operation: str, path: Tuple[Any, ...] = (), reason: str = ""):
        self.key = key
        self.operation = operation
        self.path = tuple(path) if path else (key,)
        dotted = ".".join(str(p) for p in self.path)
        message = f"Commit failed to {operation} {dotted!r}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class UsageError(StagingError, TypeError):
    """The staging surface was used in a way it does not support."""


class SequenceIndexError(StagingError, IndexError):
    """A staged list was written at an index that would leave a gap."""

    def __init__(self, key: Any, length: int):
        self.key = key
        self.length = length
        super().__init__(f"Index {key!r} out of range for staged list of length {length}")
