"""
Property states and descriptors.

PropertyState is the closed set of states a staged property can be in.
PropertyDescriptor captures the shape of a property (never its value).
"""
from dataclasses import dataclass
from enum import Enum


class PropertyState(Enum):
    """State of a property relative to the live principal."""
    RETAINED = "RETAINED"  # straight mirror of the principal
    NEW = "NEW"            # absent from the principal, will be added
    DIRTY = "DIRTY"        # present on the principal, buffered value may differ
    DELETED = "DELETED"    # removal pending

    def __str__(self) -> str:
        return self.value


RETAINED = PropertyState.RETAINED
NEW = PropertyState.NEW
DIRTY = PropertyState.DIRTY
DELETED = PropertyState.DELETED


@dataclass(frozen=True)
class PropertyDescriptor:
    """Shape of a property: whether it can be deleted, listed, and reassigned."""
    configurable: bool = True
    enumerable: bool = True
    writable: bool = True

    def to_dict(self) -> dict:
        return {
            'configurable': self.configurable,
            'enumerable': self.enumerable,
            'writable': self.writable,
        }


# Descriptor given to every property written through the staging surface
STAGED_DESCRIPTOR = PropertyDescriptor(configurable=True, enumerable=True, writable=True)
