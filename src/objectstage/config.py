"""
Framework configuration for objectstage.

Module-level settings shared by every staging tree:

- Reserved prefix: marks control-channel keys on a StagedView
  (view["$commit"], view["$changed"], ...).
- Opaque types: values the staging layer never descends into, even when they
  carry a __dict__. Staged as leaf values and written back as a whole.
- Accessors: custom principal adapters for types the built-in mapping and
  attribute adapters do not handle.

Not thread-safe: configure once at startup (or per test via reset_config()).
"""
import datetime
import logging
import numbers
import pathlib
import types
import uuid
from enum import Enum
from typing import Any, List, Optional, Tuple, Type

logger = logging.getLogger(__name__)

DEFAULT_RESERVED_PREFIX = "$"

# Leaf types that are never staged as objects
_DEFAULT_OPAQUE_TYPES: Tuple[type, ...] = (
    type(None), bool, numbers.Number, str, bytes, bytearray,
    tuple, set, frozenset,
    Enum, datetime.date, datetime.time, datetime.timedelta,
    pathlib.PurePath, uuid.UUID,
    type, types.FunctionType, types.BuiltinFunctionType, types.MethodType, types.ModuleType,
)

_reserved_prefix: str = DEFAULT_RESERVED_PREFIX
_opaque_types: List[type] = []
_accessors: List[Tuple[type, Any]] = []


def set_reserved_prefix(prefix: str) -> None:
    """Set the prefix marking control-channel keys.

    Args:
        prefix: Non-empty string, e.g. "$" (default) or "__"
    """
    if not isinstance(prefix, str) or not prefix:
        raise ValueError(f"Reserved prefix must be a non-empty string, got {prefix!r}")
    global _reserved_prefix
    _reserved_prefix = prefix
    logger.debug(f"Reserved control prefix set to {prefix!r}")


def get_reserved_prefix() -> str:
    """Get the prefix marking control-channel keys."""
    return _reserved_prefix


def register_opaque_type(cls: Type) -> None:
    """Treat instances of cls as leaf values."""
    if cls not in _opaque_types:
        _opaque_types.append(cls)
        logger.debug(f"Registered opaque type: {cls.__name__}")


def unregister_opaque_type(cls: Type) -> None:
    """Undo register_opaque_type()."""
    if cls in _opaque_types:
        _opaque_types.remove(cls)


def is_opaque_type(value: Any) -> bool:
    """Check whether value is a leaf the staging layer never descends into."""
    if isinstance(value, _DEFAULT_OPAQUE_TYPES):
        return True
    return bool(_opaque_types) and isinstance(value, tuple(_opaque_types))


def register_accessor(cls: Type, accessor: Any) -> None:
    """Register a custom principal accessor for instances of cls.

    Registered accessors are matched with isinstance() in registration order,
    ahead of the built-in mapping and attribute accessors.

    Args:
        cls: Principal type handled by the accessor
        accessor: A PrincipalAccessor instance
    """
    for i, (registered_cls, _) in enumerate(_accessors):
        if registered_cls is cls:
            _accessors[i] = (cls, accessor)
            logger.debug(f"Replaced accessor for {cls.__name__}: {type(accessor).__name__}")
            return
    _accessors.append((cls, accessor))
    logger.debug(f"Registered accessor for {cls.__name__}: {type(accessor).__name__}")


def get_registered_accessor(value: Any) -> Optional[Any]:
    """Get the custom accessor registered for value's type, if any."""
    for cls, accessor in _accessors:
        if isinstance(value, cls):
            return accessor
    return None


def reset_config() -> None:
    """Restore default settings. For testing."""
    global _reserved_prefix
    _reserved_prefix = DEFAULT_RESERVED_PREFIX
    _opaque_types.clear()
    _accessors.clear()
