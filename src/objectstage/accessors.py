"""
Principal accessors: uniform property access over live objects.

A principal is any object-shaped value the staging layer can mirror:

- Mappings (dict, OrderedDict, any MutableMapping): keys are properties.
  Read-only mappings (e.g. types.MappingProxyType) describe their properties
  as non-configurable and non-writable.
- Mutable sequences (list, collections.deque, any MutableSequence): integer
  indices are properties. Writing at index len(seq) appends.
- Attribute objects (dataclass instances, SimpleNamespace, plain class
  instances, __slots__ classes): instance attributes are properties.
  Dataclass fields are non-configurable; frozen dataclass fields are also
  non-writable.

Only own properties are visible: class attributes, methods and inherited
mapping defaults are never treated as keys of the principal.

Custom types can be supported by subclassing PrincipalAccessor and calling
objectstage.config.register_accessor().
"""
from abc import ABC, abstractmethod
from collections.abc import Mapping, MutableMapping, MutableSequence
from dataclasses import fields as dataclass_fields, is_dataclass
from typing import Any, Iterator, List, Optional

from objectstage import config
from objectstage.errors import ConstructionError
from objectstage.states import PropertyDescriptor


class _Missing:
    """Sentinel for an absent property (distinct from a property set to None)."""

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING = _Missing()


class PrincipalAccessor(ABC):
    """Get/set/delete/enumerate/describe operations over one kind of principal."""

    # Keys are contiguous integer indices whose positions shift on insert/remove
    is_sequence = False

    @abstractmethod
    def own_keys(self, obj: Any) -> List[Any]:
        """Own property names, in the principal's natural order."""

    @abstractmethod
    def has_own(self, obj: Any, key: Any) -> bool:
        """Whether key is an own property of obj."""

    @abstractmethod
    def get(self, obj: Any, key: Any) -> Any:
        """Read an own property. Caller checks has_own() first."""

    @abstractmethod
    def set(self, obj: Any, key: Any, value: Any) -> None:
        """Write a property. Raises whatever the principal raises on rejection."""

    @abstractmethod
    def delete(self, obj: Any, key: Any) -> None:
        """Remove a property. Raises whatever the principal raises on rejection."""

    @abstractmethod
    def describe(self, obj: Any, key: Any) -> Optional[PropertyDescriptor]:
        """Descriptor for an own property, or None if key is not an own property."""

    def get_own(self, obj: Any, key: Any) -> Any:
        """Read an own property, or MISSING if absent."""
        if not self.has_own(obj, key):
            return MISSING
        return self.get(obj, key)


class MappingAccessor(PrincipalAccessor):
    """Accessor for Mapping principals."""

    def own_keys(self, obj: Mapping) -> List[Any]:
        return list(obj.keys())

    def has_own(self, obj: Mapping, key: Any) -> bool:
        try:
            return key in obj
        except TypeError:
            # Unhashable key can never be present
            return False

    def get(self, obj: Mapping, key: Any) -> Any:
        return obj[key]

    def set(self, obj: Mapping, key: Any, value: Any) -> None:
        obj[key] = value

    def delete(self, obj: Mapping, key: Any) -> None:
        del obj[key]

    def describe(self, obj: Mapping, key: Any) -> Optional[PropertyDescriptor]:
        if not self.has_own(obj, key):
            return None
        if isinstance(obj, MutableMapping):
            return PropertyDescriptor(configurable=True, enumerable=True, writable=True)
        return PropertyDescriptor(configurable=False, enumerable=True, writable=False)


class AttributeAccessor(PrincipalAccessor):
    """Accessor for attribute objects (instance __dict__ and __slots__)."""

    def _slot_names(self, obj: Any) -> Iterator[str]:
        for klass in reversed(type(obj).__mro__):
            slots = klass.__dict__.get('__slots__', ())
            if isinstance(slots, str):
                slots = (slots,)
            for name in slots:
                if name in ('__dict__', '__weakref__'):
                    continue
                yield name

    def own_keys(self, obj: Any) -> List[str]:
        keys = list(getattr(obj, '__dict__', {}).keys())
        for name in self._slot_names(obj):
            if name not in keys and hasattr(obj, name):
                keys.append(name)
        return keys

    def has_own(self, obj: Any, key: Any) -> bool:
        if not isinstance(key, str):
            return False
        if key in getattr(obj, '__dict__', {}):
            return True
        return key in set(self._slot_names(obj)) and hasattr(obj, key)

    def get(self, obj: Any, key: str) -> Any:
        return getattr(obj, key)

    def set(self, obj: Any, key: str, value: Any) -> None:
        setattr(obj, key, value)

    def delete(self, obj: Any, key: str) -> None:
        delattr(obj, key)

    def describe(self, obj: Any, key: Any) -> Optional[PropertyDescriptor]:
        if not self.has_own(obj, key):
            return None
        if is_dataclass(obj):
            params = getattr(type(obj), '__dataclass_params__', None)
            frozen = bool(params and params.frozen)
            field_names = {f.name for f in dataclass_fields(obj)}
            if key in field_names:
                # Removing a declared field breaks the dataclass contract
                return PropertyDescriptor(configurable=False, enumerable=True, writable=not frozen)
            if frozen:
                return PropertyDescriptor(configurable=False, enumerable=True, writable=False)
        return PropertyDescriptor(configurable=True, enumerable=True, writable=True)


class SequenceAccessor(PrincipalAccessor):
    """Accessor for MutableSequence principals (lists, deques)."""

    is_sequence = True

    def own_keys(self, obj: MutableSequence) -> List[int]:
        return list(range(len(obj)))

    def has_own(self, obj: MutableSequence, key: Any) -> bool:
        return is_index(key) and 0 <= key < len(obj)

    def get(self, obj: MutableSequence, key: int) -> Any:
        return obj[key]

    def set(self, obj: MutableSequence, key: int, value: Any) -> None:
        if key == len(obj):
            obj.append(value)
        else:
            obj[key] = value

    def delete(self, obj: MutableSequence, key: int) -> None:
        del obj[key]

    def describe(self, obj: MutableSequence, key: Any) -> Optional[PropertyDescriptor]:
        if not self.has_own(obj, key):
            return None
        return PropertyDescriptor(configurable=True, enumerable=True, writable=True)


def is_index(key: Any) -> bool:
    """Whether key is a usable sequence index (bool excluded)."""
    return isinstance(key, int) and not isinstance(key, bool)


_MAPPING_ACCESSOR = MappingAccessor()
_SEQUENCE_ACCESSOR = SequenceAccessor()
_ATTRIBUTE_ACCESSOR = AttributeAccessor()


def accessor_for(value: Any) -> Optional[PrincipalAccessor]:
    """Find the accessor for value, or None if value is a leaf.

    Resolution order: registered custom accessors, opaque/leaf types,
    Mapping, MutableSequence, then attribute objects (anything with __dict__
    or __slots__).
    """
    registered = config.get_registered_accessor(value)
    if registered is not None:
        return registered
    if config.is_opaque_type(value):
        return None
    if isinstance(value, Mapping):
        return _MAPPING_ACCESSOR
    if isinstance(value, MutableSequence):
        return _SEQUENCE_ACCESSOR
    if hasattr(value, '__dict__') or hasattr(type(value), '__slots__'):
        return _ATTRIBUTE_ACCESSOR
    return None


def is_object_shaped(value: Any) -> bool:
    """Whether value can be mirrored by a staging node with children."""
    return accessor_for(value) is not None


def require_accessor(value: Any) -> PrincipalAccessor:
    """Get the accessor for value, raising ConstructionError for leaf values."""
    accessor = accessor_for(value)
    if accessor is None:
        raise ConstructionError(
            f"Cannot stage a {type(value).__name__} value: only mappings, lists and attribute objects can be staged"
        )
    return accessor
