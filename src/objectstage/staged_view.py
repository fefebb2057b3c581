"""
Staged views: the collection surfaces over a StagingNode.

Reads pass through to the live principal (lazily materializing nodes);
writes and deletes are buffered until commit(). Object-shaped values read
through a view come back as views themselves, so nested mutation is staged
too: mappings and attribute objects as StagedView (a MutableMapping), lists
and other mutable sequences as StagedListView (a MutableSequence).

Control channel:
    Keys made of the reserved prefix (default "$") plus a control name answer
    control queries instead of data lookups. They mirror the named methods:

    view["$isStaged"]            -> view.is_staged
    view["$principal"]           -> view.principal
    view["$commit"]()            -> view.commit()
    view["$changed"]             -> view.changed
    view["$propertyState"](k)    -> view.property_state(k)
    view["$testPrincipalEqual"]  -> view.test_principal_equal

    A data key spelled like a control key is shadowed on item access. The
    named methods never collide with data.

Example:
    >>> principal = {'a': 'A', 'o': {'n': 42}, 'tags': ['x']}
    >>> view = staged(principal)
    >>> view['a'] = 'AA'
    >>> view['o']['z'] = 1
    >>> view['tags'].append('y')
    >>> principal
    {'a': 'A', 'o': {'n': 42}, 'tags': ['x']}
    >>> view.commit()
    >>> principal
    {'a': 'AA', 'o': {'n': 42, 'z': 1}, 'tags': ['x', 'y']}
"""
from collections.abc import MutableMapping, MutableSequence, Sequence
import logging
from typing import Any, Dict, Iterator, List, Optional

from objectstage import config
from objectstage.changes import PendingChange
from objectstage.errors import AttachmentError, ConstructionError, UsageError
from objectstage.staging_node import StagingNode
from objectstage.states import DELETED, PropertyDescriptor, PropertyState

logger = logging.getLogger(__name__)

CONTROL_NAMES = frozenset({
    'isStaged',
    'principal',
    'commit',
    'changed',
    'propertyState',
    'testPrincipalEqual',
})


class _Self:
    """Default for property_state()/test_principal_equal(): query the node itself."""

    def __repr__(self) -> str:
        return "<self>"


_SELF = _Self()


class BaseStagedView:
    """Shared surface of staged views: node binding, control channel, commit.

    Subclasses add the collection protocol for their principal shape.
    """

    __slots__ = ('_node',)

    # Whether this surface expects a sequence-shaped principal
    _sequence = False

    def __init__(self, principal: Any):
        """
        Args:
            principal: Object-shaped value to stage. Raises ConstructionError for
                       leaf values (numbers, strings, tuples, ...) and for a
                       principal of the wrong shape for this view class.
        """
        node = StagingNode.create_root(principal)
        if node.is_sequence != self._sequence:
            raise ConstructionError(
                f"{type(self).__name__} cannot stage a {type(principal).__name__}; use staged()"
            )
        self._node = node
        node._view = self

    @staticmethod
    def _for_node(node: StagingNode) -> 'BaseStagedView':
        if node._view is None:
            cls = StagedListView if node.is_sequence else StagedView
            view = cls.__new__(cls)
            view._node = node
            node._view = view
        return node._view

    def _attached_node(self) -> StagingNode:
        node = self._node
        if not node.is_attached():
            raise AttachmentError(
                f"View for {node.path!r} is detached from its staging tree "
                f"(the key was reassigned, discarded, or its deletion was committed)"
            )
        if node.state is DELETED:
            raise AttachmentError(f"View for {node.path!r} refers to a deleted property")
        return node

    def _present(self, child: StagingNode) -> Any:
        if child.is_object:
            return BaseStagedView._for_node(child)
        return child.principal

    @staticmethod
    def _unwrap(value: Any) -> Any:
        if isinstance(value, BaseStagedView):
            return value.principal
        return value

    # ========== CONTROL CHANNEL ==========

    @staticmethod
    def _control_name(key: Any) -> Optional[str]:
        if not isinstance(key, str):
            return None
        prefix = config.get_reserved_prefix()
        if key.startswith(prefix) and key[len(prefix):] in CONTROL_NAMES:
            return key[len(prefix):]
        return None

    def _control(self, name: str, key: str) -> Any:
        node = self._attached_node()
        if node.has(key):
            logger.warning(f"Control key {key!r} shadows a data property at {node.path!r}")
        match name:
            case 'isStaged':
                return self.is_staged
            case 'principal':
                return self.principal
            case 'commit':
                return self.commit
            case 'changed':
                return self.changed
            case 'propertyState':
                return self.property_state
            case 'testPrincipalEqual':
                return self.test_principal_equal

    @property
    def is_staged(self) -> bool:
        """Always True: marks a staging view as opposed to a raw value."""
        return True

    @property
    def principal(self) -> Any:
        """The buffered value this view represents (the live object for retained nodes)."""
        return self._attached_node().principal

    @property
    def changed(self) -> bool:
        """Whether this view or anything below it holds uncommitted changes."""
        return self._attached_node().changed

    @property
    def node(self) -> StagingNode:
        """The StagingNode behind this view."""
        return self._attached_node()

    def commit(self) -> None:
        """Flush buffered changes into the principal. See StagingNode.commit()."""
        self._attached_node().commit()

    def discard(self) -> None:
        """Abandon every buffered change below this view."""
        self._attached_node().discard()

    def property_state(self, name: Any = _SELF) -> Optional[PropertyState]:
        """State of this view's property, or of the named child.

        Returns:
            The PropertyState, or None for the root (no name) and for keys that
            never existed.
        """
        node = self._attached_node()
        if name is _SELF:
            return None if node.is_root else node.state
        child = node.get_or_retain_child(name)
        return None if child is None else child.state

    def test_principal_equal(self, name: Any = _SELF) -> Optional[bool]:
        """Check the buffered value against the live principal.

        Leaf values compare by type and value, objects by identity: a
        buffered 42.0 over a live 42 is not equal.

        Returns:
            True if the live value is the buffered one, False if it drifted (staged
            write, or external mutation), None if the named key never existed.
        """
        node = self._attached_node()
        if name is _SELF:
            return node.test_principal_equal()
        child = node.get_or_retain_child(name)
        return None if child is None else child.test_principal_equal()

    def describe(self, key: Any) -> Optional[PropertyDescriptor]:
        """Property descriptor for key, or None if the principal has no such property."""
        return self._attached_node().describe(key)

    def pending_changes(self) -> List[PendingChange]:
        """Buffered changes below this view, depth-first."""
        return self._attached_node().pending_changes()

    def _plain_child(self, node: StagingNode, key: Any) -> Any:
        value = self._present(node.get_or_retain_child(key))
        if isinstance(value, StagedView):
            return value.to_dict()
        if isinstance(value, StagedListView):
            return value.to_list()
        return value

    def _detached_repr(self) -> Optional[str]:
        node = self._node
        if not node.is_attached() or node.state is DELETED:
            return f"<detached {type(self).__name__} {node.path!r}>"
        return None


class StagedView(BaseStagedView, MutableMapping):
    """Staging view over a live principal (mapping or attribute object).

    Behaves like a dict of the principal's properties with all writes and
    deletions buffered. Call commit() to apply them, or drop the view (or call
    discard()) to abandon them.
    """

    __slots__ = ()

    # ========== MAPPING PROTOCOL ==========

    def __getitem__(self, key: Any) -> Any:
        name = self._control_name(key)
        if name is not None:
            return self._control(name, key)
        child = self._attached_node().get_or_retain_child(key)
        if child is None or child.state is DELETED:
            raise KeyError(key)
        return self._present(child)

    def __setitem__(self, key: Any, value: Any) -> None:
        if self._control_name(key) is not None:
            raise UsageError(f"{key!r} is a reserved control key and cannot be assigned")
        self._attached_node().set_child(key, self._unwrap(value))

    def __delitem__(self, key: Any) -> None:
        if self._control_name(key) is not None:
            raise UsageError(f"{key!r} is a reserved control key and cannot be deleted")
        node = self._attached_node()
        if not node.delete_child(key):
            logger.debug(f"Nothing to delete at {node.path + (key,)!r}")

    def __iter__(self) -> Iterator[Any]:
        return iter(self._attached_node().own_keys())

    def __len__(self) -> int:
        return len(self._attached_node().own_keys())

    def __contains__(self, key: Any) -> bool:
        return self._attached_node().has(key)

    # ========== SERIALIZATION ==========

    def to_dict(self) -> Dict[Any, Any]:
        """Recursive plain copy of the staged view (buffered values included).

        Nested staged lists become plain lists.
        """
        node = self._attached_node()
        # Walk nodes directly so data keys shadowed by control keys still serialize
        return {key: self._plain_child(node, key) for key in node.own_keys()}

    def __repr__(self) -> str:
        detached = self._detached_repr()
        if detached:
            return detached
        return f"StagedView({self.to_dict()!r}, changed={self._node.changed})"


class StagedListView(BaseStagedView, MutableSequence):
    """Staging view over a live mutable sequence.

    Supports the list protocol (indexing, append, insert, pop, extend, ...).
    Inserting or removing in the middle shifts the staged elements, moving
    their nested staged edits along with them; the live list only changes on
    commit(). Slice reads return plain lists of presented items; slice
    assignment is not supported.
    """

    __slots__ = ()
    _sequence = True

    def _index(self, index: Any, length: int) -> int:
        if isinstance(index, bool) or not isinstance(index, int):
            raise TypeError(f"staged list indices must be integers, not {type(index).__name__}")
        if index < 0:
            index += length
        if not 0 <= index < length:
            raise IndexError("staged list index out of range")
        return index

    # ========== SEQUENCE PROTOCOL ==========

    def __getitem__(self, index: Any) -> Any:
        name = self._control_name(index)
        if name is not None:
            return self._control(name, index)
        node = self._attached_node()
        if isinstance(index, slice):
            return [self[i] for i in range(*index.indices(len(self)))]
        child = node.get_or_retain_child(self._index(index, len(self)))
        return self._present(child)

    def __setitem__(self, index: Any, value: Any) -> None:
        if self._control_name(index) is not None:
            raise UsageError(f"{index!r} is a reserved control key and cannot be assigned")
        if isinstance(index, slice):
            raise UsageError("Slice assignment is not supported on a staged list")
        node = self._attached_node()
        node.set_child(self._index(index, len(self)), self._unwrap(value))

    def __delitem__(self, index: Any) -> None:
        if self._control_name(index) is not None:
            raise UsageError(f"{index!r} is a reserved control key and cannot be deleted")
        node = self._attached_node()
        if isinstance(index, slice):
            for i in sorted(range(*index.indices(len(self))), reverse=True):
                node.remove_child(i)
            return
        node.remove_child(self._index(index, len(self)))

    def __len__(self) -> int:
        return len(self._attached_node().own_keys())

    def insert(self, index: int, value: Any) -> None:
        """Insert before index, clamping out-of-range indices like list.insert."""
        node = self._attached_node()
        length = len(self)
        if index < 0:
            index = max(0, index + length)
        node.insert_child(min(index, length), self._unwrap(value))

    def pop(self, index: int = -1) -> Any:
        """Remove and return the item at index.

        Object-shaped items are returned raw: once removed, the element is no
        longer part of the staging tree.
        """
        node = self._attached_node()
        index = self._index(index, len(self))
        value = node.get_or_retain_child(index).principal
        node.remove_child(index)
        return value

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, Sequence) and not isinstance(other, (str, bytes, bytearray)):
            return len(self) == len(other) and all(a == b for a, b in zip(self, other))
        return NotImplemented

    __hash__ = None

    # ========== SERIALIZATION ==========

    def to_list(self) -> List[Any]:
        """Recursive plain copy of the staged list (buffered values included)."""
        node = self._attached_node()
        return [self._plain_child(node, key) for key in node.own_keys()]

    def __repr__(self) -> str:
        detached = self._detached_repr()
        if detached:
            return detached
        return f"StagedListView({self.to_list()!r}, changed={self._node.changed})"


def staged(principal: Any) -> BaseStagedView:
    """Create a staging view over principal.

    Returns a StagedListView for mutable sequences, a StagedView otherwise.
    """
    return BaseStagedView._for_node(StagingNode.create_root(principal))


def is_staged(value: Any) -> bool:
    """Whether value is a staging view."""
    return isinstance(value, BaseStagedView)
