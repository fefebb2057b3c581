"""
StagingNode: lazily materialized mirror tree over a live principal.

One node exists per property that was read or written through the staging
surface, plus one root. Each node buffers the value for its property and a
per-property state (RETAINED / NEW / DIRTY / DELETED). Writes and deletes
only touch the tree; commit() flushes buffered state into the principal,
depth-first.

Invariants:
- A DELETED node has no children and no value.
- changed propagates strictly upward (child -> ancestors) and is cleared by
  a successful commit at that node (or by discard()).
- A child exists for key k only after k was read or written.
- Sequence nodes keep contiguous indices: tombstones only ever sit past the
  staged length, so commit can delete them from the end.

Thread safety: Not thread-safe. Callers serialize access to a staging tree
and to the principal it mirrors.
"""
import logging
from typing import Any, Dict, List, Optional, Tuple

from objectstage.accessors import (
    MISSING, PrincipalAccessor, accessor_for, is_index, is_object_shaped, require_accessor,
)
from objectstage.changes import PendingChange
from objectstage.errors import CommitError, ImmutablePropertyError, SequenceIndexError, UsageError
from objectstage.states import (
    DELETED, DIRTY, NEW, RETAINED, STAGED_DESCRIPTOR, PropertyDescriptor, PropertyState,
)

logger = logging.getLogger(__name__)


def _same_value(live: Any, buffered: Any) -> bool:
    """Reference identity for objects, typed equality for leaf values."""
    if live is buffered:
        return True
    if is_object_shaped(live) or is_object_shaped(buffered):
        return False
    if type(live) is not type(buffered):
        return False
    try:
        return bool(live == buffered)
    except (TypeError, ValueError):
        # Elementwise __eq__ (array-likes) has no single truth value
        return False


class StagingNode:
    """Buffered state for one property of a principal (or for the root).

    Core attributes:
    - principal: buffered value (object-shaped or leaf); None once DELETED
    - parent: enclosing node, None for the root
    - key: property name within parent, None for the root
    - state: PropertyState relative to the parent's live principal
    - descriptor: property shape captured at retrieval or write time
    - children: key -> StagingNode, in creation order
    """

    def __init__(
        self,
        principal: Any,
        parent: Optional['StagingNode'] = None,
        key: Any = None,
        state: PropertyState = RETAINED,
        descriptor: Optional[PropertyDescriptor] = None,
    ):
        self.principal = principal
        self.parent = parent
        self.key = key
        self.state = state
        self.descriptor = descriptor
        self.children: Dict[Any, 'StagingNode'] = {}
        self._accessor: Optional[PrincipalAccessor] = accessor_for(principal)
        self._changed = False
        # Surface object bound to this node, cached by the view layer
        self._view: Optional[Any] = None

    @classmethod
    def create_root(cls, principal: Any) -> 'StagingNode':
        """Create a root node. Raises ConstructionError for leaf values."""
        require_accessor(principal)
        node = cls(principal)
        logger.debug(f"Created staging root over {type(principal).__name__}")
        return node

    # ========== STRUCTURE ==========

    @property
    def is_root(self) -> bool:
        return self.parent is None

    @property
    def is_object(self) -> bool:
        """Whether this node mirrors an object-shaped value (can have children)."""
        return self._accessor is not None

    @property
    def is_sequence(self) -> bool:
        """Whether this node mirrors a mutable sequence (integer index keys)."""
        return self._accessor is not None and self._accessor.is_sequence

    @property
    def changed(self) -> bool:
        """True if this node or anything below it holds uncommitted work."""
        return self._changed or self.state is NEW or self.state is DIRTY

    @property
    def path(self) -> Tuple[Any, ...]:
        """Key path from the root to this node."""
        keys = []
        node = self
        while node.parent is not None:
            keys.append(node.key)
            node = node.parent
        return tuple(reversed(keys))

    def is_attached(self) -> bool:
        """Whether this node is still reachable from its root."""
        node = self
        while node.parent is not None:
            if node.parent.children.get(node.key) is not node:
                return False
            node = node.parent
        return True

    def _require_accessor(self, operation: str) -> PrincipalAccessor:
        if self._accessor is None:
            raise UsageError(
                f"Cannot {operation} on a {type(self.principal).__name__} value: node at "
                f"{self.path!r} is not object-shaped"
            )
        return self._accessor

    def _mark_changed(self) -> None:
        node = self
        while node is not None:
            node._changed = True
            node = node.parent

    def _ordered_children(self) -> List[Tuple[Any, 'StagingNode']]:
        """Children in the order commit applies them.

        Creation order, except for sequences: writes go in ascending index
        order (so appends land contiguously), then tail deletions from the end.
        """
        items = list(self.children.items())
        if self.is_sequence:
            items.sort(key=lambda item: (
                item[1].state is DELETED,
                -item[0] if item[1].state is DELETED else item[0],
            ))
        return items

    # ========== STATE MACHINE ==========

    def get_or_retain_child(self, key: Any) -> Optional['StagingNode']:
        """Get the child for key, materializing it from the principal on first access.

        Returns:
            The child node, or None if key is not an own property of the principal
            (no node is created in that case).
        """
        child = self.children.get(key)
        if child is not None:
            return child
        accessor = self._require_accessor("read children")
        if not accessor.has_own(self.principal, key):
            return None
        child = StagingNode(
            accessor.get(self.principal, key),
            parent=self,
            key=key,
            state=RETAINED,
            descriptor=accessor.describe(self.principal, key),
        )
        self.children[key] = child
        logger.debug(f"Materialized {child.path!r} ({type(child.principal).__name__})")
        return child

    def set_child(self, key: Any, value: Any) -> 'StagingNode':
        """Buffer a write of value to key.

        The new node is DIRTY if key currently exists on the live principal,
        NEW otherwise. Any prior node for key is discarded.
        """
        accessor = self._require_accessor("set children")
        if self.is_sequence:
            length = len(self.own_keys())
            if not is_index(key) or not 0 <= key <= length:
                raise SequenceIndexError(key, length)
        state = DIRTY if accessor.has_own(self.principal, key) else NEW
        previous = self.children.get(key)
        if previous is not None and previous.state is DELETED:
            # Re-added keys enumerate last, as on a plain dict
            del self.children[key]
        child = StagingNode(value, parent=self, key=key, state=state, descriptor=STAGED_DESCRIPTOR)
        self.children[key] = child
        self._mark_changed()
        logger.debug(f"Staged {state} {child.path!r}")
        return child

    def delete_child(self, key: Any) -> bool:
        """Buffer a deletion of key.

        Returns:
            True if a deletion was staged, False if there was nothing to delete.

        Raises:
            ImmutablePropertyError: if the property is non-configurable, or is
                a sequence index other than the last (use remove_child()).
        """
        child = self.get_or_retain_child(key)
        if child is None or child.state is DELETED:
            return False
        if child.descriptor is not None and not child.descriptor.configurable:
            raise ImmutablePropertyError(key)
        if self.is_sequence and key != len(self.own_keys()) - 1:
            raise ImmutablePropertyError(
                key, f"Only the last index of a staged list can be deleted directly, not {key!r}"
            )
        child._collapse()
        self._mark_changed()
        logger.debug(f"Staged {DELETED} {child.path!r}")
        return True

    # ========== SEQUENCE SHIFTS ==========

    def insert_child(self, index: int, value: Any) -> 'StagingNode':
        """Insert value at index of a sequence node, shifting later items up.

        Shifted items keep their staging subtrees, so nested staged edits
        (and views bound to them) follow the element to its new index.
        """
        self._require_accessor("insert children")
        if not self.is_sequence:
            raise UsageError(f"Cannot insert by index into non-sequence node at {self.path!r}")
        length = len(self.own_keys())
        if not is_index(index) or not 0 <= index <= length:
            raise SequenceIndexError(index, length)
        for position in range(length - 1, index - 1, -1):
            self._move_child(self.get_or_retain_child(position), position + 1)
        return self.set_child(index, value)

    def remove_child(self, index: int) -> None:
        """Remove index from a sequence node, shifting later items down."""
        self._require_accessor("remove children")
        if not self.is_sequence:
            raise UsageError(f"Cannot remove by index from non-sequence node at {self.path!r}")
        length = len(self.own_keys())
        if not is_index(index) or not 0 <= index < length:
            raise SequenceIndexError(index, length)
        if index == length - 1:
            self.delete_child(index)
            return
        for position in range(index + 1, length):
            self._move_child(self.get_or_retain_child(position), position - 1)
        last = length - 1
        if self._accessor.has_own(self.principal, last):
            tombstone = StagingNode(None, parent=self, key=last, descriptor=STAGED_DESCRIPTOR)
            tombstone._collapse()
            self.children[last] = tombstone
        self._mark_changed()
        logger.debug(f"Staged removal of {self.path + (index,)!r}")

    def _move_child(self, child: 'StagingNode', key: int) -> None:
        """Re-key child within this sequence node, replacing any occupant of key."""
        if self.children.get(child.key) is child:
            del self.children[child.key]
        self.children.pop(key, None)
        child.key = key
        child.state = DIRTY if self._accessor.has_own(self.principal, key) else NEW
        child.descriptor = STAGED_DESCRIPTOR
        self.children[key] = child
        self._mark_changed()

    def _collapse(self) -> None:
        """Turn this node into a tombstone."""
        self.state = DELETED
        self.principal = None
        self.children = {}
        self._accessor = None
        self._changed = False

    def discard(self) -> None:
        """Drop every buffered change below this node.

        The principal is not touched. Ancestors recompute their changed flag
        from their remaining children.
        """
        dropped = len(self.children)
        self.children = {}
        self._changed = False
        node = self.parent
        while node is not None:
            node._changed = any(
                c.state is not RETAINED or c._changed for c in node.children.values()
            )
            node = node.parent
        logger.debug(f"Discarded {dropped} staged node(s) under {self.path!r}")

    # ========== ENUMERATION / MEMBERSHIP / DESCRIPTORS ==========

    def own_keys(self) -> List[Any]:
        """Visible keys: live keys minus deletions, then NEW keys in creation order."""
        accessor = self._require_accessor("enumerate keys")
        live_keys = accessor.own_keys(self.principal)
        keys = []
        for key in live_keys:
            child = self.children.get(key)
            if child is not None and child.state is DELETED:
                continue
            keys.append(key)
        live = set(live_keys)
        for key, child in self.children.items():
            if child.state is NEW and key not in live:
                keys.append(key)
        if self.is_sequence:
            keys.sort()
        return keys

    def has(self, key: Any) -> bool:
        """Membership: staged children win, otherwise defer to the principal."""
        accessor = self._require_accessor("test membership")
        child = self.children.get(key)
        if child is None:
            return accessor.has_own(self.principal, key)
        return child.state is not DELETED

    def describe(self, key: Any) -> Optional[PropertyDescriptor]:
        """Descriptor of a staged child, otherwise the principal's own descriptor."""
        accessor = self._require_accessor("describe properties")
        child = self.children.get(key)
        if child is not None and child.state is not DELETED:
            return child.descriptor
        return accessor.describe(self.principal, key)

    # ========== COMMIT ==========

    def commit(self, _path: Tuple[Any, ...] = ()) -> None:
        """Flush buffered state into the principal, depth-first.

        Children are processed in creation order. A changed object-shaped child
        is committed before its own value is written back, so nested objects
        are fully resolved when they land in the principal.

        Not atomic: if the principal rejects an operation, CommitError is raised
        and the remaining work is abandoned. Changes applied before the failure
        stay applied.

        Raises:
            UsageError: if this node holds a leaf value.
            CommitError: if the principal rejects a set or delete.
        """
        accessor = self._require_accessor("commit")
        applied = 0
        for key, child in self._ordered_children():
            child_path = _path + (key,)
            if child.is_object and child.changed:
                child.commit(child_path)

            if child.state is RETAINED:
                continue

            if child.state is DELETED:
                try:
                    if accessor.has_own(self.principal, key):
                        accessor.delete(self.principal, key)
                except Exception as e:
                    logger.warning(f"Commit rejected: delete {child_path!r}: {e}")
                    raise CommitError(key, "delete", child_path, reason=str(e)) from e
                del self.children[key]
                logger.debug(f"Committed delete {child_path!r}")
            else:
                try:
                    accessor.set(self.principal, key, child.principal)
                except Exception as e:
                    logger.warning(f"Commit rejected: set {child_path!r}: {e}")
                    raise CommitError(key, "set", child_path, reason=str(e)) from e
                logger.debug(f"Committed {child.state} {child_path!r}")
                child.state = RETAINED
            applied += 1

        self._changed = False
        logger.debug(f"Commit complete at {self.path!r}: {applied} change(s) applied")

    # ========== EQUALITY PROBE ==========

    def test_principal_equal(self) -> bool:
        """Compare the buffered value with the live value in the parent's principal.

        Detects changes to the principal made outside the staging layer, which
        the changed flag cannot see. The root is always equal.

        Leaf values must match in type as well as value: a buffered 42.0 over
        a live 42 (or 1 over True) counts as drift.
        """
        if self.parent is None:
            return True
        live = self.parent._require_accessor("probe children").get_own(self.parent.principal, self.key)
        if self.state is DELETED:
            return live is MISSING
        if live is MISSING:
            return False
        return _same_value(live, self.principal)

    # ========== INTROSPECTION ==========

    def pending_changes(self, _prefix: Tuple[Any, ...] = ()) -> List[PendingChange]:
        """List NEW/DIRTY/DELETED nodes below this node, depth-first."""
        changes: List[PendingChange] = []
        for key, child in self._ordered_children():
            path = _prefix + (key,)
            if child.state is not RETAINED:
                changes.append(PendingChange(
                    path=path,
                    state=child.state,
                    value=None if child.state is DELETED else child.principal,
                ))
            if child.is_object and child._changed:
                changes.extend(child.pending_changes(path))
        return changes

    def __repr__(self) -> str:
        return (
            f"StagingNode(path={self.path!r}, state={self.state}, "
            f"changed={self.changed}, children={len(self.children)})"
        )
