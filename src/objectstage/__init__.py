"""
Staging layer for live, nested mutable objects.

This framework buffers every write and deletion made against a live object
(the "principal") until an explicit commit, while reads pass straight through.

Key Features:
- Lazy mirror tree: a staging node exists only for properties actually touched
- Per-property state tracking (RETAINED / NEW / DIRTY / DELETED)
- Deep change propagation: nested mutations mark every ancestor as changed
- Depth-first, deterministic (non-atomic) commit
- Equality probe to detect changes made to the principal behind the view's back
- Works over mappings, lists and attribute objects (dataclasses, namespaces, slots)

Quick Start:
    >>> from objectstage import staged, DIRTY, NEW
    >>>
    >>> settings = {'theme': 'light', 'editor': {'tab_size': 4}}
    >>> view = staged(settings)
    >>> view['theme'] = 'dark'
    >>> view['editor']['wrap'] = True
    >>> view.property_state('theme') is DIRTY
    True
    >>> settings['theme']
    'light'
    >>> view.commit()
    >>> settings
    {'theme': 'dark', 'editor': {'tab_size': 4, 'wrap': True}}

Architecture:
    StagedView / StagedListView (MutableMapping / MutableSequence surfaces
    + "$"-prefixed control channel)
        -> StagingNode (state machine, lazy children, commit, equality probe)
            -> PrincipalAccessor (mapping / sequence / attribute access to the live object)

Modules:
    - staged_view: StagedView and StagedListView surfaces, staged() factory
    - staging_node: StagingNode state machine and commit protocol
    - accessors: principal adapters for mappings, sequences and attribute objects
    - states: PropertyState enumeration and PropertyDescriptor
    - changes: PendingChange records
    - errors: error taxonomy
    - config: reserved prefix, opaque types, custom accessors
"""

# Surface
from objectstage.staged_view import (
    BaseStagedView,
    StagedView,
    StagedListView,
    staged,
    is_staged,
    CONTROL_NAMES,
)

# Node
from objectstage.staging_node import StagingNode

# States
from objectstage.states import (
    PropertyState,
    PropertyDescriptor,
    RETAINED,
    NEW,
    DIRTY,
    DELETED,
)

# Accessors
from objectstage.accessors import (
    PrincipalAccessor,
    MappingAccessor,
    SequenceAccessor,
    AttributeAccessor,
    accessor_for,
    is_object_shaped,
    MISSING,
)

# Changes
from objectstage.changes import PendingChange

# Errors
from objectstage.errors import (
    StagingError,
    ConstructionError,
    AttachmentError,
    ImmutablePropertyError,
    CommitError,
    UsageError,
    SequenceIndexError,
)

# Configuration
from objectstage.config import (
    set_reserved_prefix,
    get_reserved_prefix,
    register_opaque_type,
    unregister_opaque_type,
    register_accessor,
)

__all__ = [
    # Surface
    'BaseStagedView',
    'StagedView',
    'StagedListView',
    'staged',
    'is_staged',
    'CONTROL_NAMES',
    # Node
    'StagingNode',
    # States
    'PropertyState',
    'PropertyDescriptor',
    'RETAINED',
    'NEW',
    'DIRTY',
    'DELETED',
    # Accessors
    'PrincipalAccessor',
    'MappingAccessor',
    'SequenceAccessor',
    'AttributeAccessor',
    'accessor_for',
    'is_object_shaped',
    'MISSING',
    # Changes
    'PendingChange',
    # Errors
    'StagingError',
    'ConstructionError',
    'AttachmentError',
    'ImmutablePropertyError',
    'CommitError',
    'UsageError',
    'SequenceIndexError',
    # Configuration
    'set_reserved_prefix',
    'get_reserved_prefix',
    'register_opaque_type',
    'unregister_opaque_type',
    'register_accessor',
]

__version__ = '1.0.0'
__description__ = 'Staging layer that buffers changes to live nested objects until commit'
