"""
PendingChange records describing buffered work in a staging tree.

Produced by StagingNode.pending_changes() / StagedView.pending_changes().
Each record is an immutable snapshot taken at call time: later mutations of
the staging tree do not affect records already returned.
"""
from dataclasses import dataclass
from typing import Any, Dict, Tuple

from objectstage.states import PropertyState


@dataclass(frozen=True)
class PendingChange:
    """One buffered (uncommitted) property change.

    path is the key path from the node pending_changes() was called on.
    value is the buffered value for NEW/DIRTY changes and None for deletions.
    """
    path: Tuple[Any, ...]
    state: PropertyState
    value: Any = None

    @property
    def key(self) -> Any:
        return self.path[-1]

    @property
    def dotted_path(self) -> str:
        return ".".join(str(p) for p in self.path)

    def to_dict(self) -> Dict[str, Any]:
        """Export to JSON-serializable dict (value included only when it is JSON-native)."""
        data: Dict[str, Any] = {
            'path': [str(p) for p in self.path],
            'state': self.state.value,
        }
        if self.state is not PropertyState.DELETED and _is_json_native(self.value):
            data['value'] = self.value
        return data


def _is_json_native(value: Any) -> bool:
    if value is None or isinstance(value, (bool, int, float, str)):
        return True
    if isinstance(value, (list, tuple)):
        return all(_is_json_native(v) for v in value)
    if isinstance(value, dict):
        return all(isinstance(k, str) and _is_json_native(v) for k, v in value.items())
    return False
