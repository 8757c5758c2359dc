"""
ChangeSet dataclasses describing pending (unaccepted) changes.

A persistence collaborator reads these before calling accept_changes() to decide
what to write. They are produced by TrackingNode.get_changes().

Design Philosophy:
- Immutable records (frozen dataclasses)
- Hold references to models, not copies
- to_dict() gives a JSON-friendly summary for logging/auditing
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Tuple, TYPE_CHECKING

from trackstate.collection import TrackingCollection

if TYPE_CHECKING:
    from trackstate.node import TrackingNode

_PRIMITIVES = (str, int, float, bool, type(None))


def _plain(value: Any) -> Any:
    return value if isinstance(value, _PRIMITIVES) else repr(value)


@dataclass(frozen=True)
class PropertyChange:
    """One dirty scalar property: its baseline value and its current value."""
    name: str
    original: Any
    current: Any

    def to_dict(self) -> Dict:
        return {'original': _plain(self.original), 'current': _plain(self.current)}


@dataclass(frozen=True)
class CollectionChangeSet:
    """Membership and item changes of one nested collection.

    added/removed hold the item models; modified holds one ChangeSet per
    modified item.
    """
    name: str
    added: Tuple[Any, ...] = ()
    removed: Tuple[Any, ...] = ()
    modified: Tuple['ChangeSet', ...] = ()

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.removed or self.modified)

    @classmethod
    def from_collection(cls, name: str, collection: TrackingCollection) -> 'CollectionChangeSet':
        return cls(
            name=name,
            added=tuple(getattr(item, 'model', item) for item in collection.added_items),
            removed=tuple(getattr(item, 'model', item) for item in collection.removed_items),
            modified=tuple(
                item.get_changes() for item in collection.modified_items if hasattr(item, 'get_changes')
            ),
        )

    def to_dict(self) -> Dict:
        return {
            'added': [_plain(model) for model in self.added],
            'removed': [_plain(model) for model in self.removed],
            'modified': [change_set.to_dict() for change_set in self.modified],
        }


@dataclass(frozen=True)
class ChangeSet:
    """Pending changes of one node and everything below it."""
    model_type: str
    model: Any = field(repr=False, compare=False, default=None)
    properties: Dict[str, PropertyChange] = field(default_factory=dict)
    complex: Dict[str, 'ChangeSet'] = field(default_factory=dict)
    collections: Dict[str, CollectionChangeSet] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not (self.properties or self.complex or self.collections)

    @classmethod
    def from_node(cls, node: 'TrackingNode') -> 'ChangeSet':
        properties = {
            name: PropertyChange(name, node.get_original(name), node.get(name))
            for name in node.changed_properties
        }
        complex_changes: Dict[str, ChangeSet] = {}
        collection_changes: Dict[str, CollectionChangeSet] = {}
        for name, child in node.named_children():
            if not child.is_changed:
                continue
            if isinstance(child, TrackingCollection):
                collection_changes[name] = CollectionChangeSet.from_collection(name, child)
            elif hasattr(child, 'get_changes'):
                complex_changes[name] = child.get_changes()

        return cls(
            model_type=type(node.model).__name__,
            model=node.model,
            properties=properties,
            complex=complex_changes,
            collections=collection_changes,
        )

    def to_dict(self) -> Dict:
        """Export to JSON-serializable dict."""
        return {
            'model_type': self.model_type,
            'properties': {name: change.to_dict() for name, change in self.properties.items()},
            'complex': {name: change_set.to_dict() for name, change_set in self.complex.items()},
            'collections': {name: change_set.to_dict() for name, change_set in self.collections.items()},
        }
