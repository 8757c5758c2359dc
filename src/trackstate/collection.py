"""
TrackingCollection: observable ordered sequence of tracking objects.

Membership changes are classified against a baseline snapshot (taken at
construction and at every accept_changes()) using object identity:

- added    = live - baseline
- removed  = baseline - live
- modified = items in both whose is_changed is True

Two distinct items with equal fields are distinct members. Each live item is
wired to the collection's item listener; items that leave the live sequence are
unwired so they cannot notify a collection that no longer holds them.
"""
from collections.abc import MutableSequence, Sequence
from dataclasses import dataclass
from enum import Enum
import logging
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Tuple

from trackstate.config import get_tracking_config
from trackstate.events import (
    ALL_PROPERTIES,
    IS_VALID,
    Subscription,
    TrackingObject,
    fire_callbacks,
    subscribe,
)

logger = logging.getLogger(__name__)

COUNT = "count"
ADDED_ITEMS = "added_items"
REMOVED_ITEMS = "removed_items"
MODIFIED_ITEMS = "modified_items"


class ChangeAction(Enum):
    ADD = "add"
    REMOVE = "remove"
    REPLACE = "replace"
    MOVE = "move"
    RESET = "reset"


@dataclass(frozen=True)
class CollectionChange:
    """Payload of a structural change notification."""
    action: ChangeAction
    new_items: Tuple[Any, ...] = ()
    old_items: Tuple[Any, ...] = ()
    index: Optional[int] = None


CollectionChangedCallback = Callable[['TrackingCollection', CollectionChange], None]


def _unique(items: Iterable[Any]) -> List[Any]:
    seen = set()
    result = []
    for item in items:
        if id(item) not in seen:
            seen.add(id(item))
            result.append(item)
    return result


def _index_of(items: List[Any], value: Any, start: int = 0, stop: Optional[int] = None) -> int:
    stop = len(items) if stop is None else stop
    for i in range(start, min(stop, len(items))):
        if items[i] is value:
            return i
    raise ValueError(f"{value!r} is not in collection")


class ItemsView(Sequence):
    """Read-only, live view over one of the collection's partitions."""

    def __init__(self, items: Callable[[], List[Any]]):
        self._items = items

    def __getitem__(self, index):
        return self._items()[index]

    def __len__(self) -> int:
        return len(self._items())

    def __iter__(self) -> Iterator[Any]:
        return iter(list(self._items()))

    def __contains__(self, value: Any) -> bool:
        return any(item is value for item in self._items())

    def __repr__(self) -> str:
        return f"ItemsView({self._items()!r})"


class TrackingCollection(TrackingObject, MutableSequence):
    """
    Change-tracking list of TrackingNodes (or any TrackingObject).

    Every mutation runs to completion before returning, in this order:
    1. mutate the live sequence
    2. recompute added/removed/modified and rewire item listeners
    3. fire the structural change, then 'count' and the partitions that changed
    4. fire is_changed / is_valid if their value flipped
    """

    def __init__(self, items: Iterable[TrackingObject] = ()):
        super().__init__()
        self._items: List[TrackingObject] = []
        self._items = self._check_items(items)
        self._baseline: List[TrackingObject] = list(self._items)
        self._added: List[TrackingObject] = []
        self._removed: List[TrackingObject] = []
        self._modified: List[TrackingObject] = []
        self._item_subscriptions: Dict[int, Tuple[TrackingObject, Subscription]] = {}
        self._collection_changed_callbacks: List[CollectionChangedCallback] = []

        self.added_items = ItemsView(lambda: self._added)
        self.removed_items = ItemsView(lambda: self._removed)
        self.modified_items = ItemsView(lambda: self._modified)

        self._recompute_partitions()
        self._sync_item_wiring()
        self._snapshot_aggregates()

    # ==================== TRACKING OBJECT CONTRACT ====================

    @property
    def is_changed(self) -> bool:
        return bool(self._added or self._removed or self._modified)

    @property
    def is_valid(self) -> bool:
        return all(item.is_valid for item in self._items)

    @property
    def baseline(self) -> Tuple[TrackingObject, ...]:
        """Items as of construction or the last accept_changes()."""
        return tuple(self._baseline)

    def accept_changes(self) -> None:
        """Commit membership and every live item's own changes."""
        was_changed = self.is_changed
        self._baseline = list(self._items)
        self._added.clear()
        self._modified.clear()
        self._removed.clear()
        for item in list(self._items):
            item.accept_changes()
        self._recompute_partitions()
        logger.debug(f"Accepted changes: {type(self).__name__} count={len(self._items)}")

        if was_changed:
            self._notify_property_changed(ALL_PROPERTIES)
        self._publish_aggregates()

    def reject_changes(self) -> None:
        """Restore baseline membership and field values.

        Added items are dropped, modified items reject their own changes, and
        removed items reject their changes before being re-inserted. Removed
        items go back at the end unless TrackingConfig.restore_removed_positions
        is set, in which case the exact baseline order is restored.
        """
        was_changed = self.is_changed
        order_before = [id(item) for item in self._items]
        old_items = tuple(self._items)
        logger.debug(
            f"Rejecting changes: {type(self).__name__} dropping={len(self._added)} "
            f"reverting={len(self._modified)} restoring={len(self._removed)}"
        )

        for item in list(self._added):
            del self._items[_index_of(self._items, item)]
        for item in list(self._modified):
            item.reject_changes()
        for item in list(self._removed):
            item.reject_changes()
            self._items.append(item)

        if get_tracking_config().restore_removed_positions:
            position = {id(item): i for i, item in enumerate(self._baseline)}
            self._items.sort(key=lambda item: position.get(id(item), len(position)))

        self._recompute_partitions()
        self._sync_item_wiring()

        if [id(item) for item in self._items] != order_before:
            self._fire_collection_changed(CollectionChange(ChangeAction.RESET, tuple(self._items), old_items))
            if len(self._items) != len(old_items):
                self._notify_property_changed(COUNT)
        if was_changed:
            self._notify_property_changed(ALL_PROPERTIES)
        self._publish_aggregates()

    def dispose(self) -> None:
        """Unwire every item listener and dispose the live items."""
        for item, subscription in self._item_subscriptions.values():
            subscription.dispose()
            dispose_item = getattr(item, 'dispose', None)
            if dispose_item is not None:
                dispose_item()
        self._item_subscriptions.clear()

    # ==================== STRUCTURAL CHANGE NOTIFICATION ====================

    def on_collection_changed(self, callback: CollectionChangedCallback) -> Subscription:
        """Subscribe to structural changes. Called as callback(sender, CollectionChange)."""
        return subscribe(self._collection_changed_callbacks, callback)

    def off_collection_changed(self, callback: CollectionChangedCallback) -> None:
        if callback in self._collection_changed_callbacks:
            self._collection_changed_callbacks.remove(callback)

    def _fire_collection_changed(self, change: CollectionChange) -> None:
        fire_callbacks(self._collection_changed_callbacks, "collection_changed", self, change)

    # ==================== SEQUENCE PROTOCOL ====================

    def __len__(self) -> int:
        return len(self._items)

    def __getitem__(self, index):
        # Slices return a plain list copy, not a tracked collection
        return self._items[index]

    def __iter__(self) -> Iterator[TrackingObject]:
        return iter(self._items)

    def __contains__(self, value: Any) -> bool:
        return any(item is value for item in self._items)

    def index(self, value: Any, start: int = 0, stop: Optional[int] = None) -> int:
        return _index_of(self._items, value, start, stop)

    def count(self, value: Any) -> int:
        return sum(1 for item in self._items if item is value)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(count={len(self._items)}, added={len(self._added)}, "
            f"removed={len(self._removed)}, modified={len(self._modified)})"
        )

    # ==================== MUTATIONS ====================

    def insert(self, index: int, value: TrackingObject) -> None:
        self._check_items([value])
        size = len(self._items)
        position = min(index, size) if index >= 0 else max(0, size + index)
        self._items.insert(position, value)
        self._on_collection_changed(CollectionChange(ChangeAction.ADD, (value,), (), position))

    def extend(self, values: Iterable[TrackingObject]) -> None:
        values = self._check_items(values)
        if not values:
            return
        start = len(self._items)
        self._items.extend(values)
        self._on_collection_changed(CollectionChange(ChangeAction.ADD, tuple(values), (), start))

    def __setitem__(self, index, value) -> None:
        if isinstance(index, slice):
            old_items = tuple(self._items[index])
            values = self._check_items(value, replacing=old_items)
            self._items[index] = values
            self._on_collection_changed(CollectionChange(ChangeAction.REPLACE, tuple(values), old_items))
            return

        old_item = self._items[index]
        if old_item is value:
            return
        self._check_items([value])
        self._items[index] = value
        position = index if index >= 0 else len(self._items) + index
        self._on_collection_changed(CollectionChange(ChangeAction.REPLACE, (value,), (old_item,), position))

    def __delitem__(self, index) -> None:
        if isinstance(index, slice):
            old_items = tuple(self._items[index])
            if not old_items:
                return
            del self._items[index]
            self._on_collection_changed(CollectionChange(ChangeAction.REMOVE, (), old_items))
            return

        old_item = self._items[index]
        position = index if index >= 0 else len(self._items) + index
        del self._items[index]
        self._on_collection_changed(CollectionChange(ChangeAction.REMOVE, (), (old_item,), position))

    def clear(self) -> None:
        old_items = tuple(self._items)
        self._items.clear()
        self._on_collection_changed(CollectionChange(ChangeAction.RESET, (), old_items))

    def reverse(self) -> None:
        if len(self._items) < 2:
            return
        old_items = tuple(self._items)
        self._items.reverse()
        self._on_collection_changed(CollectionChange(ChangeAction.RESET, tuple(self._items), old_items))

    def move(self, old_index: int, new_index: int) -> None:
        """Move the item at old_index to new_index. Order changes do not count as changes."""
        item = self._items.pop(old_index)
        self._items.insert(new_index, item)
        self._on_collection_changed(CollectionChange(ChangeAction.MOVE, (item,), (item,), new_index))

    # ==================== PARTITIONS / WIRING ====================

    def _check_items(self, values: Iterable[Any], replacing: Tuple[Any, ...] = ()) -> List[TrackingObject]:
        """Validate items about to enter the live sequence.

        Each item may appear only once: an item already live (other than one in
        replacing) or repeated within values raises ValueError.
        """
        values = list(values)
        replaced_ids = {id(item) for item in replacing}
        live_ids = {id(item) for item in self._items} - replaced_ids
        seen = set()
        for item in values:
            if not isinstance(item, TrackingObject):
                raise TypeError(
                    f"{type(self).__name__} items must be tracking objects, got {type(item).__name__}"
                )
            if id(item) in live_ids or id(item) in seen:
                raise ValueError(f"{item!r} is already in the collection")
            seen.add(id(item))
        return values

    def _partition_ids(self) -> Tuple[List[int], List[int], List[int]]:
        return (
            [id(item) for item in self._added],
            [id(item) for item in self._removed],
            [id(item) for item in self._modified],
        )

    def _recompute_partitions(self) -> None:
        baseline_ids = {id(item) for item in self._baseline}
        live_ids = {id(item) for item in self._items}
        self._added = _unique(item for item in self._items if id(item) not in baseline_ids)
        self._removed = _unique(item for item in self._baseline if id(item) not in live_ids)
        self._modified = _unique(
            item for item in self._items if id(item) in baseline_ids and item.is_changed
        )

    def _sync_item_wiring(self) -> None:
        live = {id(item): item for item in self._items}
        for key in list(self._item_subscriptions):
            if key not in live:
                _, subscription = self._item_subscriptions.pop(key)
                subscription.dispose()
        for key, item in live.items():
            if key not in self._item_subscriptions:
                subscription = item.on_property_changed(self._on_item_property_changed)
                self._item_subscriptions[key] = (item, subscription)

    def _on_collection_changed(self, change: CollectionChange) -> None:
        added_before, removed_before, modified_before = self._partition_ids()
        count_before = len(self._items) - len(change.new_items) + len(change.old_items)

        self._recompute_partitions()
        self._sync_item_wiring()
        logger.debug(
            f"Collection changed: action={change.action.value} count={len(self._items)} "
            f"added={len(self._added)} removed={len(self._removed)} modified={len(self._modified)}"
        )

        self._fire_collection_changed(change)
        if len(self._items) != count_before:
            self._notify_property_changed(COUNT)
        added_after, removed_after, modified_after = self._partition_ids()
        if added_after != added_before:
            self._notify_property_changed(ADDED_ITEMS)
        if removed_after != removed_before:
            self._notify_property_changed(REMOVED_ITEMS)
        if modified_after != modified_before:
            self._notify_property_changed(MODIFIED_ITEMS)
        self._publish_aggregates()

    def _on_item_property_changed(self, sender: TrackingObject, property_name: str) -> None:
        if property_name == IS_VALID:
            self._publish_aggregates()
            return
        if any(item is sender for item in self._added):
            # Baseline of an added item is "did not exist"; edits never make it modified
            return

        in_modified = any(item is sender for item in self._modified)
        if sender.is_changed and not in_modified:
            self._modified.append(sender)
            self._notify_property_changed(MODIFIED_ITEMS)
        elif not sender.is_changed and in_modified:
            del self._modified[_index_of(self._modified, sender)]
            self._notify_property_changed(MODIFIED_ITEMS)
        self._publish_aggregates()
