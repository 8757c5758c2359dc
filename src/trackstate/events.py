"""
Change notification plumbing and the TrackingObject contract.

Every tracking object exposes a property-changed channel. Subscribers receive
(sender, property_name). The empty property name is the catch-all "re-read
everything" signal fired by accept_changes() / reject_changes().

Parent/child wiring is an explicit observer graph: every subscription returns a
Subscription handle and every detach disposes it, so a child that leaves its
parent stops notifying it.
"""
from abc import ABC, abstractmethod
import logging
from typing import Any, Callable, List, Optional

from trackstate.config import get_tracking_config
from trackstate.errors import OwnershipError

logger = logging.getLogger(__name__)

IS_CHANGED = "is_changed"
IS_VALID = "is_valid"
ALL_PROPERTIES = ""

PropertyChangedCallback = Callable[[Any, str], None]


def changed_flag_name(property_name: str) -> str:
    """Identifier of the per-property changed-flag signal, e.g. 'city_is_changed'."""
    return f"{property_name}_{IS_CHANGED}"


class Subscription:
    """Disposable handle for one callback registered in a callback list."""

    def __init__(self, callbacks: List[Callable], callback: Callable):
        self._callbacks = callbacks
        self._callback = callback

    @property
    def active(self) -> bool:
        return self._callbacks is not None and self._callback in self._callbacks

    def dispose(self) -> None:
        """Remove the callback. Safe to call more than once."""
        if self._callbacks is not None and self._callback in self._callbacks:
            self._callbacks.remove(self._callback)
        self._callbacks = None

    def __enter__(self) -> 'Subscription':
        return self

    def __exit__(self, *exc_info) -> None:
        self.dispose()


def fire_callbacks(callbacks: List[Callable], kind: str, *args: Any) -> None:
    """Invoke callbacks on a snapshot of the list (best-effort)."""
    for callback in list(callbacks):
        try:
            callback(*args)
        except Exception as e:
            logger.warning(f"Error in {kind} callback: {e}")


def subscribe(callbacks: List[Callable], callback: Callable) -> Subscription:
    """Append callback unless an equal one is already registered."""
    if callback not in callbacks:
        callbacks.append(callback)
    return Subscription(callbacks, callback)


class Observable:
    """Property-changed notification source."""

    def __init__(self) -> None:
        self._property_changed_callbacks: List[PropertyChangedCallback] = []

    def on_property_changed(self, callback: PropertyChangedCallback) -> Subscription:
        """Subscribe to property-changed notifications.

        Args:
            callback: Called as callback(sender, property_name).

        Returns:
            Subscription whose dispose() unsubscribes.
        """
        return subscribe(self._property_changed_callbacks, callback)

    def off_property_changed(self, callback: PropertyChangedCallback) -> None:
        """Unsubscribe from property-changed notifications."""
        if callback in self._property_changed_callbacks:
            self._property_changed_callbacks.remove(callback)

    def _notify_property_changed(self, property_name: str) -> None:
        fire_callbacks(self._property_changed_callbacks, "property_changed", self, property_name)


class TrackingObject(Observable, ABC):
    """
    Capability set shared by TrackingNode and TrackingCollection.

    Aggregate flags are published on flip only: _publish_aggregates() compares
    is_changed / is_valid with the values last published and fires a
    notification for each one whose truth value changed.
    """

    def __init__(self) -> None:
        super().__init__()
        self._owner: Optional['TrackingObject'] = None
        self._published_is_changed = False
        self._published_is_valid = True

    @property
    @abstractmethod
    def is_changed(self) -> bool:
        """True if this object or anything below it differs from its baseline."""

    @property
    @abstractmethod
    def is_valid(self) -> bool:
        """True if this object and everything below it has no validation errors."""

    @abstractmethod
    def accept_changes(self) -> None:
        """Commit: make the current state the new baseline, recursively."""

    @abstractmethod
    def reject_changes(self) -> None:
        """Rollback: restore the last accepted baseline, recursively."""

    @property
    def owner(self) -> Optional['TrackingObject']:
        return self._owner

    def _snapshot_aggregates(self) -> None:
        """Record current aggregates as published without notifying (end of construction)."""
        self._published_is_changed = self.is_changed
        self._published_is_valid = self.is_valid

    def _publish_aggregates(self) -> None:
        is_changed = self.is_changed
        is_valid = self.is_valid
        if is_changed != self._published_is_changed:
            self._published_is_changed = is_changed
            self._notify_property_changed(IS_CHANGED)
        if is_valid != self._published_is_valid:
            self._published_is_valid = is_valid
            self._notify_property_changed(IS_VALID)

    def _attach_owner(self, owner: 'TrackingObject') -> None:
        if self._owner is owner:
            return
        if self._owner is not None and get_tracking_config().enforce_single_owner:
            raise OwnershipError(
                f"{type(self).__name__} is already owned by {type(self._owner).__name__}; "
                f"cannot register it under {type(owner).__name__}"
            )
        self._owner = owner

    def _detach_owner(self, owner: 'TrackingObject') -> None:
        if self._owner is owner:
            self._owner = None
