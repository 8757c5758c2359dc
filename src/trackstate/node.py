"""
TrackingNode: change-tracking, validating wrapper around one model instance.

Lifecycle:
- Created by wrapping a model; the model is referenced, never copied
- Nested complex members and nested collections are built eagerly during construction
- An initial validation pass runs before first use
- dispose() detaches the notification wiring when the owning scope goes away

Core Attributes:
- model: the wrapped instance
- _baseline: property name -> original value, present only while that property is dirty
- _children: registered nested TrackingObjects (complex nodes and collections)
- _errors: ErrorAggregator, recomputed on every validation pass

Everything else is derived:
- is_changed -> bool(_baseline) or any child is_changed
- is_valid -> no errors and every child is_valid
"""
import logging
from typing import Any, ClassVar, Dict, Iterable, Iterator, List, MutableSequence, Optional, Tuple

from trackstate.changeset import ChangeSet
from trackstate.collection import CollectionChange, TrackingCollection
from trackstate.config import get_tracking_config
from trackstate.errors import ErrorAggregator, MissingMemberError, UnknownPropertyError
from trackstate.events import (
    ALL_PROPERTIES,
    IS_CHANGED,
    IS_VALID,
    Subscription,
    TrackingObject,
    changed_flag_name,
    fire_callbacks,
    subscribe,
)
from trackstate.fields import FieldAccessor, NestedProperty, collect_declarations, install_flag_properties
from trackstate.validation import ValidationResult, group_results

logger = logging.getLogger(__name__)

_BUBBLED = (IS_CHANGED, IS_VALID, ALL_PROPERTIES)


class TrackingNode(TrackingObject):
    """
    Wraps a mutable model for editing: per-property dirty tracking, nested
    tracking, validation and transactional accept/reject.

    Subclasses declare their properties with tracked(), nested() and
    nested_collection(), or wire children by hand in
    initialize_complex_properties() / initialize_collection_properties().
    Business rules go in validate().

    Example:
        class AddressNode(TrackingNode):
            city = tracked()

            def validate(self):
                if not self.city:
                    yield ValidationResult("The city is mandatory!", ("city",))

        address = AddressNode(Address(city="Madrid"))
        address.city = "London"
        address.is_changed            # True
        address.city_original         # "Madrid"
        address.reject_changes()
        address.city                  # "Madrid"
    """

    _accessors: ClassVar[Dict[str, FieldAccessor]] = {}
    _nested_members: ClassVar[Dict[str, NestedProperty]] = {}

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        cls._accessors, cls._nested_members = collect_declarations(cls)
        install_flag_properties(cls, list(cls._accessors))

    def __init__(self, model: Any):
        """
        Args:
            model: The instance to wrap. Must not be None.

        Raises:
            MissingMemberError: model is None, or a required nested member is absent.
        """
        if model is None:
            raise MissingMemberError("model")
        super().__init__()
        self._model = model
        self._baseline: Dict[str, Any] = {}
        self._children: List[TrackingObject] = []
        self._child_names: Dict[int, str] = {}
        self._child_subscriptions: Dict[int, List[Subscription]] = {}
        self._nested: Dict[str, Optional[TrackingObject]] = {}
        self._errors_changed_callbacks: List = []
        self._errors = ErrorAggregator(self._notify_errors_changed)

        for name, member in self._nested_members.items():
            self._nested[name] = member.build(self)
        self.initialize_complex_properties()
        self.initialize_collection_properties()

        self._run_validation()
        self._snapshot_aggregates()
        logger.debug(
            f"Created {type(self).__name__}: model={type(model).__name__} "
            f"fields={list(self._accessors)} children={len(self._children)}"
        )

    # ==================== EXTENSION POINTS ====================

    def initialize_complex_properties(self) -> None:
        """Hook: build and register_complex() hand-wired nested nodes."""

    def initialize_collection_properties(self) -> None:
        """Hook: build and register_collection() hand-wired nested collections."""

    def validate(self) -> Iterable[ValidationResult]:
        """Hook: yield a ValidationResult per failed business rule.

        Called after every mutation; must not mutate the node.
        """
        return ()

    # ==================== PROPERTIES ====================

    @property
    def model(self) -> Any:
        return self._model

    @property
    def is_changed(self) -> bool:
        return bool(self._baseline) or any(child.is_changed for child in self._children)

    @property
    def is_valid(self) -> bool:
        return not self._errors.has_errors and all(child.is_valid for child in self._children)

    @property
    def changed_properties(self) -> Tuple[str, ...]:
        """Dirty scalar properties, in the order they became dirty."""
        return tuple(self._baseline)

    @property
    def children(self) -> Tuple[TrackingObject, ...]:
        return tuple(self._children)

    def named_children(self) -> Iterator[Tuple[str, TrackingObject]]:
        """Yield (name, child). Children registered without a name get a positional one."""
        for index, child in enumerate(self._children):
            yield self._child_names.get(id(child), f"{type(child).__name__.lower()}_{index}"), child

    # ==================== GET / SET ====================

    def _accessor(self, property_name: str) -> FieldAccessor:
        try:
            return self._accessors[property_name]
        except KeyError:
            raise UnknownPropertyError(property_name, type(self)) from None

    def get(self, property_name: str) -> Any:
        """Read the current value from the model. No side effects."""
        return self._accessor(property_name).get(self._model)

    def set(self, property_name: str, value: Any) -> None:
        """Write a value through to the model, tracking its original.

        No-op when value equals the current value. The first differing write
        records the pre-write value as the original; writing the original back
        removes the record (the property is clean again).
        """
        accessor = self._accessor(property_name)
        values_equal = get_tracking_config().values_equal
        current_value = accessor.get(self._model)

        # EARLY EXIT: no change, no baseline update, no notification
        if values_equal(current_value, value):
            return

        if property_name not in self._baseline:
            self._baseline[property_name] = current_value
            logger.debug(f"Dirty: {type(self).__name__}.{property_name} original={current_value!r}")
        elif values_equal(self._baseline[property_name], value):
            del self._baseline[property_name]
            logger.debug(f"Reverted: {type(self).__name__}.{property_name}")

        accessor.set(self._model, value)
        self._run_validation()
        self._notify_property_changed(property_name)
        self._notify_property_changed(changed_flag_name(property_name))
        self._publish_aggregates()

    def get_original(self, property_name: str) -> Any:
        """Baseline value if the property is dirty, otherwise its current value."""
        accessor = self._accessor(property_name)
        if property_name in self._baseline:
            return self._baseline[property_name]
        return accessor.get(self._model)

    def is_property_changed(self, property_name: str) -> bool:
        self._accessor(property_name)
        return property_name in self._baseline

    # ==================== CHILD REGISTRATION ====================

    def require(self, value: Any, member: str, message: Optional[str] = None) -> Any:
        """Fail fast on an absent required member; returns value otherwise."""
        if value is None:
            raise MissingMemberError(member, message)
        return value

    def register_complex(self, child: TrackingObject, name: Optional[str] = None) -> None:
        """Register a nested node so its changes and validity bubble up. Idempotent."""
        if not isinstance(child, TrackingObject):
            raise TypeError(f"Expected a tracking object, got {type(child).__name__}")
        self._register_child(child, name)

    def register_collection(
        self,
        wrapper: TrackingCollection,
        backing: MutableSequence,
        name: Optional[str] = None,
    ) -> None:
        """Register a nested collection mirrored into a list on the model. Idempotent.

        On every structural change of wrapper, backing is rewritten in place to
        hold the wrapped models in wrapper order, and this node re-validates.
        """
        if not isinstance(wrapper, TrackingCollection):
            raise TypeError(f"Expected a TrackingCollection, got {type(wrapper).__name__}")
        if backing is None:
            raise MissingMemberError(name or "collection")
        if not self._register_child(wrapper, name):
            return

        def sync_backing(sender: TrackingCollection, change: CollectionChange) -> None:
            backing[:] = [getattr(item, 'model', item) for item in sender]
            self._run_validation()
            self._publish_aggregates()

        self._child_subscriptions[id(wrapper)].append(wrapper.on_collection_changed(sync_backing))

    def _register_child(self, child: TrackingObject, name: Optional[str]) -> bool:
        if any(existing is child for existing in self._children):
            return False
        child._attach_owner(self)
        self._children.append(child)
        if name:
            self._child_names[id(child)] = name
        self._child_subscriptions[id(child)] = [child.on_property_changed(self._on_child_property_changed)]
        return True

    def _on_child_property_changed(self, sender: TrackingObject, property_name: str) -> None:
        if property_name in _BUBBLED:
            self._publish_aggregates()

    # ==================== ACCEPT / REJECT ====================

    def accept_changes(self) -> None:
        """Make the current state the baseline for this node and every child."""
        was_changed = self.is_changed
        self._baseline.clear()
        for child in list(self._children):
            child.accept_changes()
        logger.debug(f"Accepted changes: {type(self).__name__}")

        if was_changed:
            self._notify_property_changed(ALL_PROPERTIES)
        self._publish_aggregates()

    def reject_changes(self) -> None:
        """Restore every dirty property and every child to the last accepted baseline."""
        was_changed = self.is_changed
        for property_name, original_value in list(self._baseline.items()):
            self._accessors[property_name].set(self._model, original_value)
        restored = list(self._baseline)
        self._baseline.clear()
        for child in list(self._children):
            child.reject_changes()
        self._run_validation()
        logger.debug(f"Rejected changes: {type(self).__name__} restored={restored}")

        if was_changed:
            self._notify_property_changed(ALL_PROPERTIES)
        self._publish_aggregates()

    def get_changes(self) -> ChangeSet:
        """Summarise pending changes of this node and its children."""
        return ChangeSet.from_node(self)

    # ==================== VALIDATION / ERRORS ====================

    def revalidate(self) -> bool:
        """Run a full validation pass on demand. Returns is_valid."""
        self._run_validation()
        self._publish_aggregates()
        return self.is_valid

    def _field_results(self) -> Iterator[ValidationResult]:
        for name, accessor in self._accessors.items():
            for message in accessor.check(accessor.get(self._model)):
                yield ValidationResult(message, (name,))

    def _run_validation(self) -> None:
        results = list(self._field_results())
        results.extend(self.validate() or ())
        self._errors.replace_all(group_results(results))

    @property
    def has_errors(self) -> bool:
        """True if this node itself has errors (children not included)."""
        return self._errors.has_errors

    @property
    def errors(self) -> Dict[str, List[str]]:
        return self._errors.as_dict()

    def get_errors(self, property_name: Optional[str]) -> List[str]:
        """Current messages for a property; empty list if none. "" or None gives node-level errors."""
        return self._errors.get_errors(property_name)

    def on_errors_changed(self, callback) -> Subscription:
        """Subscribe to per-property error changes. Called as callback(sender, property_name)."""
        return subscribe(self._errors_changed_callbacks, callback)

    def off_errors_changed(self, callback) -> None:
        if callback in self._errors_changed_callbacks:
            self._errors_changed_callbacks.remove(callback)

    def _notify_errors_changed(self, property_name: str) -> None:
        fire_callbacks(self._errors_changed_callbacks, "errors_changed", self, property_name)

    # ==================== DISPOSAL ====================

    def dispose(self) -> None:
        """Detach from every child, recursively. Safe to call more than once."""
        for child in list(self._children):
            for subscription in self._child_subscriptions.pop(id(child), []):
                subscription.dispose()
            child._detach_owner(self)
            dispose_child = getattr(child, 'dispose', None)
            if dispose_child is not None:
                dispose_child()
        logger.debug(f"Disposed {type(self).__name__}")

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(model={type(self._model).__name__}, "
            f"is_changed={self.is_changed}, is_valid={self.is_valid})"
        )
