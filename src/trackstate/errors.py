"""
Error types and the per-node validation error aggregator.

Two disjoint classes of failure:
- Structural (programmer) errors are raised immediately: TrackingError and subclasses.
- Data validation errors are never raised. They are collected in an ErrorAggregator
  and exposed through get_errors() / has_errors / is_valid.
"""
import logging
from typing import Callable, Dict, Iterable, List, Mapping, Optional

logger = logging.getLogger(__name__)


class TrackingError(Exception):
    """Base class for structural errors raised by tracking nodes and collections."""


class MissingMemberError(TrackingError, ValueError):
    """A required model, or a required nested member of it, is absent."""

    def __init__(self, member: str, message: Optional[str] = None):
        self.member = member
        super().__init__(message or f"The {member} is mandatory!")


class UnknownPropertyError(TrackingError, AttributeError):
    """Property identifier not present in a node's accessor table."""

    def __init__(self, property_name: str, node_type: type):
        self.property_name = property_name
        self.node_type = node_type
        super().__init__(f"{node_type.__name__} has no tracked property {property_name!r}")


class OwnershipError(TrackingError):
    """A tracking object was registered under a second parent."""


def _dedupe(messages: Iterable[str]) -> List[str]:
    seen = set()
    unique = []
    for message in messages:
        if message not in seen:
            seen.add(message)
            unique.append(message)
    return unique


class ErrorAggregator:
    """
    Map of property name -> validation messages with change notification.

    Notifications are fine-grained: on_errors_changed(property_name) fires once
    for each property whose message list actually changed, never for untouched
    properties. The empty string key holds node-level errors that name no property.
    """

    def __init__(self, on_errors_changed: Optional[Callable[[str], None]] = None):
        self._errors: Dict[str, List[str]] = {}
        self._on_errors_changed = on_errors_changed

    @property
    def has_errors(self) -> bool:
        return bool(self._errors)

    @property
    def properties_with_errors(self) -> List[str]:
        return list(self._errors)

    def get_errors(self, property_name: Optional[str]) -> List[str]:
        """Return a copy of the messages for a property (empty list if none)."""
        return list(self._errors.get(property_name or "", ()))

    def as_dict(self) -> Dict[str, List[str]]:
        return {name: list(messages) for name, messages in self._errors.items()}

    def set_errors(self, property_name: str, messages: Iterable[str]) -> None:
        """Replace the messages of one property. An empty list clears it."""
        new_messages = _dedupe(messages)
        if self._errors.get(property_name, []) == new_messages:
            return
        if new_messages:
            self._errors[property_name] = new_messages
        else:
            self._errors.pop(property_name, None)
        self._fire(property_name)

    def replace_all(self, errors: Mapping[str, Iterable[str]]) -> List[str]:
        """Swap in the result of a full validation pass.

        Returns:
            Property names whose message list changed (each notified exactly once).
        """
        new_errors = {name: _dedupe(messages) for name, messages in errors.items()}
        new_errors = {name: messages for name, messages in new_errors.items() if messages}

        touched = [
            name for name in list(self._errors) + [n for n in new_errors if n not in self._errors]
            if self._errors.get(name) != new_errors.get(name)
        ]
        self._errors = new_errors
        for name in touched:
            self._fire(name)
        return touched

    def clear_all(self) -> None:
        cleared = list(self._errors)
        self._errors = {}
        for name in cleared:
            self._fire(name)

    def _fire(self, property_name: str) -> None:
        logger.debug(f"Errors changed: property={property_name!r} messages={self._errors.get(property_name, [])}")
        if self._on_errors_changed is not None:
            self._on_errors_changed(property_name)
