"""
Tracking configuration.

Provides the process-wide default TrackingConfig and a contextvars-based
override scope, so a caller can change how rollback and equality behave for
a block of code without touching the default.

DUAL LAYER PATTERN:
- _default_config: process default (set_tracking_config)
- _scoped_config: ContextVar override (tracking_config(...))

Settings are read when an operation runs, not when a node is constructed.
"""

from contextlib import contextmanager
from dataclasses import dataclass, replace
import contextvars
import logging
import operator
from typing import Any, Callable, Generator, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrackingConfig:
    """Behaviour switches for nodes and collections.

    Attributes:
        restore_removed_positions: If False (default), reject_changes() re-inserts
            removed items at the end of the collection. If True, the collection
            is restored to the exact baseline order.
        enforce_single_owner: Raise OwnershipError when a tracking object is
            registered under a second parent.
        values_equal: Equality used by set() for the no-op check and for
            detecting a revert to the original value.
    """
    restore_removed_positions: bool = False
    enforce_single_owner: bool = True
    values_equal: Callable[[Any, Any], bool] = operator.eq


_default_config = TrackingConfig()
_scoped_config: contextvars.ContextVar[Optional[TrackingConfig]] = contextvars.ContextVar(
    'trackstate_scoped_config', default=None
)


def get_tracking_config() -> TrackingConfig:
    """Return the active config: innermost tracking_config() scope, else the default."""
    scoped = _scoped_config.get()
    return scoped if scoped is not None else _default_config


def set_tracking_config(config: TrackingConfig) -> None:
    """Replace the process default config.

    Args:
        config: The new default. Scoped overrides still take precedence.
    """
    global _default_config
    if not isinstance(config, TrackingConfig):
        raise TypeError(f"Expected TrackingConfig, got {type(config).__name__}")
    _default_config = config
    logger.debug(f"Default tracking config set: {config}")


@contextmanager
def tracking_config(**overrides: Any) -> Generator[TrackingConfig, None, None]:
    """
    Scope config overrides to a block.

    Overrides are applied on top of the currently active config, so scopes nest.

    Usage:
        with tracking_config(restore_removed_positions=True):
            customer.reject_changes()  # removed emails go back to their old index
    """
    config = replace(get_tracking_config(), **overrides)
    token = _scoped_config.set(config)
    try:
        yield config
    finally:
        _scoped_config.reset(token)
