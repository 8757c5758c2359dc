"""
Change tracking and validity aggregation for editable object graphs.

This framework wraps mutable domain objects for editing forms: it records which
properties are dirty, tracks nested objects and nested collections recursively,
aggregates validation errors bottom-up, and commits or rolls back the whole
wrapped graph in one call.

Key Features:
- Per-property dirty tracking with symmetric revert (change then change back = clean)
- Nested complex members and collections, tracked recursively
- Identity-based added/removed/modified classification for collections
- Attribute-style field rules plus custom validate() rules
- accept_changes() / reject_changes() across the whole subtree
- Fine-grained property-changed and errors-changed notifications

Quick Start:
    >>> from trackstate import TrackingNode, tracked, nested_collection, ValidationResult
    >>>
    >>> class EmailNode(TrackingNode):
    ...     email = tracked()
    >>>
    >>> class CustomerNode(TrackingNode):
    ...     first_name = tracked()
    ...     emails = nested_collection(EmailNode)
    ...
    ...     def validate(self):
    ...         if not self.emails:
    ...             yield ValidationResult("A customer must have an email!", ("emails",))
    >>>
    >>> customer = CustomerNode(customer_model)
    >>> customer.first_name = "Carlos"
    >>> customer.emails[0].email = "new@domain.com"
    >>> customer.is_changed
    True
    >>> customer.reject_changes()   # both edits rolled back

Modules:
    - node: TrackingNode, the per-model wrapper
    - collection: TrackingCollection, identity-based change-tracking list
    - fields: tracked() / nested() / nested_collection() declarations
    - validation: ValidationResult and attribute-style rules
    - errors: ErrorAggregator and structural error types
    - events: notification plumbing and the TrackingObject contract
    - changeset: read-only summaries of pending changes
    - config: TrackingConfig and scoped overrides
"""

# Contract and notifications
from trackstate.events import (
    ALL_PROPERTIES,
    IS_CHANGED,
    IS_VALID,
    Observable,
    Subscription,
    TrackingObject,
    changed_flag_name,
)

# Errors
from trackstate.errors import (
    ErrorAggregator,
    MissingMemberError,
    OwnershipError,
    TrackingError,
    UnknownPropertyError,
)

# Configuration
from trackstate.config import (
    TrackingConfig,
    get_tracking_config,
    set_tracking_config,
    tracking_config,
)

# Validation
from trackstate.validation import (
    EmailAddress,
    FieldRule,
    MaxLength,
    MinLength,
    Pattern,
    Range,
    Required,
    ValidationResult,
    group_results,
)

# Declarations
from trackstate.fields import FieldAccessor, nested, nested_collection, tracked

# Core
from trackstate.collection import ChangeAction, CollectionChange, TrackingCollection
from trackstate.node import TrackingNode

# Change summaries
from trackstate.changeset import ChangeSet, CollectionChangeSet, PropertyChange

__all__ = [
    # Contract and notifications
    'ALL_PROPERTIES',
    'IS_CHANGED',
    'IS_VALID',
    'Observable',
    'Subscription',
    'TrackingObject',
    'changed_flag_name',
    # Errors
    'ErrorAggregator',
    'MissingMemberError',
    'OwnershipError',
    'TrackingError',
    'UnknownPropertyError',
    # Configuration
    'TrackingConfig',
    'get_tracking_config',
    'set_tracking_config',
    'tracking_config',
    # Validation
    'EmailAddress',
    'FieldRule',
    'MaxLength',
    'MinLength',
    'Pattern',
    'Range',
    'Required',
    'ValidationResult',
    'group_results',
    # Declarations
    'FieldAccessor',
    'nested',
    'nested_collection',
    'tracked',
    # Core
    'ChangeAction',
    'CollectionChange',
    'TrackingCollection',
    'TrackingNode',
    # Change summaries
    'ChangeSet',
    'CollectionChangeSet',
    'PropertyChange',
]

__version__ = '1.0.0'
__description__ = 'Change tracking and validity aggregation for editable object graphs'
