"""
Declarative field descriptors and the per-class accessor table.

A TrackingNode subclass declares what it tracks:

    class AddressNode(TrackingNode):
        city = tracked(validators=[Required()])
        street = tracked()

    class CustomerNode(TrackingNode):
        first_name = tracked()
        address = nested(AddressNode)
        emails = nested_collection(EmailNode)

The declared attribute name is the property identifier everywhere: in the
baseline map, in get()/set(), and in notification payloads. The accessor table
is built once per class (see collect_declarations), never per instance.
"""
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Sequence, Tuple, Type, TYPE_CHECKING

from trackstate.errors import MissingMemberError

if TYPE_CHECKING:
    from trackstate.collection import TrackingCollection
    from trackstate.node import TrackingNode


FieldRuleCallable = Callable[[Any, str], Optional[str]]


@dataclass(frozen=True)
class FieldAccessor:
    """Get/set closures for one model attribute, plus its declared rules."""
    name: str
    source: str
    display_name: str
    validators: Tuple[FieldRuleCallable, ...] = ()
    getter: Callable[[Any], Any] = field(default=None, repr=False, compare=False)
    setter: Callable[[Any, Any], None] = field(default=None, repr=False, compare=False)

    @classmethod
    def for_attribute(
        cls,
        name: str,
        source: Optional[str] = None,
        display_name: Optional[str] = None,
        validators: Sequence[FieldRuleCallable] = (),
    ) -> 'FieldAccessor':
        source = source or name

        def getter(model: Any) -> Any:
            return getattr(model, source)

        def setter(model: Any, value: Any) -> None:
            setattr(model, source, value)

        return cls(
            name=name,
            source=source,
            display_name=display_name or name,
            validators=tuple(validators),
            getter=getter,
            setter=setter,
        )

    def get(self, model: Any) -> Any:
        return self.getter(model)

    def set(self, model: Any, value: Any) -> None:
        self.setter(model, value)

    def check(self, value: Any) -> list:
        """Run the declared rules against value, returning failure messages."""
        messages = []
        for rule in self.validators:
            message = rule(value, self.display_name)
            if message:
                messages.append(message)
        return messages


class TrackedProperty:
    """Descriptor routing attribute access on a node to node.get()/node.set()."""

    def __init__(
        self,
        source: Optional[str] = None,
        *,
        validators: Sequence[FieldRuleCallable] = (),
        display_name: Optional[str] = None,
    ):
        self.source = source
        self.validators = tuple(validators)
        self.display_name = display_name
        self.name: Optional[str] = None

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name

    def accessor(self) -> FieldAccessor:
        return FieldAccessor.for_attribute(self.name, self.source, self.display_name, self.validators)

    def __get__(self, node: Optional['TrackingNode'], owner: type) -> Any:
        if node is None:
            return self
        return node.get(self.name)

    def __set__(self, node: 'TrackingNode', value: Any) -> None:
        node.set(self.name, value)


class NestedProperty:
    """Read-only descriptor for a child node built from a model attribute."""

    def __init__(
        self,
        node_type: Type['TrackingNode'],
        source: Optional[str] = None,
        *,
        required: bool = True,
        message: Optional[str] = None,
    ):
        self.node_type = node_type
        self.source = source
        self.required = required
        self.message = message
        self.name: Optional[str] = None

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name
        if self.source is None:
            self.source = name

    def __get__(self, node: Optional['TrackingNode'], owner: type) -> Any:
        if node is None:
            return self
        return node._nested.get(self.name)

    def __set__(self, node: 'TrackingNode', value: Any) -> None:
        raise AttributeError(f"{type(node).__name__}.{self.name} is read-only; edit the nested node instead")

    def _read_member(self, node: 'TrackingNode') -> Any:
        value = getattr(node.model, self.source)
        if value is None and self.required:
            raise MissingMemberError(self.name, self.message)
        return value

    def build(self, node: 'TrackingNode') -> Optional['TrackingNode']:
        value = self._read_member(node)
        if value is None:
            return None
        child = self.node_type(value)
        node.register_complex(child, name=self.name)
        return child


class NestedCollectionProperty(NestedProperty):
    """Child TrackingCollection mirroring a list attribute on the model.

    node_type is the item node type; each model element is wrapped in one.
    """

    def build(self, node: 'TrackingNode') -> Optional['TrackingCollection']:
        from trackstate.collection import TrackingCollection

        items = self._read_member(node)
        if items is None:
            return None
        wrapper = TrackingCollection(self.node_type(item) for item in items)
        node.register_collection(wrapper, items, name=self.name)
        return wrapper


def tracked(
    source: Optional[str] = None,
    *,
    validators: Sequence[FieldRuleCallable] = (),
    display_name: Optional[str] = None,
) -> TrackedProperty:
    """Declare a tracked scalar property."""
    return TrackedProperty(source, validators=validators, display_name=display_name)


def nested(
    node_type: Type['TrackingNode'],
    source: Optional[str] = None,
    *,
    required: bool = True,
    message: Optional[str] = None,
) -> NestedProperty:
    """Declare a nested complex member wrapped in node_type."""
    return NestedProperty(node_type, source, required=required, message=message)


def nested_collection(
    item_type: Type['TrackingNode'],
    source: Optional[str] = None,
    *,
    required: bool = True,
    message: Optional[str] = None,
) -> NestedCollectionProperty:
    """Declare a nested list member whose items are wrapped in item_type."""
    return NestedCollectionProperty(item_type, source, required=required, message=message)


def collect_declarations(cls: type) -> Tuple[Dict[str, FieldAccessor], Dict[str, NestedProperty]]:
    """Build the accessor table and nested member table for a node class.

    Walks the MRO base-first so subclasses extend, and may override, their
    parents' declarations. Complex members come before collections.
    """
    accessors: Dict[str, FieldAccessor] = {}
    complex_members: Dict[str, NestedProperty] = {}
    collection_members: Dict[str, NestedProperty] = {}

    for klass in reversed(cls.__mro__):
        for attr_name, value in vars(klass).items():
            if isinstance(value, TrackedProperty):
                accessors[attr_name] = value.accessor()
            elif isinstance(value, NestedCollectionProperty):
                collection_members[attr_name] = value
            elif isinstance(value, NestedProperty):
                complex_members[attr_name] = value

    nested_members = dict(complex_members)
    nested_members.update(collection_members)

    # A declaration must not shadow node API such as model, errors or set()
    declared = set(accessors) | set(nested_members)
    for klass in cls.__mro__:
        for attr_name in declared.intersection(vars(klass)):
            if not isinstance(vars(klass)[attr_name], (TrackedProperty, NestedProperty)):
                raise TypeError(
                    f"{cls.__name__}.{attr_name} collides with {klass.__name__}.{attr_name}; "
                    f"rename the declaration and pass the model attribute as source"
                )
    return accessors, nested_members


def install_flag_properties(cls: type, names: Sequence[str]) -> None:
    """Add <name>_is_changed and <name>_original read-only properties to cls."""
    for name in names:
        flag_attr = f"{name}_is_changed"
        original_attr = f"{name}_original"
        if not hasattr(cls, flag_attr):
            setattr(cls, flag_attr, property(lambda self, n=name: self.is_property_changed(n)))
        if not hasattr(cls, original_attr):
            setattr(cls, original_attr, property(lambda self, n=name: self.get_original(n)))
