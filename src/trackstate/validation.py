"""
Validation results and attribute-style field rules.

A TrackingNode validation pass runs, in order:
1. the rules declared on each tracked field (tracked(validators=[...]))
2. the node's own validate() generator

Both produce ValidationResult records that are regrouped by affected property.
Rules report data errors only; they never raise on bad data.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
import re
from typing import Any, Dict, Iterable, List, Optional, Pattern as RePattern, Tuple, Union


@dataclass(frozen=True)
class ValidationResult:
    """One failed rule: a message and the properties it applies to.

    An empty member_names tuple marks a node-level error (grouped under "").
    """
    message: str
    member_names: Tuple[str, ...] = ()

    def __post_init__(self):
        # Accept any iterable of names, including a bare string
        names = self.member_names
        if isinstance(names, str):
            names = (names,)
        object.__setattr__(self, 'member_names', tuple(names))


def group_results(results: Iterable[ValidationResult]) -> Dict[str, List[str]]:
    """Regroup results by property name, keeping first-seen message order."""
    grouped: Dict[str, List[str]] = {}
    for result in results:
        for name in result.member_names or ("",):
            messages = grouped.setdefault(name, [])
            if result.message not in messages:
                messages.append(result.message)
    return grouped


class FieldRule(ABC):
    """Base for attribute-style rules.

    Subclasses implement is_satisfied(); __call__ formats the message with
    {name} plus the rule's own parameters. A value the rule cannot evaluate
    (wrong type, for example) fails the rule.
    """
    default_message = "The {name} field is invalid."

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message

    @abstractmethod
    def is_satisfied(self, value: Any) -> bool:
        """True if value passes the rule."""

    def format_args(self) -> Dict[str, Any]:
        return {}

    def __call__(self, value: Any, display_name: str) -> Optional[str]:
        try:
            satisfied = self.is_satisfied(value)
        except (TypeError, ValueError):
            satisfied = False
        if satisfied:
            return None
        return self.message.format(name=display_name, **self.format_args())

    def __repr__(self) -> str:
        args = ', '.join(f"{k}={v!r}" for k, v in self.format_args().items())
        return f"{type(self).__name__}({args})"


class Required(FieldRule):
    """Rejects None, and blank strings unless allow_empty_strings is set."""
    default_message = "The {name} field is required."

    def __init__(self, allow_empty_strings: bool = False, message: Optional[str] = None):
        super().__init__(message)
        self.allow_empty_strings = allow_empty_strings

    def is_satisfied(self, value: Any) -> bool:
        if value is None:
            return False
        if isinstance(value, str) and not self.allow_empty_strings:
            return bool(value.strip())
        return True


class MaxLength(FieldRule):
    default_message = "The {name} field must have at most {length} characters."

    def __init__(self, length: int, message: Optional[str] = None):
        super().__init__(message)
        self.length = length

    def is_satisfied(self, value: Any) -> bool:
        return value is None or len(value) <= self.length

    def format_args(self) -> Dict[str, Any]:
        return {'length': self.length}


class MinLength(FieldRule):
    default_message = "The {name} field must have at least {length} characters."

    def __init__(self, length: int, message: Optional[str] = None):
        super().__init__(message)
        self.length = length

    def is_satisfied(self, value: Any) -> bool:
        return value is None or len(value) >= self.length

    def format_args(self) -> Dict[str, Any]:
        return {'length': self.length}


class Range(FieldRule):
    """Inclusive bounds. None passes (combine with Required to reject absence)."""
    default_message = "The {name} field must be between {minimum} and {maximum}."

    def __init__(self, minimum: Any, maximum: Any, message: Optional[str] = None):
        super().__init__(message)
        self.minimum = minimum
        self.maximum = maximum

    def is_satisfied(self, value: Any) -> bool:
        return value is None or self.minimum <= value <= self.maximum

    def format_args(self) -> Dict[str, Any]:
        return {'minimum': self.minimum, 'maximum': self.maximum}


class Pattern(FieldRule):
    """Whole-value regular expression match on str(value)."""
    default_message = "The {name} field must match '{pattern}'."

    def __init__(self, pattern: Union[str, RePattern], message: Optional[str] = None):
        super().__init__(message)
        self.regex = re.compile(pattern) if isinstance(pattern, str) else pattern

    def is_satisfied(self, value: Any) -> bool:
        return value is None or self.regex.fullmatch(str(value)) is not None

    def format_args(self) -> Dict[str, Any]:
        return {'pattern': self.regex.pattern}


class EmailAddress(FieldRule):
    """Single '@' that is neither the first nor the last character. None passes."""
    default_message = "The {name} field is not a valid e-mail address."

    def is_satisfied(self, value: Any) -> bool:
        if value is None:
            return True
        if not isinstance(value, str):
            return False
        at = value.find('@')
        return 0 < at < len(value) - 1 and value.count('@') == 1
