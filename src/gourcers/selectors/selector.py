"""Single include/exclude rule.

A rule line reads ``[!]field:value``. The field is one of ``*``, ``name``,
``owner``, ``full_name`` or ``is_fork``; the value is everything after the
first ``:``, kept verbatim. A leading ``!`` turns the rule into an
exclusion.

Examples:
    ``*:*``, ``name:rust``, ``!owner:rust-lang``,
    ``full_name:rust-lang/rust``, ``!is_fork:true``
"""

from dataclasses import dataclass
from enum import Enum

from gourcers.models import Repository

INVERT_PREFIX = "!"
WILDCARD_RULE = "*:*"


class RuleParseError(ValueError):
    """Raised when a rule line cannot be parsed.

    Attributes:
        reason: What is wrong with the line.
        text: The raw rule text.
        line_number: 1-based line number within its source, if known.
        source: Where the rule came from (file path or ``--include``).
    """

    def __init__(
        self,
        reason: str,
        text: str,
        line_number: int | None = None,
        source: str | None = None,
    ) -> None:
        self.reason = reason
        self.text = text
        self.line_number = line_number
        self.source = source
        super().__init__(self._format())

    def _format(self) -> str:
        location = ""
        if self.source and self.line_number is not None:
            location = f"{self.source}, line {self.line_number}: "
        elif self.line_number is not None:
            location = f"line {self.line_number}: "
        elif self.source:
            location = f"{self.source}: "
        return f"{location}{self.reason} ({self.text!r})"

    def at(self, line_number: int, source: str | None = None) -> "RuleParseError":
        """Return a copy located at the given line of the given source."""
        return RuleParseError(self.reason, self.text, line_number, source)


class SelectorField(str, Enum):
    """Repository field a selector matches against."""

    ANY = "*"
    NAME = "name"
    OWNER = "owner"
    FULL_NAME = "full_name"
    IS_FORK = "is_fork"


BOOLEAN_FIELDS = frozenset({SelectorField.IS_FORK})
BOOLEAN_VALUES = ("true", "false")


@dataclass(frozen=True)
class Selector:
    """A parsed rule.

    A non-inverted selector marks matching repositories included; an
    inverted one marks them excluded.
    """

    field: SelectorField
    value: str
    inverted: bool = False

    def matches(self, repo: Repository) -> bool:
        """Check whether the repository matches this selector exactly."""
        if self.field is SelectorField.ANY:
            return True
        if self.field is SelectorField.NAME:
            return repo.name == self.value
        if self.field is SelectorField.OWNER:
            return repo.owner == self.value
        if self.field is SelectorField.FULL_NAME:
            return repo.full_name == self.value
        if self.field is SelectorField.IS_FORK:
            return repo.is_fork == (self.value == "true")
        msg = f"Unhandled selector field: {self.field}"
        raise AssertionError(msg)

    @property
    def effect(self) -> str:
        """``include`` or ``exclude``."""
        return "exclude" if self.inverted else "include"

    def describe(self) -> str:
        """Human readable condition, e.g. ``owner is 'rust-lang'``."""
        if self.field is SelectorField.ANY:
            return "any repository"
        return f"{self.field.value} is {self.value!r}"

    def __str__(self) -> str:
        prefix = INVERT_PREFIX if self.inverted else ""
        return f"{prefix}{self.field.value}:{self.value}"


def parse_selector(line: str) -> Selector:
    """Parse one rule line.

    Comment and blank line handling belongs to the caller; the value is
    taken verbatim up to the end of the line, so a trailing ``# comment``
    becomes part of it.

    Args:
        line: Rule text, e.g. ``!owner:rust-lang``.

    Returns:
        Parsed Selector.

    Raises:
        RuleParseError: If the line is empty, lacks a ``:`` separator, names
            an unknown field, has an empty value, or gives ``is_fork`` a
            value other than ``true``/``false``.
    """
    if not line.strip():
        raise RuleParseError("Empty rule", line)

    inverted = line.startswith(INVERT_PREFIX)
    body = line[len(INVERT_PREFIX) :] if inverted else line

    if body.startswith(WILDCARD_RULE):
        return Selector(SelectorField.ANY, "*", inverted)

    field_name, separator, value = body.partition(":")
    if not separator:
        raise RuleParseError("Missing ':' between field and value", line)

    try:
        field = SelectorField(field_name)
    except ValueError:
        allowed = ", ".join(f.value for f in SelectorField)
        msg = f"Unknown field {field_name!r} (expected one of {allowed})"
        raise RuleParseError(msg, line) from None

    if field is not SelectorField.ANY and not value:
        raise RuleParseError(f"Rule for {field.value!r} has no value", line)

    if field in BOOLEAN_FIELDS and value not in BOOLEAN_VALUES:
        msg = f"Value for {field.value!r} must be 'true' or 'false', got {value!r}"
        raise RuleParseError(msg, line)

    return Selector(field, value, inverted)
