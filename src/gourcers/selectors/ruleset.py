"""Ordered rule evaluation.

Every repository starts excluded. Rules are applied in order and each
matching rule overwrites the running decision, so the last matching rule
wins. All rules are evaluated for every repository so the audit trail is
always complete.
"""

from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass
from pathlib import Path

from gourcers.models import Repository
from gourcers.selectors.selector import RuleParseError, Selector, parse_selector

COMMENT_PREFIX = "#"
CLI_SOURCE = "--include"


def _split_lines(text: str) -> list[str]:
    """Split on newlines only, dropping one trailing carriage return per line."""
    lines = text.split("\n")
    if lines[-1] == "":
        lines.pop()
    return [line.removesuffix("\r") for line in lines]


@dataclass(frozen=True)
class TrailEntry:
    """One rule's contribution to a repository's decision."""

    position: int
    selector: Selector
    matched: bool
    included: bool


@dataclass(frozen=True)
class Decision:
    """Final include/exclude verdict for one repository."""

    repo: Repository
    included: bool
    trail: tuple[TrailEntry, ...]

    @property
    def matched_entries(self) -> tuple[TrailEntry, ...]:
        """Trail entries whose rule matched, in rule order."""
        return tuple(entry for entry in self.trail if entry.matched)

    @property
    def deciding_entry(self) -> TrailEntry | None:
        """The last matching rule, or None when the default applied."""
        matched = self.matched_entries
        return matched[-1] if matched else None

    def explain(self) -> str:
        """Say which rule made the final call and what it overrode."""
        deciding = self.deciding_entry
        if deciding is None:
            return "excluded: no rule matched (default deny)"

        verdict = "included" if self.included else "excluded"
        text = f"{verdict} by rule {deciding.position} ({deciding.selector})"

        overridden = [
            entry
            for entry in self.matched_entries
            if entry.position < deciding.position
            and entry.selector.inverted != deciding.selector.inverted
        ]
        if overridden:
            last = overridden[-1]
            text += f", overriding rule {last.position} ({last.selector})"
        return text


class Ruleset(Sequence[Selector]):
    """Immutable ordered collection of selectors."""

    def __init__(self, selectors: Iterable[Selector] = ()) -> None:
        self._selectors: tuple[Selector, ...] = tuple(selectors)

    @classmethod
    def parse(cls, text: str, source: str | None = None) -> "Ruleset":
        """Parse rule text, one rule per line.

        Blank lines and lines starting with ``#`` are skipped. Leading
        whitespace is ignored; everything after the field separator is kept
        verbatim.

        Args:
            text: Rule text.
            source: Name of the rule source used in error messages.

        Returns:
            Parsed Ruleset.

        Raises:
            RuleParseError: On the first malformed line, with its 1-based
                line number.
        """
        selectors = []
        for line_number, raw_line in enumerate(_split_lines(text), start=1):
            line = raw_line.lstrip()
            if not line.strip() or line.startswith(COMMENT_PREFIX):
                continue
            try:
                selectors.append(parse_selector(line))
            except RuleParseError as e:
                raise e.at(line_number, source) from None
        return cls(selectors)

    @classmethod
    def parse_lines(cls, lines: Iterable[str], source: str | None = CLI_SOURCE) -> "Ruleset":
        """Parse rules given one per item (e.g. repeated ``--include`` options)."""
        return cls.parse("\n".join(lines), source)

    @classmethod
    def from_sources(
        cls,
        rules_file: Path | None = None,
        rules: Iterable[str] = (),
    ) -> "Ruleset":
        """Build the ruleset from a rule file and inline rules.

        File rules come first and inline rules are appended after them, so
        an inline rule overrides a file rule that matches the same
        repository.

        Raises:
            RuleParseError: If any rule is malformed.
            OSError: If the rule file cannot be read.
        """
        ruleset = cls()
        if rules_file is not None:
            ruleset = ruleset.merge(
                cls.parse(rules_file.read_bytes().decode("utf-8"), str(rules_file))
            )
        return ruleset.merge(cls.parse_lines(rules))

    def merge(self, other: "Ruleset") -> "Ruleset":
        """Return a new ruleset with ``other``'s rules appended."""
        return Ruleset((*self._selectors, *other))

    def evaluate(self, repo: Repository) -> Decision:
        """Fold every rule over the repository, recording the trail."""
        included = False
        trail = []
        for position, selector in enumerate(self._selectors, start=1):
            matched = selector.matches(repo)
            if matched:
                included = not selector.inverted
            trail.append(TrailEntry(position, selector, matched, included))
        return Decision(repo=repo, included=included, trail=tuple(trail))

    def evaluate_all(self, repos: Iterable[Repository]) -> list[Decision]:
        """Evaluate each repository, keeping input order."""
        return [self.evaluate(repo) for repo in repos]

    def __getitem__(self, index):  # type: ignore[no-untyped-def]
        if isinstance(index, slice):
            return Ruleset(self._selectors[index])
        return self._selectors[index]

    def __len__(self) -> int:
        return len(self._selectors)

    def __iter__(self) -> Iterator[Selector]:
        return iter(self._selectors)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Ruleset):
            return NotImplemented
        return self._selectors == other._selectors

    def __hash__(self) -> int:
        return hash(self._selectors)

    def __repr__(self) -> str:
        return f"Ruleset({[str(s) for s in self._selectors]!r})"

    def to_text(self) -> str:
        """Render the rules back to rule-file text."""
        return "\n".join(str(selector) for selector in self._selectors)
