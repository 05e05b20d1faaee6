"""Include/exclude rules deciding which repositories are gourced.

Provides rule parsing, ordered last-match-wins evaluation with a full
audit trail, and the filter stage applied to the repository list.
"""

from gourcers.selectors.ruleset import Decision, Ruleset, TrailEntry
from gourcers.selectors.selector import RuleParseError, Selector, SelectorField, parse_selector
from gourcers.selectors.stage import (
    EmptyRulesetWarning,
    FilterOutcome,
    filter_repositories,
    log_decisions,
)

__all__ = [
    "Decision",
    "EmptyRulesetWarning",
    "FilterOutcome",
    "RuleParseError",
    "Ruleset",
    "Selector",
    "SelectorField",
    "TrailEntry",
    "filter_repositories",
    "log_decisions",
    "parse_selector",
]
