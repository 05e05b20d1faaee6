"""Filter stage: apply a ruleset to the repository list."""

import logging
import warnings
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass

from gourcers.models import Repository
from gourcers.selectors.ruleset import Decision, Ruleset

logger = logging.getLogger(__name__)

DEFAULT_DENY = "default deny"


class EmptyRulesetWarning(UserWarning):
    """No rules were given, so every repository will be excluded."""


@dataclass(frozen=True)
class FilterOutcome:
    """Result of filtering a repository list.

    Attributes:
        included: Included repositories, in input order.
        decisions: One decision per input repository, in input order.
    """

    included: tuple[Repository, ...]
    decisions: tuple[Decision, ...]

    @property
    def excluded(self) -> tuple[Repository, ...]:
        """Excluded repositories, in input order."""
        return tuple(d.repo for d in self.decisions if not d.included)

    def deciding_rule_counts(self) -> dict[str, int]:
        """Count how many repositories each rule had the final say on.

        Repositories no rule matched are counted under ``default deny``.
        """
        counts: Counter[str] = Counter()
        for decision in self.decisions:
            deciding = decision.deciding_entry
            counts[str(deciding.selector) if deciding else DEFAULT_DENY] += 1
        return dict(counts)


def filter_repositories(ruleset: Ruleset, repos: Iterable[Repository]) -> FilterOutcome:
    """Apply the ruleset to every repository.

    Pure and deterministic; the only side effect is an
    ``EmptyRulesetWarning`` when the ruleset is empty and there is at least
    one repository to filter.

    Args:
        ruleset: Validated ruleset.
        repos: Candidate repositories.

    Returns:
        FilterOutcome with the included subset and every decision.
    """
    repos = list(repos)
    if not ruleset and repos:
        warnings.warn(
            "No include rules given: every repository is excluded by default. "
            "Add a rule such as '*:*' to include everything.",
            EmptyRulesetWarning,
            stacklevel=2,
        )

    decisions = tuple(ruleset.evaluate_all(repos))
    included = tuple(d.repo for d in decisions if d.included)
    return FilterOutcome(included=included, decisions=decisions)


def log_decisions(outcome: FilterOutcome) -> None:
    """Log one line per repository saying why it was included or excluded."""
    for decision in outcome.decisions:
        logger.debug("%s: %s", decision.repo.full_name, decision.explain())

    logger.info(
        "Filtered to %d of %d repositories",
        len(outcome.included),
        len(outcome.decisions),
    )
    for rule, count in sorted(
        outcome.deciding_rule_counts().items(),
        key=lambda item: item[1],
        reverse=True,
    ):
        logger.debug("  %s: %d", rule, count)
