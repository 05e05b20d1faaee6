"""Tests for the filter stage."""

import logging
import warnings
from collections.abc import Callable

import pytest

from gourcers.models import Repository
from gourcers.selectors import EmptyRulesetWarning, Ruleset, filter_repositories
from gourcers.selectors.stage import log_decisions


class TestFilterRepositories:
    """Tests for filter_repositories()."""

    def test_scenario(self, scenario_repos: list[Repository]) -> None:
        """Test the included subset and its order."""
        ruleset = Ruleset.parse_lines(["*:*", "!is_fork:true"])

        outcome = filter_repositories(ruleset, scenario_repos)

        assert [r.name for r in outcome.included] == ["a", "c"]
        assert [r.name for r in outcome.excluded] == ["b"]
        assert len(outcome.decisions) == 3

    def test_included_is_subsequence(self, scenario_repos: list[Repository]) -> None:
        """Test included repositories keep their input order."""
        ruleset = Ruleset.parse_lines(["name:c", "name:a"])

        outcome = filter_repositories(ruleset, scenario_repos)

        assert [r.name for r in outcome.included] == ["a", "c"]

    def test_empty_ruleset_warns(self, scenario_repos: list[Repository]) -> None:
        """Test an empty ruleset warns and excludes everything."""
        with pytest.warns(EmptyRulesetWarning):
            outcome = filter_repositories(Ruleset(), scenario_repos)

        assert outcome.included == ()
        assert len(outcome.excluded) == 3

    def test_empty_ruleset_no_repos_is_silent(self) -> None:
        """Test nothing to filter means nothing to warn about."""
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            outcome = filter_repositories(Ruleset(), [])

        assert outcome.included == ()
        assert outcome.decisions == ()

    def test_non_empty_ruleset_is_silent(self, scenario_repos: list[Repository]) -> None:
        """Test a ruleset that matches nothing does not warn."""
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            outcome = filter_repositories(Ruleset.parse_lines(["name:zzz"]), scenario_repos)

        assert outcome.included == ()

    def test_accepts_iterators(self, scenario_repos: list[Repository]) -> None:
        """Test a one-shot iterator is consumed once."""
        outcome = filter_repositories(Ruleset.parse_lines(["*:*"]), iter(scenario_repos))

        assert len(outcome.included) == 3


class TestFilterOutcome:
    """Tests for FilterOutcome helpers."""

    def test_deciding_rule_counts(self, make_repo: Callable[..., Repository]) -> None:
        """Test counts per deciding rule with a default-deny bucket."""
        repos = [
            make_repo("a"),
            make_repo("b", is_fork=True),
            make_repo("c", is_fork=True),
            make_repo("d", "other"),
        ]
        ruleset = Ruleset.parse_lines(["owner:campbellcole", "!is_fork:true"])

        outcome = filter_repositories(ruleset, repos)

        assert outcome.deciding_rule_counts() == {
            "owner:campbellcole": 1,
            "!is_fork:true": 2,
            "default deny": 1,
        }

    def test_log_decisions(
        self, scenario_repos: list[Repository], caplog: pytest.LogCaptureFixture
    ) -> None:
        """Test one debug line per repository and an info summary."""
        outcome = filter_repositories(Ruleset.parse_lines(["*:*", "!is_fork:true"]), scenario_repos)

        with caplog.at_level(logging.DEBUG, logger="gourcers.selectors.stage"):
            log_decisions(outcome)

        assert "campbellcole/a: included by rule 1 (*:*)" in caplog.text
        assert "campbellcole/b: excluded by rule 2 (!is_fork:true)" in caplog.text
        assert "Filtered to 2 of 3 repositories" in caplog.text
