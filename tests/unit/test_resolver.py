"""Tests for the backtracking version resolver."""

import random

import pytest

from pkm_cli.deps.errors import UnsatisfiableConstraintsError
from pkm_cli.deps.resolver import BacktrackingResolver, DependencyBehavior
from pkm_cli.models.identity import PackageIdentity
from pkm_cli.models.package import DependencyInfo, PackageDependency
from pkm_cli.models.version_range import VersionRange


def _info(identity, *dependencies):
    return DependencyInfo(
        PackageIdentity.parse(identity), tuple(PackageDependency.from_dict(d) for d in dependencies)
    )


def _resolve(available, targets, behavior=DependencyBehavior.HIGHEST):
    parsed = {k: VersionRange.parse(v) if v else None for k, v in targets.items()}
    return [str(info.identity) for info in BacktrackingResolver().resolve(available, parsed, behavior)]


class TestDependencyBehavior:
    def test_parse_is_case_insensitive(self):
        assert DependencyBehavior.parse("Highest") is DependencyBehavior.HIGHEST
        assert DependencyBehavior.parse(" lowest ") is DependencyBehavior.LOWEST

    def test_parse_rejects_unknown(self):
        with pytest.raises(ValueError, match="Expected one of"):
            DependencyBehavior.parse("newest")


class TestBacktrackingResolver:
    def test_highest_prefers_newest(self):
        available = [_info("A 1.0"), _info("A 2.0")]
        assert _resolve(available, {"A": None}) == ["A 2.0.0"]

    def test_lowest_prefers_oldest(self):
        available = [_info("A 1.0"), _info("A 2.0")]
        assert _resolve(available, {"A": None}, DependencyBehavior.LOWEST) == ["A 1.0.0"]

    def test_target_range_is_honored(self):
        available = [_info("A 1.0"), _info("A 2.0"), _info("A 3.0")]
        assert _resolve(available, {"A": "[1.0, 3.0)"}) == ["A 2.0.0"]

    def test_dependency_ranges_constrain_selection(self):
        available = [_info("App 1.0", "Lib [1.0]"), _info("Lib 1.0"), _info("Lib 2.0")]
        assert _resolve(available, {"App": None}) == ["Lib 1.0.0", "App 1.0.0"]

    def test_ids_match_case_insensitively(self):
        available = [_info("App 1.0", "lib 1.0"), _info("Lib 1.0")]
        assert _resolve(available, {"app": None}) == ["Lib 1.0.0", "App 1.0.0"]

    def test_backtracks_over_conflicting_choice(self):
        available = [
            _info("Top 1.0", "A", "B"),
            _info("A 1.0"),
            _info("A 2.0", "C [1.0]"),
            _info("B 1.0", "C [2.0]"),
            _info("C 1.0"),
            _info("C 2.0"),
        ]
        # A 2.0 is tried first but forces C 1.0, which B rejects
        assert _resolve(available, {"Top": None}) == ["A 1.0.0", "C 2.0.0", "B 1.0.0", "Top 1.0.0"]

    def test_unsatisfiable_raises(self):
        available = [
            _info("Top 1.0", "A [1.0]", "B"),
            _info("A 1.0"),
            _info("A 2.0"),
            _info("B 1.0", "A [2.0]"),
        ]
        with pytest.raises(UnsatisfiableConstraintsError) as excinfo:
            _resolve(available, {"Top": None})
        assert excinfo.value.package_ids == ["Top"]

    def test_missing_target_raises(self):
        with pytest.raises(UnsatisfiableConstraintsError):
            _resolve([_info("A 1.0")], {"B": None})

    def test_dependencies_come_before_dependents(self):
        available = [
            _info("Z 1.0", "M"),
            _info("M 1.0", "A"),
            _info("A 1.0"),
        ]
        assert _resolve(available, {"Z": None}) == ["A 1.0.0", "M 1.0.0", "Z 1.0.0"]

    def test_cycle_is_placed_by_id(self):
        available = [_info("B 1.0", "A"), _info("A 1.0", "B")]
        assert _resolve(available, {"A": None}) == ["A 1.0.0", "B 1.0.0"]

    def test_result_does_not_depend_on_input_order(self):
        available = [
            _info("Top 1.0", "A", "B"),
            _info("A 1.0"),
            _info("A 2.0", "C [1.0]"),
            _info("B 1.0", "C [2.0]"),
            _info("C 1.0"),
            _info("C 2.0"),
        ]
        expected = _resolve(available, {"Top": None})
        shuffled = list(available)
        random.Random(7).shuffle(shuffled)
        assert _resolve(shuffled, {"Top": None}) == expected

    def test_ignore_selects_only_targets(self):
        available = [_info("A 1.0", "B"), _info("A 1.5", "B"), _info("B 1.0")]
        assert _resolve(available, {"A": "[1.0, 2.0)"}, DependencyBehavior.IGNORE) == ["A 1.5.0"]

    def test_ignore_without_candidate_raises(self):
        with pytest.raises(UnsatisfiableConstraintsError, match="No candidate"):
            _resolve([_info("A 1.0")], {"A": "[2.0]"}, DependencyBehavior.IGNORE)
