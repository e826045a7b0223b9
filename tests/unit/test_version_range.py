"""Tests for version range parsing and satisfaction."""

import pytest
import semantic_version

from pkm_cli.models.version_range import FloatBehavior, VersionRange


class TestVersionRangeParse:
    """Parsing of NuGet range notation."""

    def test_bare_version_is_minimum_inclusive(self):
        r = VersionRange.parse("1.0")
        assert r.min_version == semantic_version.Version("1.0.0")
        assert r.is_min_inclusive
        assert r.max_version is None

    def test_exact_version(self):
        r = VersionRange.parse("[1.2.3]")
        assert r.is_exact
        assert r.satisfies("1.2.3")
        assert not r.satisfies("1.2.4")

    def test_half_open_interval(self):
        r = VersionRange.parse("[1.0, 2.0)")
        assert r.satisfies("1.0.0")
        assert r.satisfies("1.9.9")
        assert not r.satisfies("2.0.0")
        assert not r.satisfies("0.9.0")

    def test_exclusive_minimum_without_maximum(self):
        r = VersionRange.parse("(1.0,)")
        assert not r.satisfies("1.0.0")
        assert r.satisfies("1.0.1")
        assert r.satisfies("99.0.0")

    def test_inclusive_maximum_without_minimum(self):
        r = VersionRange.parse("(,2.0]")
        assert r.satisfies("0.0.1")
        assert r.satisfies("2.0.0")
        assert not r.satisfies("2.0.1")

    @pytest.mark.parametrize("text", [None, "", "*"])
    def test_any_version(self, text):
        r = VersionRange.parse(text)
        assert r.satisfies("0.0.1")
        assert r.satisfies("123.4.5")
        assert str(r) == "*"

    def test_floating_minor(self):
        r = VersionRange.parse("1.*")
        assert r.float_behavior == FloatBehavior.MINOR
        assert r.min_version == semantic_version.Version("1.0.0")
        assert str(r) == "1.*"

    def test_floating_patch(self):
        r = VersionRange.parse("1.2.*")
        assert r.float_behavior == FloatBehavior.PATCH
        assert r.satisfies("1.2.0")
        assert str(r) == "1.2.*"

    def test_floating_does_not_change_satisfaction(self):
        assert VersionRange.parse("1.2.*").satisfies("3.0.0")

    @pytest.mark.parametrize("text", ["[1.0", "(1.0)", "[1.0, 2.0, 3.0]", "abc", "1.x.*", "[2.0, 1.0]"])
    def test_invalid_ranges(self, text):
        with pytest.raises(ValueError):
            VersionRange.parse(text)


class TestVersionRangeHelpers:
    @pytest.mark.parametrize("text", [None, "", "*"])
    def test_missing_range_is_unbounded(self, text):
        assert VersionRange.parse(text).is_unbounded

    @pytest.mark.parametrize("text", ["1.0", "(,2.0]", "[1.0]"])
    def test_bounded_ranges(self, text):
        assert not VersionRange.parse(text).is_unbounded

    def test_exact_builder(self):
        r = VersionRange.exact("2.1")
        assert str(r) == "[2.1.0]"
        assert r.satisfies("2.1.0")

    def test_contains(self):
        assert "1.5.0" in VersionRange.parse("[1.0, 2.0)")

    def test_str_interval(self):
        assert str(VersionRange.parse("[1.0, 2.0)")) == "[1.0.0, 2.0.0)"

    def test_all_constant(self):
        assert VersionRange.ALL.satisfies("0.0.1")
        assert VersionRange.ALL.min_version is None
