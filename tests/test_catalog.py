# Copyright (c) Syntropy Systems
"""Tests for feature catalog construction."""

import pytest

from featsweep.catalog import Feature, build_catalog
from featsweep.errors import (
    ConfigError,
    ContradictoryConstraint,
    DuplicateFeature,
    UnknownFeatureReference,
)


class TestBuildCatalog:
    """Tests for build_catalog."""

    def test_plain_names(self):
        """Test catalog from bare identifiers is sorted."""
        catalog = build_catalog(["c", "a", "b"])
        assert catalog.names == ("a", "b", "c")
        assert len(catalog) == 3
        assert "b" in catalog
        assert "z" not in catalog

    def test_conflicts_are_symmetric(self):
        """Test a conflict pair applies in both directions."""
        catalog = build_catalog(["a", "b"], conflicts=[("a", "b")])
        assert catalog.conflicts_of("a") == frozenset({"b"})
        assert catalog.conflicts_of("b") == frozenset({"a"})

    def test_requires_is_transitive(self):
        """Test requires closure follows chains."""
        catalog = build_catalog(
            ["a", "b", "c"],
            requires=[("c", "b"), ("b", "a")],
        )
        assert catalog.requires_of("c") == frozenset({"a", "b"})
        assert catalog.requires_of("a") == frozenset()
        assert catalog.complete(["c"]) == frozenset({"a", "b", "c"})

    def test_feature_objects_and_defaults(self):
        """Test Feature objects carry defaults and their own relations."""
        catalog = build_catalog(
            [
                Feature("std", default=True),
                Feature("alloc"),
                Feature("serde", requires=frozenset({"alloc"})),
            ]
        )
        assert catalog.defaults == ("std",)
        assert catalog.requires_of("serde") == frozenset({"alloc"})

    def test_duplicate_feature(self):
        """Test repeated identifiers are rejected."""
        with pytest.raises(DuplicateFeature) as exc_info:
            build_catalog(["a", "b", "a"])
        assert exc_info.value.feature == "a"

    def test_unknown_conflict_reference(self):
        """Test conflicts must name known features."""
        with pytest.raises(UnknownFeatureReference) as exc_info:
            build_catalog(["a"], conflicts=[("a", "ghost")])
        assert exc_info.value.feature == "ghost"
        assert exc_info.value.relation == "conflicts"

    def test_unknown_requires_reference(self):
        """Test requires must name known features."""
        with pytest.raises(UnknownFeatureReference) as exc_info:
            build_catalog(["a"], requires=[("ghost", "a")])
        assert exc_info.value.relation == "requires"

    def test_contradictory_constraint(self):
        """Test conflict + requires on the same pair is rejected."""
        with pytest.raises(ContradictoryConstraint) as exc_info:
            build_catalog(
                ["a", "b"],
                conflicts=[("a", "b")],
                requires=[("a", "b")],
            )
        assert exc_info.value.feature == "a"
        assert exc_info.value.other == "b"

    def test_contradiction_through_transitive_requires(self):
        """Test requiring a conflicting feature indirectly is rejected."""
        with pytest.raises(ContradictoryConstraint):
            build_catalog(
                ["a", "b", "c"],
                conflicts=[("a", "c")],
                requires=[("a", "b"), ("b", "c")],
            )

    def test_self_conflict(self):
        """Test a feature conflicting with itself is rejected."""
        with pytest.raises(ContradictoryConstraint):
            build_catalog(["a"], conflicts=[("a", "a")])

    def test_self_requires_is_ignored(self):
        """Test a feature requiring itself is a no-op."""
        catalog = build_catalog(["a"], requires=[("a", "a")])
        assert catalog.requires_of("a") == frozenset()

    def test_errors_are_config_errors(self):
        """Test every validation error shares the ConfigError base."""
        for error in (DuplicateFeature, UnknownFeatureReference, ContradictoryConstraint):
            assert issubclass(error, ConfigError)

    def test_is_conflict_free(self):
        """Test conflict detection over a set of names."""
        catalog = build_catalog(["a", "b", "c"], conflicts=[("b", "c")])
        assert catalog.is_conflict_free(["a", "b"])
        assert not catalog.is_conflict_free(["a", "b", "c"])
        assert catalog.is_conflict_free([])
