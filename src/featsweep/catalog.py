# Copyright (c) Syntropy Systems
"""Feature catalog construction and validation."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Union

from featsweep.errors import (
    ContradictoryConstraint,
    DuplicateFeature,
    UnknownFeatureReference,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator


@dataclass(frozen=True)
class Feature:
    """A named optional capability of the target project's build."""

    name: str
    default: bool = False
    conflicts: frozenset[str] = field(default_factory=frozenset)
    requires: frozenset[str] = field(default_factory=frozenset)


FeatureLike = Union[str, Feature]


class FeatureCatalog:
    """Validated, immutable set of features.

    Use :func:`build_catalog` to construct one; the constructor assumes
    its inputs are already consistent.
    """

    _features: dict[str, Feature]
    _closures: dict[str, frozenset[str]]

    def __init__(self, features: dict[str, Feature]) -> None:
        self._features = dict(sorted(features.items()))
        self._closures = {
            name: _requires_closure(name, self._features) for name in self._features
        }

    def __len__(self) -> int:
        return len(self._features)

    def __contains__(self, name: object) -> bool:
        return name in self._features

    def __iter__(self) -> Iterator[Feature]:
        return iter(self._features.values())

    def __repr__(self) -> str:
        return f"FeatureCatalog({list(self._features)!r})"

    @property
    def names(self) -> tuple[str, ...]:
        """Feature identifiers in lexicographic order."""
        return tuple(self._features)

    @property
    def defaults(self) -> tuple[str, ...]:
        """Identifiers of features marked as default."""
        return tuple(f.name for f in self._features.values() if f.default)

    def get(self, name: str) -> Feature:
        """Return a feature by identifier."""
        return self._features[name]

    def conflicts_of(self, name: str) -> frozenset[str]:
        """Features that may not be combined with ``name``."""
        return self._features[name].conflicts

    def requires_of(self, name: str) -> frozenset[str]:
        """Features ``name`` transitively requires (excluding itself)."""
        return self._closures[name]

    def complete(self, names: Iterable[str]) -> frozenset[str]:
        """Add every feature transitively required by ``names``."""
        result = set(names)
        for name in list(result):
            result.update(self._closures[name])
        return frozenset(result)

    def is_conflict_free(self, names: Iterable[str]) -> bool:
        """Check that no two features in ``names`` conflict."""
        members = set(names)
        return all(not (self._features[n].conflicts & members) for n in members)


def _requires_closure(name: str, features: dict[str, Feature]) -> frozenset[str]:
    seen: set[str] = set()
    stack = list(features[name].requires)
    while stack:
        current = stack.pop()
        if current in seen or current == name:
            continue
        seen.add(current)
        stack.extend(features[current].requires)
    return frozenset(seen)


def build_catalog(
    features: Iterable[FeatureLike],
    conflicts: Iterable[tuple[str, str]] = (),
    requires: Iterable[tuple[str, str]] = (),
) -> FeatureCatalog:
    """Validate feature definitions and build a catalog.

    Args:
        features: Feature identifiers or :class:`Feature` objects. Relations
            carried on ``Feature`` objects are merged with the pairs below.
        conflicts: Symmetric pairs of features that cannot be combined.
        requires: ``(dependent, required)`` pairs.

    Returns:
        The validated catalog.

    Raises:
        DuplicateFeature: An identifier appears twice.
        UnknownFeatureReference: A relation names a feature not in the set.
        ContradictoryConstraint: A feature conflicts with a feature it
            (transitively) requires, or with itself.

    """
    declared: dict[str, Feature] = {}
    for item in features:
        feature = Feature(name=item) if isinstance(item, str) else item
        if feature.name in declared:
            raise DuplicateFeature(feature.name)
        declared[feature.name] = feature

    conflict_map: dict[str, set[str]] = {name: set() for name in declared}
    requires_map: dict[str, set[str]] = {name: set() for name in declared}

    conflict_pairs = [(f.name, other) for f in declared.values() for other in f.conflicts]
    conflict_pairs.extend(tuple(pair) for pair in conflicts)
    requires_pairs = [(f.name, other) for f in declared.values() for other in f.requires]
    requires_pairs.extend(tuple(pair) for pair in requires)

    for first, second in conflict_pairs:
        for name in (first, second):
            if name not in declared:
                raise UnknownFeatureReference(name, "conflicts")
        if first == second:
            raise ContradictoryConstraint(first, second)
        conflict_map[first].add(second)
        conflict_map[second].add(first)

    for dependent, required in requires_pairs:
        for name in (dependent, required):
            if name not in declared:
                raise UnknownFeatureReference(name, "requires")
        if dependent != required:
            requires_map[dependent].add(required)

    built = {
        name: replace(
            feature,
            conflicts=frozenset(conflict_map[name]),
            requires=frozenset(requires_map[name]),
        )
        for name, feature in declared.items()
    }

    # Checked in sorted order so the reported pair is stable.
    for name in sorted(built):
        clash = sorted(_requires_closure(name, built) & built[name].conflicts)
        if clash:
            raise ContradictoryConstraint(name, clash[0])

    return FeatureCatalog(built)
