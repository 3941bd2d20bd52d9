# Copyright (c) Syntropy Systems
"""Exception types raised by featsweep."""

from __future__ import annotations


class FeatsweepError(Exception):
    """Base class for featsweep errors."""


class ConfigError(FeatsweepError):
    """Catalog, depth or project file is malformed.

    Always raised before any command is dispatched.
    """


class DuplicateFeature(ConfigError):
    """A feature identifier appears more than once."""

    def __init__(self, feature: str) -> None:
        self.feature = feature
        super().__init__(f"Duplicate feature: '{feature}'")


class UnknownFeatureReference(ConfigError):
    """A conflict or requires relation names an unknown feature."""

    def __init__(self, feature: str, relation: str) -> None:
        self.feature = feature
        self.relation = relation
        super().__init__(f"Unknown feature '{feature}' referenced in {relation}")


class ContradictoryConstraint(ConfigError):
    """A feature both conflicts with and requires the same feature."""

    def __init__(self, feature: str, other: str) -> None:
        self.feature = feature
        self.other = other
        if feature == other:
            msg = f"Feature '{feature}' conflicts with itself"
        else:
            msg = f"Feature '{feature}' both requires and conflicts with '{other}'"
        super().__init__(msg)


class InvalidDepth(ConfigError):
    """Maximum combination depth is negative or not an integer."""

    def __init__(self, depth: object) -> None:
        self.depth = depth
        super().__init__(f"Invalid depth: {depth!r} (must be an integer >= 0)")


class ProjectFileError(ConfigError):
    """Project file is missing or does not match the expected schema."""


class DispatchError(FeatsweepError):
    """A command for a single combination could not be launched."""
