"""
featsweep - Feature-powerset build orchestration.

Run your build, lint and test steps across combinations of optional
features and find the combinations that break.
"""

from featsweep.catalog import Feature, FeatureCatalog, build_catalog
from featsweep.combinations import Enumeration, enumerate_combinations
from featsweep.errors import ConfigError, DispatchError, FeatsweepError
from featsweep.orchestrator import Policy, run
from featsweep.runner import CommandStep, RunnerResult, ShellCommandRunner

__version__ = "0.1.0"
__all__ = [
    "CommandStep",
    "ConfigError",
    "DispatchError",
    "Enumeration",
    "FeatsweepError",
    "Feature",
    "FeatureCatalog",
    "Policy",
    "RunnerResult",
    "ShellCommandRunner",
    "__version__",
    "build_catalog",
    "enumerate_combinations",
    "run",
]
