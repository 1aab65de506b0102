"""Category analyzers and optional companions."""

from collections.abc import Sequence

from skilltrust.analyzers.base import Analyzer, Companion
from skilltrust.analyzers.behavioral import BehavioralAnalyzer
from skilltrust.analyzers.content import ContentAnalyzer
from skilltrust.analyzers.dependencies import DependenciesAnalyzer
from skilltrust.analyzers.injection import InjectionAnalyzer
from skilltrust.analyzers.permissions import PermissionsAnalyzer
from skilltrust.rules.engine import Rule


def build_core_analyzers(rules: Sequence[Rule]) -> list[Analyzer]:
    """The five weighted analyzers, in category order."""
    return [
        PermissionsAnalyzer(),
        InjectionAnalyzer(rules),
        DependenciesAnalyzer(),
        BehavioralAnalyzer(rules),
        ContentAnalyzer(rules),
    ]


__all__ = ["Analyzer", "Companion", "build_core_analyzers"]
