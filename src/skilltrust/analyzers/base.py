"""Analyzer protocol definitions."""

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from skilltrust.analyzers.context import ContentContext
from skilltrust.parser.models import Category, CategoryScore, Finding, ParsedSkill


@runtime_checkable
class Analyzer(Protocol):
    """Protocol that the five core analyzers satisfy."""

    @property
    def name(self) -> str:
        """Human-readable name of this analyzer."""
        ...

    @property
    def category(self) -> Category:
        """Category whose score this analyzer produces."""
        ...

    @property
    def weight(self) -> float:
        """Weight of the category in the overall score."""
        ...

    async def analyze(self, skill: ParsedSkill, context: ContentContext) -> CategoryScore:
        """Run analysis on a parsed skill and return its category score."""
        ...


@runtime_checkable
class Companion(Protocol):
    """Optional analyzer whose findings merge into an existing category."""

    @property
    def name(self) -> str:
        ...

    @property
    def category(self) -> Category:
        """Category that receives this companion's findings."""
        ...

    async def analyze(self, skill: ParsedSkill, context: ContentContext) -> Sequence[Finding]:
        ...
