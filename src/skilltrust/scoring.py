"""Score aggregation and badge decision."""

import math
from collections.abc import Iterable, Mapping

from skilltrust.parser.models import (
    SEVERITY_RANK,
    Badge,
    Category,
    CategoryScore,
    Finding,
    ScanMetadata,
    Severity,
    TrustReport,
)

CATEGORY_WEIGHTS: dict[Category, float] = {
    Category.PERMISSIONS: 0.25,
    Category.INJECTION: 0.30,
    Category.DEPENDENCIES: 0.20,
    Category.BEHAVIORAL: 0.15,
    Category.CONTENT: 0.10,
}

_REJECT_BELOW = 50
_SUSPICIOUS_BELOW = 75
_CERTIFY_AT = 90
_MAX_CONDITIONAL_HIGHS = 2


def overall_score(categories: Mapping[Category, CategoryScore]) -> int:
    """Weighted sum of category scores, clamped to [0, 100] and rounded half up."""
    total = math.fsum(score.score * score.weight for score in categories.values())
    return int(math.floor(max(0.0, min(100.0, total)) + 0.5))


def sort_findings(findings: Iterable[Finding]) -> list[Finding]:
    """Stable sort by severity rank, critical first."""
    return sorted(findings, key=lambda f: SEVERITY_RANK[f.severity])


def determine_badge(overall: int, findings: Iterable[Finding]) -> Badge:
    """Badge tier as a pure function of the overall score and the findings.

    Rules are evaluated in priority order; the first that applies wins.
    """
    severities = [f.severity for f in findings]
    high_count = severities.count(Severity.HIGH)

    if Severity.CRITICAL in severities:
        return Badge.REJECTED
    if overall < _REJECT_BELOW:
        return Badge.REJECTED
    if overall < _SUSPICIOUS_BELOW:
        return Badge.SUSPICIOUS
    if overall < _CERTIFY_AT and high_count <= _MAX_CONDITIONAL_HIGHS:
        return Badge.CONDITIONAL
    if overall >= _CERTIFY_AT and high_count == 0:
        return Badge.CERTIFIED
    if high_count > _MAX_CONDITIONAL_HIGHS:
        return Badge.SUSPICIOUS
    if high_count > 0:
        return Badge.CONDITIONAL
    return Badge.CERTIFIED


def aggregate_scores(
    categories: Mapping[Category, CategoryScore],
    metadata: ScanMetadata,
) -> TrustReport:
    """Combine category scores into the final report."""
    overall = overall_score(categories)
    findings = sort_findings(f for score in categories.values() for f in score.findings)
    return TrustReport(
        overall=overall,
        badge=determine_badge(overall, findings),
        categories=dict(categories),
        findings=tuple(findings),
        metadata=metadata,
    )
