"""Permission risk analyzer."""

import logging
import re

from skilltrust.analyzers.context import ContentContext
from skilltrust.analyzers.declared import annotate_declared
from skilltrust.parser.models import Category, CategoryScore, Finding, ParsedSkill, Severity
from skilltrust.scoring import CATEGORY_WEIGHTS

logger = logging.getLogger(__name__)

_TOKEN_SPLIT = re.compile(r"[^a-z0-9]+")

_CRITICAL_TOKENS = frozenset({"exec", "execute", "shell", "sudo", "admin"})
_UNRESTRICTED_TOKENS = frozenset({"unrestricted", "all", "any", "full", "unlimited", "bulk"})
_DELETE_TOKENS = frozenset({"delete", "remove", "rm"})
_ENV_TOKENS = frozenset({"env", "environment", "secrets"})
_FILE_TOKENS = frozenset({"file", "files", "fs", "filesystem"})
_READ_TOKENS = frozenset({"read", "search", "list", "view"})

DEDUCTIONS: dict[Severity, int] = {
    Severity.CRITICAL: 30,
    Severity.HIGH: 15,
    Severity.MEDIUM: 8,
    Severity.LOW: 2,
}

_MISMATCH_DEDUCTION = 15
_EXCESSIVE_THRESHOLD = 5

_LIMITED_SCOPE = re.compile(
    r"\b(?:calculator|spell|check|format|lint|simple|basic|math|text|convert|translate"
    r"|weather|time|date|clock|counter|hello|greeting)",
    re.IGNORECASE,
)


def permission_tier(permission: str) -> Severity | None:
    """Risk tier of one permission string, or None when it is not recognized."""
    tokens = set(_TOKEN_SPLIT.split(permission.lower())) - {""}
    if tokens & _CRITICAL_TOKENS:
        return Severity.CRITICAL
    if "network" in tokens and tokens & _UNRESTRICTED_TOKENS:
        return Severity.HIGH
    if tokens & _DELETE_TOKENS or tokens & _ENV_TOKENS:
        return Severity.HIGH
    if "write" in tokens:
        if tokens & _FILE_TOKENS and not tokens & _UNRESTRICTED_TOKENS:
            return Severity.MEDIUM
        return Severity.HIGH
    if "network" in tokens or "api" in tokens:
        return Severity.MEDIUM
    if tokens & _READ_TOKENS:
        return Severity.LOW
    return None


def _suspicious_for_limited_scope(permission: str, tier: Severity | None) -> bool:
    if tier in (Severity.CRITICAL, Severity.HIGH):
        return True
    tokens = set(_TOKEN_SPLIT.split(permission.lower()))
    return "write" in tokens and bool(tokens & _FILE_TOKENS)


class PermissionsAnalyzer:
    """Score the capabilities a skill asks for."""

    @property
    def name(self) -> str:
        return "permissions"

    @property
    def category(self) -> Category:
        return Category.PERMISSIONS

    @property
    def weight(self) -> float:
        return CATEGORY_WEIGHTS[Category.PERMISSIONS]

    async def analyze(self, skill: ParsedSkill, context: ContentContext) -> CategoryScore:
        requested = [*skill.permissions, *(t for t in skill.tools if permission_tier(t))]
        unique = list(dict.fromkeys(p.strip().lower() for p in requested if p.strip()))

        findings: list[Finding] = []
        tiers: dict[str, Severity | None] = {}
        for perm in unique:
            tier = permission_tier(perm)
            tiers[perm] = tier
            if tier is None:
                continue
            findings.append(Finding(
                id=f"PERM-{len(findings) + 1}",
                category=Category.PERMISSIONS,
                severity=tier,
                title=f"{tier.value.capitalize()}-risk permission: {perm}",
                description=f'The skill requests the "{perm}" permission, classified as {tier.value} risk.',
                evidence=f"Permission: {perm}",
                deduction=DEDUCTIONS[tier],
                recommendation=(
                    f'Remove the "{perm}" permission unless absolutely required.'
                    if tier is Severity.CRITICAL
                    else f'Consider whether "{perm}" is necessary for the skill\'s stated purpose.'
                ),
                owasp_category="ASST-03" if tier in (Severity.CRITICAL, Severity.HIGH) else "ASST-08",
            ))

        if _LIMITED_SCOPE.search(f"{skill.name} {skill.description}"):
            for perm in unique:
                if not _suspicious_for_limited_scope(perm, tiers[perm]):
                    continue
                findings.append(Finding(
                    id=f"PERM-MISMATCH-{len(findings) + 1}",
                    category=Category.PERMISSIONS,
                    severity=Severity.HIGH,
                    title=f'Permission-purpose mismatch: "{perm}" on limited-scope skill',
                    description=(
                        f'The skill "{skill.name}" appears limited in scope but requests '
                        f'"{perm}", which is unusual for its stated purpose.'
                    ),
                    evidence=f'Skill "{skill.name}" ({skill.description[:80]}) requests "{perm}"'[:200],
                    deduction=_MISMATCH_DEDUCTION,
                    recommendation=f'Review whether "{perm}" is truly needed.',
                    owasp_category="ASST-03",
                ))

        if len(unique) > _EXCESSIVE_THRESHOLD:
            findings.append(Finding(
                id="PERM-EXCESSIVE",
                category=Category.PERMISSIONS,
                severity=Severity.INFO,
                title=f"Excessive number of permissions ({len(unique)})",
                description=f"The skill requests {len(unique)} distinct permissions.",
                evidence=f"Permissions: {', '.join(unique)}"[:200],
                deduction=0,
                recommendation="Apply least privilege: request only what the skill actually needs.",
                owasp_category="ASST-08",
            ))

        findings = annotate_declared(findings, skill.declared_permissions)
        return CategoryScore.from_findings(
            findings,
            weight=self.weight,
            summary=_summary(findings),
        )


def _summary(findings: list[Finding]) -> str:
    if not findings:
        return "No permission concerns detected."
    severities = {f.severity for f in findings}
    if Severity.CRITICAL in severities:
        tail = "Dangerous permissions detected."
    elif Severity.HIGH in severities:
        tail = "High-risk permissions detected that may not match the skill's purpose."
    else:
        tail = "Minor permission concerns."
    return f"Found {len(findings)} permission-related findings. {tail}"
