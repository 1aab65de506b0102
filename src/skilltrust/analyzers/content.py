"""Content quality and safety analyzer.

Skills start at a baseline of 80 and earn the remaining points by stating
safety boundaries, output constraints and error handling. Harmful or
deceptive instructions, obfuscated blobs and hardcoded credentials are
deducted from there.
"""

import re
from collections.abc import Sequence

from skilltrust.analyzers.context import (
    ContentContext,
    ContextAdjustment,
    downgrade,
    scale_deduction,
)
from skilltrust.analyzers.declared import annotate_declared
from skilltrust.analyzers.injection import THREAT_LISTING_MULTIPLIER, is_defense_skill
from skilltrust.parser.models import Category, CategoryScore, Finding, ParsedSkill, Severity
from skilltrust.rules.engine import Rule, get_rules_by_analyzer
from skilltrust.scoring import CATEGORY_WEIGHTS

BASELINE = 80
SAFETY_BONUS = 10
OUTPUT_BONUS = 5
ERROR_HANDLING_BONUS = 5

_SAFETY_BOUNDARY = (
    re.compile(
        r"(?:should\s+not|must\s+not|do\s+not|never|don[\x27\u2019]t|won[\x27\u2019]t)\s+"
        r"(?:access|modify|delete|send|share|execute)",
        re.IGNORECASE,
    ),
    re.compile(r"safety\s+boundar(?:y|ies)", re.IGNORECASE),
    re.compile(r"(?:prohibited|forbidden|restricted)\s+actions?", re.IGNORECASE),
    re.compile(r"limitations?\s+(?:and\s+)?(?:restrictions?|boundar(?:y|ies)|constraints?)", re.IGNORECASE),
    re.compile(r"(?:will\s+not|cannot|must\s+not)\s+", re.IGNORECASE),
)
_OUTPUT_CONSTRAINTS = (
    re.compile(r"(?:output|response)\s+(?:format|constraints?|limitations?)", re.IGNORECASE),
    re.compile(r"(?:maximum|max)\s+(?:\d+\s+)?(?:words?|characters?|lines?|tokens?)", re.IGNORECASE),
    re.compile(
        r"(?:format|respond|output)\s+(?:as|in|with)\s+(?:json|markdown|plain\s+text|structured)",
        re.IGNORECASE,
    ),
)
_ERROR_HANDLING = (
    re.compile(r"error\s+handling", re.IGNORECASE),
    re.compile(r"(?:if|when)\s+(?:an?\s+)?error\s+occurs?", re.IGNORECASE),
    re.compile(r"(?:gracefully|properly)\s+(?:handle|catch|manage)\s+errors?", re.IGNORECASE),
    re.compile(r"(?:return|display|show)\s+(?:an?\s+)?(?:error|warning)\s+message", re.IGNORECASE),
)

_BASE64_BLOB = re.compile(r"[A-Za-z0-9+/]{200,}={0,2}")
_HEX_BLOB = re.compile(r"\b[0-9a-fA-F]{200,}\b")
_BLOB_DEDUCTION = 15

_CREDENTIAL_SHAPES = (
    ("AWS access key", re.compile(r"\bAKIA[0-9A-Z]{16}\b")),
    ("GitHub token", re.compile(r"\bgh[pousr]_[A-Za-z0-9]{36,}\b")),
    ("Stripe live key", re.compile(r"\b[sr]k_live_[A-Za-z0-9]{20,}\b")),
    (
        "Generic secret assignment",
        re.compile(
            r"\b(?:api[_-]?key|secret(?:[_-]?key)?|access[_-]?token|auth[_-]?token|password)"
            r"\s*[:=]\s*[\"\x27]?([A-Za-z0-9_\-+/]{32,})",
            re.IGNORECASE,
        ),
    ),
)
_PLACEHOLDER = re.compile(
    r"x{4,}|your[_-]?|example|placeholder|dummy|sample|changeme|redacted|<[^>]*>|\.\.\.|\*{3,}"
    r"|(.)\1{7,}",
    re.IGNORECASE,
)
_CREDENTIAL_DEDUCTION = 40

_NO_DESCRIPTION_DEDUCTION = 5
_NO_SAFETY_DEDUCTION = 10
_MIN_DESCRIPTION_CHARS = 10


def _any_match(patterns: Sequence[re.Pattern[str]], content: str) -> bool:
    return any(p.search(content) for p in patterns)


def mask_secret(secret: str) -> str:
    """Keep a short prefix of a secret and hide the rest."""
    return secret[:4] + "*" * min(len(secret) - 4, 12)


class ContentAnalyzer:
    """Score content quality, reward stated boundaries, penalize harmful text."""

    def __init__(self, rules: Sequence[Rule]) -> None:
        content_rules = get_rules_by_analyzer(list(rules), "content")
        self._harmful = [r for r in content_rules if r.kind == "harmful"]
        self._deception = [r for r in content_rules if r.kind == "deception"]

    @property
    def name(self) -> str:
        return "content"

    @property
    def category(self) -> Category:
        return Category.CONTENT

    @property
    def weight(self) -> float:
        return CATEGORY_WEIGHTS[Category.CONTENT]

    async def analyze(self, skill: ParsedSkill, context: ContentContext) -> CategoryScore:
        content = context.content
        findings: list[Finding] = []
        baseline = BASELINE

        has_safety = _any_match(_SAFETY_BOUNDARY, content)
        if has_safety:
            baseline += SAFETY_BONUS
            findings.append(_good_practice(
                "CONT-SAFETY-GOOD",
                "Safety boundaries defined",
                "The skill includes explicit safety boundaries defining what it should NOT do.",
                "Keep these safety boundaries. They improve trust.",
            ))
        if _any_match(_OUTPUT_CONSTRAINTS, content):
            baseline += OUTPUT_BONUS
            findings.append(_good_practice(
                "CONT-OUTPUT-GOOD",
                "Output constraints defined",
                "The skill includes output format constraints (length limits, required formats).",
                "Keep these output constraints.",
            ))
        if _any_match(_ERROR_HANDLING, content):
            baseline += ERROR_HANDLING_BONUS
            findings.append(_good_practice(
                "CONT-ERROR-GOOD",
                "Error handling instructions present",
                "The skill includes error handling instructions for graceful failure.",
                "Keep these error handling instructions.",
            ))

        defense = is_defense_skill(skill)
        for rule in self._harmful:
            finding = self._harmful_finding(rule, context, defense, len(findings) + 1)
            if finding is not None:
                findings.append(finding)

        for rule in self._deception:
            for pattern in rule.patterns:
                match = pattern.regex.search(content)
                if match is None:
                    continue
                findings.append(Finding(
                    id=f"{rule.id}-{len(findings) + 1}",
                    category=Category.CONTENT,
                    severity=rule.severity,
                    title=rule.title,
                    description="The skill contains instructions that encourage deception or impersonation.",
                    evidence=match.group(0)[:200],
                    line_number=context.line_number(match.start()),
                    deduction=rule.deduction,
                    recommendation=rule.remediation,
                    owasp_category=rule.owasp_category,
                ))

        findings.extend(_blob_findings(context))
        findings.extend(_credential_findings(context))

        if len(skill.description.strip()) < _MIN_DESCRIPTION_CHARS:
            findings.append(Finding(
                id="CONT-NO-DESC",
                category=Category.CONTENT,
                severity=Severity.LOW,
                title="Missing or insufficient description",
                description=(
                    "The skill lacks a meaningful description, making it difficult to assess its purpose."
                ),
                evidence=(
                    f'Description: "{skill.description[:100]}"' if skill.description else "No description found"
                ),
                deduction=_NO_DESCRIPTION_DEDUCTION,
                recommendation=(
                    "Add a clear, detailed description of what the skill does and what it needs access to."
                ),
                owasp_category="ASST-09",
            ))

        if not has_safety:
            findings.append(Finding(
                id="CONT-NO-SAFETY",
                category=Category.CONTENT,
                severity=Severity.LOW,
                title="No explicit safety boundaries",
                description=(
                    "The skill does not include explicit safety boundaries defining what it should NOT do."
                ),
                evidence="No safety boundary patterns found",
                deduction=_NO_SAFETY_DEDUCTION,
                recommendation=(
                    "Add a 'Safety Boundaries' section listing what the skill must NOT do "
                    "(e.g., no file deletion, no network access beyond needed APIs)."
                ),
                owasp_category="ASST-09",
            ))

        findings = annotate_declared(findings, skill.declared_permissions)
        return CategoryScore.from_findings(
            findings,
            weight=self.weight,
            summary=_summary(findings),
            baseline=min(100, baseline),
        )

    def _harmful_finding(
        self,
        rule: Rule,
        context: ContentContext,
        defense: bool,
        sequence: int,
    ) -> Finding | None:
        for pattern in rule.patterns:
            for match in pattern.regex.finditer(context.content):
                adjustment = context.adjust(match.start())
                if adjustment.multiplier == 0:
                    continue
                if context.in_threat_listing(match.start()):
                    if defense:
                        continue
                    adjustment = ContextAdjustment(THREAT_LISTING_MULTIPLIER, "inside threat-listing context")
                severity, deduction = rule.severity, rule.deduction
                if adjustment.multiplier < 1:
                    severity = downgrade(severity)
                    deduction = scale_deduction(deduction, adjustment.multiplier)
                title = rule.title if not adjustment.reason else f"{rule.title} ({adjustment.reason})"
                return Finding(
                    id=f"{rule.id}-{sequence}",
                    category=Category.CONTENT,
                    severity=severity,
                    title=title,
                    description=f"The skill contains instructions related to: {rule.title.lower()}.",
                    evidence=match.group(0)[:200],
                    line_number=context.line_number(match.start()),
                    deduction=deduction,
                    recommendation=rule.remediation,
                    owasp_category=rule.owasp_category,
                )
        return None


def _good_practice(finding_id: str, title: str, description: str, recommendation: str) -> Finding:
    return Finding(
        id=finding_id,
        category=Category.CONTENT,
        severity=Severity.INFO,
        title=title,
        description=description,
        evidence=f"{title} (patterns detected in content)",
        deduction=0,
        recommendation=recommendation,
        owasp_category="ASST-09",
    )


def _blob_findings(context: ContentContext) -> list[Finding]:
    findings: list[Finding] = []
    for label, pattern in (("base64", _BASE64_BLOB), ("hex", _HEX_BLOB)):
        match = pattern.search(context.content)
        if match is None:
            continue
        findings.append(Finding(
            id=f"CONT-OBFUSCATION-{label.upper()}",
            category=Category.CONTENT,
            severity=Severity.MEDIUM,
            title=f"Large {label}-encoded blob",
            description=(
                f"The skill embeds a {len(match.group(0))}-character {label} blob that cannot be "
                "reviewed as plain text."
            ),
            evidence=f"{match.group(0)[:60]}...",
            line_number=context.line_number(match.start()),
            deduction=_BLOB_DEDUCTION,
            recommendation="Replace encoded blobs with readable content or reference a reviewed artifact.",
            owasp_category="ASST-10",
        ))
    return findings


def _credential_findings(context: ContentContext) -> list[Finding]:
    findings: list[Finding] = []
    for label, pattern in _CREDENTIAL_SHAPES:
        for match in pattern.finditer(context.content):
            secret = match.group(match.lastindex or 0)
            if _PLACEHOLDER.search(secret):
                continue
            findings.append(Finding(
                id=f"CONT-HARDCODED-CRED-{len(findings) + 1}",
                category=Category.CONTENT,
                severity=Severity.CRITICAL,
                title=f"Hardcoded credential: {label}",
                description="The skill embeds what looks like a live credential.",
                evidence=mask_secret(secret),
                line_number=context.line_number(match.start()),
                deduction=_CREDENTIAL_DEDUCTION,
                recommendation="Remove the credential, rotate it, and read secrets from the environment instead.",
                owasp_category="ASST-05",
            ))
            break
    return findings


def _summary(findings: Sequence[Finding]) -> str:
    concerns = [f for f in findings if f.severity is not Severity.INFO]
    if not concerns:
        return "Content quality is good with proper safety boundaries."
    if any(f.severity is Severity.CRITICAL for f in concerns):
        tail = "CRITICAL: Harmful content detected."
    else:
        tail = "Some content quality improvements recommended."
    return f"Found {len(concerns)} content-related concerns. {tail}"
