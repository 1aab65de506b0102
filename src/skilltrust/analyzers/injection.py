"""Instruction injection analyzer."""

import base64
import binascii
import logging
import re
from collections.abc import Sequence

from skilltrust.analyzers.context import (
    ContentContext,
    ContextAdjustment,
    downgrade,
    scale_deduction,
)
from skilltrust.analyzers.declared import annotate_declared
from skilltrust.parser.models import Category, CategoryScore, Finding, ParsedSkill, Severity
from skilltrust.rules.engine import Rule, get_rules_by_analyzer
from skilltrust.scoring import CATEGORY_WEIGHTS

logger = logging.getLogger(__name__)

THREAT_LISTING_MULTIPLIER = 0.2

_DEFENSE_DESCRIPTION = re.compile(
    r"\b(?:security\s+(?:scan|audit|check|monitor|guard|shield|analyz)|prompt\s+(?:guard|inject|defense|detect)"
    r"|threat\s+detect|injection\s+(?:defense|detect|prevent|scanner)|skill\s+(?:audit|scan|vet)"
    r"|(?:guard|bastion|warden|heimdall|sentinel|watchdog)\b)",
    re.IGNORECASE,
)
_DEFENSE_CONTENT_HEAD = re.compile(
    r"\b(?:security\s+(?:analy|scan|audit)|detect\s+(?:malicious|injection|exfiltration)"
    r"|adversarial\s+(?:security|analysis)|prompt\s+injection\s+(?:defense|detect|prevent))",
    re.IGNORECASE,
)
_CONTENT_HEAD_CHARS = 500

_HTML_COMMENT = re.compile(r"<!--(.*?)-->", re.DOTALL)
_INSTRUCTIONAL = re.compile(
    r"(?:step|override|important|system|silently|secretly|do not|must|always|never|after|before)\s"
    r"|(?:send|post|read|write|execute|fetch|curl|delete|access|download)\s",
    re.IGNORECASE,
)
_MIN_COMMENT_CHARS = 10

_BASE64_RUN = re.compile(r"[A-Za-z0-9+/]{20,}={0,2}")
_HEX_ONLY = re.compile(r"^[a-fA-F0-9]+$")
_SUSPICIOUS_DECODED = re.compile(
    r"ignore|override|system|exec|eval|fetch|curl|secret|password|token|key",
    re.IGNORECASE,
)
_MIN_PRINTABLE_RATIO = 0.85

_ZERO_WIDTH = re.compile("[\u200b\u200c\u200d\ufeff]")
_BIDI_OVERRIDES = ("\u202e", "\u202d")


def is_defense_skill(skill: ParsedSkill) -> bool:
    """True for skills whose purpose is detecting or blocking attacks."""
    if _DEFENSE_DESCRIPTION.search(f"{skill.name} {skill.description}"):
        return True
    return _DEFENSE_CONTENT_HEAD.search(skill.raw_content[:_CONTENT_HEAD_CHARS]) is not None


class InjectionAnalyzer:
    """Detect attempts to hijack, relay into, or subvert the agent's instructions."""

    def __init__(self, rules: Sequence[Rule]) -> None:
        self._rules = get_rules_by_analyzer(list(rules), "injection")

    @property
    def name(self) -> str:
        return "injection"

    @property
    def category(self) -> Category:
        return Category.INJECTION

    @property
    def weight(self) -> float:
        return CATEGORY_WEIGHTS[Category.INJECTION]

    async def analyze(self, skill: ParsedSkill, context: ContentContext) -> CategoryScore:
        defense = is_defense_skill(skill)
        findings: list[Finding] = []

        for rule in self._rules:
            for pattern in rule.patterns:
                finding = self._first_match(rule, pattern.regex, context, defense, len(findings) + 1)
                if finding is not None:
                    findings.append(finding)

        if not defense:
            findings.extend(_html_comment_findings(context))
        findings.extend(_base64_findings(context))
        findings.extend(_unicode_findings(skill.raw_content))

        findings = annotate_declared(findings, skill.declared_permissions)
        return CategoryScore.from_findings(findings, weight=self.weight, summary=_summary(findings))

    def _first_match(
        self,
        rule: Rule,
        regex: re.Pattern[str],
        context: ContentContext,
        defense: bool,
        sequence: int,
    ) -> Finding | None:
        """First match of ``regex`` that context does not neutralize."""
        for match in regex.finditer(context.content):
            adjustment = context.adjust(match.start())
            if adjustment.multiplier == 0:
                continue
            if context.in_threat_listing(match.start()):
                if defense:
                    continue
                adjustment = ContextAdjustment(THREAT_LISTING_MULTIPLIER, "inside threat-listing context")
            return _rule_finding(rule, match, context, adjustment, sequence)
        return None


def _rule_finding(
    rule: Rule,
    match: re.Match[str],
    context: ContentContext,
    adjustment: ContextAdjustment,
    sequence: int,
) -> Finding:
    severity = rule.severity
    deduction = rule.deduction
    if adjustment.multiplier < 1:
        severity = downgrade(severity)
        deduction = scale_deduction(deduction, adjustment.multiplier)
    title = f"{rule.title} detected"
    if adjustment.reason:
        title += f" ({adjustment.reason})"
    return Finding(
        id=f"{rule.id}-{sequence}",
        category=Category.INJECTION,
        severity=severity,
        title=title,
        description=f'Found {rule.title.lower()} pattern: "{match.group(0)[:120]}"',
        evidence=context.line_at(match.start()).strip()[:200],
        line_number=context.line_number(match.start()),
        deduction=deduction,
        recommendation=rule.remediation,
        owasp_category=rule.owasp_category,
    )


def _html_comment_findings(context: ContentContext) -> list[Finding]:
    findings: list[Finding] = []
    for match in _HTML_COMMENT.finditer(context.content):
        body = match.group(1).strip()
        if len(body) < _MIN_COMMENT_CHARS or not _INSTRUCTIONAL.search(body):
            continue
        snippet = body[:180] + ("..." if len(body) > 180 else "")
        findings.append(Finding(
            id=f"INJ-COMMENT-{len(findings) + 1}",
            category=Category.INJECTION,
            severity=Severity.HIGH,
            title="Hidden instructions in HTML comment",
            description=(
                "HTML comment contains instruction-like content that may be an attempt "
                "to inject hidden behavior."
            ),
            evidence=f"<!-- {snippet} -->",
            line_number=context.line_number(match.start()),
            deduction=25,
            recommendation="Remove hidden instructions from HTML comments. All skill behavior should be visible.",
            owasp_category="ASST-01",
        ))
    return findings


def _decode_base64(encoded: str) -> str | None:
    """Decode a base64 run to text, or None when it is not printable text."""
    stripped = encoded.rstrip("=")
    if len(stripped) % 4 == 1:
        return None
    padded = stripped + "=" * (-len(stripped) % 4)
    try:
        text = base64.b64decode(padded, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None
    if not text:
        return None
    printable = sum(1 for ch in text if ch.isprintable() or ch in "\n\r\t")
    if printable / len(text) < _MIN_PRINTABLE_RATIO:
        return None
    return text


def _base64_findings(context: ContentContext) -> list[Finding]:
    findings: list[Finding] = []
    for match in _BASE64_RUN.finditer(context.content):
        encoded = match.group(0)
        if _HEX_ONLY.match(encoded):
            continue
        decoded = _decode_base64(encoded)
        if decoded is None or len(decoded) <= 10 or not _SUSPICIOUS_DECODED.search(decoded):
            continue
        findings.append(Finding(
            id=f"INJ-B64-{len(findings) + 1}",
            category=Category.INJECTION,
            severity=Severity.HIGH,
            title="Suspicious base64-encoded content",
            description="Base64-encoded string decodes to content containing suspicious keywords.",
            evidence=f"Encoded: {encoded[:60]}... Decoded: {decoded[:100]}"[:200],
            line_number=context.line_number(match.start()),
            deduction=25,
            recommendation="Replace base64-encoded content with plaintext. Obfuscation raises security concerns.",
            owasp_category="ASST-10",
        ))
    return findings


def _unicode_findings(content: str) -> list[Finding]:
    findings: list[Finding] = []
    # A single leading BOM is an encoding artifact, not obfuscation.
    body = content[1:] if content.startswith("\ufeff") else content

    zero_width = _ZERO_WIDTH.findall(body)
    if zero_width:
        findings.append(Finding(
            id="INJ-UNICODE-ZW",
            category=Category.INJECTION,
            severity=Severity.HIGH,
            title=f"Zero-width characters detected ({len(zero_width)} instances)",
            description=(
                "The skill contains invisible zero-width characters that may be used "
                "to hide content or evade detection."
            ),
            evidence=f"Found {len(zero_width)} zero-width characters (U+200B, U+200C, U+200D or U+FEFF)",
            deduction=30,
            recommendation="Remove all zero-width characters.",
            owasp_category="ASST-10",
        ))

    if any(ch in body for ch in _BIDI_OVERRIDES):
        findings.append(Finding(
            id="INJ-UNICODE-RTL",
            category=Category.INJECTION,
            severity=Severity.HIGH,
            title="Bidirectional override characters detected",
            description=(
                "The skill contains right-to-left or left-to-right override characters "
                "that can disguise text direction and hide content."
            ),
            evidence="Found U+202E (RLO) or U+202D (LRO) characters",
            deduction=30,
            recommendation="Remove bidirectional override characters.",
            owasp_category="ASST-10",
        ))
    return findings


def _summary(findings: list[Finding]) -> str:
    if not findings:
        return "No injection patterns detected."
    if any(f.severity is Severity.CRITICAL for f in findings):
        tail = "Active injection attacks detected. This skill is dangerous."
    else:
        tail = "Suspicious patterns detected that warrant review."
    return f"Found {len(findings)} injection-related findings. {tail}"
