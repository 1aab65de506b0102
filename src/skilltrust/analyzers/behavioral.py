"""Behavioral risk analyzer."""

import re
from collections.abc import Sequence

from skilltrust.analyzers import remote_exec
from skilltrust.analyzers.context import ContentContext, downgrade, scale_deduction
from skilltrust.analyzers.declared import annotate_declared
from skilltrust.parser.models import Category, CategoryScore, Finding, ParsedSkill, Severity
from skilltrust.rules.engine import Rule, get_rules_by_analyzer
from skilltrust.scoring import CATEGORY_WEIGHTS

_PREREQUISITE_TRAPS = (
    re.compile(r"curl\s+.*\|\s*(?:sh|bash|zsh)", re.IGNORECASE),
    re.compile(r"curl\s+.*-[oO]\s+.*&&\s*(?:chmod|\./)", re.IGNORECASE),
)
_TRAP_DEDUCTION = 25

# Both must be present: reading secrets alone is common in setup docs.
_ACTIVE_CREDENTIAL_ACCESS = re.compile(
    r"(?:cat|read|dump|exfiltrate|steal|harvest)\s+.*?(?:\.env|\.ssh|id_rsa|credentials|secrets)",
    re.IGNORECASE,
)
_SUSPICIOUS_EXFILTRATION = re.compile(
    r"(?:webhook\.site|requests\.post\s*\(|curl\s+-X\s+POST\s+.*?(?:\$|secret|key|token|password|credential))",
    re.IGNORECASE,
)
_EXFIL_FLOW_DEDUCTION = 25


class BehavioralAnalyzer:
    """Flag risky agent behaviors: scope, system changes, autonomy and traps."""

    def __init__(self, rules: Sequence[Rule]) -> None:
        self._rules = get_rules_by_analyzer(list(rules), "behavioral")

    @property
    def name(self) -> str:
        return "behavioral"

    @property
    def category(self) -> Category:
        return Category.BEHAVIORAL

    @property
    def weight(self) -> float:
        return CATEGORY_WEIGHTS[Category.BEHAVIORAL]

    async def analyze(self, skill: ParsedSkill, context: ContentContext) -> CategoryScore:
        findings: list[Finding] = []

        for rule in self._rules:
            for pattern in rule.patterns:
                finding = _rule_finding(rule, pattern.regex, context, len(findings) + 1)
                if finding is not None:
                    findings.append(finding)

        for trap in _PREREQUISITE_TRAPS:
            finding = _trap_finding(trap, context, len(findings) + 1)
            if finding is not None:
                findings.append(finding)

        content = context.content
        if _ACTIVE_CREDENTIAL_ACCESS.search(content) and _SUSPICIOUS_EXFILTRATION.search(content):
            findings.append(Finding(
                id=f"BEH-EXFIL-FLOW-{len(findings) + 1}",
                category=Category.BEHAVIORAL,
                severity=Severity.HIGH,
                title="Potential data exfiltration: skill reads credentials and sends them to external endpoints",
                description=(
                    "The skill contains patterns that actively read credential files and send data "
                    "to external endpoints, suggesting a possible data exfiltration flow."
                ),
                evidence="Active credential reading and suspicious network exfiltration patterns both present",
                deduction=_EXFIL_FLOW_DEDUCTION,
                recommendation=(
                    "Separate credential access from network operations. If both are needed, "
                    "declare them explicitly and justify."
                ),
                owasp_category="ASST-02",
            ))

        findings = annotate_declared(findings, skill.declared_permissions)
        return CategoryScore.from_findings(findings, weight=self.weight, summary=summarize(findings))


def _rule_finding(
    rule: Rule,
    regex: re.Pattern[str],
    context: ContentContext,
    sequence: int,
) -> Finding | None:
    # Keep scanning past neutralized hits: a negated mention must not hide a later real one.
    for match in regex.finditer(context.content):
        adjustment = context.adjust(match.start())
        if adjustment.multiplier == 0:
            continue
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
            category=Category.BEHAVIORAL,
            severity=severity,
            title=title,
            description=f'Found {rule.title.lower()} pattern: "{match.group(0)[:120]}"',
            evidence=context.line_at(match.start()).strip()[:200],
            line_number=context.line_number(match.start()),
            deduction=deduction,
            recommendation=rule.remediation,
            owasp_category=rule.owasp_category,
        )
    return None


def _trap_finding(trap: re.Pattern[str], context: ContentContext, sequence: int) -> Finding | None:
    for match in trap.finditer(context.content):
        adjustment = context.adjust(match.start())
        if adjustment.multiplier == 0:
            continue
        snippet = match.group(0)
        line_number = context.line_number(match.start())

        if remote_exec.is_legitimate_setup(context, match.start(), snippet):
            known = remote_exec.is_known_installer(snippet)
            return Finding(
                id=f"BEH-PREREQ-TRAP-{sequence}",
                category=Category.BEHAVIORAL,
                severity=Severity.LOW,
                title="Install pattern: download and execute from remote URL (in setup section)",
                description=(
                    "The skill references a well-known installer script."
                    if known
                    else "The skill contains a curl-pipe-to-shell pattern in its setup section."
                ),
                evidence=snippet[:200],
                line_number=line_number,
                deduction=0,
                recommendation="Consider pinning the installer to a specific version or hash.",
                owasp_category="ASST-02",
            )

        return Finding(
            id=f"BEH-PREREQ-TRAP-{sequence}",
            category=Category.BEHAVIORAL,
            severity=Severity.MEDIUM if adjustment.multiplier < 1 else Severity.HIGH,
            title="Suspicious install pattern: download and execute from remote URL",
            description=(
                "The skill instructs users to download and execute code from a remote URL, "
                "a common supply-chain attack vector."
            ),
            evidence=snippet[:200],
            line_number=line_number,
            deduction=scale_deduction(_TRAP_DEDUCTION, adjustment.multiplier),
            recommendation=(
                "Remove curl-pipe-to-shell patterns. Provide dependencies through safe, "
                "verifiable channels."
            ),
            owasp_category="ASST-02",
        )
    return None


def summarize(findings: Sequence[Finding]) -> str:
    """Summary line for a behavioral finding list."""
    if not findings:
        return "No behavioral risk concerns detected."
    if any(f.severity in (Severity.CRITICAL, Severity.HIGH) for f in findings):
        tail = "High-risk behavioral patterns detected."
    else:
        tail = "Moderate behavioral concerns noted."
    return f"Found {len(findings)} behavioral risk findings. {tail}"
