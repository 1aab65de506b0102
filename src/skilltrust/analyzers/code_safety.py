"""Static analysis of code blocks embedded in skill markdown.

Scans fenced blocks in shell, JavaScript, Python and similar languages for
dangerous runtime behavior: shell execution, eval, crypto mining, bulk
environment access, file exfiltration and obfuscated payloads. Findings are
reported under the behavioral category.
"""

import math
import re
from collections.abc import Sequence

from skilltrust.analyzers.context import ContentContext, downgrade
from skilltrust.parser.code_extractor import extract_code_blocks
from skilltrust.parser.models import Category, CodeBlock, Finding, ParsedSkill
from skilltrust.rules.engine import Rule, get_rules_by_analyzer

SCANNABLE_LANGUAGES = frozenset({
    "js", "javascript", "ts", "typescript", "mjs", "cjs", "jsx", "tsx", "node",
    "sh", "bash", "zsh", "shell",
    "python", "py", "rb", "ruby", "perl",
    "",
})
STANDARD_PORTS = frozenset({80, 443, 8080, 8443, 3000, 3001, 5000, 8000})

_EXAMPLE_HEADING = re.compile(
    r"\b(?:examples?|usage|demo|output|samples?|tutorial|getting.started|how.to)\b",
    re.IGNORECASE,
)
_EXAMPLE_DIVISOR = 3
_EVIDENCE_CHARS = 120


def is_example_block(block: CodeBlock) -> bool:
    return _EXAMPLE_HEADING.search(block.heading) is not None


class CodeSafetyAnalyzer:
    """Companion analyzer; its findings are merged into the behavioral score."""

    def __init__(self, rules: Sequence[Rule]) -> None:
        rules = get_rules_by_analyzer(list(rules), "code_safety")
        self._line_rules = [r for r in rules if r.scope == "line"]
        self._source_rules = [r for r in rules if r.scope == "source"]

    @property
    def name(self) -> str:
        return "code_safety"

    @property
    def category(self) -> Category:
        return Category.BEHAVIORAL

    async def analyze(self, skill: ParsedSkill, context: ContentContext) -> list[Finding]:
        blocks, _ = extract_code_blocks(context.content)
        findings: list[Finding] = []
        seen: set[str] = set()
        for block in blocks:
            if block.language not in SCANNABLE_LANGUAGES:
                continue
            for finding in self._scan_block(block):
                if finding.id in seen:
                    continue
                seen.add(finding.id)
                findings.append(finding)
        return findings

    def _scan_block(self, block: CodeBlock) -> list[Finding]:
        findings: list[Finding] = []
        source = block.content
        lines = source.split("\n")
        example = is_example_block(block)

        for rule in self._line_rules:
            if rule.requires is not None and not rule.requires.search(source):
                continue
            hit = _first_line_hit(rule, lines)
            if hit is not None:
                offset, line = hit
                findings.append(_finding(rule, block, example, offset, line))

        for rule in self._source_rules:
            if not any(p.regex.search(source) for p in rule.patterns):
                continue
            if rule.requires is not None and not rule.requires.search(source):
                continue
            offset, line = 0, source[:_EVIDENCE_CHARS]
            for i, text in enumerate(lines):
                if any(p.regex.search(text) for p in rule.patterns):
                    offset, line = i, text
                    break
            findings.append(_finding(rule, block, example, offset, line))

        return findings


def _first_line_hit(rule: Rule, lines: list[str]) -> tuple[int, str] | None:
    for i, line in enumerate(lines):
        for pattern in rule.patterns:
            match = pattern.regex.search(line)
            if match is None:
                continue
            if rule.kind == "websocket_port" and match.lastindex:
                if int(match.group(1)) in STANDARD_PORTS:
                    continue
            return i, line
    return None


def _finding(rule: Rule, block: CodeBlock, example: bool, offset: int, line: str) -> Finding:
    severity = downgrade(rule.severity) if example else rule.severity
    deduction = math.ceil(rule.deduction / _EXAMPLE_DIVISOR) if example else rule.deduction
    description = rule.description
    if example:
        description += " (Found in example/documentation code block, reduced severity.)"
        advice = "This appears in an example section. Verify it is documentation, not executed code."
    else:
        advice = rule.remediation or "Ensure this pattern is necessary and does not pose a security risk."

    evidence = line.strip()
    if len(evidence) > _EVIDENCE_CHARS:
        evidence = evidence[:_EVIDENCE_CHARS] + "..."

    return Finding(
        id=rule.id,
        category=Category.BEHAVIORAL,
        severity=severity,
        title=rule.title,
        description=description,
        evidence=evidence,
        # The opening fence sits on start_line, so code starts one below it.
        line_number=block.start_line + 1 + offset,
        deduction=deduction,
        recommendation=f"Review the code block starting at line {block.start_line}. {advice}",
        owasp_category=rule.owasp_category,
    )
