"""Per-scan content context shared by the analyzers.

The context separates prose directives from example code, safety-boundary
sections and negated statements, so that "do NOT send data" and a code
sample are not scored like a live instruction. It is built once per scan by
:func:`build_content_context` and never shared between scans.
"""

import re
from bisect import bisect_right
from dataclasses import dataclass

from skilltrust.parser.models import Severity

NEGATION_MULTIPLIER = 0.0
CODE_BLOCK_MULTIPLIER = 0.3

REASON_NEGATION = "preceded by negation"
REASON_CODE_BLOCK = "inside code block"
REASON_SAFETY_SECTION = "inside safety boundary section"

_FENCE = re.compile(r"^(`{3,}|~{3,}).*$", re.MULTILINE)
_INLINE_CODE = re.compile(r"`[^`\n]+`")
_SAFETY_HEADING = re.compile(
    r"^(#{2,4})\s+(?:safety\s+boundar|limitations?\b|restrictions?\b|constraints?\b"
    r"|prohibited|forbidden|do\s+not\s+(?:use|do)|don[\x27\u2019]?t\s+(?:use|do)"
    r"|must\s+not|will\s+not|what\s+(?:this\s+skill\s+)?(?:does|should)\s+not)",
    re.IGNORECASE | re.MULTILINE,
)
_HEADING = re.compile(r"^(#{1,6})\s+", re.MULTILINE)
_NEGATION_SUFFIX = re.compile(
    r"(?:do\s+not|don[\x27\u2019]?t|should\s+not|must\s+not|will\s+not|cannot|never|no\s+)\s*$",
    re.IGNORECASE,
)

# Threat-listing heuristics: security tooling documents the attacks it detects.
_TABLE_ROW = re.compile(r"^\s*\|.*\|")
_TABLE_VOCAB = re.compile(
    r"\b(?:pattern|indicator|type|category|technique|example|critical|high|warning|risk"
    r"|dangerous|override|jailbreak|injection|exfiltration|attack)\b",
    re.IGNORECASE,
)
_DETECTION_BULLET = re.compile(
    r"^\s*[-*\u2022]\s*(?:[\"\x27\u201c\u201d]|pattern|detect|flag|block|scan\s+for|look\s+for|check\s+for)",
    re.IGNORECASE,
)
_BOLD_LABEL_QUOTE = re.compile(r"^\s*[-*\u2022]\s*\*\*[^*]+\*\*\s*[:\u2014\u2013-]\s*[\"\x27\u201c\u201d]")
_BOLD_LABEL_COLON = re.compile(r"^\s*[-*\u2022]\s*\*\*[^*]*:\*\*")
_EXAMPLE_LINE = re.compile(
    r"\b(?:example|evidence|if\s+.*says?|indicator|caption|sample|test\s+case|detection)\b",
    re.IGNORECASE,
)
_DETECTION_PRELUDE = re.compile(
    r"\b(?:detect(?:s|ion|ed)?|scan(?:s|ning)?|flag(?:s|ged)?|block(?:s|ed)?|watch\s+for"
    r"|monitor(?:s|ing)?|reject(?:s|ed)?|filter(?:s|ed)?|high-confidence\s+injection"
    r"|attack\s+(?:pattern|vector|coverage|surface)|common\s+(?:attack|pattern)"
    r"|malicious\s+(?:pattern|user|content)|example\s+indicator|dangerous\s+command"
    r"|threat\s+(?:pattern|categor)|what\s+(?:it|we)\s+detect|prompt(?:s|ed)?\s+that\s+attempt"
    r"|direct\s+injection|injection\s+(?:type|categor|pattern|vector))\b",
    re.IGNORECASE,
)
_PRELUDE_CHARS = 500
_PRELUDE_LINES = 5

_DOWNGRADE: dict[Severity, Severity] = {
    Severity.CRITICAL: Severity.HIGH,
    Severity.HIGH: Severity.MEDIUM,
    Severity.MEDIUM: Severity.LOW,
    Severity.LOW: Severity.INFO,
    Severity.INFO: Severity.INFO,
}


@dataclass(frozen=True)
class Span:
    """Half-open character range ``[start, end)``."""

    start: int
    end: int

    def __contains__(self, offset: int) -> bool:
        return self.start <= offset < self.end


@dataclass(frozen=True)
class ContextAdjustment:
    """Severity multiplier for a match plus the reason, if any."""

    multiplier: float
    reason: str | None = None


@dataclass(frozen=True)
class ContentContext:
    """Code-block, safety-section and line-offset tables for one skill."""

    content: str
    code_blocks: tuple[Span, ...]
    safety_sections: tuple[Span, ...]
    line_offsets: tuple[int, ...]

    def line_number(self, index: int) -> int:
        """1-based line number of a character offset."""
        return bisect_right(self.line_offsets, index)

    def line_at(self, index: int) -> str:
        """Full text of the line containing a character offset."""
        start = self.content.rfind("\n", 0, index) + 1
        end = self.content.find("\n", index)
        return self.content[start : end if end >= 0 else len(self.content)]

    def in_code_block(self, index: int) -> bool:
        return any(index in span for span in self.code_blocks)

    def in_safety_section(self, index: int) -> bool:
        return any(index in span for span in self.safety_sections)

    def is_negated(self, index: int) -> bool:
        """True when a negation phrase directly precedes the match on its line."""
        line_start = self.content.rfind("\n", 0, index) + 1
        return _NEGATION_SUFFIX.search(self.content[line_start:index]) is not None

    def adjust(self, index: int) -> ContextAdjustment:
        """Context multiplier for a match starting at ``index``.

        Safety sections keep full weight: headings are author-controlled, so
        an attack placed under "Safety Boundaries" must still count. The
        reason is kept so findings can say where they were found.
        """
        if self.is_negated(index):
            return ContextAdjustment(NEGATION_MULTIPLIER, REASON_NEGATION)
        if self.in_code_block(index):
            return ContextAdjustment(CODE_BLOCK_MULTIPLIER, REASON_CODE_BLOCK)
        if self.in_safety_section(index):
            return ContextAdjustment(1.0, REASON_SAFETY_SECTION)
        return ContextAdjustment(1.0)

    def in_threat_listing(self, index: int) -> bool:
        """True when a match sits in educational material listing attack patterns.

        Covers pattern tables, detect/flag/block bullet lists, bold-labeled
        bullets, example/evidence lines, and text introduced by detection
        vocabulary in the few preceding lines.
        """
        line = self.line_at(index)
        if _TABLE_ROW.match(line) and _TABLE_VOCAB.search(line):
            return True
        if _DETECTION_BULLET.match(line):
            return True
        if _BOLD_LABEL_QUOTE.match(line) or _BOLD_LABEL_COLON.match(line):
            return True
        if _EXAMPLE_LINE.search(line):
            return True

        line_start = self.content.rfind("\n", 0, index) + 1
        preceding = self.content[max(0, line_start - _PRELUDE_CHARS) : line_start]
        prelude = " ".join(preceding.split("\n")[-_PRELUDE_LINES:])
        return _DETECTION_PRELUDE.search(prelude) is not None


def build_content_context(content: str) -> ContentContext:
    """Precompute the lookup tables for one skill's raw content."""
    line_offsets = [0]
    line_offsets.extend(m.end() for m in re.finditer("\n", content))

    return ContentContext(
        content=content,
        code_blocks=tuple(_code_spans(content)),
        safety_sections=tuple(_safety_spans(content)),
        line_offsets=tuple(line_offsets),
    )


def downgrade(severity: Severity) -> Severity:
    """Lower a severity by one tier. INFO stays INFO."""
    return _DOWNGRADE[severity]


def scale_deduction(deduction: int, multiplier: float) -> int:
    """Scale a deduction by a context multiplier, rounding half up."""
    return int(deduction * multiplier + 0.5)


def _code_spans(content: str) -> list[Span]:
    spans: list[Span] = []
    opener: re.Match[str] | None = None
    for match in _FENCE.finditer(content):
        if opener is None:
            opener = match
        elif match.group(1)[0] == opener.group(1)[0] and match.group(0).strip() == match.group(1):
            spans.append(Span(opener.start(), match.end()))
            opener = None
    spans.extend(Span(m.start(), m.end()) for m in _INLINE_CODE.finditer(content))
    return spans


def _safety_spans(content: str) -> list[Span]:
    spans: list[Span] = []
    for match in _SAFETY_HEADING.finditer(content):
        level = len(match.group(1))
        end = len(content)
        for heading in _HEADING.finditer(content, match.end()):
            if len(heading.group(1)) <= level:
                end = heading.start()
                break
        spans.append(Span(match.start(), end))
    return spans
