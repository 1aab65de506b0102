"""Pydantic data models for SkillTrust."""

from collections.abc import Sequence
from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class Severity(StrEnum):
    """Finding severity levels, ordered from most to least severe."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"


class Category(StrEnum):
    """Analysis categories, one per core analyzer."""

    PERMISSIONS = "permissions"
    INJECTION = "injection"
    DEPENDENCIES = "dependencies"
    BEHAVIORAL = "behavioral"
    CONTENT = "content"


class SkillFormat(StrEnum):
    """Detected skill file format."""

    OPENCLAW = "openclaw"
    CLAUDE = "claude"
    GENERIC = "generic"


class Badge(StrEnum):
    """Badge tier summarizing a trust report."""

    CERTIFIED = "certified"
    CONDITIONAL = "conditional"
    SUSPICIOUS = "suspicious"
    REJECTED = "rejected"


SEVERITY_RANK: dict[Severity, int] = {
    Severity.CRITICAL: 0,
    Severity.HIGH: 1,
    Severity.MEDIUM: 2,
    Severity.LOW: 3,
    Severity.INFO: 4,
}

ASST_CATEGORIES: dict[str, str] = {
    "ASST-01": "Instruction Injection",
    "ASST-02": "Data Exfiltration",
    "ASST-03": "Privilege Escalation",
    "ASST-04": "Dependency Hijacking",
    "ASST-05": "Credential Harvesting",
    "ASST-06": "Prompt Injection Relay",
    "ASST-07": "Deceptive Functionality",
    "ASST-08": "Excessive Permissions",
    "ASST-09": "Missing Safety Boundaries",
    "ASST-10": "Obfuscation",
}

_FROZEN = ConfigDict(frozen=True)


class DeclaredPermission(BaseModel):
    """A capability claimed by the skill author. Untrusted input."""

    model_config = _FROZEN

    kind: str
    justification: str = ""


class CodeBlock(BaseModel):
    """A fenced code block extracted from markdown."""

    model_config = _FROZEN

    language: str
    content: str
    start_line: int
    end_line: int
    heading: str = ""


class ParsedSkill(BaseModel):
    """Structured, read-only representation of one skill file."""

    model_config = _FROZEN

    name: str
    description: str = ""
    instructions: str = ""
    tools: tuple[str, ...] = ()
    permissions: tuple[str, ...] = ()
    declared_permissions: tuple[DeclaredPermission, ...] = ()
    dependencies: tuple[str, ...] = ()
    urls: tuple[str, ...] = ()
    raw_sections: dict[str, str] = Field(default_factory=dict)
    raw_content: str = ""
    format: SkillFormat = SkillFormat.GENERIC
    warnings: tuple[str, ...] = ()


class Finding(BaseModel):
    """A single located, explained, deduction-bearing observation."""

    model_config = _FROZEN

    id: str
    category: Category
    severity: Severity
    title: str
    description: str
    evidence: str = ""
    line_number: int | None = None
    deduction: int = Field(default=0, ge=0, le=100)
    recommendation: str = ""
    owasp_category: str = Field(pattern=r"^ASST-(0[1-9]|10)$")


class CategoryScore(BaseModel):
    """Score for one analysis category.

    Always construct through :meth:`from_findings` so the score is derived
    from the current findings rather than mutated incrementally.
    """

    model_config = _FROZEN

    score: int = Field(ge=0, le=100)
    weight: float = Field(ge=0.0, le=1.0)
    findings: tuple[Finding, ...] = ()
    summary: str = ""

    @classmethod
    def from_findings(
        cls,
        findings: Sequence[Finding],
        *,
        weight: float,
        summary: str,
        baseline: int = 100,
    ) -> "CategoryScore":
        """Build a score as ``baseline - sum(deductions)`` clamped to [0, 100]."""
        total = sum(f.deduction for f in findings)
        score = max(0, min(100, baseline - total))
        return cls(score=score, weight=weight, findings=tuple(findings), summary=summary)


class ScanMetadata(BaseModel):
    """Metadata about one scan run."""

    model_config = _FROZEN

    scanned_at: datetime
    version: str
    duration_ms: int = 0
    skill_format: SkillFormat
    skill_name: str = ""
    skill_description: str = ""


class TrustReport(BaseModel):
    """Complete result of scanning one skill."""

    model_config = _FROZEN

    overall: int = Field(ge=0, le=100)
    badge: Badge
    categories: dict[Category, CategoryScore]
    findings: tuple[Finding, ...] = ()
    metadata: ScanMetadata


class SemanticOptions(BaseModel):
    """Explicit configuration for the optional LLM co-analyzer."""

    model_config = _FROZEN

    api_base: str | None = None
    api_key: str | None = None
    model: str | None = None
    timeout_ms: int | None = None


class ScanOptions(BaseModel):
    """Options accepted by the scan entry points."""

    model_config = _FROZEN

    timeout_ms: int | None = None
    retries: int = Field(default=2, ge=0)
    retry_delay_ms: int = Field(default=750, ge=0)
    semantic: bool | SemanticOptions = False
    code_safety: bool = False
