"""SkillTrust: security scanner and trust scoring for AI agent skills."""

__version__ = "0.1.0"

from skilltrust.parser import parse_skill  # noqa: E402
from skilltrust.scanner import scan_skill, scan_skill_from_url  # noqa: E402
from skilltrust.scoring import aggregate_scores  # noqa: E402

__all__ = [
    "__version__",
    "aggregate_scores",
    "parse_skill",
    "scan_skill",
    "scan_skill_from_url",
]
