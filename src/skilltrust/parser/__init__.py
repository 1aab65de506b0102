"""SKILL.md parser module."""

from skilltrust.parser.models import CodeBlock, DeclaredPermission, ParsedSkill
from skilltrust.parser.skill_parser import parse_skill, read_skill_file

__all__ = ["CodeBlock", "DeclaredPermission", "ParsedSkill", "parse_skill", "read_skill_file"]
