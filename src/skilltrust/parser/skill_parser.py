"""SKILL.md content parser."""

import asyncio
import logging
import re
from pathlib import Path

from skilltrust.exceptions import ParseError
from skilltrust.parser.frontmatter import (
    FrontmatterValue,
    as_list,
    as_text,
    extract_declared_permissions,
    parse_frontmatter,
    split_frontmatter,
)
from skilltrust.parser.models import DeclaredPermission, ParsedSkill, SkillFormat

logger = logging.getLogger(__name__)

_URL = re.compile(r"https?://[^\s\"'<>\])+,;`]+", re.IGNORECASE)
_URL_TRAILING = ".,:;!?*)'\""
_SECTION_HEADING = re.compile(r"^#{1,3}\s+(.+)")
_TITLE_HEADING = re.compile(r"^#\s+(.+)", re.MULTILINE)
_LIST_ITEM = re.compile(r"^[-*]\s+`?(\w[\w._-]*)`?")
_CLAUDE_HEADING = re.compile(r"^##\s+(tools|instructions|description)", re.IGNORECASE | re.MULTILINE)

_MIN_DESCRIPTION_CHARS = 10
_MAX_NAME_CHARS = 100
_UNKNOWN_NAME = "Unknown Skill"


def parse_skill(content: str) -> ParsedSkill:
    """Parse raw skill content into a structured ParsedSkill.

    Never raises: skill files are arbitrary public text, so any internal
    failure degrades to a mostly empty skill carrying a warning.
    """
    try:
        return _parse(content)
    except Exception as e:
        logger.warning("Skill parsing failed, falling back to raw content: %s", e)
        return ParsedSkill(
            name=_fallback_name(content),
            instructions=content,
            raw_content=content,
            warnings=(f"Failed to parse skill content: {e}",),
        )


async def read_skill_file(path: Path) -> str:
    """Read a skill file asynchronously."""
    try:
        return await asyncio.to_thread(path.read_text, encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ParseError(f"Cannot read file {path}: {e}") from e


def _parse(raw: str) -> ParsedSkill:
    warnings: list[str] = []
    # raw_content keeps the BOM so the Unicode checks still see it.
    content = raw.removeprefix("\ufeff")

    frontmatter_text, body = split_frontmatter(content)
    frontmatter: dict[str, FrontmatterValue] = {}
    if frontmatter_text is not None:
        frontmatter = parse_frontmatter(frontmatter_text)
    elif content.startswith("---"):
        warnings.append("Frontmatter block is not terminated; treating it as markdown")

    sections = _extract_sections(content)
    skill_format = _detect_format(content, frontmatter)

    name = ""
    description = ""
    instructions = ""
    tools: list[str] = []
    permissions: list[str] = []
    declared: list[DeclaredPermission] = []
    dependencies: list[str] = []

    if skill_format is SkillFormat.OPENCLAW:
        name = as_text(frontmatter.get("name")).strip()
        description = as_text(frontmatter.get("description")).strip()
        tools = as_list(frontmatter.get("tools"))
        permissions, declared = _permissions_from(frontmatter, warnings)
        dependencies = as_list(frontmatter.get("dependencies"))
        instructions = body.strip()
    elif skill_format is SkillFormat.CLAUDE:
        description = _section(sections, "description")
        if not description:
            name = next(iter(sections), "")
        instructions = _section(sections, "instructions")
        tools = _extract_list_items(_section(sections, "tools"))
        permissions = _extract_list_items(_section(sections, "permissions"))
        if frontmatter:
            extra, declared = _permissions_from(frontmatter, warnings)
            permissions.extend(extra)
    else:
        name = next(iter(sections), "")
        description = (
            _section(sections, "description")
            or _section(sections, "about")
            or next(iter(sections.values()), "")
        )
        instructions = content
        if frontmatter:
            permissions, declared = _permissions_from(frontmatter, warnings)

    if not name:
        name = _fallback_name(body)

    if len(description.strip()) < _MIN_DESCRIPTION_CHARS:
        warnings.append("No description found in skill file")

    for warning in warnings:
        logger.debug("Parser warning for %r: %s", name, warning)

    return ParsedSkill(
        name=name,
        description=description,
        instructions=instructions,
        tools=tuple(tools),
        permissions=tuple(dict.fromkeys(permissions)),
        declared_permissions=tuple(declared),
        dependencies=tuple(dependencies),
        urls=tuple(_extract_urls(content)),
        raw_sections=sections,
        raw_content=raw,
        format=skill_format,
        warnings=tuple(warnings),
    )


def _detect_format(content: str, frontmatter: dict[str, FrontmatterValue]) -> SkillFormat:
    if "name" in frontmatter or "tools" in frontmatter:
        return SkillFormat.OPENCLAW
    lowered = content.lower()
    if _CLAUDE_HEADING.search(content) or "claude" in lowered or "anthropic" in lowered:
        return SkillFormat.CLAUDE
    return SkillFormat.GENERIC


def _permissions_from(
    frontmatter: dict[str, FrontmatterValue],
    warnings: list[str],
) -> tuple[list[str], list[DeclaredPermission]]:
    """Plain permissions plus declarations; declared kinds count as permissions too."""
    try:
        plain, declared = extract_declared_permissions(frontmatter)
    except ValueError as e:
        warnings.append(f"Ignoring malformed permission declarations: {e}")
        return as_list(frontmatter.get("permissions")), []
    return [*plain, *(d.kind for d in declared)], declared


def _extract_sections(content: str) -> dict[str, str]:
    """Map each level 1-3 heading to the text beneath it. First occurrence wins."""
    sections: dict[str, str] = {}
    heading = ""
    buffer: list[str] = []

    def flush() -> None:
        if heading and heading not in sections:
            sections[heading] = "\n".join(buffer).strip()

    for line in content.split("\n"):
        match = _SECTION_HEADING.match(line)
        if match:
            flush()
            heading = match.group(1).strip()
            buffer = []
        else:
            buffer.append(line)
    flush()
    return sections


def _section(sections: dict[str, str], title: str) -> str:
    for heading, text in sections.items():
        if heading.lower() == title:
            return text
    return ""


def _extract_urls(content: str) -> list[str]:
    urls: dict[str, None] = {}
    for match in _URL.finditer(content):
        url = match.group(0).rstrip(_URL_TRAILING)
        if url:
            urls[url] = None
    return list(urls)


def _extract_list_items(text: str) -> list[str]:
    items: list[str] = []
    for line in text.split("\n"):
        match = _LIST_ITEM.match(line.strip())
        if match:
            items.append(match.group(1))
    return items


def _fallback_name(text: str) -> str:
    heading = _TITLE_HEADING.search(text)
    if heading:
        return heading.group(1).strip()
    for line in text.split("\n"):
        if line.strip():
            return line.strip()[:_MAX_NAME_CHARS]
    return _UNKNOWN_NAME
