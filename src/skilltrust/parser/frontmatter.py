"""Minimal YAML-subset reader for skill frontmatter.

Supports what skill frontmatter uses in practice: ``key: value`` scalars,
quoted strings, bracketed inline arrays, ``key:`` followed by ``- item``
block lists, and ``|``/``>`` block scalars. Anything else is skipped rather
than rejected, since the input is arbitrary public text.
"""

import re

from skilltrust.parser.models import DeclaredPermission

FrontmatterValue = str | list[str]

_FRONTMATTER = re.compile(r"\A---[ \t]*\r?\n(.*?)\r?\n---[ \t]*(?:\r?\n|\Z)", re.DOTALL)
_KEY_VALUE = re.compile(r"^(\w[\w-]*):\s*(.*)$")
_DECLARED_ITEM = re.compile(r"^([\w.-]+)\s*:\s*(.*)$")
_BLOCK_MARKERS = frozenset({"|", ">", "|-", ">-", "|+", ">+"})


def split_frontmatter(content: str) -> tuple[str | None, str]:
    """Split a leading ``---`` block from the markdown body.

    Returns (frontmatter_text, body). ``frontmatter_text`` is None when the
    content has no complete frontmatter block.
    """
    match = _FRONTMATTER.match(content)
    if match is None:
        return None, content
    return match.group(1), content[match.end() :]


def parse_frontmatter(text: str) -> dict[str, FrontmatterValue]:
    """Parse frontmatter text into a flat mapping of scalars and string lists."""
    data: dict[str, FrontmatterValue] = {}
    key = ""
    mode: str | None = None
    items: list[str] = []
    block: list[str] = []
    block_style = "|"

    for raw_line in text.splitlines():
        stripped = raw_line.strip()
        indented = raw_line[:1] in (" ", "\t")

        if mode == "block":
            if not stripped or indented:
                block.append(stripped)
                continue
            data[key] = _join_block(block, block_style)
            mode = None

        if mode == "list":
            if stripped == "-" or stripped.startswith("- "):
                items.append(_unquote(stripped[1:].strip()))
                continue
            if not stripped or stripped.startswith("#") or indented:
                continue
            data[key] = items
            mode = None

        if not stripped or stripped.startswith("#") or indented:
            continue

        match = _KEY_VALUE.match(stripped)
        if match is None:
            continue

        key = match.group(1)
        value = match.group(2).strip()
        if value == "":
            mode = "list"
            items = []
        elif value in _BLOCK_MARKERS:
            mode = "block"
            block = []
            block_style = value[0]
        elif value.startswith("[") and value.endswith("]"):
            data[key] = [_unquote(part.strip()) for part in value[1:-1].split(",") if part.strip()]
        else:
            data[key] = _unquote(value)

    if mode == "list":
        data[key] = items
    elif mode == "block":
        data[key] = _join_block(block, block_style)

    return data


def extract_declared_permissions(
    frontmatter: dict[str, FrontmatterValue],
) -> tuple[list[str], list[DeclaredPermission]]:
    """Split the ``permissions`` entry into plain permission names and declarations.

    Block-list items shaped ``kind: "justification"`` become declarations;
    everything else is a plain permission string.
    """
    raw = frontmatter.get("permissions")
    if raw is None:
        return [], []
    if isinstance(raw, str):
        return _split_csv(raw), []

    plain: list[str] = []
    declared: list[DeclaredPermission] = []
    for item in raw:
        match = _DECLARED_ITEM.match(item)
        if match is None:
            if item:
                plain.append(item)
            continue
        declared.append(
            DeclaredPermission(kind=match.group(1), justification=_unquote(match.group(2).strip()))
        )
    return plain, declared


def as_list(value: FrontmatterValue | None) -> list[str]:
    """Coerce a frontmatter value to a list of strings."""
    if value is None:
        return []
    if isinstance(value, list):
        return [v for v in value if v]
    return _split_csv(value)


def as_text(value: FrontmatterValue | None) -> str:
    """Coerce a frontmatter value to a single string."""
    if value is None:
        return ""
    if isinstance(value, list):
        return value[0] if value else ""
    return value


def _split_csv(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1]
    return value


def _join_block(lines: list[str], style: str) -> str:
    while lines and not lines[-1]:
        lines.pop()
    if style == ">":
        return " ".join(line for line in lines if line)
    return "\n".join(lines)
