"""Fenced code block extraction from markdown."""

import re

from skilltrust.parser.models import CodeBlock

_FENCE_OPEN = re.compile(r"^ {0,3}(`{3,}|~{3,})\s*([\w+#.-]*)[^`]*$")
_HEADING = re.compile(r"^#{1,6}\s+(.+?)\s*#*\s*$")


def extract_code_blocks(
    markdown: str,
    *,
    line_offset: int = 0,
) -> tuple[list[CodeBlock], list[str]]:
    """Extract fenced code blocks from markdown text.

    Both backtick and tilde fences are recognized; a block closes on a fence
    of the same character that is at least as long as the opener. Each block
    remembers the nearest heading above it.
    """
    blocks: list[CodeBlock] = []
    warnings: list[str] = []
    lines = markdown.split("\n")

    in_block = False
    fence = ""
    language = ""
    heading = ""
    block_heading = ""
    block_lines: list[str] = []
    start_line = 0

    for i, line in enumerate(lines):
        line_num = i + 1 + line_offset

        if not in_block:
            heading_match = _HEADING.match(line)
            if heading_match:
                heading = heading_match.group(1)
                continue
            m = _FENCE_OPEN.match(line)
            if m:
                in_block = True
                fence = m.group(1)
                language = m.group(2).lower()
                block_heading = heading
                block_lines = []
                start_line = line_num
        else:
            stripped = line.strip()
            if stripped.startswith(fence) and stripped == fence[0] * len(stripped):
                blocks.append(CodeBlock(
                    language=language,
                    content="\n".join(block_lines),
                    start_line=start_line,
                    end_line=line_num,
                    heading=block_heading,
                ))
                in_block = False
            else:
                block_lines.append(line)

    if in_block:
        warnings.append(f"Unclosed code block starting at line {start_line}")

    return blocks, warnings
