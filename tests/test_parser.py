"""Tests for the SKILL.md parser."""

from pathlib import Path

import pytest

from skilltrust.exceptions import ParseError
from skilltrust.parser import parse_skill, read_skill_file
from skilltrust.parser.code_extractor import extract_code_blocks
from skilltrust.parser.frontmatter import parse_frontmatter, split_frontmatter
from skilltrust.parser.models import SkillFormat


class TestFrontmatterExtraction:
    """Tests for frontmatter-based (OpenClaw) skills."""

    async def test_parse_benign_weather_tool(self, benign_dir: Path) -> None:
        content = await read_skill_file(benign_dir / "weather-tool" / "SKILL.md")
        skill = parse_skill(content)
        assert skill.format is SkillFormat.OPENCLAW
        assert skill.name == "weather-tool"
        assert skill.tools == ("web_fetch",)
        assert "network" in skill.permissions
        assert skill.declared_permissions[0].kind == "network"
        assert skill.warnings == ()

    def test_inline_array_permissions(self) -> None:
        skill = parse_skill("---\nname: time\ndescription: returns current time\npermissions: [read]\n---\n# time\n")
        assert skill.permissions == ("read",)
        assert skill.declared_permissions == ()

    def test_declared_permission_block_list(self) -> None:
        content = (
            "---\n"
            "name: fetcher\n"
            "description: Fetches pages from the web.\n"
            "permissions:\n"
            '  - network: "Needs to call the docs API"\n'
            "  - file_read\n"
            "---\n"
            "# fetcher\n"
        )
        skill = parse_skill(content)
        assert [d.kind for d in skill.declared_permissions] == ["network"]
        assert skill.declared_permissions[0].justification == "Needs to call the docs API"
        assert set(skill.permissions) == {"file_read", "network"}

    def test_block_scalar_description(self) -> None:
        data = parse_frontmatter("name: x\ndescription: >\n  first line\n  second line\ntools: [a, b]")
        assert data["description"] == "first line second line"
        assert data["tools"] == ["a", "b"]

    def test_leading_bom_keeps_frontmatter(self) -> None:
        content = "\ufeff---\nname: calc\ndescription: Evaluates arithmetic expressions.\npermissions: [exec, sudo]\n---\n# calc\n"
        skill = parse_skill(content)
        assert skill.format is SkillFormat.OPENCLAW
        assert skill.name == "calc"
        assert skill.description == "Evaluates arithmetic expressions."
        assert skill.permissions == ("exec", "sudo")
        assert skill.raw_content == content

    def test_split_without_frontmatter(self) -> None:
        assert split_frontmatter("# Title\nbody") == (None, "# Title\nbody")

    def test_unterminated_frontmatter_warns(self) -> None:
        skill = parse_skill("---\nname: broken\n# Body heading\nSome text here.")
        assert skill.format is SkillFormat.GENERIC
        assert any("not terminated" in w for w in skill.warnings)


class TestFormatDetection:
    """Tests for Claude and generic skill formats."""

    def test_claude_format_sections(self) -> None:
        content = (
            "# My Skill\n\n"
            "## Description\nConverts units between metric and imperial.\n\n"
            "## Tools\n- `calculator`\n- bash\n"
        )
        skill = parse_skill(content)
        assert skill.format is SkillFormat.CLAUDE
        assert skill.name == "My Skill"
        assert skill.description == "Converts units between metric and imperial."
        assert skill.tools == ("calculator", "bash")

    def test_generic_format_uses_first_heading(self) -> None:
        skill = parse_skill("# Notes Helper\n\nKeeps your notes in order.\n")
        assert skill.format is SkillFormat.GENERIC
        assert skill.name == "Notes Helper"
        assert skill.description == "Keeps your notes in order."

    def test_empty_content_never_raises(self) -> None:
        skill = parse_skill("")
        assert skill.name == "Unknown Skill"
        assert "No description found in skill file" in skill.warnings


class TestUrlExtraction:
    def test_urls_are_deduplicated_and_trimmed(self) -> None:
        content = (
            "# Links\n\nSee https://pypi.org/project/httpx/. Also (https://example.org/a) "
            "and https://pypi.org/project/httpx/ again."
        )
        skill = parse_skill(content)
        assert skill.urls == ("https://pypi.org/project/httpx/", "https://example.org/a")


class TestReadSkillFile:
    async def test_missing_file_raises_parse_error(self, tmp_path: Path) -> None:
        with pytest.raises(ParseError):
            await read_skill_file(tmp_path / "nonexistent" / "SKILL.md")


class TestCodeExtractor:
    """Tests for code block extraction."""

    def test_backtick_and_tilde_blocks(self) -> None:
        md = "# Setup\n\n```bash\necho hi\n```\n\n~~~python\nprint(1)\n~~~\n"
        blocks, warnings = extract_code_blocks(md)
        assert warnings == []
        assert [b.language for b in blocks] == ["bash", "python"]
        assert blocks[0].heading == "Setup"
        assert (blocks[0].start_line, blocks[0].end_line) == (3, 5)
        assert blocks[1].content == "print(1)"

    def test_longer_fence_contains_shorter_fence(self) -> None:
        md = "````md\n```\ninner\n```\n````"
        blocks, _ = extract_code_blocks(md)
        assert len(blocks) == 1
        assert blocks[0].content == "```\ninner\n```"

    def test_unclosed_block_warns(self) -> None:
        blocks, warnings = extract_code_blocks("```js\nconsole.log(1)\n")
        assert blocks == []
        assert warnings == ["Unclosed code block starting at line 1"]

    def test_line_offset(self) -> None:
        blocks, _ = extract_code_blocks("```sh\nls\n```", line_offset=10)
        assert blocks[0].start_line == 11
