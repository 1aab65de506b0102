"""Tests for SARIF, markdown and terminal output."""

import pytest
from rich.console import Console

from skilltrust.batch import ScanFailure, ScanTargetReport
from skilltrust.config import Config
from skilltrust.parser.models import Severity
from skilltrust.reporters.markdown import build_markdown_report
from skilltrust.reporters.sarif import SCAN_ERROR_RULE_ID, build_sarif_log, sarif_level
from skilltrust.reporters.terminal import TerminalReporter
from skilltrust.scanner import scan_skill

from conftest import E2E_BENIGN, E2E_INJECTION


@pytest.fixture
async def injected(config: Config) -> ScanTargetReport:
    report = await scan_skill(E2E_INJECTION, config=config)
    return ScanTargetReport(target="skills/hi/SKILL.md", report=report)


@pytest.fixture
async def clean(config: Config) -> ScanTargetReport:
    report = await scan_skill(E2E_BENIGN, config=config)
    return ScanTargetReport(target="skills/time/SKILL.md", report=report)


class TestSarif:
    def test_levels(self) -> None:
        assert sarif_level(Severity.CRITICAL) == "error"
        assert sarif_level(Severity.HIGH) == "error"
        assert sarif_level(Severity.MEDIUM) == "warning"
        assert sarif_level(Severity.LOW) == "note"
        assert sarif_level(Severity.INFO) == "note"

    def test_log_structure(self, injected: ScanTargetReport) -> None:
        log = build_sarif_log([injected])

        assert log["version"] == "2.1.0"
        [run] = log["runs"]
        assert run["tool"]["driver"]["name"] == "SkillTrust"
        rule_ids = [rule["id"] for rule in run["tool"]["driver"]["rules"]]
        assert rule_ids == sorted(rule_ids)
        assert "ASST-01" in rule_ids

        assert len(run["results"]) == len(injected.report.findings)
        first = run["results"][0]
        assert first["level"] == "error"
        assert any(r["ruleId"] == "ASST-01" and r["level"] == "error" for r in run["results"])
        assert first["locations"][0]["physicalLocation"]["artifactLocation"]["uri"] == "skills/hi/SKILL.md"
        assert first["properties"]["badge"] == "rejected"
        assert first["message"]["text"].startswith(injected.report.findings[0].title)

    def test_failures_become_scan_error_results(self) -> None:
        failure = ScanFailure(target="https://example.org/SKILL.md", error="404 Not Found")
        log = build_sarif_log([], [failure])

        [run] = log["runs"]
        assert [rule["id"] for rule in run["tool"]["driver"]["rules"]] == [SCAN_ERROR_RULE_ID]
        [result] = run["results"]
        assert result["level"] == "error"
        assert "404 Not Found" in result["message"]["text"]


class TestMarkdown:
    def test_findings_grouped_by_severity(self, injected: ScanTargetReport) -> None:
        text = build_markdown_report(injected.report, injected.target)

        assert text.startswith("# SkillTrust Report")
        assert "**Source:** skills/hi/SKILL.md" in text
        assert "| **Badge** | REJECTED |" in text
        assert "### CRITICAL (" in text
        assert "`ASST-01`" in text
        assert text.endswith("*Generated by SkillTrust*")

    def test_category_table(self, clean: ScanTargetReport) -> None:
        text = build_markdown_report(clean.report, clean.target)
        assert "| injection |" in text
        assert "| 30% |" in text


class TestTerminal:
    def test_report_renders_score_and_findings(self, injected: ScanTargetReport) -> None:
        console = Console(record=True, width=140)
        TerminalReporter(console).report(injected)
        text = console.export_text()

        assert "SkillTrust Scan" in text
        assert "skills/hi/SKILL.md" in text
        assert "REJECTED" in text
        assert "INJ-OVERRIDE" in text

    def test_failure_panel(self) -> None:
        console = Console(record=True, width=140)
        TerminalReporter(console).report_failure(ScanFailure(target="missing.md", error="Target not found"))
        text = console.export_text()
        assert "Scan failed: missing.md" in text
        assert "Target not found" in text
