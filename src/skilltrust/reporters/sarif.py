"""SARIF 2.1.0 output for code-scanning integrations."""

from collections.abc import Sequence
from typing import Any

from skilltrust import __version__
from skilltrust.batch import ScanFailure, ScanTargetReport
from skilltrust.parser.models import ASST_CATEGORIES, SEVERITY_RANK, Finding, Severity

SARIF_SCHEMA = "https://json.schemastore.org/sarif-2.1.0.json"
SCAN_ERROR_RULE_ID = "SKILLTRUST-SCAN-ERROR"

_LEVELS: dict[Severity, str] = {
    Severity.CRITICAL: "error",
    Severity.HIGH: "error",
    Severity.MEDIUM: "warning",
    Severity.LOW: "note",
    Severity.INFO: "note",
}


def sarif_level(severity: Severity) -> str:
    return _LEVELS[severity]


def _message(finding: Finding) -> str:
    parts = [finding.title, "", finding.description]
    if finding.evidence:
        parts += ["", f"Evidence: {finding.evidence}"]
    parts += ["", f"Recommendation: {finding.recommendation}"]
    return "\n".join(parts)


def build_sarif_log(
    scans: Sequence[ScanTargetReport],
    failures: Sequence[ScanFailure] = (),
) -> dict[str, Any]:
    """Build a SARIF log with one rule per observed ASST category."""
    by_rule: dict[str, list[Finding]] = {}
    for scan in scans:
        for finding in scan.report.findings:
            by_rule.setdefault(finding.owasp_category, []).append(finding)

    rules: list[dict[str, Any]] = []
    for rule_id in sorted(by_rule):
        title = ASST_CATEGORIES.get(rule_id, "Agent skill security finding")
        worst = min(by_rule[rule_id], key=lambda f: SEVERITY_RANK[f.severity]).severity
        rules.append({
            "id": rule_id,
            "name": title,
            "shortDescription": {"text": title},
            "help": {
                "text": f"Category {rule_id}: {title}. See the finding message for context and mitigation.",
            },
            "defaultConfiguration": {"level": sarif_level(worst)},
            "properties": {"kind": "agent-skill-security"},
        })

    results: list[dict[str, Any]] = []
    for scan in scans:
        report = scan.report
        for finding in report.findings:
            location: dict[str, Any] = {"artifactLocation": {"uri": scan.target}}
            if finding.line_number:
                location["region"] = {"startLine": finding.line_number}
            results.append({
                "ruleId": finding.owasp_category,
                "level": sarif_level(finding.severity),
                "message": {"text": _message(finding)},
                "locations": [{"physicalLocation": location}],
                "properties": {
                    "findingId": finding.id,
                    "category": finding.category.value,
                    "severity": finding.severity.value,
                    "deduction": finding.deduction,
                    "badge": report.badge.value,
                    "overall": report.overall,
                    "skillName": report.metadata.skill_name,
                    "skillFormat": report.metadata.skill_format.value,
                },
            })

    if failures:
        rules.append({
            "id": SCAN_ERROR_RULE_ID,
            "name": "Skill scan failed",
            "shortDescription": {"text": "Failed to fetch or read a target for scanning."},
            "help": {"text": "The scanner could not read a file or fetch a URL. Fix the error and re-run the scan."},
            "defaultConfiguration": {"level": "error"},
            "properties": {"kind": "scan-error"},
        })
        for failure in failures:
            results.append({
                "ruleId": SCAN_ERROR_RULE_ID,
                "level": "error",
                "message": {"text": f"Failed to scan target: {failure.target}\n\n{failure.error}"},
                "locations": [{"physicalLocation": {"artifactLocation": {"uri": failure.target}}}],
            })

    return {
        "$schema": SARIF_SCHEMA,
        "version": "2.1.0",
        "runs": [
            {
                "tool": {
                    "driver": {
                        "name": "SkillTrust",
                        "version": __version__,
                        "rules": rules,
                    }
                },
                "results": results,
            }
        ],
    }
