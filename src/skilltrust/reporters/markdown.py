"""Markdown trust report."""

from skilltrust.parser.models import Severity, TrustReport


def build_markdown_report(report: TrustReport, source: str) -> str:
    meta = report.metadata
    lines = [
        "# SkillTrust Report",
        "",
        f"**Source:** {source}",
        f"**Skill:** {meta.skill_name}",
        f"**Scanner:** v{meta.version}",
        f"**Scanned:** {meta.scanned_at.isoformat()}",
        f"**Format:** {meta.skill_format.value}",
        f"**Duration:** {meta.duration_ms}ms",
        "",
        "## Result",
        "",
        "| Metric | Value |",
        "|--------|-------|",
        f"| **Score** | {report.overall}/100 |",
        f"| **Badge** | {report.badge.value.upper()} |",
        "",
        "## Category Scores",
        "",
        "| Category | Score | Weight |",
        "|----------|-------|--------|",
    ]
    for category, score in report.categories.items():
        lines.append(f"| {category.value} | {score.score}/100 | {score.weight * 100:.0f}% |")
    lines.append("")

    if not report.findings:
        lines += ["## Findings", "", "No security findings detected.", ""]
    else:
        lines += [f"## Findings ({len(report.findings)})", ""]
        for severity in Severity:
            group = [f for f in report.findings if f.severity is severity]
            if not group:
                continue
            lines += [f"### {severity.value.upper()} ({len(group)})", ""]
            for finding in group:
                lines.append(f"- **{finding.title}** `{finding.owasp_category}`")
                if finding.evidence:
                    evidence = finding.evidence.replace("`", "'")
                    lines.append(f"  - Evidence: `{evidence}`")
                if finding.recommendation:
                    lines.append(f"  - {finding.recommendation}")
                lines.append("")

    lines += ["---", "*Generated by SkillTrust*"]
    return "\n".join(lines)
