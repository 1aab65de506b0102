"""Rich terminal reporter for trust reports."""

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from skilltrust.batch import ScanFailure, ScanTargetReport
from skilltrust.parser.models import Badge, Finding, Severity, TrustReport

SEVERITY_COLORS: dict[Severity, str] = {
    Severity.CRITICAL: "bold red",
    Severity.HIGH: "red",
    Severity.MEDIUM: "yellow",
    Severity.LOW: "cyan",
    Severity.INFO: "dim",
}

SEVERITY_SYMBOLS: dict[Severity, str] = {
    Severity.CRITICAL: "[!]",
    Severity.HIGH: "[H]",
    Severity.MEDIUM: "[M]",
    Severity.LOW: "[L]",
    Severity.INFO: "[i]",
}

BADGE_STYLES: dict[Badge, str] = {
    Badge.CERTIFIED: "bold green",
    Badge.CONDITIONAL: "yellow",
    Badge.SUSPICIOUS: "red",
    Badge.REJECTED: "bold red",
}


class TerminalReporter:
    """Format and display trust reports in the terminal."""

    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console(stderr=True)

    def report(self, item: ScanTargetReport) -> None:
        """Display a full report for one scanned target."""
        self._print_header(item)
        self._print_categories(item.report)
        self._print_findings_table(item.report)
        self._print_summary(item.report)

    def report_failure(self, failure: ScanFailure) -> None:
        self._console.print(
            Panel(Text(failure.error, style="red"), title=f"Scan failed: {failure.target}", border_style="red")
        )

    def _print_header(self, item: ScanTargetReport) -> None:
        """Print the skill info header."""
        meta = item.report.metadata
        header = Text()
        header.append(f"Skill:  {meta.skill_name}\n", style="bold")
        header.append(f"Target: {item.target}\n")
        header.append(f"Format: {meta.skill_format.value}\n")
        header.append(f"Duration: {meta.duration_ms}ms")
        self._console.print(Panel(header, title="SkillTrust Scan"))

    def _print_categories(self, report: TrustReport) -> None:
        table = Table(title="Categories", expand=True)
        table.add_column("Category", ratio=1)
        table.add_column("Score", width=7, justify="right")
        table.add_column("Weight", width=7, justify="right")
        table.add_column("Summary", ratio=3)
        for category, score in report.categories.items():
            table.add_row(category.value, str(score.score), f"{score.weight:.2f}", score.summary)
        self._console.print(table)

    def _print_findings_table(self, report: TrustReport) -> None:
        """Print findings as a formatted table."""
        if not report.findings:
            self._console.print("\n[bold green]No findings.[/bold green] Skill looks clean.\n")
            return

        table = Table(title="Findings", show_lines=True, expand=True)
        table.add_column("Severity", width=12)
        table.add_column("ID", width=20)
        table.add_column("Title", ratio=2)
        table.add_column("Line", width=6)
        table.add_column("-Pts", width=5, justify="right")

        # Findings arrive sorted by severity.
        for finding in report.findings:
            sev_text = Text(
                f"{SEVERITY_SYMBOLS[finding.severity]} {finding.severity.value.upper()}",
                style=SEVERITY_COLORS[finding.severity],
            )
            table.add_row(
                sev_text,
                finding.id,
                finding.title,
                str(finding.line_number or ""),
                str(finding.deduction),
            )

        self._console.print(table)

        for finding in report.findings:
            if finding.severity in (Severity.CRITICAL, Severity.HIGH):
                self._print_finding_detail(finding)

    def _print_finding_detail(self, finding: Finding) -> None:
        """Print detailed info for a single finding."""
        content = Text()
        content.append(f"{finding.description}\n\n")
        if finding.evidence:
            content.append("Evidence:\n", style="bold")
            content.append(f"  {finding.evidence}\n\n")
        if finding.recommendation:
            content.append("Recommendation: ", style="bold")
            content.append(finding.recommendation)
        self._console.print(
            Panel(
                content,
                title=f"{finding.id} ({finding.owasp_category}): {finding.title}",
                border_style=SEVERITY_COLORS[finding.severity],
            )
        )

    def _print_summary(self, report: TrustReport) -> None:
        """Print the trust score and badge."""
        style = BADGE_STYLES[report.badge]
        summary = Text()
        summary.append("\nTrust Score: ", style="bold")
        summary.append(f"{report.overall}/100", style=style)
        summary.append(f"  ({report.badge.value.upper()})", style=style)
        summary.append(f"\nTotal Findings: {len(report.findings)}")

        for sev in Severity:
            count = sum(1 for f in report.findings if f.severity == sev)
            if count > 0:
                summary.append(f"\n  {sev.value}: {count}", style=SEVERITY_COLORS[sev])

        self._console.print(Panel(summary, title="Summary"))
