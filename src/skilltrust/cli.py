"""SkillTrust CLI entry point."""

import asyncio
import json
import logging
from pathlib import Path

import click
from rich.console import Console

from skilltrust import __version__
from skilltrust.batch import DEFAULT_CONCURRENCY, BatchResult, scan_targets_batch
from skilltrust.config import Config
from skilltrust.exceptions import ConfigError, RuleLoadError, ScanTargetError
from skilltrust.parser.models import SEVERITY_RANK, Badge, ScanOptions, Severity
from skilltrust.reporters.markdown import build_markdown_report
from skilltrust.reporters.sarif import build_sarif_log
from skilltrust.reporters.terminal import TerminalReporter
from skilltrust.targets import expand_scan_targets

logger = logging.getLogger(__name__)

_FAILING_BADGES = frozenset({Badge.SUSPICIOUS, Badge.REJECTED})


@click.group()
@click.version_option(version=__version__)
def main() -> None:
    """SkillTrust - Trust scoring for AI agent skills."""


@main.command()
@click.argument("targets", nargs=-1, required=True)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["terminal", "json", "sarif", "markdown"]),
    default="terminal",
    help="Output format.",
)
@click.option(
    "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write the report to a file instead of stdout.",
)
@click.option(
    "--fail-on-severity",
    type=click.Choice([*(s.value for s in Severity), "none"]),
    default="none",
    help="Exit 1 if any finding is at or above this severity.",
)
@click.option("--semantic/--no-semantic", default=False, help="Enable the LLM semantic co-analyzer.")
@click.option("--code-safety/--no-code-safety", default=False, help="Enable code block analysis.")
@click.option("--timeout", "timeout_ms", type=click.IntRange(min=1), default=None, help="Fetch timeout in ms.")
@click.option("--retries", type=click.IntRange(min=0), default=2, show_default=True, help="Fetch retries.")
@click.option(
    "--retry-delay-ms",
    type=click.IntRange(min=0),
    default=750,
    show_default=True,
    help="Base delay between fetch retries.",
)
@click.option(
    "--concurrency",
    type=click.IntRange(min=1),
    default=DEFAULT_CONCURRENCY,
    show_default=True,
    help="Number of targets scanned at once.",
)
@click.option(
    "--rules",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Path to custom rules YAML.",
)
def scan(
    targets: tuple[str, ...],
    output_format: str,
    output: Path | None,
    fail_on_severity: str,
    semantic: bool,
    code_safety: bool,
    timeout_ms: int | None,
    retries: int,
    retry_delay_ms: int,
    concurrency: int,
    rules: Path | None,
) -> None:
    """Scan SKILL.md files, skill directories or URLs and score their trust."""
    try:
        expanded = expand_scan_targets(targets)
    except ScanTargetError as e:
        raise click.ClickException(str(e)) from e
    if not expanded:
        raise click.ClickException("No SKILL.md files found in the given targets.")

    options = ScanOptions(
        timeout_ms=timeout_ms,
        retries=retries,
        retry_delay_ms=retry_delay_ms,
        semantic=semantic,
        code_safety=code_safety,
    )
    try:
        config = Config.load(rules_path=rules)
    except (ConfigError, RuleLoadError) as e:
        raise click.ClickException(str(e)) from e
    if semantic and not config.semantic_available:
        logger.warning("Semantic analysis requested but no LLM API key is configured; skipping it")
    result = asyncio.run(
        scan_targets_batch(expanded, options, config=config, concurrency=concurrency)
    )

    _emit(result, output_format, output)
    raise SystemExit(exit_code(result, fail_on_severity))


def exit_code(result: BatchResult, fail_on_severity: str) -> int:
    """2 if any target failed, 1 if the policy fails, otherwise 0."""
    if result.failures:
        return 2
    if violates_severity_policy(result, fail_on_severity):
        return 1
    if any(item.report.badge in _FAILING_BADGES for item in result.reports):
        return 1
    return 0


def violates_severity_policy(result: BatchResult, fail_on_severity: str) -> bool:
    if fail_on_severity == "none":
        return False
    threshold = SEVERITY_RANK[Severity(fail_on_severity)]
    return any(
        SEVERITY_RANK[finding.severity] <= threshold
        for item in result.reports
        for finding in item.report.findings
    )


def _emit(result: BatchResult, output_format: str, output: Path | None) -> None:
    if output_format == "terminal":
        if output is None:
            _print_terminal(result, Console())
        else:
            with output.open("w", encoding="utf-8") as handle:
                _print_terminal(result, Console(file=handle, width=120))
        return

    text = render(result, output_format)
    if output is None:
        click.echo(text)
    else:
        output.write_text(text + "\n", encoding="utf-8")
        click.echo(f"Report written to {output}", err=True)


def render(result: BatchResult, output_format: str) -> str:
    """Render a batch result as json, sarif or markdown text."""
    if output_format == "json":
        if len(result.reports) == 1 and not result.failures:
            return result.reports[0].report.model_dump_json(indent=2)
        return result.model_dump_json(indent=2)
    if output_format == "sarif":
        return json.dumps(build_sarif_log(result.reports, result.failures), indent=2)
    if output_format == "markdown":
        sections = [build_markdown_report(item.report, item.target) for item in result.reports]
        sections += [f"# Scan failed: {f.target}\n\n{f.error}" for f in result.failures]
        return "\n\n".join(sections)
    raise ValueError(f"Unsupported output format: {output_format}")


def _print_terminal(result: BatchResult, console: Console) -> None:
    reporter = TerminalReporter(console)
    for item in result.reports:
        reporter.report(item)
    for failure in result.failures:
        reporter.report_failure(failure)
    if len(result.reports) + len(result.failures) > 1:
        _print_multi_summary(result, console)


def _print_multi_summary(result: BatchResult, console: Console) -> None:
    """Print a one-line summary after multi-target scans."""
    badges: dict[str, int] = {}
    for item in result.reports:
        badges[item.report.badge.value] = badges.get(item.report.badge.value, 0) + 1
    breakdown = ", ".join(f"{badge}: {count}" for badge, count in sorted(badges.items()))
    console.print(
        f"\nScanned {len(result.reports)} skills. "
        f"Failed: {len(result.failures)}. "
        f"Badges: {breakdown or 'none'}."
    )
