"""Scan orchestration: parse, analyze concurrently, merge companions, aggregate."""

import asyncio
import logging
import time
from collections.abc import Sequence
from datetime import UTC, datetime

from skilltrust import __version__
from skilltrust.analyzers import Analyzer, Companion, build_core_analyzers
from skilltrust.analyzers.behavioral import summarize as behavioral_summary
from skilltrust.analyzers.code_safety import CodeSafetyAnalyzer
from skilltrust.analyzers.context import build_content_context
from skilltrust.analyzers.semantic import SemanticTransport, build_semantic_analyzer
from skilltrust.config import Config
from skilltrust.fetcher import SkillFetcher
from skilltrust.parser import parse_skill
from skilltrust.parser.models import (
    Category,
    CategoryScore,
    Finding,
    ScanMetadata,
    ScanOptions,
    Severity,
    TrustReport,
)
from skilltrust.scoring import aggregate_scores

logger = logging.getLogger(__name__)

FALLBACK_DEDUCTION = 50


def fallback_score(analyzer: Analyzer, error: Exception) -> CategoryScore:
    """Degraded score for an analyzer that raised: one high finding worth 50."""
    finding = Finding(
        id=f"ERR-{analyzer.category.value.upper()}",
        category=analyzer.category,
        severity=Severity.HIGH,
        title=f"{analyzer.name.capitalize()} analysis failed",
        description=f"The {analyzer.name} analyzer raised an error and could not complete.",
        evidence=str(error)[:200],
        deduction=FALLBACK_DEDUCTION,
        recommendation="Re-run the scan. If the failure persists, report the skill content that triggers it.",
        owasp_category="ASST-09",
    )
    return CategoryScore.from_findings(
        [finding],
        weight=analyzer.weight,
        summary=f"{analyzer.name.capitalize()} analysis failed; score degraded.",
    )


def merge_findings(score: CategoryScore, extra: Sequence[Finding], summary: str) -> CategoryScore:
    """Recompute a category score with additional findings, keeping its weight."""
    return CategoryScore.from_findings(
        [*score.findings, *extra],
        weight=score.weight,
        summary=summary,
    )


async def scan_skill(
    content: str,
    options: ScanOptions | None = None,
    *,
    config: Config | None = None,
    semantic_transport: SemanticTransport | None = None,
) -> TrustReport:
    """Scan raw skill content and return its trust report."""
    options = options or ScanOptions()
    config = config or Config.load()
    started = time.perf_counter()

    skill = parse_skill(content)
    context = build_content_context(skill.raw_content)

    analyzers = build_core_analyzers(config.rules)
    results = await asyncio.gather(
        *(analyzer.analyze(skill, context) for analyzer in analyzers),
        return_exceptions=True,
    )

    categories: dict[Category, CategoryScore] = {}
    for analyzer, result in zip(analyzers, results, strict=True):
        if isinstance(result, Exception):
            logger.warning("Analyzer %s failed: %s", analyzer.name, result)
            result = fallback_score(analyzer, result)
        elif isinstance(result, BaseException):
            raise result
        categories[analyzer.category] = result

    companions: list[Companion] = []
    if options.code_safety:
        companions.append(CodeSafetyAnalyzer(config.rules))
    semantic = build_semantic_analyzer(options.semantic, config, semantic_transport)
    if semantic is not None:
        companions.append(semantic)

    extras = await asyncio.gather(
        *(companion.analyze(skill, context) for companion in companions),
        return_exceptions=True,
    )
    for companion, extra in zip(companions, extras, strict=True):
        if isinstance(extra, Exception):
            logger.warning("Companion analyzer %s failed: %s", companion.name, extra)
            continue
        if isinstance(extra, BaseException):
            raise extra
        if not extra:
            continue
        current = categories[companion.category]
        if companion.category is Category.BEHAVIORAL:
            summary = behavioral_summary([*current.findings, *extra])
        else:
            summary = f"{current.summary} {companion.name.capitalize()} analysis added {len(extra)} finding(s)."
        categories[companion.category] = merge_findings(current, extra, summary)

    metadata = ScanMetadata(
        scanned_at=datetime.now(UTC),
        version=__version__,
        duration_ms=int((time.perf_counter() - started) * 1000),
        skill_format=skill.format,
        skill_name=skill.name,
        skill_description=skill.description,
    )
    return aggregate_scores(categories, metadata)


async def scan_skill_from_url(
    url: str,
    options: ScanOptions | None = None,
    *,
    config: Config | None = None,
    fetcher: SkillFetcher | None = None,
    semantic_transport: SemanticTransport | None = None,
) -> TrustReport:
    """Fetch a skill over the network, then scan it.

    Fetch errors propagate to the caller unchanged.
    """
    options = options or ScanOptions()
    fetcher = fetcher or SkillFetcher()
    content = await fetcher.fetch(
        url,
        timeout_ms=options.timeout_ms,
        retries=options.retries,
        retry_delay_ms=options.retry_delay_ms,
    )
    return await scan_skill(content, options, config=config, semantic_transport=semantic_transport)
