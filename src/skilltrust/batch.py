"""Concurrent scanning of many targets with a bounded worker pool."""

import asyncio
import logging
from collections.abc import Sequence
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from skilltrust.config import Config
from skilltrust.fetcher import SkillFetcher
from skilltrust.parser import read_skill_file
from skilltrust.parser.models import ScanOptions, TrustReport
from skilltrust.scanner import scan_skill, scan_skill_from_url
from skilltrust.targets import is_url_target

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 25


class ScanTargetReport(BaseModel):
    """A successful scan of one target."""

    model_config = ConfigDict(frozen=True)

    target: str
    report: TrustReport


class ScanFailure(BaseModel):
    """A target that could not be scanned."""

    model_config = ConfigDict(frozen=True)

    target: str
    error: str


class BatchResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    reports: tuple[ScanTargetReport, ...] = ()
    failures: tuple[ScanFailure, ...] = ()


async def scan_target(
    target: str,
    options: ScanOptions | None = None,
    *,
    config: Config,
    fetcher: SkillFetcher | None = None,
) -> TrustReport:
    """Scan one file path or URL."""
    if is_url_target(target):
        return await scan_skill_from_url(target, options, config=config, fetcher=fetcher)
    content = await read_skill_file(Path(target))
    return await scan_skill(content, options, config=config)


async def scan_targets_batch(
    targets: Sequence[str],
    options: ScanOptions | None = None,
    *,
    config: Config | None = None,
    concurrency: int = DEFAULT_CONCURRENCY,
    fetcher: SkillFetcher | None = None,
) -> BatchResult:
    """Scan targets with a fixed number of workers sharing one queue.

    Each target's failure is captured rather than aborting the batch.
    Results keep the input order.
    """
    config = config or Config.load()
    outcomes: list[ScanTargetReport | ScanFailure | None] = [None] * len(targets)
    queue: asyncio.Queue[int] = asyncio.Queue()
    for index in range(len(targets)):
        queue.put_nowait(index)

    async def worker() -> None:
        while True:
            try:
                index = queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            target = targets[index]
            try:
                report = await scan_target(target, options, config=config, fetcher=fetcher)
                outcomes[index] = ScanTargetReport(target=target, report=report)
            except Exception as e:
                logger.warning("Scan failed for %s: %s", target, e)
                outcomes[index] = ScanFailure(target=target, error=str(e) or type(e).__name__)
            finally:
                queue.task_done()

    workers = max(1, min(concurrency, len(targets)))
    await asyncio.gather(*(worker() for _ in range(workers)))

    return BatchResult(
        reports=tuple(o for o in outcomes if isinstance(o, ScanTargetReport)),
        failures=tuple(o for o in outcomes if isinstance(o, ScanFailure)),
    )
