"""Expand CLI scan targets (files, directories, URLs) into a scan list."""

import logging
from collections.abc import Iterable
from pathlib import Path

from skilltrust.exceptions import ScanTargetError

logger = logging.getLogger(__name__)

SKILL_FILENAMES = frozenset({"skill.md", "skills.md"})
IGNORED_DIRS = frozenset({".git", "node_modules", "dist", "build", "coverage", ".next", ".turbo"})


def is_url_target(target: str) -> bool:
    return target.startswith(("http://", "https://"))


def discover_skill_files(root: Path) -> list[Path]:
    """Recursively find SKILL.md / SKILLS.md files, skipping build and VCS dirs."""
    found: list[Path] = []
    for entry in sorted(root.iterdir()):
        if entry.is_dir():
            if entry.name in IGNORED_DIRS:
                continue
            found.extend(discover_skill_files(entry))
        elif entry.is_file() and entry.name.lower() in SKILL_FILENAMES:
            found.append(entry)
    return found


def expand_scan_targets(inputs: Iterable[str]) -> list[str]:
    """Resolve inputs to a sorted, de-duplicated list of files and URLs.

    Raises:
        ScanTargetError: If a path does not exist or is not a file or directory.
    """
    out: set[str] = set()
    for target in inputs:
        if is_url_target(target):
            out.add(target)
            continue

        path = Path(target)
        if path.is_dir():
            skills = discover_skill_files(path)
            logger.debug("Discovered %d skill files under %s", len(skills), path)
            out.update(str(p) for p in skills)
        elif path.is_file():
            out.add(str(path))
        elif path.exists():
            raise ScanTargetError(f"Unsupported target type: {target}")
        else:
            raise ScanTargetError(f"Target not found: {target}")

    return sorted(out)
