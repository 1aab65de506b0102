"""Bounded extraction of the skill file from a downloaded zip bundle."""

import io
import zipfile
from dataclasses import dataclass

from skilltrust.exceptions import ArchiveError

MAX_ZIP_ENTRIES = 2_000
MAX_SKILL_CANDIDATES = 10
MAX_SKILL_FILE_BYTES = 2_000_000
MAX_TOTAL_UNZIPPED_BYTES = 5_000_000

_CANDIDATE_NAMES = frozenset({"skill.md", "skills.md"})
_PREVIEW_ENTRIES = 20


@dataclass(frozen=True)
class ExtractedSkill:
    path: str
    content: str


def _basename(path: str) -> str:
    return path.rsplit("/", 1)[-1]


def is_skill_candidate(path: str) -> bool:
    return _basename(path).lower() in _CANDIDATE_NAMES


def candidate_rank(path: str) -> tuple[int, int, str]:
    """Sort key: root SKILL.md, nested SKILL.md, root SKILLS.md, nested SKILLS.md.

    Ties are broken by path length, then lexically.
    """
    lower = path.lower()
    nested = "/" in path
    tier = 0 if _basename(lower) == "skill.md" else 2
    return (tier + int(nested), len(path), path)


def pick_skill_path(paths: list[str]) -> str | None:
    candidates = [p for p in paths if is_skill_candidate(p)]
    if not candidates:
        return None
    return min(candidates, key=candidate_rank)


def extract_skill_from_zip(data: bytes) -> ExtractedSkill:
    """Return the best SKILL.md candidate from a zip archive.

    All limits are enforced from the central directory before anything is
    decompressed, and the chosen member is read with a hard byte cap in case
    its declared size is wrong.
    """
    try:
        archive = zipfile.ZipFile(io.BytesIO(data))
    except (zipfile.BadZipFile, OSError) as e:
        raise ArchiveError(f"Invalid zip archive: {e}") from e

    with archive:
        entries = archive.infolist()
        if len(entries) > MAX_ZIP_ENTRIES:
            raise ArchiveError(f"Zip contains too many entries (> {MAX_ZIP_ENTRIES})")

        candidates: dict[str, zipfile.ZipInfo] = {}
        total = 0
        for info in entries:
            if info.is_dir() or not is_skill_candidate(info.filename):
                continue
            if len(candidates) >= MAX_SKILL_CANDIDATES:
                raise ArchiveError(f"Zip contains too many SKILL.md candidates (> {MAX_SKILL_CANDIDATES})")
            if info.file_size > MAX_SKILL_FILE_BYTES:
                raise ArchiveError(
                    f"SKILL.md is too large ({info.file_size} bytes > {MAX_SKILL_FILE_BYTES} bytes)"
                )
            total += info.file_size
            if total > MAX_TOTAL_UNZIPPED_BYTES:
                raise ArchiveError(
                    f"Zip expands too large (> {MAX_TOTAL_UNZIPPED_BYTES} bytes across candidates)"
                )
            candidates[info.filename] = info

        chosen = pick_skill_path(list(candidates))
        if chosen is None:
            preview = ", ".join(sorted(e.filename for e in entries)[:_PREVIEW_ENTRIES])
            raise ArchiveError(
                f"Zip did not contain SKILL.md (found {len(entries)} entries). First entries: {preview}"
            )

        try:
            with archive.open(candidates[chosen]) as member:
                raw = member.read(MAX_SKILL_FILE_BYTES + 1)
        except (zipfile.BadZipFile, OSError, RuntimeError, NotImplementedError) as e:
            raise ArchiveError(f"Cannot read {chosen} from zip: {e}") from e

    if len(raw) > MAX_SKILL_FILE_BYTES:
        raise ArchiveError(f"SKILL.md is too large (> {MAX_SKILL_FILE_BYTES} bytes)")
    return ExtractedSkill(path=chosen, content=raw.decode("utf-8", errors="replace"))
