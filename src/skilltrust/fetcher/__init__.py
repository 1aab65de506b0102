"""Safe retrieval of skill content from URLs."""

from skilltrust.fetcher.client import SkillFetcher
from skilltrust.fetcher.urls import normalize_skill_url

__all__ = ["SkillFetcher", "normalize_skill_url"]
