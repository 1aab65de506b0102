"""Helpers for classifying download-and-execute snippets."""

import re

from skilltrust.analyzers.context import ContentContext

KNOWN_INSTALLERS = re.compile(
    r"deno\.land|bun\.sh|rustup\.rs|get\.docker\.com|install\.python-poetry\.org|nvm-sh"
    r"|golangci|foundry\.paradigm\.xyz|tailscale\.com|opencode\.ai|sh\.rustup\.rs"
    r"|get\.pnpm\.io|volta\.sh",
    re.IGNORECASE,
)
RAW_IP = re.compile(r"\b\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}\b")
_HTTPS = re.compile(r"https://")
_KNOWN_TLD = re.compile(r"\.(?:com|org|io|dev|sh|rs|land|cloud|app|ai|so|net|co)/")
_HEADING_LINE = re.compile(r"^#{1,4}\s+.+$", re.MULTILINE)
_SETUP_HEADING = re.compile(
    r"\b(?:prerequisit|install|setup|getting\s+started|requirements?|dependencies)",
    re.IGNORECASE,
)
_YAML_INSTALL_KEY = re.compile(r"\b(?:install|command|compatibility|setup)\s*:", re.IGNORECASE)
_LOOKBEHIND_CHARS = 1000
_LOOKBEHIND_LINES = 10


def is_known_installer(snippet: str) -> bool:
    return KNOWN_INSTALLERS.search(snippet) is not None


def is_https_without_ip(snippet: str) -> bool:
    return _HTTPS.search(snippet) is not None and RAW_IP.search(snippet) is None


def in_setup_section(context: ContentContext, index: int, snippet: str) -> bool:
    """True for an https, known-TLD, non-IP snippet under a setup heading or install key."""
    if not is_https_without_ip(snippet) or _KNOWN_TLD.search(snippet) is None:
        return False
    preceding = context.content[max(0, index - _LOOKBEHIND_CHARS) : index]
    headings = _HEADING_LINE.findall(preceding)
    if headings and _SETUP_HEADING.search(headings[-1]):
        return True
    nearby = "\n".join(preceding.split("\n")[-_LOOKBEHIND_LINES:])
    return _YAML_INSTALL_KEY.search(nearby) is not None


def is_legitimate_setup(context: ContentContext, index: int, snippet: str) -> bool:
    """Known installer, or a clean https install step in a setup section."""
    return is_known_installer(snippet) or in_setup_section(context, index, snippet)
