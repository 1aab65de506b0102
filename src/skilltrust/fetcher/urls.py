"""Rewrite well-known skill hosting URLs to directly fetchable ones."""

from urllib.parse import urlencode, urlsplit, urlunsplit

CLAWHUB_HOST = "clawhub.ai"
CLAWHUB_DOWNLOAD_HOST = "auth.clawdhub.com"
CLAWHUB_DOWNLOAD_PATH = "/api/v1/download"

# First path segments on the marketplace that are not skill pages.
CLAWHUB_RESERVED_ROUTES = frozenset({
    "admin", "assets", "cli", "dashboard", "import", "management", "og",
    "settings", "skills", "souls", "stars", "u", "upload",
})


def normalize_skill_url(url: str) -> str:
    """Map GitHub and marketplace page URLs to raw content or download URLs.

    Anything unrecognized, including unparseable input, is returned unchanged
    so the URL policy can reject it with a clear message.
    """
    try:
        parts = urlsplit(url)
        host = (parts.hostname or "").lower()
    except ValueError:
        return url

    segments = [s for s in parts.path.split("/") if s]
    if host == CLAWHUB_HOST:
        return _normalize_clawhub(url, segments)
    if host == "github.com":
        return _normalize_github(url, segments)
    return url


def _normalize_github(url: str, segments: list[str]) -> str:
    # /<owner>/<repo>/blob/<branch>/<path>
    if len(segments) >= 5 and segments[2] == "blob":
        owner, repo, _, branch, *path = segments
        return _raw_url(owner, repo, branch, "/".join(path))

    # /<owner>/<repo>/tree/<branch>[/<dir>]
    if len(segments) >= 4 and segments[2] == "tree":
        owner, repo, _, branch, *path = segments
        skill_path = "/".join([*path, "SKILL.md"])
        return _raw_url(owner, repo, branch, skill_path)

    if len(segments) == 2:
        owner, repo = segments
        return _raw_url(owner, repo, "main", "SKILL.md")

    return url


def _raw_url(owner: str, repo: str, branch: str, path: str) -> str:
    return f"https://raw.githubusercontent.com/{owner}/{repo}/{branch}/{path}"


def _normalize_clawhub(url: str, segments: list[str]) -> str:
    # Skill pages live at /<owner>/<slug>; the bundle zip is served by the download API.
    if len(segments) < 2 or segments[0] in CLAWHUB_RESERVED_ROUTES:
        return url
    query = urlencode({"slug": segments[1]})
    return urlunsplit(("https", CLAWHUB_DOWNLOAD_HOST, CLAWHUB_DOWNLOAD_PATH, query, ""))


def is_marketplace_download(url: str) -> bool:
    """True for the marketplace bundle download API, which always serves zips."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return False
    return (parts.hostname or "").lower() == CLAWHUB_DOWNLOAD_HOST and parts.path == CLAWHUB_DOWNLOAD_PATH
