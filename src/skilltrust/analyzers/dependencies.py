"""External dependency and supply-chain analyzer."""

import ipaddress
import re
from dataclasses import dataclass
from urllib.parse import urlsplit

from skilltrust.analyzers import remote_exec
from skilltrust.analyzers.context import CODE_BLOCK_MULTIPLIER, ContentContext, scale_deduction
from skilltrust.analyzers.declared import annotate_declared
from skilltrust.parser.models import Category, CategoryScore, Finding, ParsedSkill, Severity
from skilltrust.scoring import CATEGORY_WEIGHTS

TRUSTED_DOMAINS = frozenset({
    "github.com",
    "npmjs.com",
    "www.npmjs.com",
    "registry.npmjs.org",
    "pypi.org",
    "python.org",
    "nodejs.org",
    "crates.io",
    "go.dev",
    "rust-lang.org",
    "developer.mozilla.org",
    "learn.microsoft.com",
    "stackoverflow.com",
    "anthropic.com",
    "openai.com",
    "wikipedia.org",
})
_TRUSTED_PATH_PREFIXES = {"cloud.google.com": ("/docs",)}
_DOC_HOST_PREFIXES = ("docs.", "doc.", "developer.", "developers.", "wiki.")
_DOC_PATH = re.compile(r"^/(?:docs?|documentation|reference|guides?)(?:/|$)", re.IGNORECASE)

RAW_CONTENT_HOSTS = frozenset({
    "raw.githubusercontent.com",
    "gist.githubusercontent.com",
    "gist.github.com",
    "pastebin.com",
})
_RAW_HOST_PREFIXES = ("paste.", "hastebin.", "dpaste.")

_NAME_STOPWORDS = frozenset({
    "the", "and", "for", "with", "skill", "skills", "tool", "tools", "agent", "api",
    "app", "bot", "cli", "mcp", "helper", "server", "client",
})
_NAME_TOKEN = re.compile(r"[a-z0-9]+")
_MIN_NAME_TOKEN = 3

_DATA_URI = re.compile(r"\bdata:[a-z]+/[\w.+-]+[;,][^\s\"'<>)\]]*", re.IGNORECASE)

_DOWNLOAD_EXECUTE = (
    re.compile(r"download\s+(?:and\s+)?(?:execute|run|eval)", re.IGNORECASE),
    re.compile(r"(?:curl|wget)\s+.*?\|\s*(?:sh|bash|zsh|python)", re.IGNORECASE),
    re.compile(r"eval\s*\(\s*fetch", re.IGNORECASE),
    re.compile(r"import\s+.*?from\s+['\"]https?://", re.IGNORECASE),
    re.compile(r"require\s*\(\s*['\"]https?://", re.IGNORECASE),
)

_UNKNOWN_DEDUCTION = 5
_UNKNOWN_CAP = 15
_DOWNLOAD_EXECUTE_DEDUCTION = 25
_MANY_URLS = 5


@dataclass(frozen=True)
class UrlClass:
    """Risk classification of one referenced URL."""

    risk: str
    severity: Severity
    deduction: int
    label: str
    recommendation: str


_TRUSTED = UrlClass("trusted", Severity.INFO, 0, "Trusted", "")
_RAW = UrlClass(
    "raw", Severity.MEDIUM, 10, "Raw content URL",
    "Use official package registries instead of raw content URLs. Raw URLs can change without notice.",
)
_PUBLIC_IP = UrlClass(
    "ip", Severity.HIGH, 20, "Direct IP address",
    "Replace direct IP addresses with domain names. IP-based URLs bypass DNS-based controls.",
)
_LOCAL_IP = UrlClass(
    "local_ip", Severity.INFO, 0, "Local network address",
    "Confirm that the local address is only used for development or documentation.",
)
_DATA = UrlClass(
    "data", Severity.HIGH, 20, "Data URI",
    "Avoid embedding content in data: URIs. They hide the payload from review.",
)
_UNKNOWN = UrlClass(
    "unknown", Severity.LOW, _UNKNOWN_DEDUCTION, "Unknown external",
    "Verify that this external dependency is trustworthy and necessary.",
)


def _name_tokens(skill_name: str) -> set[str]:
    tokens = _NAME_TOKEN.findall(skill_name.lower())
    return {t for t in tokens if len(t) >= _MIN_NAME_TOKEN and t not in _NAME_STOPWORDS}


def _matches_domain(host: str, domain: str) -> bool:
    return host == domain or host.endswith(f".{domain}")


def classify_url(url: str, skill_name: str = "") -> UrlClass:
    """Classify a URL as trusted, raw-content, IP, data or unknown."""
    if url.lower().startswith("data:"):
        return _DATA

    try:
        parts = urlsplit(url)
        host = (parts.hostname or "").lower()
    except ValueError:
        return _UNKNOWN
    path = parts.path or "/"

    try:
        address = ipaddress.ip_address(host)
    except ValueError:
        address = None
    if address is not None:
        return _PUBLIC_IP if address.is_global else _LOCAL_IP

    if host in RAW_CONTENT_HOSTS or host.startswith(_RAW_HOST_PREFIXES):
        return _RAW
    if host == "github.com" and "/raw/" in path:
        return _RAW

    if any(_matches_domain(host, d) for d in TRUSTED_DOMAINS):
        return _TRUSTED
    for domain, prefixes in _TRUSTED_PATH_PREFIXES.items():
        if _matches_domain(host, domain) and path.startswith(prefixes):
            return _TRUSTED
    if host.startswith(_DOC_HOST_PREFIXES) or _DOC_PATH.match(path):
        return _TRUSTED

    # Official sites of the product the skill is named after.
    labels = set(host.split(".")[:-1])
    if labels & _name_tokens(skill_name):
        return _TRUSTED

    return _UNKNOWN


class DependenciesAnalyzer:
    """Classify referenced URLs and detect download-and-execute idioms."""

    @property
    def name(self) -> str:
        return "dependencies"

    @property
    def category(self) -> Category:
        return Category.DEPENDENCIES

    @property
    def weight(self) -> float:
        return CATEGORY_WEIGHTS[Category.DEPENDENCIES]

    async def analyze(self, skill: ParsedSkill, context: ContentContext) -> CategoryScore:
        findings: list[Finding] = []
        unknown_budget = _UNKNOWN_CAP

        data_uris = list(dict.fromkeys(m.group(0) for m in _DATA_URI.finditer(context.content)))
        for url in [*skill.urls, *data_uris]:
            url_class = classify_url(url, skill.name)
            if url_class is _TRUSTED:
                continue
            deduction = url_class.deduction
            if url_class is _UNKNOWN:
                deduction = min(deduction, unknown_budget)
                unknown_budget -= deduction
            findings.append(_url_finding(url, url_class, deduction, len(findings) + 1))

        for pattern in _DOWNLOAD_EXECUTE:
            finding = _download_execute_finding(pattern, context, len(findings) + 1)
            if finding is not None:
                findings.append(finding)

        if len(skill.urls) > _MANY_URLS:
            findings.append(Finding(
                id="DEP-MANY-URLS",
                category=Category.DEPENDENCIES,
                severity=Severity.INFO,
                title=f"Many external URLs referenced ({len(skill.urls)})",
                description=(
                    f"The skill references {len(skill.urls)} external URLs. Many external "
                    "dependencies increase the attack surface."
                ),
                evidence=f"URLs: {', '.join(skill.urls[:5])}..."[:200],
                deduction=0,
                recommendation="Minimize external dependencies to reduce supply chain risk.",
                owasp_category="ASST-04",
            ))

        findings = annotate_declared(findings, skill.declared_permissions)
        return CategoryScore.from_findings(findings, weight=self.weight, summary=_summary(findings))


def _url_finding(url: str, url_class: UrlClass, deduction: int, sequence: int) -> Finding:
    return Finding(
        id=f"DEP-URL-{sequence}",
        category=Category.DEPENDENCIES,
        severity=url_class.severity,
        title=f"{url_class.label} reference",
        description=f"The skill references {url} ({url_class.label.lower()}).",
        evidence=url[:200],
        deduction=deduction,
        recommendation=url_class.recommendation,
        owasp_category="ASST-04",
    )


def _download_execute_finding(
    pattern: re.Pattern[str],
    context: ContentContext,
    sequence: int,
) -> Finding | None:
    for match in pattern.finditer(context.content):
        index = match.start()
        if context.adjust(index).multiplier == 0:
            continue
        snippet = match.group(0)

        if remote_exec.is_legitimate_setup(context, index, snippet):
            severity, deduction = Severity.INFO, 0
            title = "Installer script referenced in setup instructions"
        elif context.in_threat_listing(index):
            severity, deduction = Severity.INFO, 0
            title = "Download-and-execute pattern documented as a threat"
        elif context.in_code_block(index) and remote_exec.is_https_without_ip(snippet):
            severity = Severity.MEDIUM
            deduction = scale_deduction(_DOWNLOAD_EXECUTE_DEDUCTION, CODE_BLOCK_MULTIPLIER)
            title = "Download-and-execute pattern in code example"
        else:
            severity, deduction = Severity.CRITICAL, _DOWNLOAD_EXECUTE_DEDUCTION
            title = "Download-and-execute pattern detected"

        return Finding(
            id=f"DEP-DL-EXEC-{sequence}",
            category=Category.DEPENDENCIES,
            severity=severity,
            title=title,
            description=(
                "The skill downloads and executes external code, a severe supply chain "
                "risk unless the source is pinned and verified."
            ),
            evidence=snippet[:200],
            line_number=context.line_number(index),
            deduction=deduction,
            recommendation=(
                "Never pipe remote scripts into an interpreter. Bundle required functionality "
                "or pin and verify the installer."
            ),
            owasp_category="ASST-04",
        )
    return None


def _summary(findings: list[Finding]) -> str:
    concerns = [f for f in findings if f.severity is not Severity.INFO]
    if not concerns:
        return "No dependency concerns detected."
    severities = {f.severity for f in concerns}
    if Severity.CRITICAL in severities:
        tail = "Download-and-execute patterns detected."
    elif Severity.HIGH in severities:
        tail = "High-risk external dependencies detected."
    else:
        tail = "Minor dependency concerns noted."
    return f"Found {len(concerns)} dependency-related concerns. {tail}"
