"""Rule loading and management engine."""

import re
from dataclasses import dataclass
from importlib.resources import files
from pathlib import Path
from typing import Any

import yaml

from skilltrust.exceptions import RuleLoadError
from skilltrust.parser.models import Severity

_FLAG_MAP: dict[str, re.RegexFlag] = {
    "IGNORECASE": re.IGNORECASE,
    "MULTILINE": re.MULTILINE,
    "DOTALL": re.DOTALL,
}

_RULE_ID = re.compile(r"^[A-Z]+(?:-[A-Z0-9]+)+$")
_OWASP_ID = re.compile(r"^ASST-(0[1-9]|10)$")
_SCOPES = frozenset({"line", "source"})

ANALYZERS = frozenset({"injection", "behavioral", "content", "code_safety"})


@dataclass(frozen=True)
class RulePattern:
    """A single regex pattern within a rule."""

    regex: re.Pattern[str]


@dataclass(frozen=True)
class Rule:
    """A loaded detection rule."""

    id: str
    analyzer: str
    title: str
    description: str
    severity: Severity
    deduction: int
    owasp_category: str
    remediation: str = ""
    patterns: tuple[RulePattern, ...] = ()
    scope: str = "line"
    requires: re.Pattern[str] | None = None
    kind: str | None = None


def load_rules(custom_path: Path | None = None) -> list[Rule]:
    """Load detection rules from YAML.

    With no path the packaged ``default_rules.yaml`` is used. A custom file
    replaces the defaults entirely.
    """
    if custom_path is not None:
        try:
            raw_text = custom_path.read_text(encoding="utf-8")
        except OSError as e:
            raise RuleLoadError(f"Cannot read rules file {custom_path}: {e}") from e
    else:
        try:
            rules_pkg = files("skilltrust.rules")
            raw_text = (rules_pkg / "default_rules.yaml").read_text(encoding="utf-8")
        except (OSError, ModuleNotFoundError) as e:
            raise RuleLoadError(f"Cannot load built-in rules: {e}") from e

    try:
        data = yaml.safe_load(raw_text)
    except yaml.YAMLError as e:
        raise RuleLoadError(f"Invalid YAML in rules file: {e}") from e

    if not isinstance(data, dict) or "rules" not in data:
        raise RuleLoadError("Rules file must contain a top-level 'rules' key")

    raw_rules = data["rules"]
    if not isinstance(raw_rules, list):
        raise RuleLoadError("'rules' must be a list")

    rules: list[Rule] = []
    seen: set[str] = set()
    for raw in raw_rules:
        if not isinstance(raw, dict):
            raise RuleLoadError(f"Each rule must be a mapping, got {type(raw).__name__}")
        rule = _parse_rule(raw)
        if rule.id in seen:
            raise RuleLoadError(f"Duplicate rule ID: {rule.id}")
        seen.add(rule.id)
        rules.append(rule)
    return rules


def _parse_rule(raw: dict[str, Any]) -> Rule:
    """Parse a single raw YAML rule dict into a Rule object."""
    rule_id = str(raw.get("id", ""))
    if not _RULE_ID.match(rule_id):
        raise RuleLoadError(f"Invalid rule ID format: {rule_id!r}")

    analyzer = raw.get("analyzer")
    if analyzer not in ANALYZERS:
        raise RuleLoadError(f"Unknown analyzer {analyzer!r} in rule {rule_id}")

    try:
        severity = Severity(raw["severity"])
    except (KeyError, ValueError) as e:
        raise RuleLoadError(f"Invalid severity in rule {rule_id}: {e}") from e

    deduction = raw.get("deduction", 0)
    if not isinstance(deduction, int) or not 0 <= deduction <= 100:
        raise RuleLoadError(f"Deduction must be an integer 0-100 in rule {rule_id}")

    owasp = str(raw.get("owasp", ""))
    if not _OWASP_ID.match(owasp):
        raise RuleLoadError(f"Invalid OWASP category {owasp!r} in rule {rule_id}")

    scope = raw.get("scope", "line")
    if scope not in _SCOPES:
        raise RuleLoadError(f"Invalid scope {scope!r} in rule {rule_id}")

    default_flags = _flags(raw.get("flags", "IGNORECASE"), rule_id)

    patterns: list[RulePattern] = []
    for p in raw.get("patterns", []):
        if isinstance(p, str):
            regex, flags = p, default_flags
        elif isinstance(p, dict) and "regex" in p:
            regex = p["regex"]
            flags = _flags(p["flags"], rule_id) if "flags" in p else default_flags
        else:
            raise RuleLoadError(f"Malformed pattern in rule {rule_id}: {p!r}")
        patterns.append(RulePattern(regex=_compile(regex, flags, rule_id)))

    if not patterns:
        raise RuleLoadError(f"Rule {rule_id} has no patterns")

    requires = raw.get("requires")
    return Rule(
        id=rule_id,
        analyzer=analyzer,
        title=raw.get("title", ""),
        description=raw.get("description", ""),
        severity=severity,
        deduction=deduction,
        owasp_category=owasp,
        remediation=raw.get("remediation", ""),
        patterns=tuple(patterns),
        scope=scope,
        requires=_compile(requires, default_flags, rule_id) if requires else None,
        kind=raw.get("kind"),
    )


def _flags(value: str | list[str] | None, rule_id: str) -> re.RegexFlag:
    """Combine flag names like ``IGNORECASE`` into a RegexFlag."""
    if not value:
        return re.RegexFlag(0)
    names = [value] if isinstance(value, str) else value
    flags = re.RegexFlag(0)
    for name in names:
        if name not in _FLAG_MAP:
            raise RuleLoadError(f"Unknown regex flag {name!r} in rule {rule_id}")
        flags |= _FLAG_MAP[name]
    return flags


def _compile(regex: str, flags: re.RegexFlag, rule_id: str) -> re.Pattern[str]:
    try:
        return re.compile(regex, flags)
    except re.error as e:
        raise RuleLoadError(f"Invalid regex in rule {rule_id}: {regex!r}: {e}") from e


def get_rules_by_analyzer(rules: list[Rule], analyzer_name: str) -> list[Rule]:
    """Filter rules intended for a specific analyzer."""
    return [r for r in rules if r.analyzer == analyzer_name]
