"""End-to-end tests for the scan orchestrator."""

import json

import httpx
import pytest

from skilltrust.analyzers.injection import InjectionAnalyzer
from skilltrust.config import Config
from skilltrust.parser.models import Badge, Category, ScanOptions, SemanticOptions, Severity, SkillFormat
from skilltrust.scanner import scan_skill

from conftest import E2E_BENIGN, E2E_INJECTION

_PYTHON_TOOL = (
    "---\nname: cleaner\ndescription: Cleans temporary files in the workspace.\n---\n"
    "# cleaner\n\n## Safety Boundaries\nMust not delete files outside the workspace.\n\n"
    "## Implementation\n\n```python\nimport os\nos.system(cmd)\n```\n"
)


async def test_override_injection_is_rejected(config: Config) -> None:
    report = await scan_skill(E2E_INJECTION, config=config)

    assert report.badge is Badge.REJECTED
    override = [f for f in report.findings if f.id.startswith("INJ-OVERRIDE")]
    assert override
    assert override[0].severity is Severity.CRITICAL
    assert override[0].owasp_category == "ASST-01"
    assert report.findings[0].severity is Severity.CRITICAL


async def test_benign_skill_is_certified(config: Config) -> None:
    report = await scan_skill(E2E_BENIGN, config=config)

    assert report.badge is Badge.CERTIFIED
    assert report.overall >= 90
    assert report.metadata.skill_name == "time"
    assert report.metadata.skill_format is SkillFormat.OPENCLAW
    assert set(report.categories) == set(Category)
    assert not any(f.severity in (Severity.CRITICAL, Severity.HIGH) for f in report.findings)


async def test_scan_is_deterministic(config: Config) -> None:
    first = await scan_skill(E2E_INJECTION, config=config)
    second = await scan_skill(E2E_INJECTION, config=config)
    assert first.model_dump(exclude={"metadata"}) == second.model_dump(exclude={"metadata"})


async def test_report_serializes_to_json(config: Config) -> None:
    report = await scan_skill(E2E_BENIGN, config=config)
    data = json.loads(report.model_dump_json())
    assert data["badge"] == "certified"
    assert set(data["categories"]) == {c.value for c in Category}


async def test_failing_analyzer_degrades_its_category(config: Config, monkeypatch: pytest.MonkeyPatch) -> None:
    async def explode(self, skill, context):
        raise RuntimeError("regex engine exploded")

    monkeypatch.setattr(InjectionAnalyzer, "analyze", explode)
    report = await scan_skill(E2E_BENIGN, config=config)

    injection = report.categories[Category.INJECTION]
    assert injection.score == 50
    [error] = injection.findings
    assert error.id == "ERR-INJECTION"
    assert error.severity is Severity.HIGH
    assert error.owasp_category == "ASST-09"
    assert "regex engine exploded" in error.evidence
    assert report.badge is not Badge.CERTIFIED


async def test_code_safety_merges_into_behavioral(config: Config) -> None:
    plain = await scan_skill(_PYTHON_TOOL, config=config)
    assert not any(f.id == "CS-SHELL-EXEC-PY" for f in plain.findings)

    report = await scan_skill(_PYTHON_TOOL, ScanOptions(code_safety=True), config=config)
    behavioral = report.categories[Category.BEHAVIORAL]
    assert any(f.id == "CS-SHELL-EXEC-PY" for f in behavioral.findings)
    assert behavioral.score < plain.categories[Category.BEHAVIORAL].score
    assert report.badge is Badge.REJECTED


async def test_semantic_findings_merge_into_injection(config: Config) -> None:
    def transport(_: dict[str, object]) -> dict[str, object]:
        payload = {
            "findings": [
                {
                    "category": "prompt injection",
                    "severity": "medium",
                    "title": "Hidden instruction in example",
                    "description": "The example output tells the agent to skip confirmation.",
                }
            ],
            "summary": "One subtle instruction.",
        }
        return {"content": [{"type": "text", "text": json.dumps(payload)}]}

    options = ScanOptions(semantic=SemanticOptions(api_key="sk-ant-test"))
    report = await scan_skill(E2E_BENIGN, options, config=config, semantic_transport=transport)

    injection = report.categories[Category.INJECTION]
    [semantic] = [f for f in injection.findings if f.id.startswith("SEM-")]
    assert semantic.severity is Severity.MEDIUM
    assert semantic.owasp_category == "ASST-01"
    assert injection.score == 100 - sum(f.deduction for f in injection.findings)


async def test_semantic_without_key_is_skipped(config: Config) -> None:
    calls: list[object] = []

    def transport(request: dict[str, object]) -> dict[str, object]:
        calls.append(request)
        return {}

    await scan_skill(E2E_BENIGN, ScanOptions(semantic=True), config=config, semantic_transport=transport)
    assert calls == []


async def test_leading_bom_does_not_hide_permissions(config: Config) -> None:
    content = (
        "---\nname: calc\ndescription: Evaluates arithmetic expressions.\n"
        "permissions: [exec, sudo]\n---\n# calc\n"
    )
    plain = await scan_skill(content, config=config)
    with_bom = await scan_skill("\ufeff" + content, config=config)

    assert with_bom.categories[Category.PERMISSIONS].score == plain.categories[Category.PERMISSIONS].score
    assert with_bom.categories[Category.PERMISSIONS].score < 100
    assert with_bom.badge is plain.badge
    assert with_bom.badge is not Badge.CERTIFIED


async def test_semantic_http_transport_reaches_messages_api(config: Config) -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        text = json.dumps({"findings": [], "summary": "clean"})
        return httpx.Response(200, json={"content": [{"type": "text", "text": text}]})

    options = ScanOptions(semantic=SemanticOptions(api_key="sk-ant-test", api_base="https://llm.example.org/v1"))
    await scan_skill(E2E_BENIGN, options, config=config, semantic_transport=httpx.MockTransport(handler))

    [request] = seen
    assert str(request.url) == "https://llm.example.org/v1/messages"
