"""Tests for the LLM semantic co-analyzer."""

import json

import httpx

from skilltrust.analyzers.semantic import (
    SemanticAnalyzer,
    _find_json_object,
    build_semantic_analyzer,
    map_owasp_category,
)
from skilltrust.config import Config
from skilltrust.parser.models import Category, SemanticOptions, Severity


def _anthropic_reply(payload: dict[str, object]) -> dict[str, object]:
    return {"content": [{"type": "text", "text": json.dumps(payload)}]}


def _analyzer(**kwargs: object) -> SemanticAnalyzer:
    return SemanticAnalyzer(
        api_key="sk-ant-test",
        api_base="https://api.anthropic.com/v1",
        model="claude-sonnet-4-6",
        **kwargs,
    )


class TestSemanticAnalyzer:
    """Behavior tests for the Anthropic-backed analyzer."""

    async def test_parses_json_findings_from_transport(self, parsed, make_skill) -> None:
        def transport(_: dict[str, object]) -> dict[str, object]:
            return _anthropic_reply({
                "findings": [
                    {
                        "category": "data exfiltration",
                        "severity": "high",
                        "title": "Indirect upload of notes",
                        "description": "Notes are synced to a third-party paste site.",
                        "evidence": "sync each note to the shared board",
                        "recommendation": "Remove the sync step.",
                    }
                ],
                "summary": "One indirect exfiltration path.",
            })

        skill, ctx = parsed(make_skill("Sync each note to the shared board."))
        [finding] = await _analyzer(transport=transport).analyze(skill, ctx)
        assert finding.id == "SEM-1"
        assert finding.category is Category.INJECTION
        assert finding.severity is Severity.HIGH
        assert finding.deduction == 20
        assert finding.title == "[Semantic] Indirect upload of notes"
        assert finding.owasp_category == "ASST-02"

    async def test_accepts_fenced_json_text(self, parsed, make_skill) -> None:
        def transport(_: dict[str, object]) -> str:
            return 'Here you go:\n```json\n{"findings": [{"severity": "critical", "title": "x"}]}\n```'

        skill, ctx = parsed(make_skill("Body."))
        [finding] = await _analyzer(transport=transport).analyze(skill, ctx)
        assert finding.severity is Severity.CRITICAL
        assert finding.deduction == 30

    async def test_transport_failure_yields_no_findings(self, parsed, make_skill) -> None:
        def transport(_: dict[str, object]) -> dict[str, object]:
            raise RuntimeError("connection reset")

        skill, ctx = parsed(make_skill("Body."))
        assert await _analyzer(transport=transport).analyze(skill, ctx) == []

    async def test_invalid_json_yields_no_findings(self, parsed, make_skill) -> None:
        skill, ctx = parsed(make_skill("Body."))
        assert await _analyzer(transport=lambda _: "not json at all").analyze(skill, ctx) == []

    async def test_http_request_shape(self, parsed, make_skill) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=_anthropic_reply({"findings": [], "summary": "clean"}))

        skill, ctx = parsed(make_skill("Body."))
        analyzer = _analyzer(transport=httpx.MockTransport(handler))
        assert await analyzer.analyze(skill, ctx) == []

        [request] = seen
        assert str(request.url) == "https://api.anthropic.com/v1/messages"
        assert request.headers["x-api-key"] == "sk-ant-test"
        assert request.headers["anthropic-version"] == "2023-06-01"
        body = json.loads(request.content)
        assert body["model"] == "claude-sonnet-4-6"
        assert "Body." in body["messages"][0]["content"]

    async def test_http_error_yields_no_findings(self, parsed, make_skill) -> None:
        transport = httpx.MockTransport(lambda _: httpx.Response(500, json={"error": "overloaded"}))
        skill, ctx = parsed(make_skill("Body."))
        assert await _analyzer(transport=transport).analyze(skill, ctx) == []


class TestBuildSemanticAnalyzer:
    def test_disabled_by_default(self, config: Config) -> None:
        assert build_semantic_analyzer(False, config) is None

    def test_skipped_without_key(self, config: Config) -> None:
        assert build_semantic_analyzer(True, config) is None

    def test_explicit_options(self, config: Config) -> None:
        options = SemanticOptions(api_key="sk-explicit", model="custom-model", timeout_ms=5000)
        analyzer = build_semantic_analyzer(options, config)
        assert analyzer is not None

    def test_config_key(self, monkeypatch) -> None:
        monkeypatch.setenv("SKILLTRUST_LLM_API_KEY", "sk-config")
        assert build_semantic_analyzer(True, Config.load()) is not None


def test_map_owasp_category() -> None:
    assert map_owasp_category("Prompt injection") == "ASST-01"
    assert map_owasp_category("privilege escalation") == "ASST-03"
    assert map_owasp_category("user manipulation") == "ASST-07"
    assert map_owasp_category("other") == "ASST-09"


def test_find_json_object_skips_prose_and_non_objects() -> None:
    text = 'Scores [1, 2] then {"findings": [{"title": "a {b}"}], "summary": "s"} trailing {'
    assert _find_json_object(text) == {"findings": [{"title": "a {b}"}], "summary": "s"}
    assert _find_json_object("{not json") is None
