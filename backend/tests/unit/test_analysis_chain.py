import json

import pytest

from app.core.errors import AnalysisError
from app.llm import gemini_client
from app.llm.chains.analysis_chain import LlmAnalyzer, clean_mermaid, parse_analysis, strip_code_fence


def test_strip_code_fence() -> None:
    assert strip_code_fence('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_code_fence('{"a": 1}') == '{"a": 1}'


def test_clean_mermaid_unescapes_and_drops_class_suffixes() -> None:
    raw = 'flowchart LR\\n  api:::svc --> db::primary\\n  note[\\"hi\\"]'

    cleaned = clean_mermaid(raw)

    assert cleaned == 'flowchart LR\n  api --> db_primary\n  note["hi"]'
    assert clean_mermaid("") is None
    assert clean_mermaid(None) is None


def test_parse_analysis_normalizes_fields() -> None:
    content = "```json\n" + json.dumps(
        {
            "callType": "Technical",
            "customerName": "Acme",
            "summary": "Reviewed ingestion.",
            "actionItems": [
                {"item": "Send sizing doc", "owner": "Steven"},
                {"text": "Book follow-up"},
                "Share slides",
                {"owner": "Maria"},
            ],
            "components": ["API"],
            "gaps": [],
            "mermaidCode": "flowchart LR\\n  a-->b",
        }
    ) + "\n```"

    analysis = parse_analysis(content)

    assert analysis.call_type == "technical"
    assert analysis.customer_name == "Acme"
    assert [(i.owner, i.text) for i in analysis.action_items] == [
        ("Steven", "Send sizing doc"),
        ("Unknown", "Book follow-up"),
        ("Unknown", "Share slides"),
    ]
    assert analysis.components == ["API"]
    assert analysis.gaps is None
    assert analysis.diagram_source == "flowchart LR\n  a-->b"


@pytest.mark.parametrize("name", [None, "null", "Unknown", "  "])
def test_parse_analysis_treats_placeholder_customer_as_missing(name) -> None:
    analysis = parse_analysis(json.dumps({"callType": "partner", "customerName": name}))

    assert analysis.customer_name is None
    assert analysis.summary == "No summary available"


def test_parse_analysis_defaults_unrecognized_call_type() -> None:
    assert parse_analysis('{"callType": "sales"}').call_type == "non-technical"


@pytest.mark.parametrize("content", ["", "   ", "not json", "[1, 2]"])
def test_parse_analysis_rejects_bad_output(content) -> None:
    with pytest.raises(AnalysisError):
        parse_analysis(content)


@pytest.mark.asyncio
async def test_analyzer_truncates_transcript_and_wraps_errors(settings) -> None:
    captured = {}

    async def fake_llm(prompt, **kwargs):
        captured["prompt"] = prompt
        captured.update(kwargs)
        return '{"callType": "technical", "customerName": "Acme"}'

    settings.transcript_max_length = 50
    analyzer = LlmAnalyzer(settings, llm_call=fake_llm)

    analysis = await analyzer.analyze("x" * 80 + "TAIL", "Review")

    assert analysis.customer_name == "Acme"
    assert "TAIL" not in captured["prompt"]
    assert captured["temperature"] == settings.ai_temperature
    assert captured["max_tokens"] == settings.ai_max_tokens

    async def failing_llm(prompt, **kwargs):
        raise TimeoutError("deadline exceeded")

    with pytest.raises(AnalysisError, match="LLM request failed"):
        await LlmAnalyzer(settings, llm_call=failing_llm).analyze("transcript", "Review")


def test_llm_status_without_keys(monkeypatch) -> None:
    monkeypatch.setattr(gemini_client.settings, "gemini_api_key", "")
    monkeypatch.setattr(gemini_client.settings, "groq_api_key", "")

    assert gemini_client.is_llm_available() is False
    assert gemini_client.get_llm_status()["status"] == "not_configured"
    assert gemini_client.call_llm_sync("hello") == ""


def test_llm_prefers_gemini_when_both_keys_set(monkeypatch) -> None:
    monkeypatch.setattr(gemini_client.settings, "gemini_api_key", "gemini-key-123456")
    monkeypatch.setattr(gemini_client.settings, "groq_api_key", "groq-key-123456")
    calls = []

    def fake_gemini(prompt, **kwargs):
        calls.append(kwargs["model_name"])
        return '{"callType": "technical"}'

    monkeypatch.setattr(gemini_client, "_gemini_generate", fake_gemini)

    assert gemini_client.get_llm_status()["provider"] == "gemini"
    assert gemini_client.call_llm_sync("hello") == '{"callType": "technical"}'
    assert calls == [gemini_client.settings.gemini_model]
