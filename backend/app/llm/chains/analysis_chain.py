"""
Transcript analysis chain: prompt -> LLM -> TranscriptAnalysis.
"""
from __future__ import annotations

import json
import logging
import re
from typing import Any, Awaitable, Callable, Dict, List, Optional

from app.core.config import Settings, get_settings
from app.core.errors import AnalysisError
from app.llm import gemini_client
from app.llm.prompts.analysis_prompts import ANALYSIS_SYSTEM_PROMPT, build_analysis_prompt
from app.schemas.analysis import ActionItemDraft, TranscriptAnalysis

logger = logging.getLogger(__name__)

LlmCall = Callable[..., Awaitable[str]]

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$")
_CALL_TYPES = {"technical", "partner", "non-technical"}


def strip_code_fence(text: str) -> str:
    return _FENCE_RE.sub("", (text or "").strip()).strip()


def clean_mermaid(source: Optional[str]) -> Optional[str]:
    """Unescape LLM-escaped newlines/quotes and drop `:::class` suffixes."""
    if not source:
        return None
    cleaned = source.replace("\\n", "\n").replace('\\"', '"')
    cleaned = re.sub(r"(\w+):::\w+", r"\1", cleaned)
    cleaned = re.sub(r"(\w+)::(\w+)(?!\[)", r"\1_\2", cleaned)
    return cleaned.strip() or None


def _coerce_action_items(raw: Any) -> List[ActionItemDraft]:
    items: List[ActionItemDraft] = []
    for entry in raw or []:
        if isinstance(entry, str):
            text_value, owner = entry, None
        elif isinstance(entry, dict):
            text_value = entry.get("item") or entry.get("text") or entry.get("description")
            owner = entry.get("owner")
        else:
            continue
        text_value = str(text_value or "").strip()
        if not text_value:
            continue
        items.append(ActionItemDraft(owner=str(owner or "").strip() or "Unknown", text=text_value))
    return items


def parse_analysis(content: str) -> TranscriptAnalysis:
    if not (content or "").strip():
        raise AnalysisError("No response from LLM")
    try:
        data: Dict[str, Any] = json.loads(strip_code_fence(content))
    except json.JSONDecodeError as exc:
        logger.warning("analysis_parse_failed content=%s", content[:500])
        raise AnalysisError(f"Failed to parse LLM response: {exc}") from exc
    if not isinstance(data, dict):
        raise AnalysisError("Failed to parse LLM response: expected a JSON object")

    call_type = str(data.get("callType") or data.get("call_type") or "non-technical").strip().lower()
    if call_type not in _CALL_TYPES:
        call_type = "non-technical"
    customer_name = data.get("customerName") or data.get("customer_name")
    customer_name = (str(customer_name).strip() or None) if customer_name else None
    if customer_name and customer_name.lower() in {"null", "none", "unknown"}:
        customer_name = None

    return TranscriptAnalysis(
        call_type=call_type,
        customer_name=customer_name,
        summary=str(data.get("summary") or "").strip() or "No summary available",
        action_items=_coerce_action_items(data.get("actionItems") or data.get("action_items")),
        components=data.get("components") or None,
        gaps=data.get("gaps") or None,
        diagram_source=clean_mermaid(data.get("mermaidCode") or data.get("diagram_source")),
    )


class LlmAnalyzer:
    """Analyzer collaborator backed by Gemini / Groq."""

    def __init__(self, settings: Optional[Settings] = None, llm_call: Optional[LlmCall] = None):
        self.settings = settings or get_settings()
        self._llm_call = llm_call or gemini_client.call_llm

    def is_ready(self) -> bool:
        return gemini_client.is_llm_available()

    async def analyze(self, transcript: str, title: Optional[str] = None) -> TranscriptAnalysis:
        truncated = (transcript or "")[: self.settings.transcript_max_length]
        prompt = build_analysis_prompt(truncated, title or "Meeting")
        try:
            content = await self._llm_call(
                prompt,
                system_prompt=ANALYSIS_SYSTEM_PROMPT,
                temperature=self.settings.ai_temperature,
                max_tokens=self.settings.ai_max_tokens,
            )
        except AnalysisError:
            raise
        except Exception as exc:
            raise AnalysisError(f"LLM request failed: {exc}") from exc
        return parse_analysis(content)
