import asyncio
import logging
from typing import Optional, Dict, Any

from google import genai as genai_client
from google.genai import types as genai_types
from groq import Groq

from app.core.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()


def get_groq_client():
    """Return Groq client."""
    if not settings.groq_api_key:
        return None
    return Groq(api_key=settings.groq_api_key)


def _select_provider() -> str:
    if settings.gemini_api_key:
        return "gemini"
    if settings.groq_api_key:
        return "groq"
    return "none"


def is_llm_available() -> bool:
    """Check if Gemini or Groq is configured and usable."""
    provider = _select_provider()
    if provider != "none":
        return True
    logger.warning("llm_not_configured provider=none")
    return False


def get_llm_status() -> Dict[str, Any]:
    """Return provider + model metadata for health checks."""
    provider = _select_provider()
    if provider == "gemini":
        model = settings.gemini_model
        api_key_set = bool(settings.gemini_api_key and len(settings.gemini_api_key) > 10)
        api_key_preview = (settings.gemini_api_key[:8] + "...") if settings.gemini_api_key else None
    elif provider == "groq":
        model = settings.groq_model
        api_key_set = bool(settings.groq_api_key and len(settings.groq_api_key) > 10)
        api_key_preview = (settings.groq_api_key[:8] + "...") if settings.groq_api_key else None
    else:
        model = None
        api_key_set = False
        api_key_preview = None
    return {
        "provider": provider,
        "status": "ready" if provider != "none" else "not_configured",
        "model": model,
        "api_key_set": api_key_set,
        "api_key_preview": api_key_preview,
    }


def _gemini_generate(
    prompt: str,
    *,
    system_prompt: Optional[str],
    model_name: str,
    temperature: float,
    max_tokens: int,
) -> str:
    client = genai_client.Client(api_key=settings.gemini_api_key)
    config = genai_types.GenerateContentConfig(
        temperature=temperature,
        max_output_tokens=max_tokens,
        system_instruction=system_prompt or None,
    )
    response = client.models.generate_content(
        model=model_name,
        contents=prompt,
        config=config,
    )
    return (getattr(response, "text", None) or "").strip()


def _groq_generate(
    prompt: str,
    *,
    system_prompt: Optional[str],
    model_name: str,
    temperature: float,
    max_tokens: int,
) -> str:
    client = get_groq_client()
    if not client:
        return ""
    messages = []
    if system_prompt:
        messages.append({"role": "system", "content": system_prompt})
    messages.append({"role": "user", "content": prompt})
    resp = client.chat.completions.create(
        model=model_name,
        messages=messages,
        temperature=temperature,
        max_tokens=max_tokens,
    )
    return (resp.choices[0].message.content or "").strip()


def call_llm_sync(
    prompt: str,
    *,
    system_prompt: Optional[str] = None,
    model_name: Optional[str] = None,
    temperature: Optional[float] = None,
    max_tokens: Optional[int] = None,
) -> str:
    """Sync LLM call; provider errors propagate to the caller."""
    provider = _select_provider()
    temperature = settings.ai_temperature if temperature is None else temperature
    max_tokens = settings.ai_max_tokens if max_tokens is None else max_tokens
    if provider == "gemini":
        return _gemini_generate(
            prompt,
            system_prompt=system_prompt,
            model_name=model_name or settings.gemini_model,
            temperature=temperature,
            max_tokens=max_tokens,
        )
    if provider == "groq":
        return _groq_generate(
            prompt,
            system_prompt=system_prompt,
            model_name=model_name or settings.groq_model,
            temperature=temperature,
            max_tokens=max_tokens,
        )
    return ""


async def call_llm(prompt: str, **kwargs) -> str:
    """Run the blocking SDK call off the event loop."""
    return await asyncio.to_thread(call_llm_sync, prompt, **kwargs)
