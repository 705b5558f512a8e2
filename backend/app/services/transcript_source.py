"""
Transcript source client (session recording product over HTTP).
"""
from __future__ import annotations

from datetime import date
from html.parser import HTMLParser
import json
import logging
from pathlib import Path
import re
from typing import List, Optional

import httpx

from app.core.config import Settings, get_settings
from app.core.errors import UpstreamFetchError

logger = logging.getLogger(__name__)

_SKIP_TAGS = {"script", "style", "noscript", "svg", "head"}


class _VisibleTextParser(HTMLParser):
    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self._skip_depth = 0
        self.lines: List[str] = []

    def handle_starttag(self, tag, attrs):
        if tag in _SKIP_TAGS:
            self._skip_depth += 1

    def handle_endtag(self, tag):
        if tag in _SKIP_TAGS and self._skip_depth:
            self._skip_depth -= 1

    def handle_data(self, data):
        if self._skip_depth:
            return
        text_value = re.sub(r"\s+", " ", data).strip()
        if text_value:
            self.lines.append(text_value)


def html_to_text(markup: str) -> str:
    parser = _VisibleTextParser()
    parser.feed(markup or "")
    parser.close()
    return "\n".join(parser.lines)


class HttpTranscriptSource:
    """Fetches a session page with the stored auth cookie and reduces it to text."""

    def __init__(self, settings: Optional[Settings] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings or get_settings()
        self._transport = transport

    def is_ready(self) -> bool:
        return bool((self.settings.transcript_source_auth_token or "").strip())

    def _session_url(self, source_id: str) -> str:
        if source_id.startswith("http://") or source_id.startswith("https://"):
            return source_id
        base = (self.settings.transcript_source_base_url or "").rstrip("/")
        return f"{base}/{source_id.lstrip('/')}"

    async def fetch(self, source_id: str) -> str:
        if not self.is_ready():
            raise UpstreamFetchError("Transcript source not authenticated")
        url = self._session_url(source_id)
        timeout = httpx.Timeout(self.settings.transcript_source_timeout_seconds, connect=10.0)
        cookies = {"AuthToken": self.settings.transcript_source_auth_token}
        try:
            async with httpx.AsyncClient(
                timeout=timeout, transport=self._transport, cookies=cookies, follow_redirects=True
            ) as client:
                resp = await client.get(url)
        except httpx.HTTPError as exc:
            raise UpstreamFetchError(f"Transcript request failed: {exc}") from exc

        if resp.status_code >= 400:
            raise UpstreamFetchError(f"Transcript source error {resp.status_code}")

        content_type = resp.headers.get("content-type", "")
        if content_type.startswith("application/json"):
            try:
                payload = resp.json()
            except ValueError as exc:
                raise UpstreamFetchError(f"Invalid transcript JSON response: {exc}") from exc
            return str(payload.get("transcript") or payload.get("text") or "").strip()
        return html_to_text(resp.text)

    def lookup_session_date(self, source_id: str) -> Optional[date]:
        """Session date from the cached session listing, if present."""
        path = Path(self.settings.transcript_sessions_cache_path)
        if not path.exists():
            return None
        try:
            sessions = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("session_cache_unreadable path=%s error=%s", path, exc)
            return None
        for session in sessions or []:
            if session.get("url") != source_id or not session.get("date"):
                continue
            try:
                return date.fromisoformat(str(session["date"])[:10])
            except ValueError:
                return None
        return None
