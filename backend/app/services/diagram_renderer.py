"""
Mermaid diagram renderer (mermaid-cli `mmdc` subprocess).
"""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path
import tempfile
from typing import Any, Dict, List, Optional
from uuid import uuid4

from app.core.config import Settings, get_settings
from app.core.errors import RenderError

logger = logging.getLogger(__name__)


class MermaidRenderer:
    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.exports_dir = Path(self.settings.exports_dir)

    def _base_args(self, input_path: Path, output_path: Path) -> List[str]:
        args = [self.settings.mmdc_bin, "-i", str(input_path), "-o", str(output_path)]
        if self.settings.puppeteer_config_path:
            args += ["-p", self.settings.puppeteer_config_path]
        return args

    async def _run(self, args: List[str], timeout: float) -> None:
        try:
            proc = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise RenderError(f"mmdc unavailable: {exc}") from exc
        try:
            _, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except asyncio.TimeoutError as exc:
            proc.kill()
            await proc.wait()
            raise RenderError(f"mmdc timed out after {timeout}s") from exc
        if proc.returncode != 0:
            detail = (stderr or b"").decode("utf-8", errors="replace").strip()
            raise RenderError(detail or f"mmdc exited with code {proc.returncode}")

    async def validate(self, source: str) -> Dict[str, Any]:
        """Render into a scratch directory; a failed render means invalid syntax."""
        with tempfile.TemporaryDirectory(prefix="mmd-validate-") as tmp:
            input_path = Path(tmp) / "input.mmd"
            output_path = Path(tmp) / "output.png"
            input_path.write_text(source or "", encoding="utf-8")
            try:
                await self._run(self._base_args(input_path, output_path), self.settings.validate_timeout_seconds)
            except RenderError as exc:
                return {"valid": False, "error": exc.message}
        return {"valid": True, "error": None}

    async def render(self, source: str, diagram_id: int, version: int) -> str:
        """Render a PNG into exports_dir and return its file name."""
        self.exports_dir.mkdir(parents=True, exist_ok=True)
        filename = f"diagram-{diagram_id}-v{version}.png"
        output_path = self.exports_dir / filename
        input_path = self.exports_dir / f"input-{uuid4().hex}.mmd"
        input_path.write_text(source, encoding="utf-8")
        try:
            args = self._base_args(input_path, output_path) + ["-b", "white", "-w", "1600", "-H", "4000", "-s", "3"]
            await self._run(args, self.settings.render_timeout_seconds)
        except RenderError as exc:
            raise RenderError(f"Failed to render diagram: {exc.message}") from exc
        finally:
            input_path.unlink(missing_ok=True)
        return filename

    def image_path(self, filename: str) -> Path:
        return self.exports_dir / Path(filename).name

    def image_exists(self, filename: Optional[str]) -> bool:
        return bool(filename) and self.image_path(filename).is_file()

    def delete_image(self, filename: Optional[str]) -> None:
        if not filename:
            return
        try:
            self.image_path(filename).unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Failed to delete diagram image %s: %s", filename, exc)
