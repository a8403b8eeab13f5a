# fitwright/capture/screenshot.py
from __future__ import annotations

"""Screenshot persistence
-------------------------
Commands and failure diagnostics carry screenshots as base64 PNG text. This
module writes them to disk with consistent file names, converting to the
configured format, and returns structured capture results.
"""

import base64
import binascii
import io
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from PIL import Image

from fitwright.utils import markup
from fitwright.utils.config import Settings, get_settings
from fitwright.utils.logger import get_logger
from fitwright.utils.timing import measure


@dataclass
class CaptureResult:
    path: Path
    width: int
    height: int
    name: str            # logical name (e.g., row label)
    ts: str              # ISO timestamp


class ScreenshotStore:
    """
    Writes base64 screenshots under a run directory.
    - Respects SCREENSHOT_FORMAT / SCREENSHOT_QUALITY.
    - Produces deterministic file names; repeated names get a numeric suffix.
    """

    def __init__(self, run_dir: Path, settings: Optional[Settings] = None):
        self.settings: Settings = settings or get_settings()
        self.run_dir = Path(run_dir)
        self.log = get_logger(__name__)

    # ----------- Public API -----------

    @measure("save_screenshot")
    def save_base64(self, data: str, name: str) -> CaptureResult:
        """Decode and store one screenshot. Raises ValueError on malformed data."""
        try:
            raw = base64.b64decode(data, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValueError(f"Screenshot data for '{name}' is not valid base64") from e

        fmt = self.settings.SCREENSHOT_FORMAT.value
        out_path = self._build_path(name, "jpg" if fmt == "jpeg" else fmt)
        with Image.open(io.BytesIO(raw)) as im:
            width, height = im.width, im.height
            if fmt == "jpeg":
                im.convert("RGB").save(out_path, "JPEG", quality=self.settings.SCREENSHOT_QUALITY)
            else:
                im.save(out_path, "PNG")

        self.log.debug(f"Saved screenshot {out_path} ({width}x{height})")
        return CaptureResult(path=out_path, width=width, height=height, name=name, ts=self._ts())

    def save_from_message(self, message: str, name: str) -> Optional[CaptureResult]:
        """Extract the screenshot embedded in a failure diagnostic, if any."""
        screenshot, _ = markup.parse_exception_message(message)
        if not screenshot:
            return None
        try:
            return self.save_base64(screenshot, name)
        except (ValueError, OSError) as e:
            self.log.warning(f"Could not store failure screenshot for '{name}': {e}")
            return None

    # ----------- Internals -----------

    def _build_path(self, base: str, ext: str) -> Path:
        safe = "".join(ch if ch.isalnum() or ch in ("-", "_") else "_" for ch in base) or "screenshot"
        self.run_dir.mkdir(parents=True, exist_ok=True)
        out_path = self.run_dir / f"{safe}.{ext}"
        n = 1
        while out_path.exists():
            n += 1
            out_path = self.run_dir / f"{safe}_{n}.{ext}"
        return out_path

    @staticmethod
    def _ts() -> str:
        return datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")
