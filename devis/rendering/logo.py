from __future__ import annotations

import base64
import io
import logging
import mimetypes
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeout
from pathlib import Path
from typing import Optional, Tuple

from pydantic import BaseModel
from reportlab.lib.utils import ImageReader

log = logging.getLogger(__name__)

LOGO_WIDTH_MM = 35.0
LOGO_MAX_HEIGHT_MM = 25.0


class LogoImage(BaseModel):
    data_uri: str
    width_px: int
    height_px: int
    width_mm: float
    height_mm: float


def fit_logo(width_px: int, height_px: int,
             width_mm: float = LOGO_WIDTH_MM, max_height_mm: float = LOGO_MAX_HEIGHT_MM) -> Tuple[float, float]:
    """Largeur fixe, hauteur proportionnelle ; au-delà du plafond on réduit les deux."""
    height_mm = height_px * width_mm / width_px
    if height_mm > max_height_mm:
        scale = max_height_mm / height_mm
        return width_mm * scale, max_height_mm
    return width_mm, height_mm


def _read_logo_bytes(ref: str) -> Tuple[bytes, str]:
    if ref.startswith("data:"):
        header, _, payload = ref.partition(",")
        mime = header[5:].split(";")[0] or "image/png"
        return base64.b64decode(payload, validate=True), mime
    path = Path(ref)
    mime = mimetypes.guess_type(path.name)[0] or "image/png"
    return path.read_bytes(), mime


def decode_logo(ref: str) -> LogoImage:
    raw, mime = _read_logo_bytes(ref)
    width_px, height_px = ImageReader(io.BytesIO(raw)).getSize()
    if width_px <= 0 or height_px <= 0:
        raise ValueError(f"dimensions invalides ({width_px}x{height_px})")
    width_mm, height_mm = fit_logo(width_px, height_px)
    encoded = base64.b64encode(raw).decode("ascii")
    return LogoImage(
        data_uri=f"data:{mime};base64,{encoded}",
        width_px=int(width_px),
        height_px=int(height_px),
        width_mm=round(width_mm, 2),
        height_mm=round(height_mm, 2),
    )


class LogoLoader:
    """
    Décodage du logo sur un thread dédié, borné par un timeout.
    Tout échec donne None : l'en-tête se met alors en page sans logo.
    """

    def __init__(self, timeout_s: float = 5.0) -> None:
        self.timeout_s = timeout_s
        self._executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="logo")

    def load(self, ref: Optional[str]) -> Optional[LogoImage]:
        if not ref:
            return None
        fut = self._executor.submit(decode_logo, ref)
        try:
            return fut.result(timeout=self.timeout_s)
        except FuturesTimeout:
            fut.cancel()
            log.warning("logo ignoré: délai de %.1fs dépassé", self.timeout_s)
            return None
        except Exception as e:
            log.warning("logo ignoré: %s", e)
            return None

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)
