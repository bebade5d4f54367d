from __future__ import annotations

import json
import logging
import os
from decimal import Decimal
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ValidationError

log = logging.getLogger(__name__)

ROOT_DIR = Path.cwd()
SETTINGS_FILE = "settings.json"


class Settings(BaseModel):
    data_dir: Path = ROOT_DIR / "data"
    exports_dir: Path = ROOT_DIR / "exports" / "devis"

    validity_days: int = 30
    default_tva_rate: Decimal = Decimal("20")
    default_labor_rate: Decimal = Decimal("45")
    default_margin_percent: Decimal = Decimal("0")
    default_section_name: str = "Prestations"

    logo_timeout_s: float = 5.0
    wkhtmltopdf_path: Optional[str] = None

    backup_enabled: bool = True
    backup_keep: int = 5


def _load_json(path: Path):
    if not path.exists():
        return None
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except Exception:
        log.warning("settings illisibles: %s", path)
        return None


def load_settings(data_dir: Optional[str | Path] = None) -> Settings:
    """
    Ordre de priorité :
    - DEVIS_DATA_DIR (env) puis argument data_dir
    - data/settings.json
    - WKHTMLTOPDF_PATH (env)
    """
    env_dir = os.environ.get("DEVIS_DATA_DIR")
    base = Path(env_dir or data_dir) if (env_dir or data_dir) else Settings().data_dir

    raw = _load_json(base / SETTINGS_FILE)
    values = dict(raw) if isinstance(raw, dict) else {}
    values["data_dir"] = base

    wk = os.environ.get("WKHTMLTOPDF_PATH")
    if wk:
        values["wkhtmltopdf_path"] = wk

    try:
        return Settings(**values)
    except ValidationError as e:
        log.warning("settings.json invalide, valeurs par défaut (%s)", e.error_count())
        return Settings(data_dir=base, wkhtmltopdf_path=wk or None)
