from __future__ import annotations

import glob
import json
import logging
import shutil
import threading
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Optional, Union

log = logging.getLogger(__name__)


def _json_default(o: Any) -> Any:
    if isinstance(o, (date, datetime)):
        return o.isoformat()
    if isinstance(o, Decimal):
        return str(o)
    raise TypeError(f"Object of type {o.__class__.__name__} is not JSON serializable")


def dumps(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, indent=2, default=_json_default)


class StoreError(RuntimeError):
    """Lecture/écriture impossible (disque, quota, contenu corrompu)."""


class MemoryStore:
    """
    Store clé/valeur en mémoire (tests, sessions éphémères).
    Les valeurs transitent en JSON comme pour le store fichier.
    """

    def __init__(self) -> None:
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[Any]:
        raw = self._data.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise StoreError(f"{key}: contenu corrompu") from e

    def set(self, key: str, value: Any) -> None:
        self._data[key] = dumps(value)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def set_raw(self, key: str, raw: str) -> None:
        self._data[key] = raw


class JsonFileStore:
    """
    Store clé/valeur : un fichier JSON par clé (data/<key>.json).
    - Rotation de backups (backup_enabled, backup_keep)
    - N'écrit pas si le contenu ne change pas (réduction du bruit et des .bak)
    """

    def __init__(
        self,
        root: Union[str, Path],
        *,
        backup_enabled: bool = True,
        backup_keep: int = 5,
    ) -> None:
        self.root = Path(root)
        self._lock = threading.Lock()
        self.backup_enabled = backup_enabled
        self.backup_keep = max(0, int(backup_keep))
        self.root.mkdir(parents=True, exist_ok=True)

    def path_for(self, key: str) -> Path:
        return self.root / f"{key}.json"

    # ---------------- I/O bas niveau ---------------- #

    def get(self, key: str) -> Optional[Any]:
        path = self.path_for(key)
        try:
            with path.open("r", encoding="utf-8") as f:
                return json.load(f)
        except FileNotFoundError:
            return None
        except json.JSONDecodeError as e:
            # Fichier corrompu → mis de côté, la clé est considérée absente
            try:
                shutil.copy2(path, path.with_suffix(".corrupt.json"))
            except OSError:
                log.warning("copie du fichier corrompu impossible: %s", path)
            raise StoreError(f"{key}: contenu corrompu") from e
        except OSError as e:
            raise StoreError(f"{key}: lecture impossible ({e})") from e

    def _rotate_backups(self, path: Path) -> None:
        if not self.backup_enabled or self.backup_keep <= 0:
            return
        pattern = str(path.with_suffix(".*.bak.json"))
        files = sorted(glob.glob(pattern))
        # garde les plus récents
        for old in files[: max(0, len(files) - self.backup_keep)]:
            Path(old).unlink(missing_ok=True)

    def set(self, key: str, value: Any) -> None:
        path = self.path_for(key)
        new_dump = dumps(value)
        with self._lock:
            try:
                if path.exists():
                    # si contenu identique → ne rien faire
                    if path.read_text(encoding="utf-8") == new_dump:
                        return
                    if self.backup_enabled:
                        ts = datetime.now().strftime("%Y%m%d-%H%M%S-%f")
                        shutil.copy2(path, path.with_suffix(f".{ts}.bak.json"))
                        self._rotate_backups(path)
                with path.open("w", encoding="utf-8") as f:
                    f.write(new_dump)
            except OSError as e:
                raise StoreError(f"{key}: écriture impossible ({e})") from e

    def delete(self, key: str) -> None:
        try:
            self.path_for(key).unlink(missing_ok=True)
        except OSError as e:
            raise StoreError(f"{key}: suppression impossible ({e})") from e
