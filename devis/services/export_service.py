from __future__ import annotations

import logging
import os
import re
import shutil
import threading
import unicodedata
from pathlib import Path
from typing import List, Optional, Protocol

import pdfkit

from devis.config import Settings
from devis.models.quote import Quote, QuoteCalculations
from devis.rendering.content import DocumentPlan, build_document
from devis.rendering.html import TEMPLATES_DIR, render_export_html, render_preview_html
from devis.rendering.layout import Page, PageMetrics, paginate
from devis.rendering.logo import LogoLoader
from devis.services.calculation import calculate

log = logging.getLogger(__name__)

_WINDOWS_CANDIDATES = [
    r"C:\Program Files\wkhtmltopdf\bin\wkhtmltopdf.exe",
    r"C:\Program Files (x86)\wkhtmltopdf\bin\wkhtmltopdf.exe",
]


# ---------- Rédacteurs PDF ---------- #

class DocumentWriter(Protocol):
    def write(self, html: str, out_path: Path) -> None: ...


def _clean_path(p: str) -> str:
    """Corrige 'C\\:\\Program Files\\...' -> 'C:\\Program Files\\...' et normalise."""
    p = (p or "").strip().strip('"').strip("'")
    return os.path.normpath(p.replace("\\:", ":")) if p else ""


def find_wkhtmltopdf(configured: Optional[str] = None) -> Optional[str]:
    """
    Localise wkhtmltopdf :
    - chemin configuré (settings / WKHTMLTOPDF_PATH)
    - variable WKHTMLTOPDF
    - chemins Windows connus
    - PATH
    """
    for val in (configured, os.environ.get("WKHTMLTOPDF")):
        if val:
            path = _clean_path(val)
            if Path(path).is_file():
                return path
    for c in _WINDOWS_CANDIDATES:
        if Path(c).is_file():
            return c
    found = shutil.which("wkhtmltopdf")
    return _clean_path(found) if found else None


class PdfkitWriter:
    def __init__(self, wkhtmltopdf: str) -> None:
        self.wkhtmltopdf = wkhtmltopdf

    def write(self, html: str, out_path: Path) -> None:
        config = pdfkit.configuration(wkhtmltopdf=self.wkhtmltopdf)
        options = {
            "enable-local-file-access": None,
            "quiet": "",
            "encoding": "UTF-8",
            "page-size": "A4",
            "margin-top": "0",
            "margin-bottom": "0",
            "margin-left": "0",
            "margin-right": "0",
        }
        pdfkit.from_string(html, str(out_path), options=options, configuration=config)


class WeasyPrintWriter:
    def write(self, html: str, out_path: Path) -> None:
        try:
            from weasyprint import HTML
        except Exception as e:
            raise RuntimeError(
                "Aucun wkhtmltopdf trouvé et WeasyPrint n'est pas installé. "
                "Installe WeasyPrint (pip install weasyprint) ou configure wkhtmltopdf.\n"
                f"Détails: {e}"
            ) from e
        HTML(string=html, base_url=str(TEMPLATES_DIR)).write_pdf(str(out_path))


class FallbackWriter:
    """wkhtmltopdf (pdfkit) en priorité, sinon WeasyPrint."""

    def __init__(self, wkhtmltopdf_path: Optional[str] = None) -> None:
        self.wkhtmltopdf_path = wkhtmltopdf_path

    def write(self, html: str, out_path: Path) -> None:
        wkhtml = find_wkhtmltopdf(self.wkhtmltopdf_path)
        if wkhtml:
            try:
                PdfkitWriter(wkhtml).write(html, out_path)
                return
            except OSError as e:
                log.warning("Échec wkhtmltopdf (%s). Fallback WeasyPrint...", e)
        WeasyPrintWriter().write(html, out_path)


# ---------- Nom de fichier ---------- #

def slugify(text: str) -> str:
    text = unicodedata.normalize("NFKD", text or "").encode("ascii", "ignore").decode("ascii")
    text = re.sub(r"[^A-Za-z0-9]+", "_", text).strip("_")
    return text[:40]


def export_filename(quote: Quote) -> str:
    number = slugify(quote.number) or quote.id[:8]
    client = slugify(quote.client.name)
    return f"Devis_{number}_{client}.pdf" if client else f"Devis_{number}.pdf"


# ---------- Service ---------- #

class ExportService:
    """
    Aperçu HTML et export PDF à partir du même plan de contenu.
    Chaque demande reçoit un jeton : si une demande plus récente arrive
    pendant le chargement du logo, l'ancienne est abandonnée (None).
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        writer: Optional[DocumentWriter] = None,
        logo_loader: Optional[LogoLoader] = None,
        metrics: Optional[PageMetrics] = None,
    ) -> None:
        self.settings = settings or Settings()
        self.writer = writer or FallbackWriter(self.settings.wkhtmltopdf_path)
        self.logo_loader = logo_loader or LogoLoader(timeout_s=self.settings.logo_timeout_s)
        self.metrics = metrics or PageMetrics()
        self._lock = threading.Lock()
        self._latest = 0

    def close(self) -> None:
        """Libère le thread de décodage du logo."""
        self.logo_loader.close()

    def __enter__(self) -> "ExportService":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _begin(self) -> int:
        with self._lock:
            self._latest += 1
            return self._latest

    def _is_current(self, token: int) -> bool:
        with self._lock:
            return token == self._latest

    def build_plan(self, quote: Quote, calculations: Optional[QuoteCalculations] = None) -> Optional[DocumentPlan]:
        token = self._begin()
        logo = self.logo_loader.load(quote.company_info.logo)
        if not self._is_current(token):
            log.debug("demande %s dépassée, résultat ignoré", token)
            return None
        return build_document(quote, calculations or calculate(quote), logo=logo)

    def paginate(self, plan: DocumentPlan) -> List[Page]:
        return paginate(plan, self.metrics)

    def preview(self, quote: Quote, calculations: Optional[QuoteCalculations] = None) -> Optional[str]:
        plan = self.build_plan(quote, calculations)
        return render_preview_html(plan) if plan is not None else None

    def export_pdf(
        self,
        quote: Quote,
        calculations: Optional[QuoteCalculations] = None,
        out_dir: Optional[str | Path] = None,
    ) -> Optional[Path]:
        """Génère le PDF ; en cas d'échec du rédacteur, journalise et renvoie None."""
        plan = self.build_plan(quote, calculations)
        if plan is None:
            return None
        html = render_export_html(plan, self.paginate(plan))

        exports_dir = Path(out_dir) if out_dir else self.settings.exports_dir
        out_path = exports_dir / export_filename(quote)
        try:
            exports_dir.mkdir(parents=True, exist_ok=True)
            self.writer.write(html, out_path)
        except Exception:
            log.exception("export PDF impossible pour %s", quote.number)
            return None
        log.info("devis exporté: %s", out_path)
        return out_path
