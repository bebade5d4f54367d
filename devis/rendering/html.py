from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import List, Sequence

from jinja2 import Environment, FileSystemLoader, select_autoescape

from devis.rendering.content import Block, DocumentPlan
from devis.rendering.layout import Page

TEMPLATES_DIR = Path(__file__).resolve().parents[1] / "templates"
TEMPLATE_NAME = "quote.html"


@lru_cache(maxsize=1)
def _env() -> Environment:
    return Environment(
        loader=FileSystemLoader(str(TEMPLATES_DIR)),
        autoescape=select_autoescape(["html", "xml"]),
    )


def _render(plan: DocumentPlan, sheets: Sequence[List[Block]], target: str) -> str:
    tpl = _env().get_template(TEMPLATE_NAME)
    return tpl.render(
        title=f"Devis {plan.number}".strip(),
        sheets=sheets,
        target=target,
    )


def render_preview_html(plan: DocumentPlan) -> str:
    """Aperçu écran : une seule feuille, défilement libre."""
    return _render(plan, [list(plan.blocks)], target="screen")


def render_export_html(plan: DocumentPlan, pages: Sequence[Page]) -> str:
    """Document paginé : une div .page par page calculée."""
    sheets = [[placed.block for placed in page.blocks] for page in pages]
    return _render(plan, sheets, target="file")
