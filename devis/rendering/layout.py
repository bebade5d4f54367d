"""
Pagination du document exporté (A4, millimètres).

Curseur vertical courant : avant chaque bloc majeur on vérifie qu'il reste
au moins la hauteur minimale du bloc, sinon saut de page. Les tableaux de
section se coupent ligne par ligne (en-tête de tableau répété).
"""
from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field

from devis.rendering.content import (
    Block, ClientBlock, DocumentPlan, HeaderBlock, ItemRow,
    LaborBlock, NotesBlock, SectionBlock, TotalsBlock,
)

# hauteurs estimées (mm)
LINE_H = 4.5
HEADING_H = 8.0
TABLE_HEAD_H = 8.0
ROW_H = 7.0
DESCRIPTION_LINE_H = 4.0
SUBTOTAL_H = 8.0
BLOCK_GAP = 6.0
IDENTITY_H = 26.0
LABOR_H = 16.0
TOTAL_LINE_H = 6.0
TOTAL_TTC_H = 10.0
FOOTER_H = 10.0


class PageMetrics(BaseModel):
    width_mm: float = 210.0
    height_mm: float = 297.0
    margin_top_mm: float = 20.0
    margin_bottom_mm: float = 20.0
    margin_x_mm: float = 14.0

    @property
    def content_bottom(self) -> float:
        return self.height_mm - self.margin_bottom_mm


class PlacedBlock(BaseModel):
    block: Block
    y_mm: float
    height_mm: float


class Page(BaseModel):
    number: int
    blocks: List[PlacedBlock] = Field(default_factory=list)

    def kinds(self) -> List[str]:
        return [p.block.kind for p in self.blocks]


# ---------- Hauteurs ---------- #

def row_height(row: ItemRow) -> float:
    return ROW_H + DESCRIPTION_LINE_H * len(row.description_lines)


def block_height(block: Block) -> float:
    if isinstance(block, HeaderBlock):
        text_h = 7.0 + LINE_H * len(block.company_lines)
        if block.logo is not None:
            # logo à gauche, texte entreprise à côté
            text_h = max(text_h, block.logo.height_mm)
        return max(text_h, IDENTITY_H) + 12.0
    if isinstance(block, ClientBlock):
        return 10.0 + 5.0 * (1 + len(block.lines)) + BLOCK_GAP
    if isinstance(block, SectionBlock):
        h = TABLE_HEAD_H + sum(row_height(r) for r in block.rows)
        if not block.continued:
            h += HEADING_H
        if block.show_subtotal:
            h += SUBTOTAL_H + BLOCK_GAP
        return h
    if isinstance(block, LaborBlock):
        return LABOR_H
    if isinstance(block, TotalsBlock):
        return TOTAL_LINE_H * (len(block.lines) - 1) + TOTAL_TTC_H + BLOCK_GAP + 4.0
    if isinstance(block, NotesBlock):
        return 12.0 + LINE_H * len(block.lines)
    return FOOTER_H


def min_height(block: Block) -> float:
    """Hauteur en dessous de laquelle on change de page avant de poser le bloc."""
    if isinstance(block, SectionBlock):
        first = row_height(block.rows[0]) if block.rows else ROW_H
        return HEADING_H + TABLE_HEAD_H + first + SUBTOTAL_H + BLOCK_GAP
    if isinstance(block, NotesBlock):
        return 12.0 + LINE_H * min(3, len(block.lines))
    return block_height(block)


# ---------- Curseur ---------- #

class _Cursor:
    def __init__(self, metrics: PageMetrics) -> None:
        self.metrics = metrics
        self.pages: List[Page] = []
        self.new_page()

    @property
    def page(self) -> Page:
        return self.pages[-1]

    @property
    def remaining(self) -> float:
        return self.metrics.content_bottom - self.y

    def new_page(self) -> None:
        self.pages.append(Page(number=len(self.pages) + 1))
        self.y = self.metrics.margin_top_mm

    def ensure(self, needed: float) -> None:
        # une page vide accepte tout, sinon boucle infinie sur un bloc trop haut
        if self.remaining < needed and self.page.blocks:
            self.new_page()

    def place(self, block: Block, height: float) -> None:
        self.page.blocks.append(PlacedBlock(block=block, y_mm=round(self.y, 2), height_mm=round(height, 2)))
        self.y += height


def _place_section(cur: _Cursor, block: SectionBlock) -> None:
    cur.ensure(min_height(block))

    def emit(rows: List[ItemRow], continued: bool, last: bool) -> None:
        frag = block.model_copy(update={"rows": rows, "continued": continued, "show_subtotal": last})
        cur.place(frag, block_height(frag))

    continued = False
    rows: List[ItemRow] = []
    used = HEADING_H + TABLE_HEAD_H
    for row in block.rows:
        rh = row_height(row)
        if rows and used + rh > cur.remaining:
            emit(rows, continued, last=False)
            cur.new_page()
            continued, rows, used = True, [], TABLE_HEAD_H
        rows.append(row)
        used += rh

    # le sous-total ne part jamais seul : la dernière ligne l'accompagne
    if len(rows) > 1 and used + SUBTOTAL_H + BLOCK_GAP > cur.remaining:
        emit(rows[:-1], continued, last=False)
        cur.new_page()
        continued, rows = True, rows[-1:]
    emit(rows, continued, last=True)


def paginate(plan: DocumentPlan, metrics: PageMetrics | None = None) -> List[Page]:
    cur = _Cursor(metrics or PageMetrics())
    for block in plan.blocks:
        if isinstance(block, SectionBlock):
            _place_section(cur, block)
            continue
        if not isinstance(block, (HeaderBlock, ClientBlock)):
            cur.ensure(min_height(block))
        cur.place(block, block_height(block))
    return cur.pages
