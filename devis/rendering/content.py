"""
Plan de contenu du document : liste ordonnée de blocs typés,
indépendante de la mise en page (voir layout.paginate).
"""
from __future__ import annotations

from decimal import Decimal
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from devis.models.quote import DEFAULT_TITLE, Quote, QuoteCalculations
from devis.rendering.formatting import (
    format_currency, format_date_long, format_hours, format_percent, format_quantity,
)
from devis.rendering.logo import LogoImage
from devis.services.calculation import calculate
from devis.services.quote_service import ordered_sections, section_items, section_subtotal

DEFAULT_COMPANY_NAME = "Mon Entreprise"
DEFAULT_CLIENT_NAME = "Non renseigné"
EMPTY_UNIT = "-"


class HeaderBlock(BaseModel):
    kind: Literal["header"] = "header"
    company_name: str
    company_lines: List[str] = Field(default_factory=list)
    logo: Optional[LogoImage] = None
    title: str = DEFAULT_TITLE
    number: str = ""
    issue_date: str = ""
    valid_until: str = ""


class ClientBlock(BaseModel):
    kind: Literal["client"] = "client"
    name: str
    lines: List[str] = Field(default_factory=list)


class ItemRow(BaseModel):
    item_id: str
    designation: str
    description_lines: List[str] = Field(default_factory=list)
    quantity: str
    unit: str
    unit_price: str
    total: str
    total_value: Decimal


class SectionBlock(BaseModel):
    kind: Literal["section"] = "section"
    section_id: str
    name: str
    rows: List[ItemRow]
    subtotal: str
    subtotal_value: Decimal
    # fragments produits par la pagination
    continued: bool = False
    show_subtotal: bool = True


class LaborBlock(BaseModel):
    kind: Literal["labor"] = "labor"
    hours: str
    rate: str
    cost: str


class TotalLine(BaseModel):
    key: Literal["total_ht", "discount", "tva", "total_ttc"]
    label: str
    amount: str
    emphasized: bool = False


class TotalsBlock(BaseModel):
    kind: Literal["totals"] = "totals"
    lines: List[TotalLine]


class NotesBlock(BaseModel):
    kind: Literal["notes"] = "notes"
    lines: List[str]


class FooterBlock(BaseModel):
    kind: Literal["footer"] = "footer"
    text: str


Block = Annotated[
    Union[HeaderBlock, ClientBlock, SectionBlock, LaborBlock, TotalsBlock, NotesBlock, FooterBlock],
    Field(discriminator="kind"),
]


class DocumentPlan(BaseModel):
    number: str
    client_name: str = ""
    blocks: List[Block]

    def kinds(self) -> List[str]:
        return [b.kind for b in self.blocks]

    def sections(self) -> List[SectionBlock]:
        return [b for b in self.blocks if isinstance(b, SectionBlock)]

    def first(self, kind: str) -> Optional[Block]:
        return next((b for b in self.blocks if b.kind == kind), None)


# ---------- Construction des blocs ---------- #

def _header(quote: Quote, logo: Optional[LogoImage]) -> HeaderBlock:
    c = quote.company_info
    lines: List[str] = []
    if c.address:
        lines.append(c.address)
    if c.city_line():
        lines.append(c.city_line())
    if c.phone:
        lines.append(f"Tél : {c.phone}")
    if c.email:
        lines.append(c.email)
    if c.siret:
        lines.append(f"SIRET : {c.siret}")
    return HeaderBlock(
        company_name=c.name or DEFAULT_COMPANY_NAME,
        company_lines=lines,
        logo=logo,
        title=(quote.title or "").strip() or DEFAULT_TITLE,
        number=quote.number,
        issue_date=format_date_long(quote.date),
        valid_until=format_date_long(quote.valid_until),
    )


def _client(quote: Quote) -> ClientBlock:
    cl = quote.client
    lines = [v for v in (cl.address, cl.city_line()) if v]
    if cl.phone:
        lines.append(f"Tél : {cl.phone}")
    if cl.email:
        lines.append(cl.email)
    return ClientBlock(name=cl.name or DEFAULT_CLIENT_NAME, lines=lines)


def _sections(quote: Quote) -> List[SectionBlock]:
    out: List[SectionBlock] = []
    for section in ordered_sections(quote):
        items = section_items(quote, section.id, included_only=True)
        if not items:
            continue
        rows = [
            ItemRow(
                item_id=it.id,
                designation=it.name,
                description_lines=(it.description or "").strip().splitlines(),
                quantity=format_quantity(it.quantity),
                unit=it.unit or EMPTY_UNIT,
                unit_price=format_currency(it.unit_price),
                total=format_currency(it.total),
                total_value=it.total,
            )
            for it in items
        ]
        subtotal = section_subtotal(quote, section.id)
        out.append(SectionBlock(
            section_id=section.id,
            name=section.name,
            rows=rows,
            subtotal=format_currency(subtotal),
            subtotal_value=subtotal,
        ))
    return out


def _totals(quote: Quote, calc: QuoteCalculations) -> TotalsBlock:
    lines = [TotalLine(key="total_ht", label="Total HT", amount=format_currency(calc.total_ht))]
    if calc.discount > 0:
        lines.append(TotalLine(
            key="discount",
            label=f"dont remise ({format_percent(quote.discount_percent)})",
            amount=format_currency(-calc.discount),
        ))
    lines.append(TotalLine(
        key="tva", label=f"TVA ({format_percent(quote.tva_rate)})", amount=format_currency(calc.tva),
    ))
    lines.append(TotalLine(
        key="total_ttc", label="Total TTC", amount=format_currency(calc.total_ttc), emphasized=True,
    ))
    return TotalsBlock(lines=lines)


def build_document(
    quote: Quote,
    calculations: Optional[QuoteCalculations] = None,
    logo: Optional[LogoImage] = None,
) -> DocumentPlan:
    calc = calculations or calculate(quote)
    blocks: List[Block] = [_header(quote, logo), _client(quote), *_sections(quote)]

    if quote.labor_visible and calc.labor_cost > 0:
        blocks.append(LaborBlock(
            hours=format_hours(quote.labor_hours),
            rate=f"{format_currency(quote.labor_rate)}/h",
            cost=format_currency(calc.labor_cost),
        ))

    blocks.append(_totals(quote, calc))

    if quote.notes.strip():
        blocks.append(NotesBlock(lines=quote.notes.splitlines()))

    blocks.append(FooterBlock(text=f"Devis valable jusqu'au {format_date_long(quote.valid_until)}"))
    return DocumentPlan(number=quote.number, client_name=quote.client.name, blocks=blocks)
