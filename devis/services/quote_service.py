from __future__ import annotations

import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from devis.config import Settings
from devis.models.client import CompanyInfo
from devis.models.common import HUNDRED, ZERO, gen_id, to_decimal
from devis.models.product import FREE_CATEGORY, FREE_PREFIX, Product, Trade
from devis.models.quote import (
    ItemUpdate, Quote, QuoteItem, QuoteSection, QuoteUpdate,
)

log = logging.getLogger(__name__)

MIN_QUANTITY = Decimal("0.01")

_PERCENT_FIELDS = ("margin_percent", "discount_percent", "tva_rate")
_NON_NEGATIVE_FIELDS = ("labor_hours", "labor_rate")


# ---------- Helpers ---------- #

def _clamp_qty(v: Any) -> Decimal:
    return max(MIN_QUANTITY, to_decimal(v, default=MIN_QUANTITY))


def _clamp_percent(v: Decimal) -> Decimal:
    return min(HUNDRED, max(ZERO, v))


def _with_items(quote: Quote, items: List[QuoteItem]) -> Quote:
    return quote.model_copy(update={"items": items})


def ordered_sections(quote: Quote) -> List[QuoteSection]:
    return sorted(quote.sections, key=lambda s: s.order)


def section_items(quote: Quote, section_id: str, included_only: bool = False) -> List[QuoteItem]:
    return [
        it for it in quote.items
        if it.section_id == section_id and (it.included or not included_only)
    ]


def section_subtotal(quote: Quote, section_id: str) -> Decimal:
    return sum((it.total for it in section_items(quote, section_id, included_only=True)), ZERO)


def valid_until_for(issue_date: str, validity_days: int = 30) -> str:
    try:
        d = date.fromisoformat(issue_date)
    except (TypeError, ValueError):
        return ""
    return (d + timedelta(days=validity_days)).isoformat()


# ---------- Cycle de vie ---------- #

def create_empty_quote(
    trade: Trade,
    number: str,
    settings: Optional[Settings] = None,
    *,
    today: Optional[date] = None,
    company_info: Optional[CompanyInfo] = None,
) -> Quote:
    s = settings or Settings()
    issued = (today or date.today()).isoformat()
    return Quote(
        number=number,
        date=issued,
        valid_until=valid_until_for(issued, s.validity_days),
        trade=trade,
        company_info=company_info or CompanyInfo(),
        sections=[QuoteSection(name=s.default_section_name, order=0)],
        labor_rate=s.default_labor_rate,
        margin_percent=s.default_margin_percent,
        tva_rate=s.default_tva_rate,
    )


def duplicate_quote(
    quote: Quote,
    number: str,
    *,
    today: Optional[date] = None,
    validity_days: int = 30,
) -> Quote:
    """Copie indépendante : nouvel id (devis + lignes), nouveau numéro, dates remises à jour."""
    copy = quote.model_copy(deep=True)
    issued = (today or date.today()).isoformat()
    return copy.model_copy(update={
        "id": gen_id(),
        "number": number,
        "date": issued,
        "valid_until": valid_until_for(issued, validity_days),
        "items": [it.model_copy(update={"id": gen_id()}) for it in copy.items],
    })


# ---------- Lignes ---------- #

def add_product(quote: Quote, product: Product, quantity: Any, section_id: str) -> Quote:
    if not quote.has_section(section_id):
        log.info("add_product ignoré: section %s inconnue", section_id)
        return quote
    qty = _clamp_qty(quantity)

    items = list(quote.items)
    for idx, it in enumerate(items):
        if it.section_id == section_id and it.product.id == product.id:
            items[idx] = it.model_copy(update={"quantity": it.quantity + qty})
            return _with_items(quote, items)

    items.append(QuoteItem(
        section_id=section_id,
        product=product,
        quantity=qty,
        unit_price=product.unit_price,
        unit=product.unit,
    ))
    return _with_items(quote, items)


def add_free_item(
    quote: Quote,
    section_id: str,
    name: str,
    unit_price: Any,
    unit: str = "",
    quantity: Any = 1,
) -> Quote:
    # le nom vide est filtré par l'appelant
    product = Product(
        id=f"{FREE_PREFIX}{gen_id()}",
        name=(name or "").strip(),
        category=FREE_CATEGORY,
        unit_price=to_decimal(unit_price),
        unit=unit or "",
        trade=quote.trade,
    )
    return add_product(quote, product, quantity, section_id)


def update_item(quote: Quote, item_id: str, updates: Union[ItemUpdate, Dict[str, Any]]) -> Quote:
    item = quote.get_item(item_id)
    if item is None:
        return quote
    try:
        upd = updates if isinstance(updates, ItemUpdate) else ItemUpdate(**updates)
    except ValidationError as e:
        log.info("update_item refusé (%s)", e.errors()[0].get("loc"))
        return quote

    changes = upd.model_dump(exclude_unset=True)
    changes = {k: v for k, v in changes.items() if v is not None or k == "description"}

    if "quantity" in changes:
        changes["quantity"] = _clamp_qty(changes["quantity"])
    if "unit_price" in changes:
        changes["unit_price"] = max(ZERO, changes["unit_price"])
    if "description" in changes:
        changes["description"] = (changes["description"] or "").strip() or None
    if "section_id" in changes and not quote.has_section(changes["section_id"]):
        changes.pop("section_id")

    if not changes:
        return quote
    items = [it.model_copy(update=changes) if it.id == item_id else it for it in quote.items]
    return _with_items(quote, items)


def remove_item(quote: Quote, item_id: str) -> Quote:
    items = [it for it in quote.items if it.id != item_id]
    if len(items) == len(quote.items):
        return quote
    return _with_items(quote, items)


# ---------- Sections ---------- #

def add_section(quote: Quote, name: str, order: Optional[int] = None) -> Quote:
    label = (name or "").strip()
    if not label:
        return quote
    if order is None:
        order = max((s.order for s in quote.sections), default=-1) + 1
    section = QuoteSection(name=label, order=order)
    return quote.model_copy(update={"sections": [*quote.sections, section]})


def rename_section(quote: Quote, section_id: str, new_name: str) -> Quote:
    label = (new_name or "").strip()
    if not label or not quote.has_section(section_id):
        return quote
    sections = [
        s.model_copy(update={"name": label}) if s.id == section_id else s
        for s in quote.sections
    ]
    return quote.model_copy(update={"sections": sections})


def delete_section(quote: Quote, section_id: str) -> Quote:
    if not quote.has_section(section_id):
        return quote
    if len(quote.sections) <= 1:
        log.info("delete_section refusé: le devis doit garder au moins une section")
        return quote
    return quote.model_copy(update={
        "sections": [s for s in quote.sections if s.id != section_id],
        "items": [it for it in quote.items if it.section_id != section_id],
    })


def move_section(quote: Quote, section_id: str, offset: int) -> Quote:
    """Échange la position avec la voisine (offset -1 = monter, +1 = descendre)."""
    ordered = ordered_sections(quote)
    idx = next((i for i, s in enumerate(ordered) if s.id == section_id), None)
    if idx is None or offset == 0:
        return quote
    target = idx + (1 if offset > 0 else -1)
    if not 0 <= target < len(ordered):
        return quote
    ordered[idx], ordered[target] = ordered[target], ordered[idx]
    renumbered = [s.model_copy(update={"order": i}) for i, s in enumerate(ordered)]
    return quote.model_copy(update={"sections": renumbered})


# ---------- Champs du devis ---------- #

def update_quote(quote: Quote, updates: Union[QuoteUpdate, Dict[str, Any]]) -> Quote:
    try:
        upd = updates if isinstance(updates, QuoteUpdate) else QuoteUpdate(**updates)
    except ValidationError as e:
        log.info("update_quote refusé (%s)", e.errors()[0].get("loc"))
        return quote

    changes = {k: v for k, v in upd.model_dump(exclude_unset=True).items() if v is not None}
    # model_dump a converti client/company_info en dict
    if "client" in changes:
        changes["client"] = upd.client
    if "company_info" in changes:
        changes["company_info"] = upd.company_info

    for k in _PERCENT_FIELDS:
        if k in changes:
            changes[k] = _clamp_percent(changes[k])
    for k in _NON_NEGATIVE_FIELDS:
        if k in changes:
            changes[k] = max(ZERO, changes[k])

    if not changes:
        return quote
    return quote.model_copy(update=changes)
