"""
Formatage fr-FR commun à l'aperçu écran et au PDF :
- montants : 1 234,56 € (U+202F en séparateur de milliers, U+00A0 avant €)
- dates longues : 19 octobre 2026 (chaîne brute si illisible)
"""
from __future__ import annotations

from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, List

from devis.models.common import to_decimal

NBSP = "\u00a0"
NBSP_NARROW = "\u202f"
CURRENCY_SYMBOL = "€"

MONTHS_FR = (
    "janvier", "février", "mars", "avril", "mai", "juin",
    "juillet", "août", "septembre", "octobre", "novembre", "décembre",
)

_CENT = Decimal("0.01")


def _group_thousands(int_str: str) -> str:
    """Groupe la partie entière par 3 chiffres, depuis la droite."""
    parts: List[str] = []
    while len(int_str) > 3:
        parts.append(int_str[-3:])
        int_str = int_str[:-3]
    parts.append(int_str)
    return NBSP_NARROW.join(reversed(parts))


def _plain_number(value: Decimal) -> str:
    s = format(value.normalize(), "f")
    return s.replace(".", ",")


def format_amount(value: Any) -> str:
    """Montant sans symbole : 1 234,56"""
    d = to_decimal(value).quantize(_CENT, rounding=ROUND_HALF_UP)
    sign = "-" if d < 0 else ""
    int_part, dec_part = f"{abs(d):.2f}".split(".")
    return f"{sign}{_group_thousands(int_part)},{dec_part}"


def format_currency(value: Any) -> str:
    return f"{format_amount(value)}{NBSP}{CURRENCY_SYMBOL}"


def format_quantity(value: Any) -> str:
    """2 ; 1,5 ; 0,25 (pas de zéros superflus)."""
    d = to_decimal(value)
    if d == d.to_integral_value():
        sign = "-" if d < 0 else ""
        return f"{sign}{_group_thousands(str(abs(int(d))))}"
    return _plain_number(d)


def format_percent(value: Any) -> str:
    return f"{format_quantity(value)}{NBSP}%"


def format_hours(value: Any) -> str:
    return f"{format_quantity(value)}{NBSP}h"


def parse_iso_date(value: Any) -> date | None:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except (TypeError, ValueError):
        return None


def format_date_long(value: Any) -> str:
    d = parse_iso_date(value)
    if d is None:
        return "" if value is None else str(value)
    return f"{d.day} {MONTHS_FR[d.month - 1]} {d.year}"
