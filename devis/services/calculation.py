from __future__ import annotations

from decimal import Decimal

from devis.models.common import HUNDRED, ZERO
from devis.models.quote import Quote, QuoteCalculations


def _pct(amount: Decimal, percent: Decimal) -> Decimal:
    return amount * percent / HUNDRED


def calculate(quote: Quote) -> QuoteCalculations:
    """
    Chaîne de calcul (ordre fixe) :
    produits inclus + main d'œuvre = HT, + marge, - remise, + TVA = TTC.
    Aucun arrondi ni bornage ici : l'affichage arrondit à 2 décimales.
    """
    subtotal_products = sum((it.total for it in quote.items if it.included), ZERO)
    # la MO compte toujours, même masquée sur le document
    labor_cost = quote.labor_hours * quote.labor_rate
    subtotal_ht = subtotal_products + labor_cost

    margin = _pct(subtotal_ht, quote.margin_percent)
    subtotal_with_margin = subtotal_ht + margin

    discount = _pct(subtotal_with_margin, quote.discount_percent)
    total_ht = subtotal_with_margin - discount

    tva = _pct(total_ht, quote.tva_rate)
    total_ttc = total_ht + tva

    return QuoteCalculations(
        subtotal_products=subtotal_products,
        labor_cost=labor_cost,
        subtotal_ht=subtotal_ht,
        margin=margin,
        subtotal_with_margin=subtotal_with_margin,
        discount=discount,
        total_ht=total_ht,
        tva=tva,
        total_ttc=total_ttc,
    )
