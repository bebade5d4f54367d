from __future__ import annotations
from decimal import Decimal
from typing import Dict, List

from devis.models.product import Product

# (id, nom, catégorie, prix unitaire HT, unité)
_ELECTRICIAN = [
    ("e1", "Tableau électrique 13 modules", "Tableaux", "245", "unité"),
    ("e2", "Tableau électrique 26 modules", "Tableaux", "385", "unité"),
    ("e3", "Interrupteur différentiel 40A 30mA", "Protection", "89", "unité"),
    ("e4", "Disjoncteur 16A", "Protection", "12", "unité"),
    ("e5", "Disjoncteur 20A", "Protection", "14", "unité"),
    ("e6", "Disjoncteur 32A", "Protection", "18", "unité"),
    ("e7", "Prise électrique 16A", "Appareillage", "8", "unité"),
    ("e8", "Interrupteur simple", "Appareillage", "6", "unité"),
    ("e9", "Interrupteur va-et-vient", "Appareillage", "9", "unité"),
    ("e10", "Spot LED encastrable", "Éclairage", "25", "unité"),
    ("e11", "Câble R2V 3G2.5", "Câbles", "2.5", "mètre"),
    ("e12", "Câble R2V 3G6", "Câbles", "4.5", "mètre"),
    ("e13", "Gaine ICTA 20mm", "Câbles", "0.8", "mètre"),
    ("e14", "Boîte de dérivation", "Accessoires", "3", "unité"),
    ("e15", "Prise RJ45 Cat6", "Appareillage", "18", "unité"),
]

_CARPENTER = [
    ("c1", "Porte intérieure standard", "Portes", "180", "unité"),
    ("c2", "Porte intérieure vitrée", "Portes", "280", "unité"),
    ("c3", "Bloc porte pré-peint", "Portes", "220", "unité"),
    ("c4", "Fenêtre PVC 1 vantail", "Fenêtres", "320", "unité"),
    ("c5", "Fenêtre PVC 2 vantaux", "Fenêtres", "480", "unité"),
    ("c6", "Porte-fenêtre PVC", "Fenêtres", "650", "unité"),
    ("c7", "Volet roulant manuel", "Volets", "280", "unité"),
    ("c8", "Volet roulant électrique", "Volets", "420", "unité"),
    ("c9", "Parquet stratifié", "Sols", "25", "m²"),
    ("c10", "Parquet contrecollé chêne", "Sols", "55", "m²"),
    ("c11", "Plinthe bois", "Finitions", "8", "mètre"),
    ("c12", "Étagère sur mesure", "Rangement", "120", "mètre"),
    ("c13", "Placard coulissant 2 portes", "Rangement", "850", "unité"),
    ("c14", "Escalier bois standard", "Escaliers", "2500", "unité"),
    ("c15", "Garde-corps bois", "Escaliers", "180", "mètre"),
]


def _build(rows, trade: str) -> List[Product]:
    return [
        Product(id=pid, name=name, category=cat, unit_price=Decimal(price), unit=unit, trade=trade)
        for pid, name, cat, price, unit in rows
    ]


BUILTIN_PRODUCTS: Dict[str, List[Product]] = {
    "electrician": _build(_ELECTRICIAN, "electrician"),
    "carpenter": _build(_CARPENTER, "carpenter"),
}
