from decimal import Decimal

from conftest import product

from devis.models.client import Client, CompanyInfo
from devis.models.quote import Quote
from devis.rendering.content import (
    DEFAULT_CLIENT_NAME, DEFAULT_COMPANY_NAME, ClientBlock, HeaderBlock, TotalsBlock, build_document,
)
from devis.rendering.formatting import NBSP
from devis.services import quote_service as qs


def test_block_order(sample_quote):
    plan = build_document(sample_quote)
    assert plan.kinds() == ["header", "client", "section", "labor", "totals", "footer"]


def test_header_defaults_and_dates(sample_quote):
    header = build_document(sample_quote).first("header")
    assert isinstance(header, HeaderBlock)
    assert header.company_name == DEFAULT_COMPANY_NAME
    assert header.title == "DEVIS"
    assert header.number == "DEV-202610-001"
    assert header.issue_date == "19 octobre 2026"
    assert header.valid_until == "18 novembre 2026"
    assert header.logo is None


def test_header_company_lines(sample_quote):
    info = CompanyInfo(
        name="Élec Services", address="3 rue des Lilas", postal_code="44000", city="Nantes",
        phone="02 40 00 00 00", email="contact@elec.fr", siret="12345678900012",
    )
    header = build_document(qs.update_quote(sample_quote, {"company_info": info})).first("header")
    assert header.company_name == "Élec Services"
    assert header.company_lines == [
        "3 rue des Lilas", "44000 Nantes", "Tél : 02 40 00 00 00", "contact@elec.fr", "SIRET : 12345678900012",
    ]


def test_client_block_omits_empty_lines(sample_quote):
    client = build_document(sample_quote).first("client")
    assert isinstance(client, ClientBlock)
    assert client.name == DEFAULT_CLIENT_NAME
    assert client.lines == []

    q = qs.update_quote(sample_quote, {"client": Client(name="M. Martin", city="Lyon", email="m@martin.fr")})
    client = build_document(q).first("client")
    assert client.name == "M. Martin"
    assert client.lines == ["Lyon", "m@martin.fr"]


def test_section_rows(sample_quote):
    section = build_document(sample_quote).sections()[0]
    assert section.name == "Prestations"
    assert [r.designation for r in section.rows] == [
        "Tableau électrique 13 modules", "Interrupteur différentiel 40A 30mA",
    ]
    assert section.rows[0].quantity == "1"
    assert section.rows[0].unit == "unité"
    assert section.rows[0].unit_price == f"245,00{NBSP}€"
    assert section.subtotal == f"334,00{NBSP}€"
    assert section.subtotal_value == Decimal("334")


def test_excluded_items_and_empty_sections_are_omitted(sample_quote):
    q = qs.add_section(sample_quote, "Options")
    options = qs.ordered_sections(q)[1].id
    q = qs.add_product(q, product("e10"), 6, options)
    only = q.items[-1]
    q = qs.update_item(q, only.id, {"included": False})
    q = qs.update_item(q, q.items[0].id, {"included": False})

    plan = build_document(q)
    assert [s.name for s in plan.sections()] == ["Prestations"]
    assert [r.item_id for r in plan.sections()[0].rows] == [q.items[1].id]
    assert plan.sections()[0].subtotal_value == Decimal("89")


def test_sections_follow_order(sample_quote):
    q = qs.add_section(sample_quote, "Cuisine")
    kitchen = qs.ordered_sections(q)[1].id
    q = qs.add_product(q, product("e7"), 4, kitchen)
    q = qs.move_section(q, kitchen, -1)
    assert [s.name for s in build_document(q).sections()] == ["Cuisine", "Prestations"]


def test_free_line_without_unit_and_description(empty_quote):
    sid = qs.ordered_sections(empty_quote)[0].id
    q = qs.add_free_item(empty_quote, sid, "Déplacement", 30)
    q = qs.update_item(q, q.items[0].id, {"description": "Zone 1\nAller-retour"})
    row = build_document(q).sections()[0].rows[0]
    assert row.unit == "-"
    assert row.description_lines == ["Zone 1", "Aller-retour"]


def test_labor_block_visibility(sample_quote):
    labor = build_document(sample_quote).first("labor")
    assert labor.hours == f"4{NBSP}h"
    assert labor.rate == f"45,00{NBSP}€/h"
    assert labor.cost == f"180,00{NBSP}€"

    hidden = qs.update_quote(sample_quote, {"labor_visible": False})
    assert "labor" not in build_document(hidden).kinds()

    no_hours = qs.update_quote(sample_quote, {"labor_hours": 0})
    assert "labor" not in build_document(no_hours).kinds()


def test_totals_without_discount(sample_quote):
    totals = build_document(sample_quote).first("totals")
    assert isinstance(totals, TotalsBlock)
    assert [t.key for t in totals.lines] == ["total_ht", "tva", "total_ttc"]
    assert totals.lines[1].label == f"TVA (20{NBSP}%)"
    assert totals.lines[-1].amount == f"616,80{NBSP}€"
    assert totals.lines[-1].emphasized


def test_totals_with_discount(sample_quote):
    q = qs.update_quote(sample_quote, {"discount_percent": 10})
    totals = build_document(q).first("totals")
    assert [t.key for t in totals.lines] == ["total_ht", "discount", "tva", "total_ttc"]
    discount = totals.lines[1]
    assert discount.label == f"dont remise (10{NBSP}%)"
    assert discount.amount == f"-51,40{NBSP}€"
    assert totals.lines[0].amount == f"462,60{NBSP}€"
    assert totals.lines[-1].amount == f"555,12{NBSP}€"


def test_notes_block(sample_quote):
    q = qs.update_quote(sample_quote, {"notes": "Acompte de 30 %\nTravaux sous 15 jours"})
    plan = build_document(q)
    assert plan.kinds()[-2:] == ["notes", "footer"]
    assert plan.first("notes").lines == ["Acompte de 30 %", "Travaux sous 15 jours"]

    blank = qs.update_quote(sample_quote, {"notes": "   "})
    assert "notes" not in build_document(blank).kinds()


def test_footer_and_bad_dates(sample_quote):
    q = qs.update_quote(sample_quote, {"valid_until": "fin du mois"})
    plan = build_document(q)
    assert plan.first("footer").text == "Devis valable jusqu'au fin du mois"
    assert plan.first("header").valid_until == "fin du mois"


def test_custom_title(sample_quote):
    q = qs.update_quote(sample_quote, {"title": "Devis rénovation"})
    assert build_document(q).first("header").title == "Devis rénovation"
    q = qs.update_quote(sample_quote, {"title": "  "})
    assert build_document(q).first("header").title == "DEVIS"


def test_blank_description_is_not_rendered(sample_quote):
    stored = sample_quote.to_record()
    stored["items"][0]["description"] = "  \n  "
    row = build_document(Quote.model_validate(stored)).sections()[0].rows[0]
    assert row.description_lines == []
