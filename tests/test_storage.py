import re
from datetime import datetime

import pytest

from devis.models.client import CompanyInfo
from devis.models.quote import Quote
from devis.services.quote_service import duplicate_quote
from devis.storage.json_store import JsonFileStore, MemoryStore, StoreError
from devis.storage.quote_storage import (
    COUNTER_KEY, CURRENT_QUOTE_KEY, HISTORY_KEY, QuoteStorage,
)


class FailingStore:
    def get(self, key):
        raise StoreError("quota dépassé")

    def set(self, key, value):
        raise StoreError("quota dépassé")

    def delete(self, key):
        raise StoreError("quota dépassé")


def test_current_quote_round_trip(storage, sample_quote):
    storage.save_current_quote(sample_quote)
    loaded = storage.load_current_quote()
    assert loaded == sample_quote
    assert loaded.items[0].total == sample_quote.items[0].total


def test_record_uses_camel_case_keys(sample_quote):
    record = sample_quote.to_record()
    assert "companyInfo" in record
    assert "laborHours" in record
    assert "sectionId" in record["items"][0]
    assert "total" in record["items"][0]


def test_clear_current_quote(storage, sample_quote):
    storage.save_current_quote(sample_quote)
    storage.clear_current_quote()
    assert storage.load_current_quote() is None


def test_history_upsert_keeps_position_and_inserts_new_first(storage, sample_quote):
    other = duplicate_quote(sample_quote, "DEV-202610-002")
    storage.append_or_replace_in_history(sample_quote)
    storage.append_or_replace_in_history(other)
    assert [q.id for q in storage.list_history()] == [other.id, sample_quote.id]

    renamed = sample_quote.model_copy(update={"title": "Rénovation"})
    storage.append_or_replace_in_history(renamed)
    history = storage.list_history()
    assert [q.id for q in history] == [other.id, sample_quote.id]
    assert history[1].title == "Rénovation"


def test_history_delete_and_lookup(storage, sample_quote):
    storage.append_or_replace_in_history(sample_quote)
    assert storage.get_from_history(sample_quote.id) == sample_quote
    storage.delete_from_history(sample_quote.id)
    assert storage.list_history() == []
    assert storage.get_from_history(sample_quote.id) is None


def test_history_skips_unreadable_entries(sample_quote):
    store = MemoryStore()
    store.set(HISTORY_KEY, [{"id": "x"}, sample_quote.to_record(), "garbage"])
    history = QuoteStorage(store).list_history()
    assert [q.id for q in history] == [sample_quote.id]


def test_quote_number_counter():
    storage = QuoteStorage(MemoryStore())
    now = datetime(2026, 10, 19, 9, 30)
    assert storage.next_quote_number(now) == "DEV-202610-001"
    assert storage.next_quote_number(now) == "DEV-202610-002"
    # compteur global, non remis à zéro au changement de mois
    assert storage.next_quote_number(datetime(2026, 11, 1)) == "DEV-202611-003"


def test_quote_number_fallback_when_store_fails():
    number = QuoteStorage(FailingStore()).next_quote_number()
    assert re.fullmatch(r"DEV-\d{13,}", number)


def test_failing_store_never_raises(sample_quote):
    storage = QuoteStorage(FailingStore())
    storage.save_current_quote(sample_quote)
    storage.append_or_replace_in_history(sample_quote)
    storage.clear_current_quote()
    storage.save_company_profile(CompanyInfo(name="ACME"))
    assert storage.load_current_quote() is None
    assert storage.list_history() == []
    assert storage.load_company_profile() is None
    assert storage.list_custom_products() == []


def test_corrupt_memory_value_reads_as_absent():
    store = MemoryStore()
    store.set_raw(CURRENT_QUOTE_KEY, "{pas du json")
    store.set_raw(COUNTER_KEY, "{")
    storage = QuoteStorage(store)
    assert storage.load_current_quote() is None
    assert storage.next_quote_number(datetime(2026, 10, 1)) == "DEV-202610-001"


def test_company_profile_round_trip(storage):
    info = CompanyInfo(name="Élec Services", siret="123 456 789 00012", city="Nantes")
    storage.save_company_profile(info)
    assert storage.load_company_profile() == info


def test_old_records_without_new_fields_still_load(sample_quote):
    record = sample_quote.to_record()
    record.pop("laborVisible")
    record["legacyField"] = True
    loaded = Quote.model_validate(record)
    assert loaded.labor_visible is True


# ---------- Store fichier ---------- #

def test_file_store_round_trip(tmp_path, sample_quote):
    storage = QuoteStorage(JsonFileStore(tmp_path))
    storage.save_current_quote(sample_quote)
    assert (tmp_path / "current_quote.json").exists()
    assert QuoteStorage(JsonFileStore(tmp_path)).load_current_quote() == sample_quote


def test_file_store_corrupt_file_is_set_aside(tmp_path):
    (tmp_path / "current_quote.json").write_text("{pas du json", encoding="utf-8")
    store = JsonFileStore(tmp_path)
    with pytest.raises(StoreError):
        store.get(CURRENT_QUOTE_KEY)
    assert (tmp_path / "current_quote.corrupt.json").exists()
    assert QuoteStorage(store).load_current_quote() is None


def test_file_store_backups_rotate(tmp_path):
    store = JsonFileStore(tmp_path, backup_enabled=True, backup_keep=2)
    for i in range(5):
        store.set("quote_history", [i])
    backups = list(tmp_path.glob("quote_history.*.bak.json"))
    assert len(backups) == 2
    assert store.get("quote_history") == [4]


def test_file_store_skips_identical_write(tmp_path):
    store = JsonFileStore(tmp_path)
    store.set("company_profile", {"name": "ACME"})
    store.set("company_profile", {"name": "ACME"})
    assert list(tmp_path.glob("company_profile.*.bak.json")) == []


def test_file_store_delete_missing_key(tmp_path):
    store = JsonFileStore(tmp_path)
    store.delete("nothing")
    assert store.get("nothing") is None
