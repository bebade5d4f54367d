# tests/conftest.py
import base64
import struct
import zlib
from datetime import date
from pathlib import Path

import pytest

from devis.config import Settings
from devis.services.builtin_catalog import BUILTIN_PRODUCTS
from devis.services.quote_service import add_product, create_empty_quote, update_quote
from devis.storage.json_store import MemoryStore
from devis.storage.quote_storage import QuoteStorage

TODAY = date(2026, 10, 19)


def make_png(width: int, height: int) -> bytes:
    """PNG RGB minimal (rouge uni)."""
    raw = b"".join(b"\x00" + b"\xff\x00\x00" * width for _ in range(height))

    def chunk(tag: bytes, data: bytes) -> bytes:
        crc = zlib.crc32(tag + data) & 0xFFFFFFFF
        return struct.pack(">I", len(data)) + tag + data + struct.pack(">I", crc)

    header = struct.pack(">IIBBBBB", width, height, 8, 2, 0, 0, 0)
    return b"\x89PNG\r\n\x1a\n" + chunk(b"IHDR", header) + chunk(b"IDAT", zlib.compress(raw)) + chunk(b"IEND", b"")


def png_data_url(width: int, height: int) -> str:
    return "data:image/png;base64," + base64.b64encode(make_png(width, height)).decode("ascii")


def product(pid: str):
    for products in BUILTIN_PRODUCTS.values():
        for p in products:
            if p.id == pid:
                return p
    raise KeyError(pid)


class FakeWriter:
    def __init__(self):
        self.calls = []

    def write(self, html: str, out_path: Path) -> None:
        self.calls.append((html, out_path))
        out_path.write_bytes(b"%PDF-1.4 fake")


class BrokenWriter:
    def write(self, html: str, out_path: Path) -> None:
        raise RuntimeError("wkhtmltopdf introuvable")


@pytest.fixture
def settings(tmp_path):
    return Settings(data_dir=tmp_path / "data", exports_dir=tmp_path / "exports", logo_timeout_s=2.0)


@pytest.fixture
def storage():
    return QuoteStorage(MemoryStore())


@pytest.fixture
def empty_quote(settings):
    return create_empty_quote("electrician", "DEV-202610-001", settings, today=TODAY)


@pytest.fixture
def sample_quote(empty_quote):
    """Tableau électrique (245) + différentiel (89), 4 h x 45 €, TVA 20 %."""
    sid = empty_quote.sections[0].id
    q = add_product(empty_quote, product("e1"), 1, sid)
    q = add_product(q, product("e3"), 1, sid)
    return update_quote(q, {
        "labor_hours": 4, "labor_rate": 45,
        "margin_percent": 0, "discount_percent": 0, "tva_rate": 20,
    })
