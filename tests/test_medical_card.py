"""
Tests for medical card reading: date normalization, regex/fuzzy field extraction and the
vision function call.
"""
import pytest

from dogcatify.services import medical_card
from dogcatify.services.medical_card import MedicalCardError, extract_from_image, parse_card_text
from dogcatify.utils import load_product_catalog, normalize_date, parse_date

from conftest import FakeResponse

VACCINE_CARD = """
CLINICA VETERINARIA SAN MARTIN
Vacuna: DHPP Quintuple
Lote: VAC2024-001
Fecha de aplicación 15/03/2024
Próxima dosis 15/03/2025
Dr. García
"""


@pytest.mark.parametrize("raw,expected", [
    ("15/03/2024", "15/03/2024"),
    ("15/03/24", "15/03/2024"),
    ("15/03/99", "15/03/1999"),
    ("15-03-2024", "15/03/2024"),
    ("15.03.2024", "15/03/2024"),
    ("15.03.24", "15/03/2024"),
    ("2024-03-15", "15/03/2024"),
    ("marzo 2024", "marzo 2024"),
    ("", ""),
])
def test_normalize_date(raw, expected):
    assert normalize_date(raw) == expected


def test_parse_date_formats():
    assert parse_date("2024-03-15").isoformat() == "2024-03-15"
    assert parse_date("15/03/2024").isoformat() == "2024-03-15"
    assert parse_date(None) is None
    with pytest.raises(ValueError):
        parse_date("31/02/2024")


def test_catalog_loaded():
    catalog = load_product_catalog()
    ids = [p["id"] for p in catalog]
    assert "vac_dhpp" in ids
    assert "dew_drontal_plus" in ids
    dhpp = next(p for p in catalog if p["id"] == "vac_dhpp")
    assert "DHPP" in dhpp["aliases"]


def test_parse_vaccine_card():
    fields = parse_card_text(VACCINE_CARD, "vaccine")
    assert fields["product_id"] == "vac_dhpp"
    assert fields["name"] == "DHPP (Quíntuple)"
    assert fields["application_date"] == "15/03/2024"
    assert fields["next_due_date"] == "15/03/2025"
    assert fields["batch_number"] == "VAC2024-001"
    assert fields["veterinarian"] == "Dr. García"
    assert fields["confidence"] == "high"


def test_parse_deworming_card_without_keywords():
    text = "Drontal Plus\n02-01-2025\n02-04-2025"
    fields = parse_card_text(text, "deworming")
    assert fields["product_id"] == "dew_drontal_plus"
    assert fields["application_date"] == "02/01/2025"
    assert fields["next_due_date"] == "02/04/2025"


def test_parse_unreadable_card():
    fields = parse_card_text("texto ilegible", "vaccine")
    assert fields["name"] is None
    assert fields["application_date"] is None
    assert fields["confidence"] == "low"


def test_parse_rejects_unknown_type():
    with pytest.raises(ValueError):
        parse_card_text(VACCINE_CARD, "weight")


def test_extract_from_image(monkeypatch):
    calls = []

    def fake_post(url, json=None, headers=None, **kwargs):
        calls.append((url, json))
        return FakeResponse(200, {"success": True, "text": VACCINE_CARD})

    monkeypatch.setattr(medical_card.httpx, "post", fake_post)
    fields = extract_from_image("aGVsbG8=", "vaccine", "dog", "Firulais")
    assert fields["product_id"] == "vac_dhpp"
    assert calls[0][0].endswith("/extract-medical-card-info")
    assert calls[0][1]["recordType"] == "vaccine"


def test_extract_from_image_without_text(monkeypatch):
    monkeypatch.setattr(medical_card.httpx, "post", lambda *a, **k: FakeResponse(200, {"success": False, "error": "blurry"}))
    with pytest.raises(MedicalCardError):
        extract_from_image("aGVsbG8=", "vaccine")
