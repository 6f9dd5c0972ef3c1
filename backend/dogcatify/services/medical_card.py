"""
Medical card reading: send a card photo to the vision function and turn the returned
free text into form fields. Dates come from regex matches (normalized to DD/MM/YYYY),
the product name from fuzzy matching against the product catalog.
"""
import logging
import re
from datetime import datetime
from typing import Any, Optional

import httpx
from rapidfuzz import fuzz, process as rf_process

from dogcatify import config
from dogcatify.utils import load_product_catalog, normalize_date

logger = logging.getLogger(__name__)

FUZZY_MATCH_THRESHOLD = 80
CARD_TYPES = ("vaccine", "deworming")

_DATE_RE = re.compile(r"\b(\d{2}[/\-.]\d{2}[/\-.](?:\d{4}|\d{2})|\d{4}[/\-.]\d{2}[/\-.]\d{2})\b")
_NEXT_DUE_RE = re.compile(r"pr[oó]xim[ao]|refuerzo|revacuna|vence|next", re.I)
_BATCH_RE = re.compile(r"\b(?:lote|lot|batch|serie)\s*(?:n[°º.o]*)?\s*[:#]?\s*([A-Z0-9][A-Z0-9\-]{2,})", re.I)
_VET_RE = re.compile(r"\b[Dd]ra?\.?\s+([A-ZÁÉÍÓÚÑ][\wáéíóúñ]+(?:\s+[A-ZÁÉÍÓÚÑ][\wáéíóúñ]+)?)")


class MedicalCardError(Exception):
    """The vision function failed or returned no text."""


def _to_date(text: str):
    try:
        return datetime.strptime(normalize_date(text), "%d/%m/%Y").date()
    except ValueError:
        return None


def _extract_dates(text: str) -> tuple[Optional[str], Optional[str]]:
    """
    (application_date, next_due_date) as DD/MM/YYYY.
    A date on a line mentioning the next dose wins for next_due_date; otherwise the
    earliest date is the application date and the latest the next due date.
    """
    found = []
    keyword_dates = []
    for line in text.splitlines():
        for raw in _DATE_RE.findall(line):
            d = _to_date(raw)
            if d is None:
                continue
            found.append(d)
            if _NEXT_DUE_RE.search(line):
                keyword_dates.append(d)
    if not found:
        return None, None
    found = sorted(set(found))
    application = found[0]
    next_due = max(keyword_dates) if keyword_dates else (found[-1] if len(found) > 1 else None)
    if next_due == application:
        next_due = None
    fmt = "%d/%m/%Y"
    return application.strftime(fmt), next_due.strftime(fmt) if next_due else None


def _build_choices(catalog: list[dict], record_type: str) -> list[tuple[str, dict]]:
    """(search string, product) pairs for the product's name and aliases."""
    choices = []
    for p in catalog:
        if p.get("type") != record_type:
            continue
        name = (p.get("name") or "").strip()
        if name:
            choices.append((name, p))
        for alias in p.get("aliases") or []:
            choices.append((alias, p))
    return choices


def _match_product(text: str, catalog: list[dict], record_type: str) -> Optional[dict]:
    choices = _build_choices(catalog, record_type)
    if not choices:
        return None
    strings_only = [c[0].lower() for c in choices]
    best = None
    for line in text.lower().splitlines():
        line = " ".join(line.split())
        if not line:
            continue
        result = rf_process.extractOne(line, strings_only, scorer=fuzz.partial_ratio, score_cutoff=FUZZY_MATCH_THRESHOLD)
        if result and (best is None or result[1] > best[1]):
            best = result
    if not best:
        return None
    _, score, idx = best
    product = choices[idx][1]
    return {"id": product.get("id"), "name": product.get("name"), "score": score}


def parse_card_text(text: str, record_type: str, catalog: Optional[list[dict]] = None) -> dict[str, Any]:
    """
    Parse OCR text from a vaccination/deworming card. Returns:
    {"type", "name", "product_id", "application_date", "next_due_date",
     "veterinarian", "batch_number", "confidence"}
    """
    if record_type not in CARD_TYPES:
        raise ValueError(f"Tipo de carnet inválido: {record_type}")
    if catalog is None:
        catalog = load_product_catalog()
    text = text or ""
    application, next_due = _extract_dates(text)
    product = _match_product(text, catalog, record_type)
    batch = _BATCH_RE.search(text)
    vet = _VET_RE.search(text)

    if product and application and next_due:
        confidence = "high"
    elif product or application:
        confidence = "medium"
    else:
        confidence = "low"
    return {
        "type": record_type,
        "name": product["name"] if product else None,
        "product_id": product["id"] if product else None,
        "application_date": application,
        "next_due_date": next_due,
        "veterinarian": f"Dr. {vet.group(1)}" if vet else None,
        "batch_number": batch.group(1).upper() if batch else None,
        "confidence": confidence,
    }


def extract_from_image(
    image_base64: str,
    record_type: str,
    pet_species: Optional[str] = None,
    pet_name: Optional[str] = None,
) -> dict[str, Any]:
    """Send a base64 card photo to the vision function and parse the text it returns."""
    url = f"{config.FUNCTIONS_URL.rstrip('/')}/extract-medical-card-info"
    headers = {}
    if config.FUNCTIONS_API_KEY:
        headers["Authorization"] = f"Bearer {config.FUNCTIONS_API_KEY}"
    body = {"imageBase64": image_base64, "recordType": record_type, "petSpecies": pet_species, "petName": pet_name}
    try:
        resp = httpx.post(url, json=body, headers=headers, timeout=60.0)
        resp.raise_for_status()
        data = resp.json()
    except httpx.HTTPError as e:
        raise MedicalCardError(f"Vision function failed: {e}") from e
    except ValueError as e:
        raise MedicalCardError("Vision function returned invalid JSON") from e
    text = data.get("text") if isinstance(data, dict) else None
    if not text:
        raise MedicalCardError(data.get("error", "No text extracted") if isinstance(data, dict) else "No text extracted")
    logger.info("medical_card_text_extracted", extra={"record_type": record_type, "chars": len(text)})
    return parse_card_text(text, record_type)
