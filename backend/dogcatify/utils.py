"""
Utility functions: CSV loading, path resolution, ID generation, date parsing.
"""
import csv
import re
import uuid
from datetime import date, datetime
from pathlib import Path
from typing import Any

from dogcatify import config


def get_data_dir() -> Path:
    """Return data directory (DATA_DIR env override via config)."""
    return Path(config.DATA_DIR)


def load_csv(path: Path, required: bool = True) -> list[dict[str, Any]]:
    """
    Load a CSV file and return list of row dicts.
    Returns [] if file missing and not required.
    """
    if not path.exists():
        if required:
            raise FileNotFoundError(f"Required data file not found: {path}")
        return []
    with open(path, newline="", encoding="utf-8") as f:
        reader = csv.DictReader(f)
        return list(reader)


def load_product_catalog() -> list[dict[str, Any]]:
    """Load product_catalog.csv (vaccines and dewormers) from data dir."""
    rows = load_csv(get_data_dir() / "product_catalog.csv", required=False)
    for r in rows:
        r["aliases"] = [a.strip() for a in (r.get("aliases") or "").split("|") if a.strip()]
    return rows


def _new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


def generate_booking_id() -> str:
    return _new_id("bkg")


def generate_order_id() -> str:
    """Generate a unique order ID."""
    return _new_id("ord")


def generate_record_id() -> str:
    return _new_id("hr")


def generate_alert_id() -> str:
    return _new_id("alr")


_TWO_DIGIT_YEAR = re.compile(r"^(\d{2})[/\-.](\d{2})[/\-.](\d{2})$")
_DAY_FIRST = re.compile(r"^(\d{2})[/\-.](\d{2})[/\-.](\d{4})$")
_YEAR_FIRST = re.compile(r"^(\d{4})[/\-.](\d{2})[/\-.](\d{2})$")


def normalize_date(text: str) -> str:
    """
    Normalize card dates to DD/MM/YYYY.
    Accepts DD/MM/YYYY, DD-MM-YYYY, DD.MM.YYYY, the same with two-digit years
    (>50 -> 19xx, else 20xx) and YYYY-MM-DD. Unknown formats are returned unchanged.
    """
    if not text:
        return ""
    text = text.strip()
    m = _DAY_FIRST.match(text)
    if m:
        return f"{m.group(1)}/{m.group(2)}/{m.group(3)}"
    m = _TWO_DIGIT_YEAR.match(text)
    if m:
        year = int(m.group(3))
        century = "19" if year > 50 else "20"
        return f"{m.group(1)}/{m.group(2)}/{century}{m.group(3)}"
    m = _YEAR_FIRST.match(text)
    if m:
        return f"{m.group(3)}/{m.group(2)}/{m.group(1)}"
    return text


def parse_date(value: Any) -> date | None:
    """
    Parse a date from a date/datetime, ISO string or any format normalize_date accepts.
    Returns None for empty input; raises ValueError for malformed input.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    normalized = normalize_date(str(value))
    try:
        return datetime.strptime(normalized, "%d/%m/%Y").date()
    except ValueError:
        pass
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        raise ValueError(f"Fecha inválida: {value!r}") from None
