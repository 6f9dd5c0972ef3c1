"""
Client for the external AI recommendation functions (vaccines, illnesses, allergies,
treatments, dewormers) with a database cache keyed by the request parameters.
"""
import json
import logging
from datetime import datetime, timedelta
from typing import Any, Optional

import httpx

from dogcatify import config
from dogcatify.db import SessionLocal
from dogcatify.models import RecommendationCache

logger = logging.getLogger(__name__)

FUNCTIONS = {
    "vaccines": "generate-vaccine-recommendations",
    "illnesses": "generate-illness-recommendations",
    "allergies": "generate-allergy-recommendations",
    "treatments": "generate-treatment-recommendations",
    "dewormers": "generate-dewormer-recommendations",
}


class RecommendationError(Exception):
    """The recommendation function failed or answered with an unexpected shape."""


def cache_key(species: str, breed: str, age_in_months: int, weight: Optional[float] = None) -> str:
    return f"{species}_{breed}_{age_in_months}_{weight if weight is not None else 'any'}"


def _extract_items(kind: str, data: Any) -> list:
    """Accept a bare list, {"recommendations": [...]} or {kind: [...]}."""
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        for key in ("recommendations", kind):
            if isinstance(data.get(key), list):
                return data[key]
    raise RecommendationError(f"Unexpected response shape from {FUNCTIONS[kind]}")


def _cached(kind: str, key: str, now: datetime) -> Optional[list]:
    db = SessionLocal()
    try:
        row = (
            db.query(RecommendationCache)
            .filter(
                RecommendationCache.kind == kind,
                RecommendationCache.cache_key == key,
                RecommendationCache.expires_at > now,
            )
            .order_by(RecommendationCache.id.desc())
            .first()
        )
        return json.loads(row.payload) if row else None
    finally:
        db.close()


def _store(kind: str, key: str, items: list, now: datetime) -> None:
    db = SessionLocal()
    try:
        db.add(RecommendationCache(
            kind=kind,
            cache_key=key,
            payload=json.dumps(items, default=str),
            created_at=now,
            expires_at=now + timedelta(days=config.RECOMMENDATION_CACHE_TTL_DAYS),
        ))
        db.commit()
    finally:
        db.close()


def _call_function(kind: str, body: dict) -> Any:
    url = f"{config.FUNCTIONS_URL.rstrip('/')}/{FUNCTIONS[kind]}"
    headers = {}
    if config.FUNCTIONS_API_KEY:
        headers["Authorization"] = f"Bearer {config.FUNCTIONS_API_KEY}"
    try:
        resp = httpx.post(url, json=body, headers=headers, timeout=30.0)
        resp.raise_for_status()
        return resp.json()
    except httpx.HTTPError as e:
        raise RecommendationError(f"{FUNCTIONS[kind]} failed: {e}") from e
    except ValueError as e:
        raise RecommendationError(f"{FUNCTIONS[kind]} returned invalid JSON") from e


def get_recommendations(
    kind: str,
    species: str,
    breed: str,
    age_in_months: int,
    weight: Optional[float] = None,
    now: Optional[datetime] = None,
) -> dict:
    """
    Return {"kind", "cache_key", "cached": bool, "items": [...]}.
    Unexpired cache rows are served without calling the function.
    """
    if kind not in FUNCTIONS:
        raise ValueError(f"Unknown recommendation kind: {kind}")
    now = now or datetime.utcnow()
    key = cache_key(species, breed, age_in_months, weight)
    items = _cached(kind, key, now)
    if items is not None:
        logger.info("recommendation_cache_hit", extra={"kind": kind, "cache_key": key})
        return {"kind": kind, "cache_key": key, "cached": True, "items": items}

    data = _call_function(kind, {
        "species": species,
        "breed": breed,
        "ageInMonths": age_in_months,
        "weight": weight,
    })
    items = _extract_items(kind, data)
    _store(kind, key, items, now)
    logger.info("recommendation_cache_stored", extra={"kind": kind, "cache_key": key, "count": len(items)})
    return {"kind": kind, "cache_key": key, "cached": False, "items": items}
