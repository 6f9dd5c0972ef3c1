"""
Tests for the AI recommendation client and its cache.
"""
from datetime import datetime, timedelta

import httpx
import pytest

from dogcatify.services import recommendations
from dogcatify.services.recommendations import RecommendationError, cache_key, get_recommendations

from conftest import FakeResponse

VACCINES = [{"name": "DHPP", "priority": "high"}, {"name": "Rabia", "priority": "high"}]


@pytest.fixture
def function_calls(monkeypatch):
    calls = []

    def fake_post(url, json=None, headers=None, **kwargs):
        calls.append({"url": url, "json": json})
        return FakeResponse(200, {"recommendations": VACCINES})

    monkeypatch.setattr(recommendations.httpx, "post", fake_post)
    return calls


def test_cache_key():
    assert cache_key("dog", "Mestizo", 24) == "dog_Mestizo_24_any"
    assert cache_key("cat", "Siamés", 6, 3.5) == "cat_Siamés_6_3.5"


def test_miss_then_hit(function_calls):
    first = get_recommendations("vaccines", "dog", "Mestizo", 24)
    assert first["cached"] is False
    assert first["items"] == VACCINES
    assert function_calls[0]["url"].endswith("/generate-vaccine-recommendations")
    assert function_calls[0]["json"]["ageInMonths"] == 24

    second = get_recommendations("vaccines", "dog", "Mestizo", 24)
    assert second["cached"] is True
    assert second["items"] == VACCINES
    assert len(function_calls) == 1


def test_cache_is_per_kind_and_key(function_calls):
    get_recommendations("vaccines", "dog", "Mestizo", 24)
    get_recommendations("allergies", "dog", "Mestizo", 24)
    get_recommendations("vaccines", "dog", "Mestizo", 36)
    assert len(function_calls) == 3


def test_expired_cache_refetches(function_calls):
    now = datetime.utcnow()
    get_recommendations("dewormers", "cat", "Común", 12, now=now - timedelta(days=31))
    out = get_recommendations("dewormers", "cat", "Común", 12, now=now)
    assert out["cached"] is False
    assert len(function_calls) == 2


def test_unexpected_shape(monkeypatch):
    monkeypatch.setattr(recommendations.httpx, "post", lambda *a, **k: FakeResponse(200, {"foo": "bar"}))
    with pytest.raises(RecommendationError):
        get_recommendations("treatments", "dog", "Mestizo", 24)


def test_http_failure(monkeypatch):
    def boom(*args, **kwargs):
        raise httpx.ConnectError("down")

    monkeypatch.setattr(recommendations.httpx, "post", boom)
    with pytest.raises(RecommendationError):
        get_recommendations("illnesses", "dog", "Mestizo", 24)


def test_unknown_kind():
    with pytest.raises(ValueError):
        get_recommendations("toys", "dog", "Mestizo", 24)
