"""
Tests for the dashboard alert queue and due-date labels.
"""
from datetime import date, timedelta

from dogcatify.alert_queue import AlertQueue, due_label


def _alerts(*ids):
    return [{"alert_id": i} for i in ids]


def test_queue_advances_after_resolution():
    q = AlertQueue(_alerts("a", "b", "c"))
    assert q.current()["alert_id"] == "a"
    assert q.resolve_current()["alert_id"] == "a"
    assert q.current()["alert_id"] == "b"


def test_dismissing_last_alert_resets_on_next_load():
    q = AlertQueue(_alerts("a", "b"))
    q.resolve_current()
    assert q.current()["alert_id"] == "b"
    q.resolve_current()
    assert q.current() is None
    # "b" is no longer pending on the next fetch
    q.load(_alerts("a"))
    assert q.index == 0
    assert q.current()["alert_id"] == "a"


def test_reload_without_resolved_alert_shows_next():
    q = AlertQueue(_alerts("a", "b", "c"))
    q.resolve_current()
    # the server no longer returns "a" once it is completed/dismissed
    q.load(_alerts("b", "c"))
    assert q.current()["alert_id"] == "b"
    q.resolve_current()
    q.load(_alerts("c"))
    assert q.current()["alert_id"] == "c"


def test_reload_with_same_alerts_keeps_current():
    q = AlertQueue(_alerts("a", "b", "c"))
    q.resolve_current()
    q.load(_alerts("a", "b", "c"))
    assert q.index == 1
    assert q.current()["alert_id"] == "b"


def test_empty_queue():
    q = AlertQueue()
    assert len(q) == 0
    assert q.current() is None
    assert q.resolve_current() is None
    assert q.index == 0


def test_due_labels():
    today = date(2026, 3, 10)
    assert due_label(today - timedelta(days=1), today) == "Vencida"
    assert due_label(today, today) == "Hoy"
    assert due_label(today + timedelta(days=1), today) == "Mañana"
    assert due_label(today + timedelta(days=5), today) == "En 5 días"
    assert due_label(date(2026, 4, 1), today) == "01/04/2026"
