"""
Tests for the order lifecycle: totals, transitions, partner tabs, analytics, expiry.
"""
from datetime import datetime, timedelta

import pytest

from dogcatify.db import SessionLocal
from dogcatify.models import Order
from dogcatify.services import order_manager
from dogcatify.services.notifications import list_outbox
from dogcatify.services.transitions import InvalidTransition

ITEMS = [
    {"name": "Alimento 3kg", "quantity": 2, "price": 450.0},
    {"name": "Collar", "quantity": 1, "price": 100.0},
]


def test_totals_computed_from_items(partner):
    order = order_manager.create_order("p1", "u1", ITEMS)
    assert order["total_amount"] == 1000.0
    # partner fixture charges 10%
    assert order["commission_amount"] == 100.0
    assert order["partner_amount"] == 900.0
    assert order["status"] == "pending"
    assert len(order["items"]) == 2


def test_compute_totals_rounding():
    totals = order_manager.compute_totals([{"name": "x", "quantity": 3, "price": 19.99}], 10.0)
    assert totals == {"total_amount": 59.97, "commission_amount": 6.0, "partner_amount": 53.97}


def test_order_moves_through_tabs_exactly_once(partner):
    """O1: pending -> processing -> shipped -> delivered, tab counts follow the record."""
    o1 = order_manager.create_order("p1", "u1", ITEMS)
    assert order_manager.order_tab_counts("p1") == {"pending": 1, "processing": 0, "completed": 0}

    steps = [
        ("processing", {"pending": 0, "processing": 1, "completed": 0}, "Pedido en procesamiento"),
        ("shipped", {"pending": 0, "processing": 1, "completed": 0}, "Pedido enviado"),
        ("delivered", {"pending": 0, "processing": 0, "completed": 1}, "Pedido entregado"),
    ]
    for status, expected_counts, notice in steps:
        out = order_manager.update_order_status(o1["order_id"], status)
        assert out["notice"] == notice
        assert order_manager.get_order(o1["order_id"])["status"] == status
        assert order_manager.order_tab_counts("p1") == expected_counts
        assert sum(order_manager.order_tab_counts("p1").values()) == 1

    assert [n["kind"] for n in list_outbox(record_id=o1["order_id"])] == ["order_status"] * 3


def test_no_reverse_order_transition(partner):
    order = order_manager.create_order("p1", "u1", ITEMS)
    order_manager.update_order_status(order["order_id"], "cancelled")
    with pytest.raises(InvalidTransition):
        order_manager.update_order_status(order["order_id"], "pending")
    assert order_manager.get_order(order["order_id"])["status"] == "cancelled"


def test_list_orders_by_tab(partner):
    a = order_manager.create_order("p1", "u1", ITEMS)
    b = order_manager.create_order("p1", "u2", ITEMS)
    order_manager.update_order_status(a["order_id"], "processing")
    order_manager.update_order_status(a["order_id"], "shipped")
    assert [o["order_id"] for o in order_manager.list_orders("p1", "processing")] == [a["order_id"]]
    assert [o["order_id"] for o in order_manager.list_orders("p1", "pending")] == [b["order_id"]]
    assert len(order_manager.list_orders("p1")) == 2


def test_analytics(partner):
    from dogcatify.services.directory import create_partner
    create_partner("p2", "Tienda Mascotas", "shop")
    order_manager.create_order("p1", "u1", ITEMS)
    order_manager.create_order("p2", "u1", [{"name": "Juguete", "quantity": 1, "price": 200.0}])

    p1 = order_manager.order_analytics("p1")
    assert p1["total_orders"] == 1
    assert p1["total_revenue"] == 1000.0
    assert p1["total_commissions"] == 100.0
    assert p1["total_partner_payments"] == 900.0
    assert p1["by_status"]["pending"] == 1

    overall = order_manager.order_analytics()
    assert overall["total_orders"] == 2
    assert overall["total_revenue"] == 1200.0
    # default commission is 5%
    assert overall["total_commissions"] == 110.0


def test_cancel_expired_orders(partner):
    old = order_manager.create_order("p1", "u1", ITEMS)
    paid = order_manager.create_order("p1", "u1", ITEMS, payment_status="approved")
    fresh = order_manager.create_order("p1", "u1", ITEMS)
    db = SessionLocal()
    try:
        past = datetime.utcnow() - timedelta(minutes=30)
        for oid in (old["order_id"], paid["order_id"]):
            db.query(Order).filter(Order.order_id == oid).update({"created_at": past})
        db.commit()
    finally:
        db.close()

    cancelled = order_manager.cancel_expired_orders()
    assert cancelled == [old["order_id"]]
    assert order_manager.get_order(old["order_id"])["status"] == "cancelled"
    assert order_manager.get_order(paid["order_id"])["status"] == "pending"
    assert order_manager.get_order(fresh["order_id"])["status"] == "pending"
    assert order_manager.cancel_expired_orders() == []


def test_cancel_expired_skips_order_processed_meanwhile(partner, monkeypatch):
    """The partner processes the order between the cron's read and its write."""
    order = order_manager.create_order("p1", "u1", ITEMS)
    db = SessionLocal()
    try:
        past = datetime.utcnow() - timedelta(minutes=30)
        db.query(Order).filter(Order.order_id == order["order_id"]).update({"created_at": past})
        db.commit()
    finally:
        db.close()

    real_transition = order_manager._transition
    interfered = []

    def processed_first(db, o, status, expected_version=None):
        if not interfered:
            interfered.append(o.order_id)
            order_manager.update_order_status(o.order_id, "processing")
        return real_transition(db, o, status, expected_version)

    monkeypatch.setattr(order_manager, "_transition", processed_first)
    assert order_manager.cancel_expired_orders() == []
    assert interfered == [order["order_id"]]
    fetched = order_manager.get_order(order["order_id"])
    assert fetched["status"] == "processing"
    assert fetched["version"] == 2
    assert [n["payload"]["status"] for n in list_outbox(record_id=order["order_id"])] == ["processing"]
