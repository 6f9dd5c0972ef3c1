"""
Order Manager: create orders with computed totals/commission, move them through the
order status machine, count partner tabs, aggregate analytics and cancel unpaid orders
that expired.
"""
import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from dogcatify import config
from dogcatify.db import SessionLocal
from dogcatify.models import Order, OrderItem, Partner
from dogcatify.utils import generate_order_id
from dogcatify.services.notifications import enqueue_order_notification
from dogcatify.services.observability import record_status_event, publish_status_event
from dogcatify.services.realtime import ChangeEvent, feed
from dogcatify.services.transitions import (
    ORDER_MACHINE,
    InvalidTransition,
    RecordNotFound,
    StaleVersion,
    apply_transition,
)

logger = logging.getLogger(__name__)

# Partner-facing tabs; each status belongs to exactly one tab
ORDER_TABS = {
    "pending": ("pending",),
    "processing": ("processing", "shipped"),
    "completed": ("delivered", "cancelled"),
}


def _order_dict(o: Order) -> dict:
    return {
        "order_id": o.order_id,
        "partner_id": o.partner_id,
        "customer_id": o.customer_id,
        "items": [{"name": i.name, "quantity": i.quantity, "price": i.price} for i in o.items],
        "total_amount": o.total_amount,
        "commission_amount": o.commission_amount,
        "partner_amount": o.partner_amount,
        "status": o.status,
        "payment_status": o.payment_status,
        "version": o.version,
        "created_at": o.created_at,
        "updated_at": o.updated_at,
    }


def compute_totals(items: list[dict], commission_percentage: float) -> dict:
    """Total = sum(quantity * price); commission rounded to cents; payout is the rest."""
    total = round(sum(int(i["quantity"]) * float(i["price"]) for i in items), 2)
    commission = round(total * commission_percentage / 100, 2)
    return {
        "total_amount": total,
        "commission_amount": commission,
        "partner_amount": round(total - commission, 2),
    }


def create_order(partner_id: str, customer_id: str, items: list[dict], payment_status: str = "pending") -> dict:
    """Create a pending order; monetary fields are derived from the line items."""
    db = SessionLocal()
    try:
        partner = db.query(Partner).filter(Partner.partner_id == partner_id).first()
        if not partner:
            raise RecordNotFound("partner", partner_id)
        totals = compute_totals(items, partner.commission_percentage)
        order = Order(
            order_id=generate_order_id(),
            partner_id=partner_id,
            customer_id=customer_id,
            status="pending",
            payment_status=payment_status,
            **totals,
        )
        order.items = [OrderItem(name=i["name"], quantity=int(i["quantity"]), price=float(i["price"])) for i in items]
        db.add(order)
        db.commit()
        db.refresh(order)
        logger.info("order_created", extra={"order_id": order.order_id, "total_amount": order.total_amount})
        feed.publish(ChangeEvent("orders", order.order_id, partner_id, order.version))
        return _order_dict(order)
    finally:
        db.close()


def get_order(order_id: str) -> dict:
    db = SessionLocal()
    try:
        order = db.query(Order).filter(Order.order_id == order_id).first()
        if not order:
            raise RecordNotFound("order", order_id)
        return _order_dict(order)
    finally:
        db.close()


def list_orders(partner_id: str, tab: Optional[str] = None) -> list[dict]:
    db = SessionLocal()
    try:
        q = db.query(Order).filter(Order.partner_id == partner_id)
        if tab:
            q = q.filter(Order.status.in_(ORDER_TABS[tab]))
        return [_order_dict(o) for o in q.order_by(Order.created_at.desc()).all()]
    finally:
        db.close()


def _status_counts(db: Session, partner_id: Optional[str]) -> dict[str, int]:
    q = db.query(Order.status, func.count(Order.id))
    if partner_id:
        q = q.filter(Order.partner_id == partner_id)
    counts = {state: 0 for state in ORDER_MACHINE.states}
    for status, n in q.group_by(Order.status).all():
        counts[status] = n
    return counts


def order_tab_counts(partner_id: str) -> dict[str, int]:
    db = SessionLocal()
    try:
        counts = _status_counts(db, partner_id)
        return {tab: sum(counts[s] for s in statuses) for tab, statuses in ORDER_TABS.items()}
    finally:
        db.close()


def order_analytics(partner_id: Optional[str] = None) -> dict:
    """Revenue, commission and payout totals across all orders (or one partner's)."""
    db = SessionLocal()
    try:
        q = db.query(
            func.count(Order.id),
            func.coalesce(func.sum(Order.total_amount), 0.0),
            func.coalesce(func.sum(Order.commission_amount), 0.0),
            func.coalesce(func.sum(Order.partner_amount), 0.0),
        )
        if partner_id:
            q = q.filter(Order.partner_id == partner_id)
        total_orders, revenue, commissions, payouts = q.one()
        return {
            "total_orders": total_orders,
            "total_revenue": round(float(revenue), 2),
            "total_commissions": round(float(commissions), 2),
            "total_partner_payments": round(float(payouts), 2),
            "by_status": _status_counts(db, partner_id),
        }
    finally:
        db.close()


def _transition(db: Session, order: Order, status: str, expected_version: Optional[int] = None) -> dict:
    previous = apply_transition(db, ORDER_MACHINE, order, order.order_id, status, expected_version)
    enqueue_order_notification(db, order)
    return record_status_event(db, "order", order.order_id, previous, status, order.version)


def update_order_status(order_id: str, status: str, expected_version: Optional[int] = None) -> dict:
    """
    Move an order to `status`.
    Raises RecordNotFound, InvalidTransition or StaleVersion and leaves the order untouched.
    Returns {"order": refreshed order, "previous_status": str, "notice": str}.
    """
    db = SessionLocal()
    try:
        order = db.query(Order).filter(Order.order_id == order_id).first()
        if not order:
            raise RecordNotFound("order", order_id)
        event = _transition(db, order, status, expected_version)
        db.commit()
        db.refresh(order)
        result = {
            "order": _order_dict(order),
            "previous_status": event["from_status"],
            "notice": ORDER_MACHINE.notice(status),
        }
    finally:
        db.close()
    publish_status_event(event)
    feed.publish(ChangeEvent("orders", order_id, result["order"]["partner_id"], result["order"]["version"]))
    return result


def cancel_expired_orders(now: Optional[datetime] = None, max_age_minutes: Optional[int] = None) -> list[str]:
    """
    Cancel orders still pending and unpaid after max_age_minutes (ORDER_EXPIRY_MINUTES by default).
    Each order is cancelled through the order machine in its own transaction.
    Returns the cancelled order ids.
    """
    now = now or datetime.utcnow()
    minutes = config.ORDER_EXPIRY_MINUTES if max_age_minutes is None else max_age_minutes
    cutoff = now - timedelta(minutes=minutes)
    cancelled = []
    db = SessionLocal()
    try:
        expired_ids = [
            order_id
            for (order_id,) in db.query(Order.order_id)
            .filter(Order.status == "pending", Order.payment_status == "pending", Order.created_at < cutoff)
            .all()
        ]
        for order_id in expired_ids:
            order = db.query(Order).filter(Order.order_id == order_id).first()
            if order is None or order.status != "pending" or order.payment_status != "pending":
                continue
            try:
                event = _transition(db, order, ORDER_MACHINE.fire(order.status, "cancel"))
                db.commit()
            except (InvalidTransition, StaleVersion) as e:
                # moved on (paid or processed) after it was selected
                db.rollback()
                logger.info("expired_order_skipped", extra={"order_id": order_id, "error": str(e)})
                continue
            publish_status_event(event)
            feed.publish(ChangeEvent("orders", order_id, order.partner_id, order.version))
            cancelled.append(order_id)
        if cancelled:
            logger.info("expired_orders_cancelled", extra={"count": len(cancelled)})
        return cancelled
    finally:
        db.close()
