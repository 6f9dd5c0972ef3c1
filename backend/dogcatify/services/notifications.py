"""
Notification outbox: status changes enqueue deliveries inside their own transaction;
dispatch_pending() POSTs them to the notification webhook and retries failed ones
until NOTIFICATION_MAX_ATTEMPTS, after which they are abandoned.
"""
import json
import logging
from datetime import datetime

import httpx
from sqlalchemy.orm import Session

from dogcatify import config
from dogcatify.db import SessionLocal
from dogcatify.models import Booking, Order, NotificationOutbox

logger = logging.getLogger(__name__)

BOOKING_NOTIFICATION_KINDS = {
    "confirmed": "booking_confirmation",
    "cancelled": "booking_cancellation",
}


def enqueue(db: Session, kind: str, record_id: str, payload: dict) -> NotificationOutbox:
    """Add an outbox row to the caller's session; it commits with the caller's write."""
    row = NotificationOutbox(kind=kind, record_id=record_id, payload=json.dumps(payload, default=str), status="pending")
    db.add(row)
    return row


def enqueue_booking_notification(db: Session, booking: Booking) -> NotificationOutbox | None:
    """Confirmation/cancellation email for the customer; other statuses send nothing."""
    kind = BOOKING_NOTIFICATION_KINDS.get(booking.status)
    if not kind:
        return None
    payload = {
        "to": booking.customer_email or "",
        "customer_name": booking.customer_name or "Usuario",
        "service_name": booking.service_name or "Servicio",
        "partner_id": booking.partner_id,
        "date": booking.scheduled_at.strftime("%d/%m/%Y") if booking.scheduled_at else "",
        "time": booking.scheduled_at.strftime("%H:%M") if booking.scheduled_at else "",
        "pet_name": booking.pet_name or "Mascota",
    }
    return enqueue(db, kind, booking.booking_id, payload)


def enqueue_order_notification(db: Session, order: Order) -> NotificationOutbox:
    payload = {
        "customer_id": order.customer_id,
        "partner_id": order.partner_id,
        "status": order.status,
        "total_amount": order.total_amount,
    }
    return enqueue(db, "order_status", order.order_id, payload)


def _deliver(row: NotificationOutbox) -> None:
    """POST one outbox row; raises on transport errors or non-2xx responses."""
    body = {
        "kind": row.kind,
        "record_id": row.record_id,
        "payload": json.loads(row.payload) if row.payload else {},
    }
    resp = httpx.post(config.NOTIFICATION_WEBHOOK_URL, json=body, timeout=10.0)
    resp.raise_for_status()


def _claim(db: Session, outbox_id: int) -> NotificationOutbox | None:
    """
    Move one row from pending to sending. Only one dispatcher wins the conditional UPDATE;
    the others get None and skip the row.
    """
    claimed = (
        db.query(NotificationOutbox)
        .filter(NotificationOutbox.id == outbox_id, NotificationOutbox.status == "pending")
        .update({"status": "sending"}, synchronize_session=False)
    )
    db.commit()
    if not claimed:
        return None
    return db.query(NotificationOutbox).filter(NotificationOutbox.id == outbox_id).first()


def dispatch_pending(limit: int = 50) -> dict:
    """
    Deliver pending outbox rows, oldest first. Each row is claimed before it is sent, so
    overlapping dispatch runs never deliver the same row twice.
    Returns {"sent": n, "failed": n, "abandoned": n}.
    """
    summary = {"sent": 0, "failed": 0, "abandoned": 0}
    db = SessionLocal()
    try:
        outbox_ids = [
            outbox_id
            for (outbox_id,) in db.query(NotificationOutbox.id)
            .filter(NotificationOutbox.status == "pending")
            .order_by(NotificationOutbox.id.asc())
            .limit(limit)
            .all()
        ]
        for outbox_id in outbox_ids:
            row = _claim(db, outbox_id)
            if row is None:
                continue
            try:
                _deliver(row)
            except httpx.HTTPError as e:
                row.attempts += 1
                row.last_error = str(e)[:500]
                if row.attempts >= config.NOTIFICATION_MAX_ATTEMPTS:
                    row.status = "abandoned"
                    summary["abandoned"] += 1
                    logger.error("notification_abandoned", extra={"outbox_id": row.id, "kind": row.kind, "error": str(e)})
                else:
                    row.status = "pending"
                    summary["failed"] += 1
                    logger.warning("notification_delivery_failed", extra={"outbox_id": row.id, "attempts": row.attempts, "error": str(e)})
            else:
                row.attempts += 1
                row.status = "sent"
                row.sent_at = datetime.utcnow()
                summary["sent"] += 1
            db.commit()
        return summary
    finally:
        db.close()


def list_outbox(record_id: str | None = None, status: str | None = None) -> list[dict]:
    db = SessionLocal()
    try:
        q = db.query(NotificationOutbox)
        if record_id:
            q = q.filter(NotificationOutbox.record_id == record_id)
        if status:
            q = q.filter(NotificationOutbox.status == status)
        return [
            {
                "id": r.id,
                "kind": r.kind,
                "record_id": r.record_id,
                "status": r.status,
                "attempts": r.attempts,
                "last_error": r.last_error,
                "payload": json.loads(r.payload) if r.payload else {},
            }
            for r in q.order_by(NotificationOutbox.id.asc()).all()
        ]
    finally:
        db.close()
