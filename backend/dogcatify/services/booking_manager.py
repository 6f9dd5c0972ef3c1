"""
Booking Manager: create bookings and move them through the booking status machine.
A status write, its audit event and its customer notification commit together.
"""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import func

from dogcatify.db import SessionLocal
from dogcatify.models import Booking, Partner
from dogcatify.utils import generate_booking_id
from dogcatify.services.notifications import enqueue_booking_notification
from dogcatify.services.observability import record_status_event, publish_status_event
from dogcatify.services.realtime import ChangeEvent, feed
from dogcatify.services.transitions import BOOKING_MACHINE, RecordNotFound, apply_transition

logger = logging.getLogger(__name__)


def _booking_dict(b: Booking) -> dict:
    return {
        "booking_id": b.booking_id,
        "partner_id": b.partner_id,
        "customer_id": b.customer_id,
        "service_name": b.service_name,
        "scheduled_at": b.scheduled_at,
        "total_amount": b.total_amount,
        "status": b.status,
        "notes": b.notes,
        "customer_name": b.customer_name,
        "customer_email": b.customer_email,
        "pet_name": b.pet_name,
        "version": b.version,
        "created_at": b.created_at,
        "updated_at": b.updated_at,
    }


def create_booking(
    partner_id: str,
    customer_id: str,
    service_name: str,
    scheduled_at: datetime,
    total_amount: float,
    notes: Optional[str] = None,
    customer_name: Optional[str] = None,
    customer_email: Optional[str] = None,
    pet_name: Optional[str] = None,
) -> dict:
    """Create a pending booking for an existing partner."""
    db = SessionLocal()
    try:
        if not db.query(Partner.id).filter(Partner.partner_id == partner_id).first():
            raise RecordNotFound("partner", partner_id)
        booking = Booking(
            booking_id=generate_booking_id(),
            partner_id=partner_id,
            customer_id=customer_id,
            service_name=service_name,
            scheduled_at=scheduled_at,
            total_amount=total_amount,
            notes=notes,
            customer_name=customer_name,
            customer_email=customer_email,
            pet_name=pet_name,
            status="pending",
        )
        db.add(booking)
        db.commit()
        db.refresh(booking)
        feed.publish(ChangeEvent("bookings", booking.booking_id, partner_id, booking.version))
        return _booking_dict(booking)
    finally:
        db.close()


def get_booking(booking_id: str) -> dict:
    db = SessionLocal()
    try:
        booking = db.query(Booking).filter(Booking.booking_id == booking_id).first()
        if not booking:
            raise RecordNotFound("booking", booking_id)
        return _booking_dict(booking)
    finally:
        db.close()


def list_bookings(partner_id: str, status: Optional[str] = None) -> list[dict]:
    """Partner's bookings, newest appointment first, optionally for one status tab."""
    db = SessionLocal()
    try:
        q = db.query(Booking).filter(Booking.partner_id == partner_id)
        if status:
            q = q.filter(Booking.status == status)
        return [_booking_dict(b) for b in q.order_by(Booking.scheduled_at.desc()).all()]
    finally:
        db.close()


def booking_tab_counts(partner_id: str) -> dict[str, int]:
    db = SessionLocal()
    try:
        rows = (
            db.query(Booking.status, func.count(Booking.id))
            .filter(Booking.partner_id == partner_id)
            .group_by(Booking.status)
            .all()
        )
        counts = {state: 0 for state in BOOKING_MACHINE.states}
        for status, n in rows:
            counts[status] = n
        return counts
    finally:
        db.close()


def update_booking_status(booking_id: str, status: str, expected_version: Optional[int] = None) -> dict:
    """
    Move a booking to `status`.
    Raises RecordNotFound, InvalidTransition or StaleVersion and leaves the booking untouched.
    Returns {"booking": refreshed booking, "previous_status": str, "notice": str}.
    """
    db = SessionLocal()
    try:
        booking = db.query(Booking).filter(Booking.booking_id == booking_id).first()
        if not booking:
            raise RecordNotFound("booking", booking_id)
        previous = apply_transition(db, BOOKING_MACHINE, booking, booking_id, status, expected_version)
        event = record_status_event(db, "booking", booking_id, previous, status, booking.version)
        enqueue_booking_notification(db, booking)
        db.commit()
        db.refresh(booking)
        result = {
            "booking": _booking_dict(booking),
            "previous_status": previous,
            "notice": BOOKING_MACHINE.notice(status),
        }
    finally:
        db.close()
    publish_status_event(event)
    feed.publish(ChangeEvent("bookings", booking_id, result["booking"]["partner_id"], result["booking"]["version"]))
    return result
