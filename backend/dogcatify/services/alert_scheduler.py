"""
Health records and the medical alerts derived from them.

Saving a vaccine or deworming record with a next due date schedules a pending alert
ALERT_LEAD_DAYS before that date, provided the alert date is still in the future.
Alert creation is best-effort: a failure is logged and the record save still succeeds.
Pending alerts get a push reminder queued in the notification outbox 72 and 24 hours
before their due date.
"""
import logging
from datetime import date, datetime, time, timedelta
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError

from dogcatify import config
from dogcatify.db import SessionLocal
from dogcatify.models import HealthRecord, MedicalAlert, Pet
from dogcatify.utils import generate_alert_id, generate_record_id, parse_date
from dogcatify.services.notifications import enqueue
from dogcatify.services.transitions import RecordNotFound

logger = logging.getLogger(__name__)

RECORD_TYPES = ("vaccine", "illness", "allergy", "deworming", "weight")
ALERTING_TYPES = ("vaccine", "deworming")
HIGH_PRIORITY_KEYWORDS = ("dhpp", "rabia")
ALERT_LIST_LIMIT = 5
# (window, hours before the due date, wording in the push body); checked in this order
REMINDER_WINDOWS = (("24h", 24, "24 horas"), ("72h", 72, "3 días"))


def alert_priority(name: Optional[str]) -> str:
    lowered = (name or "").lower()
    return "high" if any(k in lowered for k in HIGH_PRIORITY_KEYWORDS) else "medium"


def alert_due_date(next_due_date: date) -> date:
    return next_due_date - timedelta(days=config.ALERT_LEAD_DAYS)


def _alert_text(record_type: str, name: str, pet_name: str) -> tuple[str, str]:
    if record_type == "vaccine":
        return f"Refuerzo de vacuna: {name}", f"Es hora del refuerzo de {name} para {pet_name}"
    return f"Desparasitación: {name}", f"Es hora de la próxima desparasitación con {name} para {pet_name}"


def _alert_dict(a: MedicalAlert, pet_name: Optional[str] = None) -> dict:
    return {
        "alert_id": a.alert_id,
        "pet_id": a.pet_id,
        "user_id": a.user_id,
        "record_id": a.record_id,
        "alert_type": a.alert_type,
        "title": a.title,
        "description": a.description,
        "due_date": a.due_date,
        "priority": a.priority,
        "status": a.status,
        "completed_at": a.completed_at,
        "pet_name": pet_name,
    }


def schedule_alert(record: dict, pet: dict, today: Optional[date] = None) -> Optional[dict]:
    """
    Insert a pending alert for a saved record if it qualifies. Returns the alert or None.
    No check is made for an existing pending alert for the same pet and dose.
    """
    if record["type"] not in ALERTING_TYPES or not record.get("next_due_date"):
        return None
    today = today or date.today()
    due = alert_due_date(record["next_due_date"])
    if due <= today:
        return None
    title, description = _alert_text(record["type"], record["name"], pet["name"])
    db = SessionLocal()
    try:
        alert = MedicalAlert(
            alert_id=generate_alert_id(),
            pet_id=pet["pet_id"],
            user_id=pet["owner_id"],
            record_id=record["record_id"],
            alert_type=record["type"],
            title=title,
            description=description,
            due_date=due,
            priority=alert_priority(record["name"]),
            status="pending",
        )
        db.add(alert)
        db.commit()
        db.refresh(alert)
        logger.info("medical_alert_created", extra={"alert_id": alert.alert_id, "pet_id": alert.pet_id, "due_date": str(due)})
        return _alert_dict(alert, pet["name"])
    finally:
        db.close()


def save_health_record(
    pet_id: str,
    record_type: str,
    name: str,
    application_date: Any = None,
    next_due_date: Any = None,
    veterinarian: Optional[str] = None,
    notes: Optional[str] = None,
    weight: Optional[float] = None,
    today: Optional[date] = None,
) -> dict:
    """
    Persist a health record owned by the pet's owner, then try to schedule its alert.
    Dates may be date objects, ISO strings or DD/MM/YYYY; malformed dates raise ValueError.
    Returns {"record": ..., "alert": alert dict or None}.
    """
    if record_type not in RECORD_TYPES:
        raise ValueError(f"Tipo de registro inválido: {record_type}")
    applied = parse_date(application_date)
    due = parse_date(next_due_date)
    db = SessionLocal()
    try:
        pet_row = db.query(Pet).filter(Pet.pet_id == pet_id).first()
        if not pet_row:
            raise RecordNotFound("pet", pet_id)
        pet = {"pet_id": pet_row.pet_id, "owner_id": pet_row.owner_id, "name": pet_row.name}
        row = HealthRecord(
            record_id=generate_record_id(),
            pet_id=pet_id,
            user_id=pet_row.owner_id,
            type=record_type,
            name=name,
            application_date=applied,
            next_due_date=due,
            veterinarian=veterinarian,
            notes=notes,
            weight=weight,
        )
        db.add(row)
        db.commit()
        db.refresh(row)
        record = {
            "record_id": row.record_id,
            "pet_id": row.pet_id,
            "user_id": row.user_id,
            "type": row.type,
            "name": row.name,
            "application_date": row.application_date,
            "next_due_date": row.next_due_date,
            "veterinarian": row.veterinarian,
            "notes": row.notes,
            "weight": row.weight,
        }
    finally:
        db.close()
    logger.info("health_record_saved", extra={"record_id": record["record_id"], "record_type": record_type})

    alert = None
    try:
        alert = schedule_alert(record, pet, today=today)
    except SQLAlchemyError as e:
        logger.warning("medical_alert_create_failed", extra={"record_id": record["record_id"], "error": str(e)})
    return {"record": record, "alert": alert}


def list_health_records(pet_id: str, record_type: Optional[str] = None) -> list[dict]:
    db = SessionLocal()
    try:
        q = db.query(HealthRecord).filter(HealthRecord.pet_id == pet_id)
        if record_type:
            q = q.filter(HealthRecord.type == record_type)
        return [
            {
                "record_id": r.record_id,
                "type": r.type,
                "name": r.name,
                "application_date": r.application_date,
                "next_due_date": r.next_due_date,
                "veterinarian": r.veterinarian,
                "notes": r.notes,
                "weight": r.weight,
            }
            for r in q.order_by(HealthRecord.created_at.desc()).all()
        ]
    finally:
        db.close()


def list_upcoming_alerts(user_id: str, today: Optional[date] = None) -> list[dict]:
    """Pending alerts due within the next ALERT_LEAD_DAYS (overdue included), soonest first."""
    today = today or date.today()
    horizon = today + timedelta(days=config.ALERT_LEAD_DAYS)
    db = SessionLocal()
    try:
        rows = (
            db.query(MedicalAlert, Pet.name)
            .join(Pet, Pet.pet_id == MedicalAlert.pet_id)
            .filter(
                MedicalAlert.user_id == user_id,
                MedicalAlert.status == "pending",
                MedicalAlert.due_date <= horizon,
            )
            .order_by(MedicalAlert.due_date.asc())
            .limit(ALERT_LIST_LIMIT)
            .all()
        )
        return [_alert_dict(a, pet_name or "Mascota") for a, pet_name in rows]
    finally:
        db.close()


def list_pet_alerts(pet_id: str, status: Optional[str] = "pending") -> list[dict]:
    db = SessionLocal()
    try:
        q = db.query(MedicalAlert).filter(MedicalAlert.pet_id == pet_id)
        if status:
            q = q.filter(MedicalAlert.status == status)
        return [_alert_dict(a) for a in q.order_by(MedicalAlert.due_date.asc()).all()]
    finally:
        db.close()


def _resolve_alert(alert_id: str, status: str) -> dict:
    db = SessionLocal()
    try:
        alert = db.query(MedicalAlert).filter(MedicalAlert.alert_id == alert_id).first()
        if not alert:
            raise RecordNotFound("medical_alert", alert_id)
        alert.status = status
        alert.completed_at = datetime.utcnow()
        db.commit()
        db.refresh(alert)
        logger.info("medical_alert_resolved", extra={"alert_id": alert_id, "status": status})
        return _alert_dict(alert)
    finally:
        db.close()


def complete_alert(alert_id: str) -> dict:
    return _resolve_alert(alert_id, "completed")


def dismiss_alert(alert_id: str) -> dict:
    return _resolve_alert(alert_id, "dismissed")


def _reminder_window(alert: MedicalAlert, hours_left: float) -> Optional[tuple[str, str]]:
    sent = {"24h": alert.reminded_24h_at, "72h": alert.reminded_72h_at}
    for window, hours, wording in REMINDER_WINDOWS:
        if hours_left <= hours and sent[window] is None:
            return window, wording
    return None


def queue_medical_reminders(now: Optional[datetime] = None) -> dict[str, int]:
    """
    Outbox a push reminder for each pending alert due within 72 hours, once per window
    (72h, then 24h). A 24h reminder also closes the 72h window so the alert is not
    reminded twice for the same day. Returns counts per window.
    """
    now = now or datetime.utcnow()
    queued = {window: 0 for window, _, _ in REMINDER_WINDOWS}
    db = SessionLocal()
    try:
        rows = (
            db.query(MedicalAlert, Pet.name)
            .join(Pet, Pet.pet_id == MedicalAlert.pet_id)
            .filter(
                MedicalAlert.status == "pending",
                MedicalAlert.due_date > now.date(),
                MedicalAlert.due_date <= (now + timedelta(hours=72)).date(),
            )
            .order_by(MedicalAlert.due_date.asc())
            .all()
        )
        for alert, pet_name in rows:
            hours_left = (datetime.combine(alert.due_date, time.min) - now).total_seconds() / 3600
            picked = _reminder_window(alert, hours_left)
            if picked is None:
                continue
            window, wording = picked
            enqueue(db, "medical_reminder", alert.alert_id, {
                "user_id": alert.user_id,
                "pet_id": alert.pet_id,
                "pet_name": pet_name or "Mascota",
                "alert_type": alert.alert_type,
                "title": alert.title,
                "body": f"{pet_name or 'Mascota'}: {alert.description or alert.title} en {wording}",
                "scheduled_date": alert.due_date.isoformat(),
                "notification_type": window,
            })
            if window == "24h":
                alert.reminded_24h_at = now
                alert.reminded_72h_at = alert.reminded_72h_at or now
            else:
                alert.reminded_72h_at = now
            queued[window] += 1
        db.commit()
        if any(queued.values()):
            logger.info("medical_reminders_queued", extra=queued)
        return queued
    finally:
        db.close()
