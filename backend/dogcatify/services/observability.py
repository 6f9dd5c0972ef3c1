"""
Observability: status-change audit rows in SQLite and optional forwarding to Datadog logs.
"""
import logging
from datetime import datetime

from sqlalchemy.orm import Session

from dogcatify import config
from dogcatify.db import SessionLocal
from dogcatify.models import StatusEvent

logger = logging.getLogger(__name__)


def _send_to_datadog(event: dict) -> None:
    """If DD_API_KEY set, POST the event to the Datadog logs intake. Best-effort."""
    if not config.DD_API_KEY:
        return
    try:
        import httpx
        payload = [{
            "ddsource": "dogcatify",
            "service": "dogcatify-lifecycle",
            "message": f"{event['record_type']} {event['record_id']}: {event['from_status']} -> {event['to_status']}",
            **event,
        }]
        resp = httpx.post(config.DD_LOGS_URL, json=payload, headers={"DD-API-KEY": config.DD_API_KEY}, timeout=5.0)
        if resp.status_code >= 400:
            logger.warning("datadog_ingest_failed", extra={"status": resp.status_code, "body": resp.text[:200]})
    except Exception as e:
        logger.warning("datadog_ingest_error", extra={"error": str(e)})


def record_status_event(
    db: Session,
    record_type: str,
    record_id: str,
    from_status: str,
    to_status: str,
    version: int,
) -> dict:
    """
    Add an audit row to the caller's session (committed with the status write).
    Returns the event as a dict for forwarding once the transaction is committed.
    """
    db.add(StatusEvent(
        record_type=record_type,
        record_id=record_id,
        from_status=from_status,
        to_status=to_status,
        version=version,
    ))
    return {
        "record_type": record_type,
        "record_id": record_id,
        "from_status": from_status,
        "to_status": to_status,
        "version": version,
        "timestamp": datetime.utcnow().isoformat(),
    }


def publish_status_event(event: dict) -> None:
    """Log a committed status change and forward it to Datadog when configured."""
    logger.info(f"{event['record_type']}_status_updated", extra={
        "record_id": event["record_id"],
        "from_status": event["from_status"],
        "to_status": event["to_status"],
        "version": event["version"],
    })
    _send_to_datadog(event)


def get_status_history(record_type: str, record_id: str) -> list[dict]:
    """Status events for one booking/order, oldest first."""
    db = SessionLocal()
    try:
        rows = (
            db.query(StatusEvent)
            .filter(StatusEvent.record_type == record_type, StatusEvent.record_id == record_id)
            .order_by(StatusEvent.id.asc())
            .all()
        )
        return [
            {
                "from_status": r.from_status,
                "to_status": r.to_status,
                "version": r.version,
                "created_at": r.created_at.isoformat() if r.created_at else None,
            }
            for r in rows
        ]
    finally:
        db.close()
