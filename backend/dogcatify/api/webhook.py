"""
Webhook endpoints: mock notification receiver used as the default NOTIFICATION_WEBHOOK_URL.
"""
from typing import Any

from fastapi import APIRouter
from pydantic import BaseModel
import logging

logger = logging.getLogger(__name__)
router = APIRouter()


class NotificationPayload(BaseModel):
    kind: str
    record_id: str
    payload: dict[str, Any] = {}


@router.post("/webhook/notifications")
def notification_webhook(body: NotificationPayload):
    """
    Simulate the email/push provider: accept the notification and acknowledge it.
    """
    logger.info("notification_received", extra={"kind": body.kind, "record_id": body.record_id})
    return {"status": "ok", "kind": body.kind, "record_id": body.record_id}
