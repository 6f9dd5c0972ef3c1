"""
API routes: partners, pets, bookings, orders, health records, medical alerts,
medical cards, recommendations and the notification outbox.
"""
import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, BackgroundTasks, Depends
from fastapi.security import APIKeyHeader
from sqlalchemy.exc import IntegrityError

from dogcatify import config
from dogcatify.schema import (
    PartnerCreate,
    PartnerResponse,
    PetCreate,
    PetResponse,
    BookingCreate,
    BookingResponse,
    BookingStatusUpdate,
    BookingTransitionResponse,
    OrderCreate,
    OrderResponse,
    OrderStatusUpdate,
    OrderTransitionResponse,
    OrderAnalytics,
    HealthRecordCreate,
    HealthRecordResponse,
    HealthRecordSaved,
    MedicalAlertResponse,
    AlertsResponse,
    CardTextRequest,
    CardImageRequest,
    CardFields,
    RecommendationsResponse,
)
from dogcatify.services import alert_scheduler, booking_manager, directory, order_manager
from dogcatify.services.medical_card import MedicalCardError, extract_from_image, parse_card_text
from dogcatify.services.notifications import dispatch_pending, list_outbox
from dogcatify.services.observability import get_status_history
from dogcatify.services.recommendations import FUNCTIONS, RecommendationError, get_recommendations
from dogcatify.services.transitions import (
    BOOKING_MACHINE,
    ORDER_MACHINE,
    InvalidTransition,
    RecordNotFound,
    StaleVersion,
    StatusMachine,
)

logger = logging.getLogger(__name__)
router = APIRouter()

ADMIN_HEADER = APIKeyHeader(name="X-Admin-Token", auto_error=False)
CRON_HEADER = APIKeyHeader(name="X-Cron-Secret", auto_error=False)


def require_admin(token: Optional[str] = Depends(ADMIN_HEADER)) -> None:
    if token != config.ADMIN_TOKEN:
        raise HTTPException(status_code=401, detail="No autorizado")


def require_cron(secret: Optional[str] = Depends(CRON_HEADER)) -> None:
    if secret != config.CRON_SECRET:
        raise HTTPException(status_code=401, detail="Unauthorized: Invalid or missing X-Cron-Secret header")


def _status_error(e: Exception, machine: StatusMachine) -> HTTPException:
    """Map lifecycle failures to a status code; the message stays the generic one."""
    logger.warning(f"{machine.record_type}_status_update_failed", extra={"error": str(e)})
    if isinstance(e, RecordNotFound):
        return HTTPException(status_code=404, detail=machine.failure_message)
    return HTTPException(status_code=409, detail=machine.failure_message)


# --- Partners / pets ---
@router.post("/partners", response_model=PartnerResponse, status_code=201)
def create_partner(req: PartnerCreate):
    try:
        return directory.create_partner(**req.model_dump())
    except IntegrityError:
        raise HTTPException(status_code=409, detail="El proveedor ya existe")


@router.get("/partners/{partner_id}", response_model=PartnerResponse)
def get_partner(partner_id: str):
    try:
        return directory.get_partner(partner_id)
    except RecordNotFound:
        raise HTTPException(status_code=404, detail="Proveedor no encontrado")


@router.post("/pets", response_model=PetResponse, status_code=201)
def create_pet(req: PetCreate):
    try:
        return directory.create_pet(**req.model_dump())
    except IntegrityError:
        raise HTTPException(status_code=409, detail="La mascota ya existe")


# --- Bookings ---
@router.post("/bookings", response_model=BookingResponse, status_code=201)
def create_booking(req: BookingCreate):
    try:
        return booking_manager.create_booking(**req.model_dump())
    except RecordNotFound:
        raise HTTPException(status_code=404, detail="Proveedor no encontrado")


@router.get("/bookings/{booking_id}", response_model=BookingResponse)
def get_booking(booking_id: str):
    try:
        return booking_manager.get_booking(booking_id)
    except RecordNotFound:
        raise HTTPException(status_code=404, detail="Reserva no encontrada")


@router.patch("/bookings/{booking_id}/status", response_model=BookingTransitionResponse)
def update_booking_status(booking_id: str, req: BookingStatusUpdate, background_tasks: BackgroundTasks):
    """Move a booking through its status machine; notifications go out after the response."""
    try:
        result = booking_manager.update_booking_status(booking_id, req.status, req.expected_version)
    except (RecordNotFound, InvalidTransition, StaleVersion) as e:
        raise _status_error(e, BOOKING_MACHINE)
    background_tasks.add_task(dispatch_pending)
    return result


@router.get("/bookings/{booking_id}/history")
def booking_history(booking_id: str):
    get_booking(booking_id)
    return {"booking_id": booking_id, "events": get_status_history("booking", booking_id)}


@router.get("/partners/{partner_id}/bookings", response_model=list[BookingResponse])
def partner_bookings(partner_id: str, status: Optional[str] = None):
    """Bookings for one partner tab (status) or all of them."""
    if status and status not in BOOKING_MACHINE.states:
        raise HTTPException(status_code=422, detail=f"Estado inválido: {status}")
    return booking_manager.list_bookings(partner_id, status)


@router.get("/partners/{partner_id}/bookings/counts")
def partner_booking_counts(partner_id: str):
    return booking_manager.booking_tab_counts(partner_id)


# --- Orders ---
@router.post("/orders", response_model=OrderResponse, status_code=201)
def create_order(req: OrderCreate):
    """Create an order; totals, commission and payout are computed from the items."""
    try:
        return order_manager.create_order(
            partner_id=req.partner_id,
            customer_id=req.customer_id,
            items=[i.model_dump() for i in req.items],
            payment_status=req.payment_status,
        )
    except RecordNotFound:
        raise HTTPException(status_code=404, detail="Proveedor no encontrado")


@router.get("/orders/{order_id}", response_model=OrderResponse)
def get_order(order_id: str):
    try:
        return order_manager.get_order(order_id)
    except RecordNotFound:
        raise HTTPException(status_code=404, detail="Pedido no encontrado")


@router.patch("/orders/{order_id}/status", response_model=OrderTransitionResponse)
def update_order_status(order_id: str, req: OrderStatusUpdate, background_tasks: BackgroundTasks):
    try:
        result = order_manager.update_order_status(order_id, req.status, req.expected_version)
    except (RecordNotFound, InvalidTransition, StaleVersion) as e:
        raise _status_error(e, ORDER_MACHINE)
    background_tasks.add_task(dispatch_pending)
    return result


@router.get("/orders/{order_id}/history")
def order_history(order_id: str):
    get_order(order_id)
    return {"order_id": order_id, "events": get_status_history("order", order_id)}


@router.post("/orders/cancel-expired", dependencies=[Depends(require_cron)])
def cancel_expired(background_tasks: BackgroundTasks):
    """Cron entry point: cancel unpaid orders that stayed pending too long."""
    cancelled = order_manager.cancel_expired_orders()
    if cancelled:
        background_tasks.add_task(dispatch_pending)
    return {"success": True, "cancelled": cancelled}


@router.get("/partners/{partner_id}/orders", response_model=list[OrderResponse])
def partner_orders(partner_id: str, tab: Optional[str] = None):
    if tab and tab not in order_manager.ORDER_TABS:
        raise HTTPException(status_code=422, detail=f"Pestaña inválida: {tab}")
    return order_manager.list_orders(partner_id, tab)


@router.get("/partners/{partner_id}/orders/counts")
def partner_order_counts(partner_id: str):
    return order_manager.order_tab_counts(partner_id)


@router.get("/partners/{partner_id}/analytics", response_model=OrderAnalytics)
def partner_analytics(partner_id: str):
    return order_manager.order_analytics(partner_id)


@router.get("/analytics", response_model=OrderAnalytics, dependencies=[Depends(require_admin)])
def admin_analytics():
    return order_manager.order_analytics()


# --- Health records / alerts ---
@router.post("/pets/{pet_id}/health", response_model=HealthRecordSaved, status_code=201)
def save_health_record(pet_id: str, req: HealthRecordCreate):
    """Save a health record; vaccine/deworming records may schedule a medical alert."""
    try:
        return alert_scheduler.save_health_record(
            pet_id=pet_id,
            record_type=req.type,
            name=req.name,
            application_date=req.application_date,
            next_due_date=req.next_due_date,
            veterinarian=req.veterinarian,
            notes=req.notes,
            weight=req.weight,
        )
    except RecordNotFound:
        raise HTTPException(status_code=404, detail="Mascota no encontrada")
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.get("/pets/{pet_id}/health", response_model=list[HealthRecordResponse])
def pet_health(pet_id: str, type: Optional[str] = None):
    return alert_scheduler.list_health_records(pet_id, type)


@router.get("/pets/{pet_id}/alerts", response_model=list[MedicalAlertResponse])
def pet_alerts(pet_id: str, status: Optional[str] = "pending"):
    return alert_scheduler.list_pet_alerts(pet_id, status)


@router.get("/users/{user_id}/alerts", response_model=AlertsResponse)
def user_alerts(user_id: str):
    """Pending medical alerts due within the next week."""
    return AlertsResponse(user_id=user_id, alerts=alert_scheduler.list_upcoming_alerts(user_id))


@router.post("/alerts/{alert_id}/complete", response_model=MedicalAlertResponse)
def complete_alert(alert_id: str):
    try:
        return alert_scheduler.complete_alert(alert_id)
    except RecordNotFound:
        raise HTTPException(status_code=404, detail="No se pudo marcar como completada")


@router.post("/alerts/{alert_id}/dismiss", response_model=MedicalAlertResponse)
def dismiss_alert(alert_id: str):
    try:
        return alert_scheduler.dismiss_alert(alert_id)
    except RecordNotFound:
        raise HTTPException(status_code=404, detail="No se pudo descartar la alerta")


@router.post("/alerts/send-reminders", dependencies=[Depends(require_cron)])
def send_medical_reminders(background_tasks: BackgroundTasks):
    """Queue 72h/24h reminders for pending alerts; delivery runs after the response."""
    queued = alert_scheduler.queue_medical_reminders()
    background_tasks.add_task(dispatch_pending)
    return {"success": True, "queued": queued}


# --- Medical cards ---
@router.post("/medical-card/parse", response_model=CardFields)
def parse_medical_card(req: CardTextRequest):
    return parse_card_text(req.text, req.record_type)


@router.post("/medical-card/extract", response_model=CardFields)
def extract_medical_card(req: CardImageRequest):
    try:
        return extract_from_image(req.image_base64, req.record_type, req.pet_species, req.pet_name)
    except MedicalCardError as e:
        logger.warning("medical_card_extract_failed", extra={"error": str(e)})
        raise HTTPException(status_code=502, detail="No se pudo leer el carnet")


# --- Recommendations ---
@router.get("/recommendations/{kind}", response_model=RecommendationsResponse)
def recommendations(kind: str, species: str, breed: str, age_in_months: int, weight: Optional[float] = None):
    if kind not in FUNCTIONS:
        raise HTTPException(status_code=404, detail=f"Tipo de recomendación desconocido: {kind}")
    try:
        return get_recommendations(kind, species, breed, age_in_months, weight)
    except RecommendationError as e:
        logger.warning("recommendations_failed", extra={"kind": kind, "error": str(e)})
        raise HTTPException(status_code=502, detail="No se pudieron obtener recomendaciones")


# --- Notification outbox ---
@router.get("/notifications", dependencies=[Depends(require_admin)])
def notifications(record_id: Optional[str] = None, status: Optional[str] = None):
    return {"notifications": list_outbox(record_id, status)}


@router.post("/notifications/dispatch", dependencies=[Depends(require_admin)])
def dispatch_notifications():
    """Retry delivery of pending outbox rows now."""
    return dispatch_pending()
