"""
Pydantic schemas for API request/response validation.
"""
from datetime import date, datetime
from typing import Optional, Any, Literal
from pydantic import BaseModel, Field

BookingStatus = Literal["pending", "confirmed", "completed", "cancelled"]
OrderStatus = Literal["pending", "processing", "shipped", "delivered", "cancelled"]


# --- Partners / pets ---
class PartnerCreate(BaseModel):
    partner_id: str
    business_name: str
    business_type: Literal["veterinary", "grooming", "boarding", "shelter", "shop"] = "veterinary"
    email: Optional[str] = None
    commission_percentage: Optional[float] = Field(None, ge=0, le=100)


class PartnerResponse(BaseModel):
    partner_id: str
    business_name: str
    business_type: str
    email: Optional[str] = None
    commission_percentage: float


class PetCreate(BaseModel):
    pet_id: str
    owner_id: str
    name: str
    species: Literal["dog", "cat"] = "dog"
    breed: Optional[str] = None


class PetResponse(BaseModel):
    pet_id: str
    owner_id: str
    name: str
    species: str
    breed: Optional[str] = None


# --- Bookings ---
class BookingCreate(BaseModel):
    """Request body for POST /bookings."""
    partner_id: str
    customer_id: str
    service_name: str
    scheduled_at: datetime
    total_amount: float = Field(..., ge=0)
    notes: Optional[str] = None
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    pet_name: Optional[str] = None


class BookingResponse(BaseModel):
    booking_id: str
    partner_id: str
    customer_id: str
    service_name: str
    scheduled_at: datetime
    total_amount: float
    status: str
    notes: Optional[str] = None
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    pet_name: Optional[str] = None
    version: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class BookingStatusUpdate(BaseModel):
    """Request body for PATCH /bookings/{booking_id}/status."""
    status: BookingStatus
    expected_version: Optional[int] = Field(None, ge=1, description="Reject the write if the booking moved on")


class BookingTransitionResponse(BaseModel):
    booking: BookingResponse
    previous_status: str
    notice: str


# --- Orders ---
class OrderItemIn(BaseModel):
    name: str
    quantity: int = Field(..., ge=1)
    price: float = Field(..., ge=0)


class OrderCreate(BaseModel):
    """Request body for POST /orders."""
    partner_id: str
    customer_id: str
    items: list[OrderItemIn] = Field(..., min_length=1)
    payment_status: Literal["pending", "approved"] = "pending"


class OrderResponse(BaseModel):
    """Order record returned by API."""
    order_id: str
    partner_id: str
    customer_id: str
    items: list[OrderItemIn]
    total_amount: float
    commission_amount: float
    partner_amount: float
    status: str
    payment_status: str
    version: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class OrderStatusUpdate(BaseModel):
    status: OrderStatus
    expected_version: Optional[int] = Field(None, ge=1)


class OrderTransitionResponse(BaseModel):
    order: OrderResponse
    previous_status: str
    notice: str


class OrderAnalytics(BaseModel):
    total_orders: int
    total_revenue: float
    total_commissions: float
    total_partner_payments: float
    by_status: dict[str, int]


# --- Health records / alerts ---
class HealthRecordCreate(BaseModel):
    """Request body for POST /pets/{pet_id}/health. Dates accept YYYY-MM-DD or DD/MM/YYYY."""
    type: Literal["vaccine", "illness", "allergy", "deworming", "weight"]
    name: str
    application_date: Optional[str] = None
    next_due_date: Optional[str] = None
    veterinarian: Optional[str] = None
    notes: Optional[str] = None
    weight: Optional[float] = Field(None, gt=0)


class HealthRecordResponse(BaseModel):
    record_id: str
    pet_id: Optional[str] = None
    type: str
    name: str
    application_date: Optional[date] = None
    next_due_date: Optional[date] = None
    veterinarian: Optional[str] = None
    notes: Optional[str] = None
    weight: Optional[float] = None


class MedicalAlertResponse(BaseModel):
    alert_id: str
    pet_id: str
    user_id: str
    record_id: Optional[str] = None
    alert_type: str
    title: str
    description: Optional[str] = None
    due_date: date
    priority: str
    status: str
    completed_at: Optional[datetime] = None
    pet_name: Optional[str] = None


class HealthRecordSaved(BaseModel):
    record: HealthRecordResponse
    alert: Optional[MedicalAlertResponse] = None


class AlertsResponse(BaseModel):
    """Response for GET /users/{user_id}/alerts."""
    user_id: str
    alerts: list[MedicalAlertResponse]


# --- Medical cards ---
class CardTextRequest(BaseModel):
    text: str
    record_type: Literal["vaccine", "deworming"]


class CardImageRequest(BaseModel):
    image_base64: str
    record_type: Literal["vaccine", "deworming"]
    pet_species: Optional[Literal["dog", "cat"]] = None
    pet_name: Optional[str] = None


class CardFields(BaseModel):
    type: str
    name: Optional[str] = None
    product_id: Optional[str] = None
    application_date: Optional[str] = None
    next_due_date: Optional[str] = None
    veterinarian: Optional[str] = None
    batch_number: Optional[str] = None
    confidence: str


# --- Recommendations ---
class RecommendationsResponse(BaseModel):
    kind: str
    cache_key: str
    cached: bool
    items: list[Any]
