"""
SQLAlchemy models for partners, pets, bookings, orders, health records, medical alerts,
status audit events, the notification outbox and the recommendation cache.
"""
from datetime import datetime
from sqlalchemy import Column, Integer, String, Float, Date, DateTime, Text, ForeignKey
from sqlalchemy.orm import relationship

from dogcatify.db import Base


class Partner(Base):
    """Service-provider account (clinic, groomer, shop, shelter...)."""
    __tablename__ = "partners"

    id = Column(Integer, primary_key=True, autoincrement=True)
    partner_id = Column(String(64), unique=True, nullable=False, index=True)
    business_name = Column(String(256), nullable=False)
    business_type = Column(String(32), nullable=False, default="veterinary")
    email = Column(String(256), nullable=True)
    commission_percentage = Column(Float, nullable=False, default=5.0)
    created_at = Column(DateTime, default=datetime.utcnow)


class Pet(Base):
    __tablename__ = "pets"

    id = Column(Integer, primary_key=True, autoincrement=True)
    pet_id = Column(String(64), unique=True, nullable=False, index=True)
    owner_id = Column(String(64), nullable=False, index=True)
    name = Column(String(128), nullable=False)
    species = Column(String(16), nullable=False, default="dog")
    breed = Column(String(128), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class Booking(Base):
    """Scheduled service appointment between a customer and a partner."""
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    booking_id = Column(String(64), unique=True, nullable=False, index=True)
    partner_id = Column(String(64), nullable=False, index=True)
    customer_id = Column(String(64), nullable=False, index=True)
    service_name = Column(String(256), nullable=False)
    scheduled_at = Column(DateTime, nullable=False)
    total_amount = Column(Float, nullable=False, default=0.0)
    status = Column(String(32), nullable=False, default="pending")
    notes = Column(Text, nullable=True)
    customer_name = Column(String(256), nullable=True)
    customer_email = Column(String(256), nullable=True)
    pet_name = Column(String(128), nullable=True)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # every UPDATE is guarded by "WHERE version = <loaded version>" and bumps it
    __mapper_args__ = {"version_id_col": version}


class Order(Base):
    """Merchandise purchase from a partner's catalog."""
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(String(64), unique=True, nullable=False, index=True)
    partner_id = Column(String(64), nullable=False, index=True)
    customer_id = Column(String(64), nullable=False, index=True)
    total_amount = Column(Float, nullable=False, default=0.0)
    commission_amount = Column(Float, nullable=False, default=0.0)
    partner_amount = Column(Float, nullable=False, default=0.0)
    status = Column(String(32), nullable=False, default="pending")
    payment_status = Column(String(32), nullable=False, default="pending")
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __mapper_args__ = {"version_id_col": version}

    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan", lazy="selectin")


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_pk = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    name = Column(String(256), nullable=False)
    quantity = Column(Integer, nullable=False)
    price = Column(Float, nullable=False)

    order = relationship("Order", back_populates="items")


class HealthRecord(Base):
    """Vaccine, illness, allergy, deworming or weight entry attached to a pet."""
    __tablename__ = "pet_health"

    id = Column(Integer, primary_key=True, autoincrement=True)
    record_id = Column(String(64), unique=True, nullable=False, index=True)
    pet_id = Column(String(64), nullable=False, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    type = Column(String(16), nullable=False)
    name = Column(String(256), nullable=False)
    application_date = Column(Date, nullable=True)
    next_due_date = Column(Date, nullable=True)
    veterinarian = Column(String(256), nullable=True)
    notes = Column(Text, nullable=True)
    weight = Column(Float, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class MedicalAlert(Base):
    """Reminder for an upcoming vaccine/deworming dose. record_id is a lookup-only reference."""
    __tablename__ = "medical_alerts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    alert_id = Column(String(64), unique=True, nullable=False, index=True)
    pet_id = Column(String(64), nullable=False, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    record_id = Column(String(64), nullable=True)
    alert_type = Column(String(16), nullable=False)
    title = Column(String(256), nullable=False)
    description = Column(Text, nullable=True)
    due_date = Column(Date, nullable=False)
    priority = Column(String(16), nullable=False, default="medium")
    status = Column(String(16), nullable=False, default="pending")
    completed_at = Column(DateTime, nullable=True)
    reminded_72h_at = Column(DateTime, nullable=True)
    reminded_24h_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class StatusEvent(Base):
    """Audit trail of booking/order status writes."""
    __tablename__ = "status_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    record_type = Column(String(16), nullable=False, index=True)
    record_id = Column(String(64), nullable=False, index=True)
    from_status = Column(String(32), nullable=False)
    to_status = Column(String(32), nullable=False)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class NotificationOutbox(Base):
    """Notification deliveries committed together with the status change that caused them."""
    __tablename__ = "notification_outbox"

    id = Column(Integer, primary_key=True, autoincrement=True)
    kind = Column(String(64), nullable=False)
    record_id = Column(String(64), nullable=False, index=True)
    payload = Column(Text, nullable=True)  # JSON string
    status = Column(String(16), nullable=False, default="pending", index=True)
    attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    sent_at = Column(DateTime, nullable=True)


class RecommendationCache(Base):
    """Cached AI recommendation lists keyed by kind + composite input key."""
    __tablename__ = "recommendation_cache"

    id = Column(Integer, primary_key=True, autoincrement=True)
    kind = Column(String(32), nullable=False, index=True)
    cache_key = Column(String(256), nullable=False, index=True)
    payload = Column(Text, nullable=False)  # JSON string
    created_at = Column(DateTime, default=datetime.utcnow)
    expires_at = Column(DateTime, nullable=False)
