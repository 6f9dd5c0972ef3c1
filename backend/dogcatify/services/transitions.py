"""
Status transition rules for bookings and orders.

Each record type has an explicit table of (state, event) -> state. A target status is
accepted only when some event in the table leads from the current state to it, or when
it equals the current state (idempotent re-write). Bookings and orders are kept as two
separate machines: bookings allow restoring a cancelled booking, orders allow no
reverse transition.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified
from sqlalchemy.orm.exc import StaleDataError


class LifecycleError(Exception):
    """Base class for booking/order lifecycle failures."""


class RecordNotFound(LifecycleError):
    def __init__(self, record_type: str, record_id: str):
        super().__init__(f"{record_type} {record_id} not found")
        self.record_type = record_type
        self.record_id = record_id


class InvalidTransition(LifecycleError):
    def __init__(self, record_type: str, current: str, target: str):
        super().__init__(f"{record_type} cannot move from {current} to {target}")
        self.record_type = record_type
        self.current = current
        self.target = target


class StaleVersion(LifecycleError):
    """The record changed since it was read (expected_version mismatch or a concurrent write)."""
    def __init__(self, record_type: str, record_id: str, expected: Optional[int], actual: Optional[int] = None):
        if actual is None:
            super().__init__(f"{record_type} {record_id} was changed by a concurrent write")
        else:
            super().__init__(f"{record_type} {record_id} is at version {actual}, not {expected}")
        self.record_type = record_type
        self.record_id = record_id
        self.expected = expected
        self.actual = actual


@dataclass(frozen=True)
class StatusMachine:
    """Transition table plus the notice shown after each target status."""
    record_type: str
    states: tuple[str, ...]
    transitions: dict[tuple[str, str], str]
    notices: dict[str, str]
    failure_message: str

    def event_for(self, current: str, target: str) -> Optional[str]:
        """Return the event leading current -> target, or None when no such edge exists."""
        for (state, event), to_state in self.transitions.items():
            if state == current and to_state == target:
                return event
        return None

    def fire(self, current: str, event: str) -> str:
        """Apply a named event; raises InvalidTransition if the table has no such edge."""
        target = self.transitions.get((current, event))
        if target is None:
            raise InvalidTransition(self.record_type, current, event)
        return target

    def check(self, current: str, target: str) -> None:
        """Validate moving to target. Same-state writes are allowed."""
        if target not in self.states:
            raise InvalidTransition(self.record_type, current, target)
        if current == target:
            return
        if self.event_for(current, target) is None:
            raise InvalidTransition(self.record_type, current, target)

    def allowed_targets(self, current: str) -> list[str]:
        return [to for (state, _), to in self.transitions.items() if state == current]

    def notice(self, target: str) -> str:
        return self.notices[target]


def apply_transition(
    db: Session,
    machine: StatusMachine,
    record,
    record_id: str,
    target: str,
    expected_version: Optional[int] = None,
) -> str:
    """
    Move a versioned ORM record (Booking/Order) to target and flush the UPDATE.
    Checks the version stamp first, then the transition table. The flushed UPDATE only
    matches the row at the version it was read with, so a concurrent write that landed
    in between raises StaleVersion instead of being overwritten. Returns the previous status.
    """
    if expected_version is not None and record.version != expected_version:
        raise StaleVersion(machine.record_type, record_id, expected_version, record.version)
    machine.check(record.status, target)
    previous = record.status
    record.status = target
    record.updated_at = datetime.utcnow()
    # same-state writes still emit an UPDATE so the version moves
    flag_modified(record, "status")
    try:
        db.flush()
    except StaleDataError as e:
        raise StaleVersion(machine.record_type, record_id, expected_version) from e
    return previous


BOOKING_MACHINE = StatusMachine(
    record_type="booking",
    states=("pending", "confirmed", "completed", "cancelled"),
    transitions={
        ("pending", "accept"): "confirmed",
        ("pending", "reject"): "cancelled",
        ("confirmed", "complete"): "completed",
        ("confirmed", "cancel"): "cancelled",
        ("cancelled", "restore"): "pending",
    },
    notices={
        "pending": "Reserva restaurada",
        "confirmed": "Reserva confirmada",
        "completed": "Reserva marcada como completada",
        "cancelled": "Reserva cancelada",
    },
    failure_message="No se pudo actualizar la reserva",
)

ORDER_MACHINE = StatusMachine(
    record_type="order",
    states=("pending", "processing", "shipped", "delivered", "cancelled"),
    transitions={
        ("pending", "process"): "processing",
        ("pending", "cancel"): "cancelled",
        ("processing", "ship"): "shipped",
        ("shipped", "deliver"): "delivered",
    },
    notices={
        "pending": "Pedido pendiente",
        "processing": "Pedido en procesamiento",
        "shipped": "Pedido enviado",
        "delivered": "Pedido entregado",
        "cancelled": "Pedido cancelado",
    },
    failure_message="No se pudo actualizar el pedido",
)
