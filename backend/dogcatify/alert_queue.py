"""
Client-side medical alert queue used by the dashboard: shows one pending alert at a time,
advances after each completion/dismissal and wraps to the first alert on the next load
once it has run past the end. Kept free of database imports so the frontend can use it.
"""
from datetime import date
from typing import Optional


class AlertQueue:
    def __init__(self, alerts: Optional[list[dict]] = None):
        self.alerts: list[dict] = []
        self.index = 0
        self.load(alerts or [])

    def load(self, alerts: list[dict]) -> None:
        """
        Replace the queue with a fresh fetch. The alert that was current stays current
        (matched on alert_id) even when resolved alerts drop out ahead of it; an index
        past the end goes back to 0.
        """
        shown = self.current()
        self.alerts = list(alerts)
        if shown is not None:
            for i, a in enumerate(self.alerts):
                if a.get("alert_id") == shown.get("alert_id"):
                    self.index = i
                    return
        if self.index >= len(self.alerts):
            self.index = 0

    def current(self) -> Optional[dict]:
        if 0 <= self.index < len(self.alerts):
            return self.alerts[self.index]
        return None

    def resolve_current(self) -> Optional[dict]:
        """Mark the shown alert as handled locally and move on. Returns the handled alert."""
        alert = self.current()
        if alert is not None:
            self.index += 1
        return alert

    def __len__(self) -> int:
        return len(self.alerts)


def due_label(due: date, today: Optional[date] = None) -> str:
    """Spanish relative label for an alert due date."""
    today = today or date.today()
    days = (due - today).days
    if days < 0:
        return "Vencida"
    if days == 0:
        return "Hoy"
    if days == 1:
        return "Mañana"
    if days <= 7:
        return f"En {days} días"
    return due.strftime("%d/%m/%Y")
