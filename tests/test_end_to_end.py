"""
End-to-end test: TestClient partner -> booking/order status flow, health records,
alerts and error mapping.
"""
from datetime import date, timedelta

from fastapi.testclient import TestClient

from dogcatify import config
from dogcatify.main import app

client = TestClient(app)


def _setup_partner_and_pet():
    r = client.post("/api/partners", json={
        "partner_id": "p1",
        "business_name": "Veterinaria Central",
        "business_type": "veterinary",
    })
    assert r.status_code == 201
    r = client.post("/api/pets", json={"pet_id": "pet1", "owner_id": "u1", "name": "Michi", "species": "cat"})
    assert r.status_code == 201


def test_health():
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_booking_flow(sent_notifications):
    """Create B1, confirm it, then fetch it back; the notification goes out after the response."""
    _setup_partner_and_pet()
    r = client.post("/api/bookings", json={
        "partner_id": "p1",
        "customer_id": "u1",
        "service_name": "Vacunación",
        "scheduled_at": "2026-11-02T10:00:00",
        "total_amount": 500,
        "customer_email": "u1@example.com",
    })
    assert r.status_code == 201
    booking = r.json()
    assert booking["status"] == "pending"

    r = client.patch(f"/api/bookings/{booking['booking_id']}/status", json={"status": "confirmed", "expected_version": 1})
    assert r.status_code == 200
    data = r.json()
    assert data["booking"]["status"] == "confirmed"
    assert data["notice"] == "Reserva confirmada"

    r = client.get(f"/api/bookings/{booking['booking_id']}")
    assert r.json()["status"] == "confirmed"
    assert [n["json"]["kind"] for n in sent_notifications] == ["booking_confirmation"]

    counts = client.get("/api/partners/p1/bookings/counts").json()
    assert counts["confirmed"] == 1 and counts["pending"] == 0

    history = client.get(f"/api/bookings/{booking['booking_id']}/history").json()
    assert history["events"][0]["to_status"] == "confirmed"


def test_booking_errors():
    _setup_partner_and_pet()
    r = client.patch("/api/bookings/bkg_missing/status", json={"status": "confirmed"})
    assert r.status_code == 404
    assert r.json()["detail"] == "No se pudo actualizar la reserva"

    booking = client.post("/api/bookings", json={
        "partner_id": "p1",
        "customer_id": "u1",
        "service_name": "Baño",
        "scheduled_at": "2026-11-02T10:00:00",
        "total_amount": 300,
    }).json()
    r = client.patch(f"/api/bookings/{booking['booking_id']}/status", json={"status": "completed"})
    assert r.status_code == 409
    assert r.json()["detail"] == "No se pudo actualizar la reserva"

    r = client.patch(f"/api/bookings/{booking['booking_id']}/status", json={"status": "confirmed", "expected_version": 7})
    assert r.status_code == 409

    r = client.patch(f"/api/bookings/{booking['booking_id']}/status", json={"status": "archived"})
    assert r.status_code == 422


def test_order_flow():
    _setup_partner_and_pet()
    r = client.post("/api/orders", json={
        "partner_id": "p1",
        "customer_id": "u1",
        "items": [{"name": "Arena", "quantity": 2, "price": 250}],
    })
    assert r.status_code == 201
    order = r.json()
    assert order["total_amount"] == 500
    assert order["commission_amount"] == 25
    assert order["partner_amount"] == 475

    for status in ("processing", "shipped", "delivered"):
        r = client.patch(f"/api/orders/{order['order_id']}/status", json={"status": status})
        assert r.status_code == 200
        assert r.json()["order"]["status"] == status

    r = client.patch(f"/api/orders/{order['order_id']}/status", json={"status": "cancelled"})
    assert r.status_code == 409
    assert r.json()["detail"] == "No se pudo actualizar el pedido"

    assert client.get("/api/partners/p1/orders/counts").json() == {"pending": 0, "processing": 0, "completed": 1}
    assert len(client.get("/api/partners/p1/orders", params={"tab": "completed"}).json()) == 1
    assert client.get("/api/partners/p1/analytics").json()["total_revenue"] == 500


def test_history_of_unknown_records():
    r = client.get("/api/bookings/bkg_missing/history")
    assert r.status_code == 404
    assert r.json()["detail"] == "Reserva no encontrada"
    r = client.get("/api/orders/ord_missing/history")
    assert r.status_code == 404
    assert r.json()["detail"] == "Pedido no encontrado"


def test_cancel_expired_requires_secret():
    r = client.post("/api/orders/cancel-expired")
    assert r.status_code == 401
    r = client.post("/api/orders/cancel-expired", headers={"X-Cron-Secret": config.CRON_SECRET})
    assert r.status_code == 200
    assert r.json() == {"success": True, "cancelled": []}


def test_send_reminders_requires_secret():
    assert client.post("/api/alerts/send-reminders").status_code == 401
    r = client.post("/api/alerts/send-reminders", headers={"X-Cron-Secret": config.CRON_SECRET})
    assert r.status_code == 200
    assert r.json() == {"success": True, "queued": {"24h": 0, "72h": 0}}


def test_admin_endpoints_require_token():
    assert client.get("/api/analytics").status_code == 401
    r = client.get("/api/analytics", headers={"X-Admin-Token": config.ADMIN_TOKEN})
    assert r.status_code == 200
    assert r.json()["total_orders"] == 0
    r = client.post("/api/notifications/dispatch", headers={"X-Admin-Token": config.ADMIN_TOKEN})
    assert r.json() == {"sent": 0, "failed": 0, "abandoned": 0}


def test_health_record_and_alerts():
    _setup_partner_and_pet()
    next_due = date.today() + timedelta(days=10)
    r = client.post("/api/pets/pet1/health", json={
        "type": "vaccine",
        "name": "Triple Felina",
        "next_due_date": next_due.strftime("%d/%m/%Y"),
    })
    assert r.status_code == 201
    alert = r.json()["alert"]
    assert alert["due_date"] == (next_due - timedelta(days=7)).isoformat()
    assert alert["priority"] == "medium"

    alerts = client.get("/api/users/u1/alerts").json()["alerts"]
    assert [a["alert_id"] for a in alerts] == [alert["alert_id"]]
    assert alerts[0]["pet_name"] == "Michi"

    r = client.post(f"/api/alerts/{alert['alert_id']}/dismiss")
    assert r.status_code == 200
    assert r.json()["status"] == "dismissed"
    assert client.get("/api/users/u1/alerts").json()["alerts"] == []

    r = client.post("/api/pets/pet1/health", json={"type": "vaccine", "name": "X", "next_due_date": "algún día"})
    assert r.status_code == 422
    r = client.post("/api/pets/ghost/health", json={"type": "weight", "name": "Peso", "weight": 4.2})
    assert r.status_code == 404


def test_parse_medical_card_endpoint():
    r = client.post("/api/medical-card/parse", json={
        "text": "Milbemax\n10/01/2026\nPróxima 10/04/2026",
        "record_type": "deworming",
    })
    assert r.status_code == 200
    data = r.json()
    assert data["product_id"] == "dew_milbemax"
    assert data["next_due_date"] == "10/04/2026"


def test_unknown_recommendation_kind():
    r = client.get("/api/recommendations/toys", params={"species": "dog", "breed": "Mestizo", "age_in_months": 12})
    assert r.status_code == 404


def test_notification_webhook():
    r = client.post("/api/webhook/notifications", json={"kind": "booking_confirmation", "record_id": "bkg_1"})
    assert r.status_code == 200
    assert r.json()["status"] == "ok"
