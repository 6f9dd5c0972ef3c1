"""
DogCatify - Streamlit partner dashboard.
Two-column: left = bookings and orders tabs with status actions, right = medical alerts and analytics.
Every action is followed by a refetch of the affected list.
"""
import os
import streamlit as st
import requests

from dogcatify.alert_queue import AlertQueue, due_label
from datetime import date

BACKEND_URL = os.environ.get("BACKEND_URL", "http://localhost:8000")

ADMIN_TOKEN = os.environ.get("ADMIN_TOKEN", "demo-admin-token")
DEFAULT_PARTNER = "p100"
DEFAULT_USER = "u100"

# Actions offered per current status: (button label, target status)
BOOKING_ACTIONS = {
    "pending": [("Confirmar", "confirmed"), ("Rechazar", "cancelled")],
    "confirmed": [("Completar", "completed"), ("Cancelar", "cancelled")],
    "cancelled": [("Restaurar", "pending")],
}
ORDER_ACTIONS = {
    "pending": [("Procesar", "processing"), ("Cancelar", "cancelled")],
    "processing": [("Marcar enviado", "shipped")],
    "shipped": [("Marcar entregado", "delivered")],
}
BOOKING_TABS = [("pending", "Pendientes"), ("confirmed", "Confirmadas"), ("completed", "Completadas"), ("cancelled", "Canceladas")]
ORDER_TABS = [("pending", "Pendientes"), ("processing", "En Proceso"), ("completed", "Completados")]


def api_get(path: str, token: str | None = None, params: dict | None = None):
    headers = {}
    if token:
        headers["X-Admin-Token"] = token
    r = requests.get(f"{BACKEND_URL}{path}", headers=headers, params=params, timeout=10)
    r.raise_for_status()
    return r.json()


def api_send(method: str, path: str, json: dict | None = None):
    r = requests.request(method, f"{BACKEND_URL}{path}", json=json, timeout=10)
    r.raise_for_status()
    return r.json()


def error_detail(e: requests.exceptions.RequestException, fallback: str) -> str:
    try:
        return e.response.json().get("detail", fallback)
    except Exception:
        return fallback


def change_status(kind: str, record: dict, target: str) -> None:
    path = f"/api/{kind}s/{record[f'{kind}_id']}/status"
    try:
        out = api_send("PATCH", path, {"status": target, "expected_version": record["version"]})
        st.success(out.get("notice", ""))
    except requests.exceptions.RequestException as e:
        fallback = "No se pudo actualizar la reserva" if kind == "booking" else "No se pudo actualizar el pedido"
        st.error(error_detail(e, fallback))


st.set_page_config(page_title="DogCatify Partner", layout="wide")
st.title("DogCatify Partner")

col_ops, col_side = st.columns([2, 1])

with col_ops:
    partner_id = st.text_input("Partner ID", value=DEFAULT_PARTNER, key="partner_id")

    st.subheader("Reservas")
    try:
        counts = api_get(f"/api/partners/{partner_id}/bookings/counts")
    except requests.exceptions.RequestException:
        counts = {}
    tabs = st.tabs([f"{label} ({counts.get(status, 0)})" for status, label in BOOKING_TABS])
    for tab, (status, _) in zip(tabs, BOOKING_TABS):
        with tab:
            try:
                bookings = api_get(f"/api/partners/{partner_id}/bookings", params={"status": status})
            except requests.exceptions.RequestException as e:
                st.caption(f"Reservas: {e}")
                continue
            if not bookings:
                st.caption("Sin reservas")
            for b in bookings:
                st.write(f"**{b['service_name']}** · {b.get('pet_name') or 'Mascota'} · {b['scheduled_at']} · ${b['total_amount']}")
                cols = st.columns(len(BOOKING_ACTIONS.get(status, [])) or 1)
                for col, (label, target) in zip(cols, BOOKING_ACTIONS.get(status, [])):
                    if col.button(label, key=f"b_{b['booking_id']}_{target}"):
                        change_status("booking", b, target)
                        st.rerun()

    st.subheader("Pedidos")
    try:
        ocounts = api_get(f"/api/partners/{partner_id}/orders/counts")
    except requests.exceptions.RequestException:
        ocounts = {}
    otabs = st.tabs([f"{label} ({ocounts.get(tab_key, 0)})" for tab_key, label in ORDER_TABS])
    for tab, (tab_key, _) in zip(otabs, ORDER_TABS):
        with tab:
            try:
                orders = api_get(f"/api/partners/{partner_id}/orders", params={"tab": tab_key})
            except requests.exceptions.RequestException as e:
                st.caption(f"Pedidos: {e}")
                continue
            if not orders:
                st.caption("Sin pedidos")
            for o in orders:
                items = ", ".join(f"{i['quantity']}x {i['name']}" for i in o["items"])
                st.write(f"**{o['order_id']}** · {o['status']} · {items} · ${o['total_amount']}")
                actions = ORDER_ACTIONS.get(o["status"], [])
                if actions:
                    cols = st.columns(len(actions))
                    for col, (label, target) in zip(cols, actions):
                        if col.button(label, key=f"o_{o['order_id']}_{target}"):
                            change_status("order", o, target)
                            st.rerun()

with col_side:
    st.subheader("Alertas Médicas")
    user_id = st.text_input("Usuario", value=DEFAULT_USER, key="alert_user")
    if "alert_queue" not in st.session_state:
        st.session_state.alert_queue = AlertQueue()
    queue: AlertQueue = st.session_state.alert_queue
    try:
        queue.load(api_get(f"/api/users/{user_id}/alerts").get("alerts", []))
    except requests.exceptions.RequestException as e:
        st.caption(f"Alertas: {e}")
    alert = queue.current()
    if alert is None:
        st.caption("Sin alertas próximas")
    else:
        st.write(f"**{alert['title']}** ({alert.get('pet_name') or 'Mascota'})")
        st.caption(f"{alert['description']} · {due_label(date.fromisoformat(alert['due_date']))} · prioridad {alert['priority']}")
        c1, c2 = st.columns(2)
        for col, (label, action, failure) in zip((c1, c2), (
            ("Completar", "complete", "No se pudo marcar como completada"),
            ("Descartar", "dismiss", "No se pudo descartar la alerta"),
        )):
            if col.button(label, key=f"alert_{action}"):
                try:
                    api_send("POST", f"/api/alerts/{alert['alert_id']}/{action}")
                    queue.resolve_current()
                except requests.exceptions.RequestException as e:
                    st.error(error_detail(e, failure))
                st.rerun()

    st.subheader("Analítica")
    try:
        stats = api_get(f"/api/partners/{partner_id}/analytics")
        st.metric("Ingresos", f"${stats['total_revenue']:.2f}")
        st.metric("Comisiones", f"${stats['total_commissions']:.2f}")
        st.metric("A pagar al proveedor", f"${stats['total_partner_payments']:.2f}")
        st.json(stats.get("by_status", {}))
    except requests.exceptions.RequestException as e:
        st.caption(f"Analítica: {e}")

    st.subheader("Admin")
    admin_token = st.text_input("Admin token", value=ADMIN_TOKEN, type="password", key="admin_token")
    if st.button("Reintentar notificaciones"):
        try:
            r = requests.post(f"{BACKEND_URL}/api/notifications/dispatch", headers={"X-Admin-Token": admin_token}, timeout=30)
            r.raise_for_status()
            st.json(r.json())
        except requests.exceptions.RequestException as e:
            st.error(str(e))
