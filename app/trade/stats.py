# app/trade/stats.py
from __future__ import annotations

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..auth import UserPayload
from ..models import Document, DocumentStatus, Order, OrderStatus, Shipment, ShipmentStatus
from ..permissions import Action, authorize, scope_orders
from ..schemas import DashboardStats

ACTIVE_ORDER_STATUSES = (OrderStatus.PENDING.value, OrderStatus.CONFIRMED.value, OrderStatus.PROCESSING.value)
UPCOMING_SHIPMENT_STATUSES = (ShipmentStatus.PREPARING.value, ShipmentStatus.LOADED.value)


def dashboard_stats(db: Session, actor: UserPayload) -> DashboardStats:
    """
    Counters for the dashboard tiles, restricted to the buyer's own orders
    for BUYER.

    pending_documents counts rows still in the "pending" status. Documents
    generated through the API are rendered in the request and stored as
    "generated", so the tile stays at zero unless rows are recorded ahead of
    their file.
    """
    authorize(actor, Action.VIEW_DASHBOARD)

    active = scope_orders(db.query(func.count(Order.id)), db, actor).filter(
        Order.status.in_(ACTIVE_ORDER_STATUSES)
    ).scalar()

    revenue = scope_orders(db.query(func.coalesce(func.sum(Order.total_price), 0.0)), db, actor).scalar()

    upcoming = (
        scope_orders(db.query(func.count(Shipment.id)).join(Order, Shipment.order_id == Order.id), db, actor)
        .filter(Shipment.status.in_(UPCOMING_SHIPMENT_STATUSES))
        .scalar()
    )

    pending = (
        scope_orders(db.query(func.count(Document.id)).join(Order, Document.order_id == Order.id), db, actor)
        .filter(Document.status == DocumentStatus.PENDING.value)
        .scalar()
    )

    return DashboardStats(
        active_orders=active or 0,
        upcoming_shipments=upcoming or 0,
        pending_documents=pending or 0,
        total_revenue=float(revenue or 0.0),
    )
