# app/trade/shipments.py
from __future__ import annotations

from typing import List, Optional, Tuple

import structlog
from sqlalchemy.orm import Session, joinedload

from ..auth import UserPayload
from ..errors import NotFoundError, ValidationError
from ..models import Order, Shipment, ShipmentStatus
from ..permissions import Action, authorize, scope_orders
from ..schemas import Pagination, ShipmentIn
from .paging import paginate

log = structlog.get_logger(__name__)


def _shipment_query(db: Session):
    return db.query(Shipment).options(
        joinedload(Shipment.order).joinedload(Order.customer),
        joinedload(Shipment.creator),
    )


def create_shipment(db: Session, data: ShipmentIn, actor: UserPayload) -> Shipment:
    authorize(actor, Action.CREATE_SHIPMENT)

    if db.get(Order, data.order_id) is None:
        raise NotFoundError("Order not found")

    s = Shipment(
        order_id=data.order_id,
        container_no=data.container_no,
        vessel_name=data.vessel_name,
        port_of_loading=data.port_of_loading,
        port_of_discharge=data.port_of_discharge,
        etd=data.etd,
        eta=data.eta,
        carrier=data.carrier,
        notes=data.notes,
        status=ShipmentStatus.PREPARING.value,
        created_by=actor.id,
    )
    db.add(s)
    db.commit()

    log.info("shipment_created", shipment_id=s.id, order_id=s.order_id, actor_id=actor.id)
    return _shipment_query(db).populate_existing().filter(Shipment.id == s.id).one()


def list_shipments(
    db: Session,
    actor: UserPayload,
    status: Optional[str] = None,
    page: Optional[str] = None,
    limit: Optional[str] = None,
) -> Tuple[List[Shipment], Pagination]:
    authorize(actor, Action.LIST_SHIPMENTS)

    # scoping goes through the parent order's customer
    q = scope_orders(_shipment_query(db).join(Order, Shipment.order_id == Order.id), db, actor)
    if status:
        q = q.filter(Shipment.status == status.strip().upper())
    q = q.order_by(Shipment.created_at.desc(), Shipment.id.desc())
    return paginate(q, page, limit)


def update_shipment_status(db: Session, shipment_id: int, status: str, actor: UserPayload) -> Shipment:
    authorize(actor, Action.UPDATE_SHIPMENT_STATUS)

    try:
        target = ShipmentStatus((status or "").strip().upper())
    except ValueError:
        raise ValidationError(f"Invalid shipment status: {status}")

    s = db.get(Shipment, shipment_id)
    if not s:
        raise NotFoundError("Shipment not found")

    s.status = target.value
    db.commit()

    log.info("shipment_status_changed", shipment_id=s.id, status=target.value, actor_id=actor.id)
    return _shipment_query(db).populate_existing().filter(Shipment.id == s.id).one()
