# app/trade/orders.py
from __future__ import annotations

import math
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload, selectinload

from ..auth import UserPayload
from ..config import settings
from ..errors import NotFoundError, UnexpectedError, ValidationError
from ..models import Customer, Document, Order, OrderItem, OrderStatus, Product, Sequence, Shipment
from ..permissions import Action, authorize, scope_orders
from ..schemas import OrderIn, OrderItemIn, Pagination
from .paging import paginate

log = structlog.get_logger(__name__)

# forward-only lifecycle; CANCELLED and DELIVERED are terminal
STATUS_FLOW = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),
    OrderStatus.CANCELLED: set(),
}


def format_order_no(year: int, seq: int) -> str:
    return f"ORD-{year}-{seq:04d}"


def compute_totals(items: Iterable[OrderItemIn]) -> Tuple[float, float]:
    total_kg = 0.0
    total_price = 0.0
    for it in items:
        total_kg += it.quantity
        total_price += it.quantity * it.price_per_kg
    return total_kg, total_price


def _check_items(items: List[OrderItemIn]) -> None:
    if not items:
        raise ValidationError("Customer ID and order items are required")
    for it in items:
        for v in (it.quantity, it.price_per_kg):
            if not math.isfinite(v) or v <= 0:
                raise ValidationError("Item quantity and price per kg must be positive")


def _next_order_seq(db: Session) -> int:
    """
    Bump the order-number counter inside the current transaction.

    The UPDATE takes the row (or, on SQLite, the database) write lock, so two
    creators cannot read the same value; the unique constraint on
    orders.order_no is the backstop.
    """
    res = db.execute(
        update(Sequence)
        .where(Sequence.name == Sequence.ORDER_NO)
        .values(value=Sequence.value + 1)
    )
    if res.rowcount == 0:
        # counter row not seeded yet (init_db not run): start after existing orders
        existing = db.execute(select(func.count(Order.id))).scalar_one()
        db.add(Sequence(name=Sequence.ORDER_NO, value=existing + 1))
        db.flush()
        return existing + 1
    return db.execute(select(Sequence.value).where(Sequence.name == Sequence.ORDER_NO)).scalar_one()


def _order_query(db: Session):
    return db.query(Order).options(
        joinedload(Order.customer),
        joinedload(Order.creator),
        selectinload(Order.items).joinedload(OrderItem.product),
    )


def _attach_counts(db: Session, orders: List[Order]) -> None:
    if not orders:
        return
    ids = [o.id for o in orders]
    shipments = dict(
        db.query(Shipment.order_id, func.count(Shipment.id))
        .filter(Shipment.order_id.in_(ids))
        .group_by(Shipment.order_id)
        .all()
    )
    documents = dict(
        db.query(Document.order_id, func.count(Document.id))
        .filter(Document.order_id.in_(ids))
        .group_by(Document.order_id)
        .all()
    )
    for o in orders:
        o.shipment_count = shipments.get(o.id, 0)
        o.document_count = documents.get(o.id, 0)


def create_order(db: Session, data: OrderIn, actor: UserPayload) -> Order:
    authorize(actor, Action.CREATE_ORDER)
    _check_items(data.items)

    if db.get(Customer, data.customer_id) is None:
        raise NotFoundError("Customer not found")

    product_ids = {it.product_id for it in data.items}
    found = {pid for (pid,) in db.query(Product.id).filter(Product.id.in_(product_ids)).all()}
    missing = sorted(product_ids - found)
    if missing:
        raise NotFoundError(f"Product not found: {missing[0]}")

    total_kg, total_price = compute_totals(data.items)
    currency = (data.currency or settings.default_currency).strip().upper()
    attempts = max(settings.order_no_retries, 1)

    order: Optional[Order] = None
    for attempt in range(1, attempts + 1):
        try:
            seq = _next_order_seq(db)
            order = Order(
                order_no=format_order_no(datetime.utcnow().year, seq),
                customer_id=data.customer_id,
                total_kg=total_kg,
                total_price=total_price,
                currency=currency,
                notes=data.notes,
                status=OrderStatus.PENDING.value,
                created_by=actor.id,
                items=[
                    OrderItem(
                        product_id=it.product_id,
                        quantity=it.quantity,
                        price_per_kg=it.price_per_kg,
                        total_price=it.quantity * it.price_per_kg,
                    )
                    for it in data.items
                ],
            )
            db.add(order)
            db.commit()
            break
        except IntegrityError:
            db.rollback()
            log.warning("order_no_conflict", attempt=attempt)
            if attempt == attempts:
                raise UnexpectedError("Could not allocate an order number")

    log.info(
        "order_created",
        order_id=order.id,
        order_no=order.order_no,
        total_kg=total_kg,
        total_price=total_price,
        actor_id=actor.id,
    )
    return _order_query(db).populate_existing().filter(Order.id == order.id).one()


def list_orders(
    db: Session,
    actor: UserPayload,
    status: Optional[str] = None,
    page: Optional[str] = None,
    limit: Optional[str] = None,
) -> Tuple[List[Order], Pagination]:
    authorize(actor, Action.LIST_ORDERS)

    q = scope_orders(_order_query(db), db, actor)
    if status:
        q = q.filter(Order.status == status.strip().upper())
    q = q.order_by(Order.created_at.desc(), Order.id.desc())

    orders, pagination = paginate(q, page, limit)
    _attach_counts(db, orders)
    return orders, pagination


def get_order(db: Session, order_id: int, actor: UserPayload) -> Order:
    authorize(actor, Action.LIST_ORDERS)

    order = scope_orders(_order_query(db), db, actor).filter(Order.id == order_id).first()
    if not order:
        raise NotFoundError("Order not found")
    _attach_counts(db, [order])
    return order


def update_order_status(db: Session, order_id: int, status: str, actor: UserPayload) -> Order:
    authorize(actor, Action.UPDATE_ORDER_STATUS)

    try:
        target = OrderStatus((status or "").strip().upper())
    except ValueError:
        raise ValidationError(f"Invalid order status: {status}")

    order = db.get(Order, order_id)
    if not order:
        raise NotFoundError("Order not found")

    current = OrderStatus(order.status)
    if target not in STATUS_FLOW[current]:
        raise ValidationError(f"Cannot move order from {current.value} to {target.value}")

    order.status = target.value
    db.commit()

    log.info("order_status_changed", order_id=order.id, status=target.value, actor_id=actor.id)
    return _order_query(db).populate_existing().filter(Order.id == order.id).one()
