from __future__ import annotations

from datetime import datetime

import pytest

from app.errors import AuthorizationError, NotFoundError, ValidationError
from app.models import Shipment, ShipmentStatus
from app.schemas import OrderIn, OrderItemIn, ShipmentIn
from app.trade.orders import create_order
from app.trade.shipments import create_shipment, list_shipments, update_shipment_status


@pytest.fixture
def order(db, team, customer, product):
    data = OrderIn(customer_id=customer.id, items=[OrderItemIn(product_id=product.id, quantity=100, price_per_kg=2)])
    return create_order(db, data, team)


def test_create_shipment(db, team, order):
    s = create_shipment(
        db,
        ShipmentIn(
            order_id=order.id,
            container_no="MSCU1234567",
            vessel_name="MSC Aurora",
            port_of_loading="Alexandria",
            port_of_discharge="Novorossiysk",
            etd="2025-03-01T08:00:00",
            carrier="MSC",
        ),
        team,
    )
    assert s.status == ShipmentStatus.PREPARING.value
    assert s.etd == datetime(2025, 3, 1, 8, 0)
    assert s.eta is None
    assert s.order.order_no == order.order_no
    assert s.order.customer.name == "Acme"
    assert s.created_by == team.id


def test_shipment_for_missing_order_is_not_found(db, team):
    with pytest.raises(NotFoundError):
        create_shipment(db, ShipmentIn(order_id=404), team)
    assert db.query(Shipment).count() == 0


def test_buyer_cannot_create_shipment(db, buyer, order):
    with pytest.raises(AuthorizationError):
        create_shipment(db, ShipmentIn(order_id=order.id), buyer)


def test_many_shipments_per_order_newest_first(db, team, order):
    first = create_shipment(db, ShipmentIn(order_id=order.id, container_no="A"), team)
    second = create_shipment(db, ShipmentIn(order_id=order.id, container_no="B"), team)
    rows, pagination = list_shipments(db, team)
    assert [r.id for r in rows] == [second.id, first.id]
    assert pagination.total == 2


def test_buyer_shipments_are_scoped_through_order(db, team, buyer, buyer_customer, order, product):
    mine = create_order(
        db,
        OrderIn(customer_id=buyer_customer.id, items=[OrderItemIn(product_id=product.id, quantity=5, price_per_kg=1)]),
        team,
    )
    create_shipment(db, ShipmentIn(order_id=order.id), team)
    own = create_shipment(db, ShipmentIn(order_id=mine.id), team)

    rows, pagination = list_shipments(db, buyer)
    assert [r.id for r in rows] == [own.id]
    assert pagination.total == 1


def test_status_update_and_filter(db, team, order):
    s = create_shipment(db, ShipmentIn(order_id=order.id), team)
    create_shipment(db, ShipmentIn(order_id=order.id), team)

    assert update_shipment_status(db, s.id, "loaded", team).status == "LOADED"
    rows, _ = list_shipments(db, team, status="LOADED")
    assert [r.id for r in rows] == [s.id]

    with pytest.raises(ValidationError):
        update_shipment_status(db, s.id, "SUNK", team)
    with pytest.raises(NotFoundError):
        update_shipment_status(db, 999, "LOADED", team)
