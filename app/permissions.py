# app/permissions.py
"""
Role-based access control.

One table decides which role may perform which action. Services call
`authorize()` once at the top of every operation; nothing else in the code
base compares roles for access decisions.

BUYER accounts are also *scoped*: they only see the orders (and the
shipments/documents/stats hanging off those orders) of the Customer whose
email equals their login email.
"""
from __future__ import annotations

from enum import Enum
from typing import Dict, FrozenSet

from sqlalchemy import false, func
from sqlalchemy.orm import Query, Session

from .auth import UserPayload
from .errors import AuthorizationError
from .models import Customer, Order, Role


class Action(str, Enum):
    LIST_CUSTOMERS = "list_customers"
    CREATE_CUSTOMER = "create_customer"
    LIST_PRODUCTS = "list_products"
    CREATE_PRODUCT = "create_product"
    LIST_SUPPLIERS = "list_suppliers"
    CREATE_SUPPLIER = "create_supplier"
    LIST_ORDERS = "list_orders"
    CREATE_ORDER = "create_order"
    UPDATE_ORDER_STATUS = "update_order_status"
    LIST_SHIPMENTS = "list_shipments"
    CREATE_SHIPMENT = "create_shipment"
    UPDATE_SHIPMENT_STATUS = "update_shipment_status"
    LIST_DOCUMENTS = "list_documents"
    GENERATE_DOCUMENT = "generate_document"
    DOWNLOAD_DOCUMENT = "download_document"
    VIEW_DASHBOARD = "view_dashboard"


_STAFF: FrozenSet[Role] = frozenset({Role.ADMIN, Role.TEAM})
_EVERYONE: FrozenSet[Role] = frozenset(Role)

PERMISSIONS: Dict[Action, FrozenSet[Role]] = {
    Action.LIST_CUSTOMERS: _EVERYONE,
    Action.CREATE_CUSTOMER: _STAFF,
    Action.LIST_PRODUCTS: _EVERYONE,
    Action.CREATE_PRODUCT: _STAFF,
    Action.LIST_SUPPLIERS: _STAFF,
    Action.CREATE_SUPPLIER: _STAFF,
    Action.LIST_ORDERS: _EVERYONE,
    Action.CREATE_ORDER: _STAFF,
    Action.UPDATE_ORDER_STATUS: _STAFF,
    Action.LIST_SHIPMENTS: _EVERYONE,
    Action.CREATE_SHIPMENT: _STAFF,
    Action.UPDATE_SHIPMENT_STATUS: _STAFF,
    Action.LIST_DOCUMENTS: _EVERYONE,
    Action.GENERATE_DOCUMENT: _STAFF,
    Action.DOWNLOAD_DOCUMENT: _EVERYONE,
    Action.VIEW_DASHBOARD: _EVERYONE,
}


def can_perform(role: Role | str, action: Action) -> bool:
    try:
        r = Role(role)
    except ValueError:
        return False
    return r in PERMISSIONS.get(action, frozenset())


def authorize(actor: UserPayload, action: Action) -> None:
    if not can_perform(actor.role, action):
        raise AuthorizationError()


# -------------------
# BUYER scoping
# -------------------
class _Unscoped:
    def __repr__(self) -> str:
        return "UNSCOPED"


UNSCOPED = _Unscoped()


def buyer_customer_id(db: Session, actor: UserPayload):
    """
    UNSCOPED for non-buyers. For a buyer: the id of their Customer record,
    or None when no customer carries their email (they then see nothing).
    """
    if Role(actor.role) != Role.BUYER:
        return UNSCOPED
    customer = db.query(Customer).filter(func.lower(Customer.email) == actor.email.strip().lower()).first()
    return customer.id if customer else None


def scope_orders(q: Query, db: Session, actor: UserPayload) -> Query:
    """Restrict a query that already involves `Order` to what the actor may see."""
    cid = buyer_customer_id(db, actor)
    if cid is UNSCOPED:
        return q
    if cid is None:
        return q.filter(false())
    return q.filter(Order.customer_id == cid)
