# app/trade/products.py
from __future__ import annotations

from typing import List, Optional, Tuple

import structlog
from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from ..auth import UserPayload
from ..errors import NotFoundError
from ..models import Product, Supplier
from ..permissions import Action, authorize
from ..schemas import Pagination, ProductIn, SupplierIn
from .paging import paginate

log = structlog.get_logger(__name__)


def list_products(
    db: Session,
    actor: UserPayload,
    search: Optional[str] = None,
    page: Optional[str] = None,
    limit: Optional[str] = None,
) -> Tuple[List[Product], Pagination]:
    authorize(actor, Action.LIST_PRODUCTS)

    q = db.query(Product).options(joinedload(Product.supplier))
    term = (search or "").strip()
    if term:
        q = q.filter(func.lower(Product.name).contains(term.lower(), autoescape=True))
    q = q.order_by(Product.created_at.desc(), Product.id.desc())
    return paginate(q, page, limit)


def create_product(db: Session, data: ProductIn, actor: UserPayload) -> Product:
    authorize(actor, Action.CREATE_PRODUCT)

    if data.supplier_id is not None and db.get(Supplier, data.supplier_id) is None:
        raise NotFoundError("Supplier not found")

    p = Product(name=data.name.strip(), description=data.description, supplier_id=data.supplier_id)
    db.add(p)
    db.commit()
    db.refresh(p)

    log.info("product_created", product_id=p.id, actor_id=actor.id)
    return p


def list_suppliers(
    db: Session,
    actor: UserPayload,
    page: Optional[str] = None,
    limit: Optional[str] = None,
) -> Tuple[List[Supplier], Pagination]:
    authorize(actor, Action.LIST_SUPPLIERS)
    q = db.query(Supplier).order_by(Supplier.created_at.desc(), Supplier.id.desc())
    return paginate(q, page, limit)


def create_supplier(db: Session, data: SupplierIn, actor: UserPayload) -> Supplier:
    authorize(actor, Action.CREATE_SUPPLIER)

    s = Supplier(name=data.name.strip(), email=data.email, phone=data.phone, country=data.country or "Egypt")
    db.add(s)
    db.commit()
    db.refresh(s)

    log.info("supplier_created", supplier_id=s.id, actor_id=actor.id)
    return s
