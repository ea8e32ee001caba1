# app/trade/customers.py
from __future__ import annotations

from typing import List, Optional, Tuple

import structlog
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..auth import UserPayload
from ..config import settings
from ..errors import ConflictError
from ..models import Customer, Order
from ..permissions import Action, authorize
from ..schemas import CustomerIn, Pagination
from .paging import paginate

log = structlog.get_logger(__name__)


def _normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def list_customers(
    db: Session,
    actor: UserPayload,
    search: Optional[str] = None,
    page: Optional[str] = None,
    limit: Optional[str] = None,
) -> Tuple[List[Customer], Pagination]:
    authorize(actor, Action.LIST_CUSTOMERS)

    q = db.query(Customer)
    term = (search or "").strip()
    if term:
        needle = term.lower()
        q = q.filter(
            or_(
                func.lower(Customer.name).contains(needle, autoescape=True),
                func.lower(Customer.email).contains(needle, autoescape=True),
                func.lower(func.coalesce(Customer.company, "")).contains(needle, autoescape=True),
            )
        )
    q = q.order_by(Customer.created_at.desc(), Customer.id.desc())

    customers, pagination = paginate(q, page, limit)

    if customers:
        counts = dict(
            db.query(Order.customer_id, func.count(Order.id))
            .filter(Order.customer_id.in_([c.id for c in customers]))
            .group_by(Order.customer_id)
            .all()
        )
        for c in customers:
            c.order_count = counts.get(c.id, 0)

    return customers, pagination


def create_customer(db: Session, data: CustomerIn, actor: UserPayload) -> Customer:
    authorize(actor, Action.CREATE_CUSTOMER)

    email = _normalize_email(str(data.email))
    if db.query(Customer).filter(Customer.email == email).first():
        raise ConflictError("Customer with this email already exists")

    c = Customer(
        name=data.name.strip(),
        email=email,
        phone=data.phone,
        company=data.company,
        address=data.address,
        city=data.city,
        country=data.country or settings.default_customer_country,
        language=data.language or settings.default_customer_language,
    )
    db.add(c)
    try:
        db.commit()
    except IntegrityError:
        # lost a race against another insert of the same email
        db.rollback()
        raise ConflictError("Customer with this email already exists")
    db.refresh(c)

    log.info("customer_created", customer_id=c.id, actor_id=actor.id)
    return c
