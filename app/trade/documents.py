# app/trade/documents.py
"""
Trade documents (invoice, certificates, packing list, bill of lading).

A document is rendered from the order as it stands at generation time, stored
under DOCUMENTS_DIR and recorded in the documents table. The record is never
rewritten; generating again produces a new file and a new row.
"""
from __future__ import annotations

import base64
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import structlog
from sqlalchemy.orm import Session, joinedload, selectinload

from ..auth import UserPayload
from ..config import settings
from ..errors import NotFoundError, ValidationError
from ..models import Document, DocumentStatus, DocumentType, Order, OrderItem
from ..permissions import Action, authorize, scope_orders
from ..schemas import Pagination
from .paging import paginate
from .render import Line, render_pdf

log = structlog.get_logger(__name__)

DOCUMENT_TITLES: Dict[DocumentType, str] = {
    DocumentType.COMMERCIAL_INVOICE: "Commercial Invoice",
    DocumentType.CERTIFICATE_OF_ORIGIN: "Certificate of Origin",
    DocumentType.PHYTOSANITARY_CERTIFICATE: "Phytosanitary Certificate",
    DocumentType.PACKING_LIST: "Packing List",
    DocumentType.BILL_OF_LADING: "Bill of Lading",
}

DOCUMENT_CLAUSES: Dict[DocumentType, List[str]] = {
    DocumentType.COMMERCIAL_INVOICE: [
        "Payment Terms: As per agreement",
        "Delivery Terms: FOB Alexandria Port",
    ],
    DocumentType.CERTIFICATE_OF_ORIGIN: [
        "Country of Origin: Egypt",
        "Certification: This is to certify that the goods described",
        "above are of Egyptian origin.",
    ],
    DocumentType.PHYTOSANITARY_CERTIFICATE: [
        "Plant Health Certificate",
        "The plants/products described above have been",
        "inspected and found free from quarantine pests.",
    ],
    DocumentType.PACKING_LIST: [
        "Packing Details:",
        "Packed in cartons suitable for export",
        "Net Weight: As specified above",
    ],
    DocumentType.BILL_OF_LADING: [
        "Vessel: TBD",
        "Port of Loading: Alexandria, Egypt",
        "Port of Discharge: As per destination",
    ],
}


def parse_document_type(raw: Optional[str]) -> DocumentType:
    try:
        return DocumentType((raw or "").strip().upper())
    except ValueError:
        raise ValidationError(f"Invalid document type: {raw}")


def fmt_number(v: float) -> str:
    v = float(v)
    if v.is_integer():
        return str(int(v))
    return f"{v:.3f}".rstrip("0").rstrip(".")


def build_lines(order: Order, doc_type: DocumentType) -> List[Line]:
    customer = order.customer
    created = order.created_at or datetime.utcnow()

    lines = [
        Line(settings.company_name, advance=30, size=20, bold=True),
        Line(settings.company_tagline),
        Line(settings.company_city),
        Line(DOCUMENT_TITLES[doc_type], advance=20, size=16, bold=True),
        Line(f"Order No: {order.order_no}", advance=20),
        Line(f"Date: {created.strftime('%Y-%m-%d')}"),
        Line(f"Customer: {customer.name}"),
        Line(f"Company: {customer.company or 'N/A'}"),
        Line(f"Country: {customer.country}"),
        Line("Order Items:", advance=20),
    ]

    for i, item in enumerate(order.items, start=1):
        name = item.product.name if item.product else f"Product #{item.product_id}"
        lines.append(
            Line(
                f"{i}. {name} - {fmt_number(item.quantity)}kg @ "
                f"{fmt_number(item.price_per_kg)} {order.currency}/kg",
                indent=25,
            )
        )

    lines.append(Line(f"Total Weight: {fmt_number(order.total_kg)} kg", advance=20))
    lines.append(Line(f"Total Amount: {fmt_number(order.total_price)} {order.currency}"))

    for n, text in enumerate(DOCUMENT_CLAUSES[doc_type]):
        lines.append(Line(text, advance=20 if n == 0 else 10))

    return lines


def make_file_name(doc_type: DocumentType, order_no: str, when: datetime) -> str:
    ms = int(when.replace(tzinfo=timezone.utc).timestamp() * 1000)
    return f"{doc_type.value}_{order_no}_{ms}.pdf"


def to_data_uri(pdf: bytes) -> str:
    return "data:application/pdf;base64," + base64.b64encode(pdf).decode("ascii")


def _documents_dir() -> Path:
    p = Path(settings.documents_dir).resolve()
    p.mkdir(parents=True, exist_ok=True)
    return p


def _write_new_file(out_dir: Path, kind: DocumentType, order_no: str, pdf: bytes) -> Tuple[Path, datetime]:
    """
    Store the PDF under a name no other file holds.

    The exclusive create reserves the name, so a concurrent generation in the
    same millisecond moves on to the next one instead of overwriting.
    """
    now = datetime.utcnow()
    while True:
        path = out_dir / make_file_name(kind, order_no, now)
        try:
            with open(path, "xb") as fh:
                fh.write(pdf)
            return path, now
        except FileExistsError:
            now += timedelta(milliseconds=1)


def _document_query(db: Session):
    return db.query(Document).options(
        joinedload(Document.order).joinedload(Order.customer),
        joinedload(Document.creator),
    )


def generate_document(db: Session, order_id: int, doc_type: str, actor: UserPayload) -> Tuple[Document, bytes]:
    authorize(actor, Action.GENERATE_DOCUMENT)
    kind = parse_document_type(doc_type)

    order = (
        db.query(Order)
        .options(joinedload(Order.customer), selectinload(Order.items).joinedload(OrderItem.product))
        .filter(Order.id == order_id)
        .first()
    )
    if not order:
        raise NotFoundError("Order not found")

    pdf = render_pdf(build_lines(order, kind), title=f"{DOCUMENT_TITLES[kind]} {order.order_no}")

    path, now = _write_new_file(_documents_dir(), kind, order.order_no, pdf)
    file_name = path.name

    doc = Document(
        order_id=order.id,
        type=kind.value,
        file_name=file_name,
        status=DocumentStatus.GENERATED.value,
        created_by=actor.id,
        generated_at=now,
    )
    db.add(doc)
    try:
        db.commit()
    except Exception:
        db.rollback()
        path.unlink(missing_ok=True)
        raise

    log.info(
        "document_generated",
        document_id=doc.id,
        order_no=order.order_no,
        type=kind.value,
        size=len(pdf),
        actor_id=actor.id,
    )
    return _document_query(db).populate_existing().filter(Document.id == doc.id).one(), pdf


def list_documents(
    db: Session,
    actor: UserPayload,
    order_id: Optional[str] = None,
    page: Optional[str] = None,
    limit: Optional[str] = None,
) -> Tuple[List[Document], Pagination]:
    authorize(actor, Action.LIST_DOCUMENTS)

    q = scope_orders(_document_query(db).join(Order, Document.order_id == Order.id), db, actor)
    if order_id:
        try:
            q = q.filter(Document.order_id == int(order_id))
        except ValueError:
            raise ValidationError("Invalid order ID")
    q = q.order_by(Document.generated_at.desc(), Document.id.desc())
    return paginate(q, page, limit)


def load_document_file(db: Session, document_id: int, actor: UserPayload) -> Tuple[Document, bytes]:
    authorize(actor, Action.DOWNLOAD_DOCUMENT)

    doc = (
        scope_orders(_document_query(db).join(Order, Document.order_id == Order.id), db, actor)
        .filter(Document.id == document_id)
        .first()
    )
    if not doc:
        raise NotFoundError("Document not found")

    path = Path(settings.documents_dir).resolve() / doc.file_name
    if not path.is_file():
        raise NotFoundError("Document file not found")
    return doc, path.read_bytes()
