# app/main.py
from __future__ import annotations

from contextlib import asynccontextmanager

import structlog
from fastapi import Depends, FastAPI, Header, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from .auth import UserPayload, create_token, decode_token, validate_credentials
from .config import settings
from .db import get_db, init_db
from .errors import AppError, AuthenticationError, ValidationError
from .log import configure_logging
from .schemas import (
    CustomerCreated,
    CustomerIn,
    CustomerList,
    CustomerOut,
    DashboardStats,
    DocumentCreated,
    DocumentIn,
    DocumentList,
    DocumentOut,
    LoginIn,
    LoginOut,
    OrderCreated,
    OrderIn,
    OrderList,
    OrderOut,
    ProductCreated,
    ProductIn,
    ProductList,
    ProductOut,
    ShipmentCreated,
    ShipmentIn,
    ShipmentList,
    ShipmentOut,
    StatusIn,
    SupplierCreated,
    SupplierIn,
    SupplierList,
    SupplierOut,
    UserOut,
)
from .trade.customers import create_customer, list_customers
from .trade.documents import generate_document, list_documents, load_document_file, to_data_uri
from .trade.orders import create_order, get_order, list_orders, update_order_status
from .trade.products import create_product, create_supplier, list_products, list_suppliers
from .trade.shipments import create_shipment, list_shipments, update_shipment_status
from .trade.stats import dashboard_stats

configure_logging()
log = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    init_db()
    log.info("startup", database=settings.database_url.split("@")[-1], documents_dir=settings.documents_dir)
    yield


app = FastAPI(
    title="NAFRU Trade API",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# -------------------
# Errors -> {"error": message}
# -------------------
def _validation_message(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(x) for x in err.get("loc", ()) if x != "body")
        msg = err.get("msg", "invalid")
        parts.append(f"{loc}: {msg}" if loc else msg)
    return "; ".join(parts) or "Invalid request"


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        log.error("request_failed", path=request.url.path, error=exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"error": _validation_message(exc)})


@app.exception_handler(SQLAlchemyError)
async def db_error_handler(request: Request, exc: SQLAlchemyError):
    log.exception("database_error", path=request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    log.exception("unexpected_error", path=request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


# -------------------
# Helpers
# -------------------
def require_user(authorization: str | None = Header(default=None)) -> UserPayload:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise AuthenticationError("Authentication required")

    token = authorization.split(" ", 1)[1].strip()
    user = decode_token(token)
    if not user:
        raise AuthenticationError("Invalid token")
    return user


def _user_out(u: UserPayload) -> UserOut:
    return UserOut(id=u.id, email=u.email, name=u.name, role=u.role.value, language=u.language)


# -------------------
# Health
# -------------------
@app.get("/")
def root():
    return {"ok": True, "service": "nafru-trade-api"}


# -------------------
# Auth
# -------------------
@app.post("/api/auth/login", response_model=LoginOut)
def login(payload: LoginIn, db: Session = Depends(get_db)):
    if not payload.email or not payload.password:
        raise ValidationError("Email and password are required")

    user = validate_credentials(db, payload.email, payload.password)
    if not user:
        raise AuthenticationError("Invalid credentials")

    log.info("login", user_id=user.id, role=user.role.value)
    return LoginOut(user=_user_out(user), token=create_token(user))


@app.post("/api/auth/logout")
def logout():
    # tokens are stateless; the client just drops its copy
    return {"success": True, "message": "Logged out successfully"}


@app.get("/api/auth/me", response_model=UserOut)
def me(user: UserPayload = Depends(require_user)):
    return _user_out(user)


# -------------------
# Customers
# -------------------
@app.get("/api/customers", response_model=CustomerList)
def get_customers(
    page: str | None = None,
    limit: str | None = None,
    search: str | None = None,
    user: UserPayload = Depends(require_user),
    db: Session = Depends(get_db),
):
    customers, pagination = list_customers(db, user, search=search, page=page, limit=limit)
    return CustomerList(customers=[CustomerOut.model_validate(c) for c in customers], pagination=pagination)


@app.post("/api/customers", response_model=CustomerCreated)
def post_customer(payload: CustomerIn, user: UserPayload = Depends(require_user), db: Session = Depends(get_db)):
    c = create_customer(db, payload, user)
    return CustomerCreated(customer=CustomerOut.model_validate(c))


# -------------------
# Suppliers / products
# -------------------
@app.get("/api/suppliers", response_model=SupplierList)
def get_suppliers(
    page: str | None = None,
    limit: str | None = None,
    user: UserPayload = Depends(require_user),
    db: Session = Depends(get_db),
):
    suppliers, pagination = list_suppliers(db, user, page=page, limit=limit)
    return SupplierList(suppliers=[SupplierOut.model_validate(s) for s in suppliers], pagination=pagination)


@app.post("/api/suppliers", response_model=SupplierCreated)
def post_supplier(payload: SupplierIn, user: UserPayload = Depends(require_user), db: Session = Depends(get_db)):
    s = create_supplier(db, payload, user)
    return SupplierCreated(supplier=SupplierOut.model_validate(s))


@app.get("/api/products", response_model=ProductList)
def get_products(
    page: str | None = None,
    limit: str | None = None,
    search: str | None = None,
    user: UserPayload = Depends(require_user),
    db: Session = Depends(get_db),
):
    products, pagination = list_products(db, user, search=search, page=page, limit=limit)
    return ProductList(products=[ProductOut.model_validate(p) for p in products], pagination=pagination)


@app.post("/api/products", response_model=ProductCreated)
def post_product(payload: ProductIn, user: UserPayload = Depends(require_user), db: Session = Depends(get_db)):
    p = create_product(db, payload, user)
    return ProductCreated(product=ProductOut.model_validate(p))


# -------------------
# Orders
# -------------------
@app.get("/api/orders", response_model=OrderList)
def get_orders(
    page: str | None = None,
    limit: str | None = None,
    status: str | None = None,
    user: UserPayload = Depends(require_user),
    db: Session = Depends(get_db),
):
    orders, pagination = list_orders(db, user, status=status, page=page, limit=limit)
    return OrderList(orders=[OrderOut.model_validate(o) for o in orders], pagination=pagination)


@app.post("/api/orders", response_model=OrderCreated)
def post_order(payload: OrderIn, user: UserPayload = Depends(require_user), db: Session = Depends(get_db)):
    order = create_order(db, payload, user)
    return OrderCreated(order=OrderOut.model_validate(order))


@app.get("/api/orders/{order_id}", response_model=OrderOut)
def get_one_order(order_id: int, user: UserPayload = Depends(require_user), db: Session = Depends(get_db)):
    return OrderOut.model_validate(get_order(db, order_id, user))


@app.patch("/api/orders/{order_id}/status", response_model=OrderCreated)
def patch_order_status(
    order_id: int,
    payload: StatusIn,
    user: UserPayload = Depends(require_user),
    db: Session = Depends(get_db),
):
    order = update_order_status(db, order_id, payload.status, user)
    return OrderCreated(order=OrderOut.model_validate(order))


# -------------------
# Shipments
# -------------------
@app.get("/api/shipments", response_model=ShipmentList)
def get_shipments(
    page: str | None = None,
    limit: str | None = None,
    status: str | None = None,
    user: UserPayload = Depends(require_user),
    db: Session = Depends(get_db),
):
    shipments, pagination = list_shipments(db, user, status=status, page=page, limit=limit)
    return ShipmentList(shipments=[ShipmentOut.model_validate(s) for s in shipments], pagination=pagination)


@app.post("/api/shipments", response_model=ShipmentCreated)
def post_shipment(payload: ShipmentIn, user: UserPayload = Depends(require_user), db: Session = Depends(get_db)):
    s = create_shipment(db, payload, user)
    return ShipmentCreated(shipment=ShipmentOut.model_validate(s))


@app.patch("/api/shipments/{shipment_id}/status", response_model=ShipmentCreated)
def patch_shipment_status(
    shipment_id: int,
    payload: StatusIn,
    user: UserPayload = Depends(require_user),
    db: Session = Depends(get_db),
):
    s = update_shipment_status(db, shipment_id, payload.status, user)
    return ShipmentCreated(shipment=ShipmentOut.model_validate(s))


# -------------------
# Documents
# -------------------
@app.get("/api/documents", response_model=DocumentList)
def get_documents(
    page: str | None = None,
    limit: str | None = None,
    order_id: str | None = Query(default=None, alias="orderId"),
    user: UserPayload = Depends(require_user),
    db: Session = Depends(get_db),
):
    documents, pagination = list_documents(db, user, order_id=order_id, page=page, limit=limit)
    return DocumentList(documents=[DocumentOut.model_validate(d) for d in documents], pagination=pagination)


@app.post("/api/documents", response_model=DocumentCreated)
def post_document(payload: DocumentIn, user: UserPayload = Depends(require_user), db: Session = Depends(get_db)):
    doc, pdf = generate_document(db, payload.order_id, payload.type, user)
    return DocumentCreated(document=DocumentOut.model_validate(doc), pdf_data=to_data_uri(pdf))


@app.get("/api/documents/{document_id}/file")
def get_document_file(document_id: int, user: UserPayload = Depends(require_user), db: Session = Depends(get_db)):
    doc, pdf = load_document_file(db, document_id, user)
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{doc.file_name}"'},
    )


# -------------------
# Dashboard
# -------------------
@app.get("/api/dashboard/stats", response_model=DashboardStats)
def get_dashboard_stats(user: UserPayload = Depends(require_user), db: Session = Depends(get_db)):
    return dashboard_stats(db, user)
