# app/schemas.py
"""
Request / response shapes.

Everything goes over the wire in camelCase (orderNo, pricePerKg, ...);
requests may also use the snake_case field names.
"""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# -------------------
# Requests
# -------------------
class LoginIn(ApiModel):
    email: Optional[str] = None
    password: Optional[str] = None


class CustomerIn(ApiModel):
    name: str = Field(min_length=1)
    email: EmailStr
    phone: Optional[str] = None
    company: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    language: Optional[str] = None


class SupplierIn(ApiModel):
    name: str = Field(min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None
    country: Optional[str] = None


class ProductIn(ApiModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    supplier_id: Optional[int] = None


class OrderItemIn(ApiModel):
    product_id: int
    quantity: float
    price_per_kg: float


class OrderIn(ApiModel):
    customer_id: int
    items: List[OrderItemIn] = Field(
        default_factory=list,
        validation_alias=AliasChoices("items", "orderItems", "order_items"),
    )
    currency: Optional[str] = None
    notes: Optional[str] = None


class StatusIn(ApiModel):
    status: str


class ShipmentIn(ApiModel):
    order_id: int
    container_no: Optional[str] = None
    vessel_name: Optional[str] = None
    port_of_loading: Optional[str] = None
    port_of_discharge: Optional[str] = None
    etd: Optional[datetime] = None
    eta: Optional[datetime] = None
    carrier: Optional[str] = None
    notes: Optional[str] = None


class DocumentIn(ApiModel):
    order_id: int
    type: str


# -------------------
# Responses
# -------------------
class Pagination(ApiModel):
    page: int
    limit: int
    total: int
    pages: int


class UserOut(ApiModel):
    id: int
    email: str
    name: str
    role: str
    language: str


class UserBrief(ApiModel):
    id: int
    name: str
    email: str


class CustomerOut(ApiModel):
    id: int
    name: str
    email: str
    phone: Optional[str] = None
    company: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    country: str
    language: str
    created_at: Optional[datetime] = None
    order_count: Optional[int] = None


class SupplierOut(ApiModel):
    id: int
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    country: str


class ProductOut(ApiModel):
    id: int
    name: str
    description: Optional[str] = None
    supplier_id: Optional[int] = None
    supplier: Optional[SupplierOut] = None


class OrderItemOut(ApiModel):
    id: int
    product_id: int
    product: Optional[ProductOut] = None
    quantity: float
    price_per_kg: float
    total_price: float


class OrderBrief(ApiModel):
    id: int
    order_no: str
    status: str
    customer: Optional[CustomerOut] = None


class OrderOut(ApiModel):
    id: int
    order_no: str
    customer_id: int
    customer: Optional[CustomerOut] = None
    items: List[OrderItemOut] = []
    total_kg: float
    total_price: float
    currency: str
    notes: Optional[str] = None
    status: str
    created_by: int
    creator: Optional[UserBrief] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    shipment_count: Optional[int] = None
    document_count: Optional[int] = None


class ShipmentOut(ApiModel):
    id: int
    order_id: int
    order: Optional[OrderBrief] = None
    container_no: Optional[str] = None
    vessel_name: Optional[str] = None
    port_of_loading: Optional[str] = None
    port_of_discharge: Optional[str] = None
    etd: Optional[datetime] = None
    eta: Optional[datetime] = None
    carrier: Optional[str] = None
    notes: Optional[str] = None
    status: str
    created_by: int
    creator: Optional[UserBrief] = None
    created_at: Optional[datetime] = None


class DocumentOut(ApiModel):
    id: int
    order_id: int
    order: Optional[OrderBrief] = None
    type: str
    file_name: str
    status: str
    created_by: int
    creator: Optional[UserBrief] = None
    generated_at: Optional[datetime] = None


class LoginOut(ApiModel):
    success: bool = True
    user: UserOut
    token: str


class CustomerList(ApiModel):
    customers: List[CustomerOut]
    pagination: Pagination


class SupplierList(ApiModel):
    suppliers: List[SupplierOut]
    pagination: Pagination


class SupplierCreated(ApiModel):
    success: bool = True
    supplier: SupplierOut


class ProductList(ApiModel):
    products: List[ProductOut]
    pagination: Pagination


class OrderList(ApiModel):
    orders: List[OrderOut]
    pagination: Pagination


class ShipmentList(ApiModel):
    shipments: List[ShipmentOut]
    pagination: Pagination


class DocumentList(ApiModel):
    documents: List[DocumentOut]
    pagination: Pagination


class CustomerCreated(ApiModel):
    success: bool = True
    customer: CustomerOut


class ProductCreated(ApiModel):
    success: bool = True
    product: ProductOut


class OrderCreated(ApiModel):
    success: bool = True
    order: OrderOut


class ShipmentCreated(ApiModel):
    success: bool = True
    shipment: ShipmentOut


class DocumentCreated(ApiModel):
    success: bool = True
    document: DocumentOut
    pdf_data: str


class DashboardStats(ApiModel):
    active_orders: int
    upcoming_shipments: int
    pending_documents: int
    total_revenue: float
