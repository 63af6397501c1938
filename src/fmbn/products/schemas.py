"""Schemas for the digital product marketplace. Prices are in cents."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field

from fmbn.schemas import CamelModel


class ProductResponse(CamelModel):
    id: int
    title: str
    description: str
    price: int
    category: str
    file_name: str
    file_size: int
    download_count: int
    is_active: bool
    created_at: datetime


class PurchaseRequest(CamelModel):
    payment_method: str = Field("demo", max_length=50)
    payment_id: str | None = Field(None, max_length=128)


class PurchaseResponse(CamelModel):
    id: int
    user_id: int
    product_id: int
    purchase_price: int
    payment_method: str
    payment_id: str | None
    download_count: int
    last_download_at: datetime | None
    created_at: datetime


class PurchaseResult(CamelModel):
    message: str
    purchase: PurchaseResponse
    download_url: str


class PurchaseWithProduct(PurchaseResponse):
    product: ProductResponse | None = None
