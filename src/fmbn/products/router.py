"""Digital product catalogue, purchase and download endpoints."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, Query
from fastapi.responses import PlainTextResponse

from fmbn.db.models import DigitalProduct, DigitalProductPurchase, User
from fmbn.dependencies import get_current_user, get_storage
from fmbn.errors import EntitlementError, NotFoundError, ValidationError
from fmbn.products.schemas import (
    ProductResponse,
    PurchaseRequest,
    PurchaseResponse,
    PurchaseResult,
    PurchaseWithProduct,
)
from fmbn.storage import Storage
from fmbn.storage.base import utcnow

logger = structlog.get_logger()

router = APIRouter(prefix="/api", tags=["Products"])


def _download_body(product: DigitalProduct, purchase: DigitalProductPurchase) -> str:
    return (
        f"# {product.title}\n\n"
        f"This is a sample {product.category} template from FindMyBizName.\n\n"
        f"## What's Included:\n{product.description}\n\n"
        "## File Details:\n"
        f"- Product: {product.title}\n"
        f"- Category: {product.category}\n"
        f"- Purchase Date: {purchase.created_at.isoformat()}\n"
        f"- Download Count: {purchase.download_count}\n\n"
        "## Next Steps:\n"
        "1. Customize this template for your business\n"
        "2. Replace placeholder content with your information\n"
        "3. Save and use for your business needs\n"
    )


@router.get("/digital-products", response_model=list[ProductResponse])
async def list_products(
    storage: Storage = Depends(get_storage),  # noqa: B008
) -> list[ProductResponse]:
    return [ProductResponse.model_validate(p) for p in await storage.get_all_digital_products()]


@router.post("/digital-products/{product_id}/purchase", response_model=PurchaseResult)
async def purchase_product(
    product_id: int,
    body: PurchaseRequest | None = None,
    user: User = Depends(get_current_user),  # noqa: B008
    storage: Storage = Depends(get_storage),  # noqa: B008
) -> PurchaseResult:
    body = body or PurchaseRequest()
    product = await storage.get_digital_product(product_id)
    if product is None:
        raise NotFoundError("Product not found")
    if await storage.get_purchase(user.id, product_id):
        raise ValidationError("Product already purchased")

    purchase = await storage.create_purchase(
        user.id,
        product_id,
        purchase_price=product.price,
        payment_method=body.payment_method,
        payment_id=body.payment_id or f"demo_{int(utcnow().timestamp() * 1000)}",
    )
    logger.info("product_purchased", user_id=user.id, product_id=product_id, purchase_id=purchase.id)
    return PurchaseResult(
        message="Purchase successful",
        purchase=PurchaseResponse.model_validate(purchase),
        download_url=f"/api/digital-products/{product_id}/download?purchaseId={purchase.id}",
    )


@router.get("/digital-products/{product_id}/download", response_class=PlainTextResponse)
async def download_product(
    product_id: int,
    purchase_id: int | None = Query(None, alias="purchaseId"),
    user: User = Depends(get_current_user),  # noqa: B008
    storage: Storage = Depends(get_storage),  # noqa: B008
) -> PlainTextResponse:
    """Only the buyer, quoting their own purchase id, may download."""
    purchase = await storage.get_purchase(user.id, product_id)
    if purchase is None or purchase.id != purchase_id:
        raise EntitlementError("Access denied - purchase required")
    product = await storage.get_digital_product(product_id)
    if product is None:
        raise NotFoundError("Product not found")

    purchase = await storage.increment_download_count(purchase.id)
    return PlainTextResponse(
        _download_body(product, purchase),
        headers={"Content-Disposition": f'attachment; filename="{product.file_name}"'},
    )


@router.get("/user/purchases", response_model=list[PurchaseWithProduct])
async def list_purchases(
    user: User = Depends(get_current_user),  # noqa: B008
    storage: Storage = Depends(get_storage),  # noqa: B008
) -> list[PurchaseWithProduct]:
    result = []
    for purchase in await storage.get_user_purchases(user.id):
        product = await storage.get_digital_product(purchase.product_id)
        result.append(
            PurchaseWithProduct(
                **PurchaseResponse.model_validate(purchase).model_dump(),
                product=ProductResponse.model_validate(product) if product else None,
            )
        )
    return result
