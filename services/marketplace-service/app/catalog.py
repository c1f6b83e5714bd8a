import logging
from datetime import datetime
from typing import Optional, List

from fastapi import APIRouter, Depends, Query, Request

from shared.utils import SuccessResponse, NotFoundException
from shared.security_config import limiter

from app.dependencies import get_database, require_admin
from app.exceptions import InsufficientStock, InvalidFarmer
from app.helpers import str_to_oid, maybe_oid, product_view
from app.models import ProductDB
from app.schemas import (
    ProductCreate, ProductUpdate, ProductResponse, ProductListResponse, StockAdjustment
)

logger = logging.getLogger("marketplace-service")

router = APIRouter(tags=["catalog"])

LISTABLE = {"is_active": True, "stock_quantity": {"$gt": 0}}


@router.get("/products", response_model=SuccessResponse[ProductListResponse])
@limiter.limit("60/minute")
async def list_products(
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    category: Optional[str] = None,
    condition_grade: Optional[str] = None,
    db=Depends(get_database),
):
    query = dict(LISTABLE)
    if category:
        query["category"] = category
    if condition_grade:
        query["condition_grade"] = condition_grade

    skip = (page - 1) * limit
    total = await db.products.count_documents(query)
    docs = await db.products.find(query, sort=[("_id", -1)], skip=skip, limit=limit).to_list(length=limit)

    products = [ProductResponse(**await product_view(db, doc)) for doc in docs]
    return SuccessResponse(data=ProductListResponse(products=products, total=total, page=page, limit=limit))


@router.get("/products/{product_id}", response_model=SuccessResponse[ProductResponse])
async def get_product(product_id: str, db=Depends(get_database)):
    product = await db.products.find_one({"_id": str_to_oid(product_id)})
    if not product:
        raise NotFoundException("Product not found")
    return SuccessResponse(data=ProductResponse(**await product_view(db, product)))


@router.get("/farmers/{farmer_id}/products", response_model=SuccessResponse[List[ProductResponse]])
async def list_farmer_products(farmer_id: str, db=Depends(get_database)):
    docs = await db.products.find({"farmer_id": farmer_id, "is_active": True}).to_list(length=None)
    return SuccessResponse(data=[
        ProductResponse(**await product_view(db, doc, include_farmer=False)) for doc in docs
    ])


@router.get("/categories", response_model=SuccessResponse[List[str]])
async def list_categories(db=Depends(get_database)):
    categories = await db.products.distinct("category", {"is_active": True})
    return SuccessResponse(data=sorted(categories))


@router.get("/condition-grades", response_model=SuccessResponse[List[str]])
async def list_condition_grades(db=Depends(get_database)):
    grades = await db.products.distinct("condition_grade", {"is_active": True})
    return SuccessResponse(data=sorted(grades))


@router.post("/products", response_model=SuccessResponse[ProductResponse])
async def create_product(product: ProductCreate, admin: dict = Depends(require_admin), db=Depends(get_database)):
    farmer_oid = maybe_oid(product.farmer_id)
    if farmer_oid is None or not await db.farmers.find_one({"_id": farmer_oid}):
        raise InvalidFarmer(product.farmer_id)

    product_db = ProductDB(**product.dict())
    new_product = await db.products.insert_one(product_db.dict(by_alias=True, exclude={"id"}))
    created = await db.products.find_one({"_id": new_product.inserted_id})

    logger.info("Product created", extra={"product_id": str(new_product.inserted_id), "farmer_id": product.farmer_id})
    return SuccessResponse(data=ProductResponse(**await product_view(db, created)), message="Product created successfully")


@router.put("/products/{product_id}", response_model=SuccessResponse[ProductResponse])
async def update_product(
    product_id: str,
    product_update: ProductUpdate,
    admin: dict = Depends(require_admin),
    db=Depends(get_database),
):
    oid = str_to_oid(product_id)
    if not await db.products.find_one({"_id": oid}):
        raise NotFoundException("Product not found")

    update_data = {k: v for k, v in product_update.dict().items() if v is not None}
    if update_data:
        update_data["updated_at"] = datetime.utcnow()
        await db.products.update_one({"_id": oid}, {"$set": update_data})

    updated = await db.products.find_one({"_id": oid})
    return SuccessResponse(data=ProductResponse(**await product_view(db, updated)), message="Product updated successfully")


@router.delete("/products/{product_id}", response_model=SuccessResponse[dict])
async def deactivate_product(product_id: str, admin: dict = Depends(require_admin), db=Depends(get_database)):
    # Products are never deleted: orders keep pointing at them
    result = await db.products.update_one(
        {"_id": str_to_oid(product_id)},
        {"$set": {"is_active": False, "updated_at": datetime.utcnow()}}
    )
    if result.matched_count == 0:
        raise NotFoundException("Product not found")
    return SuccessResponse(data={"id": product_id}, message="Product deactivated")


@router.post("/products/{product_id}/stock", response_model=SuccessResponse[ProductResponse])
async def adjust_stock(
    product_id: str,
    adjustment: StockAdjustment,
    admin: dict = Depends(require_admin),
    db=Depends(get_database),
):
    oid = str_to_oid(product_id)
    product = await db.products.find_one({"_id": oid})
    if not product:
        raise NotFoundException("Product not found")

    query = {"_id": oid}
    if adjustment.quantity_change < 0:
        query["stock_quantity"] = {"$gte": -adjustment.quantity_change}
    result = await db.products.update_one(
        query,
        {"$inc": {"stock_quantity": adjustment.quantity_change}, "$set": {"updated_at": datetime.utcnow()}}
    )
    if result.modified_count == 0:
        raise InsufficientStock(product["name"])

    updated = await db.products.find_one({"_id": oid})
    return SuccessResponse(data=ProductResponse(**await product_view(db, updated)))
