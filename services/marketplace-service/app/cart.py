from datetime import datetime

from fastapi import APIRouter, Depends

from shared.utils import SuccessResponse, NotFoundException

from app.dependencies import get_current_user, get_database
from app.exceptions import ProductUnavailable
from app.helpers import str_to_oid, product_view_by_id, with_id
from app.schemas import CartItemAdd, CartItemUpdate, CartItemResponse, CartResponse

router = APIRouter(prefix="/cart", tags=["cart"])


async def build_cart(db, user_id: str) -> CartResponse:
    lines = await db.cart_items.find({"user_id": user_id}, sort=[("added_at", 1)]).to_list(length=None)

    items = []
    total = 0.0
    for line in lines:
        product = await product_view_by_id(db, line["product_id"])
        # Lines pointing at products that no longer exist are hidden
        if not product:
            continue
        total += product["price"] * line["quantity"]
        items.append(CartItemResponse(**with_id(line), product=product))

    return CartResponse(user_id=user_id, items=items, total=total)


async def owned_line(db, user_id: str, cart_item_id: str) -> dict:
    line = await db.cart_items.find_one({"_id": str_to_oid(cart_item_id)})
    if not line or line["user_id"] != user_id:
        raise NotFoundException("Cart item not found")
    return line


@router.get("", response_model=SuccessResponse[CartResponse])
async def get_cart(user: dict = Depends(get_current_user), db=Depends(get_database)):
    return SuccessResponse(data=await build_cart(db, user["sub"]))


@router.post("/items", response_model=SuccessResponse[CartResponse])
async def add_to_cart(item: CartItemAdd, user: dict = Depends(get_current_user), db=Depends(get_database)):
    user_id = user["sub"]
    product = await db.products.find_one({"_id": str_to_oid(item.product_id)})
    if not product:
        raise NotFoundException("Product not found")
    if not product.get("is_active"):
        raise ProductUnavailable(product["name"])

    # One line per product: adding again raises the quantity
    await db.cart_items.update_one(
        {"user_id": user_id, "product_id": item.product_id},
        {"$inc": {"quantity": item.quantity}, "$setOnInsert": {"added_at": datetime.utcnow()}},
        upsert=True
    )

    return SuccessResponse(data=await build_cart(db, user_id), message="Added to cart")


@router.put("/items/{cart_item_id}", response_model=SuccessResponse[CartResponse])
async def update_cart_item(
    cart_item_id: str,
    update: CartItemUpdate,
    user: dict = Depends(get_current_user),
    db=Depends(get_database),
):
    line = await owned_line(db, user["sub"], cart_item_id)
    if update.quantity <= 0:
        await db.cart_items.delete_one({"_id": line["_id"]})
    else:
        await db.cart_items.update_one(
            {"_id": line["_id"]},
            {"$set": {"quantity": update.quantity, "updated_at": datetime.utcnow()}}
        )
    return SuccessResponse(data=await build_cart(db, user["sub"]))


@router.delete("/items/{cart_item_id}", response_model=SuccessResponse[CartResponse])
async def remove_cart_item(cart_item_id: str, user: dict = Depends(get_current_user), db=Depends(get_database)):
    line = await owned_line(db, user["sub"], cart_item_id)
    await db.cart_items.delete_one({"_id": line["_id"]})
    return SuccessResponse(data=await build_cart(db, user["sub"]))


@router.delete("", response_model=SuccessResponse[dict])
async def clear_cart(user: dict = Depends(get_current_user), db=Depends(get_database)):
    result = await db.cart_items.delete_many({"user_id": user["sub"]})
    return SuccessResponse(data={"removed": result.deleted_count}, message="Cart cleared")
