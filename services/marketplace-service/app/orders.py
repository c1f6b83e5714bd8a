import logging
from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, Query, Request

from shared.utils import SuccessResponse, NotFoundException
from shared.security_config import limiter

from app.checkout import create_order_from_cart
from app.dependencies import get_client, get_current_user, get_database, require_admin
from app.exceptions import InvalidStatusTransition
from app.helpers import UnitOfWork, str_to_oid, maybe_oid, product_view_by_id, profile_for, with_id
from app.models import OrderStatus, NotificationType, UserRole
from app.notifications import notify
from app.schemas import (
    OrderCreate, OrderResponse, OrderStatusUpdate, CheckoutResponse, CampaignResponse
)

logger = logging.getLogger("marketplace-service")

router = APIRouter(prefix="/orders", tags=["orders"])


async def order_view(db, order: dict, include_buyer: bool = False) -> OrderResponse:
    items = []
    for item in order["items"]:
        items.append({**item, "product": await product_view_by_id(db, item["product_id"])})

    group_buying = None
    campaign_oid = maybe_oid(order.get("group_buying_id"))
    if campaign_oid is not None:
        campaign = await db.group_buying.find_one({"_id": campaign_oid})
        if campaign:
            group_buying = CampaignResponse(**with_id(campaign))

    buyer = await profile_for(db, order["user_id"]) if include_buyer else None
    return OrderResponse(**{**with_id(order), "items": items}, group_buying=group_buying, buyer=buyer)


@router.post("", response_model=SuccessResponse[CheckoutResponse])
@limiter.limit("20/minute")
async def create_order(
    payload: OrderCreate,
    request: Request,
    user: dict = Depends(get_current_user),
    db=Depends(get_database),
    client=Depends(get_client),
):
    result = await create_order_from_cart(client, db, user["sub"], payload)
    return SuccessResponse(data=result, message="Order created successfully")


@router.get("", response_model=SuccessResponse[List[OrderResponse]])
async def list_my_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    user: dict = Depends(get_current_user),
    db=Depends(get_database),
):
    docs = await db.orders.find(
        {"user_id": user["sub"]}, sort=[("created_at", -1)], skip=(page - 1) * limit, limit=limit
    ).to_list(length=limit)
    return SuccessResponse(data=[await order_view(db, doc) for doc in docs])


@router.get("/all", response_model=SuccessResponse[List[OrderResponse]])
async def list_all_orders(
    status: OrderStatus = Query(None),
    admin: dict = Depends(require_admin),
    db=Depends(get_database),
):
    query = {"status": status.value} if status else {}
    docs = await db.orders.find(query, sort=[("created_at", -1)]).to_list(length=None)
    return SuccessResponse(data=[await order_view(db, doc, include_buyer=True) for doc in docs])


@router.get("/{order_id}", response_model=SuccessResponse[OrderResponse])
async def get_order(order_id: str, user: dict = Depends(get_current_user), db=Depends(get_database)):
    order = await db.orders.find_one({"_id": str_to_oid(order_id)})
    if not order:
        raise NotFoundException("Order not found")
    if order["user_id"] != user["sub"]:
        profile = await profile_for(db, user["sub"])
        if not profile or profile.get("role") != UserRole.ADMIN.value:
            # Someone else's order looks exactly like a missing one
            raise NotFoundException("Order not found")
    return SuccessResponse(data=await order_view(db, order))


@router.put("/{order_id}/status", response_model=SuccessResponse[OrderResponse])
async def update_order_status(
    order_id: str,
    status_update: OrderStatusUpdate,
    admin: dict = Depends(require_admin),
    db=Depends(get_database),
):
    oid = str_to_oid(order_id)
    order = await db.orders.find_one({"_id": oid})
    if not order:
        raise NotFoundException("Order not found")

    current = OrderStatus(order["status"])
    target = status_update.status
    if not current.can_transition_to(target):
        raise InvalidStatusTransition(current.value, target.value)

    # Filter on the status we checked so two admins cannot both advance it
    result = await db.orders.update_one(
        {"_id": oid, "status": current.value},
        {"$set": {"status": target.value, "updated_at": datetime.utcnow()}}
    )
    if result.modified_count == 0:
        raise InvalidStatusTransition(current.value, target.value)

    await notify(
        UnitOfWork(db),
        order["user_id"],
        NotificationType.ORDER_UPDATE,
        "Order Status Updated",
        f"Your order status has been updated to: {target.value}",
        related_id=order_id,
    )
    logger.info("Order status updated", extra={"order_id": order_id, "from": current.value, "to": target.value})

    updated = await db.orders.find_one({"_id": oid})
    return SuccessResponse(data=await order_view(db, updated))
