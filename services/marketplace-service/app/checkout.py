"""Checkout and group-buying settlement.

Turns the caller's cart into an order in one pass:
validate cart -> price lines -> take stock, write order, clear cart ->
profile ledger -> campaign settlement.

With ``MONGO_TRANSACTIONS`` on, the whole pass runs inside a single
multi-document transaction (retried by the driver on write conflicts), so a
failure at any step leaves nothing behind. Shared counters are additionally
updated with single-document atomic operations (conditional ``$inc`` for
stock, ``$inc`` for campaign totals, a filtered ``$set`` for the status
latch), so concurrent checkouts never oversell or lose a campaign update even
on a deployment without transactions.
"""
import logging
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from bson import ObjectId
from pymongo import ReturnDocument

from shared.utils import settings

from app.exceptions import (
    EmptyCart, ProductUnavailable, InsufficientStock, ProfileNotFound, CampaignNotFound
)
from app.helpers import UnitOfWork, maybe_oid
from app.impact import ImpactEstimate, estimate_for_quantities, money_saved, sustainability_points
from app.models import (
    OrderDB, OrderItemDB, ImpactSnapshot, ImpactMetricDB, CampaignStatus, NotificationType
)
from app.notifications import notify
from app.schemas import CheckoutResponse, OrderCreate

logger = logging.getLogger("marketplace-service")


# --- Cart reader / catalog validator ---

async def read_cart(uow: UnitOfWork, user_id: str) -> List[dict]:
    cursor = uow.db.cart_items.find({"user_id": user_id}, sort=[("added_at", 1)], **uow.opts)
    return await cursor.to_list(length=None)


async def validate_cart(uow: UnitOfWork, cart_items: List[dict]) -> List[Tuple[dict, dict]]:
    """Check every line before anything is written; returns (line, product) pairs."""
    validated = []
    for line in cart_items:
        oid = maybe_oid(line["product_id"])
        product = await uow.db.products.find_one({"_id": oid}, **uow.opts) if oid else None
        if not product or not product.get("is_active") or product.get("stock_quantity", 0) < line["quantity"]:
            raise ProductUnavailable(product["name"] if product else "unknown")
        validated.append((line, product))
    return validated


# --- Pricing ---

def find_offer(campaign: Optional[dict], product_id: str) -> Optional[dict]:
    if not campaign:
        return None
    for offer in campaign.get("product_offers", []):
        if offer["product_id"] == product_id:
            return offer
    return None


def resolve_unit_price(product: dict, campaign: Optional[dict]) -> float:
    price = product["price"]
    offer = find_offer(campaign, str(product["_id"]))
    if offer:
        # No floor: an offer over 100% produces a negative price
        price = price * (1 - offer["discount_percentage"] / 100)
    return price


def price_lines(validated: List[Tuple[dict, dict]], campaign: Optional[dict]) -> List[OrderItemDB]:
    return [
        OrderItemDB(
            product_id=str(product["_id"]),
            quantity=line["quantity"],
            price_at_purchase=resolve_unit_price(product, campaign),
        )
        for line, product in validated
    ]


def order_total(items: List[OrderItemDB]) -> float:
    total = 0.0
    for item in items:
        total += item.price_at_purchase * item.quantity
    return total


# --- Order writer ---

async def restore_stock(uow: UnitOfWork, items: List[OrderItemDB]) -> None:
    for item in items:
        await uow.db.products.update_one(
            {"_id": ObjectId(item.product_id)},
            {"$inc": {"stock_quantity": item.quantity}},
            **uow.opts,
        )


async def take_stock(uow: UnitOfWork, items: List[OrderItemDB], names: Dict[str, str]) -> None:
    """Decrement stock line by line; a line that no longer fits fails the whole checkout."""
    taken = []
    for item in items:
        result = await uow.db.products.update_one(
            {
                "_id": ObjectId(item.product_id),
                "is_active": True,
                "stock_quantity": {"$gte": item.quantity},
            },
            {"$inc": {"stock_quantity": -item.quantity}, "$set": {"updated_at": datetime.utcnow()}},
            **uow.opts,
        )
        if result.modified_count == 0:
            logger.warning("Stock conflict at checkout", extra={
                "product_id": item.product_id,
                "quantity": item.quantity,
            })
            # Inside a transaction the abort undoes what was taken
            if not uow.transactional:
                await restore_stock(uow, taken)
            raise InsufficientStock(names.get(item.product_id, "unknown"))
        taken.append(item)


async def write_order(
    uow: UnitOfWork,
    user_id: str,
    payload: OrderCreate,
    cart_items: List[dict],
    items: List[OrderItemDB],
    impact: ImpactEstimate,
    names: Dict[str, str],
) -> Tuple[str, float]:
    total_amount = order_total(items)
    await take_stock(uow, items, names)

    order = OrderDB(
        user_id=user_id,
        items=items,
        total_amount=total_amount,
        delivery_address=payload.delivery_address,
        delivery_method=payload.delivery_method,
        group_buying_id=payload.group_buying_id,
        notes=payload.notes,
        impact_snapshot=ImpactSnapshot(**impact.dict()),
    )
    inserted = await uow.db.orders.insert_one(order.dict(by_alias=True, exclude={"id"}), **uow.opts)

    # Only the lines that were priced; anything added meanwhile stays in the cart
    await uow.db.cart_items.delete_many(
        {"_id": {"$in": [line["_id"] for line in cart_items]}},
        **uow.opts,
    )
    return str(inserted.inserted_id), total_amount


# --- Profile ledger ---

async def record_impact(
    uow: UnitOfWork,
    user_id: str,
    order_id: str,
    total_amount: float,
    impact: ImpactEstimate,
    campaign_id: Optional[str],
) -> None:
    updated = await uow.db.user_profiles.update_one(
        {"user_id": user_id},
        {"$inc": {
            "total_waste_prevented": impact.waste_prevented,
            "sustainability_score": sustainability_points(impact.waste_prevented),
        }},
        **uow.opts,
    )
    if updated.matched_count == 0:
        raise ProfileNotFound()

    entry = ImpactMetricDB(
        user_id=user_id,
        order_id=order_id,
        waste_prevented=impact.waste_prevented,
        carbon_saved=impact.carbon_saved,
        money_saved=money_saved(total_amount),
        orders_completed=1,
        group_orders_participated=1 if campaign_id else 0,
    )
    await uow.db.impact_metrics.insert_one(entry.dict(by_alias=True, exclude={"id"}), **uow.opts)


# --- Campaign settlement ---

async def settle_campaign(uow: UnitOfWork, campaign_id: str, amount: float) -> bool:
    """Fold `amount` and one participant into the campaign.

    Returns True when this settlement moved the campaign to target_reached.
    """
    oid = maybe_oid(campaign_id)
    campaign = None
    if oid is not None:
        campaign = await uow.db.group_buying.find_one_and_update(
            {"_id": oid},
            {"$inc": {"current_amount": amount, "participant_count": 1}},
            return_document=ReturnDocument.AFTER,
            **uow.opts,
        )
    if campaign is None:
        raise CampaignNotFound()

    if campaign["current_amount"] < campaign["target_amount"]:
        return False
    if not CampaignStatus(campaign["status"]).can_transition_to(CampaignStatus.TARGET_REACHED):
        return False

    # One-way latch; only the settlement that flips it reports it
    latched = await uow.db.group_buying.update_one(
        {"_id": oid, "status": CampaignStatus.ACTIVE.value},
        {"$set": {"status": CampaignStatus.TARGET_REACHED.value}},
        **uow.opts,
    )
    if latched.modified_count == 0:
        return False

    logger.info("Campaign target reached", extra={
        "campaign_id": campaign_id,
        "current_amount": campaign["current_amount"],
        "target_amount": campaign["target_amount"],
    })
    await notify(
        uow,
        campaign["organizer_id"],
        NotificationType.GROUP_BUYING,
        "Group buying target reached",
        f"{campaign['title']} reached its target of {campaign['target_amount']}",
        related_id=campaign_id,
    )
    return True


# --- Workflow ---

async def run_checkout(uow: UnitOfWork, user_id: str, payload: OrderCreate) -> CheckoutResponse:
    cart_items = await read_cart(uow, user_id)
    if not cart_items:
        raise EmptyCart()

    validated = await validate_cart(uow, cart_items)

    # A purchase can only be recorded against a completed profile
    profile = await uow.db.user_profiles.find_one({"user_id": user_id}, **uow.opts)
    if not profile:
        raise ProfileNotFound()

    campaign = None
    campaign_oid = maybe_oid(payload.group_buying_id)
    if campaign_oid is not None:
        campaign = await uow.db.group_buying.find_one({"_id": campaign_oid}, **uow.opts)

    items = price_lines(validated, campaign)
    impact = estimate_for_quantities(item.quantity for item in items)
    names = {str(product["_id"]): product["name"] for _, product in validated}

    order_id, total_amount = await write_order(uow, user_id, payload, cart_items, items, impact, names)
    await record_impact(uow, user_id, order_id, total_amount, impact, payload.group_buying_id)

    target_reached = False
    if payload.group_buying_id:
        try:
            target_reached = await settle_campaign(uow, payload.group_buying_id, total_amount)
        except CampaignNotFound:
            # The order stands; a vanished campaign only loses the settlement
            logger.warning("Campaign missing at settlement, skipped", extra={
                "campaign_id": payload.group_buying_id,
                "order_id": order_id,
            })

    return CheckoutResponse(
        order_id=order_id,
        total_amount=total_amount,
        impact_snapshot=ImpactSnapshot(**impact.dict()),
        target_reached=target_reached,
    )


async def create_order_from_cart(client, db, user_id: str, payload: OrderCreate) -> CheckoutResponse:
    if settings.MONGO_TRANSACTIONS:
        async with await client.start_session() as session:
            result = await session.with_transaction(
                lambda s: run_checkout(UnitOfWork(db, s), user_id, payload)
            )
    else:
        result = await run_checkout(UnitOfWork(db), user_id, payload)

    logger.info("Order created", extra={
        "order_id": result.order_id,
        "user_id": user_id,
        "total_amount": result.total_amount,
        "group_buying_id": payload.group_buying_id,
        "target_reached": result.target_reached,
    })
    return result
