import logging
import secrets
import string
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends

from shared.utils import SuccessResponse

from app.checkout import settle_campaign
from app.dependencies import get_current_profile, get_current_user, get_database, require_admin
from app.exceptions import CampaignNotFound, CampaignClosed, InvalidStatusTransition, InviteCodeUnavailable
from app.helpers import UnitOfWork, str_to_oid, product_view_by_id, profile_for, with_id
from app.models import CampaignStatus, GroupBuyingDB, HubLevel, ProductOfferDB
from app.schemas import (
    CampaignCreate, CampaignJoin, CampaignJoinResponse, CampaignResponse, CampaignStatusUpdate
)

logger = logging.getLogger("marketplace-service")

router = APIRouter(prefix="/group-buying", tags=["group-buying"])

INVITE_CODE_ALPHABET = string.ascii_uppercase + string.digits
INVITE_CODE_LENGTH = 6
INVITE_CODE_ATTEMPTS = 10


def generate_invite_code() -> str:
    return "".join(secrets.choice(INVITE_CODE_ALPHABET) for _ in range(INVITE_CODE_LENGTH))


async def unused_invite_code(db) -> str:
    for _ in range(INVITE_CODE_ATTEMPTS):
        code = generate_invite_code()
        if not await db.group_buying.find_one({"invite_code": code}):
            return code
    raise InviteCodeUnavailable()


async def campaign_view(db, campaign: dict) -> CampaignResponse:
    """Campaign with its organizer profile and the offered products resolved."""
    offers = []
    for offer in campaign.get("product_offers", []):
        offers.append({**offer, "product": await product_view_by_id(db, offer["product_id"])})
    organizer = await profile_for(db, campaign["organizer_id"])
    return CampaignResponse(**{**with_id(campaign), "product_offers": offers}, organizer=organizer)


async def campaign_views(db, query: dict) -> List[CampaignResponse]:
    docs = await db.group_buying.find(query, sort=[("deadline", 1)]).to_list(length=None)
    return [await campaign_view(db, doc) for doc in docs]


@router.get("", response_model=SuccessResponse[List[CampaignResponse]])
async def list_active_campaigns(neighborhood: Optional[str] = None, db=Depends(get_database)):
    query = {"status": CampaignStatus.ACTIVE.value, "deadline": {"$gt": datetime.utcnow()}}
    if neighborhood:
        query["neighborhood"] = neighborhood
    return SuccessResponse(data=await campaign_views(db, query))


@router.get("/neighborhood/{neighborhood}", response_model=SuccessResponse[List[CampaignResponse]])
async def list_neighborhood_campaigns(neighborhood: str, db=Depends(get_database)):
    query = {"neighborhood": neighborhood, "deadline": {"$gt": datetime.utcnow()}}
    return SuccessResponse(data=await campaign_views(db, query))


@router.get("/mine", response_model=SuccessResponse[List[CampaignResponse]])
async def list_my_campaigns(user: dict = Depends(get_current_user), db=Depends(get_database)):
    return SuccessResponse(data=await campaign_views(db, {"organizer_id": user["sub"]}))


@router.get("/invite/{invite_code}", response_model=SuccessResponse[CampaignResponse])
async def get_campaign_by_invite_code(invite_code: str, db=Depends(get_database)):
    campaign = await db.group_buying.find_one({"invite_code": invite_code.upper()})
    if not campaign:
        raise CampaignNotFound()
    return SuccessResponse(data=await campaign_view(db, campaign))


@router.get("/{campaign_id}", response_model=SuccessResponse[CampaignResponse])
async def get_campaign(campaign_id: str, db=Depends(get_database)):
    campaign = await db.group_buying.find_one({"_id": str_to_oid(campaign_id)})
    if not campaign:
        raise CampaignNotFound()
    return SuccessResponse(data=await campaign_view(db, campaign))


@router.post("", response_model=SuccessResponse[CampaignResponse])
async def create_campaign(
    campaign: CampaignCreate,
    profile: dict = Depends(get_current_profile),
    db=Depends(get_database),
):
    organizer_id = profile["user_id"]
    order_count = await db.orders.count_documents({"user_id": organizer_id})

    campaign_db = GroupBuyingDB(
        **campaign.dict(exclude={"product_offers"}),
        product_offers=[ProductOfferDB(**offer.dict()) for offer in campaign.product_offers],
        organizer_id=organizer_id,
        hub_level=HubLevel.for_order_count(order_count),
        invite_code=await unused_invite_code(db),
    )
    new_campaign = await db.group_buying.insert_one(campaign_db.dict(by_alias=True, exclude={"id"}))
    created = await db.group_buying.find_one({"_id": new_campaign.inserted_id})

    logger.info("Campaign created", extra={
        "campaign_id": str(new_campaign.inserted_id),
        "organizer_id": organizer_id,
        "neighborhood": campaign.neighborhood,
        "invite_code": campaign_db.invite_code,
    })
    return SuccessResponse(data=await campaign_view(db, created), message="Campaign created successfully")


@router.post("/{campaign_id}/join", response_model=SuccessResponse[CampaignJoinResponse])
async def join_campaign(
    campaign_id: str,
    join: CampaignJoin,
    user: dict = Depends(get_current_user),
    db=Depends(get_database),
):
    oid = str_to_oid(campaign_id)
    campaign = await db.group_buying.find_one({"_id": oid})
    if not campaign:
        raise CampaignNotFound()
    if campaign["deadline"] < datetime.utcnow():
        raise CampaignClosed()
    if CampaignStatus(campaign["status"]).is_terminal:
        raise CampaignClosed(f"Campaign is {campaign['status']}")

    await settle_campaign(UnitOfWork(db), campaign_id, join.order_amount)
    settled = await db.group_buying.find_one({"_id": oid})

    logger.info("Campaign joined", extra={
        "campaign_id": campaign_id,
        "user_id": user["sub"],
        "order_amount": join.order_amount,
    })
    target_reached = settled["status"] == CampaignStatus.TARGET_REACHED.value
    return SuccessResponse(data=CampaignJoinResponse(target_reached=target_reached))


@router.put("/{campaign_id}/status", response_model=SuccessResponse[CampaignResponse])
async def update_campaign_status(
    campaign_id: str,
    status_update: CampaignStatusUpdate,
    admin: dict = Depends(require_admin),
    db=Depends(get_database),
):
    oid = str_to_oid(campaign_id)
    campaign = await db.group_buying.find_one({"_id": oid})
    if not campaign:
        raise CampaignNotFound()

    current = CampaignStatus(campaign["status"])
    target = status_update.status
    if not current.can_transition_to(target):
        raise InvalidStatusTransition(current.value, target.value)

    result = await db.group_buying.update_one(
        {"_id": oid, "status": current.value},
        {"$set": {"status": target.value}}
    )
    if result.modified_count == 0:
        raise InvalidStatusTransition(current.value, target.value)

    logger.info("Campaign status updated", extra={"campaign_id": campaign_id, "from": current.value, "to": target.value})
    updated = await db.group_buying.find_one({"_id": oid})
    return SuccessResponse(data=await campaign_view(db, updated))
