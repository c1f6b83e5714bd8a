import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from shared.utils import SuccessResponse, NotFoundException

from app.dependencies import get_current_profile, get_current_user, get_database, require_admin
from app.helpers import profile_for, with_id
from app.impact import RECENT_ENTRIES_LIMIT, summarize
from app.models import UserProfileDB, UserRole
from app.schemas import (
    ProfileUpsert, ProfileResponse, ImpactEntryResponse, UserImpactResponse,
    LeaderboardEntry, PlatformMetricsResponse
)

logger = logging.getLogger("marketplace-service")

router = APIRouter(prefix="/users", tags=["users"])
impact_router = APIRouter(prefix="/impact", tags=["impact"])

LEADERBOARD_SIZE = 10


@router.get("/me", response_model=SuccessResponse[Optional[ProfileResponse]])
async def get_my_profile(user: dict = Depends(get_current_user), db=Depends(get_database)):
    # No profile yet is a normal state for a fresh account
    profile = await profile_for(db, user["sub"])
    return SuccessResponse(data=ProfileResponse(**profile) if profile else None)


@router.put("/me", response_model=SuccessResponse[ProfileResponse])
async def upsert_my_profile(
    profile_in: ProfileUpsert,
    user: dict = Depends(get_current_user),
    db=Depends(get_database),
):
    user_id = user["sub"]
    fields = profile_in.dict()

    result = await db.user_profiles.update_one({"user_id": user_id}, {"$set": fields})
    if result.matched_count == 0:
        profile_db = UserProfileDB(user_id=user_id, **fields)
        await db.user_profiles.insert_one(profile_db.dict(by_alias=True, exclude={"id"}))
        logger.info("Profile created", extra={"user_id": user_id, "neighborhood": profile_in.neighborhood})

    profile = await profile_for(db, user_id)
    return SuccessResponse(data=ProfileResponse(**profile), message="Profile saved")


@router.get("/me/is-admin", response_model=SuccessResponse[bool])
async def is_admin(user: dict = Depends(get_current_user), db=Depends(get_database)):
    profile = await profile_for(db, user["sub"])
    return SuccessResponse(data=bool(profile) and profile.get("role") == UserRole.ADMIN.value)


@router.get("/me/impact", response_model=SuccessResponse[UserImpactResponse])
async def get_my_impact(profile: dict = Depends(get_current_profile), db=Depends(get_database)):
    entries = await db.impact_metrics.find(
        {"user_id": profile["user_id"]}, sort=[("date", -1)], limit=RECENT_ENTRIES_LIMIT
    ).to_list(length=RECENT_ENTRIES_LIMIT)

    return SuccessResponse(data=UserImpactResponse(
        profile=ProfileResponse(**profile),
        total_metrics=summarize(entries),
        recent_metrics=[ImpactEntryResponse(**with_id(entry)) for entry in entries],
    ))


@router.get("/leaderboard", response_model=SuccessResponse[List[LeaderboardEntry]])
async def neighborhood_leaderboard(neighborhood: str = Query(..., min_length=1), db=Depends(get_database)):
    docs = await db.user_profiles.find(
        {"neighborhood": neighborhood, "sustainability_score": {"$gt": 0}},
        sort=[("sustainability_score", -1)],
        limit=LEADERBOARD_SIZE,
    ).to_list(length=LEADERBOARD_SIZE)
    return SuccessResponse(data=[LeaderboardEntry(**doc) for doc in docs])


@router.get("/neighborhoods", response_model=SuccessResponse[List[str]])
async def list_neighborhoods(db=Depends(get_database)):
    neighborhoods = await db.user_profiles.distinct("neighborhood")
    return SuccessResponse(data=sorted(n for n in neighborhoods if n))


@router.post("/{user_id}/promote", response_model=SuccessResponse[ProfileResponse])
async def promote_to_admin(user_id: str, admin: dict = Depends(require_admin), db=Depends(get_database)):
    result = await db.user_profiles.update_one({"user_id": user_id}, {"$set": {"role": UserRole.ADMIN.value}})
    if result.matched_count == 0:
        raise NotFoundException("Target user profile not found")

    logger.info("User promoted to admin", extra={"target_user_id": user_id, "promoted_by": admin["user_id"]})
    return SuccessResponse(data=ProfileResponse(**await profile_for(db, user_id)))


@impact_router.get("/platform", response_model=SuccessResponse[PlatformMetricsResponse])
async def platform_metrics(admin: dict = Depends(require_admin), db=Depends(get_database)):
    entries = await db.impact_metrics.find({}).to_list(length=None)
    orders = await db.orders.find({}, projection={"total_amount": 1}).to_list(length=None)
    total_users = await db.user_profiles.count_documents({})

    revenue = sum(order["total_amount"] for order in orders)
    return SuccessResponse(data=PlatformMetricsResponse(
        total_metrics=summarize(entries),
        total_users=total_users,
        total_orders=len(orders),
        average_order_value=revenue / len(orders) if orders else 0,
    ))
