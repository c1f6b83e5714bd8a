import logging

from fastapi import APIRouter, Depends

from shared.utils import SuccessResponse

from app.dependencies import get_current_user, get_database, require_admin
from app.exceptions import Forbidden
from app.helpers import profile_for
from app.models import UserProfileDB, UserRole
from app.sample_data import seed_catalog, seed_campaign
from app.schemas import ProfileResponse

logger = logging.getLogger("marketplace-service")

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/bootstrap", response_model=SuccessResponse[ProfileResponse])
async def bootstrap_admin(user: dict = Depends(get_current_user), db=Depends(get_database)):
    """Make the caller the first admin. Closed for good once any admin exists."""
    if await db.user_profiles.find_one({"role": UserRole.ADMIN.value}):
        raise Forbidden("An admin already exists")

    user_id = user["sub"]
    result = await db.user_profiles.update_one({"user_id": user_id}, {"$set": {"role": UserRole.ADMIN.value}})
    if result.matched_count == 0:
        profile_db = UserProfileDB(
            user_id=user_id,
            role=UserRole.ADMIN,
            name=user.get("name") or "Admin User",
            neighborhood="Taipei",
        )
        await db.user_profiles.insert_one(profile_db.dict(by_alias=True, exclude={"id"}))

    logger.info("Admin bootstrapped", extra={"user_id": user_id})
    return SuccessResponse(data=ProfileResponse(**await profile_for(db, user_id)), message="You are now an admin")


@router.post("/sample-data", response_model=SuccessResponse[dict])
async def create_sample_data(admin: dict = Depends(require_admin), db=Depends(get_database)):
    result = await seed_catalog(db)
    message = "Sample data created" if result["created"] else "Sample data already exists"
    return SuccessResponse(data=result, message=message)


@router.post("/sample-group-buying", response_model=SuccessResponse[dict])
async def create_sample_group_buying(admin: dict = Depends(require_admin), db=Depends(get_database)):
    result = await seed_campaign(db, admin["user_id"])
    message = "Sample campaign created" if result["created"] else result["reason"]
    return SuccessResponse(data=result, message=message)
