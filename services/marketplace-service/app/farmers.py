from typing import List

from fastapi import APIRouter, Depends

from shared.utils import SuccessResponse, NotFoundException

from app.dependencies import get_database, require_admin
from app.helpers import farmer_view, str_to_oid, with_id, resolve_image_url
from app.models import FarmerDB
from app.schemas import FarmerCreate, FarmerResponse

router = APIRouter(prefix="/farmers", tags=["farmers"])


@router.get("", response_model=SuccessResponse[List[FarmerResponse]])
async def list_farmers(db=Depends(get_database)):
    farmers = []
    async for doc in db.farmers.find({}):
        doc["image_url"] = resolve_image_url(doc.get("image_id"))
        farmers.append(FarmerResponse(**with_id(doc)))
    return SuccessResponse(data=farmers)


@router.get("/{farmer_id}", response_model=SuccessResponse[FarmerResponse])
async def get_farmer(farmer_id: str, db=Depends(get_database)):
    str_to_oid(farmer_id)
    farmer = await farmer_view(db, farmer_id)
    if not farmer:
        raise NotFoundException("Farmer not found")
    return SuccessResponse(data=FarmerResponse(**farmer))


@router.post("", response_model=SuccessResponse[FarmerResponse])
async def create_farmer(farmer: FarmerCreate, admin: dict = Depends(require_admin), db=Depends(get_database)):
    data = farmer.dict()
    data["sustainability_practices"] = data["sustainability_practices"] or []
    farmer_db = FarmerDB(**data)
    new_farmer = await db.farmers.insert_one(farmer_db.dict(by_alias=True, exclude={"id"}))
    created = await farmer_view(db, str(new_farmer.inserted_id))
    return SuccessResponse(data=FarmerResponse(**created), message="Farmer added successfully")
