from typing import Optional

from bson import ObjectId
from bson.errors import InvalidId

from shared.utils import NotFoundException, settings


def str_to_oid(id: str) -> ObjectId:
    try:
        return ObjectId(id)
    except (InvalidId, TypeError):
        raise NotFoundException("Invalid ID format")


def maybe_oid(id: Optional[str]) -> Optional[ObjectId]:
    """Like str_to_oid, but a malformed reference is treated as dangling."""
    if not id or not ObjectId.is_valid(id):
        return None
    return ObjectId(id)


def with_id(doc: dict) -> dict:
    doc["id"] = str(doc["_id"])
    return doc


def resolve_image_url(image_id: Optional[str]) -> Optional[str]:
    # Binary assets live in an external store; we only know how to address them
    if not image_id:
        return None
    return f"{settings.ASSET_BASE_URL.rstrip('/')}/{image_id}"


async def farmer_view(db, farmer_id: Optional[str]) -> Optional[dict]:
    oid = maybe_oid(farmer_id)
    if oid is None:
        return None
    farmer = await db.farmers.find_one({"_id": oid})
    if not farmer:
        return None
    farmer["image_url"] = resolve_image_url(farmer.get("image_id"))
    return with_id(farmer)


async def product_view(db, product: dict, include_farmer: bool = True) -> dict:
    product["image_url"] = resolve_image_url(product.get("image_id"))
    if include_farmer:
        product["farmer"] = await farmer_view(db, product.get("farmer_id"))
    return with_id(product)


async def product_view_by_id(db, product_id: str) -> Optional[dict]:
    oid = maybe_oid(product_id)
    if oid is None:
        return None
    product = await db.products.find_one({"_id": oid})
    if not product:
        return None
    return await product_view(db, product)


async def profile_for(db, user_id: str) -> Optional[dict]:
    return await db.user_profiles.find_one({"user_id": user_id})


class UnitOfWork:
    """The database handle plus the transaction session (if any) of one unit of work."""

    def __init__(self, db, session=None):
        self.db = db
        self.session = session

    @property
    def transactional(self) -> bool:
        return self.session is not None

    @property
    def opts(self) -> dict:
        # Driver calls only get a `session` keyword when a transaction is open
        return {"session": self.session} if self.session is not None else {}
