import os

# Settings are read at import time; the in-memory database has no transactions
os.environ["MONGO_TRANSACTIONS"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["ASSET_BASE_URL"] = "http://assets.test/uglies"

from datetime import datetime, timedelta
from typing import Optional

import httpx
import pytest
from fastapi import Header, Request
from mongomock_motor import AsyncMongoMockClient

from app.dependencies import get_current_user
from app.exceptions import Unauthenticated
from app.main import app
from app.models import (
    FarmerDB, ProductDB, CartItemDB, GroupBuyingDB, ProductOfferDB, UserProfileDB, UserRole
)


async def fake_current_user(request: Request, authorization: Optional[str] = Header(None)) -> dict:
    """Stands in for the auth service: `Bearer <user_id>` authenticates as that user."""
    if not authorization:
        raise Unauthenticated()
    user_id = authorization.split(" ", 1)[-1]
    request.state.user_id = user_id
    return {"sub": user_id, "email": f"{user_id}@test.com"}


class Seeder:
    """Writes fixture documents straight into the database."""

    def __init__(self, db):
        self.db = db

    async def farmer(self, **fields) -> str:
        doc = {
            "name": "Chen Wei-Ming",
            "bio": "Organic farmer",
            "location": "Taichung County",
            "story": "Grows heirloom tomatoes",
            "image_id": "farmers/chen.jpg",
        }
        doc.update(fields)
        result = await self.db.farmers.insert_one(FarmerDB(**doc).dict(by_alias=True, exclude={"id"}))
        return str(result.inserted_id)

    async def product(self, farmer_id: Optional[str] = None, **fields) -> str:
        if farmer_id is None:
            farmer_id = await self.farmer()
        doc = {
            "name": "Heirloom Tomatoes",
            "description": "Lumpy but sweet",
            "price": 100.0,
            "image_id": "products/tomatoes.jpg",
            "farmer_id": farmer_id,
            "category": "Vegetables",
            "condition_grade": "Slightly Ugly",
            "stock_quantity": 5,
            "unit": "kg",
        }
        doc.update(fields)
        result = await self.db.products.insert_one(ProductDB(**doc).dict(by_alias=True, exclude={"id"}))
        return str(result.inserted_id)

    async def profile(self, user_id: str, role: UserRole = UserRole.USER, **fields) -> dict:
        doc = {"user_id": user_id, "role": role, "name": user_id.title(), "neighborhood": "Xinyi District"}
        doc.update(fields)
        await self.db.user_profiles.insert_one(UserProfileDB(**doc).dict(by_alias=True, exclude={"id"}))
        return await self.db.user_profiles.find_one({"user_id": user_id})

    async def admin(self, user_id: str = "admin") -> dict:
        return await self.profile(user_id, role=UserRole.ADMIN)

    async def campaign(self, organizer_id: str = "organizer", offers=None, **fields) -> str:
        now = datetime.utcnow()
        doc = {
            "title": "Xinyi Weekend Box",
            "description": "Neighbors buying together",
            "organizer_id": organizer_id,
            "neighborhood": "Xinyi District",
            "target_amount": 5000,
            "deadline": now + timedelta(days=7),
            "delivery_date": now + timedelta(days=9),
            "delivery_location": "Community Center",
            "product_offers": [ProductOfferDB(**offer) for offer in offers or []],
            "invite_code": "XINYI1",
        }
        doc.update(fields)
        result = await self.db.group_buying.insert_one(GroupBuyingDB(**doc).dict(by_alias=True, exclude={"id"}))
        return str(result.inserted_id)

    async def cart_line(self, user_id: str, product_id: str, quantity: int, **fields) -> str:
        line = CartItemDB(user_id=user_id, product_id=product_id, quantity=quantity, **fields)
        result = await self.db.cart_items.insert_one(line.dict(by_alias=True, exclude={"id"}))
        return str(result.inserted_id)


@pytest.fixture
def mongo_client():
    return AsyncMongoMockClient()


@pytest.fixture
def db(mongo_client):
    return mongo_client["uglies_test"]


@pytest.fixture
def seed(db):
    return Seeder(db)


@pytest.fixture
async def client(mongo_client, db):
    app.mongodb_client = mongo_client
    app.mongodb = db
    app.dependency_overrides[get_current_user] = fake_current_user
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://marketplace.test") as http_client:
        yield http_client
    app.dependency_overrides.clear()


@pytest.fixture
def auth():
    def headers(user_id: str) -> dict:
        return {"Authorization": f"Bearer {user_id}"}
    return headers
