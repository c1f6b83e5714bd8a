"""Demo catalog and campaign used to bring up a fresh deployment."""
import logging
from datetime import datetime, timedelta
from typing import List

from app.models import (
    FarmerDB, ProductDB, GroupBuyingDB, ProductOfferDB, CampaignImpact, HubLevel
)

logger = logging.getLogger("marketplace-service")

SAMPLE_INVITE_CODE = "DAAN01"


def sample_farmers(now: datetime) -> List[FarmerDB]:
    return [
        FarmerDB(
            name="Chen Wei-Ming",
            bio="Third-generation organic farmer specializing in heirloom vegetables",
            location="Taichung County",
            farm_size="5 hectares",
            specialties=["Organic vegetables", "Heirloom tomatoes", "Leafy greens"],
            story=(
                "Chen Wei-Ming inherited his family's farm in Taichung County and has farmed "
                "sustainably for over 20 years. His heirloom tomatoes come in every shape and "
                "color, and taste just as good as the perfect-looking ones."
            ),
            image_id="farmers/chen-wei-ming.jpg",
            contact_info="Phone: 0912-345-678 | Email: chen.farm@example.com",
            sustainability_practices=["Organic certification", "Water conservation", "Soil health management"],
            certifications=["Organic Taiwan", "Good Agricultural Practice"],
            total_waste_prevented=2500,
            rating=4.8,
            join_date=now - timedelta(days=365),
        ),
        FarmerDB(
            name="Lin Mei-Hua",
            bio="Sustainable fruit grower focused on reducing food waste",
            location="Nantou County",
            farm_size="3 hectares",
            specialties=["Citrus fruits", "Stone fruits", "Seasonal berries"],
            story=(
                "Lin Mei-Hua started her orchard 15 years ago after watching good fruit being "
                "discarded for failing cosmetic standards. She now sells imperfect fruit that is "
                "every bit as sweet."
            ),
            image_id="farmers/lin-mei-hua.jpg",
            contact_info="Phone: 0923-456-789 | Email: lin.orchard@example.com",
            sustainability_practices=["Integrated pest management", "Renewable energy", "Waste reduction"],
            certifications=["Sustainable Agriculture", "Carbon Neutral"],
            total_waste_prevented=1800,
            rating=4.9,
            join_date=now - timedelta(days=200),
        ),
        FarmerDB(
            name="Wang Jia-Hong",
            bio="Young farmer innovating traditional growing methods",
            location="Yunlin County",
            farm_size="2 hectares",
            specialties=["Root vegetables", "Herbs", "Seasonal produce"],
            story=(
                "Wang Jia-Hong combines traditional knowledge with modern sustainable practice. "
                "At 28 he grows vegetables that look different but taste amazing."
            ),
            image_id="farmers/wang-jia-hong.jpg",
            contact_info="Phone: 0934-567-890 | Email: wang.sustainable@example.com",
            sustainability_practices=["Permaculture", "Companion planting", "Natural fertilizers"],
            certifications=["Young Farmer Program", "Eco-Friendly"],
            total_waste_prevented=1200,
            rating=4.7,
            join_date=now - timedelta(days=100),
        ),
    ]


# (name, category, condition_grade, price, stock, unit) per farmer, in farmer order
SAMPLE_PRODUCTS = [
    [
        ("Heirloom Tomatoes", "Vegetables", "Slightly Ugly", 120.0, 40, "kg"),
        ("Bok Choy", "Leafy Greens", "Very Ugly", 60.0, 25, "bunch"),
    ],
    [
        ("Ponkan Mandarins", "Fruits", "Slightly Ugly", 150.0, 60, "kg"),
        ("Wax Apples", "Fruits", "Extremely Ugly", 90.0, 30, "kg"),
    ],
    [
        ("Sweet Potatoes", "Root Vegetables", "Very Ugly", 45.0, 80, "kg"),
        ("Thai Basil", "Herbs", "Slightly Ugly", 30.0, 20, "bunch"),
    ],
]


def sample_products(farmer_ids: List[str], now: datetime) -> List[ProductDB]:
    products = []
    for farmer_id, rows in zip(farmer_ids, SAMPLE_PRODUCTS):
        for name, category, grade, price, stock, unit in rows:
            products.append(ProductDB(
                name=name,
                description=f"{grade} {name.lower()}, harvested this week",
                price=price,
                image_id=f"products/{name.lower().replace(' ', '-')}.jpg",
                farmer_id=farmer_id,
                category=category,
                condition_grade=grade,
                stock_quantity=stock,
                unit=unit,
                harvest_date=now - timedelta(days=2),
                expiry_date=now + timedelta(days=12),
            ))
    return products


def sample_campaign(organizer_id: str, product_ids: List[str], now: datetime) -> GroupBuyingDB:
    return GroupBuyingDB(
        title="Da'an District Weekly Harvest",
        description="Join your neighbors for fresh, imperfect produce delivered to our community center every Saturday!",
        organizer_id=organizer_id,
        neighborhood="Da'an District",
        target_amount=5000,
        current_amount=1200,
        participant_count=8,
        deadline=now + timedelta(days=7),
        delivery_date=now + timedelta(days=10),
        delivery_location="Da'an Community Center, 123 Xinyi Road",
        product_offers=[
            ProductOfferDB(product_id=product_id, discount_percentage=15, min_quantity=5)
            for product_id in product_ids[:3]
        ],
        hub_level=HubLevel.SILVER,
        impact_metrics=CampaignImpact(total_waste_prevented=45, carbon_saved=112, participant_savings=800),
        invite_code=SAMPLE_INVITE_CODE,
    )


async def seed_catalog(db) -> dict:
    """Insert the demo farmers and their products; does nothing once any farmer exists."""
    if await db.farmers.count_documents({}) > 0:
        return {"created": False, "farmers": 0, "products": 0}

    now = datetime.utcnow()
    farmer_ids = []
    for farmer in sample_farmers(now):
        inserted = await db.farmers.insert_one(farmer.dict(by_alias=True, exclude={"id"}))
        farmer_ids.append(str(inserted.inserted_id))

    products = sample_products(farmer_ids, now)
    for product in products:
        await db.products.insert_one(product.dict(by_alias=True, exclude={"id"}))

    logger.info("Sample catalog created", extra={"farmers": len(farmer_ids), "products": len(products)})
    return {"created": True, "farmers": len(farmer_ids), "products": len(products)}


async def seed_campaign(db, organizer_id: str) -> dict:
    if await db.group_buying.count_documents({}) > 0:
        return {"created": False, "reason": "Sample group buying campaigns already exist"}

    products = await db.products.find({}, sort=[("_id", 1)], limit=3).to_list(length=3)
    if not products:
        return {"created": False, "reason": "Please create farmers and products first"}

    campaign = sample_campaign(organizer_id, [str(p["_id"]) for p in products], datetime.utcnow())
    inserted = await db.group_buying.insert_one(campaign.dict(by_alias=True, exclude={"id"}))

    logger.info("Sample campaign created", extra={"campaign_id": str(inserted.inserted_id)})
    return {"created": True, "campaign_id": str(inserted.inserted_id)}
