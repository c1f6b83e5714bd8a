from datetime import datetime
from enum import Enum
from typing import Optional, List
from pydantic import BaseModel, Field


# --- Status enums ---

class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY = "ready"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"

    def can_transition_to(self, target: "OrderStatus") -> bool:
        return target in ORDER_TRANSITIONS[self]

    @property
    def is_terminal(self) -> bool:
        return not ORDER_TRANSITIONS[self]


ORDER_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.PREPARING, OrderStatus.CANCELLED},
    OrderStatus.PREPARING: {OrderStatus.READY, OrderStatus.CANCELLED},
    OrderStatus.READY: {OrderStatus.DELIVERED, OrderStatus.CANCELLED},
    OrderStatus.DELIVERED: set(),
    OrderStatus.CANCELLED: set(),
}


class CampaignStatus(str, Enum):
    ACTIVE = "active"
    TARGET_REACHED = "target_reached"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    def can_transition_to(self, target: "CampaignStatus") -> bool:
        return target in CAMPAIGN_TRANSITIONS[self]

    @property
    def is_terminal(self) -> bool:
        return not CAMPAIGN_TRANSITIONS[self]


# active -> target_reached is the only move made automatically (by settlement)
CAMPAIGN_TRANSITIONS = {
    CampaignStatus.ACTIVE: {CampaignStatus.TARGET_REACHED, CampaignStatus.COMPLETED, CampaignStatus.CANCELLED},
    CampaignStatus.TARGET_REACHED: {CampaignStatus.COMPLETED, CampaignStatus.CANCELLED},
    CampaignStatus.COMPLETED: set(),
    CampaignStatus.CANCELLED: set(),
}


class UserRole(str, Enum):
    USER = "user"
    FARMER = "farmer"
    ADMIN = "admin"


class HubLevel(str, Enum):
    BRONZE = "bronze"
    SILVER = "silver"
    GOLD = "gold"
    PLATINUM = "platinum"

    @classmethod
    def for_order_count(cls, order_count: int) -> "HubLevel":
        if order_count > 50:
            return cls.PLATINUM
        if order_count > 20:
            return cls.GOLD
        if order_count > 5:
            return cls.SILVER
        return cls.BRONZE


class DeliveryMethod(str, Enum):
    INDIVIDUAL = "individual"
    GROUP = "group"
    PICKUP = "pickup"


class NotificationType(str, Enum):
    ORDER_UPDATE = "order_update"
    GROUP_BUYING = "group_buying"
    NEW_PRODUCT = "new_product"
    FARMER_STORY = "farmer_story"
    IMPACT_MILESTONE = "impact_milestone"


# --- Documents ---

class FarmerDB(BaseModel):
    id: Optional[str] = Field(None, alias="_id")
    name: str
    bio: str
    location: str
    farm_size: Optional[str] = None
    specialties: List[str] = []
    story: str
    image_id: Optional[str] = None
    contact_info: Optional[str] = None
    sustainability_practices: List[str] = []
    certifications: Optional[List[str]] = None
    total_waste_prevented: Optional[float] = None
    rating: Optional[float] = None
    is_active: bool = True
    join_date: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        populate_by_name = True


class ProductDB(BaseModel):
    id: Optional[str] = Field(None, alias="_id")
    name: str
    description: str
    price: float
    image_id: str
    farmer_id: str
    category: str
    condition_grade: str
    stock_quantity: int
    unit: str
    harvest_date: Optional[datetime] = None
    expiry_date: Optional[datetime] = None
    is_active: bool = True
    nutritional_info: Optional[str] = None
    storage_instructions: Optional[str] = None
    recipe_suggestions: Optional[List[str]] = None
    carbon_footprint: Optional[float] = None
    discount_percentage: Optional[float] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None

    class Config:
        populate_by_name = True


class CartItemDB(BaseModel):
    id: Optional[str] = Field(None, alias="_id")
    user_id: str
    product_id: str
    quantity: int = Field(..., gt=0)
    added_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        populate_by_name = True


class OrderItemDB(BaseModel):
    product_id: str
    quantity: int
    price_at_purchase: float


class ImpactSnapshot(BaseModel):
    waste_prevented: float
    carbon_saved: float


class OrderDB(BaseModel):
    id: Optional[str] = Field(None, alias="_id")
    user_id: str
    items: List[OrderItemDB]
    total_amount: float
    status: OrderStatus = OrderStatus.PENDING
    delivery_address: str
    delivery_method: DeliveryMethod
    delivery_date: Optional[datetime] = None
    group_buying_id: Optional[str] = None
    notes: Optional[str] = None
    impact_snapshot: ImpactSnapshot
    tracking_number: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None

    class Config:
        populate_by_name = True
        use_enum_values = True
        validate_default = True


class ProductOfferDB(BaseModel):
    product_id: str
    discount_percentage: float
    min_quantity: int


class CampaignImpact(BaseModel):
    total_waste_prevented: float
    carbon_saved: float
    participant_savings: float


class GroupBuyingDB(BaseModel):
    id: Optional[str] = Field(None, alias="_id")
    title: str
    description: str
    organizer_id: str
    neighborhood: str
    target_amount: float
    current_amount: float = 0
    participant_count: int = 0
    deadline: datetime
    delivery_date: datetime
    delivery_location: str
    status: CampaignStatus = CampaignStatus.ACTIVE
    product_offers: List[ProductOfferDB] = []
    hub_level: HubLevel = HubLevel.BRONZE
    impact_metrics: Optional[CampaignImpact] = None
    invite_code: str
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        populate_by_name = True
        use_enum_values = True
        validate_default = True


class Preferences(BaseModel):
    categories: List[str] = []
    condition_grades: List[str] = []
    delivery_preference: DeliveryMethod = DeliveryMethod.INDIVIDUAL

    class Config:
        use_enum_values = True
        validate_default = True


class UserProfileDB(BaseModel):
    id: Optional[str] = Field(None, alias="_id")
    user_id: str
    role: UserRole = UserRole.USER
    name: str
    address: Optional[str] = None
    phone: Optional[str] = None
    neighborhood: str
    sustainability_score: int = 0
    total_waste_prevented: float = 0
    join_date: datetime = Field(default_factory=datetime.utcnow)
    preferences: Optional[Preferences] = None

    class Config:
        populate_by_name = True
        use_enum_values = True
        validate_default = True


class ImpactMetricDB(BaseModel):
    id: Optional[str] = Field(None, alias="_id")
    user_id: str
    order_id: Optional[str] = None
    date: datetime = Field(default_factory=datetime.utcnow)
    waste_prevented: float
    carbon_saved: float
    money_saved: float
    orders_completed: int = 1
    group_orders_participated: int = 0

    class Config:
        populate_by_name = True


class NotificationDB(BaseModel):
    id: Optional[str] = Field(None, alias="_id")
    user_id: str
    type: NotificationType
    title: str
    message: str
    is_read: bool = False
    created_at: datetime = Field(default_factory=datetime.utcnow)
    related_id: Optional[str] = None

    class Config:
        populate_by_name = True
        use_enum_values = True
        validate_default = True
