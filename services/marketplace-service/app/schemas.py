from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import datetime, timezone
from shared.security_config import sanitize_input, sanitize_list

from app.models import (
    OrderStatus, CampaignStatus, UserRole, HubLevel, DeliveryMethod,
    NotificationType, Preferences, ImpactSnapshot, CampaignImpact
)
from app.impact import ImpactTotals


# --- Farmers ---

class FarmerCreate(BaseModel):
    name: str = Field(..., min_length=1)
    bio: str
    location: str
    farm_size: Optional[str] = None
    specialties: List[str] = []
    story: str
    image_id: Optional[str] = None
    contact_info: Optional[str] = None
    sustainability_practices: Optional[List[str]] = None
    certifications: Optional[List[str]] = None

    @field_validator('name', 'bio', 'location', 'farm_size', 'story', 'contact_info')
    def sanitize_fields(cls, v):
        return sanitize_input(v)

    @field_validator('specialties', 'sustainability_practices', 'certifications')
    def sanitize_lists(cls, v):
        return sanitize_list(v)

class FarmerResponse(BaseModel):
    id: str
    name: str
    bio: str
    location: str
    farm_size: Optional[str] = None
    specialties: List[str] = []
    story: str
    image_url: Optional[str] = None
    contact_info: Optional[str] = None
    sustainability_practices: List[str] = []
    certifications: Optional[List[str]] = None
    total_waste_prevented: Optional[float] = None
    rating: Optional[float] = None
    is_active: bool
    join_date: datetime


# --- Products ---

class ProductCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: str
    price: float = Field(..., gt=0)
    image_id: str
    farmer_id: str
    category: str = Field(..., min_length=1)
    condition_grade: str = Field(..., min_length=1)
    stock_quantity: int = Field(0, ge=0)
    unit: str
    harvest_date: Optional[datetime] = None
    expiry_date: Optional[datetime] = None
    nutritional_info: Optional[str] = None
    storage_instructions: Optional[str] = None
    recipe_suggestions: Optional[List[str]] = None
    carbon_footprint: Optional[float] = None
    discount_percentage: Optional[float] = None

    @field_validator('name', 'description', 'category', 'condition_grade', 'unit',
                     'nutritional_info', 'storage_instructions')
    def sanitize_fields(cls, v):
        return sanitize_input(v)

class ProductUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = Field(None, gt=0)
    image_id: Optional[str] = None
    category: Optional[str] = None
    condition_grade: Optional[str] = None
    unit: Optional[str] = None
    expiry_date: Optional[datetime] = None
    nutritional_info: Optional[str] = None
    storage_instructions: Optional[str] = None
    discount_percentage: Optional[float] = None
    is_active: Optional[bool] = None

    @field_validator('name', 'description', 'category', 'condition_grade', 'unit',
                     'nutritional_info', 'storage_instructions')
    def sanitize_fields(cls, v):
        return sanitize_input(v)

class StockAdjustment(BaseModel):
    quantity_change: int

class ProductResponse(BaseModel):
    id: str
    name: str
    description: str
    price: float
    image_url: Optional[str] = None
    farmer_id: str
    category: str
    condition_grade: str
    stock_quantity: int
    unit: str
    harvest_date: Optional[datetime] = None
    expiry_date: Optional[datetime] = None
    is_active: bool
    nutritional_info: Optional[str] = None
    storage_instructions: Optional[str] = None
    recipe_suggestions: Optional[List[str]] = None
    carbon_footprint: Optional[float] = None
    discount_percentage: Optional[float] = None
    farmer: Optional[FarmerResponse] = None

class ProductListResponse(BaseModel):
    products: List[ProductResponse]
    total: int
    page: int
    limit: int


# --- Cart ---

class CartItemAdd(BaseModel):
    product_id: str
    quantity: int = Field(..., gt=0)

class CartItemUpdate(BaseModel):
    # Zero or less removes the line
    quantity: int

class CartItemResponse(BaseModel):
    id: str
    product_id: str
    quantity: int
    added_at: datetime
    product: ProductResponse

class CartResponse(BaseModel):
    user_id: str
    items: List[CartItemResponse]
    total: float


# --- Orders ---

class OrderCreate(BaseModel):
    delivery_address: str = Field(..., min_length=1)
    delivery_method: DeliveryMethod
    notes: Optional[str] = None
    group_buying_id: Optional[str] = None

    @field_validator('delivery_address', 'notes')
    def sanitize_fields(cls, v):
        return sanitize_input(v)

class CheckoutResponse(BaseModel):
    order_id: str
    total_amount: float
    impact_snapshot: ImpactSnapshot
    target_reached: bool = False

class OrderStatusUpdate(BaseModel):
    status: OrderStatus

class OrderItemResponse(BaseModel):
    product_id: str
    quantity: int
    price_at_purchase: float
    product: Optional[ProductResponse] = None


# --- Profiles ---

class ProfileUpsert(BaseModel):
    name: str = Field(..., min_length=1)
    address: Optional[str] = None
    phone: Optional[str] = None
    neighborhood: str = Field(..., min_length=1)
    preferences: Optional[Preferences] = None

    @field_validator('name', 'address', 'phone', 'neighborhood')
    def sanitize_fields(cls, v):
        return sanitize_input(v)

class ProfileResponse(BaseModel):
    user_id: str
    role: UserRole
    name: str
    address: Optional[str] = None
    phone: Optional[str] = None
    neighborhood: str
    sustainability_score: int = 0
    total_waste_prevented: float = 0
    join_date: datetime
    preferences: Optional[Preferences] = None

class ImpactEntryResponse(BaseModel):
    id: str
    order_id: Optional[str] = None
    date: datetime
    waste_prevented: float
    carbon_saved: float
    money_saved: float
    orders_completed: int
    group_orders_participated: int

class UserImpactResponse(BaseModel):
    profile: ProfileResponse
    total_metrics: ImpactTotals
    recent_metrics: List[ImpactEntryResponse]

class LeaderboardEntry(BaseModel):
    name: str
    sustainability_score: int
    total_waste_prevented: float

class PlatformMetricsResponse(BaseModel):
    total_metrics: ImpactTotals
    total_users: int
    total_orders: int
    average_order_value: float


# --- Group buying ---

class ProductOfferIn(BaseModel):
    product_id: str
    # Not capped at 100: an offer above 100% yields a negative price
    discount_percentage: float
    min_quantity: int = Field(1, ge=0)

class CampaignCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: str
    neighborhood: str = Field(..., min_length=1)
    target_amount: float = Field(..., gt=0)
    deadline: datetime
    delivery_date: datetime
    delivery_location: str
    product_offers: List[ProductOfferIn] = []

    @field_validator('title', 'description', 'neighborhood', 'delivery_location')
    def sanitize_fields(cls, v):
        return sanitize_input(v)

    @field_validator('deadline', 'delivery_date')
    def naive_utc(cls, v):
        # Stored and compared as naive UTC, like every other timestamp
        if v.tzinfo is not None:
            v = v.astimezone(timezone.utc).replace(tzinfo=None)
        return v

class CampaignJoin(BaseModel):
    order_amount: float = Field(..., ge=0)

class CampaignJoinResponse(BaseModel):
    target_reached: bool

class CampaignStatusUpdate(BaseModel):
    status: CampaignStatus

class ProductOfferResponse(BaseModel):
    product_id: str
    discount_percentage: float
    min_quantity: int
    product: Optional[ProductResponse] = None

class CampaignResponse(BaseModel):
    id: str
    title: str
    description: str
    organizer_id: str
    neighborhood: str
    target_amount: float
    current_amount: float
    participant_count: int
    deadline: datetime
    delivery_date: datetime
    delivery_location: str
    status: CampaignStatus
    product_offers: List[ProductOfferResponse] = []
    hub_level: HubLevel
    impact_metrics: Optional[CampaignImpact] = None
    invite_code: str
    organizer: Optional[ProfileResponse] = None


class OrderResponse(BaseModel):
    id: str
    user_id: str
    items: List[OrderItemResponse]
    total_amount: float
    status: OrderStatus
    delivery_address: str
    delivery_method: DeliveryMethod
    delivery_date: Optional[datetime] = None
    group_buying_id: Optional[str] = None
    notes: Optional[str] = None
    impact_snapshot: ImpactSnapshot
    tracking_number: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    group_buying: Optional[CampaignResponse] = None
    buyer: Optional[ProfileResponse] = None


# --- Notifications ---

class NotificationResponse(BaseModel):
    id: str
    type: NotificationType
    title: str
    message: str
    is_read: bool
    created_at: datetime
    related_id: Optional[str] = None
