# grocery_shop/db/schemas.py
from datetime import date, datetime
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, EmailStr, Field, field_validator

from grocery_shop.db.models import (
    AdminRole, CouponType, DeliveryOption, OrderStatus, PaymentMethod, PaymentStatus,
)

T = TypeVar("T")


class FormModel(BaseModel):
    """Base for inputs that may come from HTML forms, where empty fields arrive as ''."""

    @field_validator("*", mode="before")
    @classmethod
    def blank_to_default(cls, value, info):
        if isinstance(value, str) and value.strip() == "":
            field = cls.model_fields[info.field_name]
            return None if field.is_required() else field.default
        return value


def present(**values) -> dict:
    """Drop form fields the client did not send."""
    return {key: value for key, value in values.items() if value is not None}


# Pagination envelope shared by every list view
class Page(BaseModel, Generic[T]):
    items: List[T]
    total: int
    page: int
    per_page: int
    last_page: int


# Catalog

class ProductImageSchema(BaseModel):
    id: int
    image: str
    is_primary: bool
    order: int

    class Config:
        from_attributes = True


class CategoryBrief(BaseModel):
    id: int
    name: str
    slug: str
    image: Optional[str] = None
    parent_id: Optional[int] = None
    order: int
    is_active: bool

    class Config:
        from_attributes = True


class CategorySchema(CategoryBrief):
    description: Optional[str] = None
    parent: Optional[CategoryBrief] = None
    children: List[CategoryBrief] = []

    class Config:
        from_attributes = True


class ProductBrief(BaseModel):
    id: int
    name: str
    slug: str
    price: float
    special_price: Optional[float] = None
    final_price: float
    unit: str
    stock: int
    main_image: str

    class Config:
        from_attributes = True


class ProductSchema(ProductBrief):
    description: Optional[str] = None
    discount_percentage: int
    sku: str
    category_id: int
    is_featured: bool
    is_active: bool
    category: Optional[CategoryBrief] = None
    images: List[ProductImageSchema] = []
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CategoryDetail(BaseModel):
    category: CategorySchema
    products: List[ProductBrief]


class ProductIn(FormModel):
    name: str = Field(..., max_length=255)
    description: Optional[str] = None
    price: float = Field(..., ge=0)
    special_price: Optional[float] = Field(None, ge=0)
    unit: str = Field(..., max_length=50)
    stock: int = Field(..., ge=0)
    sku: str = Field(..., max_length=100)
    category_id: int
    is_featured: bool = False
    is_active: bool = True

    @field_validator("special_price")
    @classmethod
    def special_below_price(cls, value, info):
        price = info.data.get("price")
        if value is not None and price is not None and value >= price:
            raise ValueError("The special price must be less than the price.")
        return value


class CategoryIn(FormModel):
    name: str = Field(..., max_length=255)
    description: Optional[str] = None
    parent_id: Optional[int] = None
    order: int = 0
    is_active: bool = True


# Coupons

class CouponIn(FormModel):
    code: str = Field(..., max_length=50)
    type: CouponType
    value: float = Field(..., ge=0)
    min_order_amount: Optional[float] = Field(None, ge=0)
    starts_at: Optional[date] = None
    expires_at: Optional[date] = None
    is_active: bool = True
    usage_limit: Optional[int] = Field(None, ge=1)

    @field_validator("code")
    @classmethod
    def upper_code(cls, value):
        return value.strip().upper()

    @field_validator("value")
    @classmethod
    def percentage_cap(cls, value, info):
        if info.data.get("type") == CouponType.percentage and value > 100:
            raise ValueError("Percentage discount cannot exceed 100%.")
        return value

    @field_validator("expires_at")
    @classmethod
    def expires_after_start(cls, value, info):
        starts_at = info.data.get("starts_at")
        if value and starts_at and value < starts_at:
            raise ValueError("The expiry date must be on or after the start date.")
        return value


class CouponSchema(BaseModel):
    id: int
    code: str
    type: CouponType
    value: float
    min_order_amount: Optional[float] = None
    starts_at: Optional[date] = None
    expires_at: Optional[date] = None
    is_active: bool
    usage_limit: Optional[int] = None
    used_count: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CouponApply(BaseModel):
    coupon_code: str = Field(..., min_length=1)


class CouponValidateIn(BaseModel):
    code: str = Field(..., min_length=1)
    amount: float = Field(..., ge=0)


# Banners, areas, settings

class BannerIn(FormModel):
    title: str = Field(..., max_length=255)
    link: Optional[str] = Field(None, max_length=255)
    is_active: bool = True
    order: int = Field(0, ge=0)


class BannerSchema(BaseModel):
    id: int
    title: str
    image: str
    link: Optional[str] = None
    is_active: bool
    order: int

    class Config:
        from_attributes = True


class AreaIn(FormModel):
    name: str = Field(..., max_length=255)
    city: str = Field(..., max_length=255)
    is_serviceable: bool = True
    delivery_charge: float = Field(..., ge=0)


class AreaSchema(BaseModel):
    id: int
    name: str
    city: str
    is_serviceable: bool
    delivery_charge: float

    class Config:
        from_attributes = True


class DeliveryChargeIn(BaseModel):
    city: str
    area: str


class SettingsIn(FormModel):
    store_name: str = Field(..., max_length=255)
    store_email: EmailStr
    store_phone: str = Field(..., max_length=20)
    store_address: str = Field(..., max_length=255)
    store_city: str = Field(..., max_length=100)
    store_country: str = Field(..., max_length=100)
    store_zip: str = Field(..., max_length=20)
    meta_title: str = Field(..., max_length=255)
    meta_description: str
    currency: str = Field(..., max_length=10)
    currency_symbol: str = Field(..., max_length=5)
    tax_percentage: float = Field(..., ge=0, le=100)
    free_shipping_threshold: float = Field(..., ge=0)
    social_facebook: Optional[str] = Field(None, max_length=255)
    social_twitter: Optional[str] = Field(None, max_length=255)
    social_instagram: Optional[str] = Field(None, max_length=255)
    about_us: Optional[str] = None
    privacy_policy: Optional[str] = None
    terms_conditions: Optional[str] = None
    return_policy: Optional[str] = None
    shipping_policy: Optional[str] = None


# Users and admins

class UserBrief(BaseModel):
    id: int
    name: str
    phone: str

    class Config:
        from_attributes = True


class UserSchema(UserBrief):
    address: Optional[str] = None
    city: Optional[str] = None
    area: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UserIn(FormModel):
    name: str = Field(..., max_length=255)
    phone: str = Field(..., max_length=30)
    password: str = Field(..., min_length=6)
    address: Optional[str] = None
    city: Optional[str] = None
    area: Optional[str] = None


class UserUpdate(UserIn):
    password: Optional[str] = Field(None, min_length=6)


class RegisterIn(FormModel):
    name: str = Field(..., max_length=255)
    phone: str = Field(..., max_length=30)
    password: str = Field(..., min_length=8)
    password_confirmation: Optional[str] = None
    address: Optional[str] = Field(None, max_length=255)
    city: Optional[str] = Field(None, max_length=255)
    area: Optional[str] = Field(None, max_length=255)

    @field_validator("password_confirmation")
    @classmethod
    def passwords_match(cls, value, info):
        if info.data.get("password") is not None and value != info.data.get("password"):
            raise ValueError("The password confirmation does not match.")
        return value


class ProfileUpdate(FormModel):
    name: str = Field(..., max_length=255)
    phone: str = Field(..., max_length=30)
    password: Optional[str] = Field(None, min_length=6)
    password_confirmation: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    area: Optional[str] = None

    @field_validator("password_confirmation")
    @classmethod
    def passwords_match(cls, value, info):
        if info.data.get("password") and value != info.data.get("password"):
            raise ValueError("The password confirmation does not match.")
        return value


class ResetPasswordIn(FormModel):
    phone: str
    otp: str = Field(..., min_length=6, max_length=6)
    password: str = Field(..., min_length=8)
    password_confirmation: Optional[str] = None

    @field_validator("password_confirmation")
    @classmethod
    def passwords_match(cls, value, info):
        if info.data.get("password") is not None and value != info.data.get("password"):
            raise ValueError("The password confirmation does not match.")
        return value


class AdminSchema(BaseModel):
    id: int
    name: str
    email: str
    role: AdminRole
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AdminLogin(BaseModel):
    email: EmailStr
    password: str


class AdminIn(BaseModel):
    name: str = Field(..., max_length=255)
    email: EmailStr
    password: str = Field(..., min_length=8)
    password_confirmation: Optional[str] = None
    role: AdminRole

    @field_validator("password_confirmation")
    @classmethod
    def passwords_match(cls, value, info):
        if info.data.get("password") is not None and value != info.data.get("password"):
            raise ValueError("The password confirmation does not match.")
        return value


class AdminUpdate(AdminIn):
    password: Optional[str] = Field(None, min_length=8)


class AdminProfileUpdate(BaseModel):
    name: str = Field(..., max_length=255)
    email: EmailStr
    current_password: Optional[str] = None
    password: Optional[str] = Field(None, min_length=8)
    password_confirmation: Optional[str] = None

    @field_validator("password_confirmation")
    @classmethod
    def passwords_match(cls, value, info):
        if info.data.get("password") and value != info.data.get("password"):
            raise ValueError("The password confirmation does not match.")
        return value


# Cart

class CartItemIn(BaseModel):
    product_id: int
    quantity: int = Field(1, ge=1)


class CartQuantityIn(BaseModel):
    quantity: int = Field(..., ge=1)


class CartSyncIn(BaseModel):
    items: List[CartItemIn]


class CartItemSchema(BaseModel):
    id: int
    product_id: int
    quantity: int
    price: float
    subtotal: float
    product: ProductBrief

    class Config:
        from_attributes = True


class CartSchema(BaseModel):
    id: Optional[int] = None
    items: List[CartItemSchema] = []
    total_amount: float
    item_count: int
    coupon_code: Optional[str] = None

    class Config:
        from_attributes = True


class WishlistSchema(BaseModel):
    id: int
    product_id: int
    created_at: Optional[datetime] = None
    product: ProductSchema

    class Config:
        from_attributes = True


class WishlistIn(BaseModel):
    product_id: int


# Orders

class CheckoutItemIn(BaseModel):
    product_id: int
    quantity: int = Field(..., ge=1)
    price: Optional[float] = Field(None, ge=0)


class CheckoutIn(FormModel):
    name: str = Field(..., max_length=255)
    phone: str
    address: str
    city: str
    area: str
    payment_method: PaymentMethod
    delivery_option: DeliveryOption = DeliveryOption.standard
    notes: Optional[str] = None
    cart_items: Optional[List[CheckoutItemIn]] = None


class OrderItemSchema(BaseModel):
    id: int
    product_id: Optional[int] = None
    product_name: str
    quantity: int
    price: float
    subtotal: float

    class Config:
        from_attributes = True


class OrderBrief(BaseModel):
    id: int
    order_number: str
    total_amount: float
    payment_status: PaymentStatus
    order_status: OrderStatus
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class OrderSchema(OrderBrief):
    user_id: Optional[int] = None
    name: str
    subtotal: float
    delivery_charge: float
    discount_amount: float
    coupon_code: Optional[str] = None
    payment_method: PaymentMethod
    delivery_option: DeliveryOption
    delivered_at: Optional[datetime] = None
    address: str
    city: str
    area: str
    phone: str
    notes: Optional[str] = None
    items: List[OrderItemSchema] = []

    class Config:
        from_attributes = True


class OrderAdminSchema(OrderSchema):
    user: Optional[UserBrief] = None

    class Config:
        from_attributes = True


class UserDetail(UserSchema):
    orders: List[OrderBrief] = []

    class Config:
        from_attributes = True


class OrderStatusUpdate(BaseModel):
    order_status: OrderStatus
    payment_status: PaymentStatus


class PlacedOrder(BaseModel):
    order_id: int
    order_number: str
    total_amount: float
    redirect: str
