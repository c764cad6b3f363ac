# grocery_shop/functions/users.py
import logging
from datetime import datetime, timedelta

from fastapi import HTTPException
from sqlalchemy import delete, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from grocery_shop.auth_utils import create_access_token, generate_otp, hash_password, verify_password
from grocery_shop.config import OTP_EXPIRE_MINUTES, OTP_MAX_ATTEMPTS
from grocery_shop.db.models import Cart, Order, PhoneVerification, Product, User, Wishlist
from grocery_shop.db.pagination import paginate
from grocery_shop.db.schemas import ProfileUpdate, RegisterIn, ResetPasswordIn, UserIn, UserUpdate
from grocery_shop.errors import field_error
from grocery_shop.events import publish_event
from grocery_shop.functions.cart import add_to_cart, get_or_create_cart

logger = logging.getLogger(__name__)


def user_token(user: User) -> str:
    return create_access_token({"sub": user.phone, "id": user.id})


async def get_user_by_id(db: AsyncSession, user_id: int):
    result = await db.execute(select(User).filter(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


async def get_user_by_phone(db: AsyncSession, phone: str):
    result = await db.execute(select(User).filter(User.phone == phone.strip()))
    return result.scalar_one_or_none()


async def _check_unique_phone(db: AsyncSession, phone: str, exclude_id: int = None):
    query = select(User.id).filter(User.phone == phone.strip())
    if exclude_id is not None:
        query = query.filter(User.id != exclude_id)
    if (await db.execute(query)).first() is not None:
        raise field_error("phone", "The phone has already been taken.")


# Customer accounts

async def register_user(db: AsyncSession, data: RegisterIn):
    await _check_unique_phone(db, data.phone)
    user = User(
        name=data.name,
        phone=data.phone.strip(),
        hashed_password=hash_password(data.password),
        address=data.address,
        city=data.city,
        area=data.area,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    logger.info("Registered user %s", user.id)
    return user


async def authenticate_user(db: AsyncSession, phone: str, password: str):
    user = await get_user_by_phone(db, phone or "")
    if not user or not verify_password(password or "", user.hashed_password):
        raise field_error("phone", "These credentials do not match our records.")
    return user


async def send_otp(db: AsyncSession, phone: str, purpose: str = "login"):
    """Store a fresh one-time code for the user and hand it to the event queue."""
    user = await get_user_by_phone(db, phone or "")
    if not user:
        raise field_error("phone", "The selected phone is invalid.")
    user.otp = generate_otp()
    user.otp_purpose = purpose
    user.otp_attempts = 0
    user.otp_expires_at = datetime.utcnow() + timedelta(minutes=OTP_EXPIRE_MINUTES)
    await db.commit()
    # No SMS gateway: the code only goes to the log and the event queue
    logger.info("OTP for %s (%s): %s", user.phone, purpose, user.otp)
    await publish_event("otp_requested", {"phone": user.phone, "otp": user.otp, "purpose": purpose})
    return user


def _clear_otp(user: User):
    user.otp = None
    user.otp_purpose = None
    user.otp_attempts = 0
    user.otp_expires_at = None


async def _consume_otp(db: AsyncSession, phone: str, otp: str, purpose: str):
    """
    Check and spend the user's one-time code.
    A code only works for the purpose it was sent for, and too many wrong guesses discard it.
    """
    user = await get_user_by_phone(db, phone or "")
    if (
        not user
        or not user.otp
        or user.otp_purpose != purpose
        or user.otp_expires_at is None
        or user.otp_expires_at < datetime.utcnow()
    ):
        raise field_error("otp", "The OTP is invalid or has expired.")
    if user.otp != (otp or "").strip():
        user.otp_attempts = (user.otp_attempts or 0) + 1
        if user.otp_attempts >= OTP_MAX_ATTEMPTS:
            logger.warning("Discarding OTP for user %s after %s wrong attempts", user.id, user.otp_attempts)
            _clear_otp(user)
        await db.commit()
        raise field_error("otp", "The OTP is invalid or has expired.")
    _clear_otp(user)
    return user


async def verify_otp_login(db: AsyncSession, phone: str, otp: str):
    user = await _consume_otp(db, phone, otp, "login")
    await db.commit()
    return user


async def reset_password(db: AsyncSession, data: ResetPasswordIn):
    user = await _consume_otp(db, data.phone, data.otp, "password_reset")
    user.hashed_password = hash_password(data.password)
    await db.commit()
    logger.info("Password reset for user %s", user.id)
    return user


# Phone verification before registration

async def _get_phone_verification(db: AsyncSession, session_id: str):
    if not session_id:
        return None
    result = await db.execute(
        select(PhoneVerification)
        .filter(PhoneVerification.session_id == session_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def send_registration_otp(db: AsyncSession, session_id: str, phone: str):
    phone = (phone or "").strip()
    if not phone:
        raise field_error("phone", "The phone field is required.")
    if await get_user_by_phone(db, phone):
        raise field_error("phone", "The phone has already been taken.")

    verification = await _get_phone_verification(db, session_id)
    if verification is None:
        verification = PhoneVerification(session_id=session_id, phone=phone)
        db.add(verification)
    verification.phone = phone
    verification.otp = generate_otp()
    verification.attempts = 0
    verification.verified_at = None
    verification.expires_at = datetime.utcnow() + timedelta(minutes=OTP_EXPIRE_MINUTES)
    await db.commit()
    logger.info("OTP for %s (registration): %s", phone, verification.otp)
    await publish_event("otp_requested", {"phone": phone, "otp": verification.otp, "purpose": "registration"})
    return verification


async def verify_registration_phone(db: AsyncSession, session_id: str, phone: str, otp: str):
    phone, otp = (phone or "").strip(), (otp or "").strip()
    if not phone:
        raise field_error("phone", "The phone field is required.")
    if len(otp) != 6:
        raise field_error("otp", "The otp must be 6 characters.")

    verification = await _get_phone_verification(db, session_id)
    if (
        verification is None
        or not verification.otp
        or verification.phone != phone
        or verification.expires_at < datetime.utcnow()
    ):
        raise field_error("otp", "The verification code is invalid or has expired.")
    if verification.otp != otp:
        verification.attempts = (verification.attempts or 0) + 1
        if verification.attempts >= OTP_MAX_ATTEMPTS:
            verification.otp = None
        await db.commit()
        raise field_error("otp", "The verification code is invalid or has expired.")

    verification.otp = None
    verification.verified_at = datetime.utcnow()
    await db.commit()
    logger.info("Phone %s verified for registration", phone)
    return verification


async def get_verified_phone(db: AsyncSession, session_id: str):
    verification = await _get_phone_verification(db, session_id)
    if verification is None or verification.verified_at is None:
        return None
    return verification.phone


async def forget_phone_verification(db: AsyncSession, session_id: str):
    if session_id:
        await db.execute(delete(PhoneVerification).filter(PhoneVerification.session_id == session_id))
        await db.commit()


# Profile

async def update_profile(db: AsyncSession, user: User, data: ProfileUpdate):
    await _check_unique_phone(db, data.phone, exclude_id=user.id)
    user.name = data.name
    user.phone = data.phone.strip()
    user.address = data.address
    user.city = data.city
    user.area = data.area
    if data.password:
        user.hashed_password = hash_password(data.password)
    await db.commit()
    await db.refresh(user)
    return user


# Wishlist

async def get_wishlist(db: AsyncSession, user: User):
    result = await db.execute(
        select(Wishlist).filter(Wishlist.user_id == user.id).order_by(Wishlist.created_at.desc(), Wishlist.id.desc())
    )
    return result.scalars().all()


async def _get_wishlist_item(db: AsyncSession, user: User, product_id: int):
    result = await db.execute(
        select(Wishlist).filter(Wishlist.user_id == user.id, Wishlist.product_id == product_id)
    )
    return result.scalar_one_or_none()


async def add_to_wishlist(db: AsyncSession, user: User, product_id: int):
    result = await db.execute(select(Product).filter(Product.id == product_id))
    product = result.scalar_one_or_none()
    if not product:
        raise field_error("product_id", "The selected product is invalid.")
    if await _get_wishlist_item(db, user, product.id):
        return False
    db.add(Wishlist(user_id=user.id, product=product))
    await db.commit()
    return True


async def remove_from_wishlist(db: AsyncSession, user: User, product_id: int):
    item = await _get_wishlist_item(db, user, product_id)
    if item is None:
        return False
    await db.delete(item)
    await db.commit()
    return True


async def in_wishlist(db: AsyncSession, user: User, product_id: int) -> bool:
    return await _get_wishlist_item(db, user, product_id) is not None


async def move_wishlist_to_cart(db: AsyncSession, user: User, product_id: int):
    item = await _get_wishlist_item(db, user, product_id)
    if item is None:
        raise HTTPException(status_code=404, detail="Product is not in your wishlist")
    if not item.product.is_active or item.product.stock <= 0:
        raise field_error("product_id", "This product is not available.")
    cart = await get_or_create_cart(db, user)
    await add_to_cart(db, cart, product_id, 1)
    await db.delete(item)
    await db.commit()
    return cart


# Admin: users

async def admin_list_users(db: AsyncSession, page: int = 1, per_page: int = 10):
    query = select(User).order_by(User.created_at.desc(), User.id.desc())
    return await paginate(db, query, page, per_page)


async def get_user_detail(db: AsyncSession, user_id: int):
    user = await get_user_by_id(db, user_id)
    result = await db.execute(select(Order).filter(Order.user_id == user.id).order_by(Order.id.desc()))
    return user, result.scalars().all()


async def create_user(db: AsyncSession, data: UserIn):
    await _check_unique_phone(db, data.phone)
    user = User(
        name=data.name,
        phone=data.phone.strip(),
        hashed_password=hash_password(data.password),
        address=data.address,
        city=data.city,
        area=data.area,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def update_user(db: AsyncSession, user_id: int, data: UserUpdate):
    user = await get_user_by_id(db, user_id)
    await _check_unique_phone(db, data.phone, exclude_id=user.id)
    for field in ("name", "address", "city", "area"):
        setattr(user, field, getattr(data, field))
    user.phone = data.phone.strip()
    if data.password:
        user.hashed_password = hash_password(data.password)
    await db.commit()
    await db.refresh(user)
    return user


async def delete_user(db: AsyncSession, user_id: int):
    user = await get_user_by_id(db, user_id)
    # Orders stay for bookkeeping, detached from the account
    await db.execute(update(Order).where(Order.user_id == user.id).values(user_id=None))
    await db.execute(delete(Wishlist).where(Wishlist.user_id == user.id))
    result = await db.execute(select(Cart).filter(Cart.user_id == user.id))
    cart = result.scalar_one_or_none()
    if cart is not None:
        await db.delete(cart)
    await db.delete(user)
    await db.commit()
    logger.info("Deleted user %s", user_id)
    return user
