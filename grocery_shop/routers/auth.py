# grocery_shop/routers/auth.py
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from grocery_shop.config import ACCESS_TOKEN_EXPIRE_MINUTES
from grocery_shop.db.database import get_db
from grocery_shop.db.models import User
from grocery_shop.db.schemas import RegisterIn, ResetPasswordIn
from grocery_shop.deps import USER_COOKIE, get_session_id
from grocery_shop.errors import FieldError, form_errors
from grocery_shop.functions import users
from grocery_shop.functions.cart import merge_guest_cart
from grocery_shop.templating import render

router = APIRouter()


def safe_redirect(target: str) -> str:
    # Only same-site paths
    if target and target.startswith("/") and not target.startswith("//"):
        return target
    return "/"


async def login_response(request: Request, db: AsyncSession, user: User, session_id: str, redirect: str = "/"):
    await merge_guest_cart(db, session_id, user)
    response = RedirectResponse(url=safe_redirect(redirect), status_code=303)
    response.set_cookie(
        key=USER_COOKIE,
        value=users.user_token(user),
        httponly=True,
        secure=request.url.scheme == "https",
        max_age=ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )
    return response


@router.get("/login", response_class=HTMLResponse)
async def login_form(request: Request, redirect: str = "/", db: AsyncSession = Depends(get_db)):
    return await render(request, db, "auth/login.html", {"redirect": redirect, "form": {}})


@router.post("/login")
async def login(
    request: Request,
    phone: str = Form(""),
    password: str = Form(""),
    redirect: str = Form("/"),
    db: AsyncSession = Depends(get_db),
    session_id: str = Depends(get_session_id),
):
    try:
        user = await users.authenticate_user(db, phone, password)
    except FieldError as e:
        return await render(request, db, "auth/login.html", {
            "redirect": redirect, "form": {"phone": phone}, "errors": e.errors,
        }, status_code=422)
    return await login_response(request, db, user, session_id, redirect)


@router.post("/logout")
async def logout():
    response = RedirectResponse(url="/", status_code=303)
    response.delete_cookie(USER_COOKIE)
    return response


@router.get("/register", response_class=HTMLResponse)
async def register_form(
    request: Request, db: AsyncSession = Depends(get_db), session_id: str = Depends(get_session_id)
):
    verified_phone = await users.get_verified_phone(db, session_id)
    return await render(request, db, "auth/register.html", {
        "form": {"phone": verified_phone}, "verified_phone": verified_phone,
    })


@router.post("/register")
async def register(
    request: Request,
    name: str = Form(""),
    phone: str = Form(""),
    password: str = Form(""),
    password_confirmation: str = Form(""),
    address: str = Form(""),
    city: str = Form(""),
    area: str = Form(""),
    db: AsyncSession = Depends(get_db),
    session_id: str = Depends(get_session_id),
):
    form = {"name": name, "phone": phone, "address": address, "city": city, "area": area}
    try:
        data = RegisterIn(password=password, password_confirmation=password_confirmation, **form)
        user = await users.register_user(db, data)
    except (ValidationError, FieldError) as e:
        return await render(request, db, "auth/register.html", {"form": form, "errors": form_errors(e)}, status_code=422)
    await users.forget_phone_verification(db, session_id)
    return await login_response(request, db, user, session_id)


@router.get("/register/verify", response_class=HTMLResponse)
async def phone_verification_form(request: Request, db: AsyncSession = Depends(get_db)):
    return await render(request, db, "auth/phone_verification.html", {"form": {}, "sent": False})


@router.post("/register/verify/send", response_class=HTMLResponse)
async def phone_verification_send(
    request: Request,
    phone: str = Form(""),
    db: AsyncSession = Depends(get_db),
    session_id: str = Depends(get_session_id),
):
    try:
        await users.send_registration_otp(db, session_id, phone)
    except FieldError as e:
        return await render(request, db, "auth/phone_verification.html", {
            "form": {"phone": phone}, "sent": False, "errors": e.errors,
        }, status_code=422)
    return await render(request, db, "auth/phone_verification.html", {"form": {"phone": phone.strip()}, "sent": True})


@router.post("/register/verify/otp")
async def phone_verification_check(
    request: Request,
    phone: str = Form(""),
    otp: str = Form(""),
    db: AsyncSession = Depends(get_db),
    session_id: str = Depends(get_session_id),
):
    try:
        await users.verify_registration_phone(db, session_id, phone, otp)
    except FieldError as e:
        return await render(request, db, "auth/phone_verification.html", {
            "form": {"phone": phone}, "sent": True, "errors": e.errors,
        }, status_code=422)
    return RedirectResponse(url="/register", status_code=303)


@router.get("/login/otp", response_class=HTMLResponse)
async def otp_login_form(request: Request, db: AsyncSession = Depends(get_db)):
    return await render(request, db, "auth/otp_login.html", {"form": {}, "sent": False})


@router.post("/login/otp/send", response_class=HTMLResponse)
async def otp_send(request: Request, phone: str = Form(""), db: AsyncSession = Depends(get_db)):
    try:
        await users.send_otp(db, phone, purpose="login")
    except FieldError as e:
        return await render(request, db, "auth/otp_login.html", {
            "form": {"phone": phone}, "sent": False, "errors": e.errors,
        }, status_code=422)
    return await render(request, db, "auth/otp_login.html", {"form": {"phone": phone}, "sent": True})


@router.post("/login/otp/verify")
async def otp_verify(
    request: Request,
    phone: str = Form(""),
    otp: str = Form(""),
    db: AsyncSession = Depends(get_db),
    session_id: str = Depends(get_session_id),
):
    try:
        user = await users.verify_otp_login(db, phone, otp)
    except FieldError as e:
        return await render(request, db, "auth/otp_login.html", {
            "form": {"phone": phone}, "sent": True, "errors": e.errors,
        }, status_code=422)
    return await login_response(request, db, user, session_id)


@router.get("/forgot-password", response_class=HTMLResponse)
async def forgot_password_form(request: Request, db: AsyncSession = Depends(get_db)):
    return await render(request, db, "auth/forgot_password.html", {"form": {}})


@router.post("/forgot-password")
async def forgot_password(request: Request, phone: str = Form(""), db: AsyncSession = Depends(get_db)):
    try:
        await users.send_otp(db, phone, purpose="password_reset")
    except FieldError as e:
        return await render(request, db, "auth/forgot_password.html", {
            "form": {"phone": phone}, "errors": e.errors,
        }, status_code=422)
    return RedirectResponse(url="/reset-password?" + urlencode({"phone": phone.strip()}), status_code=303)


@router.get("/reset-password", response_class=HTMLResponse)
async def reset_password_form(request: Request, phone: str = "", db: AsyncSession = Depends(get_db)):
    return await render(request, db, "auth/reset_password.html", {"form": {"phone": phone}})


@router.post("/reset-password")
async def reset_password(
    request: Request,
    phone: str = Form(""),
    otp: str = Form(""),
    password: str = Form(""),
    password_confirmation: str = Form(""),
    db: AsyncSession = Depends(get_db),
):
    try:
        data = ResetPasswordIn(phone=phone, otp=otp, password=password, password_confirmation=password_confirmation)
        await users.reset_password(db, data)
    except (ValidationError, FieldError) as e:
        return await render(request, db, "auth/reset_password.html", {
            "form": {"phone": phone}, "errors": form_errors(e),
        }, status_code=422)
    return RedirectResponse(url="/login", status_code=303)
