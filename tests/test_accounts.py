from datetime import datetime, timedelta

from sqlalchemy import func
from sqlalchemy.future import select

from grocery_shop.auth_utils import verify_password
from grocery_shop.config import OTP_MAX_ATTEMPTS
from grocery_shop.db.models import PhoneVerification, User

REGISTRATION = {
    "name": "John Smith",
    "phone": "0999888777",
    "password": "longenough",
    "password_confirmation": "longenough",
    "address": "2 Elm Road",
    "city": "Springfield",
    "area": "Uptown",
}


async def _fresh_user(db, phone):
    result = await db.execute(select(User).filter(User.phone == phone).execution_options(populate_existing=True))
    return result.scalar_one()


async def test_register_logs_in(client, db):
    response = await client.post("/register", data=REGISTRATION)
    assert response.status_code == 303
    assert "access_token" in response.cookies

    user = await _fresh_user(db, "0999888777")
    assert user.name == "John Smith"
    assert verify_password("longenough", user.hashed_password)
    assert (await client.get("/profile")).status_code == 200


async def test_register_validates_password(client):
    response = await client.post("/register", data={**REGISTRATION, "password": "short", "password_confirmation": "short"})
    assert response.status_code == 422
    assert 'data-field="password"' in response.text

    response = await client.post("/register", data={**REGISTRATION, "password_confirmation": "different1"})
    assert response.status_code == 422
    assert "The password confirmation does not match." in response.text


async def test_register_rejects_taken_phone(client, user):
    response = await client.post("/register", data={**REGISTRATION, "phone": user.phone})
    assert response.status_code == 422
    assert "The phone has already been taken." in response.text


async def test_login_honours_redirect(client, user):
    response = await client.post("/login", data={"phone": user.phone, "password": "secret123", "redirect": "/checkout"})
    assert response.status_code == 303
    assert response.headers["location"] == "/checkout"


async def test_login_ignores_offsite_redirect(client, user):
    response = await client.post("/login", data={"phone": user.phone, "password": "secret123", "redirect": "//evil.example"})
    assert response.headers["location"] == "/"


async def test_login_with_wrong_password(client, user):
    response = await client.post("/login", data={"phone": user.phone, "password": "nope"})
    assert response.status_code == 422
    assert "These credentials do not match our records." in response.text


async def test_logout_clears_cookie(user_client):
    response = await user_client.post("/logout")
    assert response.status_code == 303
    assert (await user_client.get("/profile")).status_code == 303


async def test_otp_login(client, user, db):
    response = await client.post("/login/otp/send", data={"phone": user.phone})
    assert response.status_code == 200

    stored = await _fresh_user(db, user.phone)
    assert len(stored.otp) == 6 and stored.otp.isdigit()
    assert stored.otp_expires_at > datetime.utcnow()

    assert (await client.post("/login/otp/verify", data={"phone": user.phone, "otp": "000000" if stored.otp != "000000" else "111111"})).status_code == 422

    response = await client.post("/login/otp/verify", data={"phone": user.phone, "otp": stored.otp})
    assert response.status_code == 303
    assert (await _fresh_user(db, user.phone)).otp is None
    assert (await client.get("/orders")).status_code == 200


async def test_expired_otp_is_refused(client, user, db):
    stored = await _fresh_user(db, user.phone)
    stored.otp = "123456"
    stored.otp_purpose = "login"
    stored.otp_expires_at = datetime.utcnow() - timedelta(minutes=1)
    await db.commit()
    response = await client.post("/login/otp/verify", data={"phone": user.phone, "otp": "123456"})
    assert response.status_code == 422


async def test_otp_for_unknown_phone(client):
    response = await client.post("/login/otp/send", data={"phone": "000"})
    assert response.status_code == 422


async def test_password_reset(client, user, db):
    response = await client.post("/forgot-password", data={"phone": user.phone})
    assert response.status_code == 303
    assert response.headers["location"].startswith("/reset-password?phone=")

    otp = (await _fresh_user(db, user.phone)).otp
    response = await client.post("/reset-password", data={
        "phone": user.phone, "otp": otp, "password": "brandnewpass", "password_confirmation": "brandnewpass",
    })
    assert response.status_code == 303
    assert verify_password("brandnewpass", (await _fresh_user(db, user.phone)).hashed_password)

    response = await client.post("/login", data={"phone": user.phone, "password": "brandnewpass"})
    assert response.status_code == 303


async def test_login_code_cannot_reset_password(client, user, db):
    await client.post("/login/otp/send", data={"phone": user.phone})
    otp = (await _fresh_user(db, user.phone)).otp

    response = await client.post("/reset-password", data={
        "phone": user.phone, "otp": otp, "password": "brandnewpass", "password_confirmation": "brandnewpass",
    })
    assert response.status_code == 422
    assert "The OTP is invalid or has expired." in response.text
    assert verify_password("secret123", (await _fresh_user(db, user.phone)).hashed_password)


async def test_otp_is_discarded_after_repeated_wrong_guesses(client, user, db):
    await client.post("/login/otp/send", data={"phone": user.phone})
    otp = (await _fresh_user(db, user.phone)).otp
    wrong = "000000" if otp != "000000" else "111111"

    for _ in range(OTP_MAX_ATTEMPTS):
        response = await client.post("/login/otp/verify", data={"phone": user.phone, "otp": wrong})
        assert response.status_code == 422

    assert (await _fresh_user(db, user.phone)).otp is None
    response = await client.post("/login/otp/verify", data={"phone": user.phone, "otp": otp})
    assert response.status_code == 422


async def test_profile_update(user_client, user, db):
    response = await user_client.post("/profile", data={
        "name": "Jane Roe", "phone": user.phone, "address": "5 Oak Lane", "city": "Shelbyville", "area": "North",
    })
    assert response.status_code == 303
    stored = await _fresh_user(db, user.phone)
    assert stored.name == "Jane Roe"
    assert stored.city == "Shelbyville"
    assert verify_password("secret123", stored.hashed_password)


async def test_profile_phone_must_be_unique(user_client, db):
    db.add(User(name="Other", phone="0555", hashed_password="x"))
    await db.commit()
    response = await user_client.post("/profile", data={"name": "Jane", "phone": "0555"})
    assert response.status_code == 422
    assert "The phone has already been taken." in response.text


async def test_pages_need_login(client):
    response = await client.get("/orders")
    assert response.status_code == 303
    assert response.headers["location"] == "/login?redirect=/orders"


async def test_wishlist_flow(user_client, make_product):
    product = await make_product(stock=5)

    assert (await user_client.get("/wishlist/check", params={"product_id": product.id})).json() == {"in_wishlist": False}
    response = await user_client.post("/wishlist/add", json={"product_id": product.id})
    assert response.json()["success"] is True
    response = await user_client.post("/wishlist/add", json={"product_id": product.id})
    assert response.json()["message"] == "Product is already in your wishlist."

    wishlist = (await user_client.get("/wishlist")).json()
    assert [entry["product"]["id"] for entry in wishlist] == [product.id]

    response = await user_client.post("/wishlist/to-cart", json={"product_id": product.id})
    assert response.status_code == 200
    assert response.json()["cart"]["item_count"] == 1
    assert (await user_client.get("/wishlist")).json() == []


async def test_wishlist_remove(user_client, make_product):
    product = await make_product()
    await user_client.post("/wishlist/add", json={"product_id": product.id})
    response = await user_client.request("DELETE", "/wishlist/remove", json={"product_id": product.id})
    assert response.json()["success"] is True
    assert (await user_client.get("/wishlist/check", params={"product_id": product.id})).json() == {"in_wishlist": False}


async def test_wishlist_needs_login(client):
    assert (await client.get("/wishlist")).status_code == 401


async def _verification(db, phone):
    result = await db.execute(
        select(PhoneVerification).filter(PhoneVerification.phone == phone).execution_options(populate_existing=True)
    )
    return result.scalar_one()


async def test_phone_verification_prefills_registration(client, db):
    response = await client.post("/register/verify/send", data={"phone": "0999888777"})
    assert response.status_code == 200
    assert "Verification code sent to 0999888777." in response.text

    otp = (await _verification(db, "0999888777")).otp
    assert len(otp) == 6 and otp.isdigit()

    wrong = "000000" if otp != "000000" else "111111"
    response = await client.post("/register/verify/otp", data={"phone": "0999888777", "otp": wrong})
    assert response.status_code == 422
    assert "The verification code is invalid or has expired." in response.text

    response = await client.post("/register/verify/otp", data={"phone": "0999888777", "otp": otp})
    assert response.status_code == 303
    assert response.headers["location"] == "/register"

    page = await client.get("/register")
    assert 'value="0999888777"' in page.text
    assert "Phone verified." in page.text

    assert (await client.post("/register", data=REGISTRATION)).status_code == 303
    assert (await db.execute(select(func.count(PhoneVerification.id)))).scalar() == 0


async def test_phone_verification_rejects_registered_phone(client, user):
    response = await client.post("/register/verify/send", data={"phone": user.phone})
    assert response.status_code == 422
    assert "The phone has already been taken." in response.text

    response = await client.post("/register/verify/send", data={"phone": " "})
    assert response.status_code == 422
    assert "The phone field is required." in response.text


async def test_verification_code_expires(client, db):
    await client.post("/register/verify/send", data={"phone": "0999888777"})
    verification = await _verification(db, "0999888777")
    verification.expires_at = datetime.utcnow() - timedelta(minutes=1)
    await db.commit()

    response = await client.post("/register/verify/otp", data={"phone": "0999888777", "otp": verification.otp})
    assert response.status_code == 422
    assert "Phone verified." not in (await client.get("/register")).text


async def test_verification_code_belongs_to_its_phone(client, db):
    await client.post("/register/verify/send", data={"phone": "0999888777"})
    otp = (await _verification(db, "0999888777")).otp

    response = await client.post("/register/verify/otp", data={"phone": "0111222333", "otp": otp})
    assert response.status_code == 422

    response = await client.post("/register/verify/otp", data={"phone": "0999888777", "otp": "12345"})
    assert response.status_code == 422
    assert "The otp must be 6 characters." in response.text
