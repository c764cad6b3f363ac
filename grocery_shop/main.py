# grocery_shop/main.py
import logging
import uuid
from pathlib import Path
from typing import AsyncGenerator
from urllib.parse import quote

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse
from fastapi.staticfiles import StaticFiles

from grocery_shop.config import ALLOWED_ORIGINS, LOG_LEVEL, STORAGE_DIR
from grocery_shop.db.init_db import init_db
from grocery_shop.deps import SESSION_COOKIE, LoginRequired
from grocery_shop.errors import register_error_handlers
from grocery_shop.routers import (
    account, admin, admin_catalog, admin_content, admin_sales, auth, cart, checkout, shop,
)
from grocery_shop.templating import BASE_DIR

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


async def lifespan(app: FastAPI) -> AsyncGenerator:
    await init_db()
    logger.info("Database ready")
    yield

app = FastAPI(title="Grocery Shop", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def cart_session(request: Request, call_next):
    """Give every visitor a session id so guests can keep a cart."""
    session_id = request.cookies.get(SESSION_COOKIE)
    issued = session_id is None
    if issued:
        session_id = uuid.uuid4().hex
    request.state.session_id = session_id
    response = await call_next(request)
    if issued:
        response.set_cookie(key=SESSION_COOKIE, value=session_id, httponly=True, samesite="lax")
    return response


@app.exception_handler(LoginRequired)
async def login_required_handler(request: Request, exc: LoginRequired):
    return RedirectResponse(url=f"/login?redirect={quote(exc.next_url, safe='/')}", status_code=303)


register_error_handlers(app)

Path(STORAGE_DIR).mkdir(parents=True, exist_ok=True)
app.mount("/static", StaticFiles(directory=str(BASE_DIR / "static")), name="static")
app.mount("/storage", StaticFiles(directory=STORAGE_DIR), name="storage")

app.include_router(shop.router)
app.include_router(cart.router)
app.include_router(checkout.router)
app.include_router(auth.router)
app.include_router(account.router)
app.include_router(admin.router)
app.include_router(admin.protected)
app.include_router(admin_catalog.router)
app.include_router(admin_sales.router)
app.include_router(admin_content.router)
