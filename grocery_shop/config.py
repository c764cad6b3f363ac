# grocery_shop/config.py
import os
from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL") or (
    f"postgresql+asyncpg://{os.getenv('SHOP_DB_USER')}:{os.getenv('SHOP_DB_PASSWORD')}"
    f"@{os.getenv('SHOP_DB_HOST')}:{os.getenv('SHOP_DB_PORT')}/{os.getenv('SHOP_DB_NAME')}"
)
DB_ECHO = os.getenv("DB_ECHO", "false").lower() == "true"

SECRET_KEY = os.getenv("SECRET_KEY", "your_secret_key")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "1440"))
OTP_EXPIRE_MINUTES = int(os.getenv("OTP_EXPIRE_MINUTES", "10"))
# Wrong guesses before a code is thrown away
OTP_MAX_ATTEMPTS = int(os.getenv("OTP_MAX_ATTEMPTS", "5"))

# Uploaded images live here and are served under /storage
STORAGE_DIR = os.getenv("STORAGE_DIR", "storage")
MAX_IMAGE_SIZE = 2 * 1024 * 1024

ALLOWED_ORIGINS = [origin.strip() for origin in os.getenv("ALLOWED_ORIGINS", "http://localhost:8000").split(",")]

# Empty means events are only logged
RABBITMQ_URL = os.getenv("RABBITMQ_URL", "")
EVENTS_QUEUE = os.getenv("EVENTS_QUEUE", "shop_events")

DEFAULT_ADMIN_EMAIL = os.getenv("DEFAULT_ADMIN_EMAIL", "admin@example.com")
DEFAULT_ADMIN_PASSWORD = os.getenv("DEFAULT_ADMIN_PASSWORD", "password123")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
