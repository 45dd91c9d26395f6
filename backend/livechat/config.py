# backend/livechat/config.py
import os

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./livechat.db")
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")

CORS_ORIGINS = [o for o in os.getenv("CORS_ORIGINS", "").split(",") if o]

ADMIN_SESSION_COOKIE = "admin_session"
ADMIN_SESSION_TTL = int(os.getenv("ADMIN_SESSION_TTL", str(60 * 60 * 24 * 7)))
COOKIE_SECURE = os.getenv("COOKIE_SECURE", "false").lower() == "true"

AUTO_RESPONSE_DELAY = float(os.getenv("AUTO_RESPONSE_DELAY", "1.0"))
CLEANUP_INTERVAL_SECONDS = int(os.getenv("CLEANUP_INTERVAL_SECONDS", "3600"))

TELEGRAM_BOT_TOKEN = os.getenv("TELEGRAM_BOT_TOKEN")
OPERATOR_CHAT_IDS = [int(i) for i in os.getenv("OPERATOR_CHAT_IDS", "").split(",") if i.strip()]
OPERATOR_CONSOLE_URL = os.getenv("OPERATOR_CONSOLE_URL", "http://localhost:3000/admin/chats")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

DEFAULT_AUTO_RESPONSE = "Thank you for contacting us. An agent will be with you soon."
