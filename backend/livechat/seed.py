# backend/livechat/seed.py
# python -m livechat.seed
import logging
import os

from sqlalchemy.orm import Session

from . import models
from .config import DEFAULT_AUTO_RESPONSE
from .database import Base, SessionLocal, engine
from .logging_config import configure_logging
from .services.auth_service import hash_password
from .services.settings_service import SETTINGS_ID

logger = logging.getLogger(__name__)

ADMIN_EMAIL = os.getenv("SEED_ADMIN_EMAIL", "admin@chatbot.com")
ADMIN_PASSWORD = os.getenv("SEED_ADMIN_PASSWORD", "admin123")


def seed(db: Session, email: str = ADMIN_EMAIL, password: str = ADMIN_PASSWORD):
    admin = db.query(models.User).filter(models.User.email == email).first()
    if admin is None:
        admin = models.User(
            email=email,
            name="Admin User",
            password=hash_password(password),
            role=models.Role.ADMIN.value,
        )
        db.add(admin)

    if db.get(models.AdminSettings, SETTINGS_ID) is None:
        db.add(models.AdminSettings(
            id=SETTINGS_ID,
            max_chats_per_user=5,
            auto_close_timeout=3600,
            enable_notifications=True,
            maintenance_mode=False,
            max_message_length=5000,
            enable_auto_response=True,
            auto_response_message=DEFAULT_AUTO_RESPONSE,
        ))

    db.commit()
    return admin


def main():
    configure_logging()
    Base.metadata.create_all(bind=engine)
    with SessionLocal() as db:
        admin = seed(db)
    logger.info("Seed data created (admin %s)", admin.email)


if __name__ == "__main__":
    main()
