# backend/livechat/services/auth_service.py
import logging
import secrets

import bcrypt
from fastapi import HTTPException
from sqlalchemy.orm import Session

from .. import models
from ..config import ADMIN_SESSION_TTL

logger = logging.getLogger(__name__)

SESSION_KEY = "admin_session:{}"


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    if not password_hash:
        return False
    return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))


class AuthService:
    """Admin login backed by an opaque token kept in redis."""

    def __init__(self, db: Session, redis_client, ttl: int = ADMIN_SESSION_TTL):
        self.db = db
        self.redis = redis_client
        self.ttl = ttl

    def login(self, email: str, password: str):
        if not email or not password:
            raise HTTPException(status_code=400, detail="Email and password are required")

        user = self.db.query(models.User).filter(models.User.email == email).first()
        if not user:
            raise HTTPException(status_code=401, detail="Invalid email or password")
        if user.role != models.Role.ADMIN.value:
            raise HTTPException(status_code=403, detail="Access denied - Admin only")
        if user.is_banned:
            raise HTTPException(status_code=403, detail="Account is banned")
        if not verify_password(password, user.password):
            raise HTTPException(status_code=401, detail="Invalid email or password")

        token = secrets.token_urlsafe(32)
        self.redis.setex(SESSION_KEY.format(token), self.ttl, user.id)
        logger.info("Admin %s logged in", user.id)
        return user, token

    def resolve(self, token: str):
        if not token:
            return None
        user_id = self.redis.get(SESSION_KEY.format(token))
        if not user_id:
            return None
        return self.db.get(models.User, user_id)

    def logout(self, token: str):
        if token:
            self.redis.delete(SESSION_KEY.format(token))
