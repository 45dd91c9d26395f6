# backend/livechat/api/auth.py
import redis
from fastapi import APIRouter, Cookie, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from .. import models
from ..config import ADMIN_SESSION_COOKIE, ADMIN_SESSION_TTL, COOKIE_SECURE, REDIS_URL
from ..database import get_db
from ..schemas import AdminOut, LoginIn
from ..services.auth_service import AuthService

redis_client = redis.from_url(REDIS_URL, decode_responses=True)

router = APIRouter()


def get_redis():
    return redis_client


def get_auth_service(db: Session = Depends(get_db), rds=Depends(get_redis)):
    return AuthService(db, rds)


def require_admin(
        admin_session: str = Cookie(None),
        auth: AuthService = Depends(get_auth_service),
) -> models.User:
    if not admin_session:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized - Please login"
        )
    user = auth.resolve(admin_session)
    if not user or user.role != models.Role.ADMIN.value or user.is_banned:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Forbidden - Admin access required"
        )
    return user


@router.post("/login")
def login(payload: LoginIn, response: Response, auth: AuthService = Depends(get_auth_service)):
    admin, token = auth.login(payload.email, payload.password)
    response.set_cookie(
        ADMIN_SESSION_COOKIE,
        token,
        max_age=ADMIN_SESSION_TTL,
        httponly=True,
        secure=COOKIE_SECURE,
        samesite="strict",
    )
    return {"success": True, "admin": AdminOut.model_validate(admin).model_dump(by_alias=True)}


@router.post("/logout")
def logout(response: Response, admin_session: str = Cookie(None), auth: AuthService = Depends(get_auth_service)):
    auth.logout(admin_session)
    response.delete_cookie(ADMIN_SESSION_COOKIE, httponly=True, secure=COOKIE_SECURE, samesite="strict")
    return {"success": True, "message": "Logged out successfully"}


@router.get("/me")
def me(admin: models.User = Depends(require_admin)):
    return {"admin": AdminOut.model_validate(admin).model_dump(by_alias=True)}
