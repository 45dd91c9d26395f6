# backend/livechat/api/admin.py
import csv
import io
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from .. import models, schemas
from ..database import get_db
from ..models import ChatStatus, Role
from ..services.admin_service import AdminService, EXPORT_COLUMNS
from ..services.settings_service import get_settings, update_settings
from .auth import require_admin

logger = logging.getLogger(__name__)

router = APIRouter()


def get_broadcaster(request: Request):
    return request.app.state.broadcaster


def get_admin_service(db: Session = Depends(get_db), admin: models.User = Depends(require_admin)):
    return AdminService(db, admin)


# === Analytics ===

@router.get("/analytics", response_model=schemas.AnalyticsOut)
def analytics(svc: AdminService = Depends(get_admin_service)):
    return svc.analytics()


# === Chats ===

@router.get("/chats", response_model=schemas.ChatListOut)
def list_chats(
    status: Optional[ChatStatus] = None,
    q: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    svc: AdminService = Depends(get_admin_service),
):
    return svc.list_chats(status=status.value if status else None, q=q, page=page, limit=limit)


@router.get("/chats/export")
def export_chats(
    status: Optional[ChatStatus] = None,
    q: Optional[str] = None,
    svc: AdminService = Depends(get_admin_service),
):
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(EXPORT_COLUMNS)
    for row in svc.export_rows(status=status.value if status else None, q=q):
        writer.writerow(row)
    svc.log("EXPORT_CHATS", f"status={status.value if status else 'ALL'}")
    svc.db.commit()
    buffer.seek(0)
    return StreamingResponse(
        iter([buffer.getvalue()]),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="chats.csv"'},
    )


@router.get("/chats/{chat_id}", response_model=schemas.ChatDetailOut)
def get_chat(chat_id: str, svc: AdminService = Depends(get_admin_service)):
    return svc.get_chat(chat_id)


@router.get("/chats/{chat_id}/messages", response_model=List[schemas.MessageOut])
def chat_messages(chat_id: str, svc: AdminService = Depends(get_admin_service)):
    return svc.chat_messages(chat_id)


@router.post("/chats/{chat_id}/close")
async def close_chat(
    chat_id: str,
    payload: schemas.AdminClose = None,
    svc: AdminService = Depends(get_admin_service),
    broadcaster=Depends(get_broadcaster),
):
    chat = svc.close_chat(chat_id, payload.reason if payload else None)
    await broadcaster.to_room(chat_id, "chat-closed-by-admin", {
        "chatId": chat_id,
        "reason": chat.closure_reason,
        "message": "This chat has been closed by support",
    })
    return {"ok": True}


@router.post("/chats/{chat_id}/reopen")
def reopen_chat(chat_id: str, svc: AdminService = Depends(get_admin_service)):
    svc.reopen_chat(chat_id)
    return {"ok": True}


@router.post("/chats/{chat_id}/assign")
def assign_chat(chat_id: str, payload: schemas.AssignAgent, svc: AdminService = Depends(get_admin_service)):
    chat = svc.assign_chat(chat_id, payload.agent_id)
    return {"ok": True, "assignedAgentId": chat.assigned_agent_id}


@router.put("/chats/{chat_id}/notes")
def update_notes(chat_id: str, payload: schemas.NotesUpdate, svc: AdminService = Depends(get_admin_service)):
    svc.update_notes(chat_id, payload.model_dump(exclude_unset=True))
    return {"ok": True}


@router.delete("/chats/{chat_id}")
def delete_chat(chat_id: str, svc: AdminService = Depends(get_admin_service)):
    svc.delete_chat(chat_id)
    return {"ok": True}


# === Users ===

@router.get("/users", response_model=List[schemas.UserOut])
def list_users(
    role: Optional[Role] = None,
    banned: Optional[bool] = None,
    q: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    svc: AdminService = Depends(get_admin_service),
):
    return svc.list_users(role=role.value if role else None, banned=banned, q=q, page=page, limit=limit)


@router.post("/users/{user_id}/ban", response_model=schemas.UserOut)
def ban_user(user_id: str, payload: schemas.BanUpdate, svc: AdminService = Depends(get_admin_service)):
    return svc.set_ban(user_id, payload.is_banned)


@router.post("/users/{user_id}/role", response_model=schemas.UserOut)
def change_role(user_id: str, payload: schemas.RoleUpdate, svc: AdminService = Depends(get_admin_service)):
    return svc.set_role(user_id, payload.role)


@router.delete("/users/{user_id}")
def delete_user(user_id: str, svc: AdminService = Depends(get_admin_service)):
    svc.delete_user(user_id)
    return {"ok": True}


# === Settings & activity ===

@router.get("/settings", response_model=schemas.SettingsOut)
def read_settings(db: Session = Depends(get_db), _=Depends(require_admin)):
    return get_settings(db)


@router.put("/settings", response_model=schemas.SettingsOut)
def write_settings(payload: schemas.SettingsUpdate, svc: AdminService = Depends(get_admin_service)):
    changes = payload.model_dump(exclude_unset=True)
    svc.log("UPDATE_SETTINGS", ",".join(sorted(changes)))
    return update_settings(svc.db, changes)


@router.get("/activity", response_model=List[schemas.ActivityOut])
def activity(limit: int = Query(100, ge=1, le=500), svc: AdminService = Depends(get_admin_service)):
    return svc.list_activity(limit)
