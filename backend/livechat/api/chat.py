# backend/livechat/api/chat.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import schemas
from ..database import get_db
from ..services.chat_service import ChatService

router = APIRouter()


@router.post("/start", response_model=schemas.ChatStartOut)
def start_chat(payload: schemas.ChatStart = None, db: Session = Depends(get_db)):
    payload = payload or schemas.ChatStart()
    chat = ChatService(db).start_chat(name=payload.name, user_id=payload.user_id)
    return {"chat_id": chat.id, "user_id": chat.user_id}


@router.get("/{chat_id}", response_model=schemas.ChatSessionOut)
def get_chat(chat_id: str, db: Session = Depends(get_db)):
    chat, messages = ChatService(db).get_history(chat_id)
    return {
        "id": chat.id,
        "status": chat.status,
        "user_id": chat.user_id,
        "created_at": chat.created_at,
        "updated_at": chat.updated_at,
        "closed_at": chat.closed_at,
        "closure_reason": chat.closure_reason,
        "user": {"id": chat.user.id, "name": chat.user.name, "role": chat.user.role},
        "messages": [schemas.MessageOut.model_validate(m) for m in messages],
    }


@router.post("/{chat_id}/name")
def rename_visitor(chat_id: str, payload: schemas.ChatRename, db: Session = Depends(get_db)):
    user = ChatService(db).rename_visitor(chat_id, payload.name)
    return {"status": "ok", "name": user.name}


@router.post("/{chat_id}/close")
def close_chat(chat_id: str, payload: schemas.ChatClose = None, db: Session = Depends(get_db)):
    reason = payload.reason if payload else None
    chat = ChatService(db).close_by_visitor(chat_id, reason)
    return {"status": "ok", "chatStatus": chat.status}


@router.post("/{chat_id}/feedback", response_model=schemas.FeedbackOut)
def leave_feedback(chat_id: str, payload: schemas.FeedbackCreate, db: Session = Depends(get_db)):
    return ChatService(db).leave_feedback(chat_id, payload)
