# backend/livechat/services/chat_service.py
import logging
from uuid import uuid4

from fastapi import HTTPException
from sqlalchemy.orm import Session, joinedload

from .. import models
from ..schemas import FeedbackCreate
from .settings_service import load_snapshot

logger = logging.getLogger(__name__)


class ChatService:
    """Visitor-facing chat operations."""

    def __init__(self, db: Session):
        self.db = db

    def _get_chat_or_404(self, chat_id: str) -> models.ChatSession:
        chat = self.db.get(models.ChatSession, chat_id)
        if not chat:
            raise HTTPException(status_code=404, detail="Chat not found")
        return chat

    def start_chat(self, name: str = None, user_id: str = None):
        settings = load_snapshot(self.db)
        if settings.maintenance_mode:
            raise HTTPException(status_code=503, detail="Chat is temporarily unavailable")

        if user_id:
            user = self.db.get(models.User, user_id)
            if not user:
                raise HTTPException(status_code=404, detail="User not found")
            if user.is_banned:
                raise HTTPException(status_code=403, detail="User is banned")
            active = (
                self.db.query(models.ChatSession)
                .filter(
                    models.ChatSession.user_id == user.id,
                    models.ChatSession.status == models.ChatStatus.ACTIVE.value,
                )
                .count()
            )
            if active >= settings.max_chats_per_user:
                raise HTTPException(status_code=429, detail="Too many open chats")
        else:
            user = models.User(
                name=(name or "").strip() or f"Guest-{uuid4().hex[:6]}",
                role=models.Role.USER.value,
            )
            self.db.add(user)
            self.db.flush()

        chat = models.ChatSession(user_id=user.id)
        self.db.add(chat)
        self.db.commit()
        self.db.refresh(chat)
        logger.info("Chat %s started by user %s", chat.id, user.id)
        return chat

    def get_history(self, chat_id: str):
        chat = self._get_chat_or_404(chat_id)
        messages = (
            self.db.query(models.Message)
            .options(joinedload(models.Message.user))
            .filter(models.Message.chat_id == chat_id)
            .order_by(models.Message.created_at.asc())
            .all()
        )
        return chat, messages

    def rename_visitor(self, chat_id: str, name: str):
        chat = self._get_chat_or_404(chat_id)
        chat.user.name = name.strip()
        self.db.commit()
        return chat.user

    def close_by_visitor(self, chat_id: str, reason: str = None):
        chat = self._get_chat_or_404(chat_id)
        if not chat.is_closed:
            chat.close(reason or "Closed by visitor")
            self.db.commit()
            logger.info("Chat %s closed by visitor", chat_id)
        return chat

    def leave_feedback(self, chat_id: str, payload: FeedbackCreate):
        chat = self._get_chat_or_404(chat_id)
        feedback = chat.feedback
        if feedback is None:
            feedback = models.ChatFeedback(chat_id=chat.id, rating=payload.rating, resolution=payload.resolution)
            self.db.add(feedback)
        feedback.rating = payload.rating
        feedback.comment = payload.comment
        feedback.resolution = payload.resolution
        feedback.would_recommend = payload.would_recommend
        chat.satisfaction_rating = payload.rating
        self.db.commit()
        self.db.refresh(feedback)
        return feedback
