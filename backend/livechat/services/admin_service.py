# backend/livechat/services/admin_service.py
import logging
from datetime import datetime, time

from fastapi import HTTPException
from sqlalchemy import func, or_
from sqlalchemy.orm import Session, joinedload

from .. import models
from ..models import ChatStatus, Role

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = [
    "id", "status", "visitor", "visitor_email", "assigned_agent_id",
    "created_at", "closed_at", "duration", "closure_reason",
    "satisfaction_rating", "message_count",
]


class AdminService:
    def __init__(self, db: Session, admin: models.User = None):
        self.db = db
        self.admin = admin

    # -------------------
    # Helpers
    # -------------------
    def log(self, action: str, details: str = None):
        if self.admin is None:
            return
        self.db.add(models.ActivityLog(user_id=self.admin.id, action=action, details=details))

    def _get_chat_or_404(self, chat_id: str) -> models.ChatSession:
        chat = self.db.get(models.ChatSession, chat_id)
        if not chat:
            raise HTTPException(status_code=404, detail="Chat not found")
        return chat

    def _get_user_or_404(self, user_id: str) -> models.User:
        user = self.db.get(models.User, user_id)
        if not user:
            raise HTTPException(status_code=404, detail="User not found")
        return user

    def _message_counts(self, chat_ids):
        if not chat_ids:
            return {}
        rows = (
            self.db.query(models.Message.chat_id, func.count(models.Message.id))
            .filter(models.Message.chat_id.in_(chat_ids))
            .group_by(models.Message.chat_id)
            .all()
        )
        return dict(rows)

    def _last_message(self, chat_id: str):
        return (
            self.db.query(models.Message.content)
            .filter(models.Message.chat_id == chat_id)
            .order_by(models.Message.created_at.desc())
            .limit(1)
            .scalar()
        )

    def _summary(self, chat: models.ChatSession, count: int) -> dict:
        return {
            "id": chat.id,
            "status": chat.status,
            "user": {"id": chat.user.id, "name": chat.user.name, "role": chat.user.role},
            "assigned_agent_id": chat.assigned_agent_id,
            "created_at": chat.created_at,
            "updated_at": chat.updated_at,
            "closed_at": chat.closed_at,
            "closure_reason": chat.closure_reason,
            "satisfaction_rating": chat.satisfaction_rating,
            "last_message": self._last_message(chat.id),
            "message_count": count,
        }

    def _filtered_chats(self, status: str = None, q: str = None):
        query = (
            self.db.query(models.ChatSession)
            .join(models.User, models.ChatSession.user_id == models.User.id)
            .options(joinedload(models.ChatSession.user))
        )
        if status:
            query = query.filter(models.ChatSession.status == status)
        if q:
            pattern = f"%{q.strip()}%"
            query = query.filter(
                or_(
                    models.User.name.ilike(pattern),
                    models.User.email.ilike(pattern),
                    models.ChatSession.messages.any(models.Message.content.ilike(pattern)),
                )
            )
        return query

    # -------------------
    # Analytics
    # -------------------
    def analytics(self) -> dict:
        counts = dict(
            self.db.query(models.ChatSession.status, func.count(models.ChatSession.id))
            .group_by(models.ChatSession.status)
            .all()
        )
        active = counts.get(ChatStatus.ACTIVE.value, 0)
        closed = counts.get(ChatStatus.CLOSED.value, 0)
        midnight = datetime.combine(models.utcnow().date(), time.min)
        chats_today = (
            self.db.query(func.count(models.ChatSession.id))
            .filter(models.ChatSession.created_at >= midnight)
            .scalar()
        )
        avg_duration = (
            self.db.query(func.avg(models.ChatSession.duration))
            .filter(models.ChatSession.duration.isnot(None))
            .scalar()
        )
        avg_rating = self.db.query(func.avg(models.ChatFeedback.rating)).scalar()
        return {
            "active_count": active,
            "closed_count": closed,
            "total_count": active + closed,
            "total_messages": self.db.query(func.count(models.Message.id)).scalar(),
            "chats_today": chats_today,
            "avg_duration": float(avg_duration) if avg_duration is not None else None,
            "avg_rating": float(avg_rating) if avg_rating is not None else None,
            "agents": self.agent_stats(),
        }

    def agent_stats(self) -> list:
        agents = (
            self.db.query(models.User)
            .filter(models.User.role.in_([Role.ADMIN.value, Role.AGENT.value]))
            .order_by(models.User.created_at)
            .all()
        )
        stats = []
        for agent in agents:
            assigned = self.db.query(models.ChatSession).filter(models.ChatSession.assigned_agent_id == agent.id)
            closed = assigned.filter(models.ChatSession.status == ChatStatus.CLOSED.value).count()
            # auto-replies are attributed to an admin but not written by one
            written = (
                self.db.query(func.count(models.Message.id))
                .filter(models.Message.user_id == agent.id, models.Message.is_bot.is_(False))
                .scalar()
            )
            avg_rating, avg_duration = (
                self.db.query(func.avg(models.ChatSession.satisfaction_rating), func.avg(models.ChatSession.duration))
                .filter(models.ChatSession.assigned_agent_id == agent.id)
                .one()
            )
            stats.append({
                "agent_id": agent.id,
                "name": agent.name,
                "total_chats": assigned.count(),
                "closed_chats": closed,
                "total_messages": written,
                "avg_rating": float(avg_rating) if avg_rating is not None else None,
                "avg_resolution_time": float(avg_duration) if avg_duration is not None else None,
            })
        return stats

    # -------------------
    # Chats
    # -------------------
    def list_chats(self, status: str = None, q: str = None, page: int = 1, limit: int = 20):
        query = self._filtered_chats(status, q)
        total = query.count()
        chats = (
            query.order_by(models.ChatSession.updated_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        counts = self._message_counts([c.id for c in chats])
        items = [self._summary(c, counts.get(c.id, 0)) for c in chats]
        return {"items": items, "total": total, "page": page, "limit": limit}

    def export_rows(self, status: str = None, q: str = None):
        chats = self._filtered_chats(status, q).order_by(models.ChatSession.created_at.asc()).all()
        counts = self._message_counts([c.id for c in chats])
        for c in chats:
            yield [
                c.id, c.status, c.user.name, c.user.email or "", c.assigned_agent_id or "",
                c.created_at.isoformat(), c.closed_at.isoformat() if c.closed_at else "",
                c.duration if c.duration is not None else "", c.closure_reason or "",
                c.satisfaction_rating if c.satisfaction_rating is not None else "",
                counts.get(c.id, 0),
            ]

    def get_chat(self, chat_id: str) -> dict:
        chat = self._get_chat_or_404(chat_id)
        data = self._summary(chat, self._message_counts([chat.id]).get(chat.id, 0))
        data.update(notes=chat.notes, internal_notes=chat.internal_notes, duration=chat.duration)
        return data

    def chat_messages(self, chat_id: str):
        self._get_chat_or_404(chat_id)
        return (
            self.db.query(models.Message)
            .options(joinedload(models.Message.user))
            .filter(models.Message.chat_id == chat_id)
            .order_by(models.Message.created_at.asc())
            .all()
        )

    def close_chat(self, chat_id: str, reason: str = None) -> models.ChatSession:
        chat = self._get_chat_or_404(chat_id)
        chat.close(reason or "Closed by admin")
        self.log("CLOSE_CHAT", f"chat={chat_id}")
        self.db.commit()
        logger.info("Chat %s closed by admin", chat_id)
        return chat

    def reopen_chat(self, chat_id: str) -> models.ChatSession:
        chat = self._get_chat_or_404(chat_id)
        chat.reopen()
        self.log("REOPEN_CHAT", f"chat={chat_id}")
        self.db.commit()
        return chat

    def assign_chat(self, chat_id: str, agent_id: str = None) -> models.ChatSession:
        chat = self._get_chat_or_404(chat_id)
        if agent_id:
            agent = self._get_user_or_404(agent_id)
            if agent.role not in (Role.ADMIN.value, Role.AGENT.value):
                raise HTTPException(status_code=400, detail="User is not an agent")
        chat.assigned_agent_id = agent_id
        self.log("ASSIGN_CHAT", f"chat={chat_id} agent={agent_id}")
        self.db.commit()
        return chat

    def update_notes(self, chat_id: str, changes: dict) -> models.ChatSession:
        chat = self._get_chat_or_404(chat_id)
        for key, value in changes.items():
            setattr(chat, key, value)
        self.log("UPDATE_NOTES", f"chat={chat_id}")
        self.db.commit()
        return chat

    def delete_chat(self, chat_id: str):
        chat = self._get_chat_or_404(chat_id)
        self.db.delete(chat)
        self.log("DELETE_CHAT", f"chat={chat_id}")
        self.db.commit()

    # -------------------
    # Users
    # -------------------
    def list_users(self, role: str = None, banned: bool = None, q: str = None, page: int = 1, limit: int = 50):
        query = self.db.query(models.User)
        if role:
            query = query.filter(models.User.role == role)
        if banned is not None:
            query = query.filter(models.User.is_banned == banned)
        if q:
            pattern = f"%{q.strip()}%"
            query = query.filter(or_(models.User.name.ilike(pattern), models.User.email.ilike(pattern)))
        return (
            query.order_by(models.User.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )

    def _guard_self(self, user: models.User):
        if self.admin is not None and user.id == self.admin.id:
            raise HTTPException(status_code=400, detail="Cannot modify your own account")

    def set_ban(self, user_id: str, is_banned: bool) -> models.User:
        user = self._get_user_or_404(user_id)
        self._guard_self(user)
        user.is_banned = is_banned
        self.log("BAN_USER" if is_banned else "UNBAN_USER", f"user={user_id}")
        self.db.commit()
        return user

    def set_role(self, user_id: str, role: Role) -> models.User:
        user = self._get_user_or_404(user_id)
        self._guard_self(user)
        user.role = role.value
        self.log("CHANGE_ROLE", f"user={user_id} role={role.value}")
        self.db.commit()
        return user

    def delete_user(self, user_id: str):
        user = self._get_user_or_404(user_id)
        self._guard_self(user)
        self.db.delete(user)
        self.log("DELETE_USER", f"user={user_id}")
        self.db.commit()

    def list_activity(self, limit: int = 100):
        return (
            self.db.query(models.ActivityLog)
            .order_by(models.ActivityLog.created_at.desc())
            .limit(limit)
            .all()
        )
