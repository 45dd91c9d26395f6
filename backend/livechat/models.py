# backend/livechat/models.py
import enum
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, String, Text, DateTime, ForeignKey, Boolean, Integer
from sqlalchemy.orm import relationship

from .database import Base


def utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id():
    return str(uuid4())


class Role(str, enum.Enum):
    USER = "USER"
    ADMIN = "ADMIN"
    AGENT = "AGENT"


class ChatStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    CLOSED = "CLOSED"


class User(Base):
    __tablename__ = "users"
    id = Column(String, primary_key=True, default=new_id)
    email = Column(String, unique=True, index=True, nullable=True)
    name = Column(String, nullable=False)
    password = Column(String, nullable=True)
    role = Column(String, nullable=False, default=Role.USER.value, index=True)
    is_banned = Column(Boolean, nullable=False, default=False, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    chats = relationship(
        "ChatSession",
        back_populates="user",
        foreign_keys="ChatSession.user_id",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class ChatSession(Base):
    __tablename__ = "chat_sessions"
    id = Column(String, primary_key=True, default=new_id)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    assigned_agent_id = Column(String, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    status = Column(String, nullable=False, default=ChatStatus.ACTIVE.value, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
    closed_at = Column(DateTime, nullable=True, index=True)
    duration = Column(Integer, nullable=True)  # seconds from start to close
    closure_reason = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    internal_notes = Column(Text, nullable=True)
    satisfaction_rating = Column(Integer, nullable=True)

    user = relationship("User", back_populates="chats", foreign_keys=[user_id])
    assigned_agent = relationship("User", foreign_keys=[assigned_agent_id])
    messages = relationship(
        "Message",
        back_populates="chat",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Message.created_at",
    )
    feedback = relationship(
        "ChatFeedback",
        back_populates="chat",
        uselist=False,
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def is_closed(self):
        return self.status == ChatStatus.CLOSED.value

    def close(self, reason=None):
        now = utcnow()
        self.status = ChatStatus.CLOSED.value
        self.closed_at = now
        self.closure_reason = reason
        if self.created_at:
            self.duration = int((now - self.created_at).total_seconds())

    def reopen(self):
        self.status = ChatStatus.ACTIVE.value
        self.closed_at = None
        self.closure_reason = None
        self.duration = None


class Message(Base):
    __tablename__ = "messages"
    id = Column(String, primary_key=True, default=new_id)
    chat_id = Column(String, ForeignKey("chat_sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    content = Column(Text, nullable=False)
    is_bot = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)

    chat = relationship("ChatSession", back_populates="messages")
    user = relationship("User")

    @property
    def sender(self):
        return Role.ADMIN.value if self.is_bot else Role.USER.value


class AdminSettings(Base):
    __tablename__ = "admin_settings"
    id = Column(String, primary_key=True, default="default")
    max_chats_per_user = Column(Integer, nullable=False, default=5)
    auto_close_timeout = Column(Integer, nullable=False, default=3600)
    max_message_length = Column(Integer, nullable=False, default=5000)
    enable_notifications = Column(Boolean, nullable=False, default=True)
    enable_auto_response = Column(Boolean, nullable=False, default=True)
    auto_response_message = Column(Text, nullable=True)
    maintenance_mode = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class ActivityLog(Base):
    __tablename__ = "activity_logs"
    id = Column(String, primary_key=True, default=new_id)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    action = Column(String, nullable=False, index=True)
    details = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)


class ChatFeedback(Base):
    __tablename__ = "chat_feedbacks"
    id = Column(String, primary_key=True, default=new_id)
    chat_id = Column(String, ForeignKey("chat_sessions.id", ondelete="CASCADE"), unique=True, nullable=False)
    rating = Column(Integer, nullable=False, index=True)
    comment = Column(Text, nullable=True)
    resolution = Column(Boolean, nullable=False)
    would_recommend = Column(Boolean, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    chat = relationship("ChatSession", back_populates="feedback")
