from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import Optional, List
from datetime import datetime

from .models import Role, ChatStatus


class CamelModel(BaseModel):
    # JS clients speak camelCase; python side stays snake_case
    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


class UserBrief(CamelModel):
    id: str
    name: str
    role: str


class UserOut(CamelModel):
    id: str
    name: str
    email: Optional[str] = None
    role: str
    is_banned: bool
    created_at: datetime


class MessageOut(CamelModel):
    id: str
    chat_id: str
    user_id: str
    content: str
    is_bot: bool
    sender: str
    created_at: datetime
    user: Optional[UserBrief] = None


# === Visitor side ===

class ChatStart(CamelModel):
    name: Optional[str] = None
    user_id: Optional[str] = None


class ChatStartOut(CamelModel):
    chat_id: str
    user_id: str


class ChatSessionOut(CamelModel):
    id: str
    status: ChatStatus
    user_id: str
    created_at: datetime
    updated_at: datetime
    closed_at: Optional[datetime] = None
    closure_reason: Optional[str] = None
    user: Optional[UserBrief] = None
    messages: List[MessageOut]


class ChatRename(CamelModel):
    name: str = Field(min_length=1, max_length=100)

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, value):
        return value.strip() if isinstance(value, str) else value


class ChatClose(CamelModel):
    reason: Optional[str] = None


class FeedbackCreate(CamelModel):
    rating: int = Field(ge=1, le=5)
    comment: Optional[str] = None
    resolution: bool
    would_recommend: Optional[bool] = None


class FeedbackOut(CamelModel):
    id: str
    chat_id: str
    rating: int
    comment: Optional[str] = None
    resolution: bool
    would_recommend: Optional[bool] = None
    created_at: datetime


# === Realtime ===

class SendMessagePayload(CamelModel):
    chat_id: Optional[str] = None
    content: Optional[str] = None
    sender: Optional[str] = None
    is_admin: bool = False
    is_bot: bool = False
    user_id: Optional[str] = None

    @property
    def acting_as_admin(self) -> bool:
        if self.is_admin or self.is_bot:
            return True
        return (self.sender or "").upper() in (Role.ADMIN.value, Role.AGENT.value)


# === Auth ===

class LoginIn(CamelModel):
    email: str
    password: str


class AdminOut(CamelModel):
    id: str
    email: Optional[str] = None
    name: str
    role: str


# === Admin ===

class ChatSummaryOut(CamelModel):
    id: str
    status: ChatStatus
    user: UserBrief
    assigned_agent_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    closed_at: Optional[datetime] = None
    closure_reason: Optional[str] = None
    satisfaction_rating: Optional[int] = None
    last_message: Optional[str] = None
    message_count: int = 0


class ChatDetailOut(ChatSummaryOut):
    notes: Optional[str] = None
    internal_notes: Optional[str] = None
    duration: Optional[int] = None


class ChatListOut(CamelModel):
    items: List[ChatSummaryOut]
    total: int
    page: int
    limit: int


class AdminClose(CamelModel):
    reason: Optional[str] = None


class AssignAgent(CamelModel):
    agent_id: Optional[str] = None


class NotesUpdate(CamelModel):
    notes: Optional[str] = None
    internal_notes: Optional[str] = None


class BanUpdate(CamelModel):
    is_banned: bool


class RoleUpdate(CamelModel):
    role: Role


class SettingsOut(CamelModel):
    max_chats_per_user: int
    auto_close_timeout: int
    max_message_length: int
    enable_notifications: bool
    enable_auto_response: bool
    auto_response_message: Optional[str] = None
    maintenance_mode: bool


class SettingsUpdate(CamelModel):
    max_chats_per_user: Optional[int] = Field(default=None, ge=1)
    auto_close_timeout: Optional[int] = Field(default=None, ge=60)
    max_message_length: Optional[int] = Field(default=None, ge=1)
    enable_notifications: Optional[bool] = None
    enable_auto_response: Optional[bool] = None
    auto_response_message: Optional[str] = None
    maintenance_mode: Optional[bool] = None

    # omitted keys stay as they are; an explicit null would hit a NOT NULL column
    @field_validator(
        "max_chats_per_user", "auto_close_timeout", "max_message_length",
        "enable_notifications", "enable_auto_response", "maintenance_mode",
    )
    @classmethod
    def reject_null(cls, value):
        if value is None:
            raise ValueError("may not be null")
        return value


class ActivityOut(CamelModel):
    id: str
    user_id: str
    action: str
    details: Optional[str] = None
    created_at: datetime


class AgentStatsOut(CamelModel):
    agent_id: str
    name: str
    total_chats: int
    closed_chats: int
    total_messages: int
    avg_rating: Optional[float] = None
    avg_resolution_time: Optional[float] = None


class AnalyticsOut(CamelModel):
    active_count: int
    closed_count: int
    total_count: int
    total_messages: int
    chats_today: int
    avg_duration: Optional[float] = None
    avg_rating: Optional[float] = None
    agents: List[AgentStatsOut] = []
