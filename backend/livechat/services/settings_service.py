# backend/livechat/services/settings_service.py
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from .. import models
from ..config import DEFAULT_AUTO_RESPONSE

SETTINGS_ID = "default"


@dataclass(frozen=True)
class SettingsSnapshot:
    """Settings as read at one point in time; never written back."""

    max_chats_per_user: int = 5
    auto_close_timeout: int = 3600
    max_message_length: int = 5000
    enable_notifications: bool = True
    enable_auto_response: bool = True
    auto_response_message: Optional[str] = None
    maintenance_mode: bool = False

    @property
    def auto_response_text(self) -> Optional[str]:
        if not self.enable_auto_response:
            return None
        text = (self.auto_response_message or "").strip()
        return text or None


def get_settings(db: Session) -> models.AdminSettings:
    settings = db.get(models.AdminSettings, SETTINGS_ID)
    if settings is None:
        settings = models.AdminSettings(id=SETTINGS_ID, auto_response_message=DEFAULT_AUTO_RESPONSE)
        db.add(settings)
        db.commit()
        db.refresh(settings)
    return settings


def load_snapshot(db: Session) -> SettingsSnapshot:
    row = db.get(models.AdminSettings, SETTINGS_ID)
    if row is None:
        # no row yet: behave as if auto-response were off
        return SettingsSnapshot(enable_auto_response=False)
    return SettingsSnapshot(
        max_chats_per_user=row.max_chats_per_user,
        auto_close_timeout=row.auto_close_timeout,
        max_message_length=row.max_message_length,
        enable_notifications=row.enable_notifications,
        enable_auto_response=row.enable_auto_response,
        auto_response_message=row.auto_response_message,
        maintenance_mode=row.maintenance_mode,
    )


def update_settings(db: Session, changes: dict) -> models.AdminSettings:
    settings = get_settings(db)
    for key, value in changes.items():
        setattr(settings, key, value)
    db.commit()
    db.refresh(settings)
    return settings
