from datetime import timedelta

from livechat import models
from livechat.main import close_inactive_chats
from livechat.seed import seed
from livechat.services.auth_service import verify_password


def test_inactive_chats_are_closed(db, visitor, settings):
    now = models.utcnow()
    stale = models.ChatSession(user_id=visitor.id, updated_at=now - timedelta(seconds=settings.auto_close_timeout + 10))
    fresh = models.ChatSession(user_id=visitor.id, updated_at=now)
    db.add_all([stale, fresh])
    db.commit()

    assert close_inactive_chats(db, now=now) == 1

    db.expire_all()
    assert db.get(models.ChatSession, stale.id).status == "CLOSED"
    assert db.get(models.ChatSession, stale.id).closure_reason == "inactivity"
    assert db.get(models.ChatSession, fresh.id).status == "ACTIVE"


def test_seed_is_idempotent(db):
    admin = seed(db, email="root@example.com", password="s3cret")
    again = seed(db, email="root@example.com", password="other")

    assert admin.id == again.id
    assert verify_password("s3cret", again.password)
    assert db.query(models.AdminSettings).count() == 1
    assert db.get(models.AdminSettings, "default").enable_auto_response is True
