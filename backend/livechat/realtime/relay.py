# backend/livechat/realtime/relay.py
"""Realtime message relay.

Connections join rooms named after chat ids. ``send-message`` runs the
validation pipeline, persists the message, bumps the chat back to ACTIVE and
broadcasts the stored message to the room. A visitor's first message may
schedule one automated reply from an administrator.

Errors are only ever reported to the connection that caused them.
"""
import asyncio
import logging

from pydantic import ValidationError as PayloadError
from sqlalchemy.exc import SQLAlchemyError

from .. import models
from ..config import AUTO_RESPONSE_DELAY
from ..database import SessionLocal
from ..errors import (
    ChatError,
    ChatClosedError,
    NotFoundError,
    StoreError,
    UserBannedError,
    ValidationError,
)
from ..schemas import MessageOut, SendMessagePayload
from ..services.settings_service import load_snapshot

logger = logging.getLogger(__name__)

GENERIC_FAILURE = "Failed to send message"


def serialize_message(message: models.Message) -> dict:
    return MessageOut.model_validate(message).model_dump(by_alias=True, mode="json")


def find_admin(db):
    return (
        db.query(models.User)
        .filter(models.User.role == models.Role.ADMIN.value)
        .order_by(models.User.created_at.asc())
        .first()
    )


class ChatRelay:
    def __init__(self, broadcaster, session_factory=SessionLocal, notifier=None,
                 auto_response_delay: float = AUTO_RESPONSE_DELAY):
        self.broadcaster = broadcaster
        self.session_factory = session_factory
        self.notifier = notifier
        self.auto_response_delay = auto_response_delay
        # deferred work; references kept so tasks are not collected mid-flight
        self.pending = set()

    def register(self, sio):
        sio.on("connect", handler=self.on_connect)
        sio.on("disconnect", handler=self.on_disconnect)
        sio.on("join-chat", handler=self.on_join_chat)
        sio.on("send-message", handler=self.on_send_message)

    # === Connection lifecycle ===

    async def on_connect(self, sid, environ=None, auth=None):
        logger.info("Socket connected: %s", sid)

    async def on_disconnect(self, sid, reason=None):
        # the socket server drops the sid from every room on its own
        logger.info("Socket disconnected: %s", sid)

    async def on_join_chat(self, sid, chat_id):
        if isinstance(chat_id, dict):
            chat_id = chat_id.get("chatId")
        if not chat_id:
            logger.debug("join-chat without chat id from %s", sid)
            return
        await self.broadcaster.join(sid, str(chat_id))
        logger.debug("Socket %s joined chat %s", sid, chat_id)

    # === Message send pipeline ===

    async def on_send_message(self, sid, data):
        try:
            await self.send_message(sid, data)
        except ChatError as exc:
            logger.info("send-message from %s rejected: %s", sid, exc.message)
            await self.broadcaster.to_sid(sid, exc.event, exc.payload())
        except Exception as exc:
            logger.exception("send-message from %s failed", sid)
            await self.broadcaster.to_sid(sid, "chat-error", {"message": GENERIC_FAILURE, "detail": str(exc)})

    async def send_message(self, sid, data) -> dict:
        try:
            payload = SendMessagePayload.model_validate(data or {})
        except PayloadError as exc:
            raise ValidationError(GENERIC_FAILURE, detail=f"Invalid message payload: {exc.error_count()} error(s)") from exc

        if not payload.chat_id:
            raise ValidationError("Chat ID is required")

        with self.session_factory() as db:
            try:
                message, settings, first_reply_due = self._store_message(db, payload)
                stored = serialize_message(message)
            except SQLAlchemyError as exc:
                db.rollback()
                logger.exception("Could not store message for chat %s", payload.chat_id)
                raise StoreError(str(exc)) from exc

        chat_id = payload.chat_id
        if not payload.acting_as_admin:
            text = settings.auto_response_text
            if first_reply_due and text:
                self._spawn(self._auto_respond(chat_id, text))
            if settings.enable_notifications and self.notifier is not None:
                self._spawn(self._notify(chat_id, stored["content"]))

        await self.broadcaster.to_room(chat_id, "receive-message", {"chatId": chat_id, "message": stored})
        await self.broadcaster.to_sid(sid, "message-sent", {"chatId": chat_id, "messageId": stored["id"]})
        return stored

    def _store_message(self, db, payload: SendMessagePayload):
        chat = db.get(models.ChatSession, payload.chat_id)
        if chat is None:
            raise NotFoundError("Chat not found")
        if chat.is_closed:
            raise ChatClosedError(chat.id, chat.closure_reason)

        settings = load_snapshot(db)

        if payload.acting_as_admin:
            author = self._resolve_admin(db, payload.user_id)
        else:
            # visitors always speak as the chat owner, whatever the client says
            author = chat.user
            if author.is_banned:
                raise UserBannedError()

        content = (payload.content or "").strip()
        if not content:
            raise ValidationError("Message content is required")
        if len(content) > settings.max_message_length:
            raise ValidationError(
                "Message is too long",
                detail=f"Maximum length is {settings.max_message_length} characters",
            )

        message = models.Message(
            chat_id=chat.id,
            user=author,
            content=content,
            is_bot=payload.acting_as_admin,
        )
        db.add(message)
        chat.status = models.ChatStatus.ACTIVE.value
        chat.closed_at = None
        chat.updated_at = models.utcnow()
        db.commit()

        first_reply_due = False
        if not payload.acting_as_admin:
            bot_messages = (
                db.query(models.Message)
                .filter(models.Message.chat_id == chat.id, models.Message.is_bot.is_(True))
                .count()
            )
            first_reply_due = bot_messages == 0
        return message, settings, first_reply_due

    def _resolve_admin(self, db, user_id=None):
        if user_id:
            user = db.get(models.User, user_id)
            if user is not None and user.role in (models.Role.ADMIN.value, models.Role.AGENT.value):
                return user
            raise NotFoundError("Admin user not found")
        admin = find_admin(db)
        if admin is None:
            raise NotFoundError("Admin user not found")
        return admin

    # === Deferred side effects ===

    def _spawn(self, coro):
        task = asyncio.create_task(coro)
        self.pending.add(task)
        task.add_done_callback(self.pending.discard)
        return task

    async def _auto_respond(self, chat_id: str, text: str):
        await asyncio.sleep(self.auto_response_delay)
        try:
            with self.session_factory() as db:
                admin = find_admin(db)
                if admin is None:
                    logger.warning("No admin user to send auto-response for chat %s", chat_id)
                    return
                message = models.Message(chat_id=chat_id, user=admin, content=text, is_bot=True)
                db.add(message)
                db.commit()
                data = serialize_message(message)
            await self.broadcaster.to_room(chat_id, "receive-message", {"chatId": chat_id, "message": data})
            logger.info("Auto-response sent to chat %s", chat_id)
        except Exception:
            logger.exception("Auto-response for chat %s failed", chat_id)

    async def _notify(self, chat_id: str, text: str):
        try:
            await self.notifier.notify_new_message(chat_id, text)
        except Exception:
            logger.exception("Operator notification for chat %s failed", chat_id)

    async def shutdown(self):
        for task in list(self.pending):
            task.cancel()
        await asyncio.gather(*self.pending, return_exceptions=True)
