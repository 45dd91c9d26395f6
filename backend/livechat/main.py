# backend/livechat/main.py
from contextlib import asynccontextmanager
from datetime import timedelta
import asyncio
import logging

import socketio
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import models
from .api import admin, auth, chat
from .bot.telegram_bot import create_notifier
from .config import CLEANUP_INTERVAL_SECONDS, CORS_ORIGINS
from .database import Base, SessionLocal, engine
from .logging_config import configure_logging
from .realtime.broadcaster import Broadcaster, create_socket_server
from .realtime.relay import ChatRelay
from .services.settings_service import load_snapshot

logger = logging.getLogger(__name__)


def close_inactive_chats(db, now=None) -> int:
    settings = load_snapshot(db)
    cutoff = (now or models.utcnow()) - timedelta(seconds=settings.auto_close_timeout)
    stale = (
        db.query(models.ChatSession)
        .filter(
            models.ChatSession.updated_at < cutoff,
            models.ChatSession.status == models.ChatStatus.ACTIVE.value,
        )
        .all()
    )
    for chat in stale:
        chat.close("inactivity")
    db.commit()
    return len(stale)


async def cleanup_inactive_chats(session_factory=SessionLocal, interval=CLEANUP_INTERVAL_SECONDS):
    while True:
        await asyncio.sleep(interval)
        try:
            with session_factory() as db:
                closed = close_inactive_chats(db)
            if closed:
                logger.info("Closed %d inactive chat(s)", closed)
        except Exception:
            logger.exception("Inactive chat sweep failed")


def create_app(session_factory=SessionLocal, db_engine=engine, notifier=None) -> FastAPI:
    sio = create_socket_server(CORS_ORIGINS)
    broadcaster = Broadcaster(sio)
    relay = ChatRelay(broadcaster, session_factory=session_factory, notifier=notifier)
    relay.register(sio)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        Base.metadata.create_all(bind=db_engine)
        tasks = [asyncio.create_task(cleanup_inactive_chats(session_factory))]
        if notifier is not None:
            tasks.append(asyncio.create_task(notifier.start_polling()))
        yield
        for t in tasks:
            t.cancel()
        await relay.shutdown()
        if notifier is not None:
            await notifier.close()

    app = FastAPI(title="Live Chat Backend", lifespan=lifespan)
    app.state.sio = sio
    app.state.broadcaster = broadcaster
    app.state.relay = relay

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    app.include_router(chat.router, prefix="/chat", tags=["chat"])
    app.include_router(auth.router, prefix="/auth", tags=["auth"])
    app.include_router(admin.router, prefix="/admin", tags=["admin"])

    @app.get("/")
    def health():
        return {"status": "ok"}

    return app


configure_logging()

app = create_app(notifier=create_notifier())
# uvicorn livechat.main:asgi_app
asgi_app = socketio.ASGIApp(app.state.sio, other_asgi_app=app)
