# backend/livechat/bot/telegram_bot.py
import logging
from html import escape

from aiogram import Bot, Dispatcher, types
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode
from aiogram.types import InlineKeyboardMarkup, InlineKeyboardButton, WebAppInfo

from ..config import TELEGRAM_BOT_TOKEN, OPERATOR_CHAT_IDS, OPERATOR_CONSOLE_URL

logger = logging.getLogger(__name__)


class OperatorNotifier:
    """Pings operators on Telegram when a visitor writes."""

    def __init__(self, token: str, operator_ids, console_url: str = OPERATOR_CONSOLE_URL):
        self.bot = Bot(token=token, default=DefaultBotProperties(parse_mode=ParseMode.HTML))
        self.operator_ids = list(operator_ids)
        self.console_base = console_url.rstrip("/")
        self.dp = Dispatcher()
        self.dp.message()(self._on_message)

    async def _on_message(self, message: types.Message):
        await message.answer("✅ Support bot is running.")

    async def start_polling(self):
        await self.dp.start_polling(self.bot)

    def console_url(self, chat_id: str) -> str:
        return f"{self.console_base}/{chat_id}"

    async def notify_new_message(self, chat_id: str, text: str):
        keyboard = InlineKeyboardMarkup(inline_keyboard=[
            [InlineKeyboardButton(
                text="💬 Open chat",
                web_app=WebAppInfo(url=self.console_url(chat_id))
            )]
        ])

        for op_id in self.operator_ids:
            await self.bot.send_message(
                op_id,
                f"📩 New message:\n\n{escape(text)}\n\nChat ID: {chat_id}",
                reply_markup=keyboard
            )
        logger.debug("Notified %d operator(s) about chat %s", len(self.operator_ids), chat_id)

    async def close(self):
        await self.bot.session.close()


def create_notifier():
    if not TELEGRAM_BOT_TOKEN or not OPERATOR_CHAT_IDS:
        return None
    return OperatorNotifier(TELEGRAM_BOT_TOKEN, OPERATOR_CHAT_IDS)
