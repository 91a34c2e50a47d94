"""
Telegram bot for Koi Bot.
Private chat only - translates Telethon updates into dispatcher events.
"""
import logging
from typing import Optional

from telethon import TelegramClient, events
from telethon.sessions import StringSession
from telethon.tl.functions.bots import SetBotCommandsRequest
from telethon.tl.types import BotCommand, BotCommandScopeDefault, MessageMediaWebPage

from .config import config as app_config
from .dialogue import ConversationStore
from .dispatcher import COMMANDS, CallbackDispatcher
from .models import CallbackEvent, TextEvent
from .transport import TelethonTransport

logger = logging.getLogger(__name__)


def message_text(message) -> Optional[str]:
    """Plain text of a message, None for photos, stickers, documents..."""
    media = getattr(message, "media", None)
    if media is not None and not isinstance(media, MessageMediaWebPage):
        return None
    return (message.message or "").strip()


class TelegramBot:
    def __init__(self, store: Optional[ConversationStore] = None):
        # Use StringSession (in-memory) to avoid file-based session conflicts during deploys
        self.client = TelegramClient(
            StringSession(),
            app_config.TELEGRAM_API_ID,
            app_config.TELEGRAM_API_HASH
        )
        self.transport = TelethonTransport(self.client)
        self.dispatcher = CallbackDispatcher(self.transport, store=store)
        self.bot_username: Optional[str] = None

        self._register_handlers()

    def _register_handlers(self):
        """Register message and callback handlers."""

        @self.client.on(events.NewMessage(incoming=True, func=lambda e: e.is_private))
        async def handle_private_message(event):
            """Handle all private messages."""
            await self._handle_message(event)

        @self.client.on(events.NewMessage(incoming=True, func=lambda e: not e.is_private))
        async def handle_group_message(event):
            """Ignore group messages completely."""
            return

        @self.client.on(events.CallbackQuery(func=lambda e: e.is_private))
        async def handle_callback(event):
            """Handle inline button taps."""
            await self._handle_callback(event)

    async def _handle_message(self, event):
        text = message_text(event.message)
        logger.info(f"Received message from {event.chat_id}: {(text or '<media>')[:50]}")
        await self.dispatcher.handle_text(TextEvent(
            chat_id=event.chat_id,
            message_id=event.message.id,
            text=text,
        ))

    async def _handle_callback(self, event):
        # The keyboard is read by the dispatcher under the chat lock
        await self.dispatcher.handle_callback(CallbackEvent(
            chat_id=event.chat_id,
            message_id=event.message_id,
            token=event.data.decode("utf-8", errors="replace") if event.data else "",
            query_id=event.query.query_id,
        ))

    async def start(self):
        """Start the Telegram bot."""
        await self.client.start(bot_token=app_config.TELEGRAM_BOT_TOKEN)

        me = await self.client.get_me()
        self.bot_username = me.username
        logger.info(f"Telegram bot started as @{self.bot_username}")

        try:
            await self.client(SetBotCommandsRequest(
                scope=BotCommandScopeDefault(),
                lang_code="",
                commands=[BotCommand(command=name, description=description) for name, description in COMMANDS.items()],
            ))
            logger.info("Bot commands registered")
        except Exception as e:
            logger.warning(f"Could not register bot commands: {e}")

        # Keep running
        await self.client.run_until_disconnected()

    async def stop(self):
        """Stop the Telegram bot."""
        await self.client.disconnect()
        logger.info("Telegram bot stopped")
