"""
Tests for translating Telethon updates into dispatcher events.
"""
import asyncio

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from telethon.tl.types import (
    MessageMediaPhoto,
    MessageMediaWebPage,
    WebPageEmpty,
)

from koi_bot.dialogue import InMemoryConversationStore
from koi_bot.dispatcher import CallbackDispatcher
from koi_bot.keyboards import Action, read_toggles
from koi_bot.models import CallbackEvent, TextEvent
from koi_bot.telegram_bot import TelegramBot, message_text


def _message(text="", media=None, message_id=10, reply_markup=None):
    message = MagicMock()
    message.message = text
    message.media = media
    message.id = message_id
    message.reply_markup = reply_markup
    return message


def _callback_query(data, query_id=1, chat_id=42, message_id=50):
    event = MagicMock()
    event.chat_id = chat_id
    event.message_id = message_id
    event.data = data
    event.query.query_id = query_id
    return event


@pytest.fixture
def bot():
    with patch("koi_bot.telegram_bot.TelegramClient"):
        bot = TelegramBot(InMemoryConversationStore())
    bot.dispatcher = MagicMock()
    bot.dispatcher.handle_text = AsyncMock()
    bot.dispatcher.handle_callback = AsyncMock()
    return bot


class TestMessageText:
    """Test plain-text extraction."""

    def test_plain_text(self):
        assert message_text(_message("  0xabc  ")) == "0xabc"

    def test_empty_text(self):
        assert message_text(_message(None)) == ""

    def test_photo_is_not_text(self):
        assert message_text(_message("caption", media=MessageMediaPhoto())) is None

    def test_link_preview_is_text(self):
        media = MessageMediaWebPage(webpage=WebPageEmpty(id=1))
        assert message_text(_message("https://example.com", media=media)) == "https://example.com"


class TestTelegramBot:
    """Test the event handlers."""

    def test_uses_shared_store(self):
        store = InMemoryConversationStore()
        with patch("koi_bot.telegram_bot.TelegramClient"):
            bot = TelegramBot(store)
        assert bot.dispatcher.store is store

    @pytest.mark.asyncio
    async def test_handle_message(self, bot):
        event = MagicMock()
        event.chat_id = 42
        event.message = _message("/menu", message_id=11)

        await bot._handle_message(event)

        bot.dispatcher.handle_text.assert_awaited_once_with(
            TextEvent(chat_id=42, message_id=11, text="/menu")
        )

    @pytest.mark.asyncio
    async def test_handle_media_message(self, bot):
        event = MagicMock()
        event.chat_id = 42
        event.message = _message("", media=MessageMediaPhoto(), message_id=12)

        await bot._handle_message(event)

        assert bot.dispatcher.handle_text.call_args.args[0].text is None

    @pytest.mark.asyncio
    async def test_handle_callback(self, bot):
        event = _callback_query(b"Wallet 2", query_id=7)

        await bot._handle_callback(event)

        event.get_message.assert_not_called()
        bot.dispatcher.handle_callback.assert_awaited_once_with(CallbackEvent(
            chat_id=42,
            message_id=50,
            token="Wallet 2",
            query_id=7,
        ))

    @pytest.mark.asyncio
    async def test_handle_callback_without_data(self, bot):
        await bot._handle_callback(_callback_query(None))

        assert bot.dispatcher.handle_callback.call_args.args[0].token == ""

    @pytest.mark.asyncio
    async def test_rapid_taps_apply_in_order(self, buy_layout):
        """Wallet 2 then Rebate on the same menu: both end up on the keyboard."""
        store = InMemoryConversationStore()
        with patch("koi_bot.telegram_bot.TelegramClient"):
            bot = TelegramBot(store)

        rendered = {"layout": buy_layout}

        async def get_layout(chat_id, message_id):
            await asyncio.sleep(0)
            return rendered["layout"]

        async def edit_message(chat_id, message_id, text, layout=None):
            await asyncio.sleep(0)
            rendered["layout"] = layout

        transport = MagicMock()
        transport.get_layout = AsyncMock(side_effect=get_layout)
        transport.edit_message = AsyncMock(side_effect=edit_message)
        transport.answer_callback = AsyncMock()
        bot.dispatcher = CallbackDispatcher(
            transport,
            store=store,
            menu_text=AsyncMock(return_value="menu"),
            prune_delay=0,
        )

        await asyncio.gather(
            bot._handle_callback(_callback_query(b"Wallet 2", query_id=1)),
            bot._handle_callback(_callback_query(b"Rebate", query_id=2)),
        )

        toggles = read_toggles(rendered["layout"])
        assert toggles[Action.WALLET_2] is True
        assert toggles[Action.REBATE] is True
        assert toggles[Action.WALLET_1] is False
