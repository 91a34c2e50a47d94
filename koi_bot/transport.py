"""
Telegram calls used by the bot core, on top of a Telethon client.

Every failure is re-raised as `TransportError` so handlers deal with a
single error type.
"""
import logging
from typing import List, Optional

from telethon import Button, TelegramClient
from telethon.tl.functions.messages import SetBotCallbackAnswerRequest
from telethon.tl.types import ReplyInlineMarkup

from .errors import TransportError
from .models import KeyButton, KeyboardLayout

logger = logging.getLogger(__name__)


def to_telethon_buttons(layout: Optional[KeyboardLayout]) -> Optional[List[list]]:
    """Convert a layout to Telethon inline buttons (callback data is the token)."""
    if layout is None:
        return None
    return [
        [Button.inline(button.label, data=button.token.encode("utf-8")) for button in row]
        for row in layout.rows
    ]


def from_reply_markup(markup) -> Optional[KeyboardLayout]:
    """Read the inline keyboard attached to a Telethon message, if any."""
    if not isinstance(markup, ReplyInlineMarkup):
        return None

    rows = []
    for row in markup.rows:
        buttons = []
        for button in row.buttons:
            data = getattr(button, "data", None)
            token = data.decode("utf-8", errors="replace") if isinstance(data, bytes) else button.text
            buttons.append(KeyButton(label=button.text, token=token))
        rows.append(buttons)
    return KeyboardLayout(rows=rows)


class TelethonTransport:
    def __init__(self, client: TelegramClient, parse_mode: str = 'html'):
        self.client = client
        self.parse_mode = parse_mode

    async def send_message(self, chat_id: int, text: str, layout: Optional[KeyboardLayout] = None) -> int:
        """Send a message and return its id."""
        try:
            message = await self.client.send_message(
                chat_id,
                text,
                buttons=to_telethon_buttons(layout),
                parse_mode=self.parse_mode,
            )
        except Exception as e:
            raise TransportError("send_message", chat_id, e) from e
        return message.id

    async def edit_message(
        self,
        chat_id: int,
        message_id: int,
        text: str,
        layout: Optional[KeyboardLayout] = None,
    ):
        try:
            await self.client.edit_message(
                chat_id,
                message_id,
                text,
                buttons=to_telethon_buttons(layout),
                parse_mode=self.parse_mode,
            )
        except Exception as e:
            raise TransportError("edit_message", chat_id, e) from e

    async def delete_message(self, chat_id: int, message_id: int):
        try:
            await self.client.delete_messages(chat_id, [message_id])
        except Exception as e:
            raise TransportError("delete_message", chat_id, e) from e

    async def answer_callback(self, query_id: int, text: Optional[str] = None, alert: bool = False):
        try:
            await self.client(SetBotCallbackAnswerRequest(
                query_id=query_id,
                cache_time=0,
                message=text,
                alert=alert,
            ))
        except Exception as e:
            raise TransportError("answer_callback", None, e) from e

    async def get_layout(self, chat_id: int, message_id: int) -> Optional[KeyboardLayout]:
        """Fetch a message and return its inline keyboard (None if gone or bare)."""
        try:
            message = await self.client.get_messages(chat_id, ids=message_id)
        except Exception as e:
            raise TransportError("get_messages", chat_id, e) from e
        if message is None:
            return None
        return from_reply_markup(message.reply_markup)
