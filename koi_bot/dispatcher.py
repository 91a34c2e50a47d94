"""
Routes commands, button callbacks and plain text to the menu handlers.

Callbacks are matched against the top-level actions first. Anything else
is resolved through the sub-menu of the keyboard it came from, i.e. the
pair (sub-menu, action). Unknown pairs are logged and dropped; the user
gets no notice.

Every event runs under the chat's lock from the conversation store, so
events of one chat are applied in arrival order while other chats proceed.
"""
import logging
from typing import Awaitable, Callable, Dict, Optional

from .classifier import SubMenu, classify
from .config import config as app_config
from .dialogue import AddressDialogue, ConversationStore, InMemoryConversationStore
from .errors import KeyboardConstructionError, QuoteError, TransportError
from .keyboards import (
    Action,
    buy_keyboard,
    decode,
    flip_toggle,
    main_menu_keyboard,
    read_buy_order,
    select_wallet,
    sell_keyboard,
)
from .models import CallbackEvent, CommandEvent, KeyboardLayout, TextEvent
from .on_chain import get_on_chain_info, get_on_chain_info_start
from .pruner import prune_messages

logger = logging.getLogger(__name__)

COMMANDS: Dict[str, str] = {
    "help": "Show Available Commands",
    "menu": "Main Menu",
    "wallets": "Display all wallet addresses",
    "start": "Start the bot",
    "history": "Display Trade History",
}

ERROR_NOTICE = "Something went wrong, please try again."
NOT_SUPPORTED_NOTICE = "Not supported yet."
NO_TOKEN_NOTICE = "Set a token address first (tap Buy Token)."


def help_text() -> str:
    lines = ["Supported commands:"]
    lines.extend(f"/{name} - {description}" for name, description in COMMANDS.items())
    return "\n".join(lines)


def parse_command(event: TextEvent) -> Optional[CommandEvent]:
    """Turn `/cmd@botname args` into a CommandEvent; None if not a command."""
    if not event.text or not event.text.startswith('/'):
        return None
    parts = event.text.strip().split(maxsplit=1)
    command = parts[0][1:].lower().split('@')[0]
    if not command:
        return None
    return CommandEvent(
        chat_id=event.chat_id,
        message_id=event.message_id,
        command=command,
        args=parts[1] if len(parts) > 1 else "",
    )


class CallbackDispatcher:
    def __init__(
        self,
        transport,
        store: Optional[ConversationStore] = None,
        menu_text: Callable[[], Awaitable[str]] = get_on_chain_info,
        start_text: Callable[[], Awaitable[str]] = get_on_chain_info_start,
        prune_window: Optional[int] = None,
        menu_prune_window: Optional[int] = None,
        prune_delay: Optional[float] = None,
    ):
        self.transport = transport
        self.store = store or InMemoryConversationStore()
        self.menu_text = menu_text
        self.start_text = start_text
        self.prune_window = prune_window if prune_window is not None else app_config.PRUNE_WINDOW
        self.menu_prune_window = (
            menu_prune_window if menu_prune_window is not None else app_config.MENU_PRUNE_WINDOW
        )
        self.prune_delay = prune_delay
        self.dialogue = AddressDialogue(self.store, transport, menu_text=menu_text, prune_delay=prune_delay)

        self._buy_routes = {
            Action.WALLET_1: self._select_wallet,
            Action.WALLET_2: self._select_wallet,
            Action.WALLET_3: self._select_wallet,
            Action.PRIVATE_TX: self._flip_toggle,
            Action.REBATE: self._flip_toggle,
            Action.BUY_TOKEN: self._start_address_prompt,
            Action.SEND_BUY_TX: self._send_buy_tx,
        }

    # =========================================================================
    # ENTRY POINTS
    # =========================================================================

    async def handle_command(self, event: CommandEvent):
        async with self.store.lock(event.chat_id):
            await self._run_command(event)

    async def handle_text(self, event: TextEvent):
        """Commands always win; otherwise text only matters mid-dialogue."""
        command = parse_command(event)
        if command is not None:
            await self.handle_command(command)
            return

        async with self.store.lock(event.chat_id):
            conversation = await self.store.get(event.chat_id)
            if conversation.is_idle:
                logger.debug(f"Ignoring text in idle chat {event.chat_id}")
                return

            try:
                await self.dialogue.receive(event)
            except (TransportError, QuoteError) as e:
                logger.error(f"Address dialogue failed in chat {event.chat_id}: {e}")
                await self._notify_failure(event.chat_id)

    async def handle_callback(self, event: CallbackEvent):
        """Dispatch a button tap. The callback is answered exactly once."""
        notice: Optional[str] = None
        alert = False
        async with self.store.lock(event.chat_id):
            try:
                notice = await self._dispatch_callback(event)
            except (TransportError, QuoteError) as e:
                logger.error(f"Callback {event.token!r} failed in chat {event.chat_id}: {e}")
                notice, alert = ERROR_NOTICE, True
            except KeyboardConstructionError:
                logger.exception(f"Invalid keyboard state for callback {event.token!r} in chat {event.chat_id}")
                raise
            finally:
                try:
                    await self.transport.answer_callback(event.query_id, notice, alert)
                except TransportError as e:
                    logger.warning(f"Could not answer callback in chat {event.chat_id}: {e}")

    # =========================================================================
    # COMMANDS
    # =========================================================================

    async def _run_command(self, event: CommandEvent):
        # A command always abandons a pending dialogue
        await self.dialogue.reset(event.chat_id)
        logger.info(f"Command /{event.command} in chat {event.chat_id}")

        try:
            if event.command == "start":
                text = await self.start_text()
                await self._send_menu(event.chat_id, text, main_menu_keyboard())
            elif event.command == "help":
                await self.transport.send_message(event.chat_id, help_text())
            elif event.command == "menu":
                await self.show_main_menu(event.chat_id, self.menu_prune_window)
            elif event.command in ("wallets", "history"):
                await self.transport.send_message(event.chat_id, NOT_SUPPORTED_NOTICE)
            else:
                logger.info(f"Unknown command /{event.command} in chat {event.chat_id}")
        except (TransportError, QuoteError) as e:
            logger.error(f"Command /{event.command} failed in chat {event.chat_id}: {e}")
            await self._notify_failure(event.chat_id)

    # =========================================================================
    # CALLBACKS
    # =========================================================================

    async def _dispatch_callback(self, event: CallbackEvent) -> Optional[str]:
        action = decode(event.token)
        logger.info(f"Chat {event.chat_id} chose: {event.token}")

        if action == Action.MAIN_MENU:
            await self.show_main_menu(event.chat_id, self.prune_window)
            return None
        if action == Action.CLOSE:
            await self.close_menu(event)
            return None
        if action == Action.BUY:
            await self.show_buy_menu(event.chat_id)
            return None
        if action == Action.SELL:
            await self.show_sell_menu(event.chat_id)
            return None
        if action in (Action.LIMIT_BUY, Action.LIMIT_SELL):
            return NOT_SUPPORTED_NOTICE

        event = await self._with_current_layout(event)
        sub_menu = classify(event.layout)
        if sub_menu == SubMenu.BUY and action in self._buy_routes:
            return await self._buy_routes[action](event, action)
        if sub_menu == SubMenu.SELL:
            return NOT_SUPPORTED_NOTICE

        logger.info(f"Dropping callback {event.token!r} in chat {event.chat_id} (sub-menu: {sub_menu})")
        return None

    async def _with_current_layout(self, event: CallbackEvent) -> CallbackEvent:
        """
        Re-read the tapped keyboard while holding the chat lock.

        The keyboard delivered with the update may predate an edit made by
        the previous event of the same chat. Falls back to the delivered
        copy when the message can't be read.
        """
        layout = await self.transport.get_layout(event.chat_id, event.message_id)
        if layout is None:
            return event
        return event.model_copy(update={"layout": layout})

    async def _select_wallet(self, event: CallbackEvent, action: Action) -> Optional[str]:
        await self._edit_menu(event, select_wallet(event.layout, action))
        return None

    async def _flip_toggle(self, event: CallbackEvent, action: Action) -> Optional[str]:
        await self._edit_menu(event, flip_toggle(event.layout, action))
        return None

    async def _start_address_prompt(self, event: CallbackEvent, action: Action) -> Optional[str]:
        await self.dialogue.start(event.chat_id, event.message_id)
        return None

    async def _send_buy_tx(self, event: CallbackEvent, action: Action) -> Optional[str]:
        order = read_buy_order(event.layout)
        logger.info(f"Buy order requested in chat {event.chat_id}: {order}")
        if not order.token_address:
            return NO_TOKEN_NOTICE
        # TODO: submit the order once transaction signing is available
        return NOT_SUPPORTED_NOTICE

    # =========================================================================
    # MENUS
    # =========================================================================

    async def show_main_menu(self, chat_id: int, prune_window: int):
        text = await self.menu_text()
        await self._send_menu(chat_id, text, main_menu_keyboard(), prune_window)

    async def show_buy_menu(self, chat_id: int):
        text = await self.menu_text()
        await self._send_menu(chat_id, text, buy_keyboard(), self.prune_window)

    async def show_sell_menu(self, chat_id: int):
        text = await self.menu_text()
        await self._send_menu(chat_id, text, sell_keyboard(), self.prune_window)

    async def close_menu(self, event: CallbackEvent):
        await self.store.clear(event.chat_id)
        await self.transport.delete_message(event.chat_id, event.message_id)

    async def _send_menu(
        self,
        chat_id: int,
        text: str,
        layout: KeyboardLayout,
        prune_window: Optional[int] = None,
    ) -> int:
        message_id = await self.transport.send_message(chat_id, text, layout)

        conversation = await self.store.get(chat_id)
        conversation.menu_message_id = message_id
        await self.store.set(conversation)
        await self.dialogue.reset(chat_id)

        if prune_window:
            await prune_messages(self.transport, chat_id, message_id, prune_window, delay=self.prune_delay)
        return message_id

    async def _edit_menu(self, event: CallbackEvent, layout: KeyboardLayout):
        if layout == event.layout:
            # Telegram rejects edits that change nothing
            return
        text = await self.menu_text()
        await self.transport.edit_message(event.chat_id, event.message_id, text, layout)

    async def _notify_failure(self, chat_id: int):
        try:
            await self.transport.send_message(chat_id, ERROR_NOTICE)
        except TransportError as e:
            logger.warning(f"Could not notify chat {chat_id} about a failure: {e}")
