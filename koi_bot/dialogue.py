"""
Token address capture dialogue and the per-chat conversation store.

Flow: the user taps "Buy Token" on a buy menu, the bot asks for an address
and waits. Invalid input gets a notice and the bot keeps waiting, with no
limit on retries. A valid address is written into the buy menu's token
button (the menu is edited in place) and the prompt/replies in between are
pruned.
"""
import asyncio
import logging
import re
import weakref
from typing import Awaitable, Callable, Dict, Optional

from .classifier import SubMenu, classify
from .errors import ValidationError
from .keyboards import set_token_address
from .models import Conversation, DialogueState, TextEvent
from .on_chain import get_on_chain_info
from .pruner import prune_messages

logger = logging.getLogger(__name__)

ADDRESS_RE = re.compile(r"0x[0-9a-fA-F]{40}")

PROMPT = "Enter the address of the token you want to trade"
PLAIN_TEXT_NOTICE = "Send me plain text."
INVALID_ADDRESS_NOTICE = "Please enter valid address"
MENU_GONE_NOTICE = "That buy menu is no longer available. Tap Buy to start again."

AWAITING_STATES = (DialogueState.AWAITING_ADDRESS, DialogueState.AWAITING_TOKEN_NAME)


def is_valid_address(text: Optional[str]) -> bool:
    """Format check only: `0x` followed by 40 hex digits."""
    if not text:
        return False
    return ADDRESS_RE.fullmatch(text.strip()) is not None


def parse_address(text: Optional[str]) -> str:
    if text is None:
        raise ValidationError(PLAIN_TEXT_NOTICE)
    address = text.strip()
    if not is_valid_address(address):
        raise ValidationError(INVALID_ADDRESS_NOTICE)
    return address


# =============================================================================
# CONVERSATION STORE
# =============================================================================

class ConversationStore:
    """
    Conversation records keyed by chat id.

    `lock(chat_id)` returns the lock that serializes events of one chat;
    callers hold it around every read-modify-write.
    """

    async def get(self, chat_id: int) -> Conversation:
        raise NotImplementedError

    async def set(self, conversation: Conversation):
        raise NotImplementedError

    async def clear(self, chat_id: int):
        raise NotImplementedError

    def lock(self, chat_id: int) -> asyncio.Lock:
        raise NotImplementedError


class InMemoryConversationStore(ConversationStore):
    def __init__(self):
        self._conversations: Dict[int, Conversation] = {}
        # A chat's lock lives only while someone holds or waits on it
        self._locks = weakref.WeakValueDictionary()

    async def get(self, chat_id: int) -> Conversation:
        conversation = self._conversations.get(chat_id)
        if conversation is None:
            return Conversation(chat_id=chat_id)
        return conversation.model_copy()

    async def set(self, conversation: Conversation):
        self._conversations[conversation.chat_id] = conversation.model_copy()

    async def clear(self, chat_id: int):
        self._conversations.pop(chat_id, None)

    def lock(self, chat_id: int) -> asyncio.Lock:
        lock = self._locks.get(chat_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[chat_id] = lock
        return lock

    def __len__(self) -> int:
        return len(self._conversations)


# =============================================================================
# ADDRESS DIALOGUE
# =============================================================================

class AddressDialogue:
    def __init__(
        self,
        store: ConversationStore,
        transport,
        menu_text: Callable[[], Awaitable[str]] = get_on_chain_info,
        prune_delay: Optional[float] = None,
    ):
        self.store = store
        self.transport = transport
        self.menu_text = menu_text
        self.prune_delay = prune_delay

    async def start(self, chat_id: int, menu_message_id: int) -> Conversation:
        """Idle -> AwaitingAddress. Sends the prompt."""
        prompt_id = await self.transport.send_message(chat_id, PROMPT)

        conversation = await self.store.get(chat_id)
        conversation.state = DialogueState.AWAITING_ADDRESS
        conversation.menu_message_id = menu_message_id
        conversation.prompt_message_id = prompt_id
        await self.store.set(conversation)
        logger.info(f"Chat {chat_id} awaiting token address for menu {menu_message_id}")
        return conversation

    async def reset(self, chat_id: int):
        """Back to Idle. The pending menu id is kept, the menu still exists."""
        conversation = await self.store.get(chat_id)
        conversation.state = DialogueState.IDLE
        conversation.prompt_message_id = None
        await self.store.set(conversation)

    async def receive(self, event: TextEvent) -> bool:
        """
        Handle a message while the chat is waiting for an address.

        Returns:
            True if the address was accepted and the buy menu updated
        """
        conversation = await self.store.get(event.chat_id)
        if conversation.state not in AWAITING_STATES:
            return False

        try:
            address = parse_address(event.text)
        except ValidationError as e:
            logger.info(f"Rejected address input in chat {event.chat_id}: {e.notice}")
            await self.transport.send_message(event.chat_id, e.notice)
            return False

        menu_id = conversation.menu_message_id
        layout = None
        if menu_id is not None:
            layout = await self.transport.get_layout(event.chat_id, menu_id)

        sub_menu = classify(layout)
        if sub_menu != SubMenu.BUY:
            logger.warning(f"Pending menu {menu_id} in chat {event.chat_id} is not a buy menu ({sub_menu})")
            await self.reset(event.chat_id)
            await self.transport.send_message(event.chat_id, MENU_GONE_NOTICE)
            return False

        text = await self.menu_text()
        await self.transport.edit_message(event.chat_id, menu_id, text, set_token_address(layout, address))
        await self.reset(event.chat_id)
        logger.info(f"Chat {event.chat_id} set buy token {address}")

        # Prompt, rejected attempts and the accepted reply all sit above the menu
        await prune_messages(
            self.transport,
            event.chat_id,
            anchor_message_id=event.message_id + 1,
            window_size=event.message_id - menu_id,
            delay=self.prune_delay,
        )
        return True
