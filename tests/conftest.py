"""
Pytest fixtures and configuration for tests.
"""
import itertools

import pytest
from unittest.mock import AsyncMock, MagicMock

from koi_bot.dialogue import InMemoryConversationStore
from koi_bot.dispatcher import CallbackDispatcher
from koi_bot.keyboards import buy_keyboard, main_menu_keyboard, sell_keyboard


# =============================================================================
# MOCK DATA
# =============================================================================

CHAT_ID = 424242

MENU_TEXT = (
    "<b>Ethereum</b>\n<b>Gas:</b> 12 Gwei  ═  <b>Block:</b> 19000000\n\n"
    "<b>Polygon</b>\n<b>Gas:</b> 30 Gwei  ═  <b>Block:</b> 52000000"
)


@pytest.fixture
def chat_id():
    return CHAT_ID


@pytest.fixture
def valid_address():
    """A well-formed EVM address."""
    return "0x" + "aB3f" * 10


@pytest.fixture
def buy_layout():
    """Fresh buy menu: private tx on, wallet 1 selected."""
    return buy_keyboard()


@pytest.fixture
def sell_layout():
    return sell_keyboard()


@pytest.fixture
def main_layout():
    return main_menu_keyboard()


# =============================================================================
# COLLABORATORS
# =============================================================================

@pytest.fixture
def mock_transport():
    """
    Transport double. `send_message` hands out increasing message ids
    starting at 100; every other call succeeds and returns None.
    """
    transport = MagicMock()
    ids = itertools.count(100)
    transport.send_message = AsyncMock(side_effect=lambda *args, **kwargs: next(ids))
    transport.edit_message = AsyncMock()
    transport.delete_message = AsyncMock()
    transport.answer_callback = AsyncMock()
    transport.get_layout = AsyncMock(return_value=None)
    return transport


@pytest.fixture
def store():
    return InMemoryConversationStore()


@pytest.fixture
def menu_text():
    return AsyncMock(return_value=MENU_TEXT)


@pytest.fixture
def dispatcher(mock_transport, store, menu_text):
    return CallbackDispatcher(
        mock_transport,
        store=store,
        menu_text=menu_text,
        start_text=AsyncMock(return_value="Welcome\n\n" + MENU_TEXT),
        prune_window=10,
        menu_prune_window=20,
        prune_delay=0,
    )
