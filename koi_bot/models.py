"""
Pydantic models shared by the keyboard codec, dialogue and dispatcher.
"""
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# KEYBOARD LAYOUT
# =============================================================================

class KeyButton(BaseModel):
    """One inline button: the visible label and the callback data sent back."""
    model_config = ConfigDict(frozen=True)

    label: str
    token: str


class KeyboardLayout(BaseModel):
    """
    Ordered rows of inline buttons.

    Row order and button order are stable across edits: the sub-menu
    classifier reads the last button of the last row.
    """
    model_config = ConfigDict(frozen=True)

    rows: List[List[KeyButton]] = Field(default_factory=list)

    def last_button(self) -> Optional[KeyButton]:
        if not self.rows or not self.rows[-1]:
            return None
        return self.rows[-1][-1]

    def buttons(self) -> List[KeyButton]:
        return [button for row in self.rows for button in row]


# =============================================================================
# INBOUND EVENTS
# =============================================================================

class CommandEvent(BaseModel):
    chat_id: int
    message_id: int
    command: str  # Lowercased, without the leading slash or @botname
    args: str = ""


class CallbackEvent(BaseModel):
    chat_id: int
    message_id: int  # Message that carries the tapped keyboard
    token: str
    query_id: int
    layout: Optional[KeyboardLayout] = None  # As delivered; re-read under the chat lock before use


class TextEvent(BaseModel):
    chat_id: int
    message_id: int
    text: Optional[str] = None  # None for media / non-text messages


# =============================================================================
# CONVERSATION STATE
# =============================================================================

class DialogueState(str, Enum):
    IDLE = "idle"
    AWAITING_ADDRESS = "awaiting_address"
    AWAITING_TOKEN_NAME = "awaiting_token_name"  # Reserved, handled like AWAITING_ADDRESS


class Conversation(BaseModel):
    chat_id: int
    state: DialogueState = DialogueState.IDLE
    menu_message_id: Optional[int] = None  # Most recently rendered menu
    prompt_message_id: Optional[int] = None

    @property
    def is_idle(self) -> bool:
        return self.state == DialogueState.IDLE


# =============================================================================
# ORDERS & QUOTES
# =============================================================================

class BuyOrder(BaseModel):
    """Buy order as encoded in a rendered buy keyboard."""
    wallet: int = Field(ge=1, le=3)
    private_tx: bool = False
    rebate: bool = False
    token_address: Optional[str] = None


class ChainQuote(BaseModel):
    network_id: int
    name: str
    block_height: int
    gas_price: int  # wei

    @property
    def gas_price_gwei(self) -> int:
        return self.gas_price // 1_000_000_000
