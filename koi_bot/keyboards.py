"""
Inline keyboards and the button text codec.

The bot keeps no record of which wallet or toggle a user picked: that state
lives in the button labels of the menu message itself. `encode` renders an
action (optionally decorated with its "selected" glyph) and `decode` maps
either rendering back to the same action.

Callback data mirrors the label for toggle buttons, so the decoration
travels back with the callback. Navigation buttons (Main Menu, Close) are
always shown decorated but send their plain label.
"""
from enum import Enum
from typing import Dict, Iterable, List, Optional, Union

from pydantic import BaseModel, ConfigDict

from .errors import KeyboardConstructionError
from .models import BuyOrder, KeyButton, KeyboardLayout


class Action(str, Enum):
    """Logical button identities. Values are the plain labels."""
    SEND_BUY_TX = "Send Buy Tx"
    SEND_SELL_TX = "Send Sell Tx"
    MAIN_MENU = "Main Menu"
    CLOSE = "Close"
    PRIVATE_TX = "Private Tx"
    REBATE = "Rebate"
    WALLET_1 = "Wallet 1"
    WALLET_2 = "Wallet 2"
    WALLET_3 = "Wallet 3"
    BUY = "Buy"
    RECEIVE = "Receives"
    BUY_AMOUNT = "Buy Amount"
    ESTIMATED_RECEIVED_AMOUNT = "Estimated Received Amount"
    BUY_TOKEN = "Buy Token"
    SELL = "Sell"
    LIMIT_BUY = "Limit Buy"
    LIMIT_SELL = "Limit Sell"
    SELECT_WALLET = "=Select Wallet="


class Other(BaseModel):
    """Label that is not a known action (headers, amounts, asset names)."""
    model_config = ConfigDict(frozen=True)

    text: str


Decoded = Union[Action, Other]

CHECKMARK = "✅ "

DECORATIONS: Dict[Action, str] = {
    Action.MAIN_MENU: "🏠 ",
    Action.CLOSE: "❌ ",
    Action.PRIVATE_TX: CHECKMARK,
    Action.REBATE: CHECKMARK,
    Action.WALLET_1: CHECKMARK,
    Action.WALLET_2: CHECKMARK,
    Action.WALLET_3: CHECKMARK,
}

WALLETS = (Action.WALLET_1, Action.WALLET_2, Action.WALLET_3)
TOGGLES = (Action.PRIVATE_TX, Action.REBATE) + WALLETS

# Label of the token button once an address was captured
BUY_TOKEN_PREFIX = "Token: "

SELL_ASSETS = ["BTC", "ETH", "LTC", "BCH"]


def _build_lookup() -> Dict[str, Action]:
    lookup: Dict[str, Action] = {}
    for action in Action:
        forms = [action.value]
        if action in DECORATIONS:
            forms.append(DECORATIONS[action] + action.value)
        for form in forms:
            if form in lookup:
                raise RuntimeError(f"Label {form!r} is ambiguous")
            lookup[form] = action
    return lookup


_LOOKUP = _build_lookup()
_DECORATED = {DECORATIONS[action] + action.value for action in DECORATIONS}


# =============================================================================
# CODEC
# =============================================================================

def encode(action: Action, selected: bool = False) -> str:
    """Render an action. Only actions with a decoration honour `selected`."""
    if selected and action in DECORATIONS:
        return DECORATIONS[action] + action.value
    return action.value


def decode(text: str) -> Decoded:
    """
    Map a label or callback token back to its action.

    Both the plain and the decorated rendering of an action decode to the
    same value; anything unknown becomes `Other(text)`.
    """
    action = _LOOKUP.get(text)
    if action is not None:
        return action
    if text.startswith(BUY_TOKEN_PREFIX) and len(text) > len(BUY_TOKEN_PREFIX):
        return Action.BUY_TOKEN
    return Other(text=text)


def is_selected(text: str) -> bool:
    return text in _DECORATED


def toggle(text: str) -> str:
    """Flip the decoration of a toggle label. Other labels come back unchanged."""
    action = decode(text)
    if not isinstance(action, Action) or action not in DECORATIONS:
        return text
    return encode(action, not is_selected(text))


def token_address(text: str) -> Optional[str]:
    """Address embedded in a token button label, if any."""
    if text.startswith(BUY_TOKEN_PREFIX) and len(text) > len(BUY_TOKEN_PREFIX):
        return text[len(BUY_TOKEN_PREFIX):]
    return None


# =============================================================================
# BUTTONS
# =============================================================================

def plain_button(text: str) -> KeyButton:
    return KeyButton(label=text, token=text)


def nav_button(action: Action) -> KeyButton:
    return KeyButton(label=encode(action, True), token=action.value)


def toggle_button(action: Action, selected: bool) -> KeyButton:
    text = encode(action, selected)
    return KeyButton(label=text, token=text)


def token_button(address: Optional[str] = None) -> KeyButton:
    if address:
        return plain_button(f"{BUY_TOKEN_PREFIX}{address}")
    return plain_button(Action.BUY_TOKEN.value)


def create_keyboard(labels: Iterable[str], columns: int = 3) -> KeyboardLayout:
    """Default grid layout: labels in order, `columns` per row."""
    labels = list(labels)
    rows = [
        [plain_button(label) for label in labels[i:i + columns]]
        for i in range(0, len(labels), columns)
    ]
    return KeyboardLayout(rows=rows)


# =============================================================================
# MENUS
# =============================================================================

class MenuContext(str, Enum):
    MAIN = "main"
    BUY = "buy"
    SELL = "sell"


DEFAULT_BUY_TOGGLES: Dict[Action, bool] = {
    Action.PRIVATE_TX: True,
    Action.REBATE: False,
    Action.WALLET_1: True,
    Action.WALLET_2: False,
    Action.WALLET_3: False,
}


def main_menu_keyboard() -> KeyboardLayout:
    return create_keyboard([
        Action.BUY.value,
        Action.SELL.value,
        Action.LIMIT_BUY.value,
        Action.LIMIT_SELL.value,
    ])


def buy_keyboard(toggles: Optional[Dict[Action, bool]] = None, address: Optional[str] = None) -> KeyboardLayout:
    """
    Build the buy sub-menu.

    Exactly one wallet must be selected in `toggles`. The last row is the
    "Send Buy Tx" sentinel the classifier relies on.
    """
    toggles = {**DEFAULT_BUY_TOGGLES, **(toggles or {})}
    selected_wallets = [wallet for wallet in WALLETS if toggles.get(wallet)]
    if len(selected_wallets) != 1:
        raise KeyboardConstructionError(
            f"Exactly one wallet must be selected, got {len(selected_wallets)}"
        )

    rows = [
        [nav_button(Action.MAIN_MENU), nav_button(Action.CLOSE)],
        [
            toggle_button(Action.PRIVATE_TX, toggles[Action.PRIVATE_TX]),
            toggle_button(Action.REBATE, toggles[Action.REBATE]),
        ],
        [plain_button(Action.SELECT_WALLET.value)],
        [toggle_button(wallet, toggles[wallet]) for wallet in WALLETS],
        [token_button(address), plain_button(Action.RECEIVE.value)],
        [plain_button(Action.BUY_AMOUNT.value)],
        [plain_button(Action.ESTIMATED_RECEIVED_AMOUNT.value)],
        [plain_button(Action.SEND_BUY_TX.value)],
    ]
    return KeyboardLayout(rows=rows)


def sell_keyboard() -> KeyboardLayout:
    # TODO: replace the asset grid with the user's holdings once wallet balances are queried
    rows = create_keyboard(SELL_ASSETS).rows
    rows.append([nav_button(Action.MAIN_MENU), nav_button(Action.CLOSE)])
    rows.append([plain_button(Action.SEND_SELL_TX.value)])
    return KeyboardLayout(rows=rows)


def build_keyboard(
    context: MenuContext,
    toggles: Optional[Dict[Action, bool]] = None,
    address: Optional[str] = None,
) -> KeyboardLayout:
    if context == MenuContext.BUY:
        return buy_keyboard(toggles, address)
    if context == MenuContext.SELL:
        return sell_keyboard()
    return main_menu_keyboard()


# =============================================================================
# REWRITING RENDERED KEYBOARDS
# =============================================================================

def replace_button(layout: KeyboardLayout, action: Action, button: KeyButton) -> KeyboardLayout:
    """Return a copy of `layout` with the button for `action` swapped out."""
    found = False
    rows: List[List[KeyButton]] = []
    for row in layout.rows:
        new_row = []
        for current in row:
            if not found and decode(current.token) == action:
                new_row.append(button)
                found = True
            else:
                new_row.append(current)
        rows.append(new_row)

    if not found:
        raise KeyboardConstructionError(f"Layout has no {action.value!r} button")
    return KeyboardLayout(rows=rows)


def find_button(layout: KeyboardLayout, action: Action) -> Optional[KeyButton]:
    for button in layout.buttons():
        if decode(button.token) == action:
            return button
    return None


def flip_toggle(layout: KeyboardLayout, action: Action) -> KeyboardLayout:
    current = find_button(layout, action)
    if current is None:
        raise KeyboardConstructionError(f"Layout has no {action.value!r} button")
    return replace_button(layout, action, toggle_button(action, not is_selected(current.label)))


def select_wallet(layout: KeyboardLayout, wallet: Action) -> KeyboardLayout:
    """Decorate `wallet` and clear the other wallet buttons."""
    if wallet not in WALLETS:
        raise KeyboardConstructionError(f"{wallet.value!r} is not a wallet")
    for candidate in WALLETS:
        layout = replace_button(layout, candidate, toggle_button(candidate, candidate == wallet))
    return layout


def set_token_address(layout: KeyboardLayout, address: str) -> KeyboardLayout:
    return replace_button(layout, Action.BUY_TOKEN, token_button(address))


def read_toggles(layout: KeyboardLayout) -> Dict[Action, bool]:
    toggles: Dict[Action, bool] = {}
    for button in layout.buttons():
        action = decode(button.token)
        if action in TOGGLES:
            toggles[action] = is_selected(button.label)
    return toggles


def read_buy_order(layout: KeyboardLayout) -> BuyOrder:
    """Decode the order a buy keyboard currently describes."""
    toggles = read_toggles(layout)
    selected = [i for i, wallet in enumerate(WALLETS, start=1) if toggles.get(wallet)]
    if len(selected) != 1:
        raise KeyboardConstructionError(
            f"Exactly one wallet must be selected, got {len(selected)}"
        )

    token = find_button(layout, Action.BUY_TOKEN)
    return BuyOrder(
        wallet=selected[0],
        private_tx=toggles.get(Action.PRIVATE_TX, False),
        rebate=toggles.get(Action.REBATE, False),
        token_address=token_address(token.label) if token else None,
    )
