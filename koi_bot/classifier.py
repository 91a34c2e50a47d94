"""
Work out which sub-menu a keyboard belongs to.

Every sub-menu keyboard ends with a sentinel button naming the flow
("Send Buy Tx" / "Send Sell Tx"). The sentinel is read back from the
rendered keyboard on every event; it is never stored.
"""
from enum import Enum
from typing import Optional

from .keyboards import Action, decode
from .models import KeyboardLayout


class SubMenu(str, Enum):
    BUY = "buy"
    SELL = "sell"


SENTINELS = {
    Action.SEND_BUY_TX: SubMenu.BUY,
    Action.SEND_SELL_TX: SubMenu.SELL,
}


def classify(layout: Optional[KeyboardLayout]) -> Optional[SubMenu]:
    """
    Return the sub-menu of `layout`, or None when it is not a tracked flow
    (no keyboard attached, or the last button is not a sentinel).
    """
    if layout is None:
        return None
    last = layout.last_button()
    if last is None:
        return None
    return SENTINELS.get(decode(last.label))
