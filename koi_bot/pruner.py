"""
Best-effort cleanup of stale menu messages.
"""
import asyncio
import logging
from typing import List, Optional

from .config import config as app_config

logger = logging.getLogger(__name__)


def prune_range(anchor_message_id: int, window_size: int, newest_first: bool = True) -> List[int]:
    """Ids `anchor - window .. anchor - 1`, skipping non-positive ids."""
    start = max(anchor_message_id - window_size, 1)
    ids = list(range(start, anchor_message_id))
    if newest_first:
        ids.reverse()
    return ids


async def prune_messages(
    transport,
    chat_id: int,
    anchor_message_id: int,
    window_size: int,
    delay: Optional[float] = None,
    newest_first: bool = True,
) -> List[int]:
    """
    Delete up to `window_size` messages below `anchor_message_id`.

    Each deletion is attempted on its own and failures (already deleted,
    too old, not ours) are logged and skipped. Calls are spaced by `delay`
    seconds to stay under Telegram's rate limits.

    Returns:
        Ids that were deleted successfully
    """
    if delay is None:
        delay = app_config.PRUNE_DELAY_MS / 1000

    ids = prune_range(anchor_message_id, window_size, newest_first)
    deleted = []
    for i, message_id in enumerate(ids):
        if i and delay > 0:
            await asyncio.sleep(delay)
        try:
            await transport.delete_message(chat_id, message_id)
            deleted.append(message_id)
        except Exception as e:
            logger.debug(f"Could not delete message {message_id} in chat {chat_id}: {e}")

    logger.info(f"Pruned {len(deleted)}/{len(ids)} messages in chat {chat_id} below {anchor_message_id}")
    return deleted
