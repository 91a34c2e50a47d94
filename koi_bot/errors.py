"""
Error types raised inside the bot core.

Handlers let these bubble up to the dispatcher, which decides per type
whether the user gets a notice or the error is only logged.
"""
from typing import Optional


class KoiBotError(Exception):
    """Base class for every error raised by the bot core."""


class TransportError(KoiBotError):
    """A Telegram call (send/edit/delete/answer) failed."""

    def __init__(self, operation: str, chat_id: Optional[int] = None, cause: Optional[Exception] = None):
        self.operation = operation
        self.chat_id = chat_id
        self.cause = cause
        detail = f"{operation} failed"
        if chat_id is not None:
            detail += f" for chat {chat_id}"
        if cause is not None:
            detail += f": {cause}"
        super().__init__(detail)


class QuoteError(KoiBotError):
    """The on-chain quote provider could not answer."""


class KeyboardConstructionError(KoiBotError, ValueError):
    """A keyboard was requested with an impossible toggle combination."""


class ValidationError(KoiBotError):
    """User input was rejected. `notice` is what the user should see."""

    def __init__(self, notice: str):
        self.notice = notice
        super().__init__(notice)
