"""Notifier protocol — delivery channel for portfolio reports."""
from typing import Protocol


class Notifier(Protocol):
    """Report delivery channel.

    ``send_log`` carries the routine report, ``send_alert`` carries problems
    that need the owner's attention (such as assets without a price).
    """

    async def send_alert(self, message: str, subject: str = "") -> bool: ...

    async def send_log(self, message: str, silent: bool = True) -> bool: ...
