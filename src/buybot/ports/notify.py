# buybot/ports/notify.py
from __future__ import annotations

from typing import Protocol


class Notifier(Protocol):
    """One-way port for delivering a composed message."""

    async def send(self, message: str) -> bool:
        """Attempt delivery once. Return False on failure instead of raising."""
