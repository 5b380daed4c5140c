from __future__ import annotations
from rich.console import Console
from rich.panel import Panel
from rich.text import Text
from ..ports.notify import Notifier

class ConsoleNotifier(Notifier):
    """Dry-run sink: prints each message instead of delivering it."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()
        self.sent = 0

    async def send(self, message: str) -> bool:
        self.sent += 1
        self.console.print(Panel(Text(message), title=f"message #{self.sent}", expand=False))
        return True

    async def aclose(self) -> None:
        return None
