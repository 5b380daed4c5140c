from __future__ import annotations
import logging
import httpx
from ..ports.notify import Notifier

logger = logging.getLogger(__name__)

TELEGRAM_API = "https://api.telegram.org"

class TelegramNotifier(Notifier):
    """Bot API sendMessage with HTML parse mode. Best effort: one attempt, no retry."""

    def __init__(self, bot_token: str, chat_id: str, timeout_s: int = 15,
                 client: httpx.AsyncClient | None = None, api_base: str = TELEGRAM_API) -> None:
        self.chat_id = chat_id
        self.url = f"{api_base}/bot{bot_token}/sendMessage"
        self.client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout_s))

    async def send(self, message: str) -> bool:
        payload = {
            "chat_id": self.chat_id,
            "text": message,
            "parse_mode": "HTML",
            "disable_web_page_preview": True,
        }
        try:
            r = await self.client.post(self.url, json=payload)
        except httpx.HTTPError as e:
            logger.error("Telegram sendMessage failed: %s: %s", type(e).__name__, e)
            return False
        if r.status_code != 200:
            logger.error("Telegram sendMessage failed: %s %s", r.status_code, r.text)
            return False
        return True

    async def aclose(self) -> None:
        await self.client.aclose()
