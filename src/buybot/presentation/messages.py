from __future__ import annotations

import html
from dataclasses import dataclass, field

from ..domain.classify import Classifier, compact_label, pretty_amount
from ..domain.models import BuyEvent, PairMetadata, TokenInfo

DEFAULT_EXPLORER = "https://seiscan.io"


def esc(s: object) -> str:
    return html.escape(str(s), quote=True)

def short_addr(a: str) -> str:
    return f"{a[:6]}…{a[-4:]}"

def short_tx(tx: str) -> str:
    return f"{tx[:10]}…{tx[-8:]}"


@dataclass(slots=True, frozen=True)
class MessageComposer:
    """Telegram-HTML rendering of buys. Aliases only touch displayed symbols."""
    explorer_url: str = DEFAULT_EXPLORER
    symbol_aliases: dict[str, str] = field(default_factory=dict)

    def display_symbol(self, symbol: str) -> str:
        return self.symbol_aliases.get(symbol, symbol)

    def address_link(self, address: str, text: str | None = None) -> str:
        url = f"{self.explorer_url.rstrip('/')}/address/{address}"
        return f'<a href="{esc(url)}">{esc(text or short_addr(address))}</a>'

    def tx_link(self, tx_hash: str) -> str:
        url = f"{self.explorer_url.rstrip('/')}/tx/{tx_hash}"
        return f'<a href="{esc(url)}">{esc(short_tx(tx_hash))}</a>'

    def render_buy(self, event: BuyEvent, pair: PairMetadata, tracked: TokenInfo, counter: TokenInfo) -> str:
        sym = self.display_symbol(tracked.symbol)
        lines = [
            f"🟢 New <b>{esc(sym)} BUY</b>",
            f"Bought: <b>{esc(pretty_amount(event.tracked_amount))}</b> {esc(sym)}",
        ]

        badge = f"<b>{esc(event.tier.badge)}</b>"
        if event.indicator:
            badge += f"  {esc(event.indicator)}"
        if event.label:
            badge += f" <i>({esc(event.label)})</i>"
        lines.append(badge)

        lines.append(
            f"Spent: <b>{esc(pretty_amount(event.counter_amount))}</b> "
            f"{esc(self.display_symbol(counter.symbol))}"
        )

        if event.buyer is not None:
            lines.append(f"Buyer: {self.address_link(event.buyer)}")
        else:
            lines.append(f"Recipient: {self.address_link(event.recipient)}")

        lines.append(f"Tx: {self.tx_link(event.tx_hash)}")
        lines.append(f"Pair: {self.address_link(pair.pair_address)}")
        return "\n".join(lines)

    def render_startup(self, pair: PairMetadata, tracked: TokenInfo, counter: TokenInfo, classifier: Classifier) -> str:
        lo, hi = classifier.scale_range()
        kind = "log bar" if classifier.strategy == "ladder" else "meter"
        return (
            "✅ <b>Bot online</b>\n"
            f"Pair: {self.address_link(pair.pair_address)}\n"
            f"Token: <b>{esc(self.display_symbol(tracked.symbol))}</b> "
            f"vs {esc(self.display_symbol(counter.symbol))}\n"
            f"Scale: {esc(compact_label(lo))} → {esc(compact_label(hi))} ({kind})"
        )
