from __future__ import annotations

from ..domain.classify import Classifier, compact_label, format_units, to_float
from ..domain.decoding import detect_buy
from ..domain.models import BuyEvent, SwapRecord, TokenInfo
from ..domain.value_types import Address


def to_buy_event(
    record: SwapRecord,
    *,
    tracked: TokenInfo,
    counter: TokenInfo,
    classifier: Classifier,
    buyer: Address | None = None,
) -> BuyEvent | None:
    """Swap record → BuyEvent, or None when the swap is not a buy of the tracked token."""
    buy = detect_buy(record)
    if buy is None:
        return None

    bought = format_units(buy.tracked_amount_raw, tracked.decimals)
    spent = format_units(buy.counter_amount_raw, counter.decimals)
    amount = to_float(bought)  # tier/indicator/label derive from the bought side only

    return BuyEvent(
        tracked_amount_raw=buy.tracked_amount_raw,
        counter_amount_raw=buy.counter_amount_raw,
        tracked_amount=bought,
        counter_amount=spent,
        tier=classifier.tier(amount),
        indicator=classifier.indicator(amount),
        label=compact_label(amount),
        tx_hash=record.tx_hash,
        block_number=record.block_number,
        log_index=record.log_index,
        recipient=record.recipient,
        buyer=buyer,
    )
