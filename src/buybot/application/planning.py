from __future__ import annotations
from ..domain.models import BlockRange

def safe_head(head: int, confirmations: int) -> int:
    """Newest block considered final; clamped to `head` on very young chains."""
    return head - confirmations if head > confirmations else head

def confirmed_range(cursor: int, head: int, confirmations: int) -> BlockRange | None:
    """Next range to scan after `cursor`, or None when nothing new is confirmed."""
    fb, tb = cursor + 1, safe_head(head, confirmations)
    if fb > tb:
        return None
    return BlockRange(start=fb, end=tb)
