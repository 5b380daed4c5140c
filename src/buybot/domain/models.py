from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal
from .classify import Tier
from .value_types import Address, Topic0, TxHash


@dataclass(slots=True, frozen=True)
class BlockRange:
    start: int
    end: int

@dataclass(slots=True, frozen=True)
class EventLog:
    address: Address
    topics: tuple[Topic0, ...]         # lowercased with 0x
    data_hex: str
    block_number: int
    tx_hash: TxHash
    log_index: int

@dataclass(slots=True, frozen=True)
class PairMetadata:
    pair_address: Address
    tracked_address: Address
    counter_address: Address
    tracked_is_first_slot: bool

@dataclass(slots=True, frozen=True)
class TokenInfo:
    address: Address
    decimals: int
    symbol: str

@dataclass(slots=True, frozen=True)
class SwapRecord:
    """One Swap log with amount0*/amount1* already mapped onto tracked/counter."""
    tracked_in: int
    counter_in: int
    tracked_out: int
    counter_out: int
    sender: Address
    recipient: Address
    tx_hash: TxHash
    block_number: int
    log_index: int

    @property
    def key(self) -> tuple[str, int]:
        return (self.tx_hash, self.log_index)

@dataclass(slots=True, frozen=True)
class RawBuy:
    tracked_amount_raw: int
    counter_amount_raw: int

@dataclass(slots=True, frozen=True)
class BuyEvent:
    tracked_amount_raw: int
    counter_amount_raw: int
    tracked_amount: Decimal
    counter_amount: Decimal
    tier: Tier
    indicator: str
    label: str
    tx_hash: TxHash
    block_number: int
    log_index: int
    recipient: Address
    buyer: Address | None = None       # resolved tx initiator, None when lookup failed
