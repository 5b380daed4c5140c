from __future__ import annotations

from eth_utils import to_checksum_address

from .models import EventLog, PairMetadata, RawBuy, SwapRecord
from .value_types import Address, Topic0


# Swap(address indexed sender, uint256 amount0In, uint256 amount1In,
#      uint256 amount0Out, uint256 amount1Out, address indexed to)
SWAP_T0 = Topic0("0xd78ad95fa46c994b6551d0da85fc275fe613ce37657fb8d5e3d130840159d822")

# --------- 32B word slicing (fast, no eth_abi) --------------------------------
def _word(b: bytes, i: int) -> bytes:
    return b[i*32:(i+1)*32]

def _u256(w: bytes) -> int:
    return int.from_bytes(w, "big")

def _hexstr_to_bytes(s: str) -> bytes:
    h = s[2:] if s[:2].lower() == "0x" else s
    if len(h) % 2: h = "0" + h
    return bytes.fromhex(h) if h else b""

def _addr_from_topic(t: str) -> Address:
    h = t[2:] if t[:2].lower() == "0x" else t
    return Address(to_checksum_address("0x" + h[-40:]))

def _decode_swap(data_b: bytes) -> tuple[int, int, int, int]:
    # ["uint256","uint256","uint256","uint256"]
    return (_u256(_word(data_b, 0)),
            _u256(_word(data_b, 1)),
            _u256(_word(data_b, 2)),
            _u256(_word(data_b, 3)))

# ---------------------------- public API --------------------------------------

def decode_swap_log(log: EventLog, pair: PairMetadata) -> SwapRecord | None:
    """
    Decode a V2 Swap log and map amount0*/amount1* onto tracked/counter.
    Returns None for other events or truncated payloads.
    """
    if len(log.topics) < 3 or log.topics[0].lower() != SWAP_T0:
        return None
    data_b = _hexstr_to_bytes(log.data_hex)
    if len(data_b) < 32 * 4:
        return None

    a0_in, a1_in, a0_out, a1_out = _decode_swap(data_b)
    if pair.tracked_is_first_slot:
        t_in, c_in, t_out, c_out = a0_in, a1_in, a0_out, a1_out
    else:
        t_in, c_in, t_out, c_out = a1_in, a0_in, a1_out, a0_out

    return SwapRecord(
        tracked_in=t_in,
        counter_in=c_in,
        tracked_out=t_out,
        counter_out=c_out,
        sender=_addr_from_topic(log.topics[1]),
        recipient=_addr_from_topic(log.topics[2]),
        tx_hash=log.tx_hash,
        block_number=log.block_number,
        log_index=log.log_index,
    )

def detect_buy(record: SwapRecord) -> RawBuy | None:
    """A buy is tracked tokens leaving the pool; what the trader paid is the counter inflow."""
    if not record.tracked_out or record.tracked_out <= 0:
        return None
    return RawBuy(
        tracked_amount_raw=record.tracked_out,
        counter_amount_raw=record.counter_in or 0,
    )
