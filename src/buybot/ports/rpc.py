# buybot/ports/rpc.py
from __future__ import annotations

from typing import Protocol, Sequence
from ..domain.models import EventLog
from ..domain.value_types import Address, Topic0, TxHash


class ChainReader(Protocol):
    """Port defining what the bot needs from an EVM JSON-RPC node."""

    async def latest_block(self) -> int:
        """Return the latest block number as an integer."""

    async def get_logs(
        self,
        address: Address,
        topic0s: Sequence[Topic0],
        from_block: int,
        to_block: int,
    ) -> list[EventLog]:
        """Return logs for [from_block, to_block] inclusive, ordered by (block, log index)."""

    async def get_pair_tokens(self, pair: Address) -> tuple[Address, Address]:
        """Return (token0, token1) of a V2 pair."""

    async def get_token_decimals(self, token: Address) -> int:
        """ERC-20 decimals(); may raise."""

    async def get_token_symbol(self, token: Address) -> str:
        """ERC-20 symbol(); may raise."""

    async def get_transaction_initiator(self, tx_hash: TxHash) -> Address:
        """Return the `from` of a transaction; may raise."""
