from __future__ import annotations
import asyncio
import logging
from dataclasses import dataclass, field

from ..domain.models import PairMetadata, TokenInfo
from ..domain.value_types import Address
from ..errors import ConfigError, RPCError
from ..ports.rpc import ChainReader

logger = logging.getLogger(__name__)

DEFAULT_DECIMALS = 18
DEFAULT_SYMBOL = "TOKEN"


@dataclass(slots=True, frozen=True)
class TokenLookup:
    """
    Result of resolving ERC-20 metadata. A failed field is replaced by its
    default (DEFAULT_DECIMALS / DEFAULT_SYMBOL) and recorded in `errors`.
    """
    info: TokenInfo
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def defaulted(self) -> bool:
        return bool(self.errors)


async def resolve_pair(rpc: ChainReader, pair: Address, tracked: Address) -> PairMetadata:
    try:
        token0, token1 = await rpc.get_pair_tokens(pair)
    except RPCError as e:
        raise ConfigError(f"{pair} does not look like a V2 pair: {e}") from e
    if tracked.lower() == token0.lower():
        return PairMetadata(pair_address=pair, tracked_address=token0,
                            counter_address=token1, tracked_is_first_slot=True)
    if tracked.lower() == token1.lower():
        return PairMetadata(pair_address=pair, tracked_address=token1,
                            counter_address=token0, tracked_is_first_slot=False)
    raise ConfigError(
        f"tracked token {tracked} is not token0/token1 of pair {pair} "
        f"(token0={token0} token1={token1})"
    )


async def resolve_token(rpc: ChainReader, token: Address) -> TokenLookup:
    errors: dict[str, str] = {}
    decimals = DEFAULT_DECIMALS
    symbol = DEFAULT_SYMBOL

    try:
        decimals = int(await rpc.get_token_decimals(token))
    except Exception as e:
        errors["decimals"] = f"{type(e).__name__}: {e}"
    try:
        symbol = (await rpc.get_token_symbol(token)).strip() or DEFAULT_SYMBOL
    except Exception as e:
        errors["symbol"] = f"{type(e).__name__}: {e}"

    for what, err in errors.items():
        logger.warning("%s lookup failed for %s (%s); using default", what, token, err)
    return TokenLookup(TokenInfo(address=token, decimals=decimals, symbol=symbol), errors)


async def resolve_metadata(rpc: ChainReader, pair: Address, tracked: Address) -> tuple[PairMetadata, TokenLookup, TokenLookup]:
    meta = await resolve_pair(rpc, pair, tracked)
    tracked_lookup, counter_lookup = await asyncio.gather(
        resolve_token(rpc, meta.tracked_address),
        resolve_token(rpc, meta.counter_address),
    )
    return meta, tracked_lookup, counter_lookup
