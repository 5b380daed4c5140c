from __future__ import annotations
import httpx
from typing import Any, Sequence
from eth_utils import to_checksum_address
from ..domain.models import EventLog
from ..domain.value_types import Address, Topic0, TxHash
from ..errors import RPCError
from ..ports.rpc import ChainReader

# 4-byte selectors
TOKEN0_SEL   = "0x0dfe1681"
TOKEN1_SEL   = "0xd21220a7"
DECIMALS_SEL = "0x313ce567"
SYMBOL_SEL   = "0x95d89b41"

def _to_hex_block(n: int) -> str: return hex(int(n))
def _is_topic_hash(x: str) -> bool: return isinstance(x, str) and x.startswith("0x") and len(x)==66
def _normalize_topic0_list(t0s: Sequence[Topic0]) -> list[str]:
    out: list[str] = []
    for t in t0s:
        s = str(t).strip().lower()
        out.append(s)
    return out

def _build_topics_param(topic0s: Sequence[Topic0]) -> list[list[str]]:
    t0s = _normalize_topic0_list(topic0s)
    if not all(_is_topic_hash(x) for x in t0s):
        raise ValueError(f"Invalid topic0(s): {t0s}")
    return [t0s]

def _hex_bytes(s: str) -> bytes:
    h = s[2:] if s[:2].lower() == "0x" else s
    return bytes.fromhex(h) if h else b""

def _decode_address(result: str) -> Address:
    b = _hex_bytes(result)
    if len(b) < 32:
        raise RPCError(f"eth_call returned {len(b)} bytes, expected an address word")
    return Address(to_checksum_address("0x" + b[12:32].hex()))

def _decode_uint(result: str) -> int:
    b = _hex_bytes(result)
    if len(b) < 32:
        raise RPCError(f"eth_call returned {len(b)} bytes, expected a uint word")
    return int.from_bytes(b[:32], "big")

def _decode_string(result: str) -> str:
    """ABI `string`, or a right-padded `bytes32` for older tokens."""
    b = _hex_bytes(result)
    if len(b) == 32:
        return b.rstrip(b"\x00").decode("utf-8", errors="replace")
    if len(b) < 64:
        raise RPCError(f"eth_call returned {len(b)} bytes, expected an ABI string")
    offset = int.from_bytes(b[:32], "big")
    length = int.from_bytes(b[offset:offset+32], "big")
    raw = b[offset+32:offset+32+length]
    if len(raw) != length:
        raise RPCError("truncated ABI string")
    return raw.decode("utf-8", errors="replace")

class HttpxRPC(ChainReader):
    def __init__(self, rpc_url: str, timeout_s: int = 20, max_conn: int = 16,
                 client: httpx.AsyncClient | None = None) -> None:
        self.rpc_url = rpc_url
        self.client = client or httpx.AsyncClient(
            http2=True,
            timeout=httpx.Timeout(timeout_s),
            limits=httpx.Limits(max_connections=max_conn, max_keepalive_connections=max_conn//2),
        )
        self._id = 0

    async def _call(self, method: str, params: list[Any]) -> Any:
        self._id += 1
        payload = {"jsonrpc":"2.0","id":self._id,"method":method,"params":params}
        r = await self.client.post(self.rpc_url, json=payload)
        r.raise_for_status()
        data = r.json()
        if "error" in data:
            err = data["error"]
            if isinstance(err, dict):
                raise RPCError(f"{method} RPC error code={err.get('code')} message={err.get('message')}")
            raise RPCError(f"{method} RPC error: {err}")
        return data.get("result")

    async def _eth_call(self, to: Address, data: str) -> str:
        res = await self._call("eth_call", [{"to": str(to), "data": data}, "latest"])
        if not isinstance(res, str):
            raise RPCError(f"eth_call to {to} returned {res!r}")
        return res

    async def latest_block(self) -> int:
        return int(await self._call("eth_blockNumber", []), 16)

    async def get_logs(self, address: Address, topic0s: Sequence[Topic0], from_block: int, to_block: int) -> list[EventLog]:
        res = await self._call("eth_getLogs", [{
            "address": str(address),
            "fromBlock": _to_hex_block(from_block),
            "toBlock": _to_hex_block(to_block),
            "topics": _build_topics_param(topic0s),
        }])
        typed: list[EventLog] = []
        for rl in res or []:
            if rl.get("removed"):
                continue
            typed.append(EventLog(
                address=Address(rl["address"].lower()),
                topics=tuple(Topic0(t.lower()) for t in rl.get("topics", [])),
                data_hex=rl.get("data") or "0x",
                block_number=int(rl["blockNumber"], 16),
                tx_hash=TxHash(rl["transactionHash"].lower()),
                log_index=int(rl["logIndex"], 16),
            ))
        typed.sort(key=lambda e: (e.block_number, e.log_index))
        return typed

    async def get_pair_tokens(self, pair: Address) -> tuple[Address, Address]:
        t0 = _decode_address(await self._eth_call(pair, TOKEN0_SEL))
        t1 = _decode_address(await self._eth_call(pair, TOKEN1_SEL))
        return t0, t1

    async def get_token_decimals(self, token: Address) -> int:
        return _decode_uint(await self._eth_call(token, DECIMALS_SEL))

    async def get_token_symbol(self, token: Address) -> str:
        return _decode_string(await self._eth_call(token, SYMBOL_SEL))

    async def get_transaction_initiator(self, tx_hash: TxHash) -> Address:
        tx = await self._call("eth_getTransactionByHash", [str(tx_hash)])
        if not tx or not tx.get("from"):
            raise RPCError(f"transaction {tx_hash} not found")
        return Address(to_checksum_address(tx["from"]))

    async def aclose(self) -> None:
        await self.client.aclose()
