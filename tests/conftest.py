import asyncio

import pytest
from eth_utils import to_checksum_address

from buybot.domain.decoding import SWAP_T0
from buybot.domain.models import EventLog, PairMetadata, TokenInfo
from buybot.domain.value_types import Address, Topic0, TxHash

PAIR = Address(to_checksum_address("0x" + "aa" * 20))
TRACKED = Address(to_checksum_address("0x" + "11" * 20))
COUNTER = Address(to_checksum_address("0x" + "22" * 20))
ROUTER = Address(to_checksum_address("0x" + "33" * 20))
TRADER = Address(to_checksum_address("0x" + "44" * 20))
INITIATOR = Address(to_checksum_address("0x" + "55" * 20))


def topic_for(addr: str) -> Topic0:
    return Topic0("0x" + "0" * 24 + addr[2:].lower())


def tx_hash(n: int) -> TxHash:
    return TxHash("0x" + f"{n:064x}")


def swap_log(a0_in=0, a1_in=0, a0_out=0, a1_out=0, *, block=991, index=0, tx=1,
             sender=ROUTER, to=TRADER) -> EventLog:
    data = "0x" + "".join(f"{x:064x}" for x in (a0_in, a1_in, a0_out, a1_out))
    return EventLog(
        address=Address(PAIR.lower()),
        topics=(SWAP_T0, topic_for(sender), topic_for(to)),
        data_hex=data,
        block_number=block,
        tx_hash=tx_hash(tx),
        log_index=index,
    )


class FakeRPC:
    """In-memory ChainReader."""

    def __init__(self, head=1000, logs=None, token0=TRACKED, token1=COUNTER):
        self.head = head
        self.logs = list(logs or [])
        self.token0, self.token1 = token0, token1
        self.decimals = {TRACKED: 18, COUNTER: 6}
        self.symbols = {TRACKED: "FROG", COUNTER: "WSEI"}
        self.initiators: dict[str, str] = {}
        self.initiator_delay: dict[str, float] = {}
        self.fail_logs = 0
        self.get_logs_calls: list[tuple[int, int]] = []
        self.initiator_calls: list[str] = []

    async def latest_block(self):
        return self.head

    async def get_logs(self, address, topic0s, from_block, to_block):
        self.get_logs_calls.append((from_block, to_block))
        if self.fail_logs:
            self.fail_logs -= 1
            raise ConnectionError("node unreachable")
        return [l for l in self.logs if from_block <= l.block_number <= to_block]

    async def get_pair_tokens(self, pair):
        return self.token0, self.token1

    async def get_token_decimals(self, token):
        v = self.decimals[token]
        if isinstance(v, Exception):
            raise v
        return v

    async def get_token_symbol(self, token):
        v = self.symbols[token]
        if isinstance(v, Exception):
            raise v
        return v

    async def get_transaction_initiator(self, tx):
        self.initiator_calls.append(tx)
        await asyncio.sleep(self.initiator_delay.get(tx, 0))
        if tx not in self.initiators:
            raise LookupError(f"unknown tx {tx}")
        return self.initiators[tx]


class FakeNotifier:
    def __init__(self, fail=False, raise_exc=False):
        self.messages: list[str] = []
        self.fail = fail
        self.raise_exc = raise_exc

    async def send(self, message):
        if self.raise_exc:
            raise RuntimeError("sink exploded")
        self.messages.append(message)
        return not self.fail


@pytest.fixture
def pair_first():
    return PairMetadata(pair_address=PAIR, tracked_address=TRACKED,
                        counter_address=COUNTER, tracked_is_first_slot=True)


@pytest.fixture
def pair_second():
    return PairMetadata(pair_address=PAIR, tracked_address=TRACKED,
                        counter_address=COUNTER, tracked_is_first_slot=False)


@pytest.fixture
def tracked_info():
    return TokenInfo(address=TRACKED, decimals=18, symbol="FROG")


@pytest.fixture
def counter_info():
    return TokenInfo(address=COUNTER, decimals=6, symbol="WSEI")
