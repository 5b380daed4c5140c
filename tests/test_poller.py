from functools import partial

import pytest

from conftest import INITIATOR, TRADER, FakeNotifier, FakeRPC, swap_log, tx_hash
from buybot.application.planning import confirmed_range, safe_head
from buybot.application.poller import SwapPoller
from buybot.domain.classify import Classifier
from buybot.domain.models import BlockRange
from buybot.presentation.messages import MessageComposer


def make_poller(rpc, notifier, pair, tracked, counter, *, cursor=990, render=None, **kw):
    if render is None:
        render = partial(MessageComposer().render_buy, pair=pair, tracked=tracked, counter=counter)
    return SwapPoller(rpc=rpc, notifier=notifier, pair=pair, tracked=tracked, counter=counter,
                      classifier=Classifier(), render=render, poll_interval_s=0,
                      confirmations=2, cursor=cursor, **kw)


# ---------------------------- planning ----------------------------------------

def test_confirmed_range_lags_head():
    assert confirmed_range(990, 1000, 2) == BlockRange(991, 998)


def test_confirmed_range_clamps_on_young_chain():
    assert safe_head(2, 2) == 2
    assert safe_head(1, 5) == 1
    assert confirmed_range(0, 1, 5) == BlockRange(1, 1)


def test_confirmed_range_none_when_nothing_new():
    assert confirmed_range(998, 1000, 2) is None
    assert confirmed_range(998, 999, 2) is None


# ---------------------------- poller ------------------------------------------

@pytest.mark.asyncio
async def test_start_uses_current_head(pair_first, tracked_info, counter_info):
    rpc = FakeRPC(head=1234)
    p = make_poller(rpc, FakeNotifier(), pair_first, tracked_info, counter_info, cursor=None)
    assert await p.start() == 1234
    assert p.cursor == 1234


@pytest.mark.asyncio
async def test_tick_before_start_raises(pair_first, tracked_info, counter_info):
    p = make_poller(FakeRPC(), FakeNotifier(), pair_first, tracked_info, counter_info, cursor=None)
    with pytest.raises(RuntimeError):
        await p.tick()


@pytest.mark.asyncio
async def test_tick_scans_confirmed_range_and_advances(pair_first, tracked_info, counter_info):
    rpc = FakeRPC(head=1000, logs=[swap_log(a0_out=500 * 10**18, a1_in=10**6, block=995)])
    rpc.initiators[tx_hash(1)] = INITIATOR
    notifier = FakeNotifier()
    p = make_poller(rpc, notifier, pair_first, tracked_info, counter_info)

    stats = await p.tick()

    assert rpc.get_logs_calls == [(991, 998)]
    assert p.cursor == 998
    assert stats["buys"] == 1 and stats["delivered"] == 1
    assert len(notifier.messages) == 1
    assert "Buyer:" in notifier.messages[0]
    assert INITIATOR in notifier.messages[0]


@pytest.mark.asyncio
async def test_no_new_range_skips_log_source(pair_first, tracked_info, counter_info):
    rpc = FakeRPC(head=1000)
    p = make_poller(rpc, FakeNotifier(), pair_first, tracked_info, counter_info, cursor=998)
    await p.tick()
    assert rpc.get_logs_calls == []
    assert p.cursor == 998


@pytest.mark.asyncio
async def test_fetch_failure_keeps_cursor_and_retries_same_range(pair_first, tracked_info, counter_info):
    rpc = FakeRPC(head=1000, logs=[swap_log(a0_out=10**18, block=991)])
    rpc.fail_logs = 1
    notifier = FakeNotifier()
    p = make_poller(rpc, notifier, pair_first, tracked_info, counter_info)

    with pytest.raises(ConnectionError):
        await p.tick()
    assert p.cursor == 990

    await p.tick()
    assert rpc.get_logs_calls == [(991, 998), (991, 998)]
    assert p.cursor == 998
    assert len(notifier.messages) == 1


@pytest.mark.asyncio
async def test_cursor_assignment_is_absolute(pair_first, tracked_info, counter_info):
    rpc = FakeRPC(head=1000)
    p = make_poller(rpc, FakeNotifier(), pair_first, tracked_info, counter_info)
    await p.tick()
    await p.tick()
    assert p.cursor == 998
    rpc.head = 1005
    await p.tick()
    assert rpc.get_logs_calls == [(991, 998), (999, 1003)]
    assert p.cursor == 1003


@pytest.mark.asyncio
async def test_only_buys_are_dispatched(pair_first, tracked_info, counter_info):
    rpc = FakeRPC(logs=[
        swap_log(a0_in=10**18, a1_out=5, block=991, tx=1),   # sell
        swap_log(a0_out=10**18, a1_in=5, block=992, tx=2),   # buy
        swap_log(block=993, tx=3),                           # nothing moved
    ])
    notifier = FakeNotifier()
    p = make_poller(rpc, notifier, pair_first, tracked_info, counter_info, resolve_buyer=False)
    stats = await p.tick()
    assert stats == {"logs": 3, "buys": 1, "delivered": 1, "failed_deliveries": 0, "skipped_duplicates": 0}
    assert rpc.initiator_calls == []


@pytest.mark.asyncio
async def test_initiator_failure_falls_back_to_recipient(pair_first, tracked_info, counter_info):
    rpc = FakeRPC(logs=[swap_log(a0_out=10**18, block=991)])
    notifier = FakeNotifier()
    p = make_poller(rpc, notifier, pair_first, tracked_info, counter_info)
    await p.tick()
    assert p.cursor == 998
    assert "Recipient:" in notifier.messages[0]
    assert TRADER in notifier.messages[0]
    assert "Buyer:" not in notifier.messages[0]


@pytest.mark.asyncio
async def test_messages_follow_log_order_despite_lookup_timing(pair_first, tracked_info, counter_info):
    logs = [swap_log(a0_out=(i + 1) * 10**18, block=991 + i, tx=i + 1) for i in range(4)]
    rpc = FakeRPC(logs=logs)
    for i in range(4):
        rpc.initiators[tx_hash(i + 1)] = INITIATOR
        rpc.initiator_delay[tx_hash(i + 1)] = 0.01 * (4 - i)
    notifier = FakeNotifier()
    p = make_poller(rpc, notifier, pair_first, tracked_info, counter_info)
    await p.tick()
    assert [m.split("Bought: <b>")[1].split("<")[0] for m in notifier.messages] == ["1", "2", "3", "4"]


@pytest.mark.asyncio
async def test_one_lookup_per_transaction(pair_first, tracked_info, counter_info):
    rpc = FakeRPC(logs=[swap_log(a0_out=1, block=991, index=0, tx=7),
                        swap_log(a0_out=2, block=991, index=3, tx=7)])
    rpc.initiators[tx_hash(7)] = INITIATOR
    p = make_poller(rpc, FakeNotifier(), pair_first, tracked_info, counter_info)
    await p.tick()
    assert rpc.initiator_calls == [tx_hash(7)]


@pytest.mark.asyncio
@pytest.mark.parametrize("notifier", [FakeNotifier(fail=True), FakeNotifier(raise_exc=True)])
async def test_delivery_failure_does_not_block_cursor(notifier, pair_first, tracked_info, counter_info):
    rpc = FakeRPC(logs=[swap_log(a0_out=1, block=991, tx=1), swap_log(a0_out=2, block=992, tx=2)])
    p = make_poller(rpc, notifier, pair_first, tracked_info, counter_info, resolve_buyer=False)
    stats = await p.tick()
    assert stats["failed_deliveries"] == 2
    assert p.cursor == 998


@pytest.mark.asyncio
async def test_retried_range_does_not_notify_twice(pair_first, tracked_info, counter_info):
    rpc = FakeRPC(logs=[swap_log(a0_out=1, block=991, tx=1), swap_log(a0_out=2, block=992, tx=2)])
    composer = MessageComposer()
    failed = []

    def flaky_render(event):
        if event.tx_hash == tx_hash(2) and not failed:
            failed.append(event)
            raise ValueError("render blew up")
        return composer.render_buy(event, pair_first, tracked_info, counter_info)

    notifier = FakeNotifier()
    p = make_poller(rpc, notifier, pair_first, tracked_info, counter_info,
                    render=flaky_render, resolve_buyer=False)

    with pytest.raises(ValueError):
        await p.tick()
    assert p.cursor == 990
    assert len(notifier.messages) == 1

    stats = await p.tick()
    assert p.cursor == 998
    assert stats["skipped_duplicates"] == 1
    assert len(notifier.messages) == 2


@pytest.mark.asyncio
async def test_run_survives_failing_ticks(pair_first, tracked_info, counter_info):
    rpc = FakeRPC(logs=[swap_log(a0_out=1, block=991)])
    rpc.fail_logs = 2
    notifier = FakeNotifier()
    p = make_poller(rpc, notifier, pair_first, tracked_info, counter_info, resolve_buyer=False)
    await p.run(max_ticks=3)
    assert rpc.get_logs_calls == [(991, 998)] * 3
    assert p.cursor == 998
    assert len(notifier.messages) == 1


@pytest.mark.asyncio
async def test_independent_pollers_keep_independent_cursors(pair_first, tracked_info, counter_info):
    a = make_poller(FakeRPC(head=1000), FakeNotifier(), pair_first, tracked_info, counter_info, cursor=990)
    b = make_poller(FakeRPC(head=500), FakeNotifier(), pair_first, tracked_info, counter_info, cursor=400)
    await a.tick()
    await b.tick()
    assert (a.cursor, b.cursor) == (998, 498)
