"""
Tests for reply jitter and cancel-and-replace scheduling.
"""
import asyncio
import random
from typing import List, Tuple

import pytest

from hue_ssdp_responder import IdentityCache, ResponseScheduler, Target
from hue_ssdp_responder.scheduler import choose_delay

from conftest import description_xml, make_session

TARGET = Target("example.local", 80)


class FakeEmitter:
    def __init__(self, cache: IdentityCache) -> None:
        self.cache = cache
        self.calls: List[Tuple[str, int, str]] = []

    def respond(self, addr: str, port: int) -> None:
        self.calls.append((addr, port, self.cache.uuid))


class MaxRng:
    """Always chooses the longest possible delay."""
    def randrange(self, n: int) -> int:
        return n - 1


def make_scheduler(rng=None):
    session = make_session(200, description_xml("uuid:1234"))
    cache = IdentityCache(TARGET, session=session)
    emitter = FakeEmitter(cache)
    return ResponseScheduler(cache, emitter, rng=rng), emitter, session


def test_choose_delay_zero_mx():
    assert choose_delay(0) == 0.0


def test_choose_delay_within_window():
    rng = random.Random(42)
    for mx in (1, 2, 5):
        for _ in range(200):
            delay = choose_delay(mx, rng)
            assert 0.0 <= delay < mx


def test_choose_delay_millisecond_granularity():
    assert choose_delay(1, MaxRng()) == pytest.approx(0.999)


async def test_mx_zero_replies_without_delay():
    scheduler, emitter, _ = make_scheduler()
    pending = scheduler.on_discovery("192.168.1.50", 50000, 0)
    await pending.task
    assert pending.delay == 0.0
    assert emitter.calls == [("192.168.1.50", 50000, "1234")]
    assert scheduler.pending is None
    scheduler.identity_cache.close()


async def test_reply_waits_for_fetch():
    scheduler, emitter, session = make_scheduler()
    pending = scheduler.on_discovery("192.168.1.50", 50000, 1)
    await asyncio.wait_for(pending.task, 2.0)
    assert emitter.calls == [("192.168.1.50", 50000, "1234")]
    assert session.get.call_count == 1
    scheduler.identity_cache.close()


async def test_second_request_supersedes_first():
    scheduler, emitter, _ = make_scheduler(rng=MaxRng())
    first = scheduler.on_discovery("192.168.1.50", 50000, 5)
    await asyncio.sleep(0.05)
    second = scheduler.on_discovery("192.168.1.51", 50001, 0)
    await second.task
    await asyncio.gather(first.task, return_exceptions=True)
    assert first.task.cancelled()
    assert emitter.calls == [("192.168.1.51", 50001, "1234")]
    scheduler.identity_cache.close()


async def test_superseded_while_waiting_for_delay():
    scheduler, emitter, _ = make_scheduler(rng=MaxRng())
    first = scheduler.on_discovery("10.0.0.1", 1111, 2)
    await asyncio.sleep(0.1)
    assert first.delay == pytest.approx(1.999)
    second = scheduler.on_discovery("10.0.0.2", 2222, 1)
    await asyncio.wait_for(second.task, 2.0)
    await asyncio.sleep(0)
    assert first.task.cancelled()
    assert emitter.calls == [("10.0.0.2", 2222, "1234")]
    scheduler.identity_cache.close()


async def test_many_requests_fetch_once():
    scheduler, emitter, session = make_scheduler()
    for i in range(10):
        pending = scheduler.on_discovery("10.0.0.1", 1000 + i, 0)
    await pending.task
    assert session.get.call_count == 1
    assert emitter.calls == [("10.0.0.1", 1009, "1234")]
    scheduler.identity_cache.close()


async def test_aclose_drops_pending_reply():
    scheduler, emitter, _ = make_scheduler(rng=MaxRng())
    pending = scheduler.on_discovery("10.0.0.1", 1111, 3)
    await asyncio.sleep(0.05)
    await scheduler.aclose()
    assert pending.task.done()
    assert scheduler.pending is None
    assert emitter.calls == []
    scheduler.identity_cache.close()
