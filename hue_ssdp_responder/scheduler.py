#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
ResponseScheduler -- Spreads discovery replies over the requester's MX window.

SSDP requesters expect each responder to wait a random time between 0 and MX seconds
before replying, so that the requester is not flooded. A responder serves exactly one
bridge, so only the most recent request matters: arming a new reply cancels the one
that is still pending, and the superseded reply is never sent.
"""

from __future__ import annotations

import asyncio
import random

from .internal_types import *
from .pkg_logging import logger

from .identity_cache import IdentityCache
from .reply_emitter import ReplyEmitter

class PendingReply:
    """The single reply that is waiting to be sent."""

    src_addr: HostAndPort
    delay: Optional[float] = None
    """The randomized delay in seconds, once it has been chosen"""

    task: asyncio.Task[None]

    def __init__(self, src_addr: HostAndPort, task: asyncio.Task[None]) -> None:
        self.src_addr = src_addr
        self.task = task

    def __str__(self) -> str:
        return f"PendingReply(src_addr={self.src_addr}, delay={self.delay})"

    def __repr__(self) -> str:
        return str(self)

def choose_delay(mx: int, rng: Optional[random.Random]=None) -> float:
    """Returns a delay in seconds uniformly distributed over [0, mx) with millisecond granularity.
       Returns 0.0 for mx == 0."""
    if mx <= 0:
        return 0.0
    randrange = random.randrange if rng is None else rng.randrange
    return randrange(mx * 1000) / 1000.0

class ResponseScheduler:
    identity_cache: IdentityCache
    emitter: ReplyEmitter
    rng: Optional[random.Random]

    pending: Optional[PendingReply] = None
    """The reply that is waiting to be sent, if any. There is never more than one."""

    def __init__(self, identity_cache: IdentityCache, emitter: ReplyEmitter, rng: Optional[random.Random]=None) -> None:
        self.identity_cache = identity_cache
        self.emitter = emitter
        self.rng = rng

    def on_discovery(self, addr: str, port: int, mx: int) -> PendingReply:
        """Arms a reply to (addr, port) within mx seconds, replacing any reply that is still pending.

           Starts a refresh of the bridge UUID if one is due; the reply waits for it to finish.
           Must be called from within the event loop.
        """
        fetch_task = self.identity_cache.refresh()
        self.cancel()
        src_addr: HostAndPort = (addr, port)
        task = asyncio.create_task(self._run_reply(src_addr, mx, fetch_task))
        pending = PendingReply(src_addr, task)
        self.pending = pending
        logger.debug(f"Armed reply to {addr}:{port} with MX={mx}")
        return pending

    def cancel(self) -> None:
        """Drops the pending reply, if any, without sending it."""
        pending = self.pending
        self.pending = None
        if pending is not None and not pending.task.done():
            logger.debug(f"Superseding pending reply to {pending.src_addr[0]}:{pending.src_addr[1]}")
            pending.task.cancel()

    async def _run_reply(self, src_addr: HostAndPort, mx: int, fetch_task: Optional[asyncio.Task[None]]) -> None:
        if fetch_task is not None:
            # Shielded: superseding this reply must not abort the fetch
            await asyncio.shield(fetch_task)
        delay = choose_delay(mx, self.rng)
        pending = self.pending
        if pending is not None and pending.task is asyncio.current_task():
            pending.delay = delay
        if delay > 0.0:
            await asyncio.sleep(delay)
        pending = self.pending
        if pending is None or pending.task is not asyncio.current_task():
            return
        self.pending = None
        self.emitter.respond(src_addr[0], src_addr[1])

    async def aclose(self) -> None:
        """Cancels the pending reply and waits for its task to finish."""
        pending = self.pending
        self.cancel()
        if pending is not None:
            try:
                await pending.task
            except asyncio.CancelledError:
                pass
