#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
IdentityCache -- Lazily fetched, rate-limited cache of the bridge UUID.

The UUID is read from the bridge's description.xml over unicast HTTP. To avoid hammering
the bridge, a fetch is started at most once per refresh interval no matter how many
discovery requests arrive. The refresh interval starts when a fetch begins, whether or
not the fetch succeeds, so a bridge that is down is not retried until the interval expires.

The blocking HTTP request runs in a worker thread so that the event loop keeps receiving
discovery datagrams while a fetch is outstanding.
"""

from __future__ import annotations

import asyncio
import time

import requests

from .internal_types import *
from .pkg_logging import logger
from .constants import DEFAULT_REFRESH_INTERVAL, DEFAULT_FETCH_TIMEOUT
from .exceptions import HueSsdpError
from .target import Target
from .description import fetch_bridge_uuid

class Identity:
    """The cached identity of the bridge. Lives as long as the process; never persisted."""

    uuid: str = ''
    """The bridge UUID without the "uuid:" prefix, or '' if it has never been fetched successfully."""

    last_fetch_time: Optional[float] = None
    """The time.monotonic() at which the most recent fetch was started, or None if there has not been one."""

    cooling_down: bool = False
    """True from the start of a fetch until the refresh interval has elapsed. No fetch is started while True."""

    def __str__(self) -> str:
        return f"Identity(uuid='{self.uuid}', last_fetch_time={self.last_fetch_time}, cooling_down={self.cooling_down})"

    def __repr__(self) -> str:
        return str(self)

class IdentityCache:
    target: Target
    """The bridge whose description.xml is fetched"""

    refresh_interval: float
    """The minimum number of seconds between the starts of two fetches"""

    fetch_timeout: float
    """The HTTP timeout for a fetch, in seconds"""

    session: Optional[requests.Session]
    """The requests session used for fetches. If None, a new connection is made for every fetch."""

    identity: Identity

    fetch_count: int = 0
    """The number of fetches that have been started"""

    _fetch_task: Optional[asyncio.Task[None]] = None
    _cooldown_handle: Optional[asyncio.TimerHandle] = None

    def __init__(
            self,
            target: Target,
            refresh_interval: float=DEFAULT_REFRESH_INTERVAL,
            fetch_timeout: float=DEFAULT_FETCH_TIMEOUT,
            session: Optional[requests.Session]=None,
          ) -> None:
        self.target = target
        self.refresh_interval = refresh_interval
        self.fetch_timeout = fetch_timeout
        self.session = session
        self.identity = Identity()

    @property
    def uuid(self) -> str:
        """The cached bridge UUID, or '' if it has never been fetched successfully."""
        return self.identity.uuid

    @property
    def fetch_in_progress(self) -> bool:
        return self._fetch_task is not None and not self._fetch_task.done()

    def refresh(self) -> Optional[asyncio.Task[None]]:
        """Starts a background fetch of the UUID unless the cache is cooling down.

           Returns the task of the fetch that is in progress (whether started by this call
           or an earlier one), or None if no fetch is in progress. The returned task never
           raises; failures are logged and leave the cached UUID unchanged.

           Must be called from within the event loop.
        """
        if self.fetch_in_progress:
            return self._fetch_task
        if self.identity.cooling_down:
            logger.debug(f"Not fetching bridge UUID; last fetch started {time.monotonic() - (self.identity.last_fetch_time or 0.0):.1f} seconds ago")
            return None
        loop = asyncio.get_running_loop()
        # Cooldown starts now rather than when the fetch completes, so a slow fetch is never duplicated
        self.identity.cooling_down = True
        self.identity.last_fetch_time = time.monotonic()
        self._cooldown_handle = loop.call_later(self.refresh_interval, self._end_cooldown)
        self.fetch_count += 1
        self._fetch_task = asyncio.create_task(self._run_fetch())
        return self._fetch_task

    async def ensure_fresh(self) -> None:
        """Makes sure a fetch has been attempted within the refresh interval, and waits for any
           fetch in progress to finish. Cancelling the caller does not cancel the fetch."""
        task = self.refresh()
        if task is not None:
            await asyncio.shield(task)

    async def _run_fetch(self) -> None:
        logger.debug(f"Fetching bridge UUID from {self.target}")
        try:
            uuid = await asyncio.to_thread(fetch_bridge_uuid, self.target, self.fetch_timeout, self.session)
        except HueSsdpError as e:
            logger.warning(f"Unable to fetch bridge UUID from {self.target}: {e}")
            return
        except Exception as e:
            logger.warning(f"Unexpected error fetching bridge UUID from {self.target}: {e!r}")
            return
        if uuid != self.identity.uuid:
            logger.info(f"Bridge {self.target} has UUID {uuid}")
        self.identity.uuid = uuid

    def _end_cooldown(self) -> None:
        self._cooldown_handle = None
        self.identity.cooling_down = False
        logger.debug("Bridge UUID refresh interval expired")

    def close(self) -> None:
        """Stops the cooldown timer. A fetch in progress is left to finish on its own."""
        if self._cooldown_handle is not None:
            self._cooldown_handle.cancel()
            self._cooldown_handle = None
