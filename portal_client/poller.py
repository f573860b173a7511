"""
Background refetch loop for one resource.
"""

import asyncio
from typing import Optional

from shared.logging import get_logger
from .polling import PollingState, SmartPollingCoordinator
from .query import Fetcher, QueryClient


class QueryPoller:
    """Refetches ``key`` every interval while the coordinator is ACTIVE.

    While SUSPENDED nothing is scheduled. Becoming ACTIVE again triggers one
    immediate refetch, however long or however often the consumer was hidden.
    """

    def __init__(
        self,
        client: QueryClient,
        key: str,
        fetcher: Fetcher,
        coordinator: SmartPollingCoordinator,
        base_interval_ms: int,
    ):
        self.client = client
        self.key = key
        self.fetcher = fetcher
        self.coordinator = coordinator
        self.base_interval_ms = base_interval_ms
        self.logger = get_logger("portal_client.poller")

        self._wake = asyncio.Event()
        self._resume_pending = False
        self._stopped = False
        self._task: Optional[asyncio.Task] = None
        self._unsubscribe = coordinator.subscribe(self._on_state_change)

    def _on_state_change(self, state: PollingState) -> None:
        if state == PollingState.ACTIVE:
            self._resume_pending = True
        self._wake.set()

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.ensure_future(self._run())

    async def stop(self) -> None:
        self._stopped = True
        self._unsubscribe()
        self._wake.set()
        if self._task is not None:
            await self._task
            self._task = None

    async def _poll(self, force: bool = True) -> None:
        try:
            if force:
                await self.client.refetch(self.key, self.fetcher)
            else:
                await self.client.fetch(self.key, self.fetcher)
        except Exception:
            self.logger.error("Poll failed, will retry next interval", key=self.key, exc_info=True)

    async def _run(self) -> None:
        if self.coordinator.is_active:
            await self._poll(force=False)

        while not self._stopped:
            interval_ms = self.coordinator.current_interval(self.base_interval_ms)

            if interval_ms is None:
                self._wake.clear()
                await self._wake.wait()
                continue

            if self._resume_pending:
                self._resume_pending = False
                self.logger.debug("Refetching on resume", key=self.key)
                await self._poll()
                continue

            self._wake.clear()
            try:
                await asyncio.wait_for(self._wake.wait(), interval_ms / 1000)
            except asyncio.TimeoutError:
                await self._poll()
