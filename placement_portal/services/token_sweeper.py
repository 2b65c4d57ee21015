"""
Limpieza periódica de refresh tokens expirados o revocados hace tiempo.

Corre una vez al arrancar y luego cada `interval`; los fallos quedan en el
log y nunca detienen el proceso.
"""
from __future__ import annotations

import asyncio
import contextlib
import logging
from datetime import timedelta
from typing import Optional

from placement_portal.repositories.refresh_token_repo import RefreshTokenStore

_log = logging.getLogger("portal.tokens.sweep")


class TokenSweeper:
    def __init__(self, store: RefreshTokenStore, interval: timedelta = timedelta(hours=24)) -> None:
        self.store = store
        self.interval = interval
        self._task: Optional[asyncio.Task] = None

    async def run_once(self) -> Optional[int]:
        try:
            deleted = await self.store.sweep_expired()
        except Exception:
            _log.exception("Token cleanup error")
            return None
        _log.info("Token cleanup removed %s refresh tokens", deleted)
        return deleted

    async def _loop(self) -> None:
        while True:
            await self.run_once()
            await asyncio.sleep(self.interval.total_seconds())

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._loop(), name="refresh-token-sweep")
        _log.info("Token cleanup scheduler initialized interval_hours=%s", self.interval.total_seconds() / 3600)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
