"""Debounced persistence for one open dashboard.

Edits replace the pending snapshot and restart a single timer; when it fires
the latest snapshot is written. The save status goes ``idle -> saving ->
saved|error`` and the last two fall back to ``idle`` on their own.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Literal, Protocol, Sequence
from uuid import uuid4

from firegrid.dashboards.store import DashboardState
from firegrid.widgets.config import Widget

logger = logging.getLogger(__name__)

SaveStatus = Literal["idle", "saving", "saved", "error"]
TimerState = Literal["idle", "pending", "saving"]


class DashboardWriter(Protocol):
    async def save(self, dashboard_id: str, name: str, widgets: Sequence[Widget], *, is_new: bool) -> None: ...


class DebounceTimer:
    """One cancelable delayed call; scheduling again replaces the pending one."""

    def __init__(self, delay_seconds: float, callback: Callable[[], Awaitable[None]]) -> None:
        self.delay_seconds = delay_seconds
        self._callback = callback
        self._task: asyncio.Task[None] | None = None
        self._state: TimerState = "idle"

    @property
    def state(self) -> TimerState:
        return self._state

    @property
    def pending(self) -> bool:
        return self._state == "pending"

    def schedule(self) -> None:
        self.cancel()
        self._task = asyncio.get_running_loop().create_task(self._run())
        self._state = "pending"

    def cancel(self) -> None:
        """Drop the pending call. A call already running is left to finish."""
        if self._task is not None and self._state == "pending":
            self._task.cancel()
            self._task = None
            self._state = "idle"

    async def fire_now(self) -> None:
        """Run the pending call immediately instead of waiting."""
        if not self.pending:
            return
        self.cancel()
        await self._callback()

    async def _run(self) -> None:
        await asyncio.sleep(self.delay_seconds)
        current = asyncio.current_task()
        self._state = "saving"
        try:
            await self._callback()
        finally:
            if self._task is current:
                self._task = None
                self._state = "idle"


class AutosaveCoordinator:
    def __init__(
        self,
        writer: DashboardWriter,
        *,
        dashboard_id: str | None = None,
        debounce_seconds: float = 1.5,
        saved_reset_seconds: float = 2.0,
        error_reset_seconds: float = 3.0,
    ) -> None:
        self._writer = writer
        self._dashboard_id = dashboard_id
        self._saved_reset_seconds = saved_reset_seconds
        self._error_reset_seconds = error_reset_seconds
        self._timer = DebounceTimer(debounce_seconds, self._save_latest)
        self._lock = asyncio.Lock()
        self._status: SaveStatus = "idle"
        self._status_reset: asyncio.TimerHandle | None = None
        self._state: DashboardState | None = None
        self._loaded = False
        self.save_count = 0
        self.last_error: str | None = None

    @property
    def dashboard_id(self) -> str | None:
        return self._dashboard_id

    @property
    def status(self) -> SaveStatus:
        return self._status

    @property
    def timer_state(self) -> TimerState:
        return self._timer.state

    @property
    def initial_load_done(self) -> bool:
        return self._loaded

    def mark_loaded(self, state: DashboardState) -> None:
        """Record the loaded snapshot; edits after this point are saved."""
        self._state = state
        self._loaded = True

    def update(self, state: DashboardState) -> None:
        self._state = state
        if not self._loaded:
            return
        if not state.widgets:
            self._timer.cancel()
            return
        self._timer.schedule()

    async def save_now(self) -> bool:
        self._timer.cancel()
        return await self._save_latest()

    async def flush(self) -> None:
        """Write a pending edit right away; no-op when nothing is pending."""
        await self._timer.fire_now()

    async def close(self) -> None:
        await self.flush()
        if self._status_reset is not None:
            self._status_reset.cancel()
            self._status_reset = None

    async def _save_latest(self) -> bool:
        async with self._lock:
            state = self._state
            if state is None or not state.widgets or not state.name.strip():
                return False

            is_new = self._dashboard_id is None
            dashboard_id = self._dashboard_id or str(uuid4())
            self._set_status("saving")
            try:
                await self._writer.save(dashboard_id, state.name, state.widgets, is_new=is_new)
            except Exception as exc:
                self.last_error = str(exc)
                logger.exception(
                    "firegrid.autosave.failed | %s",
                    {"dashboard_id": dashboard_id, "is_new": is_new, "widgets": len(state.widgets)},
                )
                self._set_status("error", reset_after=self._error_reset_seconds)
                return False

            if self._dashboard_id is None:
                self._dashboard_id = dashboard_id
            self.save_count += 1
            self.last_error = None
            logger.info(
                "firegrid.autosave.saved | %s",
                {"dashboard_id": dashboard_id, "is_new": is_new, "widgets": len(state.widgets)},
            )
            self._set_status("saved", reset_after=self._saved_reset_seconds)
            return True

    def _set_status(self, status: SaveStatus, reset_after: float | None = None) -> None:
        if self._status_reset is not None:
            self._status_reset.cancel()
            self._status_reset = None
        self._status = status
        if reset_after is not None:
            self._status_reset = asyncio.get_running_loop().call_later(reset_after, self._reset_status, status)

    def _reset_status(self, expected: SaveStatus) -> None:
        self._status_reset = None
        if self._status == expected:
            self._status = "idle"
