"""Headless countdown timer driven by the store and the corrected clock.

The front-ends render a :class:`TimerSession`: a countdown that is either
paused with some time remaining or running until a given instant. Starting
records a timesheet interval ending when the countdown would expire; pausing
stops that interval early.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta

from lockinspiel.db.pool import Database
from lockinspiel.repositories.timesheet_repo import TimesheetRow
from lockinspiel.services.clock import LockinspielClient

logger = logging.getLogger(__name__)

DEFAULT_TIMERS = (timedelta(minutes=90), timedelta(minutes=10))


@dataclass(frozen=True)
class Paused:
    remaining: timedelta


@dataclass(frozen=True)
class Going:
    until: datetime


TimerState = Paused | Going


class TimerSession:
    """Cycles through a list of timer lengths, recording each run.

    Runs started in the same session share one timesheet group. Activities are
    numbered from 1 by their position in ``timers``.
    """

    def __init__(
        self,
        database: Database,
        client: LockinspielClient,
        timers: Sequence[timedelta] = DEFAULT_TIMERS,
    ) -> None:
        if not timers:
            raise ValueError("At least one timer length is required")
        self.database = database
        self.client = client
        self.timers = list(timers)
        self.timer_on = 0
        self.group: int | None = None
        self.state: TimerState = Paused(self.timers[0])

    async def restore(self) -> TimerState:
        """Resume a timer still running in the store, if there is one."""
        now = await self.client.now()
        with self.database.get() as db:
            active = db.get_active_timer(now)
        if active is not None:
            self.group = active.group
            self.timer_on = (active.activity - 1) % len(self.timers)
            self.state = Going(active.end_time)
        return self.state

    async def remaining(self) -> timedelta:
        """Time left on the countdown; negative once a running timer overruns."""
        if isinstance(self.state, Paused):
            return self.state.remaining
        return self.state.until - await self.client.now()

    async def start(self) -> Going:
        if not isinstance(self.state, Paused):
            raise RuntimeError("Timer is already running")
        now = await self.client.now()
        end_time = now + self.state.remaining
        with self.database.get() as db:
            if self.group is None:
                self.group = db.next_timesheet_group()
            db.add_to_timesheet(
                TimesheetRow(
                    group=self.group,
                    start_time=now,
                    end_time=end_time,
                    activity=self.timer_on + 1,
                )
            )
        logger.info("Started timer %d in group %d until %s", self.timer_on, self.group, end_time)
        self.state = Going(end_time)
        return self.state

    async def pause(self) -> Paused:
        if not isinstance(self.state, Going):
            raise RuntimeError("Timer is not running")
        now = await self.client.now()
        with self.database.get() as db:
            db.stop_timer(now)
        self.state = Paused(self.state.until - now)
        return self.state

    def skip(self) -> Paused:
        """Move on to the next timer length. Only allowed while paused."""
        if not isinstance(self.state, Paused):
            raise RuntimeError("Cannot skip a running timer")
        self.timer_on = (self.timer_on + 1) % len(self.timers)
        self.state = Paused(self.timers[self.timer_on])
        return self.state
