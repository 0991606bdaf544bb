"""Progress Aggregator.

Overall progress is the average of three fractions, each against a fixed
denominator (22 skills, 24 documented experiences, 24 approvals by
default), expressed as an integer percentage.

Refreshes are single-flight: concurrent callers await the computation
already in progress instead of starting a second one. A realtime change
that arrives while a computation runs schedules one follow-up run.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import structlog

from accreda.config.app_config import ProgressConfig, load_app_config
from accreda.core.skills import SkillsService
from accreda.db import experiences_repository
from accreda.realtime.feed import Change, ChangeFeed, Subscription, get_change_feed

logger = structlog.get_logger(__name__)

WATCHED_TABLES = ("experiences", "eit_skills")


@dataclass
class ProgressSnapshot:
    """Derived progress of one EIT. Never persisted."""

    overall_progress: int = 0
    completed_skills: int = 0
    total_skills: int = 22
    documented_experiences: int = 0
    total_experiences: int = 24
    supervisor_approvals: int = 0
    total_approvals: int = 24
    last_updated: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "overall_progress": self.overall_progress,
            "completed_skills": self.completed_skills,
            "total_skills": self.total_skills,
            "documented_experiences": self.documented_experiences,
            "total_experiences": self.total_experiences,
            "supervisor_approvals": self.supervisor_approvals,
            "total_approvals": self.total_approvals,
            "last_updated": self.last_updated,
        }


def _fraction(count: int, total: int) -> float:
    if total <= 0:
        return 0.0
    return min(max(count / total, 0.0), 1.0)


def compute_overall_progress(
    completed_skills: int,
    documented_experiences: int,
    supervisor_approvals: int,
    totals: ProgressConfig | None = None,
) -> int:
    """Average the three fractions and round to an integer percentage.

    Each fraction is clamped to [0, 1], so the result is always in
    [0, 100].

    Example:
        >>> compute_overall_progress(11, 12, 6)
        42
    """
    totals = totals or ProgressConfig()
    average = (
        _fraction(completed_skills, totals.total_skills)
        + _fraction(documented_experiences, totals.total_experiences)
        + _fraction(supervisor_approvals, totals.total_approvals)
    ) / 3
    # Round half up; Python's round() is banker's rounding
    return int(average * 100 + 0.5)


class ProgressService:
    """Progress of one EIT, kept current by realtime changes."""

    def __init__(
        self,
        user_id: str,
        skills: SkillsService | None = None,
        feed: ChangeFeed | None = None,
        totals: ProgressConfig | None = None,
    ):
        self.user_id = user_id
        self.feed = feed or get_change_feed()
        self.skills = skills or SkillsService(user_id, self.feed)
        self.totals = totals or load_app_config().progress
        self.snapshot = ProgressSnapshot(
            total_skills=self.totals.total_skills,
            total_experiences=self.totals.total_experiences,
            total_approvals=self.totals.total_approvals,
        )
        self.initialized = False
        self.computations = 0
        self._inflight: asyncio.Task[ProgressSnapshot] | None = None
        self._rerun = False
        self._subscriptions: list[Subscription] = []

    @property
    def loading(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    async def initialize(self) -> ProgressSnapshot:
        """Compute progress once and start watching for changes.

        Calling again after a successful initialization returns the
        current snapshot without recomputing.
        """
        if self.initialized:
            return self.snapshot

        snapshot = await self.refresh()
        if not self._subscriptions:
            for table in WATCHED_TABLES:
                self._subscriptions.append(
                    self.feed.subscribe(table, self._on_change, user_id=self.user_id)
                )
        self.initialized = True
        return snapshot

    async def refresh(self) -> ProgressSnapshot:
        """Recompute progress, joining a computation already in flight."""
        if self._inflight is None or self._inflight.done():
            self._inflight = asyncio.create_task(self._run())
        return await asyncio.shield(self._inflight)

    async def update_progress(self) -> ProgressSnapshot:
        return await self.refresh()

    async def _on_change(self, change: Change) -> None:
        logger.debug(
            "progress.change_detected",
            user_id=self.user_id,
            table=change.table,
            change_event=change.event,
        )
        if self.loading:
            self._rerun = True
            return
        await self.refresh()

    async def _run(self) -> ProgressSnapshot:
        while True:
            self._rerun = False
            snapshot = await self._compute()
            if not self._rerun:
                return snapshot

    async def _compute(self) -> ProgressSnapshot:
        self.computations += 1
        if self.skills.loaded:
            await self.skills.refresh()
        else:
            await self.skills.load_user_skills()
        completed = self.skills.completed_count()

        documented, approvals = await asyncio.gather(
            asyncio.to_thread(experiences_repository.count_documented, self.user_id),
            asyncio.to_thread(experiences_repository.count_approved, self.user_id),
        )

        snapshot = ProgressSnapshot(
            overall_progress=compute_overall_progress(
                completed, documented, approvals, self.totals
            ),
            completed_skills=completed,
            total_skills=self.totals.total_skills,
            documented_experiences=documented,
            total_experiences=self.totals.total_experiences,
            supervisor_approvals=approvals,
            total_approvals=self.totals.total_approvals,
            last_updated=datetime.now(timezone.utc).isoformat(),
        )
        self.snapshot = snapshot

        logger.info(
            "progress.refreshed",
            user_id=self.user_id,
            overall=snapshot.overall_progress,
            skills=completed,
            experiences=documented,
            approvals=approvals,
        )
        return snapshot

    def dispose(self) -> None:
        """Stop watching for changes. Safe to call more than once."""
        for sub in self._subscriptions:
            sub.unsubscribe()
        self._subscriptions = []
        self.initialized = False
