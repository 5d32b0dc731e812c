"""Outcome tracking: what users did with the recommendations they were shown.

An outcome is read from the log row plus the user's list entry for the same
title:

- ``rated``: the title is in the list as watched/rewatched, touched at or
  after the recommendation was shown;
- ``added``: the title is in the want list, added at or after it was shown,
  or the user answered the recommendation with ``accepted_yes``.

Acceptance rate is ``(added + rated) / total`` and is 0 for an empty bucket.
"""

import logging
from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Literal

from sqlalchemy.ext.asyncio import AsyncSession

from src.config import Settings, get_settings
from src.constants import STATS_WINDOWS
from src.db.crud import (
    count_watched_by_user,
    get_entries_for_titles,
    get_log,
    get_logs,
    set_log_action,
)
from src.models.base import utcnow
from src.models.recommendation import RecommendationAction, RecommendationLog
from src.models.watchlist import WATCHED_STATUSES, WatchListEntry, WatchStatus
from src.utils.metrics import metrics

logger = logging.getLogger(__name__)

Outcome = Literal["rated", "added"]


class OutcomeError(Exception):
    """Base exception for outcome tracking errors."""

    pass


class LogNotFoundError(OutcomeError):
    """No such log row for this user."""

    pass


class ActionConflictError(OutcomeError):
    """A different action was already recorded."""

    pass


@dataclass
class DayStats:
    date: str  # ISO date
    total: int
    added: int
    rated: int
    acceptance_rate: float


@dataclass
class AlgorithmPerformance:
    algorithm: str
    shown: int
    accepted: int

    @property
    def success_rate(self) -> float:
        return rate(self.accepted, self.shown)


@dataclass
class UserSegments:
    total_users: int
    cold_start: int
    active_users: int
    heavy_users: int
    cold_start_threshold: int
    heavy_user_threshold: int


def rate(part: int, total: int) -> float:
    """``part / total`` rounded to 4 places, 0 when total is 0."""
    if total <= 0:
        return 0.0
    return round(part / total, 4)


def acceptance_rate(added: int, rated: int, total: int) -> float:
    return rate(added + rated, total)


def classify_outcome(log: RecommendationLog, entry: WatchListEntry | None) -> Outcome | None:
    if entry is not None:
        if entry.status in WATCHED_STATUSES and entry.updated_at >= log.shown_at:
            return "rated"
        if entry.status == WatchStatus.WANT and entry.created_at >= log.shown_at:
            return "added"
    if log.action == RecommendationAction.ACCEPTED_YES:
        return "added"
    return None


def bucket_outcomes(rows: Iterable[tuple[RecommendationLog, Outcome | None]]) -> list[DayStats]:
    """Per-day totals (by ``shown_at`` date), oldest day first."""
    buckets: dict[str, dict[str, int]] = defaultdict(lambda: {"total": 0, "added": 0, "rated": 0})
    for log, outcome in rows:
        bucket = buckets[log.shown_at.date().isoformat()]
        bucket["total"] += 1
        if outcome is not None:
            bucket[outcome] += 1

    return [
        DayStats(
            date=day,
            total=b["total"],
            added=b["added"],
            rated=b["rated"],
            acceptance_rate=acceptance_rate(b["added"], b["rated"], b["total"]),
        )
        for day, b in sorted(buckets.items())
    ]


def segment_users(
    watched_counts: Iterable[int],
    cold_start_threshold: int,
    heavy_user_threshold: int,
) -> UserSegments:
    """Cold start below the first threshold, heavy at or above the second, active between."""
    cold = active = heavy = 0
    for count in watched_counts:
        if count < cold_start_threshold:
            cold += 1
        elif count >= heavy_user_threshold:
            heavy += 1
        else:
            active += 1
    return UserSegments(
        total_users=cold + active + heavy,
        cold_start=cold,
        active_users=active,
        heavy_users=heavy,
        cold_start_threshold=cold_start_threshold,
        heavy_user_threshold=heavy_user_threshold,
    )


def window_start(window: str, now: datetime | None = None) -> datetime | None:
    """Start of a stats window ("7", "30" or "all")."""
    if window not in STATS_WINDOWS:
        raise ValueError(f"Unknown stats window: {window}")
    days = STATS_WINDOWS[window]
    if days is None:
        return None
    return (now or utcnow()) - timedelta(days=days)


class OutcomeTracker:
    """Aggregates recommendation logs and list changes into dashboard stats."""

    def __init__(self, db: AsyncSession, settings: Settings | None = None) -> None:
        self.db = db
        self.settings = settings or get_settings()

    async def _outcomes(
        self,
        user_id: int,
        since: datetime | None = None,
        until: datetime | None = None,
        algorithm: str | None = None,
    ) -> list[tuple[RecommendationLog, Outcome | None]]:
        logs = await get_logs(self.db, user_id, since=since, until=until, algorithm=algorithm)
        entries = await get_entries_for_titles(self.db, user_id, {log.key for log in logs})
        return [(log, classify_outcome(log, entries.get(log.key))) for log in logs]

    async def get_outcome_stats(
        self,
        user_id: int,
        algorithm: str | None = None,
        day_window: int | None = None,
    ) -> list[DayStats]:
        """Per-day shown/added/rated counts, optionally for one algorithm and the last N days."""
        since = utcnow() - timedelta(days=day_window) if day_window else None
        return bucket_outcomes(await self._outcomes(user_id, since=since, algorithm=algorithm))

    async def get_algorithm_performance(
        self,
        user_id: int,
        date_range: tuple[datetime | None, datetime | None] | None = None,
    ) -> dict[str, list[AlgorithmPerformance]]:
        """Shown and accepted counts per algorithm, sorted by algorithm name."""
        since, until = date_range or (None, None)
        if since is not None and until is not None and since > until:
            raise ValueError("date_range start must not be after its end")

        shown: dict[str, int] = defaultdict(int)
        accepted: dict[str, int] = defaultdict(int)
        for log, outcome in await self._outcomes(user_id, since=since, until=until):
            shown[log.algorithm] += 1
            if outcome is not None:
                accepted[log.algorithm] += 1

        return {
            "by_algorithm": [
                AlgorithmPerformance(algorithm=name, shown=shown[name], accepted=accepted[name])
                for name in sorted(shown)
            ]
        }

    async def get_user_segments(self) -> UserSegments:
        counts = await count_watched_by_user(self.db)
        return segment_users(
            counts.values(),
            self.settings.cold_start_threshold,
            self.settings.heavy_user_threshold,
        )

    async def build_dashboard(self, user_id: int, window: str) -> dict[str, Any]:
        """Overview, per-algorithm performance, user segments and daily buckets."""
        since = window_start(window)
        rows = await self._outcomes(user_id, since=since)

        total = len(rows)
        added = sum(1 for _, outcome in rows if outcome == "added")
        rated = sum(1 for _, outcome in rows if outcome == "rated")

        performance = await self.get_algorithm_performance(user_id, (since, None))
        segments = await self.get_user_segments()

        return {
            "window": window,
            "overview": {
                "total_shown": total,
                "total_added_to_want": added,
                "total_watched": rated,
                "acceptance_rate": acceptance_rate(added, rated, total),
                "want_rate": rate(added, total),
                "watch_rate": rate(rated, total),
            },
            "algorithm_performance": {
                perf.algorithm: {
                    "total": perf.shown,
                    "success": perf.accepted,
                    "failure": perf.shown - perf.accepted,
                    "success_rate": perf.success_rate,
                }
                for perf in performance["by_algorithm"]
            },
            "user_segments": {
                "total_users": segments.total_users,
                "cold_start": segments.cold_start,
                "active_users": segments.active_users,
                "heavy_users": segments.heavy_users,
                "cold_start_threshold": segments.cold_start_threshold,
                "heavy_user_threshold": segments.heavy_user_threshold,
            },
            "daily": [
                {
                    "date": day.date,
                    "total": day.total,
                    "added": day.added,
                    "rated": day.rated,
                    "acceptance_rate": day.acceptance_rate,
                }
                for day in bucket_outcomes(rows)
            ],
        }

    async def record_action(
        self,
        user_id: int,
        log_id: int,
        action: RecommendationAction,
    ) -> tuple[RecommendationLog, bool]:
        """Set a log row's action once.

        Returns:
            The log row and whether it changed (False when the same action was already set)

        Raises:
            LogNotFoundError: unknown log or owned by someone else
            ActionConflictError: a different action was already recorded
        """
        log = await get_log(self.db, log_id, user_id)
        if log is None:
            raise LogNotFoundError(f"Recommendation log {log_id} not found")

        if log.action is not None:
            if RecommendationAction(log.action) == action:
                return log, False
            raise ActionConflictError(f"Recommendation log {log_id} already has action {log.action.value}")

        await set_log_action(self.db, log, action)
        metrics.recommendation_actions_total.inc(action=action.value)
        logger.info(f"User {user_id} answered recommendation {log_id} with {action.value}")
        return log, True
