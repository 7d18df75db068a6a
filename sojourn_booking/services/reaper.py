"""
Expiry reaper: deletes reservations nobody is going to pay for.

- DRAFT reservations older than DRAFT_RETENTION
- PENDING reservations older than PENDING_GRACE_PERIOD without a SUCCESS payment

Each is removed together with its guests, payment and order. The sweep is
idempotent and safe to run from several processes at once: candidate rows are
locked with SKIP LOCKED, and rows that vanished meanwhile count as zero.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import structlog
from sqlalchemy.engine import Engine

from sojourn_booking.config import DRAFT_RETENTION, PENDING_GRACE_PERIOD
from sojourn_booking.db.readers.reservations import find_abandoned_pending, find_expired_drafts
from sojourn_booking.db.transactions import booking_transaction
from sojourn_booking.db.writers.reservations import delete_reservation_aggregates
from sojourn_booking.metrics import sweep_duration, sweep_removed, sweep_runs
from sojourn_booking.utils.datetime import utc_now

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class SweepResult:
    draft_removed: int = 0
    pending_removed: int = 0

    @property
    def total_removed(self) -> int:
        return self.draft_removed + self.pending_removed


def sweep_abandoned(
    engine: Engine, now: Optional[datetime] = None, dry_run: bool = False
) -> SweepResult:
    """
    Delete abandoned DRAFT and PENDING reservations.

    Args:
        engine: SQLAlchemy engine
        now: Reference instant (default: current UTC time)
        dry_run: Count candidates without deleting anything

    Returns:
        SweepResult: Counts of removed drafts and pending reservations
    """
    now = now or utc_now()
    start_time = time.time()

    with booking_transaction(engine) as conn:
        draft_ids = find_expired_drafts(conn, now - DRAFT_RETENTION)
        pending_ids = find_abandoned_pending(conn, now - PENDING_GRACE_PERIOD)

        if dry_run:
            result = SweepResult(draft_removed=len(draft_ids), pending_removed=len(pending_ids))
        else:
            result = SweepResult(
                draft_removed=delete_reservation_aggregates(conn, draft_ids),
                pending_removed=delete_reservation_aggregates(conn, pending_ids),
            )

    sweep_duration.observe(time.time() - start_time)
    if dry_run:
        sweep_runs.labels(status="dry_run").inc()
        logger.info(
            "[DRY RUN] sweep_abandoned",
            draft_candidates=result.draft_removed,
            pending_candidates=result.pending_removed,
        )
        return result

    sweep_runs.labels(status="success").inc()
    sweep_removed.labels(kind="draft").inc(result.draft_removed)
    sweep_removed.labels(kind="pending").inc(result.pending_removed)
    if result.total_removed:
        logger.info(
            "abandoned_reservations_removed",
            draft_removed=result.draft_removed,
            pending_removed=result.pending_removed,
        )
    return result


def sweep_abandoned_quietly(engine: Engine, now: Optional[datetime] = None) -> SweepResult:
    """
    Best-effort sweep run before each new reservation. Never raises.
    """
    try:
        return sweep_abandoned(engine, now=now)
    except Exception as e:
        sweep_runs.labels(status="failure").inc()
        logger.warning("sweep_abandoned_failed", error=str(e))
        return SweepResult()
