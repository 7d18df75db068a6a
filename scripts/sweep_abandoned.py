import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import argparse

import structlog

from sojourn_booking.db.engine import engine
from sojourn_booking.logging_config import setup_logging
from sojourn_booking.services.reaper import sweep_abandoned

setup_logging()
logger = structlog.get_logger(__name__)


def main() -> None:
    """
    Remove abandoned reservations. Meant to run from cron every few minutes.
    """
    parser = argparse.ArgumentParser(description="Delete abandoned DRAFT and unpaid PENDING reservations")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Only report how many reservations would be removed",
    )
    args = parser.parse_args()

    try:
        result = sweep_abandoned(engine, dry_run=args.dry_run)
        logger.info(
            "sweep_completed",
            draft_removed=result.draft_removed,
            pending_removed=result.pending_removed,
            dry_run=args.dry_run,
        )
    except Exception:
        logger.exception("sweep_failed")
        raise


if __name__ == "__main__":
    main()
