import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import update
from sqlalchemy.engine import Connection

from sojourn_booking.db.writers._upsert import upsert_with_distinct_check
from sojourn_booking.models.enums import PaymentStatus
from sojourn_booking.models.payments import Payment

logger = logging.getLogger(__name__)


def upsert_pending_payment(conn: Connection, row: dict[str, Any]) -> None:
    """
    Create the order's payment, or point the existing one at a fresh gateway order.

    Re-initiating payment keeps the same row (keyed by order_id) and only swaps the
    gateway order reference and resets the status to PENDING; amounts and vendor
    are fixed at first creation.

    Args:
        conn (Connection): Connection inside an open transaction.
        row (dict[str, Any]): Full payment row.
    """
    upsert_with_distinct_check(
        conn=conn,
        table=Payment,
        rows=[{**row, "status": PaymentStatus.PENDING.value}],
        conflict_column="order_id",
        update_columns=["gateway_order_id", "status", "updated_at"],
        distinct_columns=["gateway_order_id", "status"],
    )
    logger.info(f"Upserted pending payment for order {row['order_id']}")


def mark_payment_succeeded(
    conn: Connection,
    payment_id: str,
    gateway_payment_id: str,
    signature: Optional[str],
    now: datetime,
) -> None:
    values: dict[str, Any] = {
        "status": PaymentStatus.SUCCESS.value,
        "gateway_payment_id": gateway_payment_id,
        "processed_at": now,
        "updated_at": now,
    }
    # Webhook captures carry no checkout signature; keep whatever the callback stored
    if signature is not None:
        values["gateway_signature"] = signature

    conn.execute(update(Payment).where(Payment.id == payment_id).values(**values))


def mark_payment_failed(conn: Connection, payment_id: str, now: datetime) -> bool:
    """
    Mark a payment FAILED unless it already settled.

    Returns:
        bool: True if the row changed; SUCCESS and REFUNDED payments are never downgraded.
    """
    result = conn.execute(
        update(Payment)
        .where(
            Payment.id == payment_id,
            Payment.status.notin_([PaymentStatus.SUCCESS.value, PaymentStatus.REFUNDED.value]),
        )
        .values(status=PaymentStatus.FAILED.value, updated_at=now)
    )
    return result.rowcount > 0


def mark_payment_refunded(
    conn: Connection,
    payment_id: str,
    refund_id: str,
    refund_amount: Decimal,
    now: datetime,
) -> None:
    conn.execute(
        update(Payment)
        .where(Payment.id == payment_id)
        .values(
            status=PaymentStatus.REFUNDED.value,
            refund_id=refund_id,
            refund_amount=refund_amount,
            updated_at=now,
        )
    )
