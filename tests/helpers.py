"""Reference instants, stay dates and ids shared across the test-suite."""

from datetime import date, datetime, timezone

NOW = datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)
STAY_IN = date(2026, 7, 10)
STAY_OUT = date(2026, 7, 12)

VENDOR_ID = "vendor-0001"
CUSTOMER_ID = "customer-0001"
OTHER_CUSTOMER_ID = "customer-0002"
