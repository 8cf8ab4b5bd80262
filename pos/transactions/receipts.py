"""Receipt numbering: {store_id}-{YYYYMMDD}-{sequence:04d}."""
from datetime import date, datetime, timezone
from typing import Optional


def business_date(now: Optional[datetime] = None) -> date:
    """Calendar day (UTC) a receipt sequence belongs to."""
    return (now or datetime.now(timezone.utc)).astimezone(timezone.utc).date()


def format_receipt_number(store_id: str, day: date, sequence: int) -> str:
    return f"{store_id}-{day.strftime('%Y%m%d')}-{sequence:04d}"
