from datetime import datetime
from decimal import Decimal
from typing import Any, Optional


def to_money(value: Any) -> Decimal:
    """Firestore keeps amounts as numbers; read them back through their decimal text."""
    return Decimal(str(value or 0))


def naive_datetime(value: Optional[datetime]) -> Optional[datetime]:
    """Firestore returns aware UTC timestamps; the domain works on naive wall-clock values."""
    if value is None:
        return None
    return value.replace(tzinfo=None)
