import re
import secrets
import string
import time
from datetime import datetime, time as dt_time
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Tuple

from .exceptions import ValidationError

_HHMM_RE = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")
_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_CODE_ALPHABET = string.ascii_uppercase + string.digits
_CENT = Decimal("0.01")


# =========================
# Time and money parsing
# =========================
def parse_hhmm(value: str) -> dt_time:
    """Parse a strict 24h "HH:MM" wall-clock string."""
    match = _HHMM_RE.match(value or "")
    if not match:
        raise ValidationError([f"Invalid time '{value}'. Use HH:MM"])
    return dt_time(int(match.group(1)), int(match.group(2)))


def to_decimal(value: Any, field: str = "amount") -> Decimal:
    """Convert a plain numeric field to Decimal without going through binary float digits.

    Strings and booleans are rejected: amounts arrive as numbers, never as
    formatted currency text.
    """
    if isinstance(value, bool) or value is None:
        raise ValidationError([f"{field} must be a number"])
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        result = Decimal(repr(value))
    else:
        raise ValidationError([f"{field} must be a number"])
    if not result.is_finite():
        raise ValidationError([f"{field} must be a finite number"])
    return result


def format_currency(amount: Any, symbol: str = "R$") -> str:
    """Format an amount for display as Brazilian Real, e.g. ``R$ 1.234,56``."""
    value = to_decimal(amount).quantize(_CENT, rounding=ROUND_HALF_UP)
    sign = "-" if value < 0 else ""
    text = f"{abs(value):,.2f}".replace(",", "_").replace(".", ",").replace("_", ".")
    return f"{sign}{symbol} {text}"


# =========================
# Code generation
# =========================
def _millis() -> str:
    return str(int(time.time() * 1000))


def generate_booking_code() -> str:
    """Booking code ``ASS-<6 digits>-<6 uppercase alphanumerics>``."""
    suffix = "".join(secrets.choice(_CODE_ALPHABET) for _ in range(6))
    return f"ASS-{_millis()[-6:]}-{suffix}"


def generate_reference_number(prefix: str = "DEPT") -> str:
    """Reference for ledger records: ``PREFIX-<ms timestamp>-<3 digits>``."""
    return f"{prefix}-{_millis()}-{secrets.randbelow(1000):03d}"


# =========================
# Contact validation
# =========================
def is_valid_email(email: str) -> bool:
    return bool(_EMAIL_RE.match(email or ""))


def is_valid_phone(phone: str) -> bool:
    digits = re.sub(r"\D", "", phone or "")
    return 10 <= len(digits) <= 11


def month_bounds(year: int, month: int) -> Tuple[datetime, datetime]:
    """Return [first instant of month, first instant of next month)."""
    start = datetime(year, month, 1)
    if month == 12:
        return start, datetime(year + 1, 1, 1)
    return start, datetime(year, month + 1, 1)


# =========================
# Display labels
# =========================
TRANSACTION_TYPE_LABELS = {
    "deposit": "Depósito",
    "withdrawal": "Retirada",
    "transfer_in": "Transferência Recebida",
    "transfer_out": "Transferência Enviada",
}

TRANSACTION_STATUS_LABELS = {
    "pending": "Pendente",
    "approved": "Aprovada",
    "rejected": "Rejeitada",
}

APPOINTMENT_STATUS_LABELS = {
    "agendado": "Agendado",
    "confirmado": "Confirmado",
    "em_andamento": "Em Andamento",
    "concluido": "Concluído",
    "cancelado": "Cancelado",
    "remarcado": "Remarcado",
    "faltou": "Paciente Faltou",
}


def _label(labels: dict, value: Any) -> str:
    key = getattr(value, "value", value)
    return labels.get(key, str(key))


def transaction_type_label(value: Any) -> str:
    return _label(TRANSACTION_TYPE_LABELS, value)


def transaction_status_label(value: Any) -> str:
    return _label(TRANSACTION_STATUS_LABELS, value)


def appointment_status_label(value: Any) -> str:
    return _label(APPOINTMENT_STATUS_LABELS, value)
