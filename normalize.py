import math
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Optional

MONTH_LABELS = (
    "Jan",
    "Feb",
    "Mar",
    "Apr",
    "May",
    "Jun",
    "Jul",
    "Aug",
    "Sep",
    "Oct",
    "Nov",
    "Dec",
)


def coerce_amount(value: object) -> float:
    """
    Turn whatever the API sent as an amount into a finite float.

    Missing, non-numeric, NaN and infinite values all become 0.0.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, str):
        clean = value.strip().replace(" ", "").replace(",", "")
        if not clean:
            return 0.0
        try:
            value = Decimal(clean)
        except InvalidOperation:
            return 0.0
    if not isinstance(value, (int, float, Decimal)):
        return 0.0
    try:
        amount = float(value)
    except (OverflowError, ValueError):
        # Integers beyond float range and signalling NaN.
        return 0.0
    if math.isnan(amount) or math.isinf(amount):
        return 0.0
    return amount


def parse_date(value: object) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    value = value.strip()
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).date()
    except ValueError:
        pass
    try:
        return datetime.strptime(value, "%d.%m.%Y").date()
    except ValueError:
        return None


def month_key(day: date) -> str:
    return f"{day.year:04d}-{day.month:02d}"


def round_half_up(value: float) -> int:
    # Matches Math.round: halves go towards +inf.
    return int(math.floor(value + 0.5))


def format_fcfa(amount: float) -> str:
    return f"{round_half_up(abs(amount)):,} FCFA"
