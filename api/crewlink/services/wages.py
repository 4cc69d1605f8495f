from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from crewlink.services.errors import ValidationError

HOURS_PER_WORKDAY = 8

PAYMENT_TYPES: tuple[str, ...] = ("hourly", "daily", "fixed")
WAGE_UNIT_BY_PAYMENT_TYPE: dict[str, str] = {
    "hourly": "hour",
    "daily": "day",
    "fixed": "total",
}
_CENTS = Decimal("0.01")


@dataclass(slots=True, frozen=True)
class WageTerms:
    daily_wage: Decimal
    original_wage: Decimal
    wage_unit: str


def normalize_wage(
    payment_type: str,
    amount: Any,
    duration_days: Any = None,
    *,
    hours_per_workday: int = HOURS_PER_WORKDAY,
) -> WageTerms:
    """Convert an entered wage into the canonical daily figure.

    ``hourly`` assumes a workday of ``hours_per_workday`` hours, ``daily`` is
    taken as-is, and ``fixed`` spreads the total over ``duration_days``
    (one day when absent).
    """
    if payment_type not in WAGE_UNIT_BY_PAYMENT_TYPE:
        raise ValidationError(
            f"payment_type must be one of: {', '.join(PAYMENT_TYPES)}",
            field="payment_type",
        )

    original_wage = coerce_amount(amount, field="amount")

    if payment_type == "hourly":
        hours = _coerce_positive_int(hours_per_workday, field="hours_per_workday")
        daily_wage = original_wage * hours
    elif payment_type == "daily":
        daily_wage = original_wage
    else:
        days = Decimal(1) if duration_days is None else _coerce_duration(duration_days)
        daily_wage = original_wage / days

    return WageTerms(
        daily_wage=daily_wage.quantize(_CENTS, rounding=ROUND_HALF_UP),
        original_wage=original_wage,
        wage_unit=WAGE_UNIT_BY_PAYMENT_TYPE[payment_type],
    )


def window_days(start_date: date, end_date: date) -> int:
    """Inclusive number of calendar days between two dates."""
    return (end_date - start_date).days + 1


def coerce_amount(value: Any, *, field: str) -> Decimal:
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be a positive number", field=field)
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError(f"{field} must be a positive number", field=field) from exc
    if not amount.is_finite() or amount <= 0:
        raise ValidationError(f"{field} must be a positive number", field=field)
    if amount.normalize().as_tuple().exponent < -2:
        raise ValidationError(f"{field} must not have more than two decimal places", field=field)
    return amount


def _coerce_duration(value: Any) -> Decimal:
    if isinstance(value, bool):
        raise ValidationError("duration_days must be a positive number", field="duration_days")
    try:
        days = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError("duration_days must be a positive number", field="duration_days") from exc
    if not days.is_finite() or days <= 0:
        raise ValidationError("duration_days must be a positive number", field="duration_days")
    return days


def _coerce_positive_int(value: Any, *, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(f"{field} must be a positive integer", field=field)
    return value
