"""
Numeric coercion for values arriving from outside the engine
(stored records with nullable columns, API payloads).

Calculators inside the engine work on typed values only; this module is
the single place where a missing or non-finite number is replaced by a
default, and every replacement is logged with the field it came from.
"""
import logging
import math
from typing import Any, Optional

logger = logging.getLogger(__name__)


def coerce_number(value: Any, default: float = 0.0, field: str = "value", context: Optional[str] = None) -> float:
    """Return ``value`` as a finite float, or ``default`` (logged) when it is not one."""
    if isinstance(value, bool):
        number = None
    elif isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            number = None
    else:
        number = None

    if number is None or math.isnan(number) or math.isinf(number):
        logger.warning(
            f"Coerced non-numeric {field} to {default}",
            extra={"field": field, "raw_value": repr(value), "context": context},
        )
        return default
    return number


def coerce_optional_number(value: Any, field: str = "value", context: Optional[str] = None) -> Optional[float]:
    """Like coerce_number but keeps None for genuinely unset optional fields."""
    if value is None:
        return None
    coerced = coerce_number(value, default=math.nan, field=field, context=context)
    return None if math.isnan(coerced) else coerced
