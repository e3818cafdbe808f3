"""
Logging setup and small numeric helpers shared by the chain model,
the ranking engine and the participant statistics.
"""
from __future__ import annotations

import logging
import math
import sys
from typing import Optional


LOG_FORMAT = "[%(asctime)s.%(msecs)03d] %(levelname)-5s | %(name)s | %(message)s"


def setup_logging(level: str = "INFO") -> logging.Logger:
    """Attach a stdout handler to the package logger (idempotent)."""
    logger = logging.getLogger("nse_chain")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    if logger.handlers:
        return logger
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%H:%M:%S"))
    logger.addHandler(handler)
    return logger


def round_half_away(value: float) -> int:
    """Round to the nearest integer, halves away from zero (2.5 -> 3, -2.5 -> -3)."""
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def round_to_step(value: float, step: int) -> int:
    """
    Round ``value`` to the nearest multiple of ``step``.

    The remainder is compared against ``step // 2`` so ties go down; for odd
    steps the midpoint itself also rounds down.

    Examples:
        >>> round_to_step(43582, 100)
        43600
        >>> round_to_step(43550, 100)
        43500
    """
    if step <= 0:
        raise ValueError(f"strike step must be positive, got {step}")
    rounded = round_half_away(value)
    remainder = rounded % step
    if remainder <= step // 2:
        return rounded - remainder
    return rounded + (step - remainder)


def compute_pcr(put_value: Optional[float], call_value: Optional[float]) -> float:
    """Put/call ratio, or 0.0 unless both sides are strictly positive."""
    if not put_value or not call_value or put_value <= 0 or call_value <= 0:
        return 0.0
    return float(put_value) / float(call_value)


def to_number(value: object) -> Optional[float]:
    """
    Coerce a JSON/CSV scalar to float.

    Accepts ints, floats and numeric strings (thousands separators allowed).
    Returns None for anything else, including bools and non-finite values.
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip().replace(",", "")
        if not text or text == "-":
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    else:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number
