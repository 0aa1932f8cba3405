from __future__ import annotations

import math
from datetime import UTC, datetime
from typing import Any

MIN_QUALITY = 0
MAX_QUALITY = 5


def clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up (``round`` would go to even)."""

    return int(math.floor(value + 0.5))


def ensure_utc(value: datetime) -> datetime:
    """naive な datetime は UTC とみなし、aware な値は UTC に変換して返す。"""

    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def normalize_quality(value: Any) -> int:
    """quality を 0..5 の整数に正規化する。

    採点器や自己申告の値は小数や範囲外が混ざるため、四捨五入してから
    範囲内に丸める。数値として解釈できない値は 0（完全に想起できず）として扱う。
    """

    try:
        fvalue = float(value)
    except (TypeError, ValueError):
        return MIN_QUALITY
    if fvalue != fvalue:  # NaN
        return MIN_QUALITY
    # 2.5 counts as a pass
    return round_half_up(clamp(fvalue, MIN_QUALITY, MAX_QUALITY))


def normalize_non_negative_int(value: Any) -> int:
    """与えられた値を非負整数に正規化する。

    応答時間などの計測値は端末の時計ずれで負値になることがあるため、
    ゼロ以上に矯正しておく。"""

    try:
        ivalue = int(value)
    except (TypeError, ValueError, OverflowError):
        return 0
    return ivalue if ivalue >= 0 else 0


def normalize_unit_interval(value: Any) -> float:
    """Clamp a ratio-like value (e.g. confidence) into [0, 1]; garbage becomes 0."""

    try:
        fvalue = float(value)
    except (TypeError, ValueError):
        return 0.0
    if fvalue != fvalue:
        return 0.0
    return clamp(fvalue, 0.0, 1.0)
