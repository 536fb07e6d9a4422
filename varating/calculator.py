"""
VA combined rating and monthly compensation.

The rate table is a JSON document produced elsewhere::

    {
      "flatRates":    {"10": 171.23, "20": 338.49},
      "baseNoChild":  {"30": [524.31, 586.31, ...], ...},
      "baseOneChild": {"30": [565.31, 632.31, ...], ...},
      "addAmounts":   {"30": {"u18": 31.0, "o18": 102.0, "spouseAA": 57.0}, ...}
    }

Base rows are indexed by scenario: 0 = veteran alone, ``1 + parents`` with a
spouse.
"""

import json
import logging
import math
from typing import Optional

from varating.database.config.config import settings

logger = logging.getLogger("uvicorn")

ARM_EXTREMITIES = ("leftArm", "rightArm")
LEG_EXTREMITIES = ("leftLeg", "rightLeg")
BILATERAL_FACTOR = 1.1


class RateTableUnavailable(Exception):
    """Raised when no rate table is configured."""


def _combine(ratings: list) -> float:
    healthy = 1.0
    for rating in sorted(ratings, reverse=True):
        healthy *= 1 - rating / 100
    return 100 * (1 - healthy)


def _paired(ratings: list) -> list:
    if len(ratings) >= 2:
        return [_combine(ratings) * BILATERAL_FACTOR]
    return list(ratings)


def calculate_combined_rating(disabilities: list) -> int:
    """
    Combined rating of several disabilities.

    Parameters
    ----------
    disabilities : list[dict]
        ``[{'percent': int, 'extremity': str | None}]``; extremity is one of
        ``leftArm``, ``rightArm``, ``leftLeg``, ``rightLeg`` or anything else.

    Returns
    -------
    int
        Rounded half-up to the nearest 10 and capped at 100.

    Notes
    -----
    Two or more arm (or leg) ratings are combined first and raised by the
    bilateral factor, then everything is combined highest first.
    """
    arms = [d["percent"] for d in disabilities if d.get("extremity") in ARM_EXTREMITIES]
    legs = [d["percent"] for d in disabilities if d.get("extremity") in LEG_EXTREMITIES]
    others = [
        d["percent"] for d in disabilities if d.get("extremity") not in ARM_EXTREMITIES + LEG_EXTREMITIES
    ]
    ratings = [r for r in _paired(arms) + _paired(legs) + others if r > 0]
    if not ratings:
        return 0
    raw = round(_combine(ratings), 6)
    return min(100, int(math.floor(raw / 10 + 0.5)) * 10)


def calculate_compensation(
    rating: int,
    has_spouse: bool,
    spouse_aa: bool,
    child_u18: int,
    child_o18: int,
    parent_count: int,
    rates: dict,
) -> dict:
    """
    Monthly compensation for a combined rating and family situation.

    Returns
    -------
    dict
        ``{'total': float, 'breakdown': list[str]}`` with the total rounded to
        cents.
    """
    key = str(rating)
    if rating in (10, 20):
        return {"total": rates["flatRates"][key], "breakdown": [f"Flat rate for {rating}%"]}

    has_kids = child_u18 + child_o18 > 0
    table = rates["baseOneChild"] if has_kids else rates["baseNoChild"]
    scenario = 1 + parent_count if has_spouse else 0
    row = table.get(key) or []
    base = row[scenario] if scenario < len(row) else 0

    adds = (rates.get("addAmounts") or {}).get(key)
    if not adds:
        return {"total": base, "breakdown": [f"Base rate for {rating}%"]}

    paid_kids = 1 if has_kids else 0
    extra_u18 = max(0, child_u18 - paid_kids) * adds["u18"]
    extra_o18 = child_o18 * adds["o18"]
    spouse_extra = adds["spouseAA"] if has_spouse and spouse_aa else 0

    breakdown = [f"Base: ${base:.2f}"]
    if extra_u18:
        breakdown.append(f"+ ${extra_u18:.2f} for {child_u18 - paid_kids} additional child(ren) under 18")
    if extra_o18:
        breakdown.append(f"+ ${extra_o18:.2f} for {child_o18} child(ren) 18-24")
    if spouse_extra:
        breakdown.append(f"+ ${spouse_extra:.2f} for spouse Aid & Attendance")
    return {"total": round(base + extra_u18 + extra_o18 + spouse_extra, 2), "breakdown": breakdown}


def load_rate_table(path: Optional[str] = None) -> dict:
    """
    Read the rate table.

    Raises
    ------
    RateTableUnavailable
        When no path is configured.
    OSError, json.JSONDecodeError
        When the file cannot be read.
    """
    path = path or settings.VA_RATES_FILE
    if not path:
        raise RateTableUnavailable("VA rate table is not configured")
    with open(path, encoding="utf-8") as f:
        return json.load(f)
