"""
VA disability calculator route.
"""

from fastapi import APIRouter, HTTPException

from varating.api.models import CalculatorRequest
from varating.calculator import (
    RateTableUnavailable,
    calculate_combined_rating,
    calculate_compensation,
    load_rate_table,
)

router = APIRouter(tags=["calculator"])


@router.post("/calculator")
def calculator(data: CalculatorRequest):
    """
    Combined rating and monthly compensation.

    Response:
        200: {'combined_rating': int, 'total': float, 'breakdown': list[str]}
        503: no rate table configured
    """
    try:
        rates = load_rate_table()
    except RateTableUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))
    rating = calculate_combined_rating([d.model_dump() for d in data.disabilities])
    if rating == 0:
        return {"combined_rating": 0, "total": 0, "breakdown": []}
    compensation = calculate_compensation(
        rating,
        data.has_spouse,
        data.spouse_aa,
        data.child_u18,
        data.child_o18,
        data.parent_count,
        rates,
    )
    return {"combined_rating": rating, **compensation}
