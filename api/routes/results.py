"""
Results API routes

Comprehensive seven-assessment results, statistics and the grade lookup.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import ValidationError

from core.aggregate import AggregationEngine
from core.errors import InvalidInputError
from core.grade import calculate_percentage, grade_for_percentage
from core.models import CustomDateRange, FilterConfig
from core.query import filter_results
from core.stats import compute_statistics, theory_progress

router = APIRouter(prefix="/api", tags=["results"])


def get_engine(request: Request) -> AggregationEngine:
    return request.app.state.engine


def build_filter_config(
    search: str = "",
    category: str = "all",
    status: str = "all",
    remedial: str = "all",
    certified: str = "all",
    date_range: str = "all",
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> FilterConfig:
    """
    Build a FilterConfig from query parameters.

    ``date_range=custom`` takes its bounds from ``start`` and ``end``.

    Raises:
        InvalidInputError: If any option is not recognized
    """
    try:
        window = CustomDateRange(start=start, end=end) if date_range == "custom" else date_range
        return FilterConfig(
            search_text=search,
            category=category,
            status=status,
            remedial=remedial,
            certified=certified,
            date_range=window,
        )
    except ValidationError as e:
        raise InvalidInputError(
            "Unrecognized filter option",
            details={"errors": [err["msg"] for err in e.errors()]},
        ) from e


@router.get("/results")
async def list_results(
    config: FilterConfig = Depends(build_filter_config),
    engine: AggregationEngine = Depends(get_engine),
):
    """
    Comprehensive results of every participant, filtered.

    Example:
        GET /api/results?certified=NOT_CERTIFIED&date_range=7days
    """
    results = await engine.aggregate_all()
    shown = filter_results(results, config)
    return {
        "results": [r.model_dump(mode="json") for r in shown],
        "total": len(shown),
        "unfiltered_total": len(results),
    }


@router.get("/results/stats")
async def results_stats(engine: AggregationEngine = Depends(get_engine)):
    results = await engine.aggregate_all()
    return compute_statistics(results).model_dump(mode="json")


@router.get("/results/{participant_id}")
async def get_result(participant_id: str, engine: AggregationEngine = Depends(get_engine)):
    """Composite result of one participant with pre/post theory progress."""
    result = await engine.aggregate(participant_id)
    body = result.model_dump(mode="json")
    body["theory_progress"] = theory_progress(result).model_dump(mode="json")
    return body


@router.get("/grade")
async def grade(score: int = Query(...), total: int = Query(...)):
    """
    Letter grade for a score.

    Example:
        GET /api/grade?score=27&total=30  ->  {"grade": "A", "percentage": 90, ...}
    """
    percentage = calculate_percentage(score, total)
    return {
        "score": score,
        "total": total,
        "percentage": percentage,
        "grade": grade_for_percentage(percentage).value,
    }
