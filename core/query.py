"""
ResusCert Filter/Query Engine

Side-effect-free filtering of comprehensive results and certificates.
Predicates compose with AND and the output keeps input order; the input
list is never modified.

Date ranges:
- 'today'   midnight (UTC) of the current day through now
- '7days'   midnight 7 days ago through now
- '30days'  midnight 30 days ago through now
- custom    inclusive [start, end]; an end at exactly midnight (a plain
            date) covers that whole day. When either bound is missing the
            date predicate is skipped, so the filter deliberately fails open

Example usage:
    from core.query import filter_results
    from core.models import FilterConfig

    config = FilterConfig(search_text="amanda", certified="NOT_CERTIFIED")
    shown = filter_results(results, config)
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Sequence, Tuple, Union

from core.errors import InvalidInputError
from core.models import (
    AssessmentStatus,
    Certificate,
    CertificateStatus,
    ComprehensiveResult,
    CustomDateRange,
    DateRangeOption,
    FilterConfig,
    TestType,
    as_utc,
)

Predicate = Callable[[ComprehensiveResult], bool]

ALL = "all"

RELATIVE_DAYS = {"7days": 7, "30days": 30}


def _start_of_day(value: datetime) -> datetime:
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def _end_of_day(value: datetime) -> datetime:
    return value.replace(hour=23, minute=59, second=59, microsecond=999999)


def resolve_date_range(
    date_range: DateRangeOption, now: Optional[datetime] = None
) -> Optional[Tuple[datetime, datetime]]:
    """
    Turn a date-range option into an inclusive (start, end) window.

    Args:
        date_range: 'all', 'today', '7days', '30days' or a CustomDateRange
        now: Reference time (defaults to current UTC time)

    Returns:
        (start, end) window, or None when no date filtering applies

    Raises:
        InvalidInputError: If a custom range ends before it starts, or the
            option is not recognized
    """
    now = as_utc(now) if now is not None else datetime.now(timezone.utc)

    if isinstance(date_range, CustomDateRange):
        if date_range.start is None or date_range.end is None:
            return None
        start, end = date_range.start, date_range.end
        if end == _start_of_day(end):
            end = _end_of_day(end)
        if start > end:
            raise InvalidInputError(
                "Custom date range starts after it ends",
                details={"start": start.isoformat(), "end": end.isoformat()},
            )
        return start, end

    if date_range == ALL:
        return None
    if date_range == "today":
        return _start_of_day(now), now
    if date_range in RELATIVE_DAYS:
        return _start_of_day(now) - timedelta(days=RELATIVE_DAYS[date_range]), now

    raise InvalidInputError(f"Unknown date range: {date_range!r}", details={"date_range": str(date_range)})


def _matches_search(result: ComprehensiveResult, text: str) -> bool:
    participant = result.participant
    haystacks = (participant.name, participant.ic_number or "", participant.job_position or "")
    return any(text in value.casefold() for value in haystacks)


def _build_predicates(config: FilterConfig, now: Optional[datetime]) -> List[Predicate]:
    predicates: List[Predicate] = []

    search = config.search_text.strip().casefold()
    if search:
        predicates.append(lambda r: _matches_search(r, search))

    if config.category != ALL:
        predicates.append(lambda r: r.category == config.category)

    if config.status != ALL:
        wanted = AssessmentStatus(config.status)
        predicates.append(lambda r: any(slot.status == wanted for slot in r.slots.values()))

    if config.remedial != ALL:
        predicates.append(lambda r: r.remedial.status == config.remedial)

    if config.certified != ALL:
        predicates.append(lambda r: r.certified.status == config.certified)

    window = resolve_date_range(config.date_range, now)
    if window is not None:
        start, end = window
        predicates.append(lambda r: any(start <= ts <= end for ts in r.submission_times()))

    return predicates


def filter_results(
    results: Sequence[ComprehensiveResult],
    config: Optional[FilterConfig] = None,
    now: Optional[datetime] = None,
) -> List[ComprehensiveResult]:
    """
    Filter comprehensive results.

    Args:
        results: Full collection, left untouched
        config: Filter options (defaults to showing everything)
        now: Reference time for relative date ranges

    Returns:
        Order-preserving subsequence of ``results``

    Raises:
        InvalidInputError: If the date range is malformed
    """
    config = config or FilterConfig()
    predicates = _build_predicates(config, now)
    return [r for r in results if all(p(r) for p in predicates)]


def filter_certificates(
    certificates: Sequence[Certificate],
    search_text: str = "",
    status: Union[str, CertificateStatus] = ALL,
    test_type: Union[str, TestType, None] = None,
) -> List[Certificate]:
    """
    Filter certificates the way the management screen does.

    Search matches participant name, email or grade (case-insensitive);
    ``status`` and ``test_type`` narrow further when given.
    """
    search = search_text.strip().casefold()
    wanted_status = None if status == ALL else CertificateStatus(status)
    wanted_type = None if test_type in (None, ALL) else TestType(test_type)

    shown = []
    for cert in certificates:
        if search and not any(
            search in value.casefold()
            for value in (cert.participant_name, cert.participant_email or "", cert.grade.value)
        ):
            continue
        if wanted_status is not None and cert.status != wanted_status:
            continue
        if wanted_type is not None and cert.test_type != wanted_type:
            continue
        shown.append(cert)
    return shown
