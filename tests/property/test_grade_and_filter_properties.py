"""
Property-based tests for grading and filtering.

Checks that grades are monotonic in the score and that filtering is an
order-preserving, idempotent subsequence of its input.
"""

from datetime import datetime, timedelta, timezone

from hypothesis import given, settings, strategies as st

from core.aggregate import build_result
from core.grade import GRADE_ORDER, calculate_percentage, compute_grade
from core.models import (
    AssessmentRecord,
    AssessmentStatus,
    AssessmentType,
    Category,
    CertifiedStatus,
    FilterConfig,
    Participant,
    RemedialStatus,
)
from core.query import filter_results

NOW = datetime(2024, 3, 10, 12, 0, tzinfo=timezone.utc)


@st.composite
def score_and_total(draw):
    total = draw(st.integers(min_value=1, max_value=200))
    return draw(st.integers(min_value=0, max_value=total)), total


@st.composite
def results(draw):
    """A small population of participants with theory submissions only."""
    count = draw(st.integers(min_value=0, max_value=6))
    built = []
    for i in range(count):
        pid = f"p_{i:03d}"
        latest = {}
        for assessment_type in (AssessmentType.PRE_TEST, AssessmentType.POST_TEST):
            if draw(st.booleans()):
                latest[assessment_type] = AssessmentRecord(
                    id=f"{pid}_{assessment_type.value}",
                    participant_id=pid,
                    assessment_type=assessment_type,
                    score=draw(st.integers(min_value=0, max_value=30)),
                    total=30,
                    submitted_at=NOW - timedelta(days=draw(st.integers(min_value=0, max_value=60))),
                )
        name = draw(st.sampled_from(["Amanda Lee", "Ben Tan", "Chen Wei", "Dina Rahman"]))
        category = draw(st.sampled_from(list(Category)))
        built.append(build_result(Participant(id=pid, name=name, category=category), latest))
    return built


filter_configs = st.builds(
    FilterConfig,
    search_text=st.sampled_from(["", "an", "WEI", "zzz"]),
    category=st.sampled_from(["all"] + list(Category)),
    status=st.sampled_from(["all"] + list(AssessmentStatus)),
    remedial=st.sampled_from(["all"] + list(RemedialStatus)),
    certified=st.sampled_from(["all"] + list(CertifiedStatus)),
    date_range=st.sampled_from(["all", "today", "7days", "30days"]),
)


class TestGradeProperties:

    @given(pair=score_and_total())
    def test_percentage_is_within_bounds(self, pair):
        score, total = pair
        assert 0 <= calculate_percentage(score, total) <= 100

    @given(pair=score_and_total())
    def test_grade_is_monotonic_in_score(self, pair):
        score, total = pair
        if score < total:
            lower = GRADE_ORDER.index(compute_grade(score, total))
            higher = GRADE_ORDER.index(compute_grade(score + 1, total))
            assert higher >= lower


class TestFilterProperties:

    @settings(max_examples=60)
    @given(population=results(), config=filter_configs)
    def test_filter_is_an_ordered_subsequence(self, population, config):
        shown = filter_results(population, config, now=NOW)
        positions = [population.index(r) for r in shown]
        assert positions == sorted(positions)

    @settings(max_examples=60)
    @given(population=results(), config=filter_configs)
    def test_filter_is_idempotent(self, population, config):
        once = filter_results(population, config, now=NOW)
        assert filter_results(once, config, now=NOW) == once

    @settings(max_examples=30)
    @given(population=results())
    def test_default_config_keeps_everything(self, population):
        assert filter_results(population, FilterConfig(), now=NOW) == population
