"""
ResusCert Aggregation Engine Tests

Tests the seven-slot composite results:
- Totality (every participant, every slot)
- Latest submission wins
- Outer join of participants and records
- Category resolution
- Store failures and timeouts

Example usage:
    pytest tests/test_aggregate.py -v
"""

import asyncio
from datetime import timedelta

import pytest

from core.aggregate import AggregationEngine, latest_record, resolve_category
from core.errors import NotFoundError, UpstreamUnavailableError
from core.models import (
    AssessmentStatus,
    AssessmentType,
    Category,
    CertifiedStatus,
    RemedialStatus,
)
from core.store import InMemoryRecordStore, load_store
from tests.helpers import (
    BASE_TIME,
    checklist_record,
    participant,
    theory_record,
)


class TestLatestRecord:

    def test_latest_submission_wins(self):
        older = theory_record(score=10, record_id="a", submitted_at=BASE_TIME)
        newer = theory_record(score=29, record_id="b", submitted_at=BASE_TIME + timedelta(days=1))
        assert latest_record([newer, older]).id == "b"
        assert latest_record([older, newer]).id == "b"

    def test_unsubmitted_ranks_below_submitted(self):
        draft = theory_record(score=None, record_id="draft", submitted_at=None)
        final = theory_record(score=27, record_id="final")
        assert latest_record([final, draft]).id == "final"

    def test_tie_keeps_later_store_order(self):
        first = theory_record(record_id="first")
        second = theory_record(record_id="second")
        assert latest_record([first, second]).id == "second"

    def test_empty(self):
        assert latest_record([]) is None


class TestResolveCategory:

    def test_profile_category_wins(self):
        latest = {AssessmentType.PRE_TEST: theory_record(job_category=Category.NON_CLINICAL)}
        assert resolve_category(participant(category=Category.CLINICAL), latest) == Category.CLINICAL

    def test_falls_back_to_submission_category(self):
        latest = {AssessmentType.POST_TEST: theory_record(job_category=Category.CLINICAL)}
        assert resolve_category(participant(category=None), latest) == Category.CLINICAL

    def test_defaults_to_non_clinical(self):
        assert resolve_category(participant(category=None), {}) == Category.NON_CLINICAL


class TestAggregate:

    @pytest.mark.asyncio
    async def test_all_pass_participant_is_certified(self, store):
        result = await AggregationEngine(store).aggregate("p_001")
        assert set(result.slots) == set(AssessmentType)
        assert all(s == AssessmentStatus.PASS for s in result.statuses().values())
        assert result.certified.status == CertifiedStatus.CERTIFIED
        assert result.remedial.status == RemedialStatus.NOT_ALLOWED

    @pytest.mark.asyncio
    async def test_participant_without_records_gets_seven_not_taken_slots(self, store):
        result = await AggregationEngine(store).aggregate("p_002")
        assert all(s == AssessmentStatus.NOT_TAKEN for s in result.statuses().values())
        assert result.certified.status == CertifiedStatus.NOT_CERTIFIED

    @pytest.mark.asyncio
    async def test_newer_failing_attempt_replaces_pass(self, store):
        store.assessments.append(
            theory_record("p_001", AssessmentType.POST_TEST, score=10, record_id="retake",
                          submitted_at=BASE_TIME + timedelta(days=2))
        )
        result = await AggregationEngine(store).aggregate("p_001")
        assert result.slot(AssessmentType.POST_TEST).record_id == "retake"
        assert result.slot(AssessmentType.POST_TEST).status == AssessmentStatus.FAIL
        assert result.certified.reason == "post_test: FAIL"

    @pytest.mark.asyncio
    async def test_unknown_participant(self, store):
        with pytest.raises(NotFoundError) as exc_info:
            await AggregationEngine(store).aggregate("nobody")
        assert exc_info.value.error_code == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_id_known_only_from_records(self):
        store = InMemoryRecordStore(assessments=[theory_record("p_009", AssessmentType.PRE_TEST, score=15)])
        result = await AggregationEngine(store).aggregate("p_009")
        assert result.participant.name == "Unknown"
        assert result.category == Category.NON_CLINICAL
        assert result.slot(AssessmentType.PRE_TEST).status == AssessmentStatus.FAIL


class TestAggregateAll:

    @pytest.mark.asyncio
    async def test_outer_join_of_participants_and_records(self, store):
        store.assessments.append(checklist_record("p_orphan", AssessmentType.INFANT_CPR))
        results = await AggregationEngine(store).aggregate_all()
        ids = [r.participant.id for r in results]
        assert sorted(ids) == ["p_001", "p_002", "p_orphan"]
        assert all(len(r.slots) == 7 for r in results)

    @pytest.mark.asyncio
    async def test_sorted_by_name_then_id(self):
        store = InMemoryRecordStore(participants=[
            participant("p_3", "chen wei"),
            participant("p_2", "Amanda Lee"),
            participant("p_1", "Amanda Lee"),
        ])
        results = await AggregationEngine(store).aggregate_all()
        assert [r.participant.id for r in results] == ["p_1", "p_2", "p_3"]

    @pytest.mark.asyncio
    async def test_repeated_calls_are_equal(self, store):
        engine = AggregationEngine(store)
        assert await engine.aggregate_all() == await engine.aggregate_all()

    @pytest.mark.asyncio
    async def test_matches_single_participant_aggregation(self, store):
        engine = AggregationEngine(store)
        everyone = {r.participant.id: r for r in await engine.aggregate_all()}
        assert everyone["p_001"] == await engine.aggregate("p_001")

    @pytest.mark.asyncio
    async def test_example_snapshot(self, example_records_path):
        results = await AggregationEngine(load_store(example_records_path)).aggregate_all()
        by_id = {r.participant.id: r for r in results}
        assert by_id["p_001"].certified.status == CertifiedStatus.CERTIFIED
        assert by_id["p_002"].remedial.status == RemedialStatus.ALLOWED
        assert by_id["p_002"].slot(AssessmentType.INFANT_CPR).missing_compulsory == ["Airway: Head tilt, chin lift"]
        assert by_id["p_003"].remedial.reason == "Theory not passed: pre_test: NOT_TAKEN; post_test: FAIL"
        assert by_id["p_004"].participant.name == "Unknown"


class FailingStore(InMemoryRecordStore):

    async def list_participants(self):
        raise ConnectionError("connection refused")


class SlowStore(InMemoryRecordStore):

    async def list_all_assessment_records(self):
        await asyncio.sleep(1)
        return []


class TestUpstreamFailures:

    @pytest.mark.asyncio
    async def test_connection_error_maps_to_upstream_unavailable(self):
        with pytest.raises(UpstreamUnavailableError) as exc_info:
            await AggregationEngine(FailingStore()).aggregate_all()
        assert exc_info.value.operation == "list_participants"
        assert exc_info.value.http_status == 503

    @pytest.mark.asyncio
    async def test_timeout_maps_to_upstream_unavailable(self):
        with pytest.raises(UpstreamUnavailableError) as exc_info:
            await AggregationEngine(SlowStore(), timeout=0.01).aggregate_all()
        assert "timed out" in exc_info.value.reason

    @pytest.mark.asyncio
    async def test_timeout_from_environment(self, monkeypatch):
        monkeypatch.setenv("STORE_TIMEOUT_S", "0.01")
        with pytest.raises(UpstreamUnavailableError):
            await AggregationEngine(SlowStore()).aggregate_all()

