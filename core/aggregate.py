"""
ResusCert Aggregation Engine

Joins the seven assessment slots of each participant into one
``ComprehensiveResult`` and attaches the certification decisions.

The participant set is an explicit union of the ids known to the participant
list and the ids found on assessment records, so someone who never submitted
anything still gets seven NOT_TAKEN slots. Results are rebuilt on every call;
there is no cache.

Example usage:
    from core.aggregate import AggregationEngine

    engine = AggregationEngine(store)
    results = await engine.aggregate_all()
    one = await engine.aggregate("p_001")
"""

import logging
from collections import defaultdict
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from core.decide import make_decision
from core.errors import NotFoundError
from core.models import (
    AssessmentRecord,
    AssessmentType,
    Category,
    ComprehensiveResult,
    Participant,
)
from core.normalize import build_slot
from core.store import RecordStore, call_store

logger = logging.getLogger(__name__)

UNKNOWN_PARTICIPANT_NAME = "Unknown"

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _recency(record: AssessmentRecord) -> Tuple[bool, datetime]:
    return (record.submitted_at is not None, record.submitted_at or _EPOCH)


def latest_record(records: Iterable[AssessmentRecord]) -> Optional[AssessmentRecord]:
    """
    Pick the record that supersedes the others.

    Latest ``submitted_at`` wins; unsubmitted records rank below any
    submitted one; on a tie the record later in store order wins.
    """
    latest = None
    for record in records:
        if latest is None or _recency(record) >= _recency(latest):
            latest = record
    return latest


def resolve_category(
    participant: Participant, latest: Mapping[AssessmentType, Optional[AssessmentRecord]]
) -> Category:
    """Profile category, else the theory submissions' job category, else Non-Clinical."""
    if participant.category is not None:
        return participant.category
    for assessment_type in (AssessmentType.PRE_TEST, AssessmentType.POST_TEST):
        record = latest.get(assessment_type)
        if record is not None and record.job_category is not None:
            return record.job_category
    return Category.NON_CLINICAL


def build_result(
    participant: Participant, latest: Mapping[AssessmentType, Optional[AssessmentRecord]]
) -> ComprehensiveResult:
    """
    Assemble one participant's composite result from their latest records.

    Args:
        participant: Identity of the participant
        latest: Latest record per assessment type; missing keys are NOT_TAKEN

    Returns:
        ComprehensiveResult with all seven slots and both decisions
    """
    category = resolve_category(participant, latest)
    slots = {t: build_slot(t, latest.get(t), category) for t in AssessmentType}
    remedial, certified = make_decision(slots)
    return ComprehensiveResult(
        participant=participant,
        category=category,
        slots=slots,
        remedial=remedial,
        certified=certified,
    )


def _placeholder(participant_id: str) -> Participant:
    return Participant(id=participant_id, name=UNKNOWN_PARTICIPANT_NAME)


def _sort_key(result: ComprehensiveResult) -> Tuple[str, str]:
    return (result.participant.name.casefold(), result.participant.id)


class AggregationEngine:
    """Read-only aggregation over a RecordStore."""

    def __init__(self, store: RecordStore, timeout: Optional[float] = None):
        self.store = store
        self.timeout = timeout

    async def _participants(self) -> List[Participant]:
        return await call_store(self.store.list_participants(), "list_participants", self.timeout)

    async def aggregate(self, participant_id: str) -> ComprehensiveResult:
        """
        Composite result for a single participant.

        Raises:
            NotFoundError: If neither the participant list nor any record knows the id
            UpstreamUnavailableError: If the store fails or times out
        """
        participant = next((p for p in await self._participants() if p.id == participant_id), None)

        latest: Dict[AssessmentType, Optional[AssessmentRecord]] = {}
        for assessment_type in AssessmentType:
            records = await call_store(
                self.store.list_assessment_records(participant_id, assessment_type),
                f"list_assessment_records:{assessment_type.value}",
                self.timeout,
            )
            latest[assessment_type] = latest_record(records)

        if participant is None:
            if all(record is None for record in latest.values()):
                raise NotFoundError("Participant", participant_id)
            participant = _placeholder(participant_id)

        return build_result(participant, latest)

    async def aggregate_all(self) -> List[ComprehensiveResult]:
        """
        Composite results for every known participant, sorted by name.

        Raises:
            UpstreamUnavailableError: If the store fails or times out
        """
        participants = await self._participants()
        records = await call_store(
            self.store.list_all_assessment_records(), "list_all_assessment_records", self.timeout
        )

        grouped: Dict[str, Dict[AssessmentType, List[AssessmentRecord]]] = defaultdict(lambda: defaultdict(list))
        for record in records:
            grouped[record.participant_id][record.assessment_type].append(record)

        by_id = {p.id: p for p in participants}
        # union of both id sets, keyed by participant id
        participant_ids = list(by_id) + [pid for pid in grouped if pid not in by_id]

        results = []
        for pid in participant_ids:
            participant = by_id.get(pid) or _placeholder(pid)
            per_type = grouped.get(pid, {})
            latest = {t: latest_record(per_type.get(t, ())) for t in AssessmentType}
            results.append(build_result(participant, latest))

        results.sort(key=_sort_key)

        orphans = len(participant_ids) - len(by_id)
        logger.info(
            f"Aggregated {len(results)} participants from {len(records)} assessment records",
            extra={"orphan_participants": orphans},
        )
        return results
