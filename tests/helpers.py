"""
ResusCert Test Helper Utilities

Builders for participants, assessment submissions and certificate rows, so
tests only spell out the fields they care about.

Example usage:
    records = all_pass_records("p_001")
    store = InMemoryRecordStore(participants=[participant("p_001")], assessments=records)
"""

from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from core.models import (
    AssessmentRecord,
    AssessmentStatus,
    AssessmentType,
    CHECKLIST_TYPES,
    Category,
    CertificateRecord,
    CertificateStatus,
    ChecklistItem,
    ChecklistSection,
    Participant,
    TestType,
)

BASE_TIME = datetime(2024, 3, 1, 8, 0, tzinfo=timezone.utc)


def participant(pid: str = "p_001", name: str = "Amanda Lee", category: Optional[Category] = Category.CLINICAL,
                **kwargs) -> Participant:
    return Participant(id=pid, name=name, category=category, **kwargs)


def theory_record(
    pid: str = "p_001",
    assessment_type: AssessmentType = AssessmentType.POST_TEST,
    score: Optional[int] = 28,
    total: int = 30,
    submitted_at: Optional[datetime] = BASE_TIME,
    record_id: Optional[str] = None,
    job_category: Optional[Category] = None,
) -> AssessmentRecord:
    return AssessmentRecord(
        id=record_id or f"{pid}_{assessment_type.value}",
        participant_id=pid,
        assessment_type=assessment_type,
        score=score,
        total=total if score is not None else None,
        submitted_at=submitted_at,
        job_category=job_category,
    )


def checklist_record(
    pid: str = "p_001",
    assessment_type: AssessmentType = AssessmentType.ONE_MAN_CPR,
    all_compulsory_completed: Optional[bool] = True,
    completed_items: Optional[int] = 10,
    total_items: Optional[int] = 10,
    sections: Optional[List[ChecklistSection]] = None,
    submitted_at: Optional[datetime] = BASE_TIME,
    record_id: Optional[str] = None,
) -> AssessmentRecord:
    return AssessmentRecord(
        id=record_id or f"{pid}_{assessment_type.value}",
        participant_id=pid,
        assessment_type=assessment_type,
        completed_items=completed_items,
        total_items=total_items,
        all_compulsory_completed=all_compulsory_completed,
        sections=sections or [],
        submitted_at=submitted_at,
    )


def section(name: str, *items) -> ChecklistSection:
    """``items`` are (label, completed) or (label, completed, is_compulsory) tuples."""
    built = []
    for entry in items:
        label, completed = entry[0], entry[1]
        compulsory = entry[2] if len(entry) > 2 else False
        built.append(ChecklistItem(item=label, completed=completed, is_compulsory=compulsory))
    return ChecklistSection(section=name, items=built)


def all_pass_records(pid: str = "p_001", submitted_at: datetime = BASE_TIME) -> List[AssessmentRecord]:
    """Seven passing submissions for a Clinical participant."""
    records = [
        theory_record(pid, AssessmentType.PRE_TEST, score=26, submitted_at=submitted_at),
        theory_record(pid, AssessmentType.POST_TEST, score=28, submitted_at=submitted_at),
    ]
    records.extend(checklist_record(pid, t, submitted_at=submitted_at) for t in CHECKLIST_TYPES)
    return records


def statuses(default: AssessmentStatus = AssessmentStatus.PASS, **overrides) -> Dict[AssessmentType, AssessmentStatus]:
    """Seven statuses, all ``default`` except the keyword overrides (by type value)."""
    built = {t: default for t in AssessmentType}
    for key, value in overrides.items():
        built[AssessmentType(key)] = AssessmentStatus(value)
    return built


def certificate_record(
    cid: str = "sub_001",
    pid: str = "p_001",
    name: str = "Amanda Lee",
    score: int = 27,
    total: int = 30,
    test_type: TestType = TestType.POST_TEST,
    status: Optional[CertificateStatus] = CertificateStatus.PENDING,
    results_released: Optional[bool] = None,
    submitted_at: Optional[datetime] = BASE_TIME,
    **kwargs,
) -> CertificateRecord:
    return CertificateRecord(
        id=cid,
        participant_id=pid,
        participant_name=name,
        participant_email=kwargs.pop("participant_email", f"{pid}@example.com"),
        test_type=test_type,
        score=score,
        total_questions=total,
        status=status,
        results_released=results_released,
        submitted_at=submitted_at,
        **kwargs,
    )


class FixedClock:
    """Deterministic clock that advances one minute per call."""

    def __init__(self, start: datetime = datetime(2024, 3, 5, 9, 0, tzinfo=timezone.utc)):
        self.current = start

    def __call__(self) -> datetime:
        now = self.current
        self.current = self.current + timedelta(minutes=1)
        return now
