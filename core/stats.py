"""
ResusCert Statistics

Summary counts over comprehensive results and certificates, plus the
pre/post theory progress of a single participant.

Example usage:
    from core.stats import compute_statistics

    stats = compute_statistics(results)
    print(stats.certified, "of", stats.total_participants, "certified")
"""

from typing import Dict, Iterable, Optional

from pydantic import BaseModel, Field

from core.grade import grade_improvement, grade_for_percentage
from core.models import (
    AssessmentStatus,
    AssessmentType,
    Certificate,
    CertificateStatus,
    CertifiedStatus,
    ComprehensiveResult,
    Grade,
    RemedialStatus,
)


class ResultStatistics(BaseModel):
    """Aggregate counts across a result set."""
    total_participants: int = 0
    certified: int = 0
    not_certified: int = 0
    remedial_allowed: int = 0
    by_assessment: Dict[AssessmentType, Dict[AssessmentStatus, int]] = Field(default_factory=dict)


class TheoryProgress(BaseModel):
    """Pre-test to post-test movement for one participant."""
    participant_id: str
    pre_test_grade: Optional[Grade] = None
    post_test_grade: Optional[Grade] = None
    pre_test_percentage: Optional[int] = None
    post_test_percentage: Optional[int] = None
    improvement: Optional[str] = None


def _empty_counts() -> Dict[AssessmentStatus, int]:
    return {status: 0 for status in AssessmentStatus}


def compute_statistics(results: Iterable[ComprehensiveResult]) -> ResultStatistics:
    """
    Count statuses per assessment and the decision outcomes.

    Every assessment type and every status appears in ``by_assessment``,
    including zero counts.
    """
    stats = ResultStatistics(by_assessment={t: _empty_counts() for t in AssessmentType})
    for result in results:
        stats.total_participants += 1
        if result.certified.status == CertifiedStatus.CERTIFIED:
            stats.certified += 1
        else:
            stats.not_certified += 1
        if result.remedial.status == RemedialStatus.ALLOWED:
            stats.remedial_allowed += 1
        for assessment_type, slot in result.slots.items():
            stats.by_assessment[assessment_type][slot.status] += 1
    return stats


def certificate_status_counts(certificates: Iterable[Certificate]) -> Dict[CertificateStatus, int]:
    counts = {status: 0 for status in CertificateStatus}
    for cert in certificates:
        counts[cert.status] += 1
    return counts


def theory_progress(result: ComprehensiveResult) -> TheoryProgress:
    """
    Grades of the two theory tests and the change between them.

    ``improvement`` is only set when both tests have a recorded score.
    """
    progress = TheoryProgress(participant_id=result.participant.id)

    pre = result.slot(AssessmentType.PRE_TEST)
    if pre.percentage is not None:
        progress.pre_test_percentage = pre.percentage
        progress.pre_test_grade = grade_for_percentage(pre.percentage)

    post = result.slot(AssessmentType.POST_TEST)
    if post.percentage is not None:
        progress.post_test_percentage = post.percentage
        progress.post_test_grade = grade_for_percentage(post.percentage)

    if progress.pre_test_grade is not None and progress.post_test_grade is not None:
        progress.improvement = grade_improvement(progress.pre_test_grade, progress.post_test_grade)
    return progress
