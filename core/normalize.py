"""
ResusCert Assessment Normalization

Turns one raw submission (or its absence) into the canonical
``AssessmentStatus`` and builds the matching ``AssessmentSlot``.

Rules:
- No record at all is NOT_TAKEN.
- No submission timestamp, or no recorded activity, is INCOMPLETE.
- Theory tests pass on the category pass mark (correct answers).
- Practical checklists pass only when every compulsory item is completed;
  completion percentage alone never decides a pass.

``normalize_assessment`` is total: every input maps to exactly one status.

Example usage:
    from core.normalize import normalize_assessment, build_slot

    status = normalize_assessment(record, Category.CLINICAL)
    slot = build_slot(AssessmentType.INFANT_CPR, record, Category.CLINICAL)
"""

import logging
from typing import List, Optional

from core.grade import calculate_percentage
from core.models import (
    AssessmentRecord,
    AssessmentSlot,
    AssessmentStatus,
    AssessmentType,
    Category,
)
from core.policy import COMPULSORY_SECTIONS, pass_mark_for

logger = logging.getLogger(__name__)


def _is_compulsory_section(name: str) -> bool:
    lowered = name.strip().lower()
    return any(lowered.startswith(section) for section in COMPULSORY_SECTIONS)


def missing_compulsory_items(record: AssessmentRecord) -> List[str]:
    """
    List compulsory checklist items that were not completed.

    Returns:
        Labels formatted as "section: item", in checklist order
    """
    missing = []
    for section in record.sections:
        compulsory_section = _is_compulsory_section(section.section)
        for item in section.items:
            if (item.is_compulsory or compulsory_section) and not item.completed:
                missing.append(f"{section.section}: {item.item}")
    return missing


def _has_compulsory_items(record: AssessmentRecord) -> bool:
    return any(
        item.is_compulsory or _is_compulsory_section(section.section)
        for section in record.sections
        for item in section.items
    )


def has_activity(record: AssessmentRecord) -> bool:
    """Whether anything was actually recorded on the submission."""
    if record.assessment_type.is_theory:
        return record.score is not None
    if record.completed_items:
        return True
    if record.completion_percentage:
        return True
    return any(item.completed for section in record.sections for item in section.items)


def compulsory_items_completed(record: AssessmentRecord) -> bool:
    """
    Structural pass check for a practical checklist.

    The item breakdown wins when it names compulsory items; otherwise the
    stored ``all_compulsory_completed`` flag decides. Without either there is
    no evidence the compulsory steps were performed.
    """
    if _has_compulsory_items(record):
        return not missing_compulsory_items(record)
    if record.all_compulsory_completed is not None:
        return record.all_compulsory_completed
    return False


def normalize_assessment(record: Optional[AssessmentRecord], category: Optional[Category] = None) -> AssessmentStatus:
    """
    Canonical status of one assessment.

    Args:
        record: Latest submission, or None when nothing was submitted
        category: Participant category, selects the theory pass mark

    Returns:
        One of PASS, FAIL, INCOMPLETE, NOT_TAKEN
    """
    if record is None:
        return AssessmentStatus.NOT_TAKEN

    if record.submitted_at is None or not has_activity(record):
        return AssessmentStatus.INCOMPLETE

    if record.assessment_type.is_theory:
        # the submission's own job category wins over the profile category
        passed = record.score >= pass_mark_for(record.job_category or category)
    else:
        passed = compulsory_items_completed(record)

    return AssessmentStatus.PASS if passed else AssessmentStatus.FAIL


def _completion_percentage(record: AssessmentRecord) -> float:
    if record.completion_percentage is not None:
        return float(record.completion_percentage)
    if record.total_items and record.completed_items is not None:
        return round(100.0 * min(record.completed_items, record.total_items) / record.total_items, 2)
    return 0.0


def empty_slot(assessment_type: AssessmentType) -> AssessmentSlot:
    """Slot for an assessment with no underlying record."""
    return AssessmentSlot(assessment_type=assessment_type, status=AssessmentStatus.NOT_TAKEN)


def build_slot(
    assessment_type: AssessmentType,
    record: Optional[AssessmentRecord],
    category: Optional[Category] = None,
) -> AssessmentSlot:
    """
    Assemble the slot for one assessment type from its latest record.

    Args:
        assessment_type: Slot being built
        record: Latest submission for that type, or None
        category: Participant category for the theory pass mark

    Returns:
        Fully populated AssessmentSlot
    """
    if record is None:
        return empty_slot(assessment_type)

    if record.assessment_type != assessment_type:
        # store handed back a record of another type
        raise ValueError(
            f"Record {record.id} is {record.assessment_type.value}, expected {assessment_type.value}"
        )

    status = normalize_assessment(record, category)
    slot = AssessmentSlot(
        assessment_type=assessment_type,
        status=status,
        submitted_at=record.submitted_at,
        record_id=record.id,
    )

    if assessment_type.is_theory:
        if record.score is not None:
            slot.score = record.score
            slot.total = record.total
            slot.percentage = calculate_percentage(record.score, record.total)
            slot.completion_percentage = 100.0
    else:
        slot.completion_percentage = _completion_percentage(record)
        slot.missing_compulsory = missing_compulsory_items(record)

    logger.debug(
        "Normalized %s for %s as %s", assessment_type.value, record.participant_id, status.value
    )
    return slot
