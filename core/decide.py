"""
ResusCert Certification Decision

Derives the certification and remedial-eligibility decisions from the seven
slot statuses of a participant. Pure functions: the same seven statuses
always produce the same two decisions.

Policy:
- CERTIFIED iff every one of the seven assessments is PASS.
- Remedial ALLOWED iff not certified, both theory tests are PASS and no
  assessment is NOT_TAKEN, i.e. only practical checklists are outstanding.

Example usage:
    from core.decide import make_decision

    remedial, certified = make_decision(result.slots)
    print(f"{certified.status.value}: {certified.reason}")
"""

from typing import Dict, List, Mapping, Tuple, Union

from core.models import (
    CHECKLIST_TYPES,
    THEORY_TYPES,
    AssessmentSlot,
    AssessmentStatus,
    AssessmentType,
    CertifiedDecision,
    CertifiedStatus,
    RemedialDecision,
    RemedialStatus,
)


SlotsOrStatuses = Mapping[AssessmentType, Union[AssessmentSlot, AssessmentStatus]]


def _statuses(slots: SlotsOrStatuses) -> Dict[AssessmentType, AssessmentStatus]:
    """Reduce slots to statuses, requiring all seven assessment types."""
    statuses = {}
    for assessment_type in AssessmentType:
        if assessment_type not in slots:
            raise KeyError(f"Missing slot for {assessment_type.value}")
        value = slots[assessment_type]
        statuses[assessment_type] = value.status if isinstance(value, AssessmentSlot) else AssessmentStatus(value)
    return statuses


def _describe(statuses: Mapping[AssessmentType, AssessmentStatus], types) -> List[str]:
    return [f"{t.value}: {statuses[t].value}" for t in types if statuses[t] != AssessmentStatus.PASS]


def decide_certification(slots: SlotsOrStatuses) -> CertifiedDecision:
    """
    Certification decision.

    Returns:
        CERTIFIED when all seven slots are PASS, otherwise NOT_CERTIFIED with
        every non-passing slot listed in canonical order
    """
    statuses = _statuses(slots)
    outstanding = _describe(statuses, AssessmentType)
    if not outstanding:
        return CertifiedDecision(status=CertifiedStatus.CERTIFIED, reason="All requirements met")
    return CertifiedDecision(status=CertifiedStatus.NOT_CERTIFIED, reason="; ".join(outstanding))


def decide_remedial(slots: SlotsOrStatuses, certified: CertifiedDecision) -> RemedialDecision:
    """
    Remedial-retraining eligibility.

    Args:
        slots: Seven slots (or statuses) of the participant
        certified: Certification decision for the same slots

    Returns:
        RemedialDecision with the first blocking reason, or ALLOWED with the
        outstanding checklists
    """
    statuses = _statuses(slots)

    if certified.status == CertifiedStatus.CERTIFIED:
        return RemedialDecision(status=RemedialStatus.NOT_ALLOWED, reason="Already certified")

    theory_outstanding = _describe(statuses, THEORY_TYPES)
    if theory_outstanding:
        return RemedialDecision(
            status=RemedialStatus.NOT_ALLOWED,
            reason="Theory not passed: " + "; ".join(theory_outstanding),
        )

    not_taken = [t.value for t in AssessmentType if statuses[t] == AssessmentStatus.NOT_TAKEN]
    if not_taken:
        return RemedialDecision(
            status=RemedialStatus.NOT_ALLOWED,
            reason="Assessment not yet taken: " + ", ".join(not_taken),
        )

    return RemedialDecision(
        status=RemedialStatus.ALLOWED,
        reason="Practical checklists outstanding: " + "; ".join(_describe(statuses, CHECKLIST_TYPES)),
    )


def make_decision(slots: SlotsOrStatuses) -> Tuple[RemedialDecision, CertifiedDecision]:
    """
    Both decisions for one participant.

    Example:
        >>> statuses = {t: AssessmentStatus.PASS for t in AssessmentType}
        >>> make_decision(statuses)[1].status
        <CertifiedStatus.CERTIFIED: 'CERTIFIED'>
    """
    certified = decide_certification(slots)
    remedial = decide_remedial(slots, certified)
    return remedial, certified
