"""
ResusCert Certification Decision Tests

Tests certification and remedial eligibility:
- All-PASS certification and single-slot flips
- Remedial eligibility ordering of reasons
- Canonical ordering of reason text

Example usage:
    pytest tests/test_decide.py -v
"""

import pytest

from core.decide import decide_certification, make_decision
from core.models import (
    AssessmentStatus,
    AssessmentType,
    CHECKLIST_TYPES,
    CertifiedStatus,
    RemedialStatus,
)
from core.normalize import empty_slot
from tests.helpers import statuses


class TestCertification:

    def test_all_pass_is_certified(self):
        decision = decide_certification(statuses())
        assert decision.status == CertifiedStatus.CERTIFIED
        assert decision.reason == "All requirements met"

    @pytest.mark.parametrize("assessment_type", list(AssessmentType))
    @pytest.mark.parametrize("status", [AssessmentStatus.FAIL, AssessmentStatus.INCOMPLETE, AssessmentStatus.NOT_TAKEN])
    def test_any_single_non_pass_revokes_certification(self, assessment_type, status):
        decision = decide_certification(statuses(**{assessment_type.value: status}))
        assert decision.status == CertifiedStatus.NOT_CERTIFIED
        assert decision.reason == f"{assessment_type.value}: {status.value}"

    def test_reason_lists_slots_in_canonical_order(self):
        decision = decide_certification(statuses(infant_cpr="NOT_TAKEN", post_test="FAIL"))
        assert decision.reason == "post_test: FAIL; infant_cpr: NOT_TAKEN"

    def test_missing_slot_is_rejected(self):
        partial = statuses()
        del partial[AssessmentType.ADULT_CHOKING]
        with pytest.raises(KeyError):
            decide_certification(partial)


class TestRemedial:

    def test_certified_participant_needs_no_remedial(self):
        remedial, certified = make_decision(statuses())
        assert certified.status == CertifiedStatus.CERTIFIED
        assert remedial.status == RemedialStatus.NOT_ALLOWED
        assert remedial.reason == "Already certified"

    def test_failed_theory_blocks_remedial(self):
        remedial, _ = make_decision(statuses(pre_test="FAIL", infant_cpr="FAIL"))
        assert remedial.status == RemedialStatus.NOT_ALLOWED
        assert remedial.reason == "Theory not passed: pre_test: FAIL"

    def test_incomplete_theory_blocks_remedial(self):
        remedial, _ = make_decision(statuses(post_test="INCOMPLETE"))
        assert remedial.status == RemedialStatus.NOT_ALLOWED
        assert remedial.reason.startswith("Theory not passed")

    def test_not_taken_checklist_blocks_remedial(self):
        remedial, _ = make_decision(statuses(two_man_cpr="NOT_TAKEN", adult_choking="NOT_TAKEN"))
        assert remedial.status == RemedialStatus.NOT_ALLOWED
        assert remedial.reason == "Assessment not yet taken: two_man_cpr, adult_choking"

    @pytest.mark.parametrize("assessment_type", CHECKLIST_TYPES)
    def test_failed_checklist_with_passed_theory_allows_remedial(self, assessment_type):
        remedial, certified = make_decision(statuses(**{assessment_type.value: "FAIL"}))
        assert certified.status == CertifiedStatus.NOT_CERTIFIED
        assert remedial.status == RemedialStatus.ALLOWED
        assert remedial.reason == f"Practical checklists outstanding: {assessment_type.value}: FAIL"

    def test_incomplete_checklist_allows_remedial(self):
        remedial, _ = make_decision(statuses(infant_choking="INCOMPLETE"))
        assert remedial.status == RemedialStatus.ALLOWED


class TestMakeDecision:

    def test_accepts_slots(self):
        slots = {t: empty_slot(t) for t in AssessmentType}
        remedial, certified = make_decision(slots)
        assert certified.status == CertifiedStatus.NOT_CERTIFIED
        assert remedial.reason.startswith("Theory not passed")

    def test_is_deterministic(self):
        mixed = statuses(post_test="FAIL", infant_cpr="INCOMPLETE")
        assert make_decision(mixed) == make_decision(dict(mixed))
