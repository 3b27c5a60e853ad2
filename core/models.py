"""
ResusCert Core Models

Pydantic v2 models for participants, assessment submissions, composite
results and certificate records. Every status and category is a closed
enumeration so that an unrecognized value fails when the model is built
instead of falling through to a default somewhere downstream.

Example usage:
    from core.models import AssessmentRecord, AssessmentType

    record = AssessmentRecord(
        id="sub_001",
        participant_id="p_001",
        assessment_type=AssessmentType.POST_TEST,
        score=27,
        total=30,
        submitted_at="2024-03-01T09:30:00Z",
    )
    print(f"{record.assessment_type.value}: {record.score}/{record.total}")
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Read naive timestamps as UTC so every comparison is tz-aware."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class AssessmentType(str, Enum):
    """The seven assessments of the certification program, in canonical order."""
    PRE_TEST = "pre_test"
    POST_TEST = "post_test"
    ONE_MAN_CPR = "one_man_cpr"
    TWO_MAN_CPR = "two_man_cpr"
    INFANT_CPR = "infant_cpr"
    INFANT_CHOKING = "infant_choking"
    ADULT_CHOKING = "adult_choking"

    @classmethod
    def parse(cls, value: str) -> "AssessmentType":
        """Accept legacy checklist names such as 'one man cpr'."""
        return cls(value.strip().lower().replace(" ", "_").replace("-", "_"))

    @property
    def is_theory(self) -> bool:
        return self in THEORY_TYPES


THEORY_TYPES = (AssessmentType.PRE_TEST, AssessmentType.POST_TEST)
CHECKLIST_TYPES = (
    AssessmentType.ONE_MAN_CPR,
    AssessmentType.TWO_MAN_CPR,
    AssessmentType.INFANT_CPR,
    AssessmentType.INFANT_CHOKING,
    AssessmentType.ADULT_CHOKING,
)


class AssessmentStatus(str, Enum):
    """Canonical outcome of one assessment slot."""
    PASS = "PASS"
    FAIL = "FAIL"
    INCOMPLETE = "INCOMPLETE"
    NOT_TAKEN = "NOT_TAKEN"


class Category(str, Enum):
    """Job category of a participant."""
    CLINICAL = "Clinical"
    NON_CLINICAL = "Non-Clinical"


class RemedialStatus(str, Enum):
    ALLOWED = "ALLOWED"
    NOT_ALLOWED = "NOT_ALLOWED"


class CertifiedStatus(str, Enum):
    CERTIFIED = "CERTIFIED"
    NOT_CERTIFIED = "NOT_CERTIFIED"


class TestType(str, Enum):
    """Theory tests that produce a certificate."""
    __test__ = False  # keep pytest from collecting this enum

    PRE_TEST = "pre_test"
    POST_TEST = "post_test"


class CertificateStatus(str, Enum):
    """Lifecycle state of a certificate."""
    PENDING = "PENDING"
    ISSUED = "ISSUED"
    REVOKED = "REVOKED"


class CertificateAction(str, Enum):
    """Staff verbs that move a certificate between states."""
    ISSUE = "issue"
    APPROVE = "approve"
    REVOKE = "revoke"

    @property
    def past_tense(self) -> str:
        return {"issue": "issued", "approve": "approved", "revoke": "revoked"}[self.value]


class Grade(str, Enum):
    """Letter grades, best first."""
    A_PLUS = "A+"
    A = "A"
    A_MINUS = "A-"
    B_PLUS = "B+"
    B = "B"
    B_MINUS = "B-"
    C_PLUS = "C+"
    C = "C"
    C_MINUS = "C-"
    D = "D"
    F = "F"


class Participant(BaseModel):
    """Identity of a training participant, supplied by the record store."""
    id: str = Field(..., min_length=1, description="Opaque unique participant id")
    name: str = Field(..., description="Display name")
    ic_number: Optional[str] = Field(None, description="National identity number")
    job_position: Optional[str] = Field(None, description="Job position label")
    category: Optional[Category] = Field(None, description="Clinical or Non-Clinical")

    model_config = {"frozen": True}


class ChecklistItem(BaseModel):
    """One line of a practical checklist."""
    item: str
    is_compulsory: bool = False
    completed: bool = False


class ChecklistSection(BaseModel):
    """A named group of checklist items (airway, breathing, ...)."""
    section: str
    items: List[ChecklistItem] = Field(default_factory=list)


class AssessmentRecord(BaseModel):
    """
    One raw submission for a (participant, assessment type) pair.

    Theory tests carry ``score``/``total``; practical checklists carry the
    item counters, completion percentage and section breakdown.
    """
    id: str = Field(..., min_length=1, description="Submission id")
    participant_id: str = Field(..., min_length=1)
    assessment_type: AssessmentType
    score: Optional[int] = Field(None, ge=0, description="Correct answers for theory tests")
    total: Optional[int] = Field(None, description="Total possible score, required with score")
    completed_items: Optional[int] = Field(None, ge=0)
    total_items: Optional[int] = Field(None, ge=0)
    completion_percentage: Optional[float] = Field(None, ge=0, le=100)
    all_compulsory_completed: Optional[bool] = None
    sections: List[ChecklistSection] = Field(default_factory=list)
    job_category: Optional[Category] = None
    submitted_at: Optional[datetime] = None

    @field_validator("assessment_type", mode="before")
    @classmethod
    def parse_assessment_type(cls, v):
        if isinstance(v, str):
            return AssessmentType.parse(v)
        return v

    @field_validator("submitted_at")
    @classmethod
    def normalize_timestamp(cls, v):
        return as_utc(v)

    @model_validator(mode="after")
    def validate_score(self):
        """A score needs a positive total and cannot exceed it."""
        if self.score is not None:
            if self.total is None:
                raise ValueError("total is required when score is present")
            if self.total <= 0:
                raise ValueError("total must be greater than 0")
            if self.score > self.total:
                raise ValueError(f"score {self.score} exceeds total {self.total}")
        return self


class AssessmentSlot(BaseModel):
    """A participant's normalized outcome for one assessment type."""
    assessment_type: AssessmentType
    status: AssessmentStatus
    score: Optional[int] = None
    total: Optional[int] = None
    percentage: Optional[int] = Field(None, description="Theory score percentage, rounded half-up")
    completion_percentage: float = 0.0
    submitted_at: Optional[datetime] = None
    record_id: Optional[str] = None
    missing_compulsory: List[str] = Field(default_factory=list)


class RemedialDecision(BaseModel):
    status: RemedialStatus
    reason: str


class CertifiedDecision(BaseModel):
    status: CertifiedStatus
    reason: str


class ComprehensiveResult(BaseModel):
    """
    Seven-slot composite view of one participant plus derived decisions.

    Always rebuilt from the underlying records; never persisted.
    """
    participant: Participant
    category: Category
    slots: Dict[AssessmentType, AssessmentSlot]
    remedial: RemedialDecision
    certified: CertifiedDecision

    @model_validator(mode="after")
    def validate_slots(self):
        """Exactly one slot per assessment type."""
        if set(self.slots) != set(AssessmentType):
            missing = [t.value for t in AssessmentType if t not in self.slots]
            raise ValueError(f"Comprehensive result must carry all seven slots (missing: {', '.join(missing)})")
        for key, slot in self.slots.items():
            if slot.assessment_type != key:
                raise ValueError(f"Slot keyed {key.value} holds {slot.assessment_type.value}")
        return self

    def slot(self, assessment_type: AssessmentType) -> AssessmentSlot:
        return self.slots[assessment_type]

    def statuses(self) -> Dict[AssessmentType, AssessmentStatus]:
        return {t: self.slots[t].status for t in AssessmentType}

    def submission_times(self) -> List[datetime]:
        return [s.submitted_at for s in self.slots.values() if s.submitted_at is not None]


class CertificateRecord(BaseModel):
    """
    Persisted certificate row, keyed by the underlying test-submission id.

    ``status`` is the explicit lifecycle column. Rows written before it
    existed only carry the ``results_released`` pair.
    """
    id: str = Field(..., min_length=1)
    participant_id: str
    participant_name: str
    participant_email: Optional[str] = None
    ic_number: Optional[str] = None
    job_position: Optional[str] = None
    test_type: TestType
    score: int = Field(..., ge=0)
    total_questions: int = Field(..., gt=0)
    submitted_at: Optional[datetime] = None
    status: Optional[CertificateStatus] = None
    results_released: Optional[bool] = None
    results_released_at: Optional[datetime] = None
    download_count: int = Field(0, ge=0)
    last_downloaded_at: Optional[datetime] = None

    @field_validator("submitted_at", "results_released_at", "last_downloaded_at")
    @classmethod
    def normalize_timestamps(cls, v):
        return as_utc(v)


class Certificate(BaseModel):
    """Derived certificate view handed to presentation code."""
    id: str
    participant_id: str
    participant_name: str
    participant_email: Optional[str] = None
    ic_number: Optional[str] = None
    job_position: Optional[str] = None
    test_type: TestType
    score: int
    total_questions: int
    percentage: int
    grade: Grade
    status: CertificateStatus
    submitted_at: Optional[datetime] = None
    released_at: Optional[datetime] = None
    download_count: int = 0
    last_downloaded_at: Optional[datetime] = None


class TransitionLogEntry(BaseModel):
    """Append-only audit row for one certificate transition."""
    certificate_id: str
    action: CertificateAction
    from_status: CertificateStatus
    to_status: CertificateStatus
    actor: str = "system"
    at: datetime

    model_config = {"frozen": True}


class CertificateData(BaseModel):
    """Flat record consumed by the certificate renderer."""
    participant_name: str
    participant_email: Optional[str] = None
    ic_number: Optional[str] = None
    job_position: Optional[str] = None
    test_type: TestType
    score: int
    total_questions: int
    grade: Grade
    percentage: int
    issued_at: Optional[datetime] = None
    certificate_id: str


class BulkFailure(BaseModel):
    id: str
    error_code: str
    message: str


class BulkResult(BaseModel):
    """Per-id outcome of a bulk lifecycle operation."""
    action: CertificateAction
    succeeded: List[str] = Field(default_factory=list)
    failed: List[BulkFailure] = Field(default_factory=list)

    @property
    def all_succeeded(self) -> bool:
        return not self.failed


class CustomDateRange(BaseModel):
    """Inclusive custom window; a missing bound disables the date filter."""
    start: Optional[datetime] = None
    end: Optional[datetime] = None

    @field_validator("start", "end")
    @classmethod
    def normalize_bounds(cls, v):
        return as_utc(v)


DateRangeOption = Union[Literal["all", "today", "7days", "30days"], CustomDateRange]


class FilterConfig(BaseModel):
    """Recognized options of the comprehensive-results filter."""
    search_text: str = ""
    category: Union[Literal["all"], Category] = "all"
    status: Union[Literal["all"], AssessmentStatus] = "all"
    remedial: Union[Literal["all"], RemedialStatus] = "all"
    certified: Union[Literal["all"], CertifiedStatus] = "all"
    date_range: DateRangeOption = "all"

    model_config = {"extra": "forbid"}
