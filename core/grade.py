"""
ResusCert Grade Calculator

Single source of the letter-grade table. Certificates, theory slots, the
CLI and the HTTP API all grade through ``compute_grade``.

Example usage:
    from core.grade import compute_grade

    grade = compute_grade(27, 30)   # Grade.A (90%)
"""

from typing import Tuple

from core.errors import InvalidInputError
from core.models import Grade


# Ordered, non-overlapping: first threshold the percentage reaches wins
GRADE_THRESHOLDS: Tuple[Tuple[int, Grade], ...] = (
    (95, Grade.A_PLUS),
    (90, Grade.A),
    (85, Grade.A_MINUS),
    (80, Grade.B_PLUS),
    (75, Grade.B),
    (70, Grade.B_MINUS),
    (65, Grade.C_PLUS),
    (60, Grade.C),
    (55, Grade.C_MINUS),
    (50, Grade.D),
)

# Worst to best, used for improvement deltas
GRADE_ORDER: Tuple[Grade, ...] = (Grade.F,) + tuple(g for _, g in reversed(GRADE_THRESHOLDS))


def calculate_percentage(score: int, total: int) -> int:
    """
    Percentage of ``score`` out of ``total``, rounded half-up.

    Integer arithmetic keeps 0.5 boundaries exact (e.g. 1/8 -> 13).

    Raises:
        InvalidInputError: If total <= 0 or score < 0
    """
    if total is None or total <= 0:
        raise InvalidInputError(
            f"Cannot grade a score out of {total}: total must be greater than 0",
            details={"score": score, "total": total},
        )
    if score is None or score < 0:
        raise InvalidInputError(
            f"Score must be a non-negative integer, got {score}",
            details={"score": score, "total": total},
        )
    return (200 * score + total) // (2 * total)


def grade_for_percentage(percentage: int) -> Grade:
    """Map a whole-number percentage onto the grade table."""
    for threshold, grade in GRADE_THRESHOLDS:
        if percentage >= threshold:
            return grade
    return Grade.F


def compute_grade(score: int, total: int) -> Grade:
    """
    Letter grade for ``score`` out of ``total``.

    Args:
        score: Correct answers
        total: Total questions (must be > 0)

    Returns:
        Grade from the canonical table

    Raises:
        InvalidInputError: If total <= 0 or score < 0

    Example:
        >>> compute_grade(29, 30)
        <Grade.A_PLUS: 'A+'>
    """
    return grade_for_percentage(calculate_percentage(score, total))


def grade_improvement(pre: Grade, post: Grade) -> str:
    """Describe the move from a pre-test grade to a post-test grade."""
    delta = GRADE_ORDER.index(Grade(post)) - GRADE_ORDER.index(Grade(pre))
    if delta > 0:
        return f"+{delta} grades"
    if delta < 0:
        return f"{delta} grades"
    return "No change"
