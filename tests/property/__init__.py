"""
Property-based tests for ResusCert.

Hypothesis tests for the invariants of normalization, decisions,
grading and filtering across generated participants and submissions.
"""
