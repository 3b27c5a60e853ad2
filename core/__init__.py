"""
ResusCert Core Module

Framework-agnostic engine of the CPR/BLS certification tool:
- Assessment normalization and seven-slot aggregation
- Certification and remedial decisions
- Grading, filtering and statistics
- Certificate issue/approve/revoke lifecycle

Example usage:
    from core.aggregate import AggregationEngine
    from core.lifecycle import CertificateLifecycleManager
    from core.store import load_store
"""

__version__ = "0.1.0"
__all__ = [
    "aggregate",
    "decide",
    "errors",
    "grade",
    "lifecycle",
    "models",
    "normalize",
    "policy",
    "query",
    "stats",
    "store",
]
