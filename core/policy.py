"""
Policy Configuration Module

Centralized settings for the certification engine. Values come from
environment variables, read at call time, and fall back to the module
defaults below.

Key settings:
- Theory pass marks per job category (correct answers required)
- Record-store timeout
- Location of the JSON record snapshot used by the app and CLI
- Logging level and format

Example usage:
    from core.policy import pass_mark_for
    from core.models import Category

    if score >= pass_mark_for(Category.CLINICAL):
        ...
"""

import os
from typing import Any, Dict, Optional

from core.models import Category


CLINICAL_PASS_SCORE_DEFAULT = 25
NON_CLINICAL_PASS_SCORE_DEFAULT = 20
STORE_TIMEOUT_S_DEFAULT = 10.0
RECORDS_PATH_DEFAULT = "storage/records.json"
LOG_LEVEL_DEFAULT = "INFO"
LOG_FORMAT_DEFAULT = "json"

# Checklist sections whose items are compulsory even when not flagged
COMPULSORY_SECTIONS = ("airway", "breathing", "circulation")


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


def _float_env(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return float(raw)


def get_settings() -> Dict[str, Any]:
    """
    Get current engine settings.

    Returns:
        Dictionary containing every setting with its current value

    Raises:
        ValueError: If a numeric environment variable is not a number

    Example:
        >>> get_settings()['clinical_pass_score']
        25
    """
    return {
        'clinical_pass_score': _int_env('CLINICAL_PASS_SCORE', CLINICAL_PASS_SCORE_DEFAULT),
        'non_clinical_pass_score': _int_env('NON_CLINICAL_PASS_SCORE', NON_CLINICAL_PASS_SCORE_DEFAULT),
        'store_timeout_s': _float_env('STORE_TIMEOUT_S', STORE_TIMEOUT_S_DEFAULT),
        'records_path': os.environ.get('RESUSCERT_RECORDS', RECORDS_PATH_DEFAULT),
        'log_level': os.environ.get('LOG_LEVEL', LOG_LEVEL_DEFAULT).upper(),
        'log_format': os.environ.get('LOG_FORMAT', LOG_FORMAT_DEFAULT).lower(),
    }


def pass_mark_for(category: Optional[Category]) -> int:
    """
    Correct answers required to pass a theory test.

    Participants without a known category are held to the Non-Clinical mark.
    """
    settings = get_settings()
    if category == Category.CLINICAL:
        return settings['clinical_pass_score']
    return settings['non_clinical_pass_score']


def store_timeout_s() -> float:
    """Seconds to wait on a single record-store call."""
    return get_settings()['store_timeout_s']


def records_path() -> str:
    return get_settings()['records_path']


def get_policy_summary() -> str:
    """
    Get a human-readable summary of current settings.

    Returns:
        String summary of policy configuration
    """
    settings = get_settings()
    return " | ".join([
        f"Clinical pass mark: {settings['clinical_pass_score']}",
        f"Non-Clinical pass mark: {settings['non_clinical_pass_score']}",
        f"Store timeout: {settings['store_timeout_s']:g}s",
        f"Records: {settings['records_path']}",
    ])
