"""
ResusCert Test Configuration and Shared Fixtures

Provides in-memory stores, the bundled example snapshot and a deterministic
clock used across the test suite.

Example usage:
    @pytest.mark.asyncio
    async def test_aggregate(store):
        results = await AggregationEngine(store).aggregate_all()
"""

import shutil
from pathlib import Path

import pytest

from core.models import CertificateStatus
from core.store import InMemoryRecordStore
from tests.helpers import (
    FixedClock,
    all_pass_records,
    certificate_record,
    participant,
)


@pytest.fixture(autouse=True)
def clean_policy_env(monkeypatch):
    """Run every test against default policy values."""
    for name in ("CLINICAL_PASS_SCORE", "NON_CLINICAL_PASS_SCORE", "STORE_TIMEOUT_S",
                 "RESUSCERT_RECORDS", "LOG_LEVEL", "LOG_FORMAT"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def examples_dir():
    """
    Provide path to the examples directory.

    Returns:
        Path: Path to examples directory
    """
    return Path(__file__).parent.parent / "examples"


@pytest.fixture
def example_records_path(tmp_path, examples_dir):
    """
    Writable copy of the bundled example snapshot.

    Returns:
        Path: Path to records.json inside the test's temp directory
    """
    target = tmp_path / "records.json"
    shutil.copy(examples_dir / "records_example.json", target)
    return target


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def certified_participant():
    return participant("p_001", "Amanda Lee")


@pytest.fixture
def store(certified_participant):
    """
    Store with one fully certified participant, one with no submissions
    and five certificates in mixed lifecycle states.
    """
    return InMemoryRecordStore(
        participants=[certified_participant, participant("p_002", "Ben Tan")],
        assessments=all_pass_records("p_001"),
        certificates=[
            certificate_record("sub_001", status=CertificateStatus.PENDING),
            certificate_record("sub_002", status=CertificateStatus.PENDING),
            certificate_record("sub_003", status=CertificateStatus.ISSUED),
            certificate_record("sub_004", status=CertificateStatus.REVOKED),
            certificate_record("sub_005", status=None, results_released=True),
        ],
    )
