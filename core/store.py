"""
Record Store Collaborator

The engine never talks to the real record service directly. It depends on
the async ``RecordStore`` protocol below; the production adapter lives with
the deployment, while ``InMemoryRecordStore`` backs tests, the CLI and the
bundled HTTP app (loaded from and saved to a JSON snapshot).

Every store call made by the engine goes through ``call_store`` so that
timeouts and connection failures surface as ``UpstreamUnavailableError``.

Example usage:
    from core.store import load_store, save_store

    store = load_store("storage/records.json")
    participants = await store.list_participants()
    save_store(store, "storage/records.json")
"""

import asyncio
import logging
from datetime import datetime
from pathlib import Path
from typing import Awaitable, Dict, Iterable, List, Optional, Protocol, TypeVar, Union

from pydantic import BaseModel, Field

from core.errors import NotFoundError, ResusCertError, UpstreamUnavailableError
from core.models import (
    AssessmentRecord,
    AssessmentType,
    CertificateRecord,
    CertificateStatus,
    Participant,
    TestType,
    TransitionLogEntry,
)
from core.policy import store_timeout_s

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RecordStore(Protocol):
    """Async interface of the external record/persistence service."""

    async def list_participants(self) -> List[Participant]:
        ...

    async def list_assessment_records(
        self, participant_id: str, assessment_type: AssessmentType
    ) -> List[AssessmentRecord]:
        ...

    async def list_all_assessment_records(self) -> List[AssessmentRecord]:
        ...

    async def list_certificate_records(self, test_type: TestType) -> List[CertificateRecord]:
        ...

    async def get_certificate_record(self, certificate_id: str) -> Optional[CertificateRecord]:
        ...

    async def apply_certificate_transition(
        self,
        certificate_id: str,
        status: CertificateStatus,
        released_at: Optional[datetime],
        entry: TransitionLogEntry,
    ) -> CertificateRecord:
        ...

    async def record_certificate_download(self, certificate_id: str, at: datetime) -> CertificateRecord:
        ...

    async def list_certificate_transitions(self, certificate_id: str) -> List[TransitionLogEntry]:
        ...


async def call_store(awaitable: Awaitable[T], operation: str, timeout: Optional[float] = None) -> T:
    """
    Await a store call, mapping store failures to UpstreamUnavailableError.

    Args:
        awaitable: Pending store call
        operation: Short name used in the error and log line
        timeout: Seconds to wait (defaults to STORE_TIMEOUT_S)

    Raises:
        UpstreamUnavailableError: On timeout or any failure of the store itself;
            ResusCertError raised by the store passes through unchanged
    """
    timeout = store_timeout_s() if timeout is None else timeout
    try:
        return await asyncio.wait_for(awaitable, timeout)
    except asyncio.TimeoutError:
        logger.warning("Record store timed out", extra={"operation": operation, "timeout_s": timeout})
        raise UpstreamUnavailableError(operation, f"timed out after {timeout:g}s") from None
    except ResusCertError:
        raise
    except Exception as e:
        logger.warning(
            "Record store failed",
            extra={"operation": operation, "error": str(e), "error_type": type(e).__name__},
        )
        raise UpstreamUnavailableError(operation, str(e) or type(e).__name__) from e


class StoreSnapshot(BaseModel):
    """On-disk JSON layout of an in-memory store."""
    participants: List[Participant] = Field(default_factory=list)
    assessments: List[AssessmentRecord] = Field(default_factory=list)
    certificates: List[CertificateRecord] = Field(default_factory=list)
    transitions: List[TransitionLogEntry] = Field(default_factory=list)


class InMemoryRecordStore:
    """
    Dictionary-backed RecordStore.

    ``latency`` adds an ``asyncio.sleep`` to every call so that overlapping
    operations interleave the way they would against a network service.
    """

    def __init__(
        self,
        participants: Iterable[Participant] = (),
        assessments: Iterable[AssessmentRecord] = (),
        certificates: Iterable[CertificateRecord] = (),
        transitions: Iterable[TransitionLogEntry] = (),
        latency: float = 0.0,
    ):
        self.participants: List[Participant] = list(participants)
        self.assessments: List[AssessmentRecord] = list(assessments)
        self.certificates: Dict[str, CertificateRecord] = {c.id: c for c in certificates}
        self.transitions: List[TransitionLogEntry] = list(transitions)
        self.latency = latency

    async def _pause(self) -> None:
        # sleep(0) still yields to the event loop
        await asyncio.sleep(self.latency)

    async def list_participants(self) -> List[Participant]:
        await self._pause()
        return list(self.participants)

    async def list_assessment_records(
        self, participant_id: str, assessment_type: AssessmentType
    ) -> List[AssessmentRecord]:
        await self._pause()
        return [
            r.model_copy(deep=True)
            for r in self.assessments
            if r.participant_id == participant_id and r.assessment_type == assessment_type
        ]

    async def list_all_assessment_records(self) -> List[AssessmentRecord]:
        await self._pause()
        return [r.model_copy(deep=True) for r in self.assessments]

    async def list_certificate_records(self, test_type: TestType) -> List[CertificateRecord]:
        await self._pause()
        return [c.model_copy() for c in self.certificates.values() if c.test_type == test_type]

    async def get_certificate_record(self, certificate_id: str) -> Optional[CertificateRecord]:
        await self._pause()
        record = self.certificates.get(certificate_id)
        return record.model_copy() if record is not None else None

    async def apply_certificate_transition(
        self,
        certificate_id: str,
        status: CertificateStatus,
        released_at: Optional[datetime],
        entry: TransitionLogEntry,
    ) -> CertificateRecord:
        await self._pause()
        record = self.certificates.get(certificate_id)
        if record is None:
            raise NotFoundError("Certificate", certificate_id)
        updated = record.model_copy(update={
            "status": status,
            "results_released": status == CertificateStatus.ISSUED,
            "results_released_at": released_at,
        })
        self.certificates[certificate_id] = updated
        self.transitions.append(entry)
        return updated.model_copy()

    async def record_certificate_download(self, certificate_id: str, at: datetime) -> CertificateRecord:
        await self._pause()
        record = self.certificates.get(certificate_id)
        if record is None:
            raise NotFoundError("Certificate", certificate_id)
        updated = record.model_copy(update={
            "download_count": record.download_count + 1,
            "last_downloaded_at": at,
        })
        self.certificates[certificate_id] = updated
        return updated.model_copy()

    async def list_certificate_transitions(self, certificate_id: str) -> List[TransitionLogEntry]:
        await self._pause()
        return [t for t in self.transitions if t.certificate_id == certificate_id]

    def snapshot(self) -> StoreSnapshot:
        return StoreSnapshot(
            participants=self.participants,
            assessments=self.assessments,
            certificates=list(self.certificates.values()),
            transitions=self.transitions,
        )


def load_store(path: Union[str, Path], missing_ok: bool = False) -> InMemoryRecordStore:
    """
    Build an in-memory store from a JSON snapshot.

    Args:
        path: Snapshot file
        missing_ok: Return an empty store when the file does not exist

    Raises:
        FileNotFoundError: If the file is missing and missing_ok is False
        pydantic.ValidationError: If the snapshot does not match StoreSnapshot
    """
    path = Path(path)
    if not path.exists():
        if missing_ok:
            logger.info(f"No record snapshot at {path}, starting empty")
            return InMemoryRecordStore()
        raise FileNotFoundError(f"Record snapshot not found: {path}")

    snapshot = StoreSnapshot.model_validate_json(path.read_text(encoding="utf-8"))
    logger.info(
        f"Loaded {len(snapshot.participants)} participants, {len(snapshot.assessments)} assessments, "
        f"{len(snapshot.certificates)} certificates from {path}"
    )
    return InMemoryRecordStore(
        participants=snapshot.participants,
        assessments=snapshot.assessments,
        certificates=snapshot.certificates,
        transitions=snapshot.transitions,
    )


def save_store(store: InMemoryRecordStore, path: Union[str, Path]) -> Path:
    """Write the store back to a JSON snapshot, creating parent directories."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(store.snapshot().model_dump_json(indent=2), encoding="utf-8")
    return path
