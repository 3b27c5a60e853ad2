"""
ResusCert Certificate Lifecycle

Owns the PENDING -> ISSUED -> REVOKED state machine of certificates.

Transitions:
- issue / approve:  PENDING or REVOKED -> ISSUED (released_at = now)
- revoke:           ISSUED -> REVOKED (released_at cleared)

The target status is persisted explicitly together with an append-only
transition log entry, so a revoked certificate never reads back as pending.
Rows written before the explicit status existed derive it from the legacy
``results_released`` flag.

An in-flight set owned by the manager rejects a second transition for a
certificate whose first transition has not finished yet. Bulk variants run
ids one by one in caller order, never roll back, and report each id.

Example usage:
    from core.lifecycle import CertificateLifecycleManager

    manager = CertificateLifecycleManager(store)
    cert = await manager.issue("sub_001", actor="coordinator@example.com")
    outcome = await manager.bulk_revoke(["sub_002", "sub_003"])
    print(outcome.succeeded, [f.id for f in outcome.failed])
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional, Set, Tuple

from core.errors import (
    ConcurrentOperationError,
    InvalidTransitionError,
    NotFoundError,
    ResusCertError,
)
from core.grade import calculate_percentage, grade_for_percentage
from core.models import (
    BulkFailure,
    BulkResult,
    Certificate,
    CertificateAction,
    CertificateData,
    CertificateRecord,
    CertificateStatus,
    TestType,
    TransitionLogEntry,
)
from core.store import RecordStore, call_store

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

# action -> (accepted source states, target state)
TRANSITIONS: Dict[CertificateAction, Tuple[FrozenSet[CertificateStatus], CertificateStatus]] = {
    CertificateAction.ISSUE: (
        frozenset({CertificateStatus.PENDING, CertificateStatus.REVOKED}),
        CertificateStatus.ISSUED,
    ),
    CertificateAction.APPROVE: (
        frozenset({CertificateStatus.PENDING, CertificateStatus.REVOKED}),
        CertificateStatus.ISSUED,
    ),
    CertificateAction.REVOKE: (
        frozenset({CertificateStatus.ISSUED}),
        CertificateStatus.REVOKED,
    ),
}

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def current_status(record: CertificateRecord) -> CertificateStatus:
    """Lifecycle status of a persisted row, falling back to the legacy flag."""
    if record.status is not None:
        return record.status
    return CertificateStatus.ISSUED if record.results_released else CertificateStatus.PENDING


def to_certificate(record: CertificateRecord) -> Certificate:
    """Derived certificate view with grade and percentage."""
    status = current_status(record)
    percentage = calculate_percentage(record.score, record.total_questions)
    return Certificate(
        id=record.id,
        participant_id=record.participant_id,
        participant_name=record.participant_name,
        participant_email=record.participant_email,
        ic_number=record.ic_number,
        job_position=record.job_position,
        test_type=record.test_type,
        score=record.score,
        total_questions=record.total_questions,
        percentage=percentage,
        grade=grade_for_percentage(percentage),
        status=status,
        submitted_at=record.submitted_at,
        released_at=record.results_released_at if status == CertificateStatus.ISSUED else None,
        download_count=record.download_count,
        last_downloaded_at=record.last_downloaded_at,
    )


def to_certificate_data(certificate: Certificate) -> CertificateData:
    """Flat render record; falls back to the submission time when never released."""
    return CertificateData(
        participant_name=certificate.participant_name,
        participant_email=certificate.participant_email,
        ic_number=certificate.ic_number,
        job_position=certificate.job_position,
        test_type=certificate.test_type,
        score=certificate.score,
        total_questions=certificate.total_questions,
        grade=certificate.grade,
        percentage=certificate.percentage,
        issued_at=certificate.released_at or certificate.submitted_at,
        certificate_id=certificate.id,
    )


class CertificateLifecycleManager:
    """
    Issue/approve/revoke certificates through a RecordStore.

    One manager instance must be shared by every caller that can transition
    the same certificates; the in-flight guard lives on the instance.
    """

    def __init__(self, store: RecordStore, clock: Optional[Clock] = None, timeout: Optional[float] = None):
        self.store = store
        self.timeout = timeout
        self._clock = clock or _utc_now
        self._in_flight: Set[str] = set()
        self._bulk_runs: Set[asyncio.Task] = set()

    @property
    def in_flight(self) -> FrozenSet[str]:
        """Ids with a transition currently running."""
        return frozenset(self._in_flight)

    async def _fetch(self, certificate_id: str) -> CertificateRecord:
        record = await call_store(
            self.store.get_certificate_record(certificate_id), "get_certificate_record", self.timeout
        )
        if record is None:
            raise NotFoundError("Certificate", certificate_id)
        return record

    async def _transition(self, certificate_id: str, action: CertificateAction, actor: str) -> Certificate:
        if certificate_id in self._in_flight:
            logger.warning(
                f"Rejected {action.value}: certificate already in flight",
                extra={"certificate_id": certificate_id, "action": action.value},
            )
            raise ConcurrentOperationError(certificate_id)

        # no await between the membership check and the claim
        self._in_flight.add(certificate_id)
        try:
            record = await self._fetch(certificate_id)
            source = current_status(record)
            accepted, target = TRANSITIONS[action]
            if source not in accepted:
                raise InvalidTransitionError(certificate_id, action.value, source.value)

            at = self._clock()
            entry = TransitionLogEntry(
                certificate_id=certificate_id,
                action=action,
                from_status=source,
                to_status=target,
                actor=actor,
                at=at,
            )
            released_at = at if target == CertificateStatus.ISSUED else None
            updated = await call_store(
                self.store.apply_certificate_transition(certificate_id, target, released_at, entry),
                "apply_certificate_transition",
                self.timeout,
            )
        finally:
            self._in_flight.discard(certificate_id)

        logger.info(
            f"Certificate {certificate_id} {action.past_tense}",
            extra={
                "certificate_id": certificate_id,
                "action": action.value,
                "from_status": source.value,
                "to_status": target.value,
                "actor": actor,
            },
        )
        return to_certificate(updated)

    async def issue(self, certificate_id: str, actor: str = "system") -> Certificate:
        """
        Release a certificate to the participant.

        Raises:
            NotFoundError: Unknown certificate id
            InvalidTransitionError: Certificate is already issued
            ConcurrentOperationError: Another transition for the id is in flight
            UpstreamUnavailableError: Store failed or timed out
        """
        return await self._transition(certificate_id, CertificateAction.ISSUE, actor)

    async def approve(self, certificate_id: str, actor: str = "system") -> Certificate:
        """Same transition as ``issue``, recorded as an approval."""
        return await self._transition(certificate_id, CertificateAction.APPROVE, actor)

    async def revoke(self, certificate_id: str, actor: str = "system") -> Certificate:
        """Withdraw an issued certificate; it becomes REVOKED, not PENDING."""
        return await self._transition(certificate_id, CertificateAction.REVOKE, actor)

    async def _bulk(self, certificate_ids: List[str], action: CertificateAction, actor: str) -> BulkResult:
        outcome = BulkResult(action=action)
        for certificate_id in certificate_ids:
            try:
                await self._transition(certificate_id, action, actor)
            except ResusCertError as e:
                outcome.failed.append(BulkFailure(id=certificate_id, error_code=e.error_code, message=e.message))
            else:
                outcome.succeeded.append(certificate_id)

        logger.info(
            f"Bulk {action.value}: {len(outcome.succeeded)} succeeded, {len(outcome.failed)} failed",
            extra={"action": action.value, "actor": actor, "failed_ids": [f.id for f in outcome.failed]},
        )
        return outcome

    async def bulk(self, certificate_ids: Iterable[str], action: CertificateAction, actor: str = "system") -> BulkResult:
        """
        Apply one action to many certificates, sequentially and independently.

        Once started the run is shielded from cancellation and always covers
        the full id list.

        Returns:
            BulkResult listing succeeded ids and per-id failures
        """
        run = asyncio.ensure_future(self._bulk(list(certificate_ids), CertificateAction(action), actor))
        self._bulk_runs.add(run)
        run.add_done_callback(self._bulk_run_done)
        return await asyncio.shield(run)

    def _bulk_run_done(self, run: asyncio.Task) -> None:
        self._bulk_runs.discard(run)
        if run.cancelled():
            return
        exc = run.exception()
        if exc is not None:
            logger.error("Bulk run failed", exc_info=exc)

    async def wait_for_bulk_runs(self) -> None:
        """Wait until every bulk run started on this manager has finished."""
        if self._bulk_runs:
            await asyncio.wait(set(self._bulk_runs))

    async def bulk_issue(self, certificate_ids: Iterable[str], actor: str = "system") -> BulkResult:
        return await self.bulk(certificate_ids, CertificateAction.ISSUE, actor)

    async def bulk_approve(self, certificate_ids: Iterable[str], actor: str = "system") -> BulkResult:
        return await self.bulk(certificate_ids, CertificateAction.APPROVE, actor)

    async def bulk_revoke(self, certificate_ids: Iterable[str], actor: str = "system") -> BulkResult:
        return await self.bulk(certificate_ids, CertificateAction.REVOKE, actor)

    async def get(self, certificate_id: str) -> Certificate:
        return to_certificate(await self._fetch(certificate_id))

    async def list_certificates(self, test_type: Optional[TestType] = None) -> List[Certificate]:
        """Certificates for one test type (or both), newest submission first."""
        test_types = [TestType(test_type)] if test_type is not None else list(TestType)
        certificates = []
        for tt in test_types:
            records = await call_store(
                self.store.list_certificate_records(tt), f"list_certificate_records:{tt.value}", self.timeout
            )
            certificates.extend(to_certificate(r) for r in records)
        certificates.sort(key=lambda c: (c.submitted_at is not None, c.submitted_at or _EPOCH), reverse=True)
        return certificates

    async def history(self, certificate_id: str) -> List[TransitionLogEntry]:
        """Transition log of a certificate, oldest first."""
        await self._fetch(certificate_id)
        entries = await call_store(
            self.store.list_certificate_transitions(certificate_id), "list_certificate_transitions", self.timeout
        )
        return sorted(entries, key=lambda e: e.at)

    async def certificate_data(self, certificate_id: str) -> CertificateData:
        return to_certificate_data(await self.get(certificate_id))

    async def record_download(self, certificate_id: str) -> CertificateData:
        """Count a download and return the record to render."""
        await self._fetch(certificate_id)
        updated = await call_store(
            self.store.record_certificate_download(certificate_id, self._clock()),
            "record_certificate_download",
            self.timeout,
        )
        logger.info(
            f"Certificate {certificate_id} downloaded",
            extra={"certificate_id": certificate_id, "download_count": updated.download_count},
        )
        return to_certificate_data(to_certificate(updated))
