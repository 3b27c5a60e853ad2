"""
ResusCert CLI Main Module

Command-line interface for ResusCert using Typer. Every command works on a
JSON record snapshot (``--records``, default ``RESUSCERT_RECORDS``);
lifecycle commands write the snapshot back.
"""

import asyncio
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import typer
from pydantic import ValidationError

from core.aggregate import AggregationEngine
from core.errors import ResusCertError
from core.grade import calculate_percentage, grade_for_percentage
from core.lifecycle import CertificateLifecycleManager
from core.models import (
    AssessmentType,
    CertificateAction,
    CustomDateRange,
    FilterConfig,
    TestType,
)
from core.policy import get_policy_summary, records_path
from core.query import filter_certificates, filter_results
from core.stats import certificate_status_counts, compute_statistics
from core.store import InMemoryRecordStore, load_store, save_store

# Configure logging
logging.basicConfig(level=logging.WARNING, format='%(levelname)s: %(message)s')
logger = logging.getLogger(__name__)

app = typer.Typer(
    name="resuscert",
    help="ResusCert - CPR/BLS assessment results and certificate lifecycle",
    add_completion=False
)

RECORDS_HELP = "Path to the JSON record snapshot"

SLOT_LABELS = {
    AssessmentType.PRE_TEST: "PRE",
    AssessmentType.POST_TEST: "POST",
    AssessmentType.ONE_MAN_CPR: "1CPR",
    AssessmentType.TWO_MAN_CPR: "2CPR",
    AssessmentType.INFANT_CPR: "ICPR",
    AssessmentType.INFANT_CHOKING: "ICHK",
    AssessmentType.ADULT_CHOKING: "ACHK",
}


def _records(records: Optional[Path]) -> Path:
    return records if records is not None else Path(records_path())


def _open_store(path: Path) -> InMemoryRecordStore:
    try:
        return load_store(path)
    except FileNotFoundError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(1)
    except ValidationError as e:
        logger.debug("Snapshot validation failed", exc_info=True)
        typer.echo(f"Invalid record snapshot {path}: {e.error_count()} validation errors", err=True)
        raise typer.Exit(1)


def _fail(e: ResusCertError) -> None:
    typer.echo(f"✗ {e.error_code}: {e.message}", err=True)
    raise typer.Exit(1)


@app.command()
def results(
    records: Optional[Path] = typer.Option(None, "--records", "-r", help=RECORDS_HELP),
    search: str = typer.Option("", "--search", "-s", help="Match name, IC number or job position"),
    category: str = typer.Option("all", "--category", help="Clinical, Non-Clinical or all"),
    status: str = typer.Option("all", "--status", help="Show participants with any slot in this status"),
    remedial: str = typer.Option("all", "--remedial", help="ALLOWED, NOT_ALLOWED or all"),
    certified: str = typer.Option("all", "--certified", help="CERTIFIED, NOT_CERTIFIED or all"),
    date_range: str = typer.Option("all", "--date-range", help="all, today, 7days, 30days or custom"),
    start: Optional[datetime] = typer.Option(None, "--start", help="Custom range start"),
    end: Optional[datetime] = typer.Option(None, "--end", help="Custom range end"),
    as_json: bool = typer.Option(False, "--json", help="Print results as JSON"),
) -> None:
    """
    Show comprehensive results (seven assessments per participant).
    """
    store = _open_store(_records(records))
    try:
        window = CustomDateRange(start=start, end=end) if date_range == "custom" else date_range
        config = FilterConfig(
            search_text=search,
            category=category,
            status=status,
            remedial=remedial,
            certified=certified,
            date_range=window,
        )
    except ValidationError as e:
        typer.echo(f"Invalid filter: {'; '.join(err['msg'] for err in e.errors())}", err=True)
        raise typer.Exit(1)

    try:
        all_results = asyncio.run(AggregationEngine(store).aggregate_all())
        shown = filter_results(all_results, config)
    except ResusCertError as e:
        _fail(e)

    if as_json:
        typer.echo(json.dumps([r.model_dump(mode="json") for r in shown], indent=2))
        return

    header = " ".join(f"{label:<5}" for label in SLOT_LABELS.values())
    typer.echo(f"{'Participant':<28} {'Category':<13} {header} {'Certified':<14} Remedial")
    for result in shown:
        cells = " ".join(f"{result.slot(t).status.value[:5]:<5}" for t in SLOT_LABELS)
        typer.echo(
            f"{result.participant.name[:28]:<28} {result.category.value:<13} {cells} "
            f"{result.certified.status.value:<14} {result.remedial.status.value}"
        )
    typer.echo(f"\n{len(shown)} of {len(all_results)} participants")


@app.command()
def stats(
    records: Optional[Path] = typer.Option(None, "--records", "-r", help=RECORDS_HELP),
) -> None:
    """
    Summary counts per assessment and certificate status.
    """
    store = _open_store(_records(records))
    try:
        all_results = asyncio.run(AggregationEngine(store).aggregate_all())
        certificates = asyncio.run(CertificateLifecycleManager(store).list_certificates())
    except ResusCertError as e:
        _fail(e)

    summary = compute_statistics(all_results)
    typer.echo(f"Participants: {summary.total_participants}")
    typer.echo(f"  Certified: {summary.certified}")
    typer.echo(f"  Not certified: {summary.not_certified}")
    typer.echo(f"  Remedial allowed: {summary.remedial_allowed}")
    typer.echo("\nAssessments:")
    for assessment_type, counts in summary.by_assessment.items():
        line = ", ".join(f"{status.value}={n}" for status, n in counts.items())
        typer.echo(f"  {assessment_type.value:<15} {line}")
    typer.echo("\nCertificates:")
    for status, n in certificate_status_counts(certificates).items():
        typer.echo(f"  {status.value:<8} {n}")
    typer.echo(f"\nPolicy: {get_policy_summary()}")


@app.command()
def grade(
    score: int = typer.Argument(..., help="Correct answers"),
    total: int = typer.Argument(..., help="Total questions"),
) -> None:
    """
    Letter grade for SCORE out of TOTAL.
    """
    try:
        percentage = calculate_percentage(score, total)
    except ResusCertError as e:
        _fail(e)
    typer.echo(f"{score}/{total} = {percentage}% -> {grade_for_percentage(percentage).value}")


@app.command()
def certificates(
    records: Optional[Path] = typer.Option(None, "--records", "-r", help=RECORDS_HELP),
    test_type: Optional[TestType] = typer.Option(None, "--test-type", help="pre_test or post_test"),
    status: str = typer.Option("all", "--status", help="PENDING, ISSUED, REVOKED or all"),
    search: str = typer.Option("", "--search", "-s", help="Match name, email or grade"),
) -> None:
    """
    List certificates, newest submission first.
    """
    store = _open_store(_records(records))
    try:
        listed = asyncio.run(CertificateLifecycleManager(store).list_certificates(test_type))
        shown = filter_certificates(listed, search_text=search, status=status)
    except ResusCertError as e:
        _fail(e)
    except ValueError as e:
        typer.echo(f"Invalid filter: {e}", err=True)
        raise typer.Exit(1)

    for cert in shown:
        typer.echo(
            f"{cert.id:<16} {cert.participant_name[:28]:<28} {cert.test_type.value:<10} "
            f"{cert.score}/{cert.total_questions} {cert.grade.value:<3} {cert.status.value}"
        )
    typer.echo(f"\n{len(shown)} certificates")


def _run_transition(action: CertificateAction, ids: List[str], actor: str, records: Optional[Path]) -> None:
    path = _records(records)
    store = _open_store(path)
    manager = CertificateLifecycleManager(store)
    outcome = asyncio.run(manager.bulk(ids, action, actor=actor))
    save_store(store, path)

    for certificate_id in outcome.succeeded:
        typer.echo(f"✓ {certificate_id} {action.past_tense}")
    for failure in outcome.failed:
        typer.echo(f"✗ {failure.id}: {failure.error_code} {failure.message}", err=True)

    typer.echo(f"\n{len(outcome.succeeded)} succeeded, {len(outcome.failed)} failed")
    if outcome.failed:
        raise typer.Exit(1)


@app.command()
def issue(
    ids: List[str] = typer.Argument(..., help="Certificate ids"),
    actor: str = typer.Option("system", "--actor", help="Who performs the action"),
    records: Optional[Path] = typer.Option(None, "--records", "-r", help=RECORDS_HELP),
) -> None:
    """
    Issue certificates (PENDING or REVOKED -> ISSUED).
    """
    _run_transition(CertificateAction.ISSUE, ids, actor, records)


@app.command()
def approve(
    ids: List[str] = typer.Argument(..., help="Certificate ids"),
    actor: str = typer.Option("system", "--actor", help="Who performs the action"),
    records: Optional[Path] = typer.Option(None, "--records", "-r", help=RECORDS_HELP),
) -> None:
    """
    Approve certificates; same transition as issue.
    """
    _run_transition(CertificateAction.APPROVE, ids, actor, records)


@app.command()
def revoke(
    ids: List[str] = typer.Argument(..., help="Certificate ids"),
    actor: str = typer.Option("system", "--actor", help="Who performs the action"),
    records: Optional[Path] = typer.Option(None, "--records", "-r", help=RECORDS_HELP),
) -> None:
    """
    Revoke issued certificates (ISSUED -> REVOKED).
    """
    _run_transition(CertificateAction.REVOKE, ids, actor, records)


@app.command()
def history(
    certificate_id: str = typer.Argument(..., help="Certificate id"),
    records: Optional[Path] = typer.Option(None, "--records", "-r", help=RECORDS_HELP),
) -> None:
    """
    Transition history of one certificate, oldest first.
    """
    store = _open_store(_records(records))
    try:
        entries = asyncio.run(CertificateLifecycleManager(store).history(certificate_id))
    except ResusCertError as e:
        _fail(e)

    if not entries:
        typer.echo(f"No transitions recorded for {certificate_id}")
        return
    for entry in entries:
        typer.echo(
            f"{entry.at.isoformat()}  {entry.action.value:<8} "
            f"{entry.from_status.value} -> {entry.to_status.value}  by {entry.actor}"
        )


if __name__ == "__main__":
    app()
