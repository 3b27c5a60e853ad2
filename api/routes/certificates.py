"""
Certificates API routes

Listing, issue/approve/revoke (single and bulk), render data and the
transition history of theory-test certificates.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field

from core.lifecycle import CertificateLifecycleManager
from core.logging import log_with_context
from core.models import CertificateAction, TestType
from core.query import filter_certificates
from core.stats import certificate_status_counts

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/certificates", tags=["certificates"])


class BulkRequest(BaseModel):
    ids: List[str] = Field(..., min_length=1)
    actor: str = "system"


def get_manager(request: Request) -> CertificateLifecycleManager:
    return request.app.state.manager


@router.get("")
async def list_certificates(
    test_type: Optional[TestType] = None,
    status: str = "all",
    search: str = "",
    manager: CertificateLifecycleManager = Depends(get_manager),
):
    """
    Certificates, newest submission first, with lifecycle counts.

    Example:
        GET /api/certificates?test_type=post_test&status=PENDING
    """
    certificates = await manager.list_certificates(test_type)
    shown = filter_certificates(certificates, search_text=search, status=status)
    return {
        "certificates": [c.model_dump(mode="json") for c in shown],
        "total": len(shown),
        "counts": {s.value: n for s, n in certificate_status_counts(certificates).items()},
    }


@router.post("/bulk/{action}")
async def bulk_transition(
    action: CertificateAction,
    body: BulkRequest,
    request: Request,
    manager: CertificateLifecycleManager = Depends(get_manager),
):
    """
    Apply one action to many certificates.

    Always 200: per-id failures are reported in ``failed``.
    """
    outcome = await manager.bulk(body.ids, action, actor=body.actor)
    log_with_context(
        logger, "info", f"Bulk {action.value} request handled", request=request,
        certificate_count=len(body.ids), failed_count=len(outcome.failed),
    )
    return outcome.model_dump(mode="json")


@router.get("/{certificate_id}")
async def get_certificate(certificate_id: str, manager: CertificateLifecycleManager = Depends(get_manager)):
    certificate = await manager.get(certificate_id)
    return certificate.model_dump(mode="json")


@router.post("/{certificate_id}/{action}")
async def transition(
    certificate_id: str,
    action: CertificateAction,
    actor: str = "system",
    manager: CertificateLifecycleManager = Depends(get_manager),
):
    """Issue, approve or revoke a single certificate."""
    if action == CertificateAction.REVOKE:
        certificate = await manager.revoke(certificate_id, actor=actor)
    elif action == CertificateAction.APPROVE:
        certificate = await manager.approve(certificate_id, actor=actor)
    else:
        certificate = await manager.issue(certificate_id, actor=actor)
    return certificate.model_dump(mode="json")


@router.get("/{certificate_id}/data")
async def certificate_data(certificate_id: str, manager: CertificateLifecycleManager = Depends(get_manager)):
    """Render record for a certificate download; counts the download."""
    data = await manager.record_download(certificate_id)
    return data.model_dump(mode="json")


@router.get("/{certificate_id}/history")
async def certificate_history(certificate_id: str, manager: CertificateLifecycleManager = Depends(get_manager)):
    entries = await manager.history(certificate_id)
    return {
        "certificate_id": certificate_id,
        "transitions": [e.model_dump(mode="json") for e in entries],
    }
