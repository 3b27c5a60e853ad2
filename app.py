"""
ResusCert FastAPI Application

HTTP entry point of the CPR/BLS certification engine: comprehensive
results, grading and the certificate lifecycle over a record store.

Example usage:
    # Start the server (records read from RESUSCERT_RECORDS)
    uvicorn app:app --host 0.0.0.0 --port 8000 --reload

    # Health check
    curl http://localhost:8000/health
"""

from typing import Any, Dict, Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from api.routes.certificates import router as certificates_router
from api.routes.results import router as results_router
from core import __version__
from core.aggregate import AggregationEngine
from core.errors import ResusCertError, error_response
from core.lifecycle import CertificateLifecycleManager
from core.logging import RequestLoggingMiddleware, get_logger, log_with_context, setup_logging
from core.policy import get_policy_summary, get_settings
from core.store import RecordStore, load_store

logger = get_logger(__name__)


async def resuscert_error_handler(request: Request, exc: ResusCertError) -> JSONResponse:
    """Map engine errors onto their HTTP status and JSON body."""
    level = "error" if exc.http_status >= 500 else "warning"
    log_with_context(
        logger, level, f"Request rejected: {exc.message}", request=request,
        error_code=exc.error_code,
    )
    return error_response(exc)


def create_app(store: Optional[RecordStore] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        store: Record store to serve from. Defaults to the JSON snapshot at
            ``RESUSCERT_RECORDS`` (empty when the file does not exist).

    Returns:
        FastAPI app with one engine and one lifecycle manager on ``app.state``
    """
    settings = get_settings()
    if store is None:
        store = load_store(settings['records_path'], missing_ok=True)

    app = FastAPI(
        title="ResusCert",
        description="CPR/BLS assessment aggregation, certification decisions and certificate lifecycle",
        version=__version__,
        openapi_tags=[
            {"name": "results", "description": "Comprehensive results, statistics and grading"},
            {"name": "certificates", "description": "Certificate issue, approval and revocation"},
            {"name": "health", "description": "System health and status endpoints"},
        ],
    )

    app.state.store = store
    app.state.engine = AggregationEngine(store)
    # single manager so every request shares the in-flight guard
    app.state.manager = CertificateLifecycleManager(store)

    app.add_middleware(RequestLoggingMiddleware)
    app.add_exception_handler(ResusCertError, resuscert_error_handler)

    app.include_router(results_router)
    app.include_router(certificates_router)

    @app.on_event("shutdown")
    async def shutdown_event():
        """Let bulk runs whose callers went away finish before exit."""
        await app.state.manager.wait_for_bulk_runs()

    @app.get("/health", tags=["health"])
    async def health_check() -> JSONResponse:
        """
        Health check endpoint for monitoring.

        Example:
            >>> # GET /health
            >>> {"status": "healthy", "service": "resuscert", "version": "0.1.0", ...}
        """
        health_data: Dict[str, Any] = {
            "status": "healthy",
            "service": "resuscert",
            "version": __version__,
            "policy": get_policy_summary(),
        }
        return JSONResponse(content=health_data, status_code=200)

    logger.info(f"ResusCert app created ({get_policy_summary()})")
    return app


def _configure_logging() -> None:
    settings = get_settings()
    setup_logging(level=settings['log_level'], format_type=settings['log_format'])


_configure_logging()
app = create_app()


if __name__ == "__main__":
    """
    Development server entry point.
    Run with: python app.py
    """
    uvicorn.run(
        "app:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info"
    )
