from __future__ import annotations
from fastapi import HTTPException, Request

from presta_reports.services.report_service import ReportService


def get_report_service(request: Request) -> ReportService:
    """FastAPI dependency - the service wired up in the app lifespan."""
    service = getattr(request.app.state, "report_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Report service is not ready")
    return service
