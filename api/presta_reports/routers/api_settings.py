from __future__ import annotations
import logging
from typing import Any, Callable, Dict, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from presta_reports.dependencies import get_report_service
from presta_reports.exceptions import IntervalValidationError
from presta_reports.models import IntervalChangeOut
from presta_reports.services.report_service import ReportService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/api-settings", tags=["api-settings"])


def interval_change_response(apply: Callable[[Any], int], interval: Optional[str], label: str):
    """Shared body of the set-interval endpoints: 400 on bad input, scheduler untouched."""
    try:
        ms = apply(interval)
    except IntervalValidationError as e:
        logger.warning(f"Rejected {label} interval change: {interval!r}")
        return JSONResponse(status_code=400, content=e.to_dict())
    return IntervalChangeOut(
        success=True,
        message=f"{label} update interval changed to {ms} ms. Will take effect immediately on next execution.",
    )


@router.get("")
async def get_api_settings(service: ReportService = Depends(get_report_service)) -> Dict[str, Any]:
    """Current default interval and per-job scheduler status."""
    return service.settings_summary()


@router.get("/set-interval", response_model=IntervalChangeOut)
async def set_interval_all(
    interval: Optional[str] = Query(None, description="New interval in milliseconds"),
    service: ReportService = Depends(get_report_service),
):
    return interval_change_response(service.scheduler.set_interval_all, interval, "All APIs")
