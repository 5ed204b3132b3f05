from __future__ import annotations
import logging
from functools import partial
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from presta_reports.dependencies import get_report_service
from presta_reports.models import IntervalChangeOut, SalesReportOut
from presta_reports.routers.api_settings import interval_change_response
from presta_reports.services.report_service import ReportService
from presta_reports.services.sync_jobs import SALES_JOB

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sales-report", tags=["sales-report"])


@router.get("", response_model=SalesReportOut)
async def get_sales_report(
    productName: Optional[str] = Query(None),
    reference: Optional[str] = Query(None),
    includeManual: bool = Query(False, description="Read raport_sprzedazy (with manual documents)"),
    service: ReportService = Depends(get_report_service),
):
    try:
        return await service.read_sales(productName, reference, include_manual=includeManual)
    except SQLAlchemyError as e:
        logger.error(f"Error fetching sales report data: {e}")
        return JSONResponse(
            status_code=500,
            content={"error": "Failed to fetch sales report data", "details": str(e)},
        )


@router.get("/refresh", response_model=SalesReportOut)
async def refresh_sales_report(
    productName: Optional[str] = Query(None),
    reference: Optional[str] = Query(None),
    startDate: Optional[str] = Query(None, description="YYYY-MM-DD, used together with endDate"),
    endDate: Optional[str] = Query(None),
    service: ReportService = Depends(get_report_service),
):
    """Force one sales cycle, then answer with its (filtered) order lines."""
    try:
        return await service.refresh_sales(productName, reference, start_date=startDate, end_date=endDate)
    except Exception as e:
        logger.error(f"Error refreshing sales report data: {e}")
        return JSONResponse(
            status_code=500,
            content={"error": "Failed to refresh sales report data", "details": str(e)},
        )


@router.get("/set-interval", response_model=IntervalChangeOut)
async def set_sales_report_interval(
    interval: Optional[str] = Query(None, description="New interval in milliseconds"),
    service: ReportService = Depends(get_report_service),
):
    return interval_change_response(
        partial(service.scheduler.set_interval, SALES_JOB), interval, "Sales report"
    )
