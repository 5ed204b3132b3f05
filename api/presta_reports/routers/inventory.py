from __future__ import annotations
import logging
from functools import partial
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from presta_reports.dependencies import get_report_service
from presta_reports.models import IntervalChangeOut, InventoryRow
from presta_reports.routers.api_settings import interval_change_response
from presta_reports.services.report_service import ReportService
from presta_reports.services.sync_jobs import INVENTORY_JOB

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/inventory", tags=["inventory"])


@router.get("", response_model=List[InventoryRow])
async def get_inventory(service: ReportService = Depends(get_report_service)):
    """Current stan_magazynowy contents; does not trigger a sync."""
    try:
        return await service.read_inventory()
    except SQLAlchemyError as e:
        logger.error(f"Error reading inventory: {e}")
        raise HTTPException(status_code=500, detail="Error fetching inventory data")


@router.get("/refresh", response_model=List[InventoryRow])
async def refresh_inventory(service: ReportService = Depends(get_report_service)):
    """Run one inventory cycle now and return the rows it wrote."""
    try:
        return await service.refresh_inventory()
    except Exception as e:
        logger.error(f"Error refreshing inventory data: {e}")
        return JSONResponse(
            status_code=500,
            content={"error": "Failed to refresh inventory data", "details": str(e)},
        )


@router.get("/set-interval", response_model=IntervalChangeOut)
async def set_inventory_interval(
    interval: Optional[str] = Query(None, description="New interval in milliseconds"),
    service: ReportService = Depends(get_report_service),
):
    return interval_change_response(
        partial(service.scheduler.set_interval, INVENTORY_JOB), interval, "Inventory"
    )
