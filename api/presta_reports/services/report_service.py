# presta_reports/services/report_service.py
"""
Read path over the reporting tables.

Reads never start a sync. The refresh_* methods run one cycle through the
scheduler (so they queue behind a scheduled run instead of overlapping it)
and answer with the rows that cycle computed.
"""
from __future__ import annotations
from typing import Any, Dict, List, Optional

from presta_reports.models import InventoryRow
from presta_reports.services.report_store import ReportStore, apply_filters
from presta_reports.services.scheduler import SyncScheduler, readable_interval
from presta_reports.services.sync_jobs import INVENTORY_JOB, SALES_JOB


def _sales_payload(items: List[Any]) -> Dict[str, Any]:
    return {"items_orders": items, "totalItems": len(items)}


class ReportService:
    def __init__(self, store: ReportStore, scheduler: SyncScheduler):
        self.store = store
        self.scheduler = scheduler

    async def read_inventory(self) -> List[InventoryRow]:
        return await self.store.read_inventory()

    async def read_sales(
        self,
        product_name: Optional[str] = None,
        reference: Optional[str] = None,
        include_manual: bool = False,
    ) -> Dict[str, Any]:
        rows = await self.store.read_sales(product_name, reference, include_manual=include_manual)
        return _sales_payload(rows)

    async def refresh_inventory(self) -> List[InventoryRow]:
        ctx = await self.scheduler.run_now(INVENTORY_JOB)
        return list(ctx.rows)

    async def refresh_sales(
        self,
        product_name: Optional[str] = None,
        reference: Optional[str] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> Dict[str, Any]:
        ctx = await self.scheduler.run_now(SALES_JOB, start_date=start_date, end_date=end_date)
        return _sales_payload(apply_filters(ctx.rows, product_name, reference))

    def settings_summary(self) -> Dict[str, Any]:
        ms = self.scheduler.default_interval_ms
        return {
            "update_interval": str(ms),
            "update_interval_readable": readable_interval(ms),
            "jobs": self.scheduler.statuses(),
        }
