# presta_reports/services/sync_jobs.py
"""
Sync pipelines: fetch -> merge -> replace-write.

All data of a cycle lives on its SyncContext; nothing is kept at module
level, so two cycles (or two jobs) never see each other's fetch results.
Any TransportError aborts the cycle before the database is touched.
"""
from __future__ import annotations
import logging
import time
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import partial
from typing import Any, Callable, Dict, List, Optional

from presta_reports.adapters.prestashop import PrestaShopClient
from presta_reports.services.merger import merge_inventory, merge_sales_lines
from presta_reports.services.report_store import ReportStore

logger = logging.getLogger(__name__)

INVENTORY_JOB = "inventory"
SALES_JOB = "sales-report"

ClientFactory = Callable[[], PrestaShopClient]


@dataclass
class SyncContext:
    job: str
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    fetched: Dict[str, int] = field(default_factory=dict)
    drops: Counter = field(default_factory=Counter)
    rows: List[Any] = field(default_factory=list)
    written: int = 0
    union_total: Optional[int] = None
    elapsed_ms: Optional[int] = None

    def record_fetch(self, dataset: str, records: List[Any]) -> List[Any]:
        self.fetched[dataset] = len(records)
        return records

    def summary(self) -> Dict[str, Any]:
        return {
            "job": self.job,
            "started_at": self.started_at.isoformat(),
            "fetched": dict(self.fetched),
            "dropped": dict(self.drops),
            "rows": len(self.rows),
            "written": self.written,
            "union_total": self.union_total,
            "elapsed_ms": self.elapsed_ms,
        }


async def sync_inventory(client_factory: ClientFactory, store: ReportStore) -> SyncContext:
    ctx = SyncContext(INVENTORY_JOB)
    started = time.monotonic()

    async with client_factory() as client:
        combinations = ctx.record_fetch("combinations", await client.fetch_combinations())
        products = ctx.record_fetch("products", await client.fetch_products())
        option_values = ctx.record_fetch("option_values", await client.fetch_option_values())
        stock_levels = ctx.record_fetch("stock_levels", await client.fetch_stock_levels())

    # join point: the merge needs every dataset of this cycle
    ctx.rows = merge_inventory(products, combinations, option_values, stock_levels, drops=ctx.drops)
    if ctx.drops:
        logger.info(
            f"Inventory merge dropped {sum(ctx.drops.values())} of {len(stock_levels)} stock rows: "
            f"{dict(ctx.drops)}"
        )

    ctx.written = await store.replace_inventory(ctx.rows)
    ctx.elapsed_ms = int((time.monotonic() - started) * 1000)
    logger.info(f"Inventory update: {ctx.written} rows written in {ctx.elapsed_ms} ms")
    return ctx


async def sync_sales(
    client_factory: ClientFactory,
    store: ReportStore,
    order_states: Optional[str] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
) -> SyncContext:
    ctx = SyncContext(SALES_JOB)
    started = time.monotonic()

    async with client_factory() as client:
        orders = ctx.record_fetch(
            "orders", await client.fetch_orders(order_states, start_date=start_date, end_date=end_date)
        )
        # fetched after the orders; stock may have moved in between, which is accepted
        stock_levels = ctx.record_fetch("stock_levels", await client.fetch_stock_levels())

    ctx.rows = merge_sales_lines(orders, stock_levels)
    ctx.written = len(ctx.rows)
    ctx.union_total = await store.replace_sales(ctx.rows)
    ctx.elapsed_ms = int((time.monotonic() - started) * 1000)
    logger.info(
        f"Sales report update: {ctx.written} order lines from {len(orders)} orders, "
        f"{ctx.union_total} rows in union, {ctx.elapsed_ms} ms"
    )
    return ctx


def register_sync_jobs(scheduler, client_factory: ClientFactory, store: ReportStore, order_states: Optional[str] = None) -> None:
    scheduler.register(INVENTORY_JOB, partial(sync_inventory, client_factory, store))
    scheduler.register(SALES_JOB, partial(sync_sales, client_factory, store, order_states))
