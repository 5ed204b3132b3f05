# presta_reports/services/report_store.py
"""
ReportStore - sole writer of the reporting tables.

Every write is a replace-write: one session, one explicit transaction,
truncate + insert + commit. A failure anywhere rolls the whole transaction
back, so readers keep seeing the previous full set.
"""
from __future__ import annotations
import logging
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, TypeVar

from sqlalchemy import Table, func, insert, select, text, union_all
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncSession, async_sessionmaker

from presta_reports.database import Base
from presta_reports.db_models import (
    InventoryReport, OWNED_TABLES, SALES_COLUMNS,
    documents_sales, product_prices, raport_sprzedazy, sales_report,
)
from presta_reports.models import InventoryRow, SalesLine, SalesReportRow

logger = logging.getLogger(__name__)

# asyncpg refuses statements with more than 32767 bind parameters
MAX_BIND_PARAMS = 32_000

T = TypeVar("T")


def parse_order_date(value: Optional[str]) -> Optional[date]:
    """'2024-03-01 10:15:00' -> date(2024, 3, 1); zero dates and garbage -> None."""
    if not value:
        return None
    try:
        return datetime.strptime(str(value).strip()[:10], "%Y-%m-%d").date()
    except ValueError:
        return None


def apply_filters(rows: Iterable[T], product_name: Optional[str] = None, reference: Optional[str] = None) -> List[T]:
    """Case-insensitive substring filters on product_name / reference."""
    out = list(rows)
    if product_name:
        needle = product_name.lower()
        out = [r for r in out if needle in (getattr(r, "product_name", None) or "").lower()]
    if reference:
        needle = reference.lower()
        out = [r for r in out if needle in (getattr(r, "reference", None) or "").lower()]
    return out


class ReportStore:
    """Owns stan_magazynowy, sales_report and raport_sprzedazy."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    async def _create_if_absent(conn: AsyncConnection, *tables: Table) -> None:
        await conn.run_sync(Base.metadata.create_all, tables=list(tables), checkfirst=True)

    @staticmethod
    async def _truncate(conn: AsyncConnection, table: Table) -> None:
        if conn.dialect.name == "postgresql":
            await conn.execute(text(f"TRUNCATE TABLE {table.name}"))
        else:
            await conn.execute(table.delete())

    @staticmethod
    async def _bulk_insert(conn: AsyncConnection, table: Table, rows: Sequence[Dict[str, Any]]) -> None:
        """Multi-row INSERT ... VALUES; split only as far as the bind-parameter cap requires."""
        if not rows:
            return
        per_statement = max(1, MAX_BIND_PARAMS // max(1, len(rows[0])))
        for start in range(0, len(rows), per_statement):
            await conn.execute(insert(table).values(list(rows[start:start + per_statement])))

    @staticmethod
    async def _load_purchase_prices(conn: AsyncConnection) -> Dict[str, Dict[str, Any]]:
        result = await conn.execute(select(
            product_prices.c.tw_symbol,
            product_prices.c.ob_cenanetto,
            product_prices.c.ob_cenabrutto,
            product_prices.c.grt_nazwa,
        ))
        lookup: Dict[str, Dict[str, Any]] = {}
        for r in result:
            if r.tw_symbol and r.tw_symbol not in lookup:
                lookup[r.tw_symbol] = {
                    "cena_zakupu_netto": r.ob_cenanetto,
                    "cena_zakupu_brutto": r.ob_cenabrutto,
                    "grupa_towarowa": r.grt_nazwa,
                }
        return lookup

    # =========================================================================
    # Schema
    # =========================================================================

    async def ensure_schema(self) -> None:
        """Create the owned tables if they do not exist yet (startup)."""
        async with self._session_factory() as session:
            async with session.begin():
                conn = await session.connection()
                await self._create_if_absent(conn, *OWNED_TABLES)

    # =========================================================================
    # Replace-writes
    # =========================================================================

    async def replace_inventory(self, rows: Sequence[InventoryRow]) -> int:
        """
        Replace stan_magazynowy with `rows`, enriched with purchase prices
        from product_prices (exact ean13 match, NULLs when absent).
        """
        table = InventoryReport.__table__
        async with self._session_factory() as session:
            async with session.begin():
                conn = await session.connection()
                await self._create_if_absent(conn, table)

                prices = await self._load_purchase_prices(conn)
                payload: List[Dict[str, Any]] = []
                matched = 0
                for row in rows:
                    data = row.model_dump()
                    hit = prices.get(row.ean13) if row.ean13 else None
                    if hit:
                        matched += 1
                    data.update(hit or {
                        "cena_zakupu_netto": None,
                        "cena_zakupu_brutto": None,
                        "grupa_towarowa": None,
                    })
                    payload.append(data)

                await self._truncate(conn, table)
                await self._bulk_insert(conn, table, payload)

        logger.info(
            f"Saved {len(payload)} rows to {table.name} "
            f"({matched} with purchase prices, {len(prices)} price records)"
        )
        return len(payload)

    async def replace_sales(self, rows: Sequence[SalesLine]) -> int:
        """
        Replace sales_report with `rows`, then rebuild raport_sprzedazy as
        documents_sales UNION ALL sales_report. Returns the union row count.
        """
        payload = [
            {
                "reference": r.reference,
                "unit_price_tax_incl": r.unit_price_tax_incl,
                "product_quantity": r.product_quantity,
                "total_price_brutto": r.total_price_brutto,
                "date_add": parse_order_date(r.date_add),
                "product_name": r.product_name,
                "stock_quantity": r.stock_quantity,
                "rabat": None,
            }
            for r in rows
        ]
        async with self._session_factory() as session:
            async with session.begin():
                conn = await session.connection()
                await self._create_if_absent(conn, sales_report, raport_sprzedazy)

                await self._truncate(conn, sales_report)
                await self._bulk_insert(conn, sales_report, payload)

                await self._truncate(conn, raport_sprzedazy)
                union = union_all(
                    select(*[documents_sales.c[name] for name in SALES_COLUMNS]),
                    select(*[sales_report.c[name] for name in SALES_COLUMNS]),
                )
                await conn.execute(insert(raport_sprzedazy).from_select(SALES_COLUMNS, union))
                total = (await conn.execute(select(func.count()).select_from(raport_sprzedazy))).scalar_one()

        logger.info(f"Saved {len(payload)} rows to sales_report, {total} rows in raport_sprzedazy")
        return int(total)

    # =========================================================================
    # Reads
    # =========================================================================

    async def read_inventory(self) -> List[InventoryRow]:
        table = InventoryReport.__table__
        async with self._session_factory() as session:
            result = await session.execute(select(table).order_by(table.c.id_stock))
            return [InventoryRow.model_validate(dict(m)) for m in result.mappings()]

    async def read_sales(
        self,
        product_name: Optional[str] = None,
        reference: Optional[str] = None,
        include_manual: bool = False,
    ) -> List[SalesReportRow]:
        table = raport_sprzedazy if include_manual else sales_report
        async with self._session_factory() as session:
            result = await session.execute(select(table))
            rows = [SalesReportRow.model_validate(dict(m)) for m in result.mappings()]
        return apply_filters(rows, product_name, reference)
