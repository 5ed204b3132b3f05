# presta_reports/db_models.py
"""
SQLAlchemy models for the reporting tables.

Column names follow the existing reporting schema read by the BI sheets, so
they stay in Polish:

- stan_magazynowy   inventory report, one row per stock-keeping row (owned)
- sales_report      order lines pulled from the shop (owned)
- raport_sprzedazy  union of documents_sales + sales_report (owned)
- documents_sales   manually maintained sales documents (external, read-only)
- product_prices    purchase prices keyed by EAN (external, read-only)
"""
from __future__ import annotations
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    Column, Date, Integer, Numeric, String, Table, Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from presta_reports.database import Base


# ============================================================================
# OWNED TABLES
# ============================================================================

class InventoryReport(Base):
    """Denormalized stock row: product/variant, prices and purchase data."""
    __tablename__ = "stan_magazynowy"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    id_stock: Mapped[int] = mapped_column(Integer, unique=True)
    id_wariantu: Mapped[Optional[int]] = mapped_column(Integer)
    id_produktu: Mapped[Optional[int]] = mapped_column(Integer)
    reference: Mapped[Optional[str]] = mapped_column(String)
    ean13: Mapped[Optional[str]] = mapped_column(String)
    cena_wariant: Mapped[Optional[Decimal]] = mapped_column(Numeric)
    opcje: Mapped[Optional[str]] = mapped_column(Text)
    stan_magazynowy: Mapped[Optional[int]] = mapped_column(Integer)
    cena_produktu: Mapped[Optional[Decimal]] = mapped_column(Numeric)
    nazwa_produktu: Mapped[Optional[str]] = mapped_column(Text)
    cena_sprzedazy_brutto: Mapped[Optional[Decimal]] = mapped_column(Numeric)
    cena_zakupu_netto: Mapped[Optional[Decimal]] = mapped_column(Numeric)
    cena_zakupu_brutto: Mapped[Optional[Decimal]] = mapped_column(Numeric)
    data_ostatniej_faktury_zakupu: Mapped[Optional[date]] = mapped_column(Date)
    grupa_towarowa: Mapped[Optional[str]] = mapped_column(Text)


def _sales_columns() -> list[Column]:
    return [
        Column("reference", Text),
        Column("unit_price_tax_incl", Numeric(12, 4)),
        Column("product_quantity", Integer),
        Column("total_price_brutto", Numeric(14, 4)),
        Column("date_add", Date),
        Column("product_name", Text),
        Column("stock_quantity", Integer),
        Column("rabat", Numeric(7, 4)),
    ]


# No primary key: the table is wiped and refilled every cycle.
sales_report = Table("sales_report", Base.metadata, *_sales_columns())

raport_sprzedazy = Table("raport_sprzedazy", Base.metadata, *_sales_columns())


# ============================================================================
# EXTERNAL TABLES (never created here)
# ============================================================================

documents_sales = Table("documents_sales", Base.metadata, *_sales_columns())

product_prices = Table(
    "product_prices",
    Base.metadata,
    Column("tw_symbol", String),
    Column("ob_cenanetto", Numeric),
    Column("ob_cenabrutto", Numeric),
    Column("grt_nazwa", Text),
)

SALES_COLUMNS = [c.name for c in sales_report.columns]

OWNED_TABLES = (InventoryReport.__table__, sales_report, raport_sprzedazy)
EXTERNAL_TABLES = (documents_sales, product_prices)
