from __future__ import annotations
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Annotated, Any, List, Optional
from pydantic import BaseModel, BeforeValidator, ConfigDict, Field


def _to_int(v: Any) -> int:
    if v is None or isinstance(v, bool):
        return 0
    if isinstance(v, int):
        return v
    try:
        return int(str(v).strip() or 0)
    except ValueError:
        try:
            return int(float(str(v).replace(",", ".")))
        except ValueError:
            return 0


def _to_decimal(v: Any) -> Decimal:
    if v is None or v == "":
        return Decimal("0")
    if isinstance(v, Decimal):
        return v
    try:
        return Decimal(str(v).strip().replace(",", "."))
    except InvalidOperation:
        return Decimal("0")


def _lang_text(v: Any) -> str:
    # PrestaShop sends translated fields either flat or as [{"id": lang, "value": ...}]
    if v is None:
        return ""
    if isinstance(v, list):
        return _lang_text(v[0]) if v else ""
    if isinstance(v, dict):
        return str(v.get("value") or v.get("_") or "")
    return str(v)


def _opt_text(v: Any) -> Optional[str]:
    if v is None or isinstance(v, (dict, list)):
        return None
    return str(v)


LenientInt = Annotated[int, BeforeValidator(_to_int)]
LenientDecimal = Annotated[Decimal, BeforeValidator(_to_decimal)]
LangText = Annotated[str, BeforeValidator(_lang_text)]
OptText = Annotated[Optional[str], BeforeValidator(_opt_text)]


# ============================================================================
# Upstream records (one fetch cycle snapshot)
# ============================================================================

class _Record(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)


class Product(_Record):
    id: LenientInt
    name: LangText = ""
    unit_price: LenientDecimal = Field(default=Decimal("0"), alias="price")
    tax_rule_group_id: LenientInt = Field(default=0, alias="id_tax_rules_group")
    reference: OptText = None
    ean13: OptText = None


class Combination(_Record):
    id: LenientInt
    product_id: LenientInt = Field(default=0, alias="id_product")
    reference: OptText = None
    ean13: OptText = None
    price_delta: LenientDecimal = Field(default=Decimal("0"), alias="price")
    option_value_ids: List[int] = Field(default_factory=list)


class OptionValue(_Record):
    id: LenientInt
    display_name: LangText = Field(default="", alias="name")


class StockLevel(_Record):
    stock_id: LenientInt = Field(default=0, alias="id")
    product_id: LenientInt = Field(default=0, alias="id_product")
    variant_id: LenientInt = Field(default=0, alias="id_product_attribute")
    quantity: LenientInt = 0


class OrderRow(_Record):
    id: LenientInt = 0
    product_id: LenientInt = 0
    variant_id: LenientInt = Field(default=0, alias="product_attribute_id")
    product_name: LangText = ""
    quantity: LenientInt = Field(default=0, alias="product_quantity")
    unit_price_incl_tax: LenientDecimal = Field(default=Decimal("0"), alias="unit_price_tax_incl")


class Order(_Record):
    id: LenientInt
    reference: OptText = None
    date_add: OptText = None
    rows: List[OrderRow] = Field(default_factory=list)


# ============================================================================
# Derived report rows
# ============================================================================

class InventoryRow(BaseModel):
    """One stan_magazynowy row (stock_id is the unique key)."""
    id_stock: int
    id_wariantu: int = 0
    id_produktu: int
    reference: Optional[str] = None
    ean13: Optional[str] = None
    cena_wariant: Decimal = Decimal("0.00")
    opcje: str = ""
    stan_magazynowy: int = 0
    cena_produktu: Decimal = Decimal("0.00")
    nazwa_produktu: str = ""
    cena_sprzedazy_brutto: Decimal
    cena_zakupu_netto: Optional[Decimal] = None
    cena_zakupu_brutto: Optional[Decimal] = None
    data_ostatniej_faktury_zakupu: Optional[date] = None
    grupa_towarowa: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class SalesLine(BaseModel):
    """Order line joined with the stock snapshot (in-memory, refresh output)."""
    id: int
    order_id: int
    date_add: Optional[str] = None
    reference: Optional[str] = None
    product_quantity: int
    product_name: str = ""
    product_id: int
    product_attribute_id: int = 0
    unit_price_tax_incl: Decimal
    total_price_brutto: Decimal
    stock_quantity: int = 0


class SalesReportRow(BaseModel):
    """Persisted sales_report / raport_sprzedazy row."""
    reference: Optional[str] = None
    unit_price_tax_incl: Optional[Decimal] = None
    product_quantity: Optional[int] = None
    total_price_brutto: Optional[Decimal] = None
    date_add: Optional[date] = None
    product_name: Optional[str] = None
    stock_quantity: Optional[int] = None
    rabat: Optional[Decimal] = None


# ============================================================================
# API payloads
# ============================================================================

class SalesReportOut(BaseModel):
    items_orders: List[Any]
    totalItems: int


class IntervalChangeOut(BaseModel):
    success: bool
    message: str
