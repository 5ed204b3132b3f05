# presta_reports/services/merger.py
"""
Reference joins that turn one fetch cycle into report rows.

Handles:
- inventory rows: stock levels joined with products, combinations and
  option value labels, gross sale price computed per tax group
- sales lines: order rows joined with a stock snapshot

Unresolvable references drop the row; nothing partial is emitted. Callers
may pass a Counter to learn how many rows were dropped and why.
"""
from __future__ import annotations
from collections import Counter
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Optional, Set, Tuple

from presta_reports.models import (
    Combination, InventoryRow, OptionValue, Order, Product, SalesLine, StockLevel,
)

CENT = Decimal("0.01")
VAT_MULTIPLIER = Decimal("1.23")
VAT_TAX_RULES_GROUP = 1  # "PL Standard Rate (23%)" in the shop

DROP_UNKNOWN_PRODUCT = "unknown_product"
DROP_UNKNOWN_VARIANT = "unknown_variant"
DROP_BASE_OF_VARIANT_PRODUCT = "base_of_variant_product"


def round2(value: Decimal) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def gross_price(base_price: Decimal, price_delta: Decimal, tax_rule_group_id: int) -> Decimal:
    """
    Gross sale price: round2(base + delta), then x1.23 and round2 again for
    the VAT tax group. The same order is used for base and variant rows.
    """
    price = round2(base_price + price_delta)
    if tax_rule_group_id == VAT_TAX_RULES_GROUP:
        price = round2(price * VAT_MULTIPLIER)
    return price


def merge_inventory(
    products: Iterable[Product],
    combinations: Iterable[Combination],
    option_values: Iterable[OptionValue],
    stock_levels: Iterable[StockLevel],
    drops: Optional[Counter] = None,
) -> List[InventoryRow]:
    drops = drops if drops is not None else Counter()

    products_by_id: Dict[int, Product] = {}
    for p in products:
        products_by_id.setdefault(p.id, p)
    combinations_by_id: Dict[int, Combination] = {}
    for c in combinations:
        combinations_by_id.setdefault(c.id, c)
    labels: Dict[int, str] = {}
    for ov in option_values:
        labels.setdefault(ov.id, ov.display_name)

    has_variants: Set[int] = {c.product_id for c in combinations_by_id.values() if c.product_id}

    rows: List[InventoryRow] = []
    for stock in stock_levels:
        product = products_by_id.get(stock.product_id)
        if product is None:
            drops[DROP_UNKNOWN_PRODUCT] += 1
            continue

        if stock.variant_id > 0:
            variant = combinations_by_id.get(stock.variant_id)
            if variant is None:
                drops[DROP_UNKNOWN_VARIANT] += 1
                continue
            opcje = ", ".join(labels[i] for i in variant.option_value_ids if i in labels)
            rows.append(InventoryRow(
                id_stock=stock.stock_id,
                id_wariantu=stock.variant_id,
                id_produktu=stock.product_id,
                reference=variant.reference,
                ean13=variant.ean13,
                cena_wariant=variant.price_delta,
                opcje=opcje,
                stan_magazynowy=stock.quantity,
                cena_produktu=product.unit_price,
                nazwa_produktu=product.name,
                cena_sprzedazy_brutto=gross_price(
                    product.unit_price, variant.price_delta, product.tax_rule_group_id
                ),
            ))
            continue

        # base stock of a product with variants is represented by its variant rows
        if stock.product_id in has_variants:
            drops[DROP_BASE_OF_VARIANT_PRODUCT] += 1
            continue

        rows.append(InventoryRow(
            id_stock=stock.stock_id,
            id_wariantu=0,
            id_produktu=stock.product_id,
            reference=product.reference,
            ean13=product.ean13,
            cena_wariant=Decimal("0"),
            opcje="",
            stan_magazynowy=stock.quantity,
            cena_produktu=product.unit_price,
            nazwa_produktu=product.name,
            cena_sprzedazy_brutto=gross_price(product.unit_price, Decimal("0"), product.tax_rule_group_id),
        ))
    return rows


def merge_sales_lines(orders: Iterable[Order], stock_levels: Iterable[StockLevel]) -> List[SalesLine]:
    stock_by_key: Dict[Tuple[int, int], int] = {}
    for s in stock_levels:
        stock_by_key.setdefault((s.product_id, s.variant_id), s.quantity)

    lines: List[SalesLine] = []
    for order in orders:
        for row in order.rows:
            lines.append(SalesLine(
                id=row.id,
                order_id=order.id,
                date_add=order.date_add,
                reference=order.reference,
                product_quantity=row.quantity,
                product_name=row.product_name,
                product_id=row.product_id,
                product_attribute_id=row.variant_id,
                unit_price_tax_incl=row.unit_price_incl_tax,
                total_price_brutto=round2(row.unit_price_incl_tax * row.quantity),
                stock_quantity=stock_by_key.get((row.product_id, row.variant_id), 0),
            ))
    return lines
