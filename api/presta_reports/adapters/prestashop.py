# -*- coding: utf-8 -*-
"""
PrestaShop webservice client.

Every dataset is requested with a fixed `display` projection. All of them
come back as JSON except combinations, which are pulled as XML (the JSON
output drops the xlink references to option values) and decoded here into
the same record shape.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Type

import httpx
from lxml import etree
from pydantic import BaseModel, ValidationError

from presta_reports.exceptions import ParseError, TransportError
from presta_reports.models import Combination, OptionValue, Order, Product, StockLevel

logger = logging.getLogger(__name__)

XLINK_HREF = "{http://www.w3.org/1999/xlink}href"
_TRAILING_ID = re.compile(r"(\d+)\s*$")

_XML_PARSER = etree.XMLParser(resolve_entities=False, no_network=True, huge_tree=True)


@dataclass(frozen=True)
class Dataset:
    name: str
    resource: str
    display: str
    record: Type[BaseModel]
    output_format: str = "JSON"
    params: Dict[str, str] = field(default_factory=dict)
    translated: bool = False


DATASETS: Dict[str, Dataset] = {
    "products": Dataset(
        name="products",
        resource="products",
        display="[id,name,price,id_tax_rules_group,reference,ean13]",
        record=Product,
        params={"filter[active]": "[1]"},
        translated=True,
    ),
    "combinations": Dataset(
        name="combinations",
        resource="combinations",
        display="[id,id_product,price,reference,ean13,product_option_values[id]]",
        record=Combination,
        output_format="XML",
    ),
    "option_values": Dataset(
        name="option_values",
        resource="product_option_values",
        display="[id,name]",
        record=OptionValue,
        translated=True,
    ),
    "stock_levels": Dataset(
        name="stock_levels",
        resource="stock_availables",
        display="[id,id_product,id_product_attribute,quantity]",
        record=StockLevel,
    ),
    "orders": Dataset(
        name="orders",
        resource="orders",
        display=(
            "[id,reference,date_add,order_rows[id],order_rows[product_id],"
            "order_rows[product_attribute_id],order_rows[product_name],"
            "order_rows[product_quantity],order_rows[unit_price_tax_incl]]"
        ),
        record=Order,
    ),
}


# ========================
# Payload helpers
# ========================

def _as_list(value: Any) -> List[Any]:
    """PrestaShop returns one object or a list depending on the result count."""
    if value is None or value == "":
        return []
    if isinstance(value, list):
        return value
    return [value]


def extract_trailing_id(href: Optional[str]) -> Optional[int]:
    """'https://shop/api/product_option_values/25' -> 25; None when there is no trailing number."""
    if not href:
        return None
    m = _TRAILING_ID.search(href)
    return int(m.group(1)) if m else None


def _xml_text(elem: etree._Element, tag: str) -> Optional[str]:
    x = elem.find(tag)
    if x is None or x.text is None:
        return None
    return x.text.strip()


def parse_combinations_xml(content: bytes) -> List[Dict[str, Any]]:
    """Decode the combinations XML into plain dicts shaped like the JSON datasets."""
    try:
        root = etree.fromstring(content, parser=_XML_PARSER)
    except (etree.XMLSyntaxError, ValueError) as e:
        raise ParseError("combinations", f"invalid XML: {e}") from e
    if root is None:
        raise ParseError("combinations", "empty XML document")

    container = root if root.tag == "combinations" else root.find("combinations")
    if container is None:
        raise ParseError("combinations", f"missing <combinations> under <{root.tag}>")

    out: List[Dict[str, Any]] = []
    for item in container.findall("combination"):
        option_ids: List[int] = []
        for pov in item.findall("associations/product_option_values/product_option_value"):
            oid = extract_trailing_id(pov.get(XLINK_HREF))
            if oid is not None:
                option_ids.append(oid)
        out.append({
            "id": _xml_text(item, "id"),
            "id_product": _xml_text(item, "id_product"),
            "reference": _xml_text(item, "reference"),
            "ean13": _xml_text(item, "ean13"),
            "price": _xml_text(item, "price"),
            "option_value_ids": option_ids,
        })
    return out


def _flatten_order(order: Dict[str, Any]) -> Dict[str, Any]:
    assoc = order.get("associations") or {}
    rows = _as_list(assoc.get("order_rows")) if isinstance(assoc, dict) else []
    return {**order, "rows": [r for r in rows if isinstance(r, dict)]}


def parse_json_payload(ds: Dataset, payload: Any) -> List[Dict[str, Any]]:
    # empty result sets come back as [] instead of {"resource": [...]}
    if isinstance(payload, list):
        if payload:
            raise ParseError(ds.name, "unexpected top-level list")
        return []
    if not isinstance(payload, dict):
        raise ParseError(ds.name, f"unexpected payload type {type(payload).__name__}")
    items = _as_list(payload.get(ds.resource))
    if any(not isinstance(i, dict) for i in items):
        raise ParseError(ds.name, "records are not objects")
    if ds.name == "orders":
        items = [_flatten_order(o) for o in items]
    return items


# ========================
# Client
# ========================

class PrestaShopClient:
    """
    Async client for the PrestaShop webservice.

    Usage:
        async with PrestaShopClient(url, token) as client:
            products = await client.fetch("products")
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        timeout: float = 60.0,
        language: int = 1,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or "").rstrip("/")
        self.language = language
        headers = {"Authorization": token} if token else {}
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=timeout,
            follow_redirects=True,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> "PrestaShopClient":
        return cls(
            settings.PRESTASHOP_API_URL,
            settings.PRESTASHOP_API_TOKEN,
            timeout=settings.PRESTASHOP_TIMEOUT,
            language=settings.PRESTASHOP_LANGUAGE,
            transport=transport,
        )

    async def __aenter__(self) -> "PrestaShopClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def _params(self, ds: Dataset, filters: Optional[Dict[str, str]]) -> Dict[str, Any]:
        params: Dict[str, Any] = {"display": ds.display, "output_format": ds.output_format}
        if ds.translated:
            params["language"] = self.language
        params.update(ds.params)
        if filters:
            params.update(filters)
        return params

    async def _get(self, ds: Dataset, filters: Optional[Dict[str, str]]) -> httpx.Response:
        try:
            resp = await self._client.get(f"/{ds.resource}", params=self._params(ds, filters))
        except httpx.HTTPError as e:
            raise TransportError(ds.name, f"request failed: {e}") from e
        if not resp.is_success:
            snippet = resp.text[:200].replace("\n", " ")
            raise TransportError(ds.name, f"HTTP {resp.status_code}: {snippet}", status_code=resp.status_code)
        return resp

    async def fetch(self, dataset: str, filters: Optional[Dict[str, str]] = None) -> List[Any]:
        """Fetch one dataset and return typed records. Raises TransportError/ParseError."""
        ds = DATASETS.get(dataset)
        if ds is None:
            raise ValueError(f"Unknown dataset: {dataset}")

        resp = await self._get(ds, filters)
        if ds.output_format == "XML":
            raw = parse_combinations_xml(resp.content)
        else:
            try:
                payload = resp.json()
            except ValueError as e:
                raise ParseError(ds.name, f"invalid JSON: {e}") from e
            raw = parse_json_payload(ds, payload)

        try:
            records = [ds.record.model_validate(r) for r in raw]
        except ValidationError as e:
            raise ParseError(ds.name, f"unexpected record shape: {e.error_count()} error(s)") from e

        logger.info(f"Fetched {len(records)} {ds.name} records")
        return records

    # ---- convenience wrappers ----

    async def fetch_products(self) -> List[Product]:
        return await self.fetch("products")

    async def fetch_combinations(self) -> List[Combination]:
        return await self.fetch("combinations")

    async def fetch_option_values(self) -> List[OptionValue]:
        return await self.fetch("option_values")

    async def fetch_stock_levels(self) -> List[StockLevel]:
        return await self.fetch("stock_levels")

    async def fetch_orders(
        self,
        states: Optional[str] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> List[Order]:
        filters: Dict[str, str] = {}
        if states:
            filters["filter[current_state]"] = f"[{states}]"
        if start_date and end_date:
            filters["filter[date_add]"] = f"[{start_date},{end_date}]"
            filters["date"] = "1"
        return await self.fetch("orders", filters)
