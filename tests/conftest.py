"""
Pytest fixtures for Presta Reports tests.

Async code is driven with asyncio.run; the reporting tables live in an
in-memory SQLite database (aiosqlite) shared through a StaticPool.
"""
import asyncio
import json
from contextlib import asynccontextmanager

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from presta_reports.adapters.prestashop import PrestaShopClient
from presta_reports.database import Base
from presta_reports.db_models import EXTERNAL_TABLES
from presta_reports.services.report_store import ReportStore

SHOP_URL = "https://shop.example.com/api"
TOKEN = "Basic dGVzdDo="


COMBINATIONS_XML = b"""<?xml version="1.0" encoding="UTF-8"?>
<prestashop xmlns:xlink="http://www.w3.org/1999/xlink">
<combinations>
  <combination>
    <id><![CDATA[11]]></id>
    <id_product xlink:href="https://shop.example.com/api/products/2"><![CDATA[2]]></id_product>
    <reference><![CDATA[TSHIRT-M-RED]]></reference>
    <ean13><![CDATA[5901234123457]]></ean13>
    <price><![CDATA[5.000000]]></price>
    <associations>
      <product_option_values nodeType="product_option_value" api="product_option_values">
        <product_option_value xlink:href="https://shop.example.com/api/product_option_values/25">
          <id><![CDATA[25]]></id>
        </product_option_value>
        <product_option_value xlink:href="https://shop.example.com/api/product_option_values/31">
          <id><![CDATA[31]]></id>
        </product_option_value>
      </product_option_values>
    </associations>
  </combination>
  <combination>
    <id><![CDATA[12]]></id>
    <id_product xlink:href="https://shop.example.com/api/products/2"><![CDATA[2]]></id_product>
    <reference><![CDATA[TSHIRT-L-RED]]></reference>
    <ean13></ean13>
    <price><![CDATA[0.000000]]></price>
    <associations>
      <product_option_values nodeType="product_option_value" api="product_option_values">
        <product_option_value xlink:href="https://shop.example.com/api/product_option_values/26">
          <id><![CDATA[26]]></id>
        </product_option_value>
      </product_option_values>
    </associations>
  </combination>
</combinations>
</prestashop>
"""

PRODUCTS_JSON = {
    "products": [
        {"id": 1, "name": "Widget", "price": "10.000000", "id_tax_rules_group": "2",
         "reference": "WID-1", "ean13": "5900000000011"},
        {"id": 2, "name": "T-shirt", "price": "40.000000", "id_tax_rules_group": "1",
         "reference": "TSHIRT", "ean13": ""},
    ]
}

OPTION_VALUES_JSON = {
    "product_option_values": [
        {"id": 25, "name": "M"},
        {"id": 26, "name": "L"},
        {"id": 31, "name": "Red"},
    ]
}

STOCK_JSON = {
    "stock_availables": [
        {"id": 5, "id_product": "1", "id_product_attribute": "0", "quantity": "7"},
        {"id": 6, "id_product": "2", "id_product_attribute": "0", "quantity": "9"},
        {"id": 7, "id_product": "2", "id_product_attribute": "11", "quantity": "4"},
        {"id": 8, "id_product": "2", "id_product_attribute": "12", "quantity": "5"},
        {"id": 9, "id_product": "99", "id_product_attribute": "0", "quantity": "1"},
    ]
}

ORDERS_JSON = {
    "orders": [
        {
            "id": 100, "reference": "XKBKNABJK", "date_add": "2024-03-01 10:15:00",
            "associations": {"order_rows": [
                {"id": 1, "product_id": "1", "product_attribute_id": "0", "product_name": "Widget",
                 "product_quantity": "3", "unit_price_tax_incl": "12.300000"},
                {"id": 2, "product_id": "2", "product_attribute_id": "11", "product_name": "T-shirt - M, Red",
                 "product_quantity": "1", "unit_price_tax_incl": "55.350000"},
            ]},
        },
        {
            "id": 101, "reference": "OHSATSERP", "date_add": "2024-03-02 08:00:00",
            "associations": {"order_rows": {"id": 3, "product_id": "2", "product_attribute_id": "12",
                                            "product_name": "T-shirt - L, Red", "product_quantity": "2",
                                            "unit_price_tax_incl": "49.200000"}},
        },
    ]
}


def shop_handler(overrides=None, seen=None):
    """MockTransport handler serving the fixtures above by resource path."""
    overrides = overrides or {}

    def handler(request: httpx.Request) -> httpx.Response:
        resource = request.url.path.rstrip("/").rsplit("/", 1)[-1]
        if seen is not None:
            seen.append(request)
        if resource in overrides:
            return overrides[resource](request)
        if resource == "combinations":
            return httpx.Response(200, content=COMBINATIONS_XML, headers={"Content-Type": "text/xml"})
        payloads = {
            "products": PRODUCTS_JSON,
            "product_option_values": OPTION_VALUES_JSON,
            "stock_availables": STOCK_JSON,
            "orders": ORDERS_JSON,
        }
        if resource not in payloads:
            return httpx.Response(404, text="not found")
        return httpx.Response(200, content=json.dumps(payloads[resource]),
                              headers={"Content-Type": "application/json"})

    return handler


@pytest.fixture
def run():
    """Run a coroutine to completion on a fresh event loop."""
    return asyncio.run


@pytest.fixture
def client_factory():
    """Build a factory of PrestaShopClient bound to a MockTransport handler."""
    def _make(handler=None):
        transport = httpx.MockTransport(handler or shop_handler())
        return lambda: PrestaShopClient(SHOP_URL, TOKEN, transport=transport)
    return _make


@asynccontextmanager
async def _sqlite_store(with_external: bool = True):
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    try:
        if with_external:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all, tables=list(EXTERNAL_TABLES))
        factory = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
        yield ReportStore(factory), engine
    finally:
        await engine.dispose()


@pytest.fixture
def sqlite_store():
    """`async with sqlite_store() as (store, engine):` - fresh in-memory database."""
    return _sqlite_store
