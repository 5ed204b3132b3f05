# presta_reports/main.py
# Presta Reports - PrestaShop -> PostgreSQL reporting sync
from __future__ import annotations
import logging
from contextlib import asynccontextmanager
from functools import partial

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from presta_reports.settings import settings
from presta_reports.adapters.prestashop import PrestaShopClient
from presta_reports.database import (
    init_db, close_db, check_db_health, ensure_db_reachable, get_engine, get_session_factory,
)
from presta_reports.services.report_service import ReportService
from presta_reports.services.report_store import ReportStore
from presta_reports.services.scheduler import SyncScheduler
from presta_reports.services.sync_jobs import register_sync_jobs

from presta_reports.routers.api_settings import router as api_settings_router
from presta_reports.routers.inventory import router as inventory_router
from presta_reports.routers.ping import router as ping_router
from presta_reports.routers.sales_report import router as sales_report_router


# ---------------------------------------------------------
# Logging setup
# ---------------------------------------------------------
from presta_reports.logging_setup import setup_logging
setup_logging(settings)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------
# Lifespan: database, report store, scheduler
# ---------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    # Startup - an unusable pool is fatal, let it propagate
    await init_db()
    await ensure_db_reachable()
    logger.info(f"PostgreSQL connected: {get_engine().url.render_as_string(hide_password=True)}")

    store = ReportStore(get_session_factory())
    await store.ensure_schema()

    scheduler = SyncScheduler(settings.API_UPDATE_INTERVAL)
    register_sync_jobs(
        scheduler,
        partial(PrestaShopClient.from_settings, settings),
        store,
        order_states=settings.SALES_ORDER_STATES,
    )
    app.state.report_service = ReportService(store, scheduler)

    if settings.SYNC_ENABLED and settings.PRESTASHOP_API_URL:
        await scheduler.start()
    else:
        logger.warning("Automatic updates disabled (SYNC_ENABLED off or PRESTASHOP_API_URL not set)")
    yield
    # Shutdown
    await scheduler.stop()
    await close_db()
    logger.info("PostgreSQL disconnected")

# ---------------------------------------------------------
# FastAPI app + CORS
# ---------------------------------------------------------
app = FastAPI(
    title="Presta Reports API",
    version="1.0.0",
    description="PrestaShop inventory and sales reporting sync",
    lifespan=lifespan,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(ping_router)
app.include_router(inventory_router)
app.include_router(sales_report_router)
app.include_router(api_settings_router)


@app.get("/api/health")
async def health():
    """Health check endpoint with database status."""
    db_health = await check_db_health()
    return {
        "status": "ok" if db_health.get("status") == "healthy" else "degraded",
        "database": db_health,
    }


def run() -> None:
    import uvicorn
    uvicorn.run("presta_reports.main:app", host=settings.HOST, port=settings.PORT)
