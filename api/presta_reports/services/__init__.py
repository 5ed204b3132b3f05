# presta_reports/services/__init__.py
"""
Business logic services for Presta Reports.
"""
from presta_reports.services.merger import merge_inventory, merge_sales_lines
from presta_reports.services.report_service import ReportService
from presta_reports.services.report_store import ReportStore
from presta_reports.services.scheduler import SyncScheduler

__all__ = [
    "merge_inventory",
    "merge_sales_lines",
    "ReportService",
    "ReportStore",
    "SyncScheduler",
]
