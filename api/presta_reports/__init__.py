"""Presta Reports - periodic PrestaShop -> PostgreSQL reporting sync."""
__version__ = "1.0.0"
