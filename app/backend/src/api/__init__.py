"""Public API routers exposed by the FastAPI application."""

from . import contacts, health, invoices

__all__ = ["contacts", "health", "invoices"]
