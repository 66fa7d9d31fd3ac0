# ================================
# API PACKAGE INITIALIZATION (api/__init__.py)
# ================================

"""
API Package

Root package for all API routes
"""

API_VERSION = "1.0.0"
API_PREFIX = "/api/v1"
API_DESCRIPTION = """
Invoicing API for small service businesses

## Features
- Customers and their properties, with notes, photos and service history
- Invoices with line items, PDF rendering and email delivery
- Recurring invoice templates generated on schedule
- Expenses with AI receipt parsing
- Business reports, data export/import and database backups

## Authentication
- Local authentication (email/password)
- JWT bearer tokens
"""

__all__ = ["API_VERSION", "API_PREFIX", "API_DESCRIPTION"]
