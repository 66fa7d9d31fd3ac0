# ================================
# UTILS PACKAGE INITIALIZATION (utils/__init__.py)
# ================================

"""
Utils Package

Helper modules for the invoicing backend:
- Invoice arithmetic, numbering and recurrence dates
- Email delivery through AWS SES with SMTP fallback
- Local file storage for photos and receipts
- Pagination helpers
"""
