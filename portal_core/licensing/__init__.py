"""
Licensing Module

Seat accounting over directory SKU inventory.
"""

from .accounting import LicenseReport, LicenseSummary, collect, remaining_seats, summarize

__all__ = ["LicenseReport", "LicenseSummary", "collect", "remaining_seats", "summarize"]
