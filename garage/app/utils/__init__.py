"""Formatting helpers shared with the garage front end (CSV export, dates, plates, quote references)."""
