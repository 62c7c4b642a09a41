"""
Tabular store access.

Responsibilities:
- Read named sheets (Vendors, Ratings) from a Google Sheets spreadsheet.
- Convert the raw value grid into row mappings keyed by column header.
- Bound external calls with a per-table TTL cache.
"""
