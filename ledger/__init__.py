"""
Household Ledger - Source Package

Core of a personal ledger kept in a Google Sheets document with one
worksheet per month ("2024년 3월").

DESIGN PRINCIPLES:
1. The spreadsheet stays the source of truth; we only cache it
2. Free-form sheet data never crashes the engines - bad cells are skipped
3. One writer for the cache, read-only snapshots for everyone else
4. Respect the Sheets request quota
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Household Ledger Team"
