"""
Monthly Ledger - Source Package

Optimistic local cache and remote reconciliation layer for a personal
monthly ledger (reports, global notes, calculator items).

DESIGN PRINCIPLES:
1. Local edits are visible immediately, persistence follows asynchronously
2. One authoritative remote store, realtime push is best-effort
3. Every fold is replace-by-key then re-sort
4. Remote rows are mapped to domain values in exactly one place
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Monthly Ledger Team"
