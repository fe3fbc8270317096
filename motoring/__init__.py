"""
Motoring - Source Package

Bookkeeping for a delivery rider: orders earned, fuel and spare parts
spent, odometer readings, and semi-monthly book closing.

DESIGN PRINCIPLES:
1. Reports are pure functions over immutable record snapshots
2. Closed books are append-only ledger entries
3. Validation happens before any store call
4. Every user action is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Motoring Team"
