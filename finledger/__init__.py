"""
finledger - Ledger Store Package

The persistence and derived-computation core of a personal-finance tracker:
an embedded, multi-tenant ledger store plus the engines that compute budget
progress, percentage-of-income allocation and spending insights.

DESIGN PRINCIPLES:
1. One explicit store handle, no hidden global state
2. Writes are validated completely before anything is mutated
3. Private data stays private, shared defaults are visible to everyone
4. Bulk operations never let one collection's failure stop the others
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "finledger Team"
