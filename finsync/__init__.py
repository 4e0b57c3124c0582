"""
finsync - Resilient Tabular Data Synchronization

Keeps tabular financial records (budgets, project tracking, project
portfolio, subscription plans and revenue, financial summary) editable while the remote
store is slow, unavailable or flaky.

DESIGN PRINCIPLES:
1. Local edits apply immediately and are never rolled back by the network
2. Derived fields are always recomputed, never trusted
3. Every remote call is gated by a health probe and bounded in time
4. Nothing in the sync path is fatal
5. Storage and backend are swappable
"""

__version__ = "1.0.0"
__author__ = "finsync Team"
