"""
Piggy Budget - Expense Ledger Package

The persistence and reporting core of a personal expense tracker.

DESIGN PRINCIPLES:
1. Best effort remote, guaranteed local
2. Every record is scoped to exactly one user
3. The live view is replaced wholesale, never patched
4. Network failures degrade, they do not crash
5. Storage adapters are injected, never global
"""

__version__ = "1.0.0"
__author__ = "Piggy Budget Team"
