"""
Ledger Engine

Computes point-in-time account balances from an append-only transaction
history (including multi-currency transfers) and catches recurring rules
up with the current date, materializing exactly one transaction per
elapsed period.
"""

__version__ = "0.1.0"
