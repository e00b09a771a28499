"""
Pocket Ledger - Source Package

Personal finance tracking backend: wallets, income/expense transactions,
and time-bucketed statistics.

DESIGN PRINCIPLES:
1. A wallet's cached balance always follows its transactions
2. No operation may leave a wallet with a negative balance
3. Checks run before writes, never after
4. Every operation answers with a success flag and a readable message
5. Storage and upload backends are injected, never global
"""

__version__ = "1.0.0"
__author__ = "Pocket Ledger Team"
