"""
P&L Tracker - Source Package

A small-business finance tracker: income/expense ledger, recurring
transaction series, CSV and bank-statement import, and a simplified
US tax estimator.

DESIGN PRINCIPLES:
1. The core (series projection, tax estimation) is pure and deterministic
2. Fail early, fail visibly
3. No silent defaults for malformed configuration
4. Every ledger mutation is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "P&L Tracker Team"
