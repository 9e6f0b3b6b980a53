"""
Personal Finance Engine - Source Package

The consistency and computation core of a personal-finance tracker:
account balances, loan amortization, bill splits, budgets, savings goals
and cash-flow forecasts.

DESIGN PRINCIPLES:
1. Balances only move through the ledger
2. Every derived field has exactly one recompute function
3. Money is Decimal, rounded to cents after every step
4. Fail early, fail visibly
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Personal Finance Engine Team"
