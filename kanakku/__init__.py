"""
Kanakku - Source Package

A local-first personal finance tracker: one user, one device.
Expenses, incomes and budgets live on the device; the profile is
stored obscured; the whole account can be exported as a backup file.

DESIGN PRINCIPLES:
1. Every operation either fully applies or changes nothing
2. Failures are returned as results, never thrown past a service
3. Every significant action is auditable
4. Storage backends are swappable
"""

__version__ = "1.0.0"
__author__ = "Kanakku Team"
